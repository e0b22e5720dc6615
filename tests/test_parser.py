from pathlib import Path

from openpyxl import Workbook
import pytest

from metalpro.bom_parser import (
    BOMRow,
    parse_bom_file,
    row_from_dict,
    row_to_dict,
    rows_from_records,
)
from metalpro.errors import BOMStructureError
from metalpro.mapping import TEMPLATE_HEADERS


def test_parse_bom_xlsx(tmp_path: Path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Lista"
    ws.append(["Oferta proiect hala"])
    ws.append(["Client: SC Demo SRL"])
    ws.append(list(TEMPLATE_HEADERS))
    ws.append(["Profile", "EN 10025", "S235JR", "HEA 100", 6, 10, "buc", "", "stalpi"])
    ws.append(["Tablă", None, None, "6mm", None, "1,5", "ton", "zincat", None])
    path = tmp_path / "hala.xlsx"
    wb.save(path)

    parsed = parse_bom_file(path)
    assert parsed.file_name == "hala.xlsx"
    assert parsed.total_rows == 2
    first, second = parsed.rows
    assert first.row_index == 1
    assert first.family == "Profile"
    assert first.dimension == "HEA 100"
    assert first.length_m == 6.0
    assert first.qty == 10.0
    assert first.unit == "buc"
    assert first.notes == "stalpi"
    assert first.source_sheet == "Lista"
    assert first.source_row_number == 4
    assert second.row_index == 2
    assert second.qty == 1.5
    assert second.finish == "zincat"
    assert second.source_row_number == 5


def test_parse_bom_csv_semicolon(tmp_path: Path):
    path = tmp_path / "bom.csv"
    path.write_text(
        "Familie;Grad;Dimensiune;Cantitate;Unitate\n"
        "Profile;S235JR;IPE 200;4;buc\n"
        ";;;;\n"
        "Teava;S235JRH;48,3x3,2;12,5;m\n",
        encoding="utf-8-sig",
    )
    parsed = parse_bom_file(path)
    assert [row.dimension for row in parsed.rows] == ["IPE 200", "48,3x3,2"]
    assert parsed.rows[1].qty == 12.5
    assert parsed.rows[1].unit == "m"
    assert parsed.rows[0].source_sheet == "bom"


def test_parse_bom_xlsx_and_csv_agree(tmp_path: Path):
    wb = Workbook()
    ws = wb.active
    ws.append(["Familie", "Dimensiune", "Cantitate", "Unitate"])
    ws.append(["Profile", "UNP 100", 3, "buc"])
    xlsx_path = tmp_path / "a.xlsx"
    wb.save(xlsx_path)
    csv_path = tmp_path / "a.csv"
    csv_path.write_text("Familie,Dimensiune,Cantitate,Unitate\nProfile,UNP 100,3,buc\n", encoding="utf-8")

    from_xlsx = parse_bom_file(xlsx_path).rows[0]
    from_csv = parse_bom_file(csv_path).rows[0]
    assert (from_xlsx.family, from_xlsx.dimension, from_xlsx.qty, from_xlsx.unit) == (
        from_csv.family,
        from_csv.dimension,
        from_csv.qty,
        from_csv.unit,
    )


def test_parse_bom_rows_across_sheets_are_numbered_in_order(tmp_path: Path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Profile"
    ws.append(["Familie", "Cantitate", "Unitate"])
    ws.append(["Profile", 1, "buc"])
    notes = wb.create_sheet("Note")
    notes.append(["Observații generale"])
    plates = wb.create_sheet("Table")
    plates.append(["Familie", "Cantitate", "Unitate"])
    plates.append(["Tabla", 2, "buc"])
    plates.append(["Tabla", 3, None])
    path = tmp_path / "multi.xlsx"
    wb.save(path)

    parsed = parse_bom_file(path)
    assert [(r.row_index, r.source_sheet) for r in parsed.rows] == [(1, "Profile"), (2, "Table"), (3, "Table")]
    assert parsed.rows[2].unit is None


def test_parse_bom_without_quantity_header_raises(tmp_path: Path):
    wb = Workbook()
    wb.active.append(["Familie", "Dimensiune"])
    wb.active.append(["Profile", "HEA 100"])
    path = tmp_path / "no_qty.xlsx"
    wb.save(path)
    with pytest.raises(BOMStructureError):
        parse_bom_file(path)


def test_parse_bom_without_unit_column_raises(tmp_path: Path):
    wb = Workbook()
    wb.active.append(["Familie", "Dimensiune", "Cantitate"])
    wb.active.append(["Profile", "HEA 100", 10])
    path = tmp_path / "no_unit.xlsx"
    wb.save(path)
    with pytest.raises(BOMStructureError):
        parse_bom_file(path)


def test_parse_bom_unsupported_extension(tmp_path: Path):
    path = tmp_path / "bom.pdf"
    path.write_bytes(b"%PDF-1.4")
    with pytest.raises(BOMStructureError):
        parse_bom_file(path)


def test_invalid_values_become_row_data():
    rows = rows_from_records(
        [
            {"Cantitate": "zece", "Lungime (m)": "lung"},
            {"Familie": "", "Cantitate": None},
            {"qty": -2, "length": 0},
        ]
    )
    assert len(rows) == 2
    assert rows[0].qty == 0.0
    assert rows[0].length_m is None
    assert rows[0].warnings == ["invalid length 'lung' ignored"]
    assert rows[1].row_index == 2
    assert rows[1].qty == -2.0
    assert rows[1].warnings == ["invalid length '0' ignored"]


def test_rows_from_records_rejects_non_mappings():
    with pytest.raises(BOMStructureError):
        rows_from_records("Familie,Cantitate")
    with pytest.raises(BOMStructureError):
        rows_from_records([["Profile", 1]])


def test_row_dict_roundtrip_keeps_match_state():
    row = BOMRow(
        row_index=3,
        qty=2.0,
        family="Profile",
        matched_product_id="hea-100-s235jr",
        match_confidence="high",
        warnings=["unit defaulted"],
        is_manually_mapped=True,
    )
    restored = row_from_dict(row_to_dict(row))
    assert restored == row
    assert row_from_dict({"row_index": 1, "match_confidence": "perfect"}).match_confidence == "none"
