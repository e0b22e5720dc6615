from __future__ import annotations

import csv
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from openpyxl import load_workbook
import xlrd

from .errors import BOMStructureError
from .mapping import REQUIRED_FIELDS, map_headers, parse_qty


logger = logging.getLogger(__name__)

CONFIDENCE_TIERS = ("high", "medium", "low", "none")


@dataclass
class BOMRow:
    row_index: int
    qty: float
    family: str | None = None
    standard: str | None = None
    grade: str | None = None
    dimension: str | None = None
    length_m: float | None = None
    unit: str | None = None
    finish: str | None = None
    notes: str | None = None

    parsed_family: str | None = None
    parsed_standard: str | None = None
    parsed_grade: str | None = None
    parsed_dimension: str | None = None

    matched_product_id: str | None = None
    match_confidence: str = "none"
    match_reason: str | None = None

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    is_selected: bool = False
    is_manually_mapped: bool = False

    source_sheet: str | None = None
    source_row_number: int | None = None


@dataclass
class ParsedBOM:
    file_name: str
    file_size: int
    uploaded_at: str
    rows: list[BOMRow]
    source_file: Path

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def parse_bom_file(path: Path) -> ParsedBOM:
    if not path.exists():
        raise BOMStructureError(f"BOM file not found: {path}")
    rows: list[BOMRow] = []
    sheets_with_header = 0
    for sheet_name, sheet_rows in iter_sheet_rows(path):
        header_idx, header_map = detect_header(sheet_rows)
        if header_idx is None:
            logger.info("Sheet %s in %s has no quantity and unit header, skipped", sheet_name, path.name)
            continue
        sheets_with_header += 1
        rows.extend(parse_sheet_rows(sheet_name, sheet_rows, header_idx, header_map, start_index=len(rows) + 1))
    if not sheets_with_header:
        raise BOMStructureError(f"{path.name}: no header row with 'Cantitate' and 'Unitate' columns")
    logger.info("Parsed %d BOM rows from %s", len(rows), path.name)
    return ParsedBOM(
        file_name=path.name,
        file_size=path.stat().st_size,
        uploaded_at=datetime.now().isoformat(timespec="seconds"),
        rows=rows,
        source_file=path,
    )


def iter_sheet_rows(path: Path) -> Iterator[tuple[str, list[list[object]]]]:
    suffix = path.suffix.lower()
    if suffix in {".xlsx", ".xlsm"}:
        wb = load_workbook(path, data_only=True, read_only=True)
        try:
            for ws in wb.worksheets:
                rows = [list(row) for row in ws.iter_rows(values_only=True)]
                yield ws.title, rows
        finally:
            wb.close()
        return
    if suffix == ".xls":
        book = xlrd.open_workbook(path.as_posix())
        for sheet in book.sheets():
            rows = [sheet.row_values(i) for i in range(sheet.nrows)]
            yield sheet.name, rows
        return
    if suffix == ".csv":
        yield path.stem, read_csv_rows(path)
        return
    raise BOMStructureError(f"Unsupported extension: {path.suffix}")


def read_csv_rows(path: Path) -> list[list[object]]:
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
        except csv.Error:
            dialect = csv.excel
        return [list(row) for row in csv.reader(f, dialect)]


def detect_header(rows: list[list[object]], max_scan: int = 30) -> tuple[int | None, dict[int, str]]:
    best_index: int | None = None
    best_map: dict[int, str] = {}
    best_score = -1
    for idx, row in enumerate(rows[:max_scan]):
        mapping = map_headers(row)
        score = len(mapping)
        if score > best_score and all(f in mapping.values() for f in REQUIRED_FIELDS):
            best_index = idx
            best_map = mapping
            best_score = score
    return best_index, best_map


def parse_sheet_rows(
    sheet_name: str,
    rows: list[list[object]],
    header_idx: int,
    header_map: dict[int, str],
    start_index: int = 1,
) -> list[BOMRow]:
    parsed: list[BOMRow] = []
    for row_number, row in enumerate(rows[header_idx + 1 :], start=header_idx + 2):
        if all(is_blank(value) for value in row):
            continue
        record = {canonical: row[idx] for idx, canonical in header_map.items() if idx < len(row)}
        parsed.append(
            row_from_record(
                start_index + len(parsed),
                record,
                source_sheet=sheet_name,
                source_row_number=row_number,
            )
        )
    return parsed


def rows_from_records(records: Iterable[Mapping[str, object]]) -> list[BOMRow]:
    """Build rows from already-read records keyed by column label.

    Labels go through the same synonym table as spreadsheet headers, so
    ``{"Cantitate": "10", "Unitate": "buc"}`` and ``{"qty": 10}`` are both
    accepted.
    """
    if isinstance(records, (str, bytes)) or not isinstance(records, Iterable):
        raise BOMStructureError("BOM records must be a sequence of mappings")
    rows: list[BOMRow] = []
    for position, record in enumerate(records, start=1):
        if not isinstance(record, Mapping):
            raise BOMStructureError(f"BOM record {position} is not a mapping")
        labels = list(record.keys())
        header_map = map_headers(labels)
        canonical = {header_map[idx]: record[label] for idx, label in enumerate(labels) if idx in header_map}
        if all(is_blank(value) for value in canonical.values()):
            continue
        rows.append(row_from_record(len(rows) + 1, canonical, source_row_number=position))
    return rows


def row_from_record(
    row_index: int,
    record: Mapping[str, object],
    source_sheet: str | None = None,
    source_row_number: int | None = None,
) -> BOMRow:
    warnings: list[str] = []
    qty = parse_qty(record.get("qty"))
    raw_length = record.get("length_m")
    length_m = parse_qty(raw_length)
    if not is_blank(raw_length) and (length_m is None or length_m <= 0):
        warnings.append(f"invalid length '{to_text(raw_length)}' ignored")
        length_m = None
    return BOMRow(
        row_index=row_index,
        qty=qty if qty is not None else 0.0,
        family=to_text(record.get("family")),
        standard=to_text(record.get("standard")),
        grade=to_text(record.get("grade")),
        dimension=to_text(record.get("dimension")),
        length_m=length_m,
        unit=to_text(record.get("unit")),
        finish=to_text(record.get("finish")),
        notes=to_text(record.get("notes")),
        warnings=warnings,
        source_sheet=source_sheet,
        source_row_number=source_row_number,
    )


def row_to_dict(row: BOMRow) -> dict[str, Any]:
    return asdict(row)


def row_from_dict(payload: Mapping[str, Any]) -> BOMRow:
    known = {f.name for f in fields(BOMRow)}
    values = {key: value for key, value in payload.items() if key in known}
    if "row_index" not in values:
        raise BOMStructureError("Stored BOM row without row_index")
    values.setdefault("qty", 0.0)
    values["errors"] = list(values.get("errors") or [])
    values["warnings"] = list(values.get("warnings") or [])
    if values.get("match_confidence") not in CONFIDENCE_TIERS:
        values["match_confidence"] = "none"
    return BOMRow(**values)


def is_blank(value: object | None) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def to_text(value: object | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None
