import pytest

from metalpro.bom_parser import BOMRow, rows_from_records
from metalpro.cart import build_cart_lines, cart_line, cart_totals, configuration_for_row, normalize_finish
from metalpro.estimator import SPECIAL_TRANSPORT_BAND, VAT_RATE, ProductConfiguration
from metalpro.matcher import match_rows
from metalpro.report import cart_ready_rows

from conftest import make_product


def test_normalize_finish_synonyms():
    assert normalize_finish("Zincat termic") == "galvanized"
    assert normalize_finish("vopsit") == "painted"
    assert normalize_finish("Lustruit") == "polished"
    assert normalize_finish(None) == "standard"
    assert normalize_finish("sablat") == "standard"


def test_configuration_for_piece_row(products):
    hea = products[0]
    config = configuration_for_row(BOMRow(row_index=1, qty=10, unit="buc", length_m=12, finish="zincat"), hea)
    assert config == ProductConfiguration(
        selling_unit="pcs", length_option="12m", custom_length=None, quantity=10, finish="galvanized"
    )


def test_configuration_for_metre_row_rounds_up_to_bars(products):
    hea = products[0]
    config = configuration_for_row(BOMRow(row_index=1, qty=20, unit="m"), hea)
    assert config.selling_unit == "m"
    assert config.length_option == "6m"
    assert config.quantity == 4

    custom = configuration_for_row(BOMRow(row_index=1, qty=9, unit="m", length_m=4.5), hea)
    assert custom.length_option == "custom"
    assert custom.custom_length == 4.5
    assert custom.quantity == 2


def test_configuration_for_weight_rows(products):
    plate = products[2]
    assert configuration_for_row(BOMRow(row_index=1, qty=500, unit="kg"), plate).quantity == 500
    tons = configuration_for_row(BOMRow(row_index=1, qty=1.5, unit="ton"), plate)
    assert tons.selling_unit == "kg"
    assert tons.quantity == 1500.0


def test_build_cart_lines_from_matched_rows(index):
    rows = match_rows(
        [
            BOMRow(row_index=1, qty=10, family="profiles", dimension="HEA 100", grade="S235JR", standard="EN 10025", unit="buc"),
            BOMRow(row_index=2, qty=500, family="plates", dimension="6mm", unit="kg", notes="grinzi"),
            BOMRow(row_index=3, qty=0, family="profiles", dimension="IPE 200", unit="buc"),
            BOMRow(row_index=4, qty=1, family="lemn", unit="buc"),
        ],
        index,
    )
    lines = build_cart_lines(rows, index)
    assert [(line.row_index, line.product_id) for line in lines] == [(1, "hea-100"), (2, "plate-6-s235")]
    assert lines[0].estimate.weight.total_weight == pytest.approx(16.7 * 6 * 10)
    assert lines[1].estimate.weight.total_weight == pytest.approx(500.0)
    assert lines[1].notes == "grinzi"

    totals = cart_totals(lines)
    subtotal = sum(line.estimate.price.subtotal for line in lines)
    assert totals.est_weight_kg == pytest.approx(1502.0)
    assert totals.est_subtotal == pytest.approx(subtotal)
    assert totals.vat == pytest.approx(subtotal * VAT_RATE)
    assert totals.grand_total == pytest.approx(subtotal * (1 + VAT_RATE))
    assert totals.delivery_fee_band == SPECIAL_TRANSPORT_BAND
    assert totals.special_transport is True


def test_rows_with_invalid_configuration_are_skipped(index):
    rows = match_rows([BOMRow(row_index=1, qty=2.5, family="profiles", dimension="IPE 200", unit="buc")], index)
    assert build_cart_lines(rows, index) == []


def test_empty_cart_totals():
    totals = cart_totals([])
    assert totals.est_weight_kg == 0
    assert totals.grand_total == 0
    assert totals.special_transport is False


def test_cart_line_for_single_product(products):
    line = cart_line(products[1], ProductConfiguration(quantity=2), notes="stalpi")
    assert line.row_index is None
    assert line.product_title == "Profil IPE 200 S235JR"
    assert line.estimate.weight.total_weight == pytest.approx(22.4 * 12)


def test_piece_rows_of_bundle_priced_products_bill_pieces():
    clips = make_product(
        "clip-box",
        "fasteners",
        weight_per_piece_kg=0.13,
        pieces_per_bundle=50,
        base_price=100.0,
        price_unit="bundle",
    )
    config = configuration_for_row(BOMRow(row_index=1, qty=10, unit="buc"), clips)
    assert config.selling_unit == "pcs"
    assert config.quantity == 10

    line = cart_line(clips, config)
    assert line.estimate.weight.total_weight == pytest.approx(1.3)
    assert line.estimate.price.subtotal == pytest.approx(20.0)


def test_non_numeric_quantity_never_reaches_the_cart(index):
    rows = match_rows(
        rows_from_records(
            [
                {"Familie": "Profile", "Dimensiune": "HEA 100", "Cantitate": "zece", "Unitate": "buc"},
                {"Familie": "Profile", "Dimensiune": "IPE 200", "Cantitate": "4", "Unitate": "buc"},
            ]
        ),
        index,
    )
    assert rows[0].qty == 0.0
    assert rows[0].errors == ["invalid quantity"]
    assert rows[0].matched_product_id == "hea-100"
    assert [r.row_index for r in cart_ready_rows(rows)] == [2]
    assert [line.product_id for line in build_cart_lines(rows, index)] == ["ipe-200"]
