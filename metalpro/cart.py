from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Iterable

from .bom_parser import BOMRow
from .catalog import CatalogIndex, Product
from .errors import InvalidConfigurationError
from .estimator import (
    CUSTOM_LENGTH,
    LENGTH_OPTIONS,
    MAX_LENGTH_M,
    VAT_RATE,
    Estimate,
    ProductConfiguration,
    delivery_fee_band,
    estimate,
)
from .normalizer import fold
from .report import cart_ready_rows


logger = logging.getLogger(__name__)

KG_PER_TON = 1000.0
FINISH_SYNONYMS = {
    "standard": "standard",
    "laminatlacald": "standard",
    "zincat": "galvanized",
    "galvanizat": "galvanized",
    "galvanized": "galvanized",
    "vopsit": "painted",
    "painted": "painted",
    "lustruit": "polished",
    "polished": "polished",
}


@dataclass(frozen=True)
class CartLine:
    row_index: int | None
    product_id: str
    product_title: str
    config: ProductConfiguration
    estimate: Estimate
    notes: str | None = None


@dataclass(frozen=True)
class CartTotals:
    est_weight_kg: float
    est_subtotal: float
    vat: float
    vat_rate: float
    delivery_fee_band: str
    special_transport: bool
    grand_total: float


def normalize_finish(value: str | None) -> str:
    key = "".join(ch for ch in fold(value or "").lower() if ch.isalnum())
    for synonym, finish in FINISH_SYNONYMS.items():
        if key.startswith(synonym):
            return finish
    return "standard"


def configuration_for_row(row: BOMRow, product: Product) -> ProductConfiguration:
    """Translate a BOM line into the purchase parameters of its product.

    ``buc`` always becomes pieces, also for bundle-priced products, and
    ``ton`` becomes kilograms. A metre quantity is rounded up to whole bars
    of the row length, or of 6 m when the row gives none.
    """
    finish = normalize_finish(row.finish)
    length_option, custom_length = _length_for(row.length_m)
    unit = row.unit or "buc"

    if unit in {"kg", "ton"}:
        qty = row.qty * KG_PER_TON if unit == "ton" else row.qty
        return ProductConfiguration(selling_unit="kg", quantity=qty, finish=finish)
    if unit == "m":
        bar = custom_length if length_option == CUSTOM_LENGTH else LENGTH_OPTIONS[length_option]
        bars = max(1, math.ceil(row.qty / bar))
        return ProductConfiguration(
            selling_unit="m",
            length_option=length_option,
            custom_length=custom_length,
            quantity=bars,
            finish=finish,
        )
    return ProductConfiguration(
        selling_unit="pcs",
        length_option=length_option,
        custom_length=custom_length,
        quantity=row.qty,
        finish=finish,
    )


def _length_for(length_m: float | None) -> tuple[str, float | None]:
    if length_m is None:
        return "6m", None
    for option, value in LENGTH_OPTIONS.items():
        if length_m == value:
            return option, None
    if 0 < length_m <= MAX_LENGTH_M:
        return CUSTOM_LENGTH, length_m
    return "6m", None


def build_cart_lines(rows: Iterable[BOMRow], index: CatalogIndex, selected_only: bool = False) -> list[CartLine]:
    lines: list[CartLine] = []
    for row in cart_ready_rows(rows, selected_only=selected_only):
        product = index.get(row.matched_product_id)
        if product is None:
            logger.warning("Row %d maps to unknown product %s, skipped", row.row_index, row.matched_product_id)
            continue
        config = configuration_for_row(row, product)
        try:
            line_estimate = estimate(product, config)
        except InvalidConfigurationError as exc:
            logger.warning("Row %d not added to cart: %s", row.row_index, exc)
            continue
        lines.append(
            CartLine(
                row_index=row.row_index,
                product_id=product.id,
                product_title=product.title,
                config=config,
                estimate=line_estimate,
                notes=row.notes,
            )
        )
    return lines


def cart_line(product: Product, config: ProductConfiguration, notes: str | None = None) -> CartLine:
    return CartLine(
        row_index=None,
        product_id=product.id,
        product_title=product.title,
        config=config,
        estimate=estimate(product, config),
        notes=notes,
    )


def cart_totals(lines: Iterable[CartLine]) -> CartTotals:
    lines = list(lines)
    weight = sum(line.estimate.weight.total_weight for line in lines)
    subtotal = sum(line.estimate.price.subtotal for line in lines)
    vat = subtotal * VAT_RATE
    band, special = delivery_fee_band(weight)
    return CartTotals(
        est_weight_kg=weight,
        est_subtotal=subtotal,
        vat=vat,
        vat_rate=VAT_RATE,
        delivery_fee_band=band,
        special_transport=special,
        grand_total=subtotal + vat,
    )
