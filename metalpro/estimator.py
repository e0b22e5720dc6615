from __future__ import annotations

from dataclasses import dataclass
import math

from .catalog import Product
from .errors import InvalidConfigurationError


SELLING_UNITS = ("m", "kg", "pcs", "bundle")
LENGTH_OPTIONS = {"6m": 6.0, "12m": 12.0}
CUSTOM_LENGTH = "custom"
MAX_LENGTH_M = 12.0
FINISH_MULTIPLIERS = {
    "standard": 1.0,
    "galvanized": 1.15,
    "painted": 1.20,
    "polished": 1.30,
}
VAT_RATE = 0.19

# Exclusive upper bound (kg) and label.
DELIVERY_BANDS = (
    (100.0, "50-100 RON"),
    (500.0, "100-200 RON"),
)
HEAVY_BAND = "200-400 RON"
SPECIAL_TRANSPORT_THRESHOLD_KG = 1000.0
SPECIAL_TRANSPORT_BAND = "Transport special - se calculează"
QUOTE_BAND = "Se calculează la ofertă"

DELIVERY_WINDOWS = {
    "in_stock": "3-5 zile lucrătoare",
    "on_order": "7-14 zile lucrătoare",
}
UNCONFIRMED_WINDOW = "Se confirmă la comandă"


@dataclass(frozen=True)
class CutListItem:
    length_m: float
    quantity: int


@dataclass(frozen=True)
class ProductConfiguration:
    selling_unit: str = "m"
    length_option: str = "6m"
    custom_length: float | None = None
    quantity: float = 1
    finish: str = "standard"
    cut_to_length: bool = False
    cut_list: tuple[CutListItem, ...] = ()


@dataclass(frozen=True)
class WeightEstimate:
    total_weight: float
    unit_weight: float
    formula: str


@dataclass(frozen=True)
class PriceEstimate:
    unit_price: float
    subtotal: float
    vat: float
    delivery_fee_band: str
    special_transport: bool
    total: float


@dataclass(frozen=True)
class Estimate:
    weight: WeightEstimate
    price: PriceEstimate


def default_configuration(product: Product) -> ProductConfiguration:
    return ProductConfiguration(selling_unit=product.price_unit)


def validate_configuration(config: ProductConfiguration) -> list[str]:
    problems: list[str] = []
    if config.selling_unit not in SELLING_UNITS:
        problems.append(f"unknown selling unit '{config.selling_unit}'")
    if config.finish not in FINISH_MULTIPLIERS:
        problems.append(f"unknown finish '{config.finish}'")
    if config.length_option == CUSTOM_LENGTH:
        if config.custom_length is None or not 0 < config.custom_length <= MAX_LENGTH_M:
            problems.append(f"custom length must be greater than 0 and at most {MAX_LENGTH_M:g} m")
    elif config.length_option not in LENGTH_OPTIONS:
        problems.append(f"unknown length option '{config.length_option}'")
    if config.quantity < 1:
        problems.append("quantity must be at least 1")
    elif config.selling_unit != "kg" and not float(config.quantity).is_integer():
        problems.append(f"quantity must be a whole number when selling by {config.selling_unit}")
    if config.cut_to_length:
        if not config.cut_list:
            problems.append("cut list is empty")
        for item in config.cut_list:
            if not 0 < item.length_m <= MAX_LENGTH_M or item.quantity < 1:
                problems.append(f"invalid cut {item.length_m:g} m × {item.quantity}")
    return problems


def effective_length(config: ProductConfiguration) -> float:
    if config.length_option == CUSTOM_LENGTH:
        return float(config.custom_length or 0.0)
    return LENGTH_OPTIONS.get(config.length_option, 0.0)


def unit_weight(product: Product) -> float:
    """Mass per metre from the section properties, 0.0 when unknown.

    A tabulated linear mass wins; otherwise area (cm²) × density (kg/m³)
    scaled to m².
    """
    if product.linear_mass_kg_per_m:
        return product.linear_mass_kg_per_m
    if product.cross_section_area_cm2:
        return product.cross_section_area_cm2 * product.density_kg_per_m3 / 10_000
    return 0.0


def cut_list_length(config: ProductConfiguration) -> float:
    return sum(item.length_m * item.quantity for item in config.cut_list)


def uses_cut_list(config: ProductConfiguration) -> bool:
    return config.cut_to_length and bool(config.cut_list)


def estimate_weight(product: Product, config: ProductConfiguration) -> WeightEstimate:
    per_metre = unit_weight(product)
    length = effective_length(config)
    qty = config.quantity

    if uses_cut_list(config):
        total_length = cut_list_length(config)
        return WeightEstimate(
            per_metre * total_length,
            per_metre,
            f"{per_metre:.2f} kg/m × {format_number(total_length)}m (cut list)",
        )
    if config.selling_unit == "kg":
        return WeightEstimate(float(qty), per_metre, f"{format_number(qty)} kg")

    pieces_label = format_number(qty)
    pieces_factor = 1
    if config.selling_unit == "bundle":
        pieces_factor = product.pieces_per_bundle
        pieces_label = f"{format_number(qty)} × {pieces_factor}"

    if per_metre > 0:
        total = per_metre * length * qty * pieces_factor
        return WeightEstimate(total, per_metre, f"{per_metre:.2f} kg/m × {format_number(length)}m × {pieces_label} buc")
    if product.weight_per_piece_kg and config.selling_unit != "m":
        total = product.weight_per_piece_kg * qty * pieces_factor
        return WeightEstimate(total, 0.0, f"{product.weight_per_piece_kg:.2f} kg/buc × {pieces_label} buc")
    return WeightEstimate(0.0, 0.0, "weight not available for this product")


def billed_metres(product: Product, config: ProductConfiguration, weight: WeightEstimate) -> float:
    if uses_cut_list(config):
        return cut_list_length(config)
    if config.selling_unit == "kg":
        return weight.total_weight / weight.unit_weight if weight.unit_weight else 0.0
    pieces = config.quantity
    if config.selling_unit == "bundle":
        pieces = pieces * product.pieces_per_bundle
    return effective_length(config) * pieces


def billed_pieces(product: Product, config: ProductConfiguration) -> float:
    if uses_cut_list(config):
        return float(sum(item.quantity for item in config.cut_list))
    if config.selling_unit == "bundle":
        return float(config.quantity * product.pieces_per_bundle)
    return float(config.quantity)


def estimate_price(product: Product, config: ProductConfiguration, weight: WeightEstimate) -> PriceEstimate:
    unit_price = product.base_price * FINISH_MULTIPLIERS.get(config.finish, 1.0)
    if product.price_unit == "kg":
        subtotal = unit_price * weight.total_weight
    elif product.price_unit == "m":
        subtotal = unit_price * billed_metres(product, config, weight)
    elif product.price_unit == "bundle":
        subtotal = unit_price * billed_pieces(product, config) / max(product.pieces_per_bundle, 1)
    else:
        subtotal = unit_price * billed_pieces(product, config)
    vat = subtotal * VAT_RATE
    band, special = delivery_fee_band(weight.total_weight)
    return PriceEstimate(
        unit_price=unit_price,
        subtotal=subtotal,
        vat=vat,
        delivery_fee_band=band,
        special_transport=special,
        total=subtotal + vat,
    )


def estimate(product: Product, config: ProductConfiguration) -> Estimate:
    problems = validate_configuration(config)
    if problems:
        raise InvalidConfigurationError(problems)
    weight = estimate_weight(product, config)
    return Estimate(weight=weight, price=estimate_price(product, config, weight))


def delivery_fee_band(total_weight: float) -> tuple[str, bool]:
    if total_weight <= 0:
        return QUOTE_BAND, False
    if total_weight > SPECIAL_TRANSPORT_THRESHOLD_KG:
        return SPECIAL_TRANSPORT_BAND, True
    for upper, label in DELIVERY_BANDS:
        if total_weight < upper:
            return label, False
    return HEAVY_BAND, False


def waste_percentage(config: ProductConfiguration) -> float:
    """Offcut share of the stock bars a cut list consumes."""
    if not uses_cut_list(config):
        return 0.0
    stock = effective_length(config)
    needed = cut_list_length(config)
    if stock <= 0 or needed <= 0:
        return 0.0
    stock_used = math.ceil(needed / stock) * stock
    return (stock_used - needed) / stock_used * 100


def delivery_window(product: Product) -> str:
    return DELIVERY_WINDOWS.get(product.availability, UNCONFIRMED_WINDOW)


def format_number(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def format_money(value: float) -> str:
    return f"{value:.2f}"
