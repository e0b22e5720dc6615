from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
import json
import logging
from pathlib import Path
from typing import Any, Iterable

from .errors import CatalogError
from .normalizer import extract_dimension, normalize_dimension, normalize_family, normalize_grade, normalize_standard


logger = logging.getLogger(__name__)

STEEL_DENSITY_KG_PER_M3 = 7850.0
VALID_PRICE_UNITS = {"m", "kg", "pcs", "bundle"}
VALID_AVAILABILITY = {"in_stock", "on_order", "backorder"}


@dataclass(frozen=True)
class Product:
    id: str
    family: str
    title: str
    grade: str | None = None
    standards: tuple[str, ...] = ()
    dimension: str | None = None
    linear_mass_kg_per_m: float | None = None
    cross_section_area_cm2: float | None = None
    density_kg_per_m3: float = STEEL_DENSITY_KG_PER_M3
    weight_per_piece_kg: float | None = None
    pieces_per_bundle: int = 1
    base_price: float = 0.0
    price_unit: str = "m"
    availability: str = "in_stock"
    length_options_m: tuple[float, ...] = (6.0, 12.0)
    slug: str = ""
    sku: str = ""
    is_active: bool = True

    @cached_property
    def dimension_token(self) -> str | None:
        if self.dimension:
            return normalize_dimension(self.dimension)
        return extract_dimension(self.title)

    @cached_property
    def grade_token(self) -> str | None:
        return normalize_grade(self.grade)

    @cached_property
    def standard_tokens(self) -> tuple[str, ...]:
        tokens = (normalize_standard(s) for s in self.standards)
        return tuple(dict.fromkeys(t for t in tokens if t))


def product_from_dict(payload: dict[str, Any]) -> Product:
    """Build a product from a catalog record.

    Accepts the storefront's camelCase export (``indicativePrice.min``,
    ``sectionProps.linearMassKgPerM``) as well as flat snake_case keys.
    """
    if not isinstance(payload, dict):
        raise CatalogError(f"Catalog entry is not an object: {payload!r}")
    product_id = str(payload.get("id") or "").strip()
    if not product_id:
        raise CatalogError("Catalog entry without id")
    family = normalize_family(payload.get("family"))
    if family is None:
        raise CatalogError(f"Product {product_id} has unknown family {payload.get('family')!r}")

    section = payload.get("sectionProps") or {}
    dimensions = payload.get("dimensions") or {}
    price = payload.get("indicativePrice") or {}

    standards = payload.get("standards") or []
    if isinstance(standards, str):
        standards = [standards]
    dimension = payload.get("dimension") or section.get("dimension")

    price_unit = str(payload.get("price_unit") or price.get("unit") or payload.get("baseUnit") or "m").lower()
    if price_unit not in VALID_PRICE_UNITS:
        raise CatalogError(f"Product {product_id} has invalid price unit {price_unit!r}")
    availability = str(payload.get("availability") or "in_stock").lower()
    if availability not in VALID_AVAILABILITY:
        availability = "backorder"

    lengths = payload.get("length_options_m") or payload.get("lengthOptionsM") or (6, 12)
    return Product(
        id=product_id,
        family=family,
        title=str(payload.get("title") or product_id),
        grade=_text(payload.get("grade") or payload.get("materialGrade")),
        standards=tuple(str(s) for s in standards if str(s).strip()),
        dimension=_text(dimension),
        linear_mass_kg_per_m=_number(
            payload.get("linear_mass_kg_per_m"),
            section.get("linearMassKgPerM"),
            dimensions.get("weightPerM"),
        ),
        cross_section_area_cm2=_number(payload.get("cross_section_area_cm2"), section.get("crossSectionArea")),
        density_kg_per_m3=_number(payload.get("density_kg_per_m3"), payload.get("densityKgPerM3"))
        or STEEL_DENSITY_KG_PER_M3,
        weight_per_piece_kg=_number(payload.get("weight_per_piece_kg"), section.get("weightPerPiece")),
        pieces_per_bundle=int(_number(payload.get("pieces_per_bundle"), section.get("piecesPerBundle")) or 1),
        base_price=_number(payload.get("base_price"), price.get("min")) or 0.0,
        price_unit=price_unit,
        availability=availability,
        length_options_m=tuple(float(v) for v in lengths),
        slug=str(payload.get("slug") or ""),
        sku=str(payload.get("sku") or ""),
        is_active=bool(payload.get("is_active", payload.get("isActive", True))),
    )


def load_catalog(path: Path) -> list[Product]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"Cannot read catalog {path}: {exc}") from exc
    if isinstance(payload, dict) and "products" in payload:
        payload = payload["products"]
    if not isinstance(payload, list):
        raise CatalogError(f"Catalog {path} must contain a list of products")
    products = [product_from_dict(entry) for entry in payload]
    logger.info("Loaded %d products from %s", len(products), path)
    return products


def _text(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(*values: object | None) -> float | None:
    for value in values:
        if value is None or value == "":
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


FULL_KEY = ("family", "standard", "grade", "dimension")
KEY_SHAPES = (
    FULL_KEY,
    ("family", "dimension"),
    ("family", "grade"),
    ("family",),
)


@dataclass
class CatalogIndex:
    """Read-only lookup of active products by partial specification keys.

    Buckets are filled once at construction; a query touches only the bucket
    for its key shape.
    """

    products: list[Product] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._by_id: dict[str, Product] = {}
        self._order: dict[str, int] = {}
        self._buckets: dict[tuple[str, ...], dict[tuple[str, ...], list[Product]]] = {
            shape: {} for shape in KEY_SHAPES
        }
        for product in self.products:
            if not product.is_active:
                continue
            if product.id in self._by_id:
                logger.warning("Duplicate product id %s ignored", product.id)
                continue
            self._order[product.id] = len(self._by_id)
            self._by_id[product.id] = product
            dimension = product.dimension_token
            grade = product.grade_token
            self._add(("family",), (product.family,), product)
            if dimension:
                self._add(("family", "dimension"), (product.family, dimension), product)
            if grade:
                self._add(("family", "grade"), (product.family, grade), product)
            if dimension and grade:
                for standard in product.standard_tokens:
                    self._add(FULL_KEY, (product.family, standard, grade, dimension), product)

    def _add(self, shape: tuple[str, ...], key: tuple[str, ...], product: Product) -> None:
        self._buckets[shape].setdefault(key, []).append(product)

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, product_id: str | None) -> Product | None:
        if not product_id:
            return None
        return self._by_id.get(product_id)

    def family_products(self, family: str | None) -> list[Product]:
        if not family:
            return []
        return list(self._buckets[("family",)].get((family,), []))

    def find_candidates(
        self,
        family: str | None = None,
        standard: str | None = None,
        grade: str | None = None,
        dimension: str | None = None,
    ) -> list[Product]:
        """Return the most specific bucket for the given normalized fields.

        Fields the bucket key does not cover only order the result: products
        satisfying more of them come first, catalog order breaks ties.
        """
        if not family:
            return []
        criteria = {"family": family, "standard": standard, "grade": grade, "dimension": dimension}
        present = {name for name, value in criteria.items() if value}
        shape = next(s for s in KEY_SHAPES if set(s) <= present)
        key = tuple(criteria[name] for name in shape)
        bucket = self._buckets[shape].get(key, [])
        remaining = {name: criteria[name] for name in present - set(shape)}
        return self.rank(bucket, **remaining)

    def rank(self, products: Iterable[Product], **criteria: str | None) -> list[Product]:
        """Order products by how many of the given fields they satisfy."""

        def score(product: Product) -> tuple[int, int]:
            hits = sum(1 for name, value in criteria.items() if value and _satisfies(product, name, value))
            return (-hits, self._order.get(product.id, len(self._order)))

        return sorted(products, key=score)


def _satisfies(product: Product, field_name: str, value: str | None) -> bool:
    if field_name == "family":
        return product.family == value
    if field_name == "standard":
        return value in product.standard_tokens
    if field_name == "grade":
        return product.grade_token == value
    if field_name == "dimension":
        return product.dimension_token == value
    return False
