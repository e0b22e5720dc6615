from __future__ import annotations

from dataclasses import replace
import logging
from typing import Sequence

from .bom_parser import BOMRow
from .catalog import CatalogIndex, Product
from .errors import BOMStructureError
from .mapping import parse_unit
from .normalizer import (
    is_known_grade,
    is_known_standard,
    normalize_dimension,
    normalize_family,
    normalize_grade,
    normalize_standard,
    numeric_key,
)


logger = logging.getLogger(__name__)

ERROR_INVALID_QUANTITY = "invalid quantity"
WARNING_UNIT_DEFAULTED = "unit defaulted"
DEFAULT_UNIT = "buc"


def match_rows(rows: Sequence[BOMRow], index: CatalogIndex) -> list[BOMRow]:
    """Match a whole upload against the catalog.

    Bad rows degrade to errors, warnings or ``none`` confidence; only a row
    set that is not a sequence of ``BOMRow`` raises.
    """
    if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
        raise BOMStructureError("BOM rows must be a sequence")
    for position, row in enumerate(rows, start=1):
        if not isinstance(row, BOMRow):
            raise BOMStructureError(f"Item {position} of the row set is not a BOM row")
    if not len(index):
        logger.warning("Matching %d rows against an empty catalog", len(rows))
    matched = [match_row(row, index) for row in rows]
    logger.info(
        "Matched %d rows: %s",
        len(matched),
        ", ".join(f"{tier}={sum(1 for r in matched if r.match_confidence == tier)}" for tier in ("high", "medium", "low", "none")),
    )
    return matched


def match_row(row: BOMRow, index: CatalogIndex) -> BOMRow:
    errors = list(row.errors)
    warnings = list(row.warnings)

    if row.qty is None or row.qty <= 0:
        _note(errors, ERROR_INVALID_QUANTITY)

    unit = parse_unit(row.unit)
    if unit is None:
        if row.unit:
            _note(warnings, f"{WARNING_UNIT_DEFAULTED} (unrecognized '{row.unit}')")
        else:
            _note(warnings, WARNING_UNIT_DEFAULTED)
        unit = DEFAULT_UNIT

    family = normalize_family(row.family)
    standard = normalize_standard(row.standard)
    grade = normalize_grade(row.grade)
    dimension = normalize_dimension(row.dimension)
    if grade and not is_known_grade(grade):
        _note(warnings, f"unknown grade '{row.grade}'")
    if standard and not is_known_standard(standard):
        _note(warnings, f"unknown standard '{row.standard}'")
    if row.dimension and dimension is None:
        _note(warnings, f"unrecognized dimension '{row.dimension}'")

    updated = replace(
        row,
        unit=unit,
        parsed_family=family,
        parsed_standard=standard,
        parsed_grade=grade,
        parsed_dimension=dimension,
        errors=errors,
        warnings=warnings,
    )
    if row.is_manually_mapped and row.matched_product_id:
        return updated

    product, confidence, reason = decide_match(row, index, family, standard, grade, dimension)
    logger.debug("Row %d: %s (%s)", row.row_index, confidence, reason)
    return replace(
        updated,
        matched_product_id=product.id if product else None,
        match_confidence=confidence,
        match_reason=reason,
    )


def decide_match(
    row: BOMRow,
    index: CatalogIndex,
    family: str | None,
    standard: str | None,
    grade: str | None,
    dimension: str | None,
) -> tuple[Product | None, str, str]:
    """Pick the product for one normalized row.

    Precedence:

    1. family + standard + grade + dimension, a single product: ``high``.
       Several products sharing all four fields are ambiguous: ``medium``.
    2. family + dimension, ranked by grade then standard: ``medium``.
    3. family + grade, ranked by standard: ``medium``.
    4. family only, with exactly one plausible product by loose numeric
       dimension match (or the only product of the family when no dimension
       is given): ``low``.
    5. anything else, including a missing or unknown family: ``none``.
    """
    if family is None:
        if row.family:
            return None, "none", f"unrecognized family '{row.family}'"
        return None, "none", "family not specified"

    missing = [name for name, value in (("standard", standard), ("grade", grade), ("dimension", dimension)) if not value]

    if not missing:
        exact = index.find_candidates(family, standard=standard, grade=grade, dimension=dimension)
        if len(exact) == 1:
            return exact[0], "high", "matched on family+standard+grade+dimension"
        if exact:
            return exact[0], "medium", f"matched on family+standard+grade+dimension; {len(exact)} products share these fields"

    if dimension:
        candidates = index.find_candidates(family, dimension=dimension)
        if candidates:
            ranked = index.rank(candidates, grade=grade, standard=standard)
            return ranked[0], "medium", _relaxed_reason("family+dimension", ranked, grade, standard, missing)

    if grade:
        candidates = index.find_candidates(family, grade=grade)
        if candidates:
            ranked = index.rank(candidates, standard=standard)
            reason = _relaxed_reason("family+grade", ranked, None, standard, missing)
            if dimension:
                reason += "; dimension differs"
            return ranked[0], "medium", reason

    plausible = loose_candidates(index.family_products(family), dimension)
    if len(plausible) == 1:
        if dimension:
            return plausible[0], "low", f"loose dimension match within {family}"
        return plausible[0], "low", f"only {family} product in catalog"
    if plausible:
        return None, "none", f"{len(plausible)} {family} products plausible; no unique match"
    if dimension:
        return None, "none", f"no {family} product for dimension {dimension}"
    return None, "none", f"no {family} product in catalog"


def loose_candidates(products: list[Product], dimension: str | None) -> list[Product]:
    if not dimension:
        return list(products)
    wanted = numeric_key(dimension)
    if not wanted:
        return []
    plausible = []
    for product in products:
        token = product.dimension_token
        if not token:
            continue
        have = numeric_key(token)
        if have and (wanted in have or have in wanted):
            plausible.append(product)
    return plausible


def apply_manual_mapping(row: BOMRow, product: Product) -> BOMRow:
    return replace(
        row,
        matched_product_id=product.id,
        match_confidence="high",
        match_reason=f"manual mapping: {product.title}",
        is_manually_mapped=True,
    )


def clear_manual_mapping(row: BOMRow) -> BOMRow:
    return replace(
        row,
        matched_product_id=None,
        match_confidence="none",
        match_reason=None,
        is_manually_mapped=False,
    )


def _relaxed_reason(
    keys: str,
    ranked: list[Product],
    grade: str | None,
    standard: str | None,
    missing: list[str],
) -> str:
    parts = [f"matched on {keys}"]
    if len(ranked) > 1:
        parts.append(f"{len(ranked)} candidates")
    if grade and ranked[0].grade_token != grade:
        parts.append("grade differs")
    if standard and standard not in ranked[0].standard_tokens:
        parts.append("standard differs")
    parts.extend(f"{name} not specified" for name in missing)
    return "; ".join(parts)


def _note(messages: list[str], message: str) -> None:
    if message not in messages:
        messages.append(message)
