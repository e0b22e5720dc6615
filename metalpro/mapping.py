from __future__ import annotations

import math
import re
import unicodedata
from typing import Iterable


TEMPLATE_HEADERS = (
    "Familie",
    "Standard",
    "Grad",
    "Dimensiune",
    "Lungime (m)",
    "Cantitate",
    "Unitate",
    "Finisaj",
    "Note",
)

CANONICAL_FIELDS = {
    "family": {"familie", "family", "familia", "categorie", "category"},
    "standard": {"standard", "norma", "norm"},
    "grade": {"grad", "grade", "calitate", "material", "marca"},
    "dimension": {"dimensiune", "dimension", "dimensiuni", "size", "profil", "sectiune"},
    "length_m": {"lungimem", "lungime", "length", "lengthm", "lung"},
    "qty": {"cantitate", "quantity", "qty", "cant"},
    "unit": {"unitate", "unit", "um", "uom", "unitatedemasura"},
    "finish": {"finisaj", "finish", "tratament"},
    "notes": {"note", "notes", "observatii", "mentiuni", "comments"},
}

REQUIRED_FIELDS = ("qty", "unit")

UNIT_SYNONYMS = {
    "kg": {"kg", "kgs", "kilogram", "kilograme", "kilograms"},
    "buc": {"buc", "bucati", "bucata", "pc", "pcs", "piece", "pieces", "ea", "st", "stuks"},
    "m": {"m", "ml", "metri", "metru", "meter", "meters", "metre"},
    "ton": {"ton", "tone", "tona", "t", "tonne", "tonnes", "tons"},
}


def normalize_header(value: object) -> str:
    text = unicodedata.normalize("NFKD", str(value or "").strip().lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9]", "", text)


def map_headers(headers: Iterable[object]) -> dict[int, str]:
    mapping: dict[int, str] = {}
    for idx, raw in enumerate(headers):
        norm = normalize_header(raw)
        if not norm:
            continue
        for canonical, synonyms in CANONICAL_FIELDS.items():
            if canonical in mapping.values():
                continue
            if norm in synonyms:
                mapping[idx] = canonical
                break
    return mapping


def parse_qty(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(" ", "").replace(",", ".")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def parse_unit(value: object) -> str | None:
    key = normalize_header(value)
    if not key:
        return None
    for unit, synonyms in UNIT_SYNONYMS.items():
        if key in synonyms:
            return unit
    return None
