from __future__ import annotations

import re
import unicodedata


FAMILIES = ("profiles", "plates", "pipes", "fasteners", "stainless", "nonferrous")

FAMILY_SYNONYMS = {
    "profiles": {"profile", "profil", "profilemetalice", "profilelaminate", "beam", "beams", "sections"},
    "plates": {"plate", "tabla", "table", "tabledeotel", "sheet", "sheets", "tablaneagra"},
    "pipes": {"pipe", "teava", "tevi", "tevisitub", "tube", "tubes", "tubing", "rhs", "shs", "chs"},
    "fasteners": {
        "fastener",
        "suruburi",
        "surub",
        "piulite",
        "saibe",
        "elementedeasamblare",
        "bolts",
        "nuts",
        "washers",
    },
    "stainless": {"inox", "otelinoxidabil", "inoxidabil", "stainlesssteel", "ss"},
    "nonferrous": {
        "neferoase",
        "metaleneferoase",
        "nonferrousmetals",
        "aluminiu",
        "aluminium",
        "aluminum",
        "cupru",
        "copper",
        "bronz",
        "bronze",
        "alama",
        "brass",
    },
}

KNOWN_GRADES = {
    "S235JR",
    "S235J0",
    "S235J2",
    "S275JR",
    "S275J0",
    "S275J2",
    "S355JR",
    "S355J0",
    "S355J2",
    "S355K2",
    "S235JRH",
    "S275J0H",
    "S355J2H",
    "DC01",
    "DC03",
    "DC04",
    "DX51D",
    "304",
    "304L",
    "316",
    "316L",
    "1.4301",
    "1.4307",
    "1.4401",
    "1.4404",
    "ENAW6060",
    "ENAW6061",
    "ENAW6082",
    "ENAW1050",
    "6060",
    "6061",
    "6082",
    "1050",
    "CW004A",
    "CW614N",
    "4.6",
    "5.6",
    "8.8",
    "10.9",
    "12.9",
    "A2",
    "A4",
}

KNOWN_STANDARDS = {
    "EN10025",
    "EN10034",
    "EN10051",
    "EN10029",
    "EN10056",
    "EN10058",
    "EN10059",
    "EN10060",
    "EN10088",
    "EN10130",
    "EN10210",
    "EN10219",
    "EN10255",
    "EN10279",
    "EN10346",
    "EN10365",
    "EN485",
    "EN573",
    "EN755",
    "EN1652",
    "DIN125",
    "DIN933",
    "DIN934",
    "ISO4017",
    "ISO4032",
    "ISO7089",
    "ENISO4017",
    "ENISO4032",
    "ENISO7089",
}

PROFILE_PREFIXES = ("HEA", "HEB", "HEM", "IPE", "IPN", "INP", "UNP", "UPN", "UPE")

DIMENSION_PATTERN = re.compile(
    rf"(?i)\b(?:(?:{'|'.join(PROFILE_PREFIXES)})\s*\d+"
    r"|\d+(?:[.,]\d+)?(?:\s*[x×*]\s*\d+(?:[.,]\d+)?)+(?:\s*mm)?"
    r"|\d+(?:[.,]\d+)?\s*mm)\b"
)
SEPARATOR_PATTERN = re.compile(r"\s*[x×*]\s*", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\d+(?:\.\d+)?")
STANDARD_YEAR_SUFFIX = re.compile(r":\d{4}$")
STANDARD_PART_SUFFIX = re.compile(r"-\d+$")


def cell_text(value: object | None) -> str:
    """Cell value as stripped text, ``""`` for empty cells."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _family_key(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", fold(value).lower())


def _build_family_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for family in FAMILIES:
        lookup[family] = family
        for synonym in FAMILY_SYNONYMS[family]:
            lookup[synonym] = family
    return lookup


FAMILY_LOOKUP = _build_family_lookup()


def normalize_family(value: object | None) -> str | None:
    key = _family_key(cell_text(value))
    if not key:
        return None
    return FAMILY_LOOKUP.get(key)


def normalize_dimension(value: object | None) -> str | None:
    """Collapse a dimension cell to a comparable token.

    ``"HEA 100"`` and ``"hea100"`` give ``HEA100``; ``"40x20x2"`` and
    ``"40 X 20 X 2 mm"`` give ``40X20X2``. Numbers are kept as written apart
    from comma decimals, so ``"6"`` and ``"6.0"`` stay different.
    """
    text = fold(cell_text(value)).upper()
    if not any(ch.isdigit() for ch in text):
        return None
    text = re.sub(r"(?<=\d),(?=\d)", ".", text)
    text = SEPARATOR_PATTERN.sub("X", text)
    text = re.sub(r"\s+", "", text)
    text = re.sub(r"MM$", "", text)
    text = re.sub(r"[^A-Z0-9.X]", "", text)
    return text or None


def normalize_grade(value: object | None) -> str | None:
    text = re.sub(r"[\s\-]+", "", fold(cell_text(value)).upper())
    return text or None


def normalize_standard(value: object | None) -> str | None:
    text = re.sub(r"\s+", "", fold(cell_text(value)).upper())
    if not text:
        return None
    if text.startswith("SREN") or text.startswith("SRISO"):
        text = text[2:]
    text = STANDARD_YEAR_SUFFIX.sub("", text)
    text = STANDARD_PART_SUFFIX.sub("", text)
    return text or None


def is_known_grade(token: str | None) -> bool:
    return token in KNOWN_GRADES


def is_known_standard(token: str | None) -> bool:
    return token in KNOWN_STANDARDS


def normalize_field(kind: str, value: object | None) -> str | None:
    if kind == "family":
        return normalize_family(value)
    if kind == "standard":
        return normalize_standard(value)
    if kind == "grade":
        return normalize_grade(value)
    if kind == "dimension":
        return normalize_dimension(value)
    return None


def extract_dimension(text: object | None) -> str | None:
    """Find the first dimension-looking fragment in a product title."""
    match = DIMENSION_PATTERN.search(cell_text(text))
    if not match:
        return None
    return normalize_dimension(match.group(0))


def numeric_key(token: str | None) -> str:
    """Numbers of a dimension token joined by ``X``, prefix dropped."""
    if not token:
        return ""
    return "X".join(NUMBER_PATTERN.findall(token))
