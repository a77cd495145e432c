from __future__ import annotations

import re
from enum import Enum
from typing import Dict, List, Tuple

from orderparse.extract.schema import Column

_RE_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class Category(str, Enum):
    POSITION = "position"
    QUANTITY = "quantity"
    SYSTEM = "system"
    COLOR = "color"
    GENERIC = "generic"


# (category, substrings, whole tokens) in precedence order.
# Whole-token keywords are too short to be matched as substrings ("pos" in "purpose").
# "skaits" is the Latvian word for count.
_CATEGORY_KEYWORDS: List[Tuple[Category, Tuple[str, ...], Tuple[str, ...]]] = [
    (Category.POSITION, ("position",), ("pos",)),
    (Category.QUANTITY, ("quantity", "skaits"), ("qty",)),
    (Category.SYSTEM, ("system", "construction"), ()),
    (Category.COLOR, ("color", "colour"), ()),
]

# header/raw-key synonyms per category, used when matching spreadsheet headers
CATEGORY_SYNONYMS: Dict[Category, Tuple[str, ...]] = {
    Category.POSITION: ("pos", "position"),
    Category.QUANTITY: ("quantity", "qty", "skaits", "gab", "count", "on"),
    Category.SYSTEM: ("system", "construction", "profile", "profiles"),
    Category.COLOR: ("color", "colour", "paint_colour", "profiles_colour"),
    Category.GENERIC: (),
}


def normalize_token(value: str) -> str:
    """
    Lower-case and collapse every non-alphanumeric run to a single underscore.
    "Profiles colour:" -> "profiles_colour"
    """
    if not value:
        return ""
    s = _RE_NON_ALNUM.sub("_", str(value).strip().lower())
    return s.strip("_")


def _matches(token: str, substrings: Tuple[str, ...], whole: Tuple[str, ...]) -> bool:
    if not token:
        return False
    if any(k in token for k in substrings):
        return True
    parts = token.split("_")
    return any(k in parts for k in whole)


def column_identifiers(column: Column) -> List[str]:
    """Normalized key, label and aiKey (empty ones dropped, order kept)."""
    out: List[str] = []
    for raw in (column.key, column.label, column.ai_key):
        tok = normalize_token(raw)
        if tok and tok not in out:
            out.append(tok)
    return out


def classify(column: Column) -> Category:
    idents = column_identifiers(column)
    for category, substrings, whole in _CATEGORY_KEYWORDS:
        if any(_matches(t, substrings, whole) for t in idents):
            return category
    return Category.GENERIC


def column_tokens(column: Column) -> List[str]:
    """Identifiers plus the synonyms of the column's category."""
    tokens = column_identifiers(column)
    for syn in CATEGORY_SYNONYMS[classify(column)]:
        if syn not in tokens:
            tokens.append(syn)
    return tokens
