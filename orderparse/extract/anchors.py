from __future__ import annotations

import re
from typing import List

from orderparse.extract.categories import Category, classify
from orderparse.extract.heuristic import collapse_ws
from orderparse.extract.normalize import lookup_column, to_string_value
from orderparse.extract.schema import Column, RawRow

ANCHOR_RE = re.compile(
    r"(?:^|[\s(])Pos\.?\s*([A-Za-z]{0,4}\d{1,4}(?:-[A-Za-z0-9]{1,6})?)", re.I
)
# labels models make up when they can't read the position
PLACEHOLDER_RES = [re.compile(r"^gl-\d+", re.I)]


def extract_position_anchors(text: str) -> List[str]:
    """Distinct position tokens found in the text, in document order."""
    anchors: List[str] = []
    for m in ANCHOR_RE.finditer(collapse_ws(text)):
        tok = m.group(1).strip()
        if tok and tok not in anchors:
            anchors.append(tok)
    return anchors


def _is_placeholder(value: str) -> bool:
    return any(p.search(value) for p in PLACEHOLDER_RES)


def sanitize_position_anchors(
    rows: List[RawRow], columns: List[Column], source_text: str
) -> List[RawRow]:
    """
    Ground model-produced position values in the document text: empty,
    unknown or placeholder positions are replaced with the first anchor.
    No anchors in the text means rows are returned untouched.
    """
    anchors = extract_position_anchors(source_text)
    if not anchors:
        return rows
    known = {a.lower() for a in anchors}
    position_columns = [c for c in columns if classify(c) is Category.POSITION]
    if not position_columns:
        return rows

    out: List[RawRow] = []
    for row in rows:
        if not isinstance(row, dict):
            out.append(row)
            continue
        fixed = dict(row)
        for column in position_columns:
            value, raw_key = lookup_column(fixed, column)
            current = to_string_value(value)
            if (
                not current
                or current.lower() not in known
                or _is_placeholder(current)
            ):
                fixed[raw_key or column.key] = anchors[0]
        out.append(fixed)
    return out
