from __future__ import annotations

import re
from dataclasses import dataclass
from re import Match, Pattern
from typing import Callable, Dict, List, Tuple

from orderparse.extract.categories import Category, classify
from orderparse.extract.schema import (
    SOURCE_KEYS_FIELD,
    CellValue,
    Column,
    RawRow,
    SelectColumn,
    is_empty_value,
)

# ---------- extractor chains ----------

# handler: match -> (value, source_key)
Handler = Callable[[Match[str]], Tuple[str, str]]
Rule = Tuple[Pattern[str], Handler]


def _grab(group: int, source: str | None = None, source_group: int | None = None) -> Handler:
    def handler(m: Match[str]) -> Tuple[str, str]:
        value = (m.group(group) or "").strip()
        label = source
        if source_group is not None and m.group(source_group):
            label = m.group(source_group)
        return value, label or ""

    return handler


@dataclass(frozen=True)
class Chain:
    rules: Tuple[Rule, ...]
    # run on whitespace-collapsed text (True) or the raw multi-line block
    collapse: bool = True

    def run(self, block: str) -> Tuple[str, str]:
        text = collapse_ws(block) if self.collapse else block
        for pattern, handler in self.rules:
            m = pattern.search(text)
            if not m:
                continue
            value, source = handler(m)
            if value:
                return value, source
        return "", ""


POSITION_CHAIN = Chain(
    rules=(
        (re.compile(r"(?:\bpos\b[\s.:]*)([A-Za-z0-9-]{1,8})", re.I), _grab(1, "Pos.")),
        (re.compile(r"\b([A-Za-z]\d{1,3})\b"), _grab(1, "token")),
    )
)

QUANTITY_CHAIN = Chain(
    rules=(
        (
            re.compile(
                r"\b(Quantity|Skaits|Qty|On)\b\s*[:.]?\s*([0-9]+(?:[.,][0-9]+)?)", re.I
            ),
            _grab(2, "Quantity", source_group=1),
        ),
        (
            re.compile(
                r"\b(Quantity|Skaits|Qty)\b\s*[:.]?\s*([A-Za-z ]{0,20})?([0-9]+(?:[.,][0-9]+)?)",
                re.I,
            ),
            _grab(3, "Quantity", source_group=1),
        ),
    )
)

COLOR_CHAIN = Chain(
    rules=(
        (
            re.compile(
                r"(Profiles colou?r|Hardware colou?r|Paint colour|colou?r)\s*[:.]?\s*([A-Za-z0-9 \-]{3,80})",
                re.I,
            ),
            _grab(2, "colour", source_group=1),
        ),
        (re.compile(r"\b([A-Za-z0-9]{2,6}-[A-Za-z0-9]{1,6})\b"), _grab(1, "color-code")),
    )
)

# line that is long enough and isn't a known section label
_TEXT_LINE_RE = re.compile(
    r"^[ \t]*(?!(?:pos|quantity|description|construction|profiles|hardware|filling|production))(\S[^\n\r]{5,})$",
    re.I | re.M,
)

SYSTEM_CHAIN = Chain(
    rules=(
        (re.compile(r"Constructions?\s*:?\s*([^\n\r]+)", re.I), _grab(1, "Construction")),
        (
            re.compile(r"Pos\.?\s*[A-Za-z0-9-]+\s+([A-Za-z0-9][^,\n\r-]{2,60})", re.I),
            _grab(1, "Pos. system"),
        ),
        (re.compile(r"Pos\.?\s*[A-Za-z0-9-]+\s*([^\n\r]+)", re.I), _grab(1, "Pos. line")),
        (_TEXT_LINE_RE, _grab(1, "text line")),
    ),
    collapse=False,
)

CHAINS: Dict[Category, Chain] = {
    Category.POSITION: POSITION_CHAIN,
    Category.QUANTITY: QUANTITY_CHAIN,
    Category.SYSTEM: SYSTEM_CHAIN,
    Category.COLOR: COLOR_CHAIN,
}

# ---------- block splitting ----------

POS_OCCURRENCE_RE = re.compile(r"Pos\.?\s*[A-Za-z0-9-]+", re.I)
_WS_RE = re.compile(r"\s+")


def collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def split_blocks(text: str) -> List[str]:
    """
    Cut text at every "Pos" occurrence (anywhere in a line, OCR output glues
    tokens together). Without any occurrence the whole text is one block.
    """
    if not (text or "").strip():
        return []
    starts = [m.start() for m in POS_OCCURRENCE_RE.finditer(text)]
    if not starts:
        return [text.strip()]
    blocks = []
    for i, start in enumerate(starts):
        end = starts[i + 1] if i + 1 < len(starts) else len(text)
        blocks.append(text[start:end].strip())
    return blocks


def match_options(column: SelectColumn, text: str) -> CellValue:
    """Declared options found in text (case-insensitive), capped at max_select."""
    hay = collapse_ws(text).lower()
    found = [o for o in column.options if o and o.lower() in hay]
    if column.is_multi:
        return found[: column.max_select]
    return found[0] if found else ""


def infer_value(block: str, column: Column, category: Category | None = None) -> Tuple[CellValue, str]:
    """(value, source_key) for one column in one block."""
    category = category or classify(column)
    chain = CHAINS.get(category)
    if chain is not None:
        return chain.run(block)
    if isinstance(column, SelectColumn):
        value = match_options(column, block)
        return value, ("option-match" if not is_empty_value(value) else "")
    return "", ""


def heuristic_rows(text: str, columns: List[Column]) -> List[RawRow]:
    categories = [classify(c) for c in columns]
    rows: List[RawRow] = []
    for block in split_blocks(text):
        row: RawRow = {}
        sources: Dict[str, str] = {}
        for column, category in zip(columns, categories):
            value, source = infer_value(block, column, category)
            row[column.key] = value
            sources[column.key] = source
        if all(is_empty_value(row[c.key]) for c in columns):
            continue
        row[SOURCE_KEYS_FIELD] = sources
        rows.append(row)
    return rows
