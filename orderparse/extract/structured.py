"""
structured.py

Parser for the recurring technical-drawing layout where every item starts
with a "Pos." line:

    Pos. A1 Aluminium System 70
    Quantity: 4
    Profiles colour: RAL 9016

Each block yields a fixed set of fields (position, system, quantity, color)
that are then mapped onto the caller's columns by category.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List

from orderparse.extract.categories import Category, classify
from orderparse.extract.schema import (
    SOURCE_KEYS_FIELD,
    Column,
    RawRow,
    SelectColumn,
)

POS_LINE_RE = re.compile(r"^Pos\.?", re.I)
POSITION_RE = re.compile(r"^Pos(?:ition)?\.?\s*:?\s*([A-Za-z0-9-]+)", re.I)
SYSTEM_RE = re.compile(
    r"^Pos(?:ition)?\.?\s*:?\s*[A-Za-z0-9-]+\s+(.+?)(?:\s*-\s*|\s*\(|\s*,|$)", re.I
)

QTY_LABEL_ONLY_RE = re.compile(r"^(Quantity|Skaits|Qty|On)\s*[:.]?$", re.I)
QTY_INLINE_RE = re.compile(
    r"\b(Quantity|Skaits|Qty|On)\b\s*[:.]?\s*([0-9]+(?:[.,][0-9]+)?)", re.I
)
NUMBER_RE = re.compile(r"([0-9]+(?:[.,][0-9]+)?)")

COLOR_LINE_RE = re.compile(r"^Profiles?\s+colou?r\s*[:.]?\s*(.+)$", re.I)
COLOR_CONTINUATION_RE = re.compile(r"^[0-9A-Za-z.\- ]{4,}$")
NEXT_LABEL_RE = re.compile(r"^(Hardware|Fillings?|Quantity|Description)", re.I)


@dataclass
class ConstructionBlock:
    position: str = ""
    system: str = ""
    quantity: str = ""
    color: str = ""
    source_keys: Dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not any(
            v.strip() for v in (self.position, self.system, self.quantity, self.color)
        )

    def value_for(self, category: Category) -> str:
        return {
            Category.POSITION: self.position,
            Category.SYSTEM: self.system,
            Category.QUANTITY: self.quantity,
            Category.COLOR: self.color,
        }.get(category, "")


def _split_lines(text: str) -> List[str]:
    return [ln.strip() for ln in (text or "").replace("\r", "").split("\n") if ln.strip()]


def _find_quantity(block: List[str]) -> str:
    for i, line in enumerate(block):
        if QTY_LABEL_ONLY_RE.match(line):
            nxt = block[i + 1] if i + 1 < len(block) else ""
            m = NUMBER_RE.search(nxt)
            if m:
                return m.group(1)
        m = QTY_INLINE_RE.search(line)
        if m:
            return m.group(2)
    return ""


def _find_color(block: List[str]) -> str:
    for i, line in enumerate(block):
        m = COLOR_LINE_RE.match(line)
        if not m:
            continue
        color = m.group(1).strip()
        nxt = block[i + 1] if i + 1 < len(block) else ""
        if COLOR_CONTINUATION_RE.match(nxt) and not NEXT_LABEL_RE.match(nxt):
            color = f"{color} {nxt}".strip()
        return color
    return ""


def parse_construction_blocks(text: str) -> List[ConstructionBlock]:
    """
    Split text at lines starting with "Pos." and read the fixed fields of each block.
    Returns [] when the text has no such marker (layout not recognized).
    """
    lines = _split_lines(text)
    starts = [i for i, ln in enumerate(lines) if POS_LINE_RE.match(ln)]
    if not starts:
        return []

    blocks: List[ConstructionBlock] = []
    for idx, start in enumerate(starts):
        end = starts[idx + 1] if idx + 1 < len(starts) else len(lines)
        block = lines[start:end]
        head = block[0]

        pos_m = POSITION_RE.match(head)
        sys_m = SYSTEM_RE.match(head)
        quantity = _find_quantity(block)
        color = _find_color(block)

        b = ConstructionBlock(
            position=pos_m.group(1).strip() if pos_m else "",
            system=sys_m.group(1).strip() if sys_m else "",
            quantity=quantity,
            color=color,
        )
        b.source_keys = {
            "position": "Pos." if b.position else "",
            "system": "Pos. line" if b.system else "",
            "quantity": "Quantity/On" if b.quantity else "",
            "color": "Profiles colour" if b.color else "",
        }
        if not b.is_empty():
            blocks.append(b)
    return blocks


def _select_option_for(column: SelectColumn, value: str) -> str:
    v = value.strip().lower()
    if not v:
        return value
    for opt in column.options:
        o = opt.strip().lower()
        if o and (o in v or v in o):
            return opt
    return value


def map_blocks_to_columns(
    blocks: List[ConstructionBlock], columns: List[Column]
) -> List[RawRow]:
    categories = [classify(c) for c in columns]
    rows: List[RawRow] = []
    for b in blocks:
        row: RawRow = {}
        sources: Dict[str, str] = {}
        for column, category in zip(columns, categories):
            value = b.value_for(category)
            if category is Category.SYSTEM and isinstance(column, SelectColumn):
                value = _select_option_for(column, value)
            row[column.key] = value
            sources[column.key] = (
                b.source_keys.get(category.value, "") if value else ""
            )
        row[SOURCE_KEYS_FIELD] = sources
        rows.append(row)
    return rows


def parse_structured_rows(text: str, columns: List[Column]) -> List[RawRow]:
    return map_blocks_to_columns(parse_construction_blocks(text), columns)
