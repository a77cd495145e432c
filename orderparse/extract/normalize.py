from __future__ import annotations

import math
import re
from collections import Counter
from typing import Any, Dict, Iterable, List, Tuple

from orderparse.extract.categories import column_identifiers, normalize_token
from orderparse.extract.schema import (
    SOURCE_KEYS_FIELD,
    CellValue,
    Column,
    ColumnMapping,
    NumberColumn,
    ParsedRow,
    SelectColumn,
    is_empty_value,
)

_SELECT_SPLIT_RE = re.compile(r"[/;,\n]+")


# ---------- value coercion ----------


def format_number(value: float) -> str:
    """4.0 -> "4", 12.5 -> "12.5" """
    if value.is_integer():
        return str(int(value))
    return repr(value)


def to_string_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_number(value) if math.isfinite(value) else ""
    return ""


def coerce_number(value: Any) -> str:
    """Decimal comma -> dot; unparseable text is kept as given ("N/A" stays "N/A")."""
    text = to_string_value(value)
    if not text:
        return ""
    try:
        parsed = float(text.replace(",", ".", 1))
    except ValueError:
        return text
    if not math.isfinite(parsed):
        return text
    return format_number(parsed)


def coerce_select(value: Any, column: SelectColumn) -> CellValue:
    option_map = {normalize_token(o): o for o in column.options}
    if isinstance(value, (list, tuple)):
        items = [to_string_value(v) for v in value]
    else:
        items = [p.strip() for p in _SELECT_SPLIT_RE.split(to_string_value(value))]
    picked = [option_map.get(normalize_token(i), i) for i in items if i]
    if not column.is_multi:
        return picked[0] if picked else ""
    return picked[: column.max_select]


def coerce_value(value: Any, column: Column) -> CellValue:
    if isinstance(column, NumberColumn):
        return coerce_number(value)
    if isinstance(column, SelectColumn):
        return coerce_select(value, column)
    return to_string_value(value)


# ---------- key resolution ----------


def lookup_column(source: Dict[str, Any], column: Column) -> Tuple[Any, str]:
    """
    Resolve one column in a raw mapping: exact key, label, aiKey, then a scan of
    normalized raw keys. Returns (value, raw_key) or (None, "").
    """
    for raw_key in (column.key, column.label, column.ai_key):
        if raw_key and raw_key in source:
            return source[raw_key], raw_key
    targets = set(column_identifiers(column))
    for raw_key, value in source.items():
        if raw_key == SOURCE_KEYS_FIELD:
            continue
        if normalize_token(raw_key) in targets:
            return value, raw_key
    return None, ""


# ---------- rows & mapping ----------


def normalize_rows(
    rows: Iterable[Any], columns: List[Column]
) -> Tuple[List[ParsedRow], List[ColumnMapping]]:
    """
    Map raw rows of any tier onto the column schema, coerce types and keep
    per-column provenance. Rows without any value are discarded.
    """
    usage: Dict[str, Counter] = {c.key: Counter() for c in columns}
    out: List[ParsedRow] = []

    for raw in rows:
        if not isinstance(raw, dict):
            continue
        tier_sources = raw.get(SOURCE_KEYS_FIELD)
        if not isinstance(tier_sources, dict):
            tier_sources = {}

        values: Dict[str, CellValue] = {}
        sources: Dict[str, str] = {}
        for column in columns:
            value, raw_key = lookup_column(raw, column)
            coerced = coerce_value(value, column)
            values[column.key] = coerced
            if is_empty_value(coerced):
                sources[column.key] = ""
                continue
            provenance = raw_key
            # cue labels recorded by the heuristic tiers win over the column key itself
            if raw_key == column.key and isinstance(tier_sources.get(column.key), str):
                provenance = tier_sources[column.key]
            sources[column.key] = provenance

        if all(is_empty_value(v) for v in values.values()):
            continue
        for key, provenance in sources.items():
            if provenance:
                usage[key][provenance] += 1
        out.append(ParsedRow(values=values, source_keys=sources))

    return out, build_mapping(columns, usage)


def build_mapping(columns: List[Column], usage: Dict[str, Counter]) -> List[ColumnMapping]:
    mapping: List[ColumnMapping] = []
    for column in columns:
        counts = usage.get(column.key) or Counter()
        # most_common keeps first-seen order on ties
        best = counts.most_common(1)
        source_key, matched = best[0] if best else ("", 0)
        mapping.append(
            ColumnMapping(
                column_key=column.key,
                column_label=column.label,
                source_key=source_key,
                matched_rows=matched,
            )
        )
    return mapping
