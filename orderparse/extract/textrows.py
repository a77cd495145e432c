from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from orderparse.extract.heuristic import heuristic_rows
from orderparse.extract.normalize import lookup_column
from orderparse.extract.schema import SOURCE_KEYS_FIELD, Column, RawRow, is_empty_value
from orderparse.extract.structured import parse_structured_rows

logger = logging.getLogger(__name__)


def _json_candidates(text: str) -> List[str]:
    trimmed = (text or "").strip()
    if not trimmed:
        return []
    out = [trimmed]
    first, last = trimmed.find("{"), trimmed.rfind("}")
    if first >= 0 and last > first:
        out.append(trimmed[first : last + 1])
    return out


def _rows_from_payload(parsed: Any) -> List[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get("rows"), list):
        return parsed["rows"]
    return []


def rows_from_json_text(text: str, columns: List[Column]) -> List[RawRow]:
    """
    Recover rows from a JSON payload embedded in free text: either a list of
    row objects or an object with a "rows" list.
    """
    for candidate in _json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        rows: List[RawRow] = []
        for item in _rows_from_payload(parsed):
            if not isinstance(item, dict):
                continue
            row: RawRow = {}
            sources: Dict[str, str] = {}
            for column in columns:
                value, raw_key = lookup_column(item, column)
                row[column.key] = "" if value is None else value
                sources[column.key] = raw_key
            if all(is_empty_value(row[c.key]) for c in columns):
                continue
            row[SOURCE_KEYS_FIELD] = sources
            rows.append(row)
        if rows:
            return rows
    return []


def rows_from_any_text(
    text: str, columns: List[Column]
) -> Tuple[List[RawRow], Optional[str]]:
    """
    Cheap, local tiers in order: embedded JSON, structured layout, generic heuristic.
    Returns (rows, tier_name); tier_name is None when nothing was found.
    """
    if not (text or "").strip():
        return [], None
    rows = rows_from_json_text(text, columns)
    if rows:
        return rows, "json"
    rows = parse_structured_rows(text, columns)
    if rows:
        return rows, "structured"
    rows = heuristic_rows(text, columns)
    if rows:
        return rows, "heuristic"
    logger.debug("no rows recovered from %d chars of text", len(text))
    return [], None
