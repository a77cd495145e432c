from __future__ import annotations

import datetime as dt
import io
import logging
from typing import Any, List, Optional

import openpyxl
import xlrd

from orderparse.extract.categories import column_tokens, normalize_token
from orderparse.extract.schema import SOURCE_KEYS_FIELD, Column, ParseOutcome, RawRow

logger = logging.getLogger(__name__)

SPREADSHEET_MODEL = "xlsx-local"

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"

# don't scan hundreds of empty trailing columns
MAX_COLUMNS = 80


def _cell_to_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, dt.datetime):
        if value.time() == dt.time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value).strip()


def _xlsx_matrix(data: bytes) -> List[List[str]]:
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        if not wb.sheetnames:
            return []
        ws = wb[wb.sheetnames[0]]
        return [
            [_cell_to_str(v) for v in row[:MAX_COLUMNS]]
            for row in ws.iter_rows(values_only=True)
        ]
    finally:
        wb.close()


def _xls_matrix(data: bytes) -> List[List[str]]:
    wb = xlrd.open_workbook(file_contents=data)
    if wb.nsheets == 0:
        return []
    ws = wb.sheet_by_index(0)
    out: List[List[str]] = []
    for r in range(ws.nrows):
        row: List[str] = []
        for c in range(min(ws.ncols, MAX_COLUMNS)):
            cell = ws.cell(r, c)
            if cell.ctype == xlrd.XL_CELL_DATE:
                row.append(_cell_to_str(xlrd.xldate.xldate_as_datetime(cell.value, wb.datemode)))
            elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                row.append(_cell_to_str(bool(cell.value)))
            else:
                row.append(_cell_to_str(cell.value))
        out.append(row)
    return out


def read_cell_matrix(data: bytes) -> List[List[str]]:
    """
    First sheet as a matrix of display strings, blank rows dropped.
    .xlsx goes through openpyxl, legacy .xls through xlrd (sniffed by magic bytes).
    """
    if data.startswith(_OLE_MAGIC):
        matrix = _xls_matrix(data)
    else:
        matrix = _xlsx_matrix(data)
    return [row for row in matrix if any(cell.strip() for cell in row)]


def _header_matches(token: str, candidate: str) -> bool:
    if not token or not candidate:
        return False
    if token == candidate:
        return True
    # containment only for tokens long enough to mean something ("on" in "position")
    return (len(candidate) >= 3 and candidate in token) or (
        len(token) >= 3 and token in candidate
    )


def match_header(header: List[str], column: Column) -> Optional[int]:
    tokens = [normalize_token(h) for h in header]
    candidates = column_tokens(column)
    for idx, token in enumerate(tokens):
        if any(_header_matches(token, cand) for cand in candidates):
            return idx
    return None


def rows_from_matrix(matrix: List[List[str]], columns: List[Column]) -> List[RawRow]:
    if not matrix:
        return []
    header = [h.strip() for h in matrix[0]]
    # unmatched columns fall back to their own position in the sheet
    indexes = []
    for pos, column in enumerate(columns):
        found = match_header(header, column)
        indexes.append(pos if found is None else found)

    rows: List[RawRow] = []
    for cells in matrix[1:]:
        row: RawRow = {}
        sources = {}
        for column, idx in zip(columns, indexes):
            row[column.key] = cells[idx].strip() if idx < len(cells) else ""
            name = header[idx] if idx < len(header) else ""
            sources[column.key] = name or f"Column {idx + 1}"
        if not any(row[c.key] for c in columns):
            continue
        row[SOURCE_KEYS_FIELD] = sources
        rows.append(row)
    return rows


def spreadsheet_rows(data: bytes, columns: List[Column]) -> ParseOutcome:
    """Best effort: an unreadable workbook yields no rows."""
    try:
        matrix = read_cell_matrix(data)
    except Exception as e:
        logger.warning("spreadsheet read failed: %s", e)
        return ParseOutcome(rows=[], model=SPREADSHEET_MODEL)
    return ParseOutcome(rows=rows_from_matrix(matrix, columns), model=SPREADSHEET_MODEL)
