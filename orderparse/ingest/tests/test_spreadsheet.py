from __future__ import annotations

import datetime as dt
import io

import openpyxl

from orderparse.extract.schema import SOURCE_KEYS_FIELD, NumberColumn, TextColumn
from orderparse.ingest.spreadsheet import (
    SPREADSHEET_MODEL,
    match_header,
    read_cell_matrix,
    rows_from_matrix,
    spreadsheet_rows,
)

POSITION = TextColumn(key="position", label="Position")
QUANTITY = NumberColumn(key="quantity", label="Quantity")
NOTES = TextColumn(key="notes", label="Notes")


def _xlsx(rows) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for r in rows:
        ws.append(r)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_cell_matrix_renders_values_and_drops_blank_rows():
    data = _xlsx(
        [
            ["Pos", "Qty", "Date", "Done"],
            [None, None, None, None],
            ["A1", 4.0, dt.datetime(2024, 5, 1), True],
            ["A2", 2.5, None, False],
        ]
    )
    matrix = read_cell_matrix(data)
    assert matrix == [
        ["Pos", "Qty", "Date", "Done"],
        ["A1", "4", "2024-05-01", "TRUE"],
        ["A2", "2.5", "", "FALSE"],
    ]


def test_header_matching_uses_category_synonyms():
    header = ["Nr.", "Gab.", "Position"]
    assert match_header(header, QUANTITY) == 1
    assert match_header(header, POSITION) == 2
    assert match_header(header, NOTES) is None


def test_short_synonyms_do_not_match_by_containment():
    # "on" (quantity synonym) must not hit "Position"
    assert match_header(["Position", "Description"], QUANTITY) is None


def test_rows_from_matrix_with_positional_fallback():
    matrix = [
        ["Pos", "Qty", "Remarks"],
        ["A1", "3", "note a"],
        ["", "", ""],
        ["B2", "", "note b"],
    ]
    rows = rows_from_matrix(matrix, [POSITION, QUANTITY, NOTES])
    assert [(r["position"], r["quantity"], r["notes"]) for r in rows] == [
        ("A1", "3", "note a"),
        ("B2", "", "note b"),
    ]
    # notes matched no header and fell back to the third sheet column
    assert rows[0][SOURCE_KEYS_FIELD] == {
        "position": "Pos",
        "quantity": "Qty",
        "notes": "Remarks",
    }


def test_spreadsheet_rows_best_effort():
    out = spreadsheet_rows(b"not a workbook", [POSITION])
    assert out.rows == [] and out.model == SPREADSHEET_MODEL

    out = spreadsheet_rows(_xlsx([["Pos"], ["A1"]]), [POSITION])
    assert out.rows[0]["position"] == "A1"
    assert out.model == SPREADSHEET_MODEL
