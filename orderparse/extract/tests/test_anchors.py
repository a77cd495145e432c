from __future__ import annotations

from orderparse.extract.anchors import extract_position_anchors, sanitize_position_anchors
from orderparse.extract.schema import NumberColumn, TextColumn

POSITION = TextColumn(key="position", label="Position")
QUANTITY = NumberColumn(key="quantity", label="Quantity")

DRAWING_TEXT = "Pos. A1 window\nQuantity 2\n(Pos. B2) door\nPos.A1 repeated\nPos. W12-L left"


def test_extract_anchors_distinct_in_order():
    assert extract_position_anchors(DRAWING_TEXT) == ["A1", "B2", "W12-L"]
    assert extract_position_anchors("no positions here") == []


def test_placeholder_position_is_replaced():
    rows = sanitize_position_anchors(
        [{"position": "GL-002", "quantity": "2"}], [POSITION, QUANTITY], "Pos. A1 x Pos. B2 y"
    )
    assert rows == [{"position": "A1", "quantity": "2"}]


def test_known_anchor_is_kept_case_insensitively():
    rows = sanitize_position_anchors(
        [{"position": "b2"}], [POSITION], "Pos. A1 x Pos. B2 y"
    )
    assert rows[0]["position"] == "b2"


def test_empty_and_unknown_positions_are_grounded():
    rows = sanitize_position_anchors(
        [{"position": ""}, {"position": "Z9"}, {"quantity": "1"}],
        [POSITION, QUANTITY],
        "Pos. A1 x",
    )
    assert [r["position"] for r in rows] == ["A1", "A1", "A1"]


def test_value_under_label_key_is_rewritten_in_place():
    rows = sanitize_position_anchors([{"Position": "GL-7"}], [POSITION], "Pos. C3")
    assert rows == [{"Position": "C3"}]


def test_no_anchors_is_a_noop():
    rows = [{"position": "GL-002"}]
    assert sanitize_position_anchors(rows, [POSITION], "nothing") is rows


def test_without_position_columns_rows_are_untouched():
    rows = [{"quantity": "4"}]
    assert sanitize_position_anchors(rows, [QUANTITY], "Pos. A1") is rows


def test_input_rows_are_not_mutated():
    rows = [{"position": "GL-1"}]
    sanitize_position_anchors(rows, [POSITION], "Pos. A1")
    assert rows == [{"position": "GL-1"}]
