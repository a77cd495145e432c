from __future__ import annotations

from orderparse.extract.schema import SOURCE_KEYS_FIELD, SelectColumn, TextColumn, load_columns
from orderparse.extract.structured import (
    parse_construction_blocks,
    parse_structured_rows,
)

COLUMNS = load_columns(
    [
        {"key": "position", "label": "Position", "fieldType": "text"},
        {"key": "system", "label": "System", "fieldType": "text"},
        {"key": "quantity", "label": "Quantity", "fieldType": "number"},
        {"key": "color", "label": "Color", "fieldType": "text"},
    ]
)

SAMPLE = """Pos. A1 Aluminium System 70
Quantity: 4
Profiles colour: RAL 9016
"""


def _values(row):
    return {k: v for k, v in row.items() if k != SOURCE_KEYS_FIELD}


def test_single_block_end_to_end():
    rows = parse_structured_rows(SAMPLE, COLUMNS)
    assert len(rows) == 1
    assert _values(rows[0]) == {
        "position": "A1",
        "system": "Aluminium System 70",
        "quantity": "4",
        "color": "RAL 9016",
    }
    assert rows[0][SOURCE_KEYS_FIELD] == {
        "position": "Pos.",
        "system": "Pos. line",
        "quantity": "Quantity/On",
        "color": "Profiles colour",
    }


def test_quantity_on_next_line():
    blocks = parse_construction_blocks("Pos. B2 PVC\nSkaits\n12\n")
    assert len(blocks) == 1
    assert blocks[0].position == "B2"
    assert blocks[0].system == "PVC"
    assert blocks[0].quantity == "12"


def test_quantity_label_needs_word_boundary():
    # "Construction" contains "on" but is not a quantity label
    blocks = parse_construction_blocks("Pos. C1 Door\nConstruction 55")
    assert blocks[0].quantity == ""


def test_colour_continuation_line():
    blocks = parse_construction_blocks(
        "Pos. C3 Door\nProfiles colour: RAL\n9016 matt\nHardware: silver"
    )
    assert blocks[0].color == "RAL 9016 matt"


def test_colour_does_not_swallow_next_label():
    blocks = parse_construction_blocks(
        "Pos. C3 Door\nProfiles colour: RAL 9016\nHardware colour black"
    )
    assert blocks[0].color == "RAL 9016"


def test_system_is_cut_at_dash_paren_or_comma():
    text = "Pos. D4 Schuco AWS 75 - tilt window\nPos. D5 Reynaers CS 77 (left)\nPos. D6 Alu, white"
    systems = [b.system for b in parse_construction_blocks(text)]
    assert systems == ["Schuco AWS 75", "Reynaers CS 77", "Alu"]


def test_position_prefix_variants():
    blocks = parse_construction_blocks("Position: A7 Sliding door")
    assert blocks[0].position == "A7"
    assert blocks[0].system == "Sliding door"


def test_no_markers_means_no_rows():
    assert parse_structured_rows("Quantity: 4\nProfiles colour: RAL 9016", COLUMNS) == []
    assert parse_structured_rows("", COLUMNS) == []


def test_block_count_bounded_by_markers():
    text = "Pos. A1 Alu\nQuantity: 1\nPos.\nPos. A3 PVC\nQuantity: 3\n"
    rows = parse_structured_rows(text, COLUMNS)
    # the bare "Pos." block has no fields and is dropped
    assert 0 < len(rows) <= 3
    assert [r["position"] for r in rows] == ["A1", "A3"]


def test_parsing_is_deterministic():
    text = SAMPLE + "Pos. B1 PVC 82 - fixed\nQty: 2,5\n"
    assert parse_structured_rows(text, COLUMNS) == parse_structured_rows(text, COLUMNS)


def test_generic_columns_stay_empty():
    cols = [TextColumn(key="notes", label="Notes"), TextColumn(key="pos", label="Pos")]
    rows = parse_structured_rows(SAMPLE, cols)
    assert rows[0]["notes"] == ""
    assert rows[0]["pos"] == "A1"
    assert rows[0][SOURCE_KEYS_FIELD]["notes"] == ""


def test_system_select_maps_onto_declared_option():
    cols = [
        TextColumn(key="position", label="Position"),
        SelectColumn(key="system", label="System", options=["PVC 82", "Aluminium System 70"]),
    ]
    rows = parse_structured_rows("Pos. A1 Aluminium System 70 thermal", cols)
    assert rows[0]["system"] == "Aluminium System 70"


def test_empty_system_does_not_pick_an_option():
    cols = [
        TextColumn(key="position", label="Position"),
        SelectColumn(key="system", label="System", options=["PVC 82"]),
    ]
    rows = parse_structured_rows("Pos. A1\nQuantity: 2", cols)
    assert rows[0]["system"] == ""
