from __future__ import annotations

import pytest

from orderparse.extract.heuristic import (
    COLOR_CHAIN,
    POSITION_CHAIN,
    QUANTITY_CHAIN,
    SYSTEM_CHAIN,
    heuristic_rows,
    infer_value,
    match_options,
    split_blocks,
)
from orderparse.extract.schema import (
    SOURCE_KEYS_FIELD,
    NumberColumn,
    SelectColumn,
    TextColumn,
)

POSITION = TextColumn(key="position", label="Position")
QUANTITY = NumberColumn(key="quantity", label="Quantity")
COLOR = TextColumn(key="color", label="Colour")

# ---------------------------
# Extractor chains
# ---------------------------


@pytest.mark.parametrize(
    "chain, text, expected",
    [
        (POSITION_CHAIN, "Pos. A12 window", ("A12", "Pos.")),
        (POSITION_CHAIN, "window W12 left", ("W12", "token")),
        (QUANTITY_CHAIN, "Skaits: 3", ("3", "Skaits")),
        (QUANTITY_CHAIN, "On 2,5 m", ("2,5", "On")),
        (QUANTITY_CHAIN, "Qty pcs 5", ("5", "Qty")),
        (COLOR_CHAIN, "Profiles colour: RAL 9016", ("RAL 9016", "Profiles colour")),
        (COLOR_CHAIN, "finish RAL-9016 matt", ("RAL-9016", "color-code")),
        (SYSTEM_CHAIN, "Construction: Sliding door HS", ("Sliding door HS", "Construction")),
        (SYSTEM_CHAIN, "Pos. A1 Aluminium 70, left", ("Aluminium 70", "Pos. system")),
        (SYSTEM_CHAIN, "Top frame anodised", ("Top frame anodised", "text line")),
    ],
)
def test_chain_first_match_wins(chain, text, expected):
    assert chain.run(text) == expected


def test_chain_without_match_is_empty():
    assert QUANTITY_CHAIN.run("nothing to see") == ("", "")
    assert POSITION_CHAIN.run("") == ("", "")


def test_system_chain_skips_section_labels():
    assert SYSTEM_CHAIN.run("Quantity: 4\nDescription: none") == ("", "")


# ---------------------------
# Blocks & options
# ---------------------------


def test_split_blocks_on_glued_pos_markers():
    blocks = split_blocks("Spec sheet Pos. A1 Qty 2xPos. B2 Qty 5")
    assert blocks == ["Pos. A1 Qty 2x", "Pos. B2 Qty 5"]


def test_split_blocks_without_markers_is_one_block():
    assert split_blocks("  Quantity: 4  ") == ["Quantity: 4"]
    assert split_blocks("   ") == []


def test_select_matching_single():
    col = SelectColumn(key="paint", label="Paint", options=["Red", "Blue"])
    assert match_options(col, "the blue paint") == "Blue"
    assert match_options(col, "green") == ""


def test_select_matching_multi_is_capped():
    col = SelectColumn(
        key="extras", label="Extras", options=["Red", "Blue", "Green"], max_select=2
    )
    assert match_options(col, "red, blue and green") == ["Red", "Blue"]
    assert match_options(col, "nothing") == []


def test_infer_value_reports_option_match_source():
    col = SelectColumn(key="finish", label="Finish", options=["Matt", "Gloss"])
    assert infer_value("gloss finish", col) == ("Gloss", "option-match")
    assert infer_value("satin", col) == ("", "")


def test_generic_text_column_is_empty():
    assert infer_value("anything at all", TextColumn(key="notes", label="Notes")) == ("", "")


# ---------------------------
# Rows
# ---------------------------


def test_heuristic_rows_from_ocr_text():
    text = "Spec Pos. A1 Qty 2 colour: black Pos. B2 Qty 5"
    rows = heuristic_rows(text, [POSITION, QUANTITY, COLOR])
    assert [(r["position"], r["quantity"], r["color"]) for r in rows] == [
        ("A1", "2", "black"),
        ("B2", "5", ""),
    ]
    assert rows[0][SOURCE_KEYS_FIELD] == {
        "position": "Pos.",
        "quantity": "Qty",
        "color": "colour",
    }


def test_rows_without_values_are_dropped():
    assert heuristic_rows("hello world", [POSITION, QUANTITY]) == []


def test_heuristic_rows_are_deterministic():
    text = "Pos. A1 Qty 2 Pos. B2 Qty 5 colour RAL-9005"
    cols = [POSITION, QUANTITY, COLOR]
    assert heuristic_rows(text, cols) == heuristic_rows(text, cols)
