"""Tests for the grid/list layout decision."""

import pytest

from motomind.timeline.cards import DataItem
from motomind.timeline.layout import arrange, decide_layout, grid_rows


def _items(*values):
    return [DataItem(f"Label {i}", v) for i, v in enumerate(values)]


class TestDecideLayout:
    def test_single_item_is_list(self):
        items = [DataItem("Location", "Shell Station")]
        assert decide_layout(items).mode == "list"

    def test_two_short_items_is_grid(self):
        items = [DataItem("Odometer", "77,306 mi"), DataItem("Efficiency", "32.5 MPG")]
        decision = decide_layout(items)
        assert decision.mode == "grid"
        assert decision.columns == 2

    def test_one_long_value_forces_list(self):
        items = [
            DataItem("Service", "Oil Change + Air Filter + Tire Rotation"),
            DataItem("Status", "Complete"),
        ]
        assert decide_layout(items).mode == "list"

    def test_seven_items_is_list(self):
        assert decide_layout(_items(*["x"] * 7)).mode == "list"

    def test_empty_is_list(self):
        assert decide_layout([]).mode == "list"

    def test_four_short_items_is_grid(self):
        assert decide_layout(_items("a", "b", "c", "d")).mode == "grid"

    def test_five_short_items_is_list(self):
        assert decide_layout(_items("a", "b", "c", "d", "e")).mode == "list"

    def test_threshold_is_twenty_characters(self):
        assert decide_layout(_items("x" * 19, "ok")).mode == "grid"
        assert decide_layout(_items("x" * 20, "ok")).mode == "list"

    def test_override_wins(self):
        assert decide_layout(_items("x" * 40, "y"), "grid").mode == "grid"
        assert decide_layout(_items("a", "b"), "list").mode == "list"
        assert decide_layout(_items("a"), "grid").mode == "grid"

    def test_unknown_override_raises(self):
        with pytest.raises(ValueError, match="Unknown layout"):
            decide_layout(_items("a", "b"), "masonry")


class TestGridRows:
    def test_fills_left_to_right(self):
        items = _items("a", "b", "c", "d")
        rows = grid_rows(items)
        assert rows == [(items[0], items[1]), (items[2], items[3])]

    def test_odd_count_leaves_last_cell_empty(self):
        items = _items("a", "b", "c")
        rows = grid_rows(items)
        assert rows == [(items[0], items[1]), (items[2], None)]

    def test_arrange_list_is_one_column(self):
        items = _items("x" * 30, "y")
        assert arrange(items) == [(items[0],), (items[1],)]
