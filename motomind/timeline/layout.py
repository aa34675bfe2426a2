"""Grid vs. list arrangement of a card's data rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .cards import DataItem

SHORT_VALUE_LIMIT = 20
GRID_MIN_ITEMS = 2
GRID_MAX_ITEMS = 4
GRID_COLUMNS = 2

LAYOUT_OVERRIDES = ("auto", "grid", "list")


@dataclass(frozen=True)
class LayoutDecision:
    mode: str  # "grid" or "list"
    columns: int


def is_short(value: str) -> bool:
    return len(value) < SHORT_VALUE_LIMIT


def decide_layout(items: Sequence[DataItem], layout: str = "auto") -> LayoutDecision:
    """Pick grid or list for ``items``; an explicit override always wins.

    | count | all values short | result |
    |-------|------------------|--------|
    | 0-1   | any              | list   |
    | 2-4   | yes              | grid   |
    | 2-4   | no               | list   |
    | 5+    | any              | list   |
    """
    match layout:
        case "grid":
            return LayoutDecision("grid", GRID_COLUMNS)
        case "list":
            return LayoutDecision("list", 1)
        case "auto":
            pass
        case _:
            raise ValueError(f"Unknown layout: {layout!r}")

    if GRID_MIN_ITEMS <= len(items) <= GRID_MAX_ITEMS and all(
        is_short(item.value) for item in items
    ):
        return LayoutDecision("grid", GRID_COLUMNS)
    return LayoutDecision("list", 1)


def grid_rows(
    items: Sequence[DataItem], columns: int = GRID_COLUMNS
) -> list[tuple[DataItem | None, ...]]:
    """Place items left-to-right, top-to-bottom; a short last row is padded with None."""
    rows: list[tuple[DataItem | None, ...]] = []
    for start in range(0, len(items), columns):
        row: list[DataItem | None] = list(items[start:start + columns])
        row.extend([None] * (columns - len(row)))
        rows.append(tuple(row))
    return rows


def arrange(
    items: Sequence[DataItem], layout: str = "auto"
) -> list[tuple[DataItem | None, ...]]:
    """Rows of cells as they should be drawn under the decided layout."""
    decision = decide_layout(items, layout)
    return grid_rows(items, decision.columns)
