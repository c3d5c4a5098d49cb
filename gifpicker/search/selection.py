"""Keyboard selection over the displayed result grid."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from gifpicker.search.types import ResultItem

# (max viewport width in px, columns); wider than the last entry gets MAX_COLUMNS.
COLUMN_BREAKPOINTS: tuple[tuple[int, int], ...] = ((400, 1), (600, 2), (900, 3))
MAX_COLUMNS = 4


def columns_for_width(width: int) -> int:
    for max_width, columns in COLUMN_BREAKPOINTS:
        if width <= max_width:
            return columns
    return MAX_COLUMNS


@dataclass
class SelectionState:
    """Selected index into the current item sequence; ``None`` means nothing selected."""

    index: Optional[int] = None
    columns: int = 1
    _identifiers: tuple[str, ...] = field(default=(), repr=False)

    def set_viewport_width(self, width: int) -> None:
        self.columns = columns_for_width(width)

    def sync(self, items: Sequence[ResultItem]) -> None:
        """Track a new item sequence: keep the index on append-only growth, reset otherwise."""
        identifiers = tuple(item.identifier for item in items)
        previous = self._identifiers
        self._identifiers = identifiers
        appended = len(identifiers) >= len(previous) and identifiers[: len(previous)] == previous
        if not appended or not identifiers:
            self.index = None
        elif self.index is not None and self.index >= len(identifiers):
            self.index = len(identifiers) - 1

    def reset(self) -> None:
        self.index = None

    def select(self, index: int) -> None:
        self.index = self._clamp(index)

    def move_up(self) -> None:
        self._move(-self.columns)

    def move_down(self) -> None:
        self._move(self.columns)

    def move_left(self) -> None:
        self._move(-1)

    def move_right(self) -> None:
        self._move(1)

    def current(self, items: Sequence[ResultItem]) -> Optional[ResultItem]:
        """Item to activate or favorite, if the selection points inside ``items``."""
        if self.index is None or not 0 <= self.index < len(items):
            return None
        return items[self.index]

    def _move(self, delta: int) -> None:
        if not self._identifiers:
            self.index = None
            return
        if self.index is None:
            self.index = 0
            return
        self.index = self._clamp(self.index + delta)

    def _clamp(self, index: int) -> Optional[int]:
        if not self._identifiers:
            return None
        return max(0, min(index, len(self._identifiers) - 1))
