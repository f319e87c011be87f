"""Table of leak suppressions with their match statistics."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Iterable

from heapview.model import Suppression
from heapview.treemodel import SortOrder
from heapview.util import format_bytes, format_cost_relative


class SuppressionsColumn(IntEnum):
    """Columns of the suppressions table."""

    MATCHES = 0
    LEAKED = 1
    PATTERN = 2


class SuppressionsRole(Enum):
    """The kinds of data that can be requested for a cell or header."""

    DISPLAY = "display"
    TOOLTIP = "tooltip"
    SORT = "sort"
    TOTAL_COST = "total_cost"
    INITIAL_SORT_ORDER = "initial_sort_order"


_HEADERS = {
    SuppressionsColumn.MATCHES: "Matches",
    SuppressionsColumn.LEAKED: "Leaked",
    SuppressionsColumn.PATTERN: "Pattern",
}


class SuppressionsModel:
    """Presents suppressions with their matches and suppressed leaks."""

    def __init__(self) -> None:
        self.suppressions: list[Suppression] = []
        self.total_allocations = 0
        self.total_leaked = 0

    def set_suppressions(
        self, suppressions: Iterable[Suppression], total_allocations: int, total_leaked: int
    ) -> None:
        """Replace the shown suppressions and the totals they are compared with."""
        self.suppressions = list(suppressions)
        self.total_allocations = total_allocations
        self.total_leaked = total_leaked

    def column_count(self) -> int:
        """Number of columns; zero while there are no suppressions."""
        return len(SuppressionsColumn) if self.suppressions else 0

    def row_count(self) -> int:
        """Number of suppressions."""
        return len(self.suppressions)

    def header_data(self, section, role: SuppressionsRole = SuppressionsRole.DISPLAY):
        """Header label for a column, or None."""
        if section < 0 or section >= self.column_count() or role is not SuppressionsRole.DISPLAY:
            return None
        return _HEADERS[SuppressionsColumn(section)]

    def _tooltip(self, suppression: Suppression) -> str:
        return (
            f"<qt>Suppression rule: <code>{suppression.pattern}</code><br/>"
            f"Matched Allocations: {suppression.matches}<br/>&nbsp;&nbsp;"
            f"{format_cost_relative(suppression.matches, self.total_allocations)}% out of "
            f"{self.total_allocations} total<br/>"
            f"Suppressed Leaked Memory: {format_bytes(suppression.leaked)}<br/>&nbsp;&nbsp;"
            f"{format_cost_relative(suppression.leaked, self.total_leaked)}% out of "
            f"{format_bytes(self.total_leaked)} total</qt>"
        )

    def data(self, row: int, column, role: SuppressionsRole = SuppressionsRole.DISPLAY):
        """The value of a cell in the given role, or None."""
        if row < 0 or column < 0 or column >= self.column_count() or row >= self.row_count():
            return None
        suppression = self.suppressions[row]
        if role is SuppressionsRole.TOOLTIP:
            return self._tooltip(suppression)

        column = SuppressionsColumn(column)
        if column is SuppressionsColumn.MATCHES:
            if role in (SuppressionsRole.DISPLAY, SuppressionsRole.SORT):
                return suppression.matches
            if role is SuppressionsRole.INITIAL_SORT_ORDER:
                return SortOrder.DESCENDING
            if role is SuppressionsRole.TOTAL_COST:
                return self.total_allocations
        elif column is SuppressionsColumn.LEAKED:
            if role is SuppressionsRole.DISPLAY:
                return format_bytes(suppression.leaked)
            if role is SuppressionsRole.SORT:
                return suppression.leaked
            if role is SuppressionsRole.INITIAL_SORT_ORDER:
                return SortOrder.DESCENDING
            if role is SuppressionsRole.TOTAL_COST:
                return self.total_leaked
        elif column is SuppressionsColumn.PATTERN:
            if role in (SuppressionsRole.DISPLAY, SuppressionsRole.SORT):
                return suppression.pattern
            if role is SuppressionsRole.INITIAL_SORT_ORDER:
                return SortOrder.ASCENDING
        return None