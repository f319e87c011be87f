"""Tabular view over a call tree with per-column display, sort and tooltip data."""

from __future__ import annotations

import html
from enum import Enum, IntEnum
from typing import Callable, Optional

from heapview.analysis import RowData, TreeData
from heapview.model import AllocationData, Symbol
from heapview.util import FormatType, basename, format_bytes, format_cost_relative, symbol_to_string


class Column(IntEnum):
    """Columns of the tree model."""

    LOCATION = 0
    PEAK = 1
    LEAKED = 2
    ALLOCATIONS = 3
    TEMPORARY = 4


NUM_COLUMNS = len(Column)


class Role(Enum):
    """The kinds of data that can be requested for a cell or header."""

    DISPLAY = "display"
    TOOLTIP = "tooltip"
    INITIAL_SORT_ORDER = "initial_sort_order"
    SORT = "sort"
    MAX_COST = "max_cost"
    SYMBOL = "symbol"
    RESULT_DATA = "result_data"


class SortOrder(Enum):
    """Sort direction suggested for a column."""

    ASCENDING = "ascending"
    DESCENDING = "descending"


_COST_COLUMNS = {
    Column.ALLOCATIONS: "allocations",
    Column.TEMPORARY: "temporary",
    Column.PEAK: "peak",
    Column.LEAKED: "leaked",
}

_HEADER_LABELS = {
    Column.ALLOCATIONS: "Allocations",
    Column.TEMPORARY: "Temporary",
    Column.PEAK: "Peak",
    Column.LEAKED: "Leaked",
    Column.LOCATION: "Location",
}

_HEADER_TOOLTIPS = {
    Column.ALLOCATIONS: "<qt>The number of times an allocation function was called "
    "from this location.</qt>",
    Column.TEMPORARY: "<qt>The number of temporary allocations. These allocations "
    "are directly followed by a free without any other allocations in-between.</qt>",
    Column.PEAK: "<qt>The contributions from a given location to the maximum heap "
    "memory consumption in bytes. This takes deallocations into account.</qt>",
    Column.LEAKED: "<qt>The bytes allocated at this location that have not been "
    "deallocated.</qt>",
    Column.LOCATION: "<qt>The location from which an allocation function was "
    "called. Function symbol and file information may be unknown when debug "
    "information was missing when heaptrack was run.</qt>",
}


def _html_escape(text: str) -> str:
    return html.escape(text, quote=False).replace('"', "&quot;")


def _to_column(value) -> Optional[Column]:
    try:
        return Column(value)
    except ValueError:
        return None


class TreeModel:
    """Presents a call tree as rows with cost columns."""

    def __init__(self) -> None:
        self._data = TreeData()
        self._max_row = RowData()
        self._reset_listeners: list[Callable[[], None]] = []

    @property
    def tree(self) -> TreeData:
        """The tree currently shown."""
        return self._data

    @property
    def max_cost(self) -> AllocationData:
        """The total costs used for relative numbers."""
        return self._max_row.cost

    def add_reset_listener(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` whenever the model is reset; registered at most once."""
        if callback not in self._reset_listeners:
            self._reset_listeners.append(callback)

    def _notify_reset(self) -> None:
        for callback in list(self._reset_listeners):
            callback()

    def reset_data(self, data: TreeData) -> None:
        """Replace the shown tree."""
        self._data = data
        self._notify_reset()

    def set_summary(self, cost: AllocationData) -> None:
        """Set the total costs used for relative numbers and maximum cost."""
        self._max_row.cost = cost
        self._notify_reset()

    def clear_data(self) -> None:
        """Remove the tree and the total costs."""
        self._data = TreeData()
        self._max_row = RowData()
        self._notify_reset()

    def header_data(self, section, role: Role = Role.DISPLAY):
        """Header label, tooltip or initial sort order for a column."""
        column = _to_column(section)
        if column is None:
            return None
        if role is Role.INITIAL_SORT_ORDER:
            return SortOrder.DESCENDING if column in _COST_COLUMNS else None
        if role is Role.DISPLAY:
            return _HEADER_LABELS[column]
        if role is Role.TOOLTIP:
            return _HEADER_TOOLTIPS[column]
        return None

    def _string(self, index: int) -> str:
        if index == 0:
            return ""
        strings = self._data.strings
        if index < 0 or index > len(strings):
            raise IndexError(f"string index {index} out of range")
        return strings[index - 1]

    def _symbol_lines(self, symbol: Symbol) -> str:
        module = self._string(symbol.module_id)
        return (
            f"{_html_escape(self._string(symbol.function_id))}\n"
            f"  in {_html_escape(basename(module))} ({_html_escape(module)})"
        )

    def _tooltip(self, row: RowData) -> str:
        cost = row.cost
        total = self._max_row.cost
        parts = ["<qt><pre style='font-family:monospace;'>", self._symbol_lines(row.symbol), "\n\n"]
        parts.append(
            f"peak contribution: {format_bytes(cost.peak)} "
            f"({format_cost_relative(cost.peak, total.peak)}% of total)\n"
        )
        parts.append(
            f"leaked: {format_bytes(cost.leaked)} "
            f"({format_cost_relative(cost.leaked, total.leaked)}% of total)\n"
        )
        parts.append(
            f"allocations: {cost.allocations} "
            f"({format_cost_relative(cost.allocations, total.allocations)}% of total)\n"
        )
        parts.append(
            f"temporary: {cost.temporary} "
            f"({format_cost_relative(cost.temporary, cost.allocations)}% of allocations, "
            f"{format_cost_relative(cost.temporary, total.temporary)}% of total)\n"
        )
        if row.children:
            child = row
            remaining = 5
            if len(child.children) == 1:
                parts.append("\nbacktrace:\n")
            while len(child.children) == 1 and remaining > 0:
                remaining -= 1
                parts.append("\n")
                parts.append(self._symbol_lines(child.symbol))
                child = child.children[0]
            if len(child.children) > 1:
                parts.append("\n")
                parts.append(f"called from {len(child.children)} locations")
        parts.append("</pre></qt>")
        return "".join(parts)

    def data(self, row: Optional[RowData], column, role: Role = Role.DISPLAY):
        """The value of ``column`` for ``row`` in the given role.

        With ``Role.MAX_COST`` the row is ignored and the total costs are used.
        Returns None where there is nothing to show.
        """
        column = _to_column(column)
        if column is None:
            return None
        if role is Role.MAX_COST:
            row = self._max_row
        elif row is None:
            return None

        if role in (Role.DISPLAY, Role.SORT, Role.MAX_COST):
            if column is Column.LOCATION:
                return symbol_to_string(row.symbol, self._data.strings, FormatType.SHORT)
            value = getattr(row.cost, _COST_COLUMNS[column])
            if role is not Role.DISPLAY:
                return abs(value)
            if column in (Column.PEAK, Column.LEAKED):
                return format_bytes(value)
            return value
        if role is Role.TOOLTIP:
            return self._tooltip(row)
        if role is Role.SYMBOL:
            return row.symbol
        if role is Role.RESULT_DATA:
            return self._data.strings
        return None

    def rows(self, parent: Optional[RowData] = None) -> list[RowData]:
        """The children of ``parent``, or the top-level rows."""
        return self._data.rows if parent is None else parent.children

    def row_count(self, parent: Optional[RowData] = None) -> int:
        """Number of children of ``parent``, or of top-level rows."""
        return len(self.rows(parent))

    def column_count(self) -> int:
        """Number of columns."""
        return NUM_COLUMNS

    def row_of(self, row: RowData) -> int:
        """Position of ``row`` among its siblings."""
        siblings = self.rows(row.parent)
        for position, sibling in enumerate(siblings):
            if sibling is row:
                return position
        raise ValueError("row is not part of this model")