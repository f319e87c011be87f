"""Filter call trees by function and module name."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from heapview.analysis import RowData


class TreeProxy:
    """Filters rows whose function or module name contains a given text.

    Matching is case-insensitive. A row stays in a filtered tree when it
    matches itself or when any of its descendants match.
    """

    def __init__(self, strings: Sequence[str] = ()) -> None:
        self.strings = tuple(strings)
        self.function_filter = ""
        self.module_filter = ""

    def set_function_filter(self, function_filter: str) -> None:
        """Only accept rows whose function name contains ``function_filter``."""
        self.function_filter = function_filter

    def set_module_filter(self, module_filter: str) -> None:
        """Only accept rows whose module name contains ``module_filter``."""
        self.module_filter = module_filter

    def _string(self, index: int) -> str:
        if index == 0:
            return ""
        if index < 0 or index > len(self.strings):
            raise IndexError(f"string index {index} out of range")
        return self.strings[index - 1]

    def _filter_out(self, string_index: int, text: str) -> bool:
        return bool(text) and text.casefold() not in self._string(string_index).casefold()

    def accepts_row(self, row: RowData) -> bool:
        """True if the row itself passes both filters."""
        if not self.function_filter and not self.module_filter:
            return True
        symbol = row.symbol
        return not (
            self._filter_out(symbol.function_id, self.function_filter)
            or self._filter_out(symbol.module_id, self.module_filter)
        )

    def filter_rows(self, rows: Iterable[RowData]) -> list[RowData]:
        """A filtered copy of the tree; the input rows are left untouched."""
        return self._filter(rows, None)

    def _filter(self, rows: Iterable[RowData], parent: Optional[RowData]) -> list[RowData]:
        kept: list[RowData] = []
        for row in rows:
            clone = RowData(cost=row.cost, symbol=row.symbol, parent=parent)
            clone.children = self._filter(row.children, clone)
            if clone.children or self.accepts_row(row):
                kept.append(clone)
        return kept