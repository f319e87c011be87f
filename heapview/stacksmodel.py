"""List of the backtraces below one row of a call tree."""

from __future__ import annotations

from typing import Callable, Iterator, Optional

from heapview.analysis import RowData


def _leaves(row: RowData) -> Iterator[RowData]:
    pending = [row]
    while pending:
        node = pending.pop()
        if not node.children:
            yield node
        else:
            pending.extend(reversed(node.children))


def _stack_to(leaf: RowData) -> list[RowData]:
    stack = []
    node: Optional[RowData] = leaf
    while node is not None:
        stack.append(node)
        node = node.parent
    stack.reverse()
    return stack


class StacksModel:
    """Holds every stack from a tree's top level down to each leaf under a row.

    ``stacks_found`` is called with the number of stacks whenever they change.
    """

    def __init__(self, stacks_found: Optional[Callable[[int], None]] = None) -> None:
        self.stacks: list[list[RowData]] = []
        self.stack_index = 0
        self._stacks_found = stacks_found

    def _notify(self, count: int) -> None:
        if self._stacks_found is not None:
            self._stacks_found(count)

    def set_stack_index(self, index: int) -> None:
        """Select the stack to show; ``index`` counts from 1."""
        self.stack_index = index - 1

    def fill_from_row(self, row: RowData) -> int:
        """Collect the stacks leading to every leaf below ``row``; returns their number."""
        self.stacks = [_stack_to(leaf) for leaf in _leaves(row)]
        self.stack_index = 0
        self._notify(len(self.stacks))
        return len(self.stacks)

    def clear(self) -> None:
        """Remove all stacks."""
        self.stacks = []
        self._notify(0)

    def _current(self) -> list[RowData]:
        if 0 <= self.stack_index < len(self.stacks):
            return self.stacks[self.stack_index]
        return []

    def row_count(self) -> int:
        """Number of frames in the selected stack."""
        return len(self._current())

    def data(self, row: int) -> Optional[RowData]:
        """The tree row at position ``row`` of the selected stack, or None."""
        stack = self._current()
        if 0 <= row < len(stack):
            return stack[row]
        return None

    def header_data(self, section: int) -> Optional[str]:
        """The header label of the only column."""
        return "Backtrace" if section == 0 else None