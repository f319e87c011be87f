"""Build bottom-up, top-down and caller/callee views from trace data."""

from __future__ import annotations

import copy
import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from heapview.model import (
    AllocationData,
    FileLine,
    Frame,
    InstructionPointer,
    Symbol,
    TraceData,
)

_log = logging.getLogger(__name__)


@dataclass(eq=False)
class RowData:
    """A node of a call tree: a symbol, its cost and its child rows."""

    cost: AllocationData = field(default_factory=AllocationData)
    symbol: Symbol = field(default_factory=Symbol)
    parent: Optional["RowData"] = field(default=None, repr=False)
    children: list["RowData"] = field(default_factory=list)


@dataclass
class TreeData:
    """A call tree together with the strings and totals it refers to."""

    rows: list[RowData] = field(default_factory=list)
    strings: tuple[str, ...] = ()
    total_cost: AllocationData = field(default_factory=AllocationData)


@dataclass
class LocationCost:
    """Self and inclusive cost attributed to one source location."""

    self_cost: AllocationData = field(default_factory=AllocationData)
    inclusive_cost: AllocationData = field(default_factory=AllocationData)


@dataclass
class CallerCalleeEntry:
    """Costs of one symbol, with its callers, callees and source locations."""

    self_cost: AllocationData = field(default_factory=AllocationData)
    inclusive_cost: AllocationData = field(default_factory=AllocationData)
    callers: dict[Symbol, AllocationData] = field(default_factory=dict)
    callees: dict[Symbol, AllocationData] = field(default_factory=dict)
    source_map: dict[FileLine, LocationCost] = field(default_factory=dict)


@dataclass
class CallerCalleeResults:
    """Caller/callee entries keyed by symbol."""

    entries: dict[Symbol, CallerCalleeEntry] = field(default_factory=dict)
    strings: tuple[str, ...] = ()
    total_cost: AllocationData = field(default_factory=AllocationData)


def _frame_location(frame: Frame, module_index: int) -> tuple[Symbol, FileLine]:
    return Symbol(frame.function_index, module_index), FileLine(frame.file_index, frame.line)


def _ip_location(ip: InstructionPointer) -> tuple[Symbol, FileLine]:
    return _frame_location(ip.frame, ip.module_index)


def _plain_cost(cost: AllocationData) -> AllocationData:
    return AllocationData(cost.allocations, cost.temporary, cost.leaked, cost.peak)


def _set_parents(rows: list[RowData], parent: Optional[RowData]) -> None:
    stack = [(rows, parent)]
    while stack:
        children, owner = stack.pop()
        for row in children:
            row.parent = owner
            stack.append((row.children, row))


def _post_order(rows: list[RowData]) -> Iterator[RowData]:
    """Yield every row after all of its descendants, siblings in order."""
    stack = [(row, False) for row in reversed(rows)]
    while stack:
        row, expanded = stack.pop()
        if expanded:
            yield row
            continue
        stack.append((row, True))
        stack.extend((child, False) for child in reversed(row.children))


def _children_cost(row: RowData) -> AllocationData:
    total = AllocationData()
    for child in row.children:
        total = total + child.cost
    return total


def _add_caller_callee_event(
    symbol: Symbol,
    file_line: FileLine,
    cost: AllocationData,
    recursion_guard: set[Symbol],
    results: CallerCalleeResults,
) -> None:
    is_leaf = not recursion_guard
    if symbol in recursion_guard:
        return
    recursion_guard.add(symbol)
    entry = results.entries.setdefault(symbol, CallerCalleeEntry())
    location_cost = entry.source_map.setdefault(file_line, LocationCost())
    location_cost.inclusive_cost = location_cost.inclusive_cost + cost
    if is_leaf:
        location_cost.self_cost = location_cost.self_cost + cost


def merge_allocations(
    data: TraceData, progress: Optional[Callable[[int], None]] = None
) -> tuple[TreeData, CallerCalleeResults]:
    """Merge all allocations into a bottom-up tree and per-location costs.

    ``progress`` is called with the completed percentage as work advances.
    """
    results = CallerCalleeResults()
    top_rows: list[RowData] = []
    symbol_guard: set[Symbol] = set()

    def add_row(rows: list[RowData], symbol: Symbol, file_line: FileLine, cost: AllocationData) -> list[RowData]:
        keys = [row.symbol for row in rows]
        pos = bisect_left(keys, symbol)
        if pos < len(rows) and rows[pos].symbol == symbol:
            row = rows[pos]
            row.cost = row.cost + cost
        else:
            row = RowData(cost=cost, symbol=symbol)
            rows.insert(pos, row)
        _add_caller_callee_event(symbol, file_line, cost, symbol_guard, results)
        return row.children

    count = len(data.allocations)
    one_percent = max(1, count // 100)
    for done, allocation in enumerate(data.allocations, start=1):
        cost = _plain_cost(allocation)
        trace_index = allocation.trace_index
        rows = top_rows
        trace_guard = {trace_index}
        symbol_guard.clear()
        while trace_index:
            trace = data.find_trace(trace_index)
            ip = data.find_ip(trace.ip_index)
            rows = add_row(rows, *_ip_location(ip), cost)
            for inlined in ip.inlined:
                rows = add_row(rows, *_frame_location(inlined, ip.module_index), cost)
            if data.is_stop_index(ip.frame.function_index):
                break
            trace_index = trace.parent_index
            if trace_index in trace_guard:
                _log.warning("Trace recursion detected - corrupt data file?")
                break
            trace_guard.add(trace_index)
        if progress is not None and done % one_percent == 0:
            progress(done * 100 // count)

    _set_parents(top_rows, None)
    strings = tuple(data.strings)
    total = _plain_cost(data.total_cost)
    results.strings = strings
    results.total_cost = total
    return TreeData(rows=top_rows, strings=strings, total_cost=total), results


def to_top_down_data(bottom_up: TreeData) -> TreeData:
    """Invert a bottom-up tree so that callers become the top-level rows."""
    top_rows: list[RowData] = []
    for row in _post_order(bottom_up.rows):
        child_cost = _children_cost(row)
        if child_cost == row.cost:
            continue
        cost = row.cost - child_cost
        node: Optional[RowData] = row
        level = top_rows
        while node is not None:
            target = next((item for item in level if item.symbol == node.symbol), None)
            if target is None:
                target = RowData(symbol=node.symbol)
                level.append(target)
            target.cost = target.cost + cost
            level = target.children
            node = node.parent
    _set_parents(top_rows, None)
    return TreeData(rows=top_rows, strings=bottom_up.strings, total_cost=bottom_up.total_cost)


def to_caller_callee_data(
    bottom_up: TreeData, results: CallerCalleeResults, diff_mode: bool = False
) -> CallerCalleeResults:
    """Compute self/inclusive costs and caller/callee links per symbol.

    ``results`` supplies the per-location source maps and is not modified.
    In diff mode, entries whose self and inclusive costs are both zero are dropped.
    """
    out = copy.deepcopy(results)
    entries = out.entries
    for row in _post_order(bottom_up.rows):
        child_cost = _children_cost(row)
        if child_cost == row.cost:
            continue
        cost = row.cost - child_cost
        recursion_guard: set[Symbol] = set()
        pair_guard: set[tuple[Symbol, Symbol]] = set()
        node: Optional[RowData] = row
        last_symbol: Optional[Symbol] = None
        last_entry: Optional[CallerCalleeEntry] = None
        while node is not None:
            symbol = node.symbol
            entry = entries.setdefault(symbol, CallerCalleeEntry())
            if symbol not in recursion_guard:
                recursion_guard.add(symbol)
                entry.inclusive_cost = entry.inclusive_cost + cost
            if node.parent is None:
                entry.self_cost = entry.self_cost + cost
            if last_entry is not None and last_symbol is not None:
                pair = (symbol, last_symbol)
                if pair not in pair_guard:
                    pair_guard.add(pair)
                    last_entry.callees[symbol] = last_entry.callees.get(symbol, AllocationData()) + cost
                    entry.callers[last_symbol] = entry.callers.get(last_symbol, AllocationData()) + cost
            node = node.parent
            last_symbol = symbol
            last_entry = entry

    if diff_mode:
        empty = AllocationData()
        out.entries = {
            symbol: entry
            for symbol, entry in entries.items()
            if not (entry.inclusive_cost == empty and entry.self_cost == empty)
        }

    out.strings = bottom_up.strings
    out.total_cost = bottom_up.total_cost
    return out