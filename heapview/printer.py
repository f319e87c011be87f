"""Text reports over recorded allocation data: top lists, flame graphs, summaries."""

from __future__ import annotations

import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, TextIO, Union

from heapview.model import (
    Allocation,
    AllocationData,
    CostType,
    Frame,
    InstructionPointer,
    TraceData,
    TraceNode,
)

_log = logging.getLogger(__name__)

_UNITS = ("B", "KB", "MB", "GB", "TB")

Label = Callable[[AllocationData], str]


def format_bytes(num_bytes: int, width: int = 0) -> str:
    """Render a byte count with metric units.

    With a ``width`` wider than the unit the result is right aligned to that
    width and carries the full unit; otherwise only the unit's first letter
    is appended, e.g. ``1.50K``.
    """
    value = float(num_bytes)
    power = 0
    while power < len(_UNITS) - 1 and abs(value) > 1000.0:
        value /= 1000.0
        power += 1
    unit = _UNITS[power]
    text = str(int(num_bytes)) if power == 0 else f"{value:.2f}"
    if width > len(unit):
        return text.rjust(width - len(unit)) + unit
    return text + unit[0]


def _percent(part: int, whole: int) -> str:
    if whole:
        return f"{part * 100.0 / whole:.2f}"
    if part == 0:
        return "nan"
    return "inf" if part > 0 else "-inf"


def _temporary_label(data: AllocationData, suffix: str) -> str:
    return (
        f"{data.temporary} temporary allocations of {data.allocations} allocations in total "
        f"({_percent(data.temporary, data.allocations)}%) from{suffix}\n"
    )


_DEFAULT_LABELS: dict[CostType, tuple[Label, Label]] = {
    CostType.ALLOCATIONS: (
        lambda d: f"{d.allocations} calls to allocation functions with "
        f"{format_bytes(d.peak)} peak consumption from\n",
        lambda d: f"{d.allocations} calls with {format_bytes(d.peak)} peak consumption from:\n",
    ),
    CostType.PEAK: (
        lambda d: f"{format_bytes(d.peak)} peak memory consumed over {d.allocations} calls from\n",
        lambda d: f"{format_bytes(d.peak)} consumed over {d.allocations} calls from:\n",
    ),
    CostType.LEAKED: (
        lambda d: f"{format_bytes(d.leaked)} leaked over {d.allocations} calls from\n",
        lambda d: f"{format_bytes(d.leaked)} leaked over {d.allocations} calls from:\n",
    ),
    CostType.TEMPORARY: (
        lambda d: _temporary_label(d, ""),
        lambda d: _temporary_label(d, ":"),
    ),
}


@dataclass(eq=False)
class MergedAllocation(AllocationData):
    """Costs of all backtraces that end at the same location."""

    traces: list[Allocation] = field(default_factory=list)
    ip_index: int = 0


def _location_key(ip: InstructionPointer) -> tuple:
    return (ip.frame, ip.module_index, tuple(ip.inlined))


class Printer:
    """Analyses trace data and writes human readable reports."""

    def __init__(
        self,
        data: TraceData,
        *,
        merge_backtraces: bool = True,
        peak_limit: int = 10,
        sub_peak_limit: int = 5,
        filter_bt_function: str = "",
    ) -> None:
        self.data = data
        self.merge_backtraces = merge_backtraces
        self.peak_limit = peak_limit
        self.sub_peak_limit = sub_peak_limit
        self.filter_bt_function = filter_bt_function
        self.merged_allocations: list[MergedAllocation] = []
        self.size_histogram: Counter[int] = Counter()

    def finalize(self) -> None:
        """Apply the backtrace filter and merge allocations by location."""
        self.filter_allocations()
        self.merged_allocations = self.merge_allocations(self.data.allocations)

    def merge_allocations(self, allocations) -> list[MergedAllocation]:
        """Group allocations by the location where the allocation function was called.

        Locations are compared without their address; allocations without a
        backtrace are skipped. The result is ordered by location.
        """
        merged: dict[tuple, MergedAllocation] = {}
        for allocation in allocations:
            if not allocation.trace_index:
                continue
            trace = self.data.find_trace(allocation.trace_index)
            key = _location_key(self.data.find_ip(trace.ip_index))
            entry = merged.get(key)
            if entry is None:
                entry = merged[key] = MergedAllocation(ip_index=trace.ip_index)
            entry.traces.append(allocation)
        result = [merged[key] for key in sorted(merged)]
        for entry in result:
            for allocation in entry.traces:
                entry.allocations += allocation.allocations
                entry.leaked += allocation.leaked
                entry.peak += allocation.peak
                entry.temporary += allocation.temporary
        return result

    def _frames_until_stop(self, node: TraceNode) -> Iterator[InstructionPointer]:
        guard: set[int] = set()
        while node.ip_index:
            ip = self.data.find_ip(node.ip_index)
            if self.data.is_stop_index(ip.frame.function_index):
                return
            yield ip
            if node.parent_index in guard:
                return
            guard.add(node.parent_index)
            node = self.data.find_trace(node.parent_index)

    def filter_allocations(self) -> None:
        """Keep only allocations whose backtrace contains the filter function."""
        needle = self.filter_bt_function
        if not needle:
            return

        def matches(frame: Frame) -> bool:
            return needle in self.data.stringify(frame.function_index)

        def keep(allocation: Allocation) -> bool:
            node = self.data.find_trace(allocation.trace_index)
            return any(
                matches(ip.frame) or any(matches(inlined) for inlined in ip.inlined)
                for ip in self._frames_until_stop(node)
            )

        self.data.allocations = [a for a in self.data.allocations if keep(a)]

    def print_ip(
        self,
        ip: Union[int, InstructionPointer],
        out: TextIO,
        indent: int = 0,
        flame_graph: bool = False,
    ) -> None:
        """Write one instruction pointer, given directly or by index."""
        if isinstance(ip, int):
            ip = self.data.find_ip(ip)
        stringify = self.data.stringify
        out.write("  " * indent)
        if ip.frame.function_index:
            out.write(stringify(ip.frame.function_index))
        else:
            out.write(f"0x{ip.instruction_pointer:x}")

        if flame_graph:
            def file_part(file_index: int) -> str:
                file = stringify(file_index)
                return f" ({file[file.rfind('/') + 1:]})"

            if ip.frame.file_index:
                out.write(file_part(ip.frame.file_index))
            out.write(";")
            for inlined in ip.inlined:
                out.write(stringify(inlined.function_index))
                out.write(file_part(inlined.file_index))
                out.write(";")
            return

        inner = "  " * (indent + 1)
        out.write("\n" + inner)
        if ip.frame.file_index:
            out.write(f"at {stringify(ip.frame.file_index)}:{ip.frame.line}\n{inner}")
        out.write(f"in {stringify(ip.module_index)}" if ip.module_index else "in ??")
        out.write("\n")
        for inlined in ip.inlined:
            out.write("  " * indent + stringify(inlined.function_index) + "\n")
            out.write(f"{inner}at {stringify(inlined.file_index)}:{inlined.line}\n")

    def print_backtrace(
        self, trace_index: int, out: TextIO, indent: int = 0, skip_first: bool = False
    ) -> None:
        """Write the backtrace starting at ``trace_index``, innermost frame first."""
        if not trace_index:
            out.write("  ??")
            return
        node = self.data.find_trace(trace_index)
        guard: set[int] = set()
        while node.ip_index:
            ip = self.data.find_ip(node.ip_index)
            if not skip_first:
                self.print_ip(ip, out, indent)
            skip_first = False
            if self.data.is_stop_index(ip.frame.function_index):
                break
            if node.parent_index in guard:
                _log.warning("Trace recursion detected - corrupt data file? %d", node.parent_index)
                break
            guard.add(node.parent_index)
            node = self.data.find_trace(node.parent_index)

    def print_flamegraph(self, node: TraceNode, out: TextIO) -> None:
        """Write a backtrace outermost frame first as ``func;func (file);``."""
        chain: list[InstructionPointer] = []
        guard: set[int] = set()
        while node.ip_index:
            ip = self.data.find_ip(node.ip_index)
            chain.append(ip)
            if self.data.is_stop_index(ip.frame.function_index) or node.parent_index in guard:
                break
            guard.add(node.parent_index)
            node = self.data.find_trace(node.parent_index)
        for ip in reversed(chain):
            self.print_ip(ip, out, 0, True)

    def print_allocations(
        self,
        cost_type: CostType,
        label: Optional[Label] = None,
        sublabel: Optional[Label] = None,
        out: Optional[TextIO] = None,
    ) -> None:
        """Write the top allocation sites for ``cost_type``.

        ``label`` and ``sublabel`` turn costs into the text put before each
        site and each of its backtraces; they default to the standard wording.
        """
        out = out if out is not None else sys.stdout
        default_label, default_sublabel = _DEFAULT_LABELS[cost_type]
        label = label or default_label
        sublabel = sublabel or default_sublabel
        if self.merge_backtraces:
            self._print_merged(cost_type, label, sublabel, out)
        else:
            self._print_unmerged(cost_type, label, out)

    def _print_merged(self, cost_type: CostType, label: Label, sublabel: Label, out: TextIO) -> None:
        def order(item: AllocationData) -> int:
            return abs(item.cost(cost_type))

        self.merged_allocations.sort(key=order, reverse=True)
        for merged in self.merged_allocations[: self.peak_limit]:
            if not merged.cost(cost_type):
                break
            out.write(label(merged))
            self.print_ip(merged.ip_index, out)
            merged.traces.sort(key=order, reverse=True)
            handled = 0
            for trace in merged.traces[: self.sub_peak_limit]:
                if not trace.cost(cost_type):
                    break
                out.write(sublabel(trace))
                handled += trace.cost(cost_type)
                self.print_backtrace(trace.trace_index, out, 2, True)
            if len(merged.traces) > self.sub_peak_limit:
                rest = merged.cost(cost_type) - handled
                amount = str(rest) if cost_type is CostType.ALLOCATIONS else format_bytes(rest)
                out.write(
                    f"  and {amount} from {len(merged.traces) - self.sub_peak_limit} other places\n"
                )
            out.write("\n")

    def _print_unmerged(self, cost_type: CostType, label: Label, out: TextIO) -> None:
        self.data.allocations.sort(key=lambda a: abs(a.cost(cost_type)), reverse=True)
        for allocation in self.data.allocations[: self.peak_limit]:
            if not allocation.cost(cost_type):
                break
            out.write(label(allocation))
            self.print_backtrace(allocation.trace_index, out, 1)
            out.write("\n")
        out.write("\n")

    def write_flamegraph(self, cost_type: CostType, out: TextIO) -> None:
        """Write one flame graph stack line with its cost per allocation."""
        for allocation in self.data.allocations:
            if not allocation.trace_index:
                out.write("??")
            else:
                self.print_flamegraph(self.data.find_trace(allocation.trace_index), out)
            out.write(f" {allocation.cost(cost_type)}\n")

    def write_histogram(self, out: TextIO) -> None:
        """Write ``size<TAB>count`` lines ordered by size."""
        for size, count in sorted(self.size_histogram.items()):
            out.write(f"{size}\t{count}\n")

    def write_summary(self, out: TextIO, print_suppressions: bool = False) -> None:
        """Write the overall totals and, optionally, the used suppressions."""
        data = self.data
        total = data.total_cost
        per_second = 1000.0 / data.total_time if data.total_time else 1.0
        out.write(
            f"total runtime: {data.total_time / 1000.0:.6f}s.\n"
            f"calls to allocation functions: {total.allocations} "
            f"({int(total.allocations * per_second)}/s)\n"
            f"temporary memory allocations: {total.temporary} "
            f"({int(total.temporary * per_second)}/s)\n"
            f"peak heap memory consumption: {format_bytes(total.peak)}\n"
            f"peak RSS (including heaptrack overhead): {format_bytes(data.peak_rss * data.page_size)}\n"
            f"total memory leaked: {format_bytes(total.leaked)}\n"
        )
        if not data.total_leaked_suppressed:
            return
        out.write(f"suppressed leaks: {format_bytes(data.total_leaked_suppressed)}\n")
        if print_suppressions:
            out.write("Suppressions used:\n")
            out.write(f"{'matches':>16} {'leaked':>16} pattern\n")
            for suppression in data.suppressions:
                if not suppression.matches:
                    continue
                out.write(
                    f"{suppression.matches:>16} {format_bytes(suppression.leaked, 16)} "
                    f"{suppression.pattern}\n"
                )