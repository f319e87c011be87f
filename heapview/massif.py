"""Write heap snapshots in the massif output format."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, TextIO

from heapview.model import Allocation, InstructionPointer, TraceData


@dataclass
class _MergedSite:
    """Allocations whose backtraces end at the same location."""

    ip_index: int
    traces: list[Allocation] = field(default_factory=list)
    leaked: int = 0


def _location_key(ip: InstructionPointer) -> tuple:
    return (ip.frame, ip.module_index, tuple(ip.inlined))


def _merge_by_location(data: TraceData, allocations: Iterable[Allocation]) -> list[_MergedSite]:
    """Group allocations by the location of their innermost frame, ignoring addresses."""
    sites: dict[tuple, _MergedSite] = {}
    for allocation in allocations:
        if not allocation.trace_index:
            continue
        trace = data.find_trace(allocation.trace_index)
        key = _location_key(data.find_ip(trace.ip_index))
        site = sites.get(key)
        if site is None:
            site = sites[key] = _MergedSite(trace.ip_index)
        site.traces.append(allocation)
        site.leaked += allocation.leaked
    return [sites[key] for key in sorted(sites)]


def _copy_allocations(allocations: Iterable[Allocation]) -> list[Allocation]:
    return [replace(allocation) for allocation in allocations]


class MassifWriter:
    """Writes massif compatible snapshots of the heap to a text stream.

    ``threshold`` is the percentage of the current heap below which
    allocation sites are aggregated; every ``detailed_freq``-th snapshot
    (and the last one) gets a detailed heap tree, 0 disables them.
    """

    def __init__(self, out: TextIO, threshold: float = 1.0, detailed_freq: int = 2) -> None:
        self.out = out
        self.threshold = threshold
        self.detailed_freq = detailed_freq
        self.snapshot_id = 0
        self.last_peak = 0
        self.allocations: list[Allocation] = []

    def write_header(self, command: str) -> None:
        """Write the file header naming the profiled command."""
        self.out.write(f"desc: heaptrack\ncmd: {command}\ntime_unit: s\n")

    def handle_allocation(self, data: TraceData) -> None:
        """Remember the current allocations if they form a new peak."""
        leaked = data.total_cost.leaked
        if leaked > 0 and leaked > self.last_peak:
            self.allocations = _copy_allocations(data.allocations)
            self.last_peak = leaked

    def write_snapshot(self, data: TraceData, time_stamp: int, is_last: bool) -> None:
        """Write one snapshot at ``time_stamp`` milliseconds."""
        if not self.last_peak:
            self.last_peak = data.total_cost.leaked
            self.allocations = _copy_allocations(data.allocations)
        self.out.write(
            "#-----------\n"
            f"snapshot={self.snapshot_id}\n"
            "#-----------\n"
            f"time={0.001 * time_stamp:g}\n"
            f"mem_heap_B={self.last_peak}\n"
            "mem_heap_extra_B=0\n"
            "mem_stacks_B=0\n"
        )
        if self.detailed_freq and (is_last or self.snapshot_id % self.detailed_freq == 0):
            self.out.write("heap_tree=detailed\n")
            threshold = int(self.last_peak * self.threshold * 0.01)
            self.write_backtrace(data, self.allocations, self.last_peak, threshold, 0, 0)
        else:
            self.out.write("heap_tree=empty\n")
        self.snapshot_id += 1
        self.last_peak = 0

    def write_backtrace(
        self,
        data: TraceData,
        allocations: Iterable[Allocation],
        heap_size: int,
        threshold: int,
        location: int = 0,
        depth: int = 0,
    ) -> None:
        """Write the heap tree node for ``location`` and recurse into its callers."""
        merged = sorted(
            _merge_by_location(data, _copy_allocations(allocations)),
            key=lambda site: site.leaked,
            reverse=True,
        )
        ip = data.find_ip(location)
        should_stop = data.is_stop_index(ip.frame.function_index)

        num_allocs = 0
        skipped = 0
        skipped_leaked = 0
        if not should_stop:
            for site in merged:
                if site.leaked < 0:
                    break
                if site.leaked >= threshold:
                    num_allocs += 1
                    # step one frame up, otherwise the recursion would never end
                    for allocation in site.traces:
                        allocation.trace_index = data.find_trace(allocation.trace_index).parent_index
                else:
                    skipped += 1
                    skipped_leaked += site.leaked

        indent = " " * depth
        line = f"{indent}n{num_allocs + (1 if skipped else 0)}: {heap_size}"
        if not depth:
            line += " (heap allocation functions) malloc/new/new[], --alloc-fns, etc.\n"
        else:
            function = data.stringify(ip.frame.function_index) if ip.frame.function_index else "???"
            if ip.frame.file_index:
                where = f"{data.stringify(ip.frame.file_index)}:{ip.frame.line}"
            elif ip.module_index:
                where = data.stringify(ip.module_index)
            else:
                where = "???"
            line += f" 0x{ip.instruction_pointer:x}: {function} ({where})\n"
        self.out.write(line)

        def write_skipped() -> None:
            nonlocal skipped
            if skipped:
                self.out.write(
                    f"{indent} n0: {skipped_leaked} in {skipped} places, "
                    f"all below massif's threshold ({self.threshold:g})\n"
                )
                skipped = 0

        if not should_stop:
            for site in merged:
                if site.leaked > 0 and site.leaked >= threshold:
                    if skipped_leaked > site.leaked:
                        write_skipped()
                    self.write_backtrace(data, site.traces, site.leaked, threshold, site.ip_index, depth + 1)
            write_skipped()