import io

import pytest

from heapview.massif import MassifWriter
from heapview.model import (
    Allocation,
    AllocationData,
    Frame,
    InstructionPointer,
    TraceData,
    TraceNode,
)


def _data(allocations=None, stop_indices=None):
    if allocations is None:
        allocations = [Allocation(allocations=1, leaked=100, trace_index=2)]
    return TraceData(
        strings=["main", "malloc_site", "libfoo.so", "foo.c"],
        traces=[TraceNode(ip_index=1, parent_index=0), TraceNode(ip_index=2, parent_index=1)],
        instruction_pointers=[
            InstructionPointer(0x10, 3, Frame(1, 4, 10)),
            InstructionPointer(0x20, 3, Frame(2, 4, 20)),
        ],
        allocations=allocations,
        stop_indices=set(stop_indices or ()),
        total_cost=AllocationData(
            allocations=len(allocations), leaked=sum(a.leaked for a in allocations)
        ),
    )


def test_header():
    out = io.StringIO()
    MassifWriter(out).write_header("./app --flag")
    assert out.getvalue() == "desc: heaptrack\ncmd: ./app --flag\ntime_unit: s\n"


def test_detailed_snapshot_tree():
    out = io.StringIO()
    writer = MassifWriter(out, threshold=1.0, detailed_freq=2)
    writer.write_snapshot(_data(), 1500, True)
    text = out.getvalue()
    assert "snapshot=0\n" in text
    assert "time=1.5\n" in text
    assert "mem_heap_B=100\n" in text
    assert "heap_tree=detailed\n" in text
    assert text.endswith(
        "n1: 100 (heap allocation functions) malloc/new/new[], --alloc-fns, etc.\n"
        " n1: 100 0x20: malloc_site (foo.c:20)\n"
        "  n0: 100 0x10: main (foo.c:10)\n"
    )


def test_snapshot_counter_and_frequency():
    out = io.StringIO()
    writer = MassifWriter(out, detailed_freq=2)
    data = _data()
    writer.write_snapshot(data, 0, False)
    assert writer.snapshot_id == 1
    assert writer.last_peak == 0
    out.seek(0)
    out.truncate()
    writer.write_snapshot(data, 10, False)
    assert "snapshot=1\n" in out.getvalue()
    assert "heap_tree=empty\n" in out.getvalue()
    assert writer.snapshot_id == 2


def test_zero_frequency_disables_detail():
    out = io.StringIO()
    writer = MassifWriter(out, detailed_freq=0)
    writer.write_snapshot(_data(), 0, True)
    assert "heap_tree=empty\n" in out.getvalue()
    assert "heap_tree=detailed" not in out.getvalue()


def test_input_allocations_are_not_modified():
    data = _data()
    writer = MassifWriter(io.StringIO())
    writer.write_snapshot(data, 0, True)
    assert data.allocations[0].trace_index == 2


def test_stop_index_halts_tree():
    out = io.StringIO()
    MassifWriter(out).write_snapshot(_data(stop_indices={2}), 0, True)
    text = out.getvalue()
    assert "malloc_site" in text
    assert "main" not in text


def test_below_threshold_is_aggregated():
    allocations = [
        Allocation(allocations=1, leaked=1000, trace_index=2),
        Allocation(allocations=1, leaked=5, trace_index=1),
    ]
    out = io.StringIO()
    writer = MassifWriter(out, threshold=50.0)
    writer.write_snapshot(_data(allocations), 0, True)
    text = out.getvalue()
    assert "all below massif's threshold (50)" in text
    assert "n2: 1005 (heap allocation functions)" in text


def test_handle_allocation_tracks_peak():
    writer = MassifWriter(io.StringIO())
    data = _data()
    writer.handle_allocation(data)
    assert writer.last_peak == 100
    assert [a.trace_index for a in writer.allocations] == [2]
    smaller = _data([Allocation(allocations=1, leaked=10, trace_index=1)])
    writer.handle_allocation(smaller)
    assert writer.last_peak == 100
    assert [a.trace_index for a in writer.allocations] == [2]


@pytest.mark.parametrize("leaked", [0, -5])
def test_handle_allocation_ignores_non_positive(leaked):
    writer = MassifWriter(io.StringIO())
    writer.handle_allocation(_data([Allocation(allocations=1, leaked=leaked, trace_index=1)]))
    assert writer.last_peak == 0
    assert writer.allocations == []