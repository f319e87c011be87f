import pytest

from heapview.model import (
    Allocation,
    AllocationData,
    CostType,
    Frame,
    InstructionPointer,
    Symbol,
    TraceData,
    TraceNode,
)


def test_cost_type_from_name():
    assert CostType.from_name("allocations") is CostType.ALLOCATIONS
    assert CostType.from_name("temporary") is CostType.TEMPORARY
    assert CostType.from_name("leaked") is CostType.LEAKED
    assert CostType.from_name("peak") is CostType.PEAK


def test_cost_type_unknown_name():
    with pytest.raises(ValueError):
        CostType.from_name("bogus")


def test_allocation_data_cost_lookup():
    data = AllocationData(allocations=1, temporary=2, leaked=3, peak=4)
    assert data.cost(CostType.ALLOCATIONS) == 1
    assert data.cost(CostType.TEMPORARY) == 2
    assert data.cost(CostType.LEAKED) == 3
    assert data.cost(CostType.PEAK) == 4


def test_allocation_data_add_sub_round_trip():
    a = AllocationData(5, 1, -3, 7)
    b = AllocationData(2, 2, 9, 1)
    assert (a + b) - b == a
    assert a - a == AllocationData()
    assert a + AllocationData() == a


def test_allocation_data_add_is_elementwise():
    a = AllocationData(1, 2, 3, 4)
    total = a + a
    for cost_type in CostType:
        assert total.cost(cost_type) == 2 * a.cost(cost_type)


def test_allocation_compares_with_plain_costs():
    alloc = Allocation(allocations=3, peak=2, trace_index=7)
    assert alloc == AllocationData(allocations=3, peak=2)
    assert AllocationData(allocations=3, peak=2) == alloc
    assert alloc != Allocation(allocations=3, peak=2, trace_index=8)


def test_allocation_sum_is_allocation_data():
    total = Allocation(allocations=1, trace_index=1) + Allocation(allocations=2, trace_index=2)
    assert total == AllocationData(allocations=3)
    assert not isinstance(total, Allocation)


def test_instruction_pointer_symbol():
    ip = InstructionPointer(instruction_pointer=0x1234, module_index=3, frame=Frame(function_index=9))
    assert ip.symbol() == Symbol(function_id=9, module_id=3)


def test_comparison_without_address():
    a = InstructionPointer(instruction_pointer=1, module_index=2, frame=Frame(4, 5, 6))
    b = InstructionPointer(instruction_pointer=99, module_index=2, frame=Frame(4, 5, 6))
    c = InstructionPointer(instruction_pointer=1, module_index=2, frame=Frame(5, 5, 6))
    assert a.equal_without_address(b)
    assert not a.compare_without_address(b)
    assert not b.compare_without_address(a)
    assert not a.equal_without_address(c)
    assert a.compare_without_address(c) != c.compare_without_address(a)


def test_comparison_considers_inlined_frames():
    a = InstructionPointer(module_index=1, frame=Frame(1), inlined=(Frame(2),))
    b = InstructionPointer(module_index=1, frame=Frame(1), inlined=(Frame(2), Frame(3)))
    assert not a.equal_without_address(b)
    assert a.compare_without_address(b)


def make_data():
    return TraceData(
        strings=["main", "alloc", "libfoo.so"],
        traces=[TraceNode(ip_index=1, parent_index=0), TraceNode(ip_index=2, parent_index=1)],
        instruction_pointers=[
            InstructionPointer(1, 3, Frame(1)),
            InstructionPointer(2, 3, Frame(2)),
        ],
        stop_indices={1},
    )


def test_trace_data_lookups():
    data = make_data()
    assert data.stringify(1) == "main"
    assert data.stringify(3) == "libfoo.so"
    assert data.find_trace(2) == TraceNode(ip_index=2, parent_index=1)
    assert data.find_ip(2).frame.function_index == 2


def test_trace_data_zero_index_is_empty():
    data = make_data()
    assert data.stringify(0) == ""
    assert data.find_trace(0) == TraceNode()
    assert data.find_ip(0) == InstructionPointer()


@pytest.mark.parametrize("index", [4, -1])
def test_trace_data_out_of_range(index):
    data = make_data()
    with pytest.raises(IndexError):
        data.stringify(index)


def test_trace_data_out_of_range_trace_and_ip():
    data = make_data()
    with pytest.raises(IndexError):
        data.find_trace(3)
    with pytest.raises(IndexError):
        data.find_ip(3)


def test_is_stop_index():
    data = make_data()
    assert data.is_stop_index(1)
    assert not data.is_stop_index(2)