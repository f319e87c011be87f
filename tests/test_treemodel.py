import pytest

from heapview.analysis import RowData, TreeData
from heapview.model import AllocationData, Symbol
from heapview.treemodel import NUM_COLUMNS, Column, Role, SortOrder, TreeModel
from heapview.util import format_bytes

STRINGS = ("main", "/usr/lib/libapp.so", "alloc<int>", "helper", "other")
MAIN = Symbol(1, 2)
ALLOC = Symbol(3, 2)
HELPER = Symbol(4, 2)
OTHER = Symbol(5, 2)


def make_row(symbol, cost, children=()):
    row = RowData(cost=cost, symbol=symbol, children=list(children))
    for child in row.children:
        child.parent = row
    return row


@pytest.fixture
def tree():
    main = make_row(MAIN, AllocationData(allocations=6, temporary=1, leaked=60, peak=120))
    helper = make_row(HELPER, AllocationData(allocations=4, temporary=1, leaked=40, peak=80))
    top = make_row(ALLOC, AllocationData(allocations=10, temporary=2, leaked=100, peak=2000), [main, helper])
    negative = make_row(OTHER, AllocationData(allocations=-3, temporary=-1, leaked=-50, peak=-70))
    return TreeData(rows=[top, negative], strings=STRINGS)


@pytest.fixture
def model(tree):
    m = TreeModel()
    m.reset_data(tree)
    m.set_summary(AllocationData(allocations=20, temporary=4, leaked=200, peak=4000))
    return m


def test_column_count():
    assert TreeModel().column_count() == NUM_COLUMNS == len(Column)


def test_header_labels_and_sort_order():
    model = TreeModel()
    assert model.header_data(Column.ALLOCATIONS) == "Allocations"
    assert model.header_data(Column.LOCATION, Role.DISPLAY) == "Location"
    assert model.header_data(Column.PEAK, Role.INITIAL_SORT_ORDER) is SortOrder.DESCENDING
    assert model.header_data(Column.LOCATION, Role.INITIAL_SORT_ORDER) is None
    assert "temporary allocations" in model.header_data(Column.TEMPORARY, Role.TOOLTIP)


def test_header_out_of_range():
    model = TreeModel()
    assert model.header_data(NUM_COLUMNS) is None
    assert model.header_data(-1) is None


def test_display_values(model, tree):
    top = tree.rows[0]
    assert model.data(top, Column.ALLOCATIONS) == top.cost.allocations
    assert model.data(top, Column.TEMPORARY) == top.cost.temporary
    assert model.data(top, Column.PEAK) == format_bytes(top.cost.peak)
    assert model.data(top, Column.LEAKED) == format_bytes(top.cost.leaked)
    assert model.data(top, Column.LOCATION) == "alloc<int> in libapp.so"


def test_sort_role_uses_absolute_values(model, tree):
    negative = tree.rows[1]
    assert model.data(negative, Column.ALLOCATIONS) == negative.cost.allocations
    assert model.data(negative, Column.ALLOCATIONS, Role.SORT) == -negative.cost.allocations
    assert model.data(negative, Column.PEAK, Role.SORT) == -negative.cost.peak


def test_max_cost_role_uses_summary(model):
    model.set_summary(AllocationData(peak=-500, leaked=30))
    assert model.data(None, Column.PEAK, Role.MAX_COST) == 500
    assert model.data(None, Column.LEAKED, Role.MAX_COST) == 30


def test_symbol_and_result_data_roles(model, tree):
    child = tree.rows[0].children[1]
    assert model.data(child, Column.LOCATION, Role.SYMBOL) == HELPER
    assert model.data(child, Column.LOCATION, Role.RESULT_DATA) == STRINGS


def test_invalid_column_and_missing_row(model, tree):
    assert model.data(tree.rows[0], NUM_COLUMNS) is None
    assert model.data(None, Column.PEAK, Role.DISPLAY) is None


def test_rows_and_counts(model, tree):
    top = tree.rows[0]
    assert model.row_count() == len(tree.rows)
    assert model.row_count(top) == len(top.children)
    assert model.rows(top)[0].symbol == MAIN
    assert model.row_of(top.children[1]) == 1
    assert model.row_of(tree.rows[1]) == 1


def test_row_of_foreign_row(model):
    with pytest.raises(ValueError):
        model.row_of(RowData(symbol=MAIN))


def test_tooltip_with_several_callers(model, tree):
    tooltip = model.data(tree.rows[0], Column.PEAK, Role.TOOLTIP)
    assert tooltip.startswith("<qt><pre")
    assert tooltip.endswith("</pre></qt>")
    assert "alloc&lt;int&gt;" in tooltip
    assert "peak contribution: " + format_bytes(2000) in tooltip
    assert "called from 2 locations" in tooltip
    assert "backtrace:" not in tooltip


def test_tooltip_with_single_caller_chain():
    leaf = make_row(MAIN, AllocationData(allocations=1))
    top = make_row(HELPER, AllocationData(allocations=1), [leaf])
    model = TreeModel()
    model.reset_data(TreeData(rows=[top], strings=STRINGS))
    tooltip = model.data(top, Column.LOCATION, Role.TOOLTIP)
    assert "backtrace:" in tooltip
    assert "called from" not in tooltip
    assert tooltip.count("in libapp.so (/usr/lib/libapp.so)") == 2


def test_clear_data(model):
    model.clear_data()
    assert model.row_count() == 0
    assert model.max_cost == AllocationData()


def test_reset_listener_called_once_per_reset(tree):
    model = TreeModel()
    calls = []

    def listener():
        calls.append(model.row_count())

    model.add_reset_listener(listener)
    model.add_reset_listener(listener)
    model.reset_data(tree)
    model.clear_data()
    assert calls == [len(tree.rows), 0]