# heapview

`heapview` turns recorded heap allocation traces into views and reports. It
shows where a program allocates memory, where memory leaks, and which call
sites create short-lived temporary allocations.

## What it provides

- **Trace data model** (`heapview.model`): `Symbol`, `FileLine`, `Frame`,
  `InstructionPointer`, `TraceNode`, `Allocation`, `AllocationInfo`,
  `Suppression` and `TraceData`. Costs (allocations, temporary, leaked, peak)
  live in `AllocationData`, which supports `+` and `-`. `CostType.from_name`
  picks a cost by name: `allocations`, `temporary`, `leaked` or `peak`.
  `TraceData` addresses strings, trace nodes and instruction pointers by
  1-based indices; index 0 means "unknown".
- **Call trees** (`heapview.analysis`): `merge_allocations` builds the
  bottom-up tree (`TreeData` of `RowData`) plus per-location costs.
  `to_top_down_data` inverts that tree, and `to_caller_callee_data` gathers
  inclusive and self costs together with the callers and callees of every
  symbol. In diff mode, entries with no cost are dropped.
- **Tree views**:
  - `heapview.treemodel.TreeModel` presents a call tree as rows with location,
    peak, leaked, allocations and temporary columns. It gives display, sort,
    maximum-cost and tooltip data.
  - `heapview.treeproxy.TreeProxy` filters rows by a case-insensitive
    function or module substring. A row is kept when it matches or any of its
    descendants do.
  - `heapview.topproxy.TopProxy` keeps only top-level rows whose cost is
    non-zero and at least 1% of the maximum.
  - `heapview.stacksmodel.StacksModel` lists every stack from the top level
    down to each leaf below a row.
- **Suppressions table** (`heapview.suppressionsmodel.SuppressionsModel`):
  shows leak suppression rules with their match counts and suppressed bytes.
- **Reports**:
  - `heapview.printer.Printer` writes plain-text lists of the top allocators,
    peak consumers, leaks and temporary allocations, merged by call site or
    not. It can also filter allocations by a function in their backtrace,
    write flame-graph stack lines (`write_flamegraph`), write a
    `size<TAB>count` histogram from its `size_histogram` counter, and write a
    summary of totals.
  - `heapview.massif.MassifWriter` writes massif-compatible snapshot files.
- **Formatting helpers** (`heapview.util`): `format_time`, `format_bytes`,
  `format_cost_relative`, `basename`, `format_string`, `symbol_to_string`,
  `file_line_to_string`, `unresolved_function_name` and the tooltip builders
  `format_tooltip`, `format_symbol_tooltip` and `format_location_tooltip`.

## Installation

Install with pip. The package has no runtime dependencies. The `test` extra
pulls in pytest.

## Example

```python
from heapview.util import format_cost_relative, format_time

format_time(1500)                      # '01.500s'
format_cost_relative(25, 100, True)    # '25%'
format_cost_relative(25, 0, True)      # '' (no total, no percentage)
```

Build the call trees from trace data like this:

```python
from heapview.analysis import merge_allocations, to_caller_callee_data, to_top_down_data

bottom_up, caller_callee = merge_allocations(data, None)
top_down = to_top_down_data(bottom_up)
callers = to_caller_callee_data(bottom_up, caller_callee, False)
```

Write a report of the top allocation sites:

```python
import sys
from heapview.model import CostType
from heapview.printer import Printer

printer = Printer(data, peak_limit=10, sub_peak_limit=5)
printer.finalize()
printer.print_allocations(CostType.PEAK, None, None, sys.stdout)
printer.write_summary(sys.stdout)
```

Here `data` is a `heapview.model.TraceData` holding the allocations, backtrace
nodes, instruction pointers and strings of a recording.

## What it does not do

- It does not read trace files. You fill a `TraceData` yourself.
- It has no command-line program. Reports are written by calling `Printer`
  and `MassifWriter` from Python.
- It does not build a size histogram of allocations grouped into size buckets.
  `Printer.write_histogram` only writes out the counts you place in
  `Printer.size_histogram`.
- It does not load suppression files or match suppressions against
  allocations. It only displays `Suppression` records that you supply.

## Running the tests

Install the package with its `test` extra, then run pytest from the project
root.