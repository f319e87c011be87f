"""Show only the top-level rows that matter most for one cost type."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from heapview.analysis import RowData
from heapview.treemodel import Column, Role, TreeModel


class TopType(Enum):
    """The cost a top list is ranked by."""

    PEAK = "peak"
    LEAKED = "leaked"
    ALLOCATIONS = "allocations"
    TEMPORARY = "temporary"


_SOURCE_COLUMNS = {
    TopType.PEAK: Column.PEAK,
    TopType.LEAKED: Column.LEAKED,
    TopType.ALLOCATIONS: Column.ALLOCATIONS,
    TopType.TEMPORARY: Column.TEMPORARY,
}


class TopProxy:
    """Filters a tree model to top-level rows with at least 1% of the maximum cost.

    Rows with a zero cost are always hidden.
    """

    def __init__(self, top_type: TopType, model: Optional[TreeModel] = None) -> None:
        self.top_type = top_type
        self.model: Optional[TreeModel] = None
        self.cost_threshold = 0
        if model is not None:
            self.set_source_model(model)

    @property
    def column(self) -> Column:
        """The source column this proxy ranks by."""
        return _SOURCE_COLUMNS[self.top_type]

    def set_source_model(self, model: TreeModel) -> None:
        """Attach to ``model`` and follow its resets."""
        self.model = model
        model.add_reset_listener(self.update_cost_threshold)
        self.update_cost_threshold()

    def update_cost_threshold(self) -> None:
        """Recompute the threshold as 1% of the model's maximum cost."""
        if self.model is None or self.model.row_count() == 0:
            self.cost_threshold = 0
            return
        max_cost = self.model.data(None, self.column, Role.MAX_COST)
        self.cost_threshold = int(max_cost * 0.01)

    def accepts_column(self, column) -> bool:
        """True for the location column and the ranked cost column."""
        return column == Column.LOCATION or column == self.column

    def accepts_row(self, row: RowData, parent: Optional[RowData] = None) -> bool:
        """True for a top-level row whose cost is non-zero and reaches the threshold."""
        if parent is not None or self.model is None:
            return False
        cost = self.model.data(row, self.column, Role.SORT)
        return bool(cost) and cost >= self.cost_threshold

    def rows(self) -> list[RowData]:
        """The accepted top-level rows in model order."""
        if self.model is None:
            return []
        return [row for row in self.model.rows() if self.accepts_row(row, None)]