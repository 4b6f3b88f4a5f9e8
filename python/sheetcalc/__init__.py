"""sheetcalc: cell model, formula language and recalculation for a spreadsheet.

Usage::

    from sheetcalc import Grid

    grid = Grid("Budget")
    grid["A1"] = "2"
    grid["A2"] = "3"
    grid["A3"] = "=SUM(A1:A2)"
    print(grid["A3"].value)          # 5

    grid.set_format("A3", "percent")
    print(grid.display("A3"))        # 500.0%

    doc = grid.snapshot()            # persist with any document store
    restored = Grid.from_snapshot(doc)
"""

from sheetcalc._cell import Cell, NumberFormat, format_value
from sheetcalc._config import DEFAULT_CONFIG, GridConfig, RecalcMode
from sheetcalc._grid import Grid, SelectionStats
from sheetcalc._snapshot import SnapshotError
from sheetcalc._utils import column_index, column_letter, from_label, to_label
from sheetcalc.calc import ERROR, CellDelta, CellError, RecalcResult

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Cell",
    "CellDelta",
    "CellError",
    "DEFAULT_CONFIG",
    "ERROR",
    "Grid",
    "GridConfig",
    "NumberFormat",
    "RecalcMode",
    "RecalcResult",
    "SelectionStats",
    "SnapshotError",
    "column_index",
    "column_letter",
    "format_value",
    "from_label",
    "to_label",
]
