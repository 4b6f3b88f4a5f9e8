"""Grid: the sparse cell store, the recalculation engine and grid dimensions."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import IO, Any

from sheetcalc import _snapshot
from sheetcalc._cell import Cell, NumberFormat, make_cell
from sheetcalc._config import DEFAULT_CONFIG, GridConfig, RecalcMode
from sheetcalc._utils import from_label
from sheetcalc.calc._evaluator import FormulaEvaluator
from sheetcalc.calc._functions import ERROR, FunctionRegistry, aggregate_range, aggregate_values
from sheetcalc.calc._graph import DependencyGraph
from sheetcalc.calc._parser import normalize
from sheetcalc.calc._protocol import CellDelta, CellValue, RecalcResult

logger = logging.getLogger(__name__)

_EMPTY = Cell()


@dataclass(frozen=True)
class SelectionStats:
    """Ad-hoc statistics over the numeric cells of a selection."""

    sum: float
    average: float
    count: int


def _values_differ(a: Any, b: Any, tolerance: float = 1e-10) -> bool:
    """Check if two values differ beyond tolerance."""
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return abs(float(a) - float(b)) > tolerance
    return type(a) is not type(b) or a != b


class Grid:
    """A single sheet of cells addressed by labels like ``"B12"``.

    Usage::

        grid = Grid()
        grid["A1"] = "2"
        grid["A2"] = "3"
        grid["A3"] = "=SUM(A1:A2)"
        grid["A3"].value          # 5
        grid.set_format("A3", "currency")
        grid.display("A3")        # "5,00 kr"

    Every public mutation leaves the store consistent: formula cells hold
    the evaluator's output for their formula after the recalculation pass.
    """

    __slots__ = ("_config", "_title", "_rows", "_cols", "_cells", "_functions", "_evaluator")

    def __init__(
        self,
        title: str | None = None,
        rows: int | None = None,
        cols: int | None = None,
        config: GridConfig | None = None,
        functions: FunctionRegistry | None = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._title = title or self._config.default_title
        self._rows = self._config.clamp_rows(self._config.default_rows if rows is None else rows)
        self._cols = self._config.clamp_cols(self._config.default_cols if cols is None else cols)
        # label -> Cell, insertion ordered; only non-empty cells are stored
        self._cells: dict[str, Cell] = {}
        self._functions = functions or FunctionRegistry()
        self._evaluator = FormulaEvaluator(self._lookup, self._functions)

    @property
    def config(self) -> GridConfig:
        return self._config

    @property
    def title(self) -> str:
        return self._title

    @title.setter
    def title(self, value: str) -> None:
        self._title = value or self._config.default_title

    # ------------------------------------------------------------------
    # Dimensions
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def dimensions(self) -> tuple[int, int]:
        return self._rows, self._cols

    def resize(self, rows: int | None = None, cols: int | None = None) -> tuple[int, int]:
        """Set the row and/or column count, clamped to the configured bounds.

        Shrinking keeps the cells that fall outside the grid; they come back
        when it grows again.
        """
        if rows is not None:
            self._rows = self._config.clamp_rows(rows)
            if self._rows != rows:
                logger.debug("Clamped row count %d to %d", rows, self._rows)
        if cols is not None:
            self._cols = self._config.clamp_cols(cols)
            if self._cols != cols:
                logger.debug("Clamped column count %d to %d", cols, self._cols)
        return self.dimensions

    def add_row(self) -> int:
        return self.resize(rows=self._rows + 1)[0]

    def delete_row(self) -> int:
        return self.resize(rows=self._rows - 1)[0]

    def add_column(self) -> int:
        return self.resize(cols=self._cols + 1)[1]

    def delete_column(self) -> int:
        return self.resize(cols=self._cols - 1)[1]

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def __getitem__(self, label: str) -> Cell:
        """``grid['A1']`` -> Cell."""
        return self.get(label)

    def __setitem__(self, label: str, raw: Any) -> None:
        """``grid['A1'] = '=A2*2'`` - shorthand for :meth:`set`."""
        self.set(label, raw)

    def __delitem__(self, label: str) -> None:
        self.clear(label)

    def __contains__(self, label: object) -> bool:
        return label in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._cells))

    def get(self, label: str) -> Cell:
        """Stored cell at *label*, or an empty Cell."""
        return self._cells.get(label, _EMPTY)

    def value(self, label: str) -> CellValue:
        return self.get(label).value

    def display(self, label: str) -> str:
        return self.get(label).display_value

    def cells(self) -> Iterator[tuple[str, Cell]]:
        """Stored ``(label, cell)`` pairs in insertion order."""
        return iter(list(self._cells.items()))

    def formula_cells(self) -> list[str]:
        return [label for label, cell in self._cells.items() if cell.formula is not None]

    def _lookup(self, label: str) -> CellValue | None:
        cell = self._cells.get(label)
        return None if cell is None else cell.value

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set(self, label: str, raw: Any) -> RecalcResult | None:
        """Store raw user input at *label* and recalculate.

        Input starting with the formula marker is kept as the cell's formula
        and evaluated; anything else is stored verbatim as text. Empty input
        clears the cell. Invalid labels are ignored and return None.
        """
        if from_label(label) is None:
            logger.debug("Ignoring edit of invalid cell label %r", label)
            return None
        text = "" if raw is None else str(raw)
        if not text:
            return self.clear(label)

        fmt = self._cells.get(label, _EMPTY).format
        marker = self._config.formula_marker
        if text.startswith(marker):
            value = self._evaluator.evaluate(normalize(text, marker), label)
            self._cells[label] = make_cell(value, text, fmt, self._config)
        else:
            self._cells[label] = make_cell(text, None, fmt, self._config)
        return self.recalculate()

    def clear(self, label: str) -> RecalcResult | None:
        """Remove the cell at *label* entirely and recalculate."""
        if from_label(label) is None:
            logger.debug("Ignoring clear of invalid cell label %r", label)
            return None
        self._cells.pop(label, None)
        return self.recalculate()

    def set_format(self, label: str, kind: NumberFormat | str | None) -> Cell | None:
        """Change only the number format of *label*, creating the cell if needed."""
        fmt = NumberFormat.parse(kind)
        if from_label(label) is None:
            logger.debug("Ignoring format of invalid cell label %r", label)
            return None
        current = self._cells.get(label, _EMPTY)
        cell = make_cell(current.value, current.formula, fmt, self._config)
        self._cells[label] = cell
        return cell

    # ------------------------------------------------------------------
    # Recalculation
    # ------------------------------------------------------------------

    def recalculate(self) -> RecalcResult:
        """Re-evaluate every formula cell once.

        In insertion-order mode the pass follows store order, so a formula
        reading a formula stored after it sees that cell's previous value
        until the next pass. Topological mode orders by dependencies and
        marks cells on or behind a cycle with #ERROR.
        """
        cyclic: list[str] = []
        if self._config.recalc_mode is RecalcMode.TOPOLOGICAL:
            graph = DependencyGraph.from_formulas(
                (
                    (label, cell.formula)
                    for label, cell in self._cells.items()
                    if cell.formula is not None
                ),
                self._config.formula_marker,
            )
            order, cyclic = graph.partition()
            if cyclic:
                logger.debug("Circular references: %s", cyclic)
        else:
            order = self.formula_cells()

        marker = self._config.formula_marker
        deltas: list[CellDelta] = []
        for label in order:
            formula = self._cells[label].formula or ""
            value = self._evaluator.evaluate(normalize(formula, marker), label)
            delta = self._store_result(label, value)
            if delta is not None:
                deltas.append(delta)
        for label in cyclic:
            delta = self._store_result(label, ERROR)
            if delta is not None:
                deltas.append(delta)

        return RecalcResult(
            deltas=tuple(deltas),
            evaluated_cells=len(order) + len(cyclic),
            cyclic_cells=tuple(cyclic),
        )

    def _store_result(self, label: str, value: CellValue) -> CellDelta | None:
        old = self._cells[label]
        self._cells[label] = make_cell(value, old.formula, old.format, self._config)
        if _values_differ(old.value, value):
            return CellDelta(label=label, old_value=old.value, new_value=value, formula=old.formula)
        return None

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def aggregate(self, kind: str, start: str, end: str) -> float:
        """SUM/AVG/AVERAGE/MIN/MAX/COUNT over the rectangle *start*:*end*."""
        return aggregate_range(kind, start, end, self._lookup, self._functions)

    def selection_stats(self, primary: str | None, others: Iterable[str] = ()) -> SelectionStats:
        """Sum, average and count of the numeric cells in a selection.

        Each label counts once, even when the primary cell is also part of
        *others*.
        """
        labels = dict.fromkeys(label for label in (primary, *others) if label is not None)
        values = [self._lookup(label) for label in labels]
        return SelectionStats(
            sum=aggregate_values("SUM", values, self._functions),
            average=aggregate_values("AVG", values, self._functions),
            count=int(aggregate_values("COUNT", values, self._functions)),
        )

    # ------------------------------------------------------------------
    # Snapshot and export
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        """JSON-compatible snapshot: title, rows, cols and the stored cells."""
        return _snapshot.build_snapshot(self)

    def restore(self, snapshot: Mapping[str, Any] | str | bytes) -> None:
        """Replace the grid contents with *snapshot*.

        Accepts a snapshot mapping or its JSON text. Display values are
        re-rendered; formulas are not re-evaluated. On SnapshotError the
        grid is left untouched.
        """
        if isinstance(snapshot, (str, bytes)):
            snapshot = _snapshot.loads(snapshot)
        parsed = _snapshot.parse_snapshot(snapshot, self._config)
        self._title = parsed.title
        self._rows = parsed.rows
        self._cols = parsed.cols
        self._cells = dict(parsed.cells)
        logger.debug(
            "Restored %r (%dx%d, %d cells)", self._title, self._rows, self._cols, len(self._cells)
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Mapping[str, Any] | str | bytes,
        config: GridConfig | None = None,
    ) -> Grid:
        grid = cls(config=config)
        grid.restore(snapshot)
        return grid

    def dumps(self) -> str:
        return _snapshot.dumps(self)

    def to_csv(self, delimiter: str | None = None) -> str:
        return _snapshot.write_csv(self, delimiter)

    def to_xlsx(self, target: str | os.PathLike[str] | IO[bytes]) -> None:
        _snapshot.write_xlsx(self, target)

    def __repr__(self) -> str:
        return f"<Grid {self._title!r} {self._rows}x{self._cols} cells={len(self._cells)}>"
