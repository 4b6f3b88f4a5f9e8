"""Recalculation result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass

from sheetcalc.calc._functions import CellError

CellValue = int | float | str | CellError


@dataclass(frozen=True)
class CellDelta:
    """A single cell's value change from recalculation."""

    label: str
    old_value: CellValue
    new_value: CellValue
    formula: str | None = None  # the formula that produced new_value


@dataclass(frozen=True)
class RecalcResult:
    """Result of one recalculation pass over the formula cells."""

    deltas: tuple[CellDelta, ...]  # cells that changed
    evaluated_cells: int = 0
    cyclic_cells: tuple[str, ...] = ()  # topological mode only

    @property
    def changed_cells(self) -> list[str]:
        return [d.label for d in self.deltas]
