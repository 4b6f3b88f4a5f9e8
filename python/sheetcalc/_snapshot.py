"""Snapshot (de)serialization and plain-text / xlsx export for a Grid.

A snapshot is the JSON-compatible document persisted by the external store::

    {
        "title": "Budget",
        "rows": 50,
        "cols": 26,
        "data": {
            "A1": {"value": "2", "formula": "", "format": {}},
            "A3": {"value": 5, "formula": "=SUM(A1:A2)", "format": {"type": "percent"}},
        },
    }
"""

from __future__ import annotations

import csv
import io
import json
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import IO, TYPE_CHECKING, Any

from openpyxl import Workbook

from sheetcalc._cell import Cell, NumberFormat, make_cell
from sheetcalc._config import GridConfig
from sheetcalc._utils import from_label, to_label
from sheetcalc.calc._functions import ERROR, CellError
from sheetcalc.calc._parser import AGGREGATE_CALL_RE, normalize

if TYPE_CHECKING:
    from sheetcalc._grid import Grid

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """Raised when a snapshot cannot be restored."""


@dataclass(frozen=True)
class ParsedSnapshot:
    """A validated snapshot, ready to be swapped into a Grid."""

    title: str
    rows: int
    cols: int
    cells: dict[str, Cell]


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


def _stored_value(value: Any) -> Any:
    if isinstance(value, CellError):
        return str(value)
    return value


def build_snapshot(grid: Grid) -> dict[str, Any]:
    """Serializable snapshot of *grid*; only stored cells are included."""
    data: dict[str, Any] = {}
    for label, cell in grid.cells():
        data[label] = {
            "value": _stored_value(cell.value),
            "formula": cell.formula or "",
            "format": {} if cell.format is NumberFormat.NONE else {"type": cell.format.value},
        }
    return {"title": grid.title, "rows": grid.rows, "cols": grid.cols, "data": data}


def _dimension(raw: Any, name: str, default: int) -> int:
    if isinstance(raw, bool) or (raw is not None and not isinstance(raw, int)):
        raise SnapshotError(f"Snapshot field {name!r} must be an integer, got {raw!r}")
    # None and 0 both mean "not set"
    return raw or default


def _parse_cell(label: Any, record: Any, config: GridConfig) -> Cell | None:
    if not isinstance(label, str) or from_label(label) is None:
        raise SnapshotError(f"Invalid cell label in snapshot: {label!r}")
    if not isinstance(record, Mapping):
        raise SnapshotError(f"Cell {label} must be a mapping, got {type(record).__name__}")

    value = record.get("value")
    if value is None:
        value = ""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise SnapshotError(f"Cell {label} has an unsupported value: {value!r}")

    formula = record.get("formula") or None
    if formula is not None and not isinstance(formula, str):
        raise SnapshotError(f"Cell {label} has a non-text formula: {formula!r}")

    fmt_record = record.get("format") or {}
    if not isinstance(fmt_record, Mapping):
        raise SnapshotError(f"Cell {label} has a malformed format: {fmt_record!r}")
    try:
        fmt = NumberFormat.parse(fmt_record.get("type"))
    except ValueError as e:
        raise SnapshotError(f"Cell {label}: {e}") from e

    if formula is not None and value == str(ERROR):
        value = ERROR
    if value == "" and formula is None and fmt is NumberFormat.NONE:
        return None
    return make_cell(value, formula, fmt, config)


def parse_snapshot(snapshot: Any, config: GridConfig) -> ParsedSnapshot:
    """Validate *snapshot* without touching any grid.

    Missing fields take their defaults and dimensions are clamped to the
    configured bounds. Anything else malformed raises SnapshotError.
    """
    if not isinstance(snapshot, Mapping):
        raise SnapshotError(f"Snapshot must be a mapping, got {type(snapshot).__name__}")

    title = snapshot.get("title") or config.default_title
    if not isinstance(title, str):
        raise SnapshotError(f"Snapshot title must be text, got {title!r}")

    rows = _dimension(snapshot.get("rows"), "rows", config.default_rows)
    cols = _dimension(snapshot.get("cols"), "cols", config.default_cols)

    data = snapshot.get("data") or {}
    if not isinstance(data, Mapping):
        raise SnapshotError(f"Snapshot data must be a mapping, got {type(data).__name__}")

    cells: dict[str, Cell] = {}
    for label, record in data.items():
        cell = _parse_cell(label, record, config)
        if cell is not None:
            cells[label] = cell

    clamped_rows, clamped_cols = config.clamp_rows(rows), config.clamp_cols(cols)
    if (clamped_rows, clamped_cols) != (rows, cols):
        logger.debug(
            "Clamped snapshot dimensions %dx%d to %dx%d", rows, cols, clamped_rows, clamped_cols
        )
    return ParsedSnapshot(title=title, rows=clamped_rows, cols=clamped_cols, cells=cells)


def dumps(grid: Grid) -> str:
    return json.dumps(build_snapshot(grid), ensure_ascii=False)


def loads(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise SnapshotError(f"Snapshot is not valid JSON: {e}") from e


# ---------------------------------------------------------------------------
# CSV export
# ---------------------------------------------------------------------------


def write_csv(grid: Grid, delimiter: str | None = None) -> str:
    """Row-major export of raw cell values; every field is quoted."""
    buf = io.StringIO()
    writer = csv.writer(
        buf,
        delimiter=delimiter or grid.config.csv_delimiter,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
    )
    for r in range(grid.rows):
        writer.writerow(str(grid.get(to_label(r, c)).value) for c in range(grid.cols))
    return buf.getvalue()


# ---------------------------------------------------------------------------
# XLSX export
# ---------------------------------------------------------------------------

_NUMERIC_TEXT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_TEXT_RE = re.compile(r"[+-]?\d+")
_INVALID_TITLE_RE = re.compile(r"[\[\]:*?/\\]")

_EXCEL_NUMBER_FORMATS = {
    NumberFormat.NUMBER: "#,##0.00",
    NumberFormat.CURRENCY: '#,##0.00 "kr"',
    NumberFormat.PERCENT: "0.0%",
}

_EXCEL_FUNCTION_NAMES = {"AVG": "AVERAGE"}


def _sheet_title(title: str) -> str:
    clean = _INVALID_TITLE_RE.sub("", title).strip()[:31]
    return clean or "Sheet"


def _excel_formula(formula: str, marker: str) -> str:
    body = AGGREGATE_CALL_RE.sub(
        lambda m: f"{_EXCEL_FUNCTION_NAMES.get(m.group(1), m.group(1))}({m.group(2)}:{m.group(3)})",
        normalize(formula, marker),
    )
    return f"={body}"


def _excel_value(value: Any) -> Any:
    if isinstance(value, CellError):
        return str(value)
    if isinstance(value, str) and _NUMERIC_TEXT_RE.fullmatch(value.strip()):
        text = value.strip()
        if _INTEGER_TEXT_RE.fullmatch(text):
            return int(text)
        return float(text)
    return value


def write_xlsx(grid: Grid, target: str | os.PathLike[str] | IO[bytes]) -> None:
    """Write the visible part of *grid* to an .xlsx workbook with openpyxl."""
    wb = Workbook()
    ws = wb.active
    ws.title = _sheet_title(grid.title)

    for label, cell in grid.cells():
        pos = from_label(label)
        if pos is None or pos[0] >= grid.rows or pos[1] >= grid.cols:
            continue
        target_cell = ws.cell(row=pos[0] + 1, column=pos[1] + 1)
        if cell.formula is not None:
            target_cell.value = _excel_formula(cell.formula, grid.config.formula_marker)
        elif cell.value != "":
            target_cell.value = _excel_value(cell.value)
        if cell.format in _EXCEL_NUMBER_FORMATS:
            target_cell.number_format = _EXCEL_NUMBER_FORMATS[cell.format]

    if isinstance(target, os.PathLike):
        target = os.fspath(target)
    wb.save(target)
