"""Cell records and display formatting."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal
from enum import Enum
from typing import Any

from sheetcalc._config import DEFAULT_CONFIG, GridConfig
from sheetcalc.calc._functions import to_number
from sheetcalc.calc._protocol import CellValue


class NumberFormat(str, Enum):
    """Presentational number format of a cell. Never affects its value."""

    NONE = "none"
    NUMBER = "number"
    CURRENCY = "currency"
    PERCENT = "percent"

    @classmethod
    def parse(cls, kind: Any) -> NumberFormat:
        """Accept a NumberFormat, its string name, or None/"" for NONE."""
        if isinstance(kind, cls):
            return kind
        if kind is None or kind == "":
            return cls.NONE
        if isinstance(kind, str):
            try:
                return cls(kind.lower())
            except ValueError:
                pass
        raise ValueError(f"Unknown number format: {kind!r}")


@dataclass(frozen=True)
class Cell:
    """A stored cell. Empty cells are never stored; ``Cell()`` stands in."""

    value: CellValue = ""
    formula: str | None = None
    format: NumberFormat = NumberFormat.NONE
    display_value: str = ""

    @property
    def is_formula(self) -> bool:
        return self.formula is not None

    @property
    def is_empty(self) -> bool:
        return self.value == "" and self.formula is None and self.format is NumberFormat.NONE


def make_cell(
    value: CellValue,
    formula: str | None = None,
    fmt: NumberFormat = NumberFormat.NONE,
    config: GridConfig = DEFAULT_CONFIG,
) -> Cell:
    """Build a Cell with its display value rendered."""
    return Cell(
        value=value,
        formula=formula,
        format=fmt,
        display_value=format_value(value, fmt, config),
    )


# Wide enough to quantize any finite float
_CONTEXT = Context(prec=400)
_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")


def _group_decimal(num: float, config: GridConfig) -> str:
    """Two fraction digits with the configured separators (1 234,50).

    Rounds the shortest decimal form of *num* half away from zero, so
    0.125 renders as 0,13.
    """
    amount = Decimal(repr(num)).quantize(_CENTS, rounding=ROUND_HALF_UP, context=_CONTEXT)
    text = f"{amount:,.2f}"
    return text.translate(
        str.maketrans(
            {
                ",": config.group_separator,
                ".": config.decimal_separator,
                "-": config.minus_sign,
            }
        )
    )


def format_value(
    value: Any,
    fmt: NumberFormat | str | None = NumberFormat.NONE,
    config: GridConfig = DEFAULT_CONFIG,
) -> str:
    """Render *value* for display under *fmt*.

    Values that do not read as a number are rendered unchanged whatever the
    format.
    """
    kind = NumberFormat.parse(fmt)
    text = "" if value is None else str(value)
    if kind is NumberFormat.NONE:
        return text

    num = to_number(value)
    if num is None or not math.isfinite(num):
        return text

    if kind is NumberFormat.NUMBER:
        return _group_decimal(num, config)
    if kind is NumberFormat.CURRENCY:
        return config.currency_pattern.format(amount=_group_decimal(num, config))
    scaled = num * 100
    if not math.isfinite(scaled):
        return text
    # The exact binary value is rounded, half away from zero
    percent = Decimal(scaled).quantize(_TENTHS, rounding=ROUND_HALF_UP, context=_CONTEXT)
    return f"{percent:f}%"
