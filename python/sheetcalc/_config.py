"""Grid configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RecalcMode(str, Enum):
    """How formula cells are swept after an edit."""

    # One pass in store insertion order. Chains defined out of order
    # settle over several edits.
    INSERTION_ORDER = "insertion_order"
    # Dependency-ordered pass; cells on a cycle evaluate to #ERROR.
    TOPOLOGICAL = "topological"


@dataclass(frozen=True)
class GridConfig:
    """Bounds, locale conventions and engine options for a :class:`Grid`.

    Defaults follow the Swedish locale:
    ``1 234,50`` for numbers, ``1 234,50 kr`` for currency and U+2212 as
    the minus sign of both.
    """

    default_rows: int = 50
    default_cols: int = 26
    min_rows: int = 1
    min_cols: int = 1
    max_rows: int = 1000
    max_cols: int = 52
    default_title: str = "Untitled spreadsheet"
    formula_marker: str = "="
    recalc_mode: RecalcMode = RecalcMode.INSERTION_ORDER
    decimal_separator: str = ","
    group_separator: str = "\u00a0"
    minus_sign: str = "\u2212"
    currency_pattern: str = "{amount}\u00a0kr"
    csv_delimiter: str = ";"

    def __post_init__(self) -> None:
        if self.min_rows < 1 or self.min_cols < 1:
            raise ValueError("Minimum grid dimensions must be at least 1")
        if self.max_rows < self.min_rows or self.max_cols < self.min_cols:
            raise ValueError("Maximum grid dimensions must not be below the minimum")
        if len(self.formula_marker) != 1:
            raise ValueError("formula_marker must be a single character")
        if "{amount}" not in self.currency_pattern:
            raise ValueError("currency_pattern must contain '{amount}'")

    def clamp_rows(self, rows: int) -> int:
        return max(self.min_rows, min(rows, self.max_rows))

    def clamp_cols(self, cols: int) -> int:
        return max(self.min_cols, min(cols, self.max_cols))


DEFAULT_CONFIG = GridConfig()
