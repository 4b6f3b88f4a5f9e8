"""Error marker, numeric coercion and range-aggregate builtins."""

from __future__ import annotations

import re
from typing import Any, Callable

from sheetcalc.calc._parser import aggregate_call_pattern, expand_range

# ---------------------------------------------------------------------------
# CellError: error values stored in place of a formula result
# ---------------------------------------------------------------------------


class CellError:
    """Error value produced by a failed formula evaluation.

    Use ``CellError.of(code)`` to get a cached singleton for each error code.
    Errors compare equal to their string code (``ERROR == "#ERROR"``).
    """

    __slots__ = ("code",)
    _cache: dict[str, CellError] = {}

    def __init__(self, code: str) -> None:
        self.code = code

    @classmethod
    def of(cls, code: str) -> CellError:
        canon = code.upper()
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.code == other.code
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


ERROR = CellError.of("#ERROR")


def is_error(val: Any) -> bool:
    """Return True if *val* is a CellError instance."""
    return isinstance(val, CellError)


# ---------------------------------------------------------------------------
# Numeric coercion
# ---------------------------------------------------------------------------

# Leading decimal number, as a lenient parseFloat would read it ("12 kr" -> 12).
_LEADING_NUMBER_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def to_number(val: Any) -> float | None:
    """Read *val* as a number, or None when it is not numeric.

    Text is parsed by its leading decimal number. Empty cells, booleans and
    error values are never numeric.
    """
    if val is None or isinstance(val, (bool, CellError)):
        return None
    if isinstance(val, (int, float)):
        return float(val)
    if isinstance(val, str):
        m = _LEADING_NUMBER_RE.match(val)
        if m:
            return float(m.group(1))
    return None


def _coerce_numeric(values: list[Any]) -> list[float]:
    """Keep the numeric values, skipping empty, text and error cells."""
    result: list[float] = []
    for v in values:
        num = to_number(v)
        if num is not None:
            result.append(num)
    return result


# ---------------------------------------------------------------------------
# Builtin aggregates. Each takes a list of cell values. An empty set of
# numeric values yields 0, never an error.
# ---------------------------------------------------------------------------


def _builtin_sum(values: list[Any]) -> float:
    return sum(_coerce_numeric(values))


def _builtin_average(values: list[Any]) -> float:
    nums = _coerce_numeric(values)
    if not nums:
        return 0.0
    return sum(nums) / len(nums)


def _builtin_min(values: list[Any]) -> float:
    nums = _coerce_numeric(values)
    if not nums:
        return 0.0
    return min(nums)


def _builtin_max(values: list[Any]) -> float:
    nums = _coerce_numeric(values)
    if not nums:
        return 0.0
    return max(nums)


def _builtin_count(values: list[Any]) -> float:
    """COUNT - counts numeric values only, not the size of the range."""
    return float(len(_coerce_numeric(values)))


_BUILTINS: dict[str, Callable[[list[Any]], float]] = {
    "SUM": _builtin_sum,
    "AVG": _builtin_average,
    "AVERAGE": _builtin_average,
    "MIN": _builtin_min,
    "MAX": _builtin_max,
    "COUNT": _builtin_count,
}

AGGREGATE_FUNCTIONS: frozenset[str] = frozenset(_BUILTINS)

# Aggregate names may not contain digits, so they never read as cell labels.
_NAME_RE = re.compile(r"[A-Z][A-Z_]*")


class FunctionRegistry:
    """Registry of range-aggregate implementations.

    Starts with the builtins and can be extended with custom aggregates.
    """

    def __init__(self) -> None:
        self._functions: dict[str, Callable[[list[Any]], float]] = dict(_BUILTINS)
        self._pattern: re.Pattern[str] | None = None

    def register(self, name: str, func: Callable[[list[Any]], float]) -> None:
        """Add or replace an aggregate, callable in formulas as ``NAME(A1:B2)``."""
        key = name.upper()
        if not _NAME_RE.fullmatch(key):
            raise ValueError(f"Invalid aggregate name: {name!r}")
        self._functions[key] = func
        self._pattern = None

    def get(self, name: str) -> Callable[[list[Any]], float] | None:
        return self._functions.get(name.upper())

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())

    def call_pattern(self) -> re.Pattern[str]:
        """Regex matching a call to any registered aggregate."""
        if self._pattern is None:
            self._pattern = aggregate_call_pattern(self.supported_functions)
        return self._pattern


_DEFAULT_REGISTRY = FunctionRegistry()


def aggregate_values(
    kind: str,
    values: list[Any],
    registry: FunctionRegistry | None = None,
) -> float:
    """Apply the aggregate *kind* (SUM, AVG, ...) to a list of cell values."""
    func = (registry or _DEFAULT_REGISTRY).get(kind)
    if func is None:
        raise ValueError(f"Unsupported aggregate: {kind!r}")
    return func(values)


def aggregate_range(
    kind: str,
    start: str,
    end: str,
    lookup: Callable[[str], Any],
    registry: FunctionRegistry | None = None,
) -> float:
    """Aggregate the values of the rectangle between *start* and *end*.

    *lookup* maps a cell label to its stored value (None when empty).
    Malformed corner labels give an empty range.
    """
    try:
        labels = expand_range(start, end)
    except ValueError:
        labels = []
    return aggregate_values(kind, [lookup(label) for label in labels], registry)
