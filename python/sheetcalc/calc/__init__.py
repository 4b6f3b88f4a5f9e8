"""sheetcalc.calc - Formula evaluation engine for sheetcalc grids."""

from sheetcalc.calc._evaluator import FormulaError, FormulaEvaluator, evaluate_arithmetic
from sheetcalc.calc._functions import (
    AGGREGATE_FUNCTIONS,
    ERROR,
    CellError,
    FunctionRegistry,
    aggregate_range,
    aggregate_values,
    is_error,
    to_number,
)
from sheetcalc.calc._graph import DependencyGraph
from sheetcalc.calc._parser import aggregate_call_pattern, all_references, expand_range
from sheetcalc.calc._protocol import CellDelta, CellValue, RecalcResult

__all__ = [
    "AGGREGATE_FUNCTIONS",
    "CellDelta",
    "CellError",
    "CellValue",
    "DependencyGraph",
    "ERROR",
    "FormulaError",
    "FormulaEvaluator",
    "FunctionRegistry",
    "RecalcResult",
    "aggregate_call_pattern",
    "aggregate_range",
    "aggregate_values",
    "all_references",
    "evaluate_arithmetic",
    "expand_range",
    "is_error",
    "to_number",
]
