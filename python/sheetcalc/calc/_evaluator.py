"""FormulaEvaluator: substitution passes followed by restricted arithmetic.

A formula is reduced in a fixed order:

1. uppercase the expression,
2. replace ``FN(START:END)`` range-aggregate calls by their result,
3. replace the remaining bare cell references by their numeric value,
4. evaluate what is left with a small parser that only knows decimal
   literals, ``+ - * /``, unary signs and parentheses.

Anything that fails along the way evaluates to :data:`ERROR`. There is no
call-out to a general-purpose interpreter.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Callable

from sheetcalc.calc._functions import ERROR, CellError, FunctionRegistry, aggregate_range, to_number
from sheetcalc.calc._parser import CELL_REF_RE

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\s*(?:((?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)|([-+*/()]))")


class FormulaError(ValueError):
    """Raised for a malformed arithmetic expression."""


# ---------------------------------------------------------------------------
# Arithmetic parser
# ---------------------------------------------------------------------------


def _tokenize(expr: str) -> list[str]:
    """Split *expr* into number and operator tokens."""
    tokens: list[str] = []
    text = expr.strip()
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise FormulaError(f"Unexpected character {text[pos]!r} in {expr!r}")
        tokens.append(m.group(1) or m.group(2))
        pos = m.end()
    return tokens


class _ArithmeticParser:
    """Evaluates a token list: ``+ - * /``, unary signs, parentheses, numbers.

    Operator chains are folded in loops; only parentheses nest.
    """

    __slots__ = ("tokens", "pos")

    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _eat(self) -> str:
        if self.pos >= len(self.tokens):
            raise FormulaError("Unexpected end of expression")
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _factor(self) -> float:
        negative = False
        while self._peek() in ('+', '-'):
            if self._eat() == '-':
                negative = not negative
        tok = self._eat()
        if tok == '(':
            val = self._expr()
            if self._eat() != ')':
                raise FormulaError("Expected ')'")
        elif tok[0].isdigit() or tok[0] == '.':
            val = float(tok)
        else:
            raise FormulaError(f"Unexpected token {tok!r}")
        return -val if negative else val

    def _term(self) -> float:
        left = self._factor()
        while self._peek() in ('*', '/'):
            op = self._eat()
            right = self._factor()
            if op == '*':
                left *= right
            else:
                left /= right
        return left

    def _expr(self) -> float:
        left = self._term()
        while self._peek() in ('+', '-'):
            op = self._eat()
            right = self._term()
            left = left + right if op == '+' else left - right
        return left

    def parse(self) -> float:
        if not self.tokens:
            raise FormulaError("Empty expression")
        result = self._expr()
        if self.pos != len(self.tokens):
            raise FormulaError(f"Unexpected token {self.tokens[self.pos]!r}")
        return result


def evaluate_arithmetic(expr: str) -> float:
    """Evaluate a purely arithmetic expression.

    Raises FormulaError for anything that is not a decimal literal,
    an operator or a parenthesis, and ZeroDivisionError on division by zero.
    """
    return _ArithmeticParser(_tokenize(expr)).parse()


def _number_text(value: float) -> str:
    """Render a substituted value so it re-parses as a single operand."""
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e15:
        text = str(int(value))
    else:
        text = repr(value)
    return f"({text})" if value < 0 else text


def normalize_number(value: float) -> int | float:
    """Collapse integral floats to int (``5.0`` -> ``5``)."""
    if value.is_integer():
        return int(value)
    return value


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class FormulaEvaluator:
    """Evaluates formula expressions against a cell value lookup.

    Usage::

        evaluator = FormulaEvaluator(lambda label: values.get(label))
        evaluator.evaluate("SUM(A1:A2)*2", current="A3")
    """

    def __init__(
        self,
        lookup: Callable[[str], Any],
        functions: FunctionRegistry | None = None,
    ) -> None:
        self._lookup = lookup
        self._functions = functions or FunctionRegistry()

    def evaluate(self, expression: str, current: str | None = None) -> int | float | CellError:
        """Evaluate *expression* (formula marker already stripped).

        *current* is the label of the cell being evaluated; a bare reference
        to it reads as 0.
        """
        try:
            expr = expression.upper()
            expr = self._substitute_aggregates(expr)
            expr = self._substitute_references(expr, current)
            result = evaluate_arithmetic(expr)
        except (FormulaError, ArithmeticError, RecursionError) as e:
            logger.debug("Cannot evaluate formula %r in %s: %s", expression, current, e)
            return ERROR
        if not math.isfinite(result):
            logger.debug("Non-finite result for formula %r in %s", expression, current)
            return ERROR
        return normalize_number(result)

    def _substitute_aggregates(self, expr: str) -> str:
        def replace(m: re.Match[str]) -> str:
            kind, start, end = m.groups()
            return _number_text(aggregate_range(kind, start, end, self._lookup, self._functions))

        return self._functions.call_pattern().sub(replace, expr)

    def _substitute_references(self, expr: str, current: str | None) -> str:
        def replace(m: re.Match[str]) -> str:
            ref = m.group(1)
            if ref == current:
                return "0"
            num = to_number(self._lookup(ref))
            return _number_text(num if num is not None else 0.0)

        return CELL_REF_RE.sub(replace, expr)
