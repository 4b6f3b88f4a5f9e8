"""Tests for sheetcalc.calc error values, coercion and aggregate builtins."""

from __future__ import annotations

import pytest

from sheetcalc.calc._functions import (
    _BUILTINS,
    AGGREGATE_FUNCTIONS,
    ERROR,
    CellError,
    FunctionRegistry,
    aggregate_range,
    aggregate_values,
    is_error,
    to_number,
)


class TestCellError:
    def test_singleton(self) -> None:
        assert CellError.of("#error") is ERROR

    def test_equals_code_string(self) -> None:
        assert ERROR == "#ERROR"
        assert ERROR == "#error"
        assert str(ERROR) == "#ERROR"

    def test_not_equal_to_numbers(self) -> None:
        assert ERROR != 0
        assert ERROR != ""

    def test_is_error(self) -> None:
        assert is_error(ERROR)
        assert not is_error("#ERROR")
        assert not is_error(None)


class TestToNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (5, 5.0),
            (2.5, 2.5),
            ("2.5", 2.5),
            ("-3", -3.0),
            (" .5", 0.5),
            ("12 kr", 12.0),
            ("1e3", 1000.0),
        ],
    )
    def test_numeric(self, value: object, expected: float) -> None:
        assert to_number(value) == expected

    @pytest.mark.parametrize("value", ["x", "", "kr 12", None, True, ERROR, [1]])
    def test_not_numeric(self, value: object) -> None:
        assert to_number(value) is None


class TestFunctionRegistry:
    def test_builtins_registered(self) -> None:
        reg = FunctionRegistry()
        for name in ("SUM", "AVG", "AVERAGE", "MIN", "MAX", "COUNT"):
            assert reg.get(name) is not None
        assert reg.supported_functions == AGGREGATE_FUNCTIONS

    def test_case_insensitive_lookup(self) -> None:
        reg = FunctionRegistry()
        assert reg.get("sum") is reg.get("SUM")

    def test_custom_registration(self) -> None:
        reg = FunctionRegistry()
        reg.register("spread", lambda values: 42.0)
        assert reg.get("Spread")([]) == 42.0
        assert "SPREAD" in reg.supported_functions
        assert FunctionRegistry().get("SPREAD") is None

    @pytest.mark.parametrize("name", ["A1", "LOG10", "", "MY-SUM"])
    def test_invalid_names_rejected(self, name: str) -> None:
        with pytest.raises(ValueError, match="Invalid aggregate name"):
            FunctionRegistry().register(name, lambda values: 0.0)

    def test_call_pattern_follows_registrations(self) -> None:
        reg = FunctionRegistry()
        assert reg.call_pattern().search("SPAN(A1:A2)") is None
        reg.register("span", lambda values: 0.0)
        m = reg.call_pattern().search("SPAN(A1:A2)")
        assert m is not None
        assert m.groups() == ("SPAN", "A1", "A2")

    def test_avg_alias(self) -> None:
        assert _BUILTINS["AVG"] is _BUILTINS["AVERAGE"]


class TestAggregateValues:
    def test_sum_skips_text_empty_and_errors(self) -> None:
        assert aggregate_values("SUM", [1, "2", "x", None, ERROR, ""]) == 3.0

    def test_average(self) -> None:
        assert aggregate_values("AVG", [1, "x", 2]) == 1.5

    def test_min_max(self) -> None:
        values = [3, "-1", "text", 7.5]
        assert aggregate_values("MIN", values) == -1.0
        assert aggregate_values("MAX", values) == 7.5

    def test_count_numeric_only(self) -> None:
        assert aggregate_values("COUNT", [1, "x", "3", None, ERROR]) == 2.0

    @pytest.mark.parametrize("kind", ["SUM", "AVG", "AVERAGE", "MIN", "MAX", "COUNT"])
    def test_empty_is_zero(self, kind: str) -> None:
        assert aggregate_values(kind, []) == 0
        assert aggregate_values(kind, ["x", None, ERROR]) == 0

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported aggregate"):
            aggregate_values("MEDIAN", [1, 2])

    def test_custom_registry(self) -> None:
        reg = FunctionRegistry()
        reg.register("FIRST", lambda values: float(values[0]))
        assert aggregate_values("first", ["7", 1], reg) == 7.0


class TestAggregateRange:
    def test_rectangle(self) -> None:
        values = {"A1": "1", "B1": "2", "A2": "3", "B2": "x", "C1": "100"}
        assert aggregate_range("SUM", "A1", "B2", values.get) == 6.0
        assert aggregate_range("COUNT", "B2", "A1", values.get) == 3.0

    def test_empty_range(self) -> None:
        assert aggregate_range("AVG", "D1", "D9", {}.get) == 0

    def test_invalid_corner_is_empty(self) -> None:
        assert aggregate_range("SUM", "A0", "A2", {"A1": "5"}.get) == 0
