"""Formula parser: regex-based reference extraction and range expansion."""

from __future__ import annotations

import re
from collections.abc import Iterable

from sheetcalc._utils import from_label, to_label

# ---------------------------------------------------------------------------
# Regex patterns for reference extraction. Formulas are uppercased before
# matching, so the patterns only need uppercase labels.
# ---------------------------------------------------------------------------

_CELL_REF = r"[A-Z]+[0-9]+"

# Bare cell reference: A1, AB12
CELL_REF_RE = re.compile(rf"({_CELL_REF})")

# Range: A1:B5
_RANGE_REF_RE = re.compile(rf"({_CELL_REF})\s*:\s*({_CELL_REF})")


def aggregate_call_pattern(names: Iterable[str]) -> re.Pattern[str]:
    """Regex for range-aggregate calls such as ``SUM(A1:B5)`` over *names*.

    Longer names are tried first, so ``AVERAGE`` wins over ``AVG``.
    """
    alternatives = "|".join(re.escape(name) for name in sorted(names, key=lambda n: (-len(n), n)))
    return re.compile(rf"({alternatives})\(\s*({_CELL_REF})\s*:\s*({_CELL_REF})\s*\)")


# Calls to the builtin aggregates
AGGREGATE_CALL_RE = aggregate_call_pattern(("SUM", "AVERAGE", "AVG", "MIN", "MAX", "COUNT"))


def normalize(formula: str, marker: str = "=") -> str:
    """Strip the formula marker and uppercase the expression."""
    body = formula.strip()
    if body.startswith(marker):
        body = body[len(marker):]
    return body.upper()


# ---------------------------------------------------------------------------
# Reference extraction
# ---------------------------------------------------------------------------


def parse_references(formula: str, marker: str = "=") -> list[str]:
    """Extract single cell references from a formula, in order, deduplicated.

    References that are corners of a range are NOT included; use
    parse_range_references for those.
    """
    clean = normalize(formula, marker)
    range_spans = [(m.start(), m.end()) for m in _RANGE_REF_RE.finditer(clean)]

    refs: list[str] = []
    seen: set[str] = set()
    for m in CELL_REF_RE.finditer(clean):
        pos = m.start()
        if any(s <= pos < e for s, e in range_spans):
            continue
        ref = m.group(1)
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)
    return refs


def parse_range_references(formula: str, marker: str = "=") -> list[tuple[str, str]]:
    """Extract ``(start, end)`` pairs of every range in a formula."""
    clean = normalize(formula, marker)
    ranges: list[tuple[str, str]] = []
    for m in _RANGE_REF_RE.finditer(clean):
        pair = (m.group(1), m.group(2))
        if pair not in ranges:
            ranges.append(pair)
    return ranges


# ---------------------------------------------------------------------------
# Range expansion
# ---------------------------------------------------------------------------


def range_bounds(start: str, end: str) -> tuple[int, int, int, int]:
    """Normalize two corner labels to ``(min_row, max_row, min_col, max_col)``.

    The corners may be given in any order. Raises ValueError on a malformed
    label.
    """
    first = from_label(start)
    second = from_label(end)
    if first is None or second is None:
        raise ValueError(f"Invalid range: {start!r}:{end!r}")
    return (
        min(first[0], second[0]),
        max(first[0], second[0]),
        min(first[1], second[1]),
        max(first[1], second[1]),
    )


def expand_range(start: str, end: str) -> list[str]:
    """Expand a range like ``A1``..``B2`` into labels, row-major.

    ``expand_range("B2", "A1") == ["A1", "B1", "A2", "B2"]``
    """
    r_min, r_max, c_min, c_max = range_bounds(start, end)
    return [
        to_label(r, c)
        for r in range(r_min, r_max + 1)
        for c in range(c_min, c_max + 1)
    ]


def all_references(formula: str, marker: str = "=") -> list[str]:
    """Extract all cell references (single + range-expanded) from a formula."""
    refs: list[str] = []
    seen: set[str] = set()

    for ref in parse_references(formula, marker):
        if ref not in seen:
            refs.append(ref)
            seen.add(ref)

    for start, end in parse_range_references(formula, marker):
        try:
            expanded = expand_range(start, end)
        except ValueError:
            continue
        for ref in expanded:
            if ref not in seen:
                refs.append(ref)
                seen.add(ref)

    return refs
