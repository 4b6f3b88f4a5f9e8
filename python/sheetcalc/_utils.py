"""Cell address helpers: 0-based (row, column) <-> "A1" labels."""

from __future__ import annotations

import re

_LABEL_RE = re.compile(r"([A-Z]+)([0-9]+)")


def column_letter(col: int) -> str:
    """Convert a 0-based column index to letters (0 -> "A", 26 -> "AA")."""
    if col < 0:
        raise ValueError(f"Column index must be non-negative: {col}")
    letters: list[str] = []
    current = col + 1
    while current > 0:
        current -= 1
        letters.append(chr(ord("A") + current % 26))
        current //= 26
    return "".join(reversed(letters))


def column_index(letters: str) -> int:
    """Convert column letters to a 0-based index ("A" -> 0, "AA" -> 26)."""
    if not letters or not letters.isascii() or not letters.isupper():
        raise ValueError(f"Invalid column letters: {letters!r}")
    index = 0
    for ch in letters:
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def to_label(row: int, col: int) -> str:
    """``(0, 0)`` -> ``"A1"``."""
    if row < 0:
        raise ValueError(f"Row index must be non-negative: {row}")
    return f"{column_letter(col)}{row + 1}"


def from_label(label: str) -> tuple[int, int] | None:
    """``"A1"`` -> ``(0, 0)``, or None when *label* is not a cell label.

    Only uppercase letters followed by a 1-based row number are accepted.
    """
    m = _LABEL_RE.fullmatch(label) if isinstance(label, str) else None
    if m is None:
        return None
    row = int(m.group(2)) - 1
    if row < 0:
        return None
    return row, column_index(m.group(1))
