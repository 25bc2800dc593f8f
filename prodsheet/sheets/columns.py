from __future__ import annotations

import re

"""Spreadsheet column letter helpers.

Records are keyed by the sheet's column letters ("A", "AB"), while the write
endpoint addresses columns by 1-based integer index ("column 59"). Pages
declare their fields by letter and derive indexes here, so no magic numbers
have to be kept in sync by hand.
"""

__all__ = [
    "column_index",
    "column_letter",
    "column_range",
]

_LETTERS = re.compile(r"^[A-Z]+$")


def column_letter(index: int) -> str:
    """0-based position -> sheet letter (0 -> "A", 26 -> "AA")."""
    if index < 0:
        raise ValueError(f"column position must be >= 0: {index}")
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(ord("A") + rem) + letters
    return letters


def column_index(letter: str) -> int:
    """Sheet letter -> 1-based write index ("A" -> 1, "BG" -> 59)."""
    key = letter.strip().upper()
    if not _LETTERS.match(key):
        raise ValueError(f"invalid column letter: {letter!r}")
    n = 0
    for ch in key:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n


def column_range(first: str, count: int) -> list[str]:
    """``count`` consecutive letters starting at ``first`` (inclusive)."""
    start = column_index(first) - 1
    return [column_letter(start + i) for i in range(count)]
