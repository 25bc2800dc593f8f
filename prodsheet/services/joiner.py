from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from ..models.record import Record

"""Cross-Sheet Joiner.

Delivery order numbers and job card numbers act as join keys between tabs
without any uniqueness guarantee in the sheet. Lookups are first-match-wins,
trimmed and case-sensitive. ``build_index(unique=True)`` is available where a
duplicate key should be treated as an error.
"""

__all__ = [
    "DuplicateKeyError",
    "build_index",
    "find_first",
    "join_key",
]


class DuplicateKeyError(Exception):
    def __init__(self, column: str, key: str, rows: tuple[int, int]) -> None:
        super().__init__(f"duplicate key {key!r} in column {column} (rows {rows[0]} and {rows[1]})")
        self.column = column
        self.key = key
        self.rows = rows


def join_key(value: Any) -> str:
    """Trimmed string form of a key cell ("" for None)."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # 数値の DO 番号 (101.0) を "101" として扱う
        value = int(value)
    return str(value).strip()


def find_first(key: Any, records: Iterable[Record], column: str) -> Record | None:
    """First record whose ``column`` equals ``key`` after trimming, else None."""
    wanted = join_key(key)
    if not wanted:
        return None
    for record in records:
        if join_key(record.get(column)) == wanted:
            return record
    return None


def build_index(records: Iterable[Record], column: str, unique: bool = False) -> dict[str, Record]:
    """Key -> first record. Blank keys are not indexed."""
    index: dict[str, Record] = {}
    for record in records:
        key = join_key(record.get(column))
        if not key:
            continue
        if key in index:
            if unique:
                raise DuplicateKeyError(column, key, (index[key].row_index, record.row_index))
            continue
        index[key] = record
    return index
