from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""Record model: one normalized spreadsheet row.

A Record maps column identifiers to cell values. ``row_index`` is the 1-based
row number in the underlying tab and is only used to address targeted
updates; it is not a key and must never be used against another tab, which
is why the record remembers ``sheet_name``.
"""

__all__ = [
    "Record",
]


@dataclass(frozen=True)
class Record:
    """Logical representation of a single non-empty sheet row."""
    row_index: int  # sheet row number (1-based)
    values: dict[str, Any]  # column id -> cell value (missing cells are None)
    sheet_name: str = ""

    def get(self, column: str, default: Any = None) -> Any:
        value = self.values.get(column)
        return default if value is None else value

    def text(self, column: str, default: str = "") -> str:
        """Return the cell coerced to ``str`` (``default`` for null cells)."""
        value = self.values.get(column)
        if value is None:
            return default
        if isinstance(value, float) and value.is_integer():
            # gviz は数値をすべて float で返す
            return str(int(value))
        return str(value)

    def number(self, column: str, default: float = 0) -> float:
        """Numeric view of a cell; blanks and non-numeric text give ``default``."""
        value = self.values.get(column)
        if value is None or isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            number = value
        else:
            try:
                number = float(str(value).strip())
            except ValueError:
                return default
        if isinstance(number, float) and number.is_integer():
            return int(number)
        return number
