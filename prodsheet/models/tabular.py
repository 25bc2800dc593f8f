from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""TabularResult model for the gviz read path.

A TabularResult is the decoded ``table`` object of one gviz query response:
ordered column definitions plus rows of cells. It is produced fresh on every
read and carries no identity beyond that read.
"""

__all__ = [
    "Cell",
    "ColumnDef",
    "TabularResult",
]


@dataclass(frozen=True)
class Cell:
    """One gviz cell. ``value`` is the typed value, ``formatted`` the display text."""
    value: Any
    formatted: str | None = None


@dataclass(frozen=True)
class ColumnDef:
    """Column definition as declared by the query endpoint."""
    id: str  # "A", "B", ... (may be empty for some tabs)
    label: str = ""
    type: str = ""


@dataclass(frozen=True)
class TabularResult:
    """Columns + rows as returned by one sheet read.

    ``rows`` keep the endpoint's shape: a row may be shorter than ``columns``
    (ragged) and individual cells may be ``None``.
    """
    columns: list[ColumnDef] = field(default_factory=list)
    rows: list[list[Cell | None]] = field(default_factory=list)

    @classmethod
    def empty(cls) -> TabularResult:
        return cls(columns=[], rows=[])

    @property
    def is_empty(self) -> bool:
        return not self.rows
