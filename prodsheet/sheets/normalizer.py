from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import pandas as pd

from ..models.record import Record
from ..models.tabular import Cell, ColumnDef, TabularResult
from .columns import column_index, column_letter

"""Row Normalizer.

TabularResult -> ordered Records, one per non-empty row.

- Column ids come from the declared gviz column ids; a column without an id
  gets the positional fallback ``col{i}``.
- A row whose cells are all null or blank strings is dropped.
- ``row_index = position + first_row_number``: ``position`` counts every row
  the endpoint returned (including a skipped header row), so the index is the
  real sheet row number used by targeted updates.
- Ragged rows are padded with None; no error is raised.
"""

__all__ = [
    "SheetTable",
    "column_ids",
    "column_index",
    "column_letter",
    "is_blank",
    "normalize_table",
]


@dataclass
class SheetTable:
    sheet_name: str
    columns: list[str]
    records: list[Record]  # 正規化済 (空行は除外)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)


def is_blank(value: Any) -> bool:
    """True for None and empty / whitespace-only strings."""
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""


def column_ids(columns: list[ColumnDef], width: int) -> list[str]:
    ids: list[str] = []
    for i in range(width):
        declared = columns[i].id if i < len(columns) else ""
        ids.append(declared or f"col{i}")
    return ids


def _cell_value(cell: Cell | None, prefer_formatted: bool) -> Any:
    if cell is None:
        return None
    if prefer_formatted and cell.formatted is not None:
        return cell.formatted
    return cell.value


def _none_if_missing(value: Any) -> Any:
    # timeofday セルは list で届く
    if isinstance(value, (list, tuple)):
        return value
    if pd.isna(value):
        return None
    return value


def normalize_table(
    table: TabularResult,
    sheet_name: str,
    *,
    skip_header: bool = False,
    first_row_number: int = 1,
    prefer_formatted: bool = False,
) -> SheetTable:
    """Normalize one read into keyed Records.

    Parameters
    ----------
    table: decoded gviz table
    sheet_name: tab the records belong to (carried on every Record)
    skip_header: drop rows[0] (header left in the data by the endpoint)
    first_row_number: sheet row number of rows[0]
    prefer_formatted: use the display text (``f``) instead of the typed value
    """
    width = max([len(table.columns)] + [len(r) for r in table.rows])
    columns = column_ids(table.columns, width)
    matrix = [
        [_cell_value(c, prefer_formatted) for c in row] + [None] * (width - len(row))
        for row in table.rows
    ]
    df = pd.DataFrame(matrix, columns=columns, dtype=object)

    data_part = df.iloc[1:] if skip_header else df
    records: list[Record] = []
    for position, raw in data_part.iterrows():
        # 文字列だけの行は NaN に化けるので None に戻す
        values = [_none_if_missing(v) for v in raw.tolist()]
        if all(is_blank(v) for v in values):
            continue
        records.append(
            Record(
                row_index=int(position) + first_row_number,
                values=dict(zip(columns, values, strict=True)),
                sheet_name=sheet_name,
            )
        )
    return SheetTable(sheet_name=sheet_name, columns=columns, records=records)
