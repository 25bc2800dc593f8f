from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..models.record import Record
from ..models.workflow_item import Stage

"""Stage Classifier.

Each workflow stage owns one pair of marker columns (start / completion).
Membership is a pure function of those two cells at read time:

    start blank                  -> IRRELEVANT
    start set, completion blank  -> PENDING
    both set                     -> HISTORY

Values are compared after ``str`` coercion and trimming, so numbers,
booleans and ``Date(...)`` tokens all count as "set". Only None and blank
strings count as unset.
"""

__all__ = [
    "StageSplit",
    "classify",
    "is_marked",
    "partition",
]


def is_marked(value: Any) -> bool:
    if value is None:
        return False
    return str(value).strip() != ""


def classify(record: Record, start_column: str, end_column: str) -> Stage:
    if not is_marked(record.get(start_column)):
        return Stage.IRRELEVANT
    if is_marked(record.get(end_column)):
        return Stage.HISTORY
    return Stage.PENDING


@dataclass
class StageSplit:
    pending: list[Record] = field(default_factory=list)
    history: list[Record] = field(default_factory=list)
    irrelevant: int = 0


def partition(records: Iterable[Record], start_column: str, end_column: str) -> StageSplit:
    """Split records into pending / history, keeping sheet order."""
    split = StageSplit()
    for record in records:
        stage = classify(record, start_column, end_column)
        if stage is Stage.PENDING:
            split.pending.append(record)
        elif stage is Stage.HISTORY:
            split.history.append(record)
        else:
            split.irrelevant += 1
    return split
