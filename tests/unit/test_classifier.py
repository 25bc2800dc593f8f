from __future__ import annotations

import pytest

from prodsheet.models.record import Record
from prodsheet.models.workflow_item import Stage
from prodsheet.services.classifier import classify, is_marked, partition


def rec(row: int, start: object, end: object) -> Record:
    return Record(row_index=row, values={"S": start, "T": end})


@pytest.mark.parametrize(
    "start, end, stage",
    [
        (None, None, Stage.IRRELEVANT),
        ("", "Date(2024,0,1)", Stage.IRRELEVANT),
        ("x", None, Stage.PENDING),
        ("x", "  ", Stage.PENDING),
        ("x", "Date(2024,0,1,9,0,0)", Stage.HISTORY),
        (1.0, 0, Stage.HISTORY),
        (False, None, Stage.PENDING),
    ],
)
def test_classify(start: object, end: object, stage: Stage) -> None:
    assert classify(rec(2, start, end), "S", "T") is stage


def test_is_marked_counts_zero_as_set() -> None:
    assert is_marked(0)
    assert not is_marked(None)
    assert not is_marked(" ")


def test_partition_never_puts_a_row_in_both_lists() -> None:
    records = [rec(2, "x", None), rec(3, "x", "y"), rec(4, None, None), rec(5, "x", None)]
    split = partition(records, "S", "T")
    assert [r.row_index for r in split.pending] == [2, 5]
    assert [r.row_index for r in split.history] == [3]
    assert split.irrelevant == 1
    assert not {id(r) for r in split.pending} & {id(r) for r in split.history}
