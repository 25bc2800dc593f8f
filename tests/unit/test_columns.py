from __future__ import annotations

import pytest

from prodsheet.sheets.columns import column_index, column_letter, column_range


@pytest.mark.parametrize(
    "position, letter",
    [(0, "A"), (25, "Z"), (26, "AA"), (47, "AV"), (58, "BG")],
)
def test_column_letter(position: int, letter: str) -> None:
    assert column_letter(position) == letter


@pytest.mark.parametrize("letter, index", [("A", 1), ("z", 26), ("AA", 27), ("BG", 59), ("BN", 66)])
def test_column_index_is_one_based(letter: str, index: int) -> None:
    assert column_index(letter) == index


def test_column_index_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        column_index("A1")
    with pytest.raises(ValueError):
        column_letter(-1)


def test_column_range_spans_letter_boundary() -> None:
    assert column_range("Y", 4) == ["Y", "Z", "AA", "AB"]
    # 20 原料ペアは I..AV
    letters = column_range("I", 40)
    assert letters[0] == "I" and letters[-1] == "AV"
