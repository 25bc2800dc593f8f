from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

"""Sequential document numbers (``JC-001``, ``CN-014``).

The next number is the highest existing number plus one. Nothing reserves
it: two users submitting at the same time can both get the same number.
"""

__all__ = [
    "format_number",
    "max_number",
    "next_number",
    "parse_number",
]


def parse_number(value: Any, prefix: str) -> int | None:
    """``"JC-012"`` -> 12; None if ``value`` is not ``<prefix>-<digits>...``."""
    if not isinstance(value, str):
        return None
    m = re.match(rf"^{re.escape(prefix)}-(\d+)", value.strip())
    return int(m.group(1)) if m else None


def max_number(values: Iterable[Any], prefix: str) -> int:
    numbers = [n for n in (parse_number(v, prefix) for v in values) if n is not None]
    return max(numbers, default=0)


def format_number(prefix: str, number: int, width: int = 3) -> str:
    return f"{prefix}-{number:0{width}d}"


def next_number(values: Iterable[Any], prefix: str, width: int = 3) -> str:
    return format_number(prefix, max_number(values, prefix) + 1, width)
