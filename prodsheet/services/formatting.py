from __future__ import annotations

import math
import re
from datetime import date, datetime, time, timedelta
from typing import Any

"""Presentation Formatter.

The gviz endpoint serializes dates as ``Date(year,month,day[,h,m,s])`` with a
zero-based month. Machine-hour cells arrive in four shapes depending on how
the cell happens to be formatted in the sheet: ``HH:MM:SS`` text, a
``Date(...)`` token, a native date/time, or a decimal number of hours.
"""

__all__ = [
    "DATE_FMT",
    "DATETIME_FMT",
    "SHORT_DATETIME_FMT",
    "format_date",
    "format_datetime",
    "format_duration",
    "format_short_datetime",
    "is_duration",
    "parse_form_date",
    "parse_gviz_date",
    "parse_timestamp",
    "timestamp_now",
]

DATE_FMT = "%d/%m/%Y"  # dd/MM/yyyy
DATETIME_FMT = "%d/%m/%Y %H:%M:%S"  # dd/MM/yyyy HH:mm:ss
SHORT_DATETIME_FMT = "%d/%m/%y %H:%M"  # dd/MM/yy HH:mm

_INTS = re.compile(r"\d+")
_HMS = re.compile(r"^\d{1,2}:\d{2}:\d{2}$")
_DURATION_INPUT = re.compile(r"^(?:2[0-3]|[01]?[0-9]):[0-5]?[0-9]:[0-5]?[0-9]$")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def parse_gviz_date(value: Any) -> datetime | None:
    """``Date(2024,0,15,9,30,0)`` -> datetime(2024, 1, 15, 9, 30). Anything else -> None."""
    if not isinstance(value, str) or not value.startswith("Date("):
        return None
    numbers = [int(n) for n in _INTS.findall(value)]
    if len(numbers) < 3:
        return None
    year, month, day = numbers[:3]
    hour, minute, second = (numbers[3:6] + [0, 0, 0])[:3]
    try:
        return datetime(year, month + 1, day, hour, minute, second)
    except ValueError:
        return None


def _as_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return parse_gviz_date(value)


def _format(value: Any, fmt: str) -> str:
    if _blank(value):
        return ""
    parsed = parse_timestamp(value)
    if parsed is None:
        return str(value)
    return parsed.strftime(fmt)


def format_date(value: Any) -> str:
    return _format(value, DATE_FMT)


def format_datetime(value: Any) -> str:
    return _format(value, DATETIME_FMT)


def format_short_datetime(value: Any) -> str:
    return _format(value, SHORT_DATETIME_FMT)


def _hms(h: int, m: int, s: int) -> str:
    return f"{h:02d}:{m:02d}:{s:02d}"


def format_duration(value: Any) -> str:
    """Normalize a machine-hours cell to ``HH:MM:SS``.

    >>> format_duration("08:30:00"), format_duration("Date(1899,11,30,8,30,0)"), format_duration(8.5)
    ('08:30:00', '08:30:00', '08:30:00')
    """
    if _blank(value) or value == "-":
        return "-"
    # 数値 0 (と False) は未入力扱い
    if isinstance(value, (int, float)) and value == 0:
        return "-"
    if isinstance(value, (datetime, time)):
        return _hms(value.hour, value.minute, value.second)
    if isinstance(value, timedelta):
        total = int(value.total_seconds())
        return _hms(total // 3600, total % 3600 // 60, total % 60)
    if isinstance(value, (list, tuple)) and len(value) >= 3:
        # gviz の timeofday 型は [h, m, s, ms]
        h, m, s = (int(v) for v in value[:3])
        return _hms(h, m, s)

    text = str(value).strip()
    if _HMS.match(text):
        return text
    if text.startswith("Date("):
        numbers = _INTS.findall(text)
        if len(numbers) >= 6:
            h, m, s = (int(n) for n in numbers[-3:])
            return _hms(h, m, s)
        return text
    if isinstance(value, bool):
        return text
    try:
        hours = float(text)
    except ValueError:
        return text
    if not math.isfinite(hours) or hours < 0:
        return text
    whole = math.floor(hours)
    # 浮動小数の誤差 (8.1 -> 8:05:59) を避けるため秒単位で丸めてから切り捨て
    seconds_total = math.floor(round((hours - whole) * 3600, 6))
    minutes, seconds = divmod(seconds_total, 60)
    return _hms(whole, minutes, seconds)


def parse_timestamp(value: Any) -> datetime | None:
    """Timestamp cell -> datetime for ordering (``Date(...)``, dd/MM/yyyy[ HH:mm:ss])."""
    parsed = _as_datetime(value)
    if parsed is not None or not isinstance(value, str):
        return parsed
    text = value.strip()
    for fmt in (DATETIME_FMT, DATE_FMT):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def is_duration(text: Any) -> bool:
    """Form validation for ``HH:MM:SS`` inputs (hours 0-23)."""
    return isinstance(text, str) and bool(_DURATION_INPUT.match(text.strip()))


def timestamp_now(now: datetime | None = None) -> str:
    """Write-side timestamp in sheet format (local time)."""
    return (now or datetime.now()).strftime(DATETIME_FMT)


def parse_form_date(value: Any) -> date | None:
    """Form input -> date. Accepts date objects, ``dd/MM/yyyy`` and ISO ``yyyy-MM-dd``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    for fmt in (DATE_FMT, "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None
