from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

This module defines the ErrorRecord dataclass used for structured error logging
of failed sheet reads and rejected writes. It supports row=-1 as a sentinel
value for sheet-level errors where no specific row is involved (reads,
inserts, updateByJobCard).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        page: Page id that triggered the operation (e.g. "lab-testing1")
        sheet: Tab name that was read or written
        row: Row number (1-based). Use -1 when no row is addressed
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Error message, verbatim from the endpoint where available
    """
    timestamp: str  # ISO8601 UTC
    page: str
    sheet: str
    row: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(page: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            page=page,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
