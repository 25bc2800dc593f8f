from __future__ import annotations

import re
from datetime import UTC, datetime
from pathlib import Path

from prodsheet.models.error_record import ErrorRecord

"""Error log buffering.

- JSON Lines, fixed schema (see ErrorRecord)
- one `logs/errors-YYYYMMDD-HHMMSS.log` (UTC) per run, created on first flush
- records are buffered and written in one go by flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "error_type_of",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


def error_type_of(exc: BaseException) -> str:
    """Exception class name in UPPER_SNAKE (SheetReadError -> SHEET_READ_ERROR)."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", type(exc).__name__).upper()


class ErrorLogBuffer:
    """In-memory buffer for failed reads / writes. Flush writes JSON Lines.

    The file path is fixed on first access. Not thread safe: records are
    appended from the calling thread after concurrent reads have joined.
    """

    def __init__(self, log_dir: Path | str = LOGS_DIR) -> None:
        self._log_dir = Path(log_dir)
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._log_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def add(self, page: str, sheet: str, error_type: str, message: str, row: int = -1) -> None:
        self.append(ErrorRecord.create(page, sheet, row, error_type, message))

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the run's log file.

        Returns the file path, or None when nothing was buffered (no empty
        files are created).
        """
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
