from __future__ import annotations

import json
import re
from pathlib import Path

from prodsheet.logging.error_log import ErrorLogBuffer, ErrorRecord, error_type_of
from prodsheet.sheets.gviz import SheetReadError
from prodsheet.sheets.writer import CommandRejectedError

KEYS = {"timestamp", "page", "sheet", "row", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create("lab-testing1", "JobCards", -1, "COMMAND_REJECTED_ERROR", "Job card not found")
    data = json.loads(rec.to_json_line())
    assert data["page"] == "lab-testing1"
    assert data["row"] == -1
    assert data["timestamp"].endswith("Z")
    assert set(data) == KEYS


def test_error_type_of_is_upper_snake():
    assert error_type_of(SheetReadError("Master", "down")) == "SHEET_READ_ERROR"
    assert error_type_of(CommandRejectedError("no")) == "COMMAND_REJECTED_ERROR"


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.add("check", "Master", "SHEET_READ_ERROR", "timeout")
    buf.add("full-kitting", "Production", "COMMAND_REJECTED_ERROR", "locked", row=12)
    path = buf.flush()
    assert path is not None and path.exists()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[1])["row"] == 12
    assert len(buf) == 0


def test_empty_flush_creates_no_file(temp_workdir: Path):
    buf = ErrorLogBuffer()
    assert buf.flush() is None
    assert list((temp_workdir / "logs").iterdir()) == []


def test_error_log_buffer_multiple_flushes_append(temp_workdir: Path):
    buf = ErrorLogBuffer(temp_workdir / "other-logs")
    buf.add("p", "S", "X", "one")
    path = buf.flush()
    size1 = path.stat().st_size
    buf.add("p", "S", "X", "two")
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1
    assert path.parent.name == "other-logs"
