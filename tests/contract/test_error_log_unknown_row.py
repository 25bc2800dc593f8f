from __future__ import annotations

import json
from pathlib import Path

import pytest

from prodsheet.logging.error_log import ErrorLogBuffer
from prodsheet.services.orchestrator import PageLoadError, load_page
from prodsheet.sheets.gviz import SheetReader
from prodsheet.workflows.registry import get_workflow

"""Sheet-level failures (reads, job card keyed writes) carry row=-1."""


def test_failed_read_logs_row_minus_one(planner_sheet, app_config, temp_workdir: Path):
    planner_sheet.failing.add("JobCards")
    buf = ErrorLogBuffer(temp_workdir / "logs")
    with pytest.raises(PageLoadError):
        load_page(get_workflow("chemical-test"), SheetReader(app_config.endpoint, session=planner_sheet), app_config, buf)
    path = buf.flush()
    assert path is not None
    obj = json.loads(path.read_text(encoding="utf-8").splitlines()[0])
    assert obj["row"] == -1
    assert obj["sheet"] == "JobCards"
    assert obj["page"] == "chemical-test"
