from __future__ import annotations

import json
from pathlib import Path

import pytest

from prodsheet.logging.error_log import ErrorLogBuffer
from prodsheet.services.orchestrator import load_page, submit_page
from prodsheet.services.page_state import (
    Loaded,
    LoadStarted,
    OpenDialog,
    PageState,
    PageStatus,
    SubmitRejected,
    SubmitStarted,
    reduce,
)
from prodsheet.sheets.gviz import SheetReader
from prodsheet.sheets.writer import CommandRejectedError, CommandTransportError, CommandWriter
from prodsheet.workflows.base import FormValidationError
from prodsheet.workflows.registry import get_workflow

"""Partial failures: optional tabs degrade, multi-write submits stop at the first failure."""

KITTING_FORM = {"kitting_rows": [("Alumina", "60"), ("Cement", "40")], "selling_price": "5"}


def _clients(sheet, config):
    return SheetReader(config.endpoint, session=sheet), CommandWriter(config.endpoint, session=sheet)


def test_check_page_without_master_still_loads(planner_sheet, app_config, temp_workdir: Path):
    planner_sheet.failing.add("Master")
    reader, _ = _clients(planner_sheet, app_config)
    log = ErrorLogBuffer(temp_workdir / "logs")
    result = load_page(get_workflow("check"), reader, app_config, log)
    assert result.degraded_sheets == ["Master"]
    assert result.data.options["status"] == []
    assert len(result.data.pending) == 1
    path = log.flush()
    assert path is not None
    assert json.loads(path.read_text(encoding="utf-8"))["error_type"] == "SHEET_READ_ERROR"


def test_full_kitting_second_write_rejected(planner_sheet, app_config, temp_workdir: Path):
    planner_sheet.reject["updateColumns"] = "Exception: Range is protected"
    reader, writer = _clients(planner_sheet, app_config)
    workflow = get_workflow("full-kitting")
    log = ErrorLogBuffer(temp_workdir / "logs")

    loaded = load_page(workflow, reader, app_config)
    state = reduce(reduce(PageState(), LoadStarted()), Loaded(loaded.data))
    state = reduce(state, OpenDialog(state.pending[0], dict(KITTING_FORM)))
    state = reduce(state, SubmitStarted())

    with pytest.raises(CommandRejectedError) as exc:
        submit_page(workflow, state.form, reader, writer, app_config, key="DO-100", error_log=log)
    state = reduce(state, SubmitRejected(message=str(exc.value)))

    assert state.status is PageStatus.EDITING
    assert state.message == "Exception: Range is protected"
    # 1 件目 (Costing Response への追加) は取り消されない
    assert [c.sheet_name for c in exc.value.completed] == ["Costing Response"]
    assert planner_sheet.tabs["Costing Response"][-1]["B"] == "CN-008"
    assert planner_sheet.cell("Production", 2, "V") is None
    (rec,) = log.records
    assert (rec.page, rec.sheet, rec.row) == ("full-kitting", "Production", 2)


def test_transport_failure_on_first_write_applies_nothing(planner_sheet, app_config, monkeypatch):
    reader, writer = _clients(planner_sheet, app_config)

    def boom(*args, **kwargs):
        raise CommandTransportError("insert Costing Response: timed out")

    monkeypatch.setattr(writer, "send", boom)
    with pytest.raises(CommandTransportError) as exc:
        submit_page(get_workflow("full-kitting"), KITTING_FORM, reader, writer, app_config, key="DO-100")
    assert exc.value.completed == []
    assert len(planner_sheet.tabs["Costing Response"]) == 1


def test_invalid_form_never_reaches_the_network(planner_sheet, app_config):
    reader, writer = _clients(planner_sheet, app_config)
    for page_id in ("orders", "full-kitting", "job-cards", "production", "lab-testing1", "check"):
        with pytest.raises(FormValidationError):
            submit_page(get_workflow(page_id), {}, reader, writer, app_config, key="JC-001")
    assert planner_sheet.gets == []
    assert planner_sheet.posts == []
