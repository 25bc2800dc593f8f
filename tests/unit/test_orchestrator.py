from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from prodsheet.logging.error_log import ErrorLogBuffer
from prodsheet.services.orchestrator import (
    ItemNotFoundError,
    PageLoadError,
    load_page,
    read_accounts,
    read_tables,
    submit_page,
)
from prodsheet.sheets.gviz import SheetReader
from prodsheet.sheets.writer import CommandRejectedError, CommandWriter
from prodsheet.workflows.base import FormValidationError
from prodsheet.workflows.registry import get_workflow

NOW = datetime(2024, 2, 1, 10, 30, 0)

LAB1_FORM = {
    "status": "Pass",
    "test_date": "2024-01-20",
    "flow_of_material": "Good",
    "wc_percentage": "12",
    "tested_by": "Anita",
}


@pytest.fixture()
def clients(planner_sheet, app_config):
    return (
        SheetReader(app_config.endpoint, session=planner_sheet),
        CommandWriter(app_config.endpoint, session=planner_sheet),
    )


def test_read_tables_applies_tab_layout(planner_sheet, app_config, clients):
    """JobCards rows start at sheet row 5, other tabs at row 2."""
    reader, _ = clients
    tables, batch = read_tables(["JobCards", "Orders", "JobCards"], reader, app_config)
    assert list(tables) == ["JobCards", "Orders"]
    assert tables["JobCards"].records[0].row_index == 5
    assert [r.row_index for r in tables["Orders"]] == [2, 3, 4]
    assert batch.degraded == []


def test_load_page_reports_counts(planner_sheet, app_config, clients):
    reader, _ = clients
    result = load_page(get_workflow("lab-testing1"), reader, app_config)
    assert result.page_id == "lab-testing1"
    assert result.sheets_read == 4
    assert len(result.data.pending) == 1
    assert result.elapsed_seconds >= 0
    assert sorted(planner_sheet.gets) == ["Actual Production", "JobCards", "Master", "Production"]


def test_required_tab_failure_fails_the_page(planner_sheet, app_config, clients, temp_workdir: Path):
    """A failed required read is an error, never partial data."""
    reader, _ = clients
    planner_sheet.failing.add("Production")
    log = ErrorLogBuffer(temp_workdir / "logs")
    with pytest.raises(PageLoadError) as exc:
        load_page(get_workflow("lab-testing1"), reader, app_config, log)
    assert exc.value.cause.sheet_name == "Production"
    (rec,) = log.records
    assert (rec.page, rec.sheet, rec.error_type) == ("lab-testing1", "Production", "SHEET_READ_ERROR")


def test_optional_master_failure_degrades(planner_sheet, app_config, clients, temp_workdir: Path):
    reader, _ = clients
    planner_sheet.failing.add("Master")
    log = ErrorLogBuffer(temp_workdir / "logs")
    result = load_page(get_workflow("check"), reader, app_config, log)
    assert result.degraded_sheets == ["Master"]
    assert result.data.options == {"status": []}
    assert [i.job_card_no for i in result.data.pending] == ["JC-001"]
    assert [r.sheet for r in log.records] == ["Master"]


def test_submit_moves_item_to_history(planner_sheet, app_config, clients):
    reader, writer = clients
    outcome = submit_page(
        get_workflow("lab-testing1"),
        LAB1_FORM,
        reader,
        writer,
        app_config,
        key="JC-001",
        now=lambda: NOW,
    )
    assert outcome.message == "Lab Test 1 saved for JC-001."
    assert outcome.total_commands == 1
    assert [r.success for r in outcome.results] == [True]
    assert outcome.reloaded.data.pending == []
    assert [i.job_card_no for i in outcome.reloaded.data.history] == ["JC-001"]
    assert planner_sheet.cell("JobCards", 5, "T") == "01/02/2024 10:30:00"


def test_invalid_form_touches_no_network(planner_sheet, app_config, clients):
    reader, writer = clients
    with pytest.raises(FormValidationError) as exc:
        submit_page(get_workflow("lab-testing1"), {"status": "Pass"}, reader, writer, app_config, key="JC-001")
    assert "tested_by" in exc.value.errors
    assert planner_sheet.gets == []
    assert planner_sheet.posts == []


def test_unknown_key_is_not_found(planner_sheet, app_config, clients):
    reader, writer = clients
    with pytest.raises(ItemNotFoundError):
        submit_page(get_workflow("lab-testing1"), LAB1_FORM, reader, writer, app_config, key="JC-404")
    assert planner_sheet.posts == []


def test_second_write_rejected_keeps_the_first(planner_sheet, app_config, clients, temp_workdir: Path):
    """The costing row stays even though the production stamp failed."""
    reader, writer = clients
    planner_sheet.reject["updateColumns"] = "Sheet is protected"
    log = ErrorLogBuffer(temp_workdir / "logs")
    form = {"kitting_rows": [("Alumina", "60"), ("Cement", "40")]}
    with pytest.raises(CommandRejectedError) as exc:
        submit_page(get_workflow("full-kitting"), form, reader, writer, app_config, key="DO-100", error_log=log)
    assert exc.value.message == "Sheet is protected"
    assert [c.action for c in exc.value.completed] == ["insert"]
    assert len(planner_sheet.tabs["Costing Response"]) == 2
    assert planner_sheet.cell("Production", 2, "V") is None
    (rec,) = log.records
    assert (rec.sheet, rec.row, rec.error_type) == ("Production", 2, "COMMAND_REJECTED_ERROR")


def test_read_accounts(planner_sheet, app_config, clients):
    reader, _ = clients
    accounts = read_accounts(reader, app_config)
    assert [a.user.username for a in accounts] == ["admin", "Lab"]
    assert accounts[1].user.permissions == ["lab-testing1", "lab-testing2"]
