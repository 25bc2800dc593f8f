from __future__ import annotations

from datetime import datetime

import pytest

from prodsheet.models.workflow_item import RawMaterial, Stage, WorkflowItem
from prodsheet.services.orchestrator import read_tables
from prodsheet.sheets.gviz import SheetReader
from prodsheet.sheets.writer import Command
from prodsheet.workflows.base import FormValidationError, SubmitContext
from prodsheet.workflows.registry import STAGE_PAGES, UnknownPageError, all_workflows, get_workflow

NOW = datetime(2024, 2, 1, 10, 30, 0)
TS = "01/02/2024 10:30:00"


def _load(page_id, sheet, app_config):
    wf = get_workflow(page_id)
    reader = SheetReader(app_config.endpoint, session=sheet)
    tables, _ = read_tables(
        wf.sheets, reader, app_config, optional=wf.optional_sheets, formatted=wf.formatted_sheets
    )
    data = wf.load(tables)
    return wf, data, SubmitContext(data=data, tables=tables, now=NOW)


# --- registry ---------------------------------------------------------------


def test_registry_knows_every_page():
    ids = [w.page_id for w in all_workflows()]
    assert ids == [
        "orders",
        "full-kitting",
        "job-cards",
        "production",
        "lab-testing1",
        "lab-testing2",
        "chemical-test",
        "check",
        "tally",
    ]
    assert "orders" not in STAGE_PAGES
    with pytest.raises(UnknownPageError):
        get_workflow("reports")


# --- lab test 1 -------------------------------------------------------------


def test_lab1_pending_joins_production_and_actual_production(planner_sheet, app_config):
    _, data, _ = _load("lab-testing1", planner_sheet, app_config)
    assert [i.job_card_no for i in data.pending] == ["JC-001"]
    item = data.pending[0]
    assert item.stage is Stage.PENDING
    assert item.row_index == 5
    assert item.details["expected_date"] == "15/01/2024"
    assert item.details["priority"] == "High"
    assert item.details["machine_hours"] == "08:30:00"
    assert item.raw_materials == [RawMaterial("Alumina", 30), RawMaterial("Cement", 12.5)]
    assert data.history == []
    assert data.options["status"] == ["Pass", "Fail"]
    assert data.options["flow_of_material"] == ["Good", "Poor"]


def test_lab1_validation_lists_every_missing_field():
    errors = get_workflow("lab-testing1").validate({})
    assert set(errors) == {"status", "test_date", "flow_of_material", "wc_percentage", "tested_by"}


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("wc_percentage", "150", "Percentage cannot be over 100."),
        ("wc_percentage", "abc", "Valid WC % is required."),
        ("initial_setting_time", "25:00:00", "Initial Setting Time must be in HH:MM:SS format."),
        ("test_date", "2024/13/45", "Date must be dd/MM/yyyy or yyyy-MM-dd."),
    ],
)
def test_lab1_field_rules(field, value, message):
    form = {
        "status": "Pass",
        "test_date": "2024-01-20",
        "flow_of_material": "Good",
        "wc_percentage": "12",
        "tested_by": "Anita",
        field: value,
    }
    assert get_workflow("lab-testing1").validate(form) == {field: message}


def test_lab1_command_updates_by_job_card(planner_sheet, app_config):
    wf, data, ctx = _load("lab-testing1", planner_sheet, app_config)
    form = {
        "status": "Pass",
        "test_date": "2024-01-20",
        "flow_of_material": "Good",
        "wc_percentage": "12",
        "tested_by": "Anita",
        "initial_setting_time": "01:30:00",
    }
    (cmd,) = wf.build_commands(data.pending[0], form, ctx)
    assert cmd.action == "updateByJobCard"
    assert cmd.sheet_name == "JobCards"
    assert cmd.job_card_no == "JC-001"
    # T=20 completion, V=22 status, W=23 date, X=24 WC%, Z=26 initial setting
    assert cmd.column_updates[20] == TS
    assert cmd.column_updates[22] == "Pass"
    assert cmd.column_updates[23] == "20/01/2024"
    assert cmd.column_updates[24] == "12"
    assert cmd.column_updates[26] == "01:30:00"
    assert wf.success_message(data.pending[0], [cmd]) == "Lab Test 1 saved for JC-001."


def test_build_commands_needs_an_item(planner_sheet, app_config):
    wf, _, ctx = _load("lab-testing1", planner_sheet, app_config)
    with pytest.raises(ValueError):
        wf.build_commands(None, {}, ctx)


# --- lab test 2 / chemical ------------------------------------------------------


def test_lab2_and_chemical_update_the_job_card_row(planner_sheet, app_config):
    row = planner_sheet.tabs["JobCards"][0]
    row.update({"AE": "x", "AP": "x"})
    wf, data, ctx = _load("lab-testing2", planner_sheet, app_config)
    form = {"status": "Pass", "test_date": "20/01/2024", "tested_by": "Vikram", "bd_at_110": "2.1"}
    (cmd,) = wf.build_commands(data.pending[0], form, ctx)
    assert cmd.action == "updateColumns"
    assert cmd.row_index == 5
    # AF=32 completion, AJ=36 date, AK=37 BD @110
    assert cmd.column_updates[32] == TS
    assert cmd.column_updates[36] == "20/01/2024"
    assert cmd.column_updates[37] == "2.1"

    wf, data, ctx = _load("chemical-test", planner_sheet, app_config)
    (cmd,) = wf.build_commands(data.pending[0], {"status": "Pass", "alumina": "45"}, ctx)
    # AQ=43 completion, AS=45 status, AT=46 alumina
    assert cmd.column_updates[43] == TS
    assert cmd.column_updates[45] == "Pass"
    assert cmd.column_updates[46] == "45"


def test_chemical_requires_status():
    assert get_workflow("chemical-test").validate({"alumina": "3"}) == {"status": "Status is required."}


# --- production -------------------------------------------------------------


def test_production_history_and_next_serial(planner_sheet, app_config):
    _, data, _ = _load("production", planner_sheet, app_config)
    assert data.pending == []
    assert [i.job_card_no for i in data.history] == ["JC-001"]
    assert data.extras["next_serial"] == 2


def test_production_insert_row(planner_sheet, app_config):
    planner_sheet.tabs["JobCards"][0].pop("Q")
    wf, data, ctx = _load("production", planner_sheet, app_config)
    form = {
        "quantity_fg": "48",
        "machine_hours": "08:30:00",
        "raw_materials": [("Alumina", "30"), {"name": "Cement", "quantity": "12.5"}],
    }
    assert wf.validate(form) == {}
    (cmd,) = wf.build_commands(data.pending[0], form, ctx)
    assert cmd.action == "insert"
    assert cmd.sheet_name == "Actual Production"
    row = cmd.row_data
    assert row[:8] == [TS, "JC-001", "Acme", "06/01/2024", "Ravi", "Castable 60", "48", 2]
    assert row[8:12] == ["Alumina", "30", "Cement", "12.5"]
    assert len(row) == 8 + 40 + 1
    assert row[-1] == "08:30:00"


def test_production_validation():
    errors = get_workflow("production").validate(
        {"quantity_fg": "0", "machine_hours": "8:30", "raw_materials": []}
    )
    assert set(errors) == {"quantity_fg", "raw_materials", "machine_hours"}
    errors = get_workflow("production").validate(
        {"quantity_fg": "5", "machine_hours": "08:30:00", "raw_materials": [("", "3")]}
    )
    assert errors == {"raw_materials": "Each raw material needs a name and a quantity above 0."}
    too_many = [(f"M{i}", "1") for i in range(21)]
    errors = get_workflow("production").validate(
        {"quantity_fg": "5", "machine_hours": "08:30:00", "raw_materials": too_many}
    )
    assert errors == {"raw_materials": "At most 20 raw materials can be added."}


# --- job cards --------------------------------------------------------------


def test_job_cards_pending_orders_and_history(planner_sheet, app_config):
    _, data, _ = _load("job-cards", planner_sheet, app_config)
    assert [i.delivery_order_no for i in data.pending] == ["DO-101"]
    assert data.pending[0].details["expected_date"] == "20/01/2024"
    assert [i.job_card_no for i in data.history] == ["JC-001"]
    assert data.options["shift"] == ["Day", "Night"]


def test_job_card_insert_gets_next_number(planner_sheet, app_config):
    wf, data, ctx = _load("job-cards", planner_sheet, app_config)
    form = {"supervisor": "Ravi", "production_date": "2024-01-21", "shift": "Day"}
    (cmd,) = wf.build_commands(data.pending[0], form, ctx)
    assert cmd == Command.insert(
        "JobCards",
        [TS, "JC-002", "Acme", "Ravi", "DO-101", "Party Two", "Mortar", 20, "21/01/2024", "Day", ""],
    )
    assert wf.success_message(data.pending[0], [cmd]) == "Job Card JC-002 created for DO-101."


def test_job_card_for_an_order_with_a_card_overwrites_it(planner_sheet, app_config):
    planner_sheet.tabs["JobCards"].append({"A": "Date(2024,0,8,9,0,0)", "B": "JC-007", "E": "DO-101"})
    wf, data, ctx = _load("job-cards", planner_sheet, app_config)
    form = {"supervisor": "Sunil", "production_date": "21/01/2024", "shift": "Night"}
    (cmd,) = wf.build_commands(data.pending[0], form, ctx)
    assert cmd.action == "update"
    assert cmd.row_index == 6
    assert cmd.row_data[1] == "JC-007"
    assert wf.success_message(data.pending[0], [cmd]) == "Job Card JC-007 updated for DO-101."


def test_job_card_history_ignores_unnumbered_rows(planner_sheet, app_config):
    planner_sheet.tabs["JobCards"].append({"B": "Job Card No.", "E": "DO-999"})
    planner_sheet.tabs["JobCards"].append({"B": "JC-010", "E": "DO-100"})
    _, data, _ = _load("job-cards", planner_sheet, app_config)
    assert [i.job_card_no for i in data.history] == ["JC-010", "JC-001"]


# --- orders -----------------------------------------------------------------


def test_orders_form_options_and_insert(planner_sheet, app_config):
    wf, data, ctx = _load("orders", planner_sheet, app_config)
    assert data.options["firm"] == ["Acme", "Brick Co"]
    form = {"firm": "Acme", "delivery_order_no": "DO-101", "quantity": "20", "priority": "Urgent"}
    assert wf.validate(form) == {}
    (cmd,) = wf.build_commands(None, form, ctx)
    assert cmd.sheet_name == "Production"
    assert cmd.row_data == [TS, "DO-101", "Acme", "Party Two", "Mortar", "20", "", "Urgent", ""]


def test_orders_validation():
    errors = get_workflow("orders").validate({"quantity": "-1", "priority": "Low", "expected_date": "soon"})
    assert set(errors) == {"firm", "delivery_order_no", "quantity", "priority", "expected_date"}


# --- full kitting -----------------------------------------------------------


def test_full_kitting_two_commands(planner_sheet, app_config):
    wf, data, ctx = _load("full-kitting", planner_sheet, app_config)
    assert [i.delivery_order_no for i in data.pending] == ["DO-100"]
    assert data.extras["next_composition_no"] == "CN-008"
    form = {"kitting_rows": [("Alumina", "60"), ("Cement", "40")], "manufacturing_cost": "2"}
    assert wf.validate(form) == {}
    insert, stamp = wf.build_commands(data.pending[0], form, ctx)
    assert insert.action == "insert" and insert.sheet_name == "Costing Response"
    assert insert.row_data[:4] == [TS, "CN-008", "DO-100", "Castable 60"]
    assert insert.row_data[15:17] == ["Alumina", "Cement"]
    assert stamp == Command.update_columns("Production", 2, {22: TS})


def test_full_kitting_rejects_unknown_product(planner_sheet, app_config):
    wf, data, ctx = _load("full-kitting", planner_sheet, app_config)
    with pytest.raises(FormValidationError) as exc:
        wf.build_commands(data.pending[0], {"kitting_rows": [("Sand", "10")]}, ctx)
    assert "Sand" in exc.value.errors["kitting_rows"]


def test_full_kitting_validation():
    wf = get_workflow("full-kitting")
    assert set(wf.validate({})) == {"kitting_rows"}
    errors = wf.validate({"kitting_rows": [("Alumina", "0")], "transporting": "-3", "selling_price": "0"})
    assert set(errors) == {"kitting_rows", "transporting", "selling_price"}


# --- check / tally ----------------------------------------------------------


def test_check_pending_and_command(planner_sheet, app_config):
    wf, data, ctx = _load("check", planner_sheet, app_config)
    (item,) = data.pending
    assert item.job_card_no == "JC-001"
    assert item.delivery_order_no == "DO-100"
    assert item.details["lab_test1"] == "N/A"
    assert item.details["produced_quantity"] == 48
    form = {"status": "Pass", "actual_qty": "47"}
    (cmd,) = wf.build_commands(item, form, ctx)
    # BG=59 verified at, BI=61 status, BJ=62 actual quantity
    assert cmd == Command.update_by_job_card("Actual Production", "JC-001", {59: TS, 61: "Pass", 62: "47"})


def test_check_validation():
    errors = get_workflow("check").validate({"actual_qty": "0"})
    assert errors == {"status": "Status is required.", "actual_qty": "Valid actual quantity is required."}


def test_tally_uppercases_the_job_card_number(planner_sheet, app_config):
    wf, _, ctx = _load("tally", planner_sheet, app_config)
    item = WorkflowItem(stage=Stage.PENDING, row_index=2, sheet_name="Actual Production", job_card_no="jc-001")
    (cmd,) = wf.build_commands(item, {"remarks": "ok"}, ctx)
    assert cmd.job_card_no == "JC-001"
    # BL=64 tallied at, BN=66 remarks
    assert cmd.column_updates == {64: TS, 66: "ok"}
