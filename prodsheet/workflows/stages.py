from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar

from ..models.load_result import PageData
from ..models.record import Record
from ..models.workflow_item import Stage, WorkflowItem
from ..services.classifier import partition
from ..services.formatting import format_date, format_duration, format_short_datetime
from ..services.joiner import build_index, join_key
from ..services.materials import denormalize_materials, material_column_pairs
from ..sheets.normalizer import SheetTable
from .base import ColumnMeta, Workflow, newest_first, unique_values
from .layouts import (
    ACTUAL_PRODUCTION,
    ACTUAL_PRODUCTION_SHEET,
    JOBCARDS,
    JOBCARDS_SHEET,
    MASTER,
    MASTER_SHEET,
    PRODUCTION,
    PRODUCTION_SHEET,
)

"""Shared load logic of the pages driven by a JobCards stage column pair.

Production, lab test 1, lab test 2 and chemical test all classify JobCards
rows by their own (start, completion) pair, then join:

- Production by delivery order number (JobCards E <-> Production B) for the
  expected delivery date and priority,
- Actual Production by job card number (JobCards B <-> Actual Production B)
  for the raw materials and machine hours.
"""

__all__ = [
    "EXCLUDED_MATERIAL_NAMES",
    "JobCardStageWorkflow",
    "actual_production_lookup",
    "master_options",
]

# Actual Production のヘッダ行やエクスポート由来の "null" は原料名ではない
EXCLUDED_MATERIAL_NAMES = ("null", "Raw Material Name")

MATERIAL_COLUMNS = material_column_pairs(ACTUAL_PRODUCTION["first_material"])

COMMON_COLUMNS = (
    ColumnMeta("job_card_no", "Job Card No.", toggleable=False),
    ColumnMeta("delivery_order_no", "Delivery Order No."),
    ColumnMeta("product_name", "Product"),
    ColumnMeta("quantity", "Quantity"),
    ColumnMeta("expected_date", "Expected Delivery"),
    ColumnMeta("priority", "Priority"),
    ColumnMeta("production_date", "Date of Production"),
    ColumnMeta("supervisor", "Supervisor"),
    ColumnMeta("shift", "Shift"),
    ColumnMeta("machine_hours", "Machine Hours"),
    ColumnMeta("raw_materials", "Raw Materials"),
)


def actual_production_lookup(records: list[Record]) -> dict[str, dict[str, Any]]:
    """Job card number -> {raw_materials, machine_hours} (first row wins)."""
    lookup: dict[str, dict[str, Any]] = {}
    for key, record in build_index(records, ACTUAL_PRODUCTION["job_card_no"]).items():
        lookup[key] = {
            "raw_materials": denormalize_materials(record, MATERIAL_COLUMNS, exclude=EXCLUDED_MATERIAL_NAMES),
            "machine_hours": format_duration(record.get(ACTUAL_PRODUCTION["machine_hours"])),
        }
    return lookup


class JobCardStageWorkflow(Workflow):
    """Pending = JobCards rows with ``start_field`` set and ``done_field`` blank."""

    start_field: ClassVar[str] = ""
    done_field: ClassVar[str] = ""
    sheets = (JOBCARDS_SHEET, PRODUCTION_SHEET, ACTUAL_PRODUCTION_SHEET, MASTER_SHEET)
    pending_columns = COMMON_COLUMNS

    # --- hooks ----------------------------------------------------------
    def history_details(self, record: Record) -> dict[str, Any]:
        return {}

    def history_sort_key(self) -> str | None:
        """details key holding the raw completion timestamp (None keeps row order)."""
        return "completed_raw"

    def page_options(self, master: list[Record]) -> dict[str, list[str]]:
        return {}

    # --- pipeline -------------------------------------------------------
    def base_details(
        self,
        record: Record,
        production: Mapping[str, Record],
        actual: Mapping[str, dict[str, Any]],
    ) -> tuple[dict[str, Any], list]:
        jc = JOBCARDS
        prod = production.get(join_key(record.get(jc["delivery_order_no"])))
        extra = actual.get(join_key(record.get(jc["job_card_no"])), {})
        details = {
            "firm": record.text(jc["firm"]),
            "party": record.text(jc["party"]),
            "quantity": record.number(jc["quantity"]),
            "production_date": format_date(record.get(jc["production_date"])),
            "supervisor": record.text(jc["supervisor"]),
            "shift": record.text(jc["shift"]),
            "notes": record.text(jc["notes"]),
            "expected_date": format_date(prod.get(PRODUCTION["expected_date"])) if prod else "",
            "priority": prod.text(PRODUCTION["priority"]) if prod else "",
            "machine_hours": extra.get("machine_hours", "-"),
        }
        return details, list(extra.get("raw_materials", []))

    def to_item(
        self,
        stage: Stage,
        record: Record,
        production: Mapping[str, Record],
        actual: Mapping[str, dict[str, Any]],
    ) -> WorkflowItem:
        jc = JOBCARDS
        details, materials = self.base_details(record, production, actual)
        if stage is Stage.HISTORY:
            details["completed_raw"] = record.get(jc[self.done_field])
            details["completed_at"] = format_short_datetime(record.get(jc[self.done_field]))
            details.update(self.history_details(record))
        return WorkflowItem(
            stage=stage,
            row_index=record.row_index,
            sheet_name=record.sheet_name,
            job_card_no=record.text(jc["job_card_no"]).strip(),
            delivery_order_no=record.text(jc["delivery_order_no"]).strip(),
            product_name=record.text(jc["product"]).strip(),
            raw_materials=materials,
            details=details,
        )

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        jobcards = tables[JOBCARDS_SHEET].records
        production = build_index(tables[PRODUCTION_SHEET].records, PRODUCTION["delivery_order_no"])
        actual = actual_production_lookup(tables[ACTUAL_PRODUCTION_SHEET].records)

        split = partition(jobcards, JOBCARDS[self.start_field], JOBCARDS[self.done_field])
        pending = [self.to_item(Stage.PENDING, r, production, actual) for r in split.pending]
        history = [self.to_item(Stage.HISTORY, r, production, actual) for r in split.history]
        sort_key = self.history_sort_key()
        history = newest_first(history, sort_key) if sort_key else history

        master = tables[MASTER_SHEET].records if MASTER_SHEET in tables else []
        return PageData(
            page_id=self.page_id,
            pending=pending,
            history=history,
            options=self.page_options(master),
        )


def master_options(master: list[Record], **fields: str) -> dict[str, list[str]]:
    """``name=<MASTER field>`` -> distinct values of that Master column."""
    return {name: unique_values(master, MASTER[field]) for name, field in fields.items()}
