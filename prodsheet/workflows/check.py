from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.load_result import PageData
from ..models.record import Record
from ..models.workflow_item import Stage, WorkflowItem
from ..services.classifier import partition
from ..services.formatting import format_short_datetime, timestamp_now
from ..services.joiner import build_index, join_key
from ..sheets.normalizer import SheetTable
from ..sheets.writer import Command, named_updates
from .base import ColumnMeta, SubmitContext, Workflow, form_number, form_text, newest_first, require
from .layouts import ACTUAL_PRODUCTION, ACTUAL_PRODUCTION_SHEET, JOBCARDS, JOBCARDS_SHEET, MASTER_SHEET
from .stages import master_options

"""Check (verification) page and the tally page that follows it.

Both classify Actual Production rows (check: BF / BG, tally: BK / BL), take
the delivery order number and product from JobCards by job card number and
write back with updateByJobCard.
"""

__all__ = [
    "CheckWorkflow",
    "TallyWorkflow",
]


class _ActualProductionStage(Workflow):
    start_field = ""
    done_field = ""
    sheets = (ACTUAL_PRODUCTION_SHEET, JOBCARDS_SHEET)

    def item_details(self, stage: Stage, record: Record, card: Record | None) -> dict[str, Any]:
        return {}

    def to_item(self, stage: Stage, record: Record, cards: Mapping[str, Record]) -> WorkflowItem:
        ap = ACTUAL_PRODUCTION
        card = cards.get(join_key(record.get(ap["job_card_no"])))
        details = {
            "quantity": card.number(JOBCARDS["quantity"]) if card else 0,
            "produced_quantity": record.number(ap["quantity_fg"]),
            "serial_no": record.text(ap["serial_no"]),
        }
        details.update(self.item_details(stage, record, card))
        return WorkflowItem(
            stage=stage,
            row_index=record.row_index,
            sheet_name=record.sheet_name,
            job_card_no=record.text(ap["job_card_no"]).strip(),
            delivery_order_no=card.text(JOBCARDS["delivery_order_no"]).strip() if card else "",
            product_name=(card.text(JOBCARDS["product"]) if card else record.text(ap["product"])).strip(),
            details=details,
        )

    def options(self, tables: Mapping[str, SheetTable]) -> dict[str, list[str]]:
        return {}

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        ap = ACTUAL_PRODUCTION
        cards = build_index(tables[JOBCARDS_SHEET].records, JOBCARDS["job_card_no"])
        split = partition(tables[ACTUAL_PRODUCTION_SHEET], ap[self.start_field], ap[self.done_field])
        history = [self.to_item(Stage.HISTORY, r, cards) for r in split.history]
        return PageData(
            page_id=self.page_id,
            pending=[self.to_item(Stage.PENDING, r, cards) for r in split.pending],
            history=newest_first(history, "completed_raw"),
            options=self.options(tables),
        )


class CheckWorkflow(_ActualProductionStage):
    page_id = "check"
    title = "Check"
    start_field = "check_start"
    done_field = "check_done"
    sheets = (ACTUAL_PRODUCTION_SHEET, JOBCARDS_SHEET, MASTER_SHEET)
    optional_sheets = (MASTER_SHEET,)
    form_fields = ("status", "actual_qty")
    pending_columns = (
        ColumnMeta("job_card_no", "Job Card No.", toggleable=False),
        ColumnMeta("delivery_order_no", "Delivery Order No."),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("quantity", "Order Qty"),
        ColumnMeta("produced_quantity", "Produced Qty"),
        ColumnMeta("lab_test1", "Lab Test 1"),
        ColumnMeta("lab_test2", "Lab Test 2"),
        ColumnMeta("chemical_test", "Chemical Test"),
    )
    history_columns = (
        ColumnMeta("job_card_no", "Job Card No.", toggleable=False),
        ColumnMeta("delivery_order_no", "Delivery Order No."),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("status", "Status"),
        ColumnMeta("actual_qty", "Actual Qty"),
        ColumnMeta("completed_at", "Verified At"),
    )

    def item_details(self, stage: Stage, record: Record, card: Record | None) -> dict[str, Any]:
        ap = ACTUAL_PRODUCTION
        details: dict[str, Any] = {
            "lab_test1": card.text(JOBCARDS["lab1_status"], "N/A") if card else "N/A",
            "lab_test2": card.text(JOBCARDS["lab2_status"], "N/A") if card else "N/A",
            "chemical_test": card.text(JOBCARDS["chemical_status"], "N/A") if card else "N/A",
        }
        if stage is Stage.HISTORY:
            details.update(
                completed_raw=record.get(ap["check_done"]),
                completed_at=format_short_datetime(record.get(ap["check_done"])),
                status=record.text(ap["check_status"], "N/A"),
                actual_qty=record.number(ap["check_actual_qty"]),
            )
        return details

    def options(self, tables: Mapping[str, SheetTable]) -> dict[str, list[str]]:
        master = tables[MASTER_SHEET].records if MASTER_SHEET in tables else []
        return master_options(master, status="status")

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        errors: dict[str, str] = {}
        require(errors, form, "status", "Status is required.")
        qty = form_number(form, "actual_qty")
        if qty is None or qty <= 0:
            errors["actual_qty"] = "Valid actual quantity is required."
        return errors

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        item = self.require_item(item)
        updates = named_updates(
            ACTUAL_PRODUCTION,
            {
                "check_done": timestamp_now(context.now),
                "check_status": form_text(form, "status"),
                "check_actual_qty": form_text(form, "actual_qty"),
            },
        )
        return [Command.update_by_job_card(ACTUAL_PRODUCTION_SHEET, item.job_card_no, updates)]


class TallyWorkflow(_ActualProductionStage):
    page_id = "tally"
    title = "Tally"
    start_field = "tally_start"
    done_field = "tally_done"
    form_fields = ("remarks",)
    pending_columns = (
        ColumnMeta("job_card_no", "Job Card No.", toggleable=False),
        ColumnMeta("delivery_order_no", "Delivery Order No."),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("quantity", "Order Qty"),
        ColumnMeta("check_status", "Check Status"),
        ColumnMeta("check_time", "Checked At"),
    )
    history_columns = pending_columns + (
        ColumnMeta("completed_at", "Tallied At"),
        ColumnMeta("remarks", "Remarks"),
    )

    def item_details(self, stage: Stage, record: Record, card: Record | None) -> dict[str, Any]:
        ap = ACTUAL_PRODUCTION
        check_time = record.get(ap["check_done"])
        details: dict[str, Any] = {
            "check_status": record.text(ap["check_status"], "N/A"),
            "check_time": format_short_datetime(check_time) if check_time is not None else "N/A",
            "remarks": record.text(ap["tally_remarks"]),
        }
        if stage is Stage.HISTORY:
            details["completed_raw"] = record.get(ap["tally_done"])
            details["completed_at"] = format_short_datetime(record.get(ap["tally_done"]))
        return details

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        item = self.require_item(item)
        updates = named_updates(
            ACTUAL_PRODUCTION,
            {
                "tally_done": timestamp_now(context.now),
                "tally_remarks": form_text(form, "remarks"),
            },
        )
        # 書き込み側は大文字の JC 番号で照合される
        return [Command.update_by_job_card(ACTUAL_PRODUCTION_SHEET, item.job_card_no.upper(), updates)]
