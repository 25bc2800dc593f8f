from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.record import Record
from ..models.workflow_item import WorkflowItem
from ..services.formatting import timestamp_now
from ..sheets.writer import Command, named_updates
from .base import ColumnMeta, SubmitContext, form_text, require
from .layouts import JOBCARDS, JOBCARDS_SHEET
from .stages import JobCardStageWorkflow, master_options

"""Chemical test page: JobCards AP (start) / AQ (completed), updateColumns on the row."""

__all__ = [
    "ChemicalTestWorkflow",
]

_PERCENTAGES = ("alumina", "iron", "silica", "calcium")


class ChemicalTestWorkflow(JobCardStageWorkflow):
    page_id = "chemical-test"
    title = "Chemical Test"
    start_field = "chemical_start"
    done_field = "chemical_done"
    form_fields = ("status",) + _PERCENTAGES
    history_columns = (
        ColumnMeta("job_card_no", "Job Card No.", toggleable=False),
        ColumnMeta("delivery_order_no", "Delivery Order No."),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("status", "Status"),
        ColumnMeta("alumina", "Alumina %"),
        ColumnMeta("iron", "Iron %"),
        ColumnMeta("silica", "Silica %"),
        ColumnMeta("calcium", "Calcium %"),
        ColumnMeta("completed_at", "Completed At"),
    )

    def history_details(self, record: Record) -> dict[str, Any]:
        details = {"status": record.text(JOBCARDS["chemical_status"])}
        details.update({f: record.text(JOBCARDS[f]) for f in _PERCENTAGES})
        return details

    def page_options(self, master: list[Record]) -> dict[str, list[str]]:
        return master_options(master, status="status")

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        errors: dict[str, str] = {}
        require(errors, form, "status", "Status is required.")
        return errors

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        item = self.require_item(item)
        values = {
            "chemical_done": timestamp_now(context.now),
            "chemical_status": form_text(form, "status"),
        }
        values.update({f: form_text(form, f) for f in _PERCENTAGES})
        return [Command.update_columns(JOBCARDS_SHEET, item.row_index, named_updates(JOBCARDS, values))]
