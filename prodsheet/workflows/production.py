from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.load_result import PageData
from ..models.record import Record
from ..models.workflow_item import WorkflowItem
from ..services.formatting import is_duration, timestamp_now
from ..services.materials import flatten_materials
from ..sheets.normalizer import SheetTable
from ..sheets.writer import Command
from .base import ColumnMeta, SubmitContext, form_materials, form_number, form_text
from .layouts import ACTUAL_PRODUCTION, ACTUAL_PRODUCTION_SHEET
from .stages import COMMON_COLUMNS, JobCardStageWorkflow, master_options

"""Production page.

Pending: JobCards P (start) / Q (completed). A submit appends one row to
Actual Production: job card header fields, finished-goods quantity, the next
serial number, 20 raw-material pairs and the machine running hours.
"""

__all__ = [
    "ProductionWorkflow",
    "next_serial_number",
]


def next_serial_number(records: list[Record]) -> int:
    """Serial number of the last Actual Production row plus one (non-numeric -> 1)."""
    if not records:
        return 1
    last = records[-1].get(ACTUAL_PRODUCTION["serial_no"])
    if isinstance(last, bool) or not isinstance(last, (int, float)):
        return 1
    return int(last) + 1


class ProductionWorkflow(JobCardStageWorkflow):
    page_id = "production"
    title = "Production"
    start_field = "production_start"
    done_field = "production_done"
    form_fields = ("quantity_fg", "machine_hours", "raw_materials")
    pending_columns = COMMON_COLUMNS
    history_columns = COMMON_COLUMNS + (ColumnMeta("notes", "Notes"),)

    def history_sort_key(self) -> str | None:
        return None

    def page_options(self, master: list[Record]) -> dict[str, list[str]]:
        return master_options(master, material="material")

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        data = super().load(tables)
        # 新しい行ほど上に表示
        history = sorted(data.history, key=lambda item: item.row_index, reverse=True)
        return PageData(
            page_id=data.page_id,
            pending=data.pending,
            history=history,
            options=data.options,
            extras={"next_serial": next_serial_number(tables[ACTUAL_PRODUCTION_SHEET].records)},
        )

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        errors: dict[str, str] = {}
        qty = form_number(form, "quantity_fg")
        if qty is None or qty <= 0:
            errors["quantity_fg"] = "Valid Finished Goods quantity is required."
        materials = form_materials(form)
        if not materials:
            errors["raw_materials"] = "At least one raw material is required."
        elif len(materials) > self.max_materials:
            errors["raw_materials"] = f"At most {self.max_materials} raw materials can be added."
        else:
            for m in materials:
                try:
                    qty_ok = float(m.quantity) > 0
                except (TypeError, ValueError):
                    qty_ok = False
                if not m.name or not qty_ok:
                    errors["raw_materials"] = "Each raw material needs a name and a quantity above 0."
                    break
        if not is_duration(form_text(form, "machine_hours")):
            errors["machine_hours"] = "Machine running hour must be in HH:MM:SS format."
        return errors

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        item = self.require_item(item)
        serial = next_serial_number(context.tables[ACTUAL_PRODUCTION_SHEET].records)
        row = [
            timestamp_now(context.now),
            item.job_card_no,
            item.details.get("firm", ""),
            item.details.get("production_date", ""),
            item.details.get("supervisor", ""),
            item.product_name,
            form_text(form, "quantity_fg"),
            serial,
            *flatten_materials(form_materials(form), self.max_materials),
            form_text(form, "machine_hours"),
        ]
        return [Command.insert(ACTUAL_PRODUCTION_SHEET, row)]
