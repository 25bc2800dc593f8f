from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.load_result import PageData
from ..models.record import Record
from ..models.workflow_item import Stage, WorkflowItem
from ..services.classifier import partition
from ..services.costing import (
    MAX_KITTING_LINES,
    CostingSheet,
    compute_costing,
    costing_row,
    kitting_line,
    load_kyc,
    next_composition_number,
)
from ..services.formatting import format_date, timestamp_now
from ..sheets.normalizer import SheetTable
from ..sheets.writer import Command, named_updates
from .base import ColumnMeta, FormValidationError, SubmitContext, Workflow, form_number, form_text, newest_first
from .layouts import (
    COSTING_RESPONSE,
    COSTING_RESPONSE_SHEET,
    KYC,
    KYC_SHEET,
    PRODUCTION,
    PRODUCTION_SHEET,
)

"""Full kitting page.

Pending: Production U (start) / V (kitted). The Production tab is read as
display text because the kitted timestamp is compared and shown as typed.

A submit is two sequential writes: the costing row is inserted into Costing
Response, then Production V is stamped on the order's row. The second write
is not attempted when the first fails; nothing undoes the first when the
second fails.
"""

__all__ = [
    "FullKittingWorkflow",
    "form_kitting_rows",
]

_COST_FIELDS = ("manufacturing_cost", "interest_days", "transporting")


def form_kitting_rows(form: Mapping[str, Any]) -> list[tuple[str, str]]:
    """``kitting_rows`` as (product, percentage text) pairs."""
    rows: list[tuple[str, str]] = []
    for raw in form.get("kitting_rows") or []:
        if isinstance(raw, Mapping):
            product, pct = raw.get("product", ""), raw.get("percentage", "")
        else:
            product, pct = raw
        rows.append((str(product or "").strip(), str(pct if pct is not None else "").strip()))
    return rows


def _is_data_row(record: Record) -> bool:
    first = record.get(PRODUCTION["timestamp"])
    # ヘッダ行が紛れ込む場合がある
    return first is not None and str(first).strip() != "Timestamp"


class FullKittingWorkflow(Workflow):
    page_id = "full-kitting"
    title = "Full Kitting"
    sheets = (PRODUCTION_SHEET, KYC_SHEET, COSTING_RESPONSE_SHEET)
    formatted_sheets = (PRODUCTION_SHEET,)
    form_fields = ("kitting_rows", "manufacturing_cost", "interest_days", "transporting", "selling_price")
    pending_columns = (
        ColumnMeta("delivery_order_no", "Delivery Order No.", toggleable=False),
        ColumnMeta("timestamp", "Timestamp"),
        ColumnMeta("firm", "Firm"),
        ColumnMeta("party", "Party"),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("quantity", "Quantity"),
    )
    history_columns = pending_columns + (
        ColumnMeta("expected_date", "Expected Delivery"),
        ColumnMeta("priority", "Priority"),
        ColumnMeta("note", "Note"),
        ColumnMeta("completed_at", "Kitted At"),
    )

    def _item(self, stage: Stage, record: Record) -> WorkflowItem:
        p = PRODUCTION
        details: dict[str, Any] = {
            "timestamp": record.text(p["timestamp"]),
            "firm": record.text(p["firm"]),
            "party": record.text(p["party"]),
            "quantity": record.number(p["quantity"]),
        }
        if stage is Stage.HISTORY:
            details.update(
                expected_date=format_date(record.get(p["expected_date"])),
                priority=record.text(p["priority"]),
                note=record.text(p["note"]),
                completed_raw=record.text(p["kitting_done"]),
                completed_at=record.text(p["kitting_done"]),
            )
        return WorkflowItem(
            stage=stage,
            row_index=record.row_index,
            sheet_name=record.sheet_name,
            delivery_order_no=record.text(p["delivery_order_no"]).strip(),
            product_name=record.text(p["product"]).strip(),
            details=details,
        )

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        rows = [r for r in tables[PRODUCTION_SHEET] if _is_data_row(r)]
        split = partition(rows, PRODUCTION["kitting_start"], PRODUCTION["kitting_done"])
        kyc = load_kyc(tables[KYC_SHEET], KYC)
        history = [self._item(Stage.HISTORY, r) for r in split.history]
        return PageData(
            page_id=self.page_id,
            pending=[self._item(Stage.PENDING, r) for r in split.pending],
            history=newest_first(history, "completed_raw"),
            options={"product": sorted(kyc)},
            extras={
                "kyc": kyc,
                "next_composition_no": next_composition_number(
                    tables[COSTING_RESPONSE_SHEET], COSTING_RESPONSE["composition_no"]
                ),
            },
        )

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        errors: dict[str, str] = {}
        rows = form_kitting_rows(form)
        if not rows:
            errors["kitting_rows"] = "At least one kitting row is required."
        elif len(rows) > MAX_KITTING_LINES:
            errors["kitting_rows"] = f"At most {MAX_KITTING_LINES} kitting rows can be added."
        else:
            for product, pct in rows:
                try:
                    pct_ok = float(pct) > 0
                except ValueError:
                    pct_ok = False
                if not product or not pct_ok:
                    errors["kitting_rows"] = "Each kitting row needs a product and a percentage above 0."
                    break
        for key in _COST_FIELDS:
            value = form_number(form, key)
            if form_text(form, key) and (value is None or value < 0):
                errors[key] = "Must be a number of 0 or more."
        if form_text(form, "selling_price"):
            sp = form_number(form, "selling_price")
            if sp is None or sp <= 0:
                errors["selling_price"] = "Selling price must be a number above 0."
        return errors

    def costing(self, form: Mapping[str, Any], data: PageData) -> CostingSheet:
        """Costing sheet for ``form`` against the loaded KYC products."""
        kyc = data.extras.get("kyc", {})
        unknown = [p for p, _ in form_kitting_rows(form) if p not in kyc]
        if unknown:
            raise FormValidationError({"kitting_rows": f"Unknown KYC product: {', '.join(unknown)}"})
        lines = [kitting_line(kyc[p], float(pct)) for p, pct in form_kitting_rows(form)]
        return compute_costing(
            lines,
            manufacturing_cost=form_number(form, "manufacturing_cost") or 0.0,
            interest_days=form_number(form, "interest_days") or 0.0,
            transporting=form_number(form, "transporting") or 0.0,
            selling_price=form_number(form, "selling_price"),
        )

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        item = self.require_item(item)
        sheet = self.costing(form, context.data)
        ts = timestamp_now(context.now)
        row = costing_row(
            sheet,
            timestamp=ts,
            composition_no=next_composition_number(
                context.tables[COSTING_RESPONSE_SHEET], COSTING_RESPONSE["composition_no"]
            ),
            delivery_order_no=item.delivery_order_no,
            product_name=item.product_name,
        )
        return [
            Command.insert(COSTING_RESPONSE_SHEET, row),
            Command.update_columns(PRODUCTION_SHEET, item.row_index, named_updates(PRODUCTION, {"kitting_done": ts})),
        ]

    def success_message(self, item: WorkflowItem | None, commands) -> str:
        return f"Full kitting {commands[0].row_data[1]} saved and production status updated."
