from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.load_result import PageData
from ..models.record import Record
from ..models.workflow_item import Stage, WorkflowItem
from ..services.classifier import partition
from ..services.formatting import format_date, format_datetime, timestamp_now
from ..services.joiner import find_first
from ..services.numbering import next_number, parse_number
from ..sheets.normalizer import SheetTable
from ..sheets.writer import Command
from .base import ColumnMeta, SubmitContext, Workflow, form_date, form_text, require, require_date
from .layouts import (
    JOBCARDS,
    JOBCARDS_SHEET,
    MASTER_SHEET,
    PRODUCTION,
    PRODUCTION_SHEET,
)
from .stages import master_options

"""Job card page.

Pending orders are Production rows with X set and Y blank. History lists the
JobCards rows whose number looks like ``JC-<n>``, highest number first.
Submitting for an order that already has a card overwrites that card's row
(``update``); otherwise a new ``JC-NNN`` row is inserted.
"""

__all__ = [
    "JOB_CARD_PREFIX",
    "JobCardsWorkflow",
    "valid_job_cards",
]

JOB_CARD_PREFIX = "JC"


def valid_job_cards(records: list[Record]) -> list[Record]:
    """JobCards rows carrying a ``JC-<n>`` number, highest number first."""
    numbered = [
        (n, r)
        for r in records
        if (n := parse_number(r.text(JOBCARDS["job_card_no"]), JOB_CARD_PREFIX)) is not None
    ]
    return [r for _, r in sorted(numbered, key=lambda pair: pair[0], reverse=True)]


class JobCardsWorkflow(Workflow):
    page_id = "job-cards"
    title = "Job Card"
    sheets = (PRODUCTION_SHEET, JOBCARDS_SHEET, MASTER_SHEET)
    form_fields = ("supervisor", "production_date", "shift", "notes")
    pending_columns = (
        ColumnMeta("delivery_order_no", "Delivery Order No.", toggleable=False),
        ColumnMeta("firm", "Firm"),
        ColumnMeta("party", "Party"),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("quantity", "Order Qty"),
        ColumnMeta("expected_date", "Expected Delivery"),
        ColumnMeta("priority", "Priority"),
        ColumnMeta("note", "Note"),
    )
    history_columns = (
        ColumnMeta("job_card_no", "Job Card No.", toggleable=False),
        ColumnMeta("delivery_order_no", "Delivery Order No."),
        ColumnMeta("firm", "Firm"),
        ColumnMeta("party", "Party"),
        ColumnMeta("product_name", "Product"),
        ColumnMeta("quantity", "Order Qty"),
        ColumnMeta("supervisor", "Supervisor"),
        ColumnMeta("production_date", "Date of Production"),
        ColumnMeta("shift", "Shift"),
        ColumnMeta("notes", "Notes"),
        ColumnMeta("created_at", "Created At"),
    )

    def _order_item(self, record: Record) -> WorkflowItem:
        p = PRODUCTION
        return WorkflowItem(
            stage=Stage.PENDING,
            row_index=record.row_index,
            sheet_name=record.sheet_name,
            delivery_order_no=record.text(p["delivery_order_no"]).strip(),
            product_name=record.text(p["product"]).strip(),
            details={
                "firm": record.text(p["firm"]).strip(),
                "party": record.text(p["party"]).strip(),
                "quantity": record.number(p["quantity"]),
                "expected_date": format_date(record.get(p["expected_date"])),
                "priority": record.text(p["priority"]),
                "note": record.text(p["note"]),
            },
        )

    def _card_item(self, record: Record) -> WorkflowItem:
        jc = JOBCARDS
        return WorkflowItem(
            stage=Stage.HISTORY,
            row_index=record.row_index,
            sheet_name=record.sheet_name,
            job_card_no=record.text(jc["job_card_no"]).strip(),
            delivery_order_no=record.text(jc["delivery_order_no"]).strip(),
            product_name=record.text(jc["product"]),
            details={
                "firm": record.text(jc["firm"]),
                "party": record.text(jc["party"]),
                "quantity": record.number(jc["quantity"]),
                "supervisor": record.text(jc["supervisor"]),
                "production_date": format_date(record.get(jc["production_date"])),
                "shift": record.text(jc["shift"]),
                "notes": record.text(jc["notes"]),
                "created_at": format_datetime(record.get(jc["timestamp"])),
            },
        )

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        split = partition(tables[PRODUCTION_SHEET], PRODUCTION["job_card_start"], PRODUCTION["job_card_done"])
        cards = valid_job_cards(tables[JOBCARDS_SHEET].records)
        return PageData(
            page_id=self.page_id,
            pending=[self._order_item(r) for r in split.pending],
            history=[self._card_item(r) for r in cards],
            options=master_options(tables[MASTER_SHEET].records, supervisor="supervisor", shift="shift"),
        )

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        errors: dict[str, str] = {}
        require(errors, form, "supervisor", "Supervisor name is required")
        require_date(errors, form, "production_date", "Production date is required")
        require(errors, form, "shift", "Shift is required")
        return errors

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        item = self.require_item(item)
        cards = valid_job_cards(context.tables[JOBCARDS_SHEET].records)
        existing = find_first(item.delivery_order_no, cards, JOBCARDS["delivery_order_no"])
        if existing is not None:
            number = existing.text(JOBCARDS["job_card_no"]).strip()
        else:
            number = next_number((c.text(JOBCARDS["job_card_no"]) for c in cards), JOB_CARD_PREFIX)

        row = [
            timestamp_now(context.now),
            number,
            item.details.get("firm", ""),
            form_text(form, "supervisor"),
            item.delivery_order_no,
            item.details.get("party", ""),
            item.product_name,
            item.details.get("quantity", 0),
            form_date(form, "production_date"),
            form_text(form, "shift"),
            form_text(form, "notes"),
        ]
        if existing is not None:
            return [Command.update(JOBCARDS_SHEET, existing.row_index, row)]
        return [Command.insert(JOBCARDS_SHEET, row)]

    def success_message(self, item: WorkflowItem | None, commands) -> str:
        command = commands[0]
        verb = "updated" if command.action == "update" else "created"
        return f"Job Card {command.row_data[1]} {verb} for {item.delivery_order_no if item else ''}."
