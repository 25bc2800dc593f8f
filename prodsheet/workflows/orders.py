from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..models.load_result import PageData
from ..models.workflow_item import WorkflowItem
from ..services.formatting import timestamp_now
from ..sheets.normalizer import SheetTable
from ..sheets.writer import Command
from .base import SubmitContext, Workflow, form_date, form_number, form_text, require
from .layouts import ORDERS, ORDERS_SHEET, PRODUCTION_SHEET

"""Order entry page.

Form only: firm and order number choices come from the Orders tab, picking an
order fills party and product, and the submit appends one row to Production.
"""

__all__ = [
    "OrdersWorkflow",
    "PRIORITY_OPTIONS",
    "orders_for_firm",
]

PRIORITY_OPTIONS = ["Normal", "High", "Urgent"]


def orders_for_firm(data: PageData, firm: str) -> list[dict[str, str]]:
    return [o for o in data.extras.get("orders", []) if o["firm"] == firm]


def find_order(data: PageData, firm: str, order_no: str) -> dict[str, str] | None:
    for order in orders_for_firm(data, firm):
        if order["order_no"] == order_no:
            return order
    return None


class OrdersWorkflow(Workflow):
    page_id = "orders"
    title = "Order"
    sheets = (ORDERS_SHEET,)
    needs_item = False
    form_fields = (
        "firm",
        "delivery_order_no",
        "party",
        "product",
        "quantity",
        "expected_date",
        "priority",
        "note",
    )

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        orders = [
            {
                "firm": r.text(ORDERS["firm"]).strip(),
                "party": r.text(ORDERS["party"]).strip(),
                "order_no": r.text(ORDERS["order_no"]).strip(),
                "product": r.text(ORDERS["product"]).strip(),
            }
            for r in tables[ORDERS_SHEET]
        ]
        firms = list(dict.fromkeys(o["firm"] for o in orders if o["firm"]))
        return PageData(
            page_id=self.page_id,
            options={"firm": firms, "priority": list(PRIORITY_OPTIONS)},
            extras={"orders": orders},
        )

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        errors: dict[str, str] = {}
        require(errors, form, "firm", "Please select a Firm Name.")
        require(errors, form, "delivery_order_no", "Please select a Delivery Order No.")
        if form_text(form, "quantity"):
            qty = form_number(form, "quantity")
            if qty is None or qty <= 0:
                errors["quantity"] = "Order quantity must be a number above 0."
        if form_text(form, "expected_date") and not form_date(form, "expected_date"):
            errors["expected_date"] = "Date must be dd/MM/yyyy or yyyy-MM-dd."
        priority = form_text(form, "priority")
        if priority and priority not in PRIORITY_OPTIONS:
            errors["priority"] = f"Priority must be one of {', '.join(PRIORITY_OPTIONS)}."
        return errors

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        firm = form_text(form, "firm")
        order_no = form_text(form, "delivery_order_no")
        order = find_order(context.data, firm, order_no) or {}
        row = [
            timestamp_now(context.now),
            order_no,
            firm,
            form_text(form, "party") or order.get("party", ""),
            form_text(form, "product") or order.get("product", ""),
            form_text(form, "quantity"),
            form_date(form, "expected_date"),
            form_text(form, "priority"),
            form_text(form, "note"),
        ]
        return [Command.insert(PRODUCTION_SHEET, row)]

    def success_message(self, item: WorkflowItem | None, commands) -> str:
        return f"Order {commands[0].row_data[1]} added to {PRODUCTION_SHEET}."
