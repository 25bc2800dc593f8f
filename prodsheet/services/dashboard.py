from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import pandas as pd

from ..logging.error_log import ErrorLogBuffer, error_type_of
from ..models.config_models import AppConfig
from ..models.load_result import DashboardSummary, StageCount
from ..models.record import Record
from ..sheets.gviz import SheetReader
from ..sheets.normalizer import SheetTable, normalize_table
from ..workflows.base import Workflow
from ..workflows.layouts import MASTER_SHEET, PRODUCTION, PRODUCTION_SHEET
from ..workflows.registry import all_workflows
from ..workflows.stages import master_options
from .formatting import format_date
from .progress import ProgressTracker

"""Dashboard: filtered order list, master option lists and stage counts.

Every tab any stage needs is read once in a single concurrent batch; each
stage then derives its counts from the shared tables. A tab that fails only
marks the stages depending on it as failed, the rest of the dashboard still
renders.
"""

__all__ = [
    "ORDER_COLUMNS",
    "OrderFilter",
    "build_dashboard",
    "dashboard_options",
    "filter_orders",
    "order_rows",
    "priority_breakdown",
]

logger = logging.getLogger(__name__)

ORDER_COLUMNS = (
    "delivery_order_no",
    "firm",
    "party",
    "product",
    "quantity",
    "expected_date",
    "priority",
)


@dataclass(frozen=True)
class OrderFilter:
    firm: str = ""
    party: str = ""
    product: str = ""
    order_no: str = ""  # case-insensitive substring
    priority: str = ""


def order_rows(records: Iterable[Record]) -> pd.DataFrame:
    """Production rows with a delivery order number as a DataFrame."""
    rows: list[dict[str, Any]] = []
    for r in records:
        do_no = r.text(PRODUCTION["delivery_order_no"]).strip()
        if not do_no:
            continue
        row = {key: r.text(PRODUCTION[key]).strip() for key in ORDER_COLUMNS}
        row["expected_date"] = format_date(r.get(PRODUCTION["expected_date"]))
        rows.append(row)
    return pd.DataFrame(rows, columns=list(ORDER_COLUMNS))


def filter_orders(orders: pd.DataFrame, flt: OrderFilter) -> pd.DataFrame:
    mask = pd.Series(True, index=orders.index)
    for key in ("firm", "party", "product", "priority"):
        wanted = getattr(flt, key)
        if wanted:
            mask &= orders[key] == wanted
    if flt.order_no:
        mask &= orders["delivery_order_no"].str.lower().str.contains(flt.order_no.lower(), regex=False)
    return orders[mask]


def priority_breakdown(orders: pd.DataFrame) -> dict[str, int]:
    if orders.empty:
        return {}
    counts = orders["priority"].replace("", "Unset").value_counts()
    return {str(k): int(v) for k, v in counts.items()}


def dashboard_options(master: list[Record], orders: pd.DataFrame) -> dict[str, list[str]]:
    options = master_options(
        master,
        priorities="priority",
        supervisors="supervisor",
        shifts="shift",
        test_statuses="status",
        tested_by="tested_by",
        materials="material",
        flows="flow_of_material",
    )
    for key, column in (("firms", "firm"), ("parties", "party"), ("products", "product")):
        values = orders[column] if not orders.empty else pd.Series(dtype=object)
        options[key] = [v for v in values.drop_duplicates().tolist() if v]
    return options


def _stage_tables(workflow: Workflow, raw: dict[str, Any], config: AppConfig) -> dict[str, SheetTable]:
    tables: dict[str, SheetTable] = {}
    for name in workflow.sheets:
        tab = config.tab(name)
        tables[name] = normalize_table(
            raw[name],
            name,
            skip_header=tab.skip_header,
            first_row_number=tab.first_row_number,
            prefer_formatted=name in workflow.formatted_sheets,
        )
    return tables


def build_dashboard(
    reader: SheetReader,
    config: AppConfig,
    flt: OrderFilter | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> DashboardSummary:
    flt = flt or OrderFilter()
    stages = [w for w in all_workflows() if w.needs_item]
    names: list[str] = [PRODUCTION_SHEET, MASTER_SHEET]
    for w in stages:
        names.extend(w.sheets)
    names = list(dict.fromkeys(names))

    # 全タブ optional 扱いで読み、失敗はステージ単位で表示する
    batch = reader.fetch_many(names, headers={n: config.tab(n).headers for n in names}, optional=names)
    for name in batch.degraded:
        err = batch.errors[name]
        if error_log is not None:
            error_log.add("dashboard", name, error_type_of(err), err.message)

    counts: list[StageCount] = []
    with ProgressTracker(len(stages), description="Loading stages") as progress:
        for w in stages:
            progress.start_stage(w.title)
            broken = [
                n
                for n in w.sheets
                if n in batch.degraded and n not in w.optional_sheets and not config.tab(n).optional
            ]
            if broken:
                counts.append(StageCount(w.page_id, w.title, 0, 0, error=f"unavailable: {', '.join(broken)}"))
                progress.finish_stage(success=False)
                continue
            data = w.load(_stage_tables(w, batch.tables, config))
            counts.append(StageCount(w.page_id, w.title, len(data.pending), len(data.history)))
            progress.finish_stage()

    production_tab = config.tab(PRODUCTION_SHEET)
    production = normalize_table(
        batch[PRODUCTION_SHEET],
        PRODUCTION_SHEET,
        skip_header=production_tab.skip_header,
        first_row_number=production_tab.first_row_number,
    )
    master_tab = config.tab(MASTER_SHEET)
    master = normalize_table(
        batch[MASTER_SHEET],
        MASTER_SHEET,
        skip_header=master_tab.skip_header,
        first_row_number=master_tab.first_row_number,
    )
    orders = order_rows(production)
    filtered = filter_orders(orders, flt)
    logger.debug("dashboard orders: %d of %d", len(filtered), len(orders))
    return DashboardSummary(
        stages=counts,
        total_orders=len(orders),
        filtered_orders=filtered.to_dict(orient="records"),
        priority_breakdown=priority_breakdown(filtered),
        options=dashboard_options(list(master), orders),
    )
