from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .workflow_item import WorkflowItem

"""Load result models.

PageData is what a workflow derives from the tabs it read; LoadResult wraps
it with timing metrics for the SUMMARY line. StageCount / DashboardSummary
aggregate several pages for the dashboard.
"""

__all__ = [
    "DashboardSummary",
    "LoadResult",
    "PageData",
    "StageCount",
]


@dataclass(frozen=True)
class PageData:
    """Everything one page needs after a load."""
    page_id: str
    pending: list[WorkflowItem] = field(default_factory=list)
    history: list[WorkflowItem] = field(default_factory=list)
    options: dict[str, list[str]] = field(default_factory=dict)  # dropdown choices
    extras: dict[str, Any] = field(default_factory=dict)  # page specific lookups

    def find_pending(self, key: str) -> WorkflowItem | None:
        """Locate a pending item by job card number, falling back to DO number."""
        key = key.strip()
        for item in self.pending:
            if item.job_card_no and item.job_card_no.strip() == key:
                return item
        for item in self.pending:
            if item.delivery_order_no and item.delivery_order_no.strip() == key:
                return item
        return None


@dataclass(frozen=True)
class LoadResult:
    """Aggregated result of one page load."""
    data: PageData
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    sheets_read: int
    degraded_sheets: list[str] = field(default_factory=list)  # optional tabs replaced by empty

    @property
    def page_id(self) -> str:
        return self.data.page_id


@dataclass(frozen=True)
class StageCount:
    page_id: str
    title: str
    pending: int
    history: int
    error: str | None = None


@dataclass(frozen=True)
class DashboardSummary:
    """Per-stage counts plus the filtered order list for the dashboard."""
    stages: list[StageCount]
    total_orders: int
    filtered_orders: list[dict[str, Any]]
    priority_breakdown: dict[str, int]
    options: dict[str, list[str]] = field(default_factory=dict)

    @property
    def total_pending(self) -> int:
        return sum(s.pending for s in self.stages)

    @property
    def failed_stages(self) -> int:
        return sum(1 for s in self.stages if s.error is not None)
