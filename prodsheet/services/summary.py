from __future__ import annotations

from ..models.load_result import DashboardSummary, LoadResult
from ..sheets.writer import WriteResult

"""SUMMARY line rendering.

Every CLI command that touches the spreadsheet ends with exactly one SUMMARY
line of ``key=value`` pairs so that scripts can grep for the outcome:

    SUMMARY page=lab-testing1 pending=3 history=12 sheets=4 degraded=0 elapsed_sec=0.42
    SUMMARY page=lab-testing1 action=submit commands=1 ok=1 failed=0 elapsed_sec=1.3
    SUMMARY page=dashboard stages=8 pending=17 failed_stages=0 orders=5/40 elapsed_sec=2.1
"""

__all__ = [
    "format_elapsed",
    "render_dashboard_summary",
    "render_load_summary",
    "render_submit_summary",
]


def format_elapsed(seconds: float) -> str:
    """Integers print bare, tiny values avoid scientific notation."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.2f}".rstrip("0").rstrip(".")


def render_load_summary(result: LoadResult) -> str:
    data = result.data
    return (
        f"SUMMARY page={data.page_id or 'dashboard'} "
        f"pending={len(data.pending)} "
        f"history={len(data.history)} "
        f"sheets={result.sheets_read} "
        f"degraded={len(result.degraded_sheets)} "
        f"elapsed_sec={format_elapsed(result.elapsed_seconds)}"
    )


def render_submit_summary(page_id: str, results: list[WriteResult], total: int, elapsed_seconds: float) -> str:
    """``total`` is the number of commands built; unsent ones count as failed."""
    ok = sum(1 for r in results if r.success)
    return (
        f"SUMMARY page={page_id or 'dashboard'} action=submit "
        f"commands={total} "
        f"ok={ok} "
        f"failed={total - ok} "
        f"elapsed_sec={format_elapsed(elapsed_seconds)}"
    )


def render_dashboard_summary(summary: DashboardSummary, elapsed_seconds: float) -> str:
    return (
        f"SUMMARY page=dashboard "
        f"stages={len(summary.stages)} "
        f"pending={summary.total_pending} "
        f"failed_stages={summary.failed_stages} "
        f"orders={len(summary.filtered_orders)}/{summary.total_orders} "
        f"elapsed_sec={format_elapsed(elapsed_seconds)}"
    )
