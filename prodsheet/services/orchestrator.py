from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ..logging.error_log import ErrorLogBuffer, error_type_of
from ..models.config_models import AppConfig
from ..models.load_result import LoadResult
from ..models.user import User
from ..models.workflow_item import WorkflowItem
from ..sheets.gviz import FetchBatch, SheetReader, SheetReadError
from ..sheets.normalizer import SheetTable, normalize_table
from ..sheets.writer import CommandRejectedError, CommandTransportError, CommandWriter, WriteResult
from ..workflows.base import SubmitContext, Workflow
from ..workflows.layouts import LOGIN, LOGIN_SHEET
from .users import UserAccount, load_accounts

"""Page orchestration: read -> normalize -> derive, and submit -> reload.

load_page reads every tab a page declares concurrently, normalizes them with
the per-tab layout from the config and lets the workflow derive its pending
and history lists. submit_page validates first (no network on a bad form),
reads fresh state, builds the commands from it, sends them in order and
reloads so the caller always shows what the sheet now holds.
"""

__all__ = [
    "ItemNotFoundError",
    "PageLoadError",
    "SubmitOutcome",
    "load_page",
    "read_accounts",
    "read_tables",
    "submit_page",
]

logger = logging.getLogger(__name__)


class PageLoadError(Exception):
    """A required tab could not be read; the page shows an error, not partial data."""

    def __init__(self, page_id: str, cause: SheetReadError) -> None:
        super().__init__(f"page '{page_id or 'dashboard'}' failed to load: {cause}")
        self.page_id = page_id
        self.cause = cause


class ItemNotFoundError(LookupError):
    def __init__(self, page_id: str, key: str) -> None:
        super().__init__(f"no pending item '{key}' on page '{page_id}'")
        self.page_id = page_id
        self.key = key


@dataclass(frozen=True)
class SubmitOutcome:
    item: WorkflowItem | None
    results: list[WriteResult]
    message: str
    reloaded: LoadResult
    elapsed_seconds: float
    total_commands: int = 0


def read_tables(
    sheets: Iterable[str],
    reader: SheetReader,
    config: AppConfig,
    *,
    optional: Iterable[str] = (),
    formatted: Iterable[str] = (),
) -> tuple[dict[str, SheetTable], FetchBatch]:
    """Fetch ``sheets`` in one concurrent batch and normalize each of them.

    Tabs marked ``optional`` in the config are optional for every page.
    """
    names = list(dict.fromkeys(sheets))
    optional_set = set(optional) | {n for n in names if config.tab(n).optional}
    formatted_set = set(formatted)
    batch = reader.fetch_many(
        names,
        headers={n: config.tab(n).headers for n in names},
        optional=optional_set,
    )
    tables: dict[str, SheetTable] = {}
    for name in names:
        tab = config.tab(name)
        tables[name] = normalize_table(
            batch[name],
            name,
            skip_header=tab.skip_header,
            first_row_number=tab.first_row_number,
            prefer_formatted=name in formatted_set,
        )
        logger.debug("sheet %s: %d records", name, len(tables[name]))
    return tables, batch


def _record_read_failure(error_log: ErrorLogBuffer | None, page_id: str, err: SheetReadError) -> None:
    if error_log is not None:
        error_log.add(page_id, err.sheet_name, error_type_of(err), err.message)


def load_page(
    workflow: Workflow,
    reader: SheetReader,
    config: AppConfig,
    error_log: ErrorLogBuffer | None = None,
) -> LoadResult:
    start_time = datetime.now(UTC)
    try:
        tables, batch = read_tables(
            workflow.sheets,
            reader,
            config,
            optional=workflow.optional_sheets,
            formatted=workflow.formatted_sheets,
        )
    except SheetReadError as e:
        _record_read_failure(error_log, workflow.page_id, e)
        raise PageLoadError(workflow.page_id, e) from e
    for name in batch.degraded:
        _record_read_failure(error_log, workflow.page_id, batch.errors[name])

    data = workflow.load(tables)
    end_time = datetime.now(UTC)
    logger.debug(
        "page %s loaded: pending=%d history=%d", workflow.page_id, len(data.pending), len(data.history)
    )
    return LoadResult(
        data=data,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        sheets_read=len(tables),
        degraded_sheets=list(batch.degraded),
    )


def submit_page(
    workflow: Workflow,
    form: Mapping[str, Any],
    reader: SheetReader,
    writer: CommandWriter,
    config: AppConfig,
    *,
    key: str | None = None,
    user: User | None = None,
    error_log: ErrorLogBuffer | None = None,
    now: Callable[[], datetime] = datetime.now,
) -> SubmitOutcome:
    """Validate, send and reload.

    Raises FormValidationError before any read or write, ItemNotFoundError
    when ``key`` is not pending any more, PageLoadError when the fresh read
    fails, and CommandRejectedError / CommandTransportError when a write
    fails (commands already applied are listed on the exception).
    """
    start_time = datetime.now(UTC)
    workflow.check(form)

    try:
        tables, _ = read_tables(
            workflow.sheets,
            reader,
            config,
            optional=workflow.optional_sheets,
            formatted=workflow.formatted_sheets,
        )
    except SheetReadError as e:
        _record_read_failure(error_log, workflow.page_id, e)
        raise PageLoadError(workflow.page_id, e) from e
    data = workflow.load(tables)

    item: WorkflowItem | None = None
    if workflow.needs_item:
        item = data.find_pending(key or "")
        if item is None:
            raise ItemNotFoundError(workflow.page_id, key or "")

    context = SubmitContext(data=data, tables=tables, now=now(), user=user)
    commands = workflow.build_commands(item, form, context)
    for command in commands:
        logger.debug("send %s", command.describe())

    try:
        results = writer.send_all(commands)
    except (CommandRejectedError, CommandTransportError) as e:
        if error_log is not None:
            done = len(e.completed)
            failed = commands[done] if done < len(commands) else None
            sheet = (failed.sheet_name or "") if failed else ""
            row = failed.row_index if failed is not None and failed.row_index is not None else -1
            error_log.add(workflow.page_id, sheet, error_type_of(e), str(e), row=row)
        raise

    message = workflow.success_message(item, commands)
    logger.info(message)
    reloaded = load_page(workflow, reader, config, error_log)
    end_time = datetime.now(UTC)
    return SubmitOutcome(
        item=item,
        results=results,
        message=message,
        reloaded=reloaded,
        elapsed_seconds=(end_time - start_time).total_seconds(),
        total_commands=len(commands),
    )


def read_accounts(reader: SheetReader, config: AppConfig) -> list[UserAccount]:
    """Every account of the login tab (read fresh on each call)."""
    tables, _ = read_tables((LOGIN_SHEET,), reader, config)
    return load_accounts(tables[LOGIN_SHEET], LOGIN)
