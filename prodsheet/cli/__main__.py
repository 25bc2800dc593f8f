from __future__ import annotations

import argparse
import getpass
import logging
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import requests
from dotenv import load_dotenv

from prodsheet.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from prodsheet.logging.error_log import ErrorLogBuffer
from prodsheet.logging.init import log_summary, setup_logging
from prodsheet.models.config_models import AppConfig
from prodsheet.models.user import User
from prodsheet.models.workflow_item import RawMaterial, WorkflowItem
from prodsheet.services.dashboard import OrderFilter, build_dashboard
from prodsheet.services.orchestrator import (
    ItemNotFoundError,
    PageLoadError,
    load_page,
    read_accounts,
    submit_page,
)
from prodsheet.services.page_state import (
    ChangeField,
    Loaded,
    LoadFailed,
    LoadStarted,
    OpenDialog,
    PageState,
    SubmitRejected,
    SubmitStarted,
    SubmitSucceeded,
    ToggleColumn,
    reduce,
)
from prodsheet.services.summary import (
    format_elapsed,
    render_dashboard_summary,
    render_load_summary,
    render_submit_summary,
)
from prodsheet.services.users import (
    PAGES,
    PermissionDeniedError,
    SessionStore,
    UserError,
    add_user_command,
    authenticate,
    can_access,
    change_password_command,
    delete_user_command,
    split_permissions,
    update_user_command,
)
from prodsheet.sheets.gviz import SheetReader, SheetReadError
from prodsheet.sheets.normalizer import normalize_table
from prodsheet.sheets.writer import CommandRejectedError, CommandTransportError, CommandWriter
from prodsheet.workflows import FormValidationError, Workflow, all_workflows, get_workflow

"""CLI entrypoint.

    prodsheet [--debug] [--config PATH] <command> ...

Commands:
- pages / pending / history / submit: one workflow page
- dashboard: filtered orders and per-stage counts
- inspect: raw view of one tab
- login / logout / whoami, users: session and user management

Every spreadsheet command ends with one SUMMARY line. Exit codes: 0 success,
1 fatal (config or load failure), 2 rejected (validation or write failure),
3 permission denied.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_REJECTED = 2
EXIT_PERMISSION_DENIED = 3

PAGE_IDS = [w.page_id for w in all_workflows()]


def _load_env_file(path: Path, override: bool = True) -> None:
    """.env の値で既存の環境変数を上書きする (PRODSHEET_* を最優先)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="prodsheet", description="Production planning over a shared spreadsheet")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Config file (YAML)")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("pages", help="List pages and whether the current user may open them")

    for name in ("pending", "history"):
        sp = sub.add_parser(name, help=f"Show the {name} table of a page")
        sp.add_argument("page", choices=PAGE_IDS)
        sp.add_argument("--hide", action="append", default=[], metavar="COLUMN", help="Hide a column")

    sp = sub.add_parser("submit", help="Submit a page form")
    sp.add_argument("page", choices=PAGE_IDS)
    sp.add_argument("key", nargs="?", default=None, help="Job card or delivery order number of the pending item")
    sp.add_argument("-f", "--field", action="append", default=[], metavar="KEY=VALUE")
    sp.add_argument("-m", "--material", action="append", default=[], metavar="NAME=QTY")
    sp.add_argument("-r", "--kitting-row", action="append", default=[], metavar="PRODUCT=PCT")

    sp = sub.add_parser("inspect", help="Print the columns and first rows of a tab")
    sp.add_argument("sheet")
    sp.add_argument("--rows", type=int, default=5)

    sp = sub.add_parser("dashboard", help="Order list and per-stage counts")
    sp.add_argument("--firm", default="")
    sp.add_argument("--party", default="")
    sp.add_argument("--product", default="")
    sp.add_argument("--order-no", default="")
    sp.add_argument("--priority", default="")

    sp = sub.add_parser("login")
    sp.add_argument("username")
    sp.add_argument("--password", default=None)
    sub.add_parser("logout")
    sub.add_parser("whoami")

    users = sub.add_parser("users", help="User management (settings page)")
    us = users.add_subparsers(dest="users_command", required=True)
    us.add_parser("list")
    ua = us.add_parser("add")
    ua.add_argument("username")
    ua.add_argument("--password", required=True)
    ua.add_argument("--role", default="user")
    ua.add_argument("--permissions", default="", help="Comma separated page ids")
    uu = us.add_parser("update")
    uu.add_argument("user_id")
    uu.add_argument("--username", default=None)
    uu.add_argument("--password", default=None)
    uu.add_argument("--role", default=None)
    uu.add_argument("--permissions", default=None)
    ud = us.add_parser("delete")
    ud.add_argument("user_id")
    upw = us.add_parser("passwd", help="Change your own password")
    upw.add_argument("--new", required=True)
    upw.add_argument("--confirm", required=True)
    return p.parse_args(argv)


def _split_pair(text: str, option: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key.strip():
        raise ValueError(f"{option} expects KEY=VALUE, got '{text}'")
    return key.strip(), value.strip()


def _build_form(args: argparse.Namespace) -> dict[str, Any]:
    form: dict[str, Any] = dict(_split_pair(f, "--field") for f in args.field)
    if args.material:
        form["raw_materials"] = [RawMaterial(*_split_pair(m, "--material")) for m in args.material]
    if args.kitting_row:
        form["kitting_rows"] = [_split_pair(r, "--kitting-row") for r in args.kitting_row]
    return form


def _cell_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(f"{m.name}: {m.quantity}" if isinstance(m, RawMaterial) else str(m) for m in value)
    return "" if value is None else str(value)


def _items_frame(workflow: Workflow, items: Sequence[WorkflowItem], history: bool, visible: frozenset[str]) -> pd.DataFrame:
    columns = workflow.history_columns if history else workflow.pending_columns
    shown = [c for c in columns if c.key in visible or not c.toggleable]
    return pd.DataFrame(
        [[_cell_text(item.value_of(c.key)) for c in shown] for item in items],
        columns=[c.header for c in shown],
    )


def _print_frame(df: pd.DataFrame) -> None:
    print("(no rows)" if df.empty else df.to_string(index=False))


def _require_access(session: SessionStore, page_id: str) -> User:
    user = session.load()
    if user is None or not can_access(user, page_id):
        raise PermissionDeniedError(page_id, user)
    return user


def _clients(config: AppConfig) -> tuple[SheetReader, CommandWriter]:
    http = requests.Session()
    return SheetReader(config.endpoint, http), CommandWriter(config.endpoint, http)


def _cmd_pages(session: SessionStore) -> int:
    user = session.load()
    for page_id, title in PAGES:
        mark = "x" if can_access(user, page_id) else " "
        print(f"[{mark}] {page_id or '(dashboard)':<15} {title}")
    return EXIT_SUCCESS


def _cmd_table(args: argparse.Namespace, config: AppConfig, error_log: ErrorLogBuffer, logger: logging.Logger) -> int:
    workflow = get_workflow(args.page)
    reader, _ = _clients(config)
    history = args.command == "history"
    columns = workflow.history_columns if history else workflow.pending_columns

    state = reduce(PageState(), LoadStarted())
    try:
        result = load_page(workflow, reader, config, error_log)
    except PageLoadError as e:
        state = reduce(state, LoadFailed(str(e)))
        logger.error(state.message)
        return EXIT_FATAL
    state = reduce(state, Loaded(result.data, tuple(c.key for c in columns)))
    toggleable = {c.key for c in columns if c.toggleable}
    for key in args.hide:
        if key in toggleable and key in state.visible_columns:
            state = reduce(state, ToggleColumn(key))

    items = state.history if history else state.pending
    _print_frame(_items_frame(workflow, items, history, state.visible_columns))
    log_summary(render_load_summary(result)[len("SUMMARY "):])
    return EXIT_SUCCESS


def _cmd_submit(
    args: argparse.Namespace, config: AppConfig, user: User, error_log: ErrorLogBuffer, logger: logging.Logger
) -> int:
    workflow = get_workflow(args.page)
    try:
        form = _build_form(args)
    except ValueError as e:
        logger.error(str(e))
        return EXIT_REJECTED

    # 入力エラーは通信前に報告する
    errors = workflow.validate(form)
    if errors:
        for key, message in errors.items():
            logger.error(f"{key}: {message}")
        log_summary(render_submit_summary(workflow.page_id, [], 0, 0)[len("SUMMARY "):])
        return EXIT_REJECTED

    reader, writer = _clients(config)
    state = reduce(PageState(), LoadStarted())
    try:
        loaded = load_page(workflow, reader, config, error_log)
    except PageLoadError as e:
        state = reduce(state, LoadFailed(str(e)))
        logger.error(state.message)
        return EXIT_FATAL
    state = reduce(state, Loaded(loaded.data))

    item = None
    if workflow.needs_item:
        item = loaded.data.find_pending(args.key or "")
        if item is None:
            logger.error(str(ItemNotFoundError(workflow.page_id, args.key or "")))
            return EXIT_REJECTED
    state = reduce(state, OpenDialog(item))
    for key, value in form.items():
        state = reduce(state, ChangeField(key, value))
    state = reduce(state, SubmitStarted())

    try:
        outcome = submit_page(
            workflow, state.form, reader, writer, config, key=args.key, user=user, error_log=error_log
        )
    except FormValidationError as e:
        state = reduce(state, SubmitRejected(e.errors))
        for key, message in state.errors.items():
            logger.error(f"{key}: {message}")
        return EXIT_REJECTED
    except ItemNotFoundError as e:
        state = reduce(state, SubmitRejected(message=str(e)))
        logger.error(state.message)
        return EXIT_REJECTED
    except (CommandRejectedError, CommandTransportError) as e:
        state = reduce(state, SubmitRejected(message=str(e)))
        logger.error(f"write failed: {state.message}")
        if e.completed:
            logger.warning("already applied: " + "; ".join(c.describe() for c in e.completed))
        return EXIT_REJECTED
    except PageLoadError as e:
        state = reduce(state, SubmitRejected(message=str(e)))
        logger.error(state.message)
        return EXIT_FATAL

    state = reduce(state, SubmitSucceeded(outcome.message, outcome.reloaded.data))
    logger.info(f"pending={len(state.pending)} history={len(state.history)}")
    summary = render_submit_summary(workflow.page_id, outcome.results, outcome.total_commands, outcome.elapsed_seconds)
    log_summary(summary[len("SUMMARY "):])
    return EXIT_SUCCESS


def _cmd_inspect(args: argparse.Namespace, config: AppConfig, logger: logging.Logger) -> int:
    reader, _ = _clients(config)
    tab = config.tab(args.sheet)
    try:
        table = reader.fetch(args.sheet, tab.headers)
    except SheetReadError as e:
        logger.error(str(e))
        return EXIT_FATAL
    sheet = normalize_table(table, args.sheet, skip_header=tab.skip_header, first_row_number=tab.first_row_number)
    print(f"SHEET: {args.sheet} cols={sheet.columns}")
    labels = [c.label for c in table.columns]
    if any(labels):
        print(f"  labels={labels}")
    for record in sheet.records[: max(args.rows, 0)]:
        print(f"  row {record.row_index}: {record.values}")
    return EXIT_SUCCESS


def _cmd_dashboard(args: argparse.Namespace, config: AppConfig, error_log: ErrorLogBuffer) -> int:
    reader, _ = _clients(config)
    flt = OrderFilter(
        firm=args.firm, party=args.party, product=args.product, order_no=args.order_no, priority=args.priority
    )
    started = datetime.now(UTC)
    summary = build_dashboard(reader, config, flt, error_log)
    elapsed = (datetime.now(UTC) - started).total_seconds()

    stages = pd.DataFrame(
        [[s.title, s.pending, s.history, s.error or ""] for s in summary.stages],
        columns=["Stage", "Pending", "History", "Error"],
    )
    _print_frame(stages)
    print()
    _print_frame(pd.DataFrame(summary.filtered_orders))
    if summary.priority_breakdown:
        print("priority: " + ", ".join(f"{k}={v}" for k, v in summary.priority_breakdown.items()))
    log_summary(render_dashboard_summary(summary, elapsed)[len("SUMMARY "):])
    return EXIT_SUCCESS


def _cmd_login(args: argparse.Namespace, config: AppConfig, session: SessionStore, logger: logging.Logger) -> int:
    password = args.password if args.password is not None else getpass.getpass("Password: ")
    reader, _ = _clients(config)
    try:
        accounts = read_accounts(reader, config)
    except SheetReadError as e:
        logger.error(str(e))
        return EXIT_FATAL
    user = authenticate(accounts, args.username, password)
    if user is None:
        logger.error("invalid username or password")
        return EXIT_PERMISSION_DENIED
    session.save(user)
    logger.info(f"logged in as {user.username} ({user.role})")
    return EXIT_SUCCESS


def _cmd_users(
    args: argparse.Namespace, config: AppConfig, current: User, logger: logging.Logger
) -> int:
    reader, writer = _clients(config)
    try:
        accounts = read_accounts(reader, config)
    except SheetReadError as e:
        logger.error(str(e))
        return EXIT_FATAL

    sub = args.users_command
    if sub == "list":
        _print_frame(
            pd.DataFrame(
                [[a.user.id, a.user.username, a.user.role, ",".join(a.user.permissions)] for a in accounts],
                columns=["ID", "Username", "Role", "Permissions"],
            )
        )
        return EXIT_SUCCESS
    if sub == "add":
        command = add_user_command(
            accounts, args.username, args.password, args.role, split_permissions(args.permissions)
        )
    elif sub == "update":
        command = update_user_command(
            accounts,
            args.user_id,
            username=args.username,
            password=args.password,
            role=args.role,
            permissions=split_permissions(args.permissions) if args.permissions is not None else None,
        )
    elif sub == "delete":
        command = delete_user_command(current, args.user_id)
    else:
        command = change_password_command(current, args.new, args.confirm)

    writer.send_all([command])
    logger.info(f"{command.describe()} done")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    session = SessionStore(config.session_file)
    error_log = ErrorLogBuffer(config.log_dir)
    started = datetime.now(UTC)
    try:
        if args.command == "pages":
            return _cmd_pages(session)
        if args.command == "login":
            return _cmd_login(args, config, session, logger)
        if args.command == "logout":
            session.clear()
            logger.info("logged out")
            return EXIT_SUCCESS
        if args.command == "whoami":
            user = session.load()
            if user is None:
                logger.error("not logged in")
                return EXIT_PERMISSION_DENIED
            print(f"{user.username} ({user.role}) pages={','.join(user.permissions)}")
            return EXIT_SUCCESS
        if args.command == "users":
            if args.users_command == "passwd":
                current = session.load()
                if current is None:
                    raise PermissionDeniedError("settings", None)
            else:
                current = _require_access(session, "settings")
            return _cmd_users(args, config, current, logger)
        if args.command == "dashboard":
            _require_access(session, "")
            return _cmd_dashboard(args, config, error_log)
        if args.command == "inspect":
            _require_access(session, "settings")
            return _cmd_inspect(args, config, logger)
        if args.command in ("pending", "history"):
            _require_access(session, args.page)
            return _cmd_table(args, config, error_log, logger)
        if args.command == "submit":
            user = _require_access(session, args.page)
            return _cmd_submit(args, config, user, error_log, logger)
        logger.error(f"unknown command: {args.command}")
        return EXIT_FATAL
    except PermissionDeniedError as e:
        logger.error(str(e))
        return EXIT_PERMISSION_DENIED
    except UserError as e:
        logger.error(str(e))
        return EXIT_REJECTED
    except (CommandRejectedError, CommandTransportError) as e:
        logger.error(f"write failed: {e}")
        return EXIT_REJECTED
    finally:
        path = error_log.flush()
        if path is not None:
            logger.info(f"error log written: {path}")
        logger.debug(f"elapsed_sec={format_elapsed((datetime.now(UTC) - started).total_seconds())}")


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
