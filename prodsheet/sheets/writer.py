from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests

from ..models.config_models import EndpointConfig
from .columns import column_index

"""Command Writer.

Every write is one URL-encoded POST to the remote script endpoint::

    sheetName=<tab>&action=<insert|update|updateByJobCard|updateColumns|addUser|updateUser|deleteUser>&...

answered with JSON ``{"success": bool, "error"?: str}``. There is no retry
and no idempotency key: sending the same insert twice appends two rows.
"""

__all__ = [
    "ACTIONS",
    "Command",
    "CommandRejectedError",
    "CommandTransportError",
    "CommandWriter",
    "WriteResult",
    "named_updates",
]

logger = logging.getLogger(__name__)

ACTIONS = (
    "insert",
    "update",
    "updateByJobCard",
    "updateColumns",
    "addUser",
    "updateUser",
    "deleteUser",
)


class CommandTransportError(Exception):
    """The endpoint could not be reached or answered something other than JSON."""

    def __init__(self, message: str, completed: list[Command] | None = None) -> None:
        super().__init__(message)
        self.completed = list(completed or [])


class CommandRejectedError(Exception):
    """The endpoint answered ``success: false``; ``message`` is its error verbatim."""

    def __init__(self, message: str, command: Command | None = None, completed: list[Command] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.command = command
        self.completed = list(completed or [])


@dataclass(frozen=True)
class Command:
    action: str
    sheet_name: str | None = None
    row_data: list[Any] | None = None
    row_index: int | None = None
    job_card_no: str | None = None
    column_updates: dict[int, Any] | None = None
    user_data: dict[str, Any] | None = None
    user_id: str | None = None

    def __post_init__(self) -> None:
        if self.action not in ACTIONS:
            raise ValueError(f"unknown action: {self.action}")

    # --- constructors -------------------------------------------------
    @classmethod
    def insert(cls, sheet_name: str, row_data: list[Any]) -> Command:
        return cls("insert", sheet_name, row_data=list(row_data))

    @classmethod
    def update(cls, sheet_name: str, row_index: int, row_data: list[Any]) -> Command:
        return cls("update", sheet_name, row_data=list(row_data), row_index=row_index)

    @classmethod
    def update_by_job_card(cls, sheet_name: str, job_card_no: str, column_updates: Mapping[int, Any]) -> Command:
        return cls("updateByJobCard", sheet_name, job_card_no=job_card_no, column_updates=dict(column_updates))

    @classmethod
    def update_columns(cls, sheet_name: str, row_index: int, column_updates: Mapping[int, Any]) -> Command:
        return cls("updateColumns", sheet_name, row_index=row_index, column_updates=dict(column_updates))

    @classmethod
    def add_user(cls, user_data: Mapping[str, Any]) -> Command:
        return cls("addUser", user_data=dict(user_data))

    @classmethod
    def update_user(cls, user_data: Mapping[str, Any]) -> Command:
        return cls("updateUser", user_data=dict(user_data))

    @classmethod
    def delete_user(cls, user_id: str) -> Command:
        return cls("deleteUser", user_id=str(user_id))

    def to_form(self) -> dict[str, str]:
        """Form fields as sent on the wire (absent fields are omitted)."""
        form: dict[str, str] = {}
        if self.sheet_name is not None:
            form["sheetName"] = self.sheet_name
        form["action"] = self.action
        if self.row_data is not None:
            form["rowData"] = json.dumps(self.row_data, ensure_ascii=False)
        if self.row_index is not None:
            form["rowIndex"] = str(self.row_index)
        if self.job_card_no is not None:
            form["jobCardNo"] = self.job_card_no
        if self.column_updates is not None:
            form["columnUpdates"] = json.dumps(
                {str(k): v for k, v in self.column_updates.items()}, ensure_ascii=False
            )
        if self.user_data is not None:
            form["userData"] = json.dumps(self.user_data, ensure_ascii=False)
        if self.user_id is not None:
            form["userId"] = self.user_id
        return form

    def describe(self) -> str:
        target = self.job_card_no or (f"row {self.row_index}" if self.row_index is not None else "")
        return " ".join(p for p in (self.action, self.sheet_name or "", target) if p)


def named_updates(column_map: Mapping[str, str], values: Mapping[str, Any]) -> dict[int, Any]:
    """Translate ``{field: value}`` into the endpoint's ``{column index: value}`` map.

    ``column_map`` maps field names to sheet letters. Fields without a value
    in ``values`` are not sent; unknown fields raise KeyError.
    """
    updates: dict[int, Any] = {}
    for name, value in values.items():
        updates[column_index(column_map[name])] = value
    return dict(sorted(updates.items()))


@dataclass(frozen=True)
class WriteResult:
    command: Command
    success: bool
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def raise_for_error(self, default: str = "write rejected by the endpoint") -> WriteResult:
        if not self.success:
            raise CommandRejectedError(self.error or default, self.command)
        return self


class CommandWriter:
    """Posts Commands to the remote script endpoint, one at a time."""

    def __init__(self, endpoint: EndpointConfig, session: requests.Session | None = None) -> None:
        self._url = endpoint.write_url
        self._timeout = endpoint.timeout_seconds
        self._session = session or requests.Session()

    def send(self, command: Command) -> WriteResult:
        logger.debug("write %s", command.describe())
        try:
            resp = self._session.post(self._url, data=command.to_form(), timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except ValueError as e:
            # JSON でない応答 (HTML のエラーページ等)
            raise CommandTransportError(f"{command.describe()}: response is not JSON") from e
        except requests.RequestException as e:
            raise CommandTransportError(f"{command.describe()}: {e}") from e
        if not isinstance(body, dict):
            raise CommandTransportError(f"{command.describe()}: unexpected response {body!r}")
        return WriteResult(
            command=command,
            success=bool(body.get("success")),
            error=body.get("error"),
            raw=body,
        )

    def send_all(self, commands: Iterable[Command]) -> list[WriteResult]:
        """Send sequentially; stop at the first failure, no compensation.

        The raised error's ``completed`` lists the commands that already took
        effect on the sheet.
        """
        results: list[WriteResult] = []
        completed: list[Command] = []
        for command in commands:
            try:
                result = self.send(command)
            except CommandTransportError as e:
                e.completed = list(completed)
                raise
            if not result.success:
                raise CommandRejectedError(
                    result.error or f"{command.describe()} rejected", command, completed
                )
            results.append(result)
            completed.append(command)
        return results
