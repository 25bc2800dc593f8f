from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..models.record import Record
from ..models.user import User
from ..sheets.writer import Command

"""Users, access control and the local session.

Users live in the login tab (username, id, password, role, comma-joined page
ids). The whole tab is read on every login; user changes go through the
addUser / updateUser / deleteUser commands. The logged-in user is kept in a
small JSON session file until logout.
"""

__all__ = [
    "DASHBOARD_PAGE",
    "MIN_PASSWORD_LENGTH",
    "PAGES",
    "PermissionDeniedError",
    "ROLES",
    "SessionStore",
    "UserAccount",
    "UserError",
    "add_user_command",
    "authenticate",
    "can_access",
    "change_password_command",
    "delete_user_command",
    "load_accounts",
    "update_user_command",
]

ROLES = ("admin", "user")
DASHBOARD_PAGE = ""
PAGES: tuple[tuple[str, str], ...] = (
    ("", "Dashboard"),
    ("orders", "Orders"),
    ("full-kitting", "Full Kitting"),
    ("job-cards", "Job Cards"),
    ("production", "Production"),
    ("lab-testing1", "Lab Test 1"),
    ("lab-testing2", "Lab Test 2"),
    ("chemical-test", "Chemical Test"),
    ("check", "Check"),
    ("tally", "Tally"),
    ("settings", "Settings"),
)
MIN_PASSWORD_LENGTH = 6


class UserError(Exception):
    """Invalid user management request (validation happens before any write)."""


class PermissionDeniedError(Exception):
    def __init__(self, page_id: str, user: User | None) -> None:
        who = user.username if user else "anonymous"
        super().__init__(f"{who} has no access to page '{page_id or 'dashboard'}'")
        self.page_id = page_id
        self.user = user


@dataclass(frozen=True)
class UserAccount:
    user: User
    password: str
    row_index: int


def split_permissions(raw: str) -> list[str]:
    return [p.strip() for p in raw.split(",") if p.strip()]


def load_accounts(records: Iterable[Record], columns: Mapping[str, str]) -> list[UserAccount]:
    """Rows with both an id and a username become accounts."""
    accounts: list[UserAccount] = []
    for r in records:
        username = r.text(columns["username"]).strip()
        user_id = r.text(columns["id"]).strip()
        if not username or not user_id:
            continue
        accounts.append(
            UserAccount(
                user=User(
                    id=user_id,
                    username=username,
                    role=r.text(columns["role"]).strip() or "user",
                    permissions=split_permissions(r.text(columns["permissions"])),
                ),
                password=r.text(columns["password"]),
                row_index=r.row_index,
            )
        )
    return accounts


def authenticate(accounts: Sequence[UserAccount], username: str, password: str) -> User | None:
    """Case-insensitive username, exact password."""
    wanted = username.strip().lower()
    for account in accounts:
        if account.user.username.lower() == wanted and account.password == password:
            return account.user
    return None


def can_access(user: User | None, page_id: str) -> bool:
    if user is None:
        return False
    if user.is_admin:
        return True
    if page_id == DASHBOARD_PAGE:
        return "dashboard" in user.permissions or DASHBOARD_PAGE in user.permissions
    return page_id in user.permissions


def _check_permissions(permissions: Iterable[str]) -> list[str]:
    known = {p for p, _ in PAGES} | {"dashboard"}
    perms = list(dict.fromkeys(permissions))
    unknown = [p for p in perms if p not in known]
    if unknown:
        raise UserError(f"unknown page id(s): {', '.join(unknown)}")
    return perms


def add_user_command(
    accounts: Sequence[UserAccount],
    username: str,
    password: str,
    role: str = "user",
    permissions: Iterable[str] = (),
) -> Command:
    username = username.strip()
    if not username or not password:
        raise UserError("Username and password are required.")
    if any(a.user.username.lower() == username.lower() for a in accounts):
        raise UserError(f"Username '{username}' already exists.")
    if role not in ROLES:
        raise UserError(f"Role must be one of {', '.join(ROLES)}.")
    data: dict[str, Any] = {
        "username": username,
        "password": password,
        "role": role,
        "permissions": _check_permissions(permissions),
    }
    return Command.add_user(data)


def update_user_command(
    accounts: Sequence[UserAccount],
    user_id: str,
    *,
    username: str | None = None,
    password: str | None = None,
    role: str | None = None,
    permissions: Iterable[str] | None = None,
) -> Command:
    target = next((a for a in accounts if a.user.id == user_id), None)
    if target is None:
        raise UserError(f"No user with id '{user_id}'.")
    data: dict[str, Any] = {"id": user_id}
    if username is not None:
        username = username.strip()
        if not username:
            raise UserError("Username cannot be empty.")
        clash = [a for a in accounts if a.user.username.lower() == username.lower() and a.user.id != user_id]
        if clash:
            raise UserError(f"Username '{username}' already exists.")
        data["username"] = username
    if password is not None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise UserError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        data["password"] = password
    if role is not None:
        if role not in ROLES:
            raise UserError(f"Role must be one of {', '.join(ROLES)}.")
        data["role"] = role
    if permissions is not None:
        data["permissions"] = _check_permissions(permissions)
    return Command.update_user(data)


def change_password_command(user: User, new_password: str, confirm: str) -> Command:
    if new_password != confirm:
        raise UserError("Passwords do not match.")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise UserError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    return Command.update_user({"id": user.id, "password": new_password})


def delete_user_command(current: User, user_id: str) -> Command:
    if current.id == user_id:
        raise UserError("You cannot delete your own account.")
    return Command.delete_user(user_id)


class SessionStore:
    """The logged-in user, persisted as JSON until logout."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def load(self) -> User | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not data.get("id"):
            return None
        return User.from_dict(data)

    def save(self, user: User) -> None:
        self.path.write_text(json.dumps(user.to_dict(), ensure_ascii=False), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
