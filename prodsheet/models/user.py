from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

"""User model for the settings / access-control surface."""

__all__ = [
    "ADMIN_ROLE",
    "User",
]

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class User:
    """A row of the login tab. ``permissions`` hold page ids."""
    id: str
    username: str
    role: str = "user"
    permissions: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role.strip().lower() == ADMIN_ROLE

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> User:
        return User(
            id=str(data.get("id", "")),
            username=str(data.get("username", "")),
            role=str(data.get("role") or "user"),
            permissions=[str(p) for p in data.get("permissions") or []],
        )
