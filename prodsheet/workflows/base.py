from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from ..models.load_result import PageData
from ..models.record import Record
from ..models.user import User
from ..models.workflow_item import RawMaterial, WorkflowItem
from ..services.formatting import parse_form_date, parse_timestamp
from ..services.materials import MATERIAL_PAIRS
from ..sheets.normalizer import SheetTable
from ..sheets.writer import Command

"""Workflow (page) base class.

A workflow declares the tabs it reads, derives PageData from the normalized
tables, validates a submitted form without touching the network and turns a
valid form into the Commands to send. Loading, sending and reloading are
done by services.orchestrator.
"""

__all__ = [
    "ColumnMeta",
    "FormValidationError",
    "SubmitContext",
    "Workflow",
    "form_date",
    "form_materials",
    "form_number",
    "form_text",
    "newest_first",
    "require",
    "require_date",
    "unique_values",
]


class FormValidationError(Exception):
    """One or more form fields are invalid; ``errors`` maps field -> message."""

    def __init__(self, errors: Mapping[str, str]) -> None:
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


@dataclass(frozen=True)
class ColumnMeta:
    key: str
    header: str
    toggleable: bool = True  # always-visible columns are not toggleable


@dataclass(frozen=True)
class SubmitContext:
    """Fresh state the commands are built from (tables read at submit time)."""
    data: PageData
    tables: Mapping[str, SheetTable]
    now: datetime = field(default_factory=datetime.now)
    user: User | None = None


# --- form helpers -----------------------------------------------------

def form_text(form: Mapping[str, Any], key: str) -> str:
    value = form.get(key)
    return "" if value is None else str(value).strip()


def form_number(form: Mapping[str, Any], key: str) -> float | None:
    """Numeric form value, None when blank or not a number."""
    text = form_text(form, key)
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def form_materials(form: Mapping[str, Any], key: str = "raw_materials") -> list[RawMaterial]:
    """Accepts RawMaterial objects, ``{"name", "quantity"}`` dicts or (name, qty) pairs."""
    items: list[RawMaterial] = []
    for raw in form.get(key) or []:
        if isinstance(raw, RawMaterial):
            items.append(raw)
        elif isinstance(raw, Mapping):
            items.append(RawMaterial(str(raw.get("name") or "").strip(), raw.get("quantity", "")))
        else:
            name, qty = raw
            items.append(RawMaterial(str(name).strip(), qty))
    return items


def require(errors: dict[str, str], form: Mapping[str, Any], key: str, message: str) -> str:
    value = form_text(form, key)
    if not value:
        errors[key] = message
    return value


def require_date(errors: dict[str, str], form: Mapping[str, Any], key: str, message: str) -> None:
    if not form_text(form, key):
        errors[key] = message
    elif parse_form_date(form.get(key)) is None:
        errors[key] = "Date must be dd/MM/yyyy or yyyy-MM-dd."


def form_date(form: Mapping[str, Any], key: str) -> str:
    parsed = parse_form_date(form.get(key))
    return parsed.strftime("%d/%m/%Y") if parsed else ""


def unique_values(records: Iterable[Record], column: str) -> list[str]:
    """Distinct non-blank display values of ``column`` in sheet order."""
    seen: dict[str, None] = {}
    for record in records:
        value = record.text(column).strip()
        if value:
            seen.setdefault(value, None)
    return list(seen)


def newest_first(items: Sequence[WorkflowItem], raw_key: str) -> list[WorkflowItem]:
    """Sort by the raw timestamp in ``details[raw_key]``; unparseable ones go last."""
    def key(item: WorkflowItem) -> tuple[int, float]:
        ts = parse_timestamp(item.details.get(raw_key))
        return (0, -ts.timestamp()) if ts else (1, 0.0)

    return sorted(items, key=key)


class Workflow:
    """Base class of every page."""

    page_id: ClassVar[str] = ""
    title: ClassVar[str] = ""
    sheets: ClassVar[tuple[str, ...]] = ()
    optional_sheets: ClassVar[tuple[str, ...]] = ()
    formatted_sheets: ClassVar[tuple[str, ...]] = ()  # read display text instead of values
    needs_item: ClassVar[bool] = True
    form_fields: ClassVar[tuple[str, ...]] = ()
    pending_columns: ClassVar[tuple[ColumnMeta, ...]] = ()
    history_columns: ClassVar[tuple[ColumnMeta, ...]] = ()
    max_materials: ClassVar[int] = MATERIAL_PAIRS

    def load(self, tables: Mapping[str, SheetTable]) -> PageData:
        raise NotImplementedError

    def validate(self, form: Mapping[str, Any]) -> dict[str, str]:
        return {}

    def check(self, form: Mapping[str, Any]) -> None:
        """Raise FormValidationError when ``validate`` reports any error."""
        errors = self.validate(form)
        if errors:
            raise FormValidationError(errors)

    def build_commands(
        self,
        item: WorkflowItem | None,
        form: Mapping[str, Any],
        context: SubmitContext,
    ) -> list[Command]:
        raise NotImplementedError

    def require_item(self, item: WorkflowItem | None) -> WorkflowItem:
        if item is None:
            raise ValueError(f"{self.page_id} submit needs a pending item")
        return item

    def success_message(self, item: WorkflowItem | None, commands: Sequence[Command]) -> str:
        target = (item.job_card_no or item.delivery_order_no) if item else ""
        return f"{self.title} saved{f' for {target}' if target else ''}."

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return f"<{type(self).__name__} page_id={self.page_id!r}>"
