from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""WorkflowItem, RawMaterial and Stage models.

A WorkflowItem is the derived, page-facing view over one or more joined
records. It is recomputed in full on every load and never partially updated;
the spreadsheet remains the only durable store.
"""

__all__ = [
    "RawMaterial",
    "Stage",
    "WorkflowItem",
]


class Stage(Enum):
    """Classification of a record against one stage column pair.

    - PENDING: start marker set, completion marker blank
    - HISTORY: both markers set
    - IRRELEVANT: start marker blank
    """
    PENDING = "pending"
    HISTORY = "history"
    IRRELEVANT = "irrelevant"


@dataclass(frozen=True)
class RawMaterial:
    name: str
    quantity: float | int | str = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "quantity": self.quantity}


@dataclass(frozen=True)
class WorkflowItem:
    """One row of a page's pending or history table."""
    stage: Stage
    row_index: int  # row in ``sheet_name`` used for targeted updates
    sheet_name: str
    job_card_no: str = ""
    delivery_order_no: str = ""
    product_name: str = ""
    raw_materials: list[RawMaterial] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)  # page specific display fields

    def value_of(self, name: str, default: Any = "") -> Any:
        """Look up a display field by name (common attributes first)."""
        if name in ("job_card_no", "delivery_order_no", "product_name", "row_index", "raw_materials"):
            return getattr(self, name)
        return self.details.get(name, default)
