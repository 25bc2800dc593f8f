from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

import pandas as pd

from ..models.record import Record
from .numbering import next_number

"""Full kitting costing.

A kitting composition mixes KYC products by percentage. Each line scales the
product's base values by ``percentage / 100``; the sheet totals are summed
over the lines:

    interest      = variable cost * 0.18 * days / 365
    total cost    = variable cost + manufacturing + interest + transporting
    selling price = given value, else total cost / 0.75
    GP %          = (selling price - variable cost) / selling price * 100
"""

__all__ = [
    "COMPOSITION_PREFIX",
    "CostingSheet",
    "INTEREST_RATE",
    "KittingLine",
    "KycProduct",
    "MAX_KITTING_LINES",
    "TARGET_COST_RATIO",
    "compute_costing",
    "costing_row",
    "kitting_line",
    "load_kyc",
    "next_composition_number",
]

INTEREST_RATE = 0.18
TARGET_COST_RATIO = 0.75
MAX_KITTING_LINES = 20
COMPOSITION_PREFIX = "CN"


@dataclass(frozen=True)
class KycProduct:
    name: str
    alumina: float = 0.0
    iron: float = 0.0
    price: float = 0.0
    bd: float = 0.0
    ap: float = 0.0


@dataclass(frozen=True)
class KittingLine:
    product: str
    percentage: float
    al: float
    fe: float
    price: float
    bd: float
    ap: float


@dataclass(frozen=True)
class CostingSheet:
    lines: list[KittingLine]
    variable_cost: float
    manufacturing_cost: float
    interest_days: float
    interest: float
    transporting: float
    total_cost: float
    selling_price: float
    gp_percentage: float
    al: float
    fe: float
    bd: float
    ap: float
    total_percentage: float


def load_kyc(records: Iterable[Record], columns: Mapping[str, str]) -> dict[str, KycProduct]:
    """Product name -> KycProduct (rows without a name are skipped, first row wins)."""
    products: dict[str, KycProduct] = {}
    for r in records:
        name = r.text(columns["product"]).strip()
        if not name or name in products:
            continue
        products[name] = KycProduct(
            name=name,
            alumina=r.number(columns["alumina"]),
            iron=r.number(columns["iron"]),
            price=r.number(columns["price"]),
            bd=r.number(columns["bd"]),
            ap=r.number(columns["ap"]),
        )
    return products


def kitting_line(product: KycProduct, percentage: float) -> KittingLine:
    factor = percentage / 100
    return KittingLine(
        product=product.name,
        percentage=percentage,
        al=product.alumina * factor,
        fe=product.iron * factor,
        price=product.price * factor,
        bd=product.bd * factor,
        ap=product.ap * factor,
    )


def compute_costing(
    lines: Sequence[KittingLine],
    manufacturing_cost: float = 0.0,
    interest_days: float = 0.0,
    transporting: float = 0.0,
    selling_price: float | None = None,
) -> CostingSheet:
    df = pd.DataFrame(
        [[ln.percentage, ln.al, ln.fe, ln.price, ln.bd, ln.ap] for ln in lines],
        columns=["percentage", "al", "fe", "price", "bd", "ap"],
        dtype=float,
    )
    totals = df.sum()
    variable = float(totals["price"])
    interest = variable * INTEREST_RATE * interest_days / 365
    total_cost = variable + manufacturing_cost + interest + transporting
    if selling_price is None:
        selling_price = total_cost / TARGET_COST_RATIO if total_cost > 0 else 0.0
    gp = (selling_price - variable) / selling_price * 100 if selling_price > 0 else 0.0
    return CostingSheet(
        lines=list(lines),
        variable_cost=variable,
        manufacturing_cost=manufacturing_cost,
        interest_days=interest_days,
        interest=interest,
        transporting=transporting,
        total_cost=total_cost,
        selling_price=selling_price,
        gp_percentage=gp,
        al=float(totals["al"]),
        fe=float(totals["fe"]),
        bd=float(totals["bd"]),
        ap=float(totals["ap"]),
        total_percentage=float(totals["percentage"]),
    )


def next_composition_number(records: Iterable[Record], column: str) -> str:
    return next_number((r.get(column) for r in records), COMPOSITION_PREFIX)


def _plain(value: float) -> float | int:
    return int(value) if float(value).is_integer() else value


def costing_row(
    sheet: CostingSheet,
    *,
    timestamp: str,
    composition_no: str,
    delivery_order_no: str,
    product_name: str,
) -> list[object]:
    """Costing Response row: header, costs, composition totals, 20 names, 20 percentages."""
    names: list[object] = [ln.product for ln in sheet.lines]
    percentages: list[object] = [_plain(ln.percentage) for ln in sheet.lines]
    pad = MAX_KITTING_LINES - len(sheet.lines)
    return [
        timestamp,
        composition_no,
        delivery_order_no,
        product_name,
        f"{sheet.variable_cost:.2f}",
        _plain(sheet.manufacturing_cost),
        _plain(sheet.interest_days),
        f"{sheet.interest:.2f}",
        _plain(sheet.transporting),
        f"{sheet.selling_price:.2f}",
        f"{sheet.gp_percentage:.2f}%",
        f"{sheet.al:.4f}",
        f"{sheet.fe:.4f}",
        f"{sheet.bd:.4f}",
        f"{sheet.ap:.4f}",
        *names,
        *([""] * pad),
        *percentages,
        *([""] * pad),
    ]
