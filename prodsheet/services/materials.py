from __future__ import annotations

from collections.abc import Iterable, Sequence

from ..models.record import Record
from ..models.workflow_item import RawMaterial
from ..sheets.columns import column_range

"""Raw-Material Denormalizer.

Raw materials are stored as a fixed run of alternating name / quantity
columns (20 pairs by default). Blank names are skipped, not treated as the
end of the list, so later materials keep their order.
"""

__all__ = [
    "MATERIAL_PAIRS",
    "denormalize_materials",
    "flatten_materials",
    "material_column_pairs",
]

MATERIAL_PAIRS = 20


def material_column_pairs(first_column: str, pairs: int = MATERIAL_PAIRS) -> list[tuple[str, str]]:
    """[(name column, quantity column), ...] starting at ``first_column``."""
    letters = column_range(first_column, pairs * 2)
    return [(letters[i], letters[i + 1]) for i in range(0, len(letters), 2)]


def _quantity(value: object) -> float | int | str:
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return 0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value  # type: ignore[return-value]


def denormalize_materials(
    record: Record,
    pairs: Sequence[tuple[str, str]],
    exclude: Iterable[str] = (),
) -> list[RawMaterial]:
    excluded = {e.strip() for e in exclude}
    materials: list[RawMaterial] = []
    for name_col, qty_col in pairs:
        name = record.text(name_col).strip()
        if not name or name in excluded:
            continue
        materials.append(RawMaterial(name=name, quantity=_quantity(record.get(qty_col))))
    return materials


def flatten_materials(materials: Sequence[RawMaterial], pairs: int = MATERIAL_PAIRS) -> list[object]:
    """Inverse of denormalize_materials for writes: exactly ``2 * pairs`` cells."""
    if len(materials) > pairs:
        raise ValueError(f"at most {pairs} raw materials can be stored, got {len(materials)}")
    cells: list[object] = []
    for m in materials:
        cells.extend([m.name, m.quantity])
    cells.extend([""] * (pairs * 2 - len(cells)))
    return cells
