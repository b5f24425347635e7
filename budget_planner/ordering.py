"""Drag-and-drop reordering of sibling budget items."""

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence, Tuple

from .entities import BudgetItem
from .errors import InvalidMoveError


def move_item(siblings: Sequence[BudgetItem], from_index: int, to_index: int) -> List[BudgetItem]:
    """Move one sibling and renumber ``order`` as 0..n-1.

    ``siblings`` must already be sorted by ``order``. The input is never mutated.
    """

    count = len(siblings)
    for label, index in (("from_index", from_index), ("to_index", to_index)):
        if not 0 <= index < count:
            raise InvalidMoveError(f"{label} {index} is out of range for {count} item(s).")
    if from_index == to_index:
        return list(siblings)

    reordered = list(siblings)
    moved = reordered.pop(from_index)
    reordered.insert(to_index, moved)
    return [item if item.order == pos else replace(item, order=pos) for pos, item in enumerate(reordered)]


def changed_orders(before: Sequence[BudgetItem], after: Sequence[BudgetItem]) -> List[Tuple[str, int]]:
    """``(id, order)`` pairs whose order differs from the stored value."""
    stored = {item.id: item.order for item in before}
    return [(item.id, item.order) for item in after if stored.get(item.id) != item.order]
