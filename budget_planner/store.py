"""Storage contract used by the budget service.

``BudgetStore`` is the only way the engine reads or writes persisted state.
``MemoryBudgetStore`` keeps everything in process; ``db.SqlBudgetStore`` is the
SQLAlchemy backend used by the web app.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from .entities import BudgetItem, PatrimoineSnapshot, Revenue
from .errors import NotFoundError, PartialApplicationError, StoreError

logger = logging.getLogger(__name__)

# Fields of a BudgetItem that may be changed after creation.
UPDATABLE_FIELDS = frozenset({"name", "planned_amount", "actual_amount", "order", "parent_id"})


class BudgetStore(ABC):
    @abstractmethod
    def list_items(self, owner_id: str, year: int, month: int) -> List[BudgetItem]:
        ...

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[BudgetItem]:
        ...

    @abstractmethod
    def create_item(self, item: BudgetItem) -> str:
        ...

    @abstractmethod
    def update_item(self, item_id: str, fields: Mapping[str, Any]) -> None:
        ...

    @abstractmethod
    def delete_item(self, item_id: str) -> None:
        ...

    @abstractmethod
    def list_revenues(self, owner_id: str, year: int, month: int) -> List[Revenue]:
        ...

    @abstractmethod
    def list_revenues_by_group(self, group_id: str) -> List[Revenue]:
        ...

    @abstractmethod
    def get_revenue(self, revenue_id: str) -> Optional[Revenue]:
        ...

    @abstractmethod
    def create_revenue(self, revenue: Revenue) -> str:
        ...

    @abstractmethod
    def delete_revenue(self, revenue_id: str) -> None:
        ...

    @abstractmethod
    def list_snapshots(self, owner_id: str) -> List[PatrimoineSnapshot]:
        ...

    @abstractmethod
    def create_snapshot(self, snapshot: PatrimoineSnapshot) -> str:
        ...

    def update_items_batch(self, updates: Mapping[str, Mapping[str, Any]]) -> None:
        """Apply several item updates.

        This default issues one independent write per item and reports a
        partial failure. Backends able to write atomically override it.
        """

        succeeded: List[str] = []
        failed = []
        for item_id, fields in updates.items():
            try:
                self.update_item(item_id, fields)
            except StoreError as exc:
                failed.append((item_id, exc))
            else:
                succeeded.append(item_id)
        if failed:
            logger.warning("Batch update: %d of %d writes failed", len(failed), len(updates))
            raise PartialApplicationError(
                f"{len(failed)} of {len(updates)} item updates failed.",
                succeeded=succeeded,
                failed=failed,
            )


def _check_fields(fields: Mapping[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise StoreError(f"Cannot update field(s): {', '.join(sorted(unknown))}")


class MemoryBudgetStore(BudgetStore):
    """Dictionary-backed store; ids are random hex tokens."""

    def __init__(self) -> None:
        self.items: Dict[str, BudgetItem] = {}
        self.revenues: Dict[str, Revenue] = {}
        self.snapshots: Dict[str, PatrimoineSnapshot] = {}

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    def list_items(self, owner_id, year, month):
        return [
            i for i in self.items.values()
            if i.owner_id == owner_id and i.year == year and i.month == month
        ]

    def get_item(self, item_id):
        return self.items.get(item_id)

    def create_item(self, item):
        item_id = self._new_id()
        self.items[item_id] = replace(item, id=item_id)
        return item_id

    def update_item(self, item_id, fields):
        _check_fields(fields)
        if item_id not in self.items:
            raise NotFoundError(f"Budget item {item_id} not found.")
        self.items[item_id] = replace(self.items[item_id], **dict(fields))

    def delete_item(self, item_id):
        if self.items.pop(item_id, None) is None:
            raise NotFoundError(f"Budget item {item_id} not found.")

    def list_revenues(self, owner_id, year, month):
        return [
            r for r in self.revenues.values()
            if r.owner_id == owner_id and r.year == year and r.month == month
        ]

    def list_revenues_by_group(self, group_id):
        return [r for r in self.revenues.values() if r.group_id == group_id]

    def get_revenue(self, revenue_id):
        return self.revenues.get(revenue_id)

    def create_revenue(self, revenue):
        revenue_id = self._new_id()
        self.revenues[revenue_id] = replace(revenue, id=revenue_id)
        return revenue_id

    def delete_revenue(self, revenue_id):
        if self.revenues.pop(revenue_id, None) is None:
            raise NotFoundError(f"Revenue {revenue_id} not found.")

    def list_snapshots(self, owner_id):
        return sorted(
            (s for s in self.snapshots.values() if s.owner_id == owner_id),
            key=lambda s: s.date,
        )

    def create_snapshot(self, snapshot):
        snapshot_id = self._new_id()
        self.snapshots[snapshot_id] = replace(snapshot, id=snapshot_id)
        return snapshot_id
