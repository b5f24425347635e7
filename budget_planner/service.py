"""Budget operations for one owner, on top of a ``BudgetStore``.

Validation happens before any store call. Composite writes (recurring revenue
creation, cascades, reorders without an atomic batch) report partial failure
through ``PartialApplicationError`` and never roll back on their own.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from . import analytics as an
from .entities import (
    ASSET_TYPES,
    DEBT_TYPES,
    PARENT_KIND,
    BudgetItem,
    ItemKind,
    PatrimoineSnapshot,
    Period,
    RecurrenceKind,
    Revenue,
)
from .errors import (
    GroupCollisionError,
    NotFoundError,
    PartialApplicationError,
    StoreError,
    ValidationError,
)
from .ordering import changed_orders, move_item
from .recurrence import (
    RevenueRequest,
    cascade_delete_set,
    exceptional_revenue,
    expand_revenue,
    new_group_id,
)
from .store import BudgetStore

logger = logging.getLogger(__name__)

# Fields an edit may touch, per item kind.
EDITABLE_FIELDS = {
    ItemKind.CATEGORY: {"name"},
    ItemKind.SUBCATEGORY: {"name", "planned_amount"},
    ItemKind.TRANSACTION: {"name", "actual_amount"},
}


def parse_amount(value: Any, label: str, *, allow_negative: bool = True) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be a valid number.") from exc
    if not math.isfinite(amount):
        raise ValidationError(f"{label} must be a valid number.")
    if not allow_negative and amount < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return round(amount, 2)


def _clean_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name is required.")
    return name.strip()


def _check_period(period: Period) -> Period:
    try:
        period.validate()
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return period


class BudgetService:
    def __init__(
        self,
        store: BudgetStore,
        owner_id: str,
        token_factory: Callable[[], str] = new_group_id,
    ) -> None:
        if not owner_id:
            raise ValidationError("An owner id is required.")
        self.store = store
        self.owner_id = owner_id
        self.token_factory = token_factory

    # Budget tree

    def load_items(self, period: Period) -> List[BudgetItem]:
        _check_period(period)
        return self.store.list_items(self.owner_id, period.year, period.month)

    def budget_summary(self, period: Period) -> an.BudgetSummary:
        return an.aggregate_budget(self.load_items(period))

    def add_category(self, period: Period, name: str) -> BudgetItem:
        return self._add_item(ItemKind.CATEGORY, period, name)

    def add_subcategory(self, period: Period, parent_id: str, name: str, planned_amount: Any = 0) -> BudgetItem:
        planned = parse_amount(planned_amount, "Planned amount", allow_negative=False)
        return self._add_item(ItemKind.SUBCATEGORY, period, name, parent_id=parent_id, planned_amount=planned)

    def add_transaction(self, period: Period, parent_id: str, name: str, actual_amount: Any) -> BudgetItem:
        actual = parse_amount(actual_amount, "Amount")
        return self._add_item(ItemKind.TRANSACTION, period, name, parent_id=parent_id, actual_amount=actual)

    def _add_item(
        self,
        kind: ItemKind,
        period: Period,
        name: str,
        parent_id: Optional[str] = None,
        planned_amount: Optional[float] = None,
        actual_amount: Optional[float] = None,
    ) -> BudgetItem:
        _check_period(period)
        name = _clean_name(name)
        expected_parent = PARENT_KIND[kind]
        if expected_parent is not None:
            if not parent_id:
                raise ValidationError(f"A {kind.value} needs a parent {expected_parent.value}.")
            parent = self.store.get_item(parent_id)
            if (
                parent is None
                or parent.owner_id != self.owner_id
                or parent.kind is not expected_parent
                or parent.period != period
            ):
                raise ValidationError(f"Parent {expected_parent.value} {parent_id} does not exist in {period.key}.")
        else:
            parent_id = None

        siblings = [i for i in self.load_items(period) if i.parent_id == parent_id and i.kind is kind]
        item = BudgetItem(
            kind=kind,
            name=name,
            year=period.year,
            month=period.month,
            owner_id=self.owner_id,
            parent_id=parent_id,
            planned_amount=planned_amount,
            actual_amount=actual_amount,
            order=max((s.order for s in siblings), default=-1) + 1,
        )
        item_id = self.store.create_item(item)
        logger.info("Created %s %s for %s in %s", kind.value, item_id, self.owner_id, period.key)
        return replace(item, id=item_id)

    def _owned_item(self, item_id: str) -> BudgetItem:
        item = self.store.get_item(item_id)
        if item is None or item.owner_id != self.owner_id:
            raise NotFoundError(f"Budget item {item_id} not found.")
        return item

    def edit_item(self, item_id: str, fields: Mapping[str, Any]) -> BudgetItem:
        item = self._owned_item(item_id)
        allowed = EDITABLE_FIELDS[item.kind]
        rejected = set(fields) - allowed
        if rejected:
            raise ValidationError(
                f"Cannot edit {', '.join(sorted(rejected))} on a {item.kind.value}."
            )
        changes: Dict[str, Any] = {}
        if "name" in fields:
            changes["name"] = _clean_name(fields["name"])
        if "planned_amount" in fields:
            changes["planned_amount"] = parse_amount(fields["planned_amount"], "Planned amount", allow_negative=False)
        if "actual_amount" in fields:
            changes["actual_amount"] = parse_amount(fields["actual_amount"], "Amount")
        if not changes:
            return item
        self.store.update_item(item_id, changes)
        logger.info("Updated %s %s: %s", item.kind.value, item_id, ", ".join(sorted(changes)))
        return replace(item, **changes)

    def delete_item(self, item_id: str) -> List[str]:
        """Delete an item and everything below it; returns the deleted ids."""
        item = self._owned_item(item_id)
        children = an.index_children(self.load_items(item.period))

        doomed: List[BudgetItem] = []
        frontier = [item]
        while frontier:
            node = frontier.pop()
            doomed.append(node)
            frontier.extend(children.get(node.id, []))
        # Leaves first so a failure never leaves a child without its parent.
        doomed.reverse()

        deleted: List[str] = []
        failed = []
        for node in doomed:
            try:
                self.store.delete_item(node.id)
            except StoreError as exc:
                failed.append((node, exc))
            else:
                deleted.append(node.id)
        if failed:
            logger.warning("Deleting %s: %d of %d deletions failed", item_id, len(failed), len(doomed))
            raise PartialApplicationError(
                f"{len(failed)} of {len(doomed)} deletions failed.", succeeded=deleted, failed=failed
            )
        # Close the gap left among the remaining siblings.
        remaining = [s for s in children.get(item.parent_id, []) if s.id != item.id and s.kind is item.kind]
        gaps = {s.id: {"order": pos} for pos, s in enumerate(remaining) if s.order != pos}
        if gaps:
            self.store.update_items_batch(gaps)
        logger.info("Deleted %s %s and %d descendant(s)", item.kind.value, item_id, len(deleted) - 1)
        return deleted

    def reorder(self, period: Period, parent_id: Optional[str], from_index: int, to_index: int) -> List[BudgetItem]:
        """Move one item among its siblings and persist the new orders."""
        children = an.index_children(self.load_items(period))
        siblings = children.get(parent_id or None, [])
        if parent_id is None:
            siblings = [s for s in siblings if s.kind is ItemKind.CATEGORY]
        reordered = move_item(siblings, from_index, to_index)
        changes = changed_orders(siblings, reordered)
        if changes:
            self.store.update_items_batch({item_id: {"order": order} for item_id, order in changes})
            logger.info("Reordered %d item(s) under %s in %s", len(changes), parent_id or "root", period.key)
        return reordered

    def copy_budget(self, source: Period, target: Period) -> List[BudgetItem]:
        """Copy categories and subcategories (with planned amounts) to another month."""
        _check_period(target)
        if self.load_items(target):
            raise ValidationError(f"{target.key} already has a budget.")
        children = an.index_children(self.load_items(source))
        created: List[BudgetItem] = []
        failed = []
        for category in children.get(None, []):
            if category.kind is not ItemKind.CATEGORY:
                continue
            try:
                new_cat = self._create_copy(category, target, None)
            except StoreError as exc:
                failed.append((category, exc))
                continue
            created.append(new_cat)
            for sub in children.get(category.id, []):
                if sub.kind is not ItemKind.SUBCATEGORY:
                    continue
                try:
                    created.append(self._create_copy(sub, target, new_cat.id))
                except StoreError as exc:
                    failed.append((sub, exc))
        if failed:
            raise PartialApplicationError(
                f"{len(failed)} item(s) could not be copied to {target.key}.", succeeded=created, failed=failed
            )
        logger.info("Copied %d budget item(s) from %s to %s", len(created), source.key, target.key)
        return created

    def _create_copy(self, item: BudgetItem, target: Period, parent_id: Optional[str]) -> BudgetItem:
        copy = replace(item, id=None, year=target.year, month=target.month, parent_id=parent_id)
        return replace(copy, id=self.store.create_item(copy))

    # Revenues

    def list_revenues(self, period: Period) -> List[Revenue]:
        _check_period(period)
        return self.store.list_revenues(self.owner_id, period.year, period.month)

    def revenue_summary(self, period: Period) -> Dict:
        revenues = self.list_revenues(period)
        return {"period": period.key, "totals": an.summarize_revenues(revenues), "revenues": revenues}

    def period_overview(self, period: Period) -> Dict[str, float]:
        return an.period_balance(self.list_revenues(period), self.load_items(period))

    def add_revenue(
        self,
        period: Period,
        description: str,
        amount: Any,
        recurrence_kind: RecurrenceKind = RecurrenceKind.EXCEPTIONAL,
        start_date: Optional[dt.date] = None,
    ) -> List[Revenue]:
        _check_period(period)
        request = RevenueRequest(
            owner_id=self.owner_id,
            description=description if isinstance(description, str) else "",
            amount=parse_amount(amount, "Amount"),
            anchor_year=period.year,
            anchor_month=period.month,
            start_date=start_date,
        )
        if recurrence_kind is RecurrenceKind.REGULAR:
            records = expand_revenue(request, self.token_factory)
            group_id = records[0].group_id
            if self.store.list_revenues_by_group(group_id):
                raise GroupCollisionError(f"Recurrence group {group_id} already exists.")
        else:
            records = [exceptional_revenue(request)]

        created: List[Revenue] = []
        failed = []
        for record in records:
            try:
                created.append(replace(record, id=self.store.create_revenue(record)))
            except StoreError as exc:
                failed.append((record, exc))
        if failed:
            logger.warning(
                "Revenue %r: %d of %d records failed to persist", request.description, len(failed), len(records)
            )
            raise PartialApplicationError(
                f"{len(failed)} of {len(records)} revenue records failed.", succeeded=created, failed=failed
            )
        logger.info("Added %s revenue %r (%d record(s))", recurrence_kind.value, request.description, len(created))
        return created

    def delete_revenue(self, revenue_id: str) -> List[Revenue]:
        revenue = self.store.get_revenue(revenue_id)
        if revenue is None or revenue.owner_id != self.owner_id:
            raise NotFoundError(f"Revenue {revenue_id} not found.")
        group: Iterable[Revenue] = []
        if revenue.recurrence_kind is RecurrenceKind.REGULAR and revenue.group_id:
            group = self.store.list_revenues_by_group(revenue.group_id)
        targets = cascade_delete_set(revenue, group)

        deleted: List[Revenue] = []
        failed = []
        for target in targets:
            try:
                self.store.delete_revenue(target.id)
            except StoreError as exc:
                failed.append((target, exc))
            else:
                deleted.append(target)
        if failed:
            raise PartialApplicationError(
                f"{len(failed)} of {len(targets)} revenue deletions failed.", succeeded=deleted, failed=failed
            )
        logger.info("Deleted revenue %s (%d record(s))", revenue_id, len(deleted))
        return deleted

    def compensate(self, error: PartialApplicationError) -> None:
        """Delete the records a partially applied creation did persist."""
        failed = []
        for record in error.succeeded:
            try:
                if isinstance(record, Revenue):
                    self.store.delete_revenue(record.id)
                elif isinstance(record, BudgetItem):
                    self.store.delete_item(record.id)
            except StoreError as exc:
                failed.append((record, exc))
        if failed:
            logger.error("Compensation left %d record(s) behind", len(failed))
            raise PartialApplicationError("Compensating deletion did not complete.", failed=failed)

    # Patrimoine

    def record_snapshot(self, date: dt.date, assets: Mapping[str, Any], debts: Mapping[str, Any]) -> PatrimoineSnapshot:
        snapshot = PatrimoineSnapshot(
            owner_id=self.owner_id,
            date=date,
            assets=self._breakdown(assets, ASSET_TYPES, "asset"),
            debts=self._breakdown(debts, DEBT_TYPES, "debt"),
        )
        snapshot_id = self.store.create_snapshot(snapshot)
        logger.info("Recorded patrimoine snapshot %s for %s", snapshot_id, date.isoformat())
        return replace(snapshot, id=snapshot_id)

    @staticmethod
    def _breakdown(values: Mapping[str, Any], allowed, label: str) -> Dict[str, float]:
        if values is None:
            values = {}
        if not isinstance(values, Mapping):
            raise ValidationError(f"{label.capitalize()}s must be an object keyed by {label} type.")
        unknown = set(values) - set(allowed)
        if unknown:
            raise ValidationError(f"Unknown {label} type(s): {', '.join(sorted(unknown))}")
        return {
            key: parse_amount(value, f"{label.capitalize()} '{key}'", allow_negative=False)
            for key, value in values.items()
        }

    def net_worth_history(self) -> Dict:
        return an.net_worth_trend(self.store.list_snapshots(self.owner_id))
