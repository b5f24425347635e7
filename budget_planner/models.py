"""SQLAlchemy models backing the budget store."""

from __future__ import annotations

import datetime as dt
import uuid

from flask_sqlalchemy import SQLAlchemy

from .entities import BudgetItem, ItemKind, PatrimoineSnapshot, RecurrenceKind, Revenue


db = SQLAlchemy()


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class BudgetItemRow(db.Model):
    __tablename__ = "budget_items"
    __table_args__ = (db.Index("ix_budget_items_scope", "owner_id", "year", "month"),)

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    owner_id = db.Column(db.String(128), nullable=False)
    kind = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    parent_id = db.Column(db.String(32), index=True)
    planned_amount = db.Column(db.Float)
    actual_amount = db.Column(db.Float)
    order = db.Column("sort_order", db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    def to_entity(self) -> BudgetItem:
        return BudgetItem(
            id=self.id,
            kind=ItemKind(self.kind),
            name=self.name,
            year=self.year,
            month=self.month,
            owner_id=self.owner_id,
            parent_id=self.parent_id,
            planned_amount=self.planned_amount,
            actual_amount=self.actual_amount,
            order=self.order,
        )

    @classmethod
    def from_entity(cls, item: BudgetItem) -> "BudgetItemRow":
        return cls(
            owner_id=item.owner_id,
            kind=item.kind.value,
            name=item.name,
            year=item.year,
            month=item.month,
            parent_id=item.parent_id,
            planned_amount=item.planned_amount,
            actual_amount=item.actual_amount,
            order=item.order,
        )


class RevenueRow(db.Model):
    __tablename__ = "revenues"
    __table_args__ = (db.Index("ix_revenues_scope", "owner_id", "year", "month"),)

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    owner_id = db.Column(db.String(128), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    recurrence_kind = db.Column(db.String(16), nullable=False)
    group_id = db.Column(db.String(64), index=True)
    start_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    def to_entity(self) -> Revenue:
        return Revenue(
            id=self.id,
            owner_id=self.owner_id,
            year=self.year,
            month=self.month,
            description=self.description,
            amount=self.amount,
            recurrence_kind=RecurrenceKind(self.recurrence_kind),
            group_id=self.group_id,
            start_date=self.start_date,
        )

    @classmethod
    def from_entity(cls, revenue: Revenue) -> "RevenueRow":
        return cls(
            owner_id=revenue.owner_id,
            year=revenue.year,
            month=revenue.month,
            description=revenue.description,
            amount=revenue.amount,
            recurrence_kind=revenue.recurrence_kind.value,
            group_id=revenue.group_id,
            start_date=revenue.start_date,
        )


class SnapshotRow(db.Model):
    __tablename__ = "patrimoine_snapshots"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    owner_id = db.Column(db.String(128), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    assets = db.Column(db.JSON, nullable=False, default=dict)
    debts = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)

    def to_entity(self) -> PatrimoineSnapshot:
        return PatrimoineSnapshot(
            id=self.id,
            owner_id=self.owner_id,
            date=self.date,
            assets=dict(self.assets or {}),
            debts=dict(self.debts or {}),
        )
