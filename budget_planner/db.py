"""SQLite persistence through Flask-SQLAlchemy."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .entities import PatrimoineSnapshot
from .errors import NotFoundError, StoreError
from .models import BudgetItemRow, RevenueRow, SnapshotRow, db
from .store import BudgetStore, UPDATABLE_FIELDS

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent
_DEFAULT_DB_PATH = PROJECT_ROOT / "budget_planner.db"

logger = logging.getLogger(__name__)


def database_uri(path: Optional[str | Path] = None) -> str:
    if path is None:
        path = _DEFAULT_DB_PATH
    if str(path) == ":memory:":
        return "sqlite://"
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


def init_db(app: Flask, path: Optional[str | Path] = None, timeout: float = 15.0) -> None:
    """Bind the models to ``app`` and create missing tables."""
    app.config.setdefault("SQLALCHEMY_DATABASE_URI", database_uri(path))
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        # sqlite3 waits up to ``timeout`` seconds on a locked database.
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"timeout": timeout}})
    db.init_app(app)
    with app.app_context():
        db.create_all()


class SqlBudgetStore(BudgetStore):
    """Store backed by the Flask-SQLAlchemy session; needs an app context."""

    def __init__(self, session: Optional[Session] = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else db.session

    @contextmanager
    def _reading(self, action: str) -> Iterator[Session]:
        try:
            yield self.session
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Store failure while trying to %s: %s", action, exc)
            raise StoreError(f"Unable to {action}.") from exc

    @contextmanager
    def _writing(self, action: str) -> Iterator[Session]:
        session = self.session
        try:
            yield session
            session.commit()
        except StoreError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Store failure while trying to %s: %s", action, exc)
            raise StoreError(f"Unable to {action}.") from exc

    # Budget items

    def list_items(self, owner_id, year, month):
        with self._reading("list budget items") as session:
            rows = session.execute(
                db.select(BudgetItemRow)
                .filter_by(owner_id=owner_id, year=year, month=month)
                .order_by(BudgetItemRow.order, BudgetItemRow.name)
            ).scalars()
            return [row.to_entity() for row in rows]

    def get_item(self, item_id):
        with self._reading("load budget item") as session:
            row = session.get(BudgetItemRow, item_id)
            return row.to_entity() if row else None

    def create_item(self, item):
        with self._writing("create budget item") as session:
            row = BudgetItemRow.from_entity(item)
            session.add(row)
            session.flush()
            item_id = row.id
        return item_id

    def _apply(self, session: Session, item_id: str, fields: Mapping[str, Any]) -> None:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise StoreError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        row = session.get(BudgetItemRow, item_id)
        if row is None:
            raise NotFoundError(f"Budget item {item_id} not found.")
        for key, value in fields.items():
            setattr(row, key, value)

    def update_item(self, item_id, fields):
        with self._writing("update budget item") as session:
            self._apply(session, item_id, fields)

    def update_items_batch(self, updates):
        # One commit for the whole batch: either every row changes or none does.
        with self._writing("update budget items") as session:
            for item_id, fields in updates.items():
                self._apply(session, item_id, fields)

    def delete_item(self, item_id):
        with self._writing("delete budget item") as session:
            row = session.get(BudgetItemRow, item_id)
            if row is None:
                raise NotFoundError(f"Budget item {item_id} not found.")
            session.delete(row)

    # Revenues

    def list_revenues(self, owner_id, year, month):
        with self._reading("list revenues") as session:
            rows = session.execute(
                db.select(RevenueRow)
                .filter_by(owner_id=owner_id, year=year, month=month)
                .order_by(RevenueRow.created_at, RevenueRow.id)
            ).scalars()
            return [row.to_entity() for row in rows]

    def list_revenues_by_group(self, group_id):
        with self._reading("list grouped revenues") as session:
            rows = session.execute(
                db.select(RevenueRow)
                .filter_by(group_id=group_id)
                .order_by(RevenueRow.year, RevenueRow.month)
            ).scalars()
            return [row.to_entity() for row in rows]

    def get_revenue(self, revenue_id):
        with self._reading("load revenue") as session:
            row = session.get(RevenueRow, revenue_id)
            return row.to_entity() if row else None

    def create_revenue(self, revenue):
        with self._writing("create revenue") as session:
            row = RevenueRow.from_entity(revenue)
            session.add(row)
            session.flush()
            revenue_id = row.id
        return revenue_id

    def delete_revenue(self, revenue_id):
        with self._writing("delete revenue") as session:
            row = session.get(RevenueRow, revenue_id)
            if row is None:
                raise NotFoundError(f"Revenue {revenue_id} not found.")
            session.delete(row)

    # Patrimoine

    def list_snapshots(self, owner_id):
        with self._reading("list patrimoine snapshots") as session:
            rows = session.execute(
                db.select(SnapshotRow).filter_by(owner_id=owner_id).order_by(SnapshotRow.date)
            ).scalars()
            return [row.to_entity() for row in rows]

    def create_snapshot(self, snapshot: PatrimoineSnapshot):
        with self._writing("record patrimoine snapshot") as session:
            row = SnapshotRow(
                owner_id=snapshot.owner_id,
                date=snapshot.date,
                assets=dict(snapshot.assets),
                debts=dict(snapshot.debts),
            )
            session.add(row)
            session.flush()
            snapshot_id = row.id
        return snapshot_id
