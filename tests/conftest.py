from __future__ import annotations

import pytest

from budget_planner.config import AppConfig
from budget_planner.entities import BudgetItem, ItemKind
from budget_planner.errors import StoreError
from budget_planner.service import BudgetService
from budget_planner.store import MemoryBudgetStore
from budget_planner.webapp import create_app

OWNER = "alice"


def make_item(kind, name, item_id, parent_id=None, planned=None, actual=None, order=0,
              year=2025, month=6, owner=OWNER):
    return BudgetItem(
        id=item_id,
        kind=ItemKind(kind),
        name=name,
        year=year,
        month=month,
        owner_id=owner,
        parent_id=parent_id,
        planned_amount=planned,
        actual_amount=actual,
        order=order,
    )


class FlakyStore(MemoryBudgetStore):
    """Memory store whose nth create/update/delete call raises StoreError."""

    def __init__(self, fail_on=(), operation="create_revenue"):
        super().__init__()
        self.fail_on = set(fail_on)
        self.operation = operation
        self.calls = 0

    def _maybe_fail(self, operation):
        if operation != self.operation:
            return
        self.calls += 1
        if self.calls in self.fail_on:
            raise StoreError("simulated network failure")

    def create_revenue(self, revenue):
        self._maybe_fail("create_revenue")
        return super().create_revenue(revenue)

    def delete_revenue(self, revenue_id):
        self._maybe_fail("delete_revenue")
        return super().delete_revenue(revenue_id)

    def update_item(self, item_id, fields):
        self._maybe_fail("update_item")
        return super().update_item(item_id, fields)


@pytest.fixture
def store():
    return MemoryBudgetStore()


@pytest.fixture
def service(store):
    return BudgetService(store, OWNER)


@pytest.fixture
def app(tmp_path):
    cfg = AppConfig(database=str(tmp_path / "budget.db"), secret_key="test")
    app = create_app(cfg)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    client = app.test_client()
    client.environ_base["HTTP_X_OWNER_ID"] = OWNER
    return client
