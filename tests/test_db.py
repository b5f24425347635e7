import datetime as dt

import pytest

from budget_planner.db import SqlBudgetStore, database_uri
from budget_planner.entities import ItemKind, RecurrenceKind, Revenue
from budget_planner.errors import NotFoundError, StoreError

from conftest import make_item


@pytest.fixture
def sql_store(app):
    with app.app_context():
        yield SqlBudgetStore()


def test_items_round_trip(sql_store):
    cat_id = sql_store.create_item(make_item("category", "Housing", None))
    sub_id = sql_store.create_item(make_item("subcategory", "Rent", None, parent_id=cat_id, planned=800))

    items = sql_store.list_items("alice", 2025, 6)

    assert [i.id for i in items] == [cat_id, sub_id]
    sub = sql_store.get_item(sub_id)
    assert sub.kind is ItemKind.SUBCATEGORY
    assert sub.planned_amount == 800
    assert sub.parent_id == cat_id
    assert sql_store.list_items("alice", 2025, 7) == []


def test_update_and_delete(sql_store):
    item_id = sql_store.create_item(make_item("category", "Housing", None))

    sql_store.update_item(item_id, {"name": "Home", "order": 3})
    assert sql_store.get_item(item_id).name == "Home"
    assert sql_store.get_item(item_id).order == 3

    sql_store.delete_item(item_id)
    assert sql_store.get_item(item_id) is None
    with pytest.raises(NotFoundError):
        sql_store.delete_item(item_id)


def test_unknown_fields_are_refused(sql_store):
    item_id = sql_store.create_item(make_item("category", "Housing", None))

    with pytest.raises(StoreError):
        sql_store.update_item(item_id, {"owner_id": "mallory"})


def test_batch_update_is_atomic(sql_store):
    first = sql_store.create_item(make_item("category", "A", None, order=0))
    second = sql_store.create_item(make_item("category", "B", None, order=1))

    with pytest.raises(NotFoundError):
        sql_store.update_items_batch({first: {"order": 1}, "missing": {"order": 0}})
    assert sql_store.get_item(first).order == 0

    sql_store.update_items_batch({first: {"order": 1}, second: {"order": 0}})
    assert [i.id for i in sql_store.list_items("alice", 2025, 6)] == [second, first]


def test_revenues_by_group(sql_store):
    for month in (6, 7, 8):
        sql_store.create_revenue(
            Revenue(
                owner_id="alice", year=2025, month=month, description="Salary", amount=100,
                recurrence_kind=RecurrenceKind.REGULAR, group_id="g1", start_date=dt.date(2025, 6, 1),
            )
        )

    group = sql_store.list_revenues_by_group("g1")

    assert [(r.year, r.month) for r in group] == [(2025, 6), (2025, 7), (2025, 8)]
    assert group[0].start_date == dt.date(2025, 6, 1)
    assert len(sql_store.list_revenues("alice", 2025, 7)) == 1
    sql_store.delete_revenue(group[0].id)
    assert sql_store.get_revenue(group[0].id) is None


def test_database_uri(tmp_path):
    assert database_uri(":memory:") == "sqlite://"
    assert database_uri(tmp_path / "x.db") == f"sqlite:///{tmp_path / 'x.db'}"
