from budget_planner.config import AppConfig
from budget_planner.store import MemoryBudgetStore
from budget_planner.webapp import create_app

from conftest import FlakyStore


def _add(client, kind, **fields):
    response = client.post("/api/budget/2025/6/items", json={"kind": kind, **fields})
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def _build_tree(client):
    housing = _add(client, "category", name="Housing")
    rent = _add(client, "subcategory", name="Rent", parent_id=housing["id"], planned_amount=800)
    _add(client, "transaction", name="June rent", parent_id=rent["id"], actual_amount=820)
    return housing, rent


def test_requests_without_owner_are_rejected(app):
    response = app.test_client().get("/api/budget/2025/6")

    assert response.status_code == 401


def test_session_login_sets_the_owner(app):
    client = app.test_client()
    assert client.post("/session", json={"owner_id": "carol"}).status_code == 200

    assert client.get("/api/budget/2025/6").status_code == 200
    assert client.delete("/session").status_code == 204
    assert client.get("/api/budget/2025/6").status_code == 401


def test_budget_summary_endpoint(client):
    housing, rent = _build_tree(client)

    data = client.get("/api/budget/2025/6").get_json()

    assert data["period"] == "2025-06"
    assert data["summary"]["grand_realized"] == 820
    assert data["summary"]["grand_planned"] == 800
    category = data["summary"]["categories"][0]
    assert category["id"] == housing["id"]
    assert category["variance_pct"] == "+2.5%"
    assert category["status"] == "over"
    assert len(data["items"]) == 3


def test_validation_errors_are_reported(client):
    response = client.post("/api/budget/2025/6/items", json={"kind": "subcategory", "name": "Rent"})

    assert response.status_code == 400
    assert response.get_json()["errors"]

    assert client.post("/api/budget/2025/6/items", json={"kind": "bogus"}).status_code == 400
    assert client.get("/api/budget/2025/13").status_code == 400


def test_edit_and_delete_items(client):
    housing, rent = _build_tree(client)

    response = client.patch(f"/api/items/{rent['id']}", json={"planned_amount": 1000})
    assert response.status_code == 200
    assert response.get_json()["planned_amount"] == 1000

    assert client.patch(f"/api/items/{rent['id']}", json={"actual_amount": 5}).status_code == 400

    deleted = client.delete(f"/api/items/{housing['id']}").get_json()["deleted"]
    assert len(deleted) == 3
    assert client.get("/api/budget/2025/6").get_json()["items"] == []
    assert client.delete(f"/api/items/{housing['id']}").status_code == 404


def test_items_of_another_owner_are_invisible(client, app):
    housing, _ = _build_tree(client)
    bob = app.test_client()
    bob.environ_base["HTTP_X_OWNER_ID"] = "bob"

    assert bob.get("/api/budget/2025/6").get_json()["items"] == []
    assert bob.patch(f"/api/items/{housing['id']}", json={"name": "Mine"}).status_code == 404


def test_reorder_endpoint(client):
    names = ["Housing", "Food", "Leisure"]
    ids = [_add(client, "category", name=n)["id"] for n in names]

    response = client.post("/api/budget/2025/6/reorder", json={"from_index": 0, "to_index": 2})
    assert response.status_code == 200
    assert [i["id"] for i in response.get_json()["items"]] == [ids[1], ids[2], ids[0]]

    summary = client.get("/api/budget/2025/6").get_json()["summary"]
    assert [c["name"] for c in summary["categories"]] == ["Food", "Leisure", "Housing"]

    bad = client.post("/api/budget/2025/6/reorder", json={"from_index": 0, "to_index": 3})
    assert bad.status_code == 400
    assert client.post("/api/budget/2025/6/reorder", json={"from_index": "0", "to_index": 1}).status_code == 400


def test_copy_endpoint(client):
    _build_tree(client)

    response = client.post("/api/budget/2025/7/copy", json={"from": "2025-06"})

    assert response.status_code == 201
    summary = client.get("/api/budget/2025/7").get_json()["summary"]
    assert summary["grand_planned"] == 800
    assert summary["grand_realized"] == 0
    assert client.post("/api/budget/2025/8/copy", json={"from": "June"}).status_code == 400


def test_recurring_revenue_lifecycle(client):
    response = client.post(
        "/api/revenues/2025/6",
        json={"kind": "regular", "description": "Salary", "amount": 2500, "start_date": "2025-06-01"},
    )
    assert response.status_code == 201
    created = response.get_json()["revenues"]
    assert len(created) == 12
    assert len({r["group_id"] for r in created}) == 1

    march = client.get("/api/revenues/2026/3").get_json()
    assert march["totals"] == {"total": 2500, "regular": 2500, "exceptional": 0}

    september = next(r for r in created if (r["year"], r["month"]) == (2025, 9))
    deleted = client.delete(f"/api/revenues/{september['id']}").get_json()["deleted"]
    assert len(deleted) == 9
    assert client.get("/api/revenues/2025/8").get_json()["totals"]["total"] == 2500
    assert client.get("/api/revenues/2025/9").get_json()["revenues"] == []


def test_future_start_creates_one_revenue(client):
    response = client.post(
        "/api/revenues/2025/6",
        json={"kind": "regular", "description": "Salary", "amount": 100, "start_date": "2025-08-01"},
    )

    assert len(response.get_json()["revenues"]) == 1


def test_revenue_validation(client):
    assert client.post("/api/revenues/2025/6", json={"description": "Bonus", "amount": 0}).status_code == 400
    assert client.post("/api/revenues/2025/6", json={"kind": "monthly", "description": "x", "amount": 1}).status_code == 400
    bad_date = client.post(
        "/api/revenues/2025/6",
        json={"kind": "regular", "description": "Salary", "amount": 10, "start_date": "06/01/2025"},
    )
    assert bad_date.status_code == 400


def test_overview_endpoint(client):
    _build_tree(client)
    client.post("/api/revenues/2025/6", json={"description": "Bonus", "amount": 1000})

    data = client.get("/api/overview/2025/6").get_json()

    assert data == {"period": "2025-06", "revenues": 1000, "expenses": 820, "balance": 180}


def test_patrimoine_endpoints(client):
    client.post("/api/patrimoine", json={"date": "2025-01-31", "assets": {"investment": 10000}, "debts": {"loan": 2000}})
    response = client.post("/api/patrimoine", json={"date": "2025-02-28", "assets": {"investment": 12000}, "debts": {"loan": 1800}})
    assert response.status_code == 201

    history = client.get("/api/patrimoine").get_json()
    assert history["current"] == 10200
    assert history["change"] == 2200
    assert len(history["snapshots"]) == 2

    assert client.post("/api/patrimoine", json={"assets": {"boat": 1}}).status_code == 400


def test_patrimoine_rejects_a_list_of_asset_types(client):
    response = client.post("/api/patrimoine", json={"assets": ["real_estate"]})
    assert response.status_code == 400
    assert "object" in response.get_json()["errors"][0]


def test_partial_failure_is_compensated():
    store = FlakyStore(fail_on={3})
    app = create_app(AppConfig(secret_key="test"), store=store)
    client = app.test_client()
    client.environ_base["HTTP_X_OWNER_ID"] = "alice"

    response = client.post(
        "/api/revenues/2025/6",
        json={"kind": "regular", "description": "Salary", "amount": 100, "start_date": "2025-06-01"},
    )

    assert response.status_code == 500
    body = response.get_json()
    assert len(body["succeeded"]) == 11
    assert body["failed"] == ["2025-08"]
    assert store.revenues == {}


def test_unknown_route_returns_json(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json()["errors"]


def test_memory_store_app():
    app = create_app(AppConfig(secret_key="test"), store=MemoryBudgetStore())
    client = app.test_client()
    client.environ_base["HTTP_X_OWNER_ID"] = "alice"

    assert client.get("/api/overview/2025/6").get_json()["balance"] == 0
