"""Flask JSON API for the budget planner."""

from __future__ import annotations

import datetime as dt
import logging
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, current_app, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from .analytics import aggregate_budget
from .config import AppConfig
from .db import SqlBudgetStore, init_db
from .entities import ItemKind, Period, RecurrenceKind
from .errors import (
    GroupCollisionError,
    NotFoundError,
    PartialApplicationError,
    StoreError,
    ValidationError,
)
from .service import BudgetService
from .store import BudgetStore

OWNER_HEADER = "X-Owner-Id"
STORE_EXTENSION = "budget_planner.store"

logger = logging.getLogger(__name__)


def owner_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        if g.owner_id is None:
            return jsonify(errors=["Authentication required."]), 401
        return view(**kwargs)

    return wrapped_view


def _load_owner() -> None:
    # The identity provider sits in front of the app and forwards the owner id.
    g.owner_id = request.headers.get(OWNER_HEADER) or session.get("owner_id")


def _service() -> BudgetService:
    return BudgetService(current_app.extensions[STORE_EXTENSION], g.owner_id)


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _period(year: int, month: int) -> Period:
    period = Period(year, month)
    try:
        period.validate()
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    return period


def _int_field(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer.")
    return value


def _date_field(value: Optional[str], label: str) -> Optional[dt.date]:
    if not value:
        return None
    try:
        return dt.date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(f"{label} must be in YYYY-MM-DD format.") from exc


def _describe(record: Any) -> str:
    record_id = getattr(record, "id", None)
    if record_id:
        return record_id
    period = getattr(record, "period", None)
    return period.key if period is not None else str(record)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    def handle_validation(exc: ValidationError):
        return jsonify(errors=[str(exc)]), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError):
        return jsonify(errors=[str(exc)]), 404

    @app.errorhandler(GroupCollisionError)
    def handle_collision(exc: GroupCollisionError):
        logger.error("Recurrence group collision: %s", exc)
        return jsonify(errors=["Unable to create the recurring revenue. Please try again."]), 409

    @app.errorhandler(PartialApplicationError)
    def handle_partial(exc: PartialApplicationError):
        return (
            jsonify(
                errors=[str(exc)],
                succeeded=[_describe(r) for r in exc.succeeded],
                failed=[_describe(r) for r, _ in exc.failed],
            ),
            500,
        )

    @app.errorhandler(StoreError)
    def handle_store(exc: StoreError):
        logger.error("Store error: %s", exc)
        return jsonify(errors=["The budget store is unavailable. Please try again."]), 503

    @app.errorhandler(HTTPException)
    def handle_http(exc: HTTPException):
        if exc.code is None or exc.code < 400:
            return exc
        return jsonify(errors=[exc.description]), exc.code


def create_app(config: Optional[AppConfig] = None, store: Optional[BudgetStore] = None) -> Flask:
    config = config or AppConfig.load()
    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["BUDGET_PLANNER"] = config

    if store is None:
        init_db(app, config.database, timeout=config.store_timeout)
        store = SqlBudgetStore()
    app.extensions[STORE_EXTENSION] = store

    app.before_request(_load_owner)
    _register_error_handlers(app)

    @app.route("/session", methods=["POST"])
    def open_session():
        owner_id = str(_payload().get("owner_id") or "").strip()
        if not owner_id:
            raise ValidationError("owner_id is required.")
        session.clear()
        session["owner_id"] = owner_id
        return jsonify(owner_id=owner_id)

    @app.route("/session", methods=["DELETE"])
    @owner_required
    def close_session():
        session.clear()
        return "", 204

    @app.route("/api/budget/<int:year>/<int:month>")
    @owner_required
    def budget(year: int, month: int):
        period = _period(year, month)
        items = _service().load_items(period)
        return jsonify(
            period=period.key,
            summary=aggregate_budget(items).to_dict(),
            items=[i.to_dict() for i in items],
        )

    @app.route("/api/budget/<int:year>/<int:month>/items", methods=["POST"])
    @owner_required
    def add_item(year: int, month: int):
        period = _period(year, month)
        data = _payload()
        service = _service()
        try:
            kind = ItemKind(data.get("kind"))
        except ValueError as exc:
            raise ValidationError("kind must be category, subcategory or transaction.") from exc
        if kind is ItemKind.CATEGORY:
            item = service.add_category(period, data.get("name"))
        elif kind is ItemKind.SUBCATEGORY:
            item = service.add_subcategory(
                period, data.get("parent_id"), data.get("name"), data.get("planned_amount", 0)
            )
        else:
            item = service.add_transaction(period, data.get("parent_id"), data.get("name"), data.get("actual_amount"))
        return jsonify(item.to_dict()), 201

    @app.route("/api/items/<item_id>", methods=["PATCH"])
    @owner_required
    def edit_item(item_id: str):
        item = _service().edit_item(item_id, _payload())
        return jsonify(item.to_dict())

    @app.route("/api/items/<item_id>", methods=["DELETE"])
    @owner_required
    def delete_item(item_id: str):
        return jsonify(deleted=_service().delete_item(item_id))

    @app.route("/api/budget/<int:year>/<int:month>/reorder", methods=["POST"])
    @owner_required
    def reorder(year: int, month: int):
        data = _payload()
        items = _service().reorder(
            _period(year, month),
            data.get("parent_id") or None,
            _int_field(data, "from_index"),
            _int_field(data, "to_index"),
        )
        return jsonify(items=[i.to_dict() for i in items])

    @app.route("/api/budget/<int:year>/<int:month>/copy", methods=["POST"])
    @owner_required
    def copy_budget(year: int, month: int):
        source_text = str(_payload().get("from") or "")
        try:
            source = Period.parse(source_text)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        created = _service().copy_budget(source, _period(year, month))
        return jsonify(items=[i.to_dict() for i in created]), 201

    @app.route("/api/revenues/<int:year>/<int:month>")
    @owner_required
    def revenues(year: int, month: int):
        result = _service().revenue_summary(_period(year, month))
        result["revenues"] = [r.to_dict() for r in result["revenues"]]
        return jsonify(result)

    @app.route("/api/revenues/<int:year>/<int:month>", methods=["POST"])
    @owner_required
    def add_revenue(year: int, month: int):
        data = _payload()
        try:
            kind = RecurrenceKind(data.get("kind", RecurrenceKind.EXCEPTIONAL.value))
        except ValueError as exc:
            raise ValidationError("kind must be regular or exceptional.") from exc
        service = _service()
        try:
            created = service.add_revenue(
                _period(year, month),
                data.get("description"),
                data.get("amount"),
                kind,
                _date_field(data.get("start_date"), "Start date"),
            )
        except PartialApplicationError as exc:
            # Keep the group all-or-nothing from the user's point of view.
            service.compensate(exc)
            raise
        return jsonify(revenues=[r.to_dict() for r in created]), 201

    @app.route("/api/revenues/<revenue_id>", methods=["DELETE"])
    @owner_required
    def delete_revenue(revenue_id: str):
        deleted = _service().delete_revenue(revenue_id)
        return jsonify(deleted=[r.id for r in deleted])

    @app.route("/api/overview/<int:year>/<int:month>")
    @owner_required
    def overview(year: int, month: int):
        period = _period(year, month)
        return jsonify(period=period.key, **_service().period_overview(period))

    @app.route("/api/patrimoine")
    @owner_required
    def patrimoine():
        return jsonify(_service().net_worth_history())

    @app.route("/api/patrimoine", methods=["POST"])
    @owner_required
    def record_patrimoine():
        data = _payload()
        date = _date_field(data.get("date"), "Date") or dt.date.today()
        snapshot = _service().record_snapshot(date, data.get("assets") or {}, data.get("debts") or {})
        return jsonify(snapshot.to_dict()), 201

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
