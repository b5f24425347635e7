"""Recurring revenue expansion.

A regular revenue added for one month is materialized as one record per month
for a year, all sharing a ``group_id``. Deleting one of them removes it and
every later record of the group.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .entities import Period, RecurrenceKind, Revenue
from .errors import ValidationError

OCCURRENCES = 12


def new_group_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RevenueRequest:
    owner_id: str
    description: str
    amount: float
    anchor_year: int
    anchor_month: int
    start_date: Optional[dt.date] = None

    def validate(self) -> None:
        if not (self.description or "").strip():
            raise ValidationError("Description is required.")
        if self.amount is None or self.amount <= 0:
            raise ValidationError("Amount must be greater than zero.")
        if not 1 <= self.anchor_month <= 12:
            raise ValidationError(f"Month must be between 1 and 12, got {self.anchor_month}.")


def expand_revenue(
    request: RevenueRequest,
    token_factory: Callable[[], str] = new_group_id,
) -> List[Revenue]:
    """Build the records to persist for a new regular revenue.

    The anchor month is always produced. The eleven following months are
    added only when ``start_date`` is on or before the first day of the anchor
    month. Without a start date the anchor month's first day is used.
    """

    request.validate()
    anchor = Period(request.anchor_year, request.anchor_month)
    start_date = request.start_date or anchor.first_day
    group_id = token_factory()

    months = OCCURRENCES if start_date <= anchor.first_day else 1
    records: List[Revenue] = []
    for offset in range(months):
        period = anchor.shift(offset)
        records.append(
            Revenue(
                owner_id=request.owner_id,
                year=period.year,
                month=period.month,
                description=request.description.strip(),
                amount=request.amount,
                recurrence_kind=RecurrenceKind.REGULAR,
                group_id=group_id,
                start_date=start_date,
            )
        )
    return records


def exceptional_revenue(request: RevenueRequest) -> Revenue:
    request.validate()
    return Revenue(
        owner_id=request.owner_id,
        year=request.anchor_year,
        month=request.anchor_month,
        description=request.description.strip(),
        amount=request.amount,
        recurrence_kind=RecurrenceKind.EXCEPTIONAL,
    )


def cascade_delete_set(anchor: Revenue, group_records: Iterable[Revenue]) -> List[Revenue]:
    """Records removed when ``anchor`` is deleted: itself plus later group members."""
    selected: List[Revenue] = [anchor]
    if anchor.recurrence_kind is not RecurrenceKind.REGULAR or not anchor.group_id:
        return selected
    seen = {anchor.id}
    for rev in sorted(group_records, key=lambda r: (r.year, r.month)):
        if rev.id in seen or rev.group_id != anchor.group_id or rev.owner_id != anchor.owner_id:
            continue
        if rev.year > anchor.year or (rev.year == anchor.year and rev.month >= anchor.month):
            selected.append(rev)
            seen.add(rev.id)
    return selected
