"""Domain records shared by the budget engine, the store and the web layer.

Budget items form a three-level tree (category -> subcategory -> transaction)
stored flat and linked through ``parent_id``. Every record is scoped by
``owner_id`` plus a (year, month) period.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple


class ItemKind(str, Enum):
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    TRANSACTION = "transaction"


class RecurrenceKind(str, Enum):
    REGULAR = "regular"
    EXCEPTIONAL = "exceptional"


ASSET_TYPES = ("real_estate", "vehicle", "investment", "other")
DEBT_TYPES = ("mortgage", "loan", "credit_card", "other")

# Kind a parent must have for each child kind.
PARENT_KIND: Dict[ItemKind, Optional[ItemKind]] = {
    ItemKind.CATEGORY: None,
    ItemKind.SUBCATEGORY: ItemKind.CATEGORY,
    ItemKind.TRANSACTION: ItemKind.SUBCATEGORY,
}


def add_months(year: int, month: int, months: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by ``months`` (may be negative)."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


class Period(NamedTuple):
    year: int
    month: int

    @classmethod
    def parse(cls, value: str) -> "Period":
        """Parse ``YYYY-MM``."""
        try:
            year_text, month_text = value.strip().split("-", 1)
            period = cls(int(year_text), int(month_text))
        except ValueError as exc:
            raise ValueError(f"Invalid period: {value!r} (expected YYYY-MM)") from exc
        period.validate()
        return period

    def validate(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    def shift(self, months: int) -> "Period":
        return Period(*add_months(self.year, self.month, months))

    @property
    def first_day(self) -> dt.date:
        return dt.date(self.year, self.month, 1)

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class BudgetItem:
    kind: ItemKind
    name: str
    year: int
    month: int
    owner_id: str
    parent_id: Optional[str] = None
    planned_amount: Optional[float] = None  # subcategories only
    actual_amount: Optional[float] = None  # transactions only
    order: int = 0
    id: Optional[str] = None  # assigned by the store

    @property
    def period(self) -> Period:
        return Period(self.year, self.month)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass(frozen=True)
class Revenue:
    owner_id: str
    year: int
    month: int
    description: str
    amount: float
    recurrence_kind: RecurrenceKind
    group_id: Optional[str] = None  # regular only
    start_date: Optional[dt.date] = None  # regular only
    id: Optional[str] = None

    @property
    def period(self) -> Period:
        return Period(self.year, self.month)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["recurrence_kind"] = self.recurrence_kind.value
        data["start_date"] = self.start_date.isoformat() if self.start_date else None
        return data


@dataclass(frozen=True)
class PatrimoineSnapshot:
    """Net-worth picture at one date: asset and debt values keyed by type."""

    owner_id: str
    date: dt.date
    assets: Dict[str, float] = field(default_factory=dict)
    debts: Dict[str, float] = field(default_factory=dict)
    id: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "date": self.date.isoformat(),
            "assets": dict(self.assets),
            "debts": dict(self.debts),
        }
