"""Budget, revenue and net-worth calculations.

Pure functions over records already fetched for one owner and period.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .entities import BudgetItem, ItemKind, PatrimoineSnapshot, RecurrenceKind, Revenue

OVER = "over"
UNDER_OR_EQUAL = "under_or_equal"


def _amount(value: Optional[float]) -> float:
    return float(value) if value is not None else 0.0


def variance_pct(realized: float, planned: float) -> float:
    if planned == 0:
        return 0.0
    return (realized - planned) / planned * 100


def format_variance(realized: float, planned: float) -> str:
    """Signed percentage with one decimal, e.g. ``+25.0%``; ``0%`` without a plan."""
    if planned == 0:
        return "0%"
    pct = variance_pct(realized, planned)
    sign = "+" if pct > 0 else ""
    return f"{sign}{pct:.1f}%"


def variance_status(realized: float, planned: float) -> str:
    # Spending above plan is the unfavorable case for an expense budget.
    return OVER if variance_pct(realized, planned) > 0 else UNDER_OR_EQUAL


@dataclass(frozen=True)
class SubcategorySummary:
    id: str
    name: str
    realized: float
    planned: float
    variance_pct: str
    status: str
    transaction_count: int


@dataclass(frozen=True)
class CategorySummary:
    id: str
    name: str
    realized: float
    planned: float
    variance_pct: str
    status: str
    subcategories: Tuple[SubcategorySummary, ...]


@dataclass(frozen=True)
class BudgetSummary:
    grand_realized: float
    grand_planned: float
    variance_pct: str
    status: str
    categories: Tuple[CategorySummary, ...]

    def to_dict(self) -> Dict:
        return asdict(self)


def _sort_key(item: BudgetItem):
    return (item.order, item.name, item.id or "")


def index_children(items: Iterable[BudgetItem]) -> Dict[Optional[str], List[BudgetItem]]:
    """Map each parent id to its children, sorted by display order."""
    children: Dict[Optional[str], List[BudgetItem]] = defaultdict(list)
    for item in items:
        children[item.parent_id].append(item)
    for siblings in children.values():
        siblings.sort(key=_sort_key)
    return children


def aggregate_budget(items: Iterable[BudgetItem]) -> BudgetSummary:
    """Fold a flat item list into per-category and grand totals.

    Items whose parent is missing, or is not of the expected kind, are left out
    of every total. Missing amounts count as zero.
    """

    items = list(items)
    children = index_children(items)

    categories: List[CategorySummary] = []
    grand_realized = 0.0
    grand_planned = 0.0
    for category in children.get(None, []):
        if category.kind is not ItemKind.CATEGORY:
            continue
        subcategories: List[SubcategorySummary] = []
        cat_realized = 0.0
        cat_planned = 0.0
        for sub in children.get(category.id, []):
            if sub.kind is not ItemKind.SUBCATEGORY:
                continue
            txns = [t for t in children.get(sub.id, []) if t.kind is ItemKind.TRANSACTION]
            realized = round(sum(_amount(t.actual_amount) for t in txns), 2)
            planned = round(_amount(sub.planned_amount), 2)
            subcategories.append(
                SubcategorySummary(
                    id=sub.id,
                    name=sub.name,
                    realized=realized,
                    planned=planned,
                    variance_pct=format_variance(realized, planned),
                    status=variance_status(realized, planned),
                    transaction_count=len(txns),
                )
            )
            cat_realized += realized
            cat_planned += planned
        cat_realized = round(cat_realized, 2)
        cat_planned = round(cat_planned, 2)
        categories.append(
            CategorySummary(
                id=category.id,
                name=category.name,
                realized=cat_realized,
                planned=cat_planned,
                variance_pct=format_variance(cat_realized, cat_planned),
                status=variance_status(cat_realized, cat_planned),
                subcategories=tuple(subcategories),
            )
        )
        grand_realized += cat_realized
        grand_planned += cat_planned

    grand_realized = round(grand_realized, 2)
    grand_planned = round(grand_planned, 2)
    return BudgetSummary(
        grand_realized=grand_realized,
        grand_planned=grand_planned,
        variance_pct=format_variance(grand_realized, grand_planned),
        status=variance_status(grand_realized, grand_planned),
        categories=tuple(categories),
    )


def summarize_revenues(revenues: Iterable[Revenue]) -> Dict[str, float]:
    totals = {"total": 0.0, "regular": 0.0, "exceptional": 0.0}
    for r in revenues:
        totals["total"] += r.amount
        if r.recurrence_kind is RecurrenceKind.REGULAR:
            totals["regular"] += r.amount
        else:
            totals["exceptional"] += r.amount
    return {k: round(v, 2) for k, v in totals.items()}


def period_balance(revenues: Iterable[Revenue], items: Iterable[BudgetItem]) -> Dict[str, float]:
    """Revenues minus realized spending for one period.

    Every transaction of the period counts as spending, attached or not.
    """
    income = sum(r.amount for r in revenues)
    expenses = sum(_amount(i.actual_amount) for i in items if i.kind is ItemKind.TRANSACTION)
    return {
        "revenues": round(income, 2),
        "expenses": round(expenses, 2),
        "balance": round(income - expenses, 2),
    }


def net_worth(snapshot: PatrimoineSnapshot) -> float:
    return round(sum(snapshot.assets.values()) - sum(snapshot.debts.values()), 2)


def net_worth_trend(snapshots: Sequence[PatrimoineSnapshot]) -> Dict:
    """Chronological net-worth rows plus the change over the previous snapshot."""
    ordered = sorted(snapshots, key=lambda s: s.date)
    rows = [
        {
            "date": s.date.isoformat(),
            "assets": round(sum(s.assets.values()), 2),
            "debts": round(sum(s.debts.values()), 2),
            "net_worth": net_worth(s),
        }
        for s in ordered
    ]
    current = rows[-1]["net_worth"] if rows else 0.0
    previous = rows[-2]["net_worth"] if len(rows) > 1 else 0.0
    change = round(current - previous, 2)
    percent_change = round(change / previous * 100, 1) if previous else 0.0
    return {
        "snapshots": rows,
        "current": current,
        "change": change,
        "percent_change": percent_change,
    }
