"""Reporting utilities.

Formats a period's budget summary into human-readable text and
JSON-serializable dicts, with CSV export.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import IO, Dict, List

from .analytics import BudgetSummary
from .entities import Period


def build_report(
    period: Period,
    summary: BudgetSummary,
    revenue_totals: Dict[str, float],
    overview: Dict[str, float],
) -> Dict:
    return {
        "period": period.key,
        "budget": summary.to_dict(),
        "revenues": revenue_totals,
        "overview": overview,
    }


def format_amount(value: float, symbol: str = "€") -> str:
    return f"{value:,.2f} {symbol}"


def format_text_report(report: Dict, symbol: str = "€") -> str:
    lines: List[str] = []
    overview = report["overview"]
    lines.append(f"=== Budget Summary {report['period']} ===")
    lines.append(f"Revenues: {format_amount(overview['revenues'], symbol)}")
    lines.append(f"Expenses: {format_amount(overview['expenses'], symbol)}")
    lines.append(f"Balance:  {format_amount(overview['balance'], symbol)}")
    lines.append("")

    rev = report["revenues"]
    lines.append("-- Revenues --")
    lines.append(f"{'Regular':15} {format_amount(rev['regular'], symbol)}")
    lines.append(f"{'Exceptional':15} {format_amount(rev['exceptional'], symbol)}")
    lines.append("")

    budget = report["budget"]
    lines.append("-- Budget (Realized / Planned) --")
    for cat in budget["categories"]:
        lines.append(
            f"{cat['name'][:30]:30} {format_amount(cat['realized'], symbol):>14} / "
            f"{format_amount(cat['planned'], symbol):>14}  {cat['variance_pct']}"
        )
        for sub in cat["subcategories"]:
            lines.append(
                f"  {sub['name'][:28]:28} {format_amount(sub['realized'], symbol):>14} / "
                f"{format_amount(sub['planned'], symbol):>14}  {sub['variance_pct']}"
            )
    lines.append(
        f"{'Total':30} {format_amount(budget['grand_realized'], symbol):>14} / "
        f"{format_amount(budget['grand_planned'], symbol):>14}  {budget['variance_pct']}"
    )
    return "\n".join(lines)


def save_json(report: Dict, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)


def _ensure_text_writer(target: str | Path | IO[str]):
    if hasattr(target, "write"):
        return target, None
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("w", newline="", encoding="utf-8")
    return handle, handle


def export_report_csv(report: Dict, path: str | Path | IO[str]) -> None:
    rows: List[List[str]] = [["Section", "Item", "Metric", "Value"]]

    for key, label in (("revenues", "Revenues"), ("expenses", "Expenses"), ("balance", "Balance")):
        rows.append(["Overview", report["period"], label, f"{report['overview'][key]:.2f}"])

    for cat in report["budget"]["categories"]:
        rows.append(["Category", cat["name"], "Realized", f"{cat['realized']:.2f}"])
        rows.append(["Category", cat["name"], "Planned", f"{cat['planned']:.2f}"])
        rows.append(["Category", cat["name"], "Variance", cat["variance_pct"]])
        for sub in cat["subcategories"]:
            item = f"{cat['name']} / {sub['name']}"
            rows.append(["Subcategory", item, "Realized", f"{sub['realized']:.2f}"])
            rows.append(["Subcategory", item, "Planned", f"{sub['planned']:.2f}"])
            rows.append(["Subcategory", item, "Variance", sub["variance_pct"]])

    writer_target, to_close = _ensure_text_writer(path)
    try:
        writer = csv.writer(writer_target, lineterminator="\n")
        writer.writerows(rows)
    finally:
        if to_close is not None:
            to_close.close()
