"""Command-line interface for the budget planner.

Usage:
  python -m budget_planner.cli summary --owner alice --period 2025-06
  python -m budget_planner.cli serve --port 5000

``summary`` reads the configured database and prints the month's budget,
revenues and balance; ``--json``/``--csv`` also export the report.
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .config import AppConfig, configure_logging
from .entities import Period
from .errors import BudgetError
from .reports import build_report, export_report_csv, format_text_report, save_json
from .service import BudgetService
from .webapp import STORE_EXTENSION, create_app

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Budget Planner")
    p.add_argument("--config", "-c", help="Path to JSON config")
    sub = p.add_subparsers(dest="command", required=True)

    summary = sub.add_parser("summary", help="Print a month's budget report")
    summary.add_argument("--owner", "-o", required=True, help="Owner id")
    summary.add_argument("--period", "-p", required=True, help="Month (YYYY-MM)")
    summary.add_argument("--json", dest="json_out", help="Write report JSON to path")
    summary.add_argument("--csv", dest="csv_out", help="Write report CSV to path")

    serve = sub.add_parser("serve", help="Run the development server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)
    serve.add_argument("--debug", action="store_true")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    cfg = AppConfig.load(args.config)
    configure_logging(cfg.log_level)
    app = create_app(cfg)

    if args.command == "serve":
        app.run(host=args.host, port=args.port, debug=args.debug)
        return 0

    try:
        period = Period.parse(args.period)
    except ValueError as exc:
        print(f"error: {exc}")
        return 2

    with app.app_context():
        service = BudgetService(app.extensions[STORE_EXTENSION], args.owner)
        try:
            report = build_report(
                period,
                service.budget_summary(period),
                service.revenue_summary(period)["totals"],
                service.period_overview(period),
            )
        except BudgetError as exc:
            logger.error("Unable to build report: %s", exc)
            print(f"error: {exc}")
            return 1

    print(format_text_report(report, cfg.currency_symbol))
    if args.json_out:
        save_json(report, args.json_out)
        print(f"\nSaved JSON report to: {args.json_out}")
    if args.csv_out:
        export_report_csv(report, args.csv_out)
        print(f"Saved CSV report to: {args.csv_out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
