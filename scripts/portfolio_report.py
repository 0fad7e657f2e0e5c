#!/usr/bin/env python3
"""
Build a portfolio report from flat CSV/JSON exports.

Writes snapshot, performance series, analytics and rebalancing orders to a
single JSON file.

Usage:
    python scripts/portfolio_report.py --transactions tx.csv --instruments instruments.csv \
        --prices prices.csv [--as-of YYYY-MM-DD] [--granularity monthly|daily] [--out report.json]
"""
from pathlib import Path
import argparse
from datetime import date
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import structlog

from folio.config import AnalyticsConfig, settings
from folio.logging import setup_logging
from folio.records import dump_records, load_instruments, load_prices, load_transactions
from folio.pipeline.metrics import analyze, portfolio_cashflows
from folio.pipeline.rebalance import rebalance
from folio.pipeline.series import build_series
from folio.pipeline.validation import validate_series, validate_snapshot
from folio.pipeline.valuation import net_asset_value, valuate
from folio.utils import parse_date

log = structlog.get_logger()


def build_report(transactions, instruments, prices, as_of, granularity, window_months, strategy, cash_injection, config):
    snapshot = valuate(transactions, instruments, prices, as_of=as_of, config=config)
    series = build_series(
        transactions,
        instruments,
        prices,
        window_months=window_months,
        granularity=granularity,
        end=as_of,
        config=config,
    )
    final_value = net_asset_value(transactions, instruments, prices, as_of=as_of, config=config)
    flows = portfolio_cashflows(transactions, final_value, as_of, config)
    stats = analyze(series.points, granularity=granularity, cashflows=flows, config=config)
    orders = rebalance(snapshot.positions, snapshot.total_value, strategy, cash_injection, config)

    for name, (ok, reasons) in (("snapshot", validate_snapshot(snapshot)), ("series", validate_series(series.points))):
        if not ok:
            log.warning("report_validation_failed", part=name, reasons=reasons)

    return {
        "as_of": as_of,
        "granularity": granularity,
        "snapshot": snapshot,
        "series": series,
        "analytics": stats,
        "orders": orders,
    }


def main():
    parser = argparse.ArgumentParser(description="Portfolio valuation and performance report.")
    parser.add_argument("--transactions", required=True, help="Transactions CSV or JSON file.")
    parser.add_argument("--instruments", required=True, help="Instruments CSV or JSON file.")
    parser.add_argument("--prices", required=True, help="Price history CSV or JSON file.")
    parser.add_argument("--as-of", help="Valuation date (YYYY-MM-DD); defaults to today.")
    parser.add_argument("--granularity", choices=["monthly", "daily"], default=settings.default_granularity)
    parser.add_argument("--window-months", type=int, default=settings.default_window_months)
    parser.add_argument("--strategy", choices=["Accumulate", "Maintain"], default="Maintain")
    parser.add_argument("--cash-injection", type=float, default=0.0)
    parser.add_argument("--out", default="portfolio-report.json", help="Output JSON path.")
    args = parser.parse_args()

    setup_logging()
    as_of = parse_date(args.as_of) if args.as_of else None
    if args.as_of and as_of is None:
        print("--as-of must be YYYY-MM-DD")
        raise SystemExit(2)

    report = build_report(
        load_transactions(args.transactions),
        load_instruments(args.instruments),
        load_prices(args.prices),
        as_of or date.today(),
        args.granularity,
        args.window_months,
        args.strategy,
        args.cash_injection,
        AnalyticsConfig.from_settings(settings),
    )
    dump_records(report, args.out)
    print("Wrote", args.out)


if __name__ == "__main__":
    main()
