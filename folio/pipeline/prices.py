from bisect import bisect_right
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

import structlog

from ..models import PricePoint, TransactionKind
from ..utils import coerce_float, parse_date
from .ledger import LedgerEntry, dedupe_instruments

log = structlog.get_logger()

TRADE_KINDS = {TransactionKind.BUY, TransactionKind.SELL}


def _clean_points(prices: Iterable[PricePoint]):
    by_ticker = defaultdict(dict)
    for idx, p in enumerate(prices or []):
        ticker = str(getattr(p, "ticker", "") or "").strip()
        px_date = parse_date(getattr(p, "date", None))
        close = coerce_float(getattr(p, "close", None), default=None)
        if not ticker or px_date is None or close is None or close <= 0:
            log.warning("price_point_skipped", index=idx, ticker=ticker or None)
            continue
        # duplicate (ticker, date): last one wins
        by_ticker[ticker][px_date] = close
    return by_ticker


class PriceBook:
    """Close prices per ticker, resolved as of a date with no look-ahead.

    Falls back to the latest trade price for tickers without market history
    on or before the requested date.
    """

    def __init__(self, prices: Iterable[PricePoint], entries: list[LedgerEntry] | None = None):
        self._dates: dict[str, list[date]] = {}
        self._closes: dict[str, list[float]] = {}
        for ticker, points in _clean_points(prices).items():
            ordered = sorted(points.items())
            self._dates[ticker] = [d for d, _ in ordered]
            self._closes[ticker] = [c for _, c in ordered]

        self._tx_dates: dict[str, list[date]] = defaultdict(list)
        self._tx_prices: dict[str, list[float]] = defaultdict(list)
        for e in entries or []:
            if e.ticker is None or e.kind not in TRADE_KINDS or e.unit_price <= 0:
                continue
            # entries arrive date-sorted, so appending keeps both lists aligned
            self._tx_dates[e.ticker].append(e.date)
            self._tx_prices[e.ticker].append(e.unit_price)

    def history(self, ticker: str) -> list[tuple[date, float]]:
        return list(zip(self._dates.get(ticker, []), self._closes.get(ticker, [])))

    def market_price(self, ticker: str, as_of: date) -> float | None:
        dates = self._dates.get(ticker)
        if not dates:
            return None
        idx = bisect_right(dates, as_of)
        if idx == 0:
            return None
        return self._closes[ticker][idx - 1]

    def trade_price(self, ticker: str, as_of: date) -> float | None:
        dates = self._tx_dates.get(ticker)
        if not dates:
            return None
        idx = bisect_right(dates, as_of)
        if idx == 0:
            return None
        return self._tx_prices[ticker][idx - 1]

    def resolve(self, ticker: str, as_of: date) -> float:
        price = self.market_price(ticker, as_of)
        if price is None:
            price = self.trade_price(ticker, as_of)
        return price if price is not None else 0.0

    def cursor(self) -> "PriceCursor":
        return PriceCursor(self)


class PriceCursor:
    """Forward-only resolver for an ascending date grid (forward-fill)."""

    def __init__(self, book: PriceBook):
        self._book = book
        self._ptr: dict[str, int] = {}
        self._last: dict[str, float] = {}

    def price(self, ticker: str, on: date) -> float:
        dates = self._book._dates.get(ticker)
        if dates:
            i = self._ptr.get(ticker, 0)
            closes = self._book._closes[ticker]
            while i < len(dates) and dates[i] <= on:
                self._last[ticker] = closes[i]
                i += 1
            self._ptr[ticker] = i
        last = self._last.get(ticker)
        if last is not None:
            return last
        fallback = self._book.trade_price(ticker, on)
        return fallback if fallback is not None else 0.0


def resolve_price(ticker: str, as_of: date, prices: Iterable[PricePoint], entries: list[LedgerEntry] | None = None) -> float:
    return PriceBook(prices, entries).resolve(ticker, as_of)


def price_coverage(
    tickers: Iterable[str],
    prices: Iterable[PricePoint],
    instruments=None,
    start: date | None = None,
    end: date | None = None,
    tolerance_days: int = 5,
) -> list[dict]:
    """Per-ticker history coverage over [start, end]: ok, partial or missing."""
    book = PriceBook(prices)
    by_ticker = dedupe_instruments(instruments or [])
    rows = []
    for ticker in tickers:
        history = book.history(ticker)
        inst = by_ticker.get(ticker)
        row = {
            "ticker": ticker,
            "name": inst.name if inst else None,
            "isin": inst.isin if inst else None,
            "first_date": None,
            "last_date": None,
            "points": len(history),
            "status": "missing",
        }
        if history:
            first, last = history[0][0], history[-1][0]
            row["first_date"] = first
            row["last_date"] = last
            covers_start = start is None or first <= start
            reaches_end = end is None or last >= end - timedelta(days=tolerance_days)
            row["status"] = "ok" if covers_start and reaches_end else "partial"
        rows.append(row)
    return rows
