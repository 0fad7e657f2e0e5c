from dataclasses import replace
from datetime import date
from typing import Dict, Iterable

import structlog

from ..config import AnalyticsConfig, DEFAULT_CONFIG
from ..models import AssetType, Instrument, PortfolioSnapshot, Position, PricePoint
from ..utils import parse_enum, safe_divide
from .allocation import infer_asset_class
from .holdings import HoldingsCursor, reconstruct_entries
from .ledger import capital_mode, dedupe_instruments, normalize_ledger
from .prices import PriceBook

log = structlog.get_logger()


def _position(ticker: str, qty: float, price: float, inst: Instrument | None, currency: str) -> Position:
    if inst is None:
        return Position(
            ticker=ticker,
            name=ticker,
            asset_type=None,
            asset_class=None,
            currency=currency,
            quantity=qty,
            current_price=price,
            current_value=qty * price,
            target_pct=0.0,
            current_pct=0.0,
        )
    return Position(
        ticker=ticker,
        name=inst.name or ticker,
        asset_type=parse_enum(AssetType, inst.asset_type),
        asset_class=infer_asset_class(inst),
        currency=inst.currency,
        quantity=qty,
        current_price=price,
        current_value=qty * price,
        target_pct=float(inst.target_allocation_pct or 0.0),
        current_pct=0.0,
    )


def ordered_tickers(holdings: Dict[str, float], instruments: Dict[str, Instrument]) -> list[str]:
    """Referenced tickers in instrument order, then the rest alphabetically."""
    known = [t for t in instruments if t in holdings]
    rest = sorted(t for t in holdings if t not in instruments)
    return known + rest


def value_holdings(
    holdings: Dict[str, float],
    invested: float,
    instruments: Dict[str, Instrument],
    book: PriceBook,
    as_of: date,
    epsilon: float = DEFAULT_CONFIG.quantity_epsilon,
    currencies: Dict[str, str] | None = None,
) -> PortfolioSnapshot:
    """Point-in-time snapshot of already reconstructed holdings."""
    currencies = currencies or {}
    positions = []
    total = 0.0
    for ticker in ordered_tickers(holdings, instruments):
        qty = holdings[ticker]
        if qty <= epsilon:
            continue
        price = book.resolve(ticker, as_of)
        pos = _position(ticker, qty, price, instruments.get(ticker), currencies.get(ticker, ""))
        total += pos.current_value
        positions.append(pos)

    positions = [
        replace(pos, current_pct=safe_divide(pos.current_value, total) * 100)
        for pos in positions
    ]
    balance = total - invested
    return PortfolioSnapshot(
        positions=positions,
        total_value=total,
        invested_capital=invested,
        balance=balance,
        balance_pct=safe_divide(balance, invested) * 100,
        as_of=as_of,
    )


def valuate(
    transactions: Iterable,
    instruments: Iterable[Instrument],
    prices: Iterable[PricePoint],
    as_of: date | None = None,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> PortfolioSnapshot:
    as_of = as_of or date.today()
    entries = normalize_ledger(transactions)
    mode = capital_mode(entries, config.invested_capital_mode)
    holdings, invested = reconstruct_entries(entries, as_of, mode)
    book = PriceBook(prices, entries)
    currencies = {e.ticker: e.currency for e in entries if e.ticker}
    snapshot = value_holdings(
        holdings,
        invested,
        dedupe_instruments(instruments),
        book,
        as_of,
        epsilon=config.quantity_epsilon,
        currencies=currencies,
    )
    log.debug(
        "portfolio_valuated",
        as_of=as_of.isoformat(),
        positions=len(snapshot.positions),
        total_value=round(snapshot.total_value, 2),
        capital_mode=mode,
    )
    return snapshot


def net_asset_value(
    transactions: Iterable,
    instruments: Iterable[Instrument],
    prices: Iterable[PricePoint],
    as_of: date | None = None,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> float:
    """Holdings value plus uninvested cash (cash is only tracked in deposits mode)."""
    transactions = list(transactions or [])
    as_of = as_of or date.today()
    entries = normalize_ledger(transactions)
    cursor = HoldingsCursor(entries, capital_mode(entries, config.invested_capital_mode)).advance(as_of)
    snapshot = valuate(transactions, instruments, prices, as_of=as_of, config=config)
    return snapshot.total_value + cursor.cash
