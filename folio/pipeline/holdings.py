from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, Tuple

from ..config import AnalyticsConfig, DEFAULT_CONFIG
from ..models import TransactionKind
from .ledger import LedgerEntry, capital_mode, normalize_ledger


def dividend_amount(entry: LedgerEntry) -> float:
    cash = entry.gross if entry.unit_price > 0 else entry.quantity
    return cash - entry.fees


def fee_amount(entry: LedgerEntry) -> float:
    return entry.fees if entry.fees else entry.quantity


class HoldingsCursor:
    """Replays a date-sorted ledger forward, one cutoff at a time.

    Quantities move on Buy/Sell. Invested capital follows the ledger's capital
    mode: in ``deposits`` mode it is net external cash, in ``trades`` mode it
    is buy cost minus sell proceeds (fees included). Uninvested cash is only
    tracked in ``deposits`` mode; in ``trades`` mode each trade is funded and
    settled outside the portfolio, so cash stays at zero.
    """

    def __init__(self, entries: list[LedgerEntry], mode: str):
        self._entries = entries
        self._idx = 0
        self.mode = mode
        self.quantities: Dict[str, float] = defaultdict(float)
        self.invested = 0.0
        self.cash = 0.0

    def advance(self, cutoff: date) -> "HoldingsCursor":
        entries = self._entries
        while self._idx < len(entries) and entries[self._idx].date <= cutoff:
            self._apply(entries[self._idx])
            self._idx += 1
        return self

    def _apply(self, e: LedgerEntry):
        kind = e.kind
        if e.ticker is not None:
            if kind == TransactionKind.BUY:
                self.quantities[e.ticker] += e.quantity
            elif kind == TransactionKind.SELL:
                self.quantities[e.ticker] -= e.quantity

        if self.mode == "trades":
            if kind == TransactionKind.BUY:
                self.invested += e.gross + e.fees
            elif kind == TransactionKind.SELL:
                self.invested -= e.gross - e.fees
            return

        if kind == TransactionKind.DEPOSIT:
            self.invested += e.quantity
            self.cash += e.quantity
        elif kind == TransactionKind.WITHDRAWAL:
            self.invested -= e.quantity
            self.cash -= e.quantity
        elif kind == TransactionKind.BUY:
            self.cash -= e.gross + e.fees
        elif kind == TransactionKind.SELL:
            self.cash += e.gross - e.fees
        elif kind == TransactionKind.DIVIDEND:
            self.cash += dividend_amount(e)
        elif kind == TransactionKind.FEE:
            self.cash -= fee_amount(e)

    def held(self, epsilon: float) -> Dict[str, float]:
        return {t: q for t, q in self.quantities.items() if q > epsilon}


def reconstruct_entries(entries: list[LedgerEntry], cutoff: date, mode: str) -> Tuple[Dict[str, float], float]:
    cursor = HoldingsCursor(entries, mode).advance(cutoff)
    return dict(cursor.quantities), cursor.invested


def reconstruct(
    transactions: Iterable,
    cutoff: date,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[Dict[str, float], float]:
    """Replay the ledger up to ``cutoff``.
    Returns (quantity by ticker, invested capital).
    """
    entries = normalize_ledger(transactions)
    mode = capital_mode(entries, config.invested_capital_mode)
    return reconstruct_entries(entries, cutoff, mode)
