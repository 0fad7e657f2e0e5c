from dataclasses import dataclass
from datetime import date
from typing import Iterable

import structlog

from ..models import Instrument, TransactionKind
from ..utils import coerce_float, parse_date

log = structlog.get_logger()

CASH_KINDS = {TransactionKind.DEPOSIT, TransactionKind.WITHDRAWAL}

_KIND_ALIASES = {
    "buy": TransactionKind.BUY,
    "sell": TransactionKind.SELL,
    "dividend": TransactionKind.DIVIDEND,
    "deposit": TransactionKind.DEPOSIT,
    "withdrawal": TransactionKind.WITHDRAWAL,
    "withdraw": TransactionKind.WITHDRAWAL,
    "fee": TransactionKind.FEE,
}


@dataclass(frozen=True)
class LedgerEntry:
    seq: int
    date: date
    kind: TransactionKind
    ticker: str | None
    quantity: float
    unit_price: float
    fees: float
    currency: str

    @property
    def gross(self) -> float:
        return self.quantity * self.unit_price


def parse_kind(val) -> TransactionKind | None:
    if isinstance(val, TransactionKind):
        return val
    if val is None:
        return None
    return _KIND_ALIASES.get(str(val).strip().lower())


def _clean_ticker(val) -> str | None:
    if val is None:
        return None
    text = str(val).strip()
    return text or None


def normalize_ledger(transactions: Iterable) -> list[LedgerEntry]:
    """Date-sorted clean copy of the ledger; ties keep ledger order.

    Rows with an unusable date or kind are skipped; non-numeric amounts become 0.
    """
    entries = []
    for idx, tx in enumerate(transactions or []):
        tx_date = parse_date(getattr(tx, "date", None))
        if tx_date is None:
            log.warning("ledger_entry_skipped", index=idx, reason="invalid_date")
            continue
        kind = parse_kind(getattr(tx, "kind", None))
        if kind is None:
            log.warning("ledger_entry_skipped", index=idx, reason="unknown_kind")
            continue
        entries.append(
            LedgerEntry(
                seq=idx,
                date=tx_date,
                kind=kind,
                ticker=_clean_ticker(getattr(tx, "ticker", None)),
                quantity=coerce_float(getattr(tx, "quantity", None)),
                unit_price=coerce_float(getattr(tx, "unit_price", None)),
                fees=coerce_float(getattr(tx, "fees", None)),
                currency=str(getattr(tx, "currency", "") or ""),
            )
        )
    entries.sort(key=lambda e: (e.date, e.seq))
    return entries


def dedupe_instruments(instruments: Iterable[Instrument]) -> dict[str, Instrument]:
    # last-wins, first-seen order
    out: dict[str, Instrument] = {}
    for inst in instruments or []:
        ticker = _clean_ticker(getattr(inst, "ticker", None))
        if ticker is None:
            continue
        out[ticker] = inst
    return out


def capital_mode(entries: list[LedgerEntry], configured: str = "auto") -> str:
    """``deposits`` or ``trades``; chosen once for the whole ledger."""
    if configured in ("deposits", "trades"):
        return configured
    if any(e.kind in CASH_KINDS for e in entries):
        return "deposits"
    return "trades"
