"""Flat-record I/O: CSV (pandas) and JSON lists of dicts <-> model objects.

Dates travel as ISO-8601 strings. Rows that cannot be turned into a record
are skipped with a warning; field-level cleaning (bad dates, non-numeric
amounts) is left to the engine.
"""

import json
from pathlib import Path
from typing import Iterable

import pandas as pd
import structlog

from .models import (
    AssetClass,
    AssetType,
    Currency,
    Instrument,
    PricePoint,
    Transaction,
    to_record,
)
from .utils import coerce_float, parse_enum

log = structlog.get_logger()

_TX_ALIASES = {"type": "kind", "price": "unit_price", "instrument_ticker": "ticker", "fee": "fees"}


def _blank(val) -> bool:
    if val is None:
        return True
    if isinstance(val, float) and pd.isna(val):
        return True
    return isinstance(val, str) and not val.strip()


def _clean(row: dict) -> dict:
    return {str(k).strip(): (None if _blank(v) else v) for k, v in row.items()}


def transaction_from_dict(row: dict) -> Transaction:
    row = _clean(row)
    for alias, name in _TX_ALIASES.items():
        if row.get(name) is None and row.get(alias) is not None:
            row[name] = row[alias]
    return Transaction(
        date=row.get("date"),
        kind=row.get("kind"),
        quantity=row.get("quantity") or 0.0,
        unit_price=row.get("unit_price") or 0.0,
        fees=row.get("fees") or 0.0,
        currency=str(row.get("currency") or Currency.CHF.value),
        ticker=row.get("ticker"),
        account=row.get("account"),
        note=row.get("note"),
    )


def _regions(val) -> dict[str, float] | None:
    if val is None:
        return None
    if isinstance(val, str):
        try:
            val = json.loads(val)
        except ValueError:
            return None
    if not isinstance(val, dict):
        return None
    return {str(k): coerce_float(v) for k, v in val.items()}


def instrument_from_dict(row: dict) -> Instrument:
    row = _clean(row)
    ticker = str(row.get("ticker") or "").strip()
    if not ticker:
        raise ValueError("instrument without ticker")
    return Instrument(
        ticker=ticker,
        name=str(row.get("name") or ticker),
        asset_type=parse_enum(AssetType, row.get("asset_type") or row.get("type")),
        currency=str(row.get("currency") or Currency.CHF.value),
        target_allocation_pct=coerce_float(row.get("target_allocation_pct", row.get("target_pct"))),
        isin=row.get("isin"),
        asset_class=parse_enum(AssetClass, row.get("asset_class")),
        region_allocation=_regions(row.get("region_allocation")),
        sector=row.get("sector"),
    )


def price_from_dict(row: dict) -> PricePoint:
    row = _clean(row)
    return PricePoint(
        ticker=str(row.get("ticker") or "").strip(),
        date=row.get("date"),
        close=row.get("close"),
        currency=str(row.get("currency") or Currency.CHF.value),
    )


def _build(rows: Iterable[dict], factory, kind: str) -> list:
    out = []
    for idx, row in enumerate(rows or []):
        if not isinstance(row, dict):
            log.warning("record_skipped", kind=kind, index=idx, reason="not an object")
            continue
        try:
            out.append(factory(row))
        except ValueError as e:
            log.warning("record_skipped", kind=kind, index=idx, reason=str(e))
    return out


def transactions_from_records(rows: Iterable[dict]) -> list[Transaction]:
    return _build(rows, transaction_from_dict, "transaction")


def instruments_from_records(rows: Iterable[dict]) -> list[Instrument]:
    return _build(rows, instrument_from_dict, "instrument")


def prices_from_records(rows: Iterable[dict]) -> list[PricePoint]:
    return _build(rows, price_from_dict, "price")


def read_rows(path) -> list[dict]:
    path = Path(path)
    if path.suffix.lower() == ".json":
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON list of objects")
        return data
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    return df.to_dict("records")


def load_transactions(path) -> list[Transaction]:
    return transactions_from_records(read_rows(path))


def load_instruments(path) -> list[Instrument]:
    return instruments_from_records(read_rows(path))


def load_prices(path) -> list[PricePoint]:
    return prices_from_records(read_rows(path))


def dump_records(items, path=None):
    """Flat dicts for ``items``; written as indented JSON when ``path`` is given."""
    records = to_record(items)
    if path is not None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(records, indent=2, sort_keys=False), encoding="utf-8")
    return records
