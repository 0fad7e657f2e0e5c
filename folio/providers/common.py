import json
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

import pandas as pd
import structlog

from ..models import Currency, PricePoint
from ..pipeline.macro import MacroDataPoint
from ..utils import coerce_float, parse_date

log = structlog.get_logger()

_GVIZ_RE = re.compile(r"google\.visualization\.Query\.setResponse\((.*)\);?\s*$", re.S)


@dataclass(frozen=True)
class ParseError:
    index: int
    reason: str


@dataclass
class ParseResult:
    points: list = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _point(ticker, px_date, close, currency) -> tuple[PricePoint | None, str | None]:
    ticker = str(ticker or "").strip()
    if not ticker:
        return None, "missing ticker"
    px_date = parse_date(px_date)
    if px_date is None:
        return None, "invalid date"
    close = coerce_float(close, default=None)
    if close is None or close <= 0:
        return None, "invalid close"
    return PricePoint(ticker=ticker, date=px_date, close=close, currency=str(currency or Currency.CHF.value)), None


def normalize_price_frame(df) -> pd.DataFrame | None:
    if df is None or not isinstance(df, pd.DataFrame) or df.empty:
        return None
    d = df.copy()
    if "date" not in d.columns:
        if isinstance(d.index, pd.DatetimeIndex):
            d = d.reset_index().rename(columns={"index": "date"})
        elif "Datetime" in d.columns:
            d = d.rename(columns={"Datetime": "date"})
    rename = {
        "Date": "date",
        "Close": "close",
        "Adj Close": "adj_close",
        "adjusted_close": "adj_close",
        "Symbol": "ticker",
        "symbol": "ticker",
        "Ticker": "ticker",
        "Currency": "currency",
    }
    d = d.rename(columns=rename)
    if "close" not in d.columns and "adj_close" in d.columns:
        d["close"] = d["adj_close"]
    if "date" in d.columns:
        d["date"] = pd.to_datetime(d["date"], errors="coerce").dt.date
    if "close" in d.columns:
        d["close"] = pd.to_numeric(d["close"], errors="coerce")
    return d.reset_index(drop=True)


def parse_price_frame(df, ticker: str, currency: str = Currency.CHF.value) -> ParseResult:
    """PricePoints from a provider OHLC frame; bad rows become ParseErrors."""
    result = ParseResult()
    d = normalize_price_frame(df)
    if d is None:
        return result
    if "date" not in d.columns or "close" not in d.columns:
        result.errors.append(ParseError(-1, "missing date or close column"))
        return result
    for idx, row in enumerate(d.to_dict("records")):
        px_date = None if pd.isna(row.get("date")) else row.get("date")
        row_ticker = row.get("ticker")
        row_ticker = ticker if row_ticker is None or pd.isna(row_ticker) else row_ticker
        row_currency = row.get("currency")
        row_currency = currency if row_currency is None or pd.isna(row_currency) else row_currency
        point, reason = _point(row_ticker, px_date, row.get("close"), row_currency)
        if point is None:
            result.errors.append(ParseError(idx, reason))
        else:
            result.points.append(point)
    if result.errors:
        log.warning("price_rows_rejected", ticker=ticker, rejected=len(result.errors), accepted=len(result.points))
    return result


def parse_price_records(records: Iterable[dict], ticker: str, currency: str = Currency.CHF.value) -> ParseResult:
    """PricePoints from JSON end-of-day records (``date`` and ``close`` keys)."""
    result = ParseResult()
    for idx, rec in enumerate(records or []):
        if not isinstance(rec, dict):
            result.errors.append(ParseError(idx, "record is not an object"))
            continue
        close = rec.get("close", rec.get("adjusted_close"))
        point, reason = _point(rec.get("ticker") or ticker, rec.get("date"), close, rec.get("currency") or currency)
        if point is None:
            result.errors.append(ParseError(idx, reason))
        else:
            result.points.append(point)
    if result.errors:
        log.warning("price_rows_rejected", ticker=ticker, rejected=len(result.errors), accepted=len(result.points))
    return result


def gviz_rows(text: str) -> list[list]:
    """Cell values of a Google Visualization (gviz) JSONP response."""
    match = _GVIZ_RE.search((text or "").strip())
    if not match:
        if "<!DOCTYPE html>" in (text or ""):
            raise ValueError("sheet is not accessible; publish it to the web")
        raise ValueError("not a gviz response")
    payload = json.loads(match.group(1))
    if payload.get("status") == "error":
        errors = payload.get("errors") or [{}]
        raise ValueError(f"sheet error: {errors[0].get('message', 'unknown')}")
    rows = (payload.get("table") or {}).get("rows") or []
    return [[(c or {}).get("v") for c in r.get("c") or []] for r in rows]


def _cell(row: list, i: int):
    return row[i] if i < len(row) else None


def parse_sheet_response(text: str, as_of: date) -> ParseResult:
    """Latest prices from a sheet laid out as ticker, close, currency; dated ``as_of``."""
    result = ParseResult()
    try:
        rows = gviz_rows(text)
    except ValueError as e:
        result.errors.append(ParseError(-1, str(e)))
        return result
    for idx, row in enumerate(rows):
        point, reason = _point(_cell(row, 0), as_of, _cell(row, 1), _cell(row, 2))
        if point is None:
            result.errors.append(ParseError(idx, reason))
        else:
            result.points.append(point)
    return result


def parse_macro_sheet(text: str) -> ParseResult:
    """Macro data points from a sheet laid out as id, value, [min], [max]."""
    result = ParseResult()
    try:
        rows = gviz_rows(text)
    except ValueError as e:
        result.errors.append(ParseError(-1, str(e)))
        return result
    for idx, row in enumerate(rows):
        ind_id = _cell(row, 0)
        value = coerce_float(_cell(row, 1), default=None)
        if ind_id is None or str(ind_id).strip() == "" or value is None:
            result.errors.append(ParseError(idx, "missing id or value"))
            continue
        result.points.append(
            MacroDataPoint(
                id=str(ind_id).strip(),
                value=value,
                min_value=coerce_float(_cell(row, 2), default=None),
                max_value=coerce_float(_cell(row, 3), default=None),
            )
        )
    return result
