from __future__ import annotations

import math
from dataclasses import replace
from datetime import date
from typing import Iterable

import numpy as np
import pandas as pd
import structlog

from ..config import (
    AnalyticsConfig,
    DAYS_PER_YEAR,
    DEFAULT_CONFIG,
    Granularity,
    MONTHS_PER_YEAR,
    TRADING_DAYS_PER_YEAR,
    XIRR_GUESS,
    XIRR_MIN_DERIVATIVE,
)
from ..models import (
    AnnualReturn,
    CashFlow,
    DrawdownPoint,
    PerformancePoint,
    PortfolioAnalytics,
    TransactionKind,
)
from ..utils import coerce_float, parse_date
from .ledger import capital_mode, normalize_ledger

log = structlog.get_logger()

ANNUAL_PERIODS = {"monthly": MONTHS_PER_YEAR, "daily": TRADING_DAYS_PER_YEAR}


def _frame(points: list[PerformancePoint]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "date": pd.to_datetime([p.date for p in points]),
            "value": [float(p.value) for p in points],
            "period_return_pct": [float(p.period_return_pct) for p in points],
            "twrr_index": [float(p.twrr_index) for p in points],
        }
    )


def _finite(val: float) -> float:
    return float(val) if math.isfinite(val) else 0.0


def period_returns(df: pd.DataFrame, granularity: Granularity) -> pd.Series:
    """Period returns as fractions, read from ``period_return_pct``.

    Monthly series keep every point, the opening 0 included. Daily series
    keep points whose predecessor value is positive.
    """
    rets = df["period_return_pct"] / 100.0
    if granularity == "daily":
        rets = rets[df["value"].shift(1) > 0]
    return rets


def drawdown_series(values: pd.Series) -> pd.Series:
    peak = values.cummax()
    depth = values / peak - 1.0
    return depth.where(peak > 0, 0.0)


def annual_returns(df: pd.DataFrame, granularity: Granularity) -> list[AnnualReturn]:
    out = []
    for year, grp in df.groupby(df["date"].dt.year, sort=True):
        if granularity == "daily":
            first, last = grp["value"].iloc[0], grp["value"].iloc[-1]
            ret = last / first - 1.0 if first > 0 else 0.0
        else:
            ret = (1.0 + grp["period_return_pct"] / 100.0).prod() - 1.0
        out.append(AnnualReturn(year=int(year), return_pct=_finite(ret * 100)))
    return out


def annualized_return(df: pd.DataFrame, granularity: Granularity) -> float:
    """CAGR in percent; -100 when the series is wiped out."""
    if granularity == "daily":
        positive = df[df["value"] > 0]
        first = positive.iloc[0] if not positive.empty else df.iloc[0]
        last = df.iloc[-1]
        if first["value"] <= 0:
            return 0.0
        days = (last["date"] - first["date"]).days or 1
        growth = last["value"] / first["value"]
        exponent = DAYS_PER_YEAR / days
    else:
        years = int((df["value"] > 0).sum()) / MONTHS_PER_YEAR
        if years <= 0:
            return 0.0
        growth = df["twrr_index"].iloc[-1]
        exponent = 1.0 / years
    if growth <= 0:
        return -100.0
    with np.errstate(over="ignore"):
        return _finite((np.power(growth, exponent) - 1.0) * 100)


def annualized_volatility(returns: pd.Series, periods: int) -> float:
    if returns is None or returns.empty:
        return 0.0
    return _finite(returns.std(ddof=0) * np.sqrt(periods) * 100)


def sharpe_ratio(annualized_return_pct: float, volatility_pct: float, rf_annual: float) -> float:
    if volatility_pct <= 0:
        return 0.0
    return _finite((annualized_return_pct - rf_annual * 100) / volatility_pct)


def analyze(
    points: list[PerformancePoint],
    granularity: Granularity = "monthly",
    cashflows: Iterable[CashFlow] | None = None,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> PortfolioAnalytics:
    """Risk and return statistics for one performance series.

    Volatility is the population standard deviation of ``period_return_pct``;
    daily series skip points whose predecessor has no value. Sharpe subtracts the
    annual risk-free rate from the CAGR in both granularities. When
    ``cashflows`` is given, the money-weighted return is their XIRR.
    """
    if granularity not in ANNUAL_PERIODS:
        raise ValueError(f"Unsupported granularity: {granularity}")
    points = list(points or [])
    mwrr = None
    if cashflows is not None:
        rate = xirr(cashflows, config=config)
        mwrr = None if rate is None else rate * 100
    if len(points) < 2:
        return PortfolioAnalytics(money_weighted_return_pct=mwrr)

    df = _frame(points)
    depth = drawdown_series(df["value"])
    drawdowns = [
        DrawdownPoint(date=p.date, depth_pct=float(d) * 100)
        for p, d in zip(points, depth.tolist())
    ]
    cagr = annualized_return(df, granularity)
    vol = annualized_volatility(period_returns(df, granularity), ANNUAL_PERIODS[granularity])

    result = PortfolioAnalytics(
        annual_returns=annual_returns(df, granularity),
        max_drawdown_pct=float(depth.min()) * 100,
        drawdown_series=drawdowns,
        annualized_return_pct=cagr,
        volatility_pct=vol,
        sharpe_ratio=sharpe_ratio(cagr, vol, config.risk_free_rate),
        money_weighted_return_pct=mwrr,
    )
    log.debug(
        "analytics_computed",
        granularity=granularity,
        points=len(points),
        cagr_pct=round(cagr, 3),
        volatility_pct=round(vol, 3),
    )
    return result


def _clean_flows(cashflows: Iterable[CashFlow]) -> list[tuple[date, float]]:
    out = []
    for cf in cashflows or []:
        cf_date = parse_date(getattr(cf, "date", None))
        amount = coerce_float(getattr(cf, "amount", None), default=None)
        if cf_date is None or amount is None:
            continue
        out.append((cf_date, amount))
    out.sort(key=lambda f: f[0])
    return out


def xirr(
    cashflows: Iterable[CashFlow],
    guess: float = XIRR_GUESS,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> float | None:
    """Annual money-weighted rate (0.1 == 10%) by Newton-Raphson.

    ``None`` means indeterminate: no sign change in the flows, a flat
    derivative, a rate at or below -100%, or no convergence.
    """
    flows = _clean_flows(cashflows)
    amounts = np.array([a for _, a in flows], dtype=float)
    if not (amounts > 0).any() or not (amounts < 0).any():
        return None
    t0 = flows[0][0]
    years = np.array([(d - t0).days / DAYS_PER_YEAR for d, _ in flows], dtype=float)

    rate = float(guess)
    with np.errstate(all="ignore"):
        for _ in range(config.xirr_max_iterations):
            base = 1.0 + rate
            if base <= 0:
                return None
            npv = float(np.sum(amounts / np.power(base, years)))
            d_npv = float(np.sum(-years * amounts / np.power(base, years + 1.0)))
            if not math.isfinite(d_npv) or abs(d_npv) < XIRR_MIN_DERIVATIVE:
                return None
            nxt = rate - npv / d_npv
            if not math.isfinite(nxt):
                return None
            if abs(nxt - rate) < config.xirr_tolerance:
                return nxt
            rate = nxt
    log.debug("xirr_not_converged", flows=len(flows), iterations=config.xirr_max_iterations)
    return None


def external_flows(transactions: Iterable, config: AnalyticsConfig = DEFAULT_CONFIG) -> list[CashFlow]:
    """Money moved into (+) or out of (-) the portfolio, following the capital mode."""
    entries = normalize_ledger(transactions)
    mode = capital_mode(entries, config.invested_capital_mode)
    out = []
    for e in entries:
        if mode == "deposits":
            if e.kind == TransactionKind.DEPOSIT:
                out.append(CashFlow(e.date, e.quantity))
            elif e.kind == TransactionKind.WITHDRAWAL:
                out.append(CashFlow(e.date, -e.quantity))
        elif e.kind == TransactionKind.BUY:
            out.append(CashFlow(e.date, e.gross + e.fees))
        elif e.kind == TransactionKind.SELL:
            out.append(CashFlow(e.date, -(e.gross - e.fees)))
    return out


def portfolio_cashflows(
    transactions: Iterable,
    final_value: float,
    as_of: date,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> list[CashFlow]:
    """XIRR flows from the investor's side: money in is negative, the
    terminal ``final_value`` at ``as_of`` is positive.

    In deposits mode ``final_value`` should be the NAV (holdings plus cash).
    """
    out = [CashFlow(f.date, -f.amount) for f in external_flows(transactions, config) if f.date <= as_of]
    final_value = coerce_float(final_value)
    if final_value:
        out.append(CashFlow(as_of, final_value))
    return out


def flow_adjusted_twrr(points: list[PerformancePoint], flows: Iterable[CashFlow]) -> list[PerformancePoint]:
    """Re-chain period returns net of external flows.

    A flow counts against the first grid date on or after it, so monthly
    grids pick up every flow of the month. Flows are signed from the
    portfolio's side (deposits positive), as returned by ``external_flows``.
    """
    points = list(points or [])
    if not points:
        return points
    cleaned = _clean_flows(flows)
    idx = 0
    while idx < len(cleaned) and cleaned[idx][0] <= points[0].date:
        idx += 1

    out = [replace(points[0], period_return_pct=0.0, twrr_index=1.0)]
    twrr_index = 1.0
    prev_value = points[0].value
    for point in points[1:]:
        cf = 0.0
        while idx < len(cleaned) and cleaned[idx][0] <= point.date:
            cf += cleaned[idx][1]
            idx += 1
        r = (point.value - cf - prev_value) / prev_value if prev_value > 0 else 0.0
        twrr_index *= 1 + r
        out.append(replace(point, period_return_pct=r * 100, twrr_index=twrr_index))
        prev_value = point.value
    return out
