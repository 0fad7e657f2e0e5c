from datetime import date, datetime, timezone
from fastapi import APIRouter, HTTPException
from .schemas import (
    AnalyticsRequest,
    CoverageRequest,
    MacroRequest,
    PortfolioRequest,
    RebalanceRequest,
    SeriesRequest,
    XirrRequest,
    XirrResponse,
)
from ..config import AnalyticsConfig, settings
from ..models import CashFlow, to_record
from ..records import instruments_from_records, prices_from_records, transactions_from_records
from ..pipeline.allocation import allocation_by_asset_class, region_exposure
from ..pipeline.ledger import dedupe_instruments, normalize_ledger
from ..pipeline.macro import DEFAULT_INDICATORS, MacroDataPoint, MacroIndicator, apply_data_points, compute_macro_index
from ..pipeline.metrics import analyze, external_flows, flow_adjusted_twrr, portfolio_cashflows, xirr
from ..pipeline.prices import price_coverage
from ..pipeline.rebalance import rebalance
from ..pipeline.series import build_series
from ..pipeline.validation import validate_snapshot
from ..pipeline.valuation import net_asset_value, valuate
from ..utils import now_utc_iso, parse_date, to_local_date

router = APIRouter()

def _config() -> AnalyticsConfig:
    return AnalyticsConfig.from_settings(settings)

def _today() -> date:
    return to_local_date(datetime.now(timezone.utc), settings.local_tz, settings.daily_cutover)

def _date(val: str | None, name: str) -> date | None:
    if val is None:
        return None
    parsed = parse_date(val)
    if parsed is None:
        raise HTTPException(400, f'{name} must be YYYY-MM-DD')
    return parsed

def _inputs(req: PortfolioRequest):
    transactions = transactions_from_records([t.model_dump() for t in req.transactions])
    instruments = instruments_from_records([i.model_dump() for i in req.instruments])
    prices = prices_from_records([p.model_dump() for p in req.prices])
    return transactions, instruments, prices

@router.get(
    '/health',
    summary="Health check",
    description="Returns service liveness and the server time.",
    tags=["Health"],
)
def health():
    return {'ok': True, 'service': 'folio-engine', 'time_utc': now_utc_iso()}

@router.post(
    '/valuation',
    summary="Portfolio snapshot",
    description="Reconstructs holdings as of a date and values them with the latest known prices.",
    tags=["Portfolio"],
)
def valuation(req: PortfolioRequest):
    as_of = _date(req.as_of, 'as_of') or _today()
    transactions, instruments, prices = _inputs(req)
    snapshot = valuate(transactions, instruments, prices, as_of=as_of, config=_config())
    ok, reasons = validate_snapshot(snapshot)
    return {'snapshot': to_record(snapshot), 'valid': ok, 'reasons': reasons}

@router.post(
    '/series',
    summary="Performance series",
    description="Value, invested capital, returns and exposure on a monthly or daily grid ending at as_of.",
    tags=["Portfolio"],
)
def series(req: SeriesRequest):
    end = _date(req.as_of, 'as_of') or _today()
    transactions, instruments, prices = _inputs(req)
    result = build_series(
        transactions,
        instruments,
        prices,
        window_months=settings.default_window_months if req.window_months is None else req.window_months,
        granularity=req.granularity or settings.default_granularity,
        end=end,
        config=_config(),
    )
    return to_record(result)

@router.post(
    '/analytics',
    summary="Risk and return statistics",
    description=(
        "Builds the performance series and returns annual returns, drawdown, CAGR, "
        "volatility, Sharpe ratio and, optionally, the money-weighted return."
    ),
    tags=["Analytics"],
)
def analytics(req: AnalyticsRequest):
    end = _date(req.as_of, 'as_of') or _today()
    granularity = req.granularity or settings.default_granularity
    config = _config()
    transactions, instruments, prices = _inputs(req)
    result = build_series(
        transactions,
        instruments,
        prices,
        window_months=settings.default_window_months if req.window_months is None else req.window_months,
        granularity=granularity,
        end=end,
        config=config,
        include_cash=True if req.flow_adjusted else None,
    )
    points = result.points
    if req.flow_adjusted:
        points = flow_adjusted_twrr(points, external_flows(transactions, config))
    cashflows = None
    if req.money_weighted:
        final_value = net_asset_value(transactions, instruments, prices, as_of=end, config=config)
        cashflows = portfolio_cashflows(transactions, final_value, end, config)
    stats = analyze(points, granularity=granularity, cashflows=cashflows, config=config)
    return {'granularity': granularity, 'points': len(points), 'analytics': to_record(stats)}

@router.post(
    '/rebalance',
    summary="Rebalancing orders",
    description="Buy/Sell/Neutral orders that move the current snapshot towards target weights.",
    tags=["Portfolio"],
)
def rebalance_orders(req: RebalanceRequest):
    as_of = _date(req.as_of, 'as_of') or _today()
    config = _config()
    transactions, instruments, prices = _inputs(req)
    snapshot = valuate(transactions, instruments, prices, as_of=as_of, config=config)
    orders = rebalance(snapshot.positions, snapshot.total_value, req.strategy, req.cash_injection, config)
    return {
        'strategy': req.strategy,
        'effective_total': snapshot.total_value + (req.cash_injection if req.strategy == 'Accumulate' else 0.0),
        'orders': to_record(orders),
    }

@router.post(
    '/xirr',
    response_model=XirrResponse,
    summary="Money-weighted return",
    description="XIRR of dated cash flows; null when indeterminate.",
    tags=["Analytics"],
)
def xirr_rate(req: XirrRequest):
    flows = [CashFlow(_date(cf.date, 'date'), cf.amount) for cf in req.cashflows]
    rate = xirr(flows, config=_config())
    return XirrResponse(rate=rate, rate_pct=None if rate is None else rate * 100)

@router.post(
    '/allocation',
    summary="Allocation breakdowns",
    description="Snapshot value by asset class and by region.",
    tags=["Portfolio"],
)
def allocation(req: PortfolioRequest):
    as_of = _date(req.as_of, 'as_of') or _today()
    transactions, instruments, prices = _inputs(req)
    snapshot = valuate(transactions, instruments, prices, as_of=as_of, config=_config())
    return {
        'as_of': as_of.isoformat(),
        'total_value': snapshot.total_value,
        'asset_classes': to_record(allocation_by_asset_class(snapshot, instruments)),
        'regions': to_record(region_exposure(snapshot, instruments)),
    }

@router.post(
    '/coverage',
    summary="Price history coverage",
    description="Per-ticker price history status (ok, partial, missing) over [start, as_of].",
    tags=["Prices"],
)
def coverage(req: CoverageRequest):
    end = _date(req.as_of, 'as_of') or _today()
    start = _date(req.start, 'start')
    if start is not None and start > end:
        raise HTTPException(400, 'start must be <= as_of')
    transactions, instruments, prices = _inputs(req)
    tickers = list(dedupe_instruments(instruments))
    for e in normalize_ledger(transactions):
        if e.ticker and e.ticker not in tickers:
            tickers.append(e.ticker)
    rows = price_coverage(
        tickers,
        prices,
        instruments=instruments,
        start=start,
        end=end,
        tolerance_days=settings.coverage_tolerance_days,
    )
    return {'as_of': end.isoformat(), 'rows': to_record(rows)}

@router.post(
    '/macro',
    summary="Macro regime index",
    description="Weighted crisis/euphoria index of normalized indicators; defaults apply when none are sent.",
    tags=["Macro"],
)
def macro(req: MacroRequest):
    if req.indicators is None:
        indicators = DEFAULT_INDICATORS
    else:
        indicators = tuple(MacroIndicator(**i.model_dump()) for i in req.indicators)
    points = [MacroDataPoint(**p.model_dump()) for p in req.data_points]
    return to_record(compute_macro_index(apply_data_points(indicators, points)))
