"""Ledger inputs and derived outputs of the valuation engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class TransactionKind(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    DEPOSIT = "Deposit"
    WITHDRAWAL = "Withdrawal"
    FEE = "Fee"


class AssetType(str, Enum):
    STOCK = "Stock"
    ETF = "ETF"
    BOND = "Bond"
    CRYPTO = "Crypto"
    CASH = "Cash"
    COMMODITY = "Commodity"


class AssetClass(str, Enum):
    STOCK = "STOCK"
    BOND = "BOND"
    ETF_STOCK = "ETF_STOCK"
    ETF_BOND = "ETF_BOND"
    ETC = "ETC"
    CRYPTO = "CRYPTO"
    CASH = "CASH"
    OTHER = "OTHER"


class Currency(str, Enum):
    CHF = "CHF"
    EUR = "EUR"
    USD = "USD"
    GBP = "GBP"


class RebalanceStrategy(str, Enum):
    ACCUMULATE = "Accumulate"  # buy only
    MAINTAIN = "Maintain"


class OrderAction(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    NEUTRAL = "Neutral"


UNKNOWN_ASSET_TYPE = "Unknown"


@dataclass(frozen=True)
class Transaction:
    date: Any
    kind: Any
    quantity: Any = 0.0
    unit_price: Any = 0.0
    fees: Any = 0.0
    currency: str = Currency.CHF.value
    ticker: str | None = None  # None for pure cash movements
    account: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class Instrument:
    ticker: str
    name: str = ""
    asset_type: AssetType | None = None
    currency: str = Currency.CHF.value
    target_allocation_pct: float = 0.0
    isin: str | None = None
    asset_class: AssetClass | None = None
    region_allocation: dict[str, float] | None = None
    sector: str | None = None


@dataclass(frozen=True)
class PricePoint:
    ticker: str
    date: Any
    close: Any
    currency: str = Currency.CHF.value


@dataclass(frozen=True)
class CashFlow:
    date: date
    amount: float


@dataclass(frozen=True)
class Position:
    ticker: str
    name: str
    asset_type: AssetType | None
    asset_class: AssetClass | None
    currency: str
    quantity: float
    current_price: float
    current_value: float
    target_pct: float
    current_pct: float


@dataclass(frozen=True)
class PortfolioSnapshot:
    positions: list[Position]
    total_value: float
    invested_capital: float
    balance: float
    balance_pct: float
    as_of: date | None = None


@dataclass(frozen=True)
class PerformancePoint:
    date: date
    value: float
    invested: float
    period_return_pct: float
    cumulative_return_pct: float
    twrr_index: float


@dataclass(frozen=True)
class ExposurePoint:
    date: date
    pct: float


@dataclass(frozen=True)
class SeriesResult:
    points: list[PerformancePoint] = field(default_factory=list)
    asset_class_exposure: dict[str, list[ExposurePoint]] = field(default_factory=dict)
    currency_exposure: dict[str, list[ExposurePoint]] = field(default_factory=dict)


@dataclass(frozen=True)
class AnnualReturn:
    year: int
    return_pct: float


@dataclass(frozen=True)
class DrawdownPoint:
    date: date
    depth_pct: float


@dataclass(frozen=True)
class PortfolioAnalytics:
    annual_returns: list[AnnualReturn] = field(default_factory=list)
    max_drawdown_pct: float = 0.0
    drawdown_series: list[DrawdownPoint] = field(default_factory=list)
    annualized_return_pct: float = 0.0
    volatility_pct: float = 0.0
    sharpe_ratio: float = 0.0
    money_weighted_return_pct: float | None = None


@dataclass(frozen=True)
class Order:
    ticker: str
    name: str
    action: OrderAction
    amount: float
    quantity: float
    current_pct: float
    target_pct: float


def to_record(obj) -> Any:
    """Flat, JSON-ready form of any model: ISO dates, enum values."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {str(to_record(k)): to_record(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_record(v) for v in obj]
    if hasattr(obj, "__dataclass_fields__"):
        return {k: to_record(v) for k, v in asdict(obj).items()}
    return obj
