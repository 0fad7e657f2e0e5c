from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Literal

class TransactionIn(BaseModel):
    date: str
    kind: str
    ticker: Optional[str] = None
    quantity: float = 0.0
    unit_price: float = 0.0
    fees: float = 0.0
    currency: str = "CHF"
    account: Optional[str] = None
    note: Optional[str] = None

class InstrumentIn(BaseModel):
    ticker: str
    name: str = ""
    asset_type: Optional[str] = None
    currency: str = "CHF"
    target_allocation_pct: float = 0.0
    isin: Optional[str] = None
    asset_class: Optional[str] = None
    region_allocation: Optional[Dict[str, float]] = None
    sector: Optional[str] = None

class PriceIn(BaseModel):
    ticker: str
    date: str
    close: float
    currency: str = "CHF"

class CashFlowIn(BaseModel):
    date: str
    amount: float

class PortfolioRequest(BaseModel):
    transactions: List[TransactionIn] = Field(default_factory=list)
    instruments: List[InstrumentIn] = Field(default_factory=list)
    prices: List[PriceIn] = Field(default_factory=list)
    as_of: Optional[str] = None

class SeriesRequest(PortfolioRequest):
    window_months: Optional[int] = Field(default=None, ge=0)
    granularity: Optional[Literal['monthly', 'daily']] = None

class AnalyticsRequest(SeriesRequest):
    money_weighted: bool = True
    flow_adjusted: bool = False

class RebalanceRequest(PortfolioRequest):
    strategy: Literal['Accumulate', 'Maintain'] = 'Maintain'
    cash_injection: float = 0.0

class CoverageRequest(PortfolioRequest):
    start: Optional[str] = None

class XirrRequest(BaseModel):
    cashflows: List[CashFlowIn]

class XirrResponse(BaseModel):
    rate: Optional[float] = None
    rate_pct: Optional[float] = None

class MacroIndicatorIn(BaseModel):
    id: str
    name: str
    current_value: float
    min_value: float
    max_value: float
    weight: float
    direction: Literal['high_is_crisis', 'low_is_crisis'] = 'high_is_crisis'
    unit: str = ""

class MacroDataPointIn(BaseModel):
    id: str
    value: float
    min_value: Optional[float] = None
    max_value: Optional[float] = None

class MacroRequest(BaseModel):
    indicators: Optional[List[MacroIndicatorIn]] = None
    data_points: List[MacroDataPointIn] = Field(default_factory=list)
