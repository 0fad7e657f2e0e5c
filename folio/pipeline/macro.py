"""Macro regime gauge: a weighted index of normalized indicators in [0, 1].

0 reads as expansion/euphoria, 1 as crisis. Indicator sets are plain tuples
passed by the caller; updates produce new tuples.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Literal

from ..utils import coerce_float

Direction = Literal["high_is_crisis", "low_is_crisis"]

CRISIS_THRESHOLD = 0.60
EUPHORIA_THRESHOLD = 0.40


@dataclass(frozen=True)
class MacroIndicator:
    id: str
    name: str
    current_value: float
    min_value: float
    max_value: float
    weight: float
    direction: Direction = "high_is_crisis"
    unit: str = ""


@dataclass(frozen=True)
class MacroDataPoint:
    id: str
    value: float
    min_value: float | None = None
    max_value: float | None = None


@dataclass(frozen=True)
class IndicatorScore:
    indicator: MacroIndicator
    normalized: float
    weighted: float


@dataclass(frozen=True)
class MacroIndex:
    value: float
    phase: str
    rows: tuple[IndicatorScore, ...] = ()


DEFAULT_INDICATORS = (
    MacroIndicator("1", "Fed Funds Rate", 5.33, 0, 10, 15, "high_is_crisis", "%"),
    MacroIndicator("2", "Temporary Help Workers", 2950, 2000, 3500, 10, "low_is_crisis", "k"),
    MacroIndicator("3", "Unemployment Rate", 3.7, 3.4, 10, 20, "high_is_crisis", "%"),
    MacroIndicator("4", "Consumer Sentiment (UMich)", 69, 50, 100, 10, "low_is_crisis", "pts"),
    MacroIndicator("5", "S&P 500 Earnings Yield", 4.5, 3, 7, 15, "low_is_crisis", "%"),
    MacroIndicator("6", "VIX", 13, 10, 60, 10, "high_is_crisis", "pts"),
    MacroIndicator("7", "10Y-2Y Treasury Spread", -0.40, -1.0, 2.0, 20, "low_is_crisis", "bps"),
)


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def normalize_indicator(current: float, low: float, high: float, direction: Direction = "high_is_crisis") -> float:
    span = high - low
    if span == 0:
        return 0.5
    normalized = (current - low) / span
    if direction == "low_is_crisis":
        normalized = 1 - normalized
    return clamp01(normalized)


def index_phase(value: float) -> str:
    if value > CRISIS_THRESHOLD:
        return "crisis"
    if value < EUPHORIA_THRESHOLD:
        return "euphoria"
    return "neutral"


def compute_macro_index(indicators: Iterable[MacroIndicator] = DEFAULT_INDICATORS) -> MacroIndex:
    indicators = tuple(indicators)
    normalized = [
        normalize_indicator(
            coerce_float(ind.current_value),
            coerce_float(ind.min_value),
            coerce_float(ind.max_value),
            ind.direction,
        )
        for ind in indicators
    ]
    total_weight = sum(coerce_float(ind.weight) for ind in indicators)
    if total_weight == 0:
        rows = tuple(IndicatorScore(ind, n, 0.0) for ind, n in zip(indicators, normalized))
        return MacroIndex(0.5, index_phase(0.5), rows)

    rows = tuple(
        IndicatorScore(ind, n, n * coerce_float(ind.weight) / total_weight)
        for ind, n in zip(indicators, normalized)
    )
    value = clamp01(sum(r.weighted for r in rows))
    return MacroIndex(value, index_phase(value), rows)


def apply_data_points(
    indicators: Iterable[MacroIndicator],
    points: Iterable[MacroDataPoint],
) -> tuple[MacroIndicator, ...]:
    """Copy of ``indicators`` with current values (and bounds, when given) updated by id."""
    updates = {str(p.id).strip(): p for p in points or []}
    out = []
    for ind in indicators:
        p = updates.get(ind.id)
        if p is None:
            out.append(ind)
            continue
        out.append(
            replace(
                ind,
                current_value=p.value,
                min_value=ind.min_value if p.min_value is None else p.min_value,
                max_value=ind.max_value if p.max_value is None else p.max_value,
            )
        )
    return tuple(out)
