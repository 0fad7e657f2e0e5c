from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

QUANTITY_EPSILON = 1e-6
RISK_FREE_RATE = 0.02
REBALANCE_THRESHOLD_PCT = 1.0
MONTHS_PER_YEAR = 12
TRADING_DAYS_PER_YEAR = 252
DAYS_PER_YEAR = 365.25
XIRR_MAX_ITERATIONS = 50
XIRR_TOLERANCE = 1e-7
XIRR_MIN_DERIVATIVE = 1e-10
XIRR_GUESS = 0.1

CapitalMode = Literal["auto", "deposits", "trades"]
Granularity = Literal["monthly", "daily"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)
    risk_free_rate: float = Field(default=RISK_FREE_RATE, alias="RISK_FREE_RATE")
    quantity_epsilon: float = Field(default=QUANTITY_EPSILON, alias="QUANTITY_EPSILON")
    rebalance_threshold_pct: float = Field(default=REBALANCE_THRESHOLD_PCT, alias="REBALANCE_THRESHOLD_PCT")
    default_window_months: int = Field(default=60, alias="DEFAULT_WINDOW_MONTHS")
    default_granularity: Granularity = Field(default="monthly", alias="DEFAULT_GRANULARITY")
    invested_capital_mode: CapitalMode = Field(default="auto", alias="INVESTED_CAPITAL_MODE")
    xirr_max_iterations: int = Field(default=XIRR_MAX_ITERATIONS, alias="XIRR_MAX_ITERATIONS")
    xirr_tolerance: float = Field(default=XIRR_TOLERANCE, alias="XIRR_TOLERANCE")
    coverage_tolerance_days: int = Field(default=5, alias="COVERAGE_TOLERANCE_DAYS")
    local_tz: str = Field(default="Europe/Zurich", alias="LOCAL_TZ")
    daily_cutover: str = Field(default="00:00", alias="DAILY_CUTOVER")


@dataclass(frozen=True)
class AnalyticsConfig:
    """Explicit knobs for one engine call. The engine never reads ``settings``."""

    risk_free_rate: float = RISK_FREE_RATE
    quantity_epsilon: float = QUANTITY_EPSILON
    rebalance_threshold_pct: float = REBALANCE_THRESHOLD_PCT
    invested_capital_mode: CapitalMode = "auto"
    xirr_max_iterations: int = XIRR_MAX_ITERATIONS
    xirr_tolerance: float = XIRR_TOLERANCE

    @classmethod
    def from_settings(cls, s: "Settings") -> "AnalyticsConfig":
        return cls(
            risk_free_rate=s.risk_free_rate,
            quantity_epsilon=s.quantity_epsilon,
            rebalance_threshold_pct=s.rebalance_threshold_pct,
            invested_capital_mode=s.invested_capital_mode,
            xirr_max_iterations=s.xirr_max_iterations,
            xirr_tolerance=s.xirr_tolerance,
        )


DEFAULT_CONFIG = AnalyticsConfig()

settings = Settings()
