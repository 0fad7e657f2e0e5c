from typing import Iterable

import structlog

from ..config import AnalyticsConfig, DEFAULT_CONFIG
from ..models import Order, OrderAction, Position, RebalanceStrategy
from ..utils import coerce_float

log = structlog.get_logger()


def _strategy(val) -> RebalanceStrategy:
    if isinstance(val, RebalanceStrategy):
        return val
    text = str(val or "").strip().lower()
    for s in RebalanceStrategy:
        if s.value.lower() == text:
            return s
    raise ValueError(f"Unsupported rebalance strategy: {val}")


def order_action(
    diff: float,
    target_pct: float,
    quantity: float,
    effective_total: float,
    strategy: RebalanceStrategy,
    threshold_pct: float = DEFAULT_CONFIG.rebalance_threshold_pct,
) -> OrderAction:
    threshold = effective_total * threshold_pct / 100
    if target_pct == 0 and quantity > 0:
        action = OrderAction.SELL
    elif diff > threshold:
        action = OrderAction.BUY
    elif diff < -threshold:
        action = OrderAction.SELL
    else:
        action = OrderAction.NEUTRAL
    # accumulation never liquidates
    if strategy == RebalanceStrategy.ACCUMULATE and action == OrderAction.SELL:
        return OrderAction.NEUTRAL
    return action


def rebalance(
    positions: Iterable[Position],
    total_value: float,
    strategy=RebalanceStrategy.MAINTAIN,
    cash_injection: float = 0.0,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> list[Order]:
    """One order per position, in position order.

    Under Accumulate the cash injection is added to the total before targets
    are computed and sells are downgraded to Neutral. Neutral orders carry
    a zero amount and quantity.
    """
    strategy = _strategy(strategy)
    total_value = coerce_float(total_value)
    injection = coerce_float(cash_injection) if strategy == RebalanceStrategy.ACCUMULATE else 0.0
    effective_total = total_value + injection

    orders = []
    for pos in positions or []:
        target_pct = coerce_float(pos.target_pct)
        current_value = coerce_float(pos.current_value)
        price = coerce_float(pos.current_price)
        diff = effective_total * target_pct / 100 - current_value
        action = order_action(
            diff,
            target_pct,
            coerce_float(pos.quantity),
            effective_total,
            strategy,
            config.rebalance_threshold_pct,
        )
        amount = 0.0 if action == OrderAction.NEUTRAL else abs(diff)
        orders.append(
            Order(
                ticker=pos.ticker,
                name=pos.name,
                action=action,
                amount=amount,
                quantity=amount / price if price > 0 else 0.0,
                current_pct=pos.current_pct,
                target_pct=target_pct,
            )
        )
    log.debug(
        "rebalance_computed",
        strategy=strategy.value,
        effective_total=round(effective_total, 2),
        orders=sum(1 for o in orders if o.action != OrderAction.NEUTRAL),
    )
    return orders
