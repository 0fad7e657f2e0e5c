import unittest

from folio.config import AnalyticsConfig
from folio.models import OrderAction, Position, RebalanceStrategy
from folio.pipeline.rebalance import rebalance


def _position(ticker, value, target_pct, price=10.0, total=100.0):
    return Position(
        ticker=ticker,
        name=ticker,
        asset_type=None,
        asset_class=None,
        currency="CHF",
        quantity=value / price if price else 1.0,
        current_price=price,
        current_value=value,
        target_pct=target_pct,
        current_pct=value / total * 100,
    )


class RebalanceTests(unittest.TestCase):
    def test_neutral_zone(self):
        orders = rebalance([_position("A", 50.0, 50.0), _position("B", 49.5, 50.0)], 100.0, "Maintain")
        self.assertEqual([o.action for o in orders], [OrderAction.NEUTRAL, OrderAction.NEUTRAL])
        self.assertEqual(orders[1].amount, 0.0)
        self.assertEqual(orders[1].quantity, 0.0)

    def test_buy_below_target(self):
        order = rebalance([_position("A", 30.0, 50.0)], 100.0, RebalanceStrategy.MAINTAIN)[0]
        self.assertEqual(order.action, OrderAction.BUY)
        self.assertAlmostEqual(order.amount, 20.0)
        self.assertAlmostEqual(order.quantity, 2.0)
        self.assertEqual(order.target_pct, 50.0)
        self.assertAlmostEqual(order.current_pct, 30.0)

    def test_sell_above_target_under_maintain(self):
        order = rebalance([_position("A", 60.0, 50.0)], 100.0, "Maintain")[0]
        self.assertEqual(order.action, OrderAction.SELL)
        self.assertAlmostEqual(order.amount, 10.0)

    def test_accumulate_suppresses_sells(self):
        order = rebalance([_position("A", 60.0, 50.0)], 100.0, "Accumulate")[0]
        self.assertEqual(order.action, OrderAction.NEUTRAL)
        self.assertEqual(order.amount, 0.0)

    def test_zero_target_exits_position(self):
        order = rebalance([_position("A", 0.5, 0.0)], 100.0, "Maintain")[0]
        self.assertEqual(order.action, OrderAction.SELL)
        self.assertAlmostEqual(order.amount, 0.5)
        exit_under_accumulate = rebalance([_position("A", 0.5, 0.0)], 100.0, "Accumulate")[0]
        self.assertEqual(exit_under_accumulate.action, OrderAction.NEUTRAL)

    def test_cash_injection_only_counts_under_accumulate(self):
        positions = [_position("A", 50.0, 50.0)]
        accumulate = rebalance(positions, 100.0, "Accumulate", cash_injection=100.0)[0]
        self.assertEqual(accumulate.action, OrderAction.BUY)
        self.assertAlmostEqual(accumulate.amount, 50.0)
        maintain = rebalance(positions, 100.0, "Maintain", cash_injection=100.0)[0]
        self.assertEqual(maintain.action, OrderAction.NEUTRAL)

    def test_zero_price_gives_zero_quantity(self):
        order = rebalance([_position("A", 0.0, 50.0, price=0.0)], 100.0, "Maintain")[0]
        self.assertEqual(order.action, OrderAction.BUY)
        self.assertEqual(order.quantity, 0.0)

    def test_threshold_is_configurable(self):
        config = AnalyticsConfig(rebalance_threshold_pct=5.0)
        order = rebalance([_position("A", 46.0, 50.0)], 100.0, "Maintain", config=config)[0]
        self.assertEqual(order.action, OrderAction.NEUTRAL)

    def test_one_order_per_position_in_order(self):
        positions = [_position("B", 10.0, 20.0), _position("A", 90.0, 80.0)]
        self.assertEqual([o.ticker for o in rebalance(positions, 100.0)], ["B", "A"])

    def test_unknown_strategy(self):
        with self.assertRaises(ValueError):
            rebalance([], 100.0, "Yolo")


if __name__ == "__main__":
    unittest.main()
