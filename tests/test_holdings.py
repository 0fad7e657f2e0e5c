import unittest
from datetime import date

from folio.config import AnalyticsConfig
from folio.models import Instrument, Transaction
from folio.pipeline.holdings import HoldingsCursor, reconstruct
from folio.pipeline.ledger import capital_mode, dedupe_instruments, normalize_ledger


def _trades():
    return [
        Transaction(date(2024, 1, 1), "Buy", 10, 10.0, fees=1.0, ticker="A"),
        Transaction(date(2024, 1, 2), "Sell", 3, 11.0, fees=1.0, ticker="A"),
    ]


class ReconstructTests(unittest.TestCase):
    def test_trades_mode_invested_includes_fees(self):
        holdings, invested = reconstruct(_trades(), date(2024, 1, 31))
        self.assertAlmostEqual(holdings["A"], 7.0)
        self.assertAlmostEqual(invested, 101.0 - 32.0)

    def test_cutoff_excludes_later_transactions(self):
        holdings, invested = reconstruct(_trades(), date(2024, 1, 1))
        self.assertAlmostEqual(holdings["A"], 10.0)
        self.assertAlmostEqual(invested, 101.0)

    def test_deposits_mode_tracks_external_cash_only(self):
        txs = [
            Transaction(date(2024, 1, 1), "Deposit", 1000.0),
            Transaction(date(2024, 1, 2), "Buy", 10, 10.0, ticker="A"),
            Transaction(date(2024, 1, 3), "Withdrawal", 100.0),
        ]
        holdings, invested = reconstruct(txs, date(2024, 1, 31))
        self.assertAlmostEqual(holdings["A"], 10.0)
        self.assertAlmostEqual(invested, 900.0)

    def test_capital_mode_can_be_forced(self):
        txs = [
            Transaction(date(2024, 1, 1), "Deposit", 1000.0),
            Transaction(date(2024, 1, 2), "Buy", 10, 10.0, ticker="A"),
        ]
        _, invested = reconstruct(txs, date(2024, 1, 31), AnalyticsConfig(invested_capital_mode="trades"))
        self.assertAlmostEqual(invested, 100.0)

    def test_mode_is_chosen_from_the_whole_ledger(self):
        txs = _trades() + [Transaction(date(2025, 1, 1), "Deposit", 500.0)]
        # deposit after the cutoff still switches the ledger to deposits mode
        _, invested = reconstruct(txs, date(2024, 6, 30))
        self.assertAlmostEqual(invested, 0.0)

    def test_quantity_conservation(self):
        txs = [
            Transaction(date(2024, 1, 1), "Buy", 5, 1.0, ticker="A"),
            Transaction(date(2024, 2, 1), "Buy", 2.5, 1.0, ticker="A"),
            Transaction(date(2024, 3, 1), "Sell", 4, 1.0, ticker="A"),
            Transaction(date(2024, 3, 1), "Dividend", 9, 1.0, ticker="A"),
        ]
        holdings, _ = reconstruct(txs, date(2024, 12, 31))
        self.assertAlmostEqual(holdings["A"], 5 + 2.5 - 4)

    def test_malformed_rows_are_skipped_or_zeroed(self):
        txs = [
            Transaction("not-a-date", "Buy", 10, 10.0, ticker="A"),
            Transaction(date(2024, 1, 1), "Transfer", 10, 10.0, ticker="A"),
            Transaction(date(2024, 1, 1), "buy", "abc", 10.0, ticker="A"),
            Transaction(date(2024, 1, 1), "Buy", 2, float("inf"), ticker="A"),
        ]
        holdings, invested = reconstruct(txs, date(2024, 12, 31))
        self.assertAlmostEqual(holdings["A"], 2.0)
        self.assertAlmostEqual(invested, 0.0)

    def test_inputs_are_not_mutated(self):
        txs = _trades()
        before = list(txs)
        reconstruct(txs, date(2024, 1, 31))
        self.assertEqual(txs, before)


class HoldingsCursorTests(unittest.TestCase):
    def test_cash_accumulator_in_deposits_mode(self):
        entries = normalize_ledger(
            [
                Transaction(date(2024, 1, 1), "Deposit", 1000.0),
                Transaction(date(2024, 1, 2), "Buy", 10, 10.0, fees=2.0, ticker="A"),
                Transaction(date(2024, 1, 3), "Dividend", 5.0, ticker="A"),
                Transaction(date(2024, 1, 4), "Fee", 3.0),
                Transaction(date(2024, 1, 5), "Sell", 2, 12.0, fees=1.0, ticker="A"),
            ]
        )
        cursor = HoldingsCursor(entries, "deposits")
        self.assertAlmostEqual(cursor.advance(date(2024, 1, 2)).cash, 898.0)
        self.assertAlmostEqual(cursor.advance(date(2024, 1, 4)).cash, 900.0)
        self.assertAlmostEqual(cursor.advance(date(2024, 1, 5)).cash, 923.0)
        self.assertAlmostEqual(cursor.quantities["A"], 8.0)

    def test_cash_stays_zero_in_trades_mode(self):
        cursor = HoldingsCursor(normalize_ledger(_trades()), "trades").advance(date(2024, 12, 31))
        self.assertEqual(cursor.cash, 0.0)

    def test_held_drops_dust(self):
        entries = normalize_ledger(
            [
                Transaction(date(2024, 1, 1), "Buy", 1.0, 1.0, ticker="A"),
                Transaction(date(2024, 1, 2), "Sell", 0.9999999, 1.0, ticker="A"),
            ]
        )
        cursor = HoldingsCursor(entries, "trades").advance(date(2024, 1, 2))
        self.assertEqual(cursor.held(1e-6), {})


class LedgerTests(unittest.TestCase):
    def test_ties_keep_ledger_order(self):
        entries = normalize_ledger(
            [
                Transaction(date(2024, 1, 2), "Sell", 1, 2.0, ticker="A"),
                Transaction(date(2024, 1, 1), "Buy", 1, 1.0, ticker="A"),
                Transaction(date(2024, 1, 2), "Buy", 1, 3.0, ticker="A"),
            ]
        )
        self.assertEqual([e.unit_price for e in entries], [1.0, 2.0, 3.0])

    def test_capital_mode(self):
        self.assertEqual(capital_mode(normalize_ledger(_trades())), "trades")
        with_cash = normalize_ledger(_trades() + [Transaction(date(2024, 1, 1), "Withdrawal", 1.0)])
        self.assertEqual(capital_mode(with_cash), "deposits")
        self.assertEqual(capital_mode(with_cash, "trades"), "trades")

    def test_dedupe_instruments_last_wins(self):
        out = dedupe_instruments([Instrument("A", "first"), Instrument("B"), Instrument("A", "second")])
        self.assertEqual(list(out), ["A", "B"])
        self.assertEqual(out["A"].name, "second")


if __name__ == "__main__":
    unittest.main()
