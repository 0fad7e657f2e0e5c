import unittest
from dataclasses import replace
from datetime import date

from folio.models import Instrument, PricePoint, Transaction
from folio.pipeline.series import build_series
from folio.pipeline.validation import validate_series, validate_snapshot
from folio.pipeline.valuation import valuate


def _ledger():
    return [
        Transaction(date(2024, 1, 1), "Buy", 10, 10.0, ticker="A"),
        Transaction(date(2024, 1, 5), "Buy", 4, 25.0, ticker="B"),
    ]


def _prices():
    return [PricePoint("A", date(2024, 2, 1), 12.0), PricePoint("B", date(2024, 2, 1), 20.0)]


class SnapshotValidationTests(unittest.TestCase):
    def test_engine_snapshot_is_valid(self):
        snap = valuate(_ledger(), [Instrument("A"), Instrument("B")], _prices(), as_of=date(2024, 3, 1))
        ok, reasons = validate_snapshot(snap)
        self.assertTrue(ok, reasons)

    def test_total_mismatch(self):
        snap = valuate(_ledger(), [], _prices(), as_of=date(2024, 3, 1))
        ok, reasons = validate_snapshot(replace(snap, total_value=snap.total_value + 1))
        self.assertFalse(ok)
        self.assertTrue(any("total_value" in r for r in reasons))


class SeriesValidationTests(unittest.TestCase):
    def test_engine_series_is_valid(self):
        points = build_series(_ledger(), [], _prices(), granularity="daily", end=date(2024, 2, 10)).points
        ok, reasons = validate_series(points)
        self.assertTrue(ok, reasons)

    def test_out_of_order_dates(self):
        points = build_series(_ledger(), [], _prices(), end=date(2024, 4, 10)).points
        ok, reasons = validate_series(list(reversed(points)))
        self.assertFalse(ok)
        self.assertTrue(any("ascending" in r for r in reasons))

    def test_empty_series_is_valid(self):
        self.assertEqual(validate_series([]), (True, []))


if __name__ == "__main__":
    unittest.main()
