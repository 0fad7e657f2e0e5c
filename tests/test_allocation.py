import unittest

from folio.models import AssetClass, AssetType, Instrument, PortfolioSnapshot, Position
from folio.pipeline.allocation import (
    allocation_by_asset_class,
    infer_asset_class,
    region_exposure,
    region_from_isin,
)


def _snapshot(values: dict) -> PortfolioSnapshot:
    total = sum(values.values())
    positions = [
        Position(t, t, None, None, "CHF", 1.0, v, v, 0.0, v / total * 100)
        for t, v in values.items()
    ]
    return PortfolioSnapshot(positions, total, total, 0.0, 0.0)


class InferAssetClassTests(unittest.TestCase):
    def test_explicit_class_wins(self):
        inst = Instrument("A", "Some Bond ETF", AssetType.ETF, asset_class=AssetClass.STOCK)
        self.assertEqual(infer_asset_class(inst), AssetClass.STOCK)

    def test_crypto(self):
        self.assertEqual(infer_asset_class(Instrument("BTC-USD", "Bitcoin")), AssetClass.CRYPTO)
        self.assertEqual(infer_asset_class(Instrument("SOL", "Solana", AssetType.CRYPTO)), AssetClass.CRYPTO)

    def test_commodity_products(self):
        inst = Instrument("PHAU", "iShares Physical Gold ETC", AssetType.ETF)
        self.assertEqual(infer_asset_class(inst), AssetClass.ETC)

    def test_etf_split(self):
        bond = Instrument("BND", "Vanguard Total Bond Market ETF", AssetType.ETF)
        equity = Instrument("VWRL", "Vanguard FTSE All-World UCITS ETF", AssetType.ETF)
        self.assertEqual(infer_asset_class(bond), AssetClass.ETF_BOND)
        self.assertEqual(infer_asset_class(equity), AssetClass.ETF_STOCK)

    def test_by_asset_type(self):
        self.assertEqual(infer_asset_class(Instrument("NESN", "Nestle", AssetType.STOCK)), AssetClass.STOCK)
        self.assertEqual(infer_asset_class(Instrument("T10", "Treasury 2034", AssetType.BOND)), AssetClass.BOND)
        self.assertEqual(infer_asset_class(Instrument("X", "Mystery")), AssetClass.OTHER)


    def test_loose_enum_strings(self):
        self.assertEqual(infer_asset_class(Instrument("A", "Alpha", "stock", asset_class="etf_bond")), AssetClass.ETF_BOND)
        self.assertEqual(infer_asset_class(Instrument("A", "Alpha", "stock", asset_class="equity")), AssetClass.STOCK)
        self.assertEqual(infer_asset_class(Instrument("A", "Alpha", "warrant")), AssetClass.OTHER)


class AllocationTests(unittest.TestCase):
    def test_minor_classes_fold_into_other(self):
        instruments = [
            Instrument("A", "Alpha", AssetType.STOCK),
            Instrument("B", "Bitcoin", AssetType.CRYPTO),
            Instrument("G", "Gold ETC", AssetType.COMMODITY),
        ]
        rows = allocation_by_asset_class(_snapshot({"A": 90.0, "B": 9.0, "G": 1.0}), instruments)
        self.assertEqual([r["key"] for r in rows], [AssetClass.STOCK, AssetClass.CRYPTO, AssetClass.OTHER])
        self.assertAlmostEqual(rows[0]["pct"], 90.0)
        self.assertAlmostEqual(rows[-1]["value"], 1.0)
        self.assertEqual(rows[0]["label"], "Stocks")

    def test_empty_snapshot(self):
        self.assertEqual(allocation_by_asset_class(PortfolioSnapshot([], 0.0, 0.0, 0.0, 0.0), []), [])


class RegionTests(unittest.TestCase):
    def test_region_from_isin(self):
        self.assertEqual(region_from_isin("CH0038863350"), "CH")
        self.assertEqual(region_from_isin("IE00B3RBWM25"), "EU")
        self.assertEqual(region_from_isin("US0378331005"), "NA")
        self.assertIsNone(region_from_isin("XX123"))
        self.assertIsNone(region_from_isin(None))

    def test_explicit_split_then_isin_then_unassigned(self):
        instruments = [
            Instrument("A", region_allocation={"NA": 60.0, "EU": 40.0}),
            Instrument("B", isin="CH0038863350"),
            Instrument("C"),
        ]
        rows = region_exposure(_snapshot({"A": 100.0, "B": 50.0, "C": 50.0}), instruments)
        by_region = {r["region"]: r for r in rows}
        self.assertAlmostEqual(by_region["NA"]["value"], 60.0)
        self.assertAlmostEqual(by_region["EU"]["value"], 40.0)
        self.assertAlmostEqual(by_region["CH"]["pct"], 25.0)
        self.assertAlmostEqual(by_region["UNASSIGNED"]["value"], 50.0)
        self.assertEqual(rows[0]["region"], "NA")
        self.assertEqual(by_region["CH"]["label"], "Switzerland")


if __name__ == "__main__":
    unittest.main()
