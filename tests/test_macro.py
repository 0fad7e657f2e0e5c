import unittest

from folio.pipeline.macro import (
    DEFAULT_INDICATORS,
    MacroDataPoint,
    MacroIndicator,
    apply_data_points,
    compute_macro_index,
    index_phase,
    normalize_indicator,
)


class NormalizeIndicatorTests(unittest.TestCase):
    def test_linear_within_range(self):
        self.assertAlmostEqual(normalize_indicator(2.5, 0, 10), 0.25)

    def test_low_is_crisis_inverts(self):
        self.assertAlmostEqual(normalize_indicator(2, 0, 10, "low_is_crisis"), 0.8)

    def test_clamped(self):
        self.assertEqual(normalize_indicator(15, 0, 10), 1.0)
        self.assertEqual(normalize_indicator(-5, 0, 10), 0.0)

    def test_zero_range_is_midpoint(self):
        self.assertEqual(normalize_indicator(3, 5, 5), 0.5)


class MacroIndexTests(unittest.TestCase):
    def test_weighted_average(self):
        indicators = (
            MacroIndicator("a", "A", 10, 0, 10, 3),
            MacroIndicator("b", "B", 0, 0, 10, 1),
        )
        result = compute_macro_index(indicators)
        self.assertAlmostEqual(result.value, 0.75)
        self.assertEqual(result.phase, "crisis")
        self.assertAlmostEqual(result.rows[0].weighted, 0.75)
        self.assertAlmostEqual(result.rows[1].normalized, 0.0)

    def test_zero_total_weight_is_neutral(self):
        result = compute_macro_index((MacroIndicator("a", "A", 10, 0, 10, 0),))
        self.assertEqual(result.value, 0.5)
        self.assertEqual(result.phase, "neutral")

    def test_defaults_stay_in_unit_interval(self):
        result = compute_macro_index()
        self.assertEqual(len(result.rows), len(DEFAULT_INDICATORS))
        self.assertTrue(0.0 <= result.value <= 1.0)

    def test_phase_thresholds(self):
        self.assertEqual(index_phase(0.61), "crisis")
        self.assertEqual(index_phase(0.60), "neutral")
        self.assertEqual(index_phase(0.40), "neutral")
        self.assertEqual(index_phase(0.39), "euphoria")

    def test_data_points_produce_a_new_set(self):
        updated = apply_data_points(DEFAULT_INDICATORS, [MacroDataPoint("6", 60.0, max_value=80.0)])
        vix = [i for i in updated if i.id == "6"][0]
        self.assertEqual(vix.current_value, 60.0)
        self.assertEqual(vix.max_value, 80.0)
        self.assertEqual(vix.min_value, 10)
        default_vix = [i for i in DEFAULT_INDICATORS if i.id == "6"][0]
        self.assertEqual(default_vix.current_value, 13)


if __name__ == "__main__":
    unittest.main()
