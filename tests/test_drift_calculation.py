from __future__ import annotations

import math
import unittest

from advisor_logic.drift_calculation import AllocationInputError, calculate_drift

_TARGET = {"US Equity": 45, "Intl Equity": 15, "Fixed Income": 25, "Real Estate": 5, "Cash": 10}
_ACTUAL = {"US Equity": 51.1, "Intl Equity": 7.9, "Fixed Income": 19.7, "Real Estate": 0, "Cash": 21.3}


class DriftCalculationTests(unittest.TestCase):
    def test_drift_per_asset_class(self) -> None:
        report = calculate_drift(_TARGET, _ACTUAL)
        drift = {row.asset_class: row.drift for row in report.allocation}
        self.assertEqual(drift["US Equity"], 6.1)
        self.assertEqual(drift["Intl Equity"], -7.1)
        self.assertEqual(drift["Fixed Income"], -5.3)
        self.assertEqual(drift["Real Estate"], -5.0)
        self.assertEqual(drift["Cash"], 11.3)
        self.assertTrue(report.needs_rebalancing)
        self.assertIn("Consider rebalancing", report.recommendation)
        self.assertIn("US Equity +6.1", report.recommendation)

    def test_needs_rebalancing_iff_max_drift_exceeds_threshold(self) -> None:
        cases = [
            ({"A": 50, "B": 50}, {"A": 55, "B": 45}, False),
            ({"A": 50, "B": 50}, {"A": 55.01, "B": 44.99}, True),
            ({"A": 50, "B": 50}, {"A": 50, "B": 50}, False),
            ({"A": 100}, {"B": 100}, True),
        ]
        for target, actual, expected in cases:
            report = calculate_drift(target, actual)
            self.assertEqual(report.needs_rebalancing, expected, msg=(target, actual))
            self.assertEqual(report.needs_rebalancing, report.max_abs_drift > 5)

    def test_threshold_compares_unrounded_drift(self) -> None:
        report = calculate_drift({"A": 50, "B": 50}, {"A": 55.004, "B": 44.996})
        self.assertEqual(report.allocation[0].drift, 5.0)
        self.assertTrue(report.needs_rebalancing)
        self.assertIn("A +5.0", report.recommendation)

        at_threshold = calculate_drift({"A": 50}, {"A": 55})
        self.assertFalse(at_threshold.needs_rebalancing)

    def test_missing_classes_count_as_zero(self) -> None:
        report = calculate_drift({"US Equity": 60, "Cash": 40}, {"US Equity": 58, "Commodities": 42})
        rows = {row.asset_class: row for row in report.allocation}
        self.assertEqual([row.asset_class for row in report.allocation], ["US Equity", "Cash", "Commodities"])
        self.assertEqual(rows["Cash"].actual, 0.0)
        self.assertEqual(rows["Cash"].drift, -40.0)
        self.assertEqual(rows["Commodities"].target, 0.0)
        self.assertEqual(rows["Commodities"].drift, 42.0)

    def test_threshold_is_configurable(self) -> None:
        strict = calculate_drift(_TARGET, _ACTUAL, threshold=2.0)
        loose = calculate_drift(_TARGET, _ACTUAL, threshold=12.0)
        self.assertTrue(strict.needs_rebalancing)
        self.assertFalse(loose.needs_rebalancing)
        self.assertEqual(loose.threshold, 12.0)
        self.assertIn("within the 12% drift tolerance", loose.recommendation)

    def test_empty_maps(self) -> None:
        report = calculate_drift({}, {})
        self.assertEqual(report.allocation, ())
        self.assertFalse(report.needs_rebalancing)
        self.assertEqual(report.max_abs_drift, 0.0)

    def test_invalid_inputs_rejected(self) -> None:
        with self.assertRaises(AllocationInputError) as ctx:
            calculate_drift({"A": 120}, {})
        self.assertEqual(ctx.exception.error_code, "INVALID_ALLOCATION")
        with self.assertRaises(AllocationInputError):
            calculate_drift({"A": 10}, {"A": -1})
        with self.assertRaises(AllocationInputError):
            calculate_drift({"A": math.nan}, {})
        with self.assertRaises(AllocationInputError) as ctx:
            calculate_drift(_TARGET, _ACTUAL, threshold=0)
        self.assertEqual(ctx.exception.error_code, "INVALID_THRESHOLD")


if __name__ == "__main__":
    unittest.main()
