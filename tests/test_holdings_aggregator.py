from __future__ import annotations

import unittest

from advisor_logic.fallback_dataset import StaticClientRepository
from advisor_logic.holdings_aggregator import (
    UNCLASSIFIED_LABEL,
    aggregate_holdings,
    apportion_weights,
    derive_allocation,
    gain_percent,
    weights_within_tolerance,
)
from advisor_logic.models import Holding


def _holding(symbol: str, value: float, cost: float, asset_class: str | None = "US Equity", sector: str | None = "Tech") -> Holding:
    return Holding(
        symbol=symbol,
        name=symbol,
        quantity=1,
        cost_basis=cost,
        market_value=value,
        asset_class=asset_class,
        sector=sector,
    )


def _ira_holdings() -> list[Holding]:
    values = [125000, 35400, 88800, 42000, 63000, 95800]
    costs = [85000, 28000, 90000, 25000, 30000, 95800]
    classes = ["US Equity", "International Equity", "Fixed Income", "US Equity", "US Equity", "Cash"]
    sectors = ["Diversified", "Diversified", "Bonds", "Technology", "Technology", "Cash"]
    return [
        _holding(f"H{i}", value, cost, asset_class, sector)
        for i, (value, cost, asset_class, sector) in enumerate(zip(values, costs, classes, sectors))
    ]


class HoldingsAggregatorTests(unittest.TestCase):
    def test_account_summary_reconciles(self) -> None:
        result = aggregate_holdings(_ira_holdings())
        summary = result.summary
        self.assertEqual(summary.total_market_value, 450000)
        self.assertEqual(summary.total_cost_basis, 353800)
        self.assertEqual(summary.total_unrealized_gain, 96200)
        self.assertAlmostEqual(summary.total_unrealized_gain_percent, 27.19, places=2)
        self.assertEqual(summary.position_count, 6)

    def test_holding_lines_carry_gain_and_weight(self) -> None:
        result = aggregate_holdings(_ira_holdings())
        self.assertEqual(len(result.lines), 6)
        self.assertEqual(result.groups, ())
        for line in result.lines:
            self.assertEqual(line.unrealized_gain, line.holding.market_value - line.holding.cost_basis)
        self.assertAlmostEqual(result.lines[0].weight, 27.78, places=2)
        self.assertAlmostEqual(result.lines[0].unrealized_gain_percent, 47.06, places=2)

    def test_weights_sum_to_one_hundred_for_every_fallback_account(self) -> None:
        repo = StaticClientRepository.default()
        for client in repo.clients:
            for account in client.open_accounts:
                result = aggregate_holdings(account.holdings)
                total = sum(line.weight for line in result.lines)
                self.assertAlmostEqual(total, 100.0, delta=0.1, msg=account.id)

    def test_group_by_asset_class_buckets(self) -> None:
        holdings = [
            _holding("A", 100, 80, "US Equity"),
            _holding("B", 200, 150, "US Equity"),
            _holding("C", 700, 700, "Cash"),
        ]
        result = aggregate_holdings(holdings, "assetClass")
        groups = {group.label: group for group in result.groups}
        self.assertEqual(groups["US Equity"].total_value, 300)
        self.assertEqual(groups["US Equity"].weight, 30.0)
        self.assertEqual(groups["US Equity"].unrealized_gain, 70)
        self.assertEqual(groups["US Equity"].position_count, 2)
        self.assertEqual(groups["Cash"].total_value, 700)
        self.assertEqual(groups["Cash"].weight, 70.0)
        self.assertEqual(result.lines, ())

    def test_grouping_is_a_partition(self) -> None:
        holdings = _ira_holdings()
        by_class = aggregate_holdings(holdings, "assetClass")
        by_sector = aggregate_holdings(holdings, "sector")
        self.assertEqual(sum(g.total_value for g in by_class.groups), 450000)
        self.assertEqual(sum(g.total_value for g in by_sector.groups), 450000)
        self.assertEqual(by_class.summary.total_market_value, by_sector.summary.total_market_value)
        for group in by_class.groups + by_sector.groups:
            self.assertEqual(group.unrealized_gain, group.total_value - group.total_cost)

    def test_missing_labels_form_their_own_bucket(self) -> None:
        holdings = [
            _holding("A", 100, 100, asset_class=None, sector=None),
            _holding("B", 300, 100, asset_class="  ", sector="Energy"),
            _holding("C", 600, 500, asset_class="Fixed Income", sector="Bonds"),
        ]
        result = aggregate_holdings(holdings, "assetClass")
        groups = {group.label: group for group in result.groups}
        self.assertEqual(groups[UNCLASSIFIED_LABEL].total_value, 400)
        self.assertEqual(groups[UNCLASSIFIED_LABEL].position_count, 2)
        self.assertEqual(sum(g.total_value for g in result.groups), 1000)

    def test_zero_cost_basis_holding_reports_not_applicable(self) -> None:
        result = aggregate_holdings([_holding("GIFT", 500, 0)])
        self.assertIsNone(result.lines[0].unrealized_gain_percent)
        self.assertIsNone(result.summary.total_unrealized_gain_percent)
        self.assertEqual(result.lines[0].unrealized_gain, 500)
        self.assertEqual(result.lines[0].weight, 100.0)

    def test_zero_total_value_reports_no_weights(self) -> None:
        result = aggregate_holdings([_holding("WORTHLESS", 0, 250)])
        self.assertIsNone(result.lines[0].weight)
        self.assertEqual(result.summary.total_unrealized_gain, -250)
        self.assertEqual(result.summary.total_unrealized_gain_percent, -100.0)

    def test_empty_holdings(self) -> None:
        result = aggregate_holdings([], "sector")
        self.assertEqual(result.summary.position_count, 0)
        self.assertIsNone(result.summary.total_unrealized_gain_percent)
        self.assertEqual(result.groups, ())

    def test_unknown_group_by_rejected(self) -> None:
        with self.assertRaises(ValueError):
            aggregate_holdings(_ira_holdings(), "custodian")

    def test_repeated_calls_are_identical(self) -> None:
        holdings = _ira_holdings()
        self.assertEqual(aggregate_holdings(holdings, "sector"), aggregate_holdings(holdings, "sector"))

    def test_derive_allocation_matches_grouped_weights(self) -> None:
        allocation = derive_allocation(_ira_holdings())
        self.assertAlmostEqual(allocation["US Equity"], 51.11, places=2)
        self.assertAlmostEqual(allocation["Cash"], 21.29, places=2)
        self.assertAlmostEqual(sum(allocation.values()), 100.0, delta=0.1)
        self.assertEqual(derive_allocation([]), {})

    def test_many_position_weights_still_sum_to_one_hundred(self) -> None:
        holdings = [_holding(f"P{i:02d}", 2.4949, 2.0) for i in range(39)]
        holdings.append(_holding("REST", round(100 - 39 * 2.4949, 4), 1.0))
        result = aggregate_holdings(holdings)
        weights = [line.weight for line in result.lines]
        self.assertAlmostEqual(sum(weights), 100.0, places=6)
        self.assertEqual(set(weights[:39]), {2.49, 2.5})

    def test_apportioned_weights_break_ties_by_position(self) -> None:
        self.assertEqual(apportion_weights([1, 1, 1]), [33.34, 33.33, 33.33])
        self.assertEqual(apportion_weights([0, 0]), [None, None])
        self.assertEqual(apportion_weights([]), [])

    def test_helpers(self) -> None:
        self.assertIsNone(gain_percent(10, 0))
        self.assertEqual(gain_percent(110, 100), 10.0)
        self.assertTrue(weights_within_tolerance([33.33, 33.33, 33.34], 0.1))
        self.assertFalse(weights_within_tolerance([50.0, 49.5], 0.1))
        self.assertTrue(weights_within_tolerance([None], 0.1))


if __name__ == "__main__":
    unittest.main()
