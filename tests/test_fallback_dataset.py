from __future__ import annotations

import dataclasses
import unittest

from advisor_logic.fallback_dataset import StaticClientRepository
from advisor_logic.models import Account, AllocationPolicy, ClientRecord, Holding


class StaticClientRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.repo = StaticClientRepository.default()

    def test_aum_is_sum_of_open_account_values(self) -> None:
        john = self.repo.find_client("client-001")
        self.assertIsNotNone(john)
        self.assertEqual(john.total_aum, 1250000)
        self.assertEqual(john.total_aum, sum(a.market_value for a in john.open_accounts))
        sarah = self.repo.find_client("Sarah Johnson")
        self.assertEqual(sarah.total_aum, 3500000)

    def test_account_values_reconcile_with_holdings(self) -> None:
        for client in self.repo.clients:
            for account in client.accounts:
                self.assertEqual(account.market_value, sum(h.market_value for h in account.holdings))
                self.assertEqual(account.unrealized_gain, account.market_value - account.cost_basis)

    def test_search_by_name_email_phone_and_account_number(self) -> None:
        self.assertEqual([m.id for m in self.repo.search_clients("smith")], ["client-001"])
        self.assertEqual([m.id for m in self.repo.search_clients("sarah.j@")], ["client-002"])
        self.assertEqual([m.id for m in self.repo.search_clients("(555) 234")], ["client-002"])
        self.assertEqual([m.id for m in self.repo.search_clients("4417-2094")], ["client-001"])

    def test_search_sorts_by_aum_and_respects_limit(self) -> None:
        matches = self.repo.search_clients("@email.com")
        self.assertEqual([m.id for m in matches][:2], ["client-002", "client-001"])
        self.assertEqual(len(self.repo.search_clients("@email.com", limit=1)), 1)

    def test_search_status_filter(self) -> None:
        self.assertEqual(self.repo.search_clients("Chen", status="active"), [])
        self.assertEqual([m.id for m in self.repo.search_clients("Chen", status="prospect")], ["client-003"])
        self.assertEqual([m.id for m in self.repo.search_clients("Miller", status="inactive")], ["client-004"])

    def test_closed_accounts_are_excluded(self) -> None:
        match = self.repo.search_clients("Miller")[0]
        self.assertEqual(match.account_count, 0)
        self.assertEqual(match.total_aum, 0)
        self.assertEqual(self.repo.search_clients("3391-0048"), [])
        self.assertIsNone(self.repo.get_account_holdings("acc-006"))

    def test_match_lists_at_most_three_accounts(self) -> None:
        match = self.repo.search_clients("Johnson")[0]
        self.assertEqual(match.account_count, 3)
        self.assertEqual(len(match.accounts), 3)
        self.assertEqual(match.total_aum, 3500000)

    def test_profile_top_holdings_come_from_largest_account(self) -> None:
        profile = self.repo.get_client_profile("john smith", top_holdings_limit=3)
        self.assertIsNotNone(profile)
        self.assertEqual([h.symbol for h in profile.top_holdings], ["SPY", "QQQ", "CASH"])
        self.assertIsNone(self.repo.get_client_profile("Jon Smyth"))

    def test_account_holdings_lookup(self) -> None:
        holdings = self.repo.get_account_holdings("acc-001")
        self.assertEqual(len(holdings), 6)
        self.assertEqual(sum(h.market_value for h in holdings), 450000)
        self.assertEqual(self.repo.get_account_holdings("4417-2093"), holdings)
        self.assertIsNone(self.repo.get_account_holdings("acc-999"))

    def test_client_holdings_span_open_accounts(self) -> None:
        holdings = self.repo.get_client_holdings("client-001")
        self.assertEqual(len(holdings), 11)
        self.assertEqual(sum(h.market_value for h in holdings), 1250000)

    def test_allocation_policy_lookup_by_id_or_name(self) -> None:
        policy = self.repo.get_allocation_policy("John Smith")
        self.assertEqual(policy.client_id, "client-001")
        self.assertEqual(sum(policy.target.values()), 100)
        self.assertEqual(self.repo.get_allocation_policy("client-002").rebalance_threshold, 7.5)
        self.assertIsNone(self.repo.get_allocation_policy("client-003"))

    def test_performance_lookup_by_id_or_name(self) -> None:
        record = self.repo.get_performance("Emily Chen")
        self.assertEqual(record.client_id, "client-003")
        self.assertEqual([p.period for p in record.periods][:3], ["MTD", "QTD", "YTD"])
        self.assertEqual(self.repo.get_performance("client-001").periods[2].portfolio_return, 18.5)
        self.assertIsNone(self.repo.get_performance("client-004"))
        self.assertIsNone(StaticClientRepository([]).get_performance("client-001"))

    def test_snapshot_is_immutable(self) -> None:
        john = self.repo.find_client("client-001")
        with self.assertRaises(dataclasses.FrozenInstanceError):
            john.first_name = "Jack"  # type: ignore[misc]
        with self.assertRaises(TypeError):
            self.repo.get_allocation_policy("client-001").target["Cash"] = 50  # type: ignore[index]
        self.assertIsInstance(self.repo.clients, tuple)

    def test_injected_snapshot(self) -> None:
        holding = Holding(symbol="X", name="X", quantity=1, cost_basis=1, market_value=2)
        account = Account(
            id="a-1",
            account_number="0001",
            name="Test",
            account_type="IRA",
            custodian="Test",
            market_value=2,
            cost_basis=1,
            holdings=(holding,),
        )
        repo = StaticClientRepository(
            [ClientRecord(id="c-1", first_name="Ada", last_name="Lovelace", accounts=(account,))],
            [AllocationPolicy(client_id="c-1", target={"US Equity": 100.0})],
        )
        self.assertEqual([m.name for m in repo.search_clients("lovelace")], ["Ada Lovelace"])
        self.assertEqual(repo.search_clients("smith"), [])
        self.assertIsNotNone(repo.get_allocation_policy("Ada Lovelace"))


if __name__ == "__main__":
    unittest.main()
