"""Immutable client/account/holding snapshot used when the clients database is unavailable."""
from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .models import (
    Account,
    AllocationPolicy,
    ClientMatch,
    ClientProfile,
    ClientRecord,
    Holding,
    PerformanceRecord,
    PeriodReturn,
    summarize_account,
)

_MAX_ACCOUNT_SUMMARIES = 3


def _holding(
    symbol: str,
    name: str,
    quantity: float,
    cost_basis: float,
    market_value: float,
    asset_class: str,
    sector: str,
) -> Holding:
    return Holding(
        symbol=symbol,
        name=name,
        quantity=quantity,
        cost_basis=cost_basis,
        market_value=market_value,
        asset_class=asset_class,
        sector=sector,
    )


def _account(
    account_id: str,
    account_number: str,
    name: str,
    account_type: str,
    custodian: str,
    holdings: Iterable[Holding],
    *,
    inception_date: Optional[str] = None,
    is_closed: bool = False,
    is_discretionary: bool = True,
) -> Account:
    rows = tuple(holdings)
    return Account(
        id=account_id,
        account_number=account_number,
        name=name,
        account_type=account_type,
        custodian=custodian,
        market_value=sum(h.market_value for h in rows),
        cost_basis=sum(h.cost_basis for h in rows),
        is_closed=is_closed,
        holdings=rows,
        inception_date=inception_date,
        is_discretionary=is_discretionary,
    )


def _default_clients() -> tuple[ClientRecord, ...]:
    john_ira = _account(
        "acc-001",
        "4417-2093",
        "John Smith IRA",
        "IRA",
        "Schwab",
        [
            _holding("VTI", "Vanguard Total Stock Market ETF", 500, 85000, 125000, "US Equity", "Diversified"),
            _holding(
                "VXUS", "Vanguard Total International Stock ETF", 600, 28000, 35400,
                "International Equity", "Diversified",
            ),
            _holding("BND", "Vanguard Total Bond Market ETF", 1200, 90000, 88800, "Fixed Income", "Bonds"),
            _holding("AAPL", "Apple Inc.", 200, 25000, 42000, "US Equity", "Technology"),
            _holding("MSFT", "Microsoft Corporation", 150, 30000, 63000, "US Equity", "Technology"),
            _holding("CASH", "Money Market", 1, 95800, 95800, "Cash", "Cash"),
        ],
        inception_date="2019-03-15",
    )
    john_brokerage = _account(
        "acc-002",
        "4417-2094",
        "John Smith Brokerage",
        "Brokerage",
        "Schwab",
        [
            _holding("SPY", "SPDR S&P 500 ETF", 800, 320000, 480000, "US Equity", "Large Cap"),
            _holding("QQQ", "Invesco QQQ Trust", 300, 90000, 156000, "US Equity", "Technology"),
            _holding("VNQ", "Vanguard Real Estate ETF", 500, 42000, 44000, "Real Estate", "REITs"),
            _holding("GLD", "SPDR Gold Shares", 200, 35000, 48000, "Commodities", "Precious Metals"),
            _holding("CASH", "Money Market", 1, 72000, 72000, "Cash", "Cash"),
        ],
        inception_date="2019-04-02",
    )
    sarah_401k = _account(
        "acc-003",
        "7720-5512",
        "Sarah Johnson 401k",
        "401k",
        "Fidelity",
        [
            _holding("VFIAX", "Vanguard 500 Index Admiral", 1500, 400000, 720000, "US Equity", "Large Cap"),
            _holding(
                "VBTLX", "Vanguard Total Bond Market Index Admiral", 3000, 280000, 300000,
                "Fixed Income", "Bonds",
            ),
            _holding(
                "VTIAX", "Vanguard Total International Stock Index Admiral", 2000, 150000, 180000,
                "International Equity", "Diversified",
            ),
        ],
        inception_date="2017-08-22",
        is_discretionary=False,
    )
    sarah_roth = _account(
        "acc-004",
        "7720-5513",
        "Sarah Johnson Roth IRA",
        "Roth IRA",
        "Fidelity",
        [
            _holding("VGT", "Vanguard Information Technology ETF", 600, 210000, 320000, "US Equity", "Technology"),
            _holding("VIG", "Vanguard Dividend Appreciation ETF", 1300, 180000, 240000, "US Equity", "Dividend Growth"),
            _holding("VEA", "Vanguard FTSE Developed Markets ETF", 3200, 150000, 160000, "International Equity", "Diversified"),
            _holding("CASH", "Money Market", 1, 80000, 80000, "Cash", "Cash"),
        ],
        inception_date="2018-01-10",
    )
    sarah_trust = _account(
        "acc-005",
        "7720-5590",
        "Johnson Family Trust",
        "Trust",
        "Northern Trust",
        [
            _holding("MUB", "iShares National Muni Bond ETF", 5600, 615000, 600000, "Fixed Income", "Municipal Bonds"),
            _holding("VOO", "Vanguard S&P 500 ETF", 1100, 380000, 550000, "US Equity", "Large Cap"),
            _holding("VNQ", "Vanguard Real Estate ETF", 2300, 185000, 200000, "Real Estate", "REITs"),
            _holding("CASH", "Money Market", 1, 150000, 150000, "Cash", "Cash"),
        ],
        inception_date="2020-06-30",
    )
    david_closed = _account(
        "acc-006",
        "3391-0048",
        "David Miller Brokerage",
        "Brokerage",
        "Pershing",
        [_holding("IVV", "iShares Core S&P 500 ETF", 180, 60000, 95000, "US Equity", "Large Cap")],
        inception_date="2015-09-01",
        is_closed=True,
    )

    return (
        ClientRecord(
            id="client-001",
            first_name="John",
            last_name="Smith",
            status="active",
            email="john.smith@email.com",
            phone="(555) 123-4567",
            risk_tolerance="moderate",
            accounts=(john_ira, john_brokerage),
            onboarding_date="2019-03-15",
            last_contact_date="2024-12-15",
        ),
        ClientRecord(
            id="client-002",
            first_name="Sarah",
            last_name="Johnson",
            status="active",
            email="sarah.j@email.com",
            phone="(555) 234-5678",
            risk_tolerance="aggressive",
            accounts=(sarah_401k, sarah_roth, sarah_trust),
            onboarding_date="2017-08-22",
            last_contact_date="2024-12-20",
        ),
        ClientRecord(
            id="client-003",
            first_name="Emily",
            last_name="Chen",
            status="prospect",
            email="emily.chen@email.com",
            phone="(555) 345-6789",
            risk_tolerance="moderately-aggressive",
            last_contact_date="2024-11-04",
        ),
        ClientRecord(
            id="client-004",
            first_name="David",
            last_name="Miller",
            status="inactive",
            email="dmiller@email.com",
            phone="(555) 456-7890",
            risk_tolerance="conservative",
            accounts=(david_closed,),
            onboarding_date="2015-09-01",
            last_contact_date="2022-05-18",
        ),
    )


def _default_policies() -> tuple[AllocationPolicy, ...]:
    return (
        AllocationPolicy(
            client_id="client-001",
            target=MappingProxyType(
                {
                    "US Equity": 45.0,
                    "International Equity": 15.0,
                    "Fixed Income": 25.0,
                    "Real Estate": 5.0,
                    "Cash": 10.0,
                }
            ),
        ),
        AllocationPolicy(
            client_id="client-002",
            target=MappingProxyType(
                {
                    "US Equity": 60.0,
                    "International Equity": 20.0,
                    "Fixed Income": 15.0,
                    "Cash": 5.0,
                }
            ),
            rebalance_threshold=7.5,
        ),
    )


def _returns(rows: Iterable[tuple[str, float, float]]) -> tuple[PeriodReturn, ...]:
    return tuple(PeriodReturn(period, portfolio, benchmark) for period, portfolio, benchmark in rows)


def _default_performance() -> tuple[PerformanceRecord, ...]:
    return (
        PerformanceRecord(
            client_id="client-001",
            periods=_returns(
                [
                    ("MTD", 2.3, 2.1),
                    ("QTD", 5.8, 5.2),
                    ("YTD", 18.5, 16.8),
                    ("1Y", 22.3, 20.1),
                    ("3Y", 8.2, 7.5),
                    ("5Y", 10.5, 9.8),
                    ("ITD", 45.2, 42.1),
                ]
            ),
        ),
        PerformanceRecord(
            client_id="client-002",
            periods=_returns(
                [
                    ("MTD", 3.1, 2.1),
                    ("QTD", 7.2, 5.2),
                    ("YTD", 24.5, 16.8),
                    ("1Y", 28.1, 20.1),
                    ("3Y", 12.5, 7.5),
                    ("5Y", 14.2, 9.8),
                    ("ITD", 85.3, 62.4),
                ]
            ),
        ),
        PerformanceRecord(
            client_id="client-003",
            periods=_returns(
                [
                    ("MTD", 1.2, 2.1),
                    ("QTD", 3.5, 5.2),
                    ("YTD", 10.2, 16.8),
                    ("1Y", 12.5, 20.1),
                    ("3Y", 5.8, 7.5),
                    ("5Y", 6.2, 9.8),
                    ("ITD", 18.5, 25.2),
                ]
            ),
        ),
    )


def _matches_query(client: ClientRecord, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return False
    fields = [client.first_name, client.last_name, client.full_name, client.email or ""]
    fields.extend(account.account_number for account in client.open_accounts)
    if any(needle in value.lower() for value in fields):
        return True
    return bool(client.phone) and query.strip() in client.phone


def to_client_match(client: ClientRecord) -> ClientMatch:
    open_accounts = client.open_accounts
    return ClientMatch(
        id=client.id,
        name=client.full_name,
        first_name=client.first_name,
        last_name=client.last_name,
        status=client.status,
        total_aum=client.total_aum,
        account_count=len(open_accounts),
        accounts=tuple(summarize_account(a) for a in open_accounts[:_MAX_ACCOUNT_SUMMARIES]),
        email=client.email,
        phone=client.phone,
        risk_tolerance=client.risk_tolerance,
        last_contact_date=client.last_contact_date,
    )


class StaticClientRepository:
    """Read-only lookups over a fixed client snapshot.

    The snapshot is handed in at construction, so tests and alternate
    deployments can substitute their own clients without touching globals.
    """

    def __init__(
        self,
        clients: Iterable[ClientRecord],
        policies: Iterable[AllocationPolicy] = (),
        performance: Iterable[PerformanceRecord] = (),
    ) -> None:
        self._clients: tuple[ClientRecord, ...] = tuple(clients)
        self._policies: Mapping[str, AllocationPolicy] = MappingProxyType(
            {policy.client_id: policy for policy in policies}
        )
        self._performance: Mapping[str, PerformanceRecord] = MappingProxyType(
            {record.client_id: record for record in performance}
        )

    @classmethod
    def default(cls) -> "StaticClientRepository":
        return cls(_default_clients(), _default_policies(), _default_performance())

    @property
    def clients(self) -> tuple[ClientRecord, ...]:
        return self._clients

    def search_clients(self, query: str, status: str = "all", limit: int = 10) -> list[ClientMatch]:
        matched = [
            client
            for client in self._clients
            if _matches_query(client, query) and (status == "all" or client.status == status)
        ]
        matched.sort(key=lambda c: c.total_aum, reverse=True)
        return [to_client_match(client) for client in matched[: max(0, limit)]]

    def find_client(self, client_ref: str) -> Optional[ClientRecord]:
        ref = client_ref.strip().lower()
        if not ref:
            return None
        for client in self._clients:
            if client.id.lower() == ref or client.full_name.lower() == ref:
                return client
        return None

    def get_client_profile(self, client_ref: str, top_holdings_limit: int = 10) -> Optional[ClientProfile]:
        client = self.find_client(client_ref)
        if client is None:
            return None
        accounts = sorted(client.open_accounts, key=lambda a: a.market_value, reverse=True)
        top: tuple[Holding, ...] = ()
        if accounts:
            ranked = sorted(accounts[0].holdings, key=lambda h: h.market_value, reverse=True)
            top = tuple(ranked[:top_holdings_limit])
        return ClientProfile(client=client, top_holdings=top)

    def get_account_holdings(self, account_id: str) -> Optional[tuple[Holding, ...]]:
        ref = account_id.strip().lower()
        for client in self._clients:
            for account in client.open_accounts:
                if account.id.lower() == ref or account.account_number.lower() == ref:
                    return tuple(sorted(account.holdings, key=lambda h: h.market_value, reverse=True))
        return None

    def get_client_holdings(self, client_ref: str) -> Optional[tuple[Holding, ...]]:
        client = self.find_client(client_ref)
        if client is None:
            return None
        holdings = [holding for account in client.open_accounts for holding in account.holdings]
        return tuple(sorted(holdings, key=lambda h: h.market_value, reverse=True))

    def _client_key(self, client_ref: str) -> str:
        client = self.find_client(client_ref)
        return client.id if client is not None else client_ref.strip()

    def get_allocation_policy(self, client_ref: str) -> Optional[AllocationPolicy]:
        return self._policies.get(self._client_key(client_ref))

    def get_performance(self, client_ref: str) -> Optional[PerformanceRecord]:
        return self._performance.get(self._client_key(client_ref))
