"""Read-only records shared by the resolver, the aggregator and the tool surface."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


class Source(str, Enum):
    DATABASE = "database"
    MOCK = "mock"


@dataclass(frozen=True)
class Holding:
    symbol: str
    name: str
    quantity: float
    cost_basis: float
    market_value: float
    asset_class: Optional[str] = None
    sector: Optional[str] = None

    @property
    def unrealized_gain(self) -> float:
        return self.market_value - self.cost_basis


@dataclass(frozen=True)
class Account:
    id: str
    account_number: str
    name: str
    account_type: str
    custodian: str
    market_value: float
    cost_basis: float
    is_closed: bool = False
    holdings: tuple[Holding, ...] = ()
    inception_date: Optional[str] = None
    is_billable: bool = True
    is_discretionary: bool = False

    @property
    def unrealized_gain(self) -> float:
        return self.market_value - self.cost_basis


@dataclass(frozen=True)
class AccountSummary:
    id: str
    account_number: str
    name: str
    account_type: str
    value: float
    custodian: str


@dataclass(frozen=True)
class ClientRecord:
    id: str
    first_name: str
    last_name: str
    status: str = "active"
    email: Optional[str] = None
    phone: Optional[str] = None
    risk_tolerance: Optional[str] = None
    accounts: tuple[Account, ...] = ()
    onboarding_date: Optional[str] = None
    last_contact_date: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def open_accounts(self) -> tuple[Account, ...]:
        return tuple(account for account in self.accounts if not account.is_closed)

    @property
    def total_aum(self) -> float:
        return sum(account.market_value for account in self.open_accounts)

    @property
    def total_cost_basis(self) -> float:
        return sum(account.cost_basis for account in self.open_accounts)

    @property
    def unrealized_gain(self) -> float:
        return self.total_aum - self.total_cost_basis


@dataclass(frozen=True)
class ClientMatch:
    """One ranked candidate returned by a client search."""

    id: str
    name: str
    first_name: str
    last_name: str
    status: str
    total_aum: float
    account_count: int
    accounts: tuple[AccountSummary, ...] = ()
    email: Optional[str] = None
    phone: Optional[str] = None
    risk_tolerance: Optional[str] = None
    last_contact_date: Optional[str] = None


@dataclass(frozen=True)
class ClientProfile:
    client: ClientRecord
    top_holdings: tuple[Holding, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AllocationPolicy:
    client_id: str
    target: Mapping[str, float]
    rebalance_threshold: Optional[float] = None


@dataclass(frozen=True)
class PeriodReturn:
    """Portfolio and benchmark return, in percent, over one reporting period."""

    period: str
    portfolio_return: float
    benchmark_return: float


@dataclass(frozen=True)
class PerformanceRecord:
    client_id: str
    periods: tuple[PeriodReturn, ...]


def summarize_account(account: Account) -> AccountSummary:
    return AccountSummary(
        id=account.id,
        account_number=account.account_number,
        name=account.name,
        account_type=account.account_type,
        value=account.market_value,
        custodian=account.custodian,
    )
