"""Named advisor data tools: input schemas, descriptions and JSON-ready result envelopes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .client_resolver import ClientResolver
from .config import AdvisorConfig, load_config
from .data_source import get_data_source
from .drift_calculation import AllocationInputError, DriftReport, calculate_drift
from .fallback_dataset import StaticClientRepository
from .holdings_aggregator import (
    HoldingGroup,
    HoldingLine,
    aggregate_holdings,
    derive_allocation,
    gain_percent,
)
from .models import Account, AccountSummary, ClientMatch, ClientProfile, Holding
from .performance import PeriodComparison, compare_to_benchmark

logger = logging.getLogger(__name__)

_MAX_SEARCH_LIMIT = 100


class _TextInput(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class ResolveClientsInput(_TextInput):
    query: str = Field(
        min_length=1,
        description="Search query - can be client name, email, phone, or account number",
    )
    status: Literal["all", "active", "prospect", "inactive"] = Field(
        default="all", description="Filter by client status"
    )
    limit: int = Field(default=10, ge=1, le=_MAX_SEARCH_LIMIT, description="Maximum number of results to return")


class ClientProfileInput(_TextInput):
    clientId: str = Field(min_length=1, description="The client name or unique client ID")


class AggregateHoldingsInput(_TextInput):
    accountId: str = Field(min_length=1, description="The account ID to get holdings for (e.g., acc-001)")
    groupBy: Literal["none", "assetClass", "sector"] = Field(
        default="none", description="How to group the holdings"
    )


class AllocationDriftInput(_TextInput):
    clientId: str = Field(min_length=1, description="The client ID or full name")


class PortfolioPerformanceInput(_TextInput):
    clientId: str = Field(min_length=1, description="The client ID or full name")
    benchmark: str = Field(default="S&P 500", min_length=1, description="Benchmark to compare against")


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: type[BaseModel]
    handler: str


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="resolveClients",
        description=(
            "Search for clients by name, email, phone number, or account number. Returns matching "
            "clients with basic profile information and total assets."
        ),
        input_model=ResolveClientsInput,
        handler="_resolve_clients",
    ),
    ToolSpec(
        name="getClientProfile",
        description=(
            "Get detailed profile information for a specific client by their name or ID. Includes "
            "contact info, accounts, top holdings, and unrealized gain/loss."
        ),
        input_model=ClientProfileInput,
        handler="_get_client_profile",
    ),
    ToolSpec(
        name="aggregateHoldings",
        description=(
            "Get current portfolio holdings for a client account. Shows positions, values, allocation "
            "weights, and unrealized gains/losses, optionally grouped by asset class or sector."
        ),
        input_model=AggregateHoldingsInput,
        handler="_aggregate_holdings",
    ),
    ToolSpec(
        name="computeAllocationDrift",
        description=(
            "Get the current asset allocation for a client across all their open accounts. Shows "
            "target vs actual allocation, drift per asset class, and whether rebalancing is needed."
        ),
        input_model=AllocationDriftInput,
        handler="_compute_allocation_drift",
    ),
    ToolSpec(
        name="getPortfolioPerformance",
        description=(
            "Get portfolio performance metrics for a client. Shows returns across different time periods "
            "compared to a benchmark, with excess return per period and a year-to-date summary."
        ),
        input_model=PortfolioPerformanceInput,
        handler="_get_portfolio_performance",
    ),
)

_SPECS_BY_NAME = {spec.name: spec for spec in TOOL_SPECS}


def _today() -> date:
    return date.today()


def _success(**fields: Any) -> dict[str, Any]:
    return {"success": True, **fields}


def _failure(error_code: str, message: str, **fields: Any) -> dict[str, Any]:
    return {"success": False, "errorCode": error_code, "error": message, **fields}


def list_tools() -> list[dict[str, Any]]:
    return [
        {
            "name": spec.name,
            "description": spec.description,
            "inputSchema": spec.input_model.model_json_schema(),
        }
        for spec in TOOL_SPECS
    ]


def _account_summary_payload(account: AccountSummary) -> dict[str, Any]:
    return {
        "id": account.id,
        "accountNumber": account.account_number,
        "name": account.name,
        "type": account.account_type,
        "value": account.value,
        "custodian": account.custodian,
    }


def _match_payload(match: ClientMatch) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": match.id,
        "name": match.name,
        "firstName": match.first_name,
        "lastName": match.last_name,
        "status": match.status,
        "totalAUM": match.total_aum,
        "accountCount": match.account_count,
        "accounts": [_account_summary_payload(a) for a in match.accounts],
    }
    if match.email is not None:
        payload["email"] = match.email
    if match.phone is not None:
        payload["phone"] = match.phone
    if match.risk_tolerance is not None:
        payload["riskTolerance"] = match.risk_tolerance
    if match.last_contact_date is not None:
        payload["lastContact"] = match.last_contact_date
    return payload


def _account_payload(account: Account) -> dict[str, Any]:
    return {
        "id": account.id,
        "accountNumber": account.account_number,
        "name": account.name,
        "type": account.account_type,
        "value": account.market_value,
        "costBasis": account.cost_basis,
        "unrealizedGL": account.unrealized_gain,
        "custodian": account.custodian,
        "inceptionDate": account.inception_date,
        "isBillable": account.is_billable,
        "isDiscretionary": account.is_discretionary,
    }


def _holding_payload(holding: Holding) -> dict[str, Any]:
    return {
        "symbol": holding.symbol,
        "name": holding.name,
        "quantity": holding.quantity,
        "costBasis": holding.cost_basis,
        "marketValue": holding.market_value,
        "assetClass": holding.asset_class,
        "sector": holding.sector,
    }


def _line_payload(line: HoldingLine) -> dict[str, Any]:
    payload = _holding_payload(line.holding)
    payload.update(
        {
            "weight": line.weight,
            "unrealizedGain": line.unrealized_gain,
            "unrealizedGainPercent": line.unrealized_gain_percent,
        }
    )
    return payload


def _group_payload(group: HoldingGroup) -> dict[str, Any]:
    return {
        "holdings": [_holding_payload(h) for h in group.holdings],
        "totalValue": group.total_value,
        "totalCost": group.total_cost,
        "unrealizedGain": group.unrealized_gain,
        "weight": group.weight,
        "positionCount": group.position_count,
    }


def _profile_payload(profile: ClientProfile) -> dict[str, Any]:
    client = profile.client
    accounts = sorted(client.open_accounts, key=lambda a: a.market_value, reverse=True)
    return {
        "id": client.id,
        "name": client.full_name,
        "firstName": client.first_name,
        "lastName": client.last_name,
        "status": client.status,
        "email": client.email,
        "phone": client.phone,
        "riskTolerance": client.risk_tolerance,
        "onboardingDate": client.onboarding_date,
        "lastContactDate": client.last_contact_date,
        "totalAUM": client.total_aum,
        "totalCostBasis": client.total_cost_basis,
        "unrealizedGainLoss": client.unrealized_gain,
        "unrealizedGainLossPercent": gain_percent(client.total_aum, client.total_cost_basis),
        "accounts": [_account_payload(a) for a in accounts],
        "topHoldings": [
            {
                "ticker": h.symbol,
                "name": h.name,
                "assetClass": h.asset_class,
                "sector": h.sector,
                "units": h.quantity,
                "value": h.market_value,
                "costBasis": h.cost_basis,
                "unrealizedGL": h.unrealized_gain,
            }
            for h in profile.top_holdings
        ],
    }


def _drift_payload(report: DriftReport) -> list[dict[str, Any]]:
    return [
        {"assetClass": row.asset_class, "target": row.target, "actual": row.actual, "drift": row.drift}
        for row in report.allocation
    ]


def _period_payload(row: PeriodComparison) -> dict[str, Any]:
    return {
        "period": row.period,
        "return": row.portfolio_return,
        "benchmark": row.benchmark_return,
        "excessReturn": row.excess_return,
        "outperformed": row.outperformed,
    }


class AdvisorTools:
    """The advisor data operations, each returning a ``success`` envelope.

    Inputs are validated against the tool's pydantic model before any data
    access. Nothing raised inside a tool crosses ``run_tool``: not-found,
    validation and unexpected failures all come back as ``success: False``.
    """

    def __init__(self, resolver: ClientResolver, config: Optional[AdvisorConfig] = None) -> None:
        self._resolver = resolver
        self._config = config or AdvisorConfig()

    @classmethod
    def from_env(cls) -> "AdvisorTools":
        config = load_config()
        resolver = ClientResolver(
            get_data_source(),
            StaticClientRepository.default(),
            top_holdings_limit=config.top_holdings_limit,
        )
        return cls(resolver, config)

    def run_tool(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        spec = _SPECS_BY_NAME.get(name)
        if spec is None:
            return _failure("UNKNOWN_TOOL", f'Unknown tool "{name}".', available=sorted(_SPECS_BY_NAME))

        try:
            params = spec.input_model.model_validate(dict(arguments or {}))
        except ValidationError as exc:
            logger.info("tool_validation_failed tool=%s errors=%s", name, exc.error_count())
            return _failure(
                "VALIDATION_ERROR",
                f"Invalid arguments for {name}.",
                details={"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
            )

        handler: Callable[[Any], dict[str, Any]] = getattr(self, spec.handler)
        try:
            return handler(params)
        except AllocationInputError as exc:
            return _failure("VALIDATION_ERROR", exc.message, details=exc.details)
        except Exception:
            logger.exception("tool_failed tool=%s", name)
            return _failure("INTERNAL_ERROR", f"{name} failed unexpectedly.")

    def resolve_clients(self, query: str, status: str = "all", limit: int = 10) -> dict[str, Any]:
        return self.run_tool("resolveClients", {"query": query, "status": status, "limit": limit})

    def get_client_profile(self, client_id: str) -> dict[str, Any]:
        return self.run_tool("getClientProfile", {"clientId": client_id})

    def aggregate_holdings(self, account_id: str, group_by: str = "none") -> dict[str, Any]:
        return self.run_tool("aggregateHoldings", {"accountId": account_id, "groupBy": group_by})

    def compute_allocation_drift(self, client_id: str) -> dict[str, Any]:
        return self.run_tool("computeAllocationDrift", {"clientId": client_id})

    def get_portfolio_performance(self, client_id: str, benchmark: str = "S&P 500") -> dict[str, Any]:
        return self.run_tool("getPortfolioPerformance", {"clientId": client_id, "benchmark": benchmark})

    def _resolve_clients(self, params: ResolveClientsInput) -> dict[str, Any]:
        resolution = self._resolver.search_clients(params.query, status=params.status, limit=params.limit)
        matches = resolution.value or []
        as_of = _today().isoformat()
        if not resolution.found:
            return _failure(
                "NOT_FOUND",
                f'No clients found matching "{params.query}"',
                source=resolution.source.value,
                message=f'No clients found matching "{params.query}"',
                asOfDate=as_of,
                results=[],
            )
        logger.info("client_search_success source=%s results=%s", resolution.source.value, len(matches))
        return _success(
            source=resolution.source.value,
            message=f'Found {len(matches)} client(s) matching "{params.query}"',
            asOfDate=as_of,
            results=[_match_payload(m) for m in matches],
        )

    def _get_client_profile(self, params: ClientProfileInput) -> dict[str, Any]:
        resolution = self._resolver.get_client_profile(params.clientId)
        if not resolution.found or resolution.value is None:
            return _failure("NOT_FOUND", f'Client "{params.clientId}" not found', source=resolution.source.value)
        return _success(
            source=resolution.source.value,
            asOfDate=_today().isoformat(),
            client=_profile_payload(resolution.value),
        )

    def _aggregate_holdings(self, params: AggregateHoldingsInput) -> dict[str, Any]:
        resolution = self._resolver.get_account_holdings(params.accountId)
        if not resolution.found or not resolution.value:
            return _failure(
                "NOT_FOUND",
                f'No holdings found for account "{params.accountId}"',
                source=resolution.source.value,
            )

        aggregate = aggregate_holdings(
            resolution.value,
            params.groupBy,
            weight_tolerance=self._config.weight_sum_tolerance_pct,
        )
        summary = aggregate.summary
        payload = _success(
            source=resolution.source.value,
            accountId=params.accountId,
            asOfDate=_today().isoformat(),
            summary={
                "totalMarketValue": summary.total_market_value,
                "totalCostBasis": summary.total_cost_basis,
                "totalUnrealizedGain": summary.total_unrealized_gain,
                "totalUnrealizedGainPercent": summary.total_unrealized_gain_percent,
                "positionCount": summary.position_count,
            },
        )
        if aggregate.group_by == "none":
            payload["holdings"] = [_line_payload(line) for line in aggregate.lines]
        else:
            payload["groupedBy"] = aggregate.group_by
            payload["groups"] = {group.label: _group_payload(group) for group in aggregate.groups}
        return payload

    def _compute_allocation_drift(self, params: AllocationDriftInput) -> dict[str, Any]:
        policy = self._resolver.get_allocation_policy(params.clientId)
        if not policy.found or policy.value is None:
            return _failure("NOT_FOUND", f'No allocation data found for client "{params.clientId}"')

        holdings = self._resolver.get_client_holdings(params.clientId)
        if not holdings.found or not holdings.value:
            return _failure(
                "NOT_FOUND",
                f'No holdings found for client "{params.clientId}"',
                source=holdings.source.value,
            )

        threshold = policy.value.rebalance_threshold or self._config.rebalance_threshold_pct
        report = calculate_drift(policy.value.target, derive_allocation(holdings.value), threshold)
        logger.info(
            "allocation_drift_computed client=%s max_drift=%.2f needs_rebalancing=%s",
            params.clientId,
            report.max_abs_drift,
            report.needs_rebalancing,
        )
        return _success(
            source=holdings.source.value,
            clientId=params.clientId,
            asOfDate=_today().isoformat(),
            threshold=report.threshold,
            allocation=_drift_payload(report),
            needsRebalancing=report.needs_rebalancing,
            recommendation=report.recommendation,
        )

    def _get_portfolio_performance(self, params: PortfolioPerformanceInput) -> dict[str, Any]:
        resolution = self._resolver.get_performance(params.clientId)
        if not resolution.found or resolution.value is None:
            return _failure("NOT_FOUND", f'No performance data found for client "{params.clientId}"')

        report = compare_to_benchmark(resolution.value.periods)
        ytd = report.ytd
        return _success(
            source=resolution.source.value,
            clientId=params.clientId,
            benchmark=params.benchmark,
            asOfDate=_today().isoformat(),
            performance=[_period_payload(row) for row in report.periods],
            summary={
                "ytdReturn": ytd.portfolio_return if ytd else None,
                "ytdBenchmark": ytd.benchmark_return if ytd else None,
                "ytdExcess": ytd.excess_return if ytd else None,
            },
        )
