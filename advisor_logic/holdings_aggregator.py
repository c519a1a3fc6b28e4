"""
Pure, deterministic holdings aggregation.
No I/O: callers pass the holdings of one account (or one client).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Holding

logger = logging.getLogger(__name__)

GROUP_BY_OPTIONS = ("none", "assetClass", "sector")
UNCLASSIFIED_LABEL = "Unclassified"


@dataclass(frozen=True)
class HoldingsSummary:
    total_market_value: float
    total_cost_basis: float
    total_unrealized_gain: float
    total_unrealized_gain_percent: Optional[float]
    position_count: int


@dataclass(frozen=True)
class HoldingLine:
    holding: Holding
    unrealized_gain: float
    unrealized_gain_percent: Optional[float]
    weight: Optional[float]


@dataclass(frozen=True)
class HoldingGroup:
    label: str
    holdings: tuple[Holding, ...]
    total_value: float
    total_cost: float
    unrealized_gain: float
    weight: Optional[float]

    @property
    def position_count(self) -> int:
        return len(self.holdings)


@dataclass(frozen=True)
class HoldingsAggregate:
    summary: HoldingsSummary
    group_by: str
    lines: tuple[HoldingLine, ...] = ()
    groups: tuple[HoldingGroup, ...] = ()


def gain_percent(market_value: float, cost_basis: float) -> Optional[float]:
    """Unrealized gain as a percent of cost, or None when cost basis is zero."""
    if cost_basis == 0:
        return None
    return round((market_value - cost_basis) / cost_basis * 100, 2)


def weight_percent(value: float, total_value: float, digits: int) -> Optional[float]:
    if total_value == 0:
        return None
    return round(value / total_value * 100, digits)


def apportion_weights(values: Sequence[float], digits: int = 2) -> List[Optional[float]]:
    """
    Percent weights of ``values`` rounded to ``digits`` decimals by largest
    remainder, so the rounded weights sum to exactly 100. Ties go to the
    earlier position. All None when the total is zero.
    """
    exact = [Fraction(v) for v in values]
    total = sum(exact, Fraction(0))
    if total == 0:
        return [None] * len(values)

    scale = 10 ** digits
    raw = [v * 100 * scale / total for v in exact]
    floors = [math.floor(r) for r in raw]
    shortfall = 100 * scale - sum(floors)
    by_remainder = sorted(range(len(raw)), key=lambda i: (-(raw[i] - floors[i]), i))
    for i in by_remainder[:shortfall]:
        floors[i] += 1
    return [round(units / scale, digits) for units in floors]


def weights_within_tolerance(weights: Iterable[Optional[float]], tolerance: float) -> bool:
    present = [w for w in weights if w is not None]
    if not present:
        return True
    return abs(sum(present) - 100.0) <= tolerance


def _group_label(holding: Holding, group_by: str) -> str:
    raw = holding.asset_class if group_by == "assetClass" else holding.sector
    if raw is None or not str(raw).strip():
        return UNCLASSIFIED_LABEL
    return str(raw).strip()


def summarize(holdings: Sequence[Holding]) -> HoldingsSummary:
    total_value = sum(h.market_value for h in holdings)
    total_cost = sum(h.cost_basis for h in holdings)
    return HoldingsSummary(
        total_market_value=total_value,
        total_cost_basis=total_cost,
        total_unrealized_gain=total_value - total_cost,
        total_unrealized_gain_percent=gain_percent(total_value, total_cost),
        position_count=len(holdings),
    )


def group_holdings(holdings: Sequence[Holding], group_by: str, total_value: float) -> tuple[HoldingGroup, ...]:
    buckets: Dict[str, List[Holding]] = {}
    for holding in holdings:
        buckets.setdefault(_group_label(holding, group_by), []).append(holding)

    groups = []
    for label, members in buckets.items():
        bucket_value = sum(h.market_value for h in members)
        bucket_cost = sum(h.cost_basis for h in members)
        groups.append(
            HoldingGroup(
                label=label,
                holdings=tuple(members),
                total_value=bucket_value,
                total_cost=bucket_cost,
                unrealized_gain=bucket_value - bucket_cost,
                weight=weight_percent(bucket_value, total_value, 1),
            )
        )
    return tuple(groups)


def aggregate_holdings(
    holdings: Sequence[Holding],
    group_by: str = "none",
    *,
    weight_tolerance: float = 0.1,
) -> HoldingsAggregate:
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f"group_by must be one of {GROUP_BY_OPTIONS}, got {group_by!r}")

    summary = summarize(holdings)
    total_value = summary.total_market_value

    if group_by != "none":
        return HoldingsAggregate(
            summary=summary,
            group_by=group_by,
            groups=group_holdings(holdings, group_by, total_value),
        )

    weights = apportion_weights([h.market_value for h in holdings])
    lines = tuple(
        HoldingLine(
            holding=h,
            unrealized_gain=h.unrealized_gain,
            unrealized_gain_percent=gain_percent(h.market_value, h.cost_basis),
            weight=weight,
        )
        for h, weight in zip(holdings, weights)
    )
    if not weights_within_tolerance((line.weight for line in lines), weight_tolerance):
        logger.warning(
            "holdings_weight_sum_out_of_tolerance total=%s tolerance=%s",
            sum(line.weight or 0.0 for line in lines),
            weight_tolerance,
        )
    return HoldingsAggregate(summary=summary, group_by=group_by, lines=lines)


def derive_allocation(holdings: Sequence[Holding]) -> Dict[str, float]:
    """Actual allocation (asset class -> percent of total value), two decimals."""
    total_value = sum(h.market_value for h in holdings)
    if total_value == 0:
        return {}
    groups = group_holdings(holdings, "assetClass", total_value)
    weights = apportion_weights([group.total_value for group in groups])
    return {group.label: weight for group, weight in zip(groups, weights)}
