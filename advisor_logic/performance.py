"""
Pure, deterministic performance comparison against a benchmark.
No pricing and no return computation: period returns arrive precomputed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from .models import PeriodReturn

YTD_PERIOD = "YTD"


@dataclass(frozen=True)
class PeriodComparison:
    period: str
    portfolio_return: float
    benchmark_return: float
    excess_return: float
    outperformed: bool


@dataclass(frozen=True)
class PerformanceReport:
    periods: tuple[PeriodComparison, ...]
    ytd: Optional[PeriodComparison] = None


def compare_period(item: PeriodReturn) -> PeriodComparison:
    excess = item.portfolio_return - item.benchmark_return
    return PeriodComparison(
        period=item.period,
        portfolio_return=item.portfolio_return,
        benchmark_return=item.benchmark_return,
        excess_return=round(excess, 2),
        outperformed=excess > 0,
    )


def compare_to_benchmark(periods: Iterable[PeriodReturn]) -> PerformanceReport:
    """Excess return per period, in input order, plus the year-to-date row when present."""
    rows = tuple(compare_period(item) for item in periods)
    ytd = next((row for row in rows if row.period == YTD_PERIOD), None)
    return PerformanceReport(periods=rows, ytd=ytd)
