"""
Pure, deterministic drift calculation.
No advice, no optimization.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Mapping

DEFAULT_REBALANCE_THRESHOLD = 5.0


class AllocationInputError(RuntimeError):
    """Raised when an allocation map or threshold is out of range."""

    def __init__(self, error_code: str, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details


@dataclass(frozen=True)
class AssetClassDrift:
    asset_class: str
    target: float
    actual: float
    drift: float


@dataclass(frozen=True)
class DriftReport:
    allocation: tuple[AssetClassDrift, ...]
    threshold: float
    needs_rebalancing: bool
    recommendation: str

    @property
    def max_abs_drift(self) -> float:
        return max((abs(row.drift) for row in self.allocation), default=0.0)


def _validate_map(name: str, allocation: Mapping[str, float]) -> None:
    for asset_class, value in allocation.items():
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
            raise AllocationInputError(
                "INVALID_ALLOCATION",
                f"{name} allocation for {asset_class!r} must be a finite number.",
                {"assetClass": asset_class, "value": repr(value)},
            )
        if value < 0 or value > 100:
            raise AllocationInputError(
                "INVALID_ALLOCATION",
                f"{name} allocation for {asset_class!r} must be between 0 and 100.",
                {"assetClass": asset_class, "value": value},
            )


def _recommendation(breaches: List[AssetClassDrift], threshold: float) -> str:
    if not breaches:
        return f"Portfolio is within the {threshold:g}% drift tolerance."
    details = ", ".join(f"{row.asset_class} {row.drift:+.1f}" for row in breaches)
    return (
        f"Portfolio has drifted more than {threshold:g}% from target in one or more asset classes "
        f"({details}). Consider rebalancing."
    )


def calculate_drift(
    target: Mapping[str, float],
    actual: Mapping[str, float],
    threshold: float = DEFAULT_REBALANCE_THRESHOLD,
) -> DriftReport:
    """
    Drift per asset class is actual - target, with a class missing from either
    map counted as 0. Classes keep target order, then actual-only classes.
    The threshold is compared against the unrounded drift; only the reported
    drift is rounded to two decimals.
    """
    if not isinstance(threshold, (int, float)) or not math.isfinite(threshold) or threshold <= 0:
        raise AllocationInputError("INVALID_THRESHOLD", "Rebalancing threshold must be a positive number.")
    _validate_map("target", target)
    _validate_map("actual", actual)

    assets = list(target.keys()) + [asset for asset in actual.keys() if asset not in target]
    rows = []
    breaches = []
    for asset in assets:
        tgt = float(target.get(asset, 0.0))
        cur = float(actual.get(asset, 0.0))
        raw_drift = cur - tgt
        row = AssetClassDrift(asset_class=asset, target=tgt, actual=cur, drift=round(raw_drift, 2))
        rows.append(row)
        if abs(raw_drift) > threshold:
            breaches.append((abs(raw_drift), row))

    breaches.sort(key=lambda item: -item[0])
    return DriftReport(
        allocation=tuple(rows),
        threshold=float(threshold),
        needs_rebalancing=bool(breaches),
        recommendation=_recommendation([row for _, row in breaches], threshold),
    )
