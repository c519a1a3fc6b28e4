"""Process configuration for the advisory data tools."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

_DEFAULT_POOL_MAX = 10
_DEFAULT_IDLE_TIMEOUT_SECONDS = 20.0
_DEFAULT_CONNECT_TIMEOUT_SECONDS = 10
_DEFAULT_REBALANCE_THRESHOLD_PCT = 5.0
_DEFAULT_WEIGHT_SUM_TOLERANCE_PCT = 0.1
_DEFAULT_TOP_HOLDINGS_LIMIT = 10


class AdvisorConfigError(RuntimeError):
    """Raised when an environment setting cannot be parsed."""


@dataclass(frozen=True)
class AdvisorConfig:
    clients_db_url: Optional[str] = None
    pool_max_connections: int = _DEFAULT_POOL_MAX
    pool_idle_timeout_seconds: float = _DEFAULT_IDLE_TIMEOUT_SECONDS
    pool_connect_timeout_seconds: int = _DEFAULT_CONNECT_TIMEOUT_SECONDS
    rebalance_threshold_pct: float = _DEFAULT_REBALANCE_THRESHOLD_PCT
    weight_sum_tolerance_pct: float = _DEFAULT_WEIGHT_SUM_TOLERANCE_PCT
    top_holdings_limit: int = _DEFAULT_TOP_HOLDINGS_LIMIT


def _read_number(name: str, default: float, cast: type, minimum: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise AdvisorConfigError(f"{name} must be a number, got {raw!r}.") from exc
    if value < minimum:
        raise AdvisorConfigError(f"{name} must be >= {minimum}, got {raw!r}.")
    return value


def load_config(*, use_dotenv: bool = True) -> AdvisorConfig:
    if use_dotenv:
        load_dotenv()

    db_url = os.getenv("CLIENTS_DB_URL", "").strip() or None
    threshold = _read_number("REBALANCE_THRESHOLD_PCT", _DEFAULT_REBALANCE_THRESHOLD_PCT, float, 0.0)
    if threshold <= 0:
        raise AdvisorConfigError("REBALANCE_THRESHOLD_PCT must be greater than 0.")
    return AdvisorConfig(
        clients_db_url=db_url,
        pool_max_connections=int(_read_number("CLIENTS_DB_POOL_MAX", _DEFAULT_POOL_MAX, int, 1)),
        pool_idle_timeout_seconds=_read_number(
            "CLIENTS_DB_IDLE_TIMEOUT", _DEFAULT_IDLE_TIMEOUT_SECONDS, float, 0.0
        ),
        pool_connect_timeout_seconds=int(
            _read_number("CLIENTS_DB_CONNECT_TIMEOUT", _DEFAULT_CONNECT_TIMEOUT_SECONDS, int, 1)
        ),
        rebalance_threshold_pct=threshold,
        weight_sum_tolerance_pct=_read_number(
            "WEIGHT_SUM_TOLERANCE_PCT", _DEFAULT_WEIGHT_SUM_TOLERANCE_PCT, float, 0.0
        ),
        top_holdings_limit=int(_read_number("TOP_HOLDINGS_LIMIT", _DEFAULT_TOP_HOLDINGS_LIMIT, int, 1)),
    )
