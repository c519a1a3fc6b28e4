"""Client identity resolution across the clients database and the static dataset.

Every lookup walks the same states::

    TRY_DURABLE -> MATCHED | EMPTY | ERROR
    EMPTY | ERROR -> TRY_FALLBACK
    MATCHED | TRY_FALLBACK -> RESULT_FOUND | RESULT_EMPTY

Only two things move a lookup from the database to the static dataset: a
``SourceUnavailableError`` raised by the store, or an empty result. Anything
else the store raises propagates to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from .data_source import DataSource, LiveSource
from .durable_store import SourceUnavailableError
from .fallback_dataset import StaticClientRepository
from .models import AllocationPolicy, ClientMatch, ClientProfile, Holding, PerformanceRecord, Source

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATUS_FILTERS = ("all", "active", "prospect", "inactive")


class ResolverState(str, Enum):
    TRY_DURABLE = "TRY_DURABLE"
    MATCHED = "MATCHED"
    EMPTY = "EMPTY"
    ERROR = "ERROR"
    TRY_FALLBACK = "TRY_FALLBACK"
    RESULT_FOUND = "RESULT_FOUND"
    RESULT_EMPTY = "RESULT_EMPTY"


@dataclass(frozen=True)
class Resolution(Generic[T]):
    source: Source
    state: ResolverState
    value: Optional[T]
    fallback_reason: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.state is ResolverState.RESULT_FOUND


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    try:
        return len(value) == 0  # type: ignore[arg-type]
    except TypeError:
        return False


class ClientResolver:
    def __init__(
        self,
        source: DataSource,
        fallback: StaticClientRepository,
        *,
        top_holdings_limit: int = 10,
    ) -> None:
        self._source = source
        self._fallback = fallback
        self._top_holdings_limit = top_holdings_limit

    @property
    def source(self) -> DataSource:
        return self._source

    def _transition(self, op: str, current: ResolverState, nxt: ResolverState, **fields: object) -> ResolverState:
        extra = " ".join(f"{key}={value}" for key, value in fields.items())
        logger.info("resolver_transition op=%s from=%s to=%s %s", op, current.value, nxt.value, extra)
        return nxt

    def _resolve(
        self,
        op: str,
        durable_call: Optional[Callable[[LiveSource], T]],
        fallback_call: Callable[[], T],
    ) -> Resolution[T]:
        reason: Optional[str] = None

        if isinstance(self._source, LiveSource) and durable_call is not None:
            state = ResolverState.TRY_DURABLE
            try:
                value = durable_call(self._source)
            except SourceUnavailableError as exc:
                state = self._transition(op, state, ResolverState.ERROR, error=exc.message)
                logger.warning("client_lookup_fallback op=%s reason=source_unavailable error=%s", op, exc.message)
                reason = "source_unavailable"
            else:
                if not _is_empty(value):
                    state = self._transition(op, state, ResolverState.MATCHED)
                    self._transition(op, state, ResolverState.RESULT_FOUND, source=Source.DATABASE.value)
                    return Resolution(Source.DATABASE, ResolverState.RESULT_FOUND, value)
                state = self._transition(op, state, ResolverState.EMPTY)
                reason = "empty_result"
            state = self._transition(op, state, ResolverState.TRY_FALLBACK, reason=reason)
        else:
            state = ResolverState.TRY_FALLBACK
            reason = getattr(self._source, "reason", None) if durable_call is not None else "static_only"

        value = fallback_call()
        if _is_empty(value):
            self._transition(op, state, ResolverState.RESULT_EMPTY, source=Source.MOCK.value)
            return Resolution(Source.MOCK, ResolverState.RESULT_EMPTY, value, reason)
        self._transition(op, state, ResolverState.RESULT_FOUND, source=Source.MOCK.value)
        return Resolution(Source.MOCK, ResolverState.RESULT_FOUND, value, reason)

    def search_clients(self, query: str, status: str = "all", limit: int = 10) -> Resolution[list[ClientMatch]]:
        if status not in STATUS_FILTERS:
            raise ValueError(f"status must be one of {STATUS_FILTERS}, got {status!r}")

        def durable(live: LiveSource) -> list[ClientMatch]:
            # The clients database only holds funded (active) relationships.
            if status not in ("all", "active"):
                return []
            return live.store.search_clients(query, limit)

        return self._resolve(
            "search_clients",
            durable,
            lambda: self._fallback.search_clients(query, status=status, limit=limit),
        )

    def get_client_profile(self, client_ref: str) -> Resolution[ClientProfile]:
        return self._resolve(
            "get_client_profile",
            lambda live: live.store.get_client_profile(client_ref, self._top_holdings_limit),
            lambda: self._fallback.get_client_profile(client_ref, self._top_holdings_limit),
        )

    def get_account_holdings(self, account_id: str) -> Resolution[tuple[Holding, ...]]:
        return self._resolve(
            "get_account_holdings",
            lambda live: live.store.get_account_holdings(account_id),
            lambda: self._fallback.get_account_holdings(account_id),
        )

    def get_client_holdings(self, client_ref: str) -> Resolution[tuple[Holding, ...]]:
        return self._resolve(
            "get_client_holdings",
            lambda live: live.store.get_client_holdings(client_ref),
            lambda: self._fallback.get_client_holdings(client_ref),
        )

    def get_allocation_policy(self, client_ref: str) -> Resolution[AllocationPolicy]:
        # Allocation policies are not persisted in the clients database.
        return self._resolve(
            "get_allocation_policy",
            None,
            lambda: self._fallback.get_allocation_policy(client_ref),
        )

    def get_performance(self, client_ref: str) -> Resolution[PerformanceRecord]:
        # Period returns are not persisted in the clients database either.
        return self._resolve(
            "get_performance",
            None,
            lambda: self._fallback.get_performance(client_ref),
        )
