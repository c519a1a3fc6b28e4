"""Chooses, once per process, whether client lookups go to the clients database."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Union

from .config import AdvisorConfig, load_config
from .durable_store import ClientStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LiveSource:
    store: ClientStore

    @property
    def is_durable_available(self) -> bool:
        return True


@dataclass(frozen=True)
class FallbackSource:
    reason: str

    @property
    def is_durable_available(self) -> bool:
        return False


DataSource = Union[LiveSource, FallbackSource]


def select_data_source(config: AdvisorConfig, *, store_factory=ClientStore) -> DataSource:
    """Decide the data source from configuration alone.

    No connection is opened here; the pool connects on first use and any
    failure at that point is handled per call by the resolver.
    """
    if not config.clients_db_url:
        logger.warning("clients_db_not_configured reason=CLIENTS_DB_URL unset; using static dataset")
        return FallbackSource(reason="CLIENTS_DB_URL not set")

    store = store_factory(config)
    logger.info("clients_db_configured url=%s", store.safe_url)
    return LiveSource(store=store)


@lru_cache(maxsize=1)
def get_data_source() -> DataSource:
    return select_data_source(load_config())
