"""Read-only queries against the clients Postgres database."""
from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, Optional

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from .config import AdvisorConfig
from .models import Account, AccountSummary, ClientMatch, ClientProfile, ClientRecord, Holding

logger = logging.getLogger(__name__)

_MAX_ACCOUNT_SUMMARIES = 3

_SEARCH_CLIENTS_SQL = """
WITH client_accounts AS (
    SELECT
        ao.first_name,
        ao.last_name,
        ao.full_name,
        a.id AS account_id,
        a.account_number,
        a.name AS account_name,
        a.account_type,
        a.market_value,
        a.custodian
    FROM account_owners ao
    JOIN accounts a ON ao.account_id = a.id
    WHERE a.is_closed = false
),
client_summary AS (
    SELECT
        first_name,
        last_name,
        TRIM(full_name) AS full_name,
        jsonb_agg(DISTINCT jsonb_build_object(
            'id', account_id,
            'account_number', account_number,
            'name', account_name,
            'type', account_type,
            'value', market_value,
            'custodian', custodian
        )) AS accounts,
        SUM(market_value::numeric) AS total_aum,
        COUNT(DISTINCT account_id) AS account_count
    FROM client_accounts
    GROUP BY first_name, last_name, TRIM(full_name)
)
SELECT full_name, first_name, last_name, accounts, total_aum, account_count
FROM client_summary
WHERE
    LOWER(full_name) LIKE LOWER(%(pattern)s)
    OR LOWER(first_name) LIKE LOWER(%(pattern)s)
    OR LOWER(last_name) LIKE LOWER(%(pattern)s)
    OR EXISTS (
        SELECT 1 FROM jsonb_array_elements(accounts) AS acc
        WHERE LOWER(acc->>'account_number') LIKE LOWER(%(pattern)s)
    )
ORDER BY total_aum DESC NULLS LAST
LIMIT %(limit)s
"""

_CLIENT_ACCOUNTS_SQL = """
SELECT
    ao.first_name,
    ao.last_name,
    TRIM(ao.full_name) AS full_name,
    a.id AS account_id,
    a.account_number,
    a.name AS account_name,
    a.account_type,
    a.market_value,
    a.cost_basis,
    a.custodian,
    a.inception_date,
    a.is_billable,
    a.is_discretionary
FROM account_owners ao
JOIN accounts a ON ao.account_id = a.id
WHERE a.is_closed = false
  AND (
    LOWER(TRIM(ao.full_name)) LIKE LOWER(%(pattern)s)
    OR LOWER(ao.first_name) LIKE LOWER(%(pattern)s)
    OR LOWER(ao.last_name) LIKE LOWER(%(pattern)s)
  )
ORDER BY a.market_value DESC NULLS LAST
"""

_ACCOUNT_HOLDINGS_SQL = """
SELECT
    h.ticker,
    h.asset_name,
    h.asset_class,
    h.sector,
    h.units,
    h.market_value,
    h.cost_basis
FROM holdings h
JOIN accounts a ON h.account_id = a.id
WHERE a.is_closed = false
  AND (a.id::text = %(account_id)s OR a.account_number = %(account_id)s)
ORDER BY h.market_value DESC NULLS LAST
"""


_CLIENT_HOLDINGS_SQL = """
SELECT
    h.ticker,
    h.asset_name,
    h.asset_class,
    h.sector,
    h.units,
    h.market_value,
    h.cost_basis
FROM account_owners ao
JOIN accounts a ON ao.account_id = a.id
JOIN holdings h ON h.account_id = a.id
WHERE a.is_closed = false
  AND LOWER(TRIM(ao.full_name)) = LOWER(TRIM(%(name)s))
ORDER BY h.market_value DESC NULLS LAST
"""


class SourceUnavailableError(RuntimeError):
    """Raised when the clients database cannot serve a query."""

    def __init__(self, message: str, operation: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation


def mask_password(url: str) -> str:
    if "@" in url and "://" in url:
        scheme, rest = url.split("://", 1)
        auth, host = rest.rsplit("@", 1)
        if ":" in auth:
            user = auth.split(":", 1)[0]
            return f"{scheme}://{user}:***@{host}"
    return url


def like_pattern(query: str) -> str:
    escaped = query.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _to_float(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, Decimal):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _owner_key(row: dict[str, Any]) -> str:
    return (row.get("full_name") or "").strip().lower()


def _rows_for_one_owner(rows: list[dict[str, Any]], client_ref: str) -> list[dict[str, Any]]:
    """Account rows of a single owner: the exact full-name match if any, else the largest match."""
    if not rows:
        return []
    ref = client_ref.strip().lower()
    owner = ref if any(_owner_key(row) == ref for row in rows) else _owner_key(rows[0])
    return [row for row in rows if _owner_key(row) == owner]


class _KeepAlivePool(pool.ThreadedConnectionPool):
    """Threaded pool that opens connections on demand and keeps up to ``maxconn`` idle.

    ``ThreadedConnectionPool`` only keeps a returned connection while fewer
    than ``minconn`` are idle, and opens ``minconn`` connections up front.
    """

    def __init__(self, maxconn: int, *args: Any, **kwargs: Any) -> None:
        super().__init__(0, maxconn, *args, **kwargs)
        self.minconn = maxconn


class ClientStore:
    """Clients database access through a bounded, lazily created connection pool."""

    def __init__(self, config: AdvisorConfig, *, pool_factory=_KeepAlivePool) -> None:
        if not config.clients_db_url:
            raise ValueError("clients_db_url is required for ClientStore")
        self._config = config
        self._pool_factory = pool_factory
        self._pool: Optional[pool.AbstractConnectionPool] = None
        self._pool_lock = threading.Lock()
        self._last_used: dict[int, float] = {}

    @property
    def safe_url(self) -> str:
        return mask_password(self._config.clients_db_url or "")

    def _get_pool(self) -> pool.AbstractConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                logger.info(
                    "clients_db_pool_create url=%s max=%s connect_timeout=%s",
                    self.safe_url,
                    self._config.pool_max_connections,
                    self._config.pool_connect_timeout_seconds,
                )
                self._pool = self._pool_factory(
                    self._config.pool_max_connections,
                    self._config.clients_db_url,
                    connect_timeout=self._config.pool_connect_timeout_seconds,
                )
            return self._pool

    def _checkout(self, db_pool: pool.AbstractConnectionPool):
        idle_limit = self._config.pool_idle_timeout_seconds
        while True:
            conn = db_pool.getconn()
            last_used = self._last_used.pop(id(conn), None)
            if last_used is None or idle_limit <= 0:
                return conn
            idle_s = time.monotonic() - last_used
            if idle_s <= idle_limit:
                return conn
            logger.debug("clients_db_idle_connection_recycled idle_s=%.1f", idle_s)
            db_pool.putconn(conn, close=True)

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[Any]:
        try:
            db_pool = self._get_pool()
            conn = self._checkout(db_pool)
        except (psycopg2.Error, pool.PoolError) as exc:
            raise SourceUnavailableError(f"Clients database unavailable: {exc}", operation) from exc

        broken = False
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cursor:
                yield cursor
            conn.rollback()
        except psycopg2.Error as exc:
            broken = bool(getattr(conn, "closed", 0))
            raise SourceUnavailableError(f"Clients database query failed: {exc}", operation) from exc
        finally:
            if not broken:
                self._last_used[id(conn)] = time.monotonic()
            db_pool.putconn(conn, close=broken)
            # Only connections the pool kept open are tracked for idle expiry.
            if broken or conn.closed:
                self._last_used.pop(id(conn), None)

    def close(self) -> None:
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                self._last_used.clear()

    def search_clients(self, query: str, limit: int) -> list[ClientMatch]:
        with self._cursor("search_clients") as cursor:
            cursor.execute(_SEARCH_CLIENTS_SQL, {"pattern": like_pattern(query), "limit": limit})
            rows = cursor.fetchall()
        return [self._row_to_match(row) for row in rows]

    def get_client_profile(self, client_ref: str, top_holdings_limit: int) -> Optional[ClientProfile]:
        with self._cursor("get_client_profile") as cursor:
            cursor.execute(_CLIENT_ACCOUNTS_SQL, {"pattern": like_pattern(client_ref)})
            account_rows = _rows_for_one_owner(cursor.fetchall(), client_ref)
            if not account_rows:
                return None
            cursor.execute(_ACCOUNT_HOLDINGS_SQL, {"account_id": str(account_rows[0]["account_id"])})
            holding_rows = cursor.fetchall()

        first = account_rows[0]
        accounts = tuple(self._row_to_account(row) for row in account_rows)
        client = ClientRecord(
            id=(first.get("full_name") or "").strip() or f"{first.get('first_name', '')} {first.get('last_name', '')}".strip(),
            first_name=first.get("first_name") or "",
            last_name=first.get("last_name") or "",
            display_name=first.get("full_name"),
            status="active",
            accounts=accounts,
        )
        holdings = tuple(self._row_to_holding(row) for row in holding_rows[:top_holdings_limit])
        return ClientProfile(client=client, top_holdings=holdings)

    def get_account_holdings(self, account_id: str) -> Optional[tuple[Holding, ...]]:
        with self._cursor("get_account_holdings") as cursor:
            cursor.execute(_ACCOUNT_HOLDINGS_SQL, {"account_id": account_id.strip()})
            rows = cursor.fetchall()
        if not rows:
            return None
        return tuple(self._row_to_holding(row) for row in rows)

    def get_client_holdings(self, client_name: str) -> Optional[tuple[Holding, ...]]:
        with self._cursor("get_client_holdings") as cursor:
            cursor.execute(_CLIENT_HOLDINGS_SQL, {"name": client_name})
            rows = cursor.fetchall()
        if not rows:
            return None
        return tuple(self._row_to_holding(row) for row in rows)

    @staticmethod
    def _row_to_match(row: dict[str, Any]) -> ClientMatch:
        full_name = (row.get("full_name") or "").strip()
        first_name = row.get("first_name") or ""
        last_name = row.get("last_name") or ""
        name = full_name or f"{first_name} {last_name}".strip()
        accounts = tuple(
            AccountSummary(
                id=str(acc.get("id")),
                account_number=acc.get("account_number") or "",
                name=acc.get("name") or "",
                account_type=acc.get("type") or "",
                value=_to_float(acc.get("value")),
                custodian=acc.get("custodian") or "",
            )
            for acc in (row.get("accounts") or [])[:_MAX_ACCOUNT_SUMMARIES]
        )
        return ClientMatch(
            id=name,
            name=name,
            first_name=first_name,
            last_name=last_name,
            status="active",
            total_aum=_to_float(row.get("total_aum")),
            account_count=int(row.get("account_count") or 0),
            accounts=accounts,
        )

    @staticmethod
    def _row_to_account(row: dict[str, Any]) -> Account:
        return Account(
            id=str(row["account_id"]),
            account_number=row.get("account_number") or "",
            name=row.get("account_name") or "",
            account_type=row.get("account_type") or "",
            custodian=row.get("custodian") or "",
            market_value=_to_float(row.get("market_value")),
            cost_basis=_to_float(row.get("cost_basis")),
            inception_date=_to_text(row.get("inception_date")),
            is_billable=bool(row.get("is_billable")),
            is_discretionary=bool(row.get("is_discretionary")),
        )

    @staticmethod
    def _row_to_holding(row: dict[str, Any]) -> Holding:
        return Holding(
            symbol=row.get("ticker") or "",
            name=row.get("asset_name") or "",
            quantity=_to_float(row.get("units")),
            cost_basis=_to_float(row.get("cost_basis")),
            market_value=_to_float(row.get("market_value")),
            asset_class=row.get("asset_class"),
            sector=row.get("sector"),
        )
