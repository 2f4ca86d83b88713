import logging
from collections.abc import Sequence
from typing import Any

from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from pgstats.config import settings
from pgstats.executor import QueryResult

log = logging.getLogger(__name__)

_pool: AsyncConnectionPool | None = None


def is_pool_ready() -> bool:
    """Return True if the database pool is open and usable."""
    return _pool is not None


async def open_pool(conninfo: str | None = None) -> None:
    """Open a connection pool. Uses .env defaults if no conninfo is provided.

    Adds connect_timeout=10 to prevent hanging on unreachable hosts.
    """
    global _pool

    effective_conninfo = conninfo or settings.db.conninfo

    # Add a connect timeout so bad sources fail fast instead of hanging
    if "connect_timeout" not in effective_conninfo:
        effective_conninfo += " connect_timeout=10"

    _pool = AsyncConnectionPool(
        conninfo=effective_conninfo,
        min_size=settings.db.pool_min_size,
        max_size=settings.db.pool_max_size,
        open=False,
    )
    await _pool.open()
    log.info("Database pool opened (max_size=%d)", settings.db.pool_max_size)


async def close_pool() -> None:
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        log.info("Database pool closed")


def _get_pool() -> AsyncConnectionPool:
    if _pool is None:
        raise RuntimeError("Database pool is not initialized")
    return _pool


async def execute_query(sql: str, params: Sequence[Any] | None = None) -> QueryResult:
    """Execute a read-only statement with timeout. Returns rows as dicts."""
    pool = _get_pool()
    timeout_s = settings.db.query_timeout_s

    async with pool.connection() as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(f"SET statement_timeout TO '{timeout_s}s'")
            await cur.execute("SET default_transaction_read_only TO on")
            log.debug("Executing: %s params=%s", sql.strip(), params)
            await cur.execute(sql, params or None)
            rows = await cur.fetchall() if cur.description else []
            return QueryResult(rows=[dict(r) for r in rows], row_count=cur.rowcount)


class PoolExecutor:
    """QueryExecutor backed by the module-level connection pool."""

    async def execute(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        return await execute_query(sql, params)


def get_executor() -> PoolExecutor:
    return PoolExecutor()
