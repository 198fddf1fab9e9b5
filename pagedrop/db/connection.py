"""asyncpg pool for the post store.

One pool per process. Acquiring a connection is bounded by
``ACQUIRE_TIMEOUT``; a pool that cannot hand one out surfaces as
``StoreError`` so the submission is rejected instead of hanging.
"""

import asyncio
import logging

import asyncpg
from contextlib import asynccontextmanager
from typing import Optional

from ..errors import StoreError

logger = logging.getLogger("pagedrop.db")

# A chat bot writes one row per submission; a small pool is plenty
POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 5
COMMAND_TIMEOUT = 30.0
ACQUIRE_TIMEOUT = 10.0

# Seconds to wait before each startup retry
STARTUP_RETRY_DELAYS = (2, 4, 8, 8)

ISOLATION_LEVELS = frozenset({"read_committed", "repeatable_read", "serializable"})

_pool: Optional[asyncpg.Pool] = None


async def init_db(dsn: str) -> asyncpg.Pool:
    """Create the pool, waiting for the database to come up.

    The bot container usually starts before Postgres accepts
    connections, so creation is retried after each delay in
    ``STARTUP_RETRY_DELAYS`` before giving up.
    """
    global _pool
    attempts = len(STARTUP_RETRY_DELAYS) + 1

    for attempt in range(1, attempts + 1):
        try:
            _pool = await asyncpg.create_pool(
                dsn,
                min_size=POOL_MIN_SIZE,
                max_size=POOL_MAX_SIZE,
                command_timeout=COMMAND_TIMEOUT,
            )
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            if attempt == attempts:
                logger.error(f"Post store unreachable after {attempts} attempts: {type(e).__name__}: {e}")
                raise
            delay = STARTUP_RETRY_DELAYS[attempt - 1]
            logger.warning(f"Post store not ready ({attempt}/{attempts}, {type(e).__name__}), retrying in {delay}s")
            await asyncio.sleep(delay)
        else:
            logger.info(f"Post store pool ready (attempt {attempt}, max {POOL_MAX_SIZE} connections)")
            return _pool


async def close_db():
    global _pool
    if _pool:
        await _pool.close()
        _pool = None
        logger.info("Post store pool closed")


def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _pool


async def _acquire(pool: asyncpg.Pool):
    try:
        return await pool.acquire(timeout=ACQUIRE_TIMEOUT)
    except (asyncio.TimeoutError, OSError, asyncpg.InterfaceError, asyncpg.PostgresError) as e:
        logger.error(f"Could not acquire a post store connection: {type(e).__name__}: {e}")
        raise StoreError(f"Could not acquire a database connection ({type(e).__name__})") from e


@asynccontextmanager
async def get_connection():
    """Borrow a connection; it goes back to the pool on exit."""
    pool = get_pool()
    conn = await _acquire(pool)
    try:
        yield conn
    finally:
        await pool.release(conn)


@asynccontextmanager
async def get_transaction(isolation: str = "read_committed", readonly: bool = False):
    """Borrow a connection inside a transaction.

    Args:
        isolation: One of ``ISOLATION_LEVELS``.
        readonly: Open a READ ONLY transaction.
    """
    if isolation not in ISOLATION_LEVELS:
        raise ValueError(f"Unknown isolation level: {isolation}")
    async with get_connection() as conn:
        async with conn.transaction(isolation=isolation, readonly=readonly):
            yield conn
