"""asyncpg pool construction and teardown.

There is no process-wide pool: the entry point that creates a pool owns it
and hands it to the repository and migration runner.
"""

import asyncio
import logging

import asyncpg

from paysync.config import AppConfig

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 5.0
CLOSE_TIMEOUT_SECONDS = 5.0


async def create_pool(config: AppConfig) -> asyncpg.Pool:
    """
    Open a connection pool for the configured database and health-check it.

    Args:
        config: Application config providing db_dsn and pool bounds

    Returns:
        asyncpg.Pool: Ready pool owned by the caller

    Raises:
        asyncio.TimeoutError: If connecting takes longer than CONNECT_TIMEOUT_SECONDS
        RuntimeError: If the health check fails
    """
    try:
        pool = await asyncio.wait_for(
            asyncpg.create_pool(
                str(config.db_dsn),
                min_size=config.db_pool_min,
                max_size=config.db_pool_max,
            ),
            timeout=CONNECT_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        raise asyncio.TimeoutError(
            f"Database connection timed out after {CONNECT_TIMEOUT_SECONDS:.0f} seconds"
        )

    try:
        async with pool.acquire() as conn:
            result = await conn.fetchval("SELECT 1")
            if result != 1:
                raise RuntimeError(f"Health check failed: expected 1, got {result}")
    except Exception as e:
        await pool.close()
        raise RuntimeError(f"Database health check failed: {e}") from e

    logger.info(f"Database pool ready: min={config.db_pool_min}, max={config.db_pool_max}")
    return pool


async def close_pool(pool: asyncpg.Pool) -> None:
    """Close a pool, terminating it if in-flight connections outlive the timeout."""
    try:
        await asyncio.wait_for(pool.close(), timeout=CLOSE_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning(
            f"Pool close timed out after {CLOSE_TIMEOUT_SECONDS:.0f} seconds; terminating"
        )
        pool.terminate()
