"""Forward-only migration runner and schema version helper."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import asyncpg

from paysync.config import get_config
from paysync.db.models import Table
from paysync.db.pool import close_pool, create_pool

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

# pg advisory lock key shared by every migration runner of this schema
MIGRATION_LOCK_ID = 7_340_211


async def _ensure_migrations_table(conn: asyncpg.Connection) -> None:
    await conn.execute(f"""
        CREATE TABLE IF NOT EXISTS {Table.SCHEMA_MIGRATIONS} (
            version INTEGER PRIMARY KEY,
            filename TEXT NOT NULL DEFAULT '',
            applied_at TIMESTAMPTZ DEFAULT now()
        )
    """)


def pending_migrations(migrations_dir: Path, applied: set[int]) -> list[tuple[int, Path]]:
    """
    List migration files not yet applied, ordered by version.

    Files are named "<version>_<description>.sql"; files without a numeric
    prefix are skipped.

    Returns:
        List of (version, path) tuples sorted by version
    """
    pending = []

    for sql_file in migrations_dir.glob("*.sql"):
        try:
            version = int(sql_file.stem.split("_")[0])
        except (ValueError, IndexError):
            logger.warning(f"Skipping migration file without version prefix: {sql_file.name}")
            continue

        if version not in applied:
            pending.append((version, sql_file))

    return sorted(pending, key=lambda x: x[0])


async def migrate(pool: asyncpg.Pool) -> int:
    """
    Apply all pending migrations in order, each in its own transaction.

    Uses an advisory lock so concurrent runners cannot interleave.

    Args:
        pool: Open connection pool

    Returns:
        int: Number of migrations applied in this run

    Raises:
        FileNotFoundError: If migrations directory not found
        RuntimeError: If another runner holds the migration lock
    """
    if not MIGRATIONS_DIR.is_dir():
        raise FileNotFoundError(f"Migrations directory not found: {MIGRATIONS_DIR}")

    applied_count = 0

    async with pool.acquire() as conn:
        if not await conn.fetchval("SELECT pg_try_advisory_lock($1)", MIGRATION_LOCK_ID):
            raise RuntimeError("Another migration is currently running")

        try:
            await _ensure_migrations_table(conn)
            rows = await conn.fetch(f"SELECT version FROM {Table.SCHEMA_MIGRATIONS}")
            applied = {row["version"] for row in rows}

            for version, sql_path in pending_migrations(MIGRATIONS_DIR, applied):
                async with conn.transaction():
                    # Argument-less execute runs a multi-statement script
                    await conn.execute(sql_path.read_text(encoding="utf-8"))
                    await conn.execute(
                        f"INSERT INTO {Table.SCHEMA_MIGRATIONS} (version, filename) "
                        "VALUES ($1, $2)",
                        version,
                        sql_path.name,
                    )
                applied_count += 1
                logger.info(f"Applied migration {version:03d}: {sql_path.name}")

        finally:
            await conn.execute("SELECT pg_advisory_unlock($1)", MIGRATION_LOCK_ID)

    return applied_count


async def schema_version(pool: asyncpg.Pool) -> Optional[int]:
    """Return the highest applied migration version, or None."""

    async with pool.acquire() as conn:
        await _ensure_migrations_table(conn)
        return await conn.fetchval(f"SELECT MAX(version) FROM {Table.SCHEMA_MIGRATIONS}")


def main() -> None:
    """CLI entry point for running migrations."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    async def _run():
        pool = await create_pool(get_config())
        try:
            applied = await migrate(pool)
            version = await schema_version(pool)
        finally:
            await close_pool(pool)

        if applied == 0:
            print(f"No pending migrations. Current schema version: {version}")
        else:
            print(f"Applied {applied} migration(s). Current schema version: {version}")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
