"""Application entry point."""

import asyncio
import logging
import sys

from paysync.config import get_config
from paysync.db.pool import close_pool, create_pool
from paysync.db.schema.migrate import migrate, schema_version
from paysync.payments.server import run_server


async def boot() -> None:
    """
    Boot sequence: load config → open pool → apply migrations → serve webhooks.

    The pool opened here is handed to migrations and the server, and closed
    once the server returns.

    Raises:
        SystemExit: On configuration or database errors
    """
    logger = logging.getLogger(__name__)

    try:
        config = get_config()
        logger.info(f"Configuration loaded: env={config.env}")

        pool = await create_pool(config)
    except Exception as e:
        logger.error(f"Boot sequence failed: {e}")
        raise SystemExit(1) from e

    try:
        applied = await migrate(pool)
        logger.info(f"Schema version {await schema_version(pool)} ({applied} migration(s) applied)")
    except Exception as e:
        logger.error(f"Boot sequence failed: {e}")
        await close_pool(pool)
        raise SystemExit(1) from e

    try:
        await run_server(config, pool)
    finally:
        await close_pool(pool)


def main() -> None:
    """Main entry point with logging configuration."""
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(boot())
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(0)
    except SystemExit:
        raise
    except Exception as e:
        logging.error(f"Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
