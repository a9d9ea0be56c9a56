"""Lightweight HTTP server exposing one webhook endpoint per provider."""

import asyncio
import logging
import signal
from typing import Optional

import asyncpg
from aiohttp import web

from paysync.config import AppConfig, get_config
from paysync.db.models import PaymentProvider
from paysync.db.pool import close_pool, create_pool
from paysync.db.repository import PostgresProfileRepository
from paysync.payments.webhooks import WebhookPipeline, build_pipelines, handle_webhook

logger = logging.getLogger(__name__)

ROUTES = {
    PaymentProvider.STRIPE: "/webhooks/stripe",
    PaymentProvider.LEMONSQUEEZY: "/webhooks/lemonsqueezy",
}


async def _dispatch(request: web.Request, provider: PaymentProvider) -> web.Response:
    pipeline: WebhookPipeline = request.app["pipelines"][provider]

    # Signature is computed over the exact raw bytes
    payload = await request.read()
    sig_header = request.headers.get(pipeline.verifier.header_name)

    return await handle_webhook(payload, sig_header, pipeline)


async def stripe_webhook(request: web.Request) -> web.Response:
    """Handle POST /webhooks/stripe."""
    return await _dispatch(request, PaymentProvider.STRIPE)


async def lemonsqueezy_webhook(request: web.Request) -> web.Response:
    """Handle POST /webhooks/lemonsqueezy."""
    return await _dispatch(request, PaymentProvider.LEMONSQUEEZY)


def create_app(pipelines: dict[PaymentProvider, WebhookPipeline]) -> web.Application:
    """
    Create aiohttp application with the webhook routes.

    Args:
        pipelines: Provider pipelines, typically from build_pipelines()

    Returns:
        Configured aiohttp Application
    """
    app = web.Application()
    app["pipelines"] = pipelines
    app.router.add_post(ROUTES[PaymentProvider.STRIPE], stripe_webhook)
    app.router.add_post(ROUTES[PaymentProvider.LEMONSQUEEZY], lemonsqueezy_webhook)
    return app


async def run_server(
    config: AppConfig,
    pool: asyncpg.Pool,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """
    Run webhook server until shutdown signal.

    The pool stays open on return; whoever created it closes it.

    Args:
        config: Application config (port, provider settings)
        pool: Open database pool backing the profile repository
        shutdown_event: Optional event to signal shutdown
    """
    repository = PostgresProfileRepository(pool)
    app = create_app(build_pipelines(config, repository))

    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, "0.0.0.0", config.webhook_server_port)
    await site.start()

    logger.info(f"Webhook server listening on port {config.webhook_server_port}")

    try:
        if shutdown_event:
            await shutdown_event.wait()
        else:
            await asyncio.Event().wait()
    finally:
        logger.info("Shutting down webhook server...")
        await runner.cleanup()


async def serve(config: AppConfig, shutdown_event: Optional[asyncio.Event] = None) -> None:
    """Open a pool, run the webhook server, and close the pool on shutdown."""
    pool = await create_pool(config)
    try:
        await run_server(config, pool, shutdown_event)
    finally:
        await close_pool(pool)


def main() -> None:
    """Run webhook server as standalone process.

    Blocks until SIGTERM/SIGINT received.
    """
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    shutdown_event = asyncio.Event()

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        loop.run_until_complete(serve(config, shutdown_event=shutdown_event))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        loop.close()
        logger.info("Webhook server stopped")


if __name__ == "__main__":
    main()
