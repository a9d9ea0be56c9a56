"""Webhook handling: verify, classify, apply, respond."""

import logging
from dataclasses import dataclass
from typing import Optional

from aiohttp import web

from paysync.config import AppConfig
from paysync.db.models import PaymentProvider
from paysync.db.repository import ProfileRepository
from paysync.errors import DuplicateOrderError, MissingUserIdError, SignatureError
from paysync.payments.base import (
    CanonicalEvent,
    CanonicalOrderEvent,
    CanonicalSubscriptionEvent,
    EventKind,
    Ignored,
    ProviderAdapter,
)
from paysync.payments.clients import LemonSqueezyClient, StripeClient
from paysync.payments.ledger import CreditLedger
from paysync.payments.lemonsqueezy_adapter import LemonSqueezyAdapter
from paysync.payments.linking import CustomerLinker
from paysync.payments.reconcile import ReconciliationEngine
from paysync.payments.signatures import (
    LemonSqueezySignatureVerifier,
    SignatureVerifier,
    StripeSignatureVerifier,
)
from paysync.payments.stripe_adapter import StripeAdapter

logger = logging.getLogger(__name__)


@dataclass
class WebhookPipeline:
    """Everything needed to process one provider's deliveries."""

    verifier: SignatureVerifier
    secret: str
    adapter: ProviderAdapter
    engine: ReconciliationEngine
    linker: CustomerLinker
    ledger: CreditLedger

    @property
    def provider(self) -> PaymentProvider:
        return self.adapter.provider


def build_pipelines(
    config: AppConfig,
    repository: ProfileRepository,
) -> dict[PaymentProvider, WebhookPipeline]:
    """Wire verifiers, clients, adapters and appliers for both providers."""
    stripe_options = config.stripe_options()
    lemonsqueezy_options = config.lemonsqueezy_options()

    stripe_client = StripeClient(stripe_options)
    lemonsqueezy_client = LemonSqueezyClient(lemonsqueezy_options)

    engine = ReconciliationEngine(repository)
    linker = CustomerLinker(repository, lemonsqueezy_client)
    ledger = CreditLedger(repository)

    return {
        PaymentProvider.STRIPE: WebhookPipeline(
            verifier=StripeSignatureVerifier(),
            secret=stripe_options.webhook_secret,
            adapter=StripeAdapter(stripe_client, stripe_options),
            engine=engine,
            linker=linker,
            ledger=ledger,
        ),
        PaymentProvider.LEMONSQUEEZY: WebhookPipeline(
            verifier=LemonSqueezySignatureVerifier(),
            secret=lemonsqueezy_options.webhook_secret,
            adapter=LemonSqueezyAdapter(lemonsqueezy_client, lemonsqueezy_options),
            engine=engine,
            linker=linker,
            ledger=ledger,
        ),
    }


async def handle_webhook(
    payload: bytes,
    sig_header: Optional[str],
    pipeline: WebhookPipeline,
) -> web.Response:
    """Handle and verify one webhook delivery.

    Signature failures are answered before any business logic runs. Handler
    failures become 400 so the provider's own retry policy redelivers; no
    error detail beyond a short string is returned.

    Args:
        payload: Raw request body bytes
        sig_header: Provider signature header value
        pipeline: Provider pipeline to run

    Returns:
        aiohttp.web.Response (200 {"received": true}, or 400)
    """
    provider = pipeline.provider.value

    try:
        verified = pipeline.verifier.verify(payload, sig_header, pipeline.secret)
    except SignatureError as e:
        logger.error(f"[{provider}] webhook rejected: {e}")
        return web.Response(status=400, text=f"Webhook Error: {e}")

    event_type = pipeline.adapter.event_type(verified)
    logger.info(f"[{provider}] received webhook: {event_type}")

    try:
        event = pipeline.adapter.classify(verified)
        event = await pipeline.adapter.hydrate(event)
        await process_event(event, pipeline)
    except Exception as e:
        logger.exception(f"[{provider}] error processing webhook {event_type}: {e}")
        return web.Response(status=400, text="Webhook handler failed")

    return web.json_response({"received": True})


async def process_event(event: CanonicalEvent, pipeline: WebhookPipeline) -> None:
    """Route a canonical event to the engine, the linking flow or the ledger."""
    if isinstance(event, Ignored):
        logger.info(f"[{event.provider.value}] ignored {event.event_type or '<none>'}: {event.reason}")
    elif isinstance(event, CanonicalSubscriptionEvent):
        await pipeline.engine.apply(event)
    elif event.is_subscription_order:
        await _handle_subscription_order(event, pipeline)
    else:
        await _handle_credits_order(event, pipeline)


async def _handle_subscription_order(
    order: CanonicalOrderEvent,
    pipeline: WebhookPipeline,
) -> None:
    """Link the customer, then reconcile the new subscription's current state."""
    try:
        await pipeline.linker.link_customer(
            user_id=order.user_id,
            subscription_id=order.subscription_id,
            provider_customer_id=order.provider_customer_id,
            provider=order.provider,
        )
    except MissingUserIdError as e:
        # Dropped, not retried: a redelivery would carry the same custom data
        logger.warning(f"[{order.provider.value}] order {order.order_id} skipped: {e}")
        return

    snapshot = await pipeline.adapter.subscription_snapshot(order.subscription_id, EventKind.CREATED)
    await pipeline.engine.apply(snapshot)


async def _handle_credits_order(
    order: CanonicalOrderEvent,
    pipeline: WebhookPipeline,
) -> None:
    if not order.user_id:
        logger.warning(
            f"[{order.provider.value}] credits order {order.order_id} has no user id - skipping"
        )
        return

    try:
        await pipeline.ledger.apply_credits(
            user_id=order.user_id,
            amount=order.quantity_or_amount,
            external_order_id=order.order_id,
            provider=order.provider,
        )
    except DuplicateOrderError as e:
        logger.info(f"[{order.provider.value}] {e} - acknowledging replay")
