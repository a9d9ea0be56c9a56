"""Card-processor (Stripe) adapter."""

import dataclasses
import logging
from typing import Any, Optional

from paysync.config import StripeOptions
from paysync.db.models import Membership, PaymentProvider
from paysync.errors import ClassificationError
from paysync.payments.base import (
    CanonicalEvent,
    CanonicalOrderEvent,
    CanonicalSubscriptionEvent,
    EventKind,
    Ignored,
    ProviderAdapter,
)
from paysync.payments.clients import StripeClient

logger = logging.getLogger(__name__)


SUBSCRIPTION_EVENTS: dict[str, EventKind] = {
    "customer.subscription.created": EventKind.CREATED,
    "customer.subscription.updated": EventKind.UPDATED,
    "customer.subscription.deleted": EventKind.EXPIRED,
    "customer.subscription.paused": EventKind.PAUSED,
    "customer.subscription.resumed": EventKind.RESUMED,
}

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"


def _id_of(value: Any) -> Optional[str]:
    """Return the id of a Stripe reference that may be expanded or not."""
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get("id")
    return str(value)


def tier_from_metadata(metadata: Optional[dict[str, Any]]) -> Membership:
    """
    Read the membership tier from product metadata.

    Raises:
        ClassificationError: If metadata.membership is not "free" or "pro"
    """
    value = (metadata or {}).get("membership")
    try:
        return Membership(value)
    except ValueError:
        raise ClassificationError(f"Invalid membership type in product metadata: {value}")


class StripeAdapter(ProviderAdapter):
    """Maps Stripe events (subscriptions, checkout sessions, payment intents)."""

    provider = PaymentProvider.STRIPE

    def __init__(self, client: StripeClient, options: StripeOptions):
        self._client = client
        self._options = options

    def event_type(self, payload: dict[str, Any]) -> str:
        return payload.get("type") or ""

    def classify(self, payload: dict[str, Any]) -> CanonicalEvent:
        event_type = self.event_type(payload)
        obj = (payload.get("data") or {}).get("object") or {}

        if event_type in SUBSCRIPTION_EVENTS:
            return self.subscription_event(obj, SUBSCRIPTION_EVENTS[event_type])
        if event_type == CHECKOUT_COMPLETED:
            return self._checkout_event(obj)
        if event_type == PAYMENT_INTENT_SUCCEEDED:
            return self._payment_intent_event(obj)

        return Ignored(self.provider, event_type, "event type not handled")

    def subscription_event(
        self,
        subscription: dict[str, Any],
        kind: EventKind,
    ) -> CanonicalSubscriptionEvent:
        """Map a Stripe subscription object to a canonical event."""
        subscription_id = subscription.get("id")
        customer_id = _id_of(subscription.get("customer"))
        if not subscription_id or not customer_id:
            raise ClassificationError("Stripe subscription missing id or customer")

        items = (subscription.get("items") or {}).get("data") or []
        if not items:
            raise ClassificationError(f"Stripe subscription {subscription_id} has no items")

        product = (items[0].get("price") or {}).get("product")
        product_id = _id_of(product)
        if not product_id:
            raise ClassificationError(f"Stripe subscription {subscription_id} has no product")

        # Tier is known up front only when the product was expanded in the payload
        requested_tier = None
        if isinstance(product, dict) and "metadata" in product:
            requested_tier = tier_from_metadata(product["metadata"])

        return CanonicalSubscriptionEvent(
            provider=self.provider,
            event_kind=kind,
            subscription_id=subscription_id,
            provider_customer_id=customer_id,
            product_classifier=product_id,
            raw_status=subscription.get("status") or "",
            requested_tier=requested_tier,
        )

    def _checkout_event(self, session: dict[str, Any]) -> CanonicalEvent:
        mode = session.get("mode")
        user_id = session.get("client_reference_id") or None
        customer_id = _id_of(session.get("customer")) or ""

        if mode == "subscription":
            subscription_id = _id_of(session.get("subscription"))
            if not subscription_id:
                raise ClassificationError("Subscription checkout without subscription id")
            return CanonicalOrderEvent(
                provider=self.provider,
                order_id=session["id"],
                provider_customer_id=customer_id,
                user_id=user_id,
                line_item_classifier=subscription_id,
                quantity_or_amount=0,
                is_subscription_order=True,
                subscription_id=subscription_id,
                checkout_id=session["id"],
            )

        if mode == "payment":
            payment_intent_id = _id_of(session.get("payment_intent"))
            if not payment_intent_id:
                return Ignored(self.provider, CHECKOUT_COMPLETED, "payment checkout without payment intent")

            # Expanded line items make the lookup in hydrate() unnecessary
            line_items = (session.get("line_items") or {}).get("data") or []
            quantity, price_id = 0, ""
            if line_items:
                quantity = line_items[0].get("quantity") or 0
                price_id = _id_of(line_items[0].get("price") or {}) or ""
                if self._options.price_id_credits and price_id != self._options.price_id_credits:
                    return Ignored(self.provider, CHECKOUT_COMPLETED, f"price {price_id} is not a credits pack")
                if quantity <= 0:
                    return Ignored(self.provider, CHECKOUT_COMPLETED, f"non-positive quantity {quantity}")

            return CanonicalOrderEvent(
                provider=self.provider,
                order_id=payment_intent_id,
                provider_customer_id=customer_id,
                user_id=user_id,
                line_item_classifier=price_id,
                quantity_or_amount=quantity,
                is_subscription_order=False,
                checkout_id=session["id"],
            )

        return Ignored(self.provider, CHECKOUT_COMPLETED, f"checkout mode {mode} not handled")

    def _payment_intent_event(self, intent: dict[str, Any]) -> CanonicalEvent:
        metadata = intent.get("metadata") or {}
        if metadata.get("type") != "credits" or not metadata.get("userId") or not metadata.get("amount"):
            return Ignored(self.provider, PAYMENT_INTENT_SUCCEEDED, "not a credits payment")

        try:
            amount = int(metadata["amount"])
        except (TypeError, ValueError):
            raise ClassificationError(f"Invalid credits amount in metadata: {metadata['amount']}")
        if amount <= 0:
            return Ignored(self.provider, PAYMENT_INTENT_SUCCEEDED, f"non-positive credits amount {amount}")

        return CanonicalOrderEvent(
            provider=self.provider,
            order_id=intent["id"],
            provider_customer_id=_id_of(intent.get("customer")) or "",
            user_id=metadata["userId"],
            line_item_classifier="credits",
            quantity_or_amount=amount,
            is_subscription_order=False,
        )

    async def hydrate(self, event: CanonicalEvent) -> CanonicalEvent:
        if isinstance(event, CanonicalSubscriptionEvent) and event.requested_tier is None:
            logger.debug(f"Fetching product {event.product_classifier} for membership tier")
            product = await self._client.get_product(event.product_classifier)
            return dataclasses.replace(
                event, requested_tier=tier_from_metadata(product.get("metadata"))
            )

        if (
            isinstance(event, CanonicalOrderEvent)
            and not event.is_subscription_order
            and event.checkout_id
            and event.quantity_or_amount == 0
        ):
            line_items = await self._client.list_line_items(event.checkout_id)
            if not line_items:
                return Ignored(self.provider, CHECKOUT_COMPLETED, "checkout has no line items")

            price_id = _id_of(line_items[0].get("price") or {}) or ""
            if self._options.price_id_credits and price_id != self._options.price_id_credits:
                return Ignored(self.provider, CHECKOUT_COMPLETED, f"price {price_id} is not a credits pack")

            quantity = line_items[0].get("quantity") or 0
            if quantity <= 0:
                return Ignored(self.provider, CHECKOUT_COMPLETED, f"non-positive quantity {quantity}")

            return dataclasses.replace(
                event,
                line_item_classifier=price_id,
                quantity_or_amount=quantity,
            )

        return event

    async def subscription_snapshot(
        self,
        subscription_id: str,
        event_kind: EventKind,
    ) -> CanonicalSubscriptionEvent:
        subscription = await self._client.get_subscription(subscription_id)
        return await self.hydrate(self.subscription_event(subscription, event_kind))
