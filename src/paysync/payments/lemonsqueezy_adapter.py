"""Commerce-processor (Lemon Squeezy) adapter."""

import re
from typing import Any, Optional

from paysync.config import LemonSqueezyOptions
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
from paysync.payments.clients import LemonSqueezyClient


SUBSCRIPTION_EVENTS: dict[str, EventKind] = {
    "subscription_created": EventKind.CREATED,
    "subscription_updated": EventKind.UPDATED,
    "subscription_cancelled": EventKind.CANCELLED,
    "subscription_resumed": EventKind.RESUMED,
    "subscription_expired": EventKind.EXPIRED,
    "subscription_paused": EventKind.PAUSED,
    "subscription_unpaused": EventKind.RESUMED,
}

ORDER_CREATED = "order_created"

CREDIT_MARKERS = ("credit", "token")
# Leading integer before the unit word, e.g. "10 Credits", "250 tokens"
CREDIT_AMOUNT_PATTERN = re.compile(r"^(\d+)\s*(?:credits?|tokens?)\b", re.IGNORECASE)


def tier_from_name(*names: Optional[str]) -> Membership:
    """Pro when any of the display names mentions "pro" (case-insensitive), else free."""
    return Membership.PRO if any("pro" in (name or "").lower() for name in names) else Membership.FREE


def credit_amount(
    variant_name: str,
    variant_id: Any,
    credit_variants: dict[str, int],
) -> Optional[int]:
    """
    Work out how many credits a one-time line item grants.

    Args:
        variant_name: Human-readable variant name
        variant_id: Provider variant id (int or str)
        credit_variants: Fallback table of variant id -> credit amount

    Returns:
        Positive credit amount, or None when the item is not a credits pack
        or no amount can be determined
    """
    name = (variant_name or "").strip()
    if not any(marker in name.lower() for marker in CREDIT_MARKERS):
        return None

    match = CREDIT_AMOUNT_PATTERN.match(name)
    if match:
        amount = int(match.group(1))
    else:
        amount = credit_variants.get(str(variant_id), 0) if variant_id is not None else 0

    return amount if amount > 0 else None


def _custom_data(payload: dict[str, Any]) -> dict[str, Any]:
    meta_custom = (payload.get("meta") or {}).get("custom_data")
    if isinstance(meta_custom, dict):
        return meta_custom
    attributes = (payload.get("data") or {}).get("attributes") or {}
    custom = attributes.get("custom_data")
    return custom if isinstance(custom, dict) else {}


class LemonSqueezyAdapter(ProviderAdapter):
    """Maps Lemon Squeezy JSON:API webhook documents."""

    provider = PaymentProvider.LEMONSQUEEZY

    def __init__(self, client: LemonSqueezyClient, options: LemonSqueezyOptions):
        self._client = client
        self._options = options

    def event_type(self, payload: dict[str, Any]) -> str:
        return (payload.get("meta") or {}).get("event_name") or ""

    def classify(self, payload: dict[str, Any]) -> CanonicalEvent:
        event_type = self.event_type(payload)
        data = payload.get("data") or {}

        if event_type in SUBSCRIPTION_EVENTS:
            return self.subscription_event(data, SUBSCRIPTION_EVENTS[event_type])
        if event_type == ORDER_CREATED:
            return self._order_event(payload)

        return Ignored(self.provider, event_type, "event type not handled")

    def subscription_event(
        self,
        data: dict[str, Any],
        kind: EventKind,
    ) -> CanonicalSubscriptionEvent:
        """Map a subscription resource to a canonical event."""
        attributes = data.get("attributes") or {}
        subscription_id = data.get("id")
        customer_id = attributes.get("customer_id")
        if subscription_id is None or customer_id is None:
            raise ClassificationError("LemonSqueezy subscription missing id or customer_id")

        variant_name = attributes.get("variant_name") or ""
        product_name = attributes.get("product_name") or ""
        classifier = variant_name or product_name

        return CanonicalSubscriptionEvent(
            provider=self.provider,
            event_kind=kind,
            subscription_id=str(subscription_id),
            provider_customer_id=str(customer_id),
            product_classifier=classifier,
            raw_status=attributes.get("status") or "",
            requested_tier=tier_from_name(variant_name, product_name),
        )

    def _order_event(self, payload: dict[str, Any]) -> CanonicalEvent:
        data = payload.get("data") or {}
        attributes = data.get("attributes") or {}
        order_id = data.get("id")
        customer_id = attributes.get("customer_id")
        if order_id is None or customer_id is None:
            raise ClassificationError("LemonSqueezy order missing id or customer_id")

        custom = _custom_data(payload)
        user_id = custom.get("userId") or custom.get("user_id") or attributes.get("user_id")
        item = attributes.get("first_order_item") or {}
        variant_name = item.get("variant_name") or ""

        if item.get("subscription_id"):
            return CanonicalOrderEvent(
                provider=self.provider,
                order_id=str(order_id),
                provider_customer_id=str(customer_id),
                user_id=str(user_id) if user_id else None,
                line_item_classifier=variant_name,
                quantity_or_amount=0,
                is_subscription_order=True,
                subscription_id=str(item["subscription_id"]),
            )

        amount = credit_amount(variant_name, item.get("variant_id"), self._options.credit_variants)
        if amount is None:
            return Ignored(self.provider, ORDER_CREATED, f"line item {variant_name!r} is not a credits pack")

        return CanonicalOrderEvent(
            provider=self.provider,
            order_id=str(order_id),
            provider_customer_id=str(customer_id),
            user_id=str(user_id) if user_id else None,
            line_item_classifier=variant_name,
            quantity_or_amount=amount,
            is_subscription_order=False,
        )

    async def subscription_snapshot(
        self,
        subscription_id: str,
        event_kind: EventKind,
    ) -> CanonicalSubscriptionEvent:
        document = await self._client.get_subscription(subscription_id)
        return self.subscription_event(document.get("data") or {}, event_kind)
