"""Canonical webhook event schemas and the provider adapter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from paysync.db.models import Membership, PaymentProvider


class EventKind(str, Enum):
    """Subscription lifecycle transition reported by a provider."""

    CREATED = "created"
    UPDATED = "updated"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PAUSED = "paused"
    RESUMED = "resumed"


# Canonical event schemas
@dataclass(frozen=True)
class CanonicalSubscriptionEvent:
    """Provider-neutral view of one subscription lifecycle delivery."""

    provider: PaymentProvider
    event_kind: EventKind
    subscription_id: str
    provider_customer_id: str
    product_classifier: str  # price/product/variant id or display name
    raw_status: str  # provider status string, unnormalized
    requested_tier: Membership | None = None  # None until the adapter can tell


@dataclass(frozen=True)
class CanonicalOrderEvent:
    """Provider-neutral view of a checkout/order completion."""

    provider: PaymentProvider
    order_id: str
    provider_customer_id: str
    user_id: str | None  # absent when checkout custom data lacks it
    line_item_classifier: str
    quantity_or_amount: int  # credits granted; 0 for subscription orders
    is_subscription_order: bool
    subscription_id: str | None = None
    checkout_id: str | None = None  # hosted checkout the order came from, if any


@dataclass(frozen=True)
class Ignored:
    """Delivery outside the allow-list, or one that maps to nothing."""

    provider: PaymentProvider
    event_type: str
    reason: str


CanonicalEvent = Union[CanonicalSubscriptionEvent, CanonicalOrderEvent, Ignored]


class ProviderAdapter(ABC):
    """Translates one provider's native webhook payloads into canonical events."""

    provider: PaymentProvider

    @abstractmethod
    def event_type(self, payload: dict[str, Any]) -> str:
        """
        Extract the provider event-type string from a verified payload.

        Returns:
            Event type, or "" when the payload has none
        """
        pass

    @abstractmethod
    def classify(self, payload: dict[str, Any]) -> CanonicalEvent:
        """
        Map a verified payload to a canonical event without any I/O.

        Args:
            payload: Parsed JSON body that already passed signature checks

        Returns:
            CanonicalSubscriptionEvent, CanonicalOrderEvent or Ignored

        Raises:
            ClassificationError: If an allow-listed event is missing required fields
        """
        pass

    async def hydrate(self, event: CanonicalEvent) -> CanonicalEvent:
        """
        Complete an event with provider lookups the payload did not carry.

        The default implementation returns the event unchanged.
        """
        return event

    @abstractmethod
    async def subscription_snapshot(
        self,
        subscription_id: str,
        event_kind: EventKind,
    ) -> CanonicalSubscriptionEvent:
        """
        Fetch a subscription from the provider as a canonical event.

        Used right after checkout completion, when only the subscription id
        is known.
        """
        pass
