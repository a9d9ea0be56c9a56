"""Reconciliation engine: canonical subscription event -> stored membership."""

import logging

from paysync.db.models import Membership
from paysync.db.repository import ProfileRepository
from paysync.errors import UnknownCustomerError
from paysync.payments.base import CanonicalSubscriptionEvent
from paysync.payments.resolver import resolve_event

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Applies subscription lifecycle events to profiles.

    The stored tier is derived only from the event's own status, never from
    the profile's current one, so a replayed delivery writes the same values
    again (last write wins). There is no sequence-number ordering: if a
    provider delivers a stale event last, the stale state is kept until the
    next delivery.
    """

    def __init__(self, repository: ProfileRepository):
        self._repository = repository

    async def apply(self, event: CanonicalSubscriptionEvent) -> Membership:
        """
        Resolve the tier for an event and store it on the linked profile.

        Args:
            event: Canonical subscription event with a requested tier

        Returns:
            Membership tier now stored on the profile

        Raises:
            ClassificationError: If the event has no requested tier
            UnknownCustomerError: If no profile is linked to the customer;
                nothing is written
        """
        membership = resolve_event(event)

        profile = await self._repository.update_subscription_state(
            provider=event.provider,
            customer_id=event.provider_customer_id,
            membership=membership,
            subscription_id=event.subscription_id,
        )
        if profile is None:
            raise UnknownCustomerError(event.provider.value, event.provider_customer_id)

        logger.info(
            f"Reconciled {event.provider.value} subscription {event.subscription_id} "
            f"({event.event_kind.value}, status={event.raw_status}) for user "
            f"{profile.user_id}: membership={membership.value}"
        )
        return membership
