"""Customer-linking flow run once at first checkout completion."""

import logging
from typing import Optional

from paysync.db.models import MembershipProfile, PaymentProvider
from paysync.db.repository import ProfileRepository
from paysync.errors import MissingUserIdError, ProviderAPIError
from paysync.payments.clients import LemonSqueezyClient

logger = logging.getLogger(__name__)


class CustomerLinker:
    """Associates an application user with a provider customer.

    This is the only path that maps a user id to a provider customer id;
    subscription events arriving later carry only the customer id and
    resolve through this stored link.
    """

    def __init__(
        self,
        repository: ProfileRepository,
        lemonsqueezy_client: Optional[LemonSqueezyClient] = None,
    ):
        self._repository = repository
        self._lemonsqueezy_client = lemonsqueezy_client

    async def link_customer(
        self,
        user_id: Optional[str],
        subscription_id: str,
        provider_customer_id: str,
        provider: PaymentProvider,
    ) -> MembershipProfile:
        """
        Store provider customer id, subscription id and provider on the user's profile.

        Raises:
            MissingUserIdError: If the order carried no user id
        """
        if not user_id:
            raise MissingUserIdError(
                f"No user id in {provider.value} order for customer {provider_customer_id}"
            )

        portal_url = None
        if provider is PaymentProvider.LEMONSQUEEZY:
            portal_url = await self._portal_url(provider_customer_id)

        profile = await self._repository.link_customer(
            user_id=user_id,
            provider=provider,
            customer_id=provider_customer_id,
            subscription_id=subscription_id,
            customer_portal_url=portal_url,
        )

        logger.info(
            f"Linked user {user_id} to {provider.value} customer {provider_customer_id} "
            f"(subscription {subscription_id})"
        )
        return profile

    async def _portal_url(self, customer_id: str) -> Optional[str]:
        # Portal URL is a convenience; linking proceeds without it
        if self._lemonsqueezy_client is None:
            return None
        try:
            return await self._lemonsqueezy_client.get_customer_portal_url(customer_id)
        except ProviderAPIError as e:
            logger.warning(f"Could not get customer portal URL for {customer_id}: {e}")
            return None
