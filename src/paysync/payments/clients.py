"""Outbound provider API clients.

Each client is built from an explicit options struct; there is no module-level
API key or shared client instance. Calls are single-shot: a failure surfaces
to the caller and is never retried here.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp
import stripe

from paysync.config import LemonSqueezyOptions, StripeOptions
from paysync.errors import ProviderAPIError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """Hosted checkout created for a user."""

    checkout_url: str
    checkout_id: str


class StripeClient:
    """Thin wrapper over the Stripe SDK, passing the API key per request.

    The SDK is synchronous, so calls run in a worker thread to keep the
    event loop free for other deliveries.
    """

    def __init__(self, options: StripeOptions):
        self._options = options

    def _require_key(self) -> str:
        if not self._options.secret_key:
            raise ValueError("stripe_secret not configured")
        return self._options.secret_key

    async def create_checkout_session(
        self,
        price_id: str,
        mode: str,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        quantity: int = 1,
    ) -> CheckoutSession:
        """
        Create a Stripe Checkout Session.

        The user id travels as client_reference_id so checkout.session.completed
        can link the Stripe customer to the user.

        Args:
            price_id: Stripe price id
            mode: "subscription" or "payment"
            email: Prefilled customer email
            user_id: Application user id
            success_url: Redirect after payment
            cancel_url: Redirect on cancel
            quantity: Line-item quantity

        Returns:
            CheckoutSession with the hosted URL and session id

        Raises:
            stripe.StripeError: On Stripe API errors
            ProviderAPIError: If Stripe returns a session without a URL
        """
        api_key = self._require_key()
        session = await asyncio.to_thread(
            stripe.checkout.Session.create,
            api_key=api_key,
            mode=mode,
            line_items=[{"price": price_id, "quantity": quantity}],
            success_url=success_url,
            cancel_url=cancel_url,
            client_reference_id=user_id or None,
            customer_email=email,
        )

        if not session.url:
            raise ProviderAPIError("Failed to create checkout session")

        logger.info(f"Created Stripe checkout session {session.id} for user {user_id}")
        return CheckoutSession(checkout_url=session.url, checkout_id=session.id)

    async def create_billing_portal_session(self, customer_id: str) -> str:
        """Create a billing portal session and return its URL."""
        api_key = self._require_key()
        portal = await asyncio.to_thread(
            stripe.billing_portal.Session.create,
            api_key=api_key,
            customer=customer_id,
            return_url=f"{self._options.app_url}/dashboard",
        )
        return portal.url

    async def get_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Retrieve a subscription object."""
        return await asyncio.to_thread(
            stripe.Subscription.retrieve,
            subscription_id,
            api_key=self._require_key(),
        )

    async def get_customer(self, customer_id: str) -> dict[str, Any]:
        """Retrieve a customer object."""
        return await asyncio.to_thread(
            stripe.Customer.retrieve,
            customer_id,
            api_key=self._require_key(),
        )

    async def get_product(self, product_id: str) -> dict[str, Any]:
        """Retrieve a product object (membership tier lives in its metadata)."""
        return await asyncio.to_thread(
            stripe.Product.retrieve,
            product_id,
            api_key=self._require_key(),
        )

    async def list_line_items(self, session_id: str) -> list[dict[str, Any]]:
        """List the line items of a checkout session."""
        items = await asyncio.to_thread(
            stripe.checkout.Session.list_line_items,
            session_id,
            api_key=self._require_key(),
        )
        return list(items["data"])


class LemonSqueezyClient:
    """JSON:API client for the Lemon Squeezy REST API over aiohttp."""

    def __init__(self, options: LemonSqueezyOptions):
        self._options = options

    async def _request(
        self,
        method: str,
        endpoint: str,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        if not self._options.api_key:
            raise ValueError("lemonsqueezy_api_key not configured")

        url = f"{self._options.api_base_url}{endpoint}"
        headers = {
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/vnd.api+json",
            "Authorization": f"Bearer {self._options.api_key}",
        }
        timeout = aiohttp.ClientTimeout(total=self._options.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, json=body, headers=headers) as resp:
                    if resp.status >= 400:
                        raise ProviderAPIError(
                            f"LemonSqueezy API error: {resp.status} {resp.reason}",
                            status=resp.status,
                        )
                    return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderAPIError(f"LemonSqueezy API request failed: {e}") from e

    async def create_checkout_session(
        self,
        variant_id: str,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
        success_url: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Create a hosted checkout for a variant.

        The user id is stored in the checkout custom data and comes back on
        order_created as meta.custom_data.userId.

        Raises:
            ProviderAPIError: On transport errors or non-2xx responses
        """
        checkout_data: dict[str, Any] = {"custom": {"userId": user_id}}
        if email:
            checkout_data["email"] = email

        attributes: dict[str, Any] = {"checkout_data": checkout_data}
        if success_url:
            attributes["product_options"] = {"redirect_url": success_url}

        response = await self._request(
            "POST",
            "/checkouts",
            {
                "data": {
                    "type": "checkouts",
                    "attributes": attributes,
                    "relationships": {
                        "store": {"data": {"type": "stores", "id": str(self._options.store_id)}},
                        "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                    },
                }
            },
        )

        data = response["data"]
        logger.info(f"Created LemonSqueezy checkout {data['id']} for user {user_id}")
        return CheckoutSession(checkout_url=data["attributes"]["url"], checkout_id=str(data["id"]))

    async def get_subscription(self, subscription_id: str) -> dict[str, Any]:
        """Retrieve a subscription document."""
        return await self._request("GET", f"/subscriptions/{subscription_id}")

    async def get_customer(self, customer_id: str) -> dict[str, Any]:
        """Retrieve a customer document."""
        return await self._request("GET", f"/customers/{customer_id}")

    async def get_customer_portal_url(self, customer_id: str) -> Optional[str]:
        """Return the customer's portal URL, or None when the customer has none."""
        customer = await self.get_customer(customer_id)
        urls = customer.get("data", {}).get("attributes", {}).get("urls") or {}
        return urls.get("customer_portal") or None
