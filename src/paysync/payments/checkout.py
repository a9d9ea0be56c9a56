"""Checkout and billing-portal helpers for both providers."""

import logging
from typing import Literal, Optional

from paysync.config import StripeOptions
from paysync.db.models import MembershipProfile, PaymentProvider
from paysync.payments.clients import CheckoutSession, LemonSqueezyClient, StripeClient

logger = logging.getLogger(__name__)

PlanType = Literal["monthly", "yearly", "credits"]


def get_plan_price_id(plan_type: PlanType, options: StripeOptions) -> str:
    """
    Get the Stripe price id for a plan.

    Raises:
        ValueError: If the plan is unknown or its price id is not configured
    """
    price_ids = {
        "monthly": options.price_id_monthly,
        "yearly": options.price_id_yearly,
        "credits": options.price_id_credits,
    }
    if plan_type not in price_ids:
        raise ValueError(f"Invalid plan type: {plan_type}")
    if not price_ids[plan_type]:
        raise ValueError(f"stripe price id for {plan_type} plan not configured")
    return price_ids[plan_type]


def default_redirect_urls(app_url: str) -> tuple[str, str]:
    """Return (success_url, cancel_url) under the application base URL."""
    base = app_url.rstrip("/")
    return f"{base}/dashboard?success=true", f"{base}/pricing?cancelled=true"


async def create_stripe_checkout(
    client: StripeClient,
    options: StripeOptions,
    plan_type: PlanType,
    email: str,
    user_id: str,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    quantity: int = 1,
) -> CheckoutSession:
    """
    Create a Stripe checkout for a plan.

    Credits packs are one-time "payment" checkouts; everything else is a
    "subscription" checkout.

    Raises:
        ValueError: If user id/email are missing or the plan is not configured
        stripe.StripeError: On Stripe API errors
    """
    if not user_id or not email:
        raise ValueError("user_id and email are required for checkout")

    price_id = get_plan_price_id(plan_type, options)
    default_success, default_cancel = default_redirect_urls(options.app_url)

    return await client.create_checkout_session(
        price_id=price_id,
        mode="payment" if plan_type == "credits" else "subscription",
        email=email,
        user_id=user_id,
        success_url=success_url or default_success,
        cancel_url=cancel_url or default_cancel,
        quantity=quantity,
    )


async def create_lemonsqueezy_checkout(
    client: LemonSqueezyClient,
    variant_id: str,
    email: str,
    user_id: str,
    success_url: Optional[str] = None,
) -> CheckoutSession:
    """
    Create a Lemon Squeezy checkout for a variant, carrying the user id.

    Raises:
        ValueError: If a required argument is missing
        ProviderAPIError: On API errors
    """
    if not user_id or not email or not variant_id:
        raise ValueError("user_id, email and variant_id are required for checkout")

    return await client.create_checkout_session(
        variant_id=variant_id,
        email=email,
        user_id=user_id,
        success_url=success_url,
    )


async def billing_portal_url(
    profile: MembershipProfile,
    stripe_client: StripeClient,
    lemonsqueezy_client: LemonSqueezyClient,
) -> Optional[str]:
    """
    Find where a user manages their billing.

    A stored portal URL wins; otherwise a Stripe portal session is created or
    the Lemon Squeezy customer portal is looked up.

    Returns:
        Portal URL, or None when the profile has no linked provider
    """
    if profile.customer_portal_url:
        return profile.customer_portal_url
    if not profile.provider_customer_id:
        return None

    if profile.payment_provider is PaymentProvider.STRIPE:
        return await stripe_client.create_billing_portal_session(profile.provider_customer_id)
    if profile.payment_provider is PaymentProvider.LEMONSQUEEZY:
        return await lemonsqueezy_client.get_customer_portal_url(profile.provider_customer_id)

    logger.warning(f"Profile {profile.user_id} has a customer id but no payment provider")
    return None
