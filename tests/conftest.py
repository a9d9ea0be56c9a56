"""Pytest configuration, in-memory repository and payload fixtures."""

import dataclasses
import hashlib
import hmac
import time
from datetime import datetime
from typing import Optional

import pytest

from paysync.config import LemonSqueezyOptions, StripeOptions
from paysync.db.models import Membership, MembershipProfile, PaymentProvider
from paysync.db.repository import ProfileRepository
from paysync.errors import DuplicateOrderError, UnknownUserError


class InMemoryProfileRepository(ProfileRepository):
    """Dict-backed repository; each method completes without yielding to the loop."""

    def __init__(self, profiles: Optional[list[MembershipProfile]] = None):
        self.profiles: dict[str, MembershipProfile] = {p.user_id: p for p in profiles or []}
        self.processed_orders: set[tuple[str, str]] = set()

    async def find_by_user_id(self, user_id):
        profile = self.profiles.get(user_id)
        return dataclasses.replace(profile) if profile else None

    async def find_by_provider_customer_id(self, provider, customer_id):
        for profile in self.profiles.values():
            if profile.payment_provider is provider and profile.provider_customer_id == customer_id:
                return dataclasses.replace(profile)
        return None

    async def upsert(self, profile):
        self.profiles[profile.user_id] = dataclasses.replace(profile)
        return dataclasses.replace(profile)

    async def update_subscription_state(self, provider, customer_id, membership, subscription_id):
        for profile in self.profiles.values():
            if profile.payment_provider is provider and profile.provider_customer_id == customer_id:
                profile.membership = membership
                profile.provider_subscription_id = subscription_id
                return dataclasses.replace(profile)
        return None

    async def link_customer(self, user_id, provider, customer_id, subscription_id, customer_portal_url=None):
        profile = self.profiles.setdefault(user_id, MembershipProfile(user_id=user_id))
        if profile.payment_provider is not provider:
            profile.customer_portal_url = customer_portal_url
        elif customer_portal_url:
            profile.customer_portal_url = customer_portal_url
        profile.payment_provider = provider
        profile.provider_customer_id = customer_id
        profile.provider_subscription_id = subscription_id
        return dataclasses.replace(profile)

    async def apply_credits(self, user_id, amount, provider, order_id, purchased_at: datetime):
        key = (provider.value, order_id)
        if key in self.processed_orders:
            raise DuplicateOrderError(provider.value, order_id)
        profile = self.profiles.get(user_id)
        if profile is None:
            raise UnknownUserError(user_id)
        self.processed_orders.add(key)
        profile.credits += amount
        profile.last_credit_purchase = purchased_at
        return dataclasses.replace(profile)

    async def count(self):
        return len(self.profiles)


@pytest.fixture
def repository() -> InMemoryProfileRepository:
    """Repository holding one Stripe-linked free user and one unlinked user."""
    return InMemoryProfileRepository(
        [
            MembershipProfile(
                user_id="user_1",
                membership=Membership.FREE,
                payment_provider=PaymentProvider.STRIPE,
                provider_customer_id="cus_123",
                provider_subscription_id=None,
            ),
            MembershipProfile(user_id="user_2"),
        ]
    )


@pytest.fixture
def stripe_options() -> StripeOptions:
    return StripeOptions(
        secret_key="sk_test_123",
        webhook_secret="whsec_test",
        price_id_monthly="price_monthly",
        price_id_yearly="price_yearly",
        price_id_credits="price_credits",
        app_url="https://app.example.com",
    )


@pytest.fixture
def lemonsqueezy_options() -> LemonSqueezyOptions:
    return LemonSqueezyOptions(
        api_key="ls_key",
        store_id="1234",
        webhook_secret="ls_secret",
        credit_variants={"555": 10, "777": 50},
    )


def stripe_subscription(
    status: str = "active",
    customer: str = "cus_123",
    subscription_id: str = "sub_123",
    product=None,
) -> dict:
    """Build a Stripe subscription object."""
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "items": {
            "data": [
                {"price": {"id": "price_monthly", "product": product or "prod_pro"}},
            ]
        },
    }


def stripe_event(event_type: str, obj: dict) -> dict:
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def ls_subscription_event(
    event_name: str,
    status: str = "active",
    variant_name: str = "Pro Monthly",
    customer_id: int = 42,
    subscription_id: str = "9001",
) -> dict:
    """Build a Lemon Squeezy subscription webhook document."""
    return {
        "meta": {"event_name": event_name, "custom_data": {"userId": "user_ls"}},
        "data": {
            "type": "subscriptions",
            "id": subscription_id,
            "attributes": {
                "customer_id": customer_id,
                "product_name": "Membership",
                "variant_name": variant_name,
                "status": status,
            },
        },
    }


def ls_order_event(
    variant_name: str = "10 Credits",
    variant_id: int = 555,
    subscription_id=None,
    user_id: Optional[str] = "user_ls",
    order_id: str = "ord_1",
    customer_id: int = 42,
) -> dict:
    """Build a Lemon Squeezy order_created webhook document."""
    meta = {"event_name": "order_created"}
    if user_id is not None:
        meta["custom_data"] = {"userId": user_id}
    item = {"variant_id": variant_id, "variant_name": variant_name}
    if subscription_id is not None:
        item["subscription_id"] = subscription_id
    return {
        "meta": meta,
        "data": {
            "type": "orders",
            "id": order_id,
            "attributes": {"customer_id": customer_id, "first_order_item": item},
        },
    }


def stripe_signature_header(body: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs deliveries."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + body
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"
