"""Stripe and Lemon Squeezy webhook reconciliation.

Verifies inbound deliveries, maps provider payloads onto canonical
subscription/order events, and applies them to membership profiles and
credit balances.
"""

from paysync.payments.base import (
    CanonicalOrderEvent,
    CanonicalSubscriptionEvent,
    EventKind,
    Ignored,
    ProviderAdapter,
)
from paysync.payments.checkout import (
    billing_portal_url,
    create_lemonsqueezy_checkout,
    create_stripe_checkout,
)
from paysync.payments.ledger import CreditLedger
from paysync.payments.linking import CustomerLinker
from paysync.payments.reconcile import ReconciliationEngine
from paysync.payments.resolver import resolve, resolve_event
from paysync.payments.webhooks import build_pipelines, handle_webhook

__all__ = [
    "CanonicalOrderEvent",
    "CanonicalSubscriptionEvent",
    "CreditLedger",
    "CustomerLinker",
    "EventKind",
    "Ignored",
    "ProviderAdapter",
    "ReconciliationEngine",
    "billing_portal_url",
    "build_pipelines",
    "create_lemonsqueezy_checkout",
    "create_stripe_checkout",
    "handle_webhook",
    "resolve",
    "resolve_event",
]
