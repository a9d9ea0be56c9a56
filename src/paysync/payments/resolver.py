"""Membership resolver: provider status + requested tier -> granted tier.

The policy is one explicit table shared by both providers:

    pass through  active, trialing, on_trial           -> requested tier
    grace         cancelled, canceled                  -> requested tier
    revoke        expired, paused, past_due, unpaid,
                  incomplete, incomplete_expired,
                  anything unrecognized                -> free

A cancelled subscription stays paid through the billed period; only an
explicit expired event ends it.
"""

from enum import Enum

from paysync.db.models import Membership
from paysync.errors import ClassificationError
from paysync.payments.base import CanonicalSubscriptionEvent, EventKind


class StatusPolicy(str, Enum):
    """How a raw provider status affects the requested tier."""

    PASS_THROUGH = "pass_through"
    GRACE = "grace"
    REVOKE = "revoke"


STATUS_POLICY: dict[str, StatusPolicy] = {
    "active": StatusPolicy.PASS_THROUGH,
    "trialing": StatusPolicy.PASS_THROUGH,
    "on_trial": StatusPolicy.PASS_THROUGH,  # Lemon Squeezy spelling of trialing
    "cancelled": StatusPolicy.GRACE,
    "canceled": StatusPolicy.GRACE,
    "expired": StatusPolicy.REVOKE,
    "paused": StatusPolicy.REVOKE,
    "past_due": StatusPolicy.REVOKE,
    "unpaid": StatusPolicy.REVOKE,
    "incomplete": StatusPolicy.REVOKE,
    "incomplete_expired": StatusPolicy.REVOKE,
}


def status_policy(raw_status: str) -> StatusPolicy:
    """Look up the policy for a raw status; unknown values revoke."""
    return STATUS_POLICY.get((raw_status or "").strip().lower(), StatusPolicy.REVOKE)


def resolve(raw_status: str, requested_tier: Membership) -> Membership:
    """
    Map a provider subscription status to the membership tier to store.

    Pure function: no I/O, same inputs always give the same output.

    Args:
        raw_status: Provider status string (case-insensitive)
        requested_tier: Tier the subscribed product grants

    Returns:
        requested_tier for active/trialing/cancelled-in-grace, else FREE
    """
    if status_policy(raw_status) is StatusPolicy.REVOKE:
        return Membership.FREE
    return requested_tier


def resolve_event(event: CanonicalSubscriptionEvent) -> Membership:
    """
    Resolve the tier for a canonical subscription event.

    An EXPIRED event always lapses the subscription, whatever status string
    the provider attached (Stripe reports deleted subscriptions as "canceled").

    Raises:
        ClassificationError: If the event carries no requested tier
    """
    if event.requested_tier is None:
        raise ClassificationError(
            f"Subscription {event.subscription_id} has no resolved product tier"
        )
    if event.event_kind is EventKind.EXPIRED:
        return Membership.FREE
    return resolve(event.raw_status, event.requested_tier)
