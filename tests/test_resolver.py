"""Tests for the membership resolver policy table."""

import pytest

from paysync.db.models import Membership, PaymentProvider
from paysync.errors import ClassificationError
from paysync.payments.base import CanonicalSubscriptionEvent, EventKind
from paysync.payments.resolver import STATUS_POLICY, StatusPolicy, resolve, resolve_event, status_policy


def _event(status: str, kind: EventKind = EventKind.UPDATED, tier=Membership.PRO):
    return CanonicalSubscriptionEvent(
        provider=PaymentProvider.LEMONSQUEEZY,
        event_kind=kind,
        subscription_id="9001",
        provider_customer_id="42",
        product_classifier="Pro Monthly",
        raw_status=status,
        requested_tier=tier,
    )


class TestResolve:
    """Status + requested tier -> granted tier."""

    @pytest.mark.parametrize("status", ["active", "trialing", "on_trial"])
    def test_paid_statuses_pass_requested_tier(self, status):
        assert resolve(status, Membership.PRO) is Membership.PRO
        assert resolve(status, Membership.FREE) is Membership.FREE

    @pytest.mark.parametrize("status", ["cancelled", "canceled"])
    def test_cancelled_keeps_tier_during_grace(self, status):
        assert resolve(status, Membership.PRO) is Membership.PRO

    @pytest.mark.parametrize(
        "status",
        ["expired", "paused", "past_due", "unpaid", "incomplete", "incomplete_expired"],
    )
    def test_lapsed_statuses_revoke(self, status):
        assert resolve(status, Membership.PRO) is Membership.FREE

    @pytest.mark.parametrize("status", ["", "garbage", "refunded", "ACTIVE-ish"])
    def test_unrecognized_status_revokes(self, status):
        assert resolve(status, Membership.PRO) is Membership.FREE

    def test_status_is_case_and_whitespace_insensitive(self):
        assert resolve("  Active ", Membership.PRO) is Membership.PRO
        assert status_policy("CANCELLED") is StatusPolicy.GRACE

    def test_none_status_revokes(self):
        assert resolve(None, Membership.PRO) is Membership.FREE

    def test_policy_table_keys_are_normalized(self):
        for status in STATUS_POLICY:
            assert status == status.strip().lower()


class TestResolveEvent:
    """Resolution of full canonical subscription events."""

    def test_active_created_grants_pro(self):
        assert resolve_event(_event("active", EventKind.CREATED)) is Membership.PRO

    def test_expired_kind_forces_free_even_with_canceled_status(self):
        assert resolve_event(_event("canceled", EventKind.EXPIRED)) is Membership.FREE

    def test_cancelled_kind_keeps_tier(self):
        assert resolve_event(_event("cancelled", EventKind.CANCELLED)) is Membership.PRO

    def test_paused_kind_revokes(self):
        assert resolve_event(_event("paused", EventKind.PAUSED)) is Membership.FREE

    def test_missing_requested_tier_raises(self):
        with pytest.raises(ClassificationError, match="9001"):
            resolve_event(_event("active", tier=None))
