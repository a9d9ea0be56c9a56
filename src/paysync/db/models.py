"""Lightweight table-name constants, column-name enums and the profile record."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


# Table name constants
class Table:
    """Database table names."""

    PROFILES = "profiles"
    PROCESSED_ORDERS = "processed_orders"
    SCHEMA_MIGRATIONS = "schema_migrations"


# Column name enums
class Membership(str, Enum):
    """Membership tier stored on a profile."""

    FREE = "free"
    PRO = "pro"


class PaymentProvider(str, Enum):
    """Payment provider linked to a profile."""

    STRIPE = "stripe"
    LEMONSQUEEZY = "lemonsqueezy"


@dataclass
class MembershipProfile:
    """Durable profile record, owned by the repository."""

    user_id: str
    membership: Membership = Membership.FREE
    payment_provider: PaymentProvider | None = None
    provider_customer_id: str | None = None
    provider_subscription_id: str | None = None
    credits: int = 0  # never negative
    last_credit_purchase: datetime | None = None  # UTC
    customer_portal_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MembershipProfile":
        """Build a profile from a profiles table row."""
        provider = row["payment_provider"]
        return cls(
            user_id=row["user_id"],
            membership=Membership(row["membership"]),
            payment_provider=PaymentProvider(provider) if provider else None,
            provider_customer_id=row["provider_customer_id"],
            provider_subscription_id=row["provider_subscription_id"],
            credits=row["credits"],
            last_credit_purchase=row["last_credit_purchase"],
            customer_portal_url=row["customer_portal_url"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
