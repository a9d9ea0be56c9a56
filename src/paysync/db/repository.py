"""Profile repository: the only durable state touched by the webhook pipeline.

Every mutating operation is a single statement or a single transaction so that
two deliveries for the same customer cannot lose each other's update.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

import asyncpg

from paysync.db.models import Membership, MembershipProfile, PaymentProvider, Table
from paysync.errors import DuplicateOrderError, UnknownUserError

logger = logging.getLogger(__name__)


class ProfileRepository(ABC):
    """Abstract profile store keyed by user id and by provider customer id."""

    @abstractmethod
    async def find_by_user_id(self, user_id: str) -> Optional[MembershipProfile]:
        """Return the profile for a user, or None."""
        pass

    @abstractmethod
    async def find_by_provider_customer_id(
        self,
        provider: PaymentProvider,
        customer_id: str,
    ) -> Optional[MembershipProfile]:
        """Return the profile linked to a provider customer, or None."""
        pass

    @abstractmethod
    async def upsert(self, profile: MembershipProfile) -> MembershipProfile:
        """Insert or replace a whole profile record."""
        pass

    @abstractmethod
    async def update_subscription_state(
        self,
        provider: PaymentProvider,
        customer_id: str,
        membership: Membership,
        subscription_id: str,
    ) -> Optional[MembershipProfile]:
        """
        Atomically set membership and subscription id for a linked customer.

        Returns:
            The updated profile, or None when no profile is linked to the
            customer. Never creates a record.
        """
        pass

    @abstractmethod
    async def link_customer(
        self,
        user_id: str,
        provider: PaymentProvider,
        customer_id: str,
        subscription_id: str,
        customer_portal_url: Optional[str] = None,
    ) -> MembershipProfile:
        """
        Atomically associate a user with a provider customer and subscription.

        Creates a free profile for the user when none exists yet.
        """
        pass

    @abstractmethod
    async def apply_credits(
        self,
        user_id: str,
        amount: int,
        provider: PaymentProvider,
        order_id: str,
        purchased_at: datetime,
    ) -> MembershipProfile:
        """
        Record the order as processed and increment the credit balance.

        Raises:
            DuplicateOrderError: If (provider, order_id) was already processed;
                the balance is left untouched
            UnknownUserError: If the user has no profile; the processed-order
                entry is not kept
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """Return the number of profile records."""
        pass


class PostgresProfileRepository(ProfileRepository):
    """asyncpg-backed repository over the profiles and processed_orders tables."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def find_by_user_id(self, user_id: str) -> Optional[MembershipProfile]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT * FROM {Table.PROFILES} WHERE user_id = $1",
                user_id,
            )
        return MembershipProfile.from_row(row) if row else None

    async def find_by_provider_customer_id(
        self,
        provider: PaymentProvider,
        customer_id: str,
    ) -> Optional[MembershipProfile]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT * FROM {Table.PROFILES}
                WHERE payment_provider = $1 AND provider_customer_id = $2
                """,
                provider.value,
                customer_id,
            )
        return MembershipProfile.from_row(row) if row else None

    async def upsert(self, profile: MembershipProfile) -> MembershipProfile:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO {Table.PROFILES}
                    (user_id, membership, payment_provider, provider_customer_id,
                     provider_subscription_id, credits, last_credit_purchase,
                     customer_portal_url)
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                ON CONFLICT (user_id) DO UPDATE SET
                    membership = EXCLUDED.membership,
                    payment_provider = EXCLUDED.payment_provider,
                    provider_customer_id = EXCLUDED.provider_customer_id,
                    provider_subscription_id = EXCLUDED.provider_subscription_id,
                    credits = EXCLUDED.credits,
                    last_credit_purchase = EXCLUDED.last_credit_purchase,
                    customer_portal_url = EXCLUDED.customer_portal_url,
                    updated_at = now()
                RETURNING *
                """,
                profile.user_id,
                profile.membership.value,
                profile.payment_provider.value if profile.payment_provider else None,
                profile.provider_customer_id,
                profile.provider_subscription_id,
                profile.credits,
                profile.last_credit_purchase,
                profile.customer_portal_url,
            )
        return MembershipProfile.from_row(row)

    async def update_subscription_state(
        self,
        provider: PaymentProvider,
        customer_id: str,
        membership: Membership,
        subscription_id: str,
    ) -> Optional[MembershipProfile]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE {Table.PROFILES}
                SET membership = $3,
                    provider_subscription_id = $4,
                    updated_at = now()
                WHERE payment_provider = $1 AND provider_customer_id = $2
                RETURNING *
                """,
                provider.value,
                customer_id,
                membership.value,
                subscription_id,
            )
        return MembershipProfile.from_row(row) if row else None

    async def link_customer(
        self,
        user_id: str,
        provider: PaymentProvider,
        customer_id: str,
        subscription_id: str,
        customer_portal_url: Optional[str] = None,
    ) -> MembershipProfile:
        # A stored portal URL survives a relink to the same provider only
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO {Table.PROFILES}
                    (user_id, payment_provider, provider_customer_id,
                     provider_subscription_id, customer_portal_url)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (user_id) DO UPDATE SET
                    payment_provider = EXCLUDED.payment_provider,
                    provider_customer_id = EXCLUDED.provider_customer_id,
                    provider_subscription_id = EXCLUDED.provider_subscription_id,
                    customer_portal_url = CASE
                        WHEN {Table.PROFILES}.payment_provider = EXCLUDED.payment_provider
                        THEN COALESCE(EXCLUDED.customer_portal_url,
                                      {Table.PROFILES}.customer_portal_url)
                        ELSE EXCLUDED.customer_portal_url
                    END,
                    updated_at = now()
                RETURNING *
                """,
                user_id,
                provider.value,
                customer_id,
                subscription_id,
                customer_portal_url,
            )
        return MembershipProfile.from_row(row)

    async def apply_credits(
        self,
        user_id: str,
        amount: int,
        provider: PaymentProvider,
        order_id: str,
        purchased_at: datetime,
    ) -> MembershipProfile:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                inserted = await conn.fetchval(
                    f"""
                    INSERT INTO {Table.PROCESSED_ORDERS}
                        (provider, order_id, user_id, credits, processed_at)
                    VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (provider, order_id) DO NOTHING
                    RETURNING order_id
                    """,
                    provider.value,
                    order_id,
                    user_id,
                    amount,
                    purchased_at,
                )
                if inserted is None:
                    raise DuplicateOrderError(provider.value, order_id)

                row = await conn.fetchrow(
                    f"""
                    UPDATE {Table.PROFILES}
                    SET credits = credits + $2,
                        last_credit_purchase = $3,
                        updated_at = now()
                    WHERE user_id = $1
                    RETURNING *
                    """,
                    user_id,
                    amount,
                    purchased_at,
                )
                if row is None:
                    # Raising inside the transaction discards the processed-order row
                    raise UnknownUserError(user_id)

        return MembershipProfile.from_row(row)

    async def count(self) -> int:
        async with self._pool.acquire() as conn:
            return await conn.fetchval(f"SELECT count(*) FROM {Table.PROFILES}")
