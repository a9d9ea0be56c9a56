"""Credit ledger applier for one-time credit purchases."""

import logging
from datetime import datetime, timezone
from typing import Callable

from paysync.db.models import MembershipProfile, PaymentProvider
from paysync.db.repository import ProfileRepository
from paysync.errors import InvalidCreditAmountError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreditLedger:
    """Credits a user's balance at most once per provider order."""

    def __init__(
        self,
        repository: ProfileRepository,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._repository = repository
        self._clock = clock

    async def apply_credits(
        self,
        user_id: str,
        amount: int,
        external_order_id: str,
        provider: PaymentProvider,
    ) -> MembershipProfile:
        """
        Increment credits and stamp last_credit_purchase.

        The order id is recorded in the processed-order set in the same
        transaction as the balance change, so a replayed order is rejected
        before the balance is touched.

        Args:
            user_id: Profile to credit
            amount: Credits to add (> 0)
            external_order_id: Provider order / payment intent id
            provider: Provider the order came from

        Returns:
            Updated profile

        Raises:
            InvalidCreditAmountError: If amount is not a positive integer
            DuplicateOrderError: If the order was already credited
            UnknownUserError: If the user has no profile
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidCreditAmountError(f"Credit amount must be > 0, got {amount!r}")

        profile = await self._repository.apply_credits(
            user_id=user_id,
            amount=amount,
            provider=provider,
            order_id=external_order_id,
            purchased_at=self._clock(),
        )

        logger.info(
            f"Credited {amount} to user {user_id} for {provider.value} order "
            f"{external_order_id}: balance={profile.credits}"
        )
        return profile
