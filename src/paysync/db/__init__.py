"""Persistence: connection pool, schema, profile repository."""

from paysync.db.models import Membership, MembershipProfile, PaymentProvider, Table
from paysync.db.pool import close_pool, create_pool
from paysync.db.repository import PostgresProfileRepository, ProfileRepository

__all__ = [
    "Membership",
    "MembershipProfile",
    "PaymentProvider",
    "PostgresProfileRepository",
    "ProfileRepository",
    "Table",
    "close_pool",
    "create_pool",
]
