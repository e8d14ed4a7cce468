"""
Repository layer for database operations.

This package contains all data access logic isolated from business logic.
Each repository handles queries for a specific entity; none of them commit.
"""

from repositories.base_repository import BaseRepository
from repositories.personal_account_repository import PersonalAccountRepository
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository
from repositories.subscription_repository import SubscriptionRepository

__all__ = [
    "BaseRepository",
    "ResourcePoolRepository",
    "SeatRepository",
    "SubscriptionRepository",
    "PersonalAccountRepository",
]
