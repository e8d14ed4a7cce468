"""
Test data factories for generating realistic test data.

Usage:
    pool_data = ResourcePoolFactory.create(max_seats=5)
    subscription = SubscriptionFactory.create()
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from api.schemas.resource_pool import ResourcePoolCreate
from db.models import PersonalAccount, Subscription, utc_now
from models.model_enum import PersonalAccountStatus, PoolStatus, PoolType


# Fixed clock for engine calls that take an explicit `now`
NOW = datetime(2025, 1, 10, 12, 0, 0)


def _unique_suffix() -> str:
    """Generate a unique suffix for test data."""
    return uuid.uuid4().hex[:8]


class ResourcePoolFactory:
    """Factory for ResourcePoolCreate payloads."""

    @classmethod
    def create(
        cls,
        now: Optional[datetime] = None,
        provider: str = "microsoft_365",
        pool_type: PoolType = PoolType.FAMILY,
        login_email: Optional[str] = None,
        max_seats: int = 5,
        start_at: Optional[datetime] = None,
        end_at: Optional[datetime] = None,
        status: Optional[PoolStatus] = None,
        notes: Optional[str] = None,
    ) -> ResourcePoolCreate:
        """Pool running from 30 days before `now` to 10 days after it."""
        now = now or utc_now()
        suffix = _unique_suffix()

        if login_email is None:
            login_email = f"owner.{suffix}@pools.example.com"
        if end_at is None:
            end_at = now + timedelta(days=10)
        if start_at is None:
            start_at = min(now, end_at) - timedelta(days=30)

        return ResourcePoolCreate(
            provider=provider,
            pool_type=pool_type,
            login_email=login_email,
            login_secret=f"secret-{suffix}",
            notes=notes,
            start_at=start_at,
            end_at=end_at,
            max_seats=max_seats,
            status=status,
        )


class SubscriptionFactory:
    """Factory for creating Subscription instances."""

    @classmethod
    def create(
        cls,
        client_id: Optional[UUID] = None,
        service_id: Optional[UUID] = None,
        status: str = "active",
    ) -> Subscription:
        return Subscription(
            id=uuid4(),
            client_id=client_id or uuid4(),
            service_id=service_id or uuid4(),
            status=status,
        )


class PersonalAccountFactory:
    """Factory for creating PersonalAccount instances."""

    @classmethod
    def create(
        cls,
        provider: str = "netflix",
        login_email: Optional[str] = None,
        expiry_date: Optional[datetime] = None,
        status: PersonalAccountStatus = PersonalAccountStatus.AVAILABLE,
    ) -> PersonalAccount:
        suffix = _unique_suffix()
        return PersonalAccount(
            id=uuid4(),
            provider=provider,
            login_email=login_email or f"personal.{suffix}@accounts.example.com",
            login_secret=f"secret-{suffix}",
            expiry_date=expiry_date,
            status=status.value,
        )
