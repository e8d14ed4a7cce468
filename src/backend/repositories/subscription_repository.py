"""
Subscription Repository for database operations.

Only the pool back-references are managed here; the rest of the subscription
lifecycle belongs to the billing side.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Subscription
from repositories.base_repository import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for Subscription database operations."""

    model = Subscription

    @classmethod
    async def set_pool_link(
        cls,
        db: AsyncSession,
        subscription_id: UUID,
        *,
        pool_id: Optional[UUID],
        seat_id: Optional[UUID],
        now: datetime,
    ) -> int:
        """
        Point the subscription at a pool seat, or clear the link with None/None.

        Returns:
            Number of subscription rows updated (0 or 1)
        """
        result = await db.execute(
            update(Subscription)
            .where(Subscription.id == subscription_id)
            .values(
                resource_pool_id=pool_id,
                resource_pool_seat_id=seat_id,
                updated_at=now,
            )
        )
        return result.rowcount

    @classmethod
    async def clear_links_for_pool(
        cls, db: AsyncSession, pool_id: UUID, *, now: datetime
    ) -> int:
        """Detach every subscription that references the pool."""
        result = await db.execute(
            update(Subscription)
            .where(Subscription.resource_pool_id == pool_id)
            .values(resource_pool_id=None, resource_pool_seat_id=None, updated_at=now)
        )
        return result.rowcount

    @classmethod
    async def clear_links_for_seats(
        cls, db: AsyncSession, seat_ids: List[UUID], *, now: datetime
    ) -> int:
        """Detach subscriptions whose seat is among seat_ids."""
        if not seat_ids:
            return 0
        result = await db.execute(
            update(Subscription)
            .where(Subscription.resource_pool_seat_id.in_(seat_ids))
            .values(resource_pool_id=None, resource_pool_seat_id=None, updated_at=now)
        )
        return result.rowcount

    @classmethod
    async def find_by_seat(
        cls, db: AsyncSession, seat_id: UUID, *, for_update: bool = False
    ) -> List[Subscription]:
        """Subscriptions whose back-reference points at the seat."""
        stmt = select(Subscription).where(Subscription.resource_pool_seat_id == seat_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return list(result.scalars().all())
