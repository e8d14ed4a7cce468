"""
ResourcePool Repository for database operations.

Handles pool queries plus the set-based status and aggregate updates the
lifecycle sweep and the seat ledger rely on.
"""
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ResourcePool, ResourcePoolSeat
from models.model_enum import PoolStatus, SeatStatus
from repositories.base_repository import BaseRepository


class ResourcePoolRepository(BaseRepository[ResourcePool]):
    """Repository for ResourcePool database operations."""

    model = ResourcePool

    @classmethod
    async def sync_used_seats(
        cls,
        db: AsyncSession,
        pool_id: UUID,
        *,
        now: datetime,
    ) -> int:
        """
        Recompute used_seats from the pool's assigned seats.

        Callers lock the pool row first (lock_for_seat_write) so the count
        runs on a snapshot that includes every committed concurrent claim.

        Returns:
            Number of pool rows updated (0 or 1)
        """
        assigned_count = (
            select(func.count(ResourcePoolSeat.id))
            .where(
                ResourcePoolSeat.pool_id == pool_id,
                ResourcePoolSeat.seat_status == SeatStatus.ASSIGNED.value,
            )
            .scalar_subquery()
        )

        stmt = (
            update(ResourcePool)
            .where(ResourcePool.id == pool_id)
            .values(used_seats=assigned_count, updated_at=now)
        )
        result = await db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount

    @classmethod
    async def lock_for_seat_write(
        cls, db: AsyncSession, pool_id: UUID
    ) -> Optional[ResourcePool]:
        """
        Row-lock a pool for the rest of the transaction.

        Seat writers take this lock after their seat row lock, so a sweep or
        archive cannot change the pool's status between the assignability
        check and commit.
        """
        return await cls.find_by_id(db, pool_id, for_update=True)

    @classmethod
    async def expire_elapsed(cls, db: AsyncSession, *, now: datetime) -> int:
        """Mark active/overdue pools whose end_at has passed as expired and archive them."""
        stmt = (
            update(ResourcePool)
            .where(
                ResourcePool.status.in_(PoolStatus.sweepable()),
                ResourcePool.end_at <= now,
            )
            .values(
                status=PoolStatus.EXPIRED.value,
                is_alive=False,
                updated_at=now,
            )
        )
        result = await db.execute(stmt)
        return result.rowcount

    @classmethod
    async def mark_overdue(
        cls, db: AsyncSession, *, now: datetime, threshold: datetime
    ) -> int:
        """Move active pools ending within (now, threshold] to overdue."""
        stmt = (
            update(ResourcePool)
            .where(
                ResourcePool.status == PoolStatus.ACTIVE.value,
                ResourcePool.end_at > now,
                ResourcePool.end_at <= threshold,
            )
            .values(status=PoolStatus.OVERDUE.value, updated_at=now)
        )
        result = await db.execute(stmt)
        return result.rowcount

    @classmethod
    async def reactivate(
        cls, db: AsyncSession, *, now: datetime, threshold: datetime
    ) -> int:
        """Move overdue pools whose end_at was pushed past threshold back to active."""
        stmt = (
            update(ResourcePool)
            .where(
                ResourcePool.status == PoolStatus.OVERDUE.value,
                ResourcePool.end_at > threshold,
            )
            .values(status=PoolStatus.ACTIVE.value, updated_at=now)
        )
        result = await db.execute(stmt)
        return result.rowcount

    @classmethod
    async def archive(
        cls,
        db: AsyncSession,
        pool_ids: Sequence[UUID],
        *,
        now: datetime,
    ) -> List[UUID]:
        """
        Archive the given pools: status=expired, is_alive=false.

        Returns:
            Ids of pools that changed (already archived and unknown ids are
            skipped)
        """
        if not pool_ids:
            return []

        not_archived = or_(
            ResourcePool.is_alive == True,  # noqa: E712
            ResourcePool.status != PoolStatus.EXPIRED.value,
        )
        target_ids = (
            await db.execute(
                select(ResourcePool.id)
                .where(ResourcePool.id.in_(list(pool_ids)), not_archived)
                .with_for_update()
            )
        ).scalars().all()
        if not target_ids:
            return []

        stmt = (
            update(ResourcePool)
            .where(ResourcePool.id.in_(target_ids))
            .values(status=PoolStatus.EXPIRED.value, is_alive=False, updated_at=now)
        )
        await db.execute(stmt)
        return list(target_ids)

    @classmethod
    async def find_elapsed_ids(cls, db: AsyncSession, *, now: datetime) -> List[UUID]:
        """Ids of active/overdue pools whose end_at has passed."""
        result = await db.execute(
            select(ResourcePool.id).where(
                ResourcePool.status.in_(PoolStatus.sweepable()),
                ResourcePool.end_at <= now,
            )
        )
        return list(result.scalars().all())

    @classmethod
    async def find_with_free_seats_for_provider(
        cls,
        db: AsyncSession,
        provider: str,
    ) -> List[ResourcePool]:
        """Live, assignable pools of a provider that still have free capacity, newest first."""
        stmt = (
            select(ResourcePool)
            .where(
                ResourcePool.provider == provider,
                ResourcePool.is_alive == True,  # noqa: E712
                ResourcePool.status.in_(PoolStatus.assignable()),
                ResourcePool.used_seats < ResourcePool.max_seats,
            )
            .order_by(ResourcePool.created_at.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def get_status_counts(cls, db: AsyncSession) -> dict:
        """Number of pools per status (archived pools included)."""
        result = await db.execute(
            select(ResourcePool.status, func.count(ResourcePool.id)).group_by(
                ResourcePool.status
            )
        )
        return {status: count for status, count in result.all()}

    @classmethod
    async def get_seat_totals(
        cls, db: AsyncSession, *, alive_only: bool = True
    ) -> tuple:
        """Sum of (max_seats, used_seats) across pools."""
        stmt = select(
            func.coalesce(func.sum(ResourcePool.max_seats), 0),
            func.coalesce(func.sum(ResourcePool.used_seats), 0),
        )
        if alive_only:
            stmt = stmt.where(ResourcePool.is_alive == True)  # noqa: E712
        row = (await db.execute(stmt)).one()
        return int(row[0]), int(row[1])

    @classmethod
    async def count_ending_between(
        cls,
        db: AsyncSession,
        start: datetime,
        end: datetime,
        *,
        alive_only: bool = True,
    ) -> int:
        """Count pools with start < end_at <= end."""
        stmt = select(func.count(ResourcePool.id)).where(
            ResourcePool.end_at > start,
            ResourcePool.end_at <= end,
        )
        if alive_only:
            stmt = stmt.where(ResourcePool.is_alive == True)  # noqa: E712
        return (await db.execute(stmt)).scalar() or 0

