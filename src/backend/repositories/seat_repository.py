"""
ResourcePoolSeat Repository for database operations.

Seat state only changes through conditional updates here (claim/release),
each guarded by the seat's current status so that concurrent writers can
detect a lost race through the affected row count.
"""
from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db.models import ResourcePool, ResourcePoolSeat
from models.model_enum import SeatStatus
from repositories.base_repository import BaseRepository


class SeatRepository(BaseRepository[ResourcePoolSeat]):
    """Repository for ResourcePoolSeat database operations."""

    model = ResourcePoolSeat

    @classmethod
    async def find_first_available(
        cls,
        db: AsyncSession,
        pool_id: UUID,
        *,
        exclude_ids: Optional[List[UUID]] = None,
    ) -> Optional[ResourcePoolSeat]:
        """
        Lowest-index available seat of a pool, row-locked.

        Rows locked by other transactions are skipped so concurrent
        allocators fan out over different seats instead of queueing.
        """
        stmt = (
            select(ResourcePoolSeat)
            .where(
                ResourcePoolSeat.pool_id == pool_id,
                ResourcePoolSeat.seat_status == SeatStatus.AVAILABLE.value,
            )
            .order_by(ResourcePoolSeat.seat_index.asc())
            .limit(1)
            .with_for_update(skip_locked=True)
            .execution_options(populate_existing=True)
        )
        if exclude_ids:
            stmt = stmt.where(ResourcePoolSeat.id.not_in(exclude_ids))

        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def claim(
        cls,
        db: AsyncSession,
        seat_id: UUID,
        *,
        email: Optional[str],
        client_id: Optional[UUID],
        subscription_id: Optional[UUID],
        now: datetime,
        status: str = SeatStatus.ASSIGNED.value,
    ) -> int:
        """
        Move an available seat to assigned (or reserved).

        Returns:
            1 if the seat was claimed, 0 if it was no longer available
        """
        stmt = (
            update(ResourcePoolSeat)
            .where(
                ResourcePoolSeat.id == seat_id,
                ResourcePoolSeat.seat_status == SeatStatus.AVAILABLE.value,
            )
            .values(
                seat_status=status,
                assigned_email=email,
                assigned_client_id=client_id,
                assigned_subscription_id=subscription_id,
                assigned_at=now,
                unassigned_at=None,
                updated_at=now,
            )
        )
        result = await db.execute(stmt)
        return result.rowcount

    @classmethod
    async def release(cls, db: AsyncSession, seat_id: UUID, *, now: datetime) -> int:
        """
        Return a non-available seat to available and clear its assignee.

        Returns:
            1 if the seat was released, 0 if it was already available
        """
        stmt = (
            update(ResourcePoolSeat)
            .where(
                ResourcePoolSeat.id == seat_id,
                ResourcePoolSeat.seat_status != SeatStatus.AVAILABLE.value,
            )
            .values(
                seat_status=SeatStatus.AVAILABLE.value,
                assigned_email=None,
                assigned_client_id=None,
                assigned_subscription_id=None,
                assigned_at=None,
                unassigned_at=now,
                updated_at=now,
            )
        )
        result = await db.execute(stmt)
        return result.rowcount

    @classmethod
    async def rewrite_occupied(
        cls,
        db: AsyncSession,
        seat_id: UUID,
        *,
        expected_status: str,
        expected_subscription_id: Optional[UUID],
        values: dict,
    ) -> int:
        """
        Rewrite an occupied seat only if it still holds what the caller read.

        Returns:
            1 if the seat was rewritten, 0 if it was released or reassigned
            in the meantime
        """
        if expected_subscription_id is None:
            subscription_match = ResourcePoolSeat.assigned_subscription_id.is_(None)
        else:
            subscription_match = (
                ResourcePoolSeat.assigned_subscription_id == expected_subscription_id
            )

        stmt = (
            update(ResourcePoolSeat)
            .where(
                ResourcePoolSeat.id == seat_id,
                ResourcePoolSeat.seat_status == expected_status,
                subscription_match,
            )
            .values(**values)
        )
        result = await db.execute(stmt)
        return result.rowcount

    @classmethod
    async def find_by_subscription(
        cls,
        db: AsyncSession,
        subscription_id: UUID,
    ) -> List[ResourcePoolSeat]:
        """Seats whose weak reference points at the subscription."""
        result = await db.execute(
            select(ResourcePoolSeat).where(
                ResourcePoolSeat.assigned_subscription_id == subscription_id
            )
        )
        return list(result.scalars().all())

    @classmethod
    async def find_for_pool(
        cls,
        db: AsyncSession,
        pool_id: UUID,
        *,
        seat_status: Optional[str] = None,
        assigned_client_id: Optional[UUID] = None,
        assigned_subscription_id: Optional[UUID] = None,
        search: Optional[str] = None,
    ) -> List[ResourcePoolSeat]:
        """
        Seats of a pool in seat_index order.

        Args:
            db: Database session
            pool_id: Pool ID
            seat_status: Only seats in this status
            assigned_client_id: Only seats leased to this client
            assigned_subscription_id: Only seats held by this subscription
            search: Case-insensitive substring of assigned_email
        """
        stmt = select(ResourcePoolSeat).where(ResourcePoolSeat.pool_id == pool_id)

        if seat_status:
            stmt = stmt.where(ResourcePoolSeat.seat_status == seat_status)

        if assigned_client_id:
            stmt = stmt.where(ResourcePoolSeat.assigned_client_id == assigned_client_id)

        if assigned_subscription_id:
            stmt = stmt.where(
                ResourcePoolSeat.assigned_subscription_id == assigned_subscription_id
            )

        if search:
            stmt = stmt.where(
                func.lower(ResourcePoolSeat.assigned_email).contains(
                    search.lower(), autoescape=True
                )
            )

        stmt = stmt.order_by(ResourcePoolSeat.seat_index.asc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def count_by_status(cls, db: AsyncSession, pool_id: UUID) -> Dict[str, int]:
        """Seat counts of one pool keyed by seat_status (missing statuses are 0)."""
        result = await db.execute(
            select(ResourcePoolSeat.seat_status, func.count(ResourcePoolSeat.id))
            .where(ResourcePoolSeat.pool_id == pool_id)
            .group_by(ResourcePoolSeat.seat_status)
        )
        counts = {status.value: 0 for status in SeatStatus}
        for status, count in result.all():
            counts[status] = count
        return counts

    @classmethod
    async def get_max_index(cls, db: AsyncSession, pool_id: UUID) -> int:
        """Highest seat_index in the pool, or -1 when it has no seats."""
        result = await db.execute(
            select(func.max(ResourcePoolSeat.seat_index)).where(
                ResourcePoolSeat.pool_id == pool_id
            )
        )
        value = result.scalar()
        return -1 if value is None else value

    @classmethod
    async def count_for_pool(cls, db: AsyncSession, pool_id: UUID) -> int:
        result = await db.execute(
            select(func.count(ResourcePoolSeat.id)).where(
                ResourcePoolSeat.pool_id == pool_id
            )
        )
        return result.scalar() or 0

    @classmethod
    async def create_range(
        cls,
        db: AsyncSession,
        pool_id: UUID,
        *,
        start_index: int,
        count: int,
        now: datetime,
    ) -> None:
        """Insert `count` available seats numbered from start_index."""
        if count <= 0:
            return
        rows = [
            {
                "id": uuid4(),
                "pool_id": pool_id,
                "seat_index": index,
                "seat_status": SeatStatus.AVAILABLE.value,
                "created_at": now,
                "updated_at": now,
            }
            for index in range(start_index, start_index + count)
        ]
        await db.execute(insert(ResourcePoolSeat), rows)

    @classmethod
    async def delete_highest_available(
        cls,
        db: AsyncSession,
        pool_id: UUID,
        count: int,
    ) -> int:
        """
        Delete up to `count` available seats, highest seat_index first.

        Returns:
            Number of seats deleted
        """
        if count <= 0:
            return 0

        victim_ids = (
            await db.execute(
                select(ResourcePoolSeat.id)
                .where(
                    ResourcePoolSeat.pool_id == pool_id,
                    ResourcePoolSeat.seat_status == SeatStatus.AVAILABLE.value,
                )
                .order_by(ResourcePoolSeat.seat_index.desc())
                .limit(count)
                .with_for_update()
            )
        ).scalars().all()
        if not victim_ids:
            return 0

        result = await db.execute(
            delete(ResourcePoolSeat)
            .where(
                ResourcePoolSeat.id.in_(victim_ids),
                ResourcePoolSeat.seat_status == SeatStatus.AVAILABLE.value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @classmethod
    async def delete_for_pool(cls, db: AsyncSession, pool_id: UUID) -> int:
        result = await db.execute(
            delete(ResourcePoolSeat)
            .where(ResourcePoolSeat.pool_id == pool_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @classmethod
    async def find_pool_ids_by_email(cls, db: AsyncSession, term: str) -> List[UUID]:
        """Distinct pool ids with a seat whose assigned_email contains term (case-insensitive)."""
        result = await db.execute(
            select(ResourcePoolSeat.pool_id)
            .where(
                func.lower(ResourcePoolSeat.assigned_email).contains(
                    term.lower(), autoescape=True
                )
            )
            .distinct()
        )
        return list(result.scalars().all())

    @classmethod
    async def find_assignments(
        cls,
        db: AsyncSession,
        *,
        pool_id: Optional[UUID] = None,
        provider: Optional[str] = None,
        client_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        assigned_after: Optional[datetime] = None,
        assigned_before: Optional[datetime] = None,
        search: Optional[str] = None,
    ) -> List[ResourcePoolSeat]:
        """
        Assigned seats with their pool loaded, newest assignment first.

        Args:
            db: Database session
            pool_id: Only seats of this pool
            provider: Only seats of pools with this provider
            client_id: Only seats leased to this client
            subscription_id: Only the seat held by this subscription
            assigned_after: assigned_at lower bound (inclusive)
            assigned_before: assigned_at upper bound (inclusive)
            search: Case-insensitive substring of assignee email, provider
                or pool login
        """
        stmt = (
            select(ResourcePoolSeat)
            .join(ResourcePool, ResourcePool.id == ResourcePoolSeat.pool_id)
            .options(selectinload(ResourcePoolSeat.pool))
            .where(ResourcePoolSeat.seat_status == SeatStatus.ASSIGNED.value)
        )

        if pool_id:
            stmt = stmt.where(ResourcePoolSeat.pool_id == pool_id)

        if provider:
            stmt = stmt.where(ResourcePool.provider == provider)

        if client_id:
            stmt = stmt.where(ResourcePoolSeat.assigned_client_id == client_id)

        if subscription_id:
            stmt = stmt.where(ResourcePoolSeat.assigned_subscription_id == subscription_id)

        if assigned_after:
            stmt = stmt.where(ResourcePoolSeat.assigned_at >= assigned_after)

        if assigned_before:
            stmt = stmt.where(ResourcePoolSeat.assigned_at <= assigned_before)

        if search:
            term = search.lower()
            stmt = stmt.where(
                or_(
                    func.lower(ResourcePoolSeat.assigned_email).contains(term, autoescape=True),
                    func.lower(ResourcePool.provider).contains(term, autoescape=True),
                    func.lower(ResourcePool.login_email).contains(term, autoescape=True),
                )
            )

        stmt = stmt.order_by(
            ResourcePoolSeat.assigned_at.desc(), ResourcePoolSeat.seat_index.asc()
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
