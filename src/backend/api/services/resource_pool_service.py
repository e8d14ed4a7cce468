"""
Resource pool service: pool CRUD and seat-range maintenance.

Creating a pool also creates its seats (indices 0..max_seats-1). Changing
max_seats grows the range after the highest index, or shrinks it by removing
the highest-index available seats.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.resource_pool import PoolFilter, ResourcePoolCreate, ResourcePoolUpdate
from api.services.pool_lifecycle_service import derive_pool_status
from core.decorators import (
    critical_database_operation,
    log_database_operation,
    transactional_database_operation,
)
from core.exceptions import InventoryValidationError, NotFoundError
from db.models import ResourcePool, ResourcePoolSeat, utc_now
from models.model_enum import PoolStatus, PoolType, SeatStatus, TimeBucket
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository
from repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)

# Statuses an operator may set by hand; the rest are owned by the sweep
MANUAL_STATUSES = (PoolStatus.PAUSED, PoolStatus.COMPLETED)


class ResourcePoolService:
    """Service for managing resource pools."""

    @staticmethod
    def build_list_query(pool_filter: Optional[PoolFilter] = None, now: Optional[datetime] = None):
        """
        Build the filtered pool select.

        Args:
            pool_filter: Optional filters
            now: Reference time for time buckets (defaults to current UTC time)

        Returns:
            SQLAlchemy select ordered by end_at ascending
        """
        stmt = select(ResourcePool)
        f = pool_filter or PoolFilter()

        if f.provider:
            stmt = stmt.where(ResourcePool.provider == f.provider)
        if f.status:
            stmt = stmt.where(ResourcePool.status == f.status.value)
        if f.pool_type:
            stmt = stmt.where(ResourcePool.pool_type == f.pool_type.value)
        if f.alive is not None:
            stmt = stmt.where(ResourcePool.is_alive == f.alive)

        if f.has_available_seats is True:
            stmt = stmt.where(ResourcePool.used_seats < ResourcePool.max_seats)
        elif f.has_available_seats is False:
            stmt = stmt.where(ResourcePool.used_seats >= ResourcePool.max_seats)

        if f.fully_utilized is True:
            stmt = stmt.where(ResourcePool.used_seats >= ResourcePool.max_seats)
        elif f.fully_utilized is False:
            stmt = stmt.where(ResourcePool.used_seats < ResourcePool.max_seats)

        if f.time_bucket:
            now = now or utc_now()
            today = now.replace(hour=0, minute=0, second=0, microsecond=0)
            if f.time_bucket == TimeBucket.TODAY:
                stmt = stmt.where(
                    ResourcePool.end_at >= today,
                    ResourcePool.end_at < today + timedelta(days=1),
                )
            elif f.time_bucket == TimeBucket.THREE_DAYS:
                stmt = stmt.where(
                    ResourcePool.end_at >= today,
                    ResourcePool.end_at < today + timedelta(days=3),
                )
            elif f.time_bucket == TimeBucket.OVERDUE:
                stmt = stmt.where(
                    ResourcePool.end_at < today,
                    ResourcePool.status.in_(PoolStatus.sweepable()),
                )
            elif f.time_bucket == TimeBucket.EXPIRED:
                stmt = stmt.where(ResourcePool.status == PoolStatus.EXPIRED.value)

        if f.start_date_after:
            stmt = stmt.where(ResourcePool.start_at >= f.start_date_after)
        if f.start_date_before:
            stmt = stmt.where(ResourcePool.start_at <= f.start_date_before)
        if f.end_date_after:
            stmt = stmt.where(ResourcePool.end_at >= f.end_date_after)
        if f.end_date_before:
            stmt = stmt.where(ResourcePool.end_at <= f.end_date_before)

        if f.min_seats is not None:
            stmt = stmt.where(ResourcePool.max_seats >= f.min_seats)
        if f.max_seats is not None:
            stmt = stmt.where(ResourcePool.max_seats <= f.max_seats)

        if f.search:
            term = f.search.strip().lower()
            seat_match = exists().where(
                and_(
                    ResourcePoolSeat.pool_id == ResourcePool.id,
                    func.lower(ResourcePoolSeat.assigned_email).contains(term, autoescape=True),
                )
            )
            stmt = stmt.where(
                or_(
                    func.lower(ResourcePool.provider).contains(term, autoescape=True),
                    func.lower(ResourcePool.login_email).contains(term, autoescape=True),
                    func.lower(ResourcePool.notes).contains(term, autoescape=True),
                    seat_match,
                )
            )

        return stmt.order_by(ResourcePool.end_at.asc(), ResourcePool.created_at.asc())

    @staticmethod
    @critical_database_operation("list_resource_pools")
    @log_database_operation("resource pool listing", level="debug")
    async def list_resource_pools(
        db: AsyncSession,
        pool_filter: Optional[PoolFilter] = None,
        now: Optional[datetime] = None,
    ) -> List[ResourcePool]:
        """List pools matching the filter, ordered by end_at ascending."""
        stmt = ResourcePoolService.build_list_query(pool_filter, now)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    @critical_database_operation("get_resource_pool")
    @log_database_operation("resource pool retrieval", level="debug")
    async def get_resource_pool(db: AsyncSession, pool_id: UUID) -> ResourcePool:
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)
        return pool

    @staticmethod
    @critical_database_operation("get_pool_with_seats")
    @log_database_operation("resource pool with seats retrieval", level="debug")
    async def get_pool_with_seats(
        db: AsyncSession, pool_id: UUID
    ) -> tuple[ResourcePool, List[ResourcePoolSeat]]:
        """
        Get a pool and its seats in seat_index order.

        Returns:
            Tuple of (pool, seats)
        """
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)
        seats = await SeatRepository.find_for_pool(db, pool_id)
        return pool, seats

    @staticmethod
    @transactional_database_operation("create_resource_pool")
    @log_database_operation("resource pool creation", level="info")
    async def create_resource_pool(
        db: AsyncSession,
        pool_data: ResourcePoolCreate,
        now: Optional[datetime] = None,
    ) -> ResourcePool:
        """
        Create a pool together with max_seats available seats.

        Raises:
            InventoryValidationError: end_at <= start_at, max_seats < 1, or a
                time-derived status given explicitly
        """
        now = now or utc_now()
        if pool_data.end_at <= pool_data.start_at:
            raise InventoryValidationError("end_at must be after start_at")
        if pool_data.max_seats < 1:
            raise InventoryValidationError("max_seats must be at least 1")

        if pool_data.status in MANUAL_STATUSES:
            status = pool_data.status
        elif pool_data.status is None:
            status = derive_pool_status(pool_data.end_at, now)
        else:
            raise InventoryValidationError(
                f"Status {pool_data.status.value} is derived from end_at and cannot be set"
            )

        values = pool_data.model_dump(exclude={"status"})
        values.update(
            {
                "pool_type": pool_data.pool_type.value,
                "status": status.value,
                "is_alive": status != PoolStatus.EXPIRED,
                "used_seats": 0,
                "created_at": now,
                "updated_at": now,
            }
        )
        pool = await ResourcePoolRepository.create(db, obj_in=values)
        await SeatRepository.create_range(
            db, pool.id, start_index=0, count=pool.max_seats, now=now
        )

        logger.info(
            f"Created resource pool {pool.id} | Provider: {pool.provider} | "
            f"Seats: {pool.max_seats} | Status: {pool.status}"
        )
        return pool

    @staticmethod
    async def _resize(
        db: AsyncSession,
        pool: ResourcePool,
        target: int,
        now: datetime,
    ) -> None:
        current = await SeatRepository.count_for_pool(db, pool.id)
        if target > current:
            start = await SeatRepository.get_max_index(db, pool.id) + 1
            await SeatRepository.create_range(
                db, pool.id, start_index=start, count=target - current, now=now
            )
            logger.info(f"Pool {pool.id} grown by {target - current} seats")
        elif target < current:
            counts = await SeatRepository.count_by_status(db, pool.id)
            occupied = current - counts[SeatStatus.AVAILABLE.value]
            if target < occupied:
                raise InventoryValidationError(
                    f"Cannot shrink pool to {target} seats: {occupied} seats are occupied"
                )
            removed = await SeatRepository.delete_highest_available(
                db, pool.id, current - target
            )
            if removed != current - target:
                raise InventoryValidationError(
                    "Seats changed while resizing the pool, try again"
                )
            logger.info(f"Pool {pool.id} shrunk by {removed} seats")

    @staticmethod
    @transactional_database_operation("update_resource_pool")
    @log_database_operation("resource pool update", level="info")
    async def update_resource_pool(
        db: AsyncSession,
        pool_id: UUID,
        update_data: ResourcePoolUpdate,
        now: Optional[datetime] = None,
    ) -> ResourcePool:
        """
        Update pool fields, resizing the seat range when max_seats changes.

        A new end_at re-derives the status of active/overdue pools. Setting
        status by hand is limited to paused/completed, or to active to resume
        a paused pool (the status is then derived from end_at). Archived pools
        only change status through restore.

        Raises:
            NotFoundError: pool does not exist
            InventoryValidationError: invalid window, shrink below occupied
                seats, or a time-derived status given explicitly
        """
        now = now or utc_now()
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        fields = update_data.model_dump(exclude_unset=True)
        start_at = fields.get("start_at") or pool.start_at
        end_at = fields.get("end_at") or pool.end_at
        if end_at <= start_at:
            raise InventoryValidationError("end_at must be after start_at")
        if fields.get("status") is not None and not pool.is_alive:
            raise InventoryValidationError(
                f"Pool {pool_id} is archived; restore it before changing its status"
            )

        if "max_seats" in fields and fields["max_seats"] is not None:
            if fields["max_seats"] < 1:
                raise InventoryValidationError("max_seats must be at least 1")
            if fields["max_seats"] != pool.max_seats:
                # Seats before the pool row
                await ResourcePoolService._resize(db, pool, fields["max_seats"], now)
        else:
            fields.pop("max_seats", None)

        requested_status = fields.pop("status", None)
        if requested_status is not None:
            requested_status = PoolStatus(requested_status)
            if requested_status in MANUAL_STATUSES:
                fields["status"] = requested_status.value
            elif requested_status == PoolStatus.ACTIVE:
                derived = derive_pool_status(end_at, now)
                fields["status"] = derived.value
                if derived == PoolStatus.EXPIRED:
                    fields["is_alive"] = False
            else:
                raise InventoryValidationError(
                    f"Status {requested_status.value} is derived from end_at and cannot be set"
                )
        elif "end_at" in fields and pool.status in PoolStatus.sweepable():
            derived = derive_pool_status(end_at, now)
            fields["status"] = derived.value
            if derived == PoolStatus.EXPIRED:
                fields["is_alive"] = False

        if fields.get("pool_type") is not None:
            fields["pool_type"] = PoolType(fields["pool_type"]).value

        for key in ("provider", "login_email", "pool_type", "start_at", "end_at"):
            if key in fields and fields[key] is None:
                fields.pop(key)

        fields["updated_at"] = now
        pool = await ResourcePoolRepository.update(db, db_obj=pool, obj_in=fields)
        await db.refresh(pool)
        return pool

    @staticmethod
    @transactional_database_operation("delete_resource_pool")
    @log_database_operation("resource pool deletion", level="info")
    async def delete_resource_pool(
        db: AsyncSession,
        pool_id: UUID,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Delete a pool and its seats, detaching any linked subscriptions.
        """
        now = now or utc_now()
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        detached = await SubscriptionRepository.clear_links_for_pool(db, pool_id, now=now)
        removed = await SeatRepository.delete_for_pool(db, pool_id)
        await db.delete(pool)
        await db.flush()

        logger.info(
            f"Deleted resource pool {pool_id} | Seats removed: {removed} | "
            f"Subscriptions detached: {detached}"
        )
