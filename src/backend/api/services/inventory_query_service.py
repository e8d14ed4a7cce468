"""
Inventory query surface: read-only projections of the seat ledger.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.resource_pool import InventorySummary, PoolStats
from api.schemas.seat import AssignmentFilter, SeatFilter
from core.decorators import critical_database_operation, log_database_operation
from core.exceptions import NotFoundError
from db.models import ResourcePool, ResourcePoolSeat, utc_now
from models.model_enum import PoolStatus, SeatStatus
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository

logger = logging.getLogger(__name__)


class InventoryQueryService:
    """Stats, search and listings over pools and seats."""

    @staticmethod
    @critical_database_operation("get_pool_stats")
    @log_database_operation("pool stats retrieval", level="debug")
    async def get_pool_stats(db: AsyncSession, pool_id: UUID) -> PoolStats:
        """
        Seat aggregate of one pool.

        available_seats is always total_seats - used_seats.

        Raises:
            NotFoundError: pool does not exist
        """
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        counts = await SeatRepository.count_by_status(db, pool_id)
        return PoolStats(
            pool_id=pool.id,
            total_seats=pool.max_seats,
            used_seats=pool.used_seats,
            available_seats=pool.max_seats - pool.used_seats,
            assigned_seats=counts[SeatStatus.ASSIGNED.value],
            reserved_seats=counts[SeatStatus.RESERVED.value],
        )

    @staticmethod
    @critical_database_operation("search_pools_by_seat_email")
    @log_database_operation("seat email search", level="debug")
    async def search_pools_by_seat_email(db: AsyncSession, term: str) -> List[UUID]:
        """Ids of pools having a seat whose assigned_email contains term."""
        term = (term or "").strip()
        if not term:
            return []
        return await SeatRepository.find_pool_ids_by_email(db, term)

    @staticmethod
    @critical_database_operation("get_inventory_summary")
    @log_database_operation("inventory summary", level="debug")
    async def get_inventory_summary(
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> InventorySummary:
        """
        Totals across pools.

        Seat totals cover live pools only; "archived" counts pools with
        is_alive=false, and "ending_today" live pools ending before
        midnight of the next day.
        """
        now = now or utc_now()
        status_counts = await ResourcePoolRepository.get_status_counts(db)
        archived = await ResourcePoolRepository.count(db, filters={"is_alive": False})
        total_seats, used_seats = await ResourcePoolRepository.get_seat_totals(db)

        tomorrow = now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)
        ending_today = await ResourcePoolRepository.count_ending_between(db, now, tomorrow)

        return InventorySummary(
            total=sum(status_counts.values()),
            active=status_counts.get(PoolStatus.ACTIVE.value, 0),
            overdue=status_counts.get(PoolStatus.OVERDUE.value, 0),
            expired=status_counts.get(PoolStatus.EXPIRED.value, 0),
            paused=status_counts.get(PoolStatus.PAUSED.value, 0),
            completed=status_counts.get(PoolStatus.COMPLETED.value, 0),
            archived=archived,
            ending_today=ending_today,
            total_seats=total_seats,
            used_seats=used_seats,
            available_seats=total_seats - used_seats,
        )

    @staticmethod
    @critical_database_operation("list_seat_assignments")
    @log_database_operation("seat assignment listing", level="debug")
    async def list_seat_assignments(
        db: AsyncSession,
        assignment_filter: Optional[AssignmentFilter] = None,
    ) -> List[ResourcePoolSeat]:
        """Assigned seats with their pools, newest assignment first."""
        f = assignment_filter or AssignmentFilter()
        return await SeatRepository.find_assignments(
            db,
            pool_id=f.pool_id,
            provider=f.provider,
            client_id=f.client_id,
            subscription_id=f.subscription_id,
            assigned_after=f.assigned_after,
            assigned_before=f.assigned_before,
            search=f.search,
        )

    @staticmethod
    @critical_database_operation("get_pool_seats")
    @log_database_operation("pool seat listing", level="debug")
    async def get_pool_seats(
        db: AsyncSession,
        pool_id: UUID,
        seat_filter: Optional[SeatFilter] = None,
    ) -> List[ResourcePoolSeat]:
        """
        Seats of a pool in seat_index order.

        Raises:
            NotFoundError: pool does not exist
        """
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        f = seat_filter or SeatFilter()
        return await SeatRepository.find_for_pool(
            db,
            pool_id,
            seat_status=f.status.value if f.status else None,
            assigned_client_id=f.assigned_client_id,
            assigned_subscription_id=f.assigned_subscription_id,
            search=f.search,
        )

    @staticmethod
    async def get_available_seats_in_pool(
        db: AsyncSession, pool_id: UUID
    ) -> List[ResourcePoolSeat]:
        """Available seats of a pool, lowest index first."""
        return await InventoryQueryService.get_pool_seats(
            db, pool_id, SeatFilter(status=SeatStatus.AVAILABLE)
        )

    @staticmethod
    @critical_database_operation("get_available_pools_for_provider")
    @log_database_operation("provider pool lookup", level="debug")
    async def get_available_pools_for_provider(
        db: AsyncSession, provider: str
    ) -> List[ResourcePool]:
        return await ResourcePoolRepository.find_with_free_seats_for_provider(db, provider)
