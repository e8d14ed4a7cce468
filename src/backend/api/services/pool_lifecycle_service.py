"""
Pool lifecycle: time-derived status and archival.

Status rules, evaluated against an injected `now`:
- end_at <= now                    -> expired, and is_alive forced to false
- now < end_at <= now + window     -> overdue
- otherwise                        -> active
Only pools currently active or overdue are rewritten; paused and completed
pools are left alone even past their end date.

The sweep is three set-based UPDATEs whose predicates exclude rows already
in their target status, so a second run at the same instant writes nothing.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.decorators import log_database_operation, transactional_database_operation
from core.exceptions import InventoryValidationError, NotFoundError
from core.logging_config import InventoryLogger
from core.metrics import track_status_transitions, track_sweep
from db.models import ResourcePool, utc_now
from models.model_enum import PoolStatus
from repositories.resource_pool_repository import ResourcePoolRepository

logger = logging.getLogger(__name__)
inventory_logger = InventoryLogger("lifecycle")


@dataclass
class SweepResult:
    """Row counts written by one status sweep."""

    now: datetime
    expired: int = 0
    overdue: int = 0
    reactivated: int = 0

    @property
    def total(self) -> int:
        return self.expired + self.overdue + self.reactivated


def overdue_window() -> timedelta:
    return timedelta(hours=settings.inventory.overdue_window_hours)


def derive_pool_status(
    end_at: datetime,
    now: datetime,
    window: Optional[timedelta] = None,
) -> PoolStatus:
    """
    Time-derived status of a pool ending at end_at.

    Example:
        >>> now = datetime(2025, 1, 10)
        >>> derive_pool_status(datetime(2025, 1, 20), now)
        <PoolStatus.ACTIVE: 'active'>
        >>> derive_pool_status(datetime(2025, 1, 10, 12), now)
        <PoolStatus.OVERDUE: 'overdue'>
    """
    if window is None:
        window = overdue_window()
    if end_at <= now:
        return PoolStatus.EXPIRED
    if end_at <= now + window:
        return PoolStatus.OVERDUE
    return PoolStatus.ACTIVE


class PoolLifecycleService:
    """Status sweep, archive and restore for resource pools."""

    @staticmethod
    @transactional_database_operation("refresh_pool_status")
    @log_database_operation("pool status sweep", level="debug")
    async def refresh_pool_status(
        db: AsyncSession,
        now: Optional[datetime] = None,
        window: Optional[timedelta] = None,
    ) -> SweepResult:
        """
        Recompute status/is_alive of active and overdue pools from end_at.

        Safe to run concurrently with itself and with seat writes: it only
        touches pool status, is_alive and updated_at.

        Args:
            db: Database session
            now: Current time (naive UTC); defaults to the wall clock
            window: Overdue window; defaults to INVENTORY_OVERDUE_WINDOW_HOURS

        Returns:
            SweepResult with the number of pools moved to each status
        """
        now = now or utc_now()
        threshold = now + (window if window is not None else overdue_window())

        async with track_sweep("pools"):
            result = SweepResult(now=now)
            result.expired = await ResourcePoolRepository.expire_elapsed(db, now=now)
            result.overdue = await ResourcePoolRepository.mark_overdue(
                db, now=now, threshold=threshold
            )
            result.reactivated = await ResourcePoolRepository.reactivate(
                db, now=now, threshold=threshold
            )

        track_status_transitions(PoolStatus.EXPIRED.value, result.expired)
        track_status_transitions(PoolStatus.OVERDUE.value, result.overdue)
        track_status_transitions(PoolStatus.ACTIVE.value, result.reactivated)
        inventory_logger.sweep_completed(
            now, result.expired, result.overdue, result.reactivated
        )
        return result

    @staticmethod
    @transactional_database_operation("archive_pool")
    @log_database_operation("pool archive", level="info")
    async def archive_pool(
        db: AsyncSession,
        pool_id: UUID,
        now: Optional[datetime] = None,
    ) -> ResourcePool:
        """
        Archive one pool (status=expired, is_alive=false).

        Seats keep their assignments; archived pools just stop accepting new
        ones. Archiving an archived pool is a no-op.
        """
        now = now or utc_now()
        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        archived = await ResourcePoolRepository.archive(db, [pool_id], now=now)
        if archived:
            track_status_transitions(PoolStatus.EXPIRED.value, len(archived))
            inventory_logger.pools_archived(archived, "manual")

        await db.refresh(pool)
        return pool

    @staticmethod
    @transactional_database_operation("bulk_archive_pools")
    @log_database_operation("bulk pool archive", level="info")
    async def bulk_archive_pools(
        db: AsyncSession,
        pool_ids: Sequence[UUID],
        now: Optional[datetime] = None,
    ) -> List[UUID]:
        """
        Archive several pools in one transaction.

        Returns:
            Ids that were archived by this call (unknown or already archived
            ids are skipped)
        """
        now = now or utc_now()
        archived = await ResourcePoolRepository.archive(db, list(dict.fromkeys(pool_ids)), now=now)
        if archived:
            track_status_transitions(PoolStatus.EXPIRED.value, len(archived))
            inventory_logger.pools_archived(archived, "bulk")
        return archived

    @staticmethod
    @transactional_database_operation("archive_expired_pools")
    @log_database_operation("expired pool archive", level="info")
    async def archive_expired_pools(
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> List[UUID]:
        """Archive every active/overdue pool whose end_at has passed."""
        now = now or utc_now()
        elapsed_ids = await ResourcePoolRepository.find_elapsed_ids(db, now=now)
        archived = await ResourcePoolRepository.archive(db, elapsed_ids, now=now)
        if archived:
            track_status_transitions(PoolStatus.EXPIRED.value, len(archived))
            inventory_logger.pools_archived(archived, "expired")
        return archived

    @staticmethod
    @transactional_database_operation("restore_pool")
    @log_database_operation("pool restore", level="info")
    async def restore_pool(
        db: AsyncSession,
        pool_id: UUID,
        end_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePool:
        """
        Un-archive a pool, optionally extending its end date.

        The effective end_at must lie in the future, otherwise the next sweep
        would expire the pool again; such restores are rejected. The restored
        status is derived from end_at (active, or overdue inside the window).

        Raises:
            NotFoundError: pool does not exist
            InventoryValidationError: effective end_at is not after now, or
                not after start_at
        """
        now = now or utc_now()
        pool = await ResourcePoolRepository.find_by_id(db, pool_id, for_update=True)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        effective_end = end_at or pool.end_at
        if effective_end <= pool.start_at:
            raise InventoryValidationError("end_at must be after start_at")
        if effective_end <= now:
            raise InventoryValidationError(
                "Cannot restore a pool whose end_at is in the past; provide a new end_at"
            )

        status = derive_pool_status(effective_end, now)
        await ResourcePoolRepository.update(
            db,
            db_obj=pool,
            obj_in={
                "end_at": effective_end,
                "status": status.value,
                "is_alive": True,
                "updated_at": now,
            },
        )
        track_status_transitions(status.value, 1)
        inventory_logger.pool_restored(pool_id, status.value, effective_end)
        return pool
