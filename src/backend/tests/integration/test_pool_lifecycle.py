"""
Integration tests for pool lifecycle (status sweep, archive, restore).

Tests cover:
- Sweep transitions active -> overdue -> expired against an injected clock
- Sweep idempotence at a fixed instant
- Paused/completed pools left alone past their end date
- Single, bulk and expired-only archival
- Restore with and without a new end date
- Archived pools revived only through restore, never through updates
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.resource_pool import ResourcePoolUpdate
from api.services.pool_lifecycle_service import PoolLifecycleService
from api.services.resource_pool_service import ResourcePoolService
from api.services.seat_allocator import SeatAllocator
from core.exceptions import InventoryValidationError, NotFoundError, PoolNotAssignableError
from db.models import ResourcePool
from models.model_enum import PoolStatus, SeatStatus
from repositories.seat_repository import SeatRepository
from tests.factories import NOW


async def _reload(db: AsyncSession, pool_id) -> ResourcePool:
    pool = await db.get(ResourcePool, pool_id)
    await db.refresh(pool)
    return pool


class TestStatusSweep:
    """Tests for PoolLifecycleService.refresh_pool_status."""

    @pytest.mark.asyncio
    async def test_pool_walks_through_statuses(self, db_session: AsyncSession, make_pool):
        """A pool ending 2025-01-10 12:00 is active, then overdue, then expired."""
        created_at = datetime(2025, 1, 1)
        pool = await make_pool(
            now=created_at,
            start_at=datetime(2024, 12, 1),
            end_at=datetime(2025, 1, 10, 12, 0),
        )
        pool_id = pool.id
        assert pool.status == PoolStatus.ACTIVE.value

        result = await PoolLifecycleService.refresh_pool_status(
            db_session, now=datetime(2025, 1, 10, 0, 0)
        )
        assert result.overdue == 1
        pool = await _reload(db_session, pool_id)
        assert pool.status == PoolStatus.OVERDUE.value
        assert pool.is_alive is True

        result = await PoolLifecycleService.refresh_pool_status(
            db_session, now=datetime(2025, 1, 10, 12, 0, 1)
        )
        assert result.expired == 1
        pool = await _reload(db_session, pool_id)
        assert pool.status == PoolStatus.EXPIRED.value
        assert pool.is_alive is False

    @pytest.mark.asyncio
    async def test_second_sweep_at_same_instant_changes_nothing(
        self, db_session: AsyncSession, make_pool
    ):
        earlier = NOW - timedelta(days=20)
        await make_pool(now=earlier, end_at=NOW - timedelta(hours=1))
        await make_pool(now=earlier, end_at=NOW + timedelta(hours=3))
        await make_pool(now=earlier, end_at=NOW + timedelta(days=5))

        first = await PoolLifecycleService.refresh_pool_status(db_session, now=NOW)
        second = await PoolLifecycleService.refresh_pool_status(db_session, now=NOW)

        assert first.expired == 1
        assert first.overdue == 1
        assert second.total == 0

    @pytest.mark.asyncio
    async def test_overdue_pool_with_extended_end_is_reactivated(
        self, db_session: AsyncSession, make_pool
    ):
        pool = await make_pool(end_at=NOW + timedelta(hours=6))
        pool_id = pool.id
        assert pool.status == PoolStatus.OVERDUE.value

        await db_session.execute(
            update(ResourcePool)
            .where(ResourcePool.id == pool_id)
            .values(end_at=NOW + timedelta(days=30))
        )
        await db_session.commit()

        result = await PoolLifecycleService.refresh_pool_status(db_session, now=NOW)

        assert result.reactivated == 1
        pool = await _reload(db_session, pool_id)
        assert pool.status == PoolStatus.ACTIVE.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("manual_status", [PoolStatus.PAUSED, PoolStatus.COMPLETED])
    async def test_manual_statuses_survive_the_sweep(
        self, db_session: AsyncSession, make_pool, manual_status
    ):
        """A paused pool whose end_at has passed stays paused and alive."""
        pool = await make_pool(
            now=NOW - timedelta(days=20),
            end_at=NOW - timedelta(days=1),
            status=manual_status,
        )
        pool_id = pool.id

        result = await PoolLifecycleService.refresh_pool_status(db_session, now=NOW)

        assert result.total == 0
        pool = await _reload(db_session, pool_id)
        assert pool.status == manual_status.value
        assert pool.is_alive is True

    @pytest.mark.asyncio
    async def test_sweep_keeps_seat_assignments(self, db_session: AsyncSession, make_pool):
        pool = await make_pool(now=NOW - timedelta(days=20), end_at=NOW + timedelta(days=1))
        pool_id = pool.id
        seat = await SeatAllocator.assign_next_free_seat(
            db_session, pool_id, email="alice@example.com", now=NOW - timedelta(days=20)
        )
        seat_id = seat.id

        await PoolLifecycleService.refresh_pool_status(db_session, now=NOW + timedelta(days=2))

        pool = await _reload(db_session, pool_id)
        assert pool.status == PoolStatus.EXPIRED.value
        assert pool.used_seats == 1
        seat = await SeatRepository.find_by_id(db_session, seat_id)
        assert seat.seat_status == SeatStatus.ASSIGNED.value


class TestArchive:
    """Tests for archive_pool, bulk_archive_pools and archive_expired_pools."""

    @pytest.mark.asyncio
    async def test_archive_pool(self, db_session: AsyncSession, pool):
        archived = await PoolLifecycleService.archive_pool(db_session, pool.id, now=NOW)

        assert archived.is_alive is False
        assert archived.status == PoolStatus.EXPIRED.value
        assert archived.updated_at == NOW

    @pytest.mark.asyncio
    async def test_archive_twice_is_noop(self, db_session: AsyncSession, pool):
        pool_id = pool.id
        await PoolLifecycleService.archive_pool(db_session, pool_id, now=NOW)

        ids = await PoolLifecycleService.bulk_archive_pools(
            db_session, [pool_id], now=NOW + timedelta(hours=1)
        )

        assert ids == []
        pool = await _reload(db_session, pool_id)
        assert pool.updated_at == NOW

    @pytest.mark.asyncio
    async def test_archive_unknown_pool_raises(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await PoolLifecycleService.archive_pool(db_session, uuid4(), now=NOW)

    @pytest.mark.asyncio
    async def test_bulk_archive_skips_unknown_ids(self, db_session: AsyncSession, make_pool):
        first = await make_pool()
        second = await make_pool()
        untouched = await make_pool()
        first_id, second_id, untouched_id = first.id, second.id, untouched.id

        ids = await PoolLifecycleService.bulk_archive_pools(
            db_session, [first_id, second_id, uuid4(), first_id], now=NOW
        )

        assert sorted(ids) == sorted([first_id, second_id])
        untouched = await _reload(db_session, untouched_id)
        assert untouched.is_alive is True

    @pytest.mark.asyncio
    async def test_archive_expired_only_touches_elapsed_pools(
        self, db_session: AsyncSession, make_pool
    ):
        earlier = NOW - timedelta(days=20)
        elapsed = await make_pool(now=earlier, end_at=NOW - timedelta(hours=2))
        running = await make_pool(now=earlier, end_at=NOW + timedelta(days=3))
        paused = await make_pool(
            now=earlier, end_at=NOW - timedelta(hours=2), status=PoolStatus.PAUSED
        )
        elapsed_id, running_id, paused_id = elapsed.id, running.id, paused.id

        ids = await PoolLifecycleService.archive_expired_pools(db_session, now=NOW)

        assert ids == [elapsed_id]
        assert (await _reload(db_session, running_id)).is_alive is True
        assert (await _reload(db_session, paused_id)).status == PoolStatus.PAUSED.value

    @pytest.mark.asyncio
    async def test_archived_pool_rejects_assignment(self, db_session: AsyncSession, pool):
        pool_id = pool.id
        await PoolLifecycleService.archive_pool(db_session, pool_id, now=NOW)

        with pytest.raises(PoolNotAssignableError):
            await SeatAllocator.assign_next_free_seat(
                db_session, pool_id, email="alice@example.com", now=NOW
            )


class TestRestore:
    """Tests for PoolLifecycleService.restore_pool."""

    @pytest.mark.asyncio
    async def test_restore_with_new_end_date(self, db_session: AsyncSession, make_pool):
        pool = await make_pool(end_at=NOW - timedelta(days=1))
        pool_id = pool.id
        assert pool.is_alive is False

        restored = await PoolLifecycleService.restore_pool(
            db_session, pool_id, end_at=NOW + timedelta(days=30), now=NOW
        )

        assert restored.is_alive is True
        assert restored.status == PoolStatus.ACTIVE.value
        assert restored.end_at == NOW + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_restore_near_end_is_overdue(self, db_session: AsyncSession, pool):
        pool_id = pool.id
        await PoolLifecycleService.archive_pool(db_session, pool_id, now=NOW)

        restored = await PoolLifecycleService.restore_pool(
            db_session, pool_id, end_at=NOW + timedelta(hours=2), now=NOW
        )

        assert restored.status == PoolStatus.OVERDUE.value
        assert restored.is_alive is True

    @pytest.mark.asyncio
    async def test_restore_keeps_future_end_date(self, db_session: AsyncSession, pool):
        pool_id = pool.id
        end_at = pool.end_at
        await PoolLifecycleService.archive_pool(db_session, pool_id, now=NOW)

        restored = await PoolLifecycleService.restore_pool(db_session, pool_id, now=NOW)

        assert restored.end_at == end_at
        assert restored.status == PoolStatus.ACTIVE.value

    @pytest.mark.asyncio
    async def test_restore_with_past_end_date_is_rejected(
        self, db_session: AsyncSession, make_pool
    ):
        pool = await make_pool(end_at=NOW - timedelta(days=1))
        pool_id = pool.id

        with pytest.raises(InventoryValidationError):
            await PoolLifecycleService.restore_pool(db_session, pool_id, now=NOW)

        pool = await _reload(db_session, pool_id)
        assert pool.is_alive is False
        assert pool.status == PoolStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_restored_pool_accepts_assignments(self, db_session: AsyncSession, pool):
        pool_id = pool.id
        await PoolLifecycleService.archive_pool(db_session, pool_id, now=NOW)
        await PoolLifecycleService.restore_pool(db_session, pool_id, now=NOW)

        seat = await SeatAllocator.assign_next_free_seat(
            db_session, pool_id, email="alice@example.com", now=NOW
        )
        assert seat.seat_index == 0

    @pytest.mark.asyncio
    async def test_rejected_restore_cannot_be_bypassed_by_update(
        self, db_session: AsyncSession, make_pool
    ):
        pool = await make_pool(end_at=NOW - timedelta(days=1))
        pool_id = pool.id

        with pytest.raises(InventoryValidationError):
            await PoolLifecycleService.restore_pool(db_session, pool_id, now=NOW)
        await ResourcePoolService.update_resource_pool(
            db_session, pool_id, ResourcePoolUpdate(isAlive=True, notes="retry"), now=NOW
        )
        await PoolLifecycleService.refresh_pool_status(
            db_session, now=NOW + timedelta(days=30)
        )

        pool = await _reload(db_session, pool_id)
        assert pool.notes == "retry"
        assert pool.is_alive is False
        assert pool.status == PoolStatus.EXPIRED.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [PoolStatus.ACTIVE, PoolStatus.PAUSED])
    async def test_archived_pool_status_changes_need_restore(
        self, db_session: AsyncSession, pool, status
    ):
        pool_id = pool.id
        await PoolLifecycleService.archive_pool(db_session, pool_id, now=NOW)

        with pytest.raises(InventoryValidationError):
            await ResourcePoolService.update_resource_pool(
                db_session, pool_id, ResourcePoolUpdate(status=status), now=NOW
            )

        pool = await _reload(db_session, pool_id)
        assert pool.is_alive is False
        assert pool.status == PoolStatus.EXPIRED.value
