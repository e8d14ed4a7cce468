"""
Integration tests for the seat allocator.

Tests cover:
- Specific-seat assignment and its conflict path
- Next-free assignment (lowest index first, exhaustion)
- used_seats staying equal to the number of assigned seats
- Concurrent allocations over independent sessions
- Release round-trip and idempotence
- Pool status enforcement at assignment time

These tests run against a real test database.
"""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.seat_allocator import SeatAllocator
from core.exceptions import (
    InventoryValidationError,
    NoAvailableSeatsError,
    NotFoundError,
    PoolNotAssignableError,
    SeatUnavailableError,
)
from db.models import ResourcePool, ResourcePoolSeat, Subscription
from models.model_enum import PoolStatus, SeatStatus
from repositories.seat_repository import SeatRepository
from tests.factories import NOW


async def _seats(db: AsyncSession, pool_id):
    return await SeatRepository.find_for_pool(db, pool_id)


async def _assigned_count(db: AsyncSession, pool_id) -> int:
    result = await db.execute(
        select(func.count(ResourcePoolSeat.id)).where(
            ResourcePoolSeat.pool_id == pool_id,
            ResourcePoolSeat.seat_status == SeatStatus.ASSIGNED.value,
        )
    )
    return result.scalar_one()


class TestAssignSpecificSeat:
    """Tests for SeatAllocator.assign_seat."""

    @pytest.mark.asyncio
    async def test_assigns_available_seat(self, db_session: AsyncSession, pool):
        seats = await _seats(db_session, pool.id)
        client_id = uuid4()

        seat = await SeatAllocator.assign_seat(
            db_session, seats[1].id, email="alice@example.com", client_id=client_id, now=NOW
        )

        assert seat.seat_status == SeatStatus.ASSIGNED.value
        assert seat.assigned_email == "alice@example.com"
        assert seat.assigned_client_id == client_id
        assert seat.assigned_at == NOW

        await db_session.refresh(pool)
        assert pool.used_seats == 1

    @pytest.mark.asyncio
    async def test_assigning_taken_seat_fails(self, db_session: AsyncSession, pool):
        """A second assignment of the same seat never succeeds silently."""
        seats = await _seats(db_session, pool.id)
        seat_id = seats[0].id
        await SeatAllocator.assign_seat(
            db_session, seats[0].id, email="alice@example.com", now=NOW
        )

        with pytest.raises(SeatUnavailableError):
            await SeatAllocator.assign_seat(
                db_session, seat_id, email="bob@example.com", now=NOW
            )

        seat = await SeatRepository.find_by_id(db_session, seat_id)
        await db_session.refresh(seat)
        assert seat.assigned_email == "alice@example.com"

        await db_session.refresh(pool)
        assert pool.used_seats == 1

    @pytest.mark.asyncio
    async def test_unknown_seat_raises_not_found(self, db_session: AsyncSession, pool):
        with pytest.raises(NotFoundError):
            await SeatAllocator.assign_seat(
                db_session, uuid4(), email="alice@example.com", now=NOW
            )

    @pytest.mark.asyncio
    async def test_concurrent_assign_of_same_seat(
        self, db_session: AsyncSession, session_factory, pool
    ):
        """Two simultaneous claims on one seat: exactly one wins."""
        seats = await _seats(db_session, pool.id)
        target_id = seats[0].id
        await db_session.commit()

        async def attempt(email: str):
            async with session_factory() as session:
                return await SeatAllocator.assign_seat(
                    session, target_id, email=email, now=NOW
                )

        results = await asyncio.gather(
            attempt("alice@example.com"),
            attempt("bob@example.com"),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, ResourcePoolSeat)]
        failures = [r for r in results if isinstance(r, SeatUnavailableError)]
        assert len(successes) == 1
        assert len(failures) == 1

        await db_session.refresh(pool)
        assert pool.used_seats == 1


class TestAssignNextFreeSeat:
    """Tests for SeatAllocator.assign_next_free_seat."""

    @pytest.mark.asyncio
    async def test_picks_lowest_index(self, db_session: AsyncSession, pool):
        first = await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="alice@example.com", now=NOW
        )
        second = await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="bob@example.com", now=NOW
        )

        assert first.seat_index == 0
        assert second.seat_index == 1

        await db_session.refresh(pool)
        assert pool.used_seats == 2

    @pytest.mark.asyncio
    async def test_skips_occupied_low_index(self, db_session: AsyncSession, pool):
        seats = await _seats(db_session, pool.id)
        await SeatAllocator.assign_seat(
            db_session, seats[0].id, email="alice@example.com", now=NOW
        )

        seat = await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="bob@example.com", now=NOW
        )

        assert seat.seat_index == 1

    @pytest.mark.asyncio
    async def test_released_seat_is_reused_first(self, db_session: AsyncSession, pool):
        first = await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="alice@example.com", now=NOW
        )
        await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="bob@example.com", now=NOW
        )
        await SeatAllocator.unassign_seat(db_session, first.id, now=NOW)

        seat = await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="carol@example.com", now=NOW
        )

        assert seat.id == first.id
        assert seat.seat_index == 0

    @pytest.mark.asyncio
    async def test_full_pool_raises_no_available_seats(self, db_session: AsyncSession, make_pool):
        """Pool with one seat, already assigned: allocation fails, used_seats stays 1."""
        small_pool = await make_pool(max_seats=1)
        pool_id = small_pool.id
        await SeatAllocator.assign_next_free_seat(
            db_session, pool_id, email="alice@example.com", now=NOW
        )

        with pytest.raises(NoAvailableSeatsError) as exc_info:
            await SeatAllocator.assign_next_free_seat(
                db_session, pool_id, email="bob@example.com", now=NOW
            )

        assert exc_info.value.pool_id == pool_id
        await db_session.refresh(small_pool)
        assert small_pool.used_seats == 1

    @pytest.mark.asyncio
    async def test_unknown_pool_raises_not_found(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await SeatAllocator.assign_next_free_seat(
                db_session, uuid4(), email="alice@example.com", now=NOW
            )

    @pytest.mark.asyncio
    async def test_two_concurrent_calls_get_distinct_seats(
        self, db_session: AsyncSession, session_factory, make_pool
    ):
        """Pool with 2 free seats and 2 concurrent callers: seats 0 and 1."""
        two_seat_pool = await make_pool(max_seats=2)
        pool_id = two_seat_pool.id
        await db_session.commit()

        async def attempt(email: str):
            async with session_factory() as session:
                seat = await SeatAllocator.assign_next_free_seat(
                    session, pool_id, email=email, now=NOW
                )
                return seat.seat_index

        indices = await asyncio.gather(
            attempt("alice@example.com"), attempt("bob@example.com")
        )

        assert sorted(indices) == [0, 1]
        await db_session.refresh(two_seat_pool)
        assert two_seat_pool.used_seats == 2

    @pytest.mark.asyncio
    async def test_more_callers_than_seats(
        self, db_session: AsyncSession, session_factory, make_pool
    ):
        """K free seats, N > K callers: K distinct seats, N - K clean failures."""
        seat_count, callers = 3, 7
        contended_pool = await make_pool(max_seats=seat_count)
        pool_id = contended_pool.id
        await db_session.commit()

        async def attempt(n: int):
            async with session_factory() as session:
                seat = await SeatAllocator.assign_next_free_seat(
                    session, pool_id, email=f"user{n}@example.com", now=NOW
                )
                return seat.id

        results = await asyncio.gather(
            *(attempt(n) for n in range(callers)), return_exceptions=True
        )

        seat_ids = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]

        assert len(seat_ids) == seat_count
        assert len(set(seat_ids)) == seat_count
        assert len(failures) == callers - seat_count
        assert all(isinstance(f, NoAvailableSeatsError) for f in failures)

        await db_session.refresh(contended_pool)
        assert contended_pool.used_seats == seat_count
        assert await _assigned_count(db_session, pool_id) == seat_count


class TestUnassignSeat:
    """Tests for SeatAllocator.unassign_seat."""

    @pytest.mark.asyncio
    async def test_round_trip_clears_assignee(self, db_session: AsyncSession, pool, subscription):
        seat = await SeatAllocator.assign_next_free_seat(
            db_session,
            pool.id,
            email="alice@example.com",
            client_id=subscription.client_id,
            subscription_id=subscription.id,
            now=NOW,
        )

        released = await SeatAllocator.unassign_seat(db_session, seat.id, now=NOW)

        assert released.seat_status == SeatStatus.AVAILABLE.value
        assert released.assigned_email is None
        assert released.assigned_client_id is None
        assert released.assigned_subscription_id is None
        assert released.unassigned_at == NOW

        await db_session.refresh(pool)
        assert pool.used_seats == 0

        await db_session.refresh(subscription)
        assert subscription.resource_pool_id is None
        assert subscription.resource_pool_seat_id is None

    @pytest.mark.asyncio
    async def test_unassign_available_seat_is_noop(self, db_session: AsyncSession, pool):
        seats = await _seats(db_session, pool.id)

        seat = await SeatAllocator.unassign_seat(db_session, seats[0].id, now=NOW)

        assert seat.seat_status == SeatStatus.AVAILABLE.value
        assert seat.unassigned_at is None
        await db_session.refresh(pool)
        assert pool.used_seats == 0

    @pytest.mark.asyncio
    async def test_used_seats_tracks_interleaved_operations(self, db_session: AsyncSession, pool):
        a = await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="a@example.com", now=NOW
        )
        await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="b@example.com", now=NOW
        )
        await SeatAllocator.unassign_seat(db_session, a.id, now=NOW)
        await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="c@example.com", now=NOW
        )
        await SeatAllocator.assign_next_free_seat(
            db_session, pool.id, email="d@example.com", now=NOW
        )

        await db_session.refresh(pool)
        assert pool.used_seats == 3
        assert pool.used_seats == await _assigned_count(db_session, pool.id)


class TestSubscriptionPairing:
    """Assigning with a subscription writes the back-references in the same transaction."""

    @pytest.mark.asyncio
    async def test_assign_sets_back_references(
        self, db_session: AsyncSession, pool, subscription: Subscription
    ):
        seat = await SeatAllocator.assign_next_free_seat(
            db_session,
            pool.id,
            email="alice@example.com",
            subscription_id=subscription.id,
            now=NOW,
        )

        await db_session.refresh(subscription)
        assert subscription.resource_pool_id == pool.id
        assert subscription.resource_pool_seat_id == seat.id
        assert seat.assigned_subscription_id == subscription.id

    @pytest.mark.asyncio
    async def test_subscription_cannot_hold_two_seats(
        self, db_session: AsyncSession, pool, subscription: Subscription
    ):
        await SeatAllocator.assign_next_free_seat(
            db_session,
            pool.id,
            email="alice@example.com",
            subscription_id=subscription.id,
            now=NOW,
        )

        with pytest.raises(InventoryValidationError):
            await SeatAllocator.assign_next_free_seat(
                db_session,
                pool.id,
                email="alice@example.com",
                subscription_id=subscription.id,
                now=NOW,
            )

        await db_session.refresh(pool)
        assert pool.used_seats == 1

    @pytest.mark.asyncio
    async def test_unknown_subscription_rolls_back_claim(self, db_session: AsyncSession, pool):
        with pytest.raises(NotFoundError):
            await SeatAllocator.assign_next_free_seat(
                db_session,
                pool.id,
                email="alice@example.com",
                subscription_id=uuid4(),
                now=NOW,
            )

        await db_session.refresh(pool)
        assert pool.used_seats == 0


class TestPoolStatusEnforcement:
    """Seats of archived, paused or completed pools cannot be assigned."""

    @pytest.mark.asyncio
    async def test_paused_pool_rejects_next_free(self, db_session: AsyncSession, make_pool):
        paused = await make_pool(status=PoolStatus.PAUSED)

        with pytest.raises(PoolNotAssignableError):
            await SeatAllocator.assign_next_free_seat(
                db_session, paused.id, email="alice@example.com", now=NOW
            )

    @pytest.mark.asyncio
    async def test_paused_pool_rejects_specific_seat(self, db_session: AsyncSession, make_pool):
        paused = await make_pool(status=PoolStatus.PAUSED)
        pool_id = paused.id
        seats = await _seats(db_session, pool_id)
        seat_id = seats[0].id

        with pytest.raises(PoolNotAssignableError):
            await SeatAllocator.assign_seat(
                db_session, seat_id, email="alice@example.com", now=NOW
            )

        seat = await SeatRepository.find_by_id(db_session, seat_id)
        await db_session.refresh(seat)
        assert seat.seat_status == SeatStatus.AVAILABLE.value
        refreshed = await db_session.get(ResourcePool, pool_id)
        await db_session.refresh(refreshed)
        assert refreshed.used_seats == 0

    @pytest.mark.asyncio
    async def test_overdue_pool_still_accepts_assignments(
        self, db_session: AsyncSession, make_pool
    ):
        overdue = await make_pool(end_at=NOW + timedelta(hours=6))
        assert overdue.status == PoolStatus.OVERDUE.value

        seat = await SeatAllocator.assign_next_free_seat(
            db_session, overdue.id, email="alice@example.com", now=NOW
        )
        assert seat.seat_index == 0
