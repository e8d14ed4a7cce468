"""
Integration tests for subscription/pool linking.

Tests cover:
- Linking to the next free seat or to a specific seat
- Back-references written with the seat claim
- Unlink releasing the seat and clearing the pairing
- Switching pools atomically, including a failed switch
"""

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.subscription_link_service import SubscriptionLinkService
from core.exceptions import (
    InventoryValidationError,
    NoAvailableSeatsError,
    NotFoundError,
)
from db.models import ResourcePool, Subscription
from models.model_enum import SeatStatus
from repositories.seat_repository import SeatRepository
from tests.factories import NOW


async def _reload_subscription(db: AsyncSession, subscription_id) -> Subscription:
    subscription = await db.get(Subscription, subscription_id)
    await db.refresh(subscription)
    return subscription


async def _used_seats(db: AsyncSession, pool_id) -> int:
    pool = await db.get(ResourcePool, pool_id)
    await db.refresh(pool)
    return pool.used_seats


class TestLink:
    """Tests for SubscriptionLinkService.link_subscription_to_pool."""

    @pytest.mark.asyncio
    async def test_link_allocates_lowest_free_seat(
        self, db_session: AsyncSession, pool, subscription
    ):
        """Pool with 3 seats, one linked subscription: seat 0 assigned, used_seats 1."""
        seat = await SubscriptionLinkService.link_subscription_to_pool(
            db_session, subscription.id, pool.id, email="alice@example.com", now=NOW
        )

        assert seat.seat_index == 0
        assert seat.seat_status == SeatStatus.ASSIGNED.value
        assert seat.assigned_subscription_id == subscription.id
        assert seat.assigned_client_id == subscription.client_id

        refreshed = await _reload_subscription(db_session, subscription.id)
        assert refreshed.resource_pool_id == pool.id
        assert refreshed.resource_pool_seat_id == seat.id
        assert await _used_seats(db_session, pool.id) == 1

    @pytest.mark.asyncio
    async def test_link_to_specific_seat(self, db_session: AsyncSession, pool, subscription):
        seats = await SeatRepository.find_for_pool(db_session, pool.id)

        seat = await SubscriptionLinkService.link_subscription_to_pool(
            db_session,
            subscription.id,
            pool.id,
            seats[2].id,
            email="alice@example.com",
            now=NOW,
        )

        assert seat.seat_index == 2

    @pytest.mark.asyncio
    async def test_seat_from_another_pool_is_rejected(
        self, db_session: AsyncSession, make_pool, subscription
    ):
        first = await make_pool()
        other = await make_pool()
        first_id, subscription_id = first.id, subscription.id
        other_seats = await SeatRepository.find_for_pool(db_session, other.id)
        other_seat_id = other_seats[0].id

        with pytest.raises(InventoryValidationError):
            await SubscriptionLinkService.link_subscription_to_pool(
                db_session,
                subscription_id,
                first_id,
                other_seat_id,
                email="alice@example.com",
                now=NOW,
            )

        refreshed = await _reload_subscription(db_session, subscription_id)
        assert refreshed.resource_pool_seat_id is None

    @pytest.mark.asyncio
    async def test_already_linked_subscription_is_rejected(
        self, db_session: AsyncSession, make_pool, subscription
    ):
        first = await make_pool()
        second = await make_pool()
        first_id, second_id, subscription_id = first.id, second.id, subscription.id
        await SubscriptionLinkService.link_subscription_to_pool(
            db_session, subscription_id, first_id, email="alice@example.com", now=NOW
        )

        with pytest.raises(InventoryValidationError):
            await SubscriptionLinkService.link_subscription_to_pool(
                db_session, subscription_id, second_id, email="alice@example.com", now=NOW
            )

        assert await _used_seats(db_session, second_id) == 0

    @pytest.mark.asyncio
    async def test_link_requires_email(self, db_session: AsyncSession, pool, subscription):
        with pytest.raises(InventoryValidationError):
            await SubscriptionLinkService.link_subscription_to_pool(
                db_session, subscription.id, pool.id, now=NOW
            )

    @pytest.mark.asyncio
    async def test_unknown_subscription_raises_not_found(self, db_session: AsyncSession, pool):
        with pytest.raises(NotFoundError):
            await SubscriptionLinkService.link_subscription_to_pool(
                db_session, uuid4(), pool.id, email="alice@example.com", now=NOW
            )


class TestUnlink:
    """Tests for SubscriptionLinkService.unlink_subscription_from_pool."""

    @pytest.mark.asyncio
    async def test_unlink_releases_seat(self, db_session: AsyncSession, pool, subscription):
        seat = await SubscriptionLinkService.link_subscription_to_pool(
            db_session, subscription.id, pool.id, email="alice@example.com", now=NOW
        )
        seat_id = seat.id

        released = await SubscriptionLinkService.unlink_subscription_from_pool(
            db_session, subscription.id, now=NOW
        )

        assert released == seat_id
        seat = await SeatRepository.find_by_id(db_session, seat_id)
        await db_session.refresh(seat)
        assert seat.seat_status == SeatStatus.AVAILABLE.value
        assert seat.assigned_subscription_id is None

        refreshed = await _reload_subscription(db_session, subscription.id)
        assert refreshed.resource_pool_id is None
        assert refreshed.resource_pool_seat_id is None
        assert await _used_seats(db_session, pool.id) == 0

    @pytest.mark.asyncio
    async def test_unlink_unlinked_subscription_is_noop(
        self, db_session: AsyncSession, subscription
    ):
        released = await SubscriptionLinkService.unlink_subscription_from_pool(
            db_session, subscription.id, now=NOW
        )
        assert released is None


class TestSwitch:
    """Tests for SubscriptionLinkService.switch_subscription_pool."""

    @pytest.mark.asyncio
    async def test_switch_moves_subscription(
        self, db_session: AsyncSession, make_pool, subscription
    ):
        source = await make_pool(max_seats=2)
        target = await make_pool(max_seats=2)
        source_id, target_id = source.id, target.id
        old_seat = await SubscriptionLinkService.link_subscription_to_pool(
            db_session, subscription.id, source_id, email="alice@example.com", now=NOW
        )
        old_seat_id = old_seat.id

        new_seat = await SubscriptionLinkService.switch_subscription_pool(
            db_session, subscription.id, target_id, now=NOW
        )

        assert new_seat.pool_id == target_id
        assert new_seat.assigned_email == "alice@example.com"
        assert await _used_seats(db_session, source_id) == 0
        assert await _used_seats(db_session, target_id) == 1

        old_seat = await SeatRepository.find_by_id(db_session, old_seat_id)
        await db_session.refresh(old_seat)
        assert old_seat.seat_status == SeatStatus.AVAILABLE.value

        refreshed = await _reload_subscription(db_session, subscription.id)
        assert refreshed.resource_pool_id == target_id
        assert refreshed.resource_pool_seat_id == new_seat.id

    @pytest.mark.asyncio
    async def test_failed_switch_keeps_old_link(
        self, db_session: AsyncSession, make_pool, make_subscription
    ):
        """Switching into a full pool rolls back and leaves the old seat in place."""
        source = await make_pool(max_seats=2)
        full = await make_pool(max_seats=1)
        source_id, full_id = source.id, full.id
        holder = await make_subscription()
        mover = await make_subscription()
        holder_id, mover_id = holder.id, mover.id

        await SubscriptionLinkService.link_subscription_to_pool(
            db_session, holder_id, full_id, email="holder@example.com", now=NOW
        )
        old_seat = await SubscriptionLinkService.link_subscription_to_pool(
            db_session, mover_id, source_id, email="mover@example.com", now=NOW
        )
        old_seat_id = old_seat.id

        with pytest.raises(NoAvailableSeatsError):
            await SubscriptionLinkService.switch_subscription_pool(
                db_session, mover_id, full_id, now=NOW
            )

        refreshed = await _reload_subscription(db_session, mover_id)
        assert refreshed.resource_pool_id == source_id
        assert refreshed.resource_pool_seat_id == old_seat_id

        old_seat = await SeatRepository.find_by_id(db_session, old_seat_id)
        await db_session.refresh(old_seat)
        assert old_seat.seat_status == SeatStatus.ASSIGNED.value
        assert old_seat.assigned_subscription_id == mover_id
        assert await _used_seats(db_session, source_id) == 1
        assert await _used_seats(db_session, full_id) == 1

    @pytest.mark.asyncio
    async def test_switch_of_unlinked_subscription_links_it(
        self, db_session: AsyncSession, pool, subscription
    ):
        seat = await SubscriptionLinkService.switch_subscription_pool(
            db_session, subscription.id, pool.id, email="alice@example.com", now=NOW
        )
        assert seat.seat_index == 0


class TestPoolLookup:
    """Tests for SubscriptionLinkService.get_pool_for_subscription."""

    @pytest.mark.asyncio
    async def test_linked_subscription_returns_pool(
        self, db_session: AsyncSession, pool, subscription
    ):
        await SubscriptionLinkService.link_subscription_to_pool(
            db_session, subscription.id, pool.id, email="alice@example.com", now=NOW
        )

        linked = await SubscriptionLinkService.get_pool_for_subscription(
            db_session, subscription.id
        )

        assert linked is not None
        assert linked.id == pool.id

    @pytest.mark.asyncio
    async def test_unlinked_subscription_returns_none(
        self, db_session: AsyncSession, subscription
    ):
        assert await SubscriptionLinkService.get_pool_for_subscription(
            db_session, subscription.id
        ) is None

    @pytest.mark.asyncio
    async def test_unknown_subscription_raises(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await SubscriptionLinkService.get_pool_for_subscription(db_session, uuid4())
