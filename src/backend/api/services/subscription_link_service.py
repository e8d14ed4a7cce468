"""
Pool/subscription linker.

Pairs a subscription with a pool seat. Link, unlink and switch each run as a
single transaction, so a reader never sees a subscription pointing at a
released seat or a seat held by a subscription that does not point back.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.services.seat_allocator import SeatAllocator
from api.services.seat_ledger import SeatLedger
from core.decorators import (
    critical_database_operation,
    log_database_operation,
    transactional_database_operation,
)
from core.exceptions import InventoryValidationError, NotFoundError
from core.logging_config import InventoryLogger
from core.metrics import track_allocation, track_release
from db.models import ResourcePool, ResourcePoolSeat, Subscription, utc_now
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository
from repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)
inventory_logger = InventoryLogger("linker")


class SubscriptionLinkService:
    """Binds subscriptions to pool seats."""

    @staticmethod
    async def _claim_for_subscription(
        db: AsyncSession,
        subscription: Subscription,
        pool_id: UUID,
        seat_id: Optional[UUID],
        email: Optional[str],
        client_id: Optional[UUID],
        now: datetime,
    ) -> ResourcePoolSeat:
        if not email:
            raise InventoryValidationError("An email is required to assign a seat")
        client_id = client_id or subscription.client_id

        if seat_id:
            seat = await SeatRepository.find_by_id(db, seat_id)
            if not seat:
                raise NotFoundError("Seat", seat_id)
            if seat.pool_id != pool_id:
                raise InventoryValidationError(
                    f"Seat {seat_id} does not belong to pool {pool_id}"
                )
            return await SeatAllocator.claim_specific_seat(
                db,
                seat_id,
                email=email,
                client_id=client_id,
                subscription_id=subscription.id,
                now=now,
            )

        return await SeatAllocator.claim_next_free_seat(
            db,
            pool_id,
            email=email,
            client_id=client_id,
            subscription_id=subscription.id,
            now=now,
        )

    @staticmethod
    async def _release_current(
        db: AsyncSession,
        subscription: Subscription,
        now: datetime,
    ) -> Optional[UUID]:
        """Release whatever seat the subscription holds; returns that seat's id."""
        linked_seat_id = subscription.resource_pool_seat_id
        seat_ids = set()
        if linked_seat_id:
            seat_ids.add(linked_seat_id)
        # Seats that still carry the weak reference without the pairing
        for seat in await SeatRepository.find_by_subscription(db, subscription.id):
            seat_ids.add(seat.id)

        for seat_id in seat_ids:
            released = await SeatLedger.release_seat(db, seat_id, now=now)
            if released is not None:
                track_release()

        await SubscriptionRepository.set_pool_link(
            db, subscription.id, pool_id=None, seat_id=None, now=now
        )
        return linked_seat_id

    @staticmethod
    @transactional_database_operation("link_subscription_to_pool")
    @log_database_operation("subscription pool link", level="info")
    async def link_subscription_to_pool(
        db: AsyncSession,
        subscription_id: UUID,
        pool_id: UUID,
        seat_id: Optional[UUID] = None,
        *,
        email: Optional[str] = None,
        client_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Link a subscription to a pool seat.

        With seat_id the given seat is claimed; without it the lowest-index
        available seat of the pool is allocated. The seat claim and the
        subscription back-references are written in one transaction.

        Args:
            db: Database session
            subscription_id: Subscription to link
            pool_id: Target pool
            seat_id: Specific seat (optional)
            email: Assignee email for the seat
            client_id: Assignee client (defaults to the subscription's client)
            now: Link time

        Returns:
            The claimed seat

        Raises:
            NotFoundError: subscription, pool or seat does not exist
            InventoryValidationError: subscription already linked, seat not in pool
            SeatUnavailableError / NoAvailableSeatsError / PoolNotAssignableError
        """
        now = now or utc_now()
        subscription = await SeatLedger.lock_subscription(db, subscription_id)
        if subscription.resource_pool_seat_id:
            raise InventoryValidationError(
                f"Subscription {subscription_id} is already linked to seat "
                f"{subscription.resource_pool_seat_id}; use switch instead"
            )

        async with track_allocation("link"):
            seat = await SubscriptionLinkService._claim_for_subscription(
                db, subscription, pool_id, seat_id, email, client_id, now
            )

        inventory_logger.subscription_linked(subscription_id, pool_id, seat.id)
        return seat

    @staticmethod
    @transactional_database_operation("unlink_subscription_from_pool")
    @log_database_operation("subscription pool unlink", level="info")
    async def unlink_subscription_from_pool(
        db: AsyncSession,
        subscription_id: UUID,
        now: Optional[datetime] = None,
    ) -> Optional[UUID]:
        """
        Release the subscription's seat and clear its back-references.

        Unlinking a subscription that holds no seat is a no-op.

        Returns:
            Id of the released seat, or None
        """
        now = now or utc_now()
        subscription = await SeatLedger.lock_subscription(db, subscription_id)
        released_seat_id = await SubscriptionLinkService._release_current(
            db, subscription, now
        )
        inventory_logger.subscription_unlinked(subscription_id, released_seat_id)
        return released_seat_id

    @staticmethod
    @transactional_database_operation("switch_subscription_pool")
    @log_database_operation("subscription pool switch", level="info")
    async def switch_subscription_pool(
        db: AsyncSession,
        subscription_id: UUID,
        pool_id: UUID,
        seat_id: Optional[UUID] = None,
        *,
        email: Optional[str] = None,
        client_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Move a subscription to another pool seat in one transaction.

        The old seat is released and the new one claimed atomically: if the
        new claim fails, the rollback leaves the subscription on its old seat.
        The assignee email defaults to the one on the old seat.
        """
        now = now or utc_now()
        subscription = await SeatLedger.lock_subscription(db, subscription_id)

        previous_seat = None
        if subscription.resource_pool_seat_id:
            previous_seat = await SeatRepository.find_by_id(
                db, subscription.resource_pool_seat_id
            )
        if previous_seat is not None:
            email = email or previous_seat.assigned_email
            client_id = client_id or previous_seat.assigned_client_id

        released_seat_id = await SubscriptionLinkService._release_current(
            db, subscription, now
        )
        await db.refresh(subscription)

        async with track_allocation("link"):
            seat = await SubscriptionLinkService._claim_for_subscription(
                db, subscription, pool_id, seat_id, email, client_id, now
            )

        inventory_logger.subscription_unlinked(subscription_id, released_seat_id)
        inventory_logger.subscription_linked(subscription_id, pool_id, seat.id)
        return seat

    @staticmethod
    @critical_database_operation("get_pool_for_subscription")
    @log_database_operation("subscription pool lookup", level="debug")
    async def get_pool_for_subscription(
        db: AsyncSession,
        subscription_id: UUID,
    ) -> Optional[ResourcePool]:
        """Pool the subscription is linked to, or None when unlinked."""
        subscription = await SubscriptionRepository.find_by_id(db, subscription_id)
        if not subscription:
            raise NotFoundError("Subscription", subscription_id)
        if not subscription.resource_pool_id:
            return None
        return await ResourcePoolRepository.find_by_id(db, subscription.resource_pool_id)
