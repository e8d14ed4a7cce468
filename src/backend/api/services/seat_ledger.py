"""
Seat ledger: the only code path that writes seat state.

Every seat mutation (allocator, subscription linker, admin edit) goes
through this module, which in the same transaction:
- guards the seat write with its current status (claim/release)
- recomputes the owning pool's used_seats from its assigned seats
- keeps the subscription back-references paired with the seat

Lock order inside a transaction is subscription -> seat -> pool.
Nothing here commits; callers own the transaction.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    InventoryValidationError,
    NotFoundError,
    PoolNotAssignableError,
    SeatUnavailableError,
)
from db.models import ResourcePool, ResourcePoolSeat, Subscription
from models.model_enum import PoolStatus, SeatStatus
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository
from repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)

_UNSET = object()


class SeatLedger:
    """Invariant-maintaining write boundary for seats."""

    @staticmethod
    def is_assignable(pool: ResourcePool) -> bool:
        return bool(pool.is_alive) and pool.status in PoolStatus.assignable()

    @staticmethod
    async def lock_subscription(
        db: AsyncSession, subscription_id: UUID
    ) -> Subscription:
        """Row-lock a subscription, raising NotFoundError if it does not exist."""
        subscription = await SubscriptionRepository.find_by_id(
            db, subscription_id, for_update=True
        )
        if not subscription:
            raise NotFoundError("Subscription", subscription_id)
        return subscription

    @staticmethod
    async def sync_pool(
        db: AsyncSession,
        pool_id: UUID,
        *,
        now: datetime,
        require_assignable: bool = False,
    ) -> ResourcePool:
        """
        Lock the pool and recompute used_seats.

        Raises:
            NotFoundError: pool does not exist
            PoolNotAssignableError: require_assignable and the pool is
                archived or not active/overdue
        """
        pool = await ResourcePoolRepository.lock_for_seat_write(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)

        if require_assignable and not SeatLedger.is_assignable(pool):
            raise PoolNotAssignableError(pool_id, pool.status, pool.is_alive)

        await ResourcePoolRepository.sync_used_seats(db, pool_id, now=now)
        await db.refresh(pool)
        return pool

    @staticmethod
    async def claim_seat(
        db: AsyncSession,
        seat_id: UUID,
        *,
        email: Optional[str],
        client_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        now: datetime,
        seat_status: SeatStatus = SeatStatus.ASSIGNED,
        enforce_pool_status: Optional[bool] = None,
    ) -> ResourcePoolSeat:
        """
        Move an available seat to assigned (or reserved) and pair it with a
        subscription when one is given.

        Args:
            db: Database session
            seat_id: Seat to claim
            email: Assignee email (required for assigned)
            client_id: Optional client weak reference
            subscription_id: Optional subscription to link to this seat
            now: Assignment timestamp
            seat_status: ASSIGNED or RESERVED
            enforce_pool_status: Require a live active/overdue pool
                (defaults to the INVENTORY_ENFORCE_POOL_STATUS_ON_ASSIGN setting)

        Raises:
            NotFoundError: seat or subscription does not exist
            InventoryValidationError: missing email or subscription already seated
            SeatUnavailableError: the seat is not available (including a lost race)
            PoolNotAssignableError: the owning pool is archived or paused
        """
        if seat_status == SeatStatus.AVAILABLE:
            raise InventoryValidationError("claim_seat cannot target the available status")
        if seat_status == SeatStatus.ASSIGNED and not email:
            raise InventoryValidationError("An assigned seat requires an email")
        if enforce_pool_status is None:
            enforce_pool_status = settings.inventory.enforce_pool_status_on_assign

        if subscription_id:
            subscription = await SeatLedger.lock_subscription(db, subscription_id)
            if subscription.resource_pool_seat_id and subscription.resource_pool_seat_id != seat_id:
                raise InventoryValidationError(
                    f"Subscription {subscription_id} already holds seat "
                    f"{subscription.resource_pool_seat_id}; unlink or switch it first"
                )

        seat = await SeatRepository.find_by_id(db, seat_id)
        if not seat:
            raise NotFoundError("Seat", seat_id)

        claimed = await SeatRepository.claim(
            db,
            seat_id,
            email=email,
            client_id=client_id,
            subscription_id=subscription_id,
            now=now,
            status=seat_status.value,
        )
        if not claimed:
            await db.refresh(seat)
            raise SeatUnavailableError(seat_id, seat.seat_status)

        await SeatLedger.sync_pool(
            db, seat.pool_id, now=now, require_assignable=enforce_pool_status
        )

        if subscription_id:
            await SubscriptionRepository.set_pool_link(
                db, subscription_id, pool_id=seat.pool_id, seat_id=seat_id, now=now
            )

        await db.refresh(seat)
        return seat

    @staticmethod
    async def release_seat(
        db: AsyncSession,
        seat_id: UUID,
        *,
        now: datetime,
    ) -> Optional[ResourcePoolSeat]:
        """
        Return a seat to available and detach any subscription holding it.

        Releasing an already available seat is a no-op.

        Returns:
            The released seat, or None when it was already available

        Raises:
            NotFoundError: seat does not exist
        """
        seat = await SeatRepository.find_by_id(db, seat_id)
        if not seat:
            raise NotFoundError("Seat", seat_id)

        # Subscriptions before the seat row
        await SubscriptionRepository.find_by_seat(db, seat_id, for_update=True)

        released = await SeatRepository.release(db, seat_id, now=now)
        await SubscriptionRepository.clear_links_for_seats(db, [seat_id], now=now)

        if not released:
            logger.debug(f"Seat {seat_id} already available, nothing to release")
            return None

        await SeatLedger.sync_pool(db, seat.pool_id, now=now)
        await db.refresh(seat)
        return seat

    @staticmethod
    async def update_seat(
        db: AsyncSession,
        seat_id: UUID,
        *,
        now: datetime,
        seat_status: Optional[SeatStatus] = None,
        assigned_email=_UNSET,
        assigned_client_id=_UNSET,
        assigned_subscription_id=_UNSET,
    ) -> ResourcePoolSeat:
        """
        Admin edit of a seat.

        A move to available releases the seat; a move out of available claims
        it; edits to an occupied seat rewrite its assignee in place. In every
        case used_seats and the subscription pairing are maintained.

        Raises:
            SeatUnavailableError: an occupied seat was released or reassigned
                after it was read
            PoolNotAssignableError: a reserved seat is moved to assigned in a
                pool that does not accept assignments
        """
        seat = await SeatRepository.find_by_id(db, seat_id)
        if not seat:
            raise NotFoundError("Seat", seat_id)

        current = SeatStatus(seat.seat_status)
        target = seat_status or current

        if target == SeatStatus.AVAILABLE:
            if any(
                value is not _UNSET and value is not None
                for value in (assigned_email, assigned_client_id, assigned_subscription_id)
            ):
                raise InventoryValidationError("An available seat cannot carry an assignee")
            await SeatLedger.release_seat(db, seat_id, now=now)
            await db.refresh(seat)
            return seat

        email = seat.assigned_email if assigned_email is _UNSET else assigned_email
        client_id = seat.assigned_client_id if assigned_client_id is _UNSET else assigned_client_id
        subscription_id = (
            seat.assigned_subscription_id
            if assigned_subscription_id is _UNSET
            else assigned_subscription_id
        )

        if current == SeatStatus.AVAILABLE:
            return await SeatLedger.claim_seat(
                db,
                seat_id,
                email=email,
                client_id=client_id,
                subscription_id=subscription_id,
                now=now,
                seat_status=target,
            )

        if target == SeatStatus.ASSIGNED and not email:
            raise InventoryValidationError("An assigned seat requires an email")

        previous_subscription_id = seat.assigned_subscription_id
        if subscription_id != previous_subscription_id:
            if subscription_id:
                subscription = await SeatLedger.lock_subscription(db, subscription_id)
                if subscription.resource_pool_seat_id and subscription.resource_pool_seat_id != seat_id:
                    raise InventoryValidationError(
                        f"Subscription {subscription_id} already holds seat "
                        f"{subscription.resource_pool_seat_id}"
                    )
            await SubscriptionRepository.clear_links_for_seats(db, [seat_id], now=now)

        values = {
            "seat_status": target.value,
            "assigned_email": email,
            "assigned_client_id": client_id,
            "assigned_subscription_id": subscription_id,
            "updated_at": now,
        }
        becomes_assigned = target == SeatStatus.ASSIGNED and current != SeatStatus.ASSIGNED
        if becomes_assigned:
            values["assigned_at"] = now
        rewritten = await SeatRepository.rewrite_occupied(
            db,
            seat_id,
            expected_status=current.value,
            expected_subscription_id=previous_subscription_id,
            values=values,
        )
        if not rewritten:
            await db.refresh(seat)
            raise SeatUnavailableError(seat_id, seat.seat_status)

        await SeatLedger.sync_pool(
            db,
            seat.pool_id,
            now=now,
            require_assignable=(
                becomes_assigned and settings.inventory.enforce_pool_status_on_assign
            ),
        )

        if subscription_id and subscription_id != previous_subscription_id:
            await SubscriptionRepository.set_pool_link(
                db, subscription_id, pool_id=seat.pool_id, seat_id=seat_id, now=now
            )

        await db.refresh(seat)
        return seat
