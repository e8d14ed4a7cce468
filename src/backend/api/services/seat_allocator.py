"""
Seat allocator.

Two entry points:
- assign_seat: a specific seat, fails with SeatUnavailableError unless it is
  available
- assign_next_free_seat: the lowest-index available seat of a pool, fails
  with NoAvailableSeatsError only when the pool has no available seat

The next-free path locks its candidate with SELECT ... FOR UPDATE SKIP LOCKED
so concurrent allocators take different rows, and claims it with a
conditional update. A claim that loses a race moves on to the next
candidate; the loop is bounded by the pool's seat count.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.services.seat_ledger import SeatLedger
from core.config import settings
from core.decorators import log_database_operation, transactional_database_operation
from core.exceptions import (
    NoAvailableSeatsError,
    NotFoundError,
    PoolNotAssignableError,
    SeatUnavailableError,
)
from core.logging_config import InventoryLogger
from core.metrics import track_allocation, track_claim_conflict, track_release
from db.models import ResourcePoolSeat, utc_now
from models.model_enum import SeatStatus
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository

logger = logging.getLogger(__name__)
inventory_logger = InventoryLogger("allocator")


class SeatAllocator:
    """Concurrency-safe seat assignment."""

    @staticmethod
    async def claim_specific_seat(
        db: AsyncSession,
        seat_id: UUID,
        *,
        email: str,
        client_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """Claim one seat inside the caller's transaction (no commit)."""
        now = now or utc_now()
        seat = await SeatLedger.claim_seat(
            db,
            seat_id,
            email=email,
            client_id=client_id,
            subscription_id=subscription_id,
            now=now,
        )
        return seat

    @staticmethod
    async def claim_next_free_seat(
        db: AsyncSession,
        pool_id: UUID,
        *,
        email: str,
        client_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Claim the lowest-index available seat inside the caller's transaction.

        Raises:
            NotFoundError: pool does not exist
            PoolNotAssignableError: pool archived or not active/overdue
            NoAvailableSeatsError: no available seat at the moment of the attempt
        """
        now = now or utc_now()

        pool = await ResourcePoolRepository.find_by_id(db, pool_id)
        if not pool:
            raise NotFoundError("Resource pool", pool_id)
        if settings.inventory.enforce_pool_status_on_assign and not SeatLedger.is_assignable(pool):
            raise PoolNotAssignableError(pool_id, pool.status, pool.is_alive)

        max_attempts = max(pool.max_seats, 1)
        tried: List[UUID] = []

        for attempt in range(1, max_attempts + 1):
            candidate = await SeatRepository.find_first_available(
                db, pool_id, exclude_ids=tried
            )
            if candidate is None:
                break

            try:
                return await SeatLedger.claim_seat(
                    db,
                    candidate.id,
                    email=email,
                    client_id=client_id,
                    subscription_id=subscription_id,
                    now=now,
                )
            except SeatUnavailableError:
                # Taken between the read and the conditional update
                inventory_logger.claim_conflict(pool_id, candidate.id, attempt)
                track_claim_conflict()
                tried.append(candidate.id)

        inventory_logger.pool_exhausted(pool_id, pool.max_seats)
        raise NoAvailableSeatsError(pool_id)

    @staticmethod
    @transactional_database_operation("assign_seat")
    @log_database_operation("specific seat assignment", level="info")
    async def assign_seat(
        db: AsyncSession,
        seat_id: UUID,
        *,
        email: str,
        client_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Assign a specific seat.

        Two concurrent calls on the same seat produce exactly one success;
        the other fails with SeatUnavailableError.

        Args:
            db: Database session
            seat_id: Seat to assign
            email: Assignee email
            client_id: Optional client reference
            subscription_id: Optional subscription, linked in the same transaction
            now: Assignment time (defaults to current UTC time)

        Returns:
            The assigned seat
        """
        async with track_allocation("specific"):
            seat = await SeatAllocator.claim_specific_seat(
                db,
                seat_id,
                email=email,
                client_id=client_id,
                subscription_id=subscription_id,
                now=now,
            )

        inventory_logger.seat_assigned(
            seat.pool_id, seat.id, seat.seat_index, email, subscription_id, "specific"
        )
        return seat

    @staticmethod
    @transactional_database_operation("assign_next_free_seat")
    @log_database_operation("next free seat assignment", level="info")
    async def assign_next_free_seat(
        db: AsyncSession,
        pool_id: UUID,
        *,
        email: str,
        client_id: Optional[UUID] = None,
        subscription_id: Optional[UUID] = None,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Assign the lowest-index available seat of a pool.

        Given K available seats and N > K concurrent callers, exactly K
        callers get distinct seats and N - K fail with NoAvailableSeatsError.

        Returns:
            The assigned seat (its id is the operation's result)
        """
        async with track_allocation("next_free"):
            seat = await SeatAllocator.claim_next_free_seat(
                db,
                pool_id,
                email=email,
                client_id=client_id,
                subscription_id=subscription_id,
                now=now,
            )

        inventory_logger.seat_assigned(
            pool_id, seat.id, seat.seat_index, email, subscription_id, "next_free"
        )
        return seat

    @staticmethod
    @transactional_database_operation("unassign_seat")
    @log_database_operation("seat release", level="info")
    async def unassign_seat(
        db: AsyncSession,
        seat_id: UUID,
        *,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Return a seat to available, clearing its assignee and the back-references
        of the subscription that held it. Idempotent for an available seat.
        """
        now = now or utc_now()

        seat = await SeatRepository.find_by_id(db, seat_id)
        if not seat:
            raise NotFoundError("Seat", seat_id)
        previous_email = seat.assigned_email

        released = await SeatLedger.release_seat(db, seat_id, now=now)
        if released is not None:
            track_release()
            inventory_logger.seat_released(
                released.pool_id, released.id, released.seat_index, previous_email
            )
            return released

        await db.refresh(seat)
        return seat

    @staticmethod
    @transactional_database_operation("update_seat")
    @log_database_operation("seat admin edit", level="info")
    async def update_seat(
        db: AsyncSession,
        seat_id: UUID,
        fields: dict,
        *,
        now: Optional[datetime] = None,
    ) -> ResourcePoolSeat:
        """
        Admin edit of a seat's status and assignee fields.

        Args:
            db: Database session
            seat_id: Seat to edit
            fields: Subset of seat_status, assigned_email, assigned_client_id,
                assigned_subscription_id (keys absent are left unchanged)
            now: Edit time

        Returns:
            The updated seat
        """
        now = now or utc_now()
        kwargs = {
            key: fields[key]
            for key in ("assigned_email", "assigned_client_id", "assigned_subscription_id")
            if key in fields
        }
        seat_status = fields.get("seat_status")
        if seat_status is not None:
            seat_status = SeatStatus(seat_status)

        seat = await SeatLedger.update_seat(
            db, seat_id, now=now, seat_status=seat_status, **kwargs
        )
        logger.info(
            f"Seat {seat_id} edited | Status: {seat.seat_status} | Email: {seat.assigned_email}"
        )
        return seat
