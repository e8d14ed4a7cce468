"""
Domain errors raised by the inventory engine.

Routers translate these into HTTP responses; services never swallow them.
"""
from typing import Any, Optional
from uuid import UUID


class InventoryError(Exception):
    """Base class for every inventory engine error."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(InventoryError):
    """A pool, seat, subscription or account id does not resolve."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InventoryValidationError(InventoryError):
    """Input rejected before any write (e.g. end_at <= start_at)."""

    status_code = 422


class SeatUnavailableError(InventoryError):
    """A specific-seat assignment targeted a seat that is not available."""

    status_code = 409

    def __init__(self, seat_id: UUID, seat_status: Optional[str] = None):
        detail = f" (currently {seat_status})" if seat_status else ""
        super().__init__(f"Seat {seat_id} is not available{detail}")
        self.seat_id = seat_id
        self.seat_status = seat_status


class NoAvailableSeatsError(InventoryError):
    """An allocation attempt found zero free seats in the pool."""

    status_code = 409

    def __init__(self, pool_id: UUID):
        super().__init__(f"No available seats in pool {pool_id}")
        self.pool_id = pool_id


class PoolNotAssignableError(InventoryError):
    """The owning pool is archived or not active/overdue."""

    status_code = 409

    def __init__(self, pool_id: UUID, status: Optional[str] = None, is_alive: Optional[bool] = None):
        super().__init__(
            f"Pool {pool_id} does not accept seat assignments "
            f"(status={status}, is_alive={is_alive})"
        )
        self.pool_id = pool_id
        self.status = status
        self.is_alive = is_alive


class AccountUnavailableError(InventoryError):
    """A personal account assignment targeted an account that is not available."""

    status_code = 409

    def __init__(self, account_id: UUID, status: Optional[str] = None):
        detail = f" (currently {status})" if status else ""
        super().__init__(f"Personal account {account_id} is not available{detail}")
        self.account_id = account_id
        self.status = status
