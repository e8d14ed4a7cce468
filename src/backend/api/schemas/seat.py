"""
Seat schemas for API validation and serialization.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from core.schema_base import HTTPSchemaModel, to_naive_utc
from models.model_enum import PoolStatus, PoolType, SeatStatus


class SeatRead(HTTPSchemaModel):
    """Schema for reading seat data."""
    id: UUID
    pool_id: UUID
    seat_index: int
    seat_status: SeatStatus
    assigned_email: Optional[str] = None
    assigned_client_id: Optional[UUID] = None
    assigned_subscription_id: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    unassigned_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SeatAssignmentRequest(HTTPSchemaModel):
    """Assignee details for assign / assign-next."""
    email: str = Field(..., min_length=3, max_length=255)
    client_id: Optional[UUID] = None
    subscription_id: Optional[UUID] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("Email must contain '@'")
        return v


class SeatUpdate(HTTPSchemaModel):
    """
    Admin edit of a seat.

    Only fields present in the request are applied.
    """
    seat_status: Optional[SeatStatus] = None
    assigned_email: Optional[str] = Field(None, max_length=255)
    assigned_client_id: Optional[UUID] = None
    assigned_subscription_id: Optional[UUID] = None


class SeatFilter(HTTPSchemaModel):
    """Filters for listing the seats of one pool."""
    status: Optional[SeatStatus] = None
    assigned_client_id: Optional[UUID] = None
    assigned_subscription_id: Optional[UUID] = None
    search: Optional[str] = None


class AssignmentFilter(HTTPSchemaModel):
    """Filters for the assigned-seat listing across pools."""
    pool_id: Optional[UUID] = None
    provider: Optional[str] = None
    client_id: Optional[UUID] = None
    subscription_id: Optional[UUID] = None
    assigned_after: Optional[datetime] = None
    assigned_before: Optional[datetime] = None
    search: Optional[str] = None

    @field_validator("assigned_after", "assigned_before")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class SeatPoolSummary(HTTPSchemaModel):
    """Pool fields shown next to an assignment."""
    id: UUID
    provider: str
    pool_type: PoolType
    login_email: str
    status: PoolStatus
    end_at: datetime
    is_alive: bool


class SeatAssignmentRead(SeatRead):
    """An assigned seat together with its pool."""
    pool: SeatPoolSummary
