"""
Resource pool schemas for API validation and serialization.
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, computed_field, field_validator, model_validator

from api.schemas.seat import SeatRead
from core.schema_base import HTTPSchemaModel, to_naive_utc
from models.model_enum import PoolStatus, PoolType, TimeBucket


class ResourcePoolBase(HTTPSchemaModel):
    """Base resource pool schema with common fields."""
    provider: str = Field(..., min_length=1, max_length=100)
    pool_type: PoolType
    login_email: str = Field(..., min_length=1, max_length=255)
    login_secret: Optional[str] = None
    notes: Optional[str] = None
    start_at: datetime
    end_at: datetime
    max_seats: int = Field(..., ge=1)

    @field_validator("provider", "login_email")
    @classmethod
    def strip_required(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_datetimes(cls, v: datetime) -> datetime:
        return to_naive_utc(v)


class ResourcePoolCreate(ResourcePoolBase):
    """
    Schema for creating a pool.

    status defaults to the value derived from end_at; paused and completed
    may be given explicitly.
    """
    status: Optional[PoolStatus] = None

    @model_validator(mode="after")
    def validate_window(self) -> "ResourcePoolCreate":
        if self.end_at <= self.start_at:
            raise ValueError("end_at must be after start_at")
        return self


class ResourcePoolUpdate(HTTPSchemaModel):
    """
    Schema for updating a pool.

    used_seats is derived from the seats and cannot be set. is_alive is
    only written by archive and restore. Changing max_seats resizes the pool.
    """
    provider: Optional[str] = Field(None, min_length=1, max_length=100)
    pool_type: Optional[PoolType] = None
    login_email: Optional[str] = Field(None, min_length=1, max_length=255)
    login_secret: Optional[str] = None
    notes: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    max_seats: Optional[int] = Field(None, ge=1)
    status: Optional[PoolStatus] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class ResourcePoolRead(ResourcePoolBase):
    """Schema for reading pool data."""
    id: UUID
    status: PoolStatus
    is_alive: bool
    used_seats: int
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def available_seats(self) -> int:
        return self.max_seats - self.used_seats


class ResourcePoolWithSeats(ResourcePoolRead):
    """A pool with all of its seats in seat_index order."""
    seats: List[SeatRead] = []


class PoolStats(HTTPSchemaModel):
    """Seat aggregate of one pool (available = total - used)."""
    pool_id: UUID
    total_seats: int
    used_seats: int
    available_seats: int
    assigned_seats: int
    reserved_seats: int


class InventorySummary(HTTPSchemaModel):
    """Totals across all pools."""
    total: int
    active: int
    overdue: int
    expired: int
    paused: int
    completed: int
    archived: int
    ending_today: int
    total_seats: int
    used_seats: int
    available_seats: int


class PoolFilter(HTTPSchemaModel):
    """Filters for listing pools; results are ordered by end_at."""
    provider: Optional[str] = None
    status: Optional[PoolStatus] = None
    pool_type: Optional[PoolType] = None
    alive: Optional[bool] = None
    has_available_seats: Optional[bool] = None
    fully_utilized: Optional[bool] = None
    time_bucket: Optional[TimeBucket] = None
    start_date_after: Optional[datetime] = None
    start_date_before: Optional[datetime] = None
    end_date_after: Optional[datetime] = None
    end_date_before: Optional[datetime] = None
    min_seats: Optional[int] = Field(None, ge=1)
    max_seats: Optional[int] = Field(None, ge=1)
    search: Optional[str] = None

    @field_validator(
        "start_date_after", "start_date_before", "end_date_after", "end_date_before"
    )
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class SweepResultRead(HTTPSchemaModel):
    """Counts written by a status sweep."""
    now: datetime
    expired: int
    overdue: int
    reactivated: int


class BulkArchiveRequest(HTTPSchemaModel):
    pool_ids: List[UUID] = Field(..., min_length=1)


class ArchiveResult(HTTPSchemaModel):
    archived_ids: List[UUID]
    count: int


class RestoreRequest(HTTPSchemaModel):
    """Optional new end date for a restore."""
    end_at: Optional[datetime] = None

    @field_validator("end_at")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class SeatEmailSearchResult(HTTPSchemaModel):
    query: str
    pool_ids: List[UUID]
