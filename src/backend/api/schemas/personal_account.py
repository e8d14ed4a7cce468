"""
Personal account schemas for API validation and serialization.
"""
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field, field_validator

from core.schema_base import HTTPSchemaModel, to_naive_utc
from models.model_enum import PersonalAccountStatus


class PersonalAccountBase(HTTPSchemaModel):
    """Base personal account schema with common fields."""
    provider: str = Field(..., min_length=1, max_length=100)
    login_email: str = Field(..., min_length=1, max_length=255)
    login_secret: Optional[str] = None
    notes: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @field_validator("expiry_date")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class PersonalAccountCreate(PersonalAccountBase):
    """Schema for creating a personal account."""
    pass


class PersonalAccountUpdate(HTTPSchemaModel):
    """Schema for updating a personal account."""
    provider: Optional[str] = Field(None, min_length=1, max_length=100)
    login_email: Optional[str] = Field(None, min_length=1, max_length=255)
    login_secret: Optional[str] = None
    notes: Optional[str] = None
    expiry_date: Optional[datetime] = None
    status: Optional[PersonalAccountStatus] = None

    @field_validator("expiry_date")
    @classmethod
    def normalize_datetimes(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)


class PersonalAccountRead(PersonalAccountBase):
    """Schema for reading personal account data."""
    id: UUID
    status: PersonalAccountStatus
    assigned_to_client_id: Optional[UUID] = None
    assigned_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PersonalAccountAssignRequest(HTTPSchemaModel):
    client_id: UUID


class PersonalAccountFilter(HTTPSchemaModel):
    provider: Optional[str] = None
    status: Optional[PersonalAccountStatus] = None
    search: Optional[str] = None


class PersonalAccountRefreshResult(HTTPSchemaModel):
    now: datetime
    expired: int
