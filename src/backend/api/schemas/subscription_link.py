"""
Subscription/pool link schemas.
"""
from typing import Optional
from uuid import UUID

from pydantic import Field

from api.schemas.resource_pool import ResourcePoolRead
from api.schemas.seat import SeatRead
from core.schema_base import HTTPSchemaModel


class PoolLinkRequest(HTTPSchemaModel):
    """
    Link (or switch) a subscription to a pool.

    Without seat_id the lowest-index available seat is allocated. For a
    switch, email and client_id default to the ones on the current seat.
    """
    pool_id: UUID
    seat_id: Optional[UUID] = None
    email: Optional[str] = Field(None, min_length=3, max_length=255)
    client_id: Optional[UUID] = None


class PoolLinkRead(HTTPSchemaModel):
    subscription_id: UUID
    pool: Optional[ResourcePoolRead] = None
    seat: Optional[SeatRead] = None


class UnlinkResult(HTTPSchemaModel):
    subscription_id: UUID
    released_seat_id: Optional[UUID] = None
