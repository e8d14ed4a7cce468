"""
Subscription pool-link endpoints.

Endpoints:
- GET /{subscription_id}/pool-link - Pool and seat the subscription holds
- POST /{subscription_id}/pool-link - Link to a pool seat
- DELETE /{subscription_id}/pool-link - Unlink and release the seat
- POST /{subscription_id}/pool-switch - Move to another pool seat
"""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.resource_pool import ResourcePoolRead
from api.schemas.seat import SeatRead
from api.schemas.subscription_link import PoolLinkRead, PoolLinkRequest, UnlinkResult
from api.services.subscription_link_service import SubscriptionLinkService
from core.database import get_session
from core.exceptions import InventoryError
from db.models import ResourcePoolSeat
from repositories.resource_pool_repository import ResourcePoolRepository
from repositories.seat_repository import SeatRepository

router = APIRouter()


async def _link_response(
    db: AsyncSession, subscription_id: UUID, seat: ResourcePoolSeat
) -> PoolLinkRead:
    pool = await ResourcePoolRepository.find_by_id(db, seat.pool_id)
    return PoolLinkRead(
        subscription_id=subscription_id,
        pool=ResourcePoolRead.model_validate(pool) if pool else None,
        seat=SeatRead.model_validate(seat),
    )


@router.get("/{subscription_id}/pool-link", response_model=PoolLinkRead)
async def get_pool_link(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    """Pool and seat linked to the subscription (both null when unlinked)."""
    try:
        pool = await SubscriptionLinkService.get_pool_for_subscription(
            db=db, subscription_id=subscription_id
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    seat = None
    if pool is not None:
        seats = await SeatRepository.find_by_subscription(db, subscription_id)
        seat = seats[0] if seats else None
    return PoolLinkRead(
        subscription_id=subscription_id,
        pool=ResourcePoolRead.model_validate(pool) if pool else None,
        seat=SeatRead.model_validate(seat) if seat else None,
    )


@router.post("/{subscription_id}/pool-link", response_model=PoolLinkRead, status_code=201)
async def link_subscription(
    subscription_id: UUID,
    request: PoolLinkRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Link a subscription to a pool.

    With seatId that seat is claimed, otherwise the lowest-index available
    seat is allocated.
    """
    try:
        seat = await SubscriptionLinkService.link_subscription_to_pool(
            db,
            subscription_id,
            request.pool_id,
            request.seat_id,
            email=request.email,
            client_id=request.client_id,
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await _link_response(db, subscription_id, seat)


@router.delete("/{subscription_id}/pool-link", response_model=UnlinkResult)
async def unlink_subscription(
    subscription_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        released_seat_id = await SubscriptionLinkService.unlink_subscription_from_pool(
            db, subscription_id
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return UnlinkResult(subscription_id=subscription_id, released_seat_id=released_seat_id)


@router.post("/{subscription_id}/pool-switch", response_model=PoolLinkRead)
async def switch_subscription_pool(
    subscription_id: UUID,
    request: PoolLinkRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Move a subscription to another pool seat.

    Runs as one transaction: on failure the subscription keeps its old seat.
    """
    try:
        seat = await SubscriptionLinkService.switch_subscription_pool(
            db,
            subscription_id,
            request.pool_id,
            request.seat_id,
            email=request.email,
            client_id=request.client_id,
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return await _link_response(db, subscription_id, seat)
