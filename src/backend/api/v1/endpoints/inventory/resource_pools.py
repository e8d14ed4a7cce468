"""
Resource pool API endpoints.

Endpoints:
Pools:
- GET / - List pools with filtering (ordered by end date)
- POST / - Create a pool and its seats
- GET /summary - Inventory totals
- GET /search/seat-email - Pool ids by seat assignee email
- GET /{pool_id} - Pool with its seats
- PUT /{pool_id} - Update a pool (resizes on max_seats change)
- DELETE /{pool_id} - Delete a pool and its seats

Lifecycle:
- POST /refresh-status - Run the status sweep now
- POST /archive - Archive several pools
- POST /archive-expired - Archive every elapsed pool
- POST /{pool_id}/archive - Archive one pool
- POST /{pool_id}/restore - Restore an archived pool

Seats:
- GET /{pool_id}/stats - Seat aggregate
- GET /{pool_id}/seats - Seats of the pool
- GET /{pool_id}/seats/available - Available seats of the pool
- POST /{pool_id}/seats/assign-next - Assign the lowest-index free seat

Static paths are declared before /{pool_id}.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.resource_pool import (
    ArchiveResult,
    BulkArchiveRequest,
    InventorySummary,
    PoolFilter,
    PoolStats,
    ResourcePoolCreate,
    ResourcePoolRead,
    ResourcePoolUpdate,
    ResourcePoolWithSeats,
    RestoreRequest,
    SeatEmailSearchResult,
    SweepResultRead,
)
from api.schemas.seat import SeatAssignmentRequest, SeatFilter, SeatRead
from api.services.inventory_query_service import InventoryQueryService
from api.services.pool_lifecycle_service import PoolLifecycleService
from api.services.resource_pool_service import ResourcePoolService
from api.services.seat_allocator import SeatAllocator
from core.database import get_session
from core.exceptions import InventoryError
from models.model_enum import PoolStatus, PoolType, SeatStatus, TimeBucket

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[ResourcePoolRead])
async def list_resource_pools(
    provider: Optional[str] = None,
    status: Optional[PoolStatus] = None,
    pool_type: Optional[PoolType] = None,
    alive: Optional[bool] = None,
    has_available_seats: Optional[bool] = None,
    fully_utilized: Optional[bool] = None,
    time_bucket: Optional[TimeBucket] = None,
    start_date_after: Optional[datetime] = None,
    start_date_before: Optional[datetime] = None,
    end_date_after: Optional[datetime] = None,
    end_date_before: Optional[datetime] = None,
    min_seats: Optional[int] = Query(None, ge=1),
    max_seats: Optional[int] = Query(None, ge=1),
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
):
    """
    List resource pools.

    - **time_bucket**: today, 3days, overdue or expired
    - **search**: matches provider, login email, notes or a seat's assignee email
    """
    pool_filter = PoolFilter(
        provider=provider,
        status=status,
        pool_type=pool_type,
        alive=alive,
        has_available_seats=has_available_seats,
        fully_utilized=fully_utilized,
        time_bucket=time_bucket,
        start_date_after=start_date_after,
        start_date_before=start_date_before,
        end_date_after=end_date_after,
        end_date_before=end_date_before,
        min_seats=min_seats,
        max_seats=max_seats,
        search=search,
    )
    return await ResourcePoolService.list_resource_pools(db=db, pool_filter=pool_filter)


@router.post("", response_model=ResourcePoolRead, status_code=201)
async def create_resource_pool(
    pool_data: ResourcePoolCreate,
    db: AsyncSession = Depends(get_session),
):
    """
    Create a pool with max_seats available seats (indices 0..max_seats-1).
    """
    try:
        return await ResourcePoolService.create_resource_pool(db=db, pool_data=pool_data)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/summary", response_model=InventorySummary)
async def get_inventory_summary(db: AsyncSession = Depends(get_session)):
    """Totals across all pools."""
    return await InventoryQueryService.get_inventory_summary(db=db)


@router.get("/search/seat-email", response_model=SeatEmailSearchResult)
async def search_pools_by_seat_email(
    q: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_session),
):
    """Ids of pools with a seat whose assignee email contains `q` (case-insensitive)."""
    pool_ids = await InventoryQueryService.search_pools_by_seat_email(db=db, term=q)
    return SeatEmailSearchResult(query=q, pool_ids=pool_ids)


@router.post("/refresh-status", response_model=SweepResultRead)
async def refresh_pool_status(db: AsyncSession = Depends(get_session)):
    """
    Run the pool status sweep now.

    Called by clients when an inventory view regains focus; safe to call
    repeatedly.
    """
    result = await PoolLifecycleService.refresh_pool_status(db=db)
    return SweepResultRead(
        now=result.now,
        expired=result.expired,
        overdue=result.overdue,
        reactivated=result.reactivated,
    )


@router.post("/archive", response_model=ArchiveResult)
async def bulk_archive_pools(
    request: BulkArchiveRequest,
    db: AsyncSession = Depends(get_session),
):
    """Archive several pools (status=expired, is_alive=false)."""
    archived = await PoolLifecycleService.bulk_archive_pools(db=db, pool_ids=request.pool_ids)
    return ArchiveResult(archived_ids=archived, count=len(archived))


@router.post("/archive-expired", response_model=ArchiveResult)
async def archive_expired_pools(db: AsyncSession = Depends(get_session)):
    """Archive every active/overdue pool whose end date has passed."""
    archived = await PoolLifecycleService.archive_expired_pools(db=db)
    return ArchiveResult(archived_ids=archived, count=len(archived))


@router.get("/{pool_id}", response_model=ResourcePoolWithSeats)
async def get_resource_pool(
    pool_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    """Get a pool and its seats in seat_index order."""
    try:
        pool, seats = await ResourcePoolService.get_pool_with_seats(db=db, pool_id=pool_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    data = ResourcePoolRead.model_validate(pool).model_dump(exclude={"available_seats"})
    return ResourcePoolWithSeats(
        **data,
        seats=[SeatRead.model_validate(seat) for seat in seats],
    )


@router.put("/{pool_id}", response_model=ResourcePoolRead)
async def update_resource_pool(
    pool_id: UUID,
    update_data: ResourcePoolUpdate,
    db: AsyncSession = Depends(get_session),
):
    """
    Update a pool.

    A new max_seats adds seats after the highest index or removes the
    highest-index available seats; shrinking below the occupied seats is
    rejected.
    """
    try:
        return await ResourcePoolService.update_resource_pool(
            db=db, pool_id=pool_id, update_data=update_data
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{pool_id}", status_code=204)
async def delete_resource_pool(
    pool_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    """Delete a pool and its seats; linked subscriptions are detached."""
    try:
        await ResourcePoolService.delete_resource_pool(db=db, pool_id=pool_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(status_code=204)


@router.get("/{pool_id}/stats", response_model=PoolStats)
async def get_pool_stats(
    pool_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        return await InventoryQueryService.get_pool_stats(db=db, pool_id=pool_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{pool_id}/seats", response_model=List[SeatRead])
async def get_pool_seats(
    pool_id: UUID,
    status: Optional[SeatStatus] = None,
    assigned_client_id: Optional[UUID] = None,
    assigned_subscription_id: Optional[UUID] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
):
    """Seats of a pool, lowest index first."""
    seat_filter = SeatFilter(
        status=status,
        assigned_client_id=assigned_client_id,
        assigned_subscription_id=assigned_subscription_id,
        search=search,
    )
    try:
        return await InventoryQueryService.get_pool_seats(
            db=db, pool_id=pool_id, seat_filter=seat_filter
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{pool_id}/seats/available", response_model=List[SeatRead])
async def get_available_seats(
    pool_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        return await InventoryQueryService.get_available_seats_in_pool(db=db, pool_id=pool_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{pool_id}/seats/assign-next", response_model=SeatRead)
async def assign_next_free_seat(
    pool_id: UUID,
    request: SeatAssignmentRequest,
    db: AsyncSession = Depends(get_session),
):
    """
    Assign the lowest-index available seat of the pool.

    Returns 409 when the pool has no available seat or does not accept
    assignments.
    """
    try:
        return await SeatAllocator.assign_next_free_seat(
            db,
            pool_id,
            email=request.email,
            client_id=request.client_id,
            subscription_id=request.subscription_id,
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{pool_id}/archive", response_model=ResourcePoolRead)
async def archive_resource_pool(
    pool_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        return await PoolLifecycleService.archive_pool(db=db, pool_id=pool_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{pool_id}/restore", response_model=ResourcePoolRead)
async def restore_resource_pool(
    pool_id: UUID,
    request: Optional[RestoreRequest] = None,
    db: AsyncSession = Depends(get_session),
):
    """
    Restore an archived pool, optionally with a new end date.

    The effective end date must be in the future.
    """
    try:
        return await PoolLifecycleService.restore_pool(
            db=db,
            pool_id=pool_id,
            end_at=request.end_at if request else None,
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
