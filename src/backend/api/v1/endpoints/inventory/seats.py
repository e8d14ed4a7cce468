"""
Resource pool seat API endpoints.

Endpoints:
- GET /assignments - Assigned seats across pools, with their pool
- PUT /{seat_id} - Admin edit of status and assignee
- POST /{seat_id}/assign - Assign a specific seat
- POST /{seat_id}/unassign - Release a seat
"""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.seat import (
    AssignmentFilter,
    SeatAssignmentRead,
    SeatAssignmentRequest,
    SeatRead,
    SeatUpdate,
)
from api.services.inventory_query_service import InventoryQueryService
from api.services.seat_allocator import SeatAllocator
from core.database import get_session
from core.exceptions import InventoryError

router = APIRouter()


@router.get("/assignments", response_model=List[SeatAssignmentRead])
async def list_seat_assignments(
    pool_id: Optional[UUID] = None,
    provider: Optional[str] = None,
    client_id: Optional[UUID] = None,
    subscription_id: Optional[UUID] = None,
    assigned_after: Optional[datetime] = None,
    assigned_before: Optional[datetime] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
):
    """
    List assigned seats, newest assignment first.

    - **search**: matches the assignee email, the pool provider or the pool login
    """
    assignment_filter = AssignmentFilter(
        pool_id=pool_id,
        provider=provider,
        client_id=client_id,
        subscription_id=subscription_id,
        assigned_after=assigned_after,
        assigned_before=assigned_before,
        search=search,
    )
    return await InventoryQueryService.list_seat_assignments(
        db=db, assignment_filter=assignment_filter
    )


@router.put("/{seat_id}", response_model=SeatRead)
async def update_seat(
    seat_id: UUID,
    update_data: SeatUpdate,
    db: AsyncSession = Depends(get_session),
):
    """
    Edit a seat's status and assignee.

    Only fields present in the body are applied. Moving a seat to
    available clears its assignee.
    """
    fields = update_data.model_dump(exclude_unset=True)
    try:
        return await SeatAllocator.update_seat(db, seat_id, fields)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{seat_id}/assign", response_model=SeatRead)
async def assign_seat(
    seat_id: UUID,
    request: SeatAssignmentRequest,
    db: AsyncSession = Depends(get_session),
):
    """Assign a specific seat; 409 when it is not available."""
    try:
        return await SeatAllocator.assign_seat(
            db,
            seat_id,
            email=request.email,
            client_id=request.client_id,
            subscription_id=request.subscription_id,
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{seat_id}/unassign", response_model=SeatRead)
async def unassign_seat(
    seat_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    """Release a seat; releasing an available seat is a no-op."""
    try:
        return await SeatAllocator.unassign_seat(db, seat_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
