"""
Personal account API endpoints.
"""
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.personal_account import (
    PersonalAccountAssignRequest,
    PersonalAccountCreate,
    PersonalAccountFilter,
    PersonalAccountRead,
    PersonalAccountRefreshResult,
    PersonalAccountUpdate,
)
from api.services.personal_account_service import PersonalAccountService
from core.database import get_session
from core.exceptions import InventoryError
from models.model_enum import PersonalAccountStatus

router = APIRouter()


@router.get("", response_model=List[PersonalAccountRead])
async def list_personal_accounts(
    provider: Optional[str] = None,
    status: Optional[PersonalAccountStatus] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_session),
):
    """List personal accounts, soonest expiry first."""
    account_filter = PersonalAccountFilter(provider=provider, status=status, search=search)
    return await PersonalAccountService.list_personal_accounts(
        db=db, account_filter=account_filter
    )


@router.post("", response_model=PersonalAccountRead, status_code=201)
async def create_personal_account(
    account_data: PersonalAccountCreate,
    db: AsyncSession = Depends(get_session),
):
    return await PersonalAccountService.create_personal_account(
        db=db, account_data=account_data
    )


@router.post("/refresh-status", response_model=PersonalAccountRefreshResult)
async def refresh_personal_account_status(db: AsyncSession = Depends(get_session)):
    """Expire accounts whose expiry date has passed."""
    result = await PersonalAccountService.refresh_personal_account_status(db=db)
    return PersonalAccountRefreshResult(now=result.now, expired=result.expired)


@router.get("/{account_id}", response_model=PersonalAccountRead)
async def get_personal_account(
    account_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        return await PersonalAccountService.get_personal_account(db=db, account_id=account_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.put("/{account_id}", response_model=PersonalAccountRead)
async def update_personal_account(
    account_id: UUID,
    update_data: PersonalAccountUpdate,
    db: AsyncSession = Depends(get_session),
):
    try:
        return await PersonalAccountService.update_personal_account(
            db=db, account_id=account_id, update_data=update_data
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/{account_id}", status_code=204)
async def delete_personal_account(
    account_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        await PersonalAccountService.delete_personal_account(db=db, account_id=account_id)
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return Response(status_code=204)


@router.post("/{account_id}/assign", response_model=PersonalAccountRead)
async def assign_personal_account(
    account_id: UUID,
    request: PersonalAccountAssignRequest,
    db: AsyncSession = Depends(get_session),
):
    """Lease an available account to a client; 409 when it is taken or expired."""
    try:
        return await PersonalAccountService.assign_personal_account(
            db=db, account_id=account_id, client_id=request.client_id
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{account_id}/release", response_model=PersonalAccountRead)
async def release_personal_account(
    account_id: UUID,
    db: AsyncSession = Depends(get_session),
):
    try:
        return await PersonalAccountService.release_personal_account(
            db=db, account_id=account_id
        )
    except InventoryError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
