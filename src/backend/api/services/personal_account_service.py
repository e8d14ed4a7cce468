"""
Personal account service.

Personal accounts are single-tenant: one login leased to one client, with an
optional expiry date. Assignment is a conditional update, so two concurrent
assigns of the same account produce one success.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.personal_account import (
    PersonalAccountCreate,
    PersonalAccountFilter,
    PersonalAccountUpdate,
)
from core.decorators import (
    critical_database_operation,
    log_database_operation,
    transactional_database_operation,
)
from core.exceptions import AccountUnavailableError, InventoryValidationError, NotFoundError
from core.metrics import track_sweep
from db.models import PersonalAccount, utc_now
from models.model_enum import PersonalAccountStatus
from repositories.personal_account_repository import PersonalAccountRepository

logger = logging.getLogger(__name__)


@dataclass
class AccountSweepResult:
    now: datetime
    expired: int = 0


class PersonalAccountService:
    """Service for managing personal accounts."""

    @staticmethod
    @critical_database_operation("list_personal_accounts")
    @log_database_operation("personal account listing", level="debug")
    async def list_personal_accounts(
        db: AsyncSession,
        account_filter: Optional[PersonalAccountFilter] = None,
    ) -> List[PersonalAccount]:
        f = account_filter or PersonalAccountFilter()
        return await PersonalAccountRepository.find_filtered(
            db,
            provider=f.provider,
            status=f.status.value if f.status else None,
            search=f.search,
        )

    @staticmethod
    @critical_database_operation("get_personal_account")
    @log_database_operation("personal account retrieval", level="debug")
    async def get_personal_account(db: AsyncSession, account_id: UUID) -> PersonalAccount:
        account = await PersonalAccountRepository.find_by_id(db, account_id)
        if not account:
            raise NotFoundError("Personal account", account_id)
        return account

    @staticmethod
    @transactional_database_operation("create_personal_account")
    @log_database_operation("personal account creation", level="info")
    async def create_personal_account(
        db: AsyncSession,
        account_data: PersonalAccountCreate,
        now: Optional[datetime] = None,
    ) -> PersonalAccount:
        """
        Create a personal account.

        An account created with an expiry date already in the past starts
        out expired.
        """
        now = now or utc_now()
        values = account_data.model_dump()
        expired = account_data.expiry_date is not None and account_data.expiry_date <= now
        values.update(
            {
                "status": (
                    PersonalAccountStatus.EXPIRED.value
                    if expired
                    else PersonalAccountStatus.AVAILABLE.value
                ),
                "created_at": now,
                "updated_at": now,
            }
        )
        account = await PersonalAccountRepository.create(db, obj_in=values)
        logger.info(f"Created personal account {account.id} | Provider: {account.provider}")
        return account

    @staticmethod
    @transactional_database_operation("update_personal_account")
    @log_database_operation("personal account update", level="info")
    async def update_personal_account(
        db: AsyncSession,
        account_id: UUID,
        update_data: PersonalAccountUpdate,
        now: Optional[datetime] = None,
    ) -> PersonalAccount:
        """
        Update a personal account.

        Setting status to available clears the assignee; status assigned can
        only be reached through assign_personal_account.
        """
        now = now or utc_now()
        account = await PersonalAccountRepository.find_by_id(db, account_id, for_update=True)
        if not account:
            raise NotFoundError("Personal account", account_id)

        fields = update_data.model_dump(exclude_unset=True)
        for key in ("provider", "login_email"):
            if key in fields and fields[key] is None:
                fields.pop(key)

        status = fields.pop("status", None)
        if status is not None:
            status = PersonalAccountStatus(status)
            if status == PersonalAccountStatus.ASSIGNED and account.status != status.value:
                raise InventoryValidationError(
                    "Use the assign operation to assign a personal account"
                )
            fields["status"] = status.value
            if status == PersonalAccountStatus.AVAILABLE:
                fields["assigned_to_client_id"] = None
                fields["assigned_at"] = None

        fields["updated_at"] = now
        return await PersonalAccountRepository.update(db, db_obj=account, obj_in=fields)

    @staticmethod
    @transactional_database_operation("delete_personal_account")
    @log_database_operation("personal account deletion", level="info")
    async def delete_personal_account(db: AsyncSession, account_id: UUID) -> None:
        account = await PersonalAccountRepository.find_by_id(db, account_id)
        if not account:
            raise NotFoundError("Personal account", account_id)
        await db.delete(account)
        await db.flush()

    @staticmethod
    @transactional_database_operation("assign_personal_account")
    @log_database_operation("personal account assignment", level="info")
    async def assign_personal_account(
        db: AsyncSession,
        account_id: UUID,
        client_id: UUID,
        now: Optional[datetime] = None,
    ) -> PersonalAccount:
        """
        Lease an available account to a client.

        Raises:
            NotFoundError: account does not exist
            AccountUnavailableError: account is assigned, expired, or past its
                expiry_date
        """
        now = now or utc_now()
        account = await PersonalAccountRepository.find_by_id(db, account_id)
        if not account:
            raise NotFoundError("Personal account", account_id)

        claimed = await PersonalAccountRepository.claim(
            db, account_id, client_id=client_id, now=now
        )
        await db.refresh(account)
        if not claimed:
            status = account.status
            if account.expiry_date is not None and account.expiry_date <= now:
                status = PersonalAccountStatus.EXPIRED.value
            raise AccountUnavailableError(account_id, status)

        logger.info(f"Personal account {account_id} assigned to client {client_id}")
        return account

    @staticmethod
    @transactional_database_operation("release_personal_account")
    @log_database_operation("personal account release", level="info")
    async def release_personal_account(
        db: AsyncSession,
        account_id: UUID,
        now: Optional[datetime] = None,
    ) -> PersonalAccount:
        """
        Return an assigned account to available.

        Releasing an available account is a no-op; an expired account keeps
        its status and only loses its assignee.
        """
        now = now or utc_now()
        account = await PersonalAccountRepository.find_by_id(db, account_id, for_update=True)
        if not account:
            raise NotFoundError("Personal account", account_id)

        values = {"assigned_to_client_id": None, "assigned_at": None, "updated_at": now}
        if account.status == PersonalAccountStatus.ASSIGNED.value:
            values["status"] = PersonalAccountStatus.AVAILABLE.value
        elif account.assigned_to_client_id is None:
            return account

        return await PersonalAccountRepository.update(db, db_obj=account, obj_in=values)

    @staticmethod
    @transactional_database_operation("refresh_personal_account_status")
    @log_database_operation("personal account expiry sweep", level="debug")
    async def refresh_personal_account_status(
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> AccountSweepResult:
        """Expire every non-expired account whose expiry_date has passed."""
        now = now or utc_now()
        async with track_sweep("personal_accounts"):
            expired = await PersonalAccountRepository.expire_elapsed(db, now=now)

        if expired:
            logger.info(f"Personal account sweep expired {expired} accounts")
        return AccountSweepResult(now=now, expired=expired)
