"""
PersonalAccount Repository for database operations.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import PersonalAccount
from models.model_enum import PersonalAccountStatus
from repositories.base_repository import BaseRepository


class PersonalAccountRepository(BaseRepository[PersonalAccount]):
    """Repository for PersonalAccount database operations."""

    model = PersonalAccount

    @classmethod
    async def find_filtered(
        cls,
        db: AsyncSession,
        *,
        provider: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[PersonalAccount]:
        """
        Find personal accounts with optional filters.

        Args:
            db: Database session
            provider: Exact provider key
            status: Exact status value
            search: Case-insensitive substring of login_email or provider

        Returns:
            Accounts ordered by expiry date (no expiry last)
        """
        stmt = select(PersonalAccount)

        if provider:
            stmt = stmt.where(PersonalAccount.provider == provider)

        if status:
            stmt = stmt.where(PersonalAccount.status == status)

        if search:
            term = search.lower()
            stmt = stmt.where(
                or_(
                    func.lower(PersonalAccount.login_email).contains(term, autoescape=True),
                    func.lower(PersonalAccount.provider).contains(term, autoescape=True),
                )
            )

        stmt = stmt.order_by(
            PersonalAccount.expiry_date.is_(None),
            PersonalAccount.expiry_date.asc(),
            PersonalAccount.created_at.desc(),
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def expire_elapsed(cls, db: AsyncSession, *, now: datetime) -> int:
        """Mark non-expired accounts whose expiry_date has passed as expired."""
        result = await db.execute(
            update(PersonalAccount)
            .where(
                PersonalAccount.status != PersonalAccountStatus.EXPIRED.value,
                PersonalAccount.expiry_date.is_not(None),
                PersonalAccount.expiry_date <= now,
            )
            .values(status=PersonalAccountStatus.EXPIRED.value, updated_at=now)
        )
        return result.rowcount

    @classmethod
    async def claim(
        cls,
        db: AsyncSession,
        account_id,
        *,
        client_id,
        now: datetime,
    ) -> int:
        """
        Conditionally move an available, unexpired account to assigned.

        An account past its expiry_date is refused even before the expiry
        sweep has marked it expired.
        """
        result = await db.execute(
            update(PersonalAccount)
            .where(
                PersonalAccount.id == account_id,
                PersonalAccount.status == PersonalAccountStatus.AVAILABLE.value,
                or_(
                    PersonalAccount.expiry_date.is_(None),
                    PersonalAccount.expiry_date > now,
                ),
            )
            .values(
                status=PersonalAccountStatus.ASSIGNED.value,
                assigned_to_client_id=client_id,
                assigned_at=now,
                updated_at=now,
            )
        )
        return result.rowcount
