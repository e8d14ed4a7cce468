"""
Base repository with generic data access operations.

Repositories never commit: the service layer owns transaction boundaries
(see core.decorators.transactional_database_operation), so everything a
service writes lands in one transaction.
"""
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import SQLModel

# Type variable for the model class
ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository providing common operations.

    Usage:
        class ResourcePoolRepository(BaseRepository[ResourcePool]):
            model = ResourcePool
    """

    model: Type[ModelType] = None

    @classmethod
    async def find_by_id(
        cls,
        db: AsyncSession,
        id_value: Any,
        *,
        eager_load: Optional[List] = None,
        for_update: bool = False,
    ) -> Optional[ModelType]:
        """
        Find a single record by ID.

        Args:
            db: Database session
            id_value: The ID value to search for
            eager_load: List of relationships to eager load (selectinload)
            for_update: Take a row lock for the rest of the transaction

        Returns:
            Model instance or None if not found
        """
        stmt = select(cls.model).where(cls.model.id == id_value)

        if eager_load:
            for relationship in eager_load:
                stmt = stmt.options(selectinload(relationship))

        if for_update:
            # Re-read locked rows even if the instance is already in the session
            stmt = stmt.with_for_update().execution_options(populate_existing=True)

        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def count(
        cls,
        db: AsyncSession,
        *,
        filters: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Count records matching equality filters."""
        stmt = select(func.count(cls.model.id))

        if filters:
            for field, value in filters.items():
                if value is not None:
                    stmt = stmt.where(getattr(cls.model, field) == value)

        result = await db.execute(stmt)
        return result.scalar() or 0

    @classmethod
    async def create(
        cls,
        db: AsyncSession,
        *,
        obj_in: Dict[str, Any],
    ) -> ModelType:
        """
        Create a new record and flush it so generated values are available.

        Args:
            db: Database session
            obj_in: Dictionary of field values

        Returns:
            Created model instance (not committed)
        """
        db_obj = cls.model(**obj_in)
        db.add(db_obj)
        await db.flush()
        return db_obj

    @classmethod
    async def update(
        cls,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Dict[str, Any],
    ) -> ModelType:
        """Apply field values to a loaded record and flush."""
        for field, value in obj_in.items():
            setattr(db_obj, field, value)

        db.add(db_obj)
        await db.flush()
        return db_obj
