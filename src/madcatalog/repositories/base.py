"""
Base repository interface and implementation.

Provides common read and write patterns for all state repositories. Nothing
in the catalogue is physically deleted, so no delete operation is offered.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

# Type variables for generic repository
ModelType = TypeVar("ModelType", bound=DeclarativeBase)
IdType = TypeVar("IdType")


class BaseRepository(ABC, Generic[ModelType, IdType]):
    """
    Base repository interface defining common operations.

    This abstract base class provides a consistent interface for all repositories
    following the Repository pattern.
    """

    @abstractmethod
    async def add(self, session: AsyncSession, db_obj: ModelType) -> ModelType:
        """Add a new entity."""
        pass

    @abstractmethod
    async def get(self, session: AsyncSession, id: IdType) -> Optional[ModelType]:
        """Get entity by ID."""
        pass

    @abstractmethod
    async def exists(self, session: AsyncSession, id: IdType) -> bool:
        """Check if entity exists by ID."""
        pass


class BaseSQLAlchemyRepository(BaseRepository[ModelType, IdType]):
    """
    Base SQLAlchemy repository implementation.

    Every catalogue model uses an ``id`` primary key, so ``get``/``exists``
    and row locking are implemented here once.
    """

    def __init__(self, model: type[ModelType]):
        self.model = model

    async def add(self, session: AsyncSession, db_obj: ModelType) -> ModelType:
        """Add an already constructed ORM object and flush it."""
        session.add(db_obj)
        await session.flush()
        return db_obj

    async def get(self, session: AsyncSession, id: IdType) -> Optional[ModelType]:
        """Get entity by primary key."""
        result = await session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    async def get_for_update(
        self, session: AsyncSession, id: IdType
    ) -> Optional[ModelType]:
        """
        Get entity by primary key and lock the row until the transaction ends.

        Concurrent writers checking the same row serialise on this lock, so
        a precondition read here stays valid for the rest of the operation.
        """
        result = await session.execute(
            select(self.model)
            .where(self.model.id == id)  # type: ignore[attr-defined]
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def exists(self, session: AsyncSession, id: IdType) -> bool:
        """Check if entity exists by ID."""
        result = await session.execute(
            select(self.model.id).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.first() is not None

    async def count(self, session: AsyncSession) -> int:
        """Count total number of entities."""
        result = await session.execute(select(func.count()).select_from(self.model))
        return result.scalar() or 0
