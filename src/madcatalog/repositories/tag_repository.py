"""
Tag repository implementation.

Provides data access for tags and their names, including the prefix
lookups used by tag search and semitag suggestions.
"""

from __future__ import annotations

import uuid
from typing import Any, Iterable, List, Optional

from sqlalchemy import Select, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import Tag as TagDB
from madcatalog.db.models import TagName as TagNameDB
from madcatalog.repositories.base import BaseSQLAlchemyRepository


class TagRepository(BaseSQLAlchemyRepository[TagDB, uuid.UUID]):
    """Repository for tags and tag names."""

    def __init__(self) -> None:
        """Initialize repository with Tag model."""
        super().__init__(TagDB)

    async def existing_ids(
        self, session: AsyncSession, ids: Iterable[uuid.UUID]
    ) -> set[uuid.UUID]:
        """
        Return the subset of ``ids`` that refer to existing tags.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        ids : Iterable[uuid.UUID]
            Candidate tag ids.

        Returns
        -------
        set[uuid.UUID]
            Ids that exist.
        """
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return set()
        result = await session.execute(select(TagDB.id).where(TagDB.id.in_(wanted)))
        return set(result.scalars().all())

    async def names_of(
        self,
        session: AsyncSession,
        tag_id: uuid.UUID,
        *,
        primary: Optional[bool] = None,
    ) -> List[TagNameDB]:
        """
        Get the names of a tag in creation order.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        tag_id : uuid.UUID
            Tag id.
        primary : Optional[bool]
            Only primary (True) or only secondary (False) names.

        Returns
        -------
        List[TagNameDB]
            Matching names.
        """
        stmt = select(TagNameDB).where(TagNameDB.tag_id == tag_id)
        if primary is not None:
            stmt = stmt.where(TagNameDB.is_primary.is_(primary))
        result = await session.execute(
            stmt.order_by(TagNameDB.created_at.asc(), TagNameDB.id.asc())
        )
        return list(result.scalars().all())

    async def names_starting_with(
        self, session: AsyncSession, prefix: str, *, limit: int = 10
    ) -> List[TagNameDB]:
        """
        Get tag names starting with ``prefix``, case-insensitively.

        Shorter names come first so exact matches lead the list.
        """
        result = await session.execute(
            select(TagNameDB)
            .where(
                func.lower(TagNameDB.name).startswith(prefix.lower(), autoescape=True)
            )
            .order_by(func.length(TagNameDB.name).asc(), TagNameDB.name.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    def find_stmt(self, query: Optional[str] = None) -> Select[Any]:
        """
        Build the selection of tags, optionally filtered by name prefix.

        A tag matches when any of its names starts with ``query``
        (case-insensitive).
        """
        stmt = select(TagDB)
        if query:
            stmt = stmt.where(
                exists().where(
                    TagNameDB.tag_id == TagDB.id,
                    func.lower(TagNameDB.name).startswith(
                        query.lower(), autoescape=True
                    ),
                )
            )
        return stmt
