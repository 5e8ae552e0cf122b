"""
Tag parent repository implementation.

Provides data access for child -> parent edges of the tag graph. Removed
edges stay in the table and are excluded from every read path here.
"""

from __future__ import annotations

import uuid
from typing import Any, List, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import Tag as TagDB
from madcatalog.db.models import TagParent as TagParentDB
from madcatalog.repositories.base import BaseSQLAlchemyRepository


class TagParentRepository(BaseSQLAlchemyRepository[TagParentDB, uuid.UUID]):
    """Repository for tag graph edges."""

    def __init__(self) -> None:
        """Initialize repository with TagParent model."""
        super().__init__(TagParentDB)

    async def get_pair(
        self,
        session: AsyncSession,
        child_id: uuid.UUID,
        parent_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Optional[TagParentDB]:
        """
        Get the edge between two tags, removed or not.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        child_id : uuid.UUID
            Child tag id.
        parent_id : uuid.UUID
            Parent tag id.
        for_update : bool, optional
            Lock the row for the rest of the transaction (default False).

        Returns
        -------
        Optional[TagParentDB]
            The edge, or None if the pair was never linked.
        """
        stmt = select(TagParentDB).where(
            TagParentDB.child_id == child_id, TagParentDB.parent_id == parent_id
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def edge_ids_of_child(
        self, session: AsyncSession, child_id: uuid.UUID
    ) -> List[uuid.UUID]:
        """Get the ids of every edge leaving ``child_id``, removed ones included."""
        result = await session.execute(
            select(TagParentDB.id).where(TagParentDB.child_id == child_id)
        )
        return list(result.scalars().all())

    async def get_active_explicit(
        self, session: AsyncSession, child_id: uuid.UUID
    ) -> Optional[TagParentDB]:
        """Get the active explicit parent edge of a child, if any."""
        result = await session.execute(
            select(TagParentDB).where(
                TagParentDB.child_id == child_id,
                TagParentDB.is_explicit.is_(True),
                TagParentDB.is_removed.is_(False),
            )
        )
        return result.scalar_one_or_none()

    async def active_parent_categories(
        self, session: AsyncSession, child_id: uuid.UUID
    ) -> List[Optional[str]]:
        """
        Get the distinct categories of the active category-tag parents.

        Only direct parents are considered.
        """
        result = await session.execute(
            select(TagDB.category)
            .join(TagParentDB, TagParentDB.parent_id == TagDB.id)
            .where(
                TagParentDB.child_id == child_id,
                TagParentDB.is_removed.is_(False),
                TagDB.is_category_tag.is_(True),
            )
            .distinct()
        )
        return list(result.scalars().all())

    def children_stmt(self, parent_id: uuid.UUID) -> Select[Any]:
        """Build the selection of active edges pointing at ``parent_id``."""
        return select(TagParentDB).where(
            TagParentDB.parent_id == parent_id, TagParentDB.is_removed.is_(False)
        )

    def parents_stmt(
        self, child_id: uuid.UUID, *, category_only: bool = False
    ) -> Select[Any]:
        """
        Build the selection of active edges leaving ``child_id``.

        With ``category_only`` only edges whose parent is a category tag
        are selected.
        """
        stmt = select(TagParentDB).where(
            TagParentDB.child_id == child_id, TagParentDB.is_removed.is_(False)
        )
        if category_only:
            stmt = stmt.join(TagDB, TagParentDB.parent_id == TagDB.id).where(
                TagDB.is_category_tag.is_(True)
            )
        return stmt
