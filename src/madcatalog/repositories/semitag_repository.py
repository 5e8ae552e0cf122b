"""
Semitag repository implementation.

Provides data access for unmoderated tag suggestions on videos.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import Semitag as SemitagDB
from madcatalog.repositories.base import BaseSQLAlchemyRepository


class SemitagRepository(BaseSQLAlchemyRepository[SemitagDB, uuid.UUID]):
    """Repository for semitags."""

    def __init__(self) -> None:
        """Initialize repository with Semitag model."""
        super().__init__(SemitagDB)

    async def get_by_video_and_name(
        self, session: AsyncSession, video_id: uuid.UUID, name: str
    ) -> Optional[SemitagDB]:
        """Get the semitag with exactly ``name`` on a video, checked or not."""
        result = await session.execute(
            select(SemitagDB).where(
                SemitagDB.video_id == video_id, SemitagDB.name == name
            )
        )
        return result.scalar_one_or_none()

    async def list_for_video(
        self,
        session: AsyncSession,
        video_id: uuid.UUID,
        *,
        checked: Optional[bool] = None,
    ) -> List[SemitagDB]:
        """
        Get the semitags of a video in suggestion order.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        video_id : uuid.UUID
            Video id.
        checked : Optional[bool]
            Only checked (True) or only unchecked (False) semitags.

        Returns
        -------
        List[SemitagDB]
            Matching semitags.
        """
        stmt = select(SemitagDB).where(SemitagDB.video_id == video_id)
        if checked is not None:
            stmt = stmt.where(SemitagDB.is_checked.is_(checked))
        result = await session.execute(
            stmt.order_by(SemitagDB.created_at.asc(), SemitagDB.id.asc())
        )
        return list(result.scalars().all())
