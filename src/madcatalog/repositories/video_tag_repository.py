"""
Video tag repository implementation.

Provides data access for video <-> tag associations. One row exists per
(video, tag) pair; detaching flips ``is_removed`` instead of deleting it.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import VideoTag as VideoTagDB
from madcatalog.repositories.base import BaseSQLAlchemyRepository


class VideoTagRepository(BaseSQLAlchemyRepository[VideoTagDB, uuid.UUID]):
    """Repository for video tag associations."""

    def __init__(self) -> None:
        """Initialize repository with VideoTag model."""
        super().__init__(VideoTagDB)

    async def get_pair(
        self,
        session: AsyncSession,
        video_id: uuid.UUID,
        tag_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> Optional[VideoTagDB]:
        """
        Get the association row of a (video, tag) pair.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        video_id : uuid.UUID
            Video id.
        tag_id : uuid.UUID
            Tag id.
        for_update : bool, optional
            Lock the row for the rest of the transaction (default False).

        Returns
        -------
        Optional[VideoTagDB]
            The row (active or removed), or None if never attached.
        """
        stmt = select(VideoTagDB).where(
            VideoTagDB.video_id == video_id, VideoTagDB.tag_id == tag_id
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def has_active(
        self, session: AsyncSession, video_id: uuid.UUID, tag_id: uuid.UUID
    ) -> bool:
        """Check whether the pair has an active association."""
        result = await session.execute(
            select(VideoTagDB.id).where(
                VideoTagDB.video_id == video_id,
                VideoTagDB.tag_id == tag_id,
                VideoTagDB.is_removed.is_(False),
            )
        )
        return result.first() is not None

    async def active_tag_ids(
        self, session: AsyncSession, video_id: uuid.UUID
    ) -> set[uuid.UUID]:
        """Get the ids of the tags actively attached to a video."""
        result = await session.execute(
            select(VideoTagDB.tag_id).where(
                VideoTagDB.video_id == video_id, VideoTagDB.is_removed.is_(False)
            )
        )
        return set(result.scalars().all())

    async def list_for_video(
        self,
        session: AsyncSession,
        video_id: uuid.UUID,
        *,
        include_removed: bool = False,
    ) -> List[VideoTagDB]:
        """Get the associations of a video in attach order."""
        stmt = select(VideoTagDB).where(VideoTagDB.video_id == video_id)
        if not include_removed:
            stmt = stmt.where(VideoTagDB.is_removed.is_(False))
        result = await session.execute(
            stmt.order_by(VideoTagDB.created_at.asc(), VideoTagDB.id.asc())
        )
        return list(result.scalars().all())
