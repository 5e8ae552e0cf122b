"""
Video repository implementation.

Provides data access for registered videos and their external source
records.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import Video as VideoDB
from madcatalog.db.models import VideoSource as VideoSourceDB
from madcatalog.db.models import VideoTag as VideoTagDB
from madcatalog.models.enums import SourceKind
from madcatalog.repositories.base import BaseSQLAlchemyRepository


class VideoRepository(BaseSQLAlchemyRepository[VideoDB, uuid.UUID]):
    """Repository for videos and video source records."""

    def __init__(self) -> None:
        """Initialize repository with Video model."""
        super().__init__(VideoDB)

    async def get_source(
        self, session: AsyncSession, source: SourceKind, source_id: str
    ) -> Optional[VideoSourceDB]:
        """
        Get the source record registered for an external id.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        source : SourceKind
            External service.
        source_id : str
            Id of the video on that service.

        Returns
        -------
        Optional[VideoSourceDB]
            The source record, or None if the id was never accepted.
        """
        result = await session.execute(
            select(VideoSourceDB).where(
                VideoSourceDB.source == source.value,
                VideoSourceDB.source_id == source_id,
            )
        )
        return result.scalar_one_or_none()

    def tagged_with_stmt(self, tag_id: uuid.UUID) -> Select[Any]:
        """Build the selection of videos with an active tag association."""
        return (
            select(VideoDB)
            .join(VideoTagDB, VideoTagDB.video_id == VideoDB.id)
            .where(VideoTagDB.tag_id == tag_id, VideoTagDB.is_removed.is_(False))
        )
