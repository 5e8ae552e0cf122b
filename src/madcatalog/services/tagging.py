"""
Tagging service for video <-> tag associations.

Owns the attach/detach/reattach lifecycle of video tags. A (video, tag) pair
has at most one row for its whole life; detaching flips ``is_removed`` and
re-attaching flips it back, so every transition is kept in the event trail:

    ATTACH -> DETACH -> REATTACH -> DETACH -> ...
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import VideoTag as VideoTagDB
from madcatalog.db.models import new_id, utcnow
from madcatalog.db.transaction import atomic
from madcatalog.models.enums import EntityKind, VideoTagEventType
from madcatalog.models.events import EventRecord
from madcatalog.models.results import Err, Ok, Result
from madcatalog.models.video import VideoTag
from madcatalog.repositories.event_log_repository import EventLogRepository
from madcatalog.repositories.tag_repository import TagRepository
from madcatalog.repositories.video_repository import VideoRepository
from madcatalog.repositories.video_tag_repository import VideoTagRepository

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class AttachErrorKind(str, Enum):
    """Failures of ``attach``."""

    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    EXISTS_TAGGING = "EXISTS_TAGGING"


@dataclass(frozen=True)
class AttachError:
    """Error of ``attach``; ``video_tag`` is the active row on EXISTS_TAGGING."""

    kind: AttachErrorKind
    video_id: uuid.UUID
    tag_id: uuid.UUID
    video_tag: Optional[VideoTag] = None


class DetachErrorKind(str, Enum):
    """Failures of ``detach``."""

    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class DetachError:
    """Error of ``detach``; ``video_tag`` is the removed row, if one exists."""

    kind: DetachErrorKind
    video_id: uuid.UUID
    tag_id: uuid.UUID
    video_tag: Optional[VideoTag] = None


class TaggingService:
    """
    Service owning video tag associations and their event trail.

    Each public mutation runs in its own savepoint and re-validates its
    preconditions under a row lock on the (video, tag) pair.
    """

    def __init__(
        self,
        video_tag_repo: VideoTagRepository,
        video_repo: VideoRepository,
        tag_repo: TagRepository,
        event_log: EventLogRepository,
    ) -> None:
        self._video_tag_repo = video_tag_repo
        self._video_repo = video_repo
        self._tag_repo = tag_repo
        self._event_log = event_log

    # -------------------------------------------------------------------
    # Shared private utilities
    # -------------------------------------------------------------------

    async def _append(
        self,
        session: AsyncSession,
        row: VideoTagDB,
        transition: VideoTagEventType,
        actor_id: str,
    ) -> EventRecord:
        return await self._event_log.append(
            session,
            entity=EntityKind.VIDEO_TAG,
            entity_id=row.id,
            type=transition.value,
            actor_id=actor_id,
            payload={"video_id": str(row.video_id), "tag_id": str(row.tag_id)},
        )

    async def ensure_attached(
        self,
        session: AsyncSession,
        *,
        video_id: uuid.UUID,
        tag_id: uuid.UUID,
        actor_id: str,
    ) -> Tuple[VideoTagDB, Optional[VideoTagEventType]]:
        """
        Make the pair active, whatever its current state.

        Creates the row (ATTACH), re-activates a removed row (REATTACH), or
        returns the already active row without appending an event. Callers
        must run this inside their own atomic block and have validated that
        both ids exist.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        video_id : uuid.UUID
            Video id.
        tag_id : uuid.UUID
            Tag id.
        actor_id : str
            Actor causing the transition.

        Returns
        -------
        Tuple[VideoTagDB, Optional[VideoTagEventType]]
            The active row and the transition applied (None if none was).
        """
        row = await self._video_tag_repo.get_pair(
            session, video_id, tag_id, for_update=True
        )
        if row is None:
            row = VideoTagDB(
                id=new_id(), video_id=video_id, tag_id=tag_id, is_removed=False
            )
            await self._video_tag_repo.add(session, row)
            await self._append(session, row, VideoTagEventType.ATTACH, actor_id)
            return row, VideoTagEventType.ATTACH

        if row.is_removed:
            row.is_removed = False
            row.updated_at = utcnow()
            await session.flush()
            await self._append(session, row, VideoTagEventType.REATTACH, actor_id)
            return row, VideoTagEventType.REATTACH

        return row, None

    # -------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------

    async def attach(
        self,
        session: AsyncSession,
        *,
        video_id: uuid.UUID,
        tag_id: uuid.UUID,
        actor_id: str,
    ) -> Result[VideoTag, AttachError]:
        """
        Attach a tag to a video.

        A pair that was detached before is re-activated with a REATTACH
        event instead of a new ATTACH.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        video_id : uuid.UUID
            Video id.
        tag_id : uuid.UUID
            Tag id.
        actor_id : str
            Actor attaching the tag.

        Returns
        -------
        Result[VideoTag, AttachError]
            The active association, or VIDEO_NOT_FOUND / TAG_NOT_FOUND /
            EXISTS_TAGGING.
        """
        try:
            async with atomic(session):
                if not await self._video_repo.exists(session, video_id):
                    return Err(
                        AttachError(AttachErrorKind.VIDEO_NOT_FOUND, video_id, tag_id)
                    )
                if not await self._tag_repo.exists(session, tag_id):
                    return Err(
                        AttachError(AttachErrorKind.TAG_NOT_FOUND, video_id, tag_id)
                    )

                existing = await self._video_tag_repo.get_pair(
                    session, video_id, tag_id, for_update=True
                )
                if existing is not None and not existing.is_removed:
                    return Err(
                        AttachError(
                            AttachErrorKind.EXISTS_TAGGING,
                            video_id,
                            tag_id,
                            VideoTag.model_validate(existing),
                        )
                    )

                row, transition = await self.ensure_attached(
                    session, video_id=video_id, tag_id=tag_id, actor_id=actor_id
                )
                video_tag = VideoTag.model_validate(row)
        except IntegrityError:
            # A concurrent attach inserted the pair first
            current = await self._video_tag_repo.get_pair(session, video_id, tag_id)
            if current is None or current.is_removed:
                raise
            logger.info(
                "Lost attach race on video=%s tag=%s; pair already active",
                video_id,
                tag_id,
            )
            return Err(
                AttachError(
                    AttachErrorKind.EXISTS_TAGGING,
                    video_id,
                    tag_id,
                    VideoTag.model_validate(current),
                )
            )

        logger.info(
            "%s video tag %s (video=%s, tag=%s) by %s",
            transition.value if transition else "ATTACH",
            video_tag.id,
            video_id,
            tag_id,
            actor_id,
        )
        return Ok(video_tag)

    async def detach(
        self,
        session: AsyncSession,
        *,
        video_id: uuid.UUID,
        tag_id: uuid.UUID,
        actor_id: str,
    ) -> Result[VideoTag, DetachError]:
        """
        Detach a tag from a video.

        Detaching a pair that is already removed is an error, not a no-op.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        video_id : uuid.UUID
            Video id.
        tag_id : uuid.UUID
            Tag id.
        actor_id : str
            Actor detaching the tag.

        Returns
        -------
        Result[VideoTag, DetachError]
            The removed association, or VIDEO_NOT_FOUND / TAG_NOT_FOUND /
            NOT_FOUND.
        """
        async with atomic(session):
            if not await self._video_repo.exists(session, video_id):
                return Err(DetachError(DetachErrorKind.VIDEO_NOT_FOUND, video_id, tag_id))
            if not await self._tag_repo.exists(session, tag_id):
                return Err(DetachError(DetachErrorKind.TAG_NOT_FOUND, video_id, tag_id))

            row = await self._video_tag_repo.get_pair(
                session, video_id, tag_id, for_update=True
            )
            if row is None or row.is_removed:
                return Err(
                    DetachError(
                        DetachErrorKind.NOT_FOUND,
                        video_id,
                        tag_id,
                        VideoTag.model_validate(row) if row is not None else None,
                    )
                )

            row.is_removed = True
            row.updated_at = utcnow()
            await session.flush()
            await self._append(session, row, VideoTagEventType.DETACH, actor_id)
            video_tag = VideoTag.model_validate(row)

        logger.info(
            "DETACH video tag %s (video=%s, tag=%s) by %s",
            video_tag.id,
            video_id,
            tag_id,
            actor_id,
        )
        return Ok(video_tag)

    # -------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------

    async def can_tag_to(
        self, session: AsyncSession, *, tag_id: uuid.UUID, video_id: uuid.UUID
    ) -> bool:
        """Return True if the pair has no active association (advisory only)."""
        return not await self._video_tag_repo.has_active(session, video_id, tag_id)

    async def tags_of(
        self,
        session: AsyncSession,
        video_id: uuid.UUID,
        *,
        include_removed: bool = False,
    ) -> List[VideoTag]:
        """Get the tag associations of a video."""
        rows = await self._video_tag_repo.list_for_video(
            session, video_id, include_removed=include_removed
        )
        return [VideoTag.model_validate(row) for row in rows]

    async def video_tag_history(
        self, session: AsyncSession, *, video_id: uuid.UUID, tag_id: uuid.UUID
    ) -> List[EventRecord]:
        """
        Get the event trail of a (video, tag) pair, oldest first.

        Returns an empty list if the pair was never attached.
        """
        row = await self._video_tag_repo.get_pair(session, video_id, tag_id)
        if row is None:
            return []
        return await self._event_log.list_for(session, EntityKind.VIDEO_TAG, row.id)
