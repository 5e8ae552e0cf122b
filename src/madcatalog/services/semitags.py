"""
Semitag service for unmoderated tag suggestions.

A semitag is a free-text suggestion attached to a video. It is checked
exactly once: either resolved into a video tag (in the same transaction as
the attach) or rejected. Checked semitags are immutable.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import Semitag as SemitagDB
from madcatalog.db.models import new_id
from madcatalog.db.transaction import atomic
from madcatalog.models.enums import EntityKind, SemitagEventType
from madcatalog.models.results import Err, Ok, Result
from madcatalog.models.semitag import Semitag, SemitagName, SemitagSuggestion
from madcatalog.repositories.event_log_repository import EventLogRepository
from madcatalog.repositories.semitag_repository import SemitagRepository
from madcatalog.repositories.tag_repository import TagRepository
from madcatalog.repositories.video_repository import VideoRepository
from madcatalog.repositories.video_tag_repository import VideoTagRepository
from madcatalog.services.tagging import TaggingService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class SuggestErrorKind(str, Enum):
    """Failures of ``suggest``."""

    INVALID_NAME = "INVALID_NAME"
    VIDEO_NOT_FOUND = "VIDEO_NOT_FOUND"
    ALREADY_ATTACHED = "ALREADY_ATTACHED"
    ALREADY_CHECKED = "ALREADY_CHECKED"


@dataclass(frozen=True)
class SuggestError:
    """Error of ``suggest``; ``semitag`` is the existing suggestion."""

    kind: SuggestErrorKind
    video_id: uuid.UUID
    name: str
    semitag: Optional[Semitag] = None


class ResolveSemitagErrorKind(str, Enum):
    """Failures of ``resolve``."""

    NOT_FOUND = "NOT_FOUND"
    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    ALREADY_CHECKED = "ALREADY_CHECKED"


@dataclass(frozen=True)
class ResolveSemitagError:
    """Error of ``resolve``; ``semitag`` is the current, checked state."""

    kind: ResolveSemitagErrorKind
    semitag_id: uuid.UUID
    tag_id: uuid.UUID
    semitag: Optional[Semitag] = None


class RejectSemitagErrorKind(str, Enum):
    """Failures of ``reject``."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_CHECKED = "ALREADY_CHECKED"


@dataclass(frozen=True)
class RejectSemitagError:
    """Error of ``reject``; ``semitag`` is the current, checked state."""

    kind: RejectSemitagErrorKind
    semitag_id: uuid.UUID
    semitag: Optional[Semitag] = None


class SemitagService:
    """Service owning semitags and their resolution into video tags."""

    def __init__(
        self,
        semitag_repo: SemitagRepository,
        video_repo: VideoRepository,
        tag_repo: TagRepository,
        video_tag_repo: VideoTagRepository,
        tagging: TaggingService,
        event_log: EventLogRepository,
    ) -> None:
        self._semitag_repo = semitag_repo
        self._video_repo = video_repo
        self._tag_repo = tag_repo
        self._video_tag_repo = video_tag_repo
        self._tagging = tagging
        self._event_log = event_log

    async def create_for_video(
        self,
        session: AsyncSession,
        *,
        video_id: uuid.UUID,
        name: str,
        actor_id: str,
    ) -> SemitagDB:
        """
        Insert an unchecked semitag with its ATTACHED event.

        Callers run this inside their own atomic block after checking that
        the video exists and the name is free.
        """
        row = SemitagDB(
            id=new_id(), video_id=video_id, name=name, is_checked=False
        )
        await self._semitag_repo.add(session, row)
        await self._event_log.append(
            session,
            entity=EntityKind.SEMITAG,
            entity_id=row.id,
            type=SemitagEventType.ATTACHED.value,
            actor_id=actor_id,
            payload={"video_id": str(video_id), "name": name},
        )
        return row

    def _duplicate_error(
        self, video_id: uuid.UUID, name: str, existing: SemitagDB
    ) -> Err[SuggestError]:
        kind = (
            SuggestErrorKind.ALREADY_CHECKED
            if existing.is_checked
            else SuggestErrorKind.ALREADY_ATTACHED
        )
        return Err(SuggestError(kind, video_id, name, Semitag.model_validate(existing)))

    async def suggest(
        self,
        session: AsyncSession,
        *,
        video_id: uuid.UUID,
        name: str,
        actor_id: str,
    ) -> Result[Semitag, SuggestError]:
        """
        Suggest a semitag for a video.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        video_id : uuid.UUID
            Video to attach the suggestion to.
        name : str
            Suggested tag name; surrounding whitespace is stripped.
        actor_id : str
            Actor suggesting the semitag.

        Returns
        -------
        Result[Semitag, SuggestError]
            The new semitag, or INVALID_NAME (blank or longer than 255
            characters) / VIDEO_NOT_FOUND / ALREADY_ATTACHED (an unchecked
            suggestion with that name exists) / ALREADY_CHECKED (a checked
            one does).
        """
        try:
            name = SemitagName(name=name).name
        except ValidationError:
            return Err(SuggestError(SuggestErrorKind.INVALID_NAME, video_id, name))
        try:
            async with atomic(session):
                if not await self._video_repo.exists(session, video_id):
                    return Err(
                        SuggestError(SuggestErrorKind.VIDEO_NOT_FOUND, video_id, name)
                    )
                existing = await self._semitag_repo.get_by_video_and_name(
                    session, video_id, name
                )
                if existing is not None:
                    return self._duplicate_error(video_id, name, existing)

                row = await self.create_for_video(
                    session, video_id=video_id, name=name, actor_id=actor_id
                )
                semitag = Semitag.model_validate(row)
        except IntegrityError:
            current = await self._semitag_repo.get_by_video_and_name(
                session, video_id, name
            )
            if current is None:
                raise
            logger.info("Lost suggest race on video=%s name=%r", video_id, name)
            return self._duplicate_error(video_id, name, current)

        logger.info(
            "Semitag %s %r suggested on video %s by %s",
            semitag.id,
            name,
            video_id,
            actor_id,
        )
        return Ok(semitag)

    async def resolve(
        self,
        session: AsyncSession,
        *,
        semitag_id: uuid.UUID,
        tag_id: uuid.UUID,
        actor_id: str,
    ) -> Result[Semitag, ResolveSemitagError]:
        """
        Resolve a semitag into a tag of its video.

        Checks the semitag and attaches the tag in one atomic unit. If the
        video already carries the tag, the active association is reused; a
        removed one is re-attached. No duplicate video tag is ever created.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        semitag_id : uuid.UUID
            Semitag to resolve.
        tag_id : uuid.UUID
            Tag the semitag stands for.
        actor_id : str
            Actor resolving the semitag.

        Returns
        -------
        Result[Semitag, ResolveSemitagError]
            The checked semitag referencing its video tag, or NOT_FOUND /
            TAG_NOT_FOUND / ALREADY_CHECKED.
        """
        async with atomic(session):
            row = await self._semitag_repo.get_for_update(session, semitag_id)
            if row is None:
                return Err(
                    ResolveSemitagError(
                        ResolveSemitagErrorKind.NOT_FOUND, semitag_id, tag_id
                    )
                )
            if row.is_checked:
                return Err(
                    ResolveSemitagError(
                        ResolveSemitagErrorKind.ALREADY_CHECKED,
                        semitag_id,
                        tag_id,
                        Semitag.model_validate(row),
                    )
                )
            if not await self._tag_repo.exists(session, tag_id):
                return Err(
                    ResolveSemitagError(
                        ResolveSemitagErrorKind.TAG_NOT_FOUND, semitag_id, tag_id
                    )
                )

            video_tag, transition = await self._tagging.ensure_attached(
                session, video_id=row.video_id, tag_id=tag_id, actor_id=actor_id
            )
            row.is_checked = True
            row.video_tag_id = video_tag.id
            await session.flush()
            await self._event_log.append(
                session,
                entity=EntityKind.SEMITAG,
                entity_id=row.id,
                type=SemitagEventType.RESOLVE.value,
                actor_id=actor_id,
                payload={
                    "video_id": str(row.video_id),
                    "name": row.name,
                    "tag_id": str(tag_id),
                    "video_tag_id": str(video_tag.id),
                },
            )
            semitag = Semitag.model_validate(row)

        logger.info(
            "Semitag %s resolved to tag %s (%s) by %s",
            semitag_id,
            tag_id,
            transition.value if transition else "already attached",
            actor_id,
        )
        return Ok(semitag)

    async def reject(
        self,
        session: AsyncSession,
        *,
        semitag_id: uuid.UUID,
        actor_id: str,
    ) -> Result[Semitag, RejectSemitagError]:
        """
        Reject a semitag; no video tag is created.

        Returns
        -------
        Result[Semitag, RejectSemitagError]
            The checked semitag, or NOT_FOUND / ALREADY_CHECKED.
        """
        async with atomic(session):
            row = await self._semitag_repo.get_for_update(session, semitag_id)
            if row is None:
                return Err(
                    RejectSemitagError(RejectSemitagErrorKind.NOT_FOUND, semitag_id)
                )
            if row.is_checked:
                return Err(
                    RejectSemitagError(
                        RejectSemitagErrorKind.ALREADY_CHECKED,
                        semitag_id,
                        Semitag.model_validate(row),
                    )
                )

            row.is_checked = True
            await session.flush()
            await self._event_log.append(
                session,
                entity=EntityKind.SEMITAG,
                entity_id=row.id,
                type=SemitagEventType.REJECT.value,
                actor_id=actor_id,
                payload={"video_id": str(row.video_id), "name": row.name},
            )
            semitag = Semitag.model_validate(row)

        logger.info("Semitag %s rejected by %s", semitag_id, actor_id)
        return Ok(semitag)

    # -------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------

    async def get(
        self, session: AsyncSession, semitag_id: uuid.UUID
    ) -> Optional[Semitag]:
        """Get a semitag by id."""
        row = await self._semitag_repo.get(session, semitag_id)
        return Semitag.model_validate(row) if row is not None else None

    async def semitags_of(
        self,
        session: AsyncSession,
        video_id: uuid.UUID,
        *,
        checked: Optional[bool] = None,
    ) -> List[Semitag]:
        """Get the semitags of a video, optionally by checked state."""
        rows = await self._semitag_repo.list_for_video(
            session, video_id, checked=checked
        )
        return [Semitag.model_validate(row) for row in rows]

    async def can_resolve_to(
        self, session: AsyncSession, *, semitag_id: uuid.UUID, tag_id: uuid.UUID
    ) -> bool:
        """
        Return True if the semitag's video has no active tag ``tag_id`` yet.

        Advisory only; ``resolve`` re-checks inside its transaction.
        """
        row = await self._semitag_repo.get(session, semitag_id)
        if row is None:
            return False
        return not await self._video_tag_repo.has_active(
            session, row.video_id, tag_id
        )

    async def suggest_tags(
        self, session: AsyncSession, *, semitag_id: uuid.UUID, limit: int = 10
    ) -> List[SemitagSuggestion]:
        """
        List candidate tags for resolving a semitag.

        Candidates are tags with a name starting with the semitag name,
        case-insensitively, each annotated with ``can_resolve_to``.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        semitag_id : uuid.UUID
            Semitag to find candidates for.
        limit : int, optional
            Maximum number of candidates (default 10).

        Returns
        -------
        List[SemitagSuggestion]
            Candidates, shortest matching name first; empty if the semitag
            does not exist.
        """
        row = await self._semitag_repo.get(session, semitag_id)
        if row is None:
            return []

        names = await self._tag_repo.names_starting_with(
            session, row.name, limit=limit * 2
        )
        active = await self._video_tag_repo.active_tag_ids(session, row.video_id)

        suggestions: List[SemitagSuggestion] = []
        seen: set[uuid.UUID] = set()
        for tag_name in names:
            if tag_name.tag_id in seen:
                continue
            seen.add(tag_name.tag_id)
            suggestions.append(
                SemitagSuggestion(
                    semitag_id=row.id,
                    tag_id=tag_name.tag_id,
                    matched_name=tag_name.name,
                    can_resolve_to=tag_name.tag_id not in active,
                )
            )
            if len(suggestions) >= limit:
                break
        return suggestions
