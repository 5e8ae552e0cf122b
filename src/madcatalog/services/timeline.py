"""
Timeline projector.

Reconstitutes a chronological feed, newest first, from the committed event
logs of videos, registration requests and semitags. It only reads: no
state is mutated and nothing here takes part in a write transaction.

Entries are totally ordered by ``(created_at, kind rank, event id)``
descending, so a feed can be restarted from any entry's cursor.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncGenerator, Deque, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.config.settings import settings
from madcatalog.exceptions import InvalidPaginationError
from madcatalog.models.enums import (
    EntityKind,
    RegistrationRequestEventType,
    SemitagEventType,
    VideoEventType,
)
from madcatalog.models.events import EventRecord
from madcatalog.repositories.event_log_repository import EventLogRepository

logger = logging.getLogger(__name__)


class TimelineKind(str, Enum):
    """Kinds of timeline entries."""

    VIDEO_REGISTERED = "VIDEO_REGISTERED"
    REGISTRATION_REQUESTED = "REGISTRATION_REQUESTED"
    REGISTRATION_ACCEPTED = "REGISTRATION_ACCEPTED"
    REGISTRATION_REJECTED = "REGISTRATION_REJECTED"
    SEMITAG_RESOLVED = "SEMITAG_RESOLVED"
    SEMITAG_REJECTED = "SEMITAG_REJECTED"


# Event log feeding each kind; list order is the tie-break rank
TIMELINE_SOURCES: List[tuple[TimelineKind, EntityKind, str]] = [
    (TimelineKind.VIDEO_REGISTERED, EntityKind.VIDEO, VideoEventType.REGISTER.value),
    (
        TimelineKind.REGISTRATION_REQUESTED,
        EntityKind.REGISTRATION_REQUEST,
        RegistrationRequestEventType.REQUEST.value,
    ),
    (
        TimelineKind.REGISTRATION_ACCEPTED,
        EntityKind.REGISTRATION_REQUEST,
        RegistrationRequestEventType.ACCEPT.value,
    ),
    (
        TimelineKind.REGISTRATION_REJECTED,
        EntityKind.REGISTRATION_REQUEST,
        RegistrationRequestEventType.REJECT.value,
    ),
    (TimelineKind.SEMITAG_RESOLVED, EntityKind.SEMITAG, SemitagEventType.RESOLVE.value),
    (TimelineKind.SEMITAG_REJECTED, EntityKind.SEMITAG, SemitagEventType.REJECT.value),
]


class TimelinePosition(BaseModel):
    """Ordering key of one timeline entry."""

    created_at: datetime
    rank: int
    event_id: int

    def encode(self) -> str:
        """Encode the position as an opaque cursor."""
        raw = json.dumps([self.created_at.isoformat(), self.rank, self.event_id])
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, cursor: str) -> "TimelinePosition":
        """
        Decode an opaque cursor.

        Raises
        ------
        InvalidPaginationError
            If the cursor was not produced by ``encode``.
        """
        try:
            raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
            created_at, rank, event_id = json.loads(raw)
            return cls(
                created_at=datetime.fromisoformat(created_at),
                rank=int(rank),
                event_id=int(event_id),
            )
        except (binascii.Error, UnicodeError, ValueError, TypeError) as e:
            raise InvalidPaginationError(
                f"Malformed timeline cursor: {cursor!r}", argument="after"
            ) from e


class TimelineEntry(BaseModel):
    """One feed entry, polymorphic over ``kind``."""

    kind: TimelineKind
    entity_id: uuid.UUID = Field(..., description="Video, request or semitag id")
    event_id: int
    actor_id: str
    created_at: datetime
    payload: dict[str, Any] = Field(default_factory=dict)
    cursor: str

    model_config = ConfigDict(frozen=True)


class TimelinePage(BaseModel):
    """Slice of the feed with the cursor to continue from."""

    entries: List[TimelineEntry] = Field(default_factory=list)
    end_cursor: Optional[str] = None
    has_more: bool = False


@dataclass
class _Stream:
    """Buffered reader of one timeline kind."""

    rank: int
    kind: TimelineKind
    entity: EntityKind
    event_type: str
    until: Optional[datetime] = None
    until_id: Optional[int] = None
    inclusive: bool = True
    exhausted: bool = False
    buffer: Deque[EventRecord] = field(default_factory=deque)

    def head_key(self) -> tuple[datetime, int, int]:
        head = self.buffer[0]
        return (head.created_at, self.rank, head.event_id)


class TimelineProjector:
    """Read-only projector merging event logs into one descending feed."""

    def __init__(
        self, event_log: EventLogRepository, batch_size: Optional[int] = None
    ) -> None:
        self._event_log = event_log
        self._batch_size = batch_size or settings.timeline_batch_size

    def _streams(
        self,
        kinds: Optional[Sequence[TimelineKind]],
        position: Optional[TimelinePosition],
        until: Optional[datetime],
    ) -> List[_Stream]:
        streams: List[_Stream] = []
        for rank, (kind, entity, event_type) in enumerate(TIMELINE_SOURCES):
            if kinds and kind not in kinds:
                continue
            stream = _Stream(rank, kind, entity, event_type)
            if position is not None:
                stream.until = position.created_at
                if rank == position.rank:
                    stream.until_id = position.event_id
                else:
                    # Lower ranks sort after the position at the same instant
                    stream.inclusive = rank < position.rank
            elif until is not None:
                stream.until = until
            streams.append(stream)
        return streams

    async def _fill(
        self, session: AsyncSession, stream: _Stream, since: Optional[datetime]
    ) -> None:
        batch = await self._event_log.list_before(
            session,
            stream.entity,
            types=[stream.event_type],
            until=stream.until,
            until_id=stream.until_id,
            inclusive=stream.inclusive,
            since=since,
            limit=self._batch_size,
        )
        stream.buffer.extend(batch)
        if len(batch) < self._batch_size:
            stream.exhausted = True
        if batch:
            stream.until = batch[-1].created_at
            stream.until_id = batch[-1].event_id

    async def entries(
        self,
        session: AsyncSession,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        kinds: Optional[Sequence[TimelineKind]] = None,
        after: Optional[str] = None,
    ) -> AsyncGenerator[TimelineEntry, None]:
        """
        Lazily yield feed entries, newest first.

        Events are pulled from each log in batches of ``batch_size`` and
        merged; iteration ends when every log in the window is exhausted.

        Parameters
        ----------
        session : AsyncSession
            Database session kept open while iterating.
        since : Optional[datetime]
            Inclusive lower bound of the window.
        until : Optional[datetime]
            Inclusive upper bound of the window.
        kinds : Optional[Sequence[TimelineKind]]
            Only these kinds (default all).
        after : Optional[str]
            Cursor of an entry; the feed resumes right after it.

        Yields
        ------
        TimelineEntry
            Entries in ``(created_at, rank, event_id)`` descending order.
        """
        position = TimelinePosition.decode(after) if after else None
        streams = self._streams(kinds, position, until)

        while True:
            for stream in streams:
                if not stream.buffer and not stream.exhausted:
                    await self._fill(session, stream, since)

            ready = [stream for stream in streams if stream.buffer]
            if not ready:
                return
            newest = max(ready, key=lambda stream: stream.head_key())
            record = newest.buffer.popleft()
            yield TimelineEntry(
                kind=newest.kind,
                entity_id=record.entity_id,
                event_id=record.event_id,
                actor_id=record.actor_id,
                created_at=record.created_at,
                payload=record.payload,
                cursor=TimelinePosition(
                    created_at=record.created_at,
                    rank=newest.rank,
                    event_id=record.event_id,
                ).encode(),
            )

    async def page(
        self,
        session: AsyncSession,
        *,
        limit: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        kinds: Optional[Sequence[TimelineKind]] = None,
        after: Optional[str] = None,
    ) -> TimelinePage:
        """
        Read one slice of the feed.

        Raises
        ------
        InvalidPaginationError
            If ``limit`` is negative or ``after`` is malformed.
        """
        if limit < 0:
            raise InvalidPaginationError("'limit' must not be negative", argument="limit")

        collected: List[TimelineEntry] = []
        has_more = False
        feed = self.entries(
            session, since=since, until=until, kinds=kinds, after=after
        )
        try:
            async for entry in feed:
                if len(collected) == limit:
                    has_more = True
                    break
                collected.append(entry)
        finally:
            await feed.aclose()

        logger.debug("Timeline page of %d entries (more: %s)", len(collected), has_more)
        return TimelinePage(
            entries=collected,
            end_cursor=collected[-1].cursor if collected else after,
            has_more=has_more,
        )
