"""
Registration workflow.

One generic state machine governs the registration requests of every
external source; a ``SourceAdapter`` supplies what differs between them.

    PENDING --accept--> ACCEPTED   (creates the video, one time)
    PENDING --reject--> REJECTED   (carries the moderator's note)

Both terminal states are final: a checked request is never re-resolved.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.config.settings import settings
from madcatalog.db.models import RegistrationRequest as RegistrationRequestDB
from madcatalog.db.models import RegistrationRequestChecking as CheckingDB
from madcatalog.db.models import RegistrationRequestSemitagging as SemitaggingDB
from madcatalog.db.models import RegistrationRequestTagging as TaggingDB
from madcatalog.db.models import Video as VideoDB
from madcatalog.db.models import VideoSource as VideoSourceDB
from madcatalog.db.models import VideoThumbnail as VideoThumbnailDB
from madcatalog.db.models import VideoTitle as VideoTitleDB
from madcatalog.db.models import new_id
from madcatalog.db.transaction import atomic
from madcatalog.models.enums import (
    EntityKind,
    RegistrationRequestEventType,
    SourceKind,
    VideoEventType,
    VideoSourceEventType,
)
from madcatalog.models.pagination import Connection, ConnectionArgs
from madcatalog.models.registration import (
    RegistrationRequest,
    RegistrationRequestCreate,
    RequestChecking,
)
from madcatalog.models.results import Err, Ok, Result
from madcatalog.models.video import Video, VideoSource
from madcatalog.repositories.event_log_repository import EventLogRepository
from madcatalog.repositories.pagination import keyset_paginate
from madcatalog.repositories.registration_request_repository import (
    RegistrationRequestRepository,
)
from madcatalog.repositories.tag_repository import TagRepository
from madcatalog.repositories.video_repository import VideoRepository
from madcatalog.services.registration.sources import SourceAdapter
from madcatalog.services.semitags import SemitagService
from madcatalog.services.tagging import TaggingService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class SubmitErrorKind(str, Enum):
    """Failures of ``submit``."""

    INVALID_SOURCE_ID = "INVALID_SOURCE_ID"
    DUPLICATED_TAGGING = "DUPLICATED_TAGGING"
    DUPLICATED_SEMITAGGING = "DUPLICATED_SEMITAGGING"
    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    VIDEO_ALREADY_REGISTERED = "VIDEO_ALREADY_REGISTERED"
    ALREADY_REQUESTED = "ALREADY_REQUESTED"


@dataclass(frozen=True)
class SubmitError:
    """
    Error of ``submit``.

    ``video_source`` is the conflicting source record for
    VIDEO_ALREADY_REGISTERED and ``request`` the pending request for
    ALREADY_REQUESTED.
    """

    kind: SubmitErrorKind
    source_id: str
    offending_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    video_source: Optional[VideoSource] = None
    request: Optional[RegistrationRequest] = None


class AcceptErrorKind(str, Enum):
    """Failures of ``accept``."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_CHECKED = "ALREADY_CHECKED"


@dataclass(frozen=True)
class AcceptError:
    """Error of ``accept``; ``checking`` is the existing disposition."""

    kind: AcceptErrorKind
    request_id: uuid.UUID
    request: Optional[RegistrationRequest] = None
    checking: Optional[RequestChecking] = None


class RejectRequestErrorKind(str, Enum):
    """Failures of ``reject``."""

    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    REQUEST_ALREADY_CHECKED = "REQUEST_ALREADY_CHECKED"


@dataclass(frozen=True)
class RejectRequestError:
    """Error of ``reject``; ``checking`` is the existing disposition."""

    kind: RejectRequestErrorKind
    request_id: uuid.UUID
    request: Optional[RegistrationRequest] = None
    checking: Optional[RequestChecking] = None


class RegistrationWorkflow:
    """
    Registration state machine for one external source.

    Parameters
    ----------
    adapter : SourceAdapter
        Capabilities of the source this instance serves.
    """

    def __init__(
        self,
        adapter: SourceAdapter,
        request_repo: RegistrationRequestRepository,
        video_repo: VideoRepository,
        tag_repo: TagRepository,
        tagging: TaggingService,
        semitags: SemitagService,
        event_log: EventLogRepository,
        max_page_size: Optional[int] = None,
    ) -> None:
        self._adapter = adapter
        self._request_repo = request_repo
        self._video_repo = video_repo
        self._tag_repo = tag_repo
        self._tagging = tagging
        self._semitags = semitags
        self._event_log = event_log
        self._max_page_size = max_page_size or settings.max_page_size

    @property
    def source(self) -> SourceKind:
        """Source served by this workflow."""
        return self._adapter.kind

    @property
    def adapter(self) -> SourceAdapter:
        """Adapter of the served source."""
        return self._adapter

    async def _append_request_event(
        self,
        session: AsyncSession,
        request: RegistrationRequestDB,
        event_type: RegistrationRequestEventType,
        actor_id: str,
        **payload: object,
    ) -> None:
        await self._event_log.append(
            session,
            entity=EntityKind.REGISTRATION_REQUEST,
            entity_id=request.id,
            type=event_type.value,
            actor_id=actor_id,
            payload={
                "source": request.source,
                "source_id": request.source_id,
                **payload,
            },
        )

    def _checked_state(
        self, request: RegistrationRequestDB
    ) -> tuple[RegistrationRequest, Optional[RequestChecking]]:
        current = RegistrationRequest.model_validate(request)
        return current, current.checking

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------

    async def submit(
        self,
        session: AsyncSession,
        *,
        data: RegistrationRequestCreate,
        actor_id: str,
    ) -> Result[RegistrationRequest, SubmitError]:
        """
        Submit a PENDING registration request.

        No video is created yet; the tagging and semitagging intents are
        stored with the request and applied on acceptance.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        data : RegistrationRequestCreate
            Request input; ``data.source`` must be this workflow's source.
        actor_id : str
            Actor submitting the request.

        Returns
        -------
        Result[RegistrationRequest, SubmitError]
            The pending request or the first failed check.

        Raises
        ------
        ValueError
            If ``data.source`` belongs to another workflow.
        """
        if data.source != self.source:
            raise ValueError(
                f"{data.source.value} request submitted to the "
                f"{self.source.value} workflow"
            )
        source_id = data.source_id

        if not self._adapter.validate_external_id(source_id):
            return Err(SubmitError(SubmitErrorKind.INVALID_SOURCE_ID, source_id))

        seen_tags: set[uuid.UUID] = set()
        for tagging in data.taggings:
            if tagging.tag_id in seen_tags:
                return Err(
                    SubmitError(
                        SubmitErrorKind.DUPLICATED_TAGGING,
                        source_id,
                        offending_id=tagging.tag_id,
                    )
                )
            seen_tags.add(tagging.tag_id)

        seen_names: set[str] = set()
        for semitagging in data.semitaggings:
            if semitagging.name in seen_names:
                return Err(
                    SubmitError(
                        SubmitErrorKind.DUPLICATED_SEMITAGGING,
                        source_id,
                        name=semitagging.name,
                    )
                )
            seen_names.add(semitagging.name)

        try:
            async with atomic(session):
                existing_tags = await self._tag_repo.existing_ids(
                    session, [t.tag_id for t in data.taggings]
                )
                for tagging in data.taggings:
                    if tagging.tag_id not in existing_tags:
                        return Err(
                            SubmitError(
                                SubmitErrorKind.TAG_NOT_FOUND,
                                source_id,
                                offending_id=tagging.tag_id,
                            )
                        )

                registered = await self._video_repo.get_source(
                    session, self.source, source_id
                )
                if registered is not None:
                    return Err(
                        SubmitError(
                            SubmitErrorKind.VIDEO_ALREADY_REGISTERED,
                            source_id,
                            video_source=VideoSource.model_validate(registered),
                        )
                    )

                pending = await self._request_repo.get_pending(
                    session, self.source, source_id
                )
                if pending is not None:
                    return Err(
                        SubmitError(
                            SubmitErrorKind.ALREADY_REQUESTED,
                            source_id,
                            request=RegistrationRequest.model_validate(pending),
                        )
                    )

                request_id = new_id()
                request = RegistrationRequestDB(
                    id=request_id,
                    source=self.source.value,
                    source_id=source_id,
                    title=data.title,
                    thumbnail_url=data.thumbnail_url,
                    requested_by=actor_id,
                    is_checked=False,
                    taggings=[
                        TaggingDB(
                            id=new_id(),
                            request_id=request_id,
                            tag_id=t.tag_id,
                            note=t.note,
                        )
                        for t in data.taggings
                    ],
                    semitaggings=[
                        SemitaggingDB(
                            id=new_id(),
                            request_id=request_id,
                            name=s.name,
                            note=s.note,
                        )
                        for s in data.semitaggings
                    ],
                    checking=None,
                )
                await self._request_repo.add(session, request)
                await self._append_request_event(
                    session,
                    request,
                    RegistrationRequestEventType.REQUEST,
                    actor_id,
                    title=data.title,
                )
                submitted = RegistrationRequest.model_validate(request)
        except IntegrityError:
            pending = await self._request_repo.get_pending(
                session, self.source, source_id
            )
            if pending is None:
                raise
            logger.info(
                "Lost submit race on %s %s", self.source.value, source_id
            )
            return Err(
                SubmitError(
                    SubmitErrorKind.ALREADY_REQUESTED,
                    source_id,
                    request=RegistrationRequest.model_validate(pending),
                )
            )

        logger.info(
            "Registration of %s %s requested as %s by %s",
            self.source.value,
            source_id,
            submitted.id,
            actor_id,
        )
        return Ok(submitted)

    async def accept(
        self, session: AsyncSession, *, request_id: uuid.UUID, actor_id: str
    ) -> Result[Video, AcceptError]:
        """
        Accept a pending request and register its video.

        Creates the video with its primary title and thumbnail, the source
        record, a video tag per tagging intent, a semitag per semitagging
        intent and the acceptance record, all in one atomic unit.
        Re-accepting is an error, not a no-op.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        request_id : uuid.UUID
            Request to accept.
        actor_id : str
            Moderator accepting the request.

        Returns
        -------
        Result[Video, AcceptError]
            The registered video, or NOT_FOUND / ALREADY_CHECKED with the
            existing disposition.
        """
        try:
            async with atomic(session):
                request = await self._request_repo.get_for_source(
                    session, self.source, request_id, for_update=True
                )
                if request is None:
                    return Err(AcceptError(AcceptErrorKind.NOT_FOUND, request_id))
                if request.is_checked:
                    current, checking = self._checked_state(request)
                    return Err(
                        AcceptError(
                            AcceptErrorKind.ALREADY_CHECKED,
                            request_id,
                            current,
                            checking,
                        )
                    )

                video_id = new_id()
                source_record = VideoSourceDB(
                    id=new_id(),
                    source=self.source.value,
                    source_id=request.source_id,
                    video_id=video_id,
                )
                video = VideoDB(
                    id=video_id,
                    registered_by=actor_id,
                    titles=[
                        VideoTitleDB(
                            id=new_id(),
                            video_id=video_id,
                            title=request.title,
                            is_primary=True,
                        )
                    ],
                    thumbnails=(
                        [
                            VideoThumbnailDB(
                                id=new_id(),
                                video_id=video_id,
                                image_url=request.thumbnail_url,
                                is_primary=True,
                            )
                        ]
                        if request.thumbnail_url
                        else []
                    ),
                    sources=[source_record],
                )
                await self._video_repo.add(session, video)
                await self._event_log.append(
                    session,
                    entity=EntityKind.VIDEO,
                    entity_id=video_id,
                    type=VideoEventType.REGISTER.value,
                    actor_id=actor_id,
                    payload={
                        "request_id": str(request.id),
                        "source": self.source.value,
                        "source_id": request.source_id,
                        "title": request.title,
                    },
                )
                await self._event_log.append(
                    session,
                    entity=EntityKind.VIDEO_SOURCE,
                    entity_id=source_record.id,
                    type=VideoSourceEventType.CREATE.value,
                    actor_id=actor_id,
                    payload={
                        "kind": self._adapter.source_record_kind,
                        "source_id": request.source_id,
                        "url": self._adapter.url_for(request.source_id),
                    },
                )

                for tagging in request.taggings:
                    await self._tagging.ensure_attached(
                        session,
                        video_id=video_id,
                        tag_id=tagging.tag_id,
                        actor_id=actor_id,
                    )
                for semitagging in request.semitaggings:
                    await self._semitags.create_for_video(
                        session,
                        video_id=video_id,
                        name=semitagging.name,
                        actor_id=actor_id,
                    )

                request.is_checked = True
                request.checking = CheckingDB(
                    id=new_id(),
                    request_id=request.id,
                    checked_by=actor_id,
                    accepted=True,
                    video_id=video_id,
                )
                await session.flush()
                await self._append_request_event(
                    session,
                    request,
                    RegistrationRequestEventType.ACCEPT,
                    actor_id,
                    video_id=str(video_id),
                )
                registered = Video.model_validate(video)
        except IntegrityError:
            request = await self._request_repo.get_for_source(
                session, self.source, request_id
            )
            if request is None or not request.is_checked:
                raise
            logger.info("Lost accept race on request %s", request_id)
            current, checking = self._checked_state(request)
            return Err(
                AcceptError(
                    AcceptErrorKind.ALREADY_CHECKED, request_id, current, checking
                )
            )

        logger.info(
            "Accepted request %s: registered video %s (%s %s, %d tags, "
            "%d semitags) by %s",
            request_id,
            registered.id,
            self.source.value,
            request.source_id,
            len(request.taggings),
            len(request.semitaggings),
            actor_id,
        )
        return Ok(registered)

    async def reject(
        self,
        session: AsyncSession,
        *,
        request_id: uuid.UUID,
        note: Optional[str],
        actor_id: str,
    ) -> Result[RequestChecking, RejectRequestError]:
        """
        Reject a pending request with a moderator note.

        Returns
        -------
        Result[RequestChecking, RejectRequestError]
            The rejecting record, or REQUEST_NOT_FOUND /
            REQUEST_ALREADY_CHECKED carrying the existing request and its
            disposition.
        """
        try:
            async with atomic(session):
                request = await self._request_repo.get_for_source(
                    session, self.source, request_id, for_update=True
                )
                if request is None:
                    return Err(
                        RejectRequestError(
                            RejectRequestErrorKind.REQUEST_NOT_FOUND, request_id
                        )
                    )
                if request.is_checked:
                    current, checking = self._checked_state(request)
                    return Err(
                        RejectRequestError(
                            RejectRequestErrorKind.REQUEST_ALREADY_CHECKED,
                            request_id,
                            current,
                            checking,
                        )
                    )

                request.is_checked = True
                request.checking = CheckingDB(
                    id=new_id(),
                    request_id=request.id,
                    checked_by=actor_id,
                    accepted=False,
                    note=note,
                    video_id=None,
                )
                await session.flush()
                await self._append_request_event(
                    session,
                    request,
                    RegistrationRequestEventType.REJECT,
                    actor_id,
                    note=note,
                )
                rejecting = RequestChecking.model_validate(request.checking)
        except IntegrityError:
            request = await self._request_repo.get_for_source(
                session, self.source, request_id
            )
            if request is None or not request.is_checked:
                raise
            logger.info("Lost reject race on request %s", request_id)
            current, checking = self._checked_state(request)
            return Err(
                RejectRequestError(
                    RejectRequestErrorKind.REQUEST_ALREADY_CHECKED,
                    request_id,
                    current,
                    checking,
                )
            )

        logger.info("Rejected request %s by %s", request_id, actor_id)
        return Ok(rejecting)

    # -------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------

    async def get_request(
        self, session: AsyncSession, request_id: uuid.UUID
    ) -> Optional[RegistrationRequest]:
        """Get a request of this source by id."""
        request = await self._request_repo.get_for_source(
            session, self.source, request_id
        )
        return RegistrationRequest.model_validate(request) if request else None

    async def find_requests(
        self,
        session: AsyncSession,
        args: ConnectionArgs,
        *,
        checked: Optional[bool] = None,
    ) -> Connection[RegistrationRequest]:
        """Page through the requests of this source."""
        return await keyset_paginate(
            session,
            self._request_repo.find_stmt(self.source, checked=checked),
            model=RegistrationRequestDB,
            args=args,
            to_node=RegistrationRequest.model_validate,
            max_page_size=self._max_page_size,
        )
