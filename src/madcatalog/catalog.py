"""
Catalogue operation surface.

``Catalog`` is the single entry point an outer layer (CLI, API) talks to.
Each coroutine is one request/response pair: it checks that an actor is
given for mutations, runs the service call in its own transaction through
``DatabaseManager.run_in_transaction`` and returns the service's result
value unchanged. Committed events reach the notification sink after the
transaction commits.

Usage
-----
    >>> from madcatalog.container import container
    >>> catalog = container.catalog
    >>> result = await catalog.register_tag(
    ...     TagCreate(names=["Music"], is_category_tag=True), actor_id="mod-1"
    ... )
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.config.database import DatabaseManager
from madcatalog.exceptions import ActorRequiredError
from madcatalog.models.enums import CategoryType, SourceKind, TagType
from madcatalog.models.events import EventRecord
from madcatalog.models.pagination import Connection, ConnectionArgs
from madcatalog.models.registration import (
    RegistrationRequest,
    RegistrationRequestCreate,
    RequestChecking,
)
from madcatalog.models.results import Result
from madcatalog.models.semitag import Semitag, SemitagSuggestion
from madcatalog.models.tag import Tag, TagCreate, TagName, TagParentEdge
from madcatalog.models.video import Video, VideoTag
from madcatalog.repositories.video_repository import VideoRepository
from madcatalog.services.registration.workflow import (
    AcceptError,
    RegistrationWorkflow,
    RejectRequestError,
    SubmitError,
)
from madcatalog.services.semitags import (
    RejectSemitagError,
    ResolveSemitagError,
    SemitagService,
    SuggestError,
)
from madcatalog.services.tag_graph import (
    AddParentError,
    EdgeError,
    RegisterTagError,
    TagEditError,
    TagGraphService,
)
from madcatalog.services.tagging import AttachError, DetachError, TaggingService
from madcatalog.services.timeline import (
    TimelineEntry,
    TimelineKind,
    TimelinePage,
    TimelineProjector,
)

logger = logging.getLogger(__name__)


def require_actor(actor_id: Optional[str], operation: str) -> str:
    """
    Return the actor id, refusing empty ones.

    Raises
    ------
    ActorRequiredError
        If ``actor_id`` is None or blank.
    """
    if actor_id is None or not actor_id.strip():
        logger.warning("Refused %s: no actor id given", operation)
        raise ActorRequiredError(operation)
    return actor_id


class Catalog:
    """Transactional facade over the catalogue services."""

    def __init__(
        self,
        db: DatabaseManager,
        *,
        tag_graph: TagGraphService,
        tagging: TaggingService,
        semitags: SemitagService,
        workflows: Dict[SourceKind, RegistrationWorkflow],
        timeline: TimelineProjector,
        video_repo: VideoRepository,
    ) -> None:
        self._db = db
        self._tag_graph = tag_graph
        self._tagging = tagging
        self._semitags = semitags
        self._workflows = workflows
        self._timeline = timeline
        self._video_repo = video_repo

    def workflow(self, source: SourceKind) -> RegistrationWorkflow:
        """Get the registration workflow of an external source."""
        try:
            return self._workflows[source]
        except KeyError:
            raise ValueError(f"No registration workflow for source {source}") from None

    # -------------------------------------------------------------------------
    # Tag graph
    # -------------------------------------------------------------------------

    async def register_tag(
        self, data: TagCreate, *, actor_id: str
    ) -> Result[Tag, RegisterTagError]:
        """
        Register a tag with its names, parent edges and resolved semitags.

        Parameters
        ----------
        data : TagCreate
            Names, primary index, parents, category and semitags to resolve.
        actor_id : str
            Acting user.

        Returns
        -------
        Result[Tag, RegisterTagError]
            The new tag, or the first failed precondition.

        Raises
        ------
        ActorRequiredError
            If ``actor_id`` is empty.
        """
        actor_id = require_actor(actor_id, "register_tag")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.register_tag(
                session, data=data, actor_id=actor_id
            )
        )

    async def explicitize_tag_parent(
        self, edge_id: uuid.UUID, *, actor_id: str
    ) -> Result[TagParentEdge, EdgeError]:
        """Promote an implicit parent edge to the child's explicit parent."""
        actor_id = require_actor(actor_id, "explicitize_tag_parent")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.explicitize_edge(
                session, edge_id=edge_id, actor_id=actor_id
            )
        )

    async def implicitize_tag_parent(
        self, edge_id: uuid.UUID, *, actor_id: str
    ) -> Result[TagParentEdge, EdgeError]:
        """Demote an explicit parent edge to implicit."""
        actor_id = require_actor(actor_id, "implicitize_tag_parent")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.implicitize_edge(
                session, edge_id=edge_id, actor_id=actor_id
            )
        )

    async def add_tag_parent(
        self,
        *,
        child_id: uuid.UUID,
        parent_id: uuid.UUID,
        is_explicit: bool = False,
        actor_id: str,
    ) -> Result[TagParentEdge, AddParentError]:
        """Link a child tag to a parent tag."""
        actor_id = require_actor(actor_id, "add_tag_parent")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.add_parent(
                session,
                child_id=child_id,
                parent_id=parent_id,
                is_explicit=is_explicit,
                actor_id=actor_id,
            )
        )

    async def remove_tag_parent(
        self, edge_id: uuid.UUID, *, actor_id: str
    ) -> Result[TagParentEdge, EdgeError]:
        """Soft-remove a parent edge."""
        actor_id = require_actor(actor_id, "remove_tag_parent")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.remove_parent(
                session, edge_id=edge_id, actor_id=actor_id
            )
        )

    async def add_tag_name(
        self, tag_id: uuid.UUID, name: str, *, actor_id: str
    ) -> Result[Tag, TagEditError]:
        actor_id = require_actor(actor_id, "add_tag_name")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.add_name(
                session, tag_id=tag_id, name=name, actor_id=actor_id
            )
        )

    async def remove_tag_name(
        self, tag_id: uuid.UUID, name: str, *, actor_id: str
    ) -> Result[Tag, TagEditError]:
        actor_id = require_actor(actor_id, "remove_tag_name")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.remove_name(
                session, tag_id=tag_id, name=name, actor_id=actor_id
            )
        )

    async def change_tag_primary_name(
        self, tag_id: uuid.UUID, name: str, *, actor_id: str
    ) -> Result[Tag, TagEditError]:
        actor_id = require_actor(actor_id, "change_tag_primary_name")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.change_primary_name(
                session, tag_id=tag_id, name=name, actor_id=actor_id
            )
        )

    async def change_tag_category(
        self,
        tag_id: uuid.UUID,
        *,
        is_category_tag: bool,
        category: Optional[CategoryType],
        actor_id: str,
    ) -> Result[Tag, TagEditError]:
        actor_id = require_actor(actor_id, "change_tag_category")
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.change_category(
                session,
                tag_id=tag_id,
                is_category_tag=is_category_tag,
                category=category,
                actor_id=actor_id,
            )
        )

    # -------------------------------------------------------------------------
    # Video tagging and semitags
    # -------------------------------------------------------------------------

    async def add_tag_to_video(
        self, *, video_id: uuid.UUID, tag_id: uuid.UUID, actor_id: str
    ) -> Result[VideoTag, AttachError]:
        """Attach a tag to a video, re-activating a removed association."""
        actor_id = require_actor(actor_id, "add_tag_to_video")
        return await self._db.run_in_transaction(
            lambda session: self._tagging.attach(
                session, video_id=video_id, tag_id=tag_id, actor_id=actor_id
            )
        )

    async def remove_tag_from_video(
        self, *, video_id: uuid.UUID, tag_id: uuid.UUID, actor_id: str
    ) -> Result[VideoTag, DetachError]:
        """Detach an active tag from a video."""
        actor_id = require_actor(actor_id, "remove_tag_from_video")
        return await self._db.run_in_transaction(
            lambda session: self._tagging.detach(
                session, video_id=video_id, tag_id=tag_id, actor_id=actor_id
            )
        )

    async def add_semitag_to_video(
        self, *, video_id: uuid.UUID, name: str, actor_id: str
    ) -> Result[Semitag, SuggestError]:
        """Suggest an unmoderated tag name for a video."""
        actor_id = require_actor(actor_id, "add_semitag_to_video")
        return await self._db.run_in_transaction(
            lambda session: self._semitags.suggest(
                session, video_id=video_id, name=name, actor_id=actor_id
            )
        )

    async def resolve_semitag(
        self, semitag_id: uuid.UUID, tag_id: uuid.UUID, *, actor_id: str
    ) -> Result[Semitag, ResolveSemitagError]:
        """Resolve a semitag into a tag and attach that tag to its video."""
        actor_id = require_actor(actor_id, "resolve_semitag")
        return await self._db.run_in_transaction(
            lambda session: self._semitags.resolve(
                session, semitag_id=semitag_id, tag_id=tag_id, actor_id=actor_id
            )
        )

    async def reject_semitag(
        self, semitag_id: uuid.UUID, *, actor_id: str
    ) -> Result[Semitag, RejectSemitagError]:
        """Reject a semitag."""
        actor_id = require_actor(actor_id, "reject_semitag")
        return await self._db.run_in_transaction(
            lambda session: self._semitags.reject(
                session, semitag_id=semitag_id, actor_id=actor_id
            )
        )

    # -------------------------------------------------------------------------
    # Registration, one family per external source
    # -------------------------------------------------------------------------

    async def request_registration(
        self, data: RegistrationRequestCreate, *, actor_id: str
    ) -> Result[RegistrationRequest, SubmitError]:
        """
        Submit a video of ``data.source`` for moderation.

        Raises
        ------
        ActorRequiredError
            If ``actor_id`` is empty.
        """
        actor_id = require_actor(actor_id, "request_registration")
        workflow = self.workflow(data.source)
        return await self._db.run_in_transaction(
            lambda session: workflow.submit(session, data=data, actor_id=actor_id)
        )

    async def accept_registration(
        self, source: SourceKind, request_id: uuid.UUID, *, actor_id: str
    ) -> Result[Video, AcceptError]:
        """Accept a pending request, registering its video."""
        actor_id = require_actor(actor_id, "accept_registration")
        workflow = self.workflow(source)
        return await self._db.run_in_transaction(
            lambda session: workflow.accept(
                session, request_id=request_id, actor_id=actor_id
            )
        )

    async def reject_registration(
        self,
        source: SourceKind,
        request_id: uuid.UUID,
        *,
        note: Optional[str] = None,
        actor_id: str,
    ) -> Result[RequestChecking, RejectRequestError]:
        """Reject a pending request with a moderator note."""
        actor_id = require_actor(actor_id, "reject_registration")
        workflow = self.workflow(source)
        return await self._db.run_in_transaction(
            lambda session: workflow.reject(
                session, request_id=request_id, note=note, actor_id=actor_id
            )
        )

    # -------------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------------

    async def get_tag(self, tag_id: uuid.UUID) -> Optional[Tag]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.get_tag(session, tag_id)
        )

    async def get_tag_parent(self, edge_id: uuid.UUID) -> Optional[TagParentEdge]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.get_edge(session, edge_id)
        )

    async def explicit_parent_of(self, tag_id: uuid.UUID) -> Optional[TagParentEdge]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.explicit_parent_of(session, tag_id)
        )

    async def tag_names(
        self, tag_id: uuid.UUID, *, primary: Optional[bool] = None
    ) -> List[TagName]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.names_of(session, tag_id, primary=primary)
        )

    async def find_tags(
        self, args: ConnectionArgs, *, query: Optional[str] = None
    ) -> Connection[Tag]:
        """Page through tags, optionally filtered by a name prefix."""
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.find_tags(session, args, query=query)
        )

    async def count_tags(self) -> int:
        return await self._db.run_in_transaction(self._tag_graph.count_tags)

    async def children_of(
        self, tag_id: uuid.UUID, args: ConnectionArgs
    ) -> Connection[TagParentEdge]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.children_of(session, tag_id, args)
        )

    async def parents_of(
        self, tag_id: uuid.UUID, args: ConnectionArgs, *, category_only: bool = False
    ) -> Connection[TagParentEdge]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.parents_of(
                session, tag_id, args, category_only=category_only
            )
        )

    async def resolve_category_type(self, tag_id: uuid.UUID) -> Optional[TagType]:
        """Classify a tag by its own category or its category-tag parents."""
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.resolve_category_type(session, tag_id)
        )

    async def tag_history(
        self, tag_id: uuid.UUID, *, limit: int = 50, skip: int = 0
    ) -> List[EventRecord]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.tag_history(
                session, tag_id, limit=limit, skip=skip
            )
        )

    async def tagged_videos(
        self, tag_id: uuid.UUID, args: ConnectionArgs
    ) -> Connection[Video]:
        return await self._db.run_in_transaction(
            lambda session: self._tag_graph.tagged_videos(session, tag_id, args)
        )

    async def get_video(self, video_id: uuid.UUID) -> Optional[Video]:
        """Get a registered video with its titles, thumbnails and sources."""

        async def _get(session: AsyncSession) -> Optional[Video]:
            video = await self._video_repo.get(session, video_id)
            return Video.model_validate(video) if video is not None else None

        return await self._db.run_in_transaction(_get)

    async def video_tags(
        self, video_id: uuid.UUID, *, include_removed: bool = False
    ) -> List[VideoTag]:
        return await self._db.run_in_transaction(
            lambda session: self._tagging.tags_of(
                session, video_id, include_removed=include_removed
            )
        )

    async def video_tag_history(
        self, *, video_id: uuid.UUID, tag_id: uuid.UUID
    ) -> List[EventRecord]:
        return await self._db.run_in_transaction(
            lambda session: self._tagging.video_tag_history(
                session, video_id=video_id, tag_id=tag_id
            )
        )

    async def can_tag_to(self, *, tag_id: uuid.UUID, video_id: uuid.UUID) -> bool:
        return await self._db.run_in_transaction(
            lambda session: self._tagging.can_tag_to(
                session, tag_id=tag_id, video_id=video_id
            )
        )

    async def get_semitag(self, semitag_id: uuid.UUID) -> Optional[Semitag]:
        return await self._db.run_in_transaction(
            lambda session: self._semitags.get(session, semitag_id)
        )

    async def semitags_of(
        self, video_id: uuid.UUID, *, checked: Optional[bool] = None
    ) -> List[Semitag]:
        return await self._db.run_in_transaction(
            lambda session: self._semitags.semitags_of(
                session, video_id, checked=checked
            )
        )

    async def can_resolve_to(
        self, *, semitag_id: uuid.UUID, tag_id: uuid.UUID
    ) -> bool:
        return await self._db.run_in_transaction(
            lambda session: self._semitags.can_resolve_to(
                session, semitag_id=semitag_id, tag_id=tag_id
            )
        )

    async def suggest_tags(
        self, semitag_id: uuid.UUID, *, limit: int = 10
    ) -> List[SemitagSuggestion]:
        """Tags whose names start with the semitag's name."""
        return await self._db.run_in_transaction(
            lambda session: self._semitags.suggest_tags(
                session, semitag_id=semitag_id, limit=limit
            )
        )

    async def get_registration_request(
        self, source: SourceKind, request_id: uuid.UUID
    ) -> Optional[RegistrationRequest]:
        workflow = self.workflow(source)
        return await self._db.run_in_transaction(
            lambda session: workflow.get_request(session, request_id)
        )

    async def find_registration_requests(
        self,
        source: SourceKind,
        args: ConnectionArgs,
        *,
        checked: Optional[bool] = None,
    ) -> Connection[RegistrationRequest]:
        workflow = self.workflow(source)
        return await self._db.run_in_transaction(
            lambda session: workflow.find_requests(session, args, checked=checked)
        )

    async def timeline(
        self,
        *,
        limit: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        kinds: Optional[Sequence[TimelineKind]] = None,
        after: Optional[str] = None,
    ) -> TimelinePage:
        """Read one page of the timeline feed, newest first."""
        return await self._db.run_in_transaction(
            lambda session: self._timeline.page(
                session,
                limit=limit,
                since=since,
                until=until,
                kinds=kinds,
                after=after,
            )
        )

    async def iter_timeline(
        self,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        kinds: Optional[Sequence[TimelineKind]] = None,
        after: Optional[str] = None,
    ) -> AsyncIterator[TimelineEntry]:
        """
        Iterate the whole timeline window lazily.

        A read-only session stays open until iteration ends or the iterator
        is closed.
        """
        session_factory = self._db.get_session_factory()
        async with session_factory() as session:
            feed = self._timeline.entries(
                session, since=since, until=until, kinds=kinds, after=after
            )
            try:
                async for entry in feed:
                    yield entry
            finally:
                await feed.aclose()
