"""
Tag graph service.

Owns tags, their names and the child -> parent edges between them, and
enforces the graph invariants at write time:

- a child has at most one active explicit parent edge;
- one row per (child, parent) pair, so active edges are duplicate-free;
- no self-loops;
- explicit and implicit parents of one registration never overlap.

Category typing is a one-hop lookup over the active edges whose parent is a
category tag; deeper ancestry does not propagate category types.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.config.settings import settings
from madcatalog.db.models import Tag as TagDB
from madcatalog.db.models import TagName as TagNameDB
from madcatalog.db.models import TagParent as TagParentDB
from madcatalog.db.models import Video as VideoDB
from madcatalog.db.models import new_id
from madcatalog.db.transaction import AbortAtomic, atomic
from madcatalog.models.enums import (
    CategoryType,
    EntityKind,
    TagEventType,
    TagParentEventType,
    TagType,
)
from madcatalog.models.events import EventRecord
from madcatalog.models.pagination import Connection, ConnectionArgs
from madcatalog.models.results import Err, Ok, Result
from madcatalog.models.semitag import Semitag
from madcatalog.models.tag import Tag, TagCreate, TagName, TagParentEdge
from madcatalog.models.video import Video
from madcatalog.repositories.event_log_repository import EventLogRepository
from madcatalog.repositories.pagination import keyset_paginate
from madcatalog.repositories.semitag_repository import SemitagRepository
from madcatalog.repositories.tag_parent_repository import TagParentRepository
from madcatalog.repositories.tag_repository import TagRepository
from madcatalog.repositories.video_repository import VideoRepository
from madcatalog.services.semitags import SemitagService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error types
# ---------------------------------------------------------------------------


class RegisterTagErrorKind(str, Enum):
    """Failures of ``register_tag``."""

    NO_NAMES = "NO_NAMES"
    INVALID_PRIMARY_INDEX = "INVALID_PRIMARY_INDEX"
    DUPLICATED_NAME = "DUPLICATED_NAME"
    PARENT_NOT_FOUND = "PARENT_NOT_FOUND"
    DUPLICATED_IMPLICIT_PARENT = "DUPLICATED_IMPLICIT_PARENT"
    EXPLICIT_IMPLICIT_COLLISION = "EXPLICIT_IMPLICIT_COLLISION"
    DUPLICATED_RESOLVE_SEMITAG = "DUPLICATED_RESOLVE_SEMITAG"
    SEMITAG_NOT_FOUND = "SEMITAG_NOT_FOUND"
    SEMITAG_ALREADY_CHECKED = "SEMITAG_ALREADY_CHECKED"


@dataclass(frozen=True)
class RegisterTagError:
    """
    Error of ``register_tag``.

    ``offending_id`` is the first parent or semitag id at fault and ``name``
    the first repeated name; ``semitag`` is set for SEMITAG_ALREADY_CHECKED.
    """

    kind: RegisterTagErrorKind
    offending_id: Optional[uuid.UUID] = None
    name: Optional[str] = None
    semitag: Optional[Semitag] = None


class EdgeErrorKind(str, Enum):
    """Failures of the edge flag operations."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXPLICIT = "ALREADY_EXPLICIT"
    ALREADY_IMPLICIT = "ALREADY_IMPLICIT"
    ALREADY_REMOVED = "ALREADY_REMOVED"


@dataclass(frozen=True)
class EdgeError:
    """Error of an edge operation; ``edge`` is the conflicting edge."""

    kind: EdgeErrorKind
    edge_id: uuid.UUID
    edge: Optional[TagParentEdge] = None


class AddParentErrorKind(str, Enum):
    """Failures of ``add_parent``."""

    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    SELF_LOOP = "SELF_LOOP"
    ALREADY_PARENT = "ALREADY_PARENT"
    EXPLICIT_PARENT_EXISTS = "EXPLICIT_PARENT_EXISTS"


@dataclass(frozen=True)
class AddParentError:
    """Error of ``add_parent``; ``edge`` is the conflicting active edge."""

    kind: AddParentErrorKind
    child_id: uuid.UUID
    parent_id: uuid.UUID
    offending_id: Optional[uuid.UUID] = None
    edge: Optional[TagParentEdge] = None


class TagEditErrorKind(str, Enum):
    """Failures of the name and category operations."""

    TAG_NOT_FOUND = "TAG_NOT_FOUND"
    DUPLICATED_NAME = "DUPLICATED_NAME"
    NAME_NOT_FOUND = "NAME_NOT_FOUND"
    PRIMARY_NAME = "PRIMARY_NAME"
    ALREADY_PRIMARY = "ALREADY_PRIMARY"


@dataclass(frozen=True)
class TagEditError:
    """Error of a name or category operation."""

    kind: TagEditErrorKind
    tag_id: uuid.UUID
    name: Optional[str] = None


def _first_duplicate(values: Sequence[Any]) -> Optional[Any]:
    """Return the first value that occurs a second time, scanning in order."""
    seen: set[Any] = set()
    for value in values:
        if value in seen:
            return value
        seen.add(value)
    return None


class TagGraphService:
    """
    Service for the tag graph.

    Every mutation runs in its own savepoint. Edge mutations lock the child
    tag row first so concurrent writers on one child serialise and the
    explicit-parent invariant is re-checked under the lock.
    """

    def __init__(
        self,
        tag_repo: TagRepository,
        tag_parent_repo: TagParentRepository,
        semitag_repo: SemitagRepository,
        video_repo: VideoRepository,
        semitags: SemitagService,
        event_log: EventLogRepository,
        max_page_size: Optional[int] = None,
    ) -> None:
        self._tag_repo = tag_repo
        self._tag_parent_repo = tag_parent_repo
        self._semitag_repo = semitag_repo
        self._video_repo = video_repo
        self._semitags = semitags
        self._event_log = event_log
        self._max_page_size = max_page_size or settings.max_page_size

    # -------------------------------------------------------------------
    # Shared private utilities
    # -------------------------------------------------------------------

    async def _append_tag_event(
        self,
        session: AsyncSession,
        tag_id: uuid.UUID,
        event_type: TagEventType,
        actor_id: str,
        payload: dict[str, Any],
    ) -> EventRecord:
        return await self._event_log.append(
            session,
            entity=EntityKind.TAG,
            entity_id=tag_id,
            type=event_type.value,
            actor_id=actor_id,
            payload=payload,
        )

    async def _append_edge_event(
        self,
        session: AsyncSession,
        edge: TagParentDB,
        event_type: TagParentEventType,
        actor_id: str,
    ) -> EventRecord:
        return await self._event_log.append(
            session,
            entity=EntityKind.TAG_PARENT,
            entity_id=edge.id,
            type=event_type.value,
            actor_id=actor_id,
            payload={
                "child_id": str(edge.child_id),
                "parent_id": str(edge.parent_id),
                "is_explicit": edge.is_explicit,
            },
        )

    async def _create_edge(
        self,
        session: AsyncSession,
        *,
        child_id: uuid.UUID,
        parent_id: uuid.UUID,
        is_explicit: bool,
        actor_id: str,
    ) -> TagParentDB:
        edge = TagParentDB(
            id=new_id(),
            child_id=child_id,
            parent_id=parent_id,
            is_explicit=is_explicit,
            is_removed=False,
            created_by=actor_id,
        )
        await self._tag_parent_repo.add(session, edge)
        await self._append_edge_event(
            session, edge, TagParentEventType.CREATE, actor_id
        )
        return edge

    async def _lock_edge_and_child(
        self, session: AsyncSession, edge_id: uuid.UUID
    ) -> Optional[TagParentDB]:
        """Lock the child tag of an edge, then the edge itself."""
        edge = await self._tag_parent_repo.get(session, edge_id)
        if edge is None:
            return None
        await self._tag_repo.get_for_update(session, edge.child_id)
        return await self._tag_parent_repo.get_for_update(session, edge_id)

    def _validate_registration(
        self, data: TagCreate
    ) -> Optional[RegisterTagError]:
        """Check the registration input before touching the database."""
        if not data.names:
            return RegisterTagError(RegisterTagErrorKind.NO_NAMES)
        if not 0 <= data.primary_index < len(data.names):
            return RegisterTagError(RegisterTagErrorKind.INVALID_PRIMARY_INDEX)

        duplicated_name = _first_duplicate(data.names)
        if duplicated_name is not None:
            return RegisterTagError(
                RegisterTagErrorKind.DUPLICATED_NAME, name=duplicated_name
            )

        duplicated_parent = _first_duplicate(data.implicit_parent_ids)
        if duplicated_parent is not None:
            return RegisterTagError(
                RegisterTagErrorKind.DUPLICATED_IMPLICIT_PARENT,
                offending_id=duplicated_parent,
            )

        if (
            data.explicit_parent_id is not None
            and data.explicit_parent_id in data.implicit_parent_ids
        ):
            return RegisterTagError(
                RegisterTagErrorKind.EXPLICIT_IMPLICIT_COLLISION,
                offending_id=data.explicit_parent_id,
            )

        duplicated_semitag = _first_duplicate(data.resolve_semitag_ids)
        if duplicated_semitag is not None:
            return RegisterTagError(
                RegisterTagErrorKind.DUPLICATED_RESOLVE_SEMITAG,
                offending_id=duplicated_semitag,
            )
        return None

    # -------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------

    async def register_tag(
        self, session: AsyncSession, *, data: TagCreate, actor_id: str
    ) -> Result[Tag, RegisterTagError]:
        """
        Register a new tag with its names, parents and resolved semitags.

        The tag, its names, one explicit and N implicit parent edges, the
        REGISTER and CREATE events and the resolution of every listed
        semitag commit together or not at all.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        data : TagCreate
            Validated registration input.
        actor_id : str
            Actor registering the tag.

        Returns
        -------
        Result[Tag, RegisterTagError]
            The registered tag or the first failed check.
        """
        invalid = self._validate_registration(data)
        if invalid is not None:
            return Err(invalid)

        parent_ids: List[uuid.UUID] = list(data.implicit_parent_ids)
        if data.explicit_parent_id is not None:
            parent_ids.insert(0, data.explicit_parent_id)

        try:
            async with atomic(session):
                existing = await self._tag_repo.existing_ids(session, parent_ids)
                for parent_id in parent_ids:
                    if parent_id not in existing:
                        return Err(
                            RegisterTagError(
                                RegisterTagErrorKind.PARENT_NOT_FOUND,
                                offending_id=parent_id,
                            )
                        )

                for semitag_id in data.resolve_semitag_ids:
                    semitag = await self._semitag_repo.get_for_update(
                        session, semitag_id
                    )
                    if semitag is None:
                        return Err(
                            RegisterTagError(
                                RegisterTagErrorKind.SEMITAG_NOT_FOUND,
                                offending_id=semitag_id,
                            )
                        )
                    if semitag.is_checked:
                        return Err(
                            RegisterTagError(
                                RegisterTagErrorKind.SEMITAG_ALREADY_CHECKED,
                                offending_id=semitag_id,
                                semitag=Semitag.model_validate(semitag),
                            )
                        )

                tag_id = new_id()
                tag = TagDB(
                    id=tag_id,
                    is_category_tag=data.is_category_tag,
                    category=data.category.value if data.category else None,
                    names=[
                        TagNameDB(
                            id=new_id(),
                            tag_id=tag_id,
                            name=name,
                            is_primary=index == data.primary_index,
                        )
                        for index, name in enumerate(data.names)
                    ],
                )
                await self._tag_repo.add(session, tag)
                await self._append_tag_event(
                    session,
                    tag_id,
                    TagEventType.REGISTER,
                    actor_id,
                    {
                        "names": list(data.names),
                        "primary_name": data.names[data.primary_index],
                        "is_category_tag": data.is_category_tag,
                        "category": data.category.value if data.category else None,
                        "explicit_parent_id": (
                            str(data.explicit_parent_id)
                            if data.explicit_parent_id
                            else None
                        ),
                        "implicit_parent_ids": [
                            str(p) for p in data.implicit_parent_ids
                        ],
                    },
                )

                if data.explicit_parent_id is not None:
                    await self._create_edge(
                        session,
                        child_id=tag_id,
                        parent_id=data.explicit_parent_id,
                        is_explicit=True,
                        actor_id=actor_id,
                    )
                for parent_id in data.implicit_parent_ids:
                    await self._create_edge(
                        session,
                        child_id=tag_id,
                        parent_id=parent_id,
                        is_explicit=False,
                        actor_id=actor_id,
                    )

                for semitag_id in data.resolve_semitag_ids:
                    resolved = await self._semitags.resolve(
                        session, semitag_id=semitag_id, tag_id=tag_id, actor_id=actor_id
                    )
                    if isinstance(resolved, Err):
                        raise AbortAtomic(
                            Err(
                                RegisterTagError(
                                    RegisterTagErrorKind.SEMITAG_ALREADY_CHECKED,
                                    offending_id=semitag_id,
                                    semitag=resolved.error.semitag,
                                )
                            )
                        )

                registered = Tag.model_validate(tag)
        except AbortAtomic as aborted:
            return aborted.result  # type: ignore[no-any-return]

        logger.info(
            "Registered tag %s %r (%d names, %d parents, %d semitags) by %s",
            registered.id,
            registered.primary_name,
            len(data.names),
            len(parent_ids),
            len(data.resolve_semitag_ids),
            actor_id,
        )
        return Ok(registered)

    # -------------------------------------------------------------------
    # Edge operations
    # -------------------------------------------------------------------

    async def explicitize_edge(
        self, session: AsyncSession, *, edge_id: uuid.UUID, actor_id: str
    ) -> Result[TagParentEdge, EdgeError]:
        """
        Promote an implicit edge to the child's explicit parent edge.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        edge_id : uuid.UUID
            Edge to promote.
        actor_id : str
            Actor promoting the edge.

        Returns
        -------
        Result[TagParentEdge, EdgeError]
            The promoted edge; NOT_FOUND if the edge is absent or removed;
            ALREADY_EXPLICIT with the conflicting edge if this edge or
            another edge of the child is already explicit.
        """
        try:
            async with atomic(session):
                edge = await self._lock_edge_and_child(session, edge_id)
                if edge is None or edge.is_removed:
                    return Err(EdgeError(EdgeErrorKind.NOT_FOUND, edge_id))
                if edge.is_explicit:
                    return Err(
                        EdgeError(
                            EdgeErrorKind.ALREADY_EXPLICIT,
                            edge_id,
                            TagParentEdge.model_validate(edge),
                        )
                    )
                current = await self._tag_parent_repo.get_active_explicit(
                    session, edge.child_id
                )
                if current is not None:
                    return Err(
                        EdgeError(
                            EdgeErrorKind.ALREADY_EXPLICIT,
                            edge_id,
                            TagParentEdge.model_validate(current),
                        )
                    )

                edge.is_explicit = True
                await session.flush()
                await self._append_edge_event(
                    session, edge, TagParentEventType.EXPLICITIZE, actor_id
                )
                promoted = TagParentEdge.model_validate(edge)
        except IntegrityError:
            # Another edge of the same child was promoted concurrently
            edge = await self._tag_parent_repo.get(session, edge_id)
            if edge is None:
                raise
            current = await self._tag_parent_repo.get_active_explicit(
                session, edge.child_id
            )
            if current is None:
                raise
            logger.info("Lost explicitize race on child %s", edge.child_id)
            return Err(
                EdgeError(
                    EdgeErrorKind.ALREADY_EXPLICIT,
                    edge_id,
                    TagParentEdge.model_validate(current),
                )
            )

        logger.info(
            "Explicitized edge %s (%s -> %s) by %s",
            edge_id,
            promoted.child_id,
            promoted.parent_id,
            actor_id,
        )
        return Ok(promoted)

    async def implicitize_edge(
        self, session: AsyncSession, *, edge_id: uuid.UUID, actor_id: str
    ) -> Result[TagParentEdge, EdgeError]:
        """Demote an explicit edge to implicit (NOT_FOUND, ALREADY_IMPLICIT)."""
        async with atomic(session):
            edge = await self._lock_edge_and_child(session, edge_id)
            if edge is None or edge.is_removed:
                return Err(EdgeError(EdgeErrorKind.NOT_FOUND, edge_id))
            if not edge.is_explicit:
                return Err(
                    EdgeError(
                        EdgeErrorKind.ALREADY_IMPLICIT,
                        edge_id,
                        TagParentEdge.model_validate(edge),
                    )
                )

            edge.is_explicit = False
            await session.flush()
            await self._append_edge_event(
                session, edge, TagParentEventType.IMPLICITIZE, actor_id
            )
            demoted = TagParentEdge.model_validate(edge)

        logger.info("Implicitized edge %s by %s", edge_id, actor_id)
        return Ok(demoted)

    async def remove_parent(
        self, session: AsyncSession, *, edge_id: uuid.UUID, actor_id: str
    ) -> Result[TagParentEdge, EdgeError]:
        """
        Soft-remove an edge (NOT_FOUND, ALREADY_REMOVED).

        The row stays; it is ignored by every read path and by category
        typing until ``add_parent`` re-attaches the pair.
        """
        async with atomic(session):
            edge = await self._lock_edge_and_child(session, edge_id)
            if edge is None:
                return Err(EdgeError(EdgeErrorKind.NOT_FOUND, edge_id))
            if edge.is_removed:
                return Err(
                    EdgeError(
                        EdgeErrorKind.ALREADY_REMOVED,
                        edge_id,
                        TagParentEdge.model_validate(edge),
                    )
                )

            edge.is_removed = True
            await session.flush()
            await self._append_edge_event(
                session, edge, TagParentEventType.REMOVE, actor_id
            )
            removed = TagParentEdge.model_validate(edge)

        logger.info("Removed edge %s by %s", edge_id, actor_id)
        return Ok(removed)

    async def add_parent(
        self,
        session: AsyncSession,
        *,
        child_id: uuid.UUID,
        parent_id: uuid.UUID,
        is_explicit: bool,
        actor_id: str,
    ) -> Result[TagParentEdge, AddParentError]:
        """
        Link an existing tag to a parent.

        A soft-removed edge for the pair is re-activated (REATTACH) with the
        requested flag instead of inserting a second row.

        Parameters
        ----------
        session : AsyncSession
            Database session (caller manages the outer transaction).
        child_id : uuid.UUID
            Child tag id.
        parent_id : uuid.UUID
            Parent tag id.
        is_explicit : bool
            Whether the new edge is the child's explicit parent.
        actor_id : str
            Actor linking the tags.

        Returns
        -------
        Result[TagParentEdge, AddParentError]
            The active edge, or TAG_NOT_FOUND / SELF_LOOP / ALREADY_PARENT /
            EXPLICIT_PARENT_EXISTS.
        """
        if child_id == parent_id:
            return Err(
                AddParentError(AddParentErrorKind.SELF_LOOP, child_id, parent_id)
            )

        def conflict(kind: AddParentErrorKind, row: TagParentDB) -> Err[AddParentError]:
            return Err(
                AddParentError(
                    kind, child_id, parent_id, edge=TagParentEdge.model_validate(row)
                )
            )

        try:
            async with atomic(session):
                child = await self._tag_repo.get_for_update(session, child_id)
                if child is None:
                    return Err(
                        AddParentError(
                            AddParentErrorKind.TAG_NOT_FOUND,
                            child_id,
                            parent_id,
                            offending_id=child_id,
                        )
                    )
                if not await self._tag_repo.exists(session, parent_id):
                    return Err(
                        AddParentError(
                            AddParentErrorKind.TAG_NOT_FOUND,
                            child_id,
                            parent_id,
                            offending_id=parent_id,
                        )
                    )

                edge = await self._tag_parent_repo.get_pair(
                    session, child_id, parent_id, for_update=True
                )
                if edge is not None and not edge.is_removed:
                    return conflict(AddParentErrorKind.ALREADY_PARENT, edge)
                if is_explicit:
                    explicit = await self._tag_parent_repo.get_active_explicit(
                        session, child_id
                    )
                    if explicit is not None:
                        return conflict(
                            AddParentErrorKind.EXPLICIT_PARENT_EXISTS, explicit
                        )

                if edge is None:
                    edge = await self._create_edge(
                        session,
                        child_id=child_id,
                        parent_id=parent_id,
                        is_explicit=is_explicit,
                        actor_id=actor_id,
                    )
                else:
                    edge.is_removed = False
                    edge.is_explicit = is_explicit
                    await session.flush()
                    await self._append_edge_event(
                        session, edge, TagParentEventType.REATTACH, actor_id
                    )
                linked = TagParentEdge.model_validate(edge)
        except IntegrityError:
            edge = await self._tag_parent_repo.get_pair(session, child_id, parent_id)
            if edge is not None and not edge.is_removed:
                logger.info("Lost add-parent race on %s -> %s", child_id, parent_id)
                return conflict(AddParentErrorKind.ALREADY_PARENT, edge)
            explicit = await self._tag_parent_repo.get_active_explicit(
                session, child_id
            )
            if is_explicit and explicit is not None:
                logger.info("Lost explicit-parent race on child %s", child_id)
                return conflict(AddParentErrorKind.EXPLICIT_PARENT_EXISTS, explicit)
            raise

        logger.info(
            "Linked %s -> %s (%s) by %s",
            child_id,
            parent_id,
            "explicit" if is_explicit else "implicit",
            actor_id,
        )
        return Ok(linked)

    # -------------------------------------------------------------------
    # Name and category operations
    # -------------------------------------------------------------------

    async def add_name(
        self,
        session: AsyncSession,
        *,
        tag_id: uuid.UUID,
        name: str,
        actor_id: str,
    ) -> Result[Tag, TagEditError]:
        """Add a secondary name to a tag (TAG_NOT_FOUND, DUPLICATED_NAME)."""
        name = name.strip()
        async with atomic(session):
            tag = await self._tag_repo.get_for_update(session, tag_id)
            if tag is None:
                return Err(TagEditError(TagEditErrorKind.TAG_NOT_FOUND, tag_id))
            if any(existing.name == name for existing in tag.names):
                return Err(
                    TagEditError(TagEditErrorKind.DUPLICATED_NAME, tag_id, name)
                )

            tag.names.append(
                TagNameDB(id=new_id(), tag_id=tag_id, name=name, is_primary=False)
            )
            await session.flush()
            await self._append_tag_event(
                session, tag_id, TagEventType.ADD_NAME, actor_id, {"name": name}
            )
            updated = Tag.model_validate(tag)

        logger.info("Added name %r to tag %s by %s", name, tag_id, actor_id)
        return Ok(updated)

    async def remove_name(
        self,
        session: AsyncSession,
        *,
        tag_id: uuid.UUID,
        name: str,
        actor_id: str,
    ) -> Result[Tag, TagEditError]:
        """
        Remove a secondary name of a tag.

        The primary name cannot be removed (PRIMARY_NAME); change the
        primary name first.
        """
        async with atomic(session):
            tag = await self._tag_repo.get_for_update(session, tag_id)
            if tag is None:
                return Err(TagEditError(TagEditErrorKind.TAG_NOT_FOUND, tag_id))
            target = next((n for n in tag.names if n.name == name), None)
            if target is None:
                return Err(
                    TagEditError(TagEditErrorKind.NAME_NOT_FOUND, tag_id, name)
                )
            if target.is_primary:
                return Err(TagEditError(TagEditErrorKind.PRIMARY_NAME, tag_id, name))

            tag.names.remove(target)
            await session.flush()
            await self._append_tag_event(
                session, tag_id, TagEventType.REMOVE_NAME, actor_id, {"name": name}
            )
            updated = Tag.model_validate(tag)

        logger.info("Removed name %r from tag %s by %s", name, tag_id, actor_id)
        return Ok(updated)

    async def change_primary_name(
        self,
        session: AsyncSession,
        *,
        tag_id: uuid.UUID,
        name: str,
        actor_id: str,
    ) -> Result[Tag, TagEditError]:
        """Make an existing name the primary one (NAME_NOT_FOUND, ALREADY_PRIMARY)."""
        async with atomic(session):
            tag = await self._tag_repo.get_for_update(session, tag_id)
            if tag is None:
                return Err(TagEditError(TagEditErrorKind.TAG_NOT_FOUND, tag_id))
            target = next((n for n in tag.names if n.name == name), None)
            if target is None:
                return Err(
                    TagEditError(TagEditErrorKind.NAME_NOT_FOUND, tag_id, name)
                )
            if target.is_primary:
                return Err(
                    TagEditError(TagEditErrorKind.ALREADY_PRIMARY, tag_id, name)
                )

            previous = next(n for n in tag.names if n.is_primary)
            # Two flushes keep the one-primary-name index satisfied
            previous.is_primary = False
            await session.flush()
            target.is_primary = True
            await session.flush()
            await self._append_tag_event(
                session,
                tag_id,
                TagEventType.CHANGE_PRIMARY_NAME,
                actor_id,
                {"from": previous.name, "to": name},
            )
            updated = Tag.model_validate(tag)

        logger.info(
            "Primary name of tag %s changed %r -> %r by %s",
            tag_id,
            previous.name,
            name,
            actor_id,
        )
        return Ok(updated)

    async def change_category(
        self,
        session: AsyncSession,
        *,
        tag_id: uuid.UUID,
        is_category_tag: bool,
        category: Optional[CategoryType],
        actor_id: str,
    ) -> Result[Tag, TagEditError]:
        """Change whether a tag is a category tag and which category it defines."""
        async with atomic(session):
            tag = await self._tag_repo.get_for_update(session, tag_id)
            if tag is None:
                return Err(TagEditError(TagEditErrorKind.TAG_NOT_FOUND, tag_id))

            before = {"is_category_tag": tag.is_category_tag, "category": tag.category}
            tag.is_category_tag = is_category_tag
            tag.category = category.value if category else None
            await session.flush()
            await self._append_tag_event(
                session,
                tag_id,
                TagEventType.CHANGE_CATEGORY,
                actor_id,
                {
                    "from": before,
                    "to": {"is_category_tag": is_category_tag, "category": tag.category},
                },
            )
            updated = Tag.model_validate(tag)

        logger.info(
            "Category of tag %s set to %s (category tag: %s) by %s",
            tag_id,
            tag.category,
            is_category_tag,
            actor_id,
        )
        return Ok(updated)

    # -------------------------------------------------------------------
    # Read paths
    # -------------------------------------------------------------------

    async def get_tag(self, session: AsyncSession, tag_id: uuid.UUID) -> Optional[Tag]:
        """Get a tag with its names."""
        tag = await self._tag_repo.get(session, tag_id)
        return Tag.model_validate(tag) if tag is not None else None

    async def get_edge(
        self, session: AsyncSession, edge_id: uuid.UUID
    ) -> Optional[TagParentEdge]:
        """Get an edge by id, removed or not."""
        edge = await self._tag_parent_repo.get(session, edge_id)
        return TagParentEdge.model_validate(edge) if edge is not None else None

    async def explicit_parent_of(
        self, session: AsyncSession, tag_id: uuid.UUID
    ) -> Optional[TagParentEdge]:
        """Get the active explicit parent edge of a tag."""
        edge = await self._tag_parent_repo.get_active_explicit(session, tag_id)
        return TagParentEdge.model_validate(edge) if edge is not None else None

    async def names_of(
        self,
        session: AsyncSession,
        tag_id: uuid.UUID,
        *,
        primary: Optional[bool] = None,
    ) -> List[TagName]:
        """Get the names of a tag, optionally only primary or secondary ones."""
        rows = await self._tag_repo.names_of(session, tag_id, primary=primary)
        return [TagName.model_validate(row) for row in rows]

    async def children_of(
        self, session: AsyncSession, tag_id: uuid.UUID, args: ConnectionArgs
    ) -> Connection[TagParentEdge]:
        """Page through the active edges pointing at ``tag_id``."""
        return await keyset_paginate(
            session,
            self._tag_parent_repo.children_stmt(tag_id),
            model=TagParentDB,
            args=args,
            to_node=TagParentEdge.model_validate,
            max_page_size=self._max_page_size,
        )

    async def parents_of(
        self,
        session: AsyncSession,
        tag_id: uuid.UUID,
        args: ConnectionArgs,
        *,
        category_only: bool = False,
    ) -> Connection[TagParentEdge]:
        """Page through the active edges leaving ``tag_id``."""
        return await keyset_paginate(
            session,
            self._tag_parent_repo.parents_stmt(tag_id, category_only=category_only),
            model=TagParentDB,
            args=args,
            to_node=TagParentEdge.model_validate,
            max_page_size=self._max_page_size,
        )

    async def resolve_category_type(
        self, session: AsyncSession, tag_id: uuid.UUID
    ) -> Optional[TagType]:
        """
        Resolve the type of a tag.

        A category tag has its own category as type. Any other tag looks at
        the categories of its active category-tag parents, one hop only:
        none gives UNKNOWN, one distinct category gives that category, more
        than one gives SUBTLE.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        tag_id : uuid.UUID
            Tag to classify.

        Returns
        -------
        Optional[TagType]
            The resolved type, or None if the tag does not exist.
        """
        tag = await self._tag_repo.get(session, tag_id)
        if tag is None:
            return None
        if tag.is_category_tag:
            return TagType.from_category(tag.category)

        categories = {
            category
            for category in await self._tag_parent_repo.active_parent_categories(
                session, tag_id
            )
            if category is not None
        }
        if not categories:
            return TagType.UNKNOWN
        if len(categories) == 1:
            return TagType.from_category(categories.pop())
        return TagType.SUBTLE

    async def tag_history(
        self,
        session: AsyncSession,
        tag_id: uuid.UUID,
        *,
        limit: int = 50,
        skip: int = 0,
    ) -> List[EventRecord]:
        """
        Get the tag's own events and those of its parent edges, newest first.
        """
        tag_events = await self._event_log.list_for(session, EntityKind.TAG, tag_id)
        edge_ids = await self._tag_parent_repo.edge_ids_of_child(session, tag_id)
        edge_events = await self._event_log.list_for_many(
            session, EntityKind.TAG_PARENT, edge_ids
        )
        merged = sorted(
            tag_events + edge_events,
            key=lambda record: (record.created_at, record.entity.value, record.event_id),
            reverse=True,
        )
        return merged[skip : skip + limit]

    async def tagged_videos(
        self, session: AsyncSession, tag_id: uuid.UUID, args: ConnectionArgs
    ) -> Connection[Video]:
        """Page through the videos actively tagged with ``tag_id``."""
        return await keyset_paginate(
            session,
            self._video_repo.tagged_with_stmt(tag_id),
            model=VideoDB,
            args=args,
            to_node=Video.model_validate,
            max_page_size=self._max_page_size,
        )

    async def find_tags(
        self,
        session: AsyncSession,
        args: ConnectionArgs,
        *,
        query: Optional[str] = None,
    ) -> Connection[Tag]:
        """Page through tags, optionally those with a name starting with ``query``."""
        return await keyset_paginate(
            session,
            self._tag_repo.find_stmt(query),
            model=TagDB,
            args=args,
            to_node=Tag.model_validate,
            max_page_size=self._max_page_size,
        )

    async def count_tags(self, session: AsyncSession) -> int:
        """Count every registered tag."""
        return await self._tag_repo.count(session)
