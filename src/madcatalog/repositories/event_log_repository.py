"""
Event log repository.

Append-only access to the per-entity event tables. Rows are inserted in the
same transaction as the state change they describe and are never updated or
deleted, so no update operation exists.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.db.models import (
    EventMixin,
    RegistrationRequestEvent,
    SemitagEvent,
    TagEvent,
    TagParentEvent,
    VideoEvent,
    VideoSourceEvent,
    VideoTagEvent,
)
from madcatalog.db.transaction import stage_event
from madcatalog.exceptions import ActorRequiredError
from madcatalog.models.enums import EntityKind
from madcatalog.models.events import EventRecord

# Event table and owning-entity column per entity kind
EVENT_TABLES: dict[EntityKind, tuple[type[EventMixin], str]] = {
    EntityKind.TAG: (TagEvent, "tag_id"),
    EntityKind.TAG_PARENT: (TagParentEvent, "tag_parent_id"),
    EntityKind.VIDEO: (VideoEvent, "video_id"),
    EntityKind.VIDEO_SOURCE: (VideoSourceEvent, "video_source_id"),
    EntityKind.VIDEO_TAG: (VideoTagEvent, "video_tag_id"),
    EntityKind.SEMITAG: (SemitagEvent, "semitag_id"),
    EntityKind.REGISTRATION_REQUEST: (RegistrationRequestEvent, "request_id"),
}


def to_record(entity: EntityKind, row: Any) -> EventRecord:
    """Convert one event row into an ``EventRecord``."""
    _, owner_column = EVENT_TABLES[entity]
    return EventRecord(
        entity=entity,
        entity_id=getattr(row, owner_column),
        event_id=row.id,
        type=row.type,
        actor_id=row.actor_id,
        created_at=row.created_at,
        payload=dict(row.payload or {}),
    )


class EventLogRepository:
    """Repository appending to and reading from the event tables."""

    async def append(
        self,
        session: AsyncSession,
        *,
        entity: EntityKind,
        entity_id: uuid.UUID,
        type: str,
        actor_id: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> EventRecord:
        """
        Append one event and stage it for post-commit delivery.

        Parameters
        ----------
        session : AsyncSession
            Database session, inside the caller's atomic block.
        entity : EntityKind
            Kind of the entity whose state changed.
        entity_id : uuid.UUID
            Id of that entity.
        type : str
            Transition kind (an event type enum value).
        actor_id : str
            Actor causing the transition.
        payload : Optional[dict[str, Any]]
            JSON-serialisable details of the transition.

        Returns
        -------
        EventRecord
            The appended event, with its assigned id and timestamp.

        Raises
        ------
        ActorRequiredError
            If ``actor_id`` is empty.
        """
        if not actor_id:
            raise ActorRequiredError(f"{entity.value}.{type}")

        model, owner_column = EVENT_TABLES[entity]
        row = model(actor_id=actor_id, type=type, payload=payload or {})
        setattr(row, owner_column, entity_id)
        session.add(row)
        await session.flush()

        record = to_record(entity, row)
        stage_event(session, record)
        return record

    async def list_for(
        self,
        session: AsyncSession,
        entity: EntityKind,
        entity_id: uuid.UUID,
        *,
        newest_first: bool = False,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> list[EventRecord]:
        """
        Get the events of one entity in append order.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        entity : EntityKind
            Kind of the entity.
        entity_id : uuid.UUID
            Id of the entity.
        newest_first : bool, optional
            Reverse the order (default False).
        skip : int, optional
            Number of events to skip (default 0).
        limit : Optional[int], optional
            Maximum number of events (default unlimited).

        Returns
        -------
        list[EventRecord]
            Events ordered by id.
        """
        model, owner_column = EVENT_TABLES[entity]
        order = model.id.desc() if newest_first else model.id.asc()
        stmt = (
            select(model)
            .where(getattr(model, owner_column) == entity_id)
            .order_by(order)
            .offset(skip)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return [to_record(entity, row) for row in result.scalars().all()]

    async def list_for_many(
        self,
        session: AsyncSession,
        entity: EntityKind,
        entity_ids: Sequence[uuid.UUID],
    ) -> list[EventRecord]:
        """Get the events of several entities of one kind, oldest first."""
        if not entity_ids:
            return []
        model, owner_column = EVENT_TABLES[entity]
        result = await session.execute(
            select(model)
            .where(getattr(model, owner_column).in_(list(entity_ids)))
            .order_by(model.created_at.asc(), model.id.asc())
        )
        return [to_record(entity, row) for row in result.scalars().all()]

    async def list_before(
        self,
        session: AsyncSession,
        entity: EntityKind,
        *,
        types: Sequence[str],
        until: Optional[datetime] = None,
        until_id: Optional[int] = None,
        inclusive: bool = True,
        since: Optional[datetime] = None,
        limit: int = 50,
    ) -> list[EventRecord]:
        """
        Get events of the given types, newest first, older than a position.

        Parameters
        ----------
        session : AsyncSession
            Database session.
        entity : EntityKind
            Kind of entity whose event table is read.
        types : Sequence[str]
            Event types to include.
        until : Optional[datetime]
            Upper bound on ``created_at``.
        until_id : Optional[int]
            With ``until``: events at exactly ``until`` must have a smaller id.
        inclusive : bool
            Without ``until_id``: whether events at exactly ``until`` count.
        since : Optional[datetime]
            Inclusive lower bound on ``created_at``.
        limit : int
            Batch size.

        Returns
        -------
        list[EventRecord]
            Events ordered by ``(created_at, id)`` descending.
        """
        model, _ = EVENT_TABLES[entity]
        stmt = select(model).where(model.type.in_(list(types)))
        if until is not None:
            if until_id is not None:
                stmt = stmt.where(
                    or_(
                        model.created_at < until,
                        and_(model.created_at == until, model.id < until_id),
                    )
                )
            elif inclusive:
                stmt = stmt.where(model.created_at <= until)
            else:
                stmt = stmt.where(model.created_at < until)
        if since is not None:
            stmt = stmt.where(model.created_at >= since)

        result = await session.execute(
            stmt.order_by(model.created_at.desc(), model.id.desc()).limit(limit)
        )
        return [to_record(entity, row) for row in result.scalars().all()]
