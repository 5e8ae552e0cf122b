"""
Database models for madcatalog.

This module contains SQLAlchemy models for the tag graph, videos and their
tag associations, semitags, registration requests, and the append-only
event tables written alongside every state change.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator
from uuid_utils import uuid7

# SQLite only auto-increments INTEGER PRIMARY KEY columns
EventIdType = BigInteger().with_variant(Integer, "sqlite")
JSONType = JSON().with_variant(JSONB, "postgresql")


class UTCDateTime(TypeDecorator[datetime.datetime]):
    """Timezone-aware timestamp; naive values read back (SQLite) are UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_result_value(
        self, value: Optional[datetime.datetime], dialect: Any
    ) -> Optional[datetime.datetime]:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        return value


def new_id() -> uuid.UUID:
    """Return a UUIDv7 expressed as a stdlib ``uuid.UUID`` instance."""
    return uuid.UUID(bytes=uuid7().bytes)


def utcnow() -> datetime.datetime:
    """Return the current time in UTC with microsecond resolution."""
    return datetime.datetime.now(datetime.timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class EventMixin:
    """
    Columns shared by every append-only event table.

    Event rows are inserted in the same transaction as the state change they
    describe and are never updated or deleted afterwards. The integer id is
    monotonic and gives the total order of events per entity.
    """

    id: Mapped[int] = mapped_column(EventIdType, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONType, default=dict, nullable=False
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False, index=True
    )


# ---------------------------------------------------------------------------
# Tag graph
# ---------------------------------------------------------------------------


class Tag(Base):
    """Tag node of the classification graph."""

    __tablename__ = "tags"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)

    # Classification
    is_category_tag: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    category: Mapped[Optional[str]] = mapped_column(String(20))  # CategoryType value

    # Timestamps
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    # Relationships
    names: Mapped[list["TagName"]] = relationship(
        "TagName",
        back_populates="tag",
        order_by="TagName.created_at",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TagName(Base):
    """Name of a tag; exactly one name per tag is primary."""

    __tablename__ = "tag_names"
    __table_args__ = (
        UniqueConstraint("tag_id", "name", name="uq_tag_names_tag_name"),
        Index(
            "uq_tag_names_primary",
            "tag_id",
            unique=True,
            postgresql_where=text("is_primary"),
            sqlite_where=text("is_primary"),
        ),
        Index("ix_tag_names_name", "name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    tag: Mapped["Tag"] = relationship("Tag", back_populates="names")


class TagParent(Base):
    """Directed child -> parent edge of the tag graph."""

    __tablename__ = "tag_parents"
    __table_args__ = (
        UniqueConstraint("child_id", "parent_id", name="uq_tag_parents_pair"),
        CheckConstraint("child_id <> parent_id", name="ck_tag_parents_no_self_loop"),
        # At most one active explicit parent per child
        Index(
            "uq_tag_parents_explicit",
            "child_id",
            unique=True,
            postgresql_where=text("is_explicit AND NOT is_removed"),
            sqlite_where=text("is_explicit AND NOT is_removed"),
        ),
        Index("ix_tag_parents_parent_id", "parent_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    child_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id"), nullable=False
    )
    parent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id"), nullable=False
    )
    is_explicit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_removed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    child: Mapped["Tag"] = relationship("Tag", foreign_keys=[child_id])
    parent: Mapped["Tag"] = relationship("Tag", foreign_keys=[parent_id])


class TagEvent(EventMixin, Base):
    """History of a tag: registration, name and category changes."""

    __tablename__ = "tag_events"

    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id"), nullable=False, index=True
    )


class TagParentEvent(EventMixin, Base):
    """History of a tag parent edge."""

    __tablename__ = "tag_parent_events"

    tag_parent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tag_parents.id"), nullable=False, index=True
    )


# ---------------------------------------------------------------------------
# Videos
# ---------------------------------------------------------------------------


class Video(Base):
    """Registered MAD; created only by accepting a registration request."""

    __tablename__ = "videos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    registered_by: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    # Relationships
    titles: Mapped[list["VideoTitle"]] = relationship(
        "VideoTitle", back_populates="video", lazy="selectin"
    )
    thumbnails: Mapped[list["VideoThumbnail"]] = relationship(
        "VideoThumbnail", back_populates="video", lazy="selectin"
    )
    sources: Mapped[list["VideoSource"]] = relationship(
        "VideoSource", back_populates="video", lazy="selectin"
    )


class VideoTitle(Base):
    """Title of a video."""

    __tablename__ = "video_titles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    video: Mapped["Video"] = relationship("Video", back_populates="titles")


class VideoThumbnail(Base):
    """Thumbnail image reference of a video."""

    __tablename__ = "video_thumbnails"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    video: Mapped["Video"] = relationship("Video", back_populates="thumbnails")


class VideoSource(Base):
    """External source record (e.g. a Nicovideo id) of a registered video."""

    __tablename__ = "video_sources"
    __table_args__ = (
        UniqueConstraint("source", "source_id", name="uq_video_sources_source"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # SourceKind value
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False, index=True
    )

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    video: Mapped["Video"] = relationship("Video", back_populates="sources")


class VideoEvent(EventMixin, Base):
    """History of a video (registration)."""

    __tablename__ = "video_events"

    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False, index=True
    )


class VideoSourceEvent(EventMixin, Base):
    """History of a video source record."""

    __tablename__ = "video_source_events"

    video_source_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("video_sources.id"), nullable=False, index=True
    )


class VideoTag(Base):
    """Video <-> tag association; removal flips ``is_removed``."""

    __tablename__ = "video_tags"
    __table_args__ = (
        UniqueConstraint("video_id", "tag_id", name="uq_video_tags_pair"),
        Index("ix_video_tags_tag_id", "tag_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False
    )
    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id"), nullable=False
    )
    is_removed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False
    )


class VideoTagEvent(EventMixin, Base):
    """History of a video tag: ATTACH, DETACH, REATTACH."""

    __tablename__ = "video_tag_events"

    video_tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("video_tags.id"), nullable=False, index=True
    )


# ---------------------------------------------------------------------------
# Semitags
# ---------------------------------------------------------------------------


class Semitag(Base):
    """Unmoderated tag suggestion attached to a video."""

    __tablename__ = "semitags"
    __table_args__ = (
        UniqueConstraint("video_id", "name", name="uq_semitags_video_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    video_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("videos.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_checked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Set when the semitag was resolved into a video tag
    video_tag_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("video_tags.id")
    )

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )


class SemitagEvent(EventMixin, Base):
    """History of a semitag: ATTACHED, RESOLVE, REJECT."""

    __tablename__ = "semitag_events"

    semitag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("semitags.id"), nullable=False, index=True
    )


# ---------------------------------------------------------------------------
# Registration requests
# ---------------------------------------------------------------------------


class RegistrationRequest(Base):
    """Pending or checked submission of an external video."""

    __tablename__ = "registration_requests"
    __table_args__ = (
        # One pending request per external id and source
        Index(
            "uq_registration_requests_pending",
            "source",
            "source_id",
            unique=True,
            postgresql_where=text("NOT is_checked"),
            sqlite_where=text("NOT is_checked"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    source: Mapped[str] = mapped_column(String(20), nullable=False)  # SourceKind value
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[Optional[str]] = mapped_column(String(2048))
    requested_by: Mapped[str] = mapped_column(String(64), nullable=False)
    is_checked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    # Relationships
    taggings: Mapped[list["RegistrationRequestTagging"]] = relationship(
        "RegistrationRequestTagging", back_populates="request", lazy="selectin"
    )
    semitaggings: Mapped[list["RegistrationRequestSemitagging"]] = relationship(
        "RegistrationRequestSemitagging", back_populates="request", lazy="selectin"
    )
    checking: Mapped[Optional["RegistrationRequestChecking"]] = relationship(
        "RegistrationRequestChecking",
        back_populates="request",
        uselist=False,
        lazy="selectin",
    )


class RegistrationRequestTagging(Base):
    """Tag to attach when the request is accepted."""

    __tablename__ = "registration_request_taggings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("registration_requests.id"), nullable=False, index=True
    )
    tag_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tags.id"), nullable=False
    )
    note: Mapped[Optional[str]] = mapped_column(Text)

    request: Mapped["RegistrationRequest"] = relationship(
        "RegistrationRequest", back_populates="taggings"
    )


class RegistrationRequestSemitagging(Base):
    """Semitag to suggest when the request is accepted."""

    __tablename__ = "registration_request_semitaggings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("registration_requests.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)

    request: Mapped["RegistrationRequest"] = relationship(
        "RegistrationRequest", back_populates="semitaggings"
    )


class RegistrationRequestChecking(Base):
    """Terminal disposition of a request: accepted (with video) or rejected."""

    __tablename__ = "registration_request_checkings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_id)
    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("registration_requests.id"), nullable=False, unique=True
    )
    checked_by: Mapped[str] = mapped_column(String(64), nullable=False)
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    video_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("videos.id")
    )

    created_at: Mapped[datetime.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, nullable=False
    )

    request: Mapped["RegistrationRequest"] = relationship(
        "RegistrationRequest", back_populates="checking"
    )


class RegistrationRequestEvent(EventMixin, Base):
    """History of a registration request: REQUEST, ACCEPT, REJECT."""

    __tablename__ = "registration_request_events"

    request_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("registration_requests.id"), nullable=False, index=True
    )


# Export all models
__all__ = [
    "Base",
    "EventMixin",
    "Tag",
    "TagName",
    "TagParent",
    "TagEvent",
    "TagParentEvent",
    "Video",
    "VideoTitle",
    "VideoThumbnail",
    "VideoSource",
    "VideoEvent",
    "VideoSourceEvent",
    "VideoTag",
    "VideoTagEvent",
    "Semitag",
    "SemitagEvent",
    "RegistrationRequest",
    "RegistrationRequestTagging",
    "RegistrationRequestSemitagging",
    "RegistrationRequestChecking",
    "RegistrationRequestEvent",
    "new_id",
    "utcnow",
]
