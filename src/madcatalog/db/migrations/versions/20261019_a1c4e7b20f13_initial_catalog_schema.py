"""initial_catalog_schema

Revision ID: a1c4e7b20f13
Revises:
Create Date: 2026-10-19 12:00:00.000000

Creates the catalogue schema: the tag graph, videos and their source
records, video tags, semitags, registration requests, and one append-only
event table per entity.

Key Features:
- UUIDv7 primary keys for entities, monotonic integer ids for events
- Partial unique indexes backing the write-time checks (one primary name
  per tag, one active explicit parent per child, one pending request per
  external id)
- CHECK constraint forbidding self-loop tag edges
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision = "a1c4e7b20f13"
down_revision = None
branch_labels = None
depends_on = None

EVENT_ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
PAYLOAD = sa.JSON().with_variant(JSONB(), "postgresql")

# (event table, owner column, owned table), in creation order
EVENT_TABLES = [
    ("tag_events", "tag_id", "tags"),
    ("tag_parent_events", "tag_parent_id", "tag_parents"),
    ("video_events", "video_id", "videos"),
    ("video_source_events", "video_source_id", "video_sources"),
    ("video_tag_events", "video_tag_id", "video_tags"),
    ("semitag_events", "semitag_id", "semitags"),
    ("registration_request_events", "request_id", "registration_requests"),
]


def _timestamp(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False)


def _create_event_table(table: str, owner_column: str, owner_table: str) -> None:
    op.create_table(
        table,
        sa.Column("id", EVENT_ID, primary_key=True, autoincrement=True),
        sa.Column(owner_column, sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("payload", PAYLOAD, nullable=False),
        _timestamp(),
        sa.ForeignKeyConstraint([owner_column], [f"{owner_table}.id"]),
    )
    op.create_index(f"ix_{table}_{owner_column}", table, [owner_column])
    op.create_index(f"ix_{table}_created_at", table, ["created_at"])


def upgrade() -> None:
    """Create every catalogue table in FK dependency order."""
    # =========================================================================
    # Tag graph
    # =========================================================================
    op.create_table(
        "tags",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("is_category_tag", sa.Boolean(), nullable=False),
        sa.Column("category", sa.String(20), nullable=True),
        _timestamp(),
    )

    op.create_table(
        "tag_names",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tag_id", sa.Uuid(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("tag_id", "name", name="uq_tag_names_tag_name"),
    )
    op.create_index(
        "uq_tag_names_primary",
        "tag_names",
        ["tag_id"],
        unique=True,
        postgresql_where=sa.text("is_primary"),
        sqlite_where=sa.text("is_primary"),
    )
    op.create_index("ix_tag_names_name", "tag_names", ["name"])

    op.create_table(
        "tag_parents",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("child_id", sa.Uuid(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("parent_id", sa.Uuid(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("is_explicit", sa.Boolean(), nullable=False),
        sa.Column("is_removed", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("child_id", "parent_id", name="uq_tag_parents_pair"),
        sa.CheckConstraint("child_id <> parent_id", name="ck_tag_parents_no_self_loop"),
    )
    op.create_index(
        "uq_tag_parents_explicit",
        "tag_parents",
        ["child_id"],
        unique=True,
        postgresql_where=sa.text("is_explicit AND NOT is_removed"),
        sqlite_where=sa.text("is_explicit AND NOT is_removed"),
    )
    op.create_index("ix_tag_parents_parent_id", "tag_parents", ["parent_id"])

    # =========================================================================
    # Videos
    # =========================================================================
    op.create_table(
        "videos",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("registered_by", sa.String(64), nullable=False),
        _timestamp(),
    )

    op.create_table(
        "video_titles",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        _timestamp(),
    )
    op.create_index("ix_video_titles_video_id", "video_titles", ["video_id"])

    op.create_table(
        "video_thumbnails",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=False),
        sa.Column("image_url", sa.String(2048), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        _timestamp(),
    )
    op.create_index("ix_video_thumbnails_video_id", "video_thumbnails", ["video_id"])

    op.create_table(
        "video_sources",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("source_id", sa.String(64), nullable=False),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=False),
        _timestamp(),
        sa.UniqueConstraint("source", "source_id", name="uq_video_sources_source"),
    )
    op.create_index("ix_video_sources_video_id", "video_sources", ["video_id"])

    op.create_table(
        "video_tags",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=False),
        sa.Column("tag_id", sa.Uuid(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("is_removed", sa.Boolean(), nullable=False),
        _timestamp(),
        _timestamp("updated_at"),
        sa.UniqueConstraint("video_id", "tag_id", name="uq_video_tags_pair"),
    )
    op.create_index("ix_video_tags_tag_id", "video_tags", ["tag_id"])

    # =========================================================================
    # Semitags
    # =========================================================================
    op.create_table(
        "semitags",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_checked", sa.Boolean(), nullable=False),
        sa.Column(
            "video_tag_id", sa.Uuid(), sa.ForeignKey("video_tags.id"), nullable=True
        ),
        _timestamp(),
        sa.UniqueConstraint("video_id", "name", name="uq_semitags_video_name"),
    )
    op.create_index("ix_semitags_video_id", "semitags", ["video_id"])

    # =========================================================================
    # Registration requests
    # =========================================================================
    op.create_table(
        "registration_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("source_id", sa.String(64), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.String(2048), nullable=True),
        sa.Column("requested_by", sa.String(64), nullable=False),
        sa.Column("is_checked", sa.Boolean(), nullable=False),
        _timestamp(),
    )
    op.create_index(
        "uq_registration_requests_pending",
        "registration_requests",
        ["source", "source_id"],
        unique=True,
        postgresql_where=sa.text("NOT is_checked"),
        sqlite_where=sa.text("NOT is_checked"),
    )

    op.create_table(
        "registration_request_taggings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("registration_requests.id"),
            nullable=False,
        ),
        sa.Column("tag_id", sa.Uuid(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_registration_request_taggings_request_id",
        "registration_request_taggings",
        ["request_id"],
    )

    op.create_table(
        "registration_request_semitaggings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("registration_requests.id"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
    )
    op.create_index(
        "ix_registration_request_semitaggings_request_id",
        "registration_request_semitaggings",
        ["request_id"],
    )

    op.create_table(
        "registration_request_checkings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "request_id",
            sa.Uuid(),
            sa.ForeignKey("registration_requests.id"),
            nullable=False,
            unique=True,
        ),
        sa.Column("checked_by", sa.String(64), nullable=False),
        sa.Column("accepted", sa.Boolean(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("video_id", sa.Uuid(), sa.ForeignKey("videos.id"), nullable=True),
        _timestamp(),
    )

    # =========================================================================
    # Event logs
    # =========================================================================
    for table, owner_column, owner_table in EVENT_TABLES:
        _create_event_table(table, owner_column, owner_table)


def downgrade() -> None:
    """Drop every catalogue table in reverse dependency order."""
    for table, _, _ in reversed(EVENT_TABLES):
        op.drop_table(table)

    op.drop_table("registration_request_checkings")
    op.drop_table("registration_request_semitaggings")
    op.drop_table("registration_request_taggings")
    op.drop_index("uq_registration_requests_pending", table_name="registration_requests")
    op.drop_table("registration_requests")
    op.drop_table("semitags")
    op.drop_table("video_tags")
    op.drop_table("video_sources")
    op.drop_table("video_thumbnails")
    op.drop_table("video_titles")
    op.drop_table("videos")
    op.drop_index("uq_tag_parents_explicit", table_name="tag_parents")
    op.drop_table("tag_parents")
    op.drop_index("uq_tag_names_primary", table_name="tag_names")
    op.drop_table("tag_names")
    op.drop_table("tags")
