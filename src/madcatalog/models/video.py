"""
Video models.

Defines Pydantic models for registered videos, their titles, thumbnails,
source records and tag associations.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from madcatalog.models.enums import SourceKind


class VideoTitle(BaseModel):
    """Title of a video."""

    id: uuid.UUID
    title: str
    is_primary: bool

    model_config = ConfigDict(from_attributes=True)


class VideoThumbnail(BaseModel):
    """Thumbnail reference of a video."""

    id: uuid.UUID
    image_url: str
    is_primary: bool

    model_config = ConfigDict(from_attributes=True)


class VideoSource(BaseModel):
    """External source record of a registered video."""

    id: uuid.UUID
    source: SourceKind
    source_id: str
    video_id: uuid.UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Video(BaseModel):
    """Registered video with titles, thumbnails and sources."""

    id: uuid.UUID = Field(..., description="Video UUID (UUIDv7)")
    registered_by: str
    titles: List[VideoTitle] = Field(default_factory=list)
    thumbnails: List[VideoThumbnail] = Field(default_factory=list)
    sources: List[VideoSource] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def primary_title(self) -> Optional[str]:
        """Return the primary title, if any."""
        for title in self.titles:
            if title.is_primary:
                return title.title
        return None


class VideoTag(BaseModel):
    """Video <-> tag association."""

    id: uuid.UUID
    video_id: uuid.UUID
    tag_id: uuid.UUID
    is_removed: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
