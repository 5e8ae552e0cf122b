"""
Semitag models.

Defines Pydantic models for unmoderated tag suggestions.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Semitag(BaseModel):
    """Unmoderated suggestion attached to a video."""

    id: uuid.UUID
    video_id: uuid.UUID
    name: str
    is_checked: bool
    video_tag_id: Optional[uuid.UUID] = Field(
        default=None, description="Video tag created or reused on resolution"
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SemitagName(BaseModel):
    """Validated semitag name input."""

    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip the name and reject blank values."""
        name = v.strip()
        if not name:
            raise ValueError("Semitag name cannot be empty")
        return name


class SemitagSuggestion(BaseModel):
    """Candidate tag for resolving a semitag."""

    semitag_id: uuid.UUID
    tag_id: uuid.UUID
    matched_name: str
    can_resolve_to: bool
