"""
Registration request models.

Defines Pydantic models for registration requests, the tagging and
semitagging intents they carry, and their terminal checking records.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from madcatalog.models.enums import RequestStatus, SourceKind


class TaggingIntent(BaseModel):
    """Tag to attach to the video once the request is accepted."""

    tag_id: uuid.UUID
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SemitaggingIntent(BaseModel):
    """Semitag to suggest once the request is accepted."""

    name: str = Field(..., min_length=1, max_length=255)
    note: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Strip the name and reject blank values."""
        name = v.strip()
        if not name:
            raise ValueError("Semitag name cannot be empty")
        return name

    model_config = ConfigDict(from_attributes=True)


class RegistrationRequestCreate(BaseModel):
    """Input of a registration request submission."""

    source: SourceKind
    source_id: str = Field(..., min_length=1, max_length=64)
    title: str = Field(..., min_length=1)
    thumbnail_url: Optional[str] = Field(default=None, max_length=2048)
    taggings: List[TaggingIntent] = Field(default_factory=list)
    semitaggings: List[SemitaggingIntent] = Field(default_factory=list)

    @field_validator("source_id", "title")
    @classmethod
    def strip_value(cls, v: str) -> str:
        """Strip surrounding whitespace."""
        value = v.strip()
        if not value:
            raise ValueError("Value cannot be empty")
        return value


class RequestChecking(BaseModel):
    """
    Terminal disposition of a request.

    ``accepted=True`` records an acceptance and references the created
    video; ``accepted=False`` is the rejecting record carrying the
    moderator's note.
    """

    id: uuid.UUID
    request_id: uuid.UUID
    checked_by: str
    accepted: bool
    note: Optional[str] = None
    video_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RegistrationRequest(BaseModel):
    """Registration request with its intents and disposition."""

    id: uuid.UUID
    source: SourceKind
    source_id: str
    title: str
    thumbnail_url: Optional[str] = None
    requested_by: str
    is_checked: bool
    taggings: List[TaggingIntent] = Field(default_factory=list)
    semitaggings: List[SemitaggingIntent] = Field(default_factory=list)
    checking: Optional[RequestChecking] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def status(self) -> RequestStatus:
        """Return the state-machine state of the request."""
        if not self.is_checked or self.checking is None:
            return RequestStatus.PENDING
        if self.checking.accepted:
            return RequestStatus.ACCEPTED
        return RequestStatus.REJECTED
