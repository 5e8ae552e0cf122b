"""
Tag models.

Defines Pydantic models for tags, tag names and tag parent edges, plus the
validated input of tag registration.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from madcatalog.models.enums import CategoryType


class TagName(BaseModel):
    """One name of a tag."""

    id: uuid.UUID
    tag_id: uuid.UUID
    name: str
    is_primary: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Tag(BaseModel):
    """Full tag model with its names."""

    id: uuid.UUID = Field(..., description="Tag UUID (UUIDv7)")
    is_category_tag: bool = Field(..., description="Whether this tag defines a category")
    category: Optional[CategoryType] = Field(default=None)
    names: List[TagName] = Field(default_factory=list)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @property
    def primary_name(self) -> str:
        """Return the primary name of the tag."""
        for name in self.names:
            if name.is_primary:
                return name.name
        raise ValueError(f"Tag {self.id} has no primary name")


class TagParentEdge(BaseModel):
    """Child -> parent edge of the tag graph."""

    id: uuid.UUID
    child_id: uuid.UUID
    parent_id: uuid.UUID
    is_explicit: bool
    is_removed: bool
    created_by: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TagCreate(BaseModel):
    """Input of tag registration."""

    names: List[str] = Field(..., description="Names; one is marked primary")
    primary_index: int = Field(default=0, description="Index of the primary name")
    explicit_parent_id: Optional[uuid.UUID] = Field(default=None)
    implicit_parent_ids: List[uuid.UUID] = Field(default_factory=list)
    is_category_tag: bool = Field(default=False)
    category: Optional[CategoryType] = Field(default=None)
    resolve_semitag_ids: List[uuid.UUID] = Field(default_factory=list)

    @field_validator("names")
    @classmethod
    def strip_names(cls, v: List[str]) -> List[str]:
        """Strip surrounding whitespace and reject blank names."""
        stripped = [name.strip() for name in v]
        for name in stripped:
            if not name:
                raise ValueError("Tag names cannot be empty")
            if len(name) > 255:
                raise ValueError("Tag names cannot exceed 255 characters")
        return stripped

    model_config = ConfigDict(validate_assignment=True)
