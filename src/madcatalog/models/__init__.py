"""
Data models module for madcatalog.

Defines Pydantic models for tags, videos, semitags and registration
requests, event records, pagination connections and result values.
"""

from __future__ import annotations

from .enums import (
    CategoryType,
    EntityKind,
    RequestStatus,
    SortOrder,
    SourceKind,
    TagType,
)
from .events import EventRecord
from .pagination import Connection, ConnectionArgs, CursorKey, Edge, PageInfo
from .registration import (
    RegistrationRequest,
    RegistrationRequestCreate,
    RequestChecking,
    SemitaggingIntent,
    TaggingIntent,
)
from .results import Err, Ok, Result, is_err, is_ok
from .semitag import Semitag, SemitagName, SemitagSuggestion
from .tag import Tag, TagCreate, TagName, TagParentEdge
from .video import Video, VideoSource, VideoTag, VideoThumbnail, VideoTitle

__all__ = [
    # Enums
    "CategoryType",
    "EntityKind",
    "RequestStatus",
    "SortOrder",
    "SourceKind",
    "TagType",
    # Events
    "EventRecord",
    # Pagination
    "Connection",
    "ConnectionArgs",
    "CursorKey",
    "Edge",
    "PageInfo",
    # Registration
    "RegistrationRequest",
    "RegistrationRequestCreate",
    "RequestChecking",
    "SemitaggingIntent",
    "TaggingIntent",
    # Results
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
    # Semitags
    "Semitag",
    "SemitagName",
    "SemitagSuggestion",
    # Tags
    "Tag",
    "TagCreate",
    "TagName",
    "TagParentEdge",
    # Videos
    "Video",
    "VideoSource",
    "VideoTag",
    "VideoThumbnail",
    "VideoTitle",
]
