"""
Enums for madcatalog models.

Defines enumeration types used across the application for consistent
type safety and validation.
"""

from __future__ import annotations

from enum import Enum


class CategoryType(str, Enum):
    """Classification axes a category tag can define."""

    MUSIC = "MUSIC"
    COPYRIGHT = "COPYRIGHT"
    CHARACTER = "CHARACTER"
    PHRASE = "PHRASE"
    SERIES = "SERIES"
    TACTICS = "TACTICS"
    STYLE = "STYLE"
    EVENT = "EVENT"


class TagType(str, Enum):
    """Resolved type of a tag: a category, or UNKNOWN / SUBTLE."""

    MUSIC = "MUSIC"
    COPYRIGHT = "COPYRIGHT"
    CHARACTER = "CHARACTER"
    PHRASE = "PHRASE"
    SERIES = "SERIES"
    TACTICS = "TACTICS"
    STYLE = "STYLE"
    EVENT = "EVENT"
    UNKNOWN = "UNKNOWN"  # No category-tag parent
    SUBTLE = "SUBTLE"  # Parents disagree on the category

    @classmethod
    def from_category(cls, category: CategoryType | str | None) -> "TagType":
        """Map a category value to its tag type (UNKNOWN for None)."""
        if category is None:
            return cls.UNKNOWN
        return cls(CategoryType(category).value)


class SourceKind(str, Enum):
    """External services MADs are registered from."""

    NICOVIDEO = "NICOVIDEO"
    YOUTUBE = "YOUTUBE"
    SOUNDCLOUD = "SOUNDCLOUD"
    BILIBILI = "BILIBILI"


class EntityKind(str, Enum):
    """Entities that own an event log."""

    TAG = "tag"
    TAG_PARENT = "tag_parent"
    VIDEO = "video"
    VIDEO_SOURCE = "video_source"
    VIDEO_TAG = "video_tag"
    SEMITAG = "semitag"
    REGISTRATION_REQUEST = "registration_request"


class TagEventType(str, Enum):
    """Tag history entries."""

    REGISTER = "REGISTER"
    ADD_NAME = "ADD_NAME"
    REMOVE_NAME = "REMOVE_NAME"
    CHANGE_PRIMARY_NAME = "CHANGE_PRIMARY_NAME"
    CHANGE_CATEGORY = "CHANGE_CATEGORY"


class TagParentEventType(str, Enum):
    """Tag parent edge history entries."""

    CREATE = "CREATE"
    REATTACH = "REATTACH"
    EXPLICITIZE = "EXPLICITIZE"
    IMPLICITIZE = "IMPLICITIZE"
    REMOVE = "REMOVE"


class VideoEventType(str, Enum):
    """Video history entries."""

    REGISTER = "REGISTER"


class VideoSourceEventType(str, Enum):
    """Video source history entries."""

    CREATE = "CREATE"


class VideoTagEventType(str, Enum):
    """Video tag transitions."""

    ATTACH = "ATTACH"
    DETACH = "DETACH"
    REATTACH = "REATTACH"


class SemitagEventType(str, Enum):
    """Semitag transitions."""

    ATTACHED = "ATTACHED"
    RESOLVE = "RESOLVE"
    REJECT = "REJECT"


class RegistrationRequestEventType(str, Enum):
    """Registration request transitions."""

    REQUEST = "REQUEST"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"


class RequestStatus(str, Enum):
    """State of a registration request."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class SortOrder(str, Enum):
    """Ordering direction of a connection."""

    ASC = "asc"
    DESC = "desc"
