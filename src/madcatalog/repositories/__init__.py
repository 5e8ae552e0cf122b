"""
Repository layer for data access patterns.

This module provides repository interfaces and implementations following
the Repository pattern for clean separation of domain logic and data persistence.
"""

from .base import BaseRepository, BaseSQLAlchemyRepository
from .event_log_repository import EventLogRepository
from .registration_request_repository import RegistrationRequestRepository
from .semitag_repository import SemitagRepository
from .tag_parent_repository import TagParentRepository
from .tag_repository import TagRepository
from .video_repository import VideoRepository
from .video_tag_repository import VideoTagRepository

__all__ = [
    "BaseRepository",
    "BaseSQLAlchemyRepository",
    "EventLogRepository",
    "RegistrationRequestRepository",
    "SemitagRepository",
    "TagParentRepository",
    "TagRepository",
    "VideoRepository",
    "VideoTagRepository",
]
