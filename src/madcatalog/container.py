"""
Dependency Injection Container for madcatalog.

This module provides a centralized container for managing dependencies across
the application. It implements a lightweight dependency injection pattern that:

- Provides factory methods for creating repository instances (transient)
- Provides factory methods wiring services onto fresh repositories
- Manages the ``Catalog`` facade as a cached singleton
- Enables easy mock injection for testing

Usage
-----
Basic repository access:

    >>> from madcatalog.container import container
    >>> tag_repo = container.create_tag_repository()

Wired services:

    >>> tag_graph = container.create_tag_graph_service()
    >>> nicovideo = container.create_registration_workflow(SourceKind.NICOVIDEO)

Catalogue facade (cached):

    >>> catalog = container.catalog
    >>> catalog is container.catalog
    True

Design Principles
-----------------
- Repository factories return new instances each call (transient)
- Services are stateless apart from their collaborators, so factories may
  be called freely; the facade is cached via @cached_property
- Container can be reset for testing isolation
"""

from __future__ import annotations

from functools import cached_property
from typing import Dict, Optional

from madcatalog.catalog import Catalog
from madcatalog.config.database import DatabaseManager, db_manager
from madcatalog.config.settings import settings
from madcatalog.models.enums import SourceKind
from madcatalog.repositories import (
    EventLogRepository,
    RegistrationRequestRepository,
    SemitagRepository,
    TagParentRepository,
    TagRepository,
    VideoRepository,
    VideoTagRepository,
)
from madcatalog.services.registration import (
    SOURCE_ADAPTERS,
    RegistrationWorkflow,
    get_source_adapter,
)
from madcatalog.services.semitags import SemitagService
from madcatalog.services.tag_graph import TagGraphService
from madcatalog.services.tagging import TaggingService
from madcatalog.services.timeline import TimelineProjector


class Container:
    """
    Dependency injection container for madcatalog.

    The Container provides centralized access to all repositories and services
    in the application. It manages the lifecycle of dependencies:

    - **Transient**: Repository and service factories create new instances
    - **Singleton**: ``catalog`` returns a cached facade bound to one
      ``DatabaseManager``

    Parameters
    ----------
    database : Optional[DatabaseManager]
        Manager the facade runs transactions on (default: the global
        ``db_manager``).

    Examples
    --------
    Creating repositories (transient - new instance each call):

        >>> container = Container()
        >>> repo1 = container.create_tag_repository()
        >>> repo2 = container.create_tag_repository()
        >>> repo1 is repo2
        False

    Notes
    -----
    All repository factory methods follow the naming convention
    ``create_<entity>_repository()`` and return a new instance each call.
    """

    def __init__(self, database: Optional[DatabaseManager] = None) -> None:
        self._database = database

    @property
    def database(self) -> DatabaseManager:
        """Get the database manager used by the facade."""
        return self._database if self._database is not None else db_manager

    # -------------------------------------------------------------------------
    # Repository Factory Methods (Transient - new instance per call)
    # -------------------------------------------------------------------------

    def create_tag_repository(self) -> TagRepository:
        """
        Create a new TagRepository instance.

        Returns
        -------
        TagRepository
            A new TagRepository instance.

        Examples
        --------
        >>> repo = container.create_tag_repository()
        >>> isinstance(repo, TagRepository)
        True
        """
        return TagRepository()

    def create_tag_parent_repository(self) -> TagParentRepository:
        """Create a new TagParentRepository instance."""
        return TagParentRepository()

    def create_video_repository(self) -> VideoRepository:
        """Create a new VideoRepository instance."""
        return VideoRepository()

    def create_video_tag_repository(self) -> VideoTagRepository:
        """Create a new VideoTagRepository instance."""
        return VideoTagRepository()

    def create_semitag_repository(self) -> SemitagRepository:
        """Create a new SemitagRepository instance."""
        return SemitagRepository()

    def create_registration_request_repository(self) -> RegistrationRequestRepository:
        """Create a new RegistrationRequestRepository instance."""
        return RegistrationRequestRepository()

    def create_event_log_repository(self) -> EventLogRepository:
        """
        Create a new EventLogRepository instance.

        The event log repository is shared by every service; it only appends
        and reads, and keeps no state between calls.
        """
        return EventLogRepository()

    # -------------------------------------------------------------------------
    # Service Factory Methods (Transient - wired with fresh repositories)
    # -------------------------------------------------------------------------

    def create_tagging_service(self) -> TaggingService:
        """
        Create a new TaggingService instance with wired dependencies.

        Returns
        -------
        TaggingService
            Service with video tag, video, tag and event log repositories.
        """
        return TaggingService(
            video_tag_repo=self.create_video_tag_repository(),
            video_repo=self.create_video_repository(),
            tag_repo=self.create_tag_repository(),
            event_log=self.create_event_log_repository(),
        )

    def create_semitag_service(
        self, tagging: Optional[TaggingService] = None
    ) -> SemitagService:
        """
        Create a new SemitagService instance with wired dependencies.

        Parameters
        ----------
        tagging : Optional[TaggingService]
            Tagging service resolution attaches through (default: a new one).
        """
        return SemitagService(
            semitag_repo=self.create_semitag_repository(),
            video_repo=self.create_video_repository(),
            tag_repo=self.create_tag_repository(),
            video_tag_repo=self.create_video_tag_repository(),
            tagging=tagging or self.create_tagging_service(),
            event_log=self.create_event_log_repository(),
        )

    def create_tag_graph_service(
        self, semitags: Optional[SemitagService] = None
    ) -> TagGraphService:
        """
        Create a new TagGraphService instance with wired dependencies.

        Parameters
        ----------
        semitags : Optional[SemitagService]
            Semitag service used to resolve semitags at registration
            (default: a new one).
        """
        return TagGraphService(
            tag_repo=self.create_tag_repository(),
            tag_parent_repo=self.create_tag_parent_repository(),
            semitag_repo=self.create_semitag_repository(),
            video_repo=self.create_video_repository(),
            semitags=semitags or self.create_semitag_service(),
            event_log=self.create_event_log_repository(),
            max_page_size=settings.max_page_size,
        )

    def create_registration_workflow(
        self,
        source: SourceKind,
        *,
        tagging: Optional[TaggingService] = None,
        semitags: Optional[SemitagService] = None,
    ) -> RegistrationWorkflow:
        """
        Create the registration workflow of one external source.

        Parameters
        ----------
        source : SourceKind
            External source the workflow validates ids for.
        tagging : Optional[TaggingService]
            Tagging service used on acceptance (default: a new one).
        semitags : Optional[SemitagService]
            Semitag service used on acceptance (default: a new one).

        Examples
        --------
        >>> workflow = container.create_registration_workflow(SourceKind.YOUTUBE)
        >>> workflow.source
        <SourceKind.YOUTUBE: 'YOUTUBE'>
        """
        tagging = tagging or self.create_tagging_service()
        return RegistrationWorkflow(
            adapter=get_source_adapter(source),
            request_repo=self.create_registration_request_repository(),
            video_repo=self.create_video_repository(),
            tag_repo=self.create_tag_repository(),
            tagging=tagging,
            semitags=semitags or self.create_semitag_service(tagging),
            event_log=self.create_event_log_repository(),
            max_page_size=settings.max_page_size,
        )

    def create_timeline_projector(self) -> TimelineProjector:
        """Create a new TimelineProjector reading the event logs."""
        return TimelineProjector(
            event_log=self.create_event_log_repository(),
            batch_size=settings.timeline_batch_size,
        )

    def create_catalog(self, database: Optional[DatabaseManager] = None) -> Catalog:
        """
        Create a Catalog facade with every service wired.

        One tagging and one semitag service are shared by the tag graph and
        every registration workflow.

        Parameters
        ----------
        database : Optional[DatabaseManager]
            Manager to run transactions on (default: ``self.database``).

        Returns
        -------
        Catalog
            A new facade.
        """
        tagging = self.create_tagging_service()
        semitags = self.create_semitag_service(tagging)
        workflows: Dict[SourceKind, RegistrationWorkflow] = {
            source: self.create_registration_workflow(
                source, tagging=tagging, semitags=semitags
            )
            for source in SOURCE_ADAPTERS
        }
        return Catalog(
            database or self.database,
            tag_graph=self.create_tag_graph_service(semitags),
            tagging=tagging,
            semitags=semitags,
            workflows=workflows,
            timeline=self.create_timeline_projector(),
            video_repo=self.create_video_repository(),
        )

    # -------------------------------------------------------------------------
    # Singleton Properties (Cached - same instance on repeated access)
    # -------------------------------------------------------------------------

    @cached_property
    def catalog(self) -> Catalog:
        """
        Get the singleton Catalog facade.

        Examples
        --------
        >>> container.catalog is container.catalog
        True
        """
        return self.create_catalog()

    # -------------------------------------------------------------------------
    # Testing Support
    # -------------------------------------------------------------------------

    def reset(self, database: Optional[DatabaseManager] = None) -> None:
        """
        Reset the container by clearing all cached singleton instances.

        Parameters
        ----------
        database : Optional[DatabaseManager]
            Manager to bind from now on (default: the global ``db_manager``).

        Examples
        --------
        >>> container.reset()
        >>> # The next access to container.catalog builds a new facade
        """
        self._database = database
        self.__dict__.pop("catalog", None)


# Global container instance
# This is the single entry point for dependency access throughout the application
container = Container()
