"""
Pytest configuration and fixtures for madcatalog tests.
"""

from __future__ import annotations

from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.catalog import Catalog
from madcatalog.config.database import DatabaseManager
from madcatalog.config.settings import Settings, settings
from madcatalog.container import Container
from madcatalog.services.notifications import CollectingNotificationSink

MEMORY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def mock_settings() -> Settings:
    """Settings pointing at an in-memory database."""
    return Settings(
        database_url=MEMORY_DATABASE_URL,
        development_mode=False,
        default_actor_id="",
        log_level="INFO",
    )


@pytest.fixture
def actor() -> str:
    """Actor id used for mutations."""
    return "moderator-1"


@pytest.fixture
def notification_sink() -> CollectingNotificationSink:
    """Sink collecting every committed event."""
    return CollectingNotificationSink()


@pytest.fixture
async def database(
    monkeypatch: pytest.MonkeyPatch, notification_sink: CollectingNotificationSink
) -> AsyncGenerator[DatabaseManager, None]:
    """
    Provide a DatabaseManager bound to a fresh in-memory SQLite database.

    The schema is created from the models for every test, so each test
    starts from an empty catalogue.
    """
    monkeypatch.setattr(settings, "development_mode", True)
    monkeypatch.setattr(settings, "database_dev_url", MEMORY_DATABASE_URL)
    monkeypatch.setattr(settings, "db_log_queries", False)
    monkeypatch.setattr(settings, "debug", False)

    manager = DatabaseManager(notification_sink=notification_sink)
    await manager.create_tables()
    try:
        yield manager
    finally:
        await manager.close()


@pytest.fixture
async def db_session(
    database: DatabaseManager,
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session on the test database for direct service calls."""
    session_factory = database.get_session_factory()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
def test_container(database: DatabaseManager) -> Container:
    """Container bound to the test database."""
    return Container(database=database)


@pytest.fixture
def catalog(test_container: Container) -> Catalog:
    """Catalog facade wired against the test database."""
    return test_container.create_catalog()
