"""
Shared fixtures for integration tests.

Every test runs against its own in-memory SQLite catalogue (see the root
conftest); these helpers build the tags, requests and videos most tests
start from.
"""

from __future__ import annotations

import uuid
from typing import Any

import pytest

from madcatalog.catalog import Catalog
from madcatalog.models.enums import CategoryType
from madcatalog.models.registration import RegistrationRequest
from madcatalog.models.tag import Tag
from madcatalog.models.video import Video
from tests.factories.registration_request_factory import (
    RegistrationRequestCreateFactory,
)
from tests.factories.tag_factory import CategoryTagCreateFactory, TagCreateFactory
from tests.integration.helpers import RequestMaker, TagMaker, VideoMaker, unwrap


@pytest.fixture
def make_tag(catalog: Catalog, actor: str) -> TagMaker:
    """Register a tag; keyword arguments override the TagCreate fields."""

    async def _make_tag(**overrides: Any) -> Tag:
        data = TagCreateFactory.build(**overrides)
        return unwrap(await catalog.register_tag(data, actor_id=actor))

    return _make_tag


@pytest.fixture
def make_category_tag(catalog: Catalog, actor: str) -> TagMaker:
    """Register a category tag of the given category."""

    async def _make_category_tag(
        category: CategoryType = CategoryType.MUSIC, **overrides: Any
    ) -> Tag:
        data = CategoryTagCreateFactory.build(category=category, **overrides)
        return unwrap(await catalog.register_tag(data, actor_id=actor))

    return _make_category_tag


@pytest.fixture
def make_request(catalog: Catalog) -> RequestMaker:
    """Submit a registration request as a regular user."""

    async def _make_request(
        requested_by: str = "user-1", **overrides: Any
    ) -> RegistrationRequest:
        data = RegistrationRequestCreateFactory.build(**overrides)
        return unwrap(await catalog.request_registration(data, actor_id=requested_by))

    return _make_request


@pytest.fixture
def make_video(catalog: Catalog, actor: str, make_request: RequestMaker) -> VideoMaker:
    """Submit and accept a request, returning the registered video."""

    async def _make_video(**overrides: Any) -> Video:
        request = await make_request(**overrides)
        return unwrap(
            await catalog.accept_registration(
                request.source, request.id, actor_id=actor
            )
        )

    return _make_video


@pytest.fixture
def unknown_id() -> uuid.UUID:
    """An id no row has."""
    return uuid.UUID("00000000-0000-7000-8000-000000000000")
