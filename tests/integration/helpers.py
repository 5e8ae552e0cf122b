"""
Assertion helpers shared by the integration tests.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import pytest
from sqlalchemy import func, select

from madcatalog.config.database import DatabaseManager
from madcatalog.models.registration import RegistrationRequest
from madcatalog.models.results import Err, Ok
from madcatalog.models.tag import Tag
from madcatalog.models.video import Video

TagMaker = Callable[..., Awaitable[Tag]]
VideoMaker = Callable[..., Awaitable[Video]]
RequestMaker = Callable[..., Awaitable[RegistrationRequest]]


def unwrap(result: Any) -> Any:
    """Return the value of an ``Ok`` and fail the test on ``Err``."""
    if isinstance(result, Err):
        pytest.fail(f"Unexpected error: {result.error}")
    assert isinstance(result, Ok)
    return result.value


def unwrap_err(result: Any) -> Any:
    """Return the error of an ``Err`` and fail the test on ``Ok``."""
    if isinstance(result, Ok):
        pytest.fail(f"Unexpected success: {result.value}")
    assert isinstance(result, Err)
    return result.error


async def count_rows(database: DatabaseManager, model: Any) -> int:
    """Count the committed rows of an ORM model in a throwaway session."""
    async with database.get_session_factory()() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return int(result.scalar_one())
