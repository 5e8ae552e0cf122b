"""
Integration tests for the timeline feed.
"""

from __future__ import annotations

from typing import List

import pytest

from madcatalog.catalog import Catalog
from madcatalog.config.database import DatabaseManager
from madcatalog.exceptions import InvalidPaginationError
from madcatalog.repositories.event_log_repository import EventLogRepository
from madcatalog.services.timeline import TimelineEntry, TimelineKind, TimelineProjector
from tests.integration.helpers import (
    RequestMaker,
    TagMaker,
    VideoMaker,
    unwrap,
)

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


@pytest.fixture
async def history(
    catalog: Catalog,
    actor: str,
    make_tag: TagMaker,
    make_request: RequestMaker,
    make_video: VideoMaker,
) -> dict:
    """Build one entry of every timeline kind, oldest to newest."""
    tag = await make_tag()
    video = await make_video()
    rejected = await make_request()
    unwrap(await catalog.reject_registration(rejected.source, rejected.id, actor_id=actor))
    resolved = unwrap(
        await catalog.add_semitag_to_video(video_id=video.id, name="keep", actor_id=actor)
    )
    unwrap(await catalog.resolve_semitag(resolved.id, tag.id, actor_id=actor))
    dropped = unwrap(
        await catalog.add_semitag_to_video(video_id=video.id, name="drop", actor_id=actor)
    )
    unwrap(await catalog.reject_semitag(dropped.id, actor_id=actor))
    return {
        "video": video,
        "rejected": rejected,
        "resolved": resolved,
        "dropped": dropped,
    }


async def whole_feed(catalog: Catalog) -> List[TimelineEntry]:
    return (await catalog.timeline(limit=100)).entries


class TestTimelinePage:
    """Paging through the feed."""

    async def test_newest_first(self, catalog: Catalog, history: dict) -> None:
        page = await catalog.timeline(limit=100)

        assert [e.kind for e in page.entries] == [
            TimelineKind.SEMITAG_REJECTED,
            TimelineKind.SEMITAG_RESOLVED,
            TimelineKind.REGISTRATION_REJECTED,
            TimelineKind.REGISTRATION_REQUESTED,
            TimelineKind.REGISTRATION_ACCEPTED,
            TimelineKind.VIDEO_REGISTERED,
            TimelineKind.REGISTRATION_REQUESTED,
        ]
        assert not page.has_more
        assert page.end_cursor == page.entries[-1].cursor

        by_kind = {e.kind: e for e in page.entries}
        assert by_kind[TimelineKind.SEMITAG_REJECTED].entity_id == history["dropped"].id
        assert by_kind[TimelineKind.SEMITAG_RESOLVED].entity_id == history["resolved"].id
        assert by_kind[TimelineKind.REGISTRATION_REJECTED].entity_id == history["rejected"].id
        assert by_kind[TimelineKind.VIDEO_REGISTERED].entity_id == history["video"].id
        accepted = by_kind[TimelineKind.REGISTRATION_ACCEPTED]
        assert accepted.payload["video_id"] == str(history["video"].id)

    async def test_kinds_filter(self, catalog: Catalog, history: dict) -> None:
        page = await catalog.timeline(
            limit=100, kinds=[TimelineKind.REGISTRATION_REQUESTED]
        )

        assert len(page.entries) == 2
        assert all(e.kind == TimelineKind.REGISTRATION_REQUESTED for e in page.entries)
        assert page.entries[0].entity_id == history["rejected"].id
        assert page.entries[1].payload["source_id"] != history["rejected"].source_id

    async def test_restart_from_cursor(self, catalog: Catalog, history: dict) -> None:
        everything = await whole_feed(catalog)

        first = await catalog.timeline(limit=3)
        second = await catalog.timeline(limit=3, after=first.end_cursor)
        rest = await catalog.timeline(limit=3, after=second.end_cursor)

        assert first.has_more
        assert second.has_more
        assert not rest.has_more
        assert first.entries + second.entries + rest.entries == everything

    async def test_restart_with_kinds_filter(
        self, catalog: Catalog, history: dict
    ) -> None:
        kinds = [TimelineKind.SEMITAG_RESOLVED, TimelineKind.VIDEO_REGISTERED]
        first = await catalog.timeline(limit=1, kinds=kinds)
        second = await catalog.timeline(limit=5, kinds=kinds, after=first.end_cursor)

        assert [e.kind for e in first.entries + second.entries] == [
            TimelineKind.SEMITAG_RESOLVED,
            TimelineKind.VIDEO_REGISTERED,
        ]

    async def test_zero_limit(self, catalog: Catalog, history: dict) -> None:
        page = await catalog.timeline(limit=0)
        assert page.entries == []
        assert page.has_more
        assert page.end_cursor is None

    async def test_empty_feed(self, catalog: Catalog) -> None:
        page = await catalog.timeline(limit=10)
        assert page.entries == []
        assert not page.has_more

    async def test_since_and_until(self, catalog: Catalog, history: dict) -> None:
        everything = await whole_feed(catalog)
        pivot = everything[2].created_at

        older = await catalog.timeline(limit=100, until=pivot)
        newer = await catalog.timeline(limit=100, since=pivot)

        assert older.entries == everything[2:]
        assert newer.entries == everything[:3]

    async def test_invalid_arguments(self, catalog: Catalog) -> None:
        with pytest.raises(InvalidPaginationError) as exc_info:
            await catalog.timeline(limit=-1)
        assert exc_info.value.argument == "limit"

        with pytest.raises(InvalidPaginationError) as exc_info:
            await catalog.timeline(limit=5, after="not-a-cursor")
        assert exc_info.value.argument == "after"


class TestTimelineIteration:
    """Lazy iteration and batching."""

    async def test_iter_matches_pages(self, catalog: Catalog, history: dict) -> None:
        everything = await whole_feed(catalog)

        iterated = [entry async for entry in catalog.iter_timeline()]

        assert iterated == everything

    async def test_small_batches(
        self, catalog: Catalog, database: DatabaseManager, history: dict
    ) -> None:
        everything = await whole_feed(catalog)
        projector = TimelineProjector(EventLogRepository(), batch_size=1)

        page = await database.run_in_transaction(
            lambda session: projector.page(session, limit=100)
        )

        assert page.entries == everything
