"""
Integration tests for semitags: suggestion, resolution and rejection.
"""

from __future__ import annotations

import uuid

import pytest

from madcatalog.catalog import Catalog
from madcatalog.config.database import DatabaseManager
from madcatalog.db.models import Semitag as SemitagDB
from madcatalog.db.models import VideoTag as VideoTagDB
from madcatalog.models.enums import EntityKind
from madcatalog.services.notifications import CollectingNotificationSink
from madcatalog.services.semitags import (
    RejectSemitagErrorKind,
    ResolveSemitagErrorKind,
    SuggestErrorKind,
)
from tests.integration.helpers import (
    TagMaker,
    VideoMaker,
    count_rows,
    unwrap,
    unwrap_err,
)

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


class TestSuggest:
    """Suggesting semitags on a video."""

    async def test_suggest(
        self,
        catalog: Catalog,
        actor: str,
        make_video: VideoMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        video = await make_video()
        notification_sink.records.clear()

        semitag = unwrap(
            await catalog.add_semitag_to_video(
                video_id=video.id, name="  Bad Apple  ", actor_id=actor
            )
        )

        assert semitag.name == "Bad Apple"
        assert semitag.video_id == video.id
        assert not semitag.is_checked
        assert semitag.video_tag_id is None
        assert [(r.entity, r.type) for r in notification_sink.records] == [
            (EntityKind.SEMITAG, "ATTACHED")
        ]
        assert await catalog.semitags_of(video.id, checked=False) == [semitag]

    async def test_same_name_twice(
        self, catalog: Catalog, actor: str, make_video: VideoMaker
    ) -> None:
        video = await make_video()
        first = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="remix", actor_id=actor)
        )

        error = unwrap_err(
            await catalog.add_semitag_to_video(video_id=video.id, name="remix", actor_id=actor)
        )

        assert error.kind == SuggestErrorKind.ALREADY_ATTACHED
        assert error.semitag == first

    async def test_same_name_after_check(
        self, catalog: Catalog, actor: str, make_video: VideoMaker
    ) -> None:
        video = await make_video()
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="remix", actor_id=actor)
        )
        unwrap(await catalog.reject_semitag(semitag.id, actor_id=actor))

        error = unwrap_err(
            await catalog.add_semitag_to_video(video_id=video.id, name="remix", actor_id=actor)
        )

        assert error.kind == SuggestErrorKind.ALREADY_CHECKED
        assert error.semitag is not None
        assert error.semitag.is_checked

    async def test_unknown_video(
        self, catalog: Catalog, actor: str, unknown_id: uuid.UUID
    ) -> None:
        error = unwrap_err(
            await catalog.add_semitag_to_video(video_id=unknown_id, name="x", actor_id=actor)
        )
        assert error.kind == SuggestErrorKind.VIDEO_NOT_FOUND

    @pytest.mark.parametrize("name", ["   ", "x" * 256])
    async def test_invalid_name(
        self,
        catalog: Catalog,
        actor: str,
        database: DatabaseManager,
        make_video: VideoMaker,
        name: str,
    ) -> None:
        video = await make_video()

        error = unwrap_err(
            await catalog.add_semitag_to_video(video_id=video.id, name=name, actor_id=actor)
        )

        assert error.kind == SuggestErrorKind.INVALID_NAME
        assert error.video_id == video.id
        assert await count_rows(database, SemitagDB) == 0


class TestResolve:
    """Resolving a semitag into a video tag."""

    async def test_resolve_attaches_tag(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_video: VideoMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        video = await make_video()
        tag = await make_tag(names=["Bad Apple!!"])
        semitag = unwrap(
            await catalog.add_semitag_to_video(
                video_id=video.id, name="bad apple", actor_id=actor
            )
        )
        notification_sink.records.clear()

        resolved = unwrap(await catalog.resolve_semitag(semitag.id, tag.id, actor_id=actor))

        (video_tag,) = await catalog.video_tags(video.id)
        assert resolved.is_checked
        assert resolved.video_tag_id == video_tag.id
        assert video_tag.tag_id == tag.id
        assert [(r.entity, r.type) for r in notification_sink.records] == [
            (EntityKind.VIDEO_TAG, "ATTACH"),
            (EntityKind.SEMITAG, "RESOLVE"),
        ]
        assert notification_sink.records[1].payload["video_tag_id"] == str(video_tag.id)

    async def test_resolve_reuses_active_tag(
        self,
        catalog: Catalog,
        actor: str,
        database: DatabaseManager,
        make_tag: TagMaker,
        make_video: VideoMaker,
    ) -> None:
        video = await make_video()
        tag = await make_tag()
        attached = unwrap(
            await catalog.add_tag_to_video(video_id=video.id, tag_id=tag.id, actor_id=actor)
        )
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="dup", actor_id=actor)
        )
        assert not await catalog.can_resolve_to(semitag_id=semitag.id, tag_id=tag.id)

        resolved = unwrap(await catalog.resolve_semitag(semitag.id, tag.id, actor_id=actor))

        assert resolved.video_tag_id == attached.id
        assert await count_rows(database, VideoTagDB) == 1
        history = await catalog.video_tag_history(video_id=video.id, tag_id=tag.id)
        assert [r.type for r in history] == ["ATTACH"]

    async def test_resolve_reattaches_removed_tag(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_video: VideoMaker,
    ) -> None:
        video = await make_video()
        tag = await make_tag()
        attached = unwrap(
            await catalog.add_tag_to_video(video_id=video.id, tag_id=tag.id, actor_id=actor)
        )
        unwrap(
            await catalog.remove_tag_from_video(
                video_id=video.id, tag_id=tag.id, actor_id=actor
            )
        )
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="back", actor_id=actor)
        )
        assert await catalog.can_resolve_to(semitag_id=semitag.id, tag_id=tag.id)

        resolved = unwrap(await catalog.resolve_semitag(semitag.id, tag.id, actor_id=actor))

        assert resolved.video_tag_id == attached.id
        history = await catalog.video_tag_history(video_id=video.id, tag_id=tag.id)
        assert [r.type for r in history] == ["ATTACH", "DETACH", "REATTACH"]

    async def test_resolve_errors(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_video: VideoMaker,
        unknown_id: uuid.UUID,
    ) -> None:
        video = await make_video()
        tag = await make_tag()
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="x", actor_id=actor)
        )

        missing = unwrap_err(await catalog.resolve_semitag(unknown_id, tag.id, actor_id=actor))
        assert missing.kind == ResolveSemitagErrorKind.NOT_FOUND

        no_tag = unwrap_err(
            await catalog.resolve_semitag(semitag.id, unknown_id, actor_id=actor)
        )
        assert no_tag.kind == ResolveSemitagErrorKind.TAG_NOT_FOUND
        assert not (await catalog.get_semitag(semitag.id)).is_checked  # type: ignore[union-attr]

        resolved = unwrap(await catalog.resolve_semitag(semitag.id, tag.id, actor_id=actor))
        again = unwrap_err(await catalog.resolve_semitag(semitag.id, tag.id, actor_id=actor))
        assert again.kind == ResolveSemitagErrorKind.ALREADY_CHECKED
        assert again.semitag == resolved


class TestReject:
    """Rejecting a semitag."""

    async def test_reject(
        self,
        catalog: Catalog,
        actor: str,
        database: DatabaseManager,
        make_video: VideoMaker,
        unknown_id: uuid.UUID,
    ) -> None:
        video = await make_video()
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="noise", actor_id=actor)
        )

        rejected = unwrap(await catalog.reject_semitag(semitag.id, actor_id=actor))

        assert rejected.is_checked
        assert rejected.video_tag_id is None
        assert await count_rows(database, VideoTagDB) == 0
        assert await catalog.semitags_of(video.id, checked=True) == [rejected]
        assert await catalog.semitags_of(video.id, checked=False) == []

        again = unwrap_err(await catalog.reject_semitag(semitag.id, actor_id=actor))
        assert again.kind == RejectSemitagErrorKind.ALREADY_CHECKED
        assert again.semitag == rejected

        missing = unwrap_err(await catalog.reject_semitag(unknown_id, actor_id=actor))
        assert missing.kind == RejectSemitagErrorKind.NOT_FOUND


class TestSuggestTags:
    """Prefix-matched resolution candidates."""

    async def test_candidates_shortest_first(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_video: VideoMaker,
    ) -> None:
        video = await make_video()
        long_tag = await make_tag(names=["Touhou Project"])
        short_tag = await make_tag(names=["touhou", "Touhou Remix"])
        await make_tag(names=["Vocaloid"])
        unwrap(
            await catalog.add_tag_to_video(
                video_id=video.id, tag_id=short_tag.id, actor_id=actor
            )
        )
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="TOUHOU", actor_id=actor)
        )

        suggestions = await catalog.suggest_tags(semitag.id)

        assert [(s.tag_id, s.matched_name) for s in suggestions] == [
            (short_tag.id, "touhou"),
            (long_tag.id, "Touhou Project"),
        ]
        assert [s.can_resolve_to for s in suggestions] == [False, True]
        assert all(s.semitag_id == semitag.id for s in suggestions)

    async def test_limit_and_unknown_semitag(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_video: VideoMaker,
        unknown_id: uuid.UUID,
    ) -> None:
        video = await make_video()
        for suffix in ("a", "bb", "ccc"):
            await make_tag(names=[f"mad-{suffix}"])
        semitag = unwrap(
            await catalog.add_semitag_to_video(video_id=video.id, name="mad", actor_id=actor)
        )

        suggestions = await catalog.suggest_tags(semitag.id, limit=2)

        assert [s.matched_name for s in suggestions] == ["mad-a", "mad-bb"]
        assert await catalog.suggest_tags(unknown_id) == []
