"""
Integration tests for the tag graph.

Covers registration with its rollback guarantees, the explicit parent
invariant, edge lifecycle, name and category edits, category typing and
the paginated read paths.
"""

from __future__ import annotations

import uuid

import pytest

from madcatalog.catalog import Catalog
from madcatalog.config.database import DatabaseManager
from madcatalog.db.models import Tag as TagDB
from madcatalog.db.models import TagEvent as TagEventDB
from madcatalog.db.models import TagParent as TagParentDB
from madcatalog.exceptions import InvalidPaginationError
from madcatalog.models.enums import CategoryType, EntityKind, SortOrder, TagType
from madcatalog.models.pagination import ConnectionArgs
from madcatalog.models.registration import SemitaggingIntent
from madcatalog.services.notifications import CollectingNotificationSink
from madcatalog.services.tag_graph import (
    AddParentErrorKind,
    EdgeErrorKind,
    RegisterTagErrorKind,
    TagEditErrorKind,
)
from tests.factories.tag_factory import TagCreateFactory
from tests.integration.helpers import (
    TagMaker,
    VideoMaker,
    count_rows,
    unwrap,
    unwrap_err,
)

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


async def active_explicit_count(catalog: Catalog, tag_id: uuid.UUID) -> int:
    parents = await catalog.parents_of(tag_id, ConnectionArgs())
    return sum(1 for edge in parents.nodes if edge.is_explicit)


class TestRegisterTag:
    """Tag registration."""

    async def test_register_with_names_and_parents(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_category_tag: TagMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        music = await make_category_tag(CategoryType.MUSIC)
        touhou = await make_tag(names=["Touhou"])
        notification_sink.records.clear()

        data = TagCreateFactory.build(
            names=["  Bad Apple!!  ", "バッドアップル"],
            primary_index=1,
            explicit_parent_id=touhou.id,
            implicit_parent_ids=[music.id],
        )
        tag = unwrap(await catalog.register_tag(data, actor_id=actor))

        assert tag.primary_name == "バッドアップル"
        assert sorted(name.name for name in tag.names) == ["Bad Apple!!", "バッドアップル"]
        assert not tag.is_category_tag

        explicit = await catalog.explicit_parent_of(tag.id)
        assert explicit is not None
        assert explicit.parent_id == touhou.id
        assert explicit.created_by == actor

        parents = await catalog.parents_of(tag.id, ConnectionArgs())
        assert parents.total_count == 2
        category_parents = await catalog.parents_of(
            tag.id, ConnectionArgs(), category_only=True
        )
        assert [edge.parent_id for edge in category_parents.nodes] == [music.id]

        assert [(r.entity, r.type) for r in notification_sink.records] == [
            (EntityKind.TAG, "REGISTER"),
            (EntityKind.TAG_PARENT, "CREATE"),
            (EntityKind.TAG_PARENT, "CREATE"),
        ]
        assert all(r.actor_id == actor for r in notification_sink.records)

    async def test_duplicated_implicit_parent_creates_nothing(
        self,
        catalog: Catalog,
        actor: str,
        database: DatabaseManager,
        make_tag: TagMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        t2 = await make_tag()
        t3 = await make_tag()
        tags_before = await count_rows(database, TagDB)
        events_before = await count_rows(database, TagEventDB)
        notification_sink.records.clear()

        data = TagCreateFactory.build(implicit_parent_ids=[t2.id, t2.id, t3.id])
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))

        assert error.kind == RegisterTagErrorKind.DUPLICATED_IMPLICIT_PARENT
        assert error.offending_id == t2.id
        assert await count_rows(database, TagDB) == tags_before
        assert await count_rows(database, TagEventDB) == events_before
        assert await count_rows(database, TagParentDB) == 0
        assert notification_sink.records == []

    async def test_missing_parent_creates_nothing(
        self,
        catalog: Catalog,
        actor: str,
        database: DatabaseManager,
        make_tag: TagMaker,
        unknown_id: uuid.UUID,
    ) -> None:
        parent = await make_tag()

        data = TagCreateFactory.build(
            explicit_parent_id=parent.id, implicit_parent_ids=[unknown_id]
        )
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))

        assert error.kind == RegisterTagErrorKind.PARENT_NOT_FOUND
        assert error.offending_id == unknown_id
        assert await count_rows(database, TagDB) == 1
        assert await count_rows(database, TagParentDB) == 0

    @pytest.mark.parametrize(
        "overrides,kind",
        [
            ({"names": []}, RegisterTagErrorKind.NO_NAMES),
            ({"names": ["solo"], "primary_index": 1}, RegisterTagErrorKind.INVALID_PRIMARY_INDEX),
            ({"names": ["solo"], "primary_index": -1}, RegisterTagErrorKind.INVALID_PRIMARY_INDEX),
        ],
    )
    async def test_input_errors(
        self, catalog: Catalog, actor: str, overrides: dict, kind: RegisterTagErrorKind
    ) -> None:
        data = TagCreateFactory.build(**overrides)
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))
        assert error.kind == kind

    async def test_duplicated_name(self, catalog: Catalog, actor: str) -> None:
        data = TagCreateFactory.build(names=["MAD", "remix", "MAD"])
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))
        assert error.kind == RegisterTagErrorKind.DUPLICATED_NAME
        assert error.name == "MAD"

    async def test_duplicated_name_after_stripping(
        self, catalog: Catalog, actor: str, database: DatabaseManager
    ) -> None:
        tags_before = await count_rows(database, TagDB)
        data = TagCreateFactory.build(names=["Rock", "Rock "])

        assert data.names == ["Rock", "Rock"]
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))
        assert error.kind == RegisterTagErrorKind.DUPLICATED_NAME
        assert error.name == "Rock"
        assert await count_rows(database, TagDB) == tags_before

    async def test_explicit_parent_listed_as_implicit(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        parent = await make_tag()
        data = TagCreateFactory.build(
            explicit_parent_id=parent.id, implicit_parent_ids=[parent.id]
        )
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))
        assert error.kind == RegisterTagErrorKind.EXPLICIT_IMPLICIT_COLLISION
        assert error.offending_id == parent.id

    async def test_duplicated_resolve_semitag(
        self, catalog: Catalog, actor: str
    ) -> None:
        semitag_id = uuid.uuid4()
        data = TagCreateFactory.build(resolve_semitag_ids=[semitag_id, semitag_id])
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))
        assert error.kind == RegisterTagErrorKind.DUPLICATED_RESOLVE_SEMITAG
        assert error.offending_id == semitag_id

    async def test_missing_semitag(
        self, catalog: Catalog, actor: str, unknown_id: uuid.UUID
    ) -> None:
        data = TagCreateFactory.build(resolve_semitag_ids=[unknown_id])
        error = unwrap_err(await catalog.register_tag(data, actor_id=actor))
        assert error.kind == RegisterTagErrorKind.SEMITAG_NOT_FOUND
        assert await catalog.count_tags() == 0

    async def test_register_resolves_semitags(
        self, catalog: Catalog, actor: str, make_video: VideoMaker
    ) -> None:
        video = await make_video(semitaggings=[SemitaggingIntent(name="bad apple")])
        (semitag,) = await catalog.semitags_of(video.id)

        data = TagCreateFactory.build(
            names=["Bad Apple!!"], resolve_semitag_ids=[semitag.id]
        )
        tag = unwrap(await catalog.register_tag(data, actor_id=actor))

        resolved = await catalog.get_semitag(semitag.id)
        assert resolved is not None
        assert resolved.is_checked
        video_tags = await catalog.video_tags(video.id)
        assert [vt.tag_id for vt in video_tags] == [tag.id]
        assert resolved.video_tag_id == video_tags[0].id

        again = TagCreateFactory.build(resolve_semitag_ids=[semitag.id])
        error = unwrap_err(await catalog.register_tag(again, actor_id=actor))
        assert error.kind == RegisterTagErrorKind.SEMITAG_ALREADY_CHECKED
        assert error.semitag == resolved
        assert await catalog.count_tags() == 1


class TestExplicitParentInvariant:
    """A child has at most one active explicit parent edge."""

    async def test_explicitize_second_edge_is_refused(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        a = await make_tag()
        b = await make_tag()
        child = await make_tag(implicit_parent_ids=[a.id, b.id])
        edges = {e.parent_id: e for e in (await catalog.parents_of(child.id, ConnectionArgs())).nodes}

        promoted = unwrap(
            await catalog.explicitize_tag_parent(edges[a.id].id, actor_id=actor)
        )
        assert promoted.is_explicit

        error = unwrap_err(
            await catalog.explicitize_tag_parent(edges[b.id].id, actor_id=actor)
        )
        assert error.kind == EdgeErrorKind.ALREADY_EXPLICIT
        assert error.edge is not None
        assert error.edge.id == edges[a.id].id
        assert await active_explicit_count(catalog, child.id) == 1

    async def test_explicitize_explicit_edge(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        parent = await make_tag()
        child = await make_tag(explicit_parent_id=parent.id)
        edge = await catalog.explicit_parent_of(child.id)
        assert edge is not None

        error = unwrap_err(await catalog.explicitize_tag_parent(edge.id, actor_id=actor))

        assert error.kind == EdgeErrorKind.ALREADY_EXPLICIT
        assert error.edge == edge

    async def test_swap_explicit_parent(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        a = await make_tag()
        b = await make_tag()
        child = await make_tag(explicit_parent_id=a.id, implicit_parent_ids=[b.id])
        edges = {e.parent_id: e for e in (await catalog.parents_of(child.id, ConnectionArgs())).nodes}

        unwrap(await catalog.implicitize_tag_parent(edges[a.id].id, actor_id=actor))
        assert await catalog.explicit_parent_of(child.id) is None
        unwrap(await catalog.explicitize_tag_parent(edges[b.id].id, actor_id=actor))

        explicit = await catalog.explicit_parent_of(child.id)
        assert explicit is not None
        assert explicit.parent_id == b.id
        assert await active_explicit_count(catalog, child.id) == 1

        error = unwrap_err(
            await catalog.implicitize_tag_parent(edges[a.id].id, actor_id=actor)
        )
        assert error.kind == EdgeErrorKind.ALREADY_IMPLICIT

    async def test_add_explicit_parent_when_one_exists(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        a = await make_tag()
        b = await make_tag()
        child = await make_tag(explicit_parent_id=a.id)

        error = unwrap_err(
            await catalog.add_tag_parent(
                child_id=child.id, parent_id=b.id, is_explicit=True, actor_id=actor
            )
        )

        assert error.kind == AddParentErrorKind.EXPLICIT_PARENT_EXISTS
        assert error.edge is not None
        assert error.edge.parent_id == a.id
        assert await active_explicit_count(catalog, child.id) == 1

    async def test_unknown_edge(
        self, catalog: Catalog, actor: str, unknown_id: uuid.UUID
    ) -> None:
        error = unwrap_err(
            await catalog.explicitize_tag_parent(unknown_id, actor_id=actor)
        )
        assert error.kind == EdgeErrorKind.NOT_FOUND


class TestEdgeLifecycle:
    """add_parent / remove_parent and re-attachment."""

    async def test_self_loop(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        tag = await make_tag()
        error = unwrap_err(
            await catalog.add_tag_parent(child_id=tag.id, parent_id=tag.id, actor_id=actor)
        )
        assert error.kind == AddParentErrorKind.SELF_LOOP

    async def test_unknown_parent(
        self, catalog: Catalog, actor: str, make_tag: TagMaker, unknown_id: uuid.UUID
    ) -> None:
        tag = await make_tag()
        error = unwrap_err(
            await catalog.add_tag_parent(
                child_id=tag.id, parent_id=unknown_id, actor_id=actor
            )
        )
        assert error.kind == AddParentErrorKind.TAG_NOT_FOUND
        assert error.offending_id == unknown_id

    async def test_already_parent(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        parent = await make_tag()
        child = await make_tag(implicit_parent_ids=[parent.id])

        error = unwrap_err(
            await catalog.add_tag_parent(
                child_id=child.id, parent_id=parent.id, actor_id=actor
            )
        )

        assert error.kind == AddParentErrorKind.ALREADY_PARENT
        assert error.edge is not None
        assert not error.edge.is_explicit

    async def test_remove_then_reattach_reuses_row(
        self,
        catalog: Catalog,
        actor: str,
        database: DatabaseManager,
        make_tag: TagMaker,
    ) -> None:
        parent = await make_tag()
        child = await make_tag(implicit_parent_ids=[parent.id])
        (edge,) = (await catalog.parents_of(child.id, ConnectionArgs())).nodes

        removed = unwrap(await catalog.remove_tag_parent(edge.id, actor_id=actor))
        assert removed.is_removed
        assert (await catalog.parents_of(child.id, ConnectionArgs())).total_count == 0
        assert (await catalog.children_of(parent.id, ConnectionArgs())).total_count == 0

        again = unwrap_err(await catalog.remove_tag_parent(edge.id, actor_id=actor))
        assert again.kind == EdgeErrorKind.ALREADY_REMOVED
        promote = unwrap_err(await catalog.explicitize_tag_parent(edge.id, actor_id=actor))
        assert promote.kind == EdgeErrorKind.NOT_FOUND

        reattached = unwrap(
            await catalog.add_tag_parent(
                child_id=child.id, parent_id=parent.id, is_explicit=True, actor_id=actor
            )
        )
        assert reattached.id == edge.id
        assert reattached.is_explicit
        assert not reattached.is_removed
        assert await count_rows(database, TagParentDB) == 1

        history = await catalog.tag_history(child.id)
        edge_types = [r.type for r in history if r.entity == EntityKind.TAG_PARENT]
        assert edge_types == ["REATTACH", "REMOVE", "CREATE"]


class TestCategoryType:
    """One-hop category typing."""

    async def test_music_then_subtle(
        self,
        catalog: Catalog,
        actor: str,
        make_tag: TagMaker,
        make_category_tag: TagMaker,
    ) -> None:
        music = await make_category_tag(CategoryType.MUSIC, names=["music"])
        rock = await make_tag(names=["rock"], implicit_parent_ids=[music.id])
        assert await catalog.resolve_category_type(rock.id) == TagType.MUSIC

        copyright_tag = await make_category_tag(
            CategoryType.COPYRIGHT, names=["copyright"]
        )
        edge = unwrap(
            await catalog.add_tag_parent(
                child_id=rock.id, parent_id=copyright_tag.id, actor_id=actor
            )
        )
        assert await catalog.resolve_category_type(rock.id) == TagType.SUBTLE

        unwrap(await catalog.remove_tag_parent(edge.id, actor_id=actor))
        assert await catalog.resolve_category_type(rock.id) == TagType.MUSIC

    async def test_category_tag_has_own_type(self, catalog: Catalog, make_category_tag: TagMaker) -> None:
        series = await make_category_tag(CategoryType.SERIES)
        assert await catalog.resolve_category_type(series.id) == TagType.SERIES

    async def test_no_category_parent_is_unknown(
        self, catalog: Catalog, make_tag: TagMaker
    ) -> None:
        plain = await make_tag()
        child = await make_tag(implicit_parent_ids=[plain.id])
        assert await catalog.resolve_category_type(child.id) == TagType.UNKNOWN

    async def test_same_category_twice_is_not_subtle(
        self, catalog: Catalog, make_tag: TagMaker, make_category_tag: TagMaker
    ) -> None:
        first = await make_category_tag(CategoryType.CHARACTER)
        second = await make_category_tag(CategoryType.CHARACTER)
        child = await make_tag(implicit_parent_ids=[first.id, second.id])
        assert await catalog.resolve_category_type(child.id) == TagType.CHARACTER

    async def test_category_does_not_propagate_past_one_hop(
        self, catalog: Catalog, make_tag: TagMaker, make_category_tag: TagMaker
    ) -> None:
        music = await make_category_tag(CategoryType.MUSIC)
        rock = await make_tag(explicit_parent_id=music.id)
        punk = await make_tag(explicit_parent_id=rock.id)
        assert await catalog.resolve_category_type(punk.id) == TagType.UNKNOWN

    async def test_unknown_tag(self, catalog: Catalog, unknown_id: uuid.UUID) -> None:
        assert await catalog.resolve_category_type(unknown_id) is None

    async def test_change_category(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        tag = await make_tag()
        child = await make_tag(implicit_parent_ids=[tag.id])

        updated = unwrap(
            await catalog.change_tag_category(
                tag.id, is_category_tag=True, category=CategoryType.TACTICS, actor_id=actor
            )
        )

        assert updated.is_category_tag
        assert updated.category == CategoryType.TACTICS
        assert await catalog.resolve_category_type(child.id) == TagType.TACTICS
        history = await catalog.tag_history(tag.id)
        assert history[0].type == "CHANGE_CATEGORY"
        assert history[0].payload["to"] == {"is_category_tag": True, "category": "TACTICS"}


class TestTagNames:
    """Name edits."""

    async def test_name_lifecycle(
        self, catalog: Catalog, actor: str, make_tag: TagMaker
    ) -> None:
        tag = await make_tag(names=["Bad Apple"])

        tag = unwrap(await catalog.add_tag_name(tag.id, " 東方 ", actor_id=actor))
        assert {n.name for n in tag.names} == {"Bad Apple", "東方"}

        duplicate = unwrap_err(await catalog.add_tag_name(tag.id, "東方", actor_id=actor))
        assert duplicate.kind == TagEditErrorKind.DUPLICATED_NAME

        tag = unwrap(await catalog.change_tag_primary_name(tag.id, "東方", actor_id=actor))
        assert tag.primary_name == "東方"
        primary = await catalog.tag_names(tag.id, primary=True)
        assert [n.name for n in primary] == ["東方"]

        already = unwrap_err(
            await catalog.change_tag_primary_name(tag.id, "東方", actor_id=actor)
        )
        assert already.kind == TagEditErrorKind.ALREADY_PRIMARY

        refused = unwrap_err(await catalog.remove_tag_name(tag.id, "東方", actor_id=actor))
        assert refused.kind == TagEditErrorKind.PRIMARY_NAME

        tag = unwrap(await catalog.remove_tag_name(tag.id, "Bad Apple", actor_id=actor))
        assert [n.name for n in tag.names] == ["東方"]

        missing = unwrap_err(
            await catalog.remove_tag_name(tag.id, "Bad Apple", actor_id=actor)
        )
        assert missing.kind == TagEditErrorKind.NAME_NOT_FOUND

        history = await catalog.tag_history(tag.id)
        assert [r.type for r in history] == [
            "REMOVE_NAME",
            "CHANGE_PRIMARY_NAME",
            "ADD_NAME",
            "REGISTER",
        ]
        assert [r.type for r in await catalog.tag_history(tag.id, limit=2, skip=1)] == [
            "CHANGE_PRIMARY_NAME",
            "ADD_NAME",
        ]

    async def test_unknown_tag(
        self, catalog: Catalog, actor: str, unknown_id: uuid.UUID
    ) -> None:
        error = unwrap_err(await catalog.add_tag_name(unknown_id, "x", actor_id=actor))
        assert error.kind == TagEditErrorKind.TAG_NOT_FOUND


class TestTagReads:
    """Paginated and filtered reads."""

    async def test_find_tags_by_prefix(self, catalog: Catalog, make_tag: TagMaker) -> None:
        await make_tag(names=["Touhou"])
        await make_tag(names=["touhou remix"])
        await make_tag(names=["Vocaloid", "TOUHOU-ish"])
        await make_tag(names=["Idolmaster"])

        found = await catalog.find_tags(ConnectionArgs(), query="touhou")

        assert found.total_count == 3
        assert await catalog.count_tags() == 4

    async def test_forward_and_backward_pages(
        self, catalog: Catalog, make_tag: TagMaker
    ) -> None:
        tags = [await make_tag() for _ in range(5)]
        ids = [tag.id for tag in tags]

        first_page = await catalog.find_tags(ConnectionArgs(first=2))
        assert [t.id for t in first_page.nodes] == ids[:2]
        assert first_page.page_info.has_next_page
        assert not first_page.page_info.has_previous_page

        second_page = await catalog.find_tags(
            ConnectionArgs(first=2, after=first_page.page_info.end_cursor)
        )
        assert [t.id for t in second_page.nodes] == ids[2:4]
        assert second_page.page_info.has_previous_page

        last_page = await catalog.find_tags(ConnectionArgs(last=2))
        assert [t.id for t in last_page.nodes] == ids[3:]
        assert last_page.page_info.has_previous_page
        assert not last_page.page_info.has_next_page

        before = await catalog.find_tags(
            ConnectionArgs(last=1, before=second_page.page_info.start_cursor)
        )
        assert [t.id for t in before.nodes] == [ids[1]]
        assert before.page_info.has_next_page

        newest_first = await catalog.find_tags(ConnectionArgs(first=2, order=SortOrder.DESC))
        assert [t.id for t in newest_first.nodes] == [ids[4], ids[3]]

    async def test_first_and_last_together(self, catalog: Catalog) -> None:
        with pytest.raises(InvalidPaginationError):
            await catalog.find_tags(ConnectionArgs(first=1, last=1))

    async def test_children_of(
        self, catalog: Catalog, make_tag: TagMaker
    ) -> None:
        parent = await make_tag()
        children = [await make_tag(implicit_parent_ids=[parent.id]) for _ in range(3)]

        page = await catalog.children_of(parent.id, ConnectionArgs(first=2))

        assert page.total_count == 3
        assert [edge.child_id for edge in page.nodes] == [c.id for c in children[:2]]
        assert page.page_info.has_next_page

    async def test_get_tag_and_edge(
        self, catalog: Catalog, make_tag: TagMaker, unknown_id: uuid.UUID
    ) -> None:
        parent = await make_tag()
        child = await make_tag(explicit_parent_id=parent.id)
        edge = await catalog.explicit_parent_of(child.id)
        assert edge is not None

        assert await catalog.get_tag(child.id) == child
        assert await catalog.get_tag_parent(edge.id) == edge
        assert await catalog.get_tag(unknown_id) is None
