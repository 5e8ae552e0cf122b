"""
Integration tests for transactions, savepoints and the event outbox.
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from madcatalog.config.database import DatabaseManager, is_serialization_failure
from madcatalog.config.settings import settings
from madcatalog.db.models import TagEvent as TagEventDB
from madcatalog.db.transaction import AbortAtomic, atomic, get_outbox
from madcatalog.exceptions import ActorRequiredError, InternalServiceError
from madcatalog.models.enums import EntityKind
from madcatalog.repositories.event_log_repository import EventLogRepository
from madcatalog.services.notifications import CollectingNotificationSink
from tests.integration.helpers import TagMaker, count_rows

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


class SerializationFailure(Exception):
    """Driver error carrying a PostgreSQL SQLSTATE."""

    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"could not serialize access ({sqlstate})")
        self.sqlstate = sqlstate


def conflict(sqlstate: str = "40001") -> OperationalError:
    return OperationalError("UPDATE tags", {}, SerializationFailure(sqlstate))


class TestRunInTransaction:
    """Retry and error wrapping."""

    @pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
    async def test_serialization_conflict_is_retried(
        self, database: DatabaseManager, sqlstate: str
    ) -> None:
        attempts = []

        async def operation(session: AsyncSession) -> str:
            attempts.append(session)
            if len(attempts) == 1:
                raise conflict(sqlstate)
            return "committed"

        assert await database.run_in_transaction(operation) == "committed"
        assert len(attempts) == 2
        assert attempts[0] is not attempts[1]

    async def test_sqlite_lock_timeout_is_retried(
        self, database: DatabaseManager
    ) -> None:
        attempts = 0

        async def operation(session: AsyncSession) -> str:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise OperationalError(
                    "INSERT INTO video_tags", {}, Exception("database is locked")
                )
            return "committed"

        assert await database.run_in_transaction(operation) == "committed"
        assert attempts == 2

    async def test_retries_are_bounded(
        self, database: DatabaseManager, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings, "db_serialization_retries", 2)
        attempts = 0

        async def operation(session: AsyncSession) -> None:
            nonlocal attempts
            attempts += 1
            raise conflict()

        with pytest.raises(InternalServiceError) as exc_info:
            await database.run_in_transaction(operation)

        assert attempts == 3
        assert isinstance(exc_info.value.original_error, OperationalError)
        assert exc_info.value.message == "Internal server error"

    async def test_other_storage_errors_are_wrapped(
        self, database: DatabaseManager
    ) -> None:
        attempts = 0

        async def operation(session: AsyncSession) -> None:
            nonlocal attempts
            attempts += 1
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

        with pytest.raises(InternalServiceError):
            await database.run_in_transaction(operation)
        assert attempts == 1

    async def test_application_errors_propagate(self, database: DatabaseManager) -> None:
        async def operation(session: AsyncSession) -> None:
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            await database.run_in_transaction(operation)


class TestOutbox:
    """Staged events follow the fate of their savepoint."""

    async def test_rolled_back_savepoint_drops_its_events(
        self,
        database: DatabaseManager,
        make_tag: TagMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        tag = await make_tag()
        events_before = await count_rows(database, TagEventDB)
        notification_sink.records.clear()
        event_log = EventLogRepository()

        async def operation(session: AsyncSession) -> int:
            async with atomic(session):
                await event_log.append(
                    session,
                    entity=EntityKind.TAG,
                    entity_id=tag.id,
                    type="ADD_NAME",
                    actor_id="moderator-1",
                    payload={"name": "kept"},
                )
                with pytest.raises(RuntimeError):
                    async with atomic(session):
                        await event_log.append(
                            session,
                            entity=EntityKind.TAG,
                            entity_id=tag.id,
                            type="ADD_NAME",
                            actor_id="moderator-1",
                            payload={"name": "dropped"},
                        )
                        raise RuntimeError("abort inner block")
            return len(get_outbox(session))

        staged = await database.run_in_transaction(operation)

        assert staged == 1
        assert await count_rows(database, TagEventDB) == events_before + 1
        assert [r.payload for r in notification_sink.records] == [{"name": "kept"}]

    async def test_abort_atomic_hands_back_result(
        self,
        database: DatabaseManager,
        make_tag: TagMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        tag = await make_tag()
        events_before = await count_rows(database, TagEventDB)
        notification_sink.records.clear()

        async def operation(session: AsyncSession) -> str:
            try:
                async with atomic(session):
                    await EventLogRepository().append(
                        session,
                        entity=EntityKind.TAG,
                        entity_id=tag.id,
                        type="ADD_NAME",
                        actor_id="moderator-1",
                    )
                    raise AbortAtomic("nested operation failed")
            except AbortAtomic as aborted:
                return aborted.result  # type: ignore[no-any-return]

        assert await database.run_in_transaction(operation) == "nested operation failed"
        assert await count_rows(database, TagEventDB) == events_before
        assert notification_sink.records == []

    async def test_failed_transaction_delivers_nothing(
        self,
        database: DatabaseManager,
        make_tag: TagMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        tag = await make_tag()
        notification_sink.records.clear()

        async def operation(session: AsyncSession) -> None:
            await EventLogRepository().append(
                session,
                entity=EntityKind.TAG,
                entity_id=tag.id,
                type="ADD_NAME",
                actor_id="moderator-1",
            )
            raise conflict("XX000")

        with pytest.raises(InternalServiceError):
            await database.run_in_transaction(operation)
        assert notification_sink.records == []

    async def test_append_requires_actor(
        self, database: DatabaseManager, make_tag: TagMaker
    ) -> None:
        tag = await make_tag()

        async def operation(session: AsyncSession) -> None:
            await EventLogRepository().append(
                session,
                entity=EntityKind.TAG,
                entity_id=tag.id,
                type="ADD_NAME",
                actor_id="",
            )

        with pytest.raises(ActorRequiredError):
            await database.run_in_transaction(operation)

    async def test_session_dependency_commits_and_dispatches(
        self,
        database: DatabaseManager,
        make_tag: TagMaker,
        notification_sink: CollectingNotificationSink,
    ) -> None:
        tag = await make_tag()
        events_before = await count_rows(database, TagEventDB)
        notification_sink.records.clear()

        async for session in database.get_session():
            await EventLogRepository().append(
                session,
                entity=EntityKind.TAG,
                entity_id=tag.id,
                type="ADD_NAME",
                actor_id="moderator-1",
            )

        assert await count_rows(database, TagEventDB) == events_before + 1
        assert len(notification_sink.records) == 1


class SQLiteBusy(Exception):
    """sqlite3 error carrying the extended error name."""

    sqlite_errorname = "SQLITE_BUSY"


@pytest.mark.parametrize(
    ("orig", "retryable"),
    [
        (SerializationFailure("40001"), True),
        (SerializationFailure("40P01"), True),
        (SerializationFailure("23505"), False),
        (SQLiteBusy("busy"), True),
        (Exception("database is locked"), True),
        (Exception("database table is locked"), True),
        (Exception("disk I/O error"), False),
    ],
)
async def test_is_serialization_failure(orig: Exception, retryable: bool) -> None:
    error = OperationalError("UPDATE tags", {}, orig)
    assert is_serialization_failure(error) is retryable
