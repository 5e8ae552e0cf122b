"""
Database configuration and connection management.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from madcatalog.config.settings import settings
from madcatalog.db.models import Base
from madcatalog.db.transaction import drain_outbox
from madcatalog.exceptions import InternalServiceError
from madcatalog.services.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    dispatch_committed_events,
)

logger = logging.getLogger(__name__)

# Metadata for migrations
metadata = Base.metadata

T = TypeVar("T")

# PostgreSQL serialization_failure and deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})

# SQLite lock contention outlasting the busy timeout
RETRYABLE_SQLITE_ERRORS = frozenset({"SQLITE_BUSY", "SQLITE_LOCKED"})
SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def is_serialization_failure(exc: DBAPIError) -> bool:
    """
    Check whether a driver error is a retryable write conflict.

    Covers PostgreSQL serialization failures and deadlocks, and SQLite
    busy/locked errors.
    """
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in RETRYABLE_SQLSTATES:
        return True
    if getattr(orig, "sqlite_errorname", None) in RETRYABLE_SQLITE_ERRORS:
        return True
    message = str(orig).lower()
    return any(text in message for text in SQLITE_LOCK_MESSAGES)


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Let SQLAlchemy own BEGIN on SQLite so SAVEPOINTs behave.

    The sqlite3 driver defers BEGIN until the first DML statement, which
    breaks ``begin_nested()``. Disabling the driver's own transaction
    handling and emitting BEGIN explicitly restores it.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent writers
    queue on the busy timeout and the later one reads the committed state
    instead of failing to upgrade a shared lock mid-transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class DatabaseManager:
    """Manages database connections, sessions and transactional runs."""

    def __init__(self, notification_sink: Optional[NotificationSink] = None) -> None:
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self.notification_sink: NotificationSink = (
            notification_sink or LoggingNotificationSink()
        )

    def get_engine(self) -> AsyncEngine:
        """Get or create async database engine."""
        if self._engine is None:
            database_url = settings.effective_database_url

            engine_kwargs: dict[str, Any] = {
                "echo": settings.debug or settings.db_log_queries,
                "future": True,
            }

            if settings.is_sqlite:
                if ":memory:" in database_url or database_url.endswith("://"):
                    # One shared connection keeps the in-memory schema alive
                    engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {
                    "check_same_thread": False,
                    "timeout": settings.db_command_timeout,
                }
            else:
                engine_kwargs.update(
                    {
                        "pool_pre_ping": True,
                        "pool_recycle": 3600,
                        "isolation_level": settings.db_isolation_level,
                    }
                )
                if "+asyncpg" in database_url:
                    engine_kwargs["connect_args"] = {
                        "command_timeout": settings.db_command_timeout
                    }

            self._engine = create_async_engine(database_url, **engine_kwargs)
            if settings.is_sqlite:
                enable_sqlite_savepoints(self._engine)
        return self._engine

    def get_session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get or create session factory."""
        if self._session_factory is None:
            engine = self.get_engine()
            self._session_factory = async_sessionmaker(
                bind=engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_factory

    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get async database session; committed events are dispatched."""
        session_factory = self.get_session_factory()
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                drain_outbox(session)
                raise
            finally:
                await session.close()
            await dispatch_committed_events(
                drain_outbox(session), self.notification_sink
            )

    async def run_in_transaction(
        self, operation: Callable[[AsyncSession], Awaitable[T]]
    ) -> T:
        """
        Run one operation in its own transaction and commit it.

        Serialization conflicts are retried with a fresh session so the
        losing caller re-reads current state; its preconditions then report
        the now-committed outcome (e.g. ``ALREADY_CHECKED``). Any other
        storage failure is logged and raised as ``InternalServiceError``.

        Parameters
        ----------
        operation : Callable[[AsyncSession], Awaitable[T]]
            Coroutine function performing the reads and writes.

        Returns
        -------
        T
            Whatever ``operation`` returned.
        """
        attempts = settings.db_serialization_retries + 1
        session_factory = self.get_session_factory()

        for attempt in range(1, attempts + 1):
            async with session_factory() as session:
                try:
                    result = await operation(session)
                    await session.commit()
                except DBAPIError as e:
                    await session.rollback()
                    drain_outbox(session)
                    if is_serialization_failure(e) and attempt < attempts:
                        logger.info(
                            "Serialization conflict, retrying (attempt %d of %d)",
                            attempt,
                            attempts,
                        )
                        continue
                    logger.exception(
                        "Database error in %s (attempt %d)",
                        getattr(operation, "__qualname__", repr(operation)),
                        attempt,
                    )
                    raise InternalServiceError(original_error=e) from e
                except SQLAlchemyError as e:
                    await session.rollback()
                    drain_outbox(session)
                    logger.exception(
                        "Unexpected storage failure in %s",
                        getattr(operation, "__qualname__", repr(operation)),
                    )
                    raise InternalServiceError(original_error=e) from e
                except BaseException:
                    await session.rollback()
                    drain_outbox(session)
                    raise
                committed = drain_outbox(session)

            await dispatch_committed_events(committed, self.notification_sink)
            return result

        # Unreachable: the last attempt either returns or raises
        raise InternalServiceError()

    async def close(self) -> None:
        """Close database connections."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
        self._session_factory = None

    async def create_tables(self) -> None:
        """Create database tables."""
        engine = self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop database tables."""
        engine = self.get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)


# Global database manager instance
db_manager = DatabaseManager()
