"""
Savepoint and event outbox helpers.

Every mutating operation runs inside ``atomic(session)``: a SAVEPOINT that is
released when the operation completes and rolled back on any exception,
including ``asyncio.CancelledError``. Event records appended inside the
savepoint are staged in the session's outbox and dropped together with the
savepoint, so a rolled-back state change never leaves a notification behind.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from madcatalog.models.events import EventRecord

OUTBOX_KEY = "madcatalog.event_outbox"


def get_outbox(session: AsyncSession) -> list["EventRecord"]:
    """Return the list of event records staged on this session."""
    outbox: list["EventRecord"] = session.info.setdefault(OUTBOX_KEY, [])
    return outbox


def stage_event(session: AsyncSession, record: "EventRecord") -> None:
    """Stage a flushed event record for delivery after commit."""
    get_outbox(session).append(record)


def drain_outbox(session: AsyncSession) -> list["EventRecord"]:
    """Remove and return every staged event record."""
    outbox = get_outbox(session)
    drained = list(outbox)
    outbox.clear()
    return drained


@asynccontextmanager
async def atomic(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block of writes as one atomic unit inside the current transaction.

    Parameters
    ----------
    session : AsyncSession
        Database session. A transaction is started if none is active.

    Yields
    ------
    AsyncSession
        The same session, inside a SAVEPOINT.
    """
    outbox = get_outbox(session)
    mark = len(outbox)
    try:
        async with session.begin_nested():
            yield session
    except BaseException:
        del outbox[mark:]
        raise


class AbortAtomic(Exception):
    """
    Roll back the enclosing ``atomic`` block and hand back a result.

    Raised when a failure is discovered after some writes were already
    flushed (e.g. a nested operation returned an error). The caller catches
    it outside the block and returns ``result``.
    """

    def __init__(self, result: Any) -> None:
        self.result = result
        super().__init__(repr(result))
