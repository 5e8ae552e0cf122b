"""
Notification sink for committed events.

Every event appended inside a transaction is pushed to a sink once that
transaction has committed. Delivery is fire-and-forget: it never takes part
in the transaction and a failing sink never affects committed state.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List

from madcatalog.models.events import EventRecord

logger = logging.getLogger(__name__)


class NotificationSink(ABC):
    """
    Abstract receiver of committed event records.

    Examples
    --------
    >>> class CollectingSink(NotificationSink):
    ...     def __init__(self) -> None:
    ...         self.records = []
    ...     async def publish(self, record: EventRecord) -> None:
    ...         self.records.append(record)
    """

    @abstractmethod
    async def publish(self, record: EventRecord) -> None:
        """
        Deliver one committed event record.

        Parameters
        ----------
        record : EventRecord
            The committed event.
        """
        pass


class LoggingNotificationSink(NotificationSink):
    """Default sink writing one DEBUG line per committed event."""

    async def publish(self, record: EventRecord) -> None:
        logger.debug(
            "Event %s#%d %s on %s by %s",
            record.entity.value,
            record.event_id,
            record.type,
            record.entity_id,
            record.actor_id,
        )


class CollectingNotificationSink(NotificationSink):
    """Sink keeping every record in memory, used by tests and the CLI."""

    def __init__(self) -> None:
        self.records: List[EventRecord] = []

    async def publish(self, record: EventRecord) -> None:
        self.records.append(record)


async def dispatch_committed_events(
    records: Iterable[EventRecord], sink: NotificationSink
) -> int:
    """
    Push committed event records to ``sink`` in append order.

    Parameters
    ----------
    records : Iterable[EventRecord]
        Records drained from a committed session's outbox.
    sink : NotificationSink
        Receiver of the records.

    Returns
    -------
    int
        Number of records delivered successfully.
    """
    delivered = 0
    for record in records:
        try:
            await sink.publish(record)
            delivered += 1
        except Exception:
            logger.exception(
                "Notification sink failed for %s event %d",
                record.entity.value,
                record.event_id,
            )
    return delivered
