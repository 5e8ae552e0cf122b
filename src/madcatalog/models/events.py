"""
Event record models.

Defines the Pydantic model used to read event log rows and to push committed
events to the notification sink.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from madcatalog.models.enums import EntityKind


class EventRecord(BaseModel):
    """Immutable view of one appended event."""

    entity: EntityKind = Field(..., description="Kind of entity owning the event")
    entity_id: uuid.UUID = Field(..., description="Id of the owning entity")
    event_id: int = Field(..., description="Monotonic event id")
    type: str = Field(..., description="Transition kind, e.g. ATTACH")
    actor_id: str = Field(..., description="Actor that caused the transition")
    created_at: datetime = Field(..., description="When the event was appended")
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)
