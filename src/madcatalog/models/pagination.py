"""
Cursor pagination models.

Defines relay-style connection arguments and results. A cursor is an opaque
URL-safe token encoding the ordering key ``(created_at, id)`` of one row.
"""

from __future__ import annotations

import base64
import binascii
import json
import uuid
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from madcatalog.exceptions import InvalidPaginationError
from madcatalog.models.enums import SortOrder

NodeType = TypeVar("NodeType")


class CursorKey(BaseModel):
    """Decoded ordering key of one row."""

    created_at: datetime
    id: uuid.UUID

    def encode(self) -> str:
        """Encode the key as an opaque cursor."""
        raw = json.dumps([self.created_at.isoformat(), str(self.id)])
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")

    @classmethod
    def decode(cls, cursor: str) -> "CursorKey":
        """
        Decode an opaque cursor.

        Raises
        ------
        InvalidPaginationError
            If the cursor was not produced by ``encode``.
        """
        try:
            raw = base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
            created_at, key_id = json.loads(raw)
            return cls(
                created_at=datetime.fromisoformat(created_at), id=uuid.UUID(key_id)
            )
        except (binascii.Error, UnicodeError, ValueError, TypeError) as e:
            raise InvalidPaginationError(f"Malformed cursor: {cursor!r}") from e


class ConnectionArgs(BaseModel):
    """
    Relay-style pagination arguments.

    ``first`` takes N rows from the front in ordering order and ``last``
    takes N rows from the back; ``after``/``before`` bound the window by
    cursor. Combining ``first`` and ``last`` is invalid. Without either,
    the whole bounded window is returned.
    """

    first: Optional[int] = None
    after: Optional[str] = None
    last: Optional[int] = None
    before: Optional[str] = None
    order: SortOrder = SortOrder.ASC

    def check(self, max_page_size: Optional[int] = None) -> None:
        """
        Validate the argument combination.

        Raises
        ------
        InvalidPaginationError
            If first and last are combined, a count is negative, or a
            count exceeds ``max_page_size``.
        """
        if self.first is not None and self.last is not None:
            raise InvalidPaginationError(
                "Passing both 'first' and 'last' is not supported", argument="last"
            )
        for argument in ("first", "last"):
            value = getattr(self, argument)
            if value is None:
                continue
            if value < 0:
                raise InvalidPaginationError(
                    f"'{argument}' must not be negative", argument=argument
                )
            if max_page_size is not None and value > max_page_size:
                raise InvalidPaginationError(
                    f"'{argument}' must not exceed {max_page_size}", argument=argument
                )

    @property
    def after_key(self) -> Optional[CursorKey]:
        """Decoded ``after`` cursor."""
        return CursorKey.decode(self.after) if self.after else None

    @property
    def before_key(self) -> Optional[CursorKey]:
        """Decoded ``before`` cursor."""
        return CursorKey.decode(self.before) if self.before else None


class PageInfo(BaseModel):
    """Relay page info."""

    has_next_page: bool
    has_previous_page: bool
    start_cursor: Optional[str] = None
    end_cursor: Optional[str] = None


class Edge(BaseModel, Generic[NodeType]):
    """One node with its cursor."""

    cursor: str
    node: NodeType


class Connection(BaseModel, Generic[NodeType]):
    """Page of nodes in ordering order."""

    edges: List[Edge[NodeType]] = Field(default_factory=list)
    page_info: PageInfo
    total_count: int

    @property
    def nodes(self) -> List[NodeType]:
        """Nodes of the page without cursors."""
        return [edge.node for edge in self.edges]
