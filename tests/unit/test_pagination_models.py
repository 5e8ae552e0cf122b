"""
Tests for connection arguments and cursors.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from madcatalog.exceptions import InvalidPaginationError
from madcatalog.models.enums import SortOrder
from madcatalog.models.pagination import ConnectionArgs, CursorKey


class TestCursorKey:
    """Opaque cursor encoding."""

    def test_decode_returns_encoded_key(self) -> None:
        key = CursorKey(
            created_at=datetime(2026, 10, 19, 12, 30, 5, 123456, tzinfo=timezone.utc),
            id=uuid.UUID("0190a5f2-6c1e-7d3a-9b4e-2f8c1d0e5a7b"),
        )
        decoded = CursorKey.decode(key.encode())
        assert decoded == key

    def test_cursor_is_url_safe(self) -> None:
        key = CursorKey(created_at=datetime.now(timezone.utc), id=uuid.uuid4())
        cursor = key.encode()
        assert "+" not in cursor
        assert "/" not in cursor

    @pytest.mark.parametrize(
        "cursor",
        ["not-a-cursor", "", "W10=", "WyJub3QtYS1kYXRlIiwgIngiXQ=="],
    )
    def test_malformed_cursor(self, cursor: str) -> None:
        with pytest.raises(InvalidPaginationError, match="Malformed cursor"):
            CursorKey.decode(cursor)


class TestConnectionArgs:
    """Argument validation."""

    def test_defaults(self) -> None:
        args = ConnectionArgs()
        args.check()
        assert args.order == SortOrder.ASC
        assert args.after_key is None
        assert args.before_key is None

    def test_first_and_last_together_is_invalid(self) -> None:
        with pytest.raises(InvalidPaginationError) as exc_info:
            ConnectionArgs(first=5, last=5).check()
        assert exc_info.value.argument == "last"

    @pytest.mark.parametrize("argument", ["first", "last"])
    def test_negative_count_is_invalid(self, argument: str) -> None:
        with pytest.raises(InvalidPaginationError) as exc_info:
            ConnectionArgs(**{argument: -1}).check()
        assert exc_info.value.argument == argument

    def test_count_above_maximum_is_invalid(self) -> None:
        ConnectionArgs(first=100).check(max_page_size=100)
        with pytest.raises(InvalidPaginationError, match="must not exceed 100"):
            ConnectionArgs(first=101).check(max_page_size=100)

    def test_zero_is_valid(self) -> None:
        ConnectionArgs(first=0).check(max_page_size=10)

    def test_cursor_keys_are_decoded(self) -> None:
        key = CursorKey(created_at=datetime.now(timezone.utc), id=uuid.uuid4())
        args = ConnectionArgs(after=key.encode(), before=key.encode())
        assert args.after_key == key
        assert args.before_key == key
