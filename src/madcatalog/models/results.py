"""
Result values for fallible catalogue operations.

Operations return ``Ok(value)`` or ``Err(error)`` instead of raising for the
failures their contract names. Each operation's error is a frozen dataclass
whose ``kind`` is a closed ``str`` Enum, so callers can branch on every
declared variant.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result carrying an operation-scoped error."""

    error: E


Result = Union[Ok[T], Err[E]]


def is_ok(result: "Result[Any, Any]") -> bool:
    """Return True if ``result`` is an ``Ok``."""
    return isinstance(result, Ok)


def is_err(result: "Result[Any, Any]") -> bool:
    """Return True if ``result`` is an ``Err``."""
    return isinstance(result, Err)
