"""
Shared helpers for madcatalog CLI commands.

Commands build a coroutine against the ``Catalog`` facade and hand it to
``run_command``, which runs it on a fresh event loop, closes the database
engine afterwards and turns catalogue exceptions into CLI exits.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from typing import Any, Coroutine, Optional, TypeVar

import typer

from madcatalog.catalog import Catalog
from madcatalog.cli.errors import exit_with_exception
from madcatalog.config.settings import settings
from madcatalog.container import container
from madcatalog.exceptions import MadCatalogError
from madcatalog.models.enums import SortOrder
from madcatalog.models.pagination import ConnectionArgs

T = TypeVar("T")

ACTOR_HELP = "Acting user id (defaults to MADCATALOG_DEFAULT_ACTOR_ID)"


def get_catalog() -> Catalog:
    """Get the catalogue facade wired by the container."""
    return container.catalog


def resolve_actor(actor: Optional[str]) -> str:
    """Return the given actor, or the configured default actor."""
    return actor if actor else settings.default_actor_id


def parse_uuid(value: str, label: str = "id") -> uuid.UUID:
    """
    Parse a UUID argument.

    Raises
    ------
    typer.BadParameter
        If ``value`` is not a UUID.
    """
    try:
        return uuid.UUID(value)
    except ValueError:
        raise typer.BadParameter(f"'{value}' is not a valid {label}") from None


def page_args(
    limit: Optional[int], after: Optional[str], *, newest_first: bool = False
) -> ConnectionArgs:
    """Build forward connection arguments from CLI options."""
    return ConnectionArgs(
        first=limit if limit is not None else settings.default_page_size,
        after=after,
        order=SortOrder.DESC if newest_first else SortOrder.ASC,
    )


def format_timestamp(value: datetime) -> str:
    """Format a timestamp for table output."""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def run_command(coro: Coroutine[Any, Any, T]) -> T:
    """
    Run a command coroutine to completion.

    Raises
    ------
    typer.Exit
        If the catalogue raised one of its exceptions.
    """

    async def _run() -> T:
        try:
            return await coro
        finally:
            await container.database.close()

    try:
        return asyncio.run(_run())
    except MadCatalogError as e:
        exit_with_exception(e)
