"""
Timeline CLI command for madcatalog.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from madcatalog.cli.common import format_timestamp, get_catalog, run_command
from madcatalog.services.timeline import TimelineEntry, TimelineKind

console = Console()


def _summary(entry: TimelineEntry) -> str:
    payload = entry.payload
    for key in ("title", "source_id", "name", "note"):
        if payload.get(key):
            return str(payload[key])
    return ""


def show_timeline(
    limit: int = typer.Option(20, "--limit", "-l", help="Entries to show"),
    kinds: Optional[List[TimelineKind]] = typer.Option(
        None, "--kind", "-k", help="Only these entry kinds (repeatable)"
    ),
    since: Optional[datetime] = typer.Option(None, "--since", help="Window start"),
    until: Optional[datetime] = typer.Option(None, "--until", help="Window end"),
    after: Optional[str] = typer.Option(None, "--after", help="Continue after cursor"),
) -> None:
    """Show the activity feed, newest first."""
    page = run_command(
        get_catalog().timeline(
            limit=limit, since=since, until=until, kinds=kinds or None, after=after
        )
    )
    if not page.entries:
        console.print("[yellow]Nothing happened in this window[/yellow]")
        return

    table = Table(title="Timeline", show_header=True, header_style="bold blue")
    table.add_column("When", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Entity", style="dim")
    table.add_column("Actor", style="green")
    table.add_column("Summary")
    for entry in page.entries:
        table.add_row(
            format_timestamp(entry.created_at),
            entry.kind.value,
            str(entry.entity_id),
            entry.actor_id,
            _summary(entry),
        )
    console.print(table)
    if page.has_more:
        console.print(f"[dim]Next page: --after {page.end_cursor}[/dim]")
