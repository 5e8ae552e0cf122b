"""
Video CLI commands for madcatalog.

Commands for inspecting registered videos and attaching or detaching their
tags.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from madcatalog.cli.common import (
    ACTOR_HELP,
    format_timestamp,
    get_catalog,
    parse_uuid,
    resolve_actor,
    run_command,
)
from madcatalog.cli.errors import display_success_panel, exit_with_operation_error
from madcatalog.models.results import Err

console = Console()

video_app = typer.Typer(
    name="videos",
    help="Registered videos and their tags",
    no_args_is_help=True,
)


@video_app.command("show")
def show_video(
    video_id: str = typer.Argument(..., help="Video id"),
    include_removed: bool = typer.Option(
        False, "--include-removed", help="Also list detached tags"
    ),
) -> None:
    """Show a video with its sources, tags and semitags."""
    catalog = get_catalog()
    identifier = parse_uuid(video_id, "video id")

    async def run_show() -> None:
        video = await catalog.get_video(identifier)
        if video is None:
            console.print(
                Panel(
                    f"[red]Video '{video_id}' not found[/red]",
                    title="Video Not Found",
                    border_style="red",
                )
            )
            raise typer.Exit(code=1)

        tags = await catalog.video_tags(identifier, include_removed=include_removed)
        semitags = await catalog.semitags_of(identifier)

        details = f"[bold]Title:[/bold] {video.primary_title or '-'}\n"
        for source in video.sources:
            details += f"[bold]{source.source.value}:[/bold] {source.source_id}\n"
        details += f"[bold]Registered by:[/bold] {video.registered_by}\n"
        details += f"[bold]Registered:[/bold] {format_timestamp(video.created_at)}"
        console.print(Panel(details, title=f"Video {video.id}", border_style="blue"))

        if tags:
            tag_table = Table(title="Tags", show_header=True, header_style="bold blue")
            tag_table.add_column("Tag", style="cyan")
            tag_table.add_column("State")
            tag_table.add_column("Updated", style="dim")
            for video_tag in tags:
                tag_table.add_row(
                    str(video_tag.tag_id),
                    "removed" if video_tag.is_removed else "active",
                    format_timestamp(video_tag.updated_at),
                )
            console.print(tag_table)

        if semitags:
            semitag_table = Table(
                title="Semitags", show_header=True, header_style="bold blue"
            )
            semitag_table.add_column("ID", style="dim")
            semitag_table.add_column("Name", style="cyan")
            semitag_table.add_column("Checked")
            for semitag in semitags:
                semitag_table.add_row(
                    str(semitag.id), semitag.name, "yes" if semitag.is_checked else "no"
                )
            console.print(semitag_table)

    run_command(run_show())


@video_app.command("tag")
def tag_video(
    video_id: str = typer.Argument(..., help="Video id"),
    tag_id: str = typer.Argument(..., help="Tag id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Attach a tag to a video."""
    result = run_command(
        get_catalog().add_tag_to_video(
            video_id=parse_uuid(video_id, "video id"),
            tag_id=parse_uuid(tag_id, "tag id"),
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Tag video", result.error)
    display_success_panel(f"Tag {result.value.tag_id} attached to {result.value.video_id}")


@video_app.command("untag")
def untag_video(
    video_id: str = typer.Argument(..., help="Video id"),
    tag_id: str = typer.Argument(..., help="Tag id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Detach a tag from a video."""
    result = run_command(
        get_catalog().remove_tag_from_video(
            video_id=parse_uuid(video_id, "video id"),
            tag_id=parse_uuid(tag_id, "tag id"),
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Untag video", result.error)
    display_success_panel(
        f"Tag {result.value.tag_id} detached from {result.value.video_id}"
    )


@video_app.command("tag-history")
def tag_history(
    video_id: str = typer.Argument(..., help="Video id"),
    tag_id: str = typer.Argument(..., help="Tag id"),
) -> None:
    """Show the attach/detach trail of one tag on one video."""
    events = run_command(
        get_catalog().video_tag_history(
            video_id=parse_uuid(video_id, "video id"),
            tag_id=parse_uuid(tag_id, "tag id"),
        )
    )
    if not events:
        console.print("[yellow]This tag was never attached to this video[/yellow]")
        return

    table = Table(title="Tagging History", show_header=True, header_style="bold blue")
    table.add_column("When", style="dim")
    table.add_column("Event", style="cyan")
    table.add_column("Actor", style="green")
    for record in events:
        table.add_row(format_timestamp(record.created_at), record.type, record.actor_id)
    console.print(table)
