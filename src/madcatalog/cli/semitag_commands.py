"""
Semitag CLI commands for madcatalog.

Semitags are unmoderated tag suggestions on a video; moderators resolve
them into tags of the graph or reject them.
"""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from madcatalog.cli.common import (
    ACTOR_HELP,
    get_catalog,
    parse_uuid,
    resolve_actor,
    run_command,
)
from madcatalog.cli.errors import display_success_panel, exit_with_operation_error
from madcatalog.models.results import Err

console = Console()

semitag_app = typer.Typer(
    name="semitags",
    help="Unmoderated tag suggestions",
    no_args_is_help=True,
)


@semitag_app.command("add")
def add_semitag(
    video_id: str = typer.Argument(..., help="Video id"),
    name: str = typer.Argument(..., help="Suggested tag name"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Suggest a tag name for a video."""
    result = run_command(
        get_catalog().add_semitag_to_video(
            video_id=parse_uuid(video_id, "video id"),
            name=name,
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Add semitag", result.error)
    display_success_panel(
        f"Semitag '{result.value.name}' added",
        extra_info=f"ID: {result.value.id}",
    )


@semitag_app.command("resolve")
def resolve_semitag(
    semitag_id: str = typer.Argument(..., help="Semitag id"),
    tag_id: str = typer.Argument(..., help="Tag to resolve into"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Resolve a semitag into a tag, tagging its video."""
    result = run_command(
        get_catalog().resolve_semitag(
            parse_uuid(semitag_id, "semitag id"),
            parse_uuid(tag_id, "tag id"),
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Resolve semitag", result.error)
    display_success_panel(f"Semitag '{result.value.name}' resolved")


@semitag_app.command("reject")
def reject_semitag(
    semitag_id: str = typer.Argument(..., help="Semitag id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Reject a semitag."""
    result = run_command(
        get_catalog().reject_semitag(
            parse_uuid(semitag_id, "semitag id"), actor_id=resolve_actor(actor)
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Reject semitag", result.error)
    display_success_panel(f"Semitag '{result.value.name}' rejected")


@semitag_app.command("suggest")
def suggest_tags(
    semitag_id: str = typer.Argument(..., help="Semitag id"),
    limit: int = typer.Option(10, "--limit", "-l", help="Suggestions to show"),
) -> None:
    """List tags a semitag could be resolved into."""
    suggestions = run_command(
        get_catalog().suggest_tags(parse_uuid(semitag_id, "semitag id"), limit=limit)
    )
    if not suggestions:
        console.print("[yellow]No matching tags[/yellow]")
        return

    table = Table(title="Suggested Tags", show_header=True, header_style="bold blue")
    table.add_column("Tag", style="dim")
    table.add_column("Matched name", style="cyan")
    table.add_column("Can resolve", style="green")
    for suggestion in suggestions:
        table.add_row(
            str(suggestion.tag_id),
            suggestion.matched_name,
            "yes" if suggestion.can_resolve_to else "already tagged",
        )
    console.print(table)
