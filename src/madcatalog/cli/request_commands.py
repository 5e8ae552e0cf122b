"""
Registration request CLI commands for madcatalog.

Users submit videos of an external source for registration; moderators
accept them (registering the video) or reject them with a note.
"""

from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from madcatalog.cli.common import (
    ACTOR_HELP,
    format_timestamp,
    get_catalog,
    page_args,
    parse_uuid,
    resolve_actor,
    run_command,
)
from madcatalog.cli.errors import display_success_panel, exit_with_operation_error
from madcatalog.models.enums import RequestStatus, SourceKind
from madcatalog.models.registration import (
    RegistrationRequestCreate,
    SemitaggingIntent,
    TaggingIntent,
)
from madcatalog.models.results import Err

console = Console()

request_app = typer.Typer(
    name="requests",
    help="Video registration requests",
    no_args_is_help=True,
)

STATUS_STYLES = {
    RequestStatus.PENDING: "yellow",
    RequestStatus.ACCEPTED: "green",
    RequestStatus.REJECTED: "red",
}


@request_app.command("submit")
def submit_request(
    source: SourceKind = typer.Argument(..., help="External source"),
    source_id: str = typer.Argument(..., help="Video id on the source"),
    title: str = typer.Option(..., "--title", "-t", help="Video title"),
    thumbnail_url: Optional[str] = typer.Option(
        None, "--thumbnail", help="Thumbnail URL"
    ),
    tags: Optional[List[str]] = typer.Option(
        None, "--tag", help="Tag id to attach on acceptance (repeatable)"
    ),
    semitags: Optional[List[str]] = typer.Option(
        None, "--semitag", help="Semitag name to add on acceptance (repeatable)"
    ),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Submit a video for registration."""
    data = RegistrationRequestCreate(
        source=source,
        source_id=source_id,
        title=title,
        thumbnail_url=thumbnail_url,
        taggings=[
            TaggingIntent(tag_id=parse_uuid(value, "tag id")) for value in tags or []
        ],
        semitaggings=[SemitaggingIntent(name=name) for name in semitags or []],
    )

    result = run_command(
        get_catalog().request_registration(data, actor_id=resolve_actor(actor))
    )
    if isinstance(result, Err):
        exit_with_operation_error("Submit request", result.error)
    display_success_panel(
        f"Request for {source.value} {source_id} submitted",
        title="Request Submitted",
        extra_info=f"Request ID: {result.value.id}",
    )


@request_app.command("accept")
def accept_request(
    source: SourceKind = typer.Argument(..., help="External source"),
    request_id: str = typer.Argument(..., help="Request id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Accept a pending request and register its video."""
    result = run_command(
        get_catalog().accept_registration(
            source, parse_uuid(request_id, "request id"), actor_id=resolve_actor(actor)
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Accept request", result.error)
    display_success_panel(
        f"Registered '{result.value.primary_title}'",
        title="Request Accepted",
        extra_info=f"Video ID: {result.value.id}",
    )


@request_app.command("reject")
def reject_request(
    source: SourceKind = typer.Argument(..., help="External source"),
    request_id: str = typer.Argument(..., help="Request id"),
    note: Optional[str] = typer.Option(None, "--note", "-n", help="Moderator note"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Reject a pending request."""
    result = run_command(
        get_catalog().reject_registration(
            source,
            parse_uuid(request_id, "request id"),
            note=note,
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Reject request", result.error)
    display_success_panel(
        "Request rejected", title="Request Rejected", extra_info=result.value.note
    )


@request_app.command("show")
def show_request(
    source: SourceKind = typer.Argument(..., help="External source"),
    request_id: str = typer.Argument(..., help="Request id"),
) -> None:
    """Show a registration request and its disposition."""
    request = run_command(
        get_catalog().get_registration_request(
            source, parse_uuid(request_id, "request id")
        )
    )
    if request is None:
        console.print(
            Panel(
                f"[red]No {source.value} request '{request_id}'[/red]",
                title="Request Not Found",
                border_style="red",
            )
        )
        raise typer.Exit(code=1)

    style = STATUS_STYLES[request.status]
    details = f"[bold]Title:[/bold] {request.title}\n"
    details += f"[bold]{request.source.value}:[/bold] {request.source_id}\n"
    details += f"[bold]Status:[/bold] [{style}]{request.status.value}[/{style}]\n"
    details += f"[bold]Requested by:[/bold] {request.requested_by}\n"
    details += f"[bold]Requested:[/bold] {format_timestamp(request.created_at)}"
    if request.taggings:
        details += "\n[bold]Tags:[/bold] " + ", ".join(
            str(tagging.tag_id) for tagging in request.taggings
        )
    if request.semitaggings:
        details += "\n[bold]Semitags:[/bold] " + ", ".join(
            semitagging.name for semitagging in request.semitaggings
        )
    if request.checking is not None:
        details += f"\n[bold]Checked by:[/bold] {request.checking.checked_by}"
        if request.checking.note:
            details += f"\n[bold]Note:[/bold] {request.checking.note}"
        if request.checking.video_id:
            details += f"\n[bold]Video:[/bold] {request.checking.video_id}"
    console.print(Panel(details, title=f"Request {request.id}", border_style="blue"))


@request_app.command("list")
def list_requests(
    source: SourceKind = typer.Argument(..., help="External source"),
    pending: bool = typer.Option(False, "--pending", help="Only pending requests"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Page size"),
    after: Optional[str] = typer.Option(None, "--after", help="Continue after cursor"),
) -> None:
    """List registration requests of a source, newest first."""
    connection = run_command(
        get_catalog().find_registration_requests(
            source,
            page_args(limit, after, newest_first=True),
            checked=False if pending else None,
        )
    )
    if not connection.edges:
        console.print(f"[yellow]No {source.value} requests[/yellow]")
        return

    table = Table(
        title=f"{source.value} Requests ({connection.total_count} total)",
        show_header=True,
        header_style="bold blue",
    )
    table.add_column("ID", style="dim")
    table.add_column("Source ID", style="cyan")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Requested", style="dim")
    for edge in connection.edges:
        request = edge.node
        style = STATUS_STYLES[request.status]
        table.add_row(
            str(request.id),
            request.source_id,
            request.title,
            f"[{style}]{request.status.value}[/{style}]",
            format_timestamp(request.created_at),
        )
    console.print(table)
    if connection.page_info.has_next_page:
        console.print(f"[dim]Next page: --after {connection.page_info.end_cursor}[/dim]")
