"""
Tag CLI commands for madcatalog.

Commands for curating the tag graph: registering tags, editing their names
and category, and managing explicit and implicit parent edges.
"""

from __future__ import annotations

import logging
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
from madcatalog.models.enums import CategoryType
from madcatalog.models.pagination import ConnectionArgs
from madcatalog.models.results import Err
from madcatalog.models.tag import TagCreate, TagParentEdge

logger = logging.getLogger(__name__)

console = Console()

tag_app = typer.Typer(
    name="tags",
    help="Tag graph curation",
    no_args_is_help=True,
)


def _edge_table(title: str, edges: List[TagParentEdge], *, show_child: bool) -> Table:
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("Edge", style="dim")
    table.add_column("Child" if show_child else "Parent", style="cyan")
    table.add_column("Explicit", style="green")
    table.add_column("By")
    for edge in edges:
        table.add_row(
            str(edge.id),
            str(edge.child_id if show_child else edge.parent_id),
            "yes" if edge.is_explicit else "no",
            edge.created_by,
        )
    return table


@tag_app.command("register")
def register_tag(
    names: List[str] = typer.Argument(..., help="Tag names"),
    primary_index: int = typer.Option(
        0, "--primary-index", "-p", help="Index of the primary name"
    ),
    explicit_parent: Optional[str] = typer.Option(
        None, "--explicit-parent", "-e", help="Explicit parent tag id"
    ),
    implicit_parents: Optional[List[str]] = typer.Option(
        None, "--implicit-parent", "-i", help="Implicit parent tag id (repeatable)"
    ),
    category_tag: bool = typer.Option(
        False, "--category-tag", help="The tag defines a category"
    ),
    category: Optional[CategoryType] = typer.Option(
        None, "--category", "-c", help="Category of a category tag"
    ),
    resolve_semitags: Optional[List[str]] = typer.Option(
        None, "--resolve-semitag", "-s", help="Semitag id to resolve (repeatable)"
    ),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Register a tag with its names and parents."""
    data = TagCreate(
        names=names,
        primary_index=primary_index,
        explicit_parent_id=(
            parse_uuid(explicit_parent, "tag id") if explicit_parent else None
        ),
        implicit_parent_ids=[
            parse_uuid(value, "tag id") for value in implicit_parents or []
        ],
        is_category_tag=category_tag,
        category=category,
        resolve_semitag_ids=[
            parse_uuid(value, "semitag id") for value in resolve_semitags or []
        ],
    )

    result = run_command(
        get_catalog().register_tag(data, actor_id=resolve_actor(actor))
    )
    if isinstance(result, Err):
        exit_with_operation_error("Register tag", result.error)

    tag = result.value
    display_success_panel(
        f"Registered tag '{tag.primary_name}'",
        title="Tag Registered",
        extra_info=f"ID: {tag.id}",
    )


@tag_app.command("show")
def show_tag(
    tag_id: str = typer.Argument(..., help="Tag id"),
    limit: int = typer.Option(20, "--limit", "-l", help="Parents/children to show"),
) -> None:
    """Show a tag, its type and its parent edges."""
    catalog = get_catalog()
    identifier = parse_uuid(tag_id, "tag id")

    async def run_show() -> None:
        tag = await catalog.get_tag(identifier)
        if tag is None:
            console.print(
                Panel(
                    f"[red]Tag '{tag_id}' not found[/red]\n"
                    "Use 'madcatalog tags find' to look tags up by name",
                    title="Tag Not Found",
                    border_style="red",
                )
            )
            raise typer.Exit(code=1)

        tag_type = await catalog.resolve_category_type(identifier)
        parents = await catalog.parents_of(identifier, ConnectionArgs(first=limit))
        children = await catalog.children_of(identifier, ConnectionArgs(first=limit))

        other_names = [name.name for name in tag.names if not name.is_primary]
        details = f"[bold]Name:[/bold] {tag.primary_name}\n"
        if other_names:
            details += f"[bold]Also known as:[/bold] {', '.join(other_names)}\n"
        details += f"[bold]Category tag:[/bold] {'yes' if tag.is_category_tag else 'no'}\n"
        if tag.category is not None:
            details += f"[bold]Category:[/bold] {tag.category.value}\n"
        details += f"[bold]Type:[/bold] {tag_type.value if tag_type else '-'}\n"
        details += f"[bold]Registered:[/bold] {format_timestamp(tag.created_at)}"
        console.print(Panel(details, title=f"Tag {tag.id}", border_style="blue"))

        if parents.edges:
            console.print(
                _edge_table(
                    f"Parents ({parents.total_count})",
                    [edge.node for edge in parents.edges],
                    show_child=False,
                )
            )
        if children.edges:
            console.print(
                _edge_table(
                    f"Children ({children.total_count})",
                    [edge.node for edge in children.edges],
                    show_child=True,
                )
            )

    run_command(run_show())


@tag_app.command("find")
def find_tags(
    query: Optional[str] = typer.Argument(None, help="Name prefix"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Page size"),
    after: Optional[str] = typer.Option(None, "--after", help="Continue after cursor"),
) -> None:
    """Find tags by name prefix."""
    connection = run_command(
        get_catalog().find_tags(page_args(limit, after), query=query)
    )

    if not connection.edges:
        console.print("[yellow]No tags found[/yellow]")
        return

    table = Table(
        title=f"Tags ({connection.total_count} total)",
        show_header=True,
        header_style="bold blue",
    )
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    for edge in connection.edges:
        tag = edge.node
        table.add_row(
            str(tag.id),
            tag.primary_name,
            tag.category.value if tag.category else "",
        )
    console.print(table)
    if connection.page_info.has_next_page:
        console.print(f"[dim]Next page: --after {connection.page_info.end_cursor}[/dim]")


@tag_app.command("explicitize")
def explicitize_parent(
    edge_id: str = typer.Argument(..., help="Parent edge id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Make an implicit parent edge the child's explicit parent."""
    result = run_command(
        get_catalog().explicitize_tag_parent(
            parse_uuid(edge_id, "edge id"), actor_id=resolve_actor(actor)
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Explicitize parent", result.error)
    display_success_panel(f"Edge {result.value.id} is now explicit")


@tag_app.command("implicitize")
def implicitize_parent(
    edge_id: str = typer.Argument(..., help="Parent edge id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Make an explicit parent edge implicit."""
    result = run_command(
        get_catalog().implicitize_tag_parent(
            parse_uuid(edge_id, "edge id"), actor_id=resolve_actor(actor)
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Implicitize parent", result.error)
    display_success_panel(f"Edge {result.value.id} is now implicit")


@tag_app.command("add-parent")
def add_parent(
    child_id: str = typer.Argument(..., help="Child tag id"),
    parent_id: str = typer.Argument(..., help="Parent tag id"),
    explicit: bool = typer.Option(False, "--explicit", help="Add as explicit parent"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Add a parent edge between two tags."""
    result = run_command(
        get_catalog().add_tag_parent(
            child_id=parse_uuid(child_id, "tag id"),
            parent_id=parse_uuid(parent_id, "tag id"),
            is_explicit=explicit,
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Add parent", result.error)
    display_success_panel(
        "Parent added", title="Edge", extra_info=f"Edge ID: {result.value.id}"
    )


@tag_app.command("remove-parent")
def remove_parent(
    edge_id: str = typer.Argument(..., help="Parent edge id"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Remove a parent edge."""
    result = run_command(
        get_catalog().remove_tag_parent(
            parse_uuid(edge_id, "edge id"), actor_id=resolve_actor(actor)
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Remove parent", result.error)
    display_success_panel(f"Edge {result.value.id} removed")


@tag_app.command("add-name")
def add_name(
    tag_id: str = typer.Argument(..., help="Tag id"),
    name: str = typer.Argument(..., help="Name to add"),
    primary: bool = typer.Option(False, "--primary", help="Make it the primary name"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Add a name to a tag."""
    catalog = get_catalog()
    identifier = parse_uuid(tag_id, "tag id")
    actor_id = resolve_actor(actor)

    result = run_command(catalog.add_tag_name(identifier, name, actor_id=actor_id))
    if isinstance(result, Err):
        exit_with_operation_error("Add name", result.error)
    if primary:
        result = run_command(
            catalog.change_tag_primary_name(identifier, name, actor_id=actor_id)
        )
        if isinstance(result, Err):
            exit_with_operation_error("Change primary name", result.error)
    display_success_panel(f"'{name}' added to {result.value.primary_name}")


@tag_app.command("remove-name")
def remove_name(
    tag_id: str = typer.Argument(..., help="Tag id"),
    name: str = typer.Argument(..., help="Name to remove"),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Remove a non-primary name from a tag."""
    result = run_command(
        get_catalog().remove_tag_name(
            parse_uuid(tag_id, "tag id"), name, actor_id=resolve_actor(actor)
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Remove name", result.error)
    display_success_panel(f"'{name}' removed from {result.value.primary_name}")


@tag_app.command("set-category")
def set_category(
    tag_id: str = typer.Argument(..., help="Tag id"),
    category: Optional[CategoryType] = typer.Option(
        None, "--category", "-c", help="Category (omit to make a plain tag)"
    ),
    actor: Optional[str] = typer.Option(None, "--actor", "-a", help=ACTOR_HELP),
) -> None:
    """Turn a tag into a category tag, or back into a plain tag."""
    result = run_command(
        get_catalog().change_tag_category(
            parse_uuid(tag_id, "tag id"),
            is_category_tag=category is not None,
            category=category,
            actor_id=resolve_actor(actor),
        )
    )
    if isinstance(result, Err):
        exit_with_operation_error("Change category", result.error)
    label = category.value if category else "none"
    display_success_panel(f"Category of {result.value.primary_name}: {label}")


@tag_app.command("history")
def tag_history(
    tag_id: str = typer.Argument(..., help="Tag id"),
    limit: int = typer.Option(50, "--limit", "-l", help="Events to show"),
    skip: int = typer.Option(0, "--skip", help="Events to skip"),
) -> None:
    """Show the events of a tag and its parent edges, newest first."""
    events = run_command(
        get_catalog().tag_history(parse_uuid(tag_id, "tag id"), limit=limit, skip=skip)
    )

    if not events:
        console.print("[yellow]No events recorded for this tag[/yellow]")
        return

    table = Table(title="Tag History", show_header=True, header_style="bold blue")
    table.add_column("When", style="dim")
    table.add_column("Entity")
    table.add_column("Event", style="cyan")
    table.add_column("Actor", style="green")
    for record in events:
        table.add_row(
            format_timestamp(record.created_at),
            record.entity.value,
            record.type,
            record.actor_id,
        )
    console.print(table)
