"""
Main CLI entry point for madcatalog.
"""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from madcatalog import __version__
from madcatalog.cli.common import run_command
from madcatalog.cli.errors import display_warning_panel
from madcatalog.cli.request_commands import request_app
from madcatalog.cli.semitag_commands import semitag_app
from madcatalog.cli.tag_commands import tag_app
from madcatalog.cli.timeline_commands import show_timeline
from madcatalog.cli.video_commands import video_app
from madcatalog.config.settings import settings
from madcatalog.container import container

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

app = typer.Typer(
    name="madcatalog",
    help="Crowd-sourced MAD video catalogue",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

db_app = typer.Typer(
    name="db",
    help="Database management",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(db_app, name="db", help="Database management")
app.add_typer(tag_app, name="tags", help="Tag graph curation")
app.add_typer(video_app, name="videos", help="Registered videos and their tags")
app.add_typer(semitag_app, name="semitags", help="Unmoderated tag suggestions")
app.add_typer(request_app, name="requests", help="Video registration requests")
app.command("timeline")(show_timeline)


def configure_logging(verbose: bool = False) -> Path:
    """
    Send the ``madcatalog`` logger to a file under ``logs_dir``.

    Parameters
    ----------
    verbose : bool, optional
        If True, log at DEBUG and also echo to the console (default False).

    Returns
    -------
    Path
        Path of the log file.
    """
    settings.create_directories()
    log_file = settings.logs_dir / "madcatalog.log"
    log_level = logging.DEBUG if verbose else getattr(logging, settings.log_level)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger("madcatalog")
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, mode="a")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)
    root_logger.setLevel(log_level)

    if verbose:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    return log_file


@app.command()
def version() -> None:
    """Show version information."""
    console.print(
        Panel(
            f"[bold blue]madcatalog[/bold blue] v{__version__}",
            title="Version",
            border_style="blue",
        )
    )


@db_app.command("init")
def init_db(
    drop: bool = typer.Option(
        False, "--drop", help="Drop existing tables first (destroys all data)"
    ),
) -> None:
    """Create every table directly from the models (development databases)."""
    if not (settings.db_create_all or settings.development_mode):
        display_warning_panel(
            "create_all is disabled for this database.\n"
            "Run alembic upgrade head, or set MADCATALOG_DB_CREATE_ALL=true.",
            title="Database",
        )
        raise typer.Exit(1)

    async def run_init() -> None:
        database = container.database
        if drop:
            await database.drop_tables()
        await database.create_tables()

    run_command(run_init())
    console.print(
        Panel(
            f"[green]Tables created[/green]\n{settings.effective_database_url.split('@')[-1]}",
            title="Database",
            border_style="green",
        )
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", help="Show version and exit"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", help="Log at DEBUG level and echo logs to the console"
    ),
) -> None:
    """
    madcatalog - Crowd-sourced MAD video catalogue.

    Moderate registration requests from Nicovideo, YouTube, SoundCloud and
    Bilibili, curate the tag graph and follow the activity timeline.
    """
    if version:
        console.print(f"madcatalog v{__version__}")
        raise typer.Exit(code=0)

    if ctx.invoked_subcommand is None:
        console.print("[yellow]Use 'madcatalog --help' for available commands[/yellow]")
        raise typer.Exit(code=1)

    configure_logging(verbose)


if __name__ == "__main__":
    app()
