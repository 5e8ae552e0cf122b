"""
Tests for CLI main functionality.
"""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import typer
from typer.testing import CliRunner

from madcatalog import __version__
from madcatalog.cli.main import app, configure_logging, main


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


def test_cli_version(runner):
    """Test version flag."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"madcatalog v{__version__}" in result.output


def test_cli_help(runner):
    """Test help command."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "Crowd-sourced MAD video catalogue" in result.output
    for group in ("tags", "videos", "semitags", "requests", "timeline", "db"):
        assert group in result.output


def test_cli_version_command(runner):
    """Test explicit version command."""
    with patch("madcatalog.cli.main.configure_logging") as mock_logging:
        result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "madcatalog" in result.output
    assert "Version" in result.output
    mock_logging.assert_called_once_with(False)


def test_cli_verbose_flag_reaches_logging(runner):
    with patch("madcatalog.cli.main.configure_logging") as mock_logging:
        result = runner.invoke(app, ["--verbose", "version"])
    assert result.exit_code == 0
    mock_logging.assert_called_once_with(True)


def test_cli_invalid_subcommand(runner):
    result = runner.invoke(app, ["invalid-command"])
    assert result.exit_code == 2


def test_main_callback_without_subcommand():
    """The callback exits with a hint when no subcommand is given."""
    ctx = MagicMock()
    ctx.invoked_subcommand = None

    with pytest.raises(typer.Exit) as exc_info:
        main(ctx, version=False, verbose=False)
    assert exc_info.value.exit_code == 1


def test_configure_logging_writes_under_logs_dir(tmp_path, monkeypatch):
    from madcatalog.config.settings import settings

    monkeypatch.setattr(settings, "logs_dir", tmp_path / "logs")

    log_file = configure_logging(verbose=False)
    try:
        assert log_file == tmp_path / "logs" / "madcatalog.log"
        package_logger = logging.getLogger("madcatalog")
        assert len(package_logger.handlers) == 1
        assert package_logger.level == getattr(logging, settings.log_level)

        configure_logging(verbose=True)
        assert len(package_logger.handlers) == 2
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger = logging.getLogger("madcatalog")
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
            handler.close()
        package_logger.setLevel(logging.NOTSET)


def test_db_init_creates_tables(runner, monkeypatch):
    from madcatalog.config.settings import settings

    monkeypatch.setattr(settings, "db_create_all", True)
    database = MagicMock()
    database.create_tables = AsyncMock()
    database.drop_tables = AsyncMock()
    database.close = AsyncMock()

    with patch("madcatalog.cli.main.configure_logging"), patch(
        "madcatalog.cli.main.container"
    ) as mock_container, patch("madcatalog.cli.common.container", mock_container):
        mock_container.database = database
        result = runner.invoke(app, ["db", "init", "--drop"])

    assert result.exit_code == 0
    assert "Tables created" in result.output
    database.drop_tables.assert_called_once()
    database.create_tables.assert_called_once()


def test_db_init_refused_without_create_all(runner, monkeypatch):
    from madcatalog.config.settings import settings

    monkeypatch.setattr(settings, "db_create_all", False)
    monkeypatch.setattr(settings, "development_mode", False)

    with patch("madcatalog.cli.main.configure_logging"), patch(
        "madcatalog.cli.main.container"
    ) as mock_container:
        result = runner.invoke(app, ["db", "init"])

    assert result.exit_code == 1
    assert "alembic upgrade head" in result.output
    mock_container.database.create_tables.assert_not_called()
