"""
CLI interface module for madcatalog.

Provides Typer-based command-line interface for moderating registration
requests, curating the tag graph and reading the timeline.
"""

from __future__ import annotations

__all__: list[str] = []
