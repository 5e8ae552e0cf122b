"""
madcatalog - Crowd-sourced catalogue of MAD videos and their tag graph.

Provides the moderation workflow for registration requests, the tag graph
consistency engine and the append-only event trail behind them.
"""

from __future__ import annotations

__version__ = "0.4.0"
__author__ = "madcatalog"
__email__ = "noreply@madcatalog.dev"
__license__ = "AGPL-3.0-or-later"

__all__ = ["__version__", "__author__", "__email__", "__license__"]
