"""
Services module for madcatalog.

Contains the business logic of the catalogue: the tag graph, video tagging,
semitags, the registration workflow, the timeline and event notifications.
"""

from __future__ import annotations

__all__: list[str] = []
