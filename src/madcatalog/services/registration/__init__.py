"""
Registration of external videos.

Contains the per-source adapters and the generic registration workflow.
"""

from __future__ import annotations

from madcatalog.services.registration.sources import (
    SOURCE_ADAPTERS,
    SourceAdapter,
    get_source_adapter,
)
from madcatalog.services.registration.workflow import RegistrationWorkflow

__all__: list[str] = [
    "SOURCE_ADAPTERS",
    "SourceAdapter",
    "RegistrationWorkflow",
    "get_source_adapter",
]
