"""Core utilities shared across :mod:`ragsync` components.

The core namespace provides configuration loading, logging setup, workspace
path resolution and the shared error taxonomy.
"""

from __future__ import annotations

from .errors import (
    ConfigError,
    DimensionMismatchError,
    EmbeddingError,
    ErrorKind,
    ExtractionError,
    ProviderError,
    RagSyncError,
    SyncConflictError,
    VectorIndexError,
)
from .logging import Logger, configure_logging, get_logger
from .paths import WorkspacePaths, resolve_workspace

__all__ = [
    "ConfigError",
    "DimensionMismatchError",
    "EmbeddingError",
    "ErrorKind",
    "ExtractionError",
    "Logger",
    "ProviderError",
    "RagSyncError",
    "SyncConflictError",
    "VectorIndexError",
    "WorkspacePaths",
    "configure_logging",
    "get_logger",
    "resolve_workspace",
]
