"""Change tracking (sync cache) for incremental indexing."""

from __future__ import annotations

from .models import CachedFile, SyncCacheFile, TrackerEntry
from .tracker import ChangeTracker, format_timestamp

__all__ = [
    "CachedFile",
    "ChangeTracker",
    "SyncCacheFile",
    "TrackerEntry",
    "format_timestamp",
]
