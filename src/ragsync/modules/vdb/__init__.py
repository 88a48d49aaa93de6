"""Vector store: records, cosine search and snapshot persistence."""

from __future__ import annotations

from .models import DocumentSummary, SearchHit, VectorRecord
from .snapshot import VectorSnapshot, read_snapshot, write_snapshot
from .store import DEFAULT_SNAPSHOT_EVERY_N, VectorStore, cosine_similarity

__all__ = [
    "DEFAULT_SNAPSHOT_EVERY_N",
    "DocumentSummary",
    "SearchHit",
    "VectorRecord",
    "VectorSnapshot",
    "VectorStore",
    "cosine_similarity",
    "read_snapshot",
    "write_snapshot",
]
