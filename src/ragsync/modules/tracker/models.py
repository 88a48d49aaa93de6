"""Sync cache file schema and tracker entry values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

__all__ = ["CachedFile", "SyncCacheFile", "TrackerEntry"]


class CachedFile(BaseModel):
    """One ``syncedFiles`` entry as stored on disk."""

    name: str = Field(description="Display name at the time of indexing.")
    modified_time: str = Field(
        alias="modifiedTime",
        description="Source modification time of the indexed version.",
    )
    indexed: str = Field(description="ISO-8601 time the item was indexed.")

    model_config = {"populate_by_name": True, "frozen": True}


class SyncCacheFile(BaseModel):
    """Durable sync cache document."""

    synced_files: dict[str, CachedFile] = Field(
        default_factory=dict,
        alias="syncedFiles",
    )
    last_sync_time: str | None = Field(default=None, alias="lastSyncTime")

    model_config = {"populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True, slots=True)
class TrackerEntry:
    """Fingerprint of the last indexed version of a source item."""

    source_id: str
    name: str
    modified_time: str
    indexed_at: str

    @classmethod
    def from_cached(cls, source_id: str, cached: CachedFile) -> "TrackerEntry":
        return cls(
            source_id=source_id,
            name=cached.name,
            modified_time=cached.modified_time,
            indexed_at=cached.indexed,
        )

    def to_cached(self) -> CachedFile:
        return CachedFile(
            name=self.name,
            modified_time=self.modified_time,
            indexed=self.indexed_at,
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.source_id,
            "name": self.name,
            "modifiedTime": self.modified_time,
            "indexed": self.indexed_at,
        }
