"""Sync configuration, state and cycle report values."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ragsync.core.errors import ConfigError, ErrorKind
from ragsync.modules.tracker import TrackerEntry

__all__ = [
    "CONFLICT_MESSAGE",
    "ItemOutcome",
    "ItemResult",
    "SyncConfig",
    "SyncReport",
    "SyncState",
    "SyncStatus",
]

CONFLICT_MESSAGE = "sync already in progress"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Tuning for embedding batches, cooldowns and snapshots."""

    batch_size: int = 16
    cooldown_seconds: float = 60.0
    snapshot_every_n: int = 10
    max_concurrency: int = 1
    reconcile_by_name: bool = True

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigError(f"batch_size must be >= 1 (got {self.batch_size})")
        if self.cooldown_seconds < 0:
            raise ConfigError(
                f"cooldown_seconds must be >= 0 (got {self.cooldown_seconds})"
            )
        if self.snapshot_every_n < 1:
            raise ConfigError(
                f"snapshot_every_n must be >= 1 (got {self.snapshot_every_n})"
            )
        if self.max_concurrency < 1:
            raise ConfigError(
                f"max_concurrency must be >= 1 (got {self.max_concurrency})"
            )


class SyncState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


class ItemOutcome(StrEnum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ItemResult:
    """What happened to one source item during a cycle."""

    source_id: str
    file_name: str
    outcome: ItemOutcome
    chunks: int | None = None
    language: str | None = None
    evicted: int = 0
    reconciled: bool = False
    message: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def success(self) -> bool:
        return self.outcome is not ItemOutcome.FAILED

    @property
    def skipped(self) -> bool:
        return self.outcome is ItemOutcome.SKIPPED

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "fileId": self.source_id,
            "fileName": self.file_name,
            "success": self.success,
            "skipped": self.skipped,
        }
        if self.chunks is not None:
            payload["chunks"] = self.chunks
        if self.language is not None:
            payload["language"] = self.language
        if self.evicted:
            payload["evicted"] = self.evicted
        if self.reconciled:
            payload["reconciled"] = True
        if self.message is not None:
            payload["message"] = self.message
        if self.error is not None:
            payload["error"] = self.error
            payload["errorKind"] = str(self.error_kind or ErrorKind.UNKNOWN)
        return payload


@dataclass(frozen=True, slots=True)
class SyncReport:
    """Aggregate result of one sync cycle.

    A rejected (conflicting) request carries ``message`` and a cycle that
    could not list its source carries ``error``; both have
    ``success=False``.
    """

    success: bool
    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    files: tuple[ItemResult, ...] = field(default_factory=tuple)
    duration_seconds: float = 0.0
    sync_time: str | None = None
    message: str | None = None
    error: str | None = None

    @classmethod
    def conflict(cls) -> "SyncReport":
        return cls(success=False, message=CONFLICT_MESSAGE)

    @classmethod
    def failed(cls, error: str, *, duration_seconds: float) -> "SyncReport":
        return cls(success=False, error=error, duration_seconds=duration_seconds)

    @classmethod
    def from_results(
        cls,
        results: list[ItemResult],
        *,
        duration_seconds: float,
        sync_time: str,
    ) -> "SyncReport":
        return cls(
            success=True,
            total=len(results),
            processed=sum(
                1 for item in results if item.outcome is ItemOutcome.PROCESSED
            ),
            skipped=sum(1 for item in results if item.skipped),
            errors=sum(1 for item in results if not item.success),
            files=tuple(results),
            duration_seconds=duration_seconds,
            sync_time=sync_time,
        )

    @property
    def is_conflict(self) -> bool:
        return not self.success and self.message == CONFLICT_MESSAGE

    def to_payload(self) -> dict[str, Any]:
        if self.is_conflict:
            return {"success": False, "message": self.message}
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "total": self.total,
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": self.errors,
            "files": [item.to_payload() for item in self.files],
            "duration": f"{self.duration_seconds:.2f}s",
            "durationSeconds": round(self.duration_seconds, 3),
            "syncTime": self.sync_time,
        }


@dataclass(frozen=True, slots=True)
class SyncStatus:
    """Point-in-time view of the orchestrator and its tracker."""

    sync_in_progress: bool
    last_sync_time: str | None
    synced_files: tuple[TrackerEntry, ...] = field(default_factory=tuple)

    @property
    def total_files_synced(self) -> int:
        return len(self.synced_files)

    def to_payload(self) -> dict[str, Any]:
        return {
            "syncInProgress": self.sync_in_progress,
            "lastSyncTime": self.last_sync_time,
            "totalFilesSynced": self.total_files_synced,
            "syncedFiles": [entry.to_mapping() for entry in self.synced_files],
        }
