"""Sync orchestration and cycle reporting."""

from __future__ import annotations

from .models import (
    CONFLICT_MESSAGE,
    ItemOutcome,
    ItemResult,
    SyncConfig,
    SyncReport,
    SyncState,
    SyncStatus,
)

__all__ = [
    "CONFLICT_MESSAGE",
    "ItemOutcome",
    "ItemResult",
    "SyncConfig",
    "SyncOrchestrator",
    "SyncReport",
    "SyncState",
    "SyncStatus",
]


def __getattr__(name: str) -> object:
    # Lazy: ``ragsync.core.config`` imports this package for ``SyncConfig``.
    if name == "SyncOrchestrator":
        from .orchestrator import SyncOrchestrator

        return SyncOrchestrator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
