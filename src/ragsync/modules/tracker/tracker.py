"""Durable change tracker deciding which source items need indexing."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from ragsync.core.files import atomic_write_json, read_json_object, remove_file
from ragsync.core.logging import Logger, get_logger

from .models import SyncCacheFile, TrackerEntry

__all__ = ["ChangeTracker", "format_timestamp"]


def _default_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as a UTC ISO-8601 string with millisecond precision.

    Example:
        >>> from datetime import datetime, timezone
        >>> format_timestamp(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        '2024-01-02T03:04:05.000Z'
    """

    timestamp = value
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)
    rendered = timestamp.isoformat(timespec="milliseconds")
    return rendered.replace("+00:00", "Z")


class ChangeTracker:
    """Map of source id to the fingerprint of its last indexed version.

    The cache file is loaded eagerly; a missing or corrupt file starts an
    empty tracker. Changes stay in memory until :meth:`save`, which the
    orchestrator calls at the end of every cycle.
    """

    def __init__(
        self,
        cache_path: Path | None = None,
        *,
        logger: Logger | None = None,
        now: Callable[[], datetime] = _default_now,
    ) -> None:
        self._path = cache_path
        self._now = now
        self._entries: dict[str, TrackerEntry] = {}
        self._last_sync_time: str | None = None
        self._lock = threading.RLock()
        self.logger = logger or get_logger(__name__, component="tracker")
        self._load()

    @property
    def cache_path(self) -> Path | None:
        return self._path

    @property
    def last_sync_time(self) -> str | None:
        return self._last_sync_time

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def entries(self) -> list[TrackerEntry]:
        with self._lock:
            return list(self._entries.values())

    def lookup(self, source_id: str) -> TrackerEntry | None:
        with self._lock:
            return self._entries.get(source_id)

    def should_skip(self, source_id: str, modified_time: str) -> bool:
        """True iff an entry exists with exactly ``modified_time``."""

        entry = self.lookup(source_id)
        return entry is not None and entry.modified_time == modified_time

    def commit(self, source_id: str, name: str, modified_time: str) -> TrackerEntry:
        """Record ``source_id`` as indexed at ``modified_time`` now."""

        entry = TrackerEntry(
            source_id=source_id,
            name=name,
            modified_time=modified_time,
            indexed_at=format_timestamp(self._now()),
        )
        with self._lock:
            self._entries[source_id] = entry
        return entry

    def forget(self, source_id: str) -> bool:
        with self._lock:
            return self._entries.pop(source_id, None) is not None

    def mark_synced(self, when: datetime | None = None) -> str:
        stamp = format_timestamp(when or self._now())
        with self._lock:
            self._last_sync_time = stamp
        return stamp

    def clear(self) -> None:
        """Drop every entry and delete the durable cache file."""

        with self._lock:
            self._entries.clear()
            self._last_sync_time = None
            removed = remove_file(self._path) if self._path else False
        self.logger.info(
            "tracker-cache-cleared",
            path=str(self._path) if self._path else None,
            removed=removed,
        )

    def save(self) -> bool:
        """Persist entries; failures are logged and reported as ``False``."""

        if self._path is None:
            return True
        with self._lock:
            document = SyncCacheFile(
                synced_files={
                    source_id: entry.to_cached()
                    for source_id, entry in self._entries.items()
                },
                last_sync_time=self._last_sync_time,
            )
            count = len(self._entries)
            try:
                atomic_write_json(self._path, document.to_payload(), indent=2)
            except OSError as exc:
                self.logger.error(
                    "tracker-cache-write-failed",
                    path=str(self._path),
                    error=str(exc),
                )
                return False
        self.logger.debug(
            "tracker-cache-saved",
            path=str(self._path),
            entries=count,
        )
        return True

    def _load(self) -> None:
        if self._path is None:
            return
        try:
            payload = read_json_object(self._path)
            if payload is None:
                return
            document = SyncCacheFile.model_validate(payload)
        except (OSError, ValueError, ValidationError) as exc:
            self.logger.warning(
                "tracker-cache-corrupt",
                path=str(self._path),
                error=str(exc),
            )
            return

        self._entries = {
            source_id: TrackerEntry.from_cached(source_id, cached)
            for source_id, cached in document.synced_files.items()
        }
        self._last_sync_time = document.last_sync_time
        self.logger.info(
            "tracker-cache-loaded",
            path=str(self._path),
            entries=len(self._entries),
        )
