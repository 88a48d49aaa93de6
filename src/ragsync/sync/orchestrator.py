"""Sync cycle driver: list, diff, extract, chunk, embed, index, commit."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from ragsync.core.errors import (
    EmbeddingError,
    ErrorKind,
    ExtractionError,
    RagSyncError,
    SyncConflictError,
)
from ragsync.core.logging import Logger, get_logger
from ragsync.modules.chunker import ChunkerConfig, build_chunks, detect_language
from ragsync.modules.embedding import EmbeddingGenerator
from ragsync.modules.tracker import ChangeTracker, format_timestamp
from ragsync.modules.vdb import VectorRecord, VectorStore
from ragsync.source import Extractor, SourceBlob, SourceConnector, SourceItem

from .models import (
    CONFLICT_MESSAGE,
    ItemOutcome,
    ItemResult,
    SyncConfig,
    SyncReport,
    SyncState,
    SyncStatus,
)

__all__ = ["SyncOrchestrator"]


def _default_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class _IndexedKeys:
    """Parent ids and file names present in the store when a cycle starts."""

    parent_ids: frozenset[str]
    file_names: frozenset[str]


class SyncOrchestrator:
    """Run incremental sync cycles against one store and tracker.

    Only one cycle runs at a time. A request made while a cycle is running
    returns a conflict report immediately without touching any state.
    Failures while processing an item are recorded in that item's result;
    the cycle always completes and returns to :attr:`SyncState.IDLE`.
    """

    def __init__(
        self,
        *,
        connector: SourceConnector,
        extractor: Extractor,
        generator: EmbeddingGenerator,
        store: VectorStore,
        tracker: ChangeTracker,
        chunker: ChunkerConfig | None = None,
        config: SyncConfig | None = None,
        logger: Logger | None = None,
        clock: Callable[[], float] = time.perf_counter,
        now: Callable[[], datetime] = _default_now,
    ) -> None:
        self.connector = connector
        self.extractor = extractor
        self.generator = generator
        self.store = store
        self.tracker = tracker
        self.chunker = chunker or ChunkerConfig()
        self.config = config or SyncConfig()
        self.logger = logger or get_logger(__name__, component="sync")
        self._clock = clock
        self._now = now
        self._guard = threading.Lock()
        self._state = SyncState.IDLE
        self._skip_reconcile = False

    @property
    def state(self) -> SyncState:
        return self._state

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run(self, folder_id: str) -> SyncReport:
        """Synchronize every item listed in ``folder_id``."""

        if not self._guard.acquire(blocking=False):
            self.logger.warning("sync-conflict", folder=folder_id)
            return SyncReport.conflict()
        try:
            self._state = SyncState.RUNNING
            return self._run_cycle(folder_id)
        finally:
            self._state = SyncState.IDLE
            self._guard.release()

    def status(self) -> SyncStatus:
        return SyncStatus(
            sync_in_progress=self._state is SyncState.RUNNING,
            last_sync_time=self.tracker.last_sync_time,
            synced_files=tuple(self.tracker.entries()),
        )

    def clear_cache(self) -> None:
        """Forget every tracker entry so the next cycle reprocesses all items.

        Raises:
            SyncConflictError: If a cycle is running.
        """

        with self._exclusive("clear-cache"):
            self.tracker.clear()
            self._skip_reconcile = True
        self.logger.info("sync-cache-cleared")

    def forget(self, parent_id: str) -> int:
        """Evict a document's records and tracker entry.

        Raises:
            SyncConflictError: If a cycle is running.
        """

        with self._exclusive("forget"):
            removed = self.store.delete_where("parentId", parent_id)
            forgotten = self.tracker.forget(parent_id)
            if forgotten:
                self.tracker.save()
        self.logger.info(
            "sync-document-forgotten",
            parent_id=parent_id,
            records=removed,
            tracked=forgotten,
        )
        return removed

    # ------------------------------------------------------------------
    # Cycle internals
    # ------------------------------------------------------------------
    @contextmanager
    def _exclusive(self, action: str) -> Iterator[None]:
        if not self._guard.acquire(blocking=False):
            raise SyncConflictError(f"Cannot {action}: {CONFLICT_MESSAGE}")
        try:
            yield
        finally:
            self._guard.release()

    def _run_cycle(self, folder_id: str) -> SyncReport:
        started = self._clock()
        self.logger.info("sync-cycle-start", folder=folder_id)
        try:
            items = self.connector.list_items(folder_id)
        except Exception as exc:
            duration = self._clock() - started
            self.logger.exception("sync-listing-failed", folder=folder_id)
            return SyncReport.failed(
                str(exc) or exc.__class__.__name__,
                duration_seconds=duration,
            )

        indexed = None if self._skip_reconcile else self._indexed_keys()
        results = [
            self._sync_item(item, folder_id=folder_id, indexed=indexed)
            for item in items
        ]
        self._skip_reconcile = False

        sync_time = self.tracker.mark_synced(self._now())
        self.tracker.save()
        report = SyncReport.from_results(
            results,
            duration_seconds=self._clock() - started,
            sync_time=sync_time,
        )
        self.logger.info(
            "sync-cycle-complete",
            folder=folder_id,
            total=report.total,
            processed=report.processed,
            skipped=report.skipped,
            errors=report.errors,
            duration=round(report.duration_seconds, 3),
        )
        return report

    def _sync_item(
        self,
        item: SourceItem,
        *,
        folder_id: str,
        indexed: _IndexedKeys | None,
    ) -> ItemResult:
        log = self.logger.bind(source_id=item.id, file_name=item.name)
        entry = self.tracker.lookup(item.id)

        if self.tracker.should_skip(item.id, item.modified_time):
            log.info("sync-item-skipped", reason="unchanged")
            return ItemResult(
                source_id=item.id,
                file_name=item.name,
                outcome=ItemOutcome.SKIPPED,
                message="Already processed",
            )

        if (
            entry is None
            and indexed is not None
            and self._already_indexed(item, indexed)
        ):
            self.tracker.commit(item.id, item.name, item.modified_time)
            log.info("sync-item-skipped", reason="reconciled")
            return ItemResult(
                source_id=item.id,
                file_name=item.name,
                outcome=ItemOutcome.SKIPPED,
                reconciled=True,
                message="Already indexed",
            )

        try:
            return self._process_item(
                item,
                folder_id=folder_id,
                previously_indexed=entry is not None,
            )
        except RagSyncError as exc:
            log.warning(
                "sync-item-failed",
                kind=str(exc.kind),
                error=exc.message,
            )
            return self._failed(item, exc.message, exc.kind)
        except Exception as exc:
            log.exception("sync-item-failed", kind=str(ErrorKind.UNKNOWN))
            return self._failed(
                item,
                str(exc) or exc.__class__.__name__,
                ErrorKind.UNKNOWN,
            )

    def _indexed_keys(self) -> _IndexedKeys:
        return _IndexedKeys(
            parent_ids=frozenset(
                str(value) for value in self.store.metadata_values("parentId")
            ),
            file_names=frozenset(
                str(value) for value in self.store.metadata_values("fileName")
            ),
        )

    def _already_indexed(self, item: SourceItem, indexed: _IndexedKeys) -> bool:
        # Only records present before this cycle count; same-named items
        # indexed earlier in the cycle must still be processed.
        if item.id in indexed.parent_ids:
            return True
        return self.config.reconcile_by_name and item.name in indexed.file_names

    def _process_item(
        self,
        item: SourceItem,
        *,
        folder_id: str,
        previously_indexed: bool,
    ) -> ItemResult:
        blob = SourceBlob(
            data=self.connector.download(item.id),
            name=item.name,
            mime_type=item.mime_type,
        )
        extracted = self.extractor.extract_text(blob.data, blob.mime_type)
        if not extracted.text or not extracted.text.strip():
            raise ExtractionError("No content extracted")

        chunks = build_chunks(item.id, extracted.text, self.chunker)
        if not chunks:
            raise ExtractionError("No content extracted")
        language = detect_language(extracted.text)

        vectors = self.generator.embed([chunk.text for chunk in chunks])
        if len(vectors) != len(chunks):
            raise EmbeddingError(
                (
                    f"Expected {len(chunks)} embeddings for {item.name!r}, "
                    f"got {len(vectors)}"
                ),
                kind=ErrorKind.INVALID_RESPONSE,
            )

        indexed_at = format_timestamp(self._now())
        records = [
            VectorRecord(
                id=chunk.record_id,
                vector=vector,
                metadata=self._metadata(
                    item,
                    chunk_index=chunk.index,
                    total_chunks=len(chunks),
                    text=chunk.text,
                    language=language,
                    page_count=extracted.page_count,
                    indexed_at=indexed_at,
                    folder_id=folder_id,
                ),
            )
            for chunk, vector in zip(chunks, vectors)
        ]

        evicted = 0
        if previously_indexed or self.store.has_where("parentId", item.id):
            evicted = self.store.delete_where("parentId", item.id)
        self.store.batch_upsert(records)
        self.tracker.commit(item.id, item.name, item.modified_time)

        self.logger.info(
            "sync-item-indexed",
            source_id=item.id,
            file_name=item.name,
            chunks=len(records),
            evicted=evicted,
            language=language,
        )
        return ItemResult(
            source_id=item.id,
            file_name=item.name,
            outcome=ItemOutcome.PROCESSED,
            chunks=len(records),
            language=language,
            evicted=evicted,
        )

    @staticmethod
    def _metadata(
        item: SourceItem,
        *,
        chunk_index: int,
        total_chunks: int,
        text: str,
        language: str,
        page_count: int | None,
        indexed_at: str,
        folder_id: str,
    ) -> dict[str, Any]:
        return {
            "fileName": item.name,
            "fileType": item.mime_type,
            "language": language,
            "parentId": item.id,
            "chunkIndex": chunk_index,
            "totalChunks": total_chunks,
            "text": text,
            "pageCount": page_count,
            "indexedAt": indexed_at,
            "sourceId": folder_id,
        }

    @staticmethod
    def _failed(item: SourceItem, error: str, kind: ErrorKind) -> ItemResult:
        return ItemResult(
            source_id=item.id,
            file_name=item.name,
            outcome=ItemOutcome.FAILED,
            error=error,
            error_kind=kind,
        )
