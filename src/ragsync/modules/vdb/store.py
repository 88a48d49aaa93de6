"""In-memory vector store with cosine top-K search and JSON snapshots."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Sequence

import numpy as np

from ragsync.core.errors import DimensionMismatchError, VectorIndexError
from ragsync.core.logging import Logger, get_logger

from .models import DocumentSummary, SearchHit, VectorRecord
from .snapshot import read_snapshot, write_snapshot

__all__ = ["DEFAULT_SNAPSHOT_EVERY_N", "VectorStore", "cosine_similarity"]

DEFAULT_SNAPSHOT_EVERY_N = 10

_MISSING = object()


def _default_now() -> datetime:
    return datetime.now(timezone.utc)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of ``a`` and ``b``.

    A zero-norm operand yields ``0.0``.

    Example:
        >>> cosine_similarity([1.0, 0.0], [2.0, 0.0])
        1.0
        >>> cosine_similarity([0.0, 0.0], [1.0, 0.0])
        0.0
    """

    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    denominator = float(np.linalg.norm(left) * np.linalg.norm(right))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(left, right) / denominator)


def _matches(metadata: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
    if not where:
        return True
    return all(
        metadata.get(key, _MISSING) == value for key, value in where.items()
    )


class VectorStore:
    """Map of record id to ``(vector, metadata)`` with durable snapshots.

    All records share one dimensionality, fixed by the ``dimension``
    argument or learned from the first stored vector. Snapshots are written
    every ``snapshot_every_n`` single upserts, after each batch or delete
    operation, and on :meth:`flush`. Snapshot write failures are logged and
    never fail the triggering call; the in-memory map stays authoritative.
    A missing or unreadable snapshot at startup yields an empty store.
    """

    def __init__(
        self,
        snapshot_path: Path | None = None,
        *,
        dimension: int | None = None,
        snapshot_every_n: int = DEFAULT_SNAPSHOT_EVERY_N,
        logger: Logger | None = None,
        now: Callable[[], datetime] = _default_now,
        autoload: bool = True,
    ) -> None:
        if snapshot_every_n < 1:
            raise ValueError("snapshot_every_n must be >= 1")
        if dimension is not None and dimension < 1:
            raise ValueError("dimension must be >= 1")
        self._path = snapshot_path
        self._dimension = dimension
        self._snapshot_every_n = snapshot_every_n
        self._now = now
        self._records: dict[str, VectorRecord] = {}
        self._pending = 0
        self._last_saved_at: datetime | None = None
        self._lock = threading.RLock()
        self.logger = logger or get_logger(__name__, component="vdb")
        if autoload and snapshot_path is not None:
            self.load()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def snapshot_path(self) -> Path | None:
        return self._path

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @property
    def last_saved_at(self) -> datetime | None:
        return self._last_saved_at

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def all_ids(self) -> set[str]:
        with self._lock:
            return set(self._records)

    def get(self, record_id: str) -> VectorRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def has_where(self, key: str, value: Any) -> bool:
        """Return whether any record carries ``metadata[key] == value``."""

        with self._lock:
            return any(
                record.metadata.get(key, _MISSING) == value
                for record in self._records.values()
            )

    def metadata_values(self, key: str) -> set[Any]:
        """Return the distinct ``metadata[key]`` values across records."""

        with self._lock:
            return {
                record.metadata[key]
                for record in self._records.values()
                if key in record.metadata
            }

    def records(self) -> list[VectorRecord]:
        """Return every record in insertion order."""

        with self._lock:
            return list(self._records.values())

    def documents(self) -> list[DocumentSummary]:
        """Group records by ``parentId`` in first-seen order."""

        grouped: dict[str, list[VectorRecord]] = {}
        with self._lock:
            for record in self._records.values():
                parent = record.metadata.get("parentId")
                if parent is None:
                    continue
                grouped.setdefault(str(parent), []).append(record)

        summaries: list[DocumentSummary] = []
        for parent_id, members in grouped.items():
            head = members[0].metadata
            summaries.append(
                DocumentSummary(
                    parent_id=parent_id,
                    file_name=head.get("fileName"),
                    file_type=head.get("fileType"),
                    language=head.get("language"),
                    chunks=len(members),
                )
            )
        return summaries

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def upsert(
        self,
        record_id: str,
        vector: Sequence[float],
        metadata: Mapping[str, Any] | None = None,
    ) -> VectorRecord:
        """Insert or overwrite ``record_id``.

        Raises:
            DimensionMismatchError: If ``vector`` does not match the store.
        """

        record = VectorRecord(id=record_id, vector=vector, metadata=metadata)
        with self._lock:
            self._check_dimension(record)
            self._records[record.id] = record
            self._pending += 1
            if self._pending >= self._snapshot_every_n:
                self._checkpoint(reason="upsert")
        return record

    def batch_upsert(self, records: Iterable[VectorRecord]) -> int:
        """Upsert every record then checkpoint.

        Dimensions are validated before anything is written, so a mismatch
        leaves the store untouched.

        Raises:
            DimensionMismatchError: If any record does not match the store.
        """

        batch = list(records)
        with self._lock:
            expected = self._dimension
            for record in batch:
                if expected is None:
                    expected = record.dimension
                if record.dimension != expected:
                    raise DimensionMismatchError(
                        expected=expected,
                        actual=record.dimension,
                        record_id=record.id,
                    )
            if batch:
                self._dimension = expected
            for record in batch:
                self._records[record.id] = record
            self._pending += len(batch)
            self._checkpoint(reason="batch-upsert")
        return len(batch)

    def delete(self, record_id: str) -> bool:
        with self._lock:
            removed = self._records.pop(record_id, None) is not None
            self._checkpoint(reason="delete")
        return removed

    def delete_where(self, key: str, value: Any) -> int:
        """Remove every record whose ``metadata[key] == value``."""

        with self._lock:
            doomed = [
                record_id
                for record_id, record in self._records.items()
                if record.metadata.get(key, _MISSING) == value
            ]
            for record_id in doomed:
                del self._records[record_id]
            self._checkpoint(reason="delete-where")
        if doomed:
            self.logger.debug(
                "vdb-records-deleted",
                key=key,
                value=value,
                deleted=len(doomed),
            )
        return len(doomed)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._records)
            self._records.clear()
            self._checkpoint(reason="clear")
        return removed

    def flush(self) -> bool:
        """Write a snapshot now; return whether it succeeded."""

        with self._lock:
            return self._checkpoint(reason="flush")

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------
    def search(
        self,
        query: Sequence[float],
        top_k: int = 5,
        where: Mapping[str, Any] | None = None,
    ) -> list[SearchHit]:
        """Return up to ``top_k`` records ranked by cosine similarity.

        Only records whose metadata equals every ``where`` pair are scored.
        Equal scores keep insertion order.

        Raises:
            DimensionMismatchError: If ``query`` does not match the store.
        """

        if top_k <= 0:
            return []

        with self._lock:
            candidates = [
                record
                for record in self._records.values()
                if _matches(record.metadata, where)
            ]
            expected = self._dimension
        if not candidates:
            return []

        query_vector = np.asarray(list(query), dtype=np.float64)
        if expected is not None and query_vector.shape != (expected,):
            raise DimensionMismatchError(
                expected=expected,
                actual=int(query_vector.size),
                record_id="<query>",
            )

        matrix = np.asarray(
            [record.vector for record in candidates],
            dtype=np.float64,
        )
        denominators = np.linalg.norm(matrix, axis=1) * np.linalg.norm(
            query_vector
        )
        dots = matrix @ query_vector
        scores = np.zeros(len(candidates), dtype=np.float64)
        np.divide(dots, denominators, out=scores, where=denominators > 0)

        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            SearchHit(
                id=candidates[position].id,
                score=float(scores[position]),
                metadata=candidates[position].metadata,
            )
            for position in order
        ]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def load(self) -> int:
        """Replace in-memory records with the latest snapshot.

        Returns the number of records loaded; unreadable snapshots and
        records with a foreign dimensionality are logged and skipped.
        """

        if self._path is None:
            return 0
        try:
            snapshot = read_snapshot(self._path)
        except VectorIndexError as exc:
            self.logger.warning(
                "vdb-snapshot-load-failed",
                path=str(self._path),
                error=exc.message,
            )
            snapshot = None

        with self._lock:
            self._records.clear()
            self._pending = 0
            if snapshot is None:
                return 0
            skipped = 0
            for record in snapshot.records:
                if self._dimension is None:
                    self._dimension = record.dimension
                if record.dimension != self._dimension:
                    skipped += 1
                    continue
                self._records[record.id] = record
            self._last_saved_at = snapshot.saved_at
            loaded = len(self._records)

        if skipped:
            self.logger.warning(
                "vdb-snapshot-records-skipped",
                path=str(self._path),
                skipped=skipped,
                dimension=self._dimension,
            )
        self.logger.info(
            "vdb-snapshot-loaded",
            path=str(self._path),
            count=loaded,
        )
        return loaded

    def _check_dimension(self, record: VectorRecord) -> None:
        if self._dimension is None:
            self._dimension = record.dimension
            return
        if record.dimension != self._dimension:
            raise DimensionMismatchError(
                expected=self._dimension,
                actual=record.dimension,
                record_id=record.id,
            )

    def _checkpoint(self, *, reason: str) -> bool:
        if self._path is None:
            self._pending = 0
            return True
        saved_at = self._now()
        try:
            snapshot = write_snapshot(
                self._path,
                self._records.values(),
                saved_at=saved_at,
            )
        except VectorIndexError as exc:
            self.logger.error(
                "vdb-snapshot-write-failed",
                path=str(self._path),
                reason=reason,
                error=exc.message,
            )
            return False
        self._pending = 0
        self._last_saved_at = saved_at
        self.logger.debug(
            "vdb-snapshot-saved",
            path=str(self._path),
            reason=reason,
            count=snapshot.count,
        )
        return True
