"""JSON snapshot codec for the vector store.

Layout::

    {"vectors": [{"id": ..., "vector": [...], "metadata": {...}}],
     "savedAt": "2024-01-01T00:00:00Z", "count": 1}
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from ragsync.core.errors import VectorIndexError
from ragsync.core.files import atomic_write_json, read_json_object

from .models import VectorRecord

__all__ = ["VectorSnapshot", "read_snapshot", "write_snapshot"]


def _format_timestamp(value: datetime) -> str:
    timestamp = value
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    else:
        timestamp = timestamp.astimezone(timezone.utc)
    return timestamp.isoformat(timespec="seconds").replace("+00:00", "Z")


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError("snapshot.savedAt must be an ISO-8601 string")
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class VectorSnapshot:
    """Full record set captured at ``saved_at``."""

    records: tuple[VectorRecord, ...]
    saved_at: datetime | None = None

    @property
    def count(self) -> int:
        return len(self.records)

    def to_payload(self) -> dict[str, Any]:
        return {
            "vectors": [record.to_mapping() for record in self.records],
            "savedAt": (
                _format_timestamp(self.saved_at) if self.saved_at else None
            ),
            "count": self.count,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "VectorSnapshot":
        """Parse a snapshot payload.

        Raises:
            ValueError: If the payload shape is invalid.
            TypeError: If a record carries values of the wrong type.
        """

        vectors = payload.get("vectors")
        if not isinstance(vectors, list):
            raise ValueError("snapshot.vectors must be a list")
        records: list[VectorRecord] = []
        for entry in vectors:
            if not isinstance(entry, Mapping):
                raise ValueError("snapshot.vectors entries must be objects")
            records.append(VectorRecord.from_mapping(entry))
        return cls(
            records=tuple(records),
            saved_at=_parse_timestamp(payload.get("savedAt")),
        )


def write_snapshot(
    path: Path,
    records: Iterable[VectorRecord],
    *,
    saved_at: datetime,
) -> VectorSnapshot:
    """Atomically persist ``records`` to ``path``.

    Raises:
        VectorIndexError: If the snapshot cannot be serialized or written.
    """

    snapshot = VectorSnapshot(records=tuple(records), saved_at=saved_at)
    try:
        atomic_write_json(path, snapshot.to_payload())
    except (OSError, TypeError, ValueError) as exc:
        raise VectorIndexError(
            f"Failed to write vector snapshot {path}: {exc}"
        ) from exc
    return snapshot


def read_snapshot(path: Path) -> VectorSnapshot | None:
    """Load the snapshot at ``path``; ``None`` when no snapshot exists.

    Raises:
        VectorIndexError: If the snapshot exists but cannot be decoded.
    """

    try:
        payload = read_json_object(path)
        if payload is None:
            return None
        return VectorSnapshot.from_payload(payload)
    except (OSError, TypeError, ValueError) as exc:
        raise VectorIndexError(
            f"Failed to load vector snapshot {path}: {exc}"
        ) from exc
