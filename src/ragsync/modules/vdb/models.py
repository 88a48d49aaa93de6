"""Typed records stored in and returned by the vector store."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Sequence

__all__ = ["DocumentSummary", "SearchHit", "VectorRecord"]


def _normalize_id(value: Any, *, field: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string (got {type(value)!r})")
    result = value.strip()
    if not result:
        raise ValueError(f"{field} cannot be empty")
    return result


def _coerce_vector(value: Any, *, field: str) -> tuple[float, ...]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        if not hasattr(value, "tolist"):
            raise TypeError(f"{field} must be a sequence of numbers")
        value = value.tolist()
    vector: list[float] = []
    for item in value:
        if isinstance(item, bool):
            raise TypeError(f"{field} must contain numbers, not booleans")
        number = float(item)
        if not math.isfinite(number):
            raise ValueError(f"{field} must contain finite numbers")
        vector.append(number)
    if not vector:
        raise ValueError(f"{field} cannot be empty")
    return tuple(vector)


def _freeze(metadata: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(metadata or {}))


@dataclass(frozen=True, slots=True)
class VectorRecord:
    """One stored vector with its identifying metadata.

    Example:
        >>> record = VectorRecord("doc-chunk-0", [1, 0], {"parentId": "doc"})
        >>> record.dimension
        2
    """

    id: str
    vector: tuple[float, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _normalize_id(self.id, field="record.id"))
        object.__setattr__(
            self,
            "vector",
            _coerce_vector(self.vector, field="record.vector"),
        )
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    @property
    def dimension(self) -> int:
        return len(self.vector)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "VectorRecord":
        metadata = payload.get("metadata")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise TypeError("record.metadata must be an object")
        return cls(
            id=payload.get("id"),  # type: ignore[arg-type]
            vector=payload.get("vector"),  # type: ignore[arg-type]
            metadata=metadata,  # type: ignore[arg-type]
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vector": list(self.vector),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class SearchHit:
    """Ranked search result."""

    id: str
    score: float
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", _freeze(self.metadata))

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True, slots=True)
class DocumentSummary:
    """Per-parent view of indexed chunks."""

    parent_id: str
    file_name: str | None
    file_type: str | None
    language: str | None
    chunks: int

    def to_mapping(self) -> dict[str, Any]:
        return {
            "parentId": self.parent_id,
            "fileName": self.file_name,
            "fileType": self.file_type,
            "language": self.language,
            "chunks": self.chunks,
        }
