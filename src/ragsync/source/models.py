"""Value types exchanged with source connectors and extractors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = ["ExtractedText", "SourceBlob", "SourceItem"]


def _require_text(value: Any, *, field: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string (got {type(value)!r})")
    result = value.strip()
    if not result:
        raise ValueError(f"{field} cannot be empty")
    return result


@dataclass(frozen=True, slots=True)
class SourceItem:
    """Identity of one item as listed by a connector."""

    id: str
    name: str
    mime_type: str
    modified_time: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _require_text(self.id, field="item.id"))
        object.__setattr__(
            self,
            "name",
            _require_text(self.name, field="item.name"),
        )
        object.__setattr__(
            self,
            "modified_time",
            _require_text(self.modified_time, field="item.modified_time"),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mimeType": self.mime_type,
            "modifiedTime": self.modified_time,
        }


@dataclass(frozen=True, slots=True)
class SourceBlob:
    """Downloaded bytes tagged with their name and MIME type."""

    data: bytes
    name: str
    mime_type: str

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            raise TypeError("blob.data must be bytes")

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True, slots=True)
class ExtractedText:
    """Text recovered from a blob by an extractor."""

    text: str
    page_count: int = 1
