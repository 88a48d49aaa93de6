"""Overlapping word-window chunking."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from ragsync.core.errors import ConfigError

__all__ = [
    "Chunk",
    "ChunkerConfig",
    "DEFAULT_CHUNK_OVERLAP",
    "DEFAULT_CHUNK_SIZE",
    "build_chunks",
    "chunk_record_id",
    "split_text",
]

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


def _validate_window(size: int, overlap: int) -> None:
    if isinstance(size, bool) or not isinstance(size, int) or size < 1:
        raise ConfigError(f"chunk size must be a positive integer (got {size!r})")
    if isinstance(overlap, bool) or not isinstance(overlap, int) or overlap < 0:
        raise ConfigError(
            f"chunk overlap must be a non-negative integer (got {overlap!r})"
        )
    if overlap >= size:
        raise ConfigError(
            f"chunk overlap ({overlap}) must be smaller than chunk size ({size})"
        )


@dataclass(frozen=True, slots=True)
class ChunkerConfig:
    """Validated chunk window parameters.

    Example:
        >>> ChunkerConfig(size=4, overlap=1).stride
        3
    """

    size: int = DEFAULT_CHUNK_SIZE
    overlap: int = DEFAULT_CHUNK_OVERLAP

    def __post_init__(self) -> None:
        _validate_window(self.size, self.overlap)

    @property
    def stride(self) -> int:
        return self.size - self.overlap


@dataclass(frozen=True, slots=True)
class Chunk:
    """One word window of a parent document."""

    parent_id: str
    index: int
    text: str

    @property
    def record_id(self) -> str:
        return chunk_record_id(self.parent_id, self.index)


def chunk_record_id(parent_id: str, index: int) -> str:
    """Return the stable vector record id for chunk ``index`` of a parent.

    Example:
        >>> chunk_record_id("doc-1", 0)
        'doc-1-chunk-0'
    """

    return f"{parent_id}-chunk-{index}"


def _windows(words: list[str], size: int, stride: int) -> Iterator[list[str]]:
    for start in range(0, len(words), stride):
        yield words[start : start + size]


def split_text(
    text: str,
    size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[str]:
    """Split ``text`` into overlapping windows of ``size`` words.

    Windows start every ``size - overlap`` words, so consecutive chunks share
    ``overlap`` words. Text is split on any whitespace and rejoined with
    single spaces.

    Example:
        >>> split_text("a b c d e f", size=4, overlap=2)
        ['a b c d', 'c d e f', 'e f']

    Raises:
        ConfigError: If ``overlap >= size`` or either value is out of range.
    """

    _validate_window(size, overlap)
    words = text.split()
    chunks: list[str] = []
    for window in _windows(words, size, size - overlap):
        joined = " ".join(window)
        if joined.strip():
            chunks.append(joined)
    return chunks


def build_chunks(
    parent_id: str,
    text: str,
    config: ChunkerConfig | None = None,
) -> list[Chunk]:
    """Return :class:`Chunk` values for ``text`` in original order."""

    resolved = config or ChunkerConfig()
    pieces = split_text(text, resolved.size, resolved.overlap)
    return [
        Chunk(parent_id=parent_id, index=index, text=piece)
        for index, piece in enumerate(pieces)
    ]
