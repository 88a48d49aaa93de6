"""Chunking primitives: word windows and language detection."""

from __future__ import annotations

from .language import DEFAULT_LANGUAGE, detect_language
from .splitter import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    Chunk,
    ChunkerConfig,
    build_chunks,
    chunk_record_id,
    split_text,
)

__all__ = [
    "Chunk",
    "ChunkerConfig",
    "DEFAULT_CHUNK_OVERLAP",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_LANGUAGE",
    "build_chunks",
    "chunk_record_id",
    "detect_language",
    "split_text",
]
