"""Text extraction contract and a plain-text extractor."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ragsync.core.errors import ErrorKind, ExtractionError

from .models import ExtractedText

__all__ = ["Extractor", "PlainTextExtractor"]

_TEXTUAL_APPLICATION_TYPES = frozenset(
    {
        "application/json",
        "application/jsonl",
        "application/xml",
        "application/x-yaml",
        "application/yaml",
        "application/toml",
        "application/javascript",
    }
)


@runtime_checkable
class Extractor(Protocol):
    """Turns raw bytes into text.

    Implementations raise :class:`ExtractionError` when the payload yields no
    usable text (``ErrorKind.NO_CONTENT``) or its type is not handled
    (``ErrorKind.UNSUPPORTED_TYPE``).
    """

    def extract_text(self, data: bytes, mime_type: str) -> ExtractedText:
        """Return the text contained in ``data``."""


class PlainTextExtractor:
    """Decode textual payloads as UTF-8.

    Example:
        >>> PlainTextExtractor().extract_text(b"hello", "text/plain").text
        'hello'
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    @staticmethod
    def supports(mime_type: str) -> bool:
        base = mime_type.split(";", 1)[0].strip().lower()
        return base.startswith("text/") or base in _TEXTUAL_APPLICATION_TYPES

    def extract_text(self, data: bytes, mime_type: str) -> ExtractedText:
        if not self.supports(mime_type):
            raise ExtractionError(
                f"Unsupported content type: {mime_type}",
                kind=ErrorKind.UNSUPPORTED_TYPE,
            )
        text = data.decode(self._encoding, errors="replace").lstrip("\ufeff")
        if not text.strip():
            raise ExtractionError("No text could be extracted from this file")
        return ExtractedText(text=text, page_count=1)
