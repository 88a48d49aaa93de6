"""Source collaborators: item listing, download and text extraction."""

from __future__ import annotations

from .connectors import LocalDirectoryConnector, SourceConnector, guess_mime_type
from .extractors import Extractor, PlainTextExtractor
from .models import ExtractedText, SourceBlob, SourceItem

__all__ = [
    "ExtractedText",
    "Extractor",
    "LocalDirectoryConnector",
    "PlainTextExtractor",
    "SourceBlob",
    "SourceConnector",
    "SourceItem",
    "guess_mime_type",
]
