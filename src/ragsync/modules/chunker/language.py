"""Heuristic language detection for extracted text."""

from __future__ import annotations

import re

__all__ = ["DEFAULT_LANGUAGE", "SAMPLE_CHARS", "detect_language"]

DEFAULT_LANGUAGE = "english"
SAMPLE_CHARS = 500

# Checked in order; the first matching pattern wins.
_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("english", re.compile(r"^[a-zA-Z0-9\s.,!?;:'\"()\-]+$")),
    ("spanish", re.compile(r"[áéíóúñÁÉÍÓÚÑ]")),
    ("french", re.compile(r"[àâäæçéèêëïîôùûüÿœÀÂÄÆÇÉÈÊËÏÎÔÙÛÜŸŒ]")),
    ("german", re.compile(r"[äöüßÄÖÜ]")),
    ("chinese", re.compile(r"[\u4e00-\u9fa5]")),
    ("arabic", re.compile(r"[\u0600-\u06ff]")),
    ("russian", re.compile(r"[\u0400-\u04ff]")),
)


def detect_language(text: str) -> str:
    """Guess the language of ``text`` from its first characters.

    Example:
        >>> detect_language("Hello world.")
        'english'
        >>> detect_language("Привет, мир")
        'russian'
    """

    sample = text[:SAMPLE_CHARS]
    for language, pattern in _PATTERNS:
        if pattern.search(sample):
            return language
    return DEFAULT_LANGUAGE
