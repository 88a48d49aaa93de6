"""Tests for :mod:`ragsync.modules.chunker.language`."""

from __future__ import annotations

import pytest

from ragsync.modules.chunker import DEFAULT_LANGUAGE, detect_language


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("The quick brown fox jumps over the lazy dog.", "english"),
        ("¿Dónde está la biblioteca? Mañana.", "spanish"),
        ("Ça coûte très cher, garçon.", "french"),
        ("Die Straße ist groß.", "german"),
        ("你好，世界", "chinese"),
        ("مرحبا بالعالم", "arabic"),
        ("Привет, мир", "russian"),
    ],
)
def test_detect_language_from_characters(text: str, expected: str) -> None:
    assert detect_language(text) == expected


def test_detect_language_defaults_when_nothing_matches() -> None:
    assert detect_language("→ ★ ✓") == DEFAULT_LANGUAGE


def test_detect_language_only_samples_prefix() -> None:
    text = "a" * 600 + " Привет"

    assert detect_language(text) == "english"
