"""Query-time retrieval and answer assembly."""

from __future__ import annotations

from .service import (
    NO_RESULTS_ANSWER,
    AnswerGenerator,
    ExcerptAnswerGenerator,
    QueryAnswer,
    QueryService,
    RankedChunk,
    build_context,
)

__all__ = [
    "AnswerGenerator",
    "ExcerptAnswerGenerator",
    "NO_RESULTS_ANSWER",
    "QueryAnswer",
    "QueryService",
    "RankedChunk",
    "build_context",
]
