"""Query pipeline: embed the question, search, hand chunks to a generator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from ragsync.core.logging import Logger, get_logger
from ragsync.modules.embedding import EmbeddingGenerator
from ragsync.modules.vdb import SearchHit, VectorStore

__all__ = [
    "AnswerGenerator",
    "ExcerptAnswerGenerator",
    "NO_RESULTS_ANSWER",
    "QueryAnswer",
    "QueryService",
    "RankedChunk",
    "build_context",
]

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant documents to answer your question."
)


@dataclass(frozen=True, slots=True)
class RankedChunk:
    """Search hit flattened for answer generation and API output."""

    id: str
    score: float
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "RankedChunk":
        return cls(
            id=hit.id,
            score=hit.score,
            text=str(hit.metadata.get("text") or ""),
            metadata=dict(hit.metadata),
        )

    def to_mapping(self) -> dict[str, Any]:
        payload = {"id": self.id, "score": self.score}
        payload.update(self.metadata)
        return payload


@runtime_checkable
class AnswerGenerator(Protocol):
    """Produces an answer from ranked chunks (typically an LLM call)."""

    def answer(self, question: str, chunks: Sequence[RankedChunk]) -> str:
        """Return an answer to ``question`` grounded in ``chunks``."""


def build_context(chunks: Sequence[RankedChunk]) -> str:
    """Number chunk texts for citation.

    Example:
        >>> chunk = RankedChunk(id="a-chunk-0", score=0.9, text="Alpha.")
        >>> build_context([chunk])
        '[1] Alpha.'
    """

    return "\n\n".join(
        f"[{position}] {chunk.text}"
        for position, chunk in enumerate(chunks, start=1)
    )


class ExcerptAnswerGenerator:
    """Answer with the cited excerpts themselves, without a language model."""

    def __init__(self, *, max_chunks: int = 3) -> None:
        self._max_chunks = max_chunks

    def answer(self, question: str, chunks: Sequence[RankedChunk]) -> str:
        return build_context(chunks[: self._max_chunks])


@dataclass(frozen=True, slots=True)
class QueryAnswer:
    question: str
    answer: str
    sources: tuple[RankedChunk, ...]
    confidence: float

    def to_payload(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "sources": [chunk.to_mapping() for chunk in self.sources],
            "confidence": self.confidence,
        }


class QueryService:
    """Answer questions against a :class:`VectorStore`."""

    def __init__(
        self,
        *,
        generator: EmbeddingGenerator,
        store: VectorStore,
        answer_generator: AnswerGenerator | None = None,
        logger: Logger | None = None,
    ) -> None:
        self.generator = generator
        self.store = store
        self.answer_generator = answer_generator or ExcerptAnswerGenerator()
        self.logger = logger or get_logger(__name__, component="query")

    def search(
        self,
        question: str,
        top_k: int = 5,
        where: Mapping[str, Any] | None = None,
    ) -> list[RankedChunk]:
        """Return the ``top_k`` chunks most similar to ``question``.

        Raises:
            EmbeddingError: If the question cannot be embedded.
        """

        vector = self.generator.embed_one(question)
        hits = self.store.search(vector, top_k, where)
        self.logger.info(
            "query-search",
            top_k=top_k,
            hits=len(hits),
            filtered=bool(where),
        )
        return [RankedChunk.from_hit(hit) for hit in hits]

    def answer(
        self,
        question: str,
        top_k: int = 5,
        where: Mapping[str, Any] | None = None,
    ) -> QueryAnswer:
        chunks = self.search(question, top_k, where)
        if not chunks:
            return QueryAnswer(
                question=question,
                answer=NO_RESULTS_ANSWER,
                sources=(),
                confidence=0.0,
            )
        text = self.answer_generator.answer(question, chunks)
        return QueryAnswer(
            question=question,
            answer=text,
            sources=tuple(chunks),
            confidence=chunks[0].score,
        )
