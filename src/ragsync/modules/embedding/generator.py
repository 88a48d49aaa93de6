"""Batched embedding with rate-limit failover across provider endpoints."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Sequence

from ragsync.core.errors import EmbeddingError, ErrorKind, ProviderError
from ragsync.core.logging import Logger, get_logger

from .providers import EmbeddingsProvider, EmbeddingVector

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_COOLDOWN_SECONDS",
    "EmbeddingEndpoint",
    "EmbeddingGenerator",
]

DEFAULT_BATCH_SIZE = 16
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass(slots=True)
class EmbeddingEndpoint:
    """One provider endpoint with its circuit-breaker deadline."""

    name: str
    provider: EmbeddingsProvider
    cooldown_until: float | None = None

    def is_cooling(self, now: float) -> bool:
        return self.cooldown_until is not None and now < self.cooldown_until


class EmbeddingGenerator:
    """Turn texts into vectors through an ordered list of endpoints.

    Texts are grouped into batches of at most ``batch_size``. Each batch is
    sent to the first endpoint that is not cooling down (rotating the start
    position between calls when ``round_robin`` is set). When an endpoint
    reports :attr:`ErrorKind.RATE_LIMITED` it cools down for
    ``cooldown_seconds`` and the batch is retried once on the next healthy
    endpoint. If every endpoint is cooling, the generator sleeps until the
    earliest deadline, clears all cooldowns and retries one final time.
    Any other provider failure, or exhausting that budget, raises
    :class:`EmbeddingError` carrying the last provider error.

    Example:
        >>> generator = EmbeddingGenerator(
        ...     [EmbeddingEndpoint("primary", provider)],
        ...     batch_size=16,
        ... )  # doctest: +SKIP
        >>> generator.embed(["hello", "world"])  # doctest: +SKIP
    """

    def __init__(
        self,
        endpoints: Sequence[EmbeddingEndpoint],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        max_concurrency: int = 1,
        round_robin: bool = True,
        dimension: int | None = None,
        logger: Logger | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not endpoints:
            raise ValueError("EmbeddingGenerator requires at least one endpoint")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if cooldown_seconds < 0:
            raise ValueError("cooldown_seconds must be >= 0")

        self._endpoints = list(endpoints)
        self._batch_size = batch_size
        self._cooldown_seconds = cooldown_seconds
        self._max_concurrency = max_concurrency
        self._round_robin = round_robin
        self._dimension = dimension
        self._clock = clock
        self._sleep = sleep
        self._cursor = 0
        self._lock = threading.Lock()
        self.logger = logger or get_logger(__name__, component="embedding")

    @property
    def dimension(self) -> int | None:
        """Vector dimensionality, learned from the first response if unset."""

        return self._dimension

    @property
    def endpoints(self) -> tuple[EmbeddingEndpoint, ...]:
        return tuple(self._endpoints)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def embed(self, texts: Sequence[object]) -> list[EmbeddingVector]:
        """Embed ``texts`` preserving order.

        Empty or non-string entries are dropped before any provider call;
        the result aligns with the remaining valid inputs.

        Raises:
            EmbeddingError: If a batch fails after the failover budget.
        """

        valid = self._filter_inputs(texts)
        if not valid:
            return []

        batches = [
            valid[start : start + self._batch_size]
            for start in range(0, len(valid), self._batch_size)
        ]
        if self._max_concurrency == 1 or len(batches) == 1:
            results = [self._embed_batch(batch) for batch in batches]
        else:
            workers = min(self._max_concurrency, len(batches))
            with ThreadPoolExecutor(
                max_workers=workers,
                thread_name_prefix="ragsync-embed",
            ) as pool:
                results = list(pool.map(self._embed_batch, batches))

        vectors: list[EmbeddingVector] = []
        for batch_vectors in results:
            vectors.extend(batch_vectors)
        return vectors

    def embed_one(self, text: str) -> EmbeddingVector:
        """Embed a single text.

        Raises:
            EmbeddingError: If ``text`` is empty or the request fails.
        """

        if not isinstance(text, str) or not text.strip():
            raise EmbeddingError(
                "Cannot embed empty text",
                kind=ErrorKind.INVALID_REQUEST,
            )
        return self._embed_batch([text])[0]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _filter_inputs(self, texts: Sequence[object]) -> list[str]:
        valid: list[str] = []
        dropped: list[int] = []
        for position, text in enumerate(texts):
            if isinstance(text, str) and text.strip():
                valid.append(text)
            else:
                dropped.append(position)
        if dropped:
            self.logger.warning(
                "embedding-inputs-dropped",
                positions=dropped,
                dropped=len(dropped),
                total=len(texts),
            )
        return valid

    def _select_endpoint(self) -> EmbeddingEndpoint | None:
        with self._lock:
            now = self._clock()
            count = len(self._endpoints)
            start = self._cursor if self._round_robin else 0
            for offset in range(count):
                position = (start + offset) % count
                endpoint = self._endpoints[position]
                if endpoint.is_cooling(now):
                    continue
                if self._round_robin:
                    self._cursor = (position + 1) % count
                return endpoint
            return None

    def _cool_down(self, endpoint: EmbeddingEndpoint, error: ProviderError) -> None:
        with self._lock:
            endpoint.cooldown_until = self._clock() + self._cooldown_seconds
        self.logger.warning(
            "embedding-endpoint-cooldown",
            endpoint=endpoint.name,
            cooldown_seconds=self._cooldown_seconds,
            status_code=error.status_code,
        )

    def _mark_healthy(self, endpoint: EmbeddingEndpoint) -> None:
        with self._lock:
            endpoint.cooldown_until = None

    def _wait_for_reset(self) -> None:
        with self._lock:
            deadlines = [
                endpoint.cooldown_until
                for endpoint in self._endpoints
                if endpoint.cooldown_until is not None
            ]
            delay = max(0.0, min(deadlines) - self._clock()) if deadlines else 0.0
        self.logger.info("embedding-cooldown-wait", delay=delay)
        if delay > 0:
            self._sleep(delay)
        with self._lock:
            for endpoint in self._endpoints:
                endpoint.cooldown_until = None

    def _embed_batch(self, batch: Sequence[str]) -> list[EmbeddingVector]:
        attempts = 0
        last_error: ProviderError | None = None
        failed_over = False
        waited = False

        while True:
            endpoint = self._select_endpoint()
            if endpoint is None:
                if waited:
                    break
                self._wait_for_reset()
                waited = True
                continue

            attempts += 1
            try:
                vectors = endpoint.provider.embed_texts(list(batch))
            except ProviderError as exc:
                last_error = exc
                if exc.kind is not ErrorKind.RATE_LIMITED:
                    self.logger.error(
                        "embedding-request-failed",
                        endpoint=endpoint.name,
                        kind=str(exc.kind),
                        attempts=attempts,
                    )
                    raise EmbeddingError(
                        f"Endpoint {endpoint.name!r} failed: {exc.message}",
                        last_error=exc,
                        attempts=attempts,
                    ) from exc
                self._cool_down(endpoint, exc)
                if waited:
                    break
                if failed_over:
                    self._wait_for_reset()
                    waited = True
                else:
                    failed_over = True
                continue

            self._mark_healthy(endpoint)
            return self._validate(endpoint, batch, vectors)

        raise EmbeddingError(
            f"All embedding endpoints rate limited after {attempts} attempts",
            last_error=last_error,
            attempts=attempts,
        )

    def _validate(
        self,
        endpoint: EmbeddingEndpoint,
        batch: Sequence[str],
        vectors: Sequence[Sequence[float]],
    ) -> list[EmbeddingVector]:
        if len(vectors) != len(batch):
            raise EmbeddingError(
                (
                    f"Endpoint {endpoint.name!r} returned {len(vectors)} "
                    f"vectors for {len(batch)} inputs"
                ),
                kind=ErrorKind.INVALID_RESPONSE,
            )

        normalized = [tuple(float(value) for value in vector) for vector in vectors]
        with self._lock:
            if self._dimension is None and normalized:
                self._dimension = len(normalized[0])
            expected = self._dimension
        for vector in normalized:
            if len(vector) != expected:
                raise EmbeddingError(
                    (
                        f"Endpoint {endpoint.name!r} returned a vector of "
                        f"dimension {len(vector)}; expected {expected}"
                    ),
                    kind=ErrorKind.INVALID_RESPONSE,
                )
        return normalized
