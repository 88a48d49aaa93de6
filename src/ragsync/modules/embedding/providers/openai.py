"""OpenAI and Azure OpenAI embeddings providers."""

from __future__ import annotations

import os
import random
import time
from typing import Any, Callable, Mapping, Sequence

import httpx
from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    AzureOpenAI,
    BadRequestError,
    OpenAI,
    PermissionDeniedError,
    RateLimitError,
)

from ragsync.core.errors import ErrorKind, ProviderError
from ragsync.core.logging import Logger

from . import (
    EmbeddingMatrix,
    EmbeddingsProvider,
    ProviderInitContext,
)

__all__ = [
    "OpenAIEmbeddingsProvider",
    "azure_provider_factory",
    "openai_provider_factory",
]

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_MODEL = "text-embedding-3-small"
_DEFAULT_AZURE_API_VERSION = "2024-08-01-preview"
# Retries happen in ``_invoke_with_retries``; the SDK must surface 429s at once.
_SDK_MAX_RETRIES = 0
_BACKOFF_BASE = 0.5
_BACKOFF_MULTIPLIER = 2.0
_BACKOFF_CAP = 8.0
_JITTER_RATIO = 0.2
_MAX_ATTEMPTS = 3


def _config_str(config: Mapping[str, object], key: str) -> str | None:
    value = config.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _config_timeout(config: Mapping[str, object]) -> float:
    raw = config.get("timeout")
    if raw is None:
        return _DEFAULT_TIMEOUT
    try:
        parsed = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError("timeout must be a number when provided.") from exc
    if parsed <= 0:
        raise ValueError("timeout must be positive.")
    return parsed


class OpenAIEmbeddingsProvider(EmbeddingsProvider):
    """Embed texts through one OpenAI-compatible endpoint.

    Transport failures and 5xx responses are retried with jittered
    exponential backoff. Rate limits are surfaced immediately as
    ``ErrorKind.RATE_LIMITED`` so the generator can fail over to another
    endpoint instead of waiting here.
    """

    def __init__(
        self,
        *,
        logger: Logger,
        config: Mapping[str, object] | None = None,
        client: Any | None = None,
        azure: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.logger = logger
        self._config = dict(config or {})
        self._azure = azure
        self._sleep = sleep
        self._now = now
        self._stats = {"requests": 0, "retries": 0, "failures": 0}
        self.name = _config_str(self._config, "name") or (
            "azure" if azure else "openai"
        )
        deployment = _config_str(self._config, "deployment")
        model = _config_str(self._config, "model") or _DEFAULT_MODEL
        # Azure routes requests by deployment name rather than model id.
        self._model = deployment if azure and deployment else model
        self._client = client or self._build_client()

    @property
    def model(self) -> str:
        return self._model

    @property
    def provider_key(self) -> str:
        return "azure" if self._azure else "openai"

    @property
    def stats(self) -> Mapping[str, int]:
        """Return counters captured during the provider lifetime."""

        return dict(self._stats)

    # ------------------------------------------------------------------#
    # Provider interface
    # ------------------------------------------------------------------#
    def embed_texts(self, texts: Sequence[str]) -> EmbeddingMatrix:
        if not texts:
            return ()

        batch = [self._normalize_text(text) for text in texts]
        data = self._invoke_with_retries(batch)
        if len(data) != len(batch):
            self._stats["failures"] += 1
            raise ProviderError(
                (
                    f"Provider returned {len(data)} embeddings for "
                    f"{len(batch)} inputs."
                ),
                provider=self.provider_key,
                model=self._model,
                kind=ErrorKind.INVALID_RESPONSE,
            )
        return tuple(tuple(float(value) for value in vector) for vector in data)

    # ------------------------------------------------------------------#
    # Internal helpers
    # ------------------------------------------------------------------#
    def _build_client(self) -> Any:
        key_env = _config_str(self._config, "api_key_env") or "OPENAI_API_KEY"
        api_key = os.environ.get(key_env)
        if not api_key:
            raise ProviderError(
                f"{key_env} must be set to use endpoint {self.name!r}.",
                provider=self.provider_key,
                model=self._model,
                kind=ErrorKind.CONFIGURATION,
            )

        base_url = _config_str(self._config, "base_url")
        timeout = _config_timeout(self._config)

        if self._azure:
            if base_url is None:
                raise ProviderError(
                    f"Endpoint {self.name!r} requires base_url for Azure.",
                    provider=self.provider_key,
                    model=self._model,
                    kind=ErrorKind.CONFIGURATION,
                )
            return AzureOpenAI(
                api_key=api_key,
                azure_endpoint=base_url,
                api_version=(
                    _config_str(self._config, "api_version")
                    or _DEFAULT_AZURE_API_VERSION
                ),
                timeout=timeout,
                max_retries=_SDK_MAX_RETRIES,
            )

        return OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=_SDK_MAX_RETRIES,
        )

    @staticmethod
    def _normalize_text(text: str) -> str:
        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        return normalized.strip()

    def _invoke_with_retries(self, batch: Sequence[str]) -> list[list[float]]:
        attempts = 0
        jitter_source = random.Random()

        while True:
            attempts += 1
            start = self._now()
            try:
                response = self._client.embeddings.create(
                    model=self._model,
                    input=list(batch),
                )
            except Exception as exc:
                error = self._translate_exception(exc)
                retry = (
                    error.kind is ErrorKind.TRANSIENT
                    and attempts < _MAX_ATTEMPTS
                )
                if not retry:
                    self._stats["failures"] += 1
                    raise error from exc

                delay = self._compute_backoff(
                    attempt=attempts,
                    rng=jitter_source,
                )
                self.logger.warning(
                    "embedding-request-retry",
                    endpoint=self.name,
                    model=self._model,
                    attempt=attempts,
                    max_attempts=_MAX_ATTEMPTS,
                    retry_delay=delay,
                    error_type=exc.__class__.__name__,
                    status_code=error.status_code,
                )
                self._stats["retries"] += 1
                self._sleep(delay)
                continue

            self._stats["requests"] += 1
            self.logger.debug(
                "embedding-request",
                endpoint=self.name,
                model=self._model,
                batch_size=len(batch),
                latency=self._now() - start,
                attempts=attempts,
            )
            items = sorted(
                response.data,
                key=lambda item: getattr(item, "index", 0) or 0,
            )
            return [list(item.embedding) for item in items]

    @staticmethod
    def _compute_backoff(*, attempt: int, rng: random.Random) -> float:
        base = _BACKOFF_BASE * (_BACKOFF_MULTIPLIER ** (attempt - 1))
        base = min(base, _BACKOFF_CAP)
        jitter = 1.0 + rng.uniform(-_JITTER_RATIO, _JITTER_RATIO)
        return round(base * jitter, 2)

    @staticmethod
    def _extract_context(exc: Exception) -> tuple[int | None, str | None]:
        status: int | None = None
        request_id: str | None = None
        value = getattr(exc, "status_code", None)
        if isinstance(value, int):
            status = value
        rid = getattr(exc, "request_id", None)
        if isinstance(rid, str):
            request_id = rid
        return status, request_id

    @staticmethod
    def _classify(exc: Exception, status: int | None) -> ErrorKind:
        if isinstance(exc, RateLimitError) or status == 429:
            return ErrorKind.RATE_LIMITED
        if isinstance(exc, (AuthenticationError, PermissionDeniedError)):
            return ErrorKind.AUTHENTICATION
        if isinstance(
            exc,
            (
                APITimeoutError,
                APIConnectionError,
                httpx.TimeoutException,
                httpx.NetworkError,
            ),
        ):
            return ErrorKind.TRANSIENT
        if isinstance(exc, BadRequestError):
            return ErrorKind.INVALID_REQUEST
        if isinstance(exc, APIStatusError) and status is not None:
            return ErrorKind.TRANSIENT if status >= 500 else ErrorKind.INVALID_REQUEST
        return ErrorKind.UNKNOWN

    def _translate_exception(self, exc: Exception) -> ProviderError:
        status, request_id = self._extract_context(exc)
        return ProviderError(
            str(exc) or exc.__class__.__name__,
            provider=self.provider_key,
            model=self._model,
            kind=self._classify(exc, status),
            status_code=status,
            request_id=request_id,
        )


def openai_provider_factory(
    context: ProviderInitContext,
) -> OpenAIEmbeddingsProvider:
    """Factory registered under the ``openai`` key."""

    return OpenAIEmbeddingsProvider(
        logger=context.logger,
        config=context.config,
    )


def azure_provider_factory(
    context: ProviderInitContext,
) -> OpenAIEmbeddingsProvider:
    """Factory registered under the ``azure`` key."""

    return OpenAIEmbeddingsProvider(
        logger=context.logger,
        config=context.config,
        azure=True,
    )
