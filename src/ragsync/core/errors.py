"""Typed error taxonomy shared by every :mod:`ragsync` component.

Collaborator boundaries (providers, extractors, persistence) classify their
failures with an explicit :class:`ErrorKind`. Callers branch on ``kind``
rather than on message text.
"""

from __future__ import annotations

from enum import StrEnum

__all__ = [
    "ErrorKind",
    "RagSyncError",
    "ConfigError",
    "SyncConflictError",
    "ExtractionError",
    "ProviderError",
    "EmbeddingError",
    "VectorIndexError",
    "DimensionMismatchError",
]


class ErrorKind(StrEnum):
    """Classification attached to every :class:`RagSyncError`."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    INVALID_REQUEST = "invalid_request"
    INVALID_RESPONSE = "invalid_response"
    AUTHENTICATION = "authentication"
    NO_CONTENT = "no_content"
    UNSUPPORTED_TYPE = "unsupported_type"
    PERSISTENCE = "persistence"
    CONFLICT = "conflict"
    CONFIGURATION = "configuration"
    DIMENSION_MISMATCH = "dimension_mismatch"
    UNKNOWN = "unknown"


class RagSyncError(RuntimeError):
    """Base error for :mod:`ragsync` failures."""

    default_kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind


class ConfigError(RagSyncError):
    """Raised for invalid configuration values (e.g. ``overlap >= size``)."""

    default_kind = ErrorKind.CONFIGURATION


class SyncConflictError(RagSyncError):
    """Raised when a sync cycle is requested while another one is running."""

    default_kind = ErrorKind.CONFLICT


class ExtractionError(RagSyncError):
    """Raised when the extraction collaborator yields no usable text."""

    default_kind = ErrorKind.NO_CONTENT


class ProviderError(RagSyncError):
    """Raised by embedding providers for a single failed request."""

    default_kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        model: str,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, kind=kind)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.request_id = request_id

    @property
    def is_rate_limited(self) -> bool:
        return self.kind is ErrorKind.RATE_LIMITED


class EmbeddingError(RagSyncError):
    """Raised once every provider endpoint failed for a batch."""

    def __init__(
        self,
        message: str,
        *,
        last_error: ProviderError | None = None,
        attempts: int = 0,
        kind: ErrorKind | None = None,
    ) -> None:
        resolved = kind or (
            last_error.kind if last_error is not None else None
        )
        super().__init__(message, kind=resolved)
        self.last_error = last_error
        self.attempts = attempts


class VectorIndexError(RagSyncError):
    """Raised when the vector index cannot be persisted or loaded."""

    default_kind = ErrorKind.PERSISTENCE


class DimensionMismatchError(RagSyncError):
    """Raised when a vector does not match the store dimensionality."""

    default_kind = ErrorKind.DIMENSION_MISMATCH

    def __init__(self, *, expected: int, actual: int, record_id: str) -> None:
        super().__init__(
            (
                f"Vector for {record_id!r} has dimension {actual}; "
                f"store expects {expected}"
            ),
        )
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
