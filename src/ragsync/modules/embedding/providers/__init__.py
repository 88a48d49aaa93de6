"""Embedding provider contract and registry."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Callable,
    Mapping,
    Protocol,
    Sequence,
    runtime_checkable,
)

from ragsync.core.logging import Logger

__all__ = [
    "EmbeddingVector",
    "EmbeddingMatrix",
    "EmbeddingsProvider",
    "ProviderFactory",
    "ProviderInitContext",
    "ProviderRegistry",
    "ProviderRegistryError",
    "ProviderNotRegisteredError",
    "OpenAIEmbeddingsProvider",
    "azure_provider_factory",
    "openai_provider_factory",
    "register_builtin_providers",
    "create_default_provider_registry",
]

# Embedding vector aliases keep typing concise across provider implementations.
EmbeddingVector = tuple[float, ...]
EmbeddingMatrix = tuple[EmbeddingVector, ...]


@runtime_checkable
class EmbeddingsProvider(Protocol):
    """Boundary contract for one embedding endpoint.

    Implementations raise :class:`ragsync.core.errors.ProviderError` with an
    explicit ``kind`` on failure; ``ErrorKind.RATE_LIMITED`` triggers
    endpoint failover in the generator.
    """

    @property
    def model(self) -> str:
        """Model (or deployment) this provider embeds with."""

    def embed_texts(self, texts: Sequence[str]) -> EmbeddingMatrix:
        """Embed ``texts`` in a single request, preserving order."""


@dataclass(frozen=True, slots=True)
class ProviderInitContext:
    """Construction context supplied to provider factories."""

    logger: Logger
    config: Mapping[str, object] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "config",
            MappingProxyType(dict(self.config or {})),
        )


ProviderFactory = Callable[[ProviderInitContext], EmbeddingsProvider]
"""Factory callable responsible for instantiating providers."""


class ProviderRegistryError(RuntimeError):
    """Base error type raised when interacting with the provider registry."""


class ProviderNotRegisteredError(ProviderRegistryError):
    """Raised when a provider lookup fails for the requested key."""


class ProviderRegistry:
    """Mutable registry mapping provider keys to factory callables."""

    def __init__(
        self,
        factories: Mapping[str, ProviderFactory] | None = None,
    ) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        for key, factory in (factories or {}).items():
            self.register(key, factory)

    @staticmethod
    def _normalize_key(key: str) -> str:
        normalized = key.strip().lower()
        if not normalized:
            raise ValueError("provider key cannot be empty")
        return normalized

    def register(self, key: str, factory: ProviderFactory) -> None:
        """Register ``factory`` under ``key``; errors if key already present."""

        normalized = self._normalize_key(key)
        if normalized in self._factories:
            raise ProviderRegistryError(
                f"Provider {normalized!r} already registered",
            )
        self._factories[normalized] = factory

    def get_factory(self, key: str) -> ProviderFactory:
        normalized = self._normalize_key(key)
        try:
            return self._factories[normalized]
        except KeyError as exc:
            raise ProviderNotRegisteredError(
                f"No provider registered under key {normalized!r}",
            ) from exc

    def create(
        self,
        key: str,
        *,
        logger: Logger,
        config: Mapping[str, object] | None = None,
    ) -> EmbeddingsProvider:
        """Instantiate the provider registered under ``key``."""

        factory = self.get_factory(key)
        return factory(ProviderInitContext(logger=logger, config=config))

    def snapshot(self) -> Mapping[str, ProviderFactory]:
        """Return an immutable view of registered provider factories."""

        return MappingProxyType(dict(self._factories))


if TYPE_CHECKING:  # pragma: no cover - type checker imports only
    from .openai import (
        OpenAIEmbeddingsProvider,
        azure_provider_factory,
        openai_provider_factory,
    )


_LAZY_OPENAI_EXPORTS = {
    "OpenAIEmbeddingsProvider",
    "azure_provider_factory",
    "openai_provider_factory",
}


def __getattr__(name: str) -> object:
    # Defer importing the ``openai`` SDK until a provider is requested.
    if name in _LAZY_OPENAI_EXPORTS:
        from . import openai as _openai_module

        return getattr(_openai_module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted({*globals(), *__all__})


def _lazy_factory(attribute: str) -> ProviderFactory:
    def _factory(context: ProviderInitContext) -> EmbeddingsProvider:
        from . import openai as _openai_module

        return getattr(_openai_module, attribute)(context)

    return _factory


def register_builtin_providers(
    registry: ProviderRegistry,
) -> ProviderRegistry:
    """Register the built-in ``openai`` and ``azure`` providers."""

    existing = registry.snapshot()
    if "openai" not in existing:
        registry.register("openai", _lazy_factory("openai_provider_factory"))
    if "azure" not in existing:
        registry.register("azure", _lazy_factory("azure_provider_factory"))
    return registry


def create_default_provider_registry() -> ProviderRegistry:
    """Return a provider registry populated with built-in providers."""

    return register_builtin_providers(ProviderRegistry())
