"""Embedding generation: provider registry and failover generator."""

from __future__ import annotations

from .generator import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_COOLDOWN_SECONDS,
    EmbeddingEndpoint,
    EmbeddingGenerator,
)
from .providers import (
    EmbeddingMatrix,
    EmbeddingsProvider,
    EmbeddingVector,
    ProviderInitContext,
    ProviderNotRegisteredError,
    ProviderRegistry,
    ProviderRegistryError,
    create_default_provider_registry,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_COOLDOWN_SECONDS",
    "EmbeddingEndpoint",
    "EmbeddingGenerator",
    "EmbeddingMatrix",
    "EmbeddingVector",
    "EmbeddingsProvider",
    "ProviderInitContext",
    "ProviderNotRegisteredError",
    "ProviderRegistry",
    "ProviderRegistryError",
    "create_default_provider_registry",
]
