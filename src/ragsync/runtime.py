"""Explicit construction of the component graph from configuration."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Sequence

from ragsync.core.config import (
    AppConfig,
    EmbeddingSettings,
    env_overrides,
    load_config,
    load_packaged_defaults,
    load_user_config,
)
from ragsync.core.logging import Logger, get_logger
from ragsync.core.paths import WorkspacePaths
from ragsync.modules.embedding import (
    EmbeddingEndpoint,
    EmbeddingGenerator,
    EmbeddingMatrix,
    EmbeddingsProvider,
    ProviderRegistry,
    create_default_provider_registry,
)
from ragsync.modules.tracker import ChangeTracker
from ragsync.modules.vdb import VectorStore
from ragsync.query import AnswerGenerator, QueryService
from ragsync.source import (
    Extractor,
    LocalDirectoryConnector,
    PlainTextExtractor,
    SourceConnector,
)
from ragsync.sync.models import SyncConfig
from ragsync.sync.orchestrator import SyncOrchestrator

__all__ = [
    "Runtime",
    "build_endpoints",
    "build_runtime",
    "load_workspace_config",
]


class _DeferredProvider:
    """Create the wrapped provider on first use.

    Construction of SDK clients needs credentials; commands that never
    embed (``status``, ``documents``) must not require them.
    """

    def __init__(self, factory: Callable[[], EmbeddingsProvider], model: str) -> None:
        self._factory = factory
        self._model = model
        self._provider: EmbeddingsProvider | None = None
        self._lock = threading.Lock()

    @property
    def model(self) -> str:
        return self._model

    def _resolve(self) -> EmbeddingsProvider:
        with self._lock:
            if self._provider is None:
                self._provider = self._factory()
            return self._provider

    def embed_texts(self, texts: Sequence[str]) -> EmbeddingMatrix:
        return self._resolve().embed_texts(texts)


def build_endpoints(
    settings: EmbeddingSettings,
    *,
    registry: ProviderRegistry,
    logger: Logger,
) -> list[EmbeddingEndpoint]:
    """Return generator endpoints in configured failover order.

    Raises:
        ProviderNotRegisteredError: If an endpoint names an unknown provider.
    """

    endpoints: list[EmbeddingEndpoint] = []
    for endpoint in settings.endpoints:
        registry.get_factory(endpoint.provider)
        provider_config = endpoint.provider_config(
            default_model=settings.model,
            timeout=settings.timeout,
        )
        endpoint_logger = logger.bind(endpoint=endpoint.name)

        def _factory(
            key: str = endpoint.provider,
            config: Mapping[str, object] = provider_config,
            bound: Logger = endpoint_logger,
        ) -> EmbeddingsProvider:
            return registry.create(key, logger=bound, config=config)

        endpoints.append(
            EmbeddingEndpoint(
                name=endpoint.name,
                provider=_DeferredProvider(
                    _factory,
                    model=str(provider_config["model"]),
                ),
            )
        )
    return endpoints


def load_workspace_config(
    paths: WorkspacePaths,
    *,
    environ: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, object] | None = None,
) -> AppConfig:
    """Merge defaults, ``ragsync.toml``, environment and CLI layers.

    Raises:
        ConfigError: If any layer is invalid.
    """

    overrides: dict[str, object] = {"workspace": str(paths.workspace)}
    overrides.update(cli_overrides or {})
    return load_config(
        defaults=load_packaged_defaults(),
        user_config=load_user_config(paths.config_file),
        env_config=env_overrides(os.environ if environ is None else environ),
        cli_overrides=overrides,
    )


@dataclass(slots=True)
class Runtime:
    """Every long-lived component of one ragsync process."""

    config: AppConfig
    paths: WorkspacePaths
    logger: Logger
    generator: EmbeddingGenerator
    store: VectorStore
    tracker: ChangeTracker
    orchestrator: SyncOrchestrator
    query: QueryService

    @property
    def default_folder(self) -> str | None:
        return self.config.sync.source_folder

    def close(self) -> None:
        """Flush the vector store; tracker state is saved per cycle."""

        self.store.flush()


def build_runtime(
    config: AppConfig,
    paths: WorkspacePaths,
    *,
    logger: Logger | None = None,
    registry: ProviderRegistry | None = None,
    connector: SourceConnector | None = None,
    extractor: Extractor | None = None,
    answer_generator: AnswerGenerator | None = None,
    generator: EmbeddingGenerator | None = None,
    root: Path | None = None,
) -> Runtime:
    """Wire store, tracker, generator and orchestrator for ``paths``.

    Raises:
        ConfigError: If chunker or sync settings are invalid.
    """

    base_logger = logger or get_logger(__name__)
    chunker = config.chunker.to_config()
    sync_config: SyncConfig = config.sync.to_config()
    paths.state_dir.mkdir(parents=True, exist_ok=True)

    if generator is None:
        endpoints = build_endpoints(
            config.embedding,
            registry=registry or create_default_provider_registry(),
            logger=base_logger.bind(component="embedding-provider"),
        )
        generator = EmbeddingGenerator(
            endpoints,
            batch_size=sync_config.batch_size,
            cooldown_seconds=sync_config.cooldown_seconds,
            max_concurrency=sync_config.max_concurrency,
            round_robin=config.embedding.round_robin,
            dimension=config.embedding.dimension,
            logger=base_logger.bind(component="embedding"),
        )

    store = VectorStore(
        paths.snapshot_file,
        dimension=config.embedding.dimension,
        snapshot_every_n=sync_config.snapshot_every_n,
        logger=base_logger.bind(component="vdb"),
    )
    tracker = ChangeTracker(
        paths.cache_file,
        logger=base_logger.bind(component="tracker"),
    )
    orchestrator = SyncOrchestrator(
        connector=connector
        or LocalDirectoryConnector(
            root=root,
            logger=base_logger.bind(component="source"),
        ),
        extractor=extractor or PlainTextExtractor(),
        generator=generator,
        store=store,
        tracker=tracker,
        chunker=chunker,
        config=sync_config,
        logger=base_logger.bind(component="sync"),
    )
    query = QueryService(
        generator=generator,
        store=store,
        answer_generator=answer_generator,
        logger=base_logger.bind(component="query"),
    )
    return Runtime(
        config=config,
        paths=paths,
        logger=base_logger,
        generator=generator,
        store=store,
        tracker=tracker,
        orchestrator=orchestrator,
        query=query,
    )
