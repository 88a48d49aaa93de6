"""Shared pytest fixtures and fakes for sync, embedding and query tests."""

from __future__ import annotations

import logging
import re
import zlib
from collections.abc import Callable, Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any

import pytest

from ragsync.core.errors import ErrorKind, ProviderError
from ragsync.core.paths import WorkspacePaths
from ragsync.modules.chunker import ChunkerConfig
from ragsync.modules.embedding import EmbeddingEndpoint, EmbeddingGenerator
from ragsync.modules.tracker import ChangeTracker
from ragsync.modules.vdb import VectorStore
from ragsync.source import PlainTextExtractor, SourceItem
from ragsync.sync.models import SyncConfig
from ragsync.sync.orchestrator import SyncOrchestrator

HASH_DIMENSION = 64
_WORD = re.compile(r"[a-z0-9]+")


class HashEmbeddingsProvider:
    """Deterministic bag-of-words embeddings keyed by CRC32 buckets."""

    def __init__(self, *, dimension: int = HASH_DIMENSION, model: str = "hash"):
        self.dimension = dimension
        self._model = model
        self.calls: list[tuple[str, ...]] = []

    @property
    def model(self) -> str:
        return self._model

    def vector_for(self, text: str) -> tuple[float, ...]:
        buckets = [0.0] * self.dimension
        for word in _WORD.findall(text.lower()):
            buckets[zlib.crc32(word.encode("utf-8")) % self.dimension] += 1.0
        return tuple(buckets)

    def embed_texts(self, texts: Sequence[str]) -> tuple[tuple[float, ...], ...]:
        self.calls.append(tuple(texts))
        return tuple(self.vector_for(text) for text in texts)


class ScriptedProvider:
    """Provider replaying scripted responses (vectors or exceptions)."""

    def __init__(
        self,
        script: Iterable[Sequence[Sequence[float]] | Exception] = (),
        *,
        fallback: Callable[[Sequence[str]], Sequence[Sequence[float]]] | None = None,
        model: str = "scripted",
    ) -> None:
        self._script = list(script)
        self._fallback = fallback
        self._model = model
        self.calls: list[tuple[str, ...]] = []

    @property
    def model(self) -> str:
        return self._model

    def embed_texts(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        self.calls.append(tuple(texts))
        if not self._script:
            if self._fallback is None:
                raise AssertionError("unexpected embedding call")
            return self._fallback(texts)
        step = self._script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def rate_limited(provider: str = "fake") -> ProviderError:
    return ProviderError(
        "429 Too Many Requests",
        provider=provider,
        model="fake",
        kind=ErrorKind.RATE_LIMITED,
        status_code=429,
    )


def provider_error(kind: ErrorKind, provider: str = "fake") -> ProviderError:
    return ProviderError(
        f"{kind} failure",
        provider=provider,
        model="fake",
        kind=kind,
    )


class FakeClock:
    """Monotonic clock advanced by the sleeps it records."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeConnector:
    """In-memory source folder with mutable items."""

    def __init__(self) -> None:
        self.items: dict[str, tuple[SourceItem, bytes]] = {}
        self.downloads: list[str] = []
        self.list_error: Exception | None = None
        self.on_list: Callable[[], None] | None = None

    def put(
        self,
        item_id: str,
        text: str | bytes,
        *,
        modified_time: str = "2024-01-01T00:00:00.000Z",
        name: str | None = None,
        mime_type: str = "text/plain",
    ) -> SourceItem:
        data = text.encode("utf-8") if isinstance(text, str) else text
        item = SourceItem(
            id=item_id,
            name=name or item_id,
            mime_type=mime_type,
            modified_time=modified_time,
        )
        self.items[item_id] = (item, data)
        return item

    def remove(self, item_id: str) -> None:
        del self.items[item_id]

    def list_items(self, folder_id: str) -> list[SourceItem]:
        if self.on_list is not None:
            self.on_list()
        if self.list_error is not None:
            raise self.list_error
        return [item for item, _ in self.items.values()]

    def download(self, item_id: str) -> bytes:
        self.downloads.append(item_id)
        return self.items[item_id][1]


def words(count: int, prefix: str = "w") -> str:
    """Return ``count`` distinct whitespace-separated words."""

    return " ".join(f"{prefix}{index}" for index in range(count))


@pytest.fixture
def reset_logging() -> Iterator[None]:
    """Detach root handlers installed by CLI or API entry points."""

    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def workspace_paths(tmp_path: Path) -> WorkspacePaths:
    """Provide a workspace layout rooted in ``tmp_path`` with directories."""

    paths = WorkspacePaths.under(tmp_path / "workspace")
    paths.ensure_directories()
    return paths


@pytest.fixture
def hash_provider() -> HashEmbeddingsProvider:
    return HashEmbeddingsProvider()


@pytest.fixture
def hash_generator(hash_provider: HashEmbeddingsProvider) -> EmbeddingGenerator:
    return EmbeddingGenerator(
        [EmbeddingEndpoint("primary", hash_provider)],
        batch_size=4,
        sleep=lambda _: None,
    )


@pytest.fixture
def fake_connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def make_orchestrator(
    workspace_paths: WorkspacePaths,
    fake_connector: FakeConnector,
    hash_generator: EmbeddingGenerator,
) -> Callable[..., SyncOrchestrator]:
    """Build orchestrators sharing the workspace state files.

    Each call creates a fresh store and tracker loaded from disk, which
    mirrors a process restart.
    """

    def _build(**overrides: Any) -> SyncOrchestrator:
        config: SyncConfig = overrides.pop("config", SyncConfig(snapshot_every_n=1))
        store = overrides.pop(
            "store",
            VectorStore(
                workspace_paths.snapshot_file,
                snapshot_every_n=config.snapshot_every_n,
            ),
        )
        tracker = overrides.pop(
            "tracker",
            ChangeTracker(workspace_paths.cache_file),
        )
        options: dict[str, Any] = {
            "connector": fake_connector,
            "extractor": PlainTextExtractor(),
            "generator": hash_generator,
            "store": store,
            "tracker": tracker,
            "chunker": ChunkerConfig(size=10, overlap=2),
            "config": config,
        }
        options.update(overrides)
        return SyncOrchestrator(**options)

    return _build
