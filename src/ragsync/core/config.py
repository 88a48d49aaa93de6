"""Configuration models and loaders for :mod:`ragsync`."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping as MappingABC
from pathlib import Path
from typing import Any, Mapping

import tomlkit
from pydantic import BaseModel, Field, ValidationError, model_validator

from ragsync.core.errors import ConfigError
from ragsync.modules.chunker import ChunkerConfig
from ragsync.resources import get_resource
from ragsync.sync.models import SyncConfig

__all__ = [
    "AppConfig",
    "ChunkerSettings",
    "EmbeddingSettings",
    "EndpointSettings",
    "SyncSettings",
    "DEFAULTS_RESOURCE_NAME",
    "ENV_LOG_LEVEL",
    "ENV_SOURCE_FOLDER",
    "ENV_WORKSPACE",
    "env_overrides",
    "load_config",
    "load_packaged_defaults",
    "load_user_config",
    "read_packaged_defaults_text",
    "render_user_config",
]

DEFAULTS_RESOURCE_NAME = "ragsync.defaults.toml"

ENV_WORKSPACE = "RAGSYNC_WORKSPACE"
ENV_LOG_LEVEL = "RAGSYNC_LOG_LEVEL"
ENV_SOURCE_FOLDER = "RAGSYNC_SOURCE_FOLDER"


class ChunkerSettings(BaseModel):
    """Word-window chunking parameters."""

    size: int = Field(
        default=1000,
        description="Number of words per chunk window.",
    )
    overlap: int = Field(
        default=200,
        description="Words shared by consecutive chunks; must be < size.",
    )

    model_config = {"frozen": True}

    def to_config(self) -> ChunkerConfig:
        """Return the validated runtime value.

        Raises:
            ConfigError: If ``overlap >= size`` or either value is negative.
        """

        return ChunkerConfig(size=self.size, overlap=self.overlap)


class SyncSettings(BaseModel):
    """Sync cycle, embedding batching and persistence tuning."""

    batch_size: int = Field(
        default=16,
        ge=1,
        description="Maximum texts per embedding request.",
    )
    cooldown_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Seconds a rate-limited endpoint stays out of rotation.",
    )
    snapshot_every_n: int = Field(
        default=10,
        ge=1,
        description="Upserts between automatic vector snapshots.",
    )
    max_concurrency: int = Field(
        default=1,
        ge=1,
        description="Embedding batches allowed in flight for one item.",
    )
    source_folder: str | None = Field(
        default=None,
        description="Default source folder synchronized when none is given.",
    )
    reconcile_by_name: bool = Field(
        default=True,
        description=(
            "Treat items whose name is already present in the vector store "
            "as indexed when the sync cache has no entry for them."
        ),
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    def to_config(self) -> SyncConfig:
        return SyncConfig(
            batch_size=self.batch_size,
            cooldown_seconds=self.cooldown_seconds,
            snapshot_every_n=self.snapshot_every_n,
            max_concurrency=self.max_concurrency,
            reconcile_by_name=self.reconcile_by_name,
        )


class EndpointSettings(BaseModel):
    """One embedding provider endpoint in failover order."""

    name: str = Field(description="Endpoint label used in logs and status.")
    provider: str = Field(
        default="openai",
        description="Registered provider key (``openai`` or ``azure``).",
    )
    model: str | None = Field(
        default=None,
        description="Model override; defaults to ``embedding.model``.",
    )
    base_url: str | None = Field(
        default=None,
        description="API base URL or Azure endpoint.",
    )
    api_key_env: str = Field(
        default="OPENAI_API_KEY",
        description="Environment variable holding the API key.",
    )
    api_version: str | None = Field(
        default=None,
        description="Azure OpenAI API version.",
    )
    deployment: str | None = Field(
        default=None,
        description="Azure OpenAI deployment name.",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    def provider_config(self, *, default_model: str, timeout: float) -> dict[str, Any]:
        """Return the mapping handed to the provider factory."""

        return {
            "name": self.name,
            "model": self.model or default_model,
            "base_url": self.base_url,
            "api_key_env": self.api_key_env,
            "api_version": self.api_version,
            "deployment": self.deployment,
            "timeout": timeout,
        }


def _default_endpoints() -> list[EndpointSettings]:
    return [EndpointSettings(name="primary")]


class EmbeddingSettings(BaseModel):
    """Embedding model and ordered endpoint list."""

    model: str = Field(
        default="text-embedding-3-small",
        description="Default embedding model for every endpoint.",
    )
    dimension: int | None = Field(
        default=None,
        ge=1,
        description="Expected vector dimensionality; learned when unset.",
    )
    round_robin: bool = Field(
        default=True,
        description="Alternate healthy endpoints across successive calls.",
    )
    timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Per-request timeout in seconds.",
    )
    endpoints: list[EndpointSettings] = Field(
        default_factory=_default_endpoints,
        description="Endpoints in failover order (primary first).",
    )

    model_config = {"frozen": True, "str_strip_whitespace": True}

    @model_validator(mode="after")
    def _require_endpoints(self) -> "EmbeddingSettings":
        if not self.endpoints:
            raise ValueError("embedding.endpoints must list at least one endpoint")
        names = [endpoint.name for endpoint in self.endpoints]
        if len(set(names)) != len(names):
            raise ValueError("embedding.endpoints names must be unique")
        return self


class AppConfig(BaseModel):
    """Root configuration for the :mod:`ragsync` application."""

    workspace: Path = Field(
        default_factory=lambda: Path("~/.ragsync").expanduser(),
        description="Absolute path to the workspace root.",
    )
    log_level: str = Field(
        default="INFO",
        description="Default logging level for the application runtime.",
    )
    chunker: ChunkerSettings = Field(default_factory=ChunkerSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)

    model_config = {
        "str_strip_whitespace": True,
        "validate_assignment": True,
    }

    @model_validator(mode="after")
    def _normalize(self) -> "AppConfig":
        object.__setattr__(self, "log_level", self.log_level.upper())
        object.__setattr__(self, "workspace", self.workspace.expanduser())
        return self


def read_packaged_defaults_text() -> str:
    """Return the raw packaged defaults TOML content."""

    return get_resource(DEFAULTS_RESOURCE_NAME).read_text(encoding="utf-8")


def load_packaged_defaults() -> dict[str, Any]:
    """Load the packaged defaults as a plain dictionary.

    Example:
        >>> load_packaged_defaults()["chunker"]["size"]
        1000
    """

    return tomllib.loads(read_packaged_defaults_text())


def load_user_config(path: Path) -> dict[str, Any]:
    """Parse the user ``ragsync.toml`` at ``path`` (empty when missing).

    Raises:
        ConfigError: If the file is not valid TOML.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Translate ``RAGSYNC_*`` environment variables into a config layer."""

    env = os.environ if environ is None else environ
    layer: dict[str, Any] = {}
    if env.get(ENV_WORKSPACE):
        layer["workspace"] = env[ENV_WORKSPACE]
    if env.get(ENV_LOG_LEVEL):
        layer["log_level"] = env[ENV_LOG_LEVEL]
    if env.get(ENV_SOURCE_FOLDER):
        layer["sync"] = {"source_folder": env[ENV_SOURCE_FOLDER]}
    return layer


def _deep_merge(
    base: Mapping[str, Any],
    overlay: Mapping[str, Any],
) -> dict[str, Any]:
    """Recursively merge ``overlay`` into ``base`` returning a new dict."""

    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, MappingABC) and isinstance(value, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_config(
    *,
    defaults: Mapping[str, Any],
    user_config: Mapping[str, Any] | None = None,
    env_config: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Load configuration according to the precedence stack.

    Precedence: CLI flags > environment > ``ragsync.toml`` > defaults.

    Raises:
        ConfigError: If the merged payload fails validation.
    """

    stack: dict[str, Any] = dict(defaults)
    for layer in (user_config, env_config, cli_overrides):
        if layer:
            stack = _deep_merge(stack, layer)

    try:
        return AppConfig(**stack)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def _endpoint_table(endpoint: EndpointSettings) -> tomlkit.items.Table:
    entry = tomlkit.table()
    entry["name"] = endpoint.name
    entry["provider"] = endpoint.provider
    entry["api_key_env"] = endpoint.api_key_env
    for key in ("model", "base_url", "api_version", "deployment"):
        value = getattr(endpoint, key)
        if value is not None:
            entry[key] = value
    return entry


def render_user_config(config: AppConfig, *, include_comments: bool = True) -> str:
    """Render a ``ragsync.toml`` document for users to customize."""

    document = tomlkit.document()
    if include_comments:
        document.add(tomlkit.comment("Generated by ragsync init"))
        document.add(
            tomlkit.comment(
                "Precedence: CLI flags > env vars > ragsync.toml > defaults"
            )
        )
        document.add(tomlkit.comment("Environment overrides:"))
        document.add(tomlkit.comment(f"  {ENV_WORKSPACE}=/path/to/workspace"))
        document.add(tomlkit.comment(f"  {ENV_LOG_LEVEL}=info"))
        document.add(tomlkit.comment(f"  {ENV_SOURCE_FOLDER}=/path/to/folder"))
        document.add(tomlkit.nl())

    document["workspace"] = str(config.workspace)
    document["log_level"] = config.log_level

    chunker = tomlkit.table()
    chunker["size"] = config.chunker.size
    chunker["overlap"] = config.chunker.overlap
    document["chunker"] = chunker

    sync = tomlkit.table()
    sync["batch_size"] = config.sync.batch_size
    sync["cooldown_seconds"] = config.sync.cooldown_seconds
    sync["snapshot_every_n"] = config.sync.snapshot_every_n
    sync["max_concurrency"] = config.sync.max_concurrency
    sync["reconcile_by_name"] = config.sync.reconcile_by_name
    if config.sync.source_folder is not None:
        sync["source_folder"] = config.sync.source_folder
    document["sync"] = sync

    embedding = tomlkit.table()
    embedding["model"] = config.embedding.model
    if config.embedding.dimension is not None:
        embedding["dimension"] = config.embedding.dimension
    embedding["round_robin"] = config.embedding.round_robin
    embedding["timeout"] = config.embedding.timeout
    endpoints = tomlkit.aot()
    for endpoint in config.embedding.endpoints:
        endpoints.append(_endpoint_table(endpoint))
    embedding["endpoints"] = endpoints
    document["embedding"] = embedding

    return tomlkit.dumps(document)
