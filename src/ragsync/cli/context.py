"""Shared state and helpers for ``ragsync`` commands."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, NoReturn

import typer

from ragsync.core.config import ENV_WORKSPACE, AppConfig
from ragsync.core.errors import ConfigError, RagSyncError, SyncConflictError
from ragsync.core.logging import Logger, configure_logging, get_logger
from ragsync.core.paths import WorkspacePaths, resolve_workspace
from ragsync.modules.embedding import ProviderRegistryError
from ragsync.runtime import Runtime, build_runtime, load_workspace_config

__all__ = [
    "CLIOptions",
    "CLIContext",
    "RuntimeFactory",
    "exit_for_error",
    "open_context",
    "resolve_workspace_override",
]

_USAGE_ERRORS = (ConfigError, SyncConflictError, ProviderRegistryError)

RuntimeFactory = Callable[[AppConfig, WorkspacePaths, Logger], Runtime]
"""Builds the component graph for a command."""


def _default_runtime_factory(
    config: AppConfig,
    paths: WorkspacePaths,
    logger: Logger,
) -> Runtime:
    return build_runtime(config, paths, logger=logger)


@dataclass(slots=True)
class CLIOptions:
    """Global options captured by the root callback."""

    workspace: Path | None = None
    log_level: str | None = None
    runtime_factory: RuntimeFactory = _default_runtime_factory


@dataclass(slots=True)
class CLIContext:
    """Loaded workspace, configuration and runtime for one command."""

    paths: WorkspacePaths
    config: AppConfig
    runtime: Runtime
    logger: Logger


def resolve_workspace_override(workspace: Path | None) -> WorkspacePaths:
    env_workspace = os.environ.get(ENV_WORKSPACE)
    env_override = Path(env_workspace).expanduser() if env_workspace else None
    return resolve_workspace(
        workspace_override=workspace,
        env_override=env_override,
    )


def exit_for_error(action: str, error: Exception, *, logger: Logger) -> NoReturn:
    """Report ``error`` and exit (code 2 for config/conflict, else 1)."""

    typer.secho(f"{action} failed: {error}", fg=typer.colors.RED, err=True)
    kind = error.kind if isinstance(error, RagSyncError) else None
    logger.error(
        "cli-command-failed",
        action=action,
        error=str(error),
        kind=str(kind) if kind else None,
    )
    code = 2 if isinstance(error, _USAGE_ERRORS) else 1
    raise typer.Exit(code=code) from error


def open_context(ctx: typer.Context, command: str) -> CLIContext:
    """Load config and runtime for ``command`` using the root options."""

    options = ctx.obj if isinstance(ctx.obj, CLIOptions) else CLIOptions()

    try:
        paths = resolve_workspace_override(options.workspace)
    except ValueError as exc:
        typer.secho(f"Workspace error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    if not paths.config_file.exists():
        typer.secho(
            (
                "Workspace config not found at "
                f"{paths.config_file}. Run `ragsync init` first."
            ),
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=2)

    cli_overrides = {"log_level": options.log_level} if options.log_level else None
    try:
        config = load_workspace_config(paths, cli_overrides=cli_overrides)
    except ConfigError as exc:
        typer.secho(f"Invalid configuration: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    configure_logging(level=config.log_level, logs_dir=paths.logs_dir)
    logger = get_logger(__name__, command=command)

    try:
        runtime = options.runtime_factory(config, paths, logger)
    except (RagSyncError, ProviderRegistryError) as exc:
        exit_for_error(command, exc, logger=logger)

    return CLIContext(paths=paths, config=config, runtime=runtime, logger=logger)
