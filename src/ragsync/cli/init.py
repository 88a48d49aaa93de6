"""Helpers for the ``ragsync init`` command."""

from __future__ import annotations

from pathlib import Path

from ragsync.core.config import (
    AppConfig,
    DEFAULTS_RESOURCE_NAME,
    load_config,
    load_packaged_defaults,
    load_user_config,
    read_packaged_defaults_text,
    render_user_config,
)
from ragsync.core.paths import archive_workspace, resolve_workspace


def init_workspace(
    *,
    workspace: Path,
    refresh: bool = False,
    log_level: str | None = None,
    source_folder: str | None = None,
) -> AppConfig:
    """Bootstrap the workspace directory and its configuration files.

    Existing ``ragsync.toml`` files are kept unless ``refresh`` archives the
    workspace first; their values participate in the returned config.

    Example:
        >>> from pathlib import Path
        >>> config = init_workspace(workspace=Path("/tmp/ragsync-example"))  # doctest: +SKIP
        >>> config.chunker.size  # doctest: +SKIP
        1000

    Raises:
        ConfigError: If the merged configuration is invalid.
    """

    paths = resolve_workspace(workspace_override=workspace)

    if refresh:
        archive_workspace(paths)

    paths.ensure_directories()

    cli_overrides: dict[str, object] = {"workspace": str(paths.workspace)}
    if log_level:
        cli_overrides["log_level"] = log_level
    if source_folder:
        cli_overrides["sync"] = {"source_folder": source_folder}

    config = load_config(
        defaults=load_packaged_defaults(),
        user_config=load_user_config(paths.config_file),
        cli_overrides=cli_overrides,
    )
    config.chunker.to_config()  # rejects overlap >= size

    defaults_path = paths.workspace / DEFAULTS_RESOURCE_NAME
    if refresh or not defaults_path.exists():
        defaults_path.write_text(read_packaged_defaults_text(), encoding="utf-8")

    config_path = paths.config_file
    if refresh or not config_path.exists() or log_level or source_folder:
        config_path.write_text(render_user_config(config), encoding="utf-8")

    return config


__all__ = ["init_workspace"]
