"""Tests for :mod:`ragsync.cli.init`."""

from __future__ import annotations

import tomllib
from pathlib import Path
from zipfile import ZipFile

import pytest

from ragsync.cli.init import init_workspace
from ragsync.core.config import DEFAULTS_RESOURCE_NAME
from ragsync.core.errors import ConfigError


def test_init_workspace_seeds_layout_and_config(tmp_path: Path) -> None:
    workspace = tmp_path / "workspace"

    config = init_workspace(workspace=workspace)

    config_path = workspace / "ragsync.toml"
    assert config_path.exists()
    assert (workspace / DEFAULTS_RESOURCE_NAME).exists()
    assert (workspace / "logs").is_dir()
    assert (workspace / "state").is_dir()

    rendered = tomllib.loads(config_path.read_text(encoding="utf-8"))
    assert Path(rendered["workspace"]) == workspace.resolve()
    assert rendered["log_level"] == "INFO"
    assert rendered["chunker"] == {"size": 1000, "overlap": 200}
    assert config.workspace == workspace.resolve()


def test_init_workspace_keeps_user_edits_without_refresh(tmp_path: Path) -> None:
    workspace = tmp_path / "workspace"
    init_workspace(workspace=workspace)
    config_path = workspace / "ragsync.toml"
    config_path.write_text("[chunker]\nsize = 300\noverlap = 30\n", encoding="utf-8")

    config = init_workspace(workspace=workspace)

    assert config.chunker.size == 300
    assert config_path.read_text(encoding="utf-8").startswith("[chunker]")


def test_init_workspace_refresh_archives_previous_contents(tmp_path: Path) -> None:
    workspace = tmp_path / "workspace"
    init_workspace(workspace=workspace)

    config = init_workspace(
        workspace=workspace,
        refresh=True,
        log_level="debug",
        source_folder="/data/docs",
    )

    assert config.log_level == "DEBUG"
    assert config.sync.source_folder == "/data/docs"
    rendered = tomllib.loads(
        (workspace / "ragsync.toml").read_text(encoding="utf-8")
    )
    assert rendered["sync"]["source_folder"] == "/data/docs"

    archives = list((workspace / "archives").iterdir())
    assert len(archives) == 1
    with ZipFile(archives[0]) as archive:
        assert "ragsync.toml" in archive.namelist()


def test_init_workspace_rejects_invalid_chunker(tmp_path: Path) -> None:
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    (workspace / "ragsync.toml").write_text(
        "[chunker]\nsize = 100\noverlap = 150\n",
        encoding="utf-8",
    )

    with pytest.raises(ConfigError):
        init_workspace(workspace=workspace)
