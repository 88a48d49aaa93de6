"""Integration tests for the Typer application exposed by :mod:`ragsync.cli`."""

from __future__ import annotations

import json
import tomllib
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ragsync.cli import create_app
from ragsync.core.config import DEFAULTS_RESOURCE_NAME
from ragsync.modules.embedding import EmbeddingGenerator
from ragsync.runtime import build_runtime

pytestmark = pytest.mark.usefixtures("reset_logging")


def _workspace_env(tmp_path: Path) -> dict[str, str]:
    workspace = tmp_path / "workspace"
    return {
        "HOME": str(tmp_path),
        "RAGSYNC_WORKSPACE": str(workspace),
        "RAGSYNC_LOG_LEVEL": "warning",
    }


@pytest.fixture()
def runner() -> CliRunner:
    """Return a Typer CLI runner for invoking the application."""

    return CliRunner()


@pytest.fixture()
def app(hash_generator: EmbeddingGenerator):
    """CLI wired to the deterministic hash embeddings."""

    return create_app(
        runtime_factory=lambda config, paths, logger: build_runtime(
            config,
            paths,
            logger=logger,
            generator=hash_generator,
        )
    )


@pytest.fixture()
def source_dir(tmp_path: Path) -> Path:
    folder = tmp_path / "docs"
    folder.mkdir()
    (folder / "alpha.txt").write_text(
        "Alpha centauri is the closest star system to the sun.",
        encoding="utf-8",
    )
    (folder / "beta.md").write_text(
        "Beta testing finds bugs before the release ships.",
        encoding="utf-8",
    )
    (folder / ".hidden").write_text("ignored", encoding="utf-8")
    return folder


def _init(runner: CliRunner, app, env: dict[str, str], *args: str) -> None:
    result = runner.invoke(app, ["init", *args], env=env, catch_exceptions=False)
    assert result.exit_code == 0, result.output


def test_cli_init_outputs_summary(
    runner: CliRunner,
    app,
    tmp_path: Path,
) -> None:
    env = _workspace_env(tmp_path)

    result = runner.invoke(app, ["init"], env=env, catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "Workspace initialized" in result.output
    assert "log level: WARNING" in result.output
    assert "embedding endpoints: primary" in result.output

    workspace = Path(env["RAGSYNC_WORKSPACE"])
    assert (workspace / "ragsync.toml").exists()
    assert (workspace / DEFAULTS_RESOURCE_NAME).exists()
    assert (workspace / "logs").is_dir()

    config = tomllib.loads((workspace / "ragsync.toml").read_text(encoding="utf-8"))
    assert config["log_level"] == "WARNING"


def test_cli_init_existing_workspace_and_refresh(
    runner: CliRunner,
    app,
    tmp_path: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)

    again = runner.invoke(app, ["init"], env=env, catch_exceptions=False)
    assert again.exit_code == 0, again.output
    assert "existing workspace detected" in again.output

    refreshed = runner.invoke(
        app,
        ["init", "--refresh", "--source-folder", "/srv/docs"],
        env=env,
        catch_exceptions=False,
    )
    assert refreshed.exit_code == 0, refreshed.output
    assert "archived previous workspace" in refreshed.output
    assert "source folder: /srv/docs" in refreshed.output

    workspace = Path(env["RAGSYNC_WORKSPACE"])
    assert any((workspace / "archives").glob("*.zip"))
    config = tomllib.loads((workspace / "ragsync.toml").read_text(encoding="utf-8"))
    assert config["sync"]["source_folder"] == "/srv/docs"


@pytest.mark.parametrize(
    "args",
    [["status"], ["sync", "/tmp"], ["clear-cache"], ["documents", "list"]],
)
def test_commands_require_initialized_workspace(
    runner: CliRunner,
    app,
    tmp_path: Path,
    args: list[str],
) -> None:
    env = _workspace_env(tmp_path)

    result = runner.invoke(app, args, env=env)

    assert result.exit_code == 2
    assert "Run `ragsync init` first" in result.output


def test_sync_without_folder_is_usage_error(
    runner: CliRunner,
    app,
    tmp_path: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)

    result = runner.invoke(app, ["sync"], env=env)

    assert result.exit_code == 2
    assert "sync.source_folder is unset" in result.output


def test_sync_indexes_folder_and_reports(
    runner: CliRunner,
    app,
    tmp_path: Path,
    source_dir: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)

    first = runner.invoke(
        app,
        ["sync", str(source_dir)],
        env=env,
        catch_exceptions=False,
    )
    assert first.exit_code == 0, first.output
    assert "Sync complete" in first.output
    assert "processed: 2" in first.output
    assert "+ alpha.txt: 1 chunks" in first.output

    second = runner.invoke(
        app,
        ["sync", str(source_dir), "--json"],
        env=env,
        catch_exceptions=False,
    )
    assert second.exit_code == 0, second.output
    payload = json.loads(second.stdout)
    assert payload["success"] is True
    assert payload["total"] == 2
    assert payload["processed"] == 0
    assert payload["skipped"] == 2
    assert {item["fileId"] for item in payload["files"]} == {
        "alpha.txt",
        "beta.md",
    }

    workspace = Path(env["RAGSYNC_WORKSPACE"])
    assert (workspace / "state" / "vectors.json").exists()
    assert (workspace / "state" / "sync-cache.json").exists()


def test_sync_uses_configured_source_folder(
    runner: CliRunner,
    app,
    tmp_path: Path,
    source_dir: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env, "--source-folder", str(source_dir))

    result = runner.invoke(app, ["sync", "--json"], env=env, catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["processed"] == 2


def test_sync_missing_folder_fails(
    runner: CliRunner,
    app,
    tmp_path: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)

    result = runner.invoke(app, ["sync", str(tmp_path / "nope")], env=env)

    assert result.exit_code == 1
    assert "Sync failed" in result.output


def test_status_reports_synced_files(
    runner: CliRunner,
    app,
    tmp_path: Path,
    source_dir: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)

    before = runner.invoke(app, ["status"], env=env, catch_exceptions=False)
    assert before.exit_code == 0, before.output
    assert "last sync: never" in before.output

    runner.invoke(app, ["sync", str(source_dir)], env=env, catch_exceptions=False)

    result = runner.invoke(app, ["status", "--json"], env=env, catch_exceptions=False)
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["syncInProgress"] is False
    assert payload["totalFilesSynced"] == 2
    assert payload["lastSyncTime"].endswith("Z")
    assert sorted(entry["name"] for entry in payload["syncedFiles"]) == [
        "alpha.txt",
        "beta.md",
    ]


def test_query_search_only_and_answer(
    runner: CliRunner,
    app,
    tmp_path: Path,
    source_dir: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)
    runner.invoke(app, ["sync", str(source_dir)], env=env, catch_exceptions=False)

    search = runner.invoke(
        app,
        ["query", "closest star system", "--search-only", "--json", "-k", "1"],
        env=env,
        catch_exceptions=False,
    )
    assert search.exit_code == 0, search.output
    payload = json.loads(search.stdout)
    assert payload["query"] == "closest star system"
    assert len(payload["results"]) == 1
    assert payload["results"][0]["fileName"] == "alpha.txt"

    answer = runner.invoke(
        app,
        ["query", "closest star system"],
        env=env,
        catch_exceptions=False,
    )
    assert answer.exit_code == 0, answer.output
    assert "confidence:" in answer.output
    assert "alpha.txt" in answer.output


def test_clear_cache_forces_reprocessing(
    runner: CliRunner,
    app,
    tmp_path: Path,
    source_dir: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)
    runner.invoke(app, ["sync", str(source_dir)], env=env, catch_exceptions=False)

    cleared = runner.invoke(app, ["clear-cache"], env=env, catch_exceptions=False)
    assert cleared.exit_code == 0, cleared.output
    assert "Cache cleared" in cleared.output

    result = runner.invoke(
        app,
        ["sync", str(source_dir), "--json"],
        env=env,
        catch_exceptions=False,
    )
    assert json.loads(result.stdout)["processed"] == 2


def test_serve_requires_api_extra(
    runner: CliRunner,
    app,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    env = _workspace_env(tmp_path)
    _init(runner, app, env)
    monkeypatch.setattr(
        "ragsync.cli.importlib_util.find_spec",
        lambda name: None,
    )

    result = runner.invoke(app, ["serve"], env=env)

    assert result.exit_code == 1
    assert "ragsync[api]" in result.output
