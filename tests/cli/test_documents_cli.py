"""Tests for the ``ragsync documents`` command group."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ragsync.cli import create_app
from ragsync.modules.embedding import EmbeddingGenerator
from ragsync.runtime import build_runtime

pytestmark = pytest.mark.usefixtures("reset_logging")


@pytest.fixture()
def env(tmp_path: Path) -> dict[str, str]:
    return {
        "HOME": str(tmp_path),
        "RAGSYNC_WORKSPACE": str(tmp_path / "workspace"),
        "RAGSYNC_LOG_LEVEL": "warning",
    }


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def synced_app(
    runner: CliRunner,
    env: dict[str, str],
    tmp_path: Path,
    hash_generator: EmbeddingGenerator,
):
    app = create_app(
        runtime_factory=lambda config, paths, logger: build_runtime(
            config,
            paths,
            logger=logger,
            generator=hash_generator,
        )
    )
    folder = tmp_path / "docs"
    folder.mkdir()
    (folder / "guide.md").write_text(" ".join(["guide"] * 1500), encoding="utf-8")

    for args in (["init"], ["sync", str(folder)]):
        result = runner.invoke(app, args, env=env, catch_exceptions=False)
        assert result.exit_code == 0, result.output
    return app


def test_documents_list_json(
    runner: CliRunner,
    env: dict[str, str],
    synced_app,
) -> None:
    result = runner.invoke(
        synced_app,
        ["documents", "list", "--json"],
        env=env,
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {
            "parentId": "guide.md",
            "fileName": "guide.md",
            "fileType": "text/markdown",
            "language": "english",
            "chunks": 2,
        }
    ]


def test_documents_list_plain(
    runner: CliRunner,
    env: dict[str, str],
    synced_app,
) -> None:
    result = runner.invoke(
        synced_app,
        ["documents", "list"],
        env=env,
        catch_exceptions=False,
    )

    assert result.exit_code == 0, result.output
    assert "guide.md" in result.output
    assert "chunks: 2" in result.output


def test_documents_delete_evicts_chunks(
    runner: CliRunner,
    env: dict[str, str],
    synced_app,
) -> None:
    deleted = runner.invoke(
        synced_app,
        ["documents", "delete", "guide.md"],
        env=env,
        catch_exceptions=False,
    )
    assert deleted.exit_code == 0, deleted.output
    assert "Deleted 2 chunks for guide.md" in deleted.output

    missing = runner.invoke(
        synced_app,
        ["documents", "delete", "guide.md"],
        env=env,
        catch_exceptions=False,
    )
    assert "No chunks found for guide.md" in missing.output

    listed = runner.invoke(
        synced_app,
        ["documents", "list"],
        env=env,
        catch_exceptions=False,
    )
    assert "No documents indexed." in listed.output
