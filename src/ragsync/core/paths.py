"""Workspace path helpers for :mod:`ragsync`."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable
from zipfile import ZIP_DEFLATED, ZipFile

__all__ = [
    "WorkspacePaths",
    "resolve_workspace",
    "archive_workspace",
]

_DEFAULT_WORKSPACE_NAME = ".ragsync"
_CONFIG_FILENAME = "ragsync.toml"
_CACHE_FILENAME = "sync-cache.json"
_SNAPSHOT_FILENAME = "vectors.json"


@dataclass(frozen=True, slots=True)
class WorkspacePaths:
    """Resolved locations for a workspace instance.

    Example:
        >>> from pathlib import Path
        >>> paths = WorkspacePaths.under(Path("/tmp/ragsync"))
        >>> paths.snapshot_file.name
        'vectors.json'
    """

    workspace: Path
    config_file: Path
    logs_dir: Path
    archives_dir: Path
    state_dir: Path

    @classmethod
    def under(cls, workspace: Path) -> "WorkspacePaths":
        """Return the canonical layout rooted at ``workspace``."""

        return cls(
            workspace=workspace,
            config_file=workspace / _CONFIG_FILENAME,
            logs_dir=workspace / "logs",
            archives_dir=workspace / "archives",
            state_dir=workspace / "state",
        )

    @property
    def cache_file(self) -> Path:
        """Durable change-tracker cache."""

        return self.state_dir / _CACHE_FILENAME

    @property
    def snapshot_file(self) -> Path:
        """Durable vector store snapshot."""

        return self.state_dir / _SNAPSHOT_FILENAME

    def iter_directories(self) -> Iterable[Path]:
        """Yield every directory managed within the workspace."""

        yield from (
            self.workspace,
            self.logs_dir,
            self.archives_dir,
            self.state_dir,
        )

    def ensure_directories(self) -> None:
        for directory in self.iter_directories():
            directory.mkdir(parents=True, exist_ok=True)


def resolve_workspace(
    *,
    workspace_override: Path | None = None,
    env_override: Path | None = None,
) -> WorkspacePaths:
    """Resolve canonical workspace locations.

    Precedence is CLI override, then environment, then ``~/.ragsync``.

    Raises:
        ValueError: If the resolved workspace points to a regular file.
    """

    base = workspace_override or env_override or (
        Path.home() / _DEFAULT_WORKSPACE_NAME
    )
    candidate = Path(base).expanduser()
    if not candidate.is_absolute():
        candidate = Path.cwd() / candidate
    workspace = candidate.resolve(strict=False)

    if workspace.exists() and workspace.is_file():
        raise ValueError(f"Workspace file path not allowed: {workspace}")

    return WorkspacePaths.under(workspace)


def _unique_archive_path(archive_root: Path, timestamp: str) -> Path:
    suffix = 0
    while True:
        tail = "" if suffix == 0 else f"-{suffix:02d}"
        candidate = archive_root / f"{timestamp}{tail}.zip"
        if not candidate.exists():
            return candidate
        suffix += 1


def _zip_entry(root: Path, path: Path, archive: ZipFile) -> None:
    relative = path.relative_to(root).as_posix()
    if path.is_dir():
        archive.writestr(relative.rstrip("/") + "/", "")
        for child in sorted(path.iterdir()):
            _zip_entry(root, child, archive)
    else:
        archive.write(path, relative)


def archive_workspace(paths: WorkspacePaths) -> Path | None:
    """Move current workspace contents into a timestamped ZIP archive.

    Returns:
        The archive path when anything was archived, otherwise ``None``.
    """

    workspace = paths.workspace
    if not workspace.exists():
        return None
    if not workspace.is_dir():
        raise ValueError(
            f"Workspace path '{workspace}' exists but is not a directory."
        )

    archive_root = paths.archives_dir
    archive_root.mkdir(parents=True, exist_ok=True)
    entries = sorted(
        entry for entry in workspace.iterdir() if entry != archive_root
    )
    if not entries:
        return None

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    archive_path = _unique_archive_path(archive_root, timestamp)
    with ZipFile(archive_path, mode="w", compression=ZIP_DEFLATED) as archive:
        for entry in entries:
            _zip_entry(workspace, entry, archive)

    for entry in entries:
        if entry.is_dir():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    return archive_path
