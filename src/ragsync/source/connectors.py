"""Source connector contract and the local-directory implementation."""

from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from ragsync.core.logging import Logger, get_logger
from ragsync.modules.tracker import format_timestamp

from .models import SourceItem

__all__ = ["LocalDirectoryConnector", "SourceConnector", "guess_mime_type"]

_FALLBACK_MIME_TYPE = "application/octet-stream"
_EXTRA_MIME_TYPES = {
    ".md": "text/markdown",
    ".markdown": "text/markdown",
    ".rst": "text/x-rst",
    ".jsonl": "application/jsonl",
}


@runtime_checkable
class SourceConnector(Protocol):
    """Lists and downloads items from an external content source."""

    def list_items(self, folder_id: str) -> list[SourceItem]:
        """Return items in ``folder_id`` in processing order."""

    def download(self, item_id: str) -> bytes:
        """Return the raw bytes of ``item_id``."""


def guess_mime_type(path: Path) -> str:
    """Guess a MIME type from the file suffix.

    Example:
        >>> guess_mime_type(Path("notes.md"))
        'text/markdown'
    """

    extra = _EXTRA_MIME_TYPES.get(path.suffix.lower())
    if extra is not None:
        return extra
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or _FALLBACK_MIME_TYPE


class LocalDirectoryConnector:
    """Expose regular files below a directory as source items.

    Item ids are POSIX paths relative to the most recently listed folder,
    so :meth:`download` must follow :meth:`list_items` for the same
    folder. Hidden files and directories are ignored.
    """

    def __init__(
        self,
        *,
        root: Path | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._root = root
        self._folder: Path | None = None
        self.logger = logger or get_logger(__name__, component="source")

    def resolve_folder(self, folder_id: str) -> Path:
        candidate = Path(folder_id).expanduser()
        if not candidate.is_absolute():
            candidate = (self._root or Path.cwd()) / candidate
        return candidate.resolve(strict=False)

    def list_items(self, folder_id: str) -> list[SourceItem]:
        """List files below ``folder_id`` sorted by relative path.

        Raises:
            FileNotFoundError: If the folder does not exist.
            NotADirectoryError: If the folder is a regular file.
        """

        folder = self.resolve_folder(folder_id)
        if not folder.exists():
            raise FileNotFoundError(f"Source folder not found: {folder}")
        if not folder.is_dir():
            raise NotADirectoryError(f"Source folder is not a directory: {folder}")
        self._folder = folder

        items: list[SourceItem] = []
        for path in sorted(folder.rglob("*")):
            relative = path.relative_to(folder)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if not path.is_file():
                continue
            modified = datetime.fromtimestamp(
                path.stat().st_mtime,
                tz=timezone.utc,
            )
            items.append(
                SourceItem(
                    id=relative.as_posix(),
                    name=path.name,
                    mime_type=guess_mime_type(path),
                    modified_time=format_timestamp(modified),
                )
            )
        self.logger.debug(
            "source-items-listed",
            folder=str(folder),
            count=len(items),
        )
        return items

    def download(self, item_id: str) -> bytes:
        """Read the bytes of ``item_id`` from the listed folder.

        Raises:
            RuntimeError: If no folder has been listed yet.
            ValueError: If ``item_id`` escapes the listed folder.
        """

        if self._folder is None:
            raise RuntimeError("list_items must be called before download")
        target = (self._folder / item_id).resolve(strict=False)
        if not target.is_relative_to(self._folder):
            raise ValueError(f"Item id escapes the source folder: {item_id!r}")
        return target.read_bytes()
