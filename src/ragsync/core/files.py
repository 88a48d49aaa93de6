"""Small filesystem helpers for durable JSON state files."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

__all__ = ["atomic_write_json", "read_json_object", "remove_file"]


def atomic_write_json(path: Path, payload: Any, *, indent: int | None = None) -> None:
    """Serialize ``payload`` to ``path`` via a same-directory temp file.

    Readers never observe a partially written file: the payload lands in a
    temporary sibling first and is moved into place with :func:`os.replace`.

    Raises:
        OSError: If the directory cannot be created or the write fails.
        TypeError: If ``payload`` is not JSON serializable.
    """

    encoded = json.dumps(payload, ensure_ascii=False, indent=indent).encode(
        "utf-8"
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}-",
            suffix=".tmp",
            delete=False,
        ) as handle:
            handle.write(encoded)
            temp_path = Path(handle.name)
        os.replace(temp_path, path)
    except OSError:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


def read_json_object(path: Path) -> dict[str, Any] | None:
    """Return the JSON object stored at ``path`` or ``None`` when absent.

    Raises:
        ValueError: If the file holds invalid JSON or a non-object payload.
        OSError: If the file exists but cannot be read.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data


def remove_file(path: Path) -> bool:
    """Delete ``path`` if present; return whether a file was removed."""

    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True
