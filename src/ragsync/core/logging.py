"""Logging helpers for :mod:`ragsync`.

Every component receives a structlog logger through its constructor. The
CLI and API entry points call :func:`configure_logging` once so console and
file output share the same processor chain.
"""

from __future__ import annotations

import gzip
import logging
import shutil
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Iterable

import structlog
from rich.console import Console
from rich.logging import RichHandler

Logger = structlog.stdlib.BoundLogger

LOG_FILENAME = "ragsync.log"
_BACKUP_COUNT = 7

_TIMESTAMPER = structlog.processors.TimeStamper(fmt="iso", utc=True)
_SHARED_PRE_CHAIN = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    _TIMESTAMPER,
)


def _level_number(level: str) -> int:
    """Return the numeric logging level for ``level``.

    Raises:
        ValueError: If the level name is not recognized.
    """

    value = logging.getLevelName(level.strip().upper())
    if isinstance(value, str):  # ``getLevelName`` echoes unknown names.
        raise ValueError(f"Unsupported log level: {level!r}")
    return value


def _install_structlog() -> None:
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            *_SHARED_PRE_CHAIN,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _formatter(renderer: Any) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=list(_SHARED_PRE_CHAIN),
    )


def _gzip_rotated(source: str, dest: str) -> None:
    """Compress the rotated log ``source`` into ``dest``."""

    with open(source, "rb") as src, gzip.open(dest, "wb") as target:
        shutil.copyfileobj(src, target)
    Path(source).unlink(missing_ok=True)


def _file_handler(log_file: Path, level: int) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        log_file,
        when="midnight",
        backupCount=_BACKUP_COUNT,
        utc=True,
        encoding="utf-8",
        delay=True,
    )
    handler.setLevel(level)
    handler.suffix = "%Y-%m-%d"
    handler.namer = lambda name: f"{name}.gz"
    handler.rotator = _gzip_rotated
    handler.setFormatter(
        _formatter(structlog.processors.JSONRenderer(sort_keys=True))
    )
    return handler


def _console_handler(level: int, console: Console | None) -> RichHandler:
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        markup=False,
        enable_link_path=False,
        log_time_format="%Y-%m-%d %H:%M:%S",
    )
    handler.setLevel(level)
    handler.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=False)))
    return handler


def _replace_handlers(
    root: logging.Logger,
    handlers: Iterable[logging.Handler],
) -> None:
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)


def configure_logging(
    *,
    level: str = "INFO",
    logs_dir: str | Path | None = None,
    console: Console | None = None,
) -> Path | None:
    """Configure structlog on top of stdlib logging.

    Args:
        level: Log level name applied to the root logger (case-insensitive).
        logs_dir: Directory receiving the rotating JSON log file. When
            omitted only console output is configured.
        console: Optional Rich console override, primarily for testing.

    Returns:
        The log file path when file logging is enabled, otherwise ``None``.

    Raises:
        ValueError: If ``level`` is not a recognized log level name.
    """

    numeric = _level_number(level)
    root = logging.getLogger()
    root.setLevel(numeric)

    _install_structlog()

    handlers: list[logging.Handler] = [_console_handler(numeric, console)]
    log_file: Path | None = None
    if logs_dir is not None:
        directory = Path(logs_dir).expanduser().resolve(strict=False)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / LOG_FILENAME
        handlers.append(_file_handler(log_file, numeric))

    _replace_handlers(root, handlers)
    logging.captureWarnings(True)
    return log_file


def get_logger(name: str | None = None, **initial_context: Any) -> Logger:
    """Return a structured logger bound to an optional context.

    Example:
        >>> logger = get_logger(__name__, component="sync")
        >>> logger.info("sync-cycle-start", source="drive")  # doctest: +SKIP
    """

    return structlog.get_logger(name).bind(**initial_context)


__all__ = ["LOG_FILENAME", "Logger", "configure_logging", "get_logger"]
