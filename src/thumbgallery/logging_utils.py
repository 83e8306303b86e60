"""Logging setup for command-line builds."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LEVEL_ENV = "THUMBGALLERY_LOG_LEVEL"
FORMAT_ENV = "THUMBGALLERY_LOG_FORMAT"
FILE_ENV = "THUMBGALLERY_LOG_FILE"

FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s:%(lineno)d | %(message)s"

# Pillow logs every plugin it probes at DEBUG
QUIET_LOGGERS = ("PIL",)


def resolve_level(level: int | str | None = None) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV, "WARNING")
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    console: Console | None = None,
    log_file: str | os.PathLike[str] | None = None,
) -> list[logging.Handler]:
    """Replace the root handlers with a rich terminal handler and optional file.

    Pass the console used by ``ConsoleProgress`` so log lines and the progress
    bar share one output. ``log_file`` defaults to ``THUMBGALLERY_LOG_FILE``;
    an empty value disables file logging. Returns the installed handlers.
    """
    handlers: list[logging.Handler] = [
        RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            markup=False,
        )
    ]

    if log_file is None:
        log_file = os.getenv(FILE_ENV, "")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter(os.getenv(FORMAT_ENV, FILE_FORMAT))
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=resolve_level(level),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handlers


__all__ = ["configure_logging", "resolve_level"]
