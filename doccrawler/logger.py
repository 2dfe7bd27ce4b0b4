# === FILE: doccrawler/logger.py ===
"""
Logging setup shared by the CLI and the crawl components.

Everything logs under the ``DocCrawler`` logger. Components ask for a tagged
child through :func:`get_logger` (``DocCrawler.frontier``, ``DocCrawler.robots``)
and never attach handlers themselves; handlers live on the parent only, which
:func:`configure` rebuilds. A file target rotates at 5 MiB with three backups.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Union

_DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOGGER_NAME: Final[str] = "DocCrawler"
_ROTATE_BYTES: Final[int] = 5 * 1024 * 1024
_ROTATE_BACKUPS: Final[int] = 3

_LevelT = Union[int, str]


def _console(fmt: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _rotating_file(path: Path | str, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        filename=str(path),
        maxBytes=_ROTATE_BYTES,
        backupCount=_ROTATE_BACKUPS,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def configure(
    *,
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """
    Set the level and handlers of the ``DocCrawler`` logger and return it.

    Output always goes to stdout; *log_file* adds a rotating file next to it.
    With ``replace_handlers=False`` the new handlers are added to the old ones.
    """
    root = logging.getLogger(_LOGGER_NAME)
    root.setLevel(level)
    if replace_handlers:
        root.handlers.clear()
    root.addHandler(_console(log_format))
    if log_file is not None:
        root.addHandler(_rotating_file(log_file, log_format))
    root.propagate = False
    return root


def init_logging(
    level: _LevelT = "INFO",
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
) -> logging.Logger:
    """Fresh configuration for one CLI run."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


def get_logger(tag: str) -> logging.Logger:
    """Child logger ``DocCrawler.<tag>`` for one component."""
    return logging.getLogger(f"{_LOGGER_NAME}.{tag}")


logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "get_logger"]
