"""Centralized logging configuration for the ``bucky_indexer`` package.

This module provides two public helpers:

- ``configure_logging(...)``: attach a single ``StreamHandler`` (and, when
  requested, a daily-rotating file handler) to the package root logger
  (``"bucky_indexer"``). Intended to be called once by entrypoints (the CLI)
  at process startup.
- ``get_logger(name)``: acquire a logger by name, ensuring that the package
  root logger has at least a ``NullHandler`` attached when not configured to
  avoid "No handler" warnings in library contexts.

Library modules must never attach their own handlers. They should only call
``get_logger("bucky_indexer.<module>")`` and rely on the centralized
configuration performed by the CLI or host application.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import IO

_PKG_LOGGER_NAME = "bucky_indexer"
_DEFAULT_FMT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    # Env override when explicit ``level`` is None
    if level is None:
        level = os.getenv("BUCKY_INDEXER_LOG_LEVEL")
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        # Accept numeric strings or standard level names (INFO/DEBUG/etc.).
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = getattr(logging, name, None)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
    log_file: str | os.PathLike[str] | None = None,
) -> None:
    """Configure the package root logger exactly once.

    Parameters
    ----------
    level:
        Logging level as ``int`` or level-name string (e.g., ``"INFO"``). If
        ``None``, defaults to the ``BUCKY_INDEXER_LOG_LEVEL`` environment
        variable when set, otherwise ``logging.INFO``.
    fmt:
        Optional logging format string. Defaults to
        ``"%(asctime)s %(name)s %(levelname)s %(message)s"``.
    stream:
        The output stream for the ``StreamHandler`` (defaults to ``sys.stderr``).
    log_file:
        Optional path of a log file rotated at midnight (seven backups kept).
        Falls back to ``BUCKY_INDEXER_LOG_FILE`` when unset.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    # Remove any existing NullHandlers to avoid swallowing logs after config.
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved_level = _parse_level(level)
    formatter = logging.Formatter(fmt or _DEFAULT_FMT)

    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved_level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    file_target = log_file or os.getenv("BUCKY_INDEXER_LOG_FILE")
    if file_target:
        path = Path(file_target)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            path, when="midnight", backupCount=7, encoding="utf-8"
        )
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.setLevel(resolved_level)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger by name, ensuring safe defaults for library use.

    When the central configuration hasn't run yet, attach a ``NullHandler`` to
    the package root logger to avoid noisy warnings.
    """

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
