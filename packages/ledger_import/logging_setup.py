"""Process-wide logging for the import pipeline.

Library modules only ever call ``get_logger("ledger_import.<module>")``. The
package logger carries a ``NullHandler`` from import time, so a host that
never configures logging sees nothing. Entrypoints call
:func:`configure_logging` once; it installs one named console handler on the
``ledger_import`` logger and stops propagation to the root logger.

The OpenAI client logs every HTTP request at INFO through ``httpx``. Those
loggers are held at WARNING unless the pipeline itself runs at DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "ledger_import"
_HANDLER_NAME = "ledger_import.console"
_LEVEL_ENV = "LEDGER_IMPORT_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CHATTY_LOGGERS = ("httpx", "httpcore", "openai")

logging.getLogger(_PKG_LOGGER_NAME).addHandler(logging.NullHandler())


def resolve_level(level: int | str | None) -> int:
    """Turn ``level`` (or ``$LEDGER_IMPORT_LOG_LEVEL`` when ``None``) into a number.

    Unknown names fall through to the environment and then to ``INFO``.
    """

    for candidate in (level, os.getenv(_LEVEL_ENV)):
        if isinstance(candidate, int):
            return candidate
        if not candidate:
            continue
        name = candidate.strip().upper()
        if name.isdigit():
            return int(name)
        mapped = logging.getLevelNamesMapping().get(name)
        if mapped is not None:
            return mapped
    return logging.INFO


def _console_handler(logger: logging.Logger) -> logging.Handler | None:
    return next((h for h in logger.handlers if h.name == _HANDLER_NAME), None)


def configure_logging(
    level: int | str | None = None,
    *,
    stream: IO[str] | None = None,
    fmt: str = _DEFAULT_FORMAT,
    force: bool = False,
) -> logging.Handler:
    """Install the console handler on the package logger and return it.

    A second call is a no-op unless ``force`` is set, in which case the
    existing handler is replaced (new level, stream or format).
    """

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    existing = _console_handler(logger)
    if existing is not None and not force:
        return existing
    if existing is not None:
        logger.removeHandler(existing)

    resolved = resolve_level(level)
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt))

    for h in [h for h in logger.handlers if isinstance(h, logging.NullHandler)]:
        logger.removeHandler(h)
    logger.addHandler(handler)
    logger.setLevel(resolved)
    logger.propagate = False

    quiet = logging.DEBUG if resolved <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return handler


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
