"""Environment-driven settings for the import pipeline.

Values are read from the process environment (the CLI loads a local ``.env``
first). Invalid values fall back to defaults with a warning rather than
failing the import.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .logging_setup import get_logger

DEFAULT_MAX_FILE_BYTES: int = 10 * 1024 * 1024
DEFAULT_SUGGEST_MODEL: str = "gpt-5"

_logger = get_logger("ledger_import.settings")


@dataclass(frozen=True, slots=True)
class ImportSettings:
    database_url: str | None
    decimal_separator: str = ","
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    suggest_model: str = DEFAULT_SUGGEST_MODEL


def _decimal_separator_from_env() -> str:
    raw = os.getenv("LEDGER_IMPORT_DECIMAL_SEPARATOR")
    if raw is None or not raw.strip():
        return ","
    val = raw.strip()
    if val in {",", "."}:
        return val
    _logger.warning("settings:invalid_decimal_separator value=%r fallback=','", raw)
    return ","


def _max_file_bytes_from_env() -> int:
    raw = os.getenv("LEDGER_IMPORT_MAX_FILE_BYTES")
    if not raw:
        return DEFAULT_MAX_FILE_BYTES
    try:
        val = int(raw)
    except ValueError:
        val = 0
    if val <= 0:
        _logger.warning(
            "settings:invalid_max_file_bytes value=%r fallback=%d", raw, DEFAULT_MAX_FILE_BYTES
        )
        return DEFAULT_MAX_FILE_BYTES
    return val


def load_settings(*, database_url: str | None = None) -> ImportSettings:
    """Build settings from the environment; ``database_url`` overrides ``DATABASE_URL``."""

    model = (os.getenv("LEDGER_IMPORT_SUGGEST_MODEL") or "").strip() or DEFAULT_SUGGEST_MODEL
    return ImportSettings(
        database_url=database_url or os.getenv("DATABASE_URL"),
        decimal_separator=_decimal_separator_from_env(),
        max_file_bytes=_max_file_bytes_from_env(),
        suggest_model=model,
    )


__all__ = ["ImportSettings", "load_settings", "DEFAULT_MAX_FILE_BYTES"]
