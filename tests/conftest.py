"""Pytest configuration for test isolation.

The CLI loads a ``.env`` from the current working directory and the pipeline
reads ``DATABASE_URL``, ``OPENAI_API_KEY`` and ``LEDGER_IMPORT_*`` from the
environment. A developer's shell or a stray ``.env`` in the work tree would
otherwise leak into tests (e.g. a real database URL or API key), so an autouse
fixture clears those variables and runs every test from its own temporary
directory.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from ledger_db import Database
from tests.helpers.db import bootstrap_sqlite_db

_ISOLATED_ENV = (
    "DATABASE_URL",
    "OPENAI_API_KEY",
    "LEDGER_IMPORT_LOG_LEVEL",
    "LEDGER_IMPORT_DECIMAL_SEPARATOR",
    "LEDGER_IMPORT_MAX_FILE_BYTES",
    "LEDGER_IMPORT_SUGGEST_MODEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop pipeline env vars and chdir into the test's temporary directory."""

    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir(parents=True, exist_ok=True)
    monkeypatch.chdir(os.fspath(workdir))


@pytest.fixture
def db(tmp_path: Path) -> Iterator[Database]:
    """A file-backed SQLite database with the ledger schema created."""

    database = Database(bootstrap_sqlite_db(tmp_path / "ledger.db"))
    try:
        yield database
    finally:
        database.dispose()
