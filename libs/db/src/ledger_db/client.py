"""Explicitly constructed SQLAlchemy engine/session handle.

Usage
-----
from ledger_db.client import Database

db = Database.from_env()
with db.session_scope() as s:
    s.execute(...)

There is no process-wide engine: callers construct a :class:`Database` and
pass it (or a session from it) to whatever needs persistence.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models.ledger import Base


def _enable_sqlite_foreign_keys(dbapi_conn: Any, _record: Any) -> None:
    cursor = dbapi_conn.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
    finally:
        cursor.close()


class Database:
    """Engine plus session factory bound to one database URL."""

    def __init__(self, url: str, *, echo: bool = False) -> None:
        if not url:
            raise RuntimeError("database URL is empty; cannot initialize database client")
        self.url = url
        self.engine: Engine = create_engine(url, pool_pre_ping=True, echo=echo)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=Session
        )

    @classmethod
    def from_env(cls, database_url: str | None = None) -> Database:
        """Build from ``database_url`` or, when omitted, the ``DATABASE_URL`` env var."""

        url = database_url or os.getenv("DATABASE_URL")
        if not url:
            raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
        return cls(url)

    def session(self) -> Session:
        return self._session_maker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create all tables directly from the ORM metadata (tests, local SQLite)."""

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = ["Database"]
