"""SQLAlchemy engine/session helpers for the projection database.

Usage
-----
from bucky_db.client import Database

database = Database.from_url("postgresql+psycopg://...")
with database.session_scope() as s:
    s.execute(...)

A ``Database`` is an explicit handle: the indexer components receive it (or its
``session_scope``) through their constructors instead of reaching for a
process-wide engine.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


class Database:
    """An engine plus the session factory bound to it."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False, class_=Session
        )

    @classmethod
    def from_url(
        cls,
        url: str | None = None,
        *,
        pool_size: int | None = None,
        pool_timeout: float | None = None,
        echo: bool = False,
    ) -> Database:
        """Create an engine for ``url`` (falls back to ``$DATABASE_URL``).

        Pool sizing only applies to server databases; SQLite URLs ignore it.
        """

        resolved = database_url(url)
        kwargs: dict[str, object] = {"pool_pre_ping": True, "echo": echo}
        if not resolved.startswith("sqlite"):
            if pool_size is not None:
                kwargs["pool_size"] = pool_size
            if pool_timeout is not None:
                kwargs["pool_timeout"] = pool_timeout
        return cls(create_engine(resolved, **kwargs))

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    def session(self) -> Session:
        """Return a new session bound to this engine."""

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

    def ping(self) -> None:
        """Round-trip ``SELECT 1``; raises the driver error when unreachable."""

        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = [
    "Database",
    "database_url",
]
