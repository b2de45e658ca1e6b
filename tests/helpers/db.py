"""DB helpers for tests: bootstrap a temporary SQLite database."""

from __future__ import annotations

from pathlib import Path

from bucky_db import Bank, Database, WithdrawalRequest, metadata
from sqlalchemy import select


def bootstrap_sqlite_db(db_file: Path) -> Database:
    """Create a SQLite database file with the full schema and return a handle.

    A file-backed database (rather than ``:memory:``) lets every SQLAlchemy
    connection in the pool see the same state.
    """

    db_file.parent.mkdir(parents=True, exist_ok=True)
    database = Database.from_url(f"sqlite+pysqlite:///{db_file}")
    metadata.create_all(bind=database.engine)
    return database


def bank_balance(database: Database, bank_id: str) -> int | None:
    with database.session_scope() as s:
        return s.scalar(select(Bank.current_balance).where(Bank.bank_id == bank_id))


def request_row(database: Database, request_id: str) -> WithdrawalRequest | None:
    with database.session_scope() as s:
        return s.scalars(
            select(WithdrawalRequest).where(WithdrawalRequest.request_id == request_id)
        ).one_or_none()


def count_rows(database: Database, model) -> int:
    with database.session_scope() as s:
        return len(s.scalars(select(model)).all())
