"""Durable per-category read position."""

from __future__ import annotations

from datetime import UTC, datetime

from bucky_db import Cursor, Database
from bucky_db.upsert import dialect_insert
from sqlalchemy import delete, select

from .events import Category


class CursorStore:
    """Read and upsert rows of the ``cursors`` table, one per category.

    ``advance`` does not check that the slot moves forward; the poll loop
    guards that before calling it.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def get(self, category: Category | str) -> Cursor | None:
        with self.database.session_scope() as s:
            return s.get(Cursor, str(category))

    def advance(
        self,
        category: Category | str,
        signature: str,
        slot: int,
        events_processed_delta: int = 0,
    ) -> None:
        now = datetime.now(UTC)
        with self.database.session_scope() as s:
            stmt = dialect_insert(s, Cursor).values(
                id=str(category),
                last_processed_signature=signature,
                last_processed_slot=slot,
                total_events_processed=events_processed_delta,
                last_poll_time=now,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["id"],
                set_={
                    "last_processed_signature": stmt.excluded.last_processed_signature,
                    "last_processed_slot": stmt.excluded.last_processed_slot,
                    "total_events_processed": Cursor.total_events_processed
                    + stmt.excluded.total_events_processed,
                    "last_poll_time": stmt.excluded.last_poll_time,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            s.execute(stmt)

    def list(self) -> list[Cursor]:
        with self.database.session_scope() as s:
            return list(s.scalars(select(Cursor).order_by(Cursor.updated_at.desc(), Cursor.id)))

    def reset(self, category: Category | str) -> bool:
        """Delete one category's cursor so the next cycle starts from the newest page."""

        with self.database.session_scope() as s:
            result = s.execute(delete(Cursor).where(Cursor.id == str(category)))
            return bool(result.rowcount)


__all__ = ["CursorStore"]
