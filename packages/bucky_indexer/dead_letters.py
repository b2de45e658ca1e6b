"""Persist events the pipeline had to drop."""

from __future__ import annotations

from bucky_db import Database, DeadLetter
from bucky_db.upsert import insert_ignore
from sqlalchemy import select

from .events import Category, LedgerPosition


class DeadLetterStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    def record(
        self,
        category: Category | str,
        position: LedgerPosition,
        *,
        error_kind: str,
        message: str,
        payload: str | None = None,
    ) -> bool:
        """Store one dropped event; False when its position is already recorded."""

        with self.database.session_scope() as s:
            return insert_ignore(
                s,
                DeadLetter,
                {
                    "category": str(category),
                    "tx_signature": position.signature,
                    "slot": position.slot,
                    "event_index": position.index,
                    "payload": payload,
                    "error_kind": str(error_kind),
                    "message": message,
                },
                index_elements=["category", "tx_signature", "event_index"],
            )

    def recent(self, *, category: Category | str | None = None, limit: int = 50) -> list[DeadLetter]:
        with self.database.session_scope() as s:
            stmt = select(DeadLetter)
            if category is not None:
                stmt = stmt.where(DeadLetter.category == str(category))
            stmt = stmt.order_by(DeadLetter.id.desc()).limit(limit)
            return list(s.scalars(stmt))


__all__ = ["DeadLetterStore"]
