"""Dialect-aware ``INSERT .. ON CONFLICT`` helpers.

Postgres runs in production and SQLite in tests; both dialects expose the same
``on_conflict_do_nothing`` / ``on_conflict_do_update`` API on their own
``insert`` construct, so callers pick the construct by the session's bind.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def dialect_insert(session: Session, model: Any) -> Any:
    """Return the dialect-specific ``insert(model)`` for ``session``'s bind."""

    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Unsupported dialect for conflict-aware inserts: {name}")


def insert_ignore(
    session: Session,
    model: Any,
    values: Mapping[str, Any],
    *,
    index_elements: Sequence[str],
) -> bool:
    """Insert one row unless ``index_elements`` already match an existing row.

    Returns True when a new row was written and False when the conflict made
    the statement a no-op.
    """

    stmt = (
        dialect_insert(session, model)
        .values(**dict(values))
        .on_conflict_do_nothing(index_elements=list(index_elements))
    )
    result = session.execute(stmt)
    return bool(result.rowcount)


__all__ = [
    "dialect_insert",
    "insert_ignore",
]
