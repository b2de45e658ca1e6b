"""bucky_db: projection database library (SQLAlchemy/Alembic/Postgres).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``bucky_db.models.bank`` (re-exported for convenience)
- ``Database`` engine/session holder in ``bucky_db.client``
"""

from __future__ import annotations

from .client import Database
from .models.bank import (
    Base,
    Bank,
    BankCreatedEvent,
    Cursor,
    DeadLetter,
    DepositMadeEvent,
    WithdrawalCompletedEvent,
    WithdrawalRequest,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "Bank",
    "BankCreatedEvent",
    "Cursor",
    "Database",
    "DeadLetter",
    "DepositMadeEvent",
    "WithdrawalCompletedEvent",
    "WithdrawalRequest",
    "metadata",
]
