"""SQLAlchemy models registry for the savings-bank projection database."""

from .bank import (
    Base,
    Bank,
    BankCreatedEvent,
    Cursor,
    DeadLetter,
    DepositMadeEvent,
    WithdrawalCompletedEvent,
    WithdrawalRequest,
)

__all__ = [
    "Base",
    "Bank",
    "BankCreatedEvent",
    "Cursor",
    "DeadLetter",
    "DepositMadeEvent",
    "WithdrawalCompletedEvent",
    "WithdrawalRequest",
]
