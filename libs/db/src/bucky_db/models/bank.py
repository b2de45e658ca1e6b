from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    CHAR,
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT identity on Postgres; SQLite only autoincrements INTEGER PRIMARY KEY.
_RowId = BigInteger().with_variant(Integer(), "sqlite")

WITHDRAWAL_STATUSES = ("pending", "approved", "rejected", "cancelled", "completed")


class Base(DeclarativeBase):
    pass


# ---------------------------
# Ingestion bookkeeping: cursors
# ---------------------------


class Cursor(Base):
    __tablename__ = "cursors"

    # One row per event category (e.g. "BankCreated").
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    last_processed_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_processed_slot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    total_events_processed: Mapped[int] = mapped_column(
        BigInteger, nullable=False, server_default="0"
    )
    last_poll_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# ---------------------------
# Events: bank creation + aggregate
# ---------------------------


class BankCreatedEvent(Base):
    __tablename__ = "bank_created_events"

    bank_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    parent_address: Mapped[str] = mapped_column(String(64), nullable=False)
    child_address: Mapped[str] = mapped_column(String(64), nullable=False)
    target_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deadline_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    duration_days: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    slot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Bank(Base):
    """Aggregate balance record derived from the bank's event history.

    ``current_balance`` is mutable: deposits add to it and completed withdrawals
    overwrite it with the post-withdrawal balance. ``initial_balance`` is the
    balance stated at creation and never changes, so the balance can be
    recomputed from the event rows.
    """

    __tablename__ = "banks"

    bank_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    parent_address: Mapped[str] = mapped_column(String(64), nullable=False)
    child_address: Mapped[str] = mapped_column(String(64), nullable=False)
    target_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deadline_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    initial_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_banks_parent_address", "parent_address"),
        Index("ix_banks_child_address", "child_address"),
    )


# ---------------------------
# Events: deposits
# ---------------------------


class DepositMadeEvent(Base):
    __tablename__ = "deposit_made_events"

    id: Mapped[int] = mapped_column(_RowId, primary_key=True, autoincrement=True)
    # Deposits carry no identifier of their own on the wire; the fingerprint
    # covers the payload fields plus the ledger position when known.
    fingerprint_sha256: Mapped[str] = mapped_column(CHAR(64), nullable=False, unique=True)
    bank_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    depositor: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    slot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_deposit_made_events_bank_id", "bank_id", "created_at_ms"),
        CheckConstraint("amount >= 0", name="ck_deposit_amount_non_negative"),
    )


# ---------------------------
# Events: withdrawals
# ---------------------------


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    id: Mapped[int] = mapped_column(_RowId, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    bank_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    requester: Mapped[str] = mapped_column(String(64), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False, server_default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="pending")
    # Approver on approval, rejecter on rejection; NULL while pending.
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    audit_at_ms: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    tx_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    indexed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_withdrawal_requests_bank_id", "bank_id", "created_at_ms"),
        Index("ix_withdrawal_requests_requester", "requester", "created_at_ms"),
        Index("ix_withdrawal_requests_status", "status", "created_at_ms"),
        CheckConstraint(
            "status in ('pending','approved','rejected','cancelled','completed')",
            name="ck_withdrawal_requests_status",
        ),
    )


class WithdrawalCompletedEvent(Base):
    __tablename__ = "withdrawal_completed_events"

    id: Mapped[int] = mapped_column(_RowId, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    bank_id: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    left_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    withdrawer: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    slot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_withdrawal_completed_events_bank_id", "bank_id", "created_at_ms"),
        Index("ix_withdrawal_completed_events_withdrawer", "withdrawer", "created_at_ms"),
    )


# ---------------------------
# Operations: dropped events
# ---------------------------


class DeadLetter(Base):
    __tablename__ = "dead_letters"

    id: Mapped[int] = mapped_column(_RowId, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    tx_signature: Mapped[str] = mapped_column(Text, nullable=False)
    slot: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    event_index: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    payload: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "category", "tx_signature", "event_index", name="uq_dead_letters_position"
        ),
        Index("ix_dead_letters_category", "category", "created_at"),
    )


__all__ = [
    "WITHDRAWAL_STATUSES",
    "Base",
    "Bank",
    "BankCreatedEvent",
    "Cursor",
    "DeadLetter",
    "DepositMadeEvent",
    "WithdrawalCompletedEvent",
    "WithdrawalRequest",
]
