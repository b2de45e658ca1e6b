"""Event categories and the typed records decoded from program logs.

Records are immutable. Amounts and millisecond timestamps are plain ``int``
(u64 on the wire); addresses are base58 text. ``position`` records where in
the ledger the payload was found and is ``None`` for records built by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, TypeAlias

# Base58 rendering of the all-zero 32-byte address (Solana's default Pubkey).
NULL_ADDRESS = "11111111111111111111111111111111"


class Category(StrEnum):
    BANK_CREATED = "BankCreated"
    DEPOSIT_MADE = "DepositMade"
    WITHDRAWAL_REQUESTED = "WithdrawalRequested"
    WITHDRAWAL_APPROVED = "WithdrawalApproved"
    WITHDRAWAL_REJECTED = "WithdrawalRejected"
    WITHDRAWAL_COMPLETED = "WithdrawalCompleted"


# Polling order. Bank creation goes first so that deposits and completions seen
# in the same cycle find their aggregate row.
ALL_CATEGORIES: tuple[Category, ...] = (
    Category.BANK_CREATED,
    Category.DEPOSIT_MADE,
    Category.WITHDRAWAL_REQUESTED,
    Category.WITHDRAWAL_APPROVED,
    Category.WITHDRAWAL_REJECTED,
    Category.WITHDRAWAL_COMPLETED,
)

# Names of the on-chain event structs; Anchor derives discriminators from them.
EVENT_STRUCT_NAMES: dict[Category, str] = {
    Category.BANK_CREATED: "BuckyBankCreated",
    Category.DEPOSIT_MADE: "DepositMade",
    Category.WITHDRAWAL_REQUESTED: "EventWithdrawalRequested",
    Category.WITHDRAWAL_APPROVED: "EventWithdrawalApproved",
    Category.WITHDRAWAL_REJECTED: "EventWithdrawalRejected",
    Category.WITHDRAWAL_COMPLETED: "EventWithdrawalCompleted",
}


class WithdrawalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def from_code(cls, code: int) -> WithdrawalStatus:
        """Map the on-chain u8 status; unknown codes read as pending."""

        return _STATUS_CODES.get(code, cls.PENDING)


_STATUS_CODES: dict[int, WithdrawalStatus] = {
    0: WithdrawalStatus.PENDING,
    1: WithdrawalStatus.APPROVED,
    2: WithdrawalStatus.REJECTED,
    3: WithdrawalStatus.COMPLETED,
}


@dataclass(frozen=True, slots=True)
class LedgerPosition:
    """Where a payload came from: transaction signature, slot and the payload's
    index among the category's payloads in that transaction."""

    signature: str
    slot: int
    index: int = 0


@dataclass(frozen=True, slots=True)
class BankCreated:
    category: ClassVar[Category] = Category.BANK_CREATED

    bank_id: str
    name: str
    parent: str
    child: str
    target_amount: int
    created_at_ms: int
    deadline_ms: int
    duration_days: int
    current_balance: int
    position: LedgerPosition | None = None


@dataclass(frozen=True, slots=True)
class DepositMade:
    category: ClassVar[Category] = Category.DEPOSIT_MADE

    bank_id: str
    amount: int
    depositor: str
    created_at_ms: int
    position: LedgerPosition | None = None


@dataclass(frozen=True, slots=True)
class WithdrawalRequested:
    category: ClassVar[Category] = Category.WITHDRAWAL_REQUESTED

    request_id: str
    bank_id: str
    amount: int
    requester: str
    reason: str
    status: WithdrawalStatus
    approved_by: str | None
    created_at_ms: int
    position: LedgerPosition | None = None


@dataclass(frozen=True, slots=True)
class WithdrawalApproved:
    category: ClassVar[Category] = Category.WITHDRAWAL_APPROVED

    request_id: str
    bank_id: str
    amount: int
    approved_by: str
    requester: str
    reason: str
    created_at_ms: int
    position: LedgerPosition | None = None


@dataclass(frozen=True, slots=True)
class WithdrawalRejected:
    category: ClassVar[Category] = Category.WITHDRAWAL_REJECTED

    request_id: str
    bank_id: str
    amount: int
    rejected_by: str
    requester: str
    reason: str
    created_at_ms: int
    position: LedgerPosition | None = None


@dataclass(frozen=True, slots=True)
class WithdrawalCompleted:
    category: ClassVar[Category] = Category.WITHDRAWAL_COMPLETED

    request_id: str
    bank_id: str
    amount: int
    requester: str
    created_at_ms: int
    # Not part of the observed wire payload; when None the reconciler derives
    # the post-withdrawal balance from the aggregate.
    left_balance: int | None = None
    position: LedgerPosition | None = None


EventRecord: TypeAlias = (
    BankCreated
    | DepositMade
    | WithdrawalRequested
    | WithdrawalApproved
    | WithdrawalRejected
    | WithdrawalCompleted
)


__all__ = [
    "ALL_CATEGORIES",
    "EVENT_STRUCT_NAMES",
    "NULL_ADDRESS",
    "BankCreated",
    "Category",
    "DepositMade",
    "EventRecord",
    "LedgerPosition",
    "WithdrawalApproved",
    "WithdrawalCompleted",
    "WithdrawalRejected",
    "WithdrawalRequested",
    "WithdrawalStatus",
]
