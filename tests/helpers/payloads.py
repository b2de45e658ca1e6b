"""Build ``Program data:`` payloads the way the on-chain program emits them.

Each builder returns the base64 text that follows ``Program data: `` in a log
line: the category's 8-byte discriminator followed by the Borsh body.
"""

from __future__ import annotations

import base64
import struct

import base58

from bucky_indexer.decoder import DISCRIMINATORS
from bucky_indexer.events import Category


def address(n: int) -> str:
    """Deterministic 32-byte address for small integers (``n`` in 1..255)."""

    return base58.b58encode(bytes([n]) * 32).decode("ascii")


def signature(n: int) -> str:
    """Deterministic 64-byte transaction signature."""

    return base58.b58encode(n.to_bytes(8, "big") * 8).decode("ascii")


ZERO_ADDRESS = base58.b58encode(bytes(32)).decode("ascii")

BANK = address(1)
PARENT = address(2)
CHILD = address(3)
REQUEST = address(4)
OTHER_BANK = address(5)


def _addr(value: str) -> bytes:
    raw = base58.b58decode(value)
    assert len(raw) == 32, value
    return raw


def _u8(value: int) -> bytes:
    return struct.pack("<B", value)


def _u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def _string(value: str) -> bytes:
    raw = value.encode("utf-8")
    return struct.pack("<I", len(raw)) + raw


def encode(category: Category, body: bytes) -> str:
    return base64.b64encode(DISCRIMINATORS[category] + body).decode("ascii")


def bank_created(
    bank_id: str = BANK,
    *,
    name: str = "Holiday fund",
    parent: str = PARENT,
    child: str = CHILD,
    target_amount: int = 50_000_000,
    created_at_ms: int = 1_700_000_000_000,
    deadline_ms: int = 1_702_592_000_000,
    duration_days: int = 30,
    current_balance: int = 0,
) -> str:
    body = (
        _addr(bank_id)
        + _string(name)
        + _addr(parent)
        + _addr(child)
        + _u64(target_amount)
        + _u64(created_at_ms)
        + _u64(deadline_ms)
        + _u64(duration_days)
        + _u64(current_balance)
    )
    return encode(Category.BANK_CREATED, body)


def deposit_made(
    bank_id: str = BANK,
    *,
    amount: int = 10_000_000,
    depositor: str = PARENT,
    created_at_ms: int = 1_700_000_100_000,
) -> str:
    body = _addr(bank_id) + _u64(amount) + _addr(depositor) + _u64(created_at_ms)
    return encode(Category.DEPOSIT_MADE, body)


def withdrawal_requested(
    request_id: str = REQUEST,
    *,
    bank_id: str = BANK,
    amount: int = 2_000_000,
    requester: str = CHILD,
    reason: str = "new bike",
    status: int = 0,
    approved_by: str = ZERO_ADDRESS,
    created_at_ms: int = 1_700_000_200_000,
) -> str:
    body = (
        _addr(request_id)
        + _addr(bank_id)
        + _u64(amount)
        + _addr(requester)
        + _string(reason)
        + _u8(status)
        + _addr(approved_by)
        + _u64(created_at_ms)
    )
    return encode(Category.WITHDRAWAL_REQUESTED, body)


def withdrawal_approved(
    request_id: str = REQUEST,
    *,
    bank_id: str = BANK,
    amount: int = 2_000_000,
    approved_by: str = PARENT,
    requester: str = CHILD,
    reason: str = "new bike",
    created_at_ms: int = 1_700_000_300_000,
) -> str:
    body = (
        _addr(request_id)
        + _addr(bank_id)
        + _u64(amount)
        + _addr(approved_by)
        + _addr(requester)
        + _string(reason)
        + _u64(created_at_ms)
    )
    return encode(Category.WITHDRAWAL_APPROVED, body)


def withdrawal_rejected(
    request_id: str = REQUEST,
    *,
    bank_id: str = BANK,
    amount: int = 2_000_000,
    rejected_by: str = PARENT,
    requester: str = CHILD,
    reason: str = "new bike",
    created_at_ms: int = 1_700_000_300_000,
) -> str:
    body = (
        _addr(request_id)
        + _addr(bank_id)
        + _u64(amount)
        + _addr(rejected_by)
        + _addr(requester)
        + _string(reason)
        + _u64(created_at_ms)
    )
    return encode(Category.WITHDRAWAL_REJECTED, body)


def withdrawal_completed(
    request_id: str = REQUEST,
    *,
    bank_id: str = BANK,
    amount: int = 2_000_000,
    requester: str = CHILD,
    created_at_ms: int = 1_700_000_400_000,
) -> str:
    body = _addr(request_id) + _addr(bank_id) + _u64(amount) + _addr(requester) + _u64(created_at_ms)
    return encode(Category.WITHDRAWAL_COMPLETED, body)


# Log lines as emitted by an Anchor program invocation.
def program_logs(instruction: str, payload: str, *, program_id: str = address(9)) -> list[str]:
    return [
        f"Program {program_id} invoke [1]",
        f"Program log: Instruction: {instruction}",
        f"Program data: {payload}",
        f"Program {program_id} consumed 12345 of 200000 compute units",
        f"Program {program_id} success",
    ]
