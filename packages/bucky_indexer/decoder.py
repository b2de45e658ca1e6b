"""Decode ``Program data:`` payloads into typed event records.

A payload is ``base64([8-byte discriminator][Borsh body])``. The discriminator
is skipped without interpretation (the caller already knows the category);
the body is read field by field:

- integers are little-endian (``u8``, ``u32`` length prefixes, ``u64``);
- strings are a ``u32`` byte length followed by UTF-8;
- addresses are 32 raw bytes, rendered as base58 text.

Bytes left over after the last field are ignored so that appending fields to
an on-chain event does not break older readers.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import struct
from collections.abc import Callable

import base58

from .errors import DecodeError, DecodeErrorKind
from .events import (
    EVENT_STRUCT_NAMES,
    NULL_ADDRESS,
    BankCreated,
    Category,
    DepositMade,
    EventRecord,
    LedgerPosition,
    WithdrawalApproved,
    WithdrawalCompleted,
    WithdrawalRejected,
    WithdrawalRequested,
    WithdrawalStatus,
)

DISCRIMINATOR_LENGTH = 8

_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


def discriminator(category: Category) -> bytes:
    """Anchor event discriminator: ``sha256("event:<StructName>")[:8]``."""

    name = EVENT_STRUCT_NAMES[category]
    return hashlib.sha256(f"event:{name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


DISCRIMINATORS: dict[Category, bytes] = {c: discriminator(c) for c in Category}


def b64_payload_bytes(payload_b64: str) -> bytes:
    """Strict base64 decode; raises ``DecodeError(INVALID_ENCODING)``."""

    try:
        return base64.b64decode(payload_b64.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(DecodeErrorKind.INVALID_ENCODING, f"invalid base64: {e}") from e


class _BorshReader:
    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = data
        self._pos = offset

    def _take(self, n: int, what: str) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise DecodeError(
                DecodeErrorKind.MALFORMED_PAYLOAD,
                f"truncated {what} at offset {self._pos}: need {n} bytes, "
                f"have {len(self._data) - self._pos}",
            )
        chunk = self._data[self._pos : end]
        self._pos = end
        return chunk

    def u8(self) -> int:
        return _U8.unpack(self._take(1, "u8"))[0]

    def u64(self) -> int:
        return _U64.unpack(self._take(8, "u64"))[0]

    def string(self) -> str:
        (length,) = _U32.unpack(self._take(4, "string length"))
        raw = self._take(length, "string")
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(DecodeErrorKind.MALFORMED_PAYLOAD, f"string is not UTF-8: {e}") from e

    def address(self) -> str:
        return base58.b58encode(self._take(32, "address")).decode("ascii")


def _bank_created(r: _BorshReader, position: LedgerPosition | None) -> BankCreated:
    return BankCreated(
        bank_id=r.address(),
        name=r.string(),
        parent=r.address(),
        child=r.address(),
        target_amount=r.u64(),
        created_at_ms=r.u64(),
        deadline_ms=r.u64(),
        duration_days=r.u64(),
        current_balance=r.u64(),
        position=position,
    )


def _deposit_made(r: _BorshReader, position: LedgerPosition | None) -> DepositMade:
    return DepositMade(
        bank_id=r.address(),
        amount=r.u64(),
        depositor=r.address(),
        created_at_ms=r.u64(),
        position=position,
    )


def _withdrawal_requested(
    r: _BorshReader, position: LedgerPosition | None
) -> WithdrawalRequested:
    request_id = r.address()
    bank_id = r.address()
    amount = r.u64()
    requester = r.address()
    reason = r.string()
    status = WithdrawalStatus.from_code(r.u8())
    approved_by = r.address()
    created_at_ms = r.u64()
    return WithdrawalRequested(
        request_id=request_id,
        bank_id=bank_id,
        amount=amount,
        requester=requester,
        reason=reason,
        status=status,
        # The program fills the field with the default address until someone acts.
        approved_by=None if approved_by == NULL_ADDRESS else approved_by,
        created_at_ms=created_at_ms,
        position=position,
    )


def _withdrawal_approved(r: _BorshReader, position: LedgerPosition | None) -> WithdrawalApproved:
    return WithdrawalApproved(
        request_id=r.address(),
        bank_id=r.address(),
        amount=r.u64(),
        approved_by=r.address(),
        requester=r.address(),
        reason=r.string(),
        created_at_ms=r.u64(),
        position=position,
    )


def _withdrawal_rejected(r: _BorshReader, position: LedgerPosition | None) -> WithdrawalRejected:
    return WithdrawalRejected(
        request_id=r.address(),
        bank_id=r.address(),
        amount=r.u64(),
        rejected_by=r.address(),
        requester=r.address(),
        reason=r.string(),
        created_at_ms=r.u64(),
        position=position,
    )


def _withdrawal_completed(
    r: _BorshReader, position: LedgerPosition | None
) -> WithdrawalCompleted:
    return WithdrawalCompleted(
        request_id=r.address(),
        bank_id=r.address(),
        amount=r.u64(),
        requester=r.address(),
        created_at_ms=r.u64(),
        position=position,
    )


_READERS: dict[Category, Callable[[_BorshReader, LedgerPosition | None], EventRecord]] = {
    Category.BANK_CREATED: _bank_created,
    Category.DEPOSIT_MADE: _deposit_made,
    Category.WITHDRAWAL_REQUESTED: _withdrawal_requested,
    Category.WITHDRAWAL_APPROVED: _withdrawal_approved,
    Category.WITHDRAWAL_REJECTED: _withdrawal_rejected,
    Category.WITHDRAWAL_COMPLETED: _withdrawal_completed,
}


def decode(
    payload_b64: str,
    category: Category,
    *,
    position: LedgerPosition | None = None,
) -> EventRecord:
    """Decode one base64 payload as ``category``.

    Raises ``DecodeError`` with kind ``INVALID_ENCODING`` (not base64),
    ``TOO_SHORT`` (no room for the discriminator) or ``MALFORMED_PAYLOAD``
    (the body does not match the category's layout).
    """

    raw = b64_payload_bytes(payload_b64)
    if len(raw) < DISCRIMINATOR_LENGTH:
        raise DecodeError(
            DecodeErrorKind.TOO_SHORT,
            f"payload has {len(raw)} bytes; at least {DISCRIMINATOR_LENGTH} required",
        )
    reader = _BorshReader(raw, DISCRIMINATOR_LENGTH)
    return _READERS[Category(category)](reader, position)


__all__ = [
    "DISCRIMINATORS",
    "DISCRIMINATOR_LENGTH",
    "b64_payload_bytes",
    "decode",
    "discriminator",
]
