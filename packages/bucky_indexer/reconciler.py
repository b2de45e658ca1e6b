"""Apply decoded events to the relational projection.

Every ``apply`` runs in its own transaction and is idempotent: the event rows
carry a natural unique key (bank id, request id, or a deposit fingerprint) and
are written with insert-or-ignore, and the side effects on the aggregate and
request rows happen only when the event row was new. Replaying the same event
therefore returns ``DUPLICATE`` and changes nothing.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from enum import StrEnum

from bucky_db import (
    Bank,
    BankCreatedEvent,
    Database,
    DepositMadeEvent,
    WithdrawalCompletedEvent,
    WithdrawalRequest,
)
from bucky_db.upsert import insert_ignore
from sqlalchemy import func, select, update
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from .errors import ApplyError, ApplyErrorKind
from .events import (
    BankCreated,
    Category,
    DepositMade,
    EventRecord,
    WithdrawalApproved,
    WithdrawalCompleted,
    WithdrawalRejected,
    WithdrawalRequested,
    WithdrawalStatus,
)
from .logging_setup import get_logger

logger = get_logger("bucky_indexer.reconciler")

# Amount, balance and timestamp columns are signed BIGINT; u64 values above
# this cannot be stored.
MAX_STORED_INT = 2**63 - 1


class ApplyOutcome(StrEnum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"


def deposit_fingerprint(event: DepositMade) -> str:
    """Stable SHA-256 over the deposit's payload and ledger position."""

    pos = event.position
    payload = {
        "bank_id": event.bank_id,
        "depositor": event.depositor,
        "amount": event.amount,
        "created_at_ms": event.created_at_ms,
        "signature": pos.signature if pos else None,
        "index": pos.index if pos else None,
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _signature(event: EventRecord) -> str | None:
    return event.position.signature if event.position else None


def _slot(event: EventRecord) -> int | None:
    return event.position.slot if event.position else None


def _check_range(event: EventRecord) -> None:
    for f in dataclasses.fields(event):
        value = getattr(event, f.name)
        if isinstance(value, int) and value > MAX_STORED_INT:
            raise ApplyError(
                ApplyErrorKind.OUT_OF_RANGE,
                f"{type(event).__name__}.{f.name}={value} does not fit a BIGINT column",
            )


def _database_error(e: IntegrityError | DataError) -> ApplyError:
    if isinstance(e, DataError):
        return ApplyError(ApplyErrorKind.OUT_OF_RANGE, str(e.orig))
    return ApplyError(ApplyErrorKind.CONSTRAINT_VIOLATION, str(e.orig))


class Reconciler:
    def __init__(self, database: Database) -> None:
        self.database = database
        self._handlers: dict[Category, Callable[[Session, EventRecord], ApplyOutcome]] = {
            Category.BANK_CREATED: self._bank_created,
            Category.DEPOSIT_MADE: self._deposit_made,
            Category.WITHDRAWAL_REQUESTED: self._withdrawal_requested,
            Category.WITHDRAWAL_APPROVED: self._withdrawal_reviewed,
            Category.WITHDRAWAL_REJECTED: self._withdrawal_reviewed,
            Category.WITHDRAWAL_COMPLETED: self._withdrawal_completed,
        }

    # ---- public API ------------------------------------------------------

    def apply(self, event: EventRecord) -> ApplyOutcome:
        """Apply one event in its own transaction.

        Raises ``ApplyError`` (after rolling back) when the event cannot be
        applied; database constraint failures surface as
        ``CONSTRAINT_VIOLATION`` and values the columns cannot hold as
        ``OUT_OF_RANGE``.
        """

        try:
            with self.database.session_scope() as s:
                outcome = self._apply_in(s, event)
        except (IntegrityError, DataError) as e:
            raise _database_error(e) from e
        logger.debug("%s %s", event.category, outcome)
        return outcome

    def apply_batch(self, events: Iterable[EventRecord]) -> list[ApplyOutcome]:
        """Apply several events in one transaction; any failure rolls back all."""

        try:
            with self.database.session_scope() as s:
                return [self._apply_in(s, event) for event in events]
        except (IntegrityError, DataError) as e:
            raise _database_error(e) from e

    def rebuild_balance(self, bank_id: str) -> int:
        """Recompute ``current_balance`` from the stored events and write it back.

        balance = initial balance + all deposits - all completed withdrawals
        """

        with self.database.session_scope() as s:
            initial = s.scalar(select(Bank.initial_balance).where(Bank.bank_id == bank_id))
            if initial is None:
                raise ApplyError(ApplyErrorKind.AGGREGATE_NOT_FOUND, f"bank {bank_id} not found")
            deposits = s.scalar(
                select(func.coalesce(func.sum(DepositMadeEvent.amount), 0)).where(
                    DepositMadeEvent.bank_id == bank_id
                )
            )
            withdrawn = s.scalar(
                select(func.coalesce(func.sum(WithdrawalCompletedEvent.amount), 0)).where(
                    WithdrawalCompletedEvent.bank_id == bank_id
                )
            )
            balance = int(initial) + int(deposits or 0) - int(withdrawn or 0)
            s.execute(
                update(Bank)
                .where(Bank.bank_id == bank_id)
                .values(current_balance=balance, updated_at=datetime.now(UTC))
            )
        logger.info(
            "rebuilt balance for %s: %d (initial=%d deposits=%d withdrawn=%d)",
            bank_id,
            balance,
            initial,
            deposits,
            withdrawn,
        )
        return balance

    # ---- per-category handlers -------------------------------------------

    def _apply_in(self, s: Session, event: EventRecord) -> ApplyOutcome:
        handler = self._handlers.get(getattr(event, "category", None))
        if handler is None:
            raise ApplyError(
                ApplyErrorKind.UNSUPPORTED_EVENT, f"no handler for {type(event).__name__}"
            )
        _check_range(event)
        return handler(s, event)

    def _bank_created(self, s: Session, event: BankCreated) -> ApplyOutcome:
        new_event = insert_ignore(
            s,
            BankCreatedEvent,
            {
                "bank_id": event.bank_id,
                "name": event.name,
                "parent_address": event.parent,
                "child_address": event.child,
                "target_amount": event.target_amount,
                "created_at_ms": event.created_at_ms,
                "deadline_ms": event.deadline_ms,
                "duration_days": event.duration_days,
                "current_balance": event.current_balance,
                "tx_signature": _signature(event),
                "slot": _slot(event),
            },
            index_elements=["bank_id"],
        )
        now = datetime.now(UTC)
        new_bank = insert_ignore(
            s,
            Bank,
            {
                "bank_id": event.bank_id,
                "name": event.name,
                "parent_address": event.parent,
                "child_address": event.child,
                "target_amount": event.target_amount,
                "deadline_ms": event.deadline_ms,
                "created_at_ms": event.created_at_ms,
                "initial_balance": event.current_balance,
                "current_balance": event.current_balance,
                "created_at": now,
                "updated_at": now,
            },
            index_elements=["bank_id"],
        )
        return ApplyOutcome.APPLIED if (new_event or new_bank) else ApplyOutcome.DUPLICATE

    def _deposit_made(self, s: Session, event: DepositMade) -> ApplyOutcome:
        inserted = insert_ignore(
            s,
            DepositMadeEvent,
            {
                "fingerprint_sha256": deposit_fingerprint(event),
                "bank_id": event.bank_id,
                "amount": event.amount,
                "depositor": event.depositor,
                "created_at_ms": event.created_at_ms,
                "tx_signature": _signature(event),
                "slot": _slot(event),
            },
            index_elements=["fingerprint_sha256"],
        )
        if not inserted:
            return ApplyOutcome.DUPLICATE

        result = s.execute(
            update(Bank)
            .where(
                Bank.bank_id == event.bank_id,
                Bank.current_balance <= MAX_STORED_INT - event.amount,
            )
            .values(
                current_balance=Bank.current_balance + event.amount,
                updated_at=datetime.now(UTC),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            return ApplyOutcome.APPLIED

        balance = s.scalar(select(Bank.current_balance).where(Bank.bank_id == event.bank_id))
        if balance is None:
            raise ApplyError(
                ApplyErrorKind.AGGREGATE_NOT_FOUND,
                f"deposit for unknown bank {event.bank_id}",
            )
        raise ApplyError(
            ApplyErrorKind.OUT_OF_RANGE,
            f"deposit of {event.amount} would overflow balance {balance} of {event.bank_id}",
        )

    def _withdrawal_requested(self, s: Session, event: WithdrawalRequested) -> ApplyOutcome:
        inserted = insert_ignore(
            s,
            WithdrawalRequest,
            {
                "request_id": event.request_id,
                "bank_id": event.bank_id,
                "amount": event.amount,
                "requester": event.requester,
                "reason": event.reason,
                "status": str(event.status),
                "approved_by": event.approved_by,
                "created_at_ms": event.created_at_ms,
                "tx_signature": _signature(event),
                "indexed_at": datetime.now(UTC),
            },
            index_elements=["request_id"],
        )
        return ApplyOutcome.APPLIED if inserted else ApplyOutcome.DUPLICATE

    def _withdrawal_reviewed(
        self, s: Session, event: WithdrawalApproved | WithdrawalRejected
    ) -> ApplyOutcome:
        if isinstance(event, WithdrawalApproved):
            status, actor = WithdrawalStatus.APPROVED, event.approved_by
        else:
            status, actor = WithdrawalStatus.REJECTED, event.rejected_by

        row = s.scalars(
            select(WithdrawalRequest)
            .where(WithdrawalRequest.request_id == event.request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one_or_none()
        if row is None:
            raise ApplyError(
                ApplyErrorKind.REQUEST_NOT_FOUND,
                f"{event.category} for unknown request {event.request_id}",
            )
        if row.status == WithdrawalStatus.COMPLETED:
            return ApplyOutcome.DUPLICATE
        if (
            row.status == status
            and row.approved_by == actor
            and row.audit_at_ms == event.created_at_ms
        ):
            return ApplyOutcome.DUPLICATE

        row.status = str(status)
        row.approved_by = actor
        row.audit_at_ms = event.created_at_ms
        return ApplyOutcome.APPLIED

    def _withdrawal_completed(self, s: Session, event: WithdrawalCompleted) -> ApplyOutcome:
        already = s.scalar(
            select(WithdrawalCompletedEvent.id).where(
                WithdrawalCompletedEvent.request_id == event.request_id
            )
        )
        if already is not None:
            return ApplyOutcome.DUPLICATE

        balance = s.scalar(
            select(Bank.current_balance).where(Bank.bank_id == event.bank_id).with_for_update()
        )
        if balance is None:
            raise ApplyError(
                ApplyErrorKind.AGGREGATE_NOT_FOUND,
                f"withdrawal completed for unknown bank {event.bank_id}",
            )
        request_exists = s.scalar(
            select(WithdrawalRequest.id).where(WithdrawalRequest.request_id == event.request_id)
        )
        if request_exists is None:
            raise ApplyError(
                ApplyErrorKind.REQUEST_NOT_FOUND,
                f"withdrawal completed for unknown request {event.request_id}",
            )

        if event.left_balance is not None:
            left_balance = event.left_balance
        else:
            left_balance = max(int(balance) - event.amount, 0)

        inserted = insert_ignore(
            s,
            WithdrawalCompletedEvent,
            {
                "request_id": event.request_id,
                "bank_id": event.bank_id,
                "amount": event.amount,
                "left_balance": left_balance,
                "withdrawer": event.requester,
                "created_at_ms": event.created_at_ms,
                "tx_signature": _signature(event),
                "slot": _slot(event),
            },
            index_elements=["request_id"],
        )
        if not inserted:
            return ApplyOutcome.DUPLICATE

        s.execute(
            update(WithdrawalRequest)
            .where(WithdrawalRequest.request_id == event.request_id)
            .values(status=str(WithdrawalStatus.COMPLETED))
            .execution_options(synchronize_session=False)
        )
        s.execute(
            update(Bank)
            .where(Bank.bank_id == event.bank_id)
            .values(current_balance=left_balance, updated_at=datetime.now(UTC))
            .execution_options(synchronize_session=False)
        )
        return ApplyOutcome.APPLIED


__all__ = [
    "ApplyOutcome",
    "Reconciler",
    "deposit_fingerprint",
]
