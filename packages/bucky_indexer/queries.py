"""Read-only lookups over the projection.

These back an HTTP read API and the CLI reports. All functions take an open
``Session`` and never write. List functions page with ``limit``/``offset`` and
return the newest rows first (by the on-chain ``created_at_ms``).
"""

from __future__ import annotations

from typing import Any

from bucky_db import (
    Bank,
    DepositMadeEvent,
    WithdrawalCompletedEvent,
    WithdrawalRequest,
)
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

DEFAULT_LIMIT = 50


def _page(session: Session, stmt: Select[Any], order_col: Any, limit: int, offset: int) -> list[Any]:
    stmt = stmt.order_by(order_col.desc()).limit(max(0, limit)).offset(max(0, offset))
    return list(session.scalars(stmt))


# ---------------------------------------------------------------------------
# Withdrawal requests
# ---------------------------------------------------------------------------


def get_withdrawal_request(session: Session, request_id: str) -> WithdrawalRequest | None:
    return session.scalars(
        select(WithdrawalRequest).where(WithdrawalRequest.request_id == request_id)
    ).one_or_none()


def list_withdrawal_requests_by_bank(
    session: Session, bank_id: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[WithdrawalRequest]:
    stmt = select(WithdrawalRequest).where(WithdrawalRequest.bank_id == bank_id)
    return _page(session, stmt, WithdrawalRequest.created_at_ms, limit, offset)


def list_withdrawal_requests_by_requester(
    session: Session, requester: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[WithdrawalRequest]:
    stmt = select(WithdrawalRequest).where(WithdrawalRequest.requester == requester)
    return _page(session, stmt, WithdrawalRequest.created_at_ms, limit, offset)


def list_withdrawal_requests_by_status(
    session: Session, status: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[WithdrawalRequest]:
    stmt = select(WithdrawalRequest).where(WithdrawalRequest.status == str(status))
    return _page(session, stmt, WithdrawalRequest.created_at_ms, limit, offset)


def withdrawal_request_stats(
    session: Session, bank_id: str | None = None
) -> dict[str, dict[str, int]]:
    """Return ``{status: {"count": n, "total_amount": sum}}`` for present statuses."""

    stmt = select(
        WithdrawalRequest.status,
        func.count(WithdrawalRequest.id),
        func.coalesce(func.sum(WithdrawalRequest.amount), 0),
    ).group_by(WithdrawalRequest.status)
    if bank_id is not None:
        stmt = stmt.where(WithdrawalRequest.bank_id == bank_id)
    return {
        status: {"count": int(count), "total_amount": int(total)}
        for status, count, total in session.execute(stmt)
    }


# ---------------------------------------------------------------------------
# Completed withdrawals
# ---------------------------------------------------------------------------


def get_completion(session: Session, request_id: str) -> WithdrawalCompletedEvent | None:
    return session.scalars(
        select(WithdrawalCompletedEvent).where(WithdrawalCompletedEvent.request_id == request_id)
    ).one_or_none()


def list_completions_by_bank(
    session: Session, bank_id: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[WithdrawalCompletedEvent]:
    stmt = select(WithdrawalCompletedEvent).where(WithdrawalCompletedEvent.bank_id == bank_id)
    return _page(session, stmt, WithdrawalCompletedEvent.created_at_ms, limit, offset)


def list_completions_by_withdrawer(
    session: Session, withdrawer: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[WithdrawalCompletedEvent]:
    stmt = select(WithdrawalCompletedEvent).where(
        WithdrawalCompletedEvent.withdrawer == withdrawer
    )
    return _page(session, stmt, WithdrawalCompletedEvent.created_at_ms, limit, offset)


def completion_stats(session: Session, bank_id: str | None = None) -> dict[str, int | float]:
    stmt = select(
        func.count(WithdrawalCompletedEvent.id),
        func.coalesce(func.sum(WithdrawalCompletedEvent.amount), 0),
    )
    if bank_id is not None:
        stmt = stmt.where(WithdrawalCompletedEvent.bank_id == bank_id)
    count, total = session.execute(stmt).one()
    count, total = int(count), int(total)
    return {
        "total_count": count,
        "total_amount": total,
        "average_amount": (total / count) if count else 0.0,
    }


# ---------------------------------------------------------------------------
# Banks and deposits
# ---------------------------------------------------------------------------


def get_bank(session: Session, bank_id: str) -> Bank | None:
    return session.get(Bank, bank_id)


def get_bank_balance(session: Session, bank_id: str) -> int | None:
    return session.scalar(select(Bank.current_balance).where(Bank.bank_id == bank_id))


def list_banks_by_parent(
    session: Session, parent: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[Bank]:
    stmt = select(Bank).where(Bank.parent_address == parent)
    return _page(session, stmt, Bank.created_at_ms, limit, offset)


def list_banks_by_child(
    session: Session, child: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[Bank]:
    stmt = select(Bank).where(Bank.child_address == child)
    return _page(session, stmt, Bank.created_at_ms, limit, offset)


def list_deposits_by_bank(
    session: Session, bank_id: str, *, limit: int = DEFAULT_LIMIT, offset: int = 0
) -> list[DepositMadeEvent]:
    stmt = select(DepositMadeEvent).where(DepositMadeEvent.bank_id == bank_id)
    return _page(session, stmt, DepositMadeEvent.created_at_ms, limit, offset)


__all__ = [
    "DEFAULT_LIMIT",
    "completion_stats",
    "get_bank",
    "get_bank_balance",
    "get_completion",
    "get_withdrawal_request",
    "list_banks_by_child",
    "list_banks_by_parent",
    "list_completions_by_bank",
    "list_completions_by_withdrawer",
    "list_deposits_by_bank",
    "list_withdrawal_requests_by_bank",
    "list_withdrawal_requests_by_requester",
    "list_withdrawal_requests_by_status",
    "withdrawal_request_stats",
]
