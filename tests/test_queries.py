from __future__ import annotations

import pytest

from bucky_indexer import queries as q
from bucky_indexer.decoder import decode
from bucky_indexer.events import Category, LedgerPosition
from bucky_indexer.reconciler import Reconciler

from tests.helpers import payloads as p


def _pos(n: int) -> LedgerPosition:
    return LedgerPosition(signature=p.signature(n), slot=n)


@pytest.fixture()
def seeded(database):
    """One bank with 60 withdrawal requests and a couple of completions."""

    r = Reconciler(database)
    r.apply(decode(p.bank_created(current_balance=1_000_000), Category.BANK_CREATED, position=_pos(1)))
    for i in range(60):
        r.apply(
            decode(
                p.withdrawal_requested(
                    request_id=p.address(100 + i),
                    amount=1_000 + i,
                    created_at_ms=1_000 + i,
                    requester=p.CHILD if i % 2 == 0 else p.PARENT,
                ),
                Category.WITHDRAWAL_REQUESTED,
                position=_pos(10 + i),
            )
        )
    for i in (0, 1):
        r.apply(
            decode(
                p.withdrawal_approved(request_id=p.address(100 + i)),
                Category.WITHDRAWAL_APPROVED,
                position=_pos(80 + i),
            )
        )
    for i, amount in ((0, 100), (1, 300)):
        r.apply(
            decode(
                p.withdrawal_completed(
                    request_id=p.address(100 + i), amount=amount, created_at_ms=5_000 + i
                ),
                Category.WITHDRAWAL_COMPLETED,
                position=_pos(90 + i),
            )
        )
    r.apply(decode(p.deposit_made(amount=5), Category.DEPOSIT_MADE, position=_pos(95)))
    return database


def test_list_by_bank_defaults_to_50_newest_first(seeded):
    with seeded.session_scope() as s:
        rows = q.list_withdrawal_requests_by_bank(s, p.BANK)
    assert len(rows) == 50
    stamps = [r.created_at_ms for r in rows]
    assert stamps == sorted(stamps, reverse=True)
    assert stamps[0] == 1_059


def test_paging_with_offset(seeded):
    with seeded.session_scope() as s:
        rows = q.list_withdrawal_requests_by_bank(s, p.BANK, limit=5, offset=58)
    assert [r.created_at_ms for r in rows] == [1_001, 1_000]


def test_lookup_by_requester_and_status(seeded):
    with seeded.session_scope() as s:
        by_child = q.list_withdrawal_requests_by_requester(s, p.CHILD, limit=100)
        completed = q.list_withdrawal_requests_by_status(s, "completed")
        one = q.get_withdrawal_request(s, p.address(105))
        missing = q.get_withdrawal_request(s, p.address(250))
    assert len(by_child) == 30
    assert {r.request_id for r in completed} == {p.address(100), p.address(101)}
    assert one.amount == 1_005
    assert missing is None


def test_withdrawal_request_stats(seeded):
    with seeded.session_scope() as s:
        stats = q.withdrawal_request_stats(s)
        other = q.withdrawal_request_stats(s, p.OTHER_BANK)
    assert stats["completed"] == {"count": 2, "total_amount": 1_000 + 1_001}
    assert stats["pending"]["count"] == 58
    assert other == {}


def test_completions(seeded):
    with seeded.session_scope() as s:
        by_bank = q.list_completions_by_bank(s, p.BANK)
        by_withdrawer = q.list_completions_by_withdrawer(s, p.CHILD)
        single = q.get_completion(s, p.address(101))
        stats = q.completion_stats(s)
        empty = q.completion_stats(s, p.OTHER_BANK)
    assert [c.created_at_ms for c in by_bank] == [5_001, 5_000]
    assert len(by_withdrawer) == 2
    assert single.amount == 300
    assert stats == {"total_count": 2, "total_amount": 400, "average_amount": 200.0}
    assert empty == {"total_count": 0, "total_amount": 0, "average_amount": 0.0}


def test_bank_lookups(seeded):
    with seeded.session_scope() as s:
        bank = q.get_bank(s, p.BANK)
        balance = q.get_bank_balance(s, p.BANK)
        by_parent = q.list_banks_by_parent(s, p.PARENT)
        by_child = q.list_banks_by_child(s, p.CHILD)
        deposits = q.list_deposits_by_bank(s, p.BANK)
        assert q.get_bank_balance(s, p.OTHER_BANK) is None
    assert bank.name == "Holiday fund"
    assert bank.initial_balance == 1_000_000
    # 1_000_000 - 100 - 300 + 5
    assert balance == 999_605
    assert [b.bank_id for b in by_parent] == [p.BANK]
    assert [b.bank_id for b in by_child] == [p.BANK]
    assert [d.amount for d in deposits] == [5]
