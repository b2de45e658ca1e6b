from __future__ import annotations

from bucky_indexer.cursor_store import CursorStore
from bucky_indexer.events import Category

from tests.helpers import payloads as p


def test_get_missing_cursor_is_none(database):
    assert CursorStore(database).get(Category.DEPOSIT_MADE) is None


def test_advance_creates_then_updates(database):
    store = CursorStore(database)

    store.advance(Category.DEPOSIT_MADE, p.signature(1), 10, 2)
    first = store.get(Category.DEPOSIT_MADE)
    assert first.id == "DepositMade"
    assert first.last_processed_signature == p.signature(1)
    assert first.last_processed_slot == 10
    assert first.total_events_processed == 2
    assert first.last_poll_time is not None

    store.advance(Category.DEPOSIT_MADE, p.signature(2), 12, 3)
    second = store.get(Category.DEPOSIT_MADE)
    assert second.last_processed_signature == p.signature(2)
    assert second.last_processed_slot == 12
    assert second.total_events_processed == 5


def test_advance_with_zero_delta_still_moves(database):
    store = CursorStore(database)
    store.advance(Category.BANK_CREATED, p.signature(1), 10, 0)
    store.advance(Category.BANK_CREATED, p.signature(2), 11, 0)

    cursor = store.get(Category.BANK_CREATED)
    assert cursor.last_processed_signature == p.signature(2)
    assert cursor.total_events_processed == 0


def test_slots_are_non_decreasing_across_advances(database):
    store = CursorStore(database)
    seen = []
    for n, slot in enumerate([5, 5, 9, 30], start=1):
        store.advance(Category.WITHDRAWAL_REQUESTED, p.signature(n), slot)
        seen.append(store.get(Category.WITHDRAWAL_REQUESTED).last_processed_slot)
    assert seen == sorted(seen)


def test_categories_are_independent_and_listed(database):
    store = CursorStore(database)
    store.advance(Category.BANK_CREATED, p.signature(1), 1)
    store.advance(Category.DEPOSIT_MADE, p.signature(2), 2)

    assert {c.id for c in store.list()} == {"BankCreated", "DepositMade"}
    assert store.get(Category.BANK_CREATED).last_processed_signature == p.signature(1)


def test_reset_removes_one_cursor(database):
    store = CursorStore(database)
    store.advance(Category.BANK_CREATED, p.signature(1), 1)

    assert store.reset(Category.BANK_CREATED) is True
    assert store.reset(Category.BANK_CREATED) is False
    assert store.get(Category.BANK_CREATED) is None
