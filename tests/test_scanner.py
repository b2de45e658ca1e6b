from __future__ import annotations

from bucky_indexer.config import EventMatching
from bucky_indexer.events import Category
from bucky_indexer.scanner import TransactionLogScanner, scan_by_marker

from tests.helpers import payloads as p


def test_two_markers_with_two_data_lines_yield_two_payloads():
    first = p.withdrawal_requested(request_id=p.address(10))
    second = p.withdrawal_requested(request_id=p.address(11))
    logs = [
        "Program X invoke [1]",
        "Program log: Instruction: RequestWithdrawal",
        f"Program data: {first}",
        "Program X success",
        "Program X invoke [1]",
        "Program log: Instruction: RequestWithdrawal",
        f"Program data: {second}",
        "Program X success",
    ]
    assert scan_by_marker(logs, Category.WITHDRAWAL_REQUESTED) == [first, second]


def test_marker_without_data_line_is_discarded():
    logs = ["Program log: Instruction: Deposit", "Program X success"]
    assert scan_by_marker(logs, Category.DEPOSIT_MADE) == []


def test_other_program_logs_do_not_stop_the_search():
    payload = p.deposit_made()
    logs = [
        "Program log: Instruction: Deposit",
        "Program 11111111111111111111111111111111 invoke [2]",
        "Program 11111111111111111111111111111111 success",
        f"Program data: {payload}",
    ]
    assert scan_by_marker(logs, Category.DEPOSIT_MADE) == [payload]


def test_no_marker_no_payloads():
    logs = p.program_logs("Deposit", p.deposit_made())
    assert scan_by_marker(logs, Category.BANK_CREATED) == []


def test_scanner_handles_empty_and_odd_input():
    scanner = TransactionLogScanner()
    assert scanner.scan([], Category.DEPOSIT_MADE) == []
    assert scanner.scan(["", "Program data:", "garbage"], Category.DEPOSIT_MADE) == []


def test_withdraw_marker_does_not_match_request_withdrawal():
    logs = p.program_logs("RequestWithdrawal", p.withdrawal_requested())
    assert scan_by_marker(logs, Category.WITHDRAWAL_COMPLETED) == []


def test_discriminator_mode_picks_only_matching_events():
    approved = p.withdrawal_approved()
    rejected = p.withdrawal_rejected()
    # Both outcomes come out of the same ApproveWithdrawal instruction.
    logs = [
        "Program log: Instruction: ApproveWithdrawal",
        f"Program data: {approved}",
        "Program log: Instruction: ApproveWithdrawal",
        f"Program data: {rejected}",
        "Program data: ***not base64***",
    ]
    scanner = TransactionLogScanner(EventMatching.DISCRIMINATOR)
    assert scanner.scan(logs, Category.WITHDRAWAL_APPROVED) == [approved]
    assert scanner.scan(logs, Category.WITHDRAWAL_REJECTED) == [rejected]
