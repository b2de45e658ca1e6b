"""Locate a category's event payloads in a transaction's log lines.

Two matching modes:

``marker``
    Walk the log forward. A line containing any of the category's marker
    substrings opens a search for the next ``Program data: `` line; its
    remainder is captured. Scanning resumes on the line after the marker, so
    two markers each followed by a data line yield two payloads. Log lines of
    other programs between the marker and the data line do not end the search.

``discriminator``
    Capture every ``Program data: `` line whose decoded first eight bytes equal
    the category's Anchor event discriminator. Lines that are not valid base64
    are skipped.

Neither mode raises; a transaction with nothing to offer yields ``[]``.
"""

from __future__ import annotations

from collections.abc import Sequence

from .config import EventMatching
from .decoder import DISCRIMINATOR_LENGTH, DISCRIMINATORS, b64_payload_bytes
from .errors import DecodeError
from .events import Category
from .logging_setup import get_logger

logger = get_logger("bucky_indexer.scanner")

DATA_PREFIX = "Program data: "

MARKERS: dict[Category, tuple[str, ...]] = {
    Category.BANK_CREATED: ("Instruction: CreateBuckyBank", "BuckyBankCreated"),
    Category.DEPOSIT_MADE: ("Instruction: Deposit", "DepositMade"),
    Category.WITHDRAWAL_REQUESTED: (
        "Instruction: RequestWithdrawal",
        "WithdrawalRequested",
        "EventWithdrawalRequested",
    ),
    Category.WITHDRAWAL_APPROVED: (
        "Instruction: ApproveWithdrawal",
        "WithdrawalApproved",
        "EventWithdrawalApproved",
    ),
    Category.WITHDRAWAL_REJECTED: (
        "Instruction: RejectWithdrawal",
        "WithdrawalRejected",
        "EventWithdrawalRejected",
    ),
    Category.WITHDRAWAL_COMPLETED: (
        "Instruction: Withdraw",
        "EventWithdrawalCompleted",
        "EventWithdrawed",
    ),
}


def _is_marker(line: str, markers: tuple[str, ...]) -> bool:
    # Data lines carry base64 and are never markers themselves.
    if line.startswith(DATA_PREFIX):
        return False
    return any(m in line for m in markers)


def scan_by_marker(logs: Sequence[str], category: Category) -> list[str]:
    markers = MARKERS[category]
    payloads: list[str] = []
    n = len(logs)
    i = 0
    while i < n:
        if _is_marker(logs[i], markers):
            for j in range(i + 1, n):
                if logs[j].startswith(DATA_PREFIX):
                    payloads.append(logs[j][len(DATA_PREFIX) :].strip())
                    break
            else:
                logger.debug("%s marker at line %d has no data line", category, i)
        i += 1
    return payloads


def scan_by_discriminator(logs: Sequence[str], category: Category) -> list[str]:
    wanted = DISCRIMINATORS[category]
    payloads: list[str] = []
    for line in logs:
        if not line.startswith(DATA_PREFIX):
            continue
        payload = line[len(DATA_PREFIX) :].strip()
        try:
            raw = b64_payload_bytes(payload)
        except DecodeError:
            logger.debug("skipping undecodable data line for %s", category)
            continue
        if raw[:DISCRIMINATOR_LENGTH] == wanted:
            payloads.append(payload)
    return payloads


class TransactionLogScanner:
    """Scanner bound to one matching mode."""

    def __init__(self, matching: EventMatching = EventMatching.MARKER) -> None:
        self.matching = EventMatching(matching)

    def scan(self, logs: Sequence[str], category: Category) -> list[str]:
        if self.matching is EventMatching.DISCRIMINATOR:
            return scan_by_discriminator(logs, category)
        return scan_by_marker(logs, category)


__all__ = [
    "DATA_PREFIX",
    "MARKERS",
    "TransactionLogScanner",
    "scan_by_discriminator",
    "scan_by_marker",
]
