"""The poll loop: one pass over every category per cycle.

For each category the scheduler reads the cursor, fetches the window of newer
signatures (oldest first) and, per signature, fetches the transaction, scans
its logs, decodes and applies each payload, and finally advances the cursor to
that signature. What happens to a signature whose events failed depends on the
delivery mode:

- ``at_most_once``: failed events are dead-lettered and the cursor moves on.
- ``hold_on_error``: the cursor stays put and the category stops for this
  cycle; the signature is retried next cycle. After ``max_signature_attempts``
  tries its failures are dead-lettered and the cursor moves on.

Transport and database errors abort the current category without touching its
cursor; the next cycle retries from the same place.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError

from .config import DeliveryMode
from .cursor_store import CursorStore
from .dead_letters import DeadLetterStore
from .decoder import decode
from .errors import ApplyError, DecodeError, TransportError
from .events import ALL_CATEGORIES, Category, LedgerPosition
from .fetcher import SignatureWindowFetcher
from .ledger import LedgerClient, SignatureInfo
from .logging_setup import get_logger
from .reconciler import ApplyOutcome, Reconciler
from .scanner import TransactionLogScanner

logger = get_logger("bucky_indexer.scheduler")


@dataclass(frozen=True, slots=True)
class _Failure:
    position: LedgerPosition
    payload: str
    error_kind: str
    message: str


@dataclass(slots=True)
class _SignatureResult:
    applied: int = 0
    duplicates: int = 0
    failures: list[_Failure] = field(default_factory=list)


@dataclass(slots=True)
class CategoryReport:
    category: Category
    signatures_seen: int = 0
    signatures_processed: int = 0
    events_applied: int = 0
    events_duplicate: int = 0
    events_failed: int = 0
    dead_lettered: int = 0
    # Set when the pass ended early: "transport", "database", "unavailable" or "held".
    stopped: str | None = None


@dataclass(slots=True)
class CycleReport:
    categories: list[CategoryReport] = field(default_factory=list)
    seconds: float = 0.0

    @property
    def events_applied(self) -> int:
        return sum(c.events_applied for c in self.categories)

    @property
    def had_errors(self) -> bool:
        return any(c.stopped in ("transport", "database", "unavailable") for c in self.categories)

    @property
    def busy(self) -> bool:
        return self.events_applied > 0


class PollScheduler:
    def __init__(
        self,
        *,
        program_id: str,
        ledger: LedgerClient,
        fetcher: SignatureWindowFetcher,
        cursors: CursorStore,
        reconciler: Reconciler,
        dead_letters: DeadLetterStore,
        scanner: TransactionLogScanner | None = None,
        delivery_mode: DeliveryMode = DeliveryMode.AT_MOST_ONCE,
        max_signature_attempts: int = 3,
        busy_interval: float = 1.0,
        idle_interval: float = 5.0,
        categories: Sequence[Category] = ALL_CATEGORIES,
        stop_event: threading.Event | None = None,
    ) -> None:
        self.program_id = program_id
        self.ledger = ledger
        self.fetcher = fetcher
        self.cursors = cursors
        self.reconciler = reconciler
        self.dead_letters = dead_letters
        self.scanner = scanner or TransactionLogScanner()
        self.delivery_mode = DeliveryMode(delivery_mode)
        self.max_signature_attempts = max(1, max_signature_attempts)
        self.busy_interval = busy_interval
        self.idle_interval = idle_interval
        self.categories = tuple(categories)
        self.stop_event = stop_event or threading.Event()
        # (category, signature) -> failed attempts so far, for hold_on_error.
        # Events committed by an earlier attempt replay as duplicates on retry.
        self._attempts: dict[tuple[Category, str], int] = {}

    def stop(self) -> None:
        self.stop_event.set()

    # ---- loop ------------------------------------------------------------

    def run(self, *, max_cycles: int | None = None) -> int:
        """Run cycles until stopped (or ``max_cycles`` ran); return the cycle count."""

        cycles = 0
        logger.info(
            "indexer started: program=%s mode=%s matching=%s",
            self.program_id,
            self.delivery_mode,
            self.scanner.matching,
        )
        while not self.stop_event.is_set():
            report = self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            delay = self.busy_interval if report.busy else self.idle_interval
            if self.stop_event.wait(delay):
                break
        logger.info("indexer stopped after %d cycle(s)", cycles)
        return cycles

    def run_cycle(self) -> CycleReport:
        t0 = time.perf_counter()
        report = CycleReport()
        for category in self.categories:
            if self.stop_event.is_set():
                break
            report.categories.append(self.run_category(category))
        report.seconds = time.perf_counter() - t0
        logger.info(
            "cycle done in %.2fs: applied=%d signatures=%d%s",
            report.seconds,
            report.events_applied,
            sum(c.signatures_processed for c in report.categories),
            " (errors)" if report.had_errors else "",
        )
        return report

    # ---- one category ----------------------------------------------------

    def run_category(self, category: Category) -> CategoryReport:
        report = CategoryReport(category=category)
        try:
            self._run_category(category, report)
        except TransportError as e:
            report.stopped = "transport"
            logger.error("%s: ledger unavailable, retrying next cycle: %s", category, e)
        except SQLAlchemyError as e:
            report.stopped = "database"
            logger.error("%s: database error, retrying next cycle: %s", category, e)
        return report

    def _run_category(self, category: Category, report: CategoryReport) -> None:
        cursor = self.cursors.get(category)
        since = cursor.last_processed_signature if cursor else None
        last_slot = cursor.last_processed_slot if cursor else None

        window = self.fetcher.fetch(self.program_id, since)
        report.signatures_seen = len(window)
        if window:
            logger.debug("%s: %d new signature(s) since %s", category, len(window), since)

        for info in window:
            if self.stop_event.is_set():
                return
            if last_slot is not None and info.slot < last_slot:
                logger.error(
                    "%s: signature %s at slot %d is older than cursor slot %d; not advancing",
                    category,
                    info.signature,
                    info.slot,
                    last_slot,
                )
                continue

            retried = (category, info.signature) in self._attempts
            result = self._process_signature(category, info)
            if result is None:
                report.stopped = "unavailable"
                logger.warning(
                    "%s: transaction %s not available yet; retrying next cycle",
                    category,
                    info.signature,
                )
                return

            report.events_applied += result.applied
            report.events_duplicate += result.duplicates
            report.events_failed += len(result.failures)

            if result.failures:
                if not self._release(category, info, result, report):
                    report.stopped = "held"
                    return
            else:
                self._attempts.pop((category, info.signature), None)

            processed = result.applied + (result.duplicates if retried else 0)
            self.cursors.advance(category, info.signature, info.slot, processed)
            last_slot = info.slot
            report.signatures_processed += 1

    def _release(
        self,
        category: Category,
        info: SignatureInfo,
        result: _SignatureResult,
        report: CategoryReport,
    ) -> bool:
        """Decide whether a signature with failures may advance the cursor.

        Dead-letters the failures when it may.
        """

        key = (category, info.signature)
        if self.delivery_mode is DeliveryMode.HOLD_ON_ERROR:
            attempts = self._attempts.get(key, 0) + 1
            if attempts < self.max_signature_attempts:
                self._attempts[key] = attempts
                logger.warning(
                    "%s: holding cursor at %s (%d failure(s), attempt %d/%d)",
                    category,
                    info.signature,
                    len(result.failures),
                    attempts,
                    self.max_signature_attempts,
                )
                return False
            logger.warning(
                "%s: giving up on %s after %d attempts", category, info.signature, attempts
            )
        self._attempts.pop(key, None)

        for failure in result.failures:
            stored = self.dead_letters.record(
                category,
                failure.position,
                error_kind=failure.error_kind,
                message=failure.message,
                payload=failure.payload,
            )
            report.dead_lettered += int(stored)
        return True

    def _process_signature(self, category: Category, info: SignatureInfo) -> _SignatureResult | None:
        result = _SignatureResult()
        if info.failed:
            logger.debug("%s: skipping failed transaction %s", category, info.signature)
            return result

        tx = self.ledger.get_transaction(info.signature)
        if tx is None:
            return None
        if tx.failed:
            logger.debug("%s: skipping failed transaction %s", category, info.signature)
            return result

        for index, payload in enumerate(self.scanner.scan(tx.logs, category)):
            position = LedgerPosition(signature=info.signature, slot=info.slot, index=index)
            try:
                event = decode(payload, category, position=position)
                outcome = self.reconciler.apply(event)
            except DecodeError as e:
                logger.warning(
                    "%s: dropping undecodable payload %s#%d: %s",
                    category,
                    info.signature,
                    index,
                    e,
                )
                result.failures.append(_Failure(position, payload, str(e.kind), e.message))
                continue
            except ApplyError as e:
                logger.warning(
                    "%s: could not apply event %s#%d: %s", category, info.signature, index, e
                )
                result.failures.append(_Failure(position, payload, str(e.kind), e.message))
                continue

            if outcome is ApplyOutcome.APPLIED:
                result.applied += 1
            else:
                result.duplicates += 1
        return result


__all__ = [
    "CategoryReport",
    "CycleReport",
    "PollScheduler",
]
