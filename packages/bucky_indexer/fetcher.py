"""Fetch the window of program signatures newer than a cursor."""

from __future__ import annotations

from .ledger import LedgerClient, SignatureInfo, is_valid_signature
from .logging_setup import get_logger

logger = get_logger("bucky_indexer.fetcher")


class SignatureWindowFetcher:
    """Ask the ledger for signatures strictly newer than ``since_signature``.

    The RPC answers newest first. With ``max_pages > 1`` the fetcher pages
    backwards (``before`` = oldest signature seen so far) until a short page
    or the page budget ends. The combined window is returned oldest first so
    that cursor progress is monotonic.
    """

    def __init__(self, ledger: LedgerClient, *, page_size: int = 100, max_pages: int = 1) -> None:
        self.ledger = ledger
        self.page_size = page_size
        self.max_pages = max_pages

    def fetch(self, program_address: str, since_signature: str | None = None) -> list[SignatureInfo]:
        until = since_signature
        if until is not None and not is_valid_signature(until):
            logger.warning(
                "ignoring malformed cursor signature %r; fetching without a lower bound", until
            )
            until = None

        newest_first: list[SignatureInfo] = []
        seen: set[str] = set()
        before: str | None = None
        full_window = False
        for _ in range(self.max_pages):
            page = self.ledger.get_signatures_for_address(
                program_address, until=until, before=before, limit=self.page_size
            )
            for info in page:
                if info.signature not in seen:
                    seen.add(info.signature)
                    newest_first.append(info)
            if len(page) < self.page_size:
                break
            before = page[-1].signature
        else:
            full_window = True

        if full_window and until is not None:
            logger.warning(
                "signature window for %s is full (%d signatures since %s); older activity "
                "between the cursor and this window will be skipped",
                program_address,
                len(newest_first),
                until,
            )
        newest_first.reverse()
        return newest_first


__all__ = ["SignatureWindowFetcher"]
