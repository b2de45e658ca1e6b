"""bucky_indexer: ingest savings-bank program events from Solana logs.

Public surface
--------------
- ``PollScheduler`` runs the poll loop over all event categories.
- ``CursorStore``, ``SignatureWindowFetcher``, ``TransactionLogScanner``,
  ``Reconciler`` and ``DeadLetterStore`` are the pieces it wires together.
- ``decode`` turns a ``Program data:`` payload into an event record.
- ``bucky_indexer.queries`` holds the read-only lookups.
"""

from __future__ import annotations

from .config import DeliveryMode, EventMatching, IndexerSettings, load_settings
from .cursor_store import CursorStore
from .dead_letters import DeadLetterStore
from .decoder import decode
from .errors import (
    ApplyError,
    ApplyErrorKind,
    ConfigError,
    DecodeError,
    DecodeErrorKind,
    IndexerError,
    TransportError,
)
from .events import ALL_CATEGORIES, Category, LedgerPosition
from .fetcher import SignatureWindowFetcher
from .ledger import LedgerClient, SolanaRpcClient
from .reconciler import ApplyOutcome, Reconciler
from .scanner import TransactionLogScanner
from .scheduler import PollScheduler

__all__ = [
    "ALL_CATEGORIES",
    "ApplyError",
    "ApplyErrorKind",
    "ApplyOutcome",
    "Category",
    "ConfigError",
    "CursorStore",
    "DeadLetterStore",
    "DecodeError",
    "DecodeErrorKind",
    "DeliveryMode",
    "EventMatching",
    "IndexerError",
    "IndexerSettings",
    "LedgerClient",
    "LedgerPosition",
    "PollScheduler",
    "Reconciler",
    "SignatureWindowFetcher",
    "SolanaRpcClient",
    "TransactionLogScanner",
    "TransportError",
    "decode",
    "load_settings",
]
