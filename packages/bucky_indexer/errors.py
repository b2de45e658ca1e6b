"""Exception types raised across the ingestion pipeline.

Each failure class maps to one recovery rule in the poll loop:

- ``TransportError``: the ledger could not be reached or answered with an
  error. The category is abandoned for this cycle and the cursor is untouched.
- ``DecodeError``: one payload could not be turned into an event record. The
  event is dropped; the enclosing signature still advances the cursor.
- ``ApplyError``: a decoded event could not be applied to the projection. Its
  transaction is rolled back and the event is dropped.
- ``ConfigError``: startup cannot proceed (bad program id, missing URL).
"""

from __future__ import annotations

from enum import StrEnum


class IndexerError(Exception):
    """Base class for all indexer failures."""


class ConfigError(IndexerError):
    """Invalid or missing runtime configuration; fatal at startup."""


class TransportError(IndexerError):
    """RPC/network failure while talking to the ledger."""


class DecodeErrorKind(StrEnum):
    INVALID_ENCODING = "invalid_encoding"
    TOO_SHORT = "too_short"
    MALFORMED_PAYLOAD = "malformed_payload"
    INVALID_SIGNATURE = "invalid_signature"


class DecodeError(IndexerError):
    def __init__(self, kind: DecodeErrorKind, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


class ApplyErrorKind(StrEnum):
    AGGREGATE_NOT_FOUND = "aggregate_not_found"
    REQUEST_NOT_FOUND = "request_not_found"
    CONSTRAINT_VIOLATION = "constraint_violation"
    UNSUPPORTED_EVENT = "unsupported_event"
    OUT_OF_RANGE = "out_of_range"


class ApplyError(IndexerError):
    def __init__(self, kind: ApplyErrorKind, message: str) -> None:
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


__all__ = [
    "ApplyError",
    "ApplyErrorKind",
    "ConfigError",
    "DecodeError",
    "DecodeErrorKind",
    "IndexerError",
    "TransportError",
]
