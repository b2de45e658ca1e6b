"""Solana JSON-RPC access used by the fetcher and the poll loop.

Only two methods are needed: ``getSignaturesForAddress`` (the window of new
activity for the program) and ``getTransaction`` (its log lines). Responses
are validated with pydantic so that shape drift surfaces as a
``TransportError`` instead of a ``KeyError`` deep in the pipeline.
"""

from __future__ import annotations

import itertools
from typing import Any, Protocol

import base58
import httpx
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import TransportError
from .logging_setup import get_logger

logger = get_logger("bucky_indexer.ledger")

ADDRESS_LENGTH = 32
SIGNATURE_LENGTH = 64


def _b58_length(text: str) -> int | None:
    try:
        return len(base58.b58decode(text))
    except ValueError:
        return None


def is_valid_address(text: str | None) -> bool:
    """True when ``text`` is base58 for exactly 32 bytes."""

    return bool(text) and _b58_length(text.strip()) == ADDRESS_LENGTH


def is_valid_signature(text: str | None) -> bool:
    """True when ``text`` is base58 for exactly 64 bytes."""

    return bool(text) and _b58_length(text.strip()) == SIGNATURE_LENGTH


# ---------------------------------------------------------------------------
# Response DTOs
# ---------------------------------------------------------------------------


class SignatureInfo(BaseModel):
    """One entry of ``getSignaturesForAddress``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    signature: str
    slot: int
    err: Any | None = None
    block_time: int | None = Field(default=None, alias="blockTime")

    @property
    def failed(self) -> bool:
        return self.err is not None


class _TransactionMeta(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    err: Any | None = None
    log_messages: list[str] | None = Field(default=None, alias="logMessages")


class TransactionView(BaseModel):
    """The parts of a ``getTransaction`` result the indexer reads."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    slot: int
    block_time: int | None = Field(default=None, alias="blockTime")
    meta: _TransactionMeta | None = None

    @property
    def logs(self) -> list[str]:
        if self.meta is None or self.meta.log_messages is None:
            return []
        return list(self.meta.log_messages)

    @property
    def failed(self) -> bool:
        return self.meta is not None and self.meta.err is not None


_SIGNATURE_LIST = TypeAdapter(list[SignatureInfo])


# ---------------------------------------------------------------------------
# Client interface + HTTP implementation
# ---------------------------------------------------------------------------


class LedgerClient(Protocol):
    def get_signatures_for_address(
        self,
        address: str,
        *,
        until: str | None = None,
        before: str | None = None,
        limit: int = 100,
    ) -> list[SignatureInfo]:
        """Return signatures newest first, strictly between ``until`` and ``before``."""
        ...

    def get_transaction(self, signature: str) -> TransactionView | None:
        """Return the transaction, or None when the node does not have it yet."""
        ...


class SolanaRpcClient:
    """Synchronous JSON-RPC client over ``httpx``.

    Every failure mode (connection problems, non-2xx status, a JSON-RPC
    ``error`` member, an unparsable or unexpected body) raises
    ``TransportError``.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))
        self._ids = itertools.count(1)

    def _call(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = self._client.post(self.url, json=payload)
            r.raise_for_status()
            data = r.json()
        except httpx.HTTPError as e:
            raise TransportError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"{method} returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise TransportError(f"{method} returned an unexpected body: {type(data).__name__}")
        if "error" in data:
            err = data["error"] or {}
            if isinstance(err, dict):
                raise TransportError(f"{method} RPC error: {err.get('code')} {err.get('message')}")
            raise TransportError(f"{method} RPC error: {err}")
        return data.get("result")

    def get_signatures_for_address(
        self,
        address: str,
        *,
        until: str | None = None,
        before: str | None = None,
        limit: int = 100,
    ) -> list[SignatureInfo]:
        opts: dict[str, Any] = {"limit": limit}
        if until:
            opts["until"] = until
        if before:
            opts["before"] = before
        result = self._call("getSignaturesForAddress", [address, opts])
        try:
            return _SIGNATURE_LIST.validate_python(result or [])
        except ValidationError as e:
            raise TransportError(f"getSignaturesForAddress: unexpected result shape: {e}") from e

    def get_transaction(self, signature: str) -> TransactionView | None:
        result = self._call(
            "getTransaction",
            [signature, {"encoding": "json", "maxSupportedTransactionVersion": 0}],
        )
        if result is None:
            logger.debug("getTransaction(%s) returned null", signature)
            return None
        try:
            return TransactionView.model_validate(result)
        except ValidationError as e:
            raise TransportError(f"getTransaction: unexpected result shape: {e}") from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SolanaRpcClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "LedgerClient",
    "SignatureInfo",
    "SolanaRpcClient",
    "TransactionView",
    "is_valid_address",
    "is_valid_signature",
]
