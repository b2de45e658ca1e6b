"""Runtime settings for the indexer, read from the environment.

``load_settings`` is called by the CLI after ``load_dotenv()`` so that values in
a local ``.env`` apply unless the real environment already sets them. Explicit
keyword overrides (from CLI options) win over both.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError
from .ledger import is_valid_address

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"


class DeliveryMode(StrEnum):
    # Advance past a signature even when some of its events failed.
    AT_MOST_ONCE = "at_most_once"
    # Keep the cursor on a failing signature until it succeeds or runs out of attempts.
    HOLD_ON_ERROR = "hold_on_error"


class EventMatching(StrEnum):
    MARKER = "marker"
    DISCRIMINATOR = "discriminator"


class IndexerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    database_url: str
    db_pool_size: int = 10
    db_pool_timeout_seconds: float = 30.0

    rpc_url: str = DEFAULT_RPC_URL
    program_id: str
    query_limit: int = 100
    max_pages: int = 1
    rpc_timeout_seconds: float = 30.0

    busy_interval_seconds: float = 1.0
    idle_interval_seconds: float = 5.0
    delivery_mode: DeliveryMode = DeliveryMode.AT_MOST_ONCE
    max_signature_attempts: int = 3
    event_matching: EventMatching = EventMatching.MARKER

    @field_validator("database_url", "rpc_url")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v

    @field_validator("program_id")
    @classmethod
    def _program_id_is_address(cls, v: str) -> str:
        if not is_valid_address(v):
            raise ValueError("must be a base58-encoded 32-byte address")
        return v

    @field_validator("query_limit")
    @classmethod
    def _query_limit_range(cls, v: int) -> int:
        if not 1 <= v <= 1000:
            raise ValueError("must be within [1, 1000]")
        return v

    @field_validator("max_pages", "max_signature_attempts", "db_pool_size")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator(
        "busy_interval_seconds",
        "idle_interval_seconds",
        "rpc_timeout_seconds",
        "db_pool_timeout_seconds",
    )
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v


# Settings field -> environment variable
ENV_VARS: dict[str, str] = {
    "database_url": "DATABASE_URL",
    "db_pool_size": "DB_POOL_SIZE",
    "db_pool_timeout_seconds": "DB_POOL_TIMEOUT_SECONDS",
    "rpc_url": "SOLANA_RPC_URL",
    "program_id": "SOLANA_PROGRAM_ID",
    "query_limit": "SOLANA_QUERY_LIMIT",
    "max_pages": "SOLANA_MAX_PAGES",
    "rpc_timeout_seconds": "SOLANA_RPC_TIMEOUT_SECONDS",
    "busy_interval_seconds": "INDEXER_BUSY_INTERVAL_SECONDS",
    "idle_interval_seconds": "INDEXER_IDLE_INTERVAL_SECONDS",
    "delivery_mode": "INDEXER_DELIVERY_MODE",
    "max_signature_attempts": "INDEXER_MAX_SIGNATURE_ATTEMPTS",
    "event_matching": "INDEXER_EVENT_MATCHING",
}


def load_settings(
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> IndexerSettings:
    """Build settings from ``env`` (defaults to ``os.environ``) plus overrides.

    Unset or blank variables fall back to the model defaults. ``None``
    overrides are ignored so CLI options can be passed through unconditionally.
    Raises ``ConfigError`` naming the offending variables.
    """

    source = os.environ if env is None else env
    values: dict[str, Any] = {}
    for field, var in ENV_VARS.items():
        raw = source.get(var)
        if raw is not None and raw.strip():
            values[field] = raw.strip()
    for field, value in overrides.items():
        if field not in ENV_VARS:
            raise ConfigError(f"unknown setting: {field}")
        if value is not None:
            values[field] = value

    try:
        return IndexerSettings.model_validate(values)
    except ValidationError as e:
        problems = []
        for err in e.errors():
            field = str(err["loc"][0]) if err["loc"] else "?"
            problems.append(f"{ENV_VARS.get(field, field)}: {err['msg']}")
        raise ConfigError("invalid configuration: " + "; ".join(problems)) from e


__all__ = [
    "DEFAULT_RPC_URL",
    "ENV_VARS",
    "DeliveryMode",
    "EventMatching",
    "IndexerSettings",
    "load_settings",
]
