from __future__ import annotations

import pytest

from bucky_indexer.config import DEFAULT_RPC_URL, DeliveryMode, EventMatching, load_settings
from bucky_indexer.errors import ConfigError

from tests.helpers import payloads as p

BASE_ENV = {"DATABASE_URL": "sqlite:///x.db", "SOLANA_PROGRAM_ID": p.address(9)}


def test_defaults():
    s = load_settings(BASE_ENV)
    assert s.rpc_url == DEFAULT_RPC_URL
    assert s.query_limit == 100
    assert s.max_pages == 1
    assert s.busy_interval_seconds == 1.0
    assert s.idle_interval_seconds == 5.0
    assert s.delivery_mode is DeliveryMode.AT_MOST_ONCE
    assert s.event_matching is EventMatching.MARKER
    assert s.max_signature_attempts == 3
    assert s.db_pool_size == 10


def test_env_values_are_coerced():
    env = {
        **BASE_ENV,
        "SOLANA_QUERY_LIMIT": "250",
        "INDEXER_IDLE_INTERVAL_SECONDS": "0.5",
        "INDEXER_DELIVERY_MODE": "hold_on_error",
        "INDEXER_EVENT_MATCHING": "discriminator",
        "SOLANA_MAX_PAGES": " ",
    }
    s = load_settings(env)
    assert s.query_limit == 250
    assert s.idle_interval_seconds == 0.5
    assert s.delivery_mode is DeliveryMode.HOLD_ON_ERROR
    assert s.event_matching is EventMatching.DISCRIMINATOR
    assert s.max_pages == 1


def test_overrides_win_and_none_is_ignored():
    s = load_settings(BASE_ENV, rpc_url="http://localhost:8899", query_limit=None)
    assert s.rpc_url == "http://localhost:8899"
    assert s.query_limit == 100


@pytest.mark.parametrize(
    ("env", "needle"),
    [
        ({"DATABASE_URL": "sqlite:///x.db"}, "SOLANA_PROGRAM_ID"),
        ({**BASE_ENV, "SOLANA_PROGRAM_ID": "not base58!"}, "SOLANA_PROGRAM_ID"),
        ({**BASE_ENV, "SOLANA_PROGRAM_ID": p.signature(1)}, "SOLANA_PROGRAM_ID"),
        ({"SOLANA_PROGRAM_ID": p.address(9)}, "DATABASE_URL"),
        ({**BASE_ENV, "SOLANA_QUERY_LIMIT": "5000"}, "SOLANA_QUERY_LIMIT"),
        ({**BASE_ENV, "INDEXER_DELIVERY_MODE": "exactly_once"}, "INDEXER_DELIVERY_MODE"),
    ],
)
def test_invalid_configuration(env, needle):
    with pytest.raises(ConfigError) as ei:
        load_settings(env)
    assert needle in str(ei.value)


def test_unknown_override_is_rejected():
    with pytest.raises(ConfigError):
        load_settings(BASE_ENV, nonsense=1)


def test_reads_process_environment(monkeypatch: pytest.MonkeyPatch):
    for k, v in BASE_ENV.items():
        monkeypatch.setenv(k, v)
    assert load_settings().program_id == p.address(9)
