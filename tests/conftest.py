"""Shared fixtures: a fresh SQLite database per test and a clean environment.

Settings are read from the process environment (and ``.env`` by the CLI), so
the indexer's variables are cleared for every test to keep runs hermetic.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make the workspace packages importable without an install.
_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT))
    if p not in sys.path
]

from bucky_db import Database  # noqa: E402
from bucky_indexer.config import ENV_VARS  # noqa: E402

from tests.helpers.db import bootstrap_sqlite_db  # noqa: E402


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (*ENV_VARS.values(), "BUCKY_INDEXER_LOG_LEVEL", "BUCKY_INDEXER_LOG_FILE"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def database(tmp_path: Path) -> Iterator[Database]:
    db = bootstrap_sqlite_db(tmp_path / "bucky.sqlite3")
    try:
        yield db
    finally:
        db.dispose()
