from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from bucky_indexer import cli as cli_module
from bucky_indexer.cli import app
from bucky_indexer.cursor_store import CursorStore
from bucky_indexer.decoder import decode
from bucky_indexer.events import Category
from bucky_indexer.reconciler import Reconciler

from tests.helpers import payloads as p
from tests.helpers.db import bank_balance, bootstrap_sqlite_db

runner = CliRunner()


@pytest.fixture(autouse=True)
def _wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    # Rich falls back to 80 columns off a TTY; keep table cells unwrapped.
    monkeypatch.setattr(cli_module.console, "width", 240)


@pytest.fixture()
def db_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    db_file = tmp_path / "cli.sqlite3"
    database = bootstrap_sqlite_db(db_file)
    url = f"sqlite+pysqlite:///{db_file}"
    monkeypatch.setenv("DATABASE_URL", url)
    # Keep a stray .env in the caller's directory out of the picture.
    monkeypatch.chdir(tmp_path)
    try:
        yield url, database
    finally:
        database.dispose()


def test_init_db_creates_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    url = f"sqlite+pysqlite:///{tmp_path / 'fresh.sqlite3'}"
    result = runner.invoke(app, ["init-db", "--database-url", url, "--create-tables"])
    assert result.exit_code == 0, result.output
    assert "Tables ready" in result.output
    assert "Connected" in result.output


def test_missing_database_url_fails(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["cursors"])
    assert result.exit_code == 2


def test_cursors_table(db_url):
    _, database = db_url
    CursorStore(database).advance(Category.DEPOSIT_MADE, p.signature(1), 77, 3)

    result = runner.invoke(app, ["cursors"])

    assert result.exit_code == 0, result.output
    assert "DepositMade" in result.output
    assert "77" in result.output


def test_reset_cursor(db_url):
    _, database = db_url
    CursorStore(database).advance(Category.BANK_CREATED, p.signature(1), 1)

    result = runner.invoke(app, ["reset-cursor", "BankCreated", "--yes"])

    assert result.exit_code == 0, result.output
    assert CursorStore(database).get(Category.BANK_CREATED) is None


def test_reset_cursor_rejects_unknown_category(db_url):
    result = runner.invoke(app, ["reset-cursor", "Nope", "--yes"])
    assert result.exit_code == 2


def test_rebuild_balance_and_stats(db_url):
    _, database = db_url
    r = Reconciler(database)
    r.apply(decode(p.bank_created(current_balance=10), Category.BANK_CREATED))
    r.apply(decode(p.deposit_made(amount=5), Category.DEPOSIT_MADE))
    r.apply(decode(p.withdrawal_requested(amount=4), Category.WITHDRAWAL_REQUESTED))

    result = runner.invoke(app, ["rebuild-balance", p.BANK])
    assert result.exit_code == 0, result.output
    assert "15" in result.output
    assert bank_balance(database, p.BANK) == 15

    result = runner.invoke(app, ["withdrawal-stats", "--bank-id", p.BANK])
    assert result.exit_code == 0, result.output
    assert "pending" in result.output


def test_rebuild_balance_unknown_bank(db_url):
    result = runner.invoke(app, ["rebuild-balance", p.OTHER_BANK])
    assert result.exit_code == 1


def test_poll_once_requires_program_id(db_url):
    result = runner.invoke(app, ["poll-once"])
    assert result.exit_code == 2


def test_dead_letters_empty(db_url):
    result = runner.invoke(app, ["dead-letters"])
    assert result.exit_code == 0, result.output
    assert "No dead letters" in result.output
