# ruff: noqa: I001
"""Typer console interface for the indexer.

``.env`` in the working directory is loaded (without overriding variables that
are already set) before any command runs; settings then come from the
environment with command-line options taking precedence. Pipeline logic lives
in ``bucky_indexer.scheduler`` and the modules it wires together.
"""

from __future__ import annotations

import signal
import threading
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from bucky_db import Database, metadata
from bucky_db.client import database_url as resolve_database_url

from .config import DeliveryMode, EventMatching, IndexerSettings, load_settings
from .cursor_store import CursorStore
from .dead_letters import DeadLetterStore
from .errors import ApplyError, ConfigError
from .events import ALL_CATEGORIES, Category
from .fetcher import SignatureWindowFetcher
from .ledger import SolanaRpcClient
from .logging_setup import configure_logging, get_logger
from .queries import completion_stats, withdrawal_request_stats
from .reconciler import Reconciler
from .scanner import TransactionLogScanner
from .scheduler import CycleReport, PollScheduler

logger = get_logger("bucky_indexer.cli")
console = Console()
err_console = Console(stderr=True)


# ---- helpers ------------------------------------------------------------------


def _fail(message: str, code: int = 1) -> typer.Exit:
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(code)


def _settings(**overrides: Any) -> IndexerSettings:
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        raise _fail(str(e), 2) from e


def _open_database(url: str | None, **pool: Any) -> Database:
    try:
        database = Database.from_url(resolve_database_url(url), **pool)
    except RuntimeError as e:
        raise _fail(str(e), 2) from e
    try:
        database.ping()
    except Exception as e:
        database.dispose()
        raise _fail(f"cannot connect to the database: {e}") from e
    return database


def _build_scheduler(
    settings: IndexerSettings,
    database: Database,
    ledger: SolanaRpcClient,
    stop_event: threading.Event | None = None,
) -> PollScheduler:
    return PollScheduler(
        program_id=settings.program_id,
        ledger=ledger,
        fetcher=SignatureWindowFetcher(
            ledger, page_size=settings.query_limit, max_pages=settings.max_pages
        ),
        cursors=CursorStore(database),
        reconciler=Reconciler(database),
        dead_letters=DeadLetterStore(database),
        scanner=TransactionLogScanner(settings.event_matching),
        delivery_mode=settings.delivery_mode,
        max_signature_attempts=settings.max_signature_attempts,
        busy_interval=settings.busy_interval_seconds,
        idle_interval=settings.idle_interval_seconds,
        stop_event=stop_event,
    )


def _print_cycle(report: CycleReport) -> None:
    table = Table(title=f"Cycle ({report.seconds:.2f}s)")
    for col in ("category", "signatures", "applied", "duplicate", "failed", "dead-lettered", "stopped"):
        table.add_column(col)
    for c in report.categories:
        table.add_row(
            str(c.category),
            f"{c.signatures_processed}/{c.signatures_seen}",
            str(c.events_applied),
            str(c.events_duplicate),
            str(c.events_failed),
            str(c.dead_lettered),
            c.stopped or "",
        )
    console.print(table)


def _parse_category(value: str) -> Category:
    for category in ALL_CATEGORIES:
        if value.lower() in (category.value.lower(), category.name.lower()):
            return category
    names = ", ".join(c.value for c in ALL_CATEGORIES)
    raise _fail(f"unknown category {value!r}; expected one of: {names}", 2)


# ---- Typer app ----------------------------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Index savings-bank program events from Solana into a relational database. "
        "Loads DATABASE_URL, SOLANA_RPC_URL and SOLANA_PROGRAM_ID from a local .env."
    ),
)


DATABASE_URL_OPTION = typer.Option(None, help="Override DATABASE_URL (falls back to env var).")
RPC_URL_OPTION = typer.Option(None, help="Override SOLANA_RPC_URL.")
PROGRAM_ID_OPTION = typer.Option(None, help="Override SOLANA_PROGRAM_ID.")
DELIVERY_MODE_OPTION = typer.Option(None, help="Override INDEXER_DELIVERY_MODE.")
MATCHING_OPTION = typer.Option(None, help="Override INDEXER_EVENT_MATCHING.")


@app.callback()
def _root(
    log_level: str | None = typer.Option(
        None, help="Log level (falls back to BUCKY_INDEXER_LOG_LEVEL, then INFO)."
    ),
    log_file: Path | None = typer.Option(
        None, help="Also log to this file, rotated daily (or BUCKY_INDEXER_LOG_FILE)."
    ),
) -> None:
    """Load ``.env`` and configure logging before any command."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging(level=log_level, log_file=log_file)


@app.command("index")
def index_cmd(
    database_url: str | None = DATABASE_URL_OPTION,
    rpc_url: str | None = RPC_URL_OPTION,
    program_id: str | None = PROGRAM_ID_OPTION,
    delivery_mode: DeliveryMode | None = DELIVERY_MODE_OPTION,
    event_matching: EventMatching | None = MATCHING_OPTION,
    max_cycles: int | None = typer.Option(
        None, min=1, help="Stop after this many cycles (default: run until interrupted)."
    ),
) -> None:
    """Poll the ledger continuously until SIGINT/SIGTERM."""

    settings = _settings(
        database_url=database_url,
        rpc_url=rpc_url,
        program_id=program_id,
        delivery_mode=delivery_mode,
        event_matching=event_matching,
    )
    database = _open_database(
        settings.database_url,
        pool_size=settings.db_pool_size,
        pool_timeout=settings.db_pool_timeout_seconds,
    )
    stop_event = threading.Event()

    def _on_signal(signum: int, _frame: Any) -> None:
        logger.info("received %s; finishing current step", signal.Signals(signum).name)
        stop_event.set()

    previous = {
        sig: signal.signal(sig, _on_signal) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        with SolanaRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds) as ledger:
            scheduler = _build_scheduler(settings, database, ledger, stop_event)
            scheduler.run(max_cycles=max_cycles)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
        database.dispose()


@app.command("poll-once")
def poll_once_cmd(
    database_url: str | None = DATABASE_URL_OPTION,
    rpc_url: str | None = RPC_URL_OPTION,
    program_id: str | None = PROGRAM_ID_OPTION,
    delivery_mode: DeliveryMode | None = DELIVERY_MODE_OPTION,
    event_matching: EventMatching | None = MATCHING_OPTION,
) -> None:
    """Run a single cycle over all categories and print what happened."""

    settings = _settings(
        database_url=database_url,
        rpc_url=rpc_url,
        program_id=program_id,
        delivery_mode=delivery_mode,
        event_matching=event_matching,
    )
    database = _open_database(settings.database_url)
    try:
        with SolanaRpcClient(settings.rpc_url, timeout=settings.rpc_timeout_seconds) as ledger:
            report = _build_scheduler(settings, database, ledger).run_cycle()
    finally:
        database.dispose()
    _print_cycle(report)
    if report.had_errors:
        raise typer.Exit(1)


@app.command("init-db")
def init_db_cmd(
    database_url: str | None = DATABASE_URL_OPTION,
    create_tables: bool = typer.Option(
        False, help="Create missing tables from the ORM models (use Alembic in production)."
    ),
) -> None:
    """Check database connectivity and optionally create the schema."""

    database = _open_database(database_url)
    try:
        if create_tables:
            metadata.create_all(bind=database.engine)
            console.print(f"[green]Tables ready[/green] ({len(metadata.tables)} tables)")
        console.print(f"[green]Connected[/green] ({database.dialect_name})")
    finally:
        database.dispose()


@app.command("cursors")
def cursors_cmd(database_url: str | None = DATABASE_URL_OPTION) -> None:
    """Show the stored read position of every category."""

    database = _open_database(database_url)
    try:
        rows = CursorStore(database).list()
    finally:
        database.dispose()
    if not rows:
        console.print("[yellow]No cursors yet.[/yellow]")
        return
    table = Table(title="Cursors")
    for col in ("category", "signature", "slot", "events", "last poll"):
        table.add_column(col)
    for row in rows:
        table.add_row(
            row.id,
            row.last_processed_signature or "",
            "" if row.last_processed_slot is None else str(row.last_processed_slot),
            str(row.total_events_processed),
            row.last_poll_time.isoformat() if row.last_poll_time else "",
        )
    console.print(table)


@app.command("reset-cursor")
def reset_cursor_cmd(
    category: str = typer.Argument(..., help="Category name, e.g. DepositMade."),
    database_url: str | None = DATABASE_URL_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Forget a category's cursor; the next cycle starts from the newest page."""

    resolved = _parse_category(category)
    if not yes and not typer.confirm(f"Reset cursor for {resolved}?"):
        raise typer.Exit(1)
    database = _open_database(database_url)
    try:
        removed = CursorStore(database).reset(resolved)
    finally:
        database.dispose()
    if removed:
        console.print(f"[green]Cursor for {resolved} removed.[/green]")
    else:
        console.print(f"[yellow]No cursor stored for {resolved}.[/yellow]")


@app.command("withdrawal-stats")
def withdrawal_stats_cmd(
    bank_id: str | None = typer.Option(None, help="Restrict to one bank."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Summarize withdrawal requests by status and completed withdrawals."""

    database = _open_database(database_url)
    try:
        with database.session_scope() as s:
            by_status = withdrawal_request_stats(s, bank_id)
            completed = completion_stats(s, bank_id)
    finally:
        database.dispose()

    table = Table(title="Withdrawal requests" + (f" for {bank_id}" if bank_id else ""))
    table.add_column("status")
    table.add_column("count", justify="right")
    table.add_column("total amount", justify="right")
    for status, stats in sorted(by_status.items()):
        table.add_row(status, str(stats["count"]), str(stats["total_amount"]))
    console.print(table)
    console.print(
        f"Completed: {completed['total_count']} withdrawal(s), "
        f"total {completed['total_amount']}, average {completed['average_amount']:.2f}"
    )


@app.command("rebuild-balance")
def rebuild_balance_cmd(
    bank_id: str = typer.Argument(..., help="Bank address."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """Recompute a bank's balance from its stored deposits and withdrawals."""

    database = _open_database(database_url)
    try:
        balance = Reconciler(database).rebuild_balance(bank_id)
    except ApplyError as e:
        raise _fail(e.message) from e
    finally:
        database.dispose()
    console.print(f"{bank_id}: current_balance = {balance}")


@app.command("dead-letters")
def dead_letters_cmd(
    category: str | None = typer.Option(None, help="Restrict to one category."),
    limit: int = typer.Option(20, min=1, help="Number of rows to show."),
    database_url: str | None = DATABASE_URL_OPTION,
) -> None:
    """List the most recently dropped events."""

    resolved = _parse_category(category) if category else None
    database = _open_database(database_url)
    try:
        rows = DeadLetterStore(database).recent(category=resolved, limit=limit)
    finally:
        database.dispose()
    if not rows:
        console.print("[green]No dead letters.[/green]")
        return
    table = Table(title="Dead letters")
    for col in ("category", "signature", "index", "kind", "message"):
        table.add_column(col)
    for row in rows:
        table.add_row(
            row.category,
            row.tx_signature,
            str(row.event_index),
            row.error_kind,
            row.message,
        )
    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    app()
