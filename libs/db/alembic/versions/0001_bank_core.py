# ruff: noqa: I001
"""Cursor table, bank/withdrawal event tables and the bank balance aggregate.

Revision ID: 0001_bank_core
Revises: None
Create Date: 2025-10-02
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_bank_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    # cursors: one row per event category
    op.create_table(
        "cursors",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("last_processed_signature", sa.Text(), nullable=True),
        sa.Column("last_processed_slot", sa.BigInteger(), nullable=True),
        sa.Column(
            "total_events_processed",
            sa.BigInteger(),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("last_poll_time", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    # bank_created_events: immutable creation records
    op.create_table(
        "bank_created_events",
        sa.Column("bank_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("parent_address", sa.String(64), nullable=False),
        sa.Column("child_address", sa.String(64), nullable=False),
        sa.Column("target_amount", sa.BigInteger(), nullable=False),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("deadline_ms", sa.BigInteger(), nullable=False),
        sa.Column("duration_days", sa.BigInteger(), nullable=False),
        sa.Column("current_balance", sa.BigInteger(), nullable=False),
        sa.Column("tx_signature", sa.Text(), nullable=True),
        sa.Column("slot", sa.BigInteger(), nullable=True),
        _timestamp("created_at"),
    )

    # banks: the mutable balance aggregate
    op.create_table(
        "banks",
        sa.Column("bank_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("parent_address", sa.String(64), nullable=False),
        sa.Column("child_address", sa.String(64), nullable=False),
        sa.Column("target_amount", sa.BigInteger(), nullable=False),
        sa.Column("deadline_ms", sa.BigInteger(), nullable=False),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("initial_balance", sa.BigInteger(), nullable=False),
        sa.Column("current_balance", sa.BigInteger(), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_banks_parent_address", "banks", ["parent_address"])
    op.create_index("ix_banks_child_address", "banks", ["child_address"])

    # deposit_made_events
    op.create_table(
        "deposit_made_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("fingerprint_sha256", sa.CHAR(64), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("depositor", sa.String(64), nullable=False),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("tx_signature", sa.Text(), nullable=True),
        sa.Column("slot", sa.BigInteger(), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("amount >= 0", name="ck_deposit_amount_non_negative"),
    )
    op.create_index(
        "uq_deposit_made_events_fingerprint",
        "deposit_made_events",
        ["fingerprint_sha256"],
        unique=True,
    )
    op.create_index(
        "ix_deposit_made_events_bank_id",
        "deposit_made_events",
        ["bank_id", "created_at_ms"],
    )

    # withdrawal_requests: one row per request, status transitions in place
    op.create_table(
        "withdrawal_requests",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(64), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("requester", sa.String(64), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column(
            "status",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column("approved_by", sa.String(64), nullable=True),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("audit_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("tx_signature", sa.Text(), nullable=True),
        _timestamp("indexed_at"),
        sa.CheckConstraint(
            "status in ('pending','approved','rejected','cancelled','completed')",
            name="ck_withdrawal_requests_status",
        ),
    )
    op.create_index(
        "uq_withdrawal_requests_request_id",
        "withdrawal_requests",
        ["request_id"],
        unique=True,
    )
    op.create_index(
        "ix_withdrawal_requests_bank_id",
        "withdrawal_requests",
        ["bank_id", "created_at_ms"],
    )
    op.create_index(
        "ix_withdrawal_requests_requester",
        "withdrawal_requests",
        ["requester", "created_at_ms"],
    )
    op.create_index(
        "ix_withdrawal_requests_status",
        "withdrawal_requests",
        ["status", "created_at_ms"],
    )

    # withdrawal_completed_events
    op.create_table(
        "withdrawal_completed_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.String(64), nullable=False),
        sa.Column("bank_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("left_balance", sa.BigInteger(), nullable=False),
        sa.Column("withdrawer", sa.String(64), nullable=False),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("tx_signature", sa.Text(), nullable=True),
        sa.Column("slot", sa.BigInteger(), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index(
        "uq_withdrawal_completed_events_request_id",
        "withdrawal_completed_events",
        ["request_id"],
        unique=True,
    )
    op.create_index(
        "ix_withdrawal_completed_events_bank_id",
        "withdrawal_completed_events",
        ["bank_id", "created_at_ms"],
    )
    op.create_index(
        "ix_withdrawal_completed_events_withdrawer",
        "withdrawal_completed_events",
        ["withdrawer", "created_at_ms"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_withdrawal_completed_events_withdrawer", table_name="withdrawal_completed_events"
    )
    op.drop_index("ix_withdrawal_completed_events_bank_id", table_name="withdrawal_completed_events")
    op.drop_index(
        "uq_withdrawal_completed_events_request_id", table_name="withdrawal_completed_events"
    )
    op.drop_table("withdrawal_completed_events")
    op.drop_index("ix_withdrawal_requests_status", table_name="withdrawal_requests")
    op.drop_index("ix_withdrawal_requests_requester", table_name="withdrawal_requests")
    op.drop_index("ix_withdrawal_requests_bank_id", table_name="withdrawal_requests")
    op.drop_index("uq_withdrawal_requests_request_id", table_name="withdrawal_requests")
    op.drop_table("withdrawal_requests")
    op.drop_index("ix_deposit_made_events_bank_id", table_name="deposit_made_events")
    op.drop_index("uq_deposit_made_events_fingerprint", table_name="deposit_made_events")
    op.drop_table("deposit_made_events")
    op.drop_index("ix_banks_child_address", table_name="banks")
    op.drop_index("ix_banks_parent_address", table_name="banks")
    op.drop_table("banks")
    op.drop_table("bank_created_events")
    op.drop_table("cursors")
