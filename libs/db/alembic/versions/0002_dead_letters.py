# ruff: noqa: I001
"""Record events dropped by decode/apply failures.

Revision ID: 0002_dead_letters
Revises: 0001_bank_core
Create Date: 2025-10-09
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_dead_letters"
down_revision: str | None = "0001_bank_core"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "dead_letters",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("tx_signature", sa.Text(), nullable=False),
        sa.Column("slot", sa.BigInteger(), nullable=True),
        sa.Column("event_index", sa.Integer(), nullable=False, server_default="0"),
        # Raw base64 payload when the failure happened after extraction.
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.UniqueConstraint(
            "category", "tx_signature", "event_index", name="uq_dead_letters_position"
        ),
    )
    op.create_index("ix_dead_letters_category", "dead_letters", ["category", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_dead_letters_category", table_name="dead_letters")
    op.drop_table("dead_letters")
