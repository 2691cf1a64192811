# ruff: noqa: I001
"""Ledger core tables: import batches, bank transactions, journal entries, audit log.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# BIGINT on Postgres; SQLite only autoincrements an INTEGER PRIMARY KEY.
_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    # import_batches
    op.create_table(
        "import_batches",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("source_file_name", sa.Text(), nullable=False),
        sa.Column("source_format", sa.String(16), nullable=False),
        sa.Column(
            "allow_intra_batch_duplicates",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("imported_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("skipped_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _created_at(),
        sa.CheckConstraint("kind in ('bank','sie')", name="ck_import_batches_kind"),
    )
    op.create_index("ix_import_batches_workspace_id", "import_batches", ["workspace_id"])

    # bank_transactions
    op.create_table(
        "bank_transactions",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column(
            "import_batch_id",
            sa.BigInteger(),
            sa.ForeignKey("import_batches.id"),
            nullable=False,
        ),
        sa.Column("bank_account_id", sa.String(), nullable=True),
        sa.Column("accounting_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("booked_balance", sa.Numeric(18, 2), nullable=True),
        sa.Column("fingerprint_sha256", sa.CHAR(64), nullable=False),
        sa.Column(
            "fingerprint_occurrence", sa.Integer(), nullable=False, server_default=sa.text("0")
        ),
        sa.Column("source_row", sa.Integer(), nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "workspace_id",
            "fingerprint_sha256",
            "fingerprint_occurrence",
            name="uq_bank_tx_workspace_fingerprint",
        ),
    )
    op.create_index(
        "ix_bank_transactions_import_batch_id", "bank_transactions", ["import_batch_id"]
    )

    # journal_entries
    op.create_table(
        "journal_entries",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column(
            "import_batch_id",
            sa.BigInteger(),
            sa.ForeignKey("import_batches.id"),
            nullable=True,
        ),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("source", sa.String(16), nullable=False),
        sa.Column("source_id", sa.String(), nullable=True),
        sa.Column("source_fingerprint", sa.CHAR(64), nullable=True),
        sa.Column("is_balanced", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.UniqueConstraint(
            "workspace_id", "source_fingerprint", name="uq_journal_entries_source_fingerprint"
        ),
        sa.CheckConstraint("source in ('sie','manual')", name="ck_journal_entries_source"),
    )
    op.create_index("ix_journal_entries_import_batch_id", "journal_entries", ["import_batch_id"])

    # journal_lines
    op.create_table(
        "journal_lines",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column(
            "journal_entry_id",
            sa.BigInteger(),
            sa.ForeignKey("journal_entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("account_number", sa.String(), nullable=False),
        sa.Column("account_name", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("debit", sa.Numeric(18, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("credit", sa.Numeric(18, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_lines_non_negative"),
    )
    op.create_index("ix_journal_lines_journal_entry_id", "journal_lines", ["journal_entry_id"])

    # audit_logs
    op.create_table(
        "audit_logs",
        sa.Column("id", _PK, primary_key=True, autoincrement=True),
        sa.Column("workspace_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "import_batch_id",
            sa.BigInteger(),
            sa.ForeignKey("import_batches.id"),
            nullable=True,
        ),
        sa.Column("changes", sa.JSON(), nullable=False),
        _created_at(),
    )
    op.create_index("ix_audit_logs_workspace_id", "audit_logs", ["workspace_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_workspace_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_journal_lines_journal_entry_id", table_name="journal_lines")
    op.drop_table("journal_lines")
    op.drop_index("ix_journal_entries_import_batch_id", table_name="journal_entries")
    op.drop_table("journal_entries")
    op.drop_index("ix_bank_transactions_import_batch_id", table_name="bank_transactions")
    op.drop_table("bank_transactions")
    op.drop_index("ix_import_batches_workspace_id", table_name="import_batches")
    op.drop_table("import_batches")
