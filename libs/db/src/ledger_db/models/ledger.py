from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    CHAR,
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import expression as sa_expr

# BIGINT on Postgres; SQLite only autoincrements an INTEGER PRIMARY KEY.
_PK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


# ---------------------------
# import_batches
# ---------------------------


class ImportBatchRecord(Base):
    __tablename__ = "import_batches"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    source_file_name: Mapped[str] = mapped_column(Text, nullable=False)
    source_format: Mapped[str] = mapped_column(String(16), nullable=False)
    allow_intra_batch_duplicates: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.false()
    )
    imported_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    skipped_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("kind in ('bank','sie')", name="ck_import_batches_kind"),
    )


# ---------------------------
# bank_transactions
# ---------------------------


class BankTransaction(Base):
    __tablename__ = "bank_transactions"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String, nullable=False)
    import_batch_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("import_batches.id"), nullable=False, index=True
    )
    bank_account_id: Mapped[str | None] = mapped_column(String, nullable=True)
    accounting_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    booked_balance: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    # sha256 of "date|amount|normalized reference"; see ledger_import.duplicates.
    fingerprint_sha256: Mapped[str] = mapped_column(CHAR(64), nullable=False)
    # Ordinal of this fingerprint within its batch (0 for the first row). The
    # unique constraint below makes concurrent imports of the same row collide.
    fingerprint_occurrence: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    source_row: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "workspace_id",
            "fingerprint_sha256",
            "fingerprint_occurrence",
            name="uq_bank_tx_workspace_fingerprint",
        ),
    )


# ---------------------------
# journal_entries / journal_lines
# ---------------------------


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String, nullable=False)
    import_batch_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("import_batches.id"), nullable=True, index=True
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    source: Mapped[str] = mapped_column(String(16), nullable=False)
    source_id: Mapped[str | None] = mapped_column(String, nullable=True)
    # NULL for manual entries; NULLs never collide in the unique constraint.
    source_fingerprint: Mapped[str | None] = mapped_column(CHAR(64), nullable=True)
    is_balanced: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=sa_expr.true()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "source_fingerprint", name="uq_journal_entries_source_fingerprint"
        ),
        CheckConstraint("source in ('sie','manual')", name="ck_journal_entries_source"),
    )


class JournalLine(Base):
    __tablename__ = "journal_lines"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    journal_entry_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    account_number: Mapped[str] = mapped_column(String, nullable=False)
    account_name: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    debit: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    credit: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, server_default=text("0")
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_lines_non_negative"),
    )


# ---------------------------
# audit_logs
# ---------------------------


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    import_batch_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("import_batches.id"), nullable=True
    )
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


__all__ = [
    "Base",
    "ImportBatchRecord",
    "BankTransaction",
    "JournalEntry",
    "JournalLine",
    "AuditLog",
]
