# ruff: noqa: I001
"""Persistence integration for ledger_import.

Functions here write import batches, bank transactions and journal entries to
the database owned by ``libs/db``. They rely on SQLAlchemy ORM models defined
in ``ledger_db.models.ledger`` and a session handed in by the caller (usually
``Database.session_scope()``); nothing here commits or rolls back.

Scope:
- Commit a bank batch with fingerprint-based duplicate rejection.
- Commit SIE verifications with a server-side balance re-check.
- Record manual journal entries (strictly balanced).
- Answer "which of these keys are already committed?" for previews.
- List the batch history of a workspace.

A commit either succeeds as a whole or raises; on any exception the caller's
transaction must be rolled back, so a failed request leaves no rows behind.
"""

from __future__ import annotations

import hashlib
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_db.models.ledger import (
    AuditLog,
    BankTransaction,
    ImportBatchRecord,
    JournalEntry,
    JournalLine,
)

from .balance import check_balance, require_balanced
from .duplicates import candidate_key, fingerprint_sha256
from .errors import CommitConflictError, CommitContractError
from .logging_setup import get_logger
from .models import (
    CommitResult,
    ImportBatch,
    JournalEntryDraft,
    PostingLine,
    SieVerificationCandidate,
)

_logger = get_logger("ledger_import.persistence")

# Keeps IN (...) lists well under SQLite's bound-parameter limit.
_LOOKUP_CHUNK = 500


def _to_decimal_2(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    try:
        d = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        return None
    return d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _to_date(raw: str, *, what: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise CommitContractError(f"{what}: invalid ISO date {raw!r}") from e


def _chunks(items: Sequence[str], size: int = _LOOKUP_CHUNK) -> Iterator[Sequence[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _flush(session: Session, *, what: str) -> None:
    try:
        session.flush()
    except IntegrityError as e:
        _logger.warning("commit:conflict what=%s error=%s", what, e.orig)
        raise CommitConflictError(
            f"{what} conflicts with a concurrent import; nothing was committed, retry the request"
        ) from e


def _new_batch_record(session: Session, batch: ImportBatch, *, kind: str) -> ImportBatchRecord:
    record = ImportBatchRecord(
        workspace_id=batch.workspace_id,
        kind=kind,
        source_file_name=batch.source_file_name,
        source_format=batch.source_format.value,
        allow_intra_batch_duplicates=batch.allow_intra_batch_duplicates,
        imported_count=0,
        skipped_count=0,
    )
    session.add(record)
    _flush(session, what="import batch")
    return record


def _audit(
    *,
    workspace_id: str,
    entity_type: str,
    entity_id: int,
    import_batch_id: int | None,
    changes: dict[str, Any],
) -> AuditLog:
    return AuditLog(
        workspace_id=workspace_id,
        action="create",
        entity_type=entity_type,
        entity_id=entity_id,
        import_batch_id=import_batch_id,
        changes=changes,
    )


# ---------------------------------------------------------------------------
# Bank transactions
# ---------------------------------------------------------------------------


def _existing_fingerprint_pairs(
    session: Session, workspace_id: str, fingerprints: Iterable[str]
) -> set[tuple[str, int]]:
    unique = sorted(set(fingerprints))
    found: set[tuple[str, int]] = set()
    for chunk in _chunks(unique):
        stmt = select(
            BankTransaction.fingerprint_sha256, BankTransaction.fingerprint_occurrence
        ).where(
            (BankTransaction.workspace_id == workspace_id)
            & (BankTransaction.fingerprint_sha256.in_(chunk))
        )
        found.update((fp, occ) for fp, occ in session.execute(stmt))
    return found


def commit_bank_transactions(session: Session, batch: ImportBatch) -> CommitResult:
    """Persist the transactions of a bank ``batch`` and return the counts.

    Each transaction is fingerprinted as ``sha256(date|amount|reference)``
    together with its occurrence ordinal among equal fingerprints in the
    batch. Rows are skipped when

    - they repeat an earlier row of the batch (occurrence > 0) and the batch
      does not carry ``allow_intra_batch_duplicates``, or
    - a row with the same ``(fingerprint, occurrence)`` was committed to the
      workspace before.

    Raises
    ------
    CommitContractError
        When the batch carries verifications or any item lacks a date or
        amount or still has validation errors.
    CommitConflictError
        When a concurrent import inserted one of the fingerprints first.
    """

    if batch.verifications or batch.source_format.is_sie:
        raise CommitContractError("bank commit received a SIE batch")
    for tx in batch.transactions:
        if not tx.is_valid:
            problems = "; ".join(tx.validation_errors) or "date or amount missing"
            raise CommitContractError(f"row {tx.row_index} is not importable: {problems}")

    record = _new_batch_record(session, batch, kind="bank")

    occurrences: Counter[str] = Counter()
    planned: list[tuple[int, str, int]] = []
    for pos, tx in enumerate(batch.transactions):
        key = candidate_key(tx)
        assert key is not None  # guaranteed by is_valid above
        fp = fingerprint_sha256(key)
        planned.append((pos, fp, occurrences[fp]))
        occurrences[fp] += 1

    existing = _existing_fingerprint_pairs(session, batch.workspace_id, occurrences)

    skipped_ids: list[str] = []
    rows: list[BankTransaction] = []
    for pos, fp, occ in planned:
        tx = batch.transactions[pos]
        if (occ > 0 and not batch.allow_intra_batch_duplicates) or (fp, occ) in existing:
            skipped_ids.append(str(tx.row_index))
            continue
        rows.append(
            BankTransaction(
                workspace_id=batch.workspace_id,
                import_batch_id=record.id,
                bank_account_id=batch.bank_account_id,
                accounting_date=_to_date(tx.accounting_date or "", what=f"row {tx.row_index}"),
                amount=_to_decimal_2(tx.amount),
                reference=tx.reference,
                booked_balance=_to_decimal_2(tx.booked_balance),
                fingerprint_sha256=fp,
                fingerprint_occurrence=occ,
                source_row=tx.row_index,
            )
        )

    session.add_all(rows)
    _flush(session, what="bank transactions")

    session.add_all(
        _audit(
            workspace_id=batch.workspace_id,
            entity_type="bank_transaction",
            entity_id=row.id,
            import_batch_id=record.id,
            changes={
                "accounting_date": row.accounting_date.isoformat(),
                "amount": f"{row.amount:.2f}",
                "reference": row.reference,
                "source_row": row.source_row,
            },
        )
        for row in rows
    )
    record.imported_count = len(rows)
    record.skipped_count = len(skipped_ids)
    _flush(session, what="bank transactions")

    _logger.info(
        "commit_bank:done workspace=%s batch_id=%d imported=%d skipped=%d",
        batch.workspace_id,
        record.id,
        len(rows),
        len(skipped_ids),
    )
    return CommitResult(
        batch_id=record.id,
        imported=len(rows),
        skipped=len(skipped_ids),
        skipped_ids=tuple(skipped_ids),
    )


def committed_transaction_keys(
    session: Session, workspace_id: str, keys: Iterable[str]
) -> set[str]:
    """Return the subset of transaction ``keys`` already committed to the workspace."""

    by_fp: dict[str, list[str]] = {}
    for key in keys:
        by_fp.setdefault(fingerprint_sha256(key), []).append(key)
    if not by_fp:
        return set()

    found: set[str] = set()
    for chunk in _chunks(sorted(by_fp)):
        stmt = (
            select(BankTransaction.fingerprint_sha256)
            .where(
                (BankTransaction.workspace_id == workspace_id)
                & (BankTransaction.fingerprint_sha256.in_(chunk))
            )
            .distinct()
        )
        for fp in session.scalars(stmt):
            found.update(by_fp[fp])
    return found


# ---------------------------------------------------------------------------
# Journal entries (SIE and manual)
# ---------------------------------------------------------------------------


def _line_fields(line: PostingLine, *, what: str) -> tuple[Decimal, Decimal]:
    debit = _to_decimal_2(line.debit)
    credit = _to_decimal_2(line.credit)
    if debit is None or credit is None or debit < 0 or credit < 0:
        raise CommitContractError(f"{what}: debit and credit must be non-negative amounts")
    return debit, credit


def _verification_fingerprint(v: SieVerificationCandidate) -> str:
    parts = [f"sie|{v.source_id}|{v.date}"]
    for line in v.lines:
        parts.append(
            f"{line.account_number}:{_to_decimal_2(line.debit):.2f}:"
            f"{_to_decimal_2(line.credit):.2f}"
        )
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


def _add_journal_lines(
    session: Session, entry_id: int, lines: Sequence[PostingLine], *, what: str
) -> None:
    for position, line in enumerate(lines):
        debit, credit = _line_fields(line, what=what)
        session.add(
            JournalLine(
                journal_entry_id=entry_id,
                position=position,
                account_number=line.account_number,
                account_name=line.account_name,
                debit=debit,
                credit=credit,
                description=line.description,
            )
        )


def _existing_source_fingerprints(
    session: Session, workspace_id: str, fingerprints: Iterable[str]
) -> set[str]:
    found: set[str] = set()
    for chunk in _chunks(sorted(set(fingerprints))):
        stmt = select(JournalEntry.source_fingerprint).where(
            (JournalEntry.workspace_id == workspace_id)
            & (JournalEntry.source_fingerprint.in_(chunk))
        )
        found.update(fp for fp in session.scalars(stmt) if fp is not None)
    return found


def commit_sie_verifications(
    session: Session, batch: ImportBatch, *, allow_unbalanced: bool = False
) -> CommitResult:
    """Persist the verifications of a SIE ``batch`` as journal entries.

    The balance of every verification is re-checked before anything is
    written; an unbalanced one raises :class:`UnbalancedEntryError` unless
    ``allow_unbalanced`` is set, in which case it is stored with
    ``is_balanced = False``. Verifications already imported into the
    workspace (same source id, date and lines) are skipped.
    """

    if batch.transactions or not batch.source_format.is_sie:
        raise CommitContractError("SIE commit received a bank batch")

    checks = []
    for v in batch.verifications:
        what = f"verification {v.source_id}"
        if not v.lines:
            raise CommitContractError(f"{what} has no lines")
        _to_date(v.date, what=what)
        for line in v.lines:
            _line_fields(line, what=what)
        checks.append(
            check_balance(v.lines) if allow_unbalanced else require_balanced(v.lines, label=what)
        )

    record = _new_batch_record(session, batch, kind="sie")

    fingerprints = [_verification_fingerprint(v) for v in batch.verifications]
    existing = _existing_source_fingerprints(session, batch.workspace_id, fingerprints)

    seen: set[str] = set()
    skipped_ids: list[str] = []
    inserted: list[tuple[JournalEntry, SieVerificationCandidate]] = []
    for v, fp, check in zip(batch.verifications, fingerprints, checks, strict=True):
        if fp in seen or fp in existing:
            skipped_ids.append(v.source_id)
            continue
        seen.add(fp)
        entry = JournalEntry(
            workspace_id=batch.workspace_id,
            import_batch_id=record.id,
            entry_date=date.fromisoformat(v.date),
            description=v.description,
            source="sie",
            source_id=v.source_id,
            source_fingerprint=fp,
            is_balanced=check.balanced,
        )
        session.add(entry)
        inserted.append((entry, v))
    _flush(session, what="journal entries")

    for entry, v in inserted:
        _add_journal_lines(session, entry.id, v.lines, what=f"verification {v.source_id}")
        session.add(
            _audit(
                workspace_id=batch.workspace_id,
                entity_type="journal_entry",
                entity_id=entry.id,
                import_batch_id=record.id,
                changes={
                    "source": "sie",
                    "source_id": v.source_id,
                    "entry_date": v.date,
                    "lines": len(v.lines),
                    "is_balanced": entry.is_balanced,
                },
            )
        )
    record.imported_count = len(inserted)
    record.skipped_count = len(skipped_ids)
    _flush(session, what="journal entries")

    unbalanced = sum(1 for entry, _ in inserted if not entry.is_balanced)
    if unbalanced:
        _logger.warning(
            "commit_sie:forced_unbalanced batch_id=%d count=%d", record.id, unbalanced
        )
    _logger.info(
        "commit_sie:done workspace=%s batch_id=%d imported=%d skipped=%d",
        batch.workspace_id,
        record.id,
        len(inserted),
        len(skipped_ids),
    )
    return CommitResult(
        batch_id=record.id,
        imported=len(inserted),
        skipped=len(skipped_ids),
        skipped_ids=tuple(skipped_ids),
    )


def record_journal_entry(session: Session, workspace_id: str, draft: JournalEntryDraft) -> int:
    """Store a manually entered journal entry and return its id.

    The entry must balance; there is no override on this path.
    """

    what = "journal entry"
    entry_date = _to_date(draft.entry_date, what=what)
    if not draft.lines:
        raise CommitContractError(f"{what} has no lines")
    for line in draft.lines:
        _line_fields(line, what=what)
    require_balanced(draft.lines, label=what)

    entry = JournalEntry(
        workspace_id=workspace_id,
        import_batch_id=None,
        entry_date=entry_date,
        description=draft.description,
        source="manual",
        source_id=None,
        source_fingerprint=None,
        is_balanced=True,
    )
    session.add(entry)
    _flush(session, what=what)
    _add_journal_lines(session, entry.id, draft.lines, what=what)
    session.add(
        _audit(
            workspace_id=workspace_id,
            entity_type="journal_entry",
            entity_id=entry.id,
            import_batch_id=None,
            changes={
                "source": "manual",
                "entry_date": draft.entry_date,
                "lines": len(draft.lines),
            },
        )
    )
    _flush(session, what=what)
    _logger.info("journal_entry:recorded workspace=%s id=%d", workspace_id, entry.id)
    return entry.id


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportBatchSummary:
    id: int
    kind: str
    source_file_name: str
    source_format: str
    imported: int
    skipped: int
    created_at: datetime


def list_import_batches(
    session: Session, workspace_id: str, *, limit: int = 50
) -> list[ImportBatchSummary]:
    """Return the most recent import batches of a workspace, newest first."""

    stmt = (
        select(ImportBatchRecord)
        .where(ImportBatchRecord.workspace_id == workspace_id)
        .order_by(ImportBatchRecord.created_at.desc(), ImportBatchRecord.id.desc())
        .limit(limit)
    )
    return [
        ImportBatchSummary(
            id=r.id,
            kind=r.kind,
            source_file_name=r.source_file_name,
            source_format=r.source_format,
            imported=r.imported_count,
            skipped=r.skipped_count,
            created_at=r.created_at,
        )
        for r in session.scalars(stmt)
    ]


__all__ = [
    "commit_bank_transactions",
    "committed_transaction_keys",
    "commit_sie_verifications",
    "record_journal_entry",
    "ImportBatchSummary",
    "list_import_batches",
]
