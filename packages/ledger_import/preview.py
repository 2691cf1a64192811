"""Preview stage: turn an uploaded file into reviewable data without persisting.

Bank statements (delimited text or OFX) go through sniff, tokenize, field
mapping, row validation and duplicate annotation; SIE files go through the
SIE adapters and the balance checker. Both previews are pure values that can
be recomputed from the same inputs, e.g. after the user overrides a column
mapping. ``build_bank_batch`` / ``build_sie_batch`` then freeze the user's
selection into an :class:`~ledger_import.models.ImportBatch` for the
committer.

Only structural problems raise here (empty file, wrong format, nothing
parseable); malformed rows and verifications are reported on the preview.
"""

from __future__ import annotations

from collections.abc import Callable, Collection, Iterable
from dataclasses import dataclass

from . import balance, duplicates
from .balance import SieVerificationPreview
from .errors import (
    CommitContractError,
    EmptyFileError,
    StructuralImportError,
    UnsupportedFormatError,
)
from .field_mapping import SuggestionResult, Unavailable, seed_mapping, suggest_heuristically
from .logging_setup import get_logger
from .models import (
    CandidateTransaction,
    FieldMapping,
    ImportBatch,
    LocaleConfig,
    ParsedTable,
    RawFile,
    SieParseResult,
    SourceFormat,
)
from .sniffer import SniffResult, sniff
from .suggestion import MAX_SAMPLE_ROWS, Suggester
from .tokenizer import tokenize
from .validation import validate_rows

_logger = get_logger("ledger_import.preview")

type CommittedLookup = Callable[[Collection[str]], Collection[str]]

# How many parse errors a structural failure message quotes.
_MAX_QUOTED_ERRORS = 5


@dataclass(frozen=True, slots=True)
class ImportStats:
    total: int
    valid: int
    duplicates: int
    errors: int


@dataclass(frozen=True, slots=True)
class BankPreview:
    file_name: str
    sniff: SniffResult
    table: ParsedTable
    suggestion: SuggestionResult
    mapping: FieldMapping
    transactions: tuple[CandidateTransaction, ...]
    stats: ImportStats
    selected: tuple[int, ...]
    account_id: str | None = None


@dataclass(frozen=True, slots=True)
class SiePreview:
    file_name: str
    result: SieParseResult
    verifications: tuple[SieVerificationPreview, ...]
    selected: tuple[str, ...]


def _stats(transactions: Iterable[CandidateTransaction]) -> ImportStats:
    total = valid = dups = errors = 0
    for t in transactions:
        total += 1
        if t.is_valid:
            valid += 1
        else:
            errors += 1
        if t.is_duplicate or t.matches_committed:
            dups += 1
    return ImportStats(total=total, valid=valid, duplicates=dups, errors=errors)


def _annotate(
    candidates: list[CandidateTransaction], committed_lookup: CommittedLookup | None
) -> list[CandidateTransaction]:
    committed: Collection[str] = ()
    if committed_lookup is not None:
        keys = {k for k in map(duplicates.candidate_key, candidates) if k is not None}
        if keys:
            committed = set(committed_lookup(keys))
    return duplicates.annotate_duplicates(candidates, committed)


def _ofx_candidates(s: SniffResult) -> tuple[list[CandidateTransaction], str | None]:
    from .ingest.adapters.ofx import parse_ofx

    statement = parse_ofx(s.text)
    return list(statement.transactions), statement.account_id


def preview_bank_file(
    raw: RawFile,
    mapping: FieldMapping | None = None,
    config: LocaleConfig | None = None,
    *,
    suggester: Suggester | None = None,
    committed_lookup: CommittedLookup | None = None,
) -> BankPreview:
    """Build a bank-statement preview for ``raw``.

    Parameters
    ----------
    raw:
        The uploaded file.
    mapping:
        Explicit column mapping. When ``None`` the ``suggester`` (the header
        heuristic by default) proposes one from the header row and the first
        rows of data.
    config:
        Locale settings; the decimal separator defaults to ``","``.
    suggester:
        Mapping suggester, see :func:`ledger_import.suggestion.get_suggester`.
    committed_lookup:
        Returns the subset of the given transaction keys that are already
        committed to the target workspace. Matching rows are flagged
        ``matches_committed`` and left out of the default selection.

    Raises
    ------
    EmptyFileError
        The file is empty or has no data rows.
    UnsupportedFormatError
        The file is a SIE export (use :func:`preview_sie_file`).
    """

    if not raw.data.strip():
        raise EmptyFileError(f"{raw.file_name or 'file'} is empty")
    cfg = config or LocaleConfig()
    s = sniff(raw)

    if s.format.is_sie:
        raise UnsupportedFormatError(
            f"{raw.file_name} is a {s.format.value.upper()} file, not a bank statement"
        )

    account_id: str | None = None
    if s.format is SourceFormat.OFX:
        candidates, account_id = _ofx_candidates(s)
        table = ParsedTable(delimiter="", headers=(), rows=())
        suggestion: SuggestionResult = Unavailable("not needed for OFX")
        effective = FieldMapping()
        if not candidates:
            raise EmptyFileError(f"{raw.file_name} contains no OFX transactions")
    else:
        table = tokenize(s.text, s.separator or ";", skip_first_line=s.skip_first_line)
        if not table.rows:
            raise EmptyFileError(f"{raw.file_name} has no data rows")
        if mapping is not None:
            suggestion = Unavailable("mapping supplied by caller")
            effective = mapping
        else:
            suggest = suggester or (
                lambda headers, rows: suggest_heuristically(
                    headers, rows, decimal_separator=cfg.decimal_separator
                )
            )
            suggestion = suggest(table.headers, table.rows[:MAX_SAMPLE_ROWS])
            effective = seed_mapping(suggestion, len(table.headers))
        candidates = validate_rows(table, effective, cfg)

    annotated = _annotate(candidates, committed_lookup)
    stats = _stats(annotated)
    _logger.info(
        "preview_bank:done file=%s format=%s total=%d valid=%d duplicates=%d errors=%d",
        raw.file_name,
        s.format.value,
        stats.total,
        stats.valid,
        stats.duplicates,
        stats.errors,
    )
    return BankPreview(
        file_name=raw.file_name,
        sniff=s,
        table=table,
        suggestion=suggestion,
        mapping=effective,
        transactions=tuple(annotated),
        stats=stats,
        selected=tuple(duplicates.default_selection(annotated)),
        account_id=account_id,
    )


def preview_sie_file(
    raw: RawFile, *, period_start: str | None = None, period_end: str | None = None
) -> SiePreview:
    """Parse a SIE4/SIE5 file and balance-check its verifications.

    ``period_start`` / ``period_end`` (ISO dates, inclusive) restrict the
    preview to one fiscal period.
    """

    from .ingest.utils import parse_sie

    if not raw.data.strip():
        raise EmptyFileError(f"{raw.file_name or 'file'} is empty")
    s = sniff(raw)
    if not s.format.is_sie:
        raise UnsupportedFormatError(f"{raw.file_name} is not a SIE file")

    result = parse_sie(raw, s)
    if not result.verifications:
        if result.errors:
            quoted = "; ".join(result.errors[:_MAX_QUOTED_ERRORS])
            raise StructuralImportError(
                f"{raw.file_name}: no verifications could be read ({quoted})"
            )
        raise EmptyFileError(f"{raw.file_name} contains no verifications")

    in_period = balance.within_period(result.verifications, period_start, period_end)
    previews = balance.preview_verifications(in_period)
    selected = balance.default_selection(previews)
    _logger.info(
        "preview_sie:done file=%s format=%s verifications=%d unbalanced=%d errors=%d",
        raw.file_name,
        result.format.value,
        len(previews),
        sum(1 for p in previews if not p.balanced),
        len(result.errors),
    )
    return SiePreview(
        file_name=raw.file_name,
        result=result,
        verifications=tuple(previews),
        selected=tuple(selected),
    )


def build_bank_batch(
    preview: BankPreview,
    workspace_id: str,
    selected_rows: Iterable[int] | None = None,
) -> ImportBatch:
    """Freeze the selected rows of ``preview`` into an :class:`ImportBatch`.

    ``selected_rows`` defaults to the preview's default selection. Selecting
    an intra-batch duplicate is the user's explicit override, so the batch
    then allows intra-batch duplicates.
    """

    rows = preview.selected if selected_rows is None else tuple(selected_rows)
    by_row = {t.row_index: t for t in preview.transactions}
    picked: list[CandidateTransaction] = []
    for idx in sorted(set(rows)):
        t = by_row.get(idx)
        if t is None:
            raise CommitContractError(f"row {idx} does not exist in the preview")
        if not t.is_valid:
            raise CommitContractError(
                f"row {idx} has validation errors: {'; '.join(t.validation_errors)}"
            )
        picked.append(t)

    return ImportBatch(
        workspace_id=workspace_id,
        source_file_name=preview.file_name,
        source_format=preview.sniff.format,
        transactions=tuple(picked),
        allow_intra_batch_duplicates=any(t.is_duplicate for t in picked),
        bank_account_id=preview.account_id,
    )


def build_sie_batch(
    preview: SiePreview,
    workspace_id: str,
    selected_ids: Iterable[str] | None = None,
    *,
    allow_unbalanced: bool = False,
) -> ImportBatch:
    """Freeze the selected verifications of ``preview`` into an :class:`ImportBatch`.

    Unbalanced verifications may only be selected with ``allow_unbalanced``.
    """

    wanted = set(preview.selected if selected_ids is None else selected_ids)
    known = {p.verification.source_id for p in preview.verifications}
    unknown = sorted(wanted - known)
    if unknown:
        raise CommitContractError(f"unknown verifications: {', '.join(unknown)}")

    picked = []
    for p in preview.verifications:
        if p.verification.source_id not in wanted:
            continue
        if not p.balanced and not allow_unbalanced:
            raise CommitContractError(
                f"verification {p.verification.source_id} is unbalanced "
                f"(difference {p.check.difference})"
            )
        picked.append(p.verification)

    return ImportBatch(
        workspace_id=workspace_id,
        source_file_name=preview.file_name,
        source_format=preview.result.format,
        verifications=tuple(picked),
    )


__all__ = [
    "CommittedLookup",
    "ImportStats",
    "BankPreview",
    "SiePreview",
    "preview_bank_file",
    "preview_sie_file",
    "build_bank_batch",
    "build_sie_batch",
]
