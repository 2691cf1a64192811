"""Data models shared across the import pipeline.

All records are frozen dataclasses: each pipeline stage returns new values
instead of mutating what it was given, so a preview can be recomputed from the
same inputs (e.g. after the user changes the field mapping) without side
effects. Monetary values are :class:`~decimal.Decimal`; dates are canonical
``YYYY-MM-DD`` strings.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import StrEnum
from typing import Literal

# ---------------------------------------------------------------------------
# Raw input and structural dialect
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawFile:
    """Uploaded bytes plus the declared file name; lives for one import session."""

    data: bytes
    file_name: str

    @property
    def size(self) -> int:
        return len(self.data)


class SourceFormat(StrEnum):
    """Closed set of parser variants, selected once by the sniffer."""

    DELIMITED = "delimited"
    OFX = "ofx"
    SIE4 = "sie4"
    SIE5 = "sie5"

    @property
    def is_sie(self) -> bool:
        return self in (SourceFormat.SIE4, SourceFormat.SIE5)


@dataclass(frozen=True, slots=True)
class ParsedTable:
    """Header row plus data rows of a delimited file.

    Rows are not guaranteed to have ``len(headers)`` cells; consumers must
    tolerate short and long rows.
    """

    delimiter: str
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]

    @property
    def is_empty(self) -> bool:
        return not self.headers and not self.rows


# ---------------------------------------------------------------------------
# Locale configuration and field mapping
# ---------------------------------------------------------------------------

type DecimalSeparator = Literal[",", "."]


@dataclass(frozen=True, slots=True)
class LocaleConfig:
    decimal_separator: DecimalSeparator = ","


FIELD_NAMES: tuple[str, ...] = ("accounting_date", "amount", "reference", "booked_balance")
REQUIRED_FIELDS: tuple[str, ...] = ("accounting_date", "amount")


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Physical column index per logical transaction field (``None`` = unmapped).

    The mapping enforces nothing itself; an incomplete or out-of-range mapping
    is representable so it can be shown to the user. The row validator turns
    gaps into per-row errors.
    """

    accounting_date: int | None = None
    amount: int | None = None
    reference: int | None = None
    booked_balance: int | None = None

    @property
    def is_complete(self) -> bool:
        return self.accounting_date is not None and self.amount is not None

    def column_for(self, field_name: str) -> int | None:
        return getattr(self, field_name)

    def with_overrides(self, **columns: int | None) -> FieldMapping:
        """Return a copy with the given fields replaced (user overrides)."""

        unknown = sorted(set(columns) - set(FIELD_NAMES))
        if unknown:
            raise ValueError(f"unknown mapping fields: {', '.join(unknown)}")
        return replace(self, **columns)

    def invalid_columns(self, column_count: int) -> dict[str, int]:
        """Fields whose column index does not exist in a table of ``column_count`` columns."""

        out: dict[str, int] = {}
        for name in FIELD_NAMES:
            col = self.column_for(name)
            if col is not None and not 0 <= col < column_count:
                out[name] = col
        return out


@dataclass(frozen=True, slots=True)
class FieldConfidence:
    accounting_date: float = 0.0
    amount: float = 0.0
    reference: float = 0.0
    booked_balance: float = 0.0

    def for_field(self, field_name: str) -> float:
        return getattr(self, field_name)


@dataclass(frozen=True, slots=True)
class FieldSuggestion:
    """Advisory mapping with a confidence in ``[0, 1]`` per field."""

    mapping: FieldMapping
    confidence: FieldConfidence
    source: str = "heuristic"


# ---------------------------------------------------------------------------
# Bank transaction candidates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CandidateTransaction:
    """One raw row after validation, annotated by the duplicate detector.

    Every input row yields exactly one candidate; rows with errors are kept
    for inspection instead of being dropped.
    """

    row_index: int
    accounting_date: str | None
    amount: Decimal | None
    reference: str | None
    booked_balance: Decimal | None
    validation_errors: tuple[str, ...] = ()
    is_duplicate: bool = False
    first_occurrence_row: int | None = None
    matches_committed: bool = False
    raw_values: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return (
            not self.validation_errors
            and self.accounting_date is not None
            and self.amount is not None
        )


# ---------------------------------------------------------------------------
# SIE / journal entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PostingLine:
    """A single debit or credit line of a journal entry."""

    account_number: str
    account_name: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    description: str | None = None


@dataclass(frozen=True, slots=True)
class SieVerificationCandidate:
    source_id: str
    date: str
    description: str
    lines: tuple[PostingLine, ...]


@dataclass(frozen=True, slots=True)
class SieAccount:
    number: str
    name: str
    type: str | None = None


@dataclass(frozen=True, slots=True)
class FiscalYear:
    start: str
    end: str


@dataclass(frozen=True, slots=True)
class SieParseResult:
    """Format-agnostic output of both SIE variants."""

    format: SourceFormat
    verifications: tuple[SieVerificationCandidate, ...] = ()
    accounts: tuple[SieAccount, ...] = ()
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    company_name: str | None = None
    org_number: str | None = None
    fiscal_year: FiscalYear | None = None
    software_product: str | None = None


@dataclass(frozen=True, slots=True)
class JournalEntryDraft:
    """A manually constructed journal entry awaiting the balance check."""

    entry_date: str
    description: str
    lines: tuple[PostingLine, ...]


# ---------------------------------------------------------------------------
# Commit boundary
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ImportBatch:
    """The unit handed to the committer; immutable once built.

    Re-importing the same file builds a new batch; a committed batch is never
    modified.
    """

    workspace_id: str
    source_file_name: str
    source_format: SourceFormat
    transactions: tuple[CandidateTransaction, ...] = ()
    verifications: tuple[SieVerificationCandidate, ...] = ()
    allow_intra_batch_duplicates: bool = False
    bank_account_id: str | None = None


@dataclass(frozen=True, slots=True)
class CommitResult:
    batch_id: int
    imported: int
    skipped: int
    skipped_ids: tuple[str, ...] = ()


__all__ = [
    "RawFile",
    "SourceFormat",
    "ParsedTable",
    "DecimalSeparator",
    "LocaleConfig",
    "FIELD_NAMES",
    "REQUIRED_FIELDS",
    "FieldMapping",
    "FieldConfidence",
    "FieldSuggestion",
    "CandidateTransaction",
    "PostingLine",
    "SieVerificationCandidate",
    "SieAccount",
    "FiscalYear",
    "SieParseResult",
    "JournalEntryDraft",
    "ImportBatch",
    "CommitResult",
]
