"""Apply a field mapping to raw rows and produce candidate transactions.

Validation is a pure function of ``(row, mapping, config)``. Every row yields
exactly one :class:`~ledger_import.models.CandidateTransaction`; problems are
recorded in ``validation_errors`` instead of being raised, and a missing value
(unmapped column, short row, blank cell) is reported differently from a value
that is present but cannot be parsed.
"""

from __future__ import annotations

from collections.abc import Sequence

from .locale_normalizer import normalize_amount, normalize_date
from .models import CandidateTransaction, FieldMapping, LocaleConfig, ParsedTable


def _cell(row: Sequence[str], column: int | None) -> str | None:
    """Return the trimmed cell, or ``None`` when it is unmapped, absent or blank."""

    if column is None or column < 0 or column >= len(row):
        return None
    value = row[column]
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def validate_row(
    row_index: int,
    row: Sequence[str],
    mapping: FieldMapping,
    config: LocaleConfig | None = None,
) -> CandidateTransaction:
    """Build one candidate from ``row``; never raises for any string content."""

    cfg = config or LocaleConfig()
    errors: list[str] = []

    raw_date = _cell(row, mapping.accounting_date)
    accounting_date: str | None = None
    if raw_date is None:
        errors.append("Date missing")
    else:
        accounting_date = normalize_date(raw_date)
        if accounting_date is None:
            errors.append(f'Invalid date format: "{raw_date}"')

    raw_amount = _cell(row, mapping.amount)
    amount = None
    if raw_amount is None:
        errors.append("Amount missing")
    else:
        amount = normalize_amount(raw_amount, cfg.decimal_separator)
        if amount is None:
            errors.append(f'Invalid amount format: "{raw_amount}"')

    reference = _cell(row, mapping.reference)

    # Booked balance is informational; an unparseable value is simply dropped.
    raw_balance = _cell(row, mapping.booked_balance)
    booked_balance = (
        normalize_amount(raw_balance, cfg.decimal_separator) if raw_balance is not None else None
    )

    return CandidateTransaction(
        row_index=row_index,
        accounting_date=accounting_date,
        amount=amount,
        reference=reference,
        booked_balance=booked_balance,
        validation_errors=tuple(errors),
        raw_values=tuple(str(v) for v in row),
    )


def validate_rows(
    table: ParsedTable,
    mapping: FieldMapping,
    config: LocaleConfig | None = None,
) -> list[CandidateTransaction]:
    """Validate every data row of ``table`` in order."""

    return [validate_row(i, row, mapping, config) for i, row in enumerate(table.rows)]


__all__ = ["validate_row", "validate_rows"]
