"""Adapter for OFX bank statements (SGML 1.x and XML 2.x).

Each ``<STMTTRN>`` aggregate becomes one
:class:`~ledger_import.models.CandidateTransaction`:

- ``accounting_date``: ``DTPOSTED`` (first eight digits, ``YYYYMMDD``)
- ``amount``: ``TRNAMT`` (decimal point; a lone decimal comma is accepted)
- ``reference``: ``NAME``, else ``MEMO``, else ``FITID``

Blocks lacking a date or amount are kept with validation errors, the same way
the row validator treats a delimited row.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ...locale_normalizer import normalize_amount, normalize_date
from ...logging_setup import get_logger
from ...models import CandidateTransaction

_logger = get_logger("ledger_import.ingest.ofx")

_STMTTRN_RE = re.compile(
    r"<STMTTRN>(.*?)(?=</STMTTRN>|<STMTTRN>|</BANKTRANLIST>|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_BANKTRANLIST_RE = re.compile(r"<BANKTRANLIST>", re.IGNORECASE)
# SGML leaves elements unclosed, so a value runs to the next tag or line end.
_ELEMENT_RE = re.compile(r"<([A-Z0-9.]+)>([^<\r\n]*)", re.IGNORECASE)
_OFX_DATE_RE = re.compile(r"^(\d{8})")


@dataclass(frozen=True, slots=True)
class OfxStatement:
    account_id: str | None
    currency: str | None
    transactions: tuple[CandidateTransaction, ...]


def _elements(block: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for tag, value in _ELEMENT_RE.findall(block):
        value = value.strip()
        if value:
            out.setdefault(tag.upper(), value)
    return out


def _ofx_date(raw: str | None) -> str | None:
    if raw is None:
        return None
    m = _OFX_DATE_RE.match(raw)
    return normalize_date(m.group(1)) if m else None


def _transaction(row_index: int, fields: dict[str, str]) -> CandidateTransaction:
    errors: list[str] = []

    raw_date = fields.get("DTPOSTED")
    accounting_date = _ofx_date(raw_date)
    if raw_date is None:
        errors.append("Date missing")
    elif accounting_date is None:
        errors.append(f'Invalid date format: "{raw_date}"')

    raw_amount = fields.get("TRNAMT")
    amount = None
    if raw_amount is None:
        errors.append("Amount missing")
    else:
        separator = "," if "," in raw_amount and "." not in raw_amount else "."
        amount = normalize_amount(raw_amount, separator)
        if amount is None:
            errors.append(f'Invalid amount format: "{raw_amount}"')

    reference = fields.get("NAME") or fields.get("MEMO") or fields.get("FITID")
    return CandidateTransaction(
        row_index=row_index,
        accounting_date=accounting_date,
        amount=amount,
        reference=reference,
        booked_balance=None,
        validation_errors=tuple(errors),
        raw_values=tuple(f"{k}={v}" for k, v in fields.items()),
    )


def parse_ofx(text: str) -> OfxStatement:
    """Extract statement transactions from OFX text; never raises on content."""

    header = _elements(_BANKTRANLIST_RE.split(text, maxsplit=1)[0])
    transactions = tuple(
        _transaction(i, _elements(m.group(1))) for i, m in enumerate(_STMTTRN_RE.finditer(text))
    )
    _logger.info(
        "ofx_parse:done transactions=%d invalid=%d",
        len(transactions),
        sum(1 for t in transactions if not t.is_valid),
    )
    return OfxStatement(
        account_id=header.get("ACCTID"),
        currency=header.get("CURDEF"),
        transactions=transactions,
    )


__all__ = ["OfxStatement", "parse_ofx"]
