"""Adapter for SIE 5 XML files (``<Sie>`` full exports and ``<SieEntry>`` imports).

Elements are matched by local name so files with or without the
``http://www.sie.se/sie5`` namespace parse the same way. Read:

- ``FileInfo/SoftwareProduct`` (name, version)
- ``FileInfo/Company`` (name, organizationId)
- ``FileInfo/FiscalYears/FiscalYear`` (the ``primary`` one, else the first)
- ``Accounts/Account`` (id, name, type)
- ``Journal/JournalEntry/LedgerEntry`` (account, amount, text)

Malformed XML is reported in ``errors`` with zero verifications.
"""

from __future__ import annotations

import calendar
import re
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from lxml import etree

from ...locale_normalizer import normalize_date
from ...logging_setup import get_logger
from ...models import (
    FiscalYear,
    PostingLine,
    SieAccount,
    SieParseResult,
    SieVerificationCandidate,
    SourceFormat,
)

_logger = get_logger("ledger_import.ingest.sie5")

_XML_DECL_RE = re.compile(r"^\s*<\?xml[^>]*\?>")
_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def _local(el: etree._Element) -> str:
    return etree.QName(el).localname


def _children(el: etree._Element, name: str) -> Iterator[etree._Element]:
    for child in el:
        if isinstance(child.tag, str) and _local(child) == name:
            yield child


def _first(el: etree._Element | None, *path: str) -> etree._Element | None:
    node = el
    for name in path:
        if node is None:
            return None
        node = next(_children(node, name), None)
    return node


def _attr(el: etree._Element, name: str) -> str | None:
    value = el.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _month_bound(raw: str | None, *, end: bool) -> str | None:
    """Expand a ``YYYY-MM`` fiscal-year bound to a full ISO date."""

    if raw is None:
        return None
    m = _YEAR_MONTH_RE.match(raw)
    if m is None:
        return normalize_date(raw)
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        return None
    day = calendar.monthrange(year, month)[1] if end else 1
    return f"{year:04d}-{month:02d}-{day:02d}"


def _parse_amount(raw: str | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        d = Decimal(raw.strip())
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


def _parse_root(data: bytes | str) -> etree._Element:
    if isinstance(data, str):
        # lxml rejects str input that carries an encoding declaration.
        data = _XML_DECL_RE.sub("", data, count=1).encode("utf-8")
    parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True)
    return etree.fromstring(data, parser=parser)


@dataclass(slots=True)
class _FileInfo:
    company_name: str | None = None
    org_number: str | None = None
    fiscal_year: FiscalYear | None = None
    software_product: str | None = None


def _read_file_info(root: etree._Element) -> _FileInfo:
    info = _first(root, "FileInfo")
    out = _FileInfo()
    if info is None:
        return out

    product = _first(info, "SoftwareProduct")
    if product is not None:
        parts = [p for p in (_attr(product, "name"), _attr(product, "version")) if p]
        out.software_product = " ".join(parts) or None

    company = _first(info, "Company")
    if company is not None:
        out.company_name = _attr(company, "name")
        out.org_number = _attr(company, "organizationId")

    years_el = _first(info, "FiscalYears")
    if years_el is not None:
        years = list(_children(years_el, "FiscalYear"))
        chosen = next((y for y in years if (y.get("primary") or "").lower() == "true"), None)
        chosen = chosen if chosen is not None else (years[0] if years else None)
        if chosen is not None:
            start = _month_bound(_attr(chosen, "start"), end=False)
            end = _month_bound(_attr(chosen, "end"), end=True)
            if start and end:
                out.fiscal_year = FiscalYear(start=start, end=end)
    return out


def parse_sie5(data: bytes | str) -> SieParseResult:
    """Parse SIE5 XML into a :class:`SieParseResult`; never raises on content."""

    try:
        root = _parse_root(data)
    except etree.XMLSyntaxError as e:
        _logger.warning("sie_parse:xml_error format=sie5 error=%s", e)
        return SieParseResult(format=SourceFormat.SIE5, errors=(f"XML parse error: {e}",))

    errors: list[str] = []
    warnings: list[str] = []
    if _local(root) not in ("Sie", "SieEntry"):
        errors.append(f"unexpected root element <{_local(root)}>")
        return SieParseResult(format=SourceFormat.SIE5, errors=tuple(errors))

    info = _read_file_info(root)

    accounts: list[SieAccount] = []
    names: dict[str, str] = {}
    accounts_el = _first(root, "Accounts")
    if accounts_el is not None:
        for acc in _children(accounts_el, "Account"):
            number = _attr(acc, "id")
            if number is None:
                errors.append(f"line {acc.sourceline}: <Account> without id")
                continue
            name = _attr(acc, "name") or ""
            names[number] = name
            accounts.append(SieAccount(number=number, name=name, type=_attr(acc, "type")))

    verifications: list[SieVerificationCandidate] = []
    for ordinal, journal in enumerate(_children(root, "Journal"), start=1):
        journal_id = _attr(journal, "id") or str(ordinal)
        for entry_no, entry in enumerate(_children(journal, "JournalEntry"), start=1):
            entry_id = _attr(entry, "id") or str(entry_no)
            source_id = f"{journal_id}-{entry_id}"
            raw_date = _attr(entry, "journalDate")
            date = normalize_date(raw_date) if raw_date else None
            if date is None:
                errors.append(
                    f'line {entry.sourceline}: invalid journalDate "{raw_date or ""}" '
                    f"in entry {source_id}"
                )
                continue

            lines: list[PostingLine] = []
            broken = False
            for ledger in _children(entry, "LedgerEntry"):
                account = _attr(ledger, "accountId") or _attr(ledger, "account")
                amount = _parse_amount(ledger.get("amount"))
                if account is None or amount is None:
                    errors.append(
                        f"line {ledger.sourceline}: <LedgerEntry> needs account and amount "
                        f"in entry {source_id}"
                    )
                    broken = True
                    break
                lines.append(
                    PostingLine(
                        account_number=account,
                        account_name=names.get(account, ""),
                        debit=amount if amount > 0 else Decimal("0"),
                        credit=-amount if amount < 0 else Decimal("0"),
                        description=_attr(ledger, "text"),
                    )
                )
            if broken:
                continue
            if not lines:
                warnings.append(f"line {entry.sourceline}: entry {source_id} has no LedgerEntry")
                continue
            verifications.append(
                SieVerificationCandidate(
                    source_id=source_id,
                    date=date,
                    description=_attr(entry, "text") or "",
                    lines=tuple(lines),
                )
            )

    _logger.info(
        "sie_parse:done format=sie5 verifications=%d accounts=%d errors=%d warnings=%d",
        len(verifications),
        len(accounts),
        len(errors),
        len(warnings),
    )
    return SieParseResult(
        format=SourceFormat.SIE5,
        verifications=tuple(verifications),
        accounts=tuple(accounts),
        errors=tuple(errors),
        warnings=tuple(warnings),
        company_name=info.company_name,
        org_number=info.org_number,
        fiscal_year=info.fiscal_year,
        software_product=info.software_product,
    )


__all__ = ["parse_sie5"]
