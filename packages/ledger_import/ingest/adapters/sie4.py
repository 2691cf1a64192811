"""Adapter for SIE type 4 keyword text (``#VER`` / ``#TRANS`` verification blocks).

Each non-blank line is either a ``#KEYWORD`` record, or a lone ``{`` / ``}``
opening or closing the transaction block of the preceding ``#VER``. Fields are
whitespace separated; strings may be double-quoted (``\\"`` escapes a quote)
and object lists are wrapped in braces, e.g.::

    #VER A 1 20240115 "Spotify" 20240116
    {
       #TRANS 6540 {} 699.00
       #TRANS 1930 {} -699.00
    }

Parsing is tolerant: malformed lines are reported in ``errors`` with their
line number, unknown keywords once each in ``warnings``, and every complete
verification read so far is still returned.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

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

_logger = get_logger("ledger_import.ingest.sie4")

# Recognized but carrying nothing the import needs. #RTRANS is always followed
# by an equivalent #TRANS line and #BTRANS marks a removed line, so neither
# becomes a posting.
_IGNORED_KEYWORDS = frozenset(
    {
        "#KPTYP",
        "#SRU",
        "#IB",
        "#UB",
        "#OIB",
        "#OUB",
        "#RES",
        "#PSALDO",
        "#PBUDGET",
        "#DIM",
        "#UNDERDIM",
        "#OBJEKT",
        "#ENHET",
        "#ADRESS",
        "#OMFATTN",
        "#TAXAR",
        "#VALUTA",
        "#PROSA",
        "#FTYP",
        "#FNR",
        "#BKOD",
        "#KSUMMA",
        "#RTRANS",
        "#BTRANS",
    }
)

_SIE_DATE_RE = re.compile(r"^\d{8}$")


def _split_fields(line: str) -> list[str]:
    """Split a record into fields, keeping ``{...}`` object lists as one field."""

    fields: list[str] = []
    i, n = 0, len(line)
    while i < n:
        ch = line[i]
        if ch.isspace():
            i += 1
        elif ch == '"':
            i += 1
            buf: list[str] = []
            while i < n:
                c = line[i]
                if c == "\\" and i + 1 < n:
                    buf.append(line[i + 1])
                    i += 2
                    continue
                if c == '"':
                    i += 1
                    break
                buf.append(c)
                i += 1
            fields.append("".join(buf))
        elif ch == "{":
            end = line.find("}", i)
            end = n - 1 if end == -1 else end
            fields.append(line[i : end + 1])
            i = end + 1
        else:
            j = i
            while j < n and not line[j].isspace() and line[j] not in '"{':
                j += 1
            fields.append(line[i:j])
            i = j
    return fields


def _parse_date(raw: str) -> str | None:
    if not _SIE_DATE_RE.match(raw):
        return None
    return normalize_date(raw)


def _parse_amount(raw: str) -> Decimal | None:
    s = raw.strip()
    if "," in s and "." not in s:
        s = s.replace(",", ".")
    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    return d if d.is_finite() else None


@dataclass(slots=True)
class _OpenVerification:
    line_no: int
    source_id: str
    date: str
    description: str
    lines: list[PostingLine] = field(default_factory=list)
    # Set when the header or any #TRANS line is malformed; the entry is dropped.
    broken: bool = False


@dataclass(slots=True)
class _ParseState:
    accounts: dict[str, str] = field(default_factory=dict)
    account_types: dict[str, str] = field(default_factory=dict)
    verifications: list[SieVerificationCandidate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    unknown_seen: set[str] = field(default_factory=set)
    company_name: str | None = None
    org_number: str | None = None
    fiscal_year: FiscalYear | None = None
    software_product: str | None = None
    pending: _OpenVerification | None = None
    in_block: bool = False
    ordinal: int = 0
    seen_ids: set[str] = field(default_factory=set)

    def error(self, line_no: int, message: str) -> None:
        self.errors.append(f"line {line_no}: {message}")


def _verification_id(state: _ParseState, series: str, number: str) -> str:
    """Build a file-unique id ``<series>-<number>``.

    Import files often leave the number blank; the running ordinal stands in
    for it, and a repeated id gets the ordinal appended.
    """

    number = number or f"#{state.ordinal}"
    source_id = f"{series}-{number}" if series else number
    if source_id in state.seen_ids:
        source_id = f"{source_id}#{state.ordinal}"
    state.seen_ids.add(source_id)
    return source_id


def _handle_ver(state: _ParseState, line_no: int, fields: list[str]) -> None:
    if state.pending is not None and not state.in_block:
        state.error(state.pending.line_no, "#VER without a transaction block")
    state.ordinal += 1
    series = fields[1] if len(fields) > 1 else ""
    number = fields[2] if len(fields) > 2 else ""
    source_id = _verification_id(state, series, number)
    raw_date = fields[3] if len(fields) > 3 else ""
    description = fields[4] if len(fields) > 4 else ""

    date = _parse_date(raw_date)
    broken = date is None
    if broken:
        state.error(line_no, f'invalid verification date "{raw_date}" in #VER {source_id}')
    state.pending = _OpenVerification(
        line_no=line_no,
        source_id=source_id,
        date=date or "",
        description=description,
        broken=broken,
    )
    state.in_block = False


def _handle_trans(state: _ParseState, line_no: int, fields: list[str]) -> None:
    ver = state.pending
    if ver is None or not state.in_block:
        state.error(line_no, "#TRANS outside a verification block")
        return
    if len(fields) < 3:
        state.error(line_no, "#TRANS is missing account or amount")
        ver.broken = True
        return

    account = fields[1]
    # The object list is mandatory in SIE4 but some writers omit it.
    amount_idx = 3 if fields[2].startswith("{") else 2
    if len(fields) <= amount_idx:
        state.error(line_no, "#TRANS is missing an amount")
        ver.broken = True
        return
    raw_amount = fields[amount_idx]
    amount = _parse_amount(raw_amount)
    if amount is None:
        state.error(line_no, f'invalid amount "{raw_amount}" in #TRANS')
        ver.broken = True
        return
    text_idx = amount_idx + 2
    text = fields[text_idx] if len(fields) > text_idx and fields[text_idx] else None

    ver.lines.append(
        PostingLine(
            account_number=account,
            account_name="",
            debit=amount if amount > 0 else Decimal("0"),
            credit=-amount if amount < 0 else Decimal("0"),
            description=text,
        )
    )


def _close_block(state: _ParseState) -> None:
    ver = state.pending
    state.pending = None
    state.in_block = False
    if ver is None or ver.broken:
        return
    if not ver.lines:
        state.warnings.append(f"line {ver.line_no}: verification {ver.source_id} has no #TRANS")
        return
    state.verifications.append(
        SieVerificationCandidate(
            source_id=ver.source_id,
            date=ver.date,
            description=ver.description,
            lines=tuple(ver.lines),
        )
    )


def _handle_header(state: _ParseState, keyword: str, line_no: int, fields: list[str]) -> None:
    args = fields[1:]
    if keyword == "#FNAMN":
        state.company_name = args[0] if args else None
    elif keyword == "#ORGNR":
        state.org_number = args[0] if args else None
    elif keyword == "#PROGRAM":
        state.software_product = " ".join(a for a in args if a) or None
    elif keyword == "#RAR":
        if len(args) < 3:
            state.error(line_no, "#RAR requires index, start and end")
            return
        start, end = _parse_date(args[1]), _parse_date(args[2])
        if start is None or end is None:
            state.error(line_no, f'invalid fiscal year "{args[1]} {args[2]}"')
            return
        if args[0] == "0":
            state.fiscal_year = FiscalYear(start=start, end=end)
    elif keyword == "#KONTO":
        if len(args) < 1 or not args[0]:
            state.error(line_no, "#KONTO requires an account number")
            return
        state.accounts[args[0]] = args[1] if len(args) > 1 else ""
    elif keyword == "#KTYP":
        if len(args) >= 2:
            state.account_types[args[0]] = args[1]


_HEADER_KEYWORDS = frozenset(
    {
        "#FLAGGA",
        "#FORMAT",
        "#SIETYP",
        "#GEN",
        "#FNAMN",
        "#ORGNR",
        "#PROGRAM",
        "#RAR",
        "#KONTO",
        "#KTYP",
    }
)


def parse_sie4(text: str) -> SieParseResult:
    """Parse SIE4 text into a :class:`SieParseResult`; never raises on content."""

    state = _ParseState()
    line_no = 0
    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line:
            continue

        if line == "{":
            if state.pending is None or state.in_block:
                state.error(line_no, "unexpected '{'")
            else:
                state.in_block = True
            continue
        if line == "}":
            if not state.in_block:
                state.error(line_no, "unexpected '}'")
            else:
                _close_block(state)
            continue

        if not line.startswith("#"):
            state.error(line_no, f"unrecognized line {line[:40]!r}")
            continue

        fields = _split_fields(line)
        keyword = fields[0].upper()
        opens_block = len(fields) > 1 and fields[-1] == "{"
        if opens_block:
            fields = fields[:-1]

        if keyword == "#VER":
            _handle_ver(state, line_no, fields)
            if opens_block:
                state.in_block = True
        elif keyword == "#TRANS":
            _handle_trans(state, line_no, fields)
        elif keyword in _HEADER_KEYWORDS:
            _handle_header(state, keyword, line_no, fields)
        elif keyword in _IGNORED_KEYWORDS:
            continue
        elif keyword not in state.unknown_seen:
            state.unknown_seen.add(keyword)
            state.warnings.append(f"line {line_no}: unknown keyword {keyword}")

    if state.pending is not None:
        where = (
            "unterminated verification block"
            if state.in_block
            else "#VER without a transaction block"
        )
        state.error(state.pending.line_no, f"{where} ({state.pending.source_id})")

    verifications = tuple(
        SieVerificationCandidate(
            source_id=v.source_id,
            date=v.date,
            description=v.description,
            lines=tuple(
                PostingLine(
                    account_number=ln.account_number,
                    account_name=state.accounts.get(ln.account_number, ""),
                    debit=ln.debit,
                    credit=ln.credit,
                    description=ln.description,
                )
                for ln in v.lines
            ),
        )
        for v in state.verifications
    )
    accounts = tuple(
        SieAccount(number=num, name=name, type=state.account_types.get(num))
        for num, name in state.accounts.items()
    )

    _logger.info(
        "sie_parse:done format=sie4 lines=%d verifications=%d accounts=%d errors=%d warnings=%d",
        line_no,
        len(verifications),
        len(accounts),
        len(state.errors),
        len(state.warnings),
    )
    return SieParseResult(
        format=SourceFormat.SIE4,
        verifications=verifications,
        accounts=accounts,
        errors=tuple(state.errors),
        warnings=tuple(state.warnings),
        company_name=state.company_name,
        org_number=state.org_number,
        fiscal_year=state.fiscal_year,
        software_product=state.software_product,
    )


__all__ = ["parse_sie4"]
