"""Locale-aware date and amount normalization for bank export cells.

Both functions are pure and total: every string input yields either a
canonical value or ``None``. They never raise on data and never turn an
unparseable amount into ``0``.

Dates
-----
Accepted shapes (Swedish bank exports, ISO first)::

    YYYY-MM-DD   YYYYMMDD   DD/MM/YYYY   DD-MM-YYYY   DD.MM.YYYY   DD/MM/YY

Two-digit years pivot at 50 (``<50`` -> 20xx, ``>=50`` -> 19xx). The calendar
date must exist, so ``2023-02-30`` is rejected.

Amounts
-------
With a decimal comma: whitespace (incl. non-breaking spaces) is a thousand
separator, dots before the last comma are thousand separators, the comma
becomes the decimal point. With a decimal dot: commas are thousand
separators. Currency markers are stripped. A leading or trailing minus (ASCII or
U+2212) or accounting parentheses make the amount negative.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation

from .models import DecimalSeparator

# (pattern, group order as (year, month, day), two-digit year?)
_DATE_FORMATS: tuple[tuple[re.Pattern[str], tuple[int, int, int], bool], ...] = (
    (re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"), (1, 2, 3), False),
    (re.compile(r"^(\d{4})(\d{2})(\d{2})$"), (1, 2, 3), False),
    (re.compile(r"^(\d{2})/(\d{2})/(\d{4})$"), (3, 2, 1), False),
    (re.compile(r"^(\d{2})-(\d{2})-(\d{4})$"), (3, 2, 1), False),
    (re.compile(r"^(\d{2})\.(\d{2})\.(\d{4})$"), (3, 2, 1), False),
    (re.compile(r"^(\d{2})/(\d{2})/(\d{2})$"), (3, 2, 1), True),
)

_SHORT_YEAR_PIVOT = 50

_UNICODE_MINUS = "\u2212"

_CURRENCY_RE = re.compile(r"(?i)\b(?:sek|kr)\b\.?|[€$£]")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_NUMERIC_RE = re.compile(r"[^\d.\-]")
_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$|^\.\d+$|^\d+\.$")


def normalize_date(value: str | None) -> str | None:
    """Return ``YYYY-MM-DD`` for a supported date string, else ``None``."""

    if value is None:
        return None
    cleaned = value.replace('"', "").strip()
    if not cleaned:
        return None

    for pattern, (yi, mi, di), short_year in _DATE_FORMATS:
        m = pattern.match(cleaned)
        if not m:
            continue
        year = int(m.group(yi))
        if short_year:
            year += 2000 if year < _SHORT_YEAR_PIVOT else 1900
        try:
            d = date(year, int(m.group(mi)), int(m.group(di)))
        except ValueError:
            continue
        return d.isoformat()
    return None


def _strip_sign_markers(s: str) -> tuple[str, bool]:
    """Remove sign markers in any order; return ``(rest, negative)``."""

    negative = False
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:]
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:]
            changed = True
        if s.endswith("-") and len(s) > 1:
            negative = True
            s = s[:-1]
            changed = True
        if len(s) >= 2 and s.startswith("(") and s.endswith(")"):
            negative = True
            s = s[1:-1]
            changed = True
        if not changed:
            return s, negative


def normalize_amount(
    value: str | None, decimal_separator: DecimalSeparator = ","
) -> Decimal | None:
    """Return the signed decimal value of a locale-formatted amount, else ``None``."""

    if value is None:
        return None
    s = value.replace('"', "").replace(_UNICODE_MINUS, "-").strip()
    if not s:
        return None

    s = _CURRENCY_RE.sub("", s)
    s = _WHITESPACE_RE.sub("", s)
    if not s:
        return None

    s, negative = _strip_sign_markers(s)

    if decimal_separator == ",":
        last_comma = s.rfind(",")
        if last_comma > 0:
            s = s[:last_comma].replace(".", "") + s[last_comma:]
        if s.count(",") > 1:
            return None
        s = s.replace(",", ".")
    else:
        s = s.replace(",", "")

    s = _NON_NUMERIC_RE.sub("", s)
    # A minus left inside the digits (e.g. "12-34") is malformed, not a sign.
    if not _NUMBER_RE.match(s):
        return None

    try:
        d = Decimal(s)
    except InvalidOperation:
        return None
    if not d.is_finite():
        return None
    return -d if negative else d


__all__ = ["normalize_date", "normalize_amount"]
