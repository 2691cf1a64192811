"""Column-to-field mapping: local suggestions, seeding and confidence display.

Suggestions are advisory. They seed a :class:`~ledger_import.models.FieldMapping`
the user can override, and nothing here enforces a complete or valid mapping;
the row validator reports the consequences per row.

The local suggester scores every ``(field, column)`` pair from two signals:

- the header text, matched against Swedish and English bank export terms
  (``Bokföringsdag``, ``Insättning/Uttag``, ``Referens``, ``Bokfört saldo``...);
- the sample values, checked with the locale normalizer (dates, amounts,
  free text).

Pairs are then assigned greedily by descending score so that no column is
used for two fields.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .locale_normalizer import normalize_amount, normalize_date
from .models import (
    FIELD_NAMES,
    DecimalSeparator,
    FieldConfidence,
    FieldMapping,
    FieldSuggestion,
    ParsedTable,
)
from .tokenizer import column_samples

# ---------------------------------------------------------------------------
# Tagged suggestion result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Suggested:
    suggestion: FieldSuggestion


@dataclass(frozen=True, slots=True)
class Unavailable:
    """No suggestion could be produced; the user maps columns manually."""

    reason: str


type SuggestionResult = Suggested | Unavailable

# ---------------------------------------------------------------------------
# Header vocabulary
# ---------------------------------------------------------------------------

_HEADER_TERMS: dict[str, tuple[str, ...]] = {
    "accounting_date": (
        "bokföringsdag",
        "bokföringsdatum",
        "transaktionsdatum",
        "transaktionsdag",
        "datum",
        "date",
        "booking date",
        "transaction date",
        "posting date",
    ),
    "amount": (
        "insättning/uttag",
        "belopp",
        "summa",
        "transaktionsbelopp",
        "amount",
        "belopp sek",
    ),
    "reference": (
        "referens",
        "text",
        "beskrivning",
        "meddelande",
        "specifikation",
        "transaktionstext",
        "memo",
        "description",
        "reference",
    ),
    "booked_balance": (
        "bokfört saldo",
        "saldo",
        "behållning",
        "balance",
        "booked balance",
    ),
}

_HEADER_EXACT_SCORE = 0.95
_HEADER_PARTIAL_SCORE = 0.75
_DATE_PATTERN_WEIGHT = 0.65
_AMOUNT_PATTERN_WEIGHT = 0.55
_TEXT_PATTERN_WEIGHT = 0.45
_BOTH_SIGNALS_BONUS = 0.04
_MIN_ASSIGN_SCORE = 0.4
_SAMPLE_ROWS = 10

_WS_RE = re.compile(r"\s+")


def _norm_header(header: str) -> str:
    return _WS_RE.sub(" ", header.replace('"', "")).strip().lower()


def _header_score(field_name: str, header: str) -> float:
    h = _norm_header(header)
    if not h:
        return 0.0
    terms = _HEADER_TERMS[field_name]
    if h in terms:
        return _HEADER_EXACT_SCORE
    for term in terms:
        # Short generic terms ("text", "datum") must match a whole word.
        if re.search(rf"(?<!\w){re.escape(term)}(?!\w)", h):
            return _HEADER_PARTIAL_SCORE
    return 0.0


def _value_profile(
    values: Sequence[str], decimal_separator: DecimalSeparator
) -> tuple[float, float, float]:
    """Return the fractions of ``values`` that look like dates, amounts and text."""

    if not values:
        return 0.0, 0.0, 0.0
    dates = amounts = texts = 0
    for v in values:
        if normalize_date(v) is not None:
            dates += 1
        elif normalize_amount(v, decimal_separator) is not None:
            amounts += 1
        elif any(ch.isalpha() for ch in v):
            texts += 1
    n = len(values)
    return dates / n, amounts / n, texts / n


def _pattern_score(field_name: str, profile: tuple[float, float, float]) -> float:
    date_frac, amount_frac, text_frac = profile
    if field_name == "accounting_date":
        return _DATE_PATTERN_WEIGHT * date_frac
    if field_name == "amount":
        return _AMOUNT_PATTERN_WEIGHT * amount_frac
    if field_name == "reference":
        return _TEXT_PATTERN_WEIGHT * text_frac
    # A balance column looks exactly like an amount column; only its header
    # tells them apart, so values merely confirm a header match.
    return 0.0


def _score(field_name: str, header: str, profile: tuple[float, float, float]) -> float:
    header_score = _header_score(field_name, header)
    pattern = _pattern_score(field_name, profile)
    if field_name == "booked_balance" and header_score and profile[1] >= 0.8:
        pattern = header_score
    score = max(header_score, pattern)
    if header_score and pattern >= 0.5:
        score = min(1.0, score + _BOTH_SIGNALS_BONUS)
    return round(score, 4)


def suggest_heuristically(
    headers: Sequence[str],
    sample_rows: Sequence[Sequence[str]],
    *,
    decimal_separator: DecimalSeparator = ",",
) -> SuggestionResult:
    """Suggest a mapping from header vocabulary and sample value patterns."""

    if not headers:
        return Unavailable("file has no header row")

    rows = sample_rows[:_SAMPLE_ROWS]
    profiles = [
        _value_profile(column_samples(rows, col, max_samples=_SAMPLE_ROWS), decimal_separator)
        for col in range(len(headers))
    ]

    scored: list[tuple[float, int, int]] = []
    for f_idx, field_name in enumerate(FIELD_NAMES):
        for col, header in enumerate(headers):
            s = _score(field_name, header, profiles[col])
            if s >= _MIN_ASSIGN_SCORE:
                # Ties resolve to field order, then leftmost column.
                scored.append((-s, f_idx, col))
    scored.sort()

    columns: dict[str, int] = {}
    confidence: dict[str, float] = {}
    used: set[int] = set()
    for neg_score, f_idx, col in scored:
        field_name = FIELD_NAMES[f_idx]
        if field_name in columns or col in used:
            continue
        columns[field_name] = col
        confidence[field_name] = -neg_score
        used.add(col)

    if not columns:
        return Unavailable("no column matched a known field")

    return Suggested(
        FieldSuggestion(
            mapping=FieldMapping(**columns),
            confidence=FieldConfidence(**confidence),
            source="heuristic",
        )
    )


# ---------------------------------------------------------------------------
# Seeding and display helpers
# ---------------------------------------------------------------------------


def seed_mapping(result: SuggestionResult, column_count: int | None = None) -> FieldMapping:
    """Return the mapping to pre-fill; empty for :class:`Unavailable`.

    When ``column_count`` is given, suggested columns outside the table are
    dropped rather than passed on.
    """

    if isinstance(result, Unavailable):
        return FieldMapping()
    mapping = result.suggestion.mapping
    if column_count is None:
        return mapping
    invalid = mapping.invalid_columns(column_count)
    if not invalid:
        return mapping
    return mapping.with_overrides(**{name: None for name in invalid})


type ConfidenceLevel = Literal["high", "medium", "low"]


def overall_confidence(confidence: FieldConfidence) -> tuple[ConfidenceLevel, int]:
    """Summarize confidence over the required fields as ``(level, percentage)``."""

    required = (confidence.accounting_date + confidence.amount) / 2
    pct = round(required * 100)
    if required >= 0.8:
        return "high", pct
    if required >= 0.6:
        return "medium", pct
    return "low", pct


@dataclass(frozen=True, slots=True)
class ColumnSample:
    index: int
    header: str
    samples: tuple[str, ...]


def sample_columns(table: ParsedTable, max_samples: int = 3) -> list[ColumnSample]:
    """Per-column sample values shown next to the mapping for confirmation."""

    return [
        ColumnSample(
            index=i,
            header=h,
            samples=tuple(column_samples(table.rows, i, max_samples=max_samples)),
        )
        for i, h in enumerate(table.headers)
    ]


__all__ = [
    "Suggested",
    "Unavailable",
    "SuggestionResult",
    "suggest_heuristically",
    "seed_mapping",
    "ConfidenceLevel",
    "overall_confidence",
    "ColumnSample",
    "sample_columns",
]
