"""Content fingerprints and duplicate flags for candidate transactions.

Public surface:
- ``transaction_key``: the plain-text dedup key
  ``date|amount(2dp)|normalized reference`` (``None`` without date or amount).
- ``fingerprint_sha256``: hex digest of a key, the form stored in the database.
- ``detect_intra_batch_duplicates`` / ``annotate_duplicates``: a single linear
  pass that points every repeat at the first row carrying the same key.
- ``default_selection``: rows pre-selected for import in the review surface.

Matching is exact on the key; there is no fuzzy matching. Reference text is
compared case-insensitively with whitespace collapsed, while differing dates
or amounts never match.
"""

from __future__ import annotations

import hashlib
from collections.abc import Collection, Iterable, Sequence
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal

from .models import CandidateTransaction


def _norm_reference(reference: str | None) -> str:
    if reference is None:
        return ""
    return " ".join(str(reference).split()).lower()


def transaction_key(
    accounting_date: str | None,
    amount: Decimal | None,
    reference: str | None,
) -> str | None:
    """Return the dedup key, or ``None`` when date or amount is missing."""

    if accounting_date is None or amount is None:
        return None
    q = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{accounting_date}|{q:.2f}|{_norm_reference(reference)}"


def candidate_key(candidate: CandidateTransaction) -> str | None:
    return transaction_key(candidate.accounting_date, candidate.amount, candidate.reference)


def fingerprint_sha256(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def detect_intra_batch_duplicates(
    candidates: Iterable[CandidateTransaction],
) -> dict[int, int]:
    """Map each repeated row index to the row index of its first occurrence."""

    first_seen: dict[str, int] = {}
    repeats: dict[int, int] = {}
    for c in candidates:
        key = candidate_key(c)
        if key is None:
            continue
        first = first_seen.setdefault(key, c.row_index)
        if first != c.row_index:
            repeats[c.row_index] = first
    return repeats


def annotate_duplicates(
    candidates: Sequence[CandidateTransaction],
    committed_keys: Collection[str] = (),
) -> list[CandidateTransaction]:
    """Return new candidates with duplicate flags set.

    ``committed_keys`` holds the keys of transactions already committed in
    the workspace (see ``persistence.committed_transaction_keys``); matches
    are marked ``matches_committed``.
    """

    repeats = detect_intra_batch_duplicates(candidates)
    out: list[CandidateTransaction] = []
    for c in candidates:
        first = repeats.get(c.row_index)
        key = candidate_key(c)
        out.append(
            replace(
                c,
                is_duplicate=first is not None,
                first_occurrence_row=first,
                matches_committed=key is not None and key in committed_keys,
            )
        )
    return out


def default_selection(candidates: Iterable[CandidateTransaction]) -> list[int]:
    """Row indices pre-selected for import: valid and not a duplicate of anything."""

    return [
        c.row_index
        for c in candidates
        if c.is_valid and not c.is_duplicate and not c.matches_committed
    ]


__all__ = [
    "transaction_key",
    "candidate_key",
    "fingerprint_sha256",
    "detect_intra_batch_duplicates",
    "annotate_duplicates",
    "default_selection",
]
