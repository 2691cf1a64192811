"""Double-entry balance checks for verifications and manual journal entries.

An entry is balanced iff ``|sum(debit) - sum(credit)| < 0.01``. Nothing here
rounds or adjusts amounts; an unbalanced entry stays unbalanced until the user
fixes it or explicitly forces the import.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .errors import UnbalancedEntryError
from .models import PostingLine, SieVerificationCandidate

BALANCE_EPSILON = Decimal("0.01")


@dataclass(frozen=True, slots=True)
class BalanceCheck:
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    balanced: bool


@dataclass(frozen=True, slots=True)
class SieVerificationPreview:
    """A parsed verification together with its balance check."""

    verification: SieVerificationCandidate
    check: BalanceCheck

    @property
    def balanced(self) -> bool:
        return self.check.balanced


def check_balance(lines: Iterable[PostingLine]) -> BalanceCheck:
    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for line in lines:
        total_debit += line.debit
        total_credit += line.credit
    difference = total_debit - total_credit
    return BalanceCheck(
        total_debit=total_debit,
        total_credit=total_credit,
        difference=difference,
        balanced=abs(difference) < BALANCE_EPSILON,
    )


def require_balanced(lines: Iterable[PostingLine], *, label: str = "entry") -> BalanceCheck:
    """Return the check for ``lines`` or raise :class:`UnbalancedEntryError`."""

    check = check_balance(lines)
    if not check.balanced:
        raise UnbalancedEntryError(
            f"{label} is unbalanced: debit {check.total_debit} != credit "
            f"{check.total_credit} (difference {check.difference})",
            check,
        )
    return check


def preview_verifications(
    verifications: Iterable[SieVerificationCandidate],
) -> list[SieVerificationPreview]:
    return [SieVerificationPreview(v, check_balance(v.lines)) for v in verifications]


def default_selection(previews: Iterable[SieVerificationPreview]) -> list[str]:
    """Source ids pre-selected for import; unbalanced entries are never included."""

    return [p.verification.source_id for p in previews if p.balanced]


def within_period(
    verifications: Sequence[SieVerificationCandidate],
    start: str | None = None,
    end: str | None = None,
) -> list[SieVerificationCandidate]:
    """Keep verifications dated within ``[start, end]`` (ISO strings, inclusive)."""

    out: list[SieVerificationCandidate] = []
    for v in verifications:
        if start is not None and v.date < start:
            continue
        if end is not None and v.date > end:
            continue
        out.append(v)
    return out


__all__ = [
    "BALANCE_EPSILON",
    "BalanceCheck",
    "SieVerificationPreview",
    "check_balance",
    "require_balanced",
    "preview_verifications",
    "default_selection",
    "within_period",
]
