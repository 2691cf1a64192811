from decimal import Decimal

import pytest

from ledger_import.balance import (
    check_balance,
    default_selection,
    preview_verifications,
    require_balanced,
    within_period,
)
from ledger_import.errors import UnbalancedEntryError
from ledger_import.models import PostingLine, SieVerificationCandidate


def _line(account: str, debit: str = "0", credit: str = "0") -> PostingLine:
    return PostingLine(account, "", Decimal(debit), Decimal(credit))


def _ver(source_id: str, date: str, *lines: PostingLine) -> SieVerificationCandidate:
    return SieVerificationCandidate(source_id, date, "", tuple(lines))


def test_unbalanced_verification_is_excluded_from_selection():
    ok = _ver("A1", "2024-01-15", _line("6540", debit="699"), _line("1930", credit="699"))
    off = _ver("A2", "2024-01-16", _line("6540", debit="1000"), _line("1930", credit="999"))

    previews = preview_verifications([ok, off])

    assert [p.balanced for p in previews] == [True, False]
    assert previews[1].check.difference == Decimal("1")
    assert default_selection(previews) == ["A1"]


def test_sub_cent_difference_is_balanced():
    check = check_balance([_line("1", debit="100.00"), _line("2", credit="99.995")])

    assert check.balanced
    assert check.difference == Decimal("0.005")


def test_exactly_one_cent_is_unbalanced():
    assert not check_balance([_line("1", debit="100.00"), _line("2", credit="99.99")]).balanced


def test_require_balanced_raises_with_check():
    with pytest.raises(UnbalancedEntryError, match="verification A2 is unbalanced") as ei:
        require_balanced(
            [_line("6540", debit="1000"), _line("1930", credit="999")], label="verification A2"
        )

    assert ei.value.check is not None
    assert ei.value.check.total_debit == Decimal("1000")


def test_within_period_is_inclusive():
    vs = [
        _ver("1", "2023-12-31", _line("1", debit="1"), _line("2", credit="1")),
        _ver("2", "2024-01-01", _line("1", debit="1"), _line("2", credit="1")),
        _ver("3", "2024-12-31", _line("1", debit="1"), _line("2", credit="1")),
    ]

    assert [v.source_id for v in within_period(vs, "2024-01-01", "2024-12-31")] == ["2", "3"]
    assert [v.source_id for v in within_period(vs, end="2024-01-01")] == ["1", "2"]
    assert len(within_period(vs)) == 3
