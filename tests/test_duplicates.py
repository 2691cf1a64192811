from decimal import Decimal

from ledger_import.duplicates import (
    annotate_duplicates,
    candidate_key,
    default_selection,
    detect_intra_batch_duplicates,
    fingerprint_sha256,
    transaction_key,
)
from ledger_import.models import CandidateTransaction, FieldMapping
from ledger_import.validation import validate_row

MAPPING = FieldMapping(accounting_date=0, amount=1, reference=2)


def _rows(*rows: list[str]) -> list[CandidateTransaction]:
    return [validate_row(i, r, MAPPING) for i, r in enumerate(rows)]


def test_reference_case_and_whitespace_are_ignored():
    candidates = _rows(
        ["2024-01-15", "-699,00", "Spotify"],
        ["2024-01-15", "-699,00", "spotify  "],
    )

    out = annotate_duplicates(candidates)

    assert out[0].is_duplicate is False
    assert out[0].first_occurrence_row is None
    assert out[1].is_duplicate is True
    assert out[1].first_occurrence_row == 0
    assert default_selection(out) == [0]


def test_differing_amount_or_date_is_not_a_duplicate():
    candidates = _rows(
        ["2024-01-15", "-699,00", "Spotify"],
        ["2024-01-15", "-699,01", "Spotify"],
        ["2024-01-16", "-699,00", "Spotify"],
    )

    assert detect_intra_batch_duplicates(candidates) == {}


def test_rows_without_key_are_never_duplicates():
    candidates = _rows(["", "-699,00", "Spotify"], ["", "-699,00", "Spotify"])

    assert [candidate_key(c) for c in candidates] == [None, None]
    assert not any(c.is_duplicate for c in annotate_duplicates(candidates))


def test_every_repeat_points_at_the_first_row():
    candidates = _rows(
        ["2024-01-15", "1,00", "a"],
        ["2024-01-15", "2,00", "b"],
        ["2024-01-15", "1,00", "A"],
        ["2024-01-15", "1,00", " a "],
    )

    assert detect_intra_batch_duplicates(candidates) == {2: 0, 3: 0}


def test_key_format_and_fingerprint():
    key = transaction_key("2024-01-15", Decimal("-699"), "  Spotify   AB ")

    assert key == "2024-01-15|-699.00|spotify ab"
    assert transaction_key("2024-01-15", Decimal("1.005"), None) == "2024-01-15|1.01|"
    assert transaction_key(None, Decimal("1"), "x") is None
    fp = fingerprint_sha256(key)
    assert len(fp) == 64
    assert fp == fingerprint_sha256("2024-01-15|-699.00|spotify ab")


def test_committed_keys_flag_rows_and_drop_them_from_selection():
    candidates = _rows(["2024-01-15", "-699,00", "Spotify"], ["2024-01-16", "-10,00", "ICA"])
    committed = {transaction_key("2024-01-16", Decimal("-10"), "ica")}

    out = annotate_duplicates(candidates, committed)

    assert [c.matches_committed for c in out] == [False, True]
    assert [c.is_duplicate for c in out] == [False, False]
    assert default_selection(out) == [0]


def test_annotate_returns_new_objects():
    candidates = _rows(["2024-01-15", "1,00", "a"], ["2024-01-15", "1,00", "a"])

    out = annotate_duplicates(candidates)

    assert candidates[1].is_duplicate is False
    assert out[1].is_duplicate is True
