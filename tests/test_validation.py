from decimal import Decimal

import pytest

from ledger_import.models import FieldMapping, LocaleConfig, ParsedTable
from ledger_import.validation import validate_row, validate_rows

MAPPING = FieldMapping(accounting_date=0, amount=1, reference=2)


def test_valid_row_is_normalized():
    c = validate_row(0, ["2024-01-15", "-699,00", "Spotify"], MAPPING, LocaleConfig(","))

    assert c.accounting_date == "2024-01-15"
    assert c.amount == Decimal("-699.00")
    assert c.reference == "Spotify"
    assert c.validation_errors == ()
    assert c.is_valid
    assert c.raw_values == ("2024-01-15", "-699,00", "Spotify")


def test_missing_and_invalid_values_are_reported_differently():
    missing = validate_row(0, ["", "  ", "x"], MAPPING)
    invalid = validate_row(1, ["2023-02-30", "abc", "x"], MAPPING)

    assert missing.validation_errors == ("Date missing", "Amount missing")
    assert invalid.validation_errors == (
        'Invalid date format: "2023-02-30"',
        'Invalid amount format: "abc"',
    )
    assert not missing.is_valid and not invalid.is_valid


def test_short_row_and_unmapped_fields_count_as_missing():
    short = validate_row(0, ["2024-01-15"], MAPPING)
    unmapped = validate_row(0, ["2024-01-15", "1,00"], FieldMapping(accounting_date=0))

    assert short.validation_errors == ("Amount missing",)
    assert unmapped.validation_errors == ("Amount missing",)
    assert unmapped.reference is None


def test_booked_balance_is_best_effort():
    mapping = FieldMapping(accounting_date=0, amount=1, booked_balance=2)

    ok = validate_row(0, ["2024-01-15", "1,00", "50 881,00"], mapping)
    bad = validate_row(1, ["2024-01-15", "1,00", "n/a"], mapping)

    assert ok.booked_balance == Decimal("50881.00")
    assert bad.booked_balance is None
    assert bad.validation_errors == ()


def test_decimal_dot_locale():
    c = validate_row(0, ["15/01/2024", "1,234.50", "x"], MAPPING, LocaleConfig("."))

    assert c.accounting_date == "2024-01-15"
    assert c.amount == Decimal("1234.50")


def test_validate_rows_keeps_every_row_in_order():
    table = ParsedTable(
        delimiter=";",
        headers=("Datum", "Belopp", "Text"),
        rows=(("2024-01-15", "1,00", "a"), ("bad", "1,00", "b"), ("2024-01-16", "2,00", "c")),
    )

    out = validate_rows(table, MAPPING)

    assert [c.row_index for c in out] == [0, 1, 2]
    assert [c.is_valid for c in out] == [True, False, True]


HOSTILE_CELLS = [
    "\x00",
    "\ufffd",
    "9" * 5000,
    "(-)",
    "1e999",
    "NaN",
    "Infinity",
    "-Infinity",
    "((1))",
    '"""',
    "2024-01-15\x00",
    "99/99/99",
]


@pytest.mark.parametrize("cell", HOSTILE_CELLS)
@pytest.mark.parametrize("separator", [",", "."])
def test_hostile_cells_still_yield_a_candidate(cell, separator):
    mapping = FieldMapping(accounting_date=0, amount=1, reference=2, booked_balance=3)

    c = validate_row(7, [cell, cell, cell, cell], mapping, LocaleConfig(separator))

    assert c.row_index == 7
    assert c.raw_values == (cell, cell, cell, cell)
    assert c.amount is None or c.amount.is_finite()
    assert c.accounting_date is None or len(c.accounting_date) == 10


@pytest.mark.parametrize(
    "mapping",
    [
        FieldMapping(accounting_date=5, amount=9, reference=42, booked_balance=100),
        FieldMapping(accounting_date=-1, amount=-2, reference=-3, booked_balance=-4),
    ],
)
def test_out_of_range_columns_count_as_missing(mapping):
    c = validate_row(0, ["2024-01-15", "1,00"], mapping)

    assert c.validation_errors == ("Date missing", "Amount missing")
    assert (c.reference, c.booked_balance) == (None, None)
