from decimal import Decimal

from ledger_import.ingest.adapters.sie4 import parse_sie4
from ledger_import.models import FiscalYear, SieAccount, SourceFormat
from tests.helpers.samples import SIE4_TEXT


def test_full_export_is_read():
    r = parse_sie4(SIE4_TEXT)

    assert r.format is SourceFormat.SIE4
    assert r.errors == ()
    assert r.warnings == ()
    assert r.company_name == "Exempel AB"
    assert r.org_number == "556677-8899"
    assert r.software_product == "Fortnox 3.0"
    assert r.fiscal_year == FiscalYear(start="2024-01-01", end="2024-12-31")
    assert r.accounts == (
        SieAccount("1930", "Företagskonto", "T"),
        SieAccount("6540", "IT-tjänster", None),
    )

    assert [v.source_id for v in r.verifications] == ["A-1", "A-2"]
    v = r.verifications[0]
    assert v.date == "2024-01-15"
    assert v.description == "Spotify"
    debit, credit = v.lines
    assert (debit.account_number, debit.account_name) == ("6540", "IT-tjänster")
    assert (debit.debit, debit.credit) == (Decimal("699.00"), Decimal("0"))
    assert (credit.debit, credit.credit) == (Decimal("0"), Decimal("699.00"))
    assert credit.description == "Betalning"


def test_malformed_lines_are_reported_and_the_rest_is_kept():
    text = """#FLAGGA 0
#VER A 1 20240115 "Ok"
{
#TRANS 6540 {} 100.00
#TRANS 1930 {} -100.00
}
#VER A 2 20240116 "Trasig"
{
#TRANS 6540 {} abc
#TRANS 1930 {} -100.00
}
#VER A 3 2024XX16 "Fel datum"
{
#TRANS 6540 {} 1.00
}
"""
    r = parse_sie4(text)

    assert [v.source_id for v in r.verifications] == ["A-1"]
    assert len(r.errors) == 2
    assert r.errors[0].startswith("line 9: invalid amount")
    assert r.errors[1].startswith("line 12: invalid verification date")


def test_unknown_keywords_warn_once():
    text = '#FLAGGA 0\n#VENDOR 1\n#VENDOR 2\n#KSUMMA 123\n'

    r = parse_sie4(text)

    assert r.warnings == ("line 2: unknown keyword #VENDOR",)
    assert r.errors == ()


def test_optional_object_list_and_inline_brace():
    text = (
        '#SIETYP 4\n#VER B 7 20240120 "Kort" {\n'
        '#TRANS 6540 50,00\n#TRANS 1930 -50,00 "" "x"\n}\n'
    )

    r = parse_sie4(text)

    assert r.errors == ()
    (v,) = r.verifications
    assert v.source_id == "B-7"
    assert [ln.debit for ln in v.lines] == [Decimal("50.00"), Decimal("0")]
    assert [ln.credit for ln in v.lines] == [Decimal("0"), Decimal("50.00")]


def test_unterminated_block_is_an_error():
    r = parse_sie4('#SIETYP 4\n#VER A 1 20240115 "x"\n{\n#TRANS 1930 {} 1.00\n')

    assert r.verifications == ()
    assert r.errors == ("line 2: unterminated verification block (A-1)",)


def test_empty_verification_is_a_warning():
    r = parse_sie4('#SIETYP 4\n#VER A 1 20240115 "x"\n{\n}\n')

    assert r.verifications == ()
    assert r.warnings == ("line 2: verification A-1 has no #TRANS",)


def test_blank_and_repeated_verification_numbers_get_distinct_ids():
    text = (
        '#SIETYP 4\n'
        '#VER A "" 20240115 "x"\n{\n#TRANS 6540 {} 1.00\n#TRANS 1930 {} -1.00\n}\n'
        '#VER A "" 20240116 "y"\n{\n#TRANS 6540 {} 2.00\n#TRANS 1930 {} -2.00\n}\n'
        '#VER A1 2 20240117 "z"\n{\n#TRANS 6540 {} 3.00\n#TRANS 1930 {} -3.00\n}\n'
        '#VER A 12 20240118 "w"\n{\n#TRANS 6540 {} 4.00\n#TRANS 1930 {} -4.00\n}\n'
        '#VER A 12 20240119 "v"\n{\n#TRANS 6540 {} 5.00\n#TRANS 1930 {} -5.00\n}\n'
    )

    r = parse_sie4(text)

    assert r.errors == ()
    ids = [v.source_id for v in r.verifications]
    assert ids == ["A-#1", "A-#2", "A1-2", "A-12", "A-12#5"]
    assert len(set(ids)) == len(ids)
