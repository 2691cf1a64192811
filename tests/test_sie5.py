from decimal import Decimal

from ledger_import.ingest.adapters.sie5 import parse_sie5
from ledger_import.ingest.utils import parse_sie
from ledger_import.models import FiscalYear, SourceFormat
from tests.helpers.samples import SIE5_XML, sie4, sie5


def test_full_export_is_read():
    r = parse_sie5(SIE5_XML.encode("utf-8"))

    assert r.format is SourceFormat.SIE5
    assert r.errors == ()
    assert r.company_name == "Exempel AB"
    assert r.org_number == "556677-8899"
    assert r.software_product == "Visma 2024.1"
    # The primary fiscal year wins over the first listed one.
    assert r.fiscal_year == FiscalYear(start="2024-01-01", end="2024-12-31")
    assert [a.number for a in r.accounts] == ["1930", "6540"]

    (v,) = r.verifications
    assert v.source_id == "A-1"
    assert v.date == "2024-01-15"
    assert v.description == "Spotify"
    assert [(ln.account_number, ln.debit, ln.credit) for ln in v.lines] == [
        ("6540", Decimal("699.00"), Decimal("0")),
        ("1930", Decimal("0"), Decimal("699.00")),
    ]
    assert v.lines[0].account_name == "IT-tjänster"
    assert v.lines[1].description == "Betalning"


def test_str_input_with_encoding_declaration():
    r = parse_sie5(SIE5_XML)

    assert r.errors == ()
    assert len(r.verifications) == 1


def test_malformed_xml_is_reported_not_raised():
    r = parse_sie5(b"<Sie><Journal>")

    assert r.verifications == ()
    assert len(r.errors) == 1
    assert r.errors[0].startswith("XML parse error")


def test_unexpected_root():
    r = parse_sie5(b"<Foo/>")

    assert r.errors == ("unexpected root element <Foo>",)


def test_entry_with_bad_ledger_line_is_dropped():
    xml = b"""<SieEntry>
  <Journal id="B">
    <JournalEntry id="1" journalDate="2024-02-01">
      <LedgerEntry accountId="1930" amount="100"/>
      <LedgerEntry accountId="3001"/>
    </JournalEntry>
    <JournalEntry id="2" journalDate="2024-02-02">
      <LedgerEntry account="1930" amount="5"/>
      <LedgerEntry account="3001" amount="-5"/>
    </JournalEntry>
  </Journal>
</SieEntry>"""

    r = parse_sie5(xml)

    assert [v.source_id for v in r.verifications] == ["B-2"]
    assert len(r.errors) == 1
    assert "B-1" in r.errors[0]


def test_parse_sie_dispatches_on_sniffed_format():
    assert parse_sie(sie4()).format is SourceFormat.SIE4
    assert parse_sie(sie5()).format is SourceFormat.SIE5
