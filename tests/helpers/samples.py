"""Small but realistic input files shared by the tests."""

from __future__ import annotations

from ledger_import.models import RawFile

# Swedbank-style export: `sep=` directive, Swedish headers, decimal comma,
# a case/whitespace repeat of row 0 and one row with an impossible date.
BANK_CSV = (
    "sep=;\n"
    "Bokföringsdag;Valutadag;Referens;Insättning/Uttag;Bokfört saldo\n"
    "2024-01-15;2024-01-15;Spotify;-699,00;10 000,00\n"
    "2024-01-15;2024-01-15;spotify  ;-699,00;9 301,00\n"
    "2024-01-16;2024-01-16;ICA Maxi;-1 234,50;8 066,50\n"
    "2024-13-40;2024-01-17;Trasig rad;-1,00;8 065,50\n"
)

SIE4_TEXT = """#FLAGGA 0
#FORMAT PC8
#SIETYP 4
#PROGRAM "Fortnox" 3.0
#GEN 20240201
#FNAMN "Exempel AB"
#ORGNR 556677-8899
#RAR 0 20240101 20241231
#RAR -1 20230101 20231231
#KONTO 1930 "Företagskonto"
#KONTO 6540 "IT-tjänster"
#KTYP 1930 T
#VER A 1 20240115 "Spotify"
{
   #TRANS 6540 {} 699.00
   #TRANS 1930 {} -699.00 20240115 "Betalning"
}
#VER A 2 20240116 "Felaktig"
{
   #TRANS 6540 {} 1000.00
   #TRANS 1930 {} -999.00
}
"""

SIE5_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Sie xmlns="http://www.sie.se/sie5">
  <FileInfo>
    <SoftwareProduct name="Visma" version="2024.1"/>
    <Company organizationId="556677-8899" name="Exempel AB"/>
    <FiscalYears>
      <FiscalYear start="2023-01" end="2023-12"/>
      <FiscalYear start="2024-01" end="2024-12" primary="true"/>
    </FiscalYears>
  </FileInfo>
  <Accounts>
    <Account id="1930" name="Företagskonto" type="asset"/>
    <Account id="6540" name="IT-tjänster" type="cost"/>
  </Accounts>
  <Journal id="A" name="Huvudbok">
    <JournalEntry id="1" journalDate="2024-01-15" text="Spotify">
      <LedgerEntry accountId="6540" amount="699.00"/>
      <LedgerEntry accountId="1930" amount="-699.00" text="Betalning"/>
    </JournalEntry>
  </Journal>
</Sie>
"""

OFX_TEXT = """OFXHEADER:100
DATA:OFXSGML
VERSION:102

<OFX>
<BANKMSGSRSV1><STMTTRNRS><STMTRS>
<CURDEF>SEK
<BANKACCTFROM><BANKID>8327<ACCTID>1234567890<ACCTTYPE>CHECKING</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>20240101
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20240115120000[+1:CET]
<TRNAMT>-699.00
<FITID>1001
<NAME>Spotify
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20240125
<TRNAMT>25000,00
<FITID>1002
<MEMO>Lön
</STMTTRN>
<STMTTRN>
<TRNTYPE>DEBIT
<FITID>1003
<TRNAMT>-10.00
</STMTTRN>
</BANKTRANLIST>
</STMTRS></STMTTRNRS></BANKMSGSRSV1>
</OFX>
"""


def raw(text: str, file_name: str) -> RawFile:
    return RawFile(data=text.encode("utf-8"), file_name=file_name)


def bank_csv() -> RawFile:
    return raw(BANK_CSV, "swedbank.csv")


def sie4() -> RawFile:
    return raw(SIE4_TEXT, "export.se")


def sie5() -> RawFile:
    return raw(SIE5_XML, "export.sie")


def ofx() -> RawFile:
    return raw(OFX_TEXT, "statement.ofx")
