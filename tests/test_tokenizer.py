import pytest

from ledger_import.tokenizer import column_samples, format_row, tokenize


def test_first_line_is_header_and_blank_lines_are_dropped():
    table = tokenize("Datum;Belopp\r\n\r\n2024-01-15;-699,00\r\n   \n2024-01-16;10,00\n", ";")

    assert table.headers == ("Datum", "Belopp")
    assert table.rows == (("2024-01-15", "-699,00"), ("2024-01-16", "10,00"))
    assert table.delimiter == ";"


def test_quoted_separator_is_not_split():
    table = tokenize('Datum;Text;Belopp\n2024-01-15;"Hyra; januari";-8 500,00\n', ";")

    assert table.rows[0] == ("2024-01-15", "Hyra; januari", "-8 500,00")


def test_doubled_quote_is_a_literal_quote():
    table = tokenize('Text,Belopp\n"Sa ""hej""",1\n', ",")

    assert table.rows[0] == ('Sa "hej"', "1")


def test_skip_first_line_drops_directive():
    table = tokenize("sep=;\nDatum;Belopp\n2024-01-15;1,00\n", ";", skip_first_line=True)

    assert table.headers == ("Datum", "Belopp")
    assert len(table.rows) == 1


def test_empty_text_gives_empty_table():
    table = tokenize("\n\n", ",")

    assert table.is_empty
    assert table.headers == ()


def test_rows_keep_their_own_width():
    table = tokenize("a;b;c\n1;2\n1;2;3;4\n", ";")

    assert [len(r) for r in table.rows] == [2, 4]


def test_format_row_quotes_only_where_needed():
    fields = ["2024-01-15", "Hyra; januari", 'Sa "hej"']
    line = format_row(fields, ";")

    assert line == '2024-01-15;"Hyra; januari";"Sa ""hej"""'
    assert tokenize("h1;h2;h3\n" + line, ";").rows[0] == tuple(fields)


def test_column_samples_skip_blank_and_short_rows():
    rows = [("a", ""), ("b",), ("c", "x"), ("d", "y"), ("e", "z"), ("f", "w")]

    assert column_samples(rows, 1) == ["x", "y", "z"]
    assert column_samples(rows, 5) == []


ROUND_TRIP_ROWS = [
    ("2024-01-15", "-699,00", "Spotify"),
    ("a;b", "c,d", "e\tf"),
    ('"', '""', 'x "y" z'),
    ("", "", "tail"),
    ("head", "", ""),
    ("",),
    ('"Hyra; januari"', "8 500,00", "'"),
]


@pytest.mark.parametrize("row", ROUND_TRIP_ROWS)
@pytest.mark.parametrize("separator", [";", ",", "\t"])
def test_format_row_round_trips_and_is_stable(row, separator):
    line = format_row(row, separator)
    parsed = tokenize("header\n" + line, separator).rows[0]

    assert parsed == row
    assert format_row(parsed, separator) == line
