"""Split decoded delimited text into a header row and data rows.

Parsing follows RFC 4180 quoting via the stdlib :mod:`csv` module (double
quotes, ``""`` as an escaped quote, quoted separators kept inside the field),
applied one physical line at a time so a stray quote cannot swallow the rest
of the file.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Sequence
from io import StringIO

from .models import ParsedTable

_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


def _parse_line(line: str, separator: str) -> list[str]:
    try:
        fields = next(
            csv.reader(
                [line],
                delimiter=separator,
                quotechar='"',
                doublequote=True,
                skipinitialspace=True,
                strict=False,
            ),
            [],
        )
    except csv.Error:
        # Malformed quoting the lenient reader still rejects; plain split keeps the row.
        fields = line.split(separator)
    return [f.strip() for f in fields]


def tokenize(text: str, separator: str, *, skip_first_line: bool = False) -> ParsedTable:
    """Parse ``text`` into a :class:`ParsedTable`.

    Blank lines are dropped. When ``skip_first_line`` is set (a ``sep=``
    directive was found) the first physical line is discarded before parsing.
    The first remaining line becomes the header row.
    """

    lines = _LINE_SPLIT_RE.split(text)
    if skip_first_line and lines:
        lines = lines[1:]

    parsed: list[tuple[str, ...]] = []
    for line in lines:
        if not line.strip():
            continue
        parsed.append(tuple(_parse_line(line, separator)))

    if not parsed:
        return ParsedTable(delimiter=separator, headers=(), rows=())
    return ParsedTable(delimiter=separator, headers=parsed[0], rows=tuple(parsed[1:]))


def format_row(fields: Sequence[str], separator: str) -> str:
    """Join ``fields`` into one line that :func:`tokenize` parses back unchanged."""

    buf = StringIO()
    writer = csv.writer(
        buf,
        delimiter=separator,
        quotechar='"',
        doublequote=True,
        quoting=csv.QUOTE_MINIMAL,
        lineterminator="",
    )
    writer.writerow(fields)
    return buf.getvalue()


def column_samples(
    rows: Iterable[Sequence[str]], column: int, max_samples: int = 3
) -> list[str]:
    """Return up to ``max_samples`` non-blank values from ``column``."""

    out: list[str] = []
    for row in rows:
        if len(out) >= max_samples:
            break
        if 0 <= column < len(row) and row[column].strip():
            out.append(row[column])
    return out


__all__ = ["tokenize", "format_row", "column_samples"]
