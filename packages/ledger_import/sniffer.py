"""Encoding, dialect and format detection for uploaded files.

The sniffer runs once per import session and selects the parser variant
(:class:`~ledger_import.models.SourceFormat`) that every later stage uses.
It never raises on content: an empty or undecodable file yields empty text
and the caller reports the structural error.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePath

from .logging_setup import get_logger
from .models import RawFile, SourceFormat

_logger = get_logger("ledger_import.sniffer")

_UTF8_BOM = b"\xef\xbb\xbf"
_REPLACEMENT_CHAR = "\ufffd"

# Order matters: ';' wins ties (Swedish exports), then tab beats comma only
# when strictly more frequent.
_CANDIDATE_SEPARATORS: tuple[str, ...] = (";", "\t", ",")
_SNIFF_LINES = 5

# Excel writes `sep=;`, sometimes quoted or padded with separators.
_SEP_DIRECTIVE_RE = re.compile(r"^\s*\"?sep=(.)", re.IGNORECASE)
_SIE4_KEYWORD_RE = re.compile(
    r"^\s*#(FLAGGA|SIETYP|FORMAT|PROGRAM|GEN|FNAMN|ORGNR|RAR|KONTO|VER)\b",
    re.MULTILINE,
)
_SIE4_PC8_RE = re.compile(rb"^\s*#FORMAT\s+PC8\b", re.MULTILINE)
_XML_ROOT_RE = re.compile(r"<(?:[A-Za-z_][\w.-]*:)?(Sie|SieEntry)[\s>/]")
_OFX_MARKER_RE = re.compile(r"<OFX>", re.IGNORECASE)

_SIE_EXTENSIONS = frozenset({".se", ".si", ".sie"})


@dataclass(frozen=True, slots=True)
class SniffResult:
    format: SourceFormat
    encoding_used: str
    separator: str | None
    skip_first_line: bool
    text: str


def decode_bytes(data: bytes) -> tuple[str, str]:
    """Decode as UTF-8 (BOM stripped); fall back to Latin-1 on replacement chars."""

    if data.startswith(_UTF8_BOM):
        data = data[len(_UTF8_BOM) :]
    text = data.decode("utf-8", errors="replace")
    if _REPLACEMENT_CHAR in text:
        return data.decode("latin-1"), "latin-1"
    return text, "utf-8"


def detect_separator(text: str) -> tuple[str, bool]:
    """Return ``(separator, skip_first_line)`` for delimited text.

    An explicit ``sep=X`` directive on the first line wins and marks that line
    to be skipped. Otherwise the most frequent of ``;``, tab and ``,`` across
    the first five lines is chosen.
    """

    lines = text.splitlines()
    if lines:
        m = _SEP_DIRECTIVE_RE.match(lines[0])
        if m:
            return m.group(1), True

    head = "\n".join(lines[:_SNIFF_LINES])
    counts = {sep: head.count(sep) for sep in _CANDIDATE_SEPARATORS}
    if counts[";"] >= counts[","] and counts[";"] >= counts["\t"]:
        return ";", False
    if counts["\t"] > counts[","]:
        return "\t", False
    return ",", False


def _looks_like_sie5(text: str) -> bool:
    head = text.lstrip()[:4096]
    if not head.startswith("<"):
        return False
    return _XML_ROOT_RE.search(head) is not None


def _looks_like_sie4(text: str, suffix: str) -> bool:
    head = text[:8192]
    if _SIE4_KEYWORD_RE.search(head):
        return True
    # Vendor files sometimes start with a keyword the list above omits.
    return suffix in _SIE_EXTENSIONS and head.lstrip().startswith("#")


def detect_format(file_name: str, text: str) -> SourceFormat:
    """Select the parser variant from decoded text and the declared file name."""

    suffix = PurePath(file_name or "").suffix.lower()
    if _looks_like_sie5(text):
        return SourceFormat.SIE5
    if _looks_like_sie4(text, suffix):
        return SourceFormat.SIE4
    if suffix == ".ofx" or _OFX_MARKER_RE.search(text[:8192]):
        return SourceFormat.OFX
    return SourceFormat.DELIMITED


def sniff(raw: RawFile) -> SniffResult:
    """Decode ``raw`` and determine its format and, for delimited text, its dialect."""

    text, encoding = decode_bytes(raw.data)
    fmt = detect_format(raw.file_name, text)

    if (
        fmt is SourceFormat.SIE4
        and encoding != "utf-8"
        and _SIE4_PC8_RE.search(raw.data[:8192])
    ):
        # PC8 is the native SIE4 code page; Latin-1 would garble å, ä and ö.
        data = raw.data[len(_UTF8_BOM) :] if raw.data.startswith(_UTF8_BOM) else raw.data
        text, encoding = data.decode("cp437"), "cp437"

    separator: str | None = None
    skip_first_line = False
    if fmt is SourceFormat.DELIMITED and text.strip():
        separator, skip_first_line = detect_separator(text)

    _logger.debug(
        "sniff:done file=%s format=%s encoding=%s separator=%r skip_first_line=%s",
        raw.file_name,
        fmt.value,
        encoding,
        separator,
        skip_first_line,
    )
    return SniffResult(
        format=fmt,
        encoding_used=encoding,
        separator=separator,
        skip_first_line=skip_first_line,
        text=text,
    )


__all__ = ["SniffResult", "decode_bytes", "detect_separator", "detect_format", "sniff"]
