"""Ingest helpers shared by the preview layer and the CLI.

``parse_sie`` picks the SIE adapter from the sniffed format, so callers never
branch on SIE4 versus SIE5 themselves; ``read_raw_file`` loads a file from
disk with the configured size cap.
"""

from __future__ import annotations

from os import PathLike
from pathlib import Path

from ..errors import FileTooLargeError, UnsupportedFormatError
from ..models import RawFile, SieParseResult, SourceFormat
from ..settings import DEFAULT_MAX_FILE_BYTES
from ..sniffer import SniffResult, sniff


def parse_sie(raw: RawFile, sniffed: SniffResult | None = None) -> SieParseResult:
    """Parse ``raw`` with the adapter matching its sniffed SIE variant.

    Raises :class:`UnsupportedFormatError` when the file is not SIE at all.
    """

    from .adapters.sie4 import parse_sie4
    from .adapters.sie5 import parse_sie5

    s = sniffed or sniff(raw)
    if s.format is SourceFormat.SIE5:
        # Let the XML parser honor the file's own encoding declaration.
        return parse_sie5(raw.data)
    if s.format is SourceFormat.SIE4:
        return parse_sie4(s.text)
    raise UnsupportedFormatError(
        f"{raw.file_name or 'file'} is not a SIE file (detected {s.format.value})"
    )


def read_raw_file(
    path: str | PathLike[str], *, max_bytes: int = DEFAULT_MAX_FILE_BYTES
) -> RawFile:
    """Read ``path`` into a :class:`RawFile`, refusing files above ``max_bytes``.

    ``OSError`` (missing file, permissions) propagates to the caller.
    """

    p = Path(path)
    size = p.stat().st_size
    if size > max_bytes:
        raise FileTooLargeError(f"{p.name} is {size} bytes; the limit is {max_bytes} bytes")
    return RawFile(data=p.read_bytes(), file_name=p.name)


__all__ = ["parse_sie", "read_raw_file"]
