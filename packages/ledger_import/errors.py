"""Exception types raised by the import pipeline.

Malformed *input data* never raises: it is annotated on the affected row or
collected in a parse result's ``errors``. The types below cover problems with a
file as a whole and failures at commit time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .balance import BalanceCheck


class LedgerImportError(Exception):
    """Base class for all pipeline errors."""


class StructuralImportError(LedgerImportError, ValueError):
    """The file as a whole cannot be imported (reported once, no partial data)."""


class EmptyFileError(StructuralImportError):
    pass


class UnsupportedFormatError(StructuralImportError):
    pass


class FileTooLargeError(StructuralImportError):
    pass


class UnbalancedEntryError(LedgerImportError, ValueError):
    """A journal entry whose debit and credit totals differ by 0.01 or more."""

    def __init__(self, message: str, check: BalanceCheck | None = None) -> None:
        super().__init__(message)
        self.check = check


class CommitContractError(LedgerImportError, ValueError):
    """An item handed to the committer did not pass validation first."""


class CommitConflictError(LedgerImportError, RuntimeError):
    """A concurrent import inserted the same fingerprint first.

    Nothing from the request was committed; the caller may retry, at which
    point the conflicting rows are reported as skipped duplicates.
    """


__all__ = [
    "LedgerImportError",
    "StructuralImportError",
    "EmptyFileError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "UnbalancedEntryError",
    "CommitContractError",
    "CommitConflictError",
]
