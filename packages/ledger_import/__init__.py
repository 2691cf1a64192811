"""Public interface for the ``ledger_import`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
Persistence (``ledger_import.persistence``) is not imported here so that
preview-only consumers do not load the database layer.
"""

from .api import (
    build_bank_batch,
    build_sie_batch,
    import_bank_file,
    import_sie_file,
    preview_bank_import,
    preview_sie_file,
)
from .errors import (
    CommitConflictError,
    CommitContractError,
    EmptyFileError,
    FileTooLargeError,
    LedgerImportError,
    StructuralImportError,
    UnbalancedEntryError,
    UnsupportedFormatError,
)
from .models import (
    CandidateTransaction,
    CommitResult,
    FieldMapping,
    ImportBatch,
    JournalEntryDraft,
    LocaleConfig,
    PostingLine,
    RawFile,
    SieParseResult,
    SieVerificationCandidate,
    SourceFormat,
)
from .preview import BankPreview, ImportStats, SiePreview, preview_bank_file

__all__ = [
    # API
    "preview_bank_file",
    "preview_bank_import",
    "preview_sie_file",
    "build_bank_batch",
    "build_sie_batch",
    "import_bank_file",
    "import_sie_file",
    # Models
    "RawFile",
    "SourceFormat",
    "LocaleConfig",
    "FieldMapping",
    "CandidateTransaction",
    "PostingLine",
    "SieVerificationCandidate",
    "SieParseResult",
    "JournalEntryDraft",
    "ImportBatch",
    "CommitResult",
    "BankPreview",
    "SiePreview",
    "ImportStats",
    # Errors
    "LedgerImportError",
    "StructuralImportError",
    "EmptyFileError",
    "UnsupportedFormatError",
    "FileTooLargeError",
    "UnbalancedEntryError",
    "CommitContractError",
    "CommitConflictError",
]
