"""Shared SQLAlchemy models registry for the ledger database.

Currently includes the import-pipeline models used by ``ledger_import``.
"""

from .ledger import AuditLog, BankTransaction, Base, ImportBatchRecord, JournalEntry, JournalLine

__all__ = [
    "Base",
    "ImportBatchRecord",
    "BankTransaction",
    "JournalEntry",
    "JournalLine",
    "AuditLog",
]
