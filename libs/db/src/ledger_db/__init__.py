"""ledger_db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``ledger_db.models.ledger`` (re-exported for convenience)
- The explicitly constructed ``Database`` handle in ``ledger_db.client``
"""

from __future__ import annotations

from .client import Database
from .models.ledger import (
    AuditLog,
    BankTransaction,
    Base,
    ImportBatchRecord,
    JournalEntry,
    JournalLine,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Database",
    "ImportBatchRecord",
    "BankTransaction",
    "JournalEntry",
    "JournalLine",
    "AuditLog",
]
