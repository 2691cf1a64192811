"""Public API and orchestration for the ``ledger_import`` package.

This module is the stable import surface for hosts (the CLI, a web backend).
The preview functions are pure; the ``import_*`` functions run preview, build
and commit against a caller-provided SQLAlchemy session and leave the
transaction boundary to the caller::

    from ledger_db import Database
    from ledger_import.api import import_bank_file

    db = Database.from_env()
    with db.session_scope() as session:
        preview, result = import_bank_file(session, "ws-1", raw)
"""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from .models import CommitResult, FieldMapping, LocaleConfig, RawFile
from .preview import (
    BankPreview,
    SiePreview,
    build_bank_batch,
    build_sie_batch,
    preview_bank_file,
    preview_sie_file,
)
from .suggestion import Suggester

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

# Persistence imports are local within functions so pure preview use does not
# pull in the database layer.


def preview_bank_import(
    raw: RawFile,
    mapping: FieldMapping | None = None,
    config: LocaleConfig | None = None,
    *,
    suggester: Suggester | None = None,
    session: Session | None = None,
    workspace_id: str | None = None,
) -> BankPreview:
    """Preview a bank file, flagging rows already committed when a session is given."""

    lookup = None
    if session is not None and workspace_id is not None:
        from .persistence import committed_transaction_keys

        lookup = partial(committed_transaction_keys, session, workspace_id)
    return preview_bank_file(
        raw, mapping, config, suggester=suggester, committed_lookup=lookup
    )


def import_bank_file(
    session: Session,
    workspace_id: str,
    raw: RawFile,
    mapping: FieldMapping | None = None,
    config: LocaleConfig | None = None,
    *,
    suggester: Suggester | None = None,
    include_duplicates: bool = False,
) -> tuple[BankPreview, CommitResult]:
    """Preview ``raw`` and commit its default selection in one step.

    With ``include_duplicates`` the rows flagged as repeats within the file
    are imported too. Rows matching transactions committed by an earlier
    import are never imported.
    """

    from .persistence import commit_bank_transactions

    preview = preview_bank_import(
        raw, mapping, config, suggester=suggester, session=session, workspace_id=workspace_id
    )
    selected: tuple[int, ...] = preview.selected
    if include_duplicates:
        selected = tuple(
            t.row_index
            for t in preview.transactions
            if t.is_valid and not t.matches_committed
        )
    batch = build_bank_batch(preview, workspace_id, selected)
    return preview, commit_bank_transactions(session, batch)


def import_sie_file(
    session: Session,
    workspace_id: str,
    raw: RawFile,
    *,
    allow_unbalanced: bool = False,
    period_start: str | None = None,
    period_end: str | None = None,
) -> tuple[SiePreview, CommitResult]:
    """Preview a SIE file and commit its verifications.

    Unbalanced verifications are left out unless ``allow_unbalanced`` is set,
    in which case they are stored flagged as unbalanced.
    """

    from .persistence import commit_sie_verifications

    preview = preview_sie_file(raw, period_start=period_start, period_end=period_end)
    selected: tuple[str, ...] = preview.selected
    if allow_unbalanced:
        selected = tuple(p.verification.source_id for p in preview.verifications)
    batch = build_sie_batch(preview, workspace_id, selected, allow_unbalanced=allow_unbalanced)
    return preview, commit_sie_verifications(session, batch, allow_unbalanced=allow_unbalanced)


__all__ = [
    "BankPreview",
    "SiePreview",
    "preview_bank_import",
    "preview_sie_file",
    "build_bank_batch",
    "build_sie_batch",
    "import_bank_file",
    "import_sie_file",
]
