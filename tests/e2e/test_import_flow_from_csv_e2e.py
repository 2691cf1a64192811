# ruff: noqa: I001
from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import select

from ledger_db import BankTransaction, Database, JournalEntry

from ledger_import.api import import_bank_file, import_sie_file, preview_bank_import
from ledger_import.field_mapping import Suggested
from ledger_import.models import FieldMapping
from ledger_import.persistence import list_import_batches
from ledger_import.settings import DEFAULT_SUGGEST_MODEL
from ledger_import.suggestion import get_suggester
import ledger_import.suggestion as suggestion_mod

from tests.helpers.db import bootstrap_sqlite_db, count_rows
from tests.helpers.openai_stub import OpenAIStub, mapping_answer
from tests.helpers.samples import bank_csv, sie4


def test_e2e_bank_and_sie_import_with_model_mapping(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
):
    # -------------------------
    # DB bootstrap
    # -------------------------
    db = Database(bootstrap_sqlite_db(tmp_path / "ledger-e2e.db"))

    # -------------------------
    # Stub the OpenAI client
    # -------------------------
    calls: list[dict[str, Any]] = []
    answer = mapping_answer(
        accounting_date=0, amount=3, reference=2, booked_balance=4, confidence=0.95
    )
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(suggestion_mod, "_create_client", lambda: OpenAIStub(answer, calls))
    suggester = get_suggester("openai")

    try:
        # -------------------------
        # Preview, then import the default selection
        # -------------------------
        preview = preview_bank_import(bank_csv(), suggester=suggester)
        assert isinstance(preview.suggestion, Suggested)
        assert preview.suggestion.suggestion.source == "openai"
        assert preview.mapping == FieldMapping(
            accounting_date=0, amount=3, reference=2, booked_balance=4
        )
        assert preview.selected == (0, 2)

        with db.session_scope() as session:
            _, bank_result = import_bank_file(session, "ws-e2e", bank_csv(), suggester=suggester)
        assert (bank_result.imported, bank_result.skipped) == (2, 0)

        # A repeated preview sees both rows as already imported.
        with db.session_scope() as session:
            again = preview_bank_import(
                bank_csv(), suggester=suggester, session=session, workspace_id="ws-e2e"
            )
        assert again.selected == ()
        assert again.stats.duplicates == 3

        # -------------------------
        # SIE import into the same workspace
        # -------------------------
        with db.session_scope() as session:
            sie_preview, sie_result = import_sie_file(session, "ws-e2e", sie4())
        assert [p.balanced for p in sie_preview.verifications] == [True, False]
        assert sie_result.imported == 1

        # -------------------------
        # Assertions against the stored ledger
        # -------------------------
        with db.session_scope() as session:
            amounts = session.scalars(
                select(BankTransaction.amount).order_by(BankTransaction.accounting_date)
            ).all()
            assert amounts == [Decimal("-699.00"), Decimal("-1234.50")]
            assert count_rows(session, JournalEntry) == 1
            history = list_import_batches(session, "ws-e2e")
            assert [b.kind for b in history] == ["sie", "bank"]
    finally:
        db.dispose()

    # Three previews asked the model once each.
    assert len(calls) == 3
    assert {c["model"] for c in calls} == {DEFAULT_SUGGEST_MODEL}
    assert calls[0]["text"]["format"]["name"] == "bank_csv_field_mapping"
