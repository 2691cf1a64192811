from __future__ import annotations

import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from ledger_import.cli import app
from tests.helpers.db import bootstrap_sqlite_db
from tests.helpers.samples import BANK_CSV, SIE4_TEXT

runner = CliRunner()


@pytest.fixture
def bank_file(tmp_path: Path) -> Path:
    path = tmp_path / "swedbank.csv"
    path.write_bytes(BANK_CSV.encode("utf-8"))
    return path


@pytest.fixture
def sie_file(tmp_path: Path) -> Path:
    path = tmp_path / "export.se"
    path.write_bytes(SIE4_TEXT.encode("utf-8"))
    return path


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    return bootstrap_sqlite_db(tmp_path / "cli.db")


def test_init_db_import_and_list(tmp_path: Path, bank_file: Path):
    url = f"sqlite+pysqlite:///{tmp_path / 'fresh.db'}"

    result = runner.invoke(app, ["init-db", "--database-url", url])
    assert result.exit_code == 0, result.output
    assert "Database tables created" in result.output

    first = runner.invoke(app, ["import-bank", str(bank_file), "-w", "ws-1", "--database-url", url])
    assert first.exit_code == 0, first.output
    assert "Imported 2, skipped 0 (batch 1, 1 rows with errors not selected)" in first.output

    second = runner.invoke(
        app, ["import-bank", str(bank_file), "-w", "ws-1", "--database-url", url]
    )
    assert second.exit_code == 0, second.output
    assert "Imported 0, skipped 0 (batch 2, 1 rows with errors not selected)" in second.output

    listed = runner.invoke(app, ["list-imports", "-w", "ws-1", "--database-url", url])
    assert listed.exit_code == 0, listed.output
    lines = [ln for ln in listed.output.splitlines() if "swedbank.csv" in ln]
    assert len(lines) == 2
    assert lines[0].startswith("2\t")
    assert "imported=2" in lines[1]

    empty = runner.invoke(app, ["list-imports", "-w", "other", "--database-url", url])
    assert "No imports in workspace other" in empty.output


def test_preview_bank(bank_file: Path):
    result = runner.invoke(app, ["preview-bank", str(bank_file)])

    assert result.exit_code == 0, result.output
    out = result.output
    assert "File: swedbank.csv (delimited, utf-8)" in out
    assert "high confidence" in out
    assert "accounting_date: 0 (Bokföringsdag)" in out
    assert "amount: 3 (Insättning/Uttag)" in out
    assert "1\t2024-01-15\t-699.00\tspotify\tduplicate of row 0" in out
    assert '3\t\t-1.00\tTrasig rad\terror: Invalid date format: "2024-13-40"' in out
    assert "Total 4, valid 3, duplicates 1, errors 1; 2 selected for import" in out


def test_preview_bank_flags_rows_already_imported(bank_file: Path, db_url: str):
    runner.invoke(app, ["import-bank", str(bank_file), "-w", "ws-1", "--database-url", db_url])

    result = runner.invoke(
        app, ["preview-bank", str(bank_file), "-w", "ws-1", "--database-url", db_url]
    )

    assert result.exit_code == 0, result.output
    assert "0\t2024-01-15\t-699.00\tSpotify\talready imported" in result.output
    assert "0 selected for import" in result.output


def test_column_overrides_are_layered_on_the_suggestion(bank_file: Path):
    result = runner.invoke(
        app,
        [
            "preview-bank",
            str(bank_file),
            "--suggest",
            "none",
            "--date-col",
            "1",
            "--amount-col",
            "3",
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Mapping (suggestions disabled; overridden: accounting_date, amount):" in result.output
    assert "accounting_date: 1 (Valutadag)" in result.output
    assert "reference: -" in result.output
    assert "Total 4, valid 4, duplicates 1, errors 0; 3 selected for import" in result.output


def test_override_keeps_the_suggestion_confidence(bank_file: Path):
    result = runner.invoke(app, ["preview-bank", str(bank_file), "--date-col", "1"])

    assert result.exit_code == 0, result.output
    assert "Mapping (heuristic, high confidence " in result.output
    assert "%; overridden: accounting_date):" in result.output
    assert "accounting_date: 1 (Valutadag)" in result.output
    assert "amount: 3 (Insättning/Uttag)" in result.output


def test_decimal_separator_override(tmp_path: Path):
    path = tmp_path / "dot.csv"
    path.write_text("Datum,Belopp,Text\n2024-01-15,\"1,234.50\",Lön\n", encoding="utf-8")

    result = runner.invoke(app, ["preview-bank", str(path), "--decimal-separator", "."])

    assert result.exit_code == 0, result.output
    assert "0\t2024-01-15\t1234.50\tLön\tok" in result.output


@pytest.mark.parametrize(
    ("args", "message"),
    [
        (["preview-bank", "missing.csv"], "Error:"),
        (["preview-bank", "{bank}", "--suggest", "bogus"], "Unsupported suggest mode"),
        (["preview-bank", "{bank}", "--decimal-separator", ";"], "decimal separator"),
        (["import-bank", "{bank}", "-w", "ws-1"], "DATABASE_URL is not set"),
        (["preview-sie", "{bank}"], "is not a SIE file"),
        (["preview-bank", "{sie}"], "not a bank statement"),
    ],
)
def test_errors_exit_with_code_1(args, message, bank_file: Path, sie_file: Path):
    argv = [a.format(bank=bank_file, sie=sie_file) for a in args]

    result = runner.invoke(app, argv)

    assert result.exit_code == 1
    assert message in result.output


def test_preview_sie(sie_file: Path):
    result = runner.invoke(app, ["preview-sie", str(sie_file)])

    assert result.exit_code == 0, result.output
    out = result.output
    assert "File: export.se (sie4)" in out
    assert "Company: Exempel AB (556677-8899)" in out
    assert "Fiscal year: 2024-01-01 - 2024-12-31" in out
    assert "A-1\t2024-01-15\tSpotify\t2 lines\tbalanced" in out
    assert "A-2\t2024-01-16\tFelaktig\t2 lines\tUNBALANCED (difference 1.00)" in out
    assert "2 verifications, 1 unbalanced; 1 selected for import" in out


def test_import_sie(sie_file: Path, db_url: str):
    base = ["import-sie", str(sie_file), "-w", "ws-1", "--database-url", db_url]

    first = runner.invoke(app, base)
    assert first.exit_code == 0, first.output
    assert "Imported 1, skipped 0 (batch 1, 1 unbalanced not selected)" in first.output

    forced = runner.invoke(app, [*base, "--allow-unbalanced"])
    assert forced.exit_code == 0, forced.output
    assert "Imported 1, skipped 1 (batch 2, 0 unbalanced not selected)" in forced.output


def test_database_url_is_read_from_dotenv(bank_file: Path, db_url: str):
    Path(".env").write_text(f"DATABASE_URL={db_url}\n", encoding="utf-8")
    try:
        result = runner.invoke(app, ["import-bank", str(bank_file), "-w", "ws-1"])
    finally:
        os.environ.pop("DATABASE_URL", None)

    assert result.exit_code == 0, result.output
    assert "Imported 2" in result.output
