# ruff: noqa: I001
"""CLI for the ``ledger_import`` package.

This module exposes callable command handlers (``cmd_preview_bank``,
``cmd_import_bank`` ...) and a Typer-based console interface on top of them.
Environment variables (``DATABASE_URL``, ``OPENAI_API_KEY``,
``LEDGER_IMPORT_*``) are loaded from a local ``.env`` using ``python-dotenv``
before any command runs. Business logic lives in ``ledger_import.api`` and the
modules it re-exports; handlers only read files, print and map errors to exit
codes.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .errors import LedgerImportError
from .field_mapping import SuggestionResult
from .logging_setup import configure_logging
from .models import CandidateTransaction, FieldMapping, LocaleConfig, ParsedTable, RawFile
from .settings import ImportSettings, load_settings
from .suggestion import Suggester


# ---- Small module-level helpers used by CLI commands -------------------------


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def _read(path: str, settings: ImportSettings) -> RawFile:
    from .ingest.utils import read_raw_file

    return read_raw_file(path, max_bytes=settings.max_file_bytes)


def _locale(settings: ImportSettings, decimal_separator: str | None) -> LocaleConfig:
    sep = decimal_separator or settings.decimal_separator
    if sep not in {",", "."}:
        raise ValueError(f"decimal separator must be ',' or '.', got {sep!r}")
    return LocaleConfig(decimal_separator=sep)  # type: ignore[arg-type]


def _column_overrides(
    date_col: int | None,
    amount_col: int | None,
    reference_col: int | None,
    balance_col: int | None,
) -> dict[str, int]:
    given = {
        "accounting_date": date_col,
        "amount": amount_col,
        "reference": reference_col,
        "booked_balance": balance_col,
    }
    return {k: v for k, v in given.items() if v is not None}


def _resolve_mapping(
    raw: RawFile,
    config: LocaleConfig,
    suggester: Suggester,
    overrides: dict[str, int],
) -> tuple[FieldMapping | None, SuggestionResult | None]:
    """Return ``(mapping, suggestion)`` when columns were overridden, else ``(None, None)``.

    Overrides are layered on top of the suggested mapping so a user can fix a
    single column without restating the others. The suggestion that seeded
    the mapping is returned for display; the suggester runs only here.
    """

    if not overrides:
        return None, None
    from .preview import preview_bank_file

    seeded = preview_bank_file(raw, None, config, suggester=suggester)
    return seeded.mapping.with_overrides(**overrides), seeded.suggestion


def _row_status(t: CandidateTransaction) -> str:
    if t.validation_errors:
        return "error: " + "; ".join(t.validation_errors)
    if t.matches_committed:
        return "already imported"
    if t.is_duplicate:
        return f"duplicate of row {t.first_occurrence_row}"
    return "ok"


def _format_row(t: CandidateTransaction) -> str:
    amount = f"{t.amount:.2f}" if t.amount is not None else ""
    return "\t".join(
        [str(t.row_index), t.accounting_date or "", amount, t.reference or "", _row_status(t)]
    )


def _print_mapping(mapping: FieldMapping, table: ParsedTable) -> None:
    from .field_mapping import sample_columns
    from .models import FIELD_NAMES

    columns = {c.index: c for c in sample_columns(table)}
    for name in FIELD_NAMES:
        col = mapping.column_for(name)
        sample = columns.get(col) if col is not None else None
        if col is None:
            label = "-"
        elif sample is None:
            label = f"{col} (no such column)"
        else:
            label = f"{col} ({sample.header}) e.g. {', '.join(sample.samples) or '-'}"
        print(f"  {name}: {label}")


# ---- Command handlers ----------------------------------------------------------


def cmd_preview_bank(
    path: str,
    *,
    workspace: str | None = None,
    database_url: str | None = None,
    decimal_separator: str | None = None,
    suggest: str = "heuristic",
    overrides: dict[str, int] | None = None,
) -> int:
    """Print the preview of a bank statement, one tab-separated line per row.

    When ``workspace`` is given and a database is configured, rows already
    committed to that workspace are flagged.
    """

    from .api import preview_bank_import
    from .field_mapping import Suggested, overall_confidence
    from .suggestion import get_suggester

    settings = load_settings(database_url=database_url)
    try:
        raw = _read(path, settings)
        config = _locale(settings, decimal_separator)
        suggester = get_suggester(
            suggest,  # type: ignore[arg-type]
            decimal_separator=config.decimal_separator,
            model=settings.suggest_model,
        )
        mapping, seeded = _resolve_mapping(raw, config, suggester, overrides or {})
        if workspace and settings.database_url:
            from ledger_db import Database

            db = Database.from_env(settings.database_url)
            try:
                with db.session_scope() as session:
                    preview = preview_bank_import(
                        raw,
                        mapping,
                        config,
                        suggester=suggester,
                        session=session,
                        workspace_id=workspace,
                    )
            finally:
                db.dispose()
        else:
            preview = preview_bank_import(raw, mapping, config, suggester=suggester)
    except (LedgerImportError, OSError, ValueError, RuntimeError) as e:
        return _error(str(e))

    sniffed = preview.sniff
    print(f"File: {preview.file_name} ({sniffed.format.value}, {sniffed.encoding_used})")
    suggestion = seeded if seeded is not None else preview.suggestion
    if isinstance(suggestion, Suggested):
        level, pct = overall_confidence(suggestion.suggestion.confidence)
        label = f"{suggestion.suggestion.source}, {level} confidence {pct}%"
    else:
        label = suggestion.reason
    if overrides:
        label += f"; overridden: {', '.join(sorted(overrides))}"
    print(f"Mapping ({label}):")
    if preview.table.headers:
        _print_mapping(preview.mapping, preview.table)
    for t in preview.transactions:
        print(_format_row(t))
    s = preview.stats
    print(
        f"Total {s.total}, valid {s.valid}, duplicates {s.duplicates}, errors {s.errors}; "
        f"{len(preview.selected)} selected for import"
    )
    return 0


def cmd_import_bank(
    path: str,
    *,
    workspace: str,
    database_url: str | None = None,
    decimal_separator: str | None = None,
    suggest: str = "heuristic",
    overrides: dict[str, int] | None = None,
    include_duplicates: bool = False,
) -> int:
    """Import a bank statement into ``workspace`` and print the counts."""

    from ledger_db import Database

    from .api import import_bank_file
    from .suggestion import get_suggester

    settings = load_settings(database_url=database_url)
    try:
        raw = _read(path, settings)
        config = _locale(settings, decimal_separator)
        suggester = get_suggester(
            suggest,  # type: ignore[arg-type]
            decimal_separator=config.decimal_separator,
            model=settings.suggest_model,
        )
        mapping, _ = _resolve_mapping(raw, config, suggester, overrides or {})
        db = Database.from_env(settings.database_url)
        try:
            with db.session_scope() as session:
                preview, result = import_bank_file(
                    session,
                    workspace,
                    raw,
                    mapping,
                    config,
                    suggester=suggester,
                    include_duplicates=include_duplicates,
                )
        finally:
            db.dispose()
    except (LedgerImportError, OSError, ValueError, RuntimeError) as e:
        return _error(str(e))

    print(
        f"Imported {result.imported}, skipped {result.skipped} "
        f"(batch {result.batch_id}, {preview.stats.errors} rows with errors not selected)"
    )
    return 0


def cmd_preview_sie(
    path: str,
    *,
    period_start: str | None = None,
    period_end: str | None = None,
) -> int:
    """Print the verifications of a SIE file with their balance status."""

    from .preview import preview_sie_file

    settings = load_settings()
    try:
        raw = _read(path, settings)
        preview = preview_sie_file(raw, period_start=period_start, period_end=period_end)
    except (LedgerImportError, OSError, ValueError) as e:
        return _error(str(e))

    r = preview.result
    print(f"File: {preview.file_name} ({r.format.value})")
    if r.company_name or r.org_number:
        print(f"Company: {r.company_name or '-'} ({r.org_number or '-'})")
    if r.fiscal_year is not None:
        print(f"Fiscal year: {r.fiscal_year.start} - {r.fiscal_year.end}")
    for p in preview.verifications:
        v = p.verification
        status = "balanced" if p.balanced else f"UNBALANCED (difference {p.check.difference})"
        print(f"{v.source_id}\t{v.date}\t{v.description}\t{len(v.lines)} lines\t{status}")
    for msg in r.errors:
        print(f"error: {msg}")
    for msg in r.warnings:
        print(f"warning: {msg}")
    unbalanced = sum(1 for p in preview.verifications if not p.balanced)
    print(
        f"{len(preview.verifications)} verifications, {unbalanced} unbalanced; "
        f"{len(preview.selected)} selected for import"
    )
    return 0


def cmd_import_sie(
    path: str,
    *,
    workspace: str,
    database_url: str | None = None,
    allow_unbalanced: bool = False,
    period_start: str | None = None,
    period_end: str | None = None,
) -> int:
    """Import the verifications of a SIE file into ``workspace``."""

    from ledger_db import Database

    from .api import import_sie_file

    settings = load_settings(database_url=database_url)
    try:
        raw = _read(path, settings)
        db = Database.from_env(settings.database_url)
        try:
            with db.session_scope() as session:
                preview, result = import_sie_file(
                    session,
                    workspace,
                    raw,
                    allow_unbalanced=allow_unbalanced,
                    period_start=period_start,
                    period_end=period_end,
                )
        finally:
            db.dispose()
    except (LedgerImportError, OSError, ValueError, RuntimeError) as e:
        return _error(str(e))

    left_out = len(preview.verifications) - result.imported - result.skipped
    print(
        f"Imported {result.imported}, skipped {result.skipped} "
        f"(batch {result.batch_id}, {left_out} unbalanced not selected)"
    )
    return 0


def cmd_list_imports(
    *, workspace: str, database_url: str | None = None, limit: int = 50
) -> int:
    from ledger_db import Database

    from .persistence import list_import_batches

    settings = load_settings(database_url=database_url)
    try:
        db = Database.from_env(settings.database_url)
        try:
            with db.session_scope() as session:
                batches = list_import_batches(session, workspace, limit=limit)
        finally:
            db.dispose()
    except (LedgerImportError, ValueError, RuntimeError) as e:
        return _error(str(e))

    if not batches:
        print(f"No imports in workspace {workspace}")
        return 0
    for b in batches:
        print(
            f"{b.id}\t{b.created_at:%Y-%m-%d %H:%M}\t{b.kind}\t{b.source_format}\t"
            f"{b.source_file_name}\timported={b.imported}\tskipped={b.skipped}"
        )
    return 0


def cmd_init_db(*, database_url: str | None = None) -> int:
    """Create the ledger tables directly from the ORM metadata."""

    from ledger_db import Database

    settings = load_settings(database_url=database_url)
    try:
        db = Database.from_env(settings.database_url)
        try:
            db.create_all()
        finally:
            db.dispose()
    except RuntimeError as e:
        return _error(str(e))
    print("Database tables created")
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Preview and import Swedish bank statements (CSV/OFX) and SIE accounting "
        "exports. Loads DATABASE_URL and OPENAI_API_KEY from a local .env."
    ),
)


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults). Typer inspects these when used as default values below.
FILE_ARGUMENT = typer.Argument(
    ..., help="Path to the file to import", dir_okay=False, file_okay=True
)
WORKSPACE_OPTION: OptionInfo = typer.Option(
    "--workspace", "-w", help="Workspace the data is imported into"
)
OPTIONAL_WORKSPACE_OPTION: OptionInfo = typer.Option(
    "--workspace",
    "-w",
    help="Flag rows already imported into this workspace (needs DATABASE_URL)",
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
DECIMAL_SEPARATOR_OPTION: OptionInfo = typer.Option(
    "--decimal-separator",
    help="Decimal separator of amounts: ',' (default) or '.'",
)
SUGGEST_OPTION: OptionInfo = typer.Option(
    "--suggest",
    help="Column mapping suggester: heuristic, openai or none",
)
DATE_COL_OPTION: OptionInfo = typer.Option(
    "--date-col", min=0, help="0-based column index of the accounting date"
)
AMOUNT_COL_OPTION: OptionInfo = typer.Option(
    "--amount-col", min=0, help="0-based column index of the amount"
)
REFERENCE_COL_OPTION: OptionInfo = typer.Option(
    "--reference-col", min=0, help="0-based column index of the reference text"
)
BALANCE_COL_OPTION: OptionInfo = typer.Option(
    "--balance-col", min=0, help="0-based column index of the booked balance"
)
PERIOD_START_OPTION: OptionInfo = typer.Option(
    "--period-start", help="Only verifications on or after this date (YYYY-MM-DD)"
)
PERIOD_END_OPTION: OptionInfo = typer.Option(
    "--period-end", help="Only verifications on or before this date (YYYY-MM-DD)"
)
LOG_LEVEL_OPTION: OptionInfo = typer.Option(
    "--log-level", help="Log level name or number (falls back to LEDGER_IMPORT_LOG_LEVEL)."
)


def _exit(code: int) -> None:
    if code != 0:
        raise typer.Exit(code)


@app.command("preview-bank")
def preview_bank_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    workspace: Annotated[str | None, OPTIONAL_WORKSPACE_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    decimal_separator: Annotated[str | None, DECIMAL_SEPARATOR_OPTION] = None,
    suggest: Annotated[str, SUGGEST_OPTION] = "heuristic",
    date_col: Annotated[int | None, DATE_COL_OPTION] = None,
    amount_col: Annotated[int | None, AMOUNT_COL_OPTION] = None,
    reference_col: Annotated[int | None, REFERENCE_COL_OPTION] = None,
    balance_col: Annotated[int | None, BALANCE_COL_OPTION] = None,
) -> None:
    """Show how a bank statement would be imported, without writing anything."""

    _exit(
        cmd_preview_bank(
            str(path),
            workspace=workspace,
            database_url=database_url,
            decimal_separator=decimal_separator,
            suggest=suggest,
            overrides=_column_overrides(date_col, amount_col, reference_col, balance_col),
        )
    )


@app.command("import-bank")
def import_bank_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    workspace: Annotated[str, WORKSPACE_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    decimal_separator: Annotated[str | None, DECIMAL_SEPARATOR_OPTION] = None,
    suggest: Annotated[str, SUGGEST_OPTION] = "heuristic",
    date_col: Annotated[int | None, DATE_COL_OPTION] = None,
    amount_col: Annotated[int | None, AMOUNT_COL_OPTION] = None,
    reference_col: Annotated[int | None, REFERENCE_COL_OPTION] = None,
    balance_col: Annotated[int | None, BALANCE_COL_OPTION] = None,
    include_duplicates: bool = typer.Option(
        False, help="Also import rows repeated within the file."
    ),
) -> None:
    """Import the valid, non-duplicate rows of a bank statement."""

    _exit(
        cmd_import_bank(
            str(path),
            workspace=workspace,
            database_url=database_url,
            decimal_separator=decimal_separator,
            suggest=suggest,
            overrides=_column_overrides(date_col, amount_col, reference_col, balance_col),
            include_duplicates=include_duplicates,
        )
    )


@app.command("preview-sie")
def preview_sie_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    period_start: Annotated[str | None, PERIOD_START_OPTION] = None,
    period_end: Annotated[str | None, PERIOD_END_OPTION] = None,
) -> None:
    """List the verifications of a SIE4/SIE5 file and their balance status."""

    _exit(cmd_preview_sie(str(path), period_start=period_start, period_end=period_end))


@app.command("import-sie")
def import_sie_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    workspace: Annotated[str, WORKSPACE_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    allow_unbalanced: bool = typer.Option(
        False, help="Also import unbalanced verifications, flagged as such."
    ),
    period_start: Annotated[str | None, PERIOD_START_OPTION] = None,
    period_end: Annotated[str | None, PERIOD_END_OPTION] = None,
) -> None:
    """Import the verifications of a SIE file as journal entries."""

    _exit(
        cmd_import_sie(
            str(path),
            workspace=workspace,
            database_url=database_url,
            allow_unbalanced=allow_unbalanced,
            period_start=period_start,
            period_end=period_end,
        )
    )


@app.command("list-imports")
def list_imports_cmd(
    *,
    workspace: Annotated[str, WORKSPACE_OPTION],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    limit: int = typer.Option(50, min=1, help="Maximum number of batches to show."),
) -> None:
    """List recent import batches of a workspace, newest first."""

    _exit(cmd_list_imports(workspace=workspace, database_url=database_url, limit=limit))


@app.command("init-db")
def init_db_cmd(
    *,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Create the ledger tables (local SQLite setups; use alembic elsewhere)."""

    _exit(cmd_init_db(database_url=database_url))


@app.callback()
def _root(log_level: Annotated[str | None, LOG_LEVEL_OPTION] = None) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging. An explicit
    ``--log-level`` replaces an earlier configuration.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level, force=log_level is not None)


if __name__ == "__main__":  # pragma: no cover - exercised via the console script
    # Running as a module: `python -m ledger_import.cli`
    app()
