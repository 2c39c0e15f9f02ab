"""CLI for the ``bank_import`` package.

Command handlers (``cmd_detect``, ``cmd_parse``, ``cmd_preview``) read the file,
call into :mod:`bank_import.api`, print the outcome and return an exit code.
The Typer app wraps them. Environment variables (``BANK_IMPORT_LOG_LEVEL``,
``BANK_IMPORT_MAX_ROWS``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from pydantic import TypeAdapter
from typer.models import ArgumentInfo

from .api import FilePreview, parse_file, preview_file
from .categorize import CATEGORY_KEYWORDS, CategorizationResult, categorize_transactions
from .detect import detect_file_type
from .logging_setup import configure_logging
from .models import Category, ParseOptions, ParseResult
from .normalizers import format_amount


@dataclass(frozen=True, slots=True)
class ParseReport:
    result: ParseResult
    categorization: tuple[CategorizationResult, ...] | None = None


def default_categories() -> list[Category]:
    """Category names known to the built-in tables, id == name."""

    return [Category(id=name, name=name) for name, _keywords in CATEGORY_KEYWORDS]


def _read(path: Path) -> bytes | None:
    try:
        return path.read_bytes()
    except OSError as e:
        print(f"Error: cannot read {path}: {e}", file=sys.stderr)
        return None


def _print_result(
    result: ParseResult, categorization: Sequence[CategorizationResult] | None
) -> None:
    by_row = {c.row_number: c for c in categorization or ()}
    for tx in result.transactions:
        amount = format_amount(tx.amount) if tx.amount is not None else ""
        cells = [str(tx.row_number), tx.date or "", amount, tx.type.value, tx.description]
        match = by_row.get(tx.row_number)
        if match is not None:
            cells.append(match.category.category_name if match.category else "")
        print("\t".join(cells))
    for err in result.errors:
        where = f"row {err.row}: " if err.row is not None else ""
        print(f"{err.severity.value}: {where}{err.message}", file=sys.stderr)
    for warning in result.warnings:
        print(f"warning: {warning}", file=sys.stderr)


def cmd_detect(path: Path) -> int:
    data = _read(path)
    if data is None:
        return 1
    print(detect_file_type(path.name, data).value)
    return 0


def cmd_parse(
    path: Path,
    options: ParseOptions,
    *,
    categorize: bool = False,
    as_json: bool = False,
) -> int:
    """Parse ``path`` and print one line per transaction (or a JSON report).

    Returns ``1`` when the parse fails or the file cannot be read.
    """

    data = _read(path)
    if data is None:
        return 1

    result = parse_file(path.name, data, options=options)
    categorization = None
    if categorize and result.success:
        categorization = categorize_transactions(result.transactions, default_categories())

    if as_json:
        report = ParseReport(result=result, categorization=categorization)
        print(TypeAdapter(ParseReport).dump_json(report, indent=2).decode("utf-8"))
    else:
        _print_result(result, categorization)
    return 0 if result.success else 1


def cmd_preview(path: Path, rows: int = 5) -> int:
    data = _read(path)
    if data is None:
        return 1
    preview = preview_file(path.name, data, max_rows=rows)
    print(TypeAdapter(FilePreview).dump_json(preview, indent=2).decode("utf-8"))
    return 0 if preview.error is None else 1


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Parse bank exports (CSV, Excel, OFX/QFX/QBO) into canonical transactions.",
)

# Module-level argument object to satisfy ruff B008 (no calls in parameter
# defaults).
FILE_ARGUMENT: ArgumentInfo = typer.Argument(
    ...,
    help="Path to the bank export file",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports unreadable files itself
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("detect")
def detect_cmd(path: Annotated[Path, FILE_ARGUMENT]) -> None:
    """Print the detected file type."""

    _exit(cmd_detect(path))


@app.command("parse")
def parse_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    no_header: bool = typer.Option(False, "--no-header", help="First row is data, not headers."),
    skip_rows: int = typer.Option(0, "--skip-rows", min=0, help="Rows to skip before the header."),
    sheet: int = typer.Option(0, "--sheet", min=0, help="Spreadsheet sheet index."),
    debits_positive: bool = typer.Option(
        False, "--debits-positive", help="Keep split-column debits positive."
    ),
    max_rows: int | None = typer.Option(
        None, "--max-rows", min=1, help="Spreadsheet row limit (env BANK_IMPORT_MAX_ROWS)."
    ),
    categorize: bool = typer.Option(False, "--categorize", help="Add local category suggestions."),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON."),
) -> None:
    """Parse a file and print its transactions."""

    options = ParseOptions(
        has_header_row=not no_header,
        skip_rows=skip_rows,
        sheet_index=sheet,
        amount_is_negative_for_debits=not debits_positive,
        max_rows=max_rows,
    )
    _exit(cmd_parse(path, options, categorize=categorize, as_json=as_json))


@app.command("preview")
def preview_cmd(
    path: Annotated[Path, FILE_ARGUMENT],
    *,
    rows: int = typer.Option(5, "--rows", min=1, help="Sample rows to show."),
) -> None:
    """Show headers, sample rows and the detected column mapping."""

    _exit(cmd_preview(path, rows))


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging once."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


if __name__ == "__main__":  # pragma: no cover
    app()
