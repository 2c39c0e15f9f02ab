"""Spreadsheet adapter (xlsx/xls).

The selected sheet is read with pandas, every cell is rendered to text, and
the grid is serialized to delimited text and handed to
:func:`~bank_import.ingest.delimited.parse_delimited`. Nothing about column
roles or amounts is decided here.
"""

from __future__ import annotations

import io
import os
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import pandas as pd

from ..logging_setup import get_logger
from ..models import ColumnMapping, FileKind, ParseOptions, ParseResult
from ..tokenizer import serialize, tokenize
from .delimited import parse_delimited

_logger = get_logger("bank_import.ingest.spreadsheet")

MAX_ROWS_ENV = "BANK_IMPORT_MAX_ROWS"
DEFAULT_MAX_ROWS = 100_000

_ENGINES = {FileKind.XLSX: "openpyxl", FileKind.XLS: "xlrd"}


class WorkbookError(ValueError):
    """The workbook opened but has no usable sheet."""


@dataclass(frozen=True, slots=True)
class SheetPreview:
    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]
    sheet_names: tuple[str, ...]


def resolve_max_rows(max_rows: int | None = None) -> int:
    """Explicit value, else ``BANK_IMPORT_MAX_ROWS``, else :data:`DEFAULT_MAX_ROWS`."""

    if max_rows is not None:
        return max_rows
    env_val = os.getenv(MAX_ROWS_ENV)
    if env_val:
        try:
            value = int(env_val.strip())
        except ValueError:
            _logger.warning("ignoring non-integer %s=%r", MAX_ROWS_ENV, env_val)
        else:
            if value > 0:
                return value
            _logger.warning("ignoring non-positive %s=%r", MAX_ROWS_ENV, env_val)
    return DEFAULT_MAX_ROWS


def render_cell(value: Any) -> str:
    """Render one spreadsheet cell the way it reads on screen."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return ""
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    if pd.isna(value):
        return ""
    return str(value)


def _engine(file_type: FileKind) -> str:
    return _ENGINES.get(file_type, "openpyxl")


def _read_sheet(
    data: bytes, file_type: FileKind, sheet_index: int, nrows: int | None
) -> tuple[list[str], str, list[list[str]]]:
    with pd.ExcelFile(io.BytesIO(data), engine=_engine(file_type)) as book:
        sheet_names = [str(name) for name in book.sheet_names]
        if not sheet_names:
            raise WorkbookError("No sheets found in Excel file")
        if sheet_index >= len(sheet_names):
            raise WorkbookError(
                f"Sheet index {sheet_index} is out of range "
                f"(file has {len(sheet_names)} sheets)"
            )
        frame = book.parse(
            sheet_name=book.sheet_names[sheet_index], header=None, dtype=object, nrows=nrows
        )
    rows = [[render_cell(v) for v in record] for record in frame.itertuples(index=False)]
    return sheet_names, sheet_names[sheet_index], rows


def to_delimited_text(rows: Sequence[Sequence[str]]) -> str:
    # Trailing empty cells are padding from the sheet's used range.
    trimmed = []
    for row in rows:
        cells = list(row)
        while cells and cells[-1] == "":
            cells.pop()
        trimmed.append(cells)
    return serialize(trimmed)


def parse_spreadsheet(
    data: bytes,
    mapping: ColumnMapping | None = None,
    options: ParseOptions | None = None,
    *,
    file_type: FileKind = FileKind.XLSX,
) -> ParseResult:
    """Parse one sheet of a workbook through the delimited pipeline."""

    opts = options or ParseOptions()
    limit = resolve_max_rows(opts.max_rows)
    try:
        sheet_names, sheet_name, rows = _read_sheet(data, file_type, opts.sheet_index, limit + 1)
    except WorkbookError as exc:
        return ParseResult.failure(file_type, str(exc))
    except Exception as exc:
        _logger.warning("could not open workbook", exc_info=True)
        return ParseResult.failure(file_type, f"Failed to parse Excel file: {exc}")

    truncated = len(rows) > limit
    if truncated:
        rows = rows[:limit]

    _logger.debug("sheet %r: %d rows read (limit %d)", sheet_name, len(rows), limit)
    result = parse_delimited(to_delimited_text(rows), mapping, opts, file_type=file_type)

    if truncated:
        result = result.with_warning(f"Only the first {limit} rows of the sheet were read")
    if len(sheet_names) > 1:
        result = result.with_warning(
            f'File has {len(sheet_names)} sheets. Imported from: "{sheet_name}"'
        )
    return result


def get_sheet_names(data: bytes, *, file_type: FileKind = FileKind.XLSX) -> list[str]:
    """Sheet names in workbook order; empty when the workbook cannot be opened."""

    try:
        with pd.ExcelFile(io.BytesIO(data), engine=_engine(file_type)) as book:
            return [str(name) for name in book.sheet_names]
    except Exception:
        _logger.warning("could not read sheet names", exc_info=True)
        return []


def preview_spreadsheet(
    data: bytes,
    sheet_index: int = 0,
    max_rows: int = 10,
    *,
    file_type: FileKind = FileKind.XLSX,
) -> SheetPreview | None:
    """Header row plus up to ``max_rows`` data rows, or ``None`` if unreadable."""

    try:
        sheet_names, _name, rows = _read_sheet(data, file_type, sheet_index, max_rows + 1)
    except Exception:
        _logger.warning("could not preview workbook", exc_info=True)
        return None

    grid = tokenize(to_delimited_text(rows))
    if not grid:
        return None
    return SheetPreview(
        headers=tuple(grid[0]),
        rows=tuple(tuple(r) for r in grid[1 : max_rows + 1]),
        sheet_names=tuple(sheet_names),
    )


__all__ = [
    "DEFAULT_MAX_ROWS",
    "MAX_ROWS_ENV",
    "SheetPreview",
    "WorkbookError",
    "get_sheet_names",
    "parse_spreadsheet",
    "preview_spreadsheet",
    "render_cell",
    "resolve_max_rows",
]
