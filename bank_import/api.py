"""Top-level orchestration: route a file to the right ingest pipeline.

Callers own I/O. They hand over the file name and its bytes (or already
decoded text); nothing here touches the filesystem or the network.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .columns import detect_column_mappings
from .detect import detect_file_type
from .ingest.delimited import parse_delimited, split_header
from .ingest.ofx import parse_ofx
from .ingest.spreadsheet import parse_spreadsheet, preview_spreadsheet
from .logging_setup import get_logger
from .models import ColumnMapping, DetectedFormat, FileKind, ParseOptions, ParseResult
from .tokenizer import tokenize

_logger = get_logger("bank_import.api")

UNSUPPORTED_FILE_TYPE = (
    "Unsupported file type. Please use CSV, Excel (.xlsx/.xls), or bank export (.qbo/.qfx/.ofx)"
)

_MARKUP_KINDS = frozenset({FileKind.QBO, FileKind.QFX, FileKind.OFX})
_SPREADSHEET_KINDS = frozenset({FileKind.XLSX, FileKind.XLS})


def decode_text(data: bytes | str) -> str:
    """UTF-8 (BOM-aware) with a cp1252 fallback for legacy bank exports."""

    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


def parse_file(
    file_name: str,
    data: bytes | str,
    mapping: ColumnMapping | None = None,
    options: ParseOptions | None = None,
) -> ParseResult:
    """Detect the file kind and run the matching pipeline. Never raises."""

    kind = FileKind.UNKNOWN
    try:
        kind = detect_file_type(file_name, data)
        _logger.debug("parsing %r as %s", file_name, kind.value)
        if kind is FileKind.UNKNOWN:
            return ParseResult.failure(FileKind.UNKNOWN, UNSUPPORTED_FILE_TYPE)

        if kind in _SPREADSHEET_KINDS:
            if isinstance(data, str):
                return ParseResult.failure(kind, "Spreadsheet files must be provided as bytes")
            return parse_spreadsheet(data, mapping, options, file_type=kind)

        text = decode_text(data)
        if kind in _MARKUP_KINDS:
            return parse_ofx(text, file_type=kind)
        return parse_delimited(text, mapping, options, file_type=kind)
    except Exception as exc:
        _logger.warning("parse of %r failed", file_name, exc_info=True)
        return ParseResult.failure(kind, f"Failed to parse file: {exc}")


@dataclass(frozen=True, slots=True)
class FilePreview:
    """What a review screen shows before committing to a full parse."""

    file_type: FileKind
    headers: tuple[str, ...] | None = None
    sample_rows: tuple[tuple[str, ...], ...] | None = None
    detected_format: DetectedFormat | None = None
    transaction_count: int | None = None
    sheet_names: tuple[str, ...] | None = None
    error: str | None = None


def _freeze(rows: Sequence[Sequence[str]]) -> tuple[tuple[str, ...], ...]:
    return tuple(tuple(r) for r in rows)


def preview_file(file_name: str, data: bytes | str, max_rows: int = 5) -> FilePreview:
    """Headers, a few sample rows and the detected mapping. Never raises."""

    kind = FileKind.UNKNOWN
    try:
        kind = detect_file_type(file_name, data)
        if kind is FileKind.UNKNOWN:
            return FilePreview(file_type=kind, error="Unsupported file type")

        if kind in _SPREADSHEET_KINDS:
            if isinstance(data, str):
                return FilePreview(file_type=kind, error="Could not read Excel file")
            preview = preview_spreadsheet(data, max_rows=max_rows, file_type=kind)
            if preview is None:
                return FilePreview(file_type=kind, error="Could not read Excel file")
            return FilePreview(
                file_type=kind,
                headers=preview.headers,
                sample_rows=preview.rows,
                detected_format=detect_column_mappings(preview.headers, preview.rows),
                sheet_names=preview.sheet_names,
            )

        text = decode_text(data)
        if kind in _MARKUP_KINDS:
            result = parse_ofx(text, file_type=kind)
            return FilePreview(
                file_type=kind,
                detected_format=result.detected_format,
                transaction_count=len(result.transactions),
                error=None if result.success else result.errors[0].message,
            )

        rows = tokenize(text)
        if not rows:
            return FilePreview(file_type=kind, error="File is empty")
        headers, data_rows, _first = split_header(rows, ParseOptions())
        return FilePreview(
            file_type=kind,
            headers=tuple(headers),
            sample_rows=_freeze(data_rows[:max_rows]),
            detected_format=detect_column_mappings(headers, data_rows),
            transaction_count=len(data_rows),
        )
    except Exception as exc:
        _logger.warning("preview of %r failed", file_name, exc_info=True)
        return FilePreview(file_type=kind, error=str(exc) or "Failed to preview file")


__all__ = ["UNSUPPORTED_FILE_TYPE", "FilePreview", "decode_text", "parse_file", "preview_file"]
