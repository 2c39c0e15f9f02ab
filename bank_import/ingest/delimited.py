"""Delimited-text pipeline: tokenize → detect roles → assemble.

Spreadsheets are serialized to this same text shape and routed through
:func:`parse_delimited`, so detection and assembly live in one place.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..assembler import assemble_rows
from ..columns import LOW_CONFIDENCE_THRESHOLD, detect_column_mappings
from ..logging_setup import get_logger
from ..models import ColumnMapping, DetectedFormat, FileKind, ParseOptions, ParseResult
from ..tokenizer import tokenize

_logger = get_logger("bank_import.ingest.delimited")

LOW_CONFIDENCE_WARNING = "Low confidence in column detection. Please verify mappings."
EMPTY_FILE = "File is empty"
NO_TRANSACTIONS = "No transactions found in file"


def synthetic_headers(width: int) -> list[str]:
    return [f"Column {i + 1}" for i in range(width)]


def split_header(
    rows: Sequence[Sequence[str]], options: ParseOptions
) -> tuple[list[str], list[list[str]], int]:
    """Return ``(headers, data_rows, first_row_number)`` for tokenized rows.

    ``first_row_number`` is the 1-indexed source position of the first data
    row, counting skipped rows and the header row.
    """

    body = [list(r) for r in rows[options.skip_rows :]]
    if options.has_header_row:
        if not body:
            return [], [], options.skip_rows + 1
        header_row, data = body[0], body[1:]
        # Blank header cells still need a name a mapping can refer to.
        headers = [h if h else f"Column {i + 1}" for i, h in enumerate(header_row)]
        return headers, data, options.skip_rows + 2
    width = max((len(r) for r in body), default=0)
    return synthetic_headers(width), body, options.skip_rows + 1


def _missing_columns(mapping: ColumnMapping, headers: Sequence[str]) -> list[str]:
    known = set(headers)
    return [column for column in mapping.assignments().values() if column not in known]


def parse_delimited(
    text: str,
    mapping: ColumnMapping | None = None,
    options: ParseOptions | None = None,
    *,
    file_type: FileKind = FileKind.CSV,
) -> ParseResult:
    """Parse delimited text into transactions.

    When ``mapping`` is ``None`` the column roles are detected from the header
    row and the first data rows; a caller-supplied mapping (user-edited or
    remote) is used verbatim.
    """

    opts = options or ParseOptions()
    try:
        rows = tokenize(text)
        if not rows:
            return ParseResult.failure(file_type, EMPTY_FILE)

        headers, data_rows, first_row_number = split_header(rows, opts)
        warnings: list[str] = []

        detected: DetectedFormat | None = None
        if mapping is None:
            detected = detect_column_mappings(
                headers, data_rows, has_header_row=opts.has_header_row
            )
            effective = ColumnMapping.from_detected(detected)
            if detected.confidence < LOW_CONFIDENCE_THRESHOLD:
                warnings.append(LOW_CONFIDENCE_WARNING)
        else:
            effective = mapping
            for column in _missing_columns(mapping, headers):
                warnings.append(f'Mapped column "{column}" was not found in the file headers')

        assembled = assemble_rows(
            headers,
            data_rows,
            effective,
            first_row_number=first_row_number,
            amount_is_negative_for_debits=opts.amount_is_negative_for_debits,
            date_format=detected.date_format if detected else None,
        )
        if not assembled.transactions:
            return ParseResult.failure(file_type, NO_TRANSACTIONS, warnings=tuple(warnings))

        _logger.info(
            "parsed %d transactions from %d rows (%d dropped, %d warnings)",
            len(assembled.transactions),
            len(data_rows),
            assembled.dropped,
            len(assembled.errors),
        )
        return ParseResult(
            success=True,
            file_type=file_type,
            transactions=assembled.transactions,
            headers=tuple(headers),
            detected_format=detected,
            errors=assembled.errors,
            warnings=tuple(warnings),
        )
    except Exception as exc:
        _logger.warning("delimited parse failed", exc_info=True)
        return ParseResult.failure(file_type, f"Failed to parse CSV: {exc}")


__all__ = [
    "EMPTY_FILE",
    "LOW_CONFIDENCE_WARNING",
    "NO_TRANSACTIONS",
    "parse_delimited",
    "split_header",
    "synthetic_headers",
]
