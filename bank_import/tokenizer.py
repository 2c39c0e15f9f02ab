"""Delimited-text tokenizer.

Bank exports are only loosely RFC 4180: stray quotes, unterminated quoted
fields, mixed ``\\r\\n``/``\\n`` line endings and padded cells are common. The
stdlib :mod:`csv` reader raises or silently merges rows on several of those,
so rows are produced here by a small two-state machine (inside / outside a
quoted field) that always flushes whatever it has at end of input.

Rules
-----
- A quote toggles quoting; a doubled quote inside a quoted field is a literal
  quote.
- A comma outside quotes ends a cell.
- ``\\n``, ``\\r\\n`` (one break) or a lone ``\\r`` outside quotes ends a row.
- Cells are trimmed; rows whose cells are all empty are dropped.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

_QUOTE = '"'
_DELIMITER = ","
_BOM = "\ufeff"


def _flush_row(rows: list[list[str]], row: list[str], cell: list[str]) -> None:
    row.append("".join(cell).strip())
    if any(c != "" for c in row):
        rows.append(row)


def tokenize(text: str) -> list[list[str]]:
    """Split ``text`` into rows of trimmed string cells."""

    rows: list[list[str]] = []
    row: list[str] = []
    cell: list[str] = []
    in_quotes = False

    if text.startswith(_BOM):
        text = text[1:]

    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        nxt = text[i + 1] if i + 1 < n else ""

        if in_quotes:
            if ch == _QUOTE and nxt == _QUOTE:
                cell.append(_QUOTE)
                i += 1
            elif ch == _QUOTE:
                in_quotes = False
            else:
                cell.append(ch)
        elif ch == _QUOTE:
            in_quotes = True
        elif ch == _DELIMITER:
            row.append("".join(cell).strip())
            cell = []
        elif ch == "\n" or ch == "\r":
            _flush_row(rows, row, cell)
            row, cell = [], []
            if ch == "\r" and nxt == "\n":
                i += 1
        else:
            cell.append(ch)
        i += 1

    # Unterminated quotes or a missing trailing newline: flush regardless.
    _flush_row(rows, row, cell)
    return rows


def _quote_cell(value: str) -> str:
    if any(c in value for c in (_QUOTE, _DELIMITER, "\n", "\r")):
        return _QUOTE + value.replace(_QUOTE, _QUOTE * 2) + _QUOTE
    return value


def serialize(rows: Iterable[Sequence[str]]) -> str:
    """Render rows back to delimited text that :func:`tokenize` reads losslessly.

    Cells are quoted only when they contain a quote, comma or line break.
    """

    return "\n".join(_DELIMITER.join(_quote_cell(c) for c in row) for row in rows)


__all__ = ["serialize", "tokenize"]
