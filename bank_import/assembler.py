"""Transaction assembly: role-mapped rows → :class:`ParsedTransaction`.

One output record per input row, numbered by the row's 1-indexed position in
the source. Rows are never rejected for a single bad field: an unparseable
date or amount becomes a ``warning`` diagnostic on an otherwise kept row. A
row is dropped only when it carries no signal at all (no date, no amount and
no description).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .models import (
    AmountStyle,
    ColumnMapping,
    ParsedTransaction,
    ParseError,
    Role,
    Severity,
    TransactionType,
)
from .normalizers import parse_amount, parse_date

UNKNOWN_DESCRIPTION = "Unknown"


def classify_type(amount: Decimal | None, check_number: str | None) -> TransactionType:
    """``check`` when a check number is present, else by the amount's sign."""

    if check_number:
        return TransactionType.CHECK
    if amount is not None and amount < 0:
        return TransactionType.DEBIT
    return TransactionType.CREDIT


def split_amount(
    debit: Decimal | None, credit: Decimal | None, *, debit_is_negative: bool = True
) -> Decimal | None:
    """Combine separate debit/credit values into one signed amount.

    A nonzero debit wins over a credit on the same row.
    """

    if debit is not None and debit != 0:
        return -abs(debit) if debit_is_negative else abs(debit)
    if credit is not None and credit != 0:
        return abs(credit)
    return None


@dataclass(frozen=True, slots=True)
class AssembledRows:
    transactions: tuple[ParsedTransaction, ...]
    errors: tuple[ParseError, ...]
    dropped: int


class _RowReader:
    """Resolve mapped roles to raw cell strings for one header layout."""

    def __init__(self, headers: Sequence[str], mapping: ColumnMapping) -> None:
        self.headers = list(headers)
        self.mapping = mapping
        # First occurrence wins for duplicated header names.
        self._index: dict[str, int] = {}
        for i, h in enumerate(self.headers):
            self._index.setdefault(h, i)

    def value(self, row: Sequence[str], role: Role) -> str:
        column = self.mapping.column_for(role)
        if not column:
            return ""
        idx = self._index.get(column)
        if idx is None or idx >= len(row):
            return ""
        return (row[idx] or "").strip()

    def raw_data(self, row: Sequence[str]) -> dict[str, Any]:
        raw: dict[str, Any] = {}
        for i, cell in enumerate(row):
            label = self.headers[i] if i < len(self.headers) else f"Column {i + 1}"
            raw.setdefault(label, cell)
        for label in self.headers[len(row) :]:
            raw.setdefault(label, None)
        return raw


def _amount_warning(row_number: int, column: str | None, raw: str) -> ParseError:
    return ParseError(
        message=f'Could not parse amount: "{raw}"',
        severity=Severity.WARNING,
        row=row_number,
        column=column,
    )


def assemble_rows(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    mapping: ColumnMapping,
    *,
    first_row_number: int = 1,
    amount_is_negative_for_debits: bool = True,
    date_format: str | None = None,
) -> AssembledRows:
    """Build transactions for ``rows`` using ``mapping``.

    Parameters
    ----------
    headers:
        Column labels; mapping columns refer to these names.
    rows:
        Data rows (header and skipped rows already removed).
    first_row_number:
        1-indexed source position of ``rows[0]``.
    amount_is_negative_for_debits:
        Sign applied to debit values in split debit/credit layouts.
    date_format:
        Optional date pattern hint tried before the generic pattern list.
    """

    reader = _RowReader(headers, mapping)
    split = mapping.amount_style == AmountStyle.SPLIT
    transactions: list[ParsedTransaction] = []
    errors: list[ParseError] = []
    dropped = 0

    for offset, row in enumerate(rows):
        row_number = first_row_number + offset
        row_errors: list[ParseError] = []

        date_raw = reader.value(row, Role.DATE)
        date = parse_date(date_raw, date_format)

        if split:
            debit_raw = reader.value(row, Role.DEBIT)
            credit_raw = reader.value(row, Role.CREDIT)
            debit = parse_amount(debit_raw)
            credit = parse_amount(credit_raw)
            amount = split_amount(debit, credit, debit_is_negative=amount_is_negative_for_debits)
            if debit_raw and debit is None:
                row_errors.append(_amount_warning(row_number, mapping.debit, debit_raw))
            if credit_raw and credit is None:
                row_errors.append(_amount_warning(row_number, mapping.credit, credit_raw))
        else:
            amount_raw = reader.value(row, Role.AMOUNT)
            amount = parse_amount(amount_raw)
            if amount_raw and amount is None:
                row_errors.append(_amount_warning(row_number, mapping.amount, amount_raw))

        memo = reader.value(row, Role.MEMO)
        description = reader.value(row, Role.DESCRIPTION) or memo or UNKNOWN_DESCRIPTION

        if date is None and amount is None and description == UNKNOWN_DESCRIPTION:
            dropped += 1
            continue

        if date_raw and date is None:
            row_errors.insert(
                0,
                ParseError(
                    message=f'Could not parse date: "{date_raw}"',
                    severity=Severity.WARNING,
                    row=row_number,
                    column=mapping.date,
                ),
            )
        errors.extend(row_errors)

        check_number = reader.value(row, Role.CHECK_NUMBER) or None
        transactions.append(
            ParsedTransaction(
                date=date,
                amount=amount,
                description=description,
                type=classify_type(amount, check_number),
                row_number=row_number,
                raw_data=reader.raw_data(row),
                memo=memo or None,
                check_number=check_number,
                reference_id=reader.value(row, Role.REFERENCE_ID) or None,
            )
        )

    return AssembledRows(tuple(transactions), tuple(errors), dropped)


__all__ = [
    "UNKNOWN_DESCRIPTION",
    "AssembledRows",
    "assemble_rows",
    "classify_type",
    "split_amount",
]
