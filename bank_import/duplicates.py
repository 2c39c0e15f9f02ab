"""Duplicate-suspicion fingerprints.

:func:`fingerprint` is a 32-bit rolling hash rendered in base 36. It is NOT a
cryptographic or collision-resistant identifier: distinct transactions can
share a fingerprint. It only flags probable duplicates for a reviewer; the
persistence layer owns the exact duplicate check.

The hash is bit-compatible with the ``h * 31 + code unit`` string hash used by
browser clients (UTF-16 code units, signed 32-bit wrap, absolute value), so
fingerprints computed here and in a web client agree.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from .models import ParsedTransaction

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_SEPARATOR = "|"


def _amount_text(amount: Decimal | float | int | str | None) -> str:
    if amount is None:
        return "0"
    try:
        d = Decimal(str(amount))
    except InvalidOperation:
        return "0"
    if d == 0 or not d.is_finite():
        return "0"
    return format(d.normalize(), "f")


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def rolling_hash(text: str) -> int:
    """Signed 32-bit ``h * 31 + unit`` hash over UTF-16 code units."""

    h = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def fingerprint(
    date: str | None, amount: Decimal | float | int | None, description: str | None
) -> str:
    normalized = _SEPARATOR.join(
        (date or "", _amount_text(amount), (description or "").lower().strip())
    )
    return _to_base36(abs(rolling_hash(normalized)))


def duplicate_key(tx: ParsedTransaction) -> str:
    """Institution reference id when present, else the fingerprint."""

    if tx.reference_id:
        return tx.reference_id
    return fingerprint(tx.date, tx.amount, tx.description)


def find_suspected_duplicates(
    transactions: Iterable[ParsedTransaction], existing_keys: Iterable[str] = ()
) -> dict[int, tuple[int | None, ...]]:
    """Rows sharing a :func:`duplicate_key` with another row or a known key.

    Returns ``{row_number: (other row numbers...)}``; a ``None`` entry means
    the key matched one of ``existing_keys`` (already imported).
    """

    known = frozenset(existing_keys)
    rows_by_key: dict[str, list[int]] = defaultdict(list)
    keys: list[tuple[int, str]] = []
    for tx in transactions:
        key = duplicate_key(tx)
        rows_by_key[key].append(tx.row_number)
        keys.append((tx.row_number, key))

    suspects: dict[int, tuple[int | None, ...]] = {}
    for row_number, key in keys:
        matches: list[int | None] = [r for r in rows_by_key[key] if r != row_number]
        if key in known:
            matches.append(None)
        if matches:
            suspects[row_number] = tuple(matches)
    return suspects


__all__ = ["duplicate_key", "find_suspected_duplicates", "fingerprint", "rolling_hash"]
