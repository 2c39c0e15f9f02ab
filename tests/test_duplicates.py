from decimal import Decimal

from bank_import.duplicates import (
    duplicate_key,
    find_suspected_duplicates,
    fingerprint,
    rolling_hash,
)
from bank_import.models import ParsedTransaction, TransactionType


def _tx(row, description="Coffee Shop", amount="-12.34", reference_id=None):
    return ParsedTransaction(
        date="2024-01-15",
        amount=Decimal(amount),
        description=description,
        type=TransactionType.DEBIT,
        row_number=row,
        reference_id=reference_id,
    )


def test_rolling_hash_matches_browser_string_hash():
    assert rolling_hash("") == 0
    assert rolling_hash("a") == 97
    assert rolling_hash("ab") == 97 * 31 + 98
    # Wraps to the signed 32-bit minimum.
    assert rolling_hash("polygenelubricants") == -(2**31)


def test_fingerprint_is_deterministic_and_case_insensitive():
    a = fingerprint("2024-01-15", -12.34, "Coffee Shop")
    b = fingerprint("2024-01-15", Decimal("-12.34"), "  coffee shop ")
    assert a == b
    assert a == fingerprint("2024-01-15", -12.34, "Coffee Shop")
    assert a != fingerprint("2024-01-15", -12.35, "Coffee Shop")


def test_fingerprint_amount_normalization():
    assert fingerprint("d", 100, "x") == fingerprint("d", Decimal("100.00"), "x")
    assert fingerprint("d", None, "x") == fingerprint("d", 0, "x")


def test_fingerprint_is_base36_text():
    value = fingerprint("2024-01-15", -12.34, "Coffee Shop")
    assert value
    assert set(value) <= set("0123456789abcdefghijklmnopqrstuvwxyz")
    assert fingerprint(None, None, None) == fingerprint("", 0, "")


def test_duplicate_key_prefers_reference_id():
    assert duplicate_key(_tx(1, reference_id="FIT-9")) == "FIT-9"
    assert duplicate_key(_tx(1)) == fingerprint("2024-01-15", Decimal("-12.34"), "Coffee Shop")


def test_find_suspected_duplicates():
    transactions = [
        _tx(1),
        _tx(2, description="COFFEE SHOP"),
        _tx(3, description="Bookstore"),
        _tx(4, reference_id="REF9"),
    ]
    suspects = find_suspected_duplicates(transactions, existing_keys={"REF9"})

    assert suspects == {1: (2,), 2: (1,), 4: (None,)}
