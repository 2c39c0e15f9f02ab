from decimal import Decimal

import pytest

from bank_import.categorize import (
    CATEGORY_CONFIDENCE,
    KEYWORD_CONFIDENCE,
    LEARNED_RULE_CONFIDENCE,
    MERCHANT_CONFIDENCE,
    CategoryCorrection,
    PaymentKind,
    build_category_rules,
    categorize_transactions,
    clean_merchant_name,
    detect_check_number,
    detect_payment_type,
    local_categorize,
    suggest_category,
)
from bank_import.models import Category, CategorySuggestion, ParsedTransaction, TransactionType

CATEGORIES = [
    Category("c1", "Food & Dining"),
    Category("c2", "Shopping"),
    Category("c3", "Transportation"),
    Category("c4", "Income"),
    Category("c5", "Bills & Utilities"),
]


def _tx(description: str, row: int, check_number: str | None = None) -> ParsedTransaction:
    return ParsedTransaction(
        date="2024-01-15",
        amount=Decimal("-10.00"),
        description=description,
        type=TransactionType.DEBIT,
        row_number=row,
        check_number=check_number,
    )


def test_merchant_match_gives_category_and_cleanup():
    suggestion, cleanup = local_categorize("STARBUCKS STORE #1234", CATEGORIES)

    assert suggestion.category_id == "c1"
    assert suggestion.confidence == CATEGORY_CONFIDENCE
    assert suggestion.reason == 'Matched pattern "starbucks"'
    assert cleanup.cleaned == "Starbucks"
    assert cleanup.original == "STARBUCKS STORE #1234"
    assert cleanup.confidence == MERCHANT_CONFIDENCE
    assert cleanup.confidence > suggestion.confidence


@pytest.mark.parametrize(
    ("description", "merchant", "category_id"),
    [
        ("UBER EATS ORDER", "Uber Eats", "c1"),
        ("UBER TRIP 123", "Uber", "c3"),
        ("AMZN Mktp US*2K3XY", "Amazon", "c2"),
        ("WM SUPERCENTER #5", "Walmart", "c2"),
    ],
)
def test_first_matching_pattern_wins(description, merchant, category_id):
    suggestion, cleanup = local_categorize(description, CATEGORIES)
    assert cleanup.cleaned == merchant
    assert suggestion.category_id == category_id


def test_merchant_category_outside_taxonomy():
    suggestion, cleanup = local_categorize("NETFLIX.COM", CATEGORIES)
    assert suggestion is None
    assert cleanup.cleaned == "Netflix"


def test_keyword_fallback_without_merchant():
    suggestion, cleanup = local_categorize("Corner Coffee House", CATEGORIES)

    assert cleanup is None
    assert suggestion.category_name == "Food & Dining"
    assert suggestion.confidence == KEYWORD_CONFIDENCE
    assert suggestion.reason == 'Matched keyword "coffee"'


def test_merchant_fragments_do_not_match_inside_words():
    suggestion, cleanup = local_categorize("Waterfront Grill", CATEGORIES)

    assert cleanup is None
    assert suggestion.category_name == "Food & Dining"
    assert suggestion.reason == 'Matched keyword "grill"'


def test_no_match():
    assert local_categorize("XYZZY 42", CATEGORIES) == (None, None)


def test_short_keywords_match_whole_words_only():
    assert suggest_category("Shell Gas Station", CATEGORIES).category_name == "Transportation"
    assert suggest_category("Las Vegas Hotel", CATEGORIES) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("SQ *BLUE BOTTLE COFFEE", "Blue Bottle Coffee"),
        ("STARBUCKS STORE #1234 SEATTLE WA", "Starbucks"),
        ("JOE'S PIZZA 98765432", "Joe's Pizza"),
        ("Local Bakery Austin, TX", "Local Bakery"),
        ("CORNER STORE TX 78701", "Corner Store"),
        ("POS WALGREENS 1234567", "Walgreens"),
        ("AMZN Mktp US*2K3XY", "Amazon"),
        ("ABC", "ABC"),
        ("WATERFRONT GRILL", "Waterfront Grill"),
        ("SHELLYS DELI", "Shellys Deli"),
        ("STARGET SUPPLY", "Starget Supply"),
        ("CITY WATER DEPT", "Water Utility"),
        ("MCDONALD'S F1234", "McDonald's"),
    ],
)
def test_clean_merchant_name(raw, expected):
    assert clean_merchant_name(raw) == expected


@pytest.mark.parametrize(
    ("description", "column_value", "expected"),
    [
        ("Check #1234", None, "1234"),
        ("CHK 5678", None, "5678"),
        ("CHECK NO. 2045", None, "2045"),
        ("1042 CHECK", None, "1042"),
        ("Coffee", "00123", "00123"),
        ("Coffee", "12", None),
        ("Check #12", None, None),
        ("CHECKCARD 0412 STARBUCKS", None, None),
        ("TRUCK STOP 12345", None, None),
    ],
)
def test_detect_check_number(description, column_value, expected):
    assert detect_check_number(description, column_value) == expected


@pytest.mark.parametrize(
    ("description", "kind", "merchant"),
    [
        ("NETFLIX.COM", PaymentKind.SUBSCRIPTION, "Netflix"),
        ("GEICO AUTO", PaymentKind.BILL, "Insurance"),
        ("Monthly rent payment", PaymentKind.BILL, "Rent"),
        ("Current account interest", PaymentKind.REGULAR, None),
    ],
)
def test_detect_payment_type(description, kind, merchant):
    payment = detect_payment_type(description)
    assert payment.kind == kind
    assert payment.merchant == merchant


def test_check_payment_type_carries_number():
    payment = detect_payment_type("Check #1234")
    assert payment.kind == PaymentKind.CHECK
    assert payment.check_number == "1234"


def test_build_category_rules():
    rules = build_category_rules(
        [
            CategoryCorrection("The Home Depot #123", "c2"),
            CategoryCorrection("and for with", "c3"),
        ]
    )
    assert rules == {"home": "c2"}


def test_batch_precedence():
    transactions = [
        _tx("STARBUCKS #12", 2),
        _tx("Mystery Vendor", 3),
        _tx("Chk 1001 paid", 4),
        _tx("Joe Plumbing Co", 5),
        _tx("Payment", 6, check_number="2002"),
    ]
    rules = build_category_rules([CategoryCorrection("Joe Plumbing Co", "c5")])
    external = {3: CategorySuggestion("c2", "Shopping", 0.7, "reviewer")}

    results = categorize_transactions(transactions, CATEGORIES, rules=rules, external=external)
    by_row = {r.row_number: r for r in results}

    assert [r.row_number for r in results] == [2, 3, 4, 5, 6]
    assert by_row[2].category.category_id == "c1"
    assert by_row[2].merchant.cleaned == "Starbucks"
    assert by_row[3].category == external[3]
    assert by_row[4].category is None
    assert by_row[4].payment_type.kind == PaymentKind.CHECK
    assert by_row[4].payment_type.check_number == "1001"
    assert by_row[5].category.category_id == "c5"
    assert by_row[5].category.confidence == LEARNED_RULE_CONFIDENCE
    assert by_row[6].payment_type.check_number == "2002"


def test_learned_rule_beats_built_in_tables():
    rules = {"starbucks": "c2"}
    (result,) = categorize_transactions([_tx("STARBUCKS #12", 2)], CATEGORIES, rules=rules)
    assert result.category.category_id == "c2"
    assert result.category.reason == 'Matched learned rule "starbucks"'
