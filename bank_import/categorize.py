"""Local, rule-based categorization and merchant cleanup.

Everything here runs offline against curated tables. All tables are ordered
and the first match wins, so more specific fragments come first (``uber eat``
before ``uber``). Matching is case-insensitive. Merchant fragments start
at a word boundary and end at one, allowing a plural or possessive ``s``
(``walgreen`` matches ``WALGREENS`` but ``water`` does not match
``WATERFRONT``).

Confidence is a constant per match kind: merchant cleanup (0.9) is more
certain than the category inferred from the same match (0.85), which in turn
beats a bare keyword hit (0.8).

Suggestions from outside (a reviewer or a remote assistant) can be passed to
:func:`categorize_transactions`; they fill the rows the local pass left
uncategorized and are otherwise treated like local ones.
"""

from __future__ import annotations

import re
import string
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

from .logging_setup import get_logger
from .models import Category, CategorySuggestion, MerchantCleanup, ParsedTransaction

_logger = get_logger("bank_import.categorize")

MERCHANT_CONFIDENCE = 0.9
CATEGORY_CONFIDENCE = 0.85
KEYWORD_CONFIDENCE = 0.8
LEARNED_RULE_CONFIDENCE = 0.95


@dataclass(frozen=True, slots=True)
class MerchantPattern:
    fragment: str
    merchant: str
    category: str


def _patterns(category: str, *pairs: tuple[str, str]) -> tuple[MerchantPattern, ...]:
    return tuple(MerchantPattern(fragment, merchant, category) for fragment, merchant in pairs)


MERCHANT_PATTERNS: tuple[MerchantPattern, ...] = (
    *_patterns(
        "Food & Dining",
        ("mcdonald", "McDonald's"),
        ("starbucks", "Starbucks"),
        ("chipotle", "Chipotle"),
        ("subway", "Subway"),
        ("dunkin", "Dunkin'"),
        ("wendy", "Wendy's"),
        ("burger king", "Burger King"),
        ("taco bell", "Taco Bell"),
        ("pizza hut", "Pizza Hut"),
        ("domino", "Domino's"),
        ("chick-fil-a", "Chick-fil-A"),
        ("panera", "Panera Bread"),
        ("uber eat", "Uber Eats"),
        ("doordash", "DoorDash"),
        ("grubhub", "Grubhub"),
    ),
    *_patterns(
        "Shopping",
        ("amzn mktp", "Amazon"),
        ("amazon", "Amazon"),
        ("amzn", "Amazon"),
        ("wm supercenter", "Walmart"),
        ("wal-mart", "Walmart"),
        ("walmart", "Walmart"),
        ("target", "Target"),
        ("costco", "Costco"),
        ("best buy", "Best Buy"),
        ("home depot", "Home Depot"),
        ("lowe's", "Lowe's"),
        ("ikea", "IKEA"),
        ("apple.com", "Apple"),
        ("ebay", "eBay"),
    ),
    *_patterns(
        "Food & Dining",
        ("kroger", "Kroger"),
        ("safeway", "Safeway"),
        ("whole foods", "Whole Foods"),
        ("trader joe", "Trader Joe's"),
        ("aldi", "ALDI"),
        ("publix", "Publix"),
        ("wegman", "Wegmans"),
    ),
    *_patterns(
        "Transportation",
        ("uber", "Uber"),
        ("lyft", "Lyft"),
        ("shell", "Shell"),
        ("chevron", "Chevron"),
        ("exxon", "Exxon"),
        ("bp", "BP"),
        ("speedway", "Speedway"),
        ("wawa", "Wawa"),
    ),
    *_patterns(
        "Entertainment",
        ("netflix", "Netflix"),
        ("spotify", "Spotify"),
        ("hulu", "Hulu"),
        ("disney+", "Disney+"),
        ("disney plus", "Disney+"),
        ("hbo max", "HBO Max"),
        ("prime video", "Amazon Prime Video"),
        ("youtube", "YouTube"),
        ("apple music", "Apple Music"),
        ("playstation", "PlayStation"),
        ("xbox", "Xbox"),
        ("steam", "Steam"),
    ),
    *_patterns(
        "Bills & Utilities",
        ("at&t", "AT&T"),
        ("verizon", "Verizon"),
        ("t-mobile", "T-Mobile"),
        ("comcast", "Comcast"),
        ("xfinity", "Xfinity"),
        ("spectrum", "Spectrum"),
        ("electric", "Electric Company"),
        ("water", "Water Utility"),
        ("gas company", "Gas Company"),
    ),
    *_patterns(
        "Health & Medical",
        ("cvs", "CVS Pharmacy"),
        ("walgreen", "Walgreens"),
        ("rite aid", "Rite Aid"),
    ),
    *_patterns(
        "Income",
        ("payroll", "Payroll"),
        ("direct dep", "Direct Deposit"),
        ("salary", "Salary"),
        ("ach deposit", "ACH Deposit"),
    ),
    *_patterns(
        "Transfer",
        ("transfer", "Transfer"),
        ("zelle", "Zelle"),
        ("venmo", "Venmo"),
        ("paypal", "PayPal"),
        ("cash app", "Cash App"),
    ),
)

CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Food & Dining",
        (
            "restaurant", "cafe", "coffee", "pizza", "burger", "mcdonald", "starbucks",
            "subway", "chipotle", "panera", "chick-fil-a", "wendy", "taco", "doordash",
            "uber eats", "grubhub", "seamless", "postmates", "diner", "grill", "kitchen",
            "bakery", "deli", "sushi", "thai", "chinese", "mexican", "italian",
        ),
    ),
    (
        "Transportation",
        (
            "uber", "lyft", "taxi", "gas", "shell", "chevron", "exxon", "mobil", "bp",
            "citgo", "parking", "toll", "transit", "metro", "subway fare", "amtrak",
        ),
    ),
    (
        "Shopping",
        (
            "amazon", "target", "walmart", "costco", "best buy", "home depot", "lowes",
            "ikea", "bed bath", "kohls", "macys", "nordstrom", "tj maxx", "marshall",
            "ross", "forever 21", "old navy", "gap", "h&m", "zara",
        ),
    ),
    (
        "Entertainment",
        (
            "netflix", "hulu", "disney+", "hbo", "spotify", "apple music", "youtube",
            "movie", "cinema", "theater", "concert", "ticket", "game", "steam",
            "playstation", "xbox", "nintendo",
        ),
    ),
    (
        "Bills & Utilities",
        (
            "electric", "gas bill", "water", "internet", "cable", "phone", "verizon",
            "at&t", "t-mobile", "comcast", "spectrum", "utility", "pg&e", "edison",
        ),
    ),
    (
        "Health & Medical",
        (
            "pharmacy", "cvs", "walgreens", "doctor", "hospital", "medical", "dental",
            "vision", "optometry", "clinic", "urgent care", "prescription", "health",
        ),
    ),
    (
        "Travel",
        (
            "airline", "flight", "hotel", "airbnb", "vrbo", "expedia", "booking.com",
            "delta", "united", "american airlines", "southwest", "marriott", "hilton",
            "hyatt", "hertz", "enterprise", "avis", "rental car",
        ),
    ),
    (
        "Income",
        (
            "payroll", "direct dep", "salary", "wages", "dividend", "interest income",
            "deposit", "refund", "reimbursement", "venmo from", "zelle from",
        ),
    ),
    ("Transfer", ("transfer", "zelle", "venmo", "paypal", "wire", "ach", "withdrawal", "atm")),
)

# Keywords this short only count as whole words ("gas" is not in "Vegas").
_WHOLE_WORD_MAX_LEN = 3


def _find_category(categories: Iterable[Category], name: str) -> Category | None:
    wanted = name.casefold()
    return next((c for c in categories if c.name.casefold() == wanted), None)


def _keyword_in(text: str, keyword: str) -> bool:
    if len(keyword) <= _WHOLE_WORD_MAX_LEN:
        return re.search(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])", text) is not None
    return keyword in text


def _fragment_in(text: str, fragment: str) -> bool:
    pattern = rf"(?<![a-z0-9]){re.escape(fragment)}(?:'?s)?(?![a-z0-9])"
    return re.search(pattern, text) is not None


def match_merchant(description: str) -> MerchantPattern | None:
    lowered = description.lower()
    return next((p for p in MERCHANT_PATTERNS if _fragment_in(lowered, p.fragment)), None)


def suggest_category(
    description: str, categories: Sequence[Category]
) -> CategorySuggestion | None:
    """Keyword-table suggestion; only categories the caller knows are returned."""

    lowered = description.lower()
    for category_name, keywords in CATEGORY_KEYWORDS:
        for keyword in keywords:
            if not _keyword_in(lowered, keyword):
                continue
            category = _find_category(categories, category_name)
            if category is not None:
                return CategorySuggestion(
                    category_id=category.id,
                    category_name=category.name,
                    confidence=KEYWORD_CONFIDENCE,
                    reason=f'Matched keyword "{keyword}"',
                )
    return None


def local_categorize(
    description: str, categories: Sequence[Category]
) -> tuple[CategorySuggestion | None, MerchantCleanup | None]:
    """Return ``(category suggestion, merchant cleanup)`` for ``description``.

    A merchant-table hit yields both (the suggestion only when the caller's
    taxonomy has that category). Otherwise the keyword table may still
    suggest a category, without a merchant cleanup.
    """

    pattern = match_merchant(description)
    if pattern is None:
        return suggest_category(description, categories), None

    category = _find_category(categories, pattern.category)
    suggestion = None
    if category is not None:
        suggestion = CategorySuggestion(
            category_id=category.id,
            category_name=category.name,
            confidence=CATEGORY_CONFIDENCE,
            reason=f'Matched pattern "{pattern.fragment}"',
        )
    cleanup = MerchantCleanup(
        original=description, cleaned=pattern.merchant, confidence=MERCHANT_CONFIDENCE
    )
    return suggestion, cleanup


# ---- Merchant-name cleanup ---------------------------------------------------

_CARD_SUFFIX_RE = re.compile(r"\s*(#\d+|x{4,}\d+|\*{4,}\d+).*$", re.IGNORECASE)
_STATE_ZIP_RE = re.compile(r"\s+[A-Z]{2}\s*\d{5}(-\d{4})?$", re.IGNORECASE)
# "Austin, TX" / "AUSTIN, TX" / "Austin TX"; a bare upper-case pair like
# "BLUE BOTTLE CO" is left alone.
_CITY_STATE_RE = re.compile(r"\s+(?:[A-Za-z]+,\s*|[A-Z][a-z]+\s+)[A-Z]{2}$")
_TRAILING_ID_RE = re.compile(r"\s+\d{6,}$")
_POS_PREFIX_RE = re.compile(
    r"^(SQ\s*\*|TST\s*\*|SP\s|POS\s|CHECKCARD\s|DEBIT\s)\s*", re.IGNORECASE
)


def clean_merchant_name(raw: str) -> str:
    """Turn a raw statement descriptor into a display merchant name."""

    cleaned = raw.strip()
    cleaned = _CARD_SUFFIX_RE.sub("", cleaned)
    cleaned = _STATE_ZIP_RE.sub("", cleaned)
    cleaned = _CITY_STATE_RE.sub("", cleaned)
    cleaned = _TRAILING_ID_RE.sub("", cleaned)
    cleaned = _POS_PREFIX_RE.sub("", cleaned).strip()
    if not cleaned:
        return raw.strip()

    pattern = match_merchant(cleaned)
    if pattern is not None:
        return pattern.merchant

    if cleaned.isupper() and len(cleaned) > 3:
        cleaned = string.capwords(cleaned.lower())
    return cleaned


# ---- Checks, bills and subscriptions -----------------------------------------

CHECK_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bcheck\s*#?\s*(\d+)",
        r"\bchk\s*#?\s*(\d+)",
        r"\bck\s*#?\s*(\d+)",
        r"\bcheck\s*no\.?\s*(\d+)",
        r"^(\d{3,6})\s+check$",
        r"\bcheck\s*withdrawal\s*#?\s*(\d+)",
        r"\bpaid\s*check\s*#?\s*(\d+)",
        r"^\s*(\d{4,6})\s*$",
    )
)

_CHECK_DIGITS_MIN = 3
_CHECK_DIGITS_MAX = 8


class PaymentKind(StrEnum):
    CHECK = "check"
    BILL = "bill"
    SUBSCRIPTION = "subscription"
    REGULAR = "regular"


@dataclass(frozen=True, slots=True)
class PaymentType:
    kind: PaymentKind
    check_number: str | None = None
    merchant: str | None = None


@dataclass(frozen=True, slots=True)
class BillPattern:
    pattern: re.Pattern[str]
    kind: PaymentKind
    merchant: str


def _bill(regex: str, kind: PaymentKind, merchant: str) -> BillPattern:
    return BillPattern(re.compile(regex, re.IGNORECASE), kind, merchant)


_SUB = PaymentKind.SUBSCRIPTION
_BILL = PaymentKind.BILL

BILL_SUBSCRIPTION_PATTERNS: tuple[BillPattern, ...] = (
    _bill(r"netflix", _SUB, "Netflix"),
    _bill(r"spotify", _SUB, "Spotify"),
    _bill(r"hulu", _SUB, "Hulu"),
    _bill(r"disney\s*\+", _SUB, "Disney+"),
    _bill(r"hbo\s*max", _SUB, "HBO Max"),
    _bill(r"apple\s*(music|tv|one|arcade|icloud)", _SUB, "Apple"),
    _bill(r"amazon\s*prime", _SUB, "Amazon Prime"),
    _bill(r"youtube\s*(premium|music)", _SUB, "YouTube"),
    _bill(r"audible", _SUB, "Audible"),
    _bill(r"adobe", _SUB, "Adobe"),
    _bill(r"microsoft\s*365", _SUB, "Microsoft 365"),
    _bill(r"office\s*365", _SUB, "Microsoft 365"),
    _bill(r"dropbox", _SUB, "Dropbox"),
    _bill(r"google\s*(one|storage|workspace)", _SUB, "Google"),
    _bill(r"notion", _SUB, "Notion"),
    _bill(r"slack", _SUB, "Slack"),
    _bill(r"zoom", _SUB, "Zoom"),
    _bill(r"electric|power\s*company|edison|duke\s*energy", _BILL, "Electric"),
    _bill(r"gas\s*company|natural\s*gas", _BILL, "Gas"),
    _bill(r"water\s*(bill|utility|department)", _BILL, "Water"),
    _bill(r"internet|xfinity|comcast|spectrum|at&t|verizon\s*fios", _BILL, "Internet"),
    _bill(r"phone\s*bill|t-mobile|verizon\s*wireless", _BILL, "Phone"),
    _bill(r"insurance|geico|state\s*farm|progressive|allstate", _BILL, "Insurance"),
    _bill(r"\brent\b|apartment|landlord|property\s*management", _BILL, "Rent"),
    _bill(r"mortgage|home\s*loan|wells\s*fargo\s*home", _BILL, "Mortgage"),
    _bill(r"car\s*payment|auto\s*loan", _BILL, "Car Payment"),
    _bill(r"student\s*loan|nelnet|navient|fedloan|sofi", _BILL, "Student Loan"),
)


def _valid_check_digits(value: str) -> str | None:
    digits = re.sub(r"\D", "", value)
    if _CHECK_DIGITS_MIN <= len(digits) <= _CHECK_DIGITS_MAX:
        return digits
    return None


def detect_check_number(description: str, check_number_value: str | None = None) -> str | None:
    """Check number from a dedicated column value, else from the description."""

    if check_number_value and check_number_value.strip():
        digits = _valid_check_digits(check_number_value)
        if digits:
            return digits
    for pattern in CHECK_PATTERNS:
        match = pattern.search(description)
        if match is None:
            continue
        digits = _valid_check_digits(match.group(1))
        if digits:
            return digits
    return None


def detect_payment_type(description: str) -> PaymentType:
    check_number = detect_check_number(description)
    if check_number:
        return PaymentType(PaymentKind.CHECK, check_number=check_number)
    for bill in BILL_SUBSCRIPTION_PATTERNS:
        if bill.pattern.search(description):
            return PaymentType(bill.kind, merchant=bill.merchant)
    return PaymentType(PaymentKind.REGULAR)


# ---- Learned rules and batch categorization ----------------------------------

_STOP_WORDS = frozenset({"the", "and", "for", "from", "with"})
_RULE_WORD_MIN_LEN = 4


@dataclass(frozen=True, slots=True)
class CategoryCorrection:
    """A reviewer's category choice for one description."""

    description: str
    category_id: str
    category_name: str | None = None


def _rule_words(description: str) -> list[str]:
    text = re.sub(r"[^a-z0-9\s]", "", description.lower())
    return [w for w in text.split() if len(w) >= _RULE_WORD_MIN_LEN and w not in _STOP_WORDS]


def build_category_rules(corrections: Iterable[CategoryCorrection]) -> dict[str, str]:
    """Map each correction's first distinctive word to its category id.

    Later corrections for the same word replace earlier ones.
    """

    rules: dict[str, str] = {}
    for correction in corrections:
        words = _rule_words(correction.description)
        if words:
            rules[words[0]] = correction.category_id
    return rules


def _learned_suggestion(
    description: str, rules: Mapping[str, str], categories: Sequence[Category]
) -> CategorySuggestion | None:
    by_id = {c.id: c for c in categories}
    for word in _rule_words(description):
        category = by_id.get(rules.get(word, ""))
        if category is not None:
            return CategorySuggestion(
                category_id=category.id,
                category_name=category.name,
                confidence=LEARNED_RULE_CONFIDENCE,
                reason=f'Matched learned rule "{word}"',
            )
    return None


@dataclass(frozen=True, slots=True)
class CategorizationResult:
    row_number: int
    category: CategorySuggestion | None
    merchant: MerchantCleanup | None
    payment_type: PaymentType


def categorize_transactions(
    transactions: Iterable[ParsedTransaction],
    categories: Sequence[Category],
    *,
    rules: Mapping[str, str] | None = None,
    external: Mapping[int, CategorySuggestion] | None = None,
) -> tuple[CategorizationResult, ...]:
    """Categorize each transaction locally, in input order.

    Precedence per row: learned ``rules``, then the built-in tables, then the
    ``external`` suggestion for that row number.
    """

    results: list[CategorizationResult] = []
    for tx in transactions:
        suggestion, merchant = local_categorize(tx.description, categories)
        if rules:
            suggestion = _learned_suggestion(tx.description, rules, categories) or suggestion
        if suggestion is None and external:
            suggestion = external.get(tx.row_number)

        check_number = detect_check_number(tx.description, tx.check_number)
        if check_number:
            payment = PaymentType(PaymentKind.CHECK, check_number=check_number)
        else:
            payment = detect_payment_type(tx.description)

        results.append(CategorizationResult(tx.row_number, suggestion, merchant, payment))

    _logger.debug(
        "categorized %d of %d transactions",
        sum(1 for r in results if r.category is not None),
        len(results),
    )
    return tuple(results)


__all__ = [
    "BILL_SUBSCRIPTION_PATTERNS",
    "CATEGORY_CONFIDENCE",
    "CATEGORY_KEYWORDS",
    "CHECK_PATTERNS",
    "KEYWORD_CONFIDENCE",
    "MERCHANT_CONFIDENCE",
    "MERCHANT_PATTERNS",
    "BillPattern",
    "CategorizationResult",
    "CategoryCorrection",
    "MerchantPattern",
    "PaymentKind",
    "PaymentType",
    "build_category_rules",
    "categorize_transactions",
    "clean_merchant_name",
    "detect_check_number",
    "detect_payment_type",
    "local_categorize",
    "match_merchant",
    "suggest_category",
]
