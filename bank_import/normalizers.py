"""Cell value normalizers: amounts and calendar dates.

Both parsers are total: any input (including ``None``) yields either a value
or ``None``; nothing here raises on malformed data. Callers decide whether a
``None`` deserves a diagnostic.

Amounts
-------
Currency symbols, thousands separators and whitespace are stripped. A value
wrapped in parentheses is negative (accounting convention), as is a trailing
minus (``123.45-``) or a ``DR`` suffix. Leading sign, currency symbol and
parentheses may appear in any order (``-$1.00``, ``$(1.00)``, ``($1.00)``).

Dates
-----
Recognized patterns are tried in the order of :data:`DATE_PATTERNS`; each has
its own field-order rule. ``MM/DD/YYYY`` is US month-first while
``DD-MM-YYYY`` is day-first. Anything else that still looks like a date is
handed to ``dateutil`` (month-first) and accepted only when it spells out
year, month and day; ``12/14`` or ``Jan 15`` stay unparsed.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from dateutil import parser as date_parser

# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------

_CURRENCY_SYMBOLS = frozenset("$€£¥")
_THOUSANDS_AND_SPACES = re.compile(r"[,\s']")
_NUMBER_RE = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)")


def _strip_markers(s: str) -> tuple[str, bool]:
    """Strip sign, currency and parenthesis markers; return (rest, negative)."""

    negative = False

    upper = s.upper()
    if upper.endswith("CR"):
        s = s[:-2].rstrip()
    elif upper.endswith("DR"):
        negative = True
        s = s[:-2].rstrip()
    if s.endswith("-"):
        negative = True
        s = s[:-1].rstrip()

    # Iteratively strip leading sign, currency symbol, and surrounding
    # parentheses until stable. This supports any ordering of these markers.
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s and s[-1] in _CURRENCY_SYMBOLS:
            s = s[:-1].rstrip()
            changed = True
        # Surrounding parentheses indicate negativity regardless of sign.
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break
    return s, negative


def parse_amount(raw: str | None) -> Decimal | None:
    """Return the signed decimal in ``raw`` or ``None`` when it isn't one."""

    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None

    s, negative = _strip_markers(s)
    s = _THOUSANDS_AND_SPACES.sub("", s)
    if not _NUMBER_RE.fullmatch(s):
        return None
    try:
        d = Decimal(s)
    except InvalidOperation:  # pragma: no cover - guarded by the regex
        return None
    return -abs(d) if negative else d


def is_likely_amount(raw: str | None) -> bool:
    return parse_amount(raw) is not None


def format_amount(d: Decimal) -> str:
    """Two decimals, ASCII dot, leading minus for negatives."""

    q = d.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{q:.2f}"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_MONTHS: dict[str, int] = {
    name: i
    for i, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}

# Two-digit years below the pivot belong to the 2000s, the rest to the 1900s.
_YEAR_PIVOT = 50


def _expand_year(y: str) -> int:
    value = int(y)
    if len(y) <= 2:
        return 2000 + value if value < _YEAR_PIVOT else 1900 + value
    return value


def _month_number(token: str) -> int:
    month = _MONTHS.get(token[:3].lower())
    if month is None:
        raise ValueError(f"unknown month: {token!r}")
    return month


def _month_first_slash(s: str) -> date:
    m, d, y = s.split("/")
    return date(_expand_year(y), int(m), int(d))


def _iso(s: str) -> date:
    y, m, d = s.split("-")
    return date(int(y), int(m), int(d))


def _day_first_dash(s: str) -> date:
    d, m, y = s.split("-")
    return date(int(y), int(m), int(d))


def _day_month_name(s: str) -> date:
    d, mon, y = s.split("-")
    return date(_expand_year(y), _month_number(mon), int(d))


def _month_name_first(s: str) -> date:
    mon, d, y = s.replace(",", " ").split()
    return date(int(y), _month_number(mon), int(d))


@dataclass(frozen=True, slots=True)
class DatePattern:
    name: str
    regex: re.Pattern[str]
    parse: Callable[[str], date]


DATE_PATTERNS: tuple[DatePattern, ...] = (
    DatePattern("MM/DD/YYYY", re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$"), _month_first_slash),
    DatePattern("MM/DD/YY", re.compile(r"^\d{1,2}/\d{1,2}/\d{2}$"), _month_first_slash),
    DatePattern("YYYY-MM-DD", re.compile(r"^\d{4}-\d{2}-\d{2}$"), _iso),
    DatePattern("DD-MM-YYYY", re.compile(r"^\d{2}-\d{2}-\d{4}$"), _day_first_dash),
    DatePattern("DD-MMM-YY", re.compile(r"^\d{1,2}-[A-Za-z]{3}-\d{2,4}$"), _day_month_name),
    DatePattern(
        "MMM DD, YYYY", re.compile(r"^[A-Za-z]{3}\s+\d{1,2},?\s+\d{4}$"), _month_name_first
    ),
)

_PATTERNS_BY_NAME: dict[str, DatePattern] = {p.name: p for p in DATE_PATTERNS}

# The generic fallback only sees values with a date-ish separator or a month
# word; bare digit runs (ids, amounts) are never dates.
_GENERIC_CANDIDATE = re.compile(r"\d.*[/\-.\s]|[A-Za-z]{3,}.*\d|\d.*[A-Za-z]{3,}")
# A value is accepted only when it names year, month and day itself: parsing
# against two defaults that differ in every field must agree.
_GENERIC_DEFAULTS = (datetime(1900, 1, 1), datetime(1904, 2, 2))


def match_date_format(raw: str | None) -> str | None:
    """Return the name of the first recognized pattern matching ``raw``."""

    if not raw:
        return None
    s = raw.strip()
    for pattern in DATE_PATTERNS:
        if pattern.regex.match(s):
            return pattern.name
    return None


def is_likely_date(raw: str | None) -> bool:
    return match_date_format(raw) is not None


def _try_pattern(pattern: DatePattern, s: str) -> date | None:
    if not pattern.regex.match(s):
        return None
    try:
        return pattern.parse(s)
    except ValueError:
        return None


def _generic_parse(s: str) -> date | None:
    if s.isdigit() or len(s) > 64 or not _GENERIC_CANDIDATE.search(s):
        return None
    try:
        first, second = (
            date_parser.parse(s, dayfirst=False, default=d).date() for d in _GENERIC_DEFAULTS
        )
    except (ValueError, OverflowError):
        return None
    return first if first == second else None


def parse_date(raw: str | None, date_format: str | None = None) -> str | None:
    """Return ``raw`` as an ISO ``YYYY-MM-DD`` string, or ``None``.

    ``date_format`` (a :data:`DATE_PATTERNS` name) is tried first when given;
    the ordered pattern list and the generic parser follow.
    """

    if raw is None:
        return None
    s = str(raw).strip()
    if not s:
        return None

    hinted = _PATTERNS_BY_NAME.get(date_format) if date_format else None
    candidates = (hinted, *DATE_PATTERNS) if hinted else DATE_PATTERNS
    for pattern in candidates:
        parsed = _try_pattern(pattern, s)
        if parsed is not None:
            return parsed.isoformat()

    parsed = _generic_parse(s)
    return parsed.isoformat() if parsed is not None else None


__all__ = [
    "DATE_PATTERNS",
    "DatePattern",
    "format_amount",
    "is_likely_amount",
    "is_likely_date",
    "match_date_format",
    "parse_amount",
    "parse_date",
]
