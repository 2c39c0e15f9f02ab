"""Heuristic column-role detection for delimited bank exports.

Given the header row and a few sample rows, assign each column at most one
:class:`~bank_import.models.Role` and report how sure we are.

Two passes
----------
1. Header names. Each header is lower-cased and matched against
   :data:`COLUMN_KEYWORDS`. The best unclaimed candidate role wins (exact
   match first, then the keyword covering the most words, then
   :data:`ROLE_PRIORITY`). A header spelling a role's canonical name
   (``Description`` next to ``Details``) is served first. Header-claimed
   ``date``/``amount`` columns are then confirmed against their sample values.
2. Content. Columns still unclaimed are run through :data:`CONTENT_RULES` in
   order, looking at up to :data:`SAMPLE_SIZE` values.

Every rule evaluation yields a :class:`RuleOutcome` (weight earned / weight
possible). The confidence is a plain fold of those outcomes into an immutable
:class:`Score`, so each rule can be tested on its own. A role, once claimed,
is never reassigned.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from functools import reduce
from types import MappingProxyType

from .logging_setup import get_logger
from .models import AmountStyle, DetectedFormat, Role
from .normalizers import is_likely_amount, is_likely_date, match_date_format

_logger = get_logger("bank_import.columns")

# ---- Tunables ----------------------------------------------------------------

SAMPLE_SIZE: int = 5
MIN_CONTENT_MATCHES: int = 3
DESCRIPTION_MIN_AVG_LENGTH: float = 10.0
DESCRIPTION_MIN_DISTINCT: int = 2
LOW_CONFIDENCE_THRESHOLD: float = 0.5

HEADER_MATCH_WEIGHT: float = 2.0
CONFIRMATION_WEIGHT: float = 1.0

# The first keyword of each role is its canonical header name; a header
# spelling it exactly claims the role before any other header is considered.
# Otherwise keyword order is irrelevant.
COLUMN_KEYWORDS: Mapping[Role, tuple[str, ...]] = MappingProxyType(
    {
        Role.DATE: (
            "date",
            "trans date",
            "transaction date",
            "posted",
            "posting date",
            "post date",
            "effective date",
            "value date",
            "dt",
        ),
        Role.AMOUNT: ("amount", "amt", "sum", "total", "value", "transaction amount"),
        Role.DESCRIPTION: (
            "description",
            "desc",
            "narrative",
            "details",
            "transaction description",
            "particulars",
            "payee",
            "name",
            "merchant",
        ),
        Role.DEBIT: (
            "debit",
            "withdrawal",
            "withdrawals",
            "dr",
            "money out",
            "out",
            "payment",
            "charge",
            "spent",
        ),
        Role.CREDIT: ("credit", "deposit", "deposits", "cr", "money in", "in", "received"),
        Role.BALANCE: (
            "balance",
            "running balance",
            "available",
            "ledger balance",
            "current balance",
        ),
        Role.CHECK_NUMBER: (
            "check",
            "check #",
            "check number",
            "cheque",
            "check no",
            "ck #",
            "chk",
        ),
        Role.MEMO: ("memo", "note", "notes", "additional info", "comment", "comments"),
        Role.REFERENCE_ID: (
            "reference",
            "ref",
            "transaction id",
            "trans id",
            "id",
            "confirmation",
            "fitid",
        ),
    }
)

# Tie-break among equally specific keyword matches ("Debit Amount" is a debit
# column, "Memo Description" a description column).
ROLE_PRIORITY: tuple[Role, ...] = (
    Role.DATE,
    Role.DEBIT,
    Role.CREDIT,
    Role.BALANCE,
    Role.CHECK_NUMBER,
    Role.REFERENCE_ID,
    Role.AMOUNT,
    Role.DESCRIPTION,
    Role.MEMO,
)

# Keywords this short only match whole words ("in" must not hit "Running").
_WHOLE_WORD_MAX_LEN = 3


# ---- Scoring -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RuleOutcome:
    """One rule evaluation against one column."""

    rule: str
    column: str
    role: Role | None
    earned: float
    possible: float


@dataclass(frozen=True, slots=True)
class Score:
    earned: float = 0.0
    possible: float = 0.0

    def add(self, outcome: RuleOutcome) -> Score:
        return Score(self.earned + outcome.earned, self.possible + outcome.possible)

    @property
    def confidence(self) -> float:
        if self.possible <= 0:
            return 0.0
        return max(0.0, min(1.0, self.earned / self.possible))


def score_outcomes(outcomes: Sequence[RuleOutcome]) -> Score:
    return reduce(Score.add, outcomes, Score())


# ---- Header-name matching ----------------------------------------------------


def _normalize_header(header: str) -> str:
    return " ".join(header.lower().split())


def _keyword_matches(normalized: str, keyword: str) -> bool:
    if normalized == keyword:
        return True
    if len(keyword) <= _WHOLE_WORD_MAX_LEN:
        return re.search(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])", normalized) is not None
    return keyword in normalized


def candidate_roles(header: str) -> list[Role]:
    """Return the roles ``header`` could name, best candidate first."""

    normalized = _normalize_header(header)
    if not normalized:
        return []

    ranked: list[tuple[tuple[int, int, int], Role]] = []
    for role, keywords in COLUMN_KEYWORDS.items():
        best: tuple[int, int, int] | None = None
        for kw in keywords:
            if not _keyword_matches(normalized, kw):
                continue
            key = (0 if normalized == kw else 1, -len(kw.split()), ROLE_PRIORITY.index(role))
            if best is None or key < best:
                best = key
        if best is not None:
            ranked.append((best, role))
    ranked.sort(key=lambda item: item[0])
    return [role for _key, role in ranked]


def _header_pass(headers: Sequence[str]) -> tuple[dict[Role, str], list[RuleOutcome]]:
    claims: dict[Role, str] = {}
    canonical = {keywords[0]: role for role, keywords in COLUMN_KEYWORDS.items()}
    for header in headers:
        role = canonical.get(_normalize_header(header))
        if role is not None and role not in claims:
            claims[role] = header

    claimed_columns = set(claims.values())
    for header in headers:
        if header in claimed_columns:
            continue
        for role in candidate_roles(header):
            if role in claims:
                continue
            claims[role] = header
            claimed_columns.add(header)
            break

    outcomes = [
        RuleOutcome("header", header, role, HEADER_MATCH_WEIGHT, HEADER_MATCH_WEIGHT)
        for role, header in claims.items()
    ]
    return claims, outcomes


# ---- Content sniffing --------------------------------------------------------


def _column_samples(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> dict[int, list[str]]:
    sample = rows[:SAMPLE_SIZE]
    return {
        i: [(row[i] if i < len(row) else "") or "" for row in sample] for i in range(len(headers))
    }


def _looks_like_date_column(header: str, values: Sequence[str], claims: Mapping[Role, str]) -> bool:
    return sum(1 for v in values if is_likely_date(v)) >= MIN_CONTENT_MATCHES


def _looks_like_amount_column(
    header: str, values: Sequence[str], claims: Mapping[Role, str]
) -> bool:
    # Balance columns are numeric too but never the transaction amount.
    if "balance" in header.lower():
        return False
    if Role.DEBIT in claims or Role.CREDIT in claims:
        return False
    return sum(1 for v in values if is_likely_amount(v)) >= MIN_CONTENT_MATCHES


def _looks_like_description_column(
    header: str, values: Sequence[str], claims: Mapping[Role, str]
) -> bool:
    if not values:
        return False
    avg_len = sum(len(v) for v in values) / len(values)
    return avg_len > DESCRIPTION_MIN_AVG_LENGTH and len(set(values)) > DESCRIPTION_MIN_DISTINCT


@dataclass(frozen=True, slots=True)
class ContentRule:
    role: Role
    weight: float
    accepts: Callable[[str, Sequence[str], Mapping[Role, str]], bool]


CONTENT_RULES: tuple[ContentRule, ...] = (
    ContentRule(Role.DATE, 1.0, _looks_like_date_column),
    ContentRule(Role.AMOUNT, 1.0, _looks_like_amount_column),
    ContentRule(Role.DESCRIPTION, 0.5, _looks_like_description_column),
)


def _confirmation_pass(
    claims: Mapping[Role, str], headers: Sequence[str], samples: Mapping[int, list[str]]
) -> list[RuleOutcome]:
    checks: dict[Role, Callable[[str | None], bool]] = {
        Role.DATE: is_likely_date,
        Role.AMOUNT: is_likely_amount,
    }
    outcomes: list[RuleOutcome] = []
    for role, check in checks.items():
        column = claims.get(role)
        if column is None:
            continue
        values = [v for v in samples.get(headers.index(column), []) if v]
        needed = min(MIN_CONTENT_MATCHES, len(values))
        ok = needed > 0 and sum(1 for v in values if check(v)) >= needed
        outcomes.append(
            RuleOutcome(
                "confirm", column, role, CONFIRMATION_WEIGHT if ok else 0.0, CONFIRMATION_WEIGHT
            )
        )
    return outcomes


def _content_pass(
    claims: dict[Role, str], headers: Sequence[str], samples: Mapping[int, list[str]]
) -> list[RuleOutcome]:
    outcomes: list[RuleOutcome] = []
    claimed_columns = set(claims.values())
    for i, header in enumerate(headers):
        if header in claimed_columns or not header:
            continue
        values = samples.get(i, [])
        accepted: ContentRule | None = None
        for rule in CONTENT_RULES:
            if rule.role in claims:
                continue
            if rule.accepts(header, values, claims):
                accepted = rule
                break
        if accepted is None:
            outcomes.append(RuleOutcome("content", header, None, 0.0, 1.0))
            continue
        claims[accepted.role] = header
        claimed_columns.add(header)
        outcomes.append(RuleOutcome("content", header, accepted.role, accepted.weight, 1.0))
    return outcomes


# ---- Result assembly ---------------------------------------------------------


def _resolve_amount_style(claims: dict[Role, str]) -> AmountStyle:
    debit = claims.get(Role.DEBIT)
    credit = claims.get(Role.CREDIT)
    if not debit and not credit:
        return AmountStyle.SINGLE
    if Role.AMOUNT in claims and not (debit and credit):
        # A lone debit/credit match next to a real amount column is noise
        # (e.g. "Payment Type").
        claims.pop(Role.DEBIT, None)
        claims.pop(Role.CREDIT, None)
        return AmountStyle.SINGLE
    claims.pop(Role.AMOUNT, None)
    return AmountStyle.SPLIT


def _first_date_format(values: Sequence[str]) -> str | None:
    for v in values:
        fmt = match_date_format(v)
        if fmt:
            return fmt
    return None


def detect_column_mappings(
    headers: Sequence[str],
    sample_rows: Sequence[Sequence[str]],
    *,
    has_header_row: bool = True,
) -> DetectedFormat:
    """Assign roles to ``headers`` using their names and ``sample_rows``."""

    headers = [h or "" for h in headers]
    samples = _column_samples(headers, sample_rows) if sample_rows else {}

    claims, outcomes = _header_pass(headers)
    if samples:
        outcomes.extend(_confirmation_pass(claims, headers, samples))
        outcomes.extend(_content_pass(claims, headers, samples))

    amount_style = _resolve_amount_style(claims)
    score = score_outcomes(outcomes)

    date_format = None
    if Role.DATE in claims and samples:
        date_format = _first_date_format(samples.get(headers.index(claims[Role.DATE]), []))

    _logger.debug(
        "column roles: %s (confidence=%.2f, earned=%.1f, possible=%.1f)",
        {role.value: col for role, col in claims.items()},
        score.confidence,
        score.earned,
        score.possible,
    )

    return DetectedFormat(
        **{f"{role.value}_column": column for role, column in claims.items()},
        date_format=date_format,
        has_header_row=has_header_row,
        amount_style=amount_style,
        confidence=score.confidence,
    )


__all__ = [
    "COLUMN_KEYWORDS",
    "CONTENT_RULES",
    "LOW_CONFIDENCE_THRESHOLD",
    "ContentRule",
    "RuleOutcome",
    "Score",
    "candidate_roles",
    "detect_column_mappings",
    "score_outcomes",
]
