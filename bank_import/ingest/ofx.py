"""Extractor for SGML-style financial-exchange markup (OFX / QFX / QBO).

Institutions emit at least three shapes of the same data:

- explicit open/close pairs (``<NAME>Coffee</NAME>``);
- open tags only, value ending at the next tag or line break;
- whitespace-heavy vendor variants (``< STMTTRN >``, values on the next line).

Rather than one clever regex, transaction blocks are located with the ordered
:data:`BLOCK_STRATEGIES` (first strategy yielding a block wins) and each field
is read with the ordered :data:`FIELD_PATTERNS`, strict to lenient. New
dialects are supported by appending to those tables.
"""

from __future__ import annotations

import html
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from ..assembler import classify_type
from ..detect import markup_flavor
from ..logging_setup import get_logger
from ..models import (
    AccountType,
    AmountStyle,
    DetectedAccount,
    DetectedFormat,
    FileKind,
    ParsedTransaction,
    ParseError,
    ParseResult,
    Severity,
    TransactionType,
)
from ..normalizers import parse_amount

_logger = get_logger("bank_import.ingest.ofx")

UNKNOWN_TRANSACTION = "Unknown Transaction"
NO_TRANSACTIONS = "No transactions found in file"
DEFAULT_CURRENCY = "USD"
OFX_DATE_FORMAT = "YYYYMMDD"

TRANSACTION_FIELDS: tuple[str, ...] = (
    "TRNTYPE",
    "DTPOSTED",
    "DTUSER",
    "TRNAMT",
    "FITID",
    "NAME",
    "PAYEE",
    "MEMO",
    "CHECKNUM",
    "CHKNUM",
    "REFNUM",
)

TRNTYPE_MAP: Mapping[str, TransactionType] = MappingProxyType(
    {
        "CREDIT": TransactionType.CREDIT,
        "DEP": TransactionType.CREDIT,
        "DIRECTDEP": TransactionType.CREDIT,
        "INT": TransactionType.CREDIT,
        "DIV": TransactionType.CREDIT,
        "CHECK": TransactionType.CHECK,
        "XFER": TransactionType.TRANSFER,
    }
)

ACCOUNT_TYPE_MAP: Mapping[str, AccountType] = MappingProxyType(
    {
        "CHECKING": AccountType.CHECKING,
        "SAVINGS": AccountType.SAVINGS,
        "MONEYMRKT": AccountType.SAVINGS,
        "CD": AccountType.SAVINGS,
        "CREDITCARD": AccountType.CREDIT,
        "CREDITLINE": AccountType.CREDIT,
        "LOAN": AccountType.LOAN,
        "INVESTMENT": AccountType.INVESTMENT,
    }
)


# ---- Block boundaries --------------------------------------------------------

_TRANLIST_RE = re.compile(
    r"<\s*BANKTRANLIST\s*>(.*?)(?:</\s*BANKTRANLIST\s*>|</\s*STMTRS\s*>|</\s*CCSTMTRS\s*>|\Z)",
    re.IGNORECASE | re.DOTALL,
)
_BLOCK_END_RE = re.compile(r"</\s*STMTTRN\s*>|</\s*BANKTRANLIST\s*>", re.IGNORECASE)


def _split_on_open_tag(open_tag: re.Pattern[str]) -> Callable[[str], list[str]]:
    def split(content: str) -> list[str]:
        parts = open_tag.split(content)[1:]
        return [_BLOCK_END_RE.split(part, maxsplit=1)[0] for part in parts]

    return split


def _split_on_field_runs(content: str) -> list[str]:
    # No STMTTRN wrapper at all: every TRNTYPE starts a new record.
    starts = [m.start() for m in re.finditer(r"<\s*TRNTYPE\s*>", content, re.IGNORECASE)]
    ends = [*starts[1:], len(content)]
    return [_BLOCK_END_RE.split(content[s:e], maxsplit=1)[0] for s, e in zip(starts, ends)]


@dataclass(frozen=True, slots=True)
class BlockStrategy:
    name: str
    split: Callable[[str], list[str]]


BLOCK_STRATEGIES: tuple[BlockStrategy, ...] = (
    BlockStrategy("open-tag", _split_on_open_tag(re.compile(r"<STMTTRN>", re.IGNORECASE))),
    BlockStrategy("spaced-tag", _split_on_open_tag(re.compile(r"<\s*STMTTRN\s*>", re.IGNORECASE))),
    BlockStrategy("field-run", _split_on_field_runs),
)


# ---- Field extraction --------------------------------------------------------

# ``{tag}`` is substituted with the escaped tag name.
FIELD_PATTERNS: tuple[tuple[str, str], ...] = (
    ("closed", r"<\s*{tag}\s*>([^<]*)</\s*{tag}\s*>"),
    ("same-line", r"<\s*{tag}\s*>[ \t]*([^<\n]+)"),
    ("to-next-tag", r"<\s*{tag}\s*>\s*([^<]+)"),
)

_WHITESPACE_RE = re.compile(r"\s+")


def extract_tag_value(content: str, tag: str) -> str | None:
    """First non-empty value for ``tag`` in ``content``, entity-unescaped."""

    escaped = re.escape(tag)
    for _name, template in FIELD_PATTERNS:
        match = re.search(template.format(tag=escaped), content, re.IGNORECASE)
        if match is None:
            continue
        value = html.unescape(_WHITESPACE_RE.sub(" ", match.group(1))).strip()
        if value:
            return value
    return None


def find_transaction_blocks(content: str) -> list[str]:
    """Transaction blocks from the first strategy that finds any."""

    content = content.replace("\r\n", "\n").replace("\r", "\n")
    # One list per statement; a file may carry several accounts.
    lists = [m.group(1) for m in _TRANLIST_RE.finditer(content)]
    if lists:
        content = "\n".join(lists)

    for strategy in BLOCK_STRATEGIES:
        blocks = [b for b in strategy.split(content) if b.strip()]
        if blocks:
            _logger.debug("block strategy %r found %d blocks", strategy.name, len(blocks))
            return blocks
    return []


# ---- Value conversion --------------------------------------------------------

_OFX_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def parse_ofx_date(raw: str | None) -> str | None:
    """``YYYYMMDD[HHMMSS[.XXX]][[±H:TZ]]`` → ISO date, or ``None``."""

    if not raw:
        return None
    cleaned = re.sub(r"\[.*?\]", "", raw).strip()
    match = _OFX_DATE_RE.match(cleaned)
    if match is None:
        return None
    try:
        return date(int(match[1]), int(match[2]), int(match[3])).isoformat()
    except ValueError:
        return None


def parse_ofx_amount(raw: str | None) -> Decimal | None:
    if not raw:
        return None
    s = raw.strip()
    # Decimal comma: "12,50" or "1.234,50".
    if "," in s and s.rfind(",") > s.rfind("."):
        s = s.replace(".", "").replace(",", ".")
    return parse_amount(s)


def map_transaction_type(
    trntype: str | None, amount: Decimal | None, check_number: str | None
) -> TransactionType:
    if check_number:
        return TransactionType.CHECK
    if not trntype:
        return classify_type(amount, None)
    return TRNTYPE_MAP.get(trntype.upper(), TransactionType.DEBIT)


def map_account_type(token: str | None) -> AccountType:
    if not token:
        return AccountType.OTHER
    return ACCOUNT_TYPE_MAP.get(token.strip().upper(), AccountType.OTHER)


# ---- Account -----------------------------------------------------------------

_BANK_ACCOUNT_RES = (
    re.compile(r"<\s*BANKACCTFROM\s*>(.*?)</\s*BANKACCTFROM\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<\s*BANKACCTFROM\s*>(.*?)(?=<\s*BANKTRANLIST\s*>)", re.IGNORECASE | re.DOTALL),
)
_CARD_ACCOUNT_RES = (
    re.compile(r"<\s*CCACCTFROM\s*>(.*?)</\s*CCACCTFROM\s*>", re.IGNORECASE | re.DOTALL),
    re.compile(
        r"<\s*CCACCTFROM\s*>(.*?)(?=<\s*BANKTRANLIST\s*>|<\s*CCSTMTTRNRS\s*>)",
        re.IGNORECASE | re.DOTALL,
    ),
)


@dataclass(frozen=True, slots=True)
class _AccountBlock:
    account_id: str | None
    account_type_token: str | None
    bank_id: str | None


def _first_match(patterns: tuple[re.Pattern[str], ...], content: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(content)
        if match is not None:
            return match.group(1)
    return None


def _extract_account(content: str) -> _AccountBlock | None:
    bank = _first_match(_BANK_ACCOUNT_RES, content)
    if bank is not None:
        return _AccountBlock(
            account_id=extract_tag_value(bank, "ACCTID"),
            account_type_token=extract_tag_value(bank, "ACCTTYPE"),
            bank_id=extract_tag_value(bank, "BANKID"),
        )
    card = _first_match(_CARD_ACCOUNT_RES, content)
    if card is not None:
        return _AccountBlock(
            account_id=extract_tag_value(card, "ACCTID"),
            account_type_token="CREDITCARD",
            bank_id=None,
        )
    return None


# ---- Entry point -------------------------------------------------------------


def _block_fields(block: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for tag in TRANSACTION_FIELDS:
        value = extract_tag_value(block, tag)
        if value is not None:
            fields[tag] = value
    return fields


def _describe(name: str | None, memo: str | None) -> str:
    if name and memo and memo != name:
        return f"{name} - {memo}"
    return name or memo or UNKNOWN_TRANSACTION


def parse_ofx(text: str, *, file_type: FileKind | None = None) -> ParseResult:
    """Extract transactions and account identity from markup ``text``."""

    kind = file_type or markup_flavor(text)
    try:
        warnings: list[str] = []
        account = _extract_account(text)
        if account is not None:
            mask = account.account_id[-4:] if account.account_id else None
            warnings.append(
                f"Detected account: {account.account_type_token or 'Unknown'} "
                f"ending in ...{mask or '????'}"
            )
        currency = extract_tag_value(text, "CURDEF") or DEFAULT_CURRENCY

        records = [f for f in map(_block_fields, find_transaction_blocks(text)) if _has_signal(f)]
        if not records:
            return ParseResult.failure(kind, NO_TRANSACTIONS, warnings=tuple(warnings))

        errors: list[ParseError] = []
        transactions: list[ParsedTransaction] = []
        for index, fields in enumerate(records):
            row_number = index + 1
            name = fields.get("NAME") or fields.get("PAYEE")
            memo = fields.get("MEMO")
            raw_date = fields.get("DTPOSTED") or fields.get("DTUSER")
            tx_date = parse_ofx_date(raw_date)
            amount = parse_ofx_amount(fields.get("TRNAMT"))
            check_number = fields.get("CHECKNUM") or fields.get("CHKNUM")

            if tx_date is None:
                errors.append(
                    ParseError(
                        message=(
                            f"Could not parse date for transaction: {name or memo or 'Unknown'}"
                        ),
                        severity=Severity.WARNING,
                        row=row_number,
                        column="DTPOSTED",
                    )
                )
            if fields.get("TRNAMT") and amount is None:
                errors.append(
                    ParseError(
                        message=f'Could not parse amount: "{fields["TRNAMT"]}"',
                        severity=Severity.WARNING,
                        row=row_number,
                        column="TRNAMT",
                    )
                )

            raw_data: dict[str, Any] = dict(fields)
            raw_data["_currency"] = currency
            if account is not None:
                raw_data["_account_id"] = account.account_id
                raw_data["_account_type"] = account.account_type_token

            transactions.append(
                ParsedTransaction(
                    date=tx_date,
                    amount=amount,
                    description=_describe(name, memo),
                    type=map_transaction_type(fields.get("TRNTYPE"), amount, check_number),
                    row_number=row_number,
                    raw_data=raw_data,
                    memo=memo,
                    check_number=check_number,
                    reference_id=fields.get("FITID") or fields.get("REFNUM"),
                )
            )

        detected_account = None
        if account is not None:
            detected_account = DetectedAccount(
                account_id=account.account_id,
                mask=account.account_id[-4:] if account.account_id else None,
                account_type=map_account_type(account.account_type_token),
                bank_id=account.bank_id,
                institution_name=extract_tag_value(text, "ORG"),
            )

        _logger.info("parsed %d %s transactions", len(transactions), kind.value)
        return ParseResult(
            success=True,
            file_type=kind,
            transactions=tuple(transactions),
            detected_format=DetectedFormat(
                date_format=OFX_DATE_FORMAT,
                has_header_row=False,
                amount_style=AmountStyle.SINGLE,
                confidence=1.0,
            ),
            detected_account=detected_account,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )
    except Exception as exc:
        _logger.warning("markup parse failed", exc_info=True)
        return ParseResult.failure(kind, f"Failed to parse OFX file: {exc}")


def _has_signal(fields: Mapping[str, str]) -> bool:
    return bool(
        fields.get("DTPOSTED")
        or fields.get("TRNAMT")
        or fields.get("NAME")
        or fields.get("PAYEE")
        or fields.get("MEMO")
    )


__all__ = [
    "ACCOUNT_TYPE_MAP",
    "BLOCK_STRATEGIES",
    "FIELD_PATTERNS",
    "TRNTYPE_MAP",
    "UNKNOWN_TRANSACTION",
    "BlockStrategy",
    "extract_tag_value",
    "find_transaction_blocks",
    "map_account_type",
    "map_transaction_type",
    "parse_ofx",
    "parse_ofx_amount",
    "parse_ofx_date",
]
