"""Data models for the ``bank_import`` pipeline.

Records produced by a parse (transactions, diagnostics, detected account) are
frozen ``dataclass`` value objects. Inputs that cross the caller boundary and
need validation (column mappings, detected formats, parse options) are frozen
Pydantic models so that user-edited or externally supplied values go through
one validated construction path.

Nothing here is cached or shared between parses; every parse call creates its
own instances.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ---------------------------------------------------------------------------
# Closed vocabularies
# ---------------------------------------------------------------------------


class FileKind(StrEnum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"
    QBO = "qbo"
    QFX = "qfx"
    OFX = "ofx"
    UNKNOWN = "unknown"


class TransactionType(StrEnum):
    DEBIT = "debit"
    CREDIT = "credit"
    CHECK = "check"
    TRANSFER = "transfer"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class AmountStyle(StrEnum):
    SINGLE = "single"
    SPLIT = "split"


class AccountType(StrEnum):
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    LOAN = "loan"
    INVESTMENT = "investment"
    OTHER = "other"


class Role(StrEnum):
    """Semantic meaning a source column can carry."""

    DATE = "date"
    AMOUNT = "amount"
    DESCRIPTION = "description"
    MEMO = "memo"
    DEBIT = "debit"
    CREDIT = "credit"
    CHECK_NUMBER = "check_number"
    BALANCE = "balance"
    REFERENCE_ID = "reference_id"


_ROLE_FIELDS: tuple[str, ...] = tuple(r.value for r in Role)
_FORMAT_COLUMN_FIELDS: tuple[str, ...] = tuple(f"{r.value}_column" for r in Role)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


# ---------------------------------------------------------------------------
# Parse output records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedTransaction:
    """One inferred transaction row.

    ``row_number`` is the 1-indexed position in the source as presented to the
    user (header and skipped rows included for delimited text; block ordinal
    for markup files). ``raw_data`` keeps the original column/tag values keyed
    by their source label for audit.
    """

    date: str | None
    amount: Decimal | None
    description: str
    type: TransactionType
    row_number: int
    raw_data: Mapping[str, Any] = field(default_factory=dict)
    memo: str | None = None
    check_number: str | None = None
    reference_id: str | None = None


@dataclass(frozen=True, slots=True)
class ParseError:
    message: str
    severity: Severity = Severity.ERROR
    row: int | None = None
    column: str | None = None


@dataclass(frozen=True, slots=True)
class DetectedAccount:
    """Best-effort account identity recovered from file content."""

    account_id: str | None = None
    mask: str | None = None
    account_type: AccountType = AccountType.OTHER
    bank_id: str | None = None
    institution_name: str | None = None


@dataclass(frozen=True, slots=True)
class Category:
    """A caller-supplied category (the taxonomy lives outside this package)."""

    id: str
    name: str


@dataclass(frozen=True, slots=True)
class CategorySuggestion:
    category_id: str
    category_name: str
    confidence: float
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class MerchantCleanup:
    original: str
    cleaned: str
    confidence: float


# ---------------------------------------------------------------------------
# Validated boundary models
# ---------------------------------------------------------------------------


class DetectedFormat(BaseModel):
    """Result of column-role detection for a delimited-text source."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    date_column: str | None = None
    amount_column: str | None = None
    description_column: str | None = None
    memo_column: str | None = None
    debit_column: str | None = None
    credit_column: str | None = None
    check_number_column: str | None = None
    balance_column: str | None = None
    reference_id_column: str | None = None
    date_format: str | None = None
    has_header_row: bool = True
    amount_style: AmountStyle = AmountStyle.SINGLE
    confidence: float = Field(0.0, ge=0.0, le=1.0)

    @field_validator(*_FORMAT_COLUMN_FIELDS, mode="before")
    @classmethod
    def _blank_columns(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def _check_amount_style(self) -> DetectedFormat:
        if self.debit_column and self.credit_column and self.amount_style != AmountStyle.SPLIT:
            raise ValueError("debit and credit columns require the split amount style")
        if self.amount_style == AmountStyle.SPLIT and self.amount_column:
            raise ValueError("split amount style cannot carry an amount column")
        return self

    def column_for(self, role: Role) -> str | None:
        return getattr(self, f"{role.value}_column")


class ColumnMapping(BaseModel):
    """Explicit assignment of source columns to roles.

    Every role maps to at most one column and every column to at most one
    role. Unmapped roles are ``None``. Use :meth:`build` or
    :meth:`from_detected` rather than assigning fields ad hoc; both run the
    same validation. Mappings supplied by the review UI or a remote assistant
    are accepted as-is through the same constructor (camelCase keys such as
    ``checkNumber`` are accepted too).
    """

    model_config = ConfigDict(
        frozen=True, extra="forbid", populate_by_name=True, str_strip_whitespace=True
    )

    date: str | None = None
    amount: str | None = None
    description: str | None = None
    memo: str | None = None
    debit: str | None = None
    credit: str | None = None
    check_number: str | None = Field(None, alias="checkNumber")
    balance: str | None = None
    reference_id: str | None = Field(None, alias="referenceId")

    @field_validator(*_ROLE_FIELDS, mode="before")
    @classmethod
    def _blank_roles(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @model_validator(mode="after")
    def _check_assignments(self) -> ColumnMapping:
        seen: dict[str, Role] = {}
        for role, column in self.assignments().items():
            if column in seen:
                raise ValueError(
                    f"column {column!r} is mapped to both {seen[column].value!r} "
                    f"and {role.value!r}"
                )
            seen[column] = role
        if self.amount and (self.debit or self.credit):
            raise ValueError("an amount column cannot be combined with debit/credit columns")
        return self

    @classmethod
    def build(cls, assignments: Mapping[Role | str, str | None]) -> ColumnMapping:
        """Build a mapping from ``{role: column}`` pairs.

        Keys may be :class:`Role` members or their string values; unknown
        roles raise ``ValueError``.
        """

        values: dict[str, str | None] = {}
        for key, column in assignments.items():
            try:
                role = Role(key)
            except ValueError as exc:
                raise ValueError(f"unknown column role: {key!r}") from exc
            values[role.value] = column
        return cls.model_validate(values)

    @classmethod
    def from_detected(cls, detected: DetectedFormat) -> ColumnMapping:
        return cls.build({role: detected.column_for(role) for role in Role})

    def column_for(self, role: Role) -> str | None:
        return getattr(self, role.value)

    def assignments(self) -> dict[Role, str]:
        out: dict[Role, str] = {}
        for role in Role:
            column = self.column_for(role)
            if column:
                out[role] = column
        return out

    @property
    def amount_style(self) -> AmountStyle:
        if self.debit or self.credit:
            return AmountStyle.SPLIT
        return AmountStyle.SINGLE


class ParseOptions(BaseModel):
    """Caller options for a single parse.

    Boundary names (``hasHeaderRow``, ``skipRows``, ``amountIsNegativeForDebits``,
    ``sheetIndex``, ``maxRows``) are accepted as aliases.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    has_header_row: bool = Field(True, alias="hasHeaderRow")
    skip_rows: int = Field(0, ge=0, alias="skipRows")
    amount_is_negative_for_debits: bool = Field(True, alias="amountIsNegativeForDebits")
    sheet_index: int = Field(0, ge=0, alias="sheetIndex")
    # Row bound for spreadsheet decoding; None defers to BANK_IMPORT_MAX_ROWS.
    max_rows: int | None = Field(None, ge=1, alias="maxRows")


# ---------------------------------------------------------------------------
# Parse result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Outcome of parsing one file.

    ``success`` is ``False`` only when no transaction could be extracted; row
    level problems are reported as ``warning`` entries in ``errors`` and leave
    ``success`` untouched.
    """

    success: bool
    file_type: FileKind
    transactions: tuple[ParsedTransaction, ...] = ()
    headers: tuple[str, ...] | None = None
    detected_format: DetectedFormat | None = None
    detected_account: DetectedAccount | None = None
    errors: tuple[ParseError, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def failure(
        cls, file_type: FileKind, message: str, *, warnings: tuple[str, ...] = ()
    ) -> ParseResult:
        return cls(
            success=False,
            file_type=file_type,
            errors=(ParseError(message=message, severity=Severity.ERROR),),
            warnings=warnings,
        )

    def with_warning(self, message: str) -> ParseResult:
        return replace(self, warnings=(*self.warnings, message))


__all__ = [
    "AccountType",
    "AmountStyle",
    "Category",
    "CategorySuggestion",
    "ColumnMapping",
    "DetectedAccount",
    "DetectedFormat",
    "FileKind",
    "MerchantCleanup",
    "ParseError",
    "ParseOptions",
    "ParseResult",
    "ParsedTransaction",
    "Role",
    "Severity",
    "TransactionType",
]
