"""Bank export ingestion: CSV, Excel and OFX/QFX/QBO to canonical transactions.

Typical use::

    from bank_import import parse_file

    result = parse_file("statement.csv", data)
    for tx in result.transactions:
        ...

Every ``parse_*`` entry point returns a :class:`ParseResult` and never raises.
"""

from .api import FilePreview, parse_file, preview_file
from .assembler import UNKNOWN_DESCRIPTION, assemble_rows, classify_type
from .categorize import (
    CategorizationResult,
    CategoryCorrection,
    PaymentKind,
    PaymentType,
    build_category_rules,
    categorize_transactions,
    clean_merchant_name,
    detect_check_number,
    detect_payment_type,
    local_categorize,
    suggest_category,
)
from .columns import LOW_CONFIDENCE_THRESHOLD, detect_column_mappings
from .detect import detect_file_type, is_ofx_format, markup_flavor
from .duplicates import duplicate_key, find_suspected_duplicates, fingerprint
from .ingest import (
    get_sheet_names,
    parse_delimited,
    parse_ofx,
    parse_spreadsheet,
    preview_spreadsheet,
)
from .logging_setup import configure_logging, get_logger
from .models import (
    AccountType,
    AmountStyle,
    Category,
    CategorySuggestion,
    ColumnMapping,
    DetectedAccount,
    DetectedFormat,
    FileKind,
    MerchantCleanup,
    ParsedTransaction,
    ParseError,
    ParseOptions,
    ParseResult,
    Role,
    Severity,
    TransactionType,
)
from .normalizers import format_amount, parse_amount, parse_date
from .tokenizer import serialize, tokenize

__all__ = [
    "LOW_CONFIDENCE_THRESHOLD",
    "UNKNOWN_DESCRIPTION",
    "AccountType",
    "AmountStyle",
    "CategorizationResult",
    "Category",
    "CategoryCorrection",
    "CategorySuggestion",
    "ColumnMapping",
    "DetectedAccount",
    "DetectedFormat",
    "FileKind",
    "FilePreview",
    "MerchantCleanup",
    "ParseError",
    "ParseOptions",
    "ParseResult",
    "ParsedTransaction",
    "PaymentKind",
    "PaymentType",
    "Role",
    "Severity",
    "TransactionType",
    "assemble_rows",
    "build_category_rules",
    "categorize_transactions",
    "classify_type",
    "clean_merchant_name",
    "configure_logging",
    "detect_check_number",
    "detect_column_mappings",
    "detect_file_type",
    "detect_payment_type",
    "duplicate_key",
    "find_suspected_duplicates",
    "fingerprint",
    "format_amount",
    "get_logger",
    "get_sheet_names",
    "is_ofx_format",
    "local_categorize",
    "markup_flavor",
    "parse_amount",
    "parse_date",
    "parse_delimited",
    "parse_file",
    "parse_ofx",
    "parse_spreadsheet",
    "preview_file",
    "preview_spreadsheet",
    "serialize",
    "suggest_category",
    "tokenize",
]
