from decimal import Decimal
from textwrap import dedent

from bank_import.ingest.ofx import (
    NO_TRANSACTIONS,
    extract_tag_value,
    find_transaction_blocks,
    map_account_type,
    map_transaction_type,
    parse_ofx,
    parse_ofx_amount,
    parse_ofx_date,
)
from bank_import.models import AccountType, FileKind, Severity, TransactionType


def _dedent(s: str) -> str:
    return dedent(s).lstrip("\n")


# One closed and one unclosed transaction block, the usual SGML mix.
STATEMENT = _dedent(
    """
    OFXHEADER:100
    DATA:OFXSGML
    <OFX>
    <SIGNONMSGSRSV1><SONRS><FI><ORG>First Test Bank<FID>1234</FI></SONRS></SIGNONMSGSRSV1>
    <BANKMSGSRSV1><STMTTRNRS><STMTRS>
    <CURDEF>USD
    <BANKACCTFROM>
    <BANKID>123456789
    <ACCTID>000123456789
    <ACCTTYPE>CHECKING
    </BANKACCTFROM>
    <BANKTRANLIST>
    <DTSTART>20240101
    <STMTTRN>
    <TRNTYPE>DEBIT</TRNTYPE>
    <DTPOSTED>20240115120000[-5:EST]</DTPOSTED>
    <TRNAMT>-4.50</TRNAMT>
    <FITID>TX001</FITID>
    <NAME>Coffee Shop</NAME>
    <MEMO>Card purchase</MEMO>
    </STMTTRN>
    <STMTTRN>
    <TRNTYPE>CREDIT
    <DTPOSTED>20240116
    <TRNAMT>2500.00
    <FITID>TX002
    <NAME>ACME Payroll
    <MEMO>ACME Payroll
    </BANKTRANLIST>
    </STMTRS></STMTTRNRS></BANKMSGSRSV1>
    </OFX>
    """
)


def test_closed_and_unclosed_blocks():
    result = parse_ofx(STATEMENT)

    assert result.success
    assert result.file_type == FileKind.OFX
    first, second = result.transactions

    assert (first.date, first.amount, first.type) == (
        "2024-01-15",
        Decimal("-4.50"),
        TransactionType.DEBIT,
    )
    assert first.description == "Coffee Shop - Card purchase"
    assert first.memo == "Card purchase"
    assert first.reference_id == "TX001"
    assert first.row_number == 1

    assert (second.date, second.amount, second.type) == (
        "2024-01-16",
        Decimal("2500.00"),
        TransactionType.CREDIT,
    )
    assert second.description == "ACME Payroll"
    assert second.row_number == 2
    assert second.raw_data["_currency"] == "USD"
    assert second.raw_data["FITID"] == "TX002"


def test_account_and_format_detection():
    result = parse_ofx(STATEMENT)

    account = result.detected_account
    assert account is not None
    assert account.account_id == "000123456789"
    assert account.mask == "6789"
    assert account.account_type == AccountType.CHECKING
    assert account.bank_id == "123456789"
    assert account.institution_name == "First Test Bank"
    assert "Detected account: CHECKING ending in ...6789" in result.warnings

    fmt = result.detected_format
    assert fmt.confidence == 1.0
    assert fmt.has_header_row is False
    assert fmt.date_format == "YYYYMMDD"


def test_whitespace_variant_with_entities_and_decimal_comma():
    text = _dedent(
        """
        < STMTTRN >
        <TRNTYPE>
          DEBIT
        <DTPOSTED>
          20240201
        <TRNAMT>
          -12,50
        <NAME>
          Bakery &amp; Cafe
        """
    )
    result = parse_ofx(text)

    assert result.success
    (tx,) = result.transactions
    assert tx.description == "Bakery & Cafe"
    assert tx.amount == Decimal("-12.50")
    assert tx.date == "2024-02-01"
    assert result.detected_account is None


def test_field_runs_without_block_wrapper():
    text = _dedent(
        """
        <BANKTRANLIST>
        <TRNTYPE>DEBIT<DTPOSTED>20240301<TRNAMT>-1.00<NAME>One
        <TRNTYPE>CHECK<DTPOSTED>20240302<TRNAMT>-200.00<CHECKNUM>1042<NAME>Check 1042
        </BANKTRANLIST>
        """
    )
    result = parse_ofx(text)

    assert [t.description for t in result.transactions] == ["One", "Check 1042"]
    assert result.transactions[1].type == TransactionType.CHECK
    assert result.transactions[1].check_number == "1042"


def test_every_statement_in_the_file_is_read():
    text = _dedent(
        """
        <OFX><BANKMSGSRSV1>
        <STMTTRNRS><STMTRS>
        <BANKACCTFROM><ACCTID>1111<ACCTTYPE>CHECKING</BANKACCTFROM>
        <BANKTRANLIST><DTSTART>20240101
        <STMTTRN><TRNTYPE>DEBIT<DTPOSTED>20240105<TRNAMT>-9.99<NAME>Checking One</STMTTRN>
        <STMTTRN><TRNTYPE>DEBIT<DTPOSTED>20240106<TRNAMT>-5.00<NAME>Checking Two
        </BANKTRANLIST>
        </STMTRS></STMTTRNRS>
        <STMTTRNRS><STMTRS>
        <BANKACCTFROM><ACCTID>2222<ACCTTYPE>SAVINGS</BANKACCTFROM>
        <BANKTRANLIST><DTSTART>20240101
        <STMTTRN><TRNTYPE>INT<DTPOSTED>20240131<TRNAMT>1.25<NAME>Savings Interest</STMTTRN>
        </BANKTRANLIST>
        </STMTRS></STMTTRNRS>
        </BANKMSGSRSV1></OFX>
        """
    )
    blocks = find_transaction_blocks(text)
    result = parse_ofx(text)

    assert len(blocks) == 3
    assert [t.description for t in result.transactions] == [
        "Checking One",
        "Checking Two",
        "Savings Interest",
    ]
    assert [t.row_number for t in result.transactions] == [1, 2, 3]
    assert result.transactions[2].type == TransactionType.CREDIT


def test_missing_trntype_uses_amount_sign():
    text = (
        "<STMTTRN><DTPOSTED>20240105</DTPOSTED><TRNAMT>5.00</TRNAMT><NAME>In</NAME></STMTTRN>"
        "<STMTTRN><DTPOSTED>20240106</DTPOSTED><TRNAMT>-5.00</TRNAMT><NAME>Out</NAME></STMTTRN>"
    )
    result = parse_ofx(text)
    assert [t.type for t in result.transactions] == [TransactionType.CREDIT, TransactionType.DEBIT]


def test_bad_date_keeps_transaction_with_warning():
    text = "<STMTTRN><DTPOSTED>20241345<TRNAMT>-1.00<NAME>Bad Date</STMTTRN>"
    result = parse_ofx(text)

    assert result.success
    (tx,) = result.transactions
    assert tx.date is None
    (err,) = result.errors
    assert err.severity == Severity.WARNING
    assert err.row == 1
    assert err.message == "Could not parse date for transaction: Bad Date"


def test_no_blocks_is_failure():
    result = parse_ofx("<OFX><BANKTRANLIST></BANKTRANLIST></OFX>")

    assert not result.success
    assert [e.message for e in result.errors] == [NO_TRANSACTIONS]
    assert find_transaction_blocks("<OFX></OFX>") == []


def test_credit_card_account():
    text = (
        "<CCSTMTRS><CCACCTFROM><ACCTID>4111111111111111</CCACCTFROM>"
        "<BANKTRANLIST><STMTTRN><TRNTYPE>DEBIT<DTPOSTED>20240105<TRNAMT>-20.00"
        "<NAME>Store</STMTTRN></BANKTRANLIST>"
    )
    result = parse_ofx(text)

    assert result.detected_account.account_type == AccountType.CREDIT
    assert result.detected_account.mask == "1111"
    assert "Detected account: CREDITCARD ending in ...1111" in result.warnings


def test_flavor_from_content_or_caller():
    intuit = STATEMENT.replace("<OFX>", "<OFX>\n<INTU.BID>3000")
    assert parse_ofx(intuit).file_type == FileKind.QBO
    assert parse_ofx(STATEMENT, file_type=FileKind.QFX).file_type == FileKind.QFX


def test_value_helpers():
    assert parse_ofx_date("20240115") == "2024-01-15"
    assert parse_ofx_date("20240115000000.000[-8:PST]") == "2024-01-15"
    assert parse_ofx_date("20240230") is None
    assert parse_ofx_date("2024") is None
    assert parse_ofx_date(None) is None

    assert parse_ofx_amount("1.234,50") == Decimal("1234.50")
    assert parse_ofx_amount("1,234.50") == Decimal("1234.50")
    assert parse_ofx_amount("") is None

    assert extract_tag_value("<NAME>  A   B  </NAME>", "NAME") == "A B"
    assert extract_tag_value("<NAME></NAME><MEMO>x", "NAME") is None


def test_type_mapping_tables():
    assert map_transaction_type("DEP", Decimal("1"), None) == TransactionType.CREDIT
    assert map_transaction_type("XFER", Decimal("-1"), None) == TransactionType.TRANSFER
    assert map_transaction_type("POS", Decimal("-1"), None) == TransactionType.DEBIT
    assert map_transaction_type("DEBIT", Decimal("-1"), "101") == TransactionType.CHECK

    assert map_account_type("MONEYMRKT") == AccountType.SAVINGS
    assert map_account_type("WEIRD") == AccountType.OTHER
    assert map_account_type(None) == AccountType.OTHER
