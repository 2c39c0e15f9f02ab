import pytest

from bank_import.detect import detect_file_type, is_ofx_format, markup_flavor
from bank_import.models import FileKind


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("statement.CSV", FileKind.CSV),
        ("book.xlsx", FileKind.XLSX),
        ("legacy.xls", FileKind.XLS),
        ("download.qbo", FileKind.QBO),
        ("download.qfx", FileKind.QFX),
        ("download.ofx", FileKind.OFX),
    ],
)
def test_extension_wins(name, expected):
    assert detect_file_type(name, "hello, world\n") == expected


def test_content_fallbacks():
    assert detect_file_type("export", "OFXHEADER:100\n<OFX>") == FileKind.OFX
    assert detect_file_type("export", "a,b\n1,2") == FileKind.CSV
    assert detect_file_type("notes.txt", "hello") == FileKind.UNKNOWN
    assert detect_file_type("export") == FileKind.UNKNOWN
    assert detect_file_type("", "") == FileKind.UNKNOWN


def test_binary_sniffing():
    assert detect_file_type("upload", b"PK\x03\x04rest") == FileKind.XLSX
    assert detect_file_type("upload", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1rest") == FileKind.XLS
    assert detect_file_type("upload", b"<ofx><stmttrn>") == FileKind.OFX
    assert detect_file_type("upload", b"\xff\xfe\x00") == FileKind.UNKNOWN


def test_markup_helpers():
    assert is_ofx_format("<stmttrn>")
    assert not is_ofx_format("Date,Amount")
    assert markup_flavor("<INTU.BID>3000") == FileKind.QBO
    assert markup_flavor("QUICKEN export") == FileKind.QFX
    assert markup_flavor("<OFX>") == FileKind.OFX
