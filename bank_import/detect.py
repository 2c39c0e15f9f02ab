"""File-kind detection from the file name and, failing that, content."""

from __future__ import annotations

from pathlib import PurePath

from .logging_setup import get_logger
from .models import FileKind

_logger = get_logger("bank_import.detect")

_EXTENSIONS: dict[str, FileKind] = {
    ".csv": FileKind.CSV,
    ".xlsx": FileKind.XLSX,
    ".xls": FileKind.XLS,
    ".qbo": FileKind.QBO,
    ".qfx": FileKind.QFX,
    ".ofx": FileKind.OFX,
}

OFX_MARKERS: tuple[str, ...] = (
    "OFXHEADER",
    "<OFX>",
    "<BANKMSGSRSV1>",
    "<CREDITCARDMSGSRSV1>",
    "<STMTTRN>",
    "<BANKTRANLIST>",
    "ENCODING:",
    "DATA:OFXSGML",
    "INTU.BID",
    "INTUIT",
    "<SONRS>",
    "<STMTRS>",
)

_ZIP_MAGIC = b"PK\x03\x04"
_OLE2_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
# Only the head of a binary buffer is decoded for text sniffing.
_SNIFF_BYTES = 64 * 1024


def is_ofx_format(text: str) -> bool:
    upper = text.upper()
    return any(marker in upper for marker in OFX_MARKERS)


def markup_flavor(text: str) -> FileKind:
    """Which markup dialect ``text`` comes from (qbo/qfx/ofx)."""

    if "INTUIT" in text or "INTU.BID" in text:
        return FileKind.QBO
    if "QUICKEN" in text:
        return FileKind.QFX
    return FileKind.OFX


def _sniff_text(text: str) -> FileKind:
    if is_ofx_format(text):
        return FileKind.OFX
    if "," in text and ("\n" in text or "\r" in text):
        return FileKind.CSV
    return FileKind.UNKNOWN


def detect_file_type(file_name: str, content: str | bytes | None = None) -> FileKind:
    """Classify a file; the extension wins, content is the fallback.

    ``unknown`` is a normal answer, not an error.
    """

    suffix = PurePath(file_name or "").suffix.lower()
    kind = _EXTENSIONS.get(suffix)
    if kind is not None:
        return kind
    if content is None:
        return FileKind.UNKNOWN

    if isinstance(content, (bytes, bytearray)):
        head = bytes(content[:_SNIFF_BYTES])
        if head.startswith(_ZIP_MAGIC):
            return FileKind.XLSX
        if head.startswith(_OLE2_MAGIC):
            return FileKind.XLS
        kind = _sniff_text(head.decode("utf-8", errors="replace"))
    else:
        kind = _sniff_text(content)
    _logger.debug("content sniffing classified %r as %s", file_name, kind.value)
    return kind


__all__ = ["OFX_MARKERS", "detect_file_type", "is_ofx_format", "markup_flavor"]
