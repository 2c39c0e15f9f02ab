"""Format-specific ingest pipelines.

Each submodule exposes one ``parse_*`` entry point that returns a
:class:`~bank_import.models.ParseResult` and never raises.
"""

from .delimited import parse_delimited
from .ofx import parse_ofx
from .spreadsheet import get_sheet_names, parse_spreadsheet, preview_spreadsheet

__all__ = [
    "get_sheet_names",
    "parse_delimited",
    "parse_ofx",
    "parse_spreadsheet",
    "preview_spreadsheet",
]
