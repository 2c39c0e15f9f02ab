"""Allow ``python -m bank_import``."""

from .cli import app

app(prog_name="bank-import")
