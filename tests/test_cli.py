import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from bank_import.cli import app, default_categories

runner = CliRunner()

CSV_TEXT = (
    "Date,Description,Amount\n"
    "01/15/2024,STARBUCKS STORE 123,-4.50\n"
    "01/16/2024,Payroll Deposit ACME,2500.00\n"
)


@pytest.fixture(autouse=True)
def _quiet_cli(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    # Run from an empty directory so no stray .env is loaded, and keep
    # info-level logs out of the captured output.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("BANK_IMPORT_LOG_LEVEL", "WARNING")


@pytest.fixture()
def statement(tmp_path: Path) -> Path:
    path = tmp_path / "statement.csv"
    path.write_text(CSV_TEXT, encoding="utf-8")
    return path


def test_detect(statement: Path):
    result = runner.invoke(app, ["detect", str(statement)])
    assert result.exit_code == 0
    assert result.stdout.strip() == "csv"


def test_parse_table(statement: Path):
    result = runner.invoke(app, ["parse", str(statement)])

    assert result.exit_code == 0
    lines = result.stdout.strip().splitlines()
    assert lines[0] == "2\t2024-01-15\t-4.50\tdebit\tSTARBUCKS STORE 123"
    assert lines[1] == "3\t2024-01-16\t2500.00\tcredit\tPayroll Deposit ACME"


def test_parse_with_categories(statement: Path):
    result = runner.invoke(app, ["parse", str(statement), "--categorize"])

    assert result.exit_code == 0
    first = result.stdout.strip().splitlines()[0]
    assert first.endswith("\tFood & Dining")


def test_parse_json(statement: Path):
    result = runner.invoke(app, ["parse", str(statement), "--json", "--categorize"])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["result"]["success"] is True
    assert report["result"]["file_type"] == "csv"
    assert report["result"]["transactions"][0]["amount"] == "-4.50"
    assert report["categorization"][0]["merchant"]["cleaned"] == "Starbucks"


def test_parse_failure_exit_code(tmp_path: Path):
    empty = tmp_path / "empty.csv"
    empty.write_bytes(b"")
    assert runner.invoke(app, ["parse", str(empty)]).exit_code == 1
    assert runner.invoke(app, ["parse", str(tmp_path / "missing.csv")]).exit_code == 1


def test_parse_options(tmp_path: Path):
    path = tmp_path / "split.csv"
    path.write_text(
        "Exported by Bank\nDate,Description,Debit,Credit\n01/02/2024,Coffee Shop,4.50,\n",
        encoding="utf-8",
    )
    result = runner.invoke(
        app, ["parse", str(path), "--skip-rows", "1", "--debits-positive", "--json"]
    )

    assert result.exit_code == 0
    tx = json.loads(result.stdout)["result"]["transactions"][0]
    assert tx["amount"] == "4.50"
    assert tx["row_number"] == 3


def test_preview(statement: Path):
    result = runner.invoke(app, ["preview", str(statement), "--rows", "1"])

    assert result.exit_code == 0
    preview = json.loads(result.stdout)
    assert preview["headers"] == ["Date", "Description", "Amount"]
    assert len(preview["sample_rows"]) == 1
    assert preview["detected_format"]["date_column"] == "Date"


def test_default_categories_cover_keyword_tables():
    names = {c.name for c in default_categories()}
    assert {"Food & Dining", "Transportation", "Income"} <= names
