"""
Tests for the LedgerMap Engine pipeline.

Covers:
- Cell rows to classified entries and CSV export
- Positioned text with a reported "Total" line reconciling as matched
- Workbook and CSV files through the file readers
- Zero extractable entries versus an unreadable source
- Injected taxonomy and review edits feeding reconciliation
"""

from decimal import Decimal
from pathlib import Path
from typing import List

import pytest
from openpyxl import Workbook

from ledgermap.config import get_settings
from ledgermap.engine.assembly import recategorize
from ledgermap.engine.classification import CategoryClassifier
from ledgermap.engine.export import financial_data_to_csv
from ledgermap.engine.models import (
    HighLevelCategory,
    ReconciliationStatus,
    ReportedTotal,
    SourceMetadata,
)
from ledgermap.engine.orchestrator import process_file, process_rows, run_pipeline
from ledgermap.engine.reconciliation import reconcile
from ledgermap.engine.sources import positioned_text_source
from ledgermap.engine.taxonomy import Taxonomy
from ledgermap.exceptions import EmptySourceError, UnsupportedSourceError


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def line_fragments(text: str, y: float) -> List[dict]:
    """Split a printed line into word fragments laid out left to right."""
    fragments = []
    x = 10.0
    for word in text.split():
        fragments.append({"text": word, "x": x, "y": y})
        x += 8.0 * len(word) + 6.0
    return fragments


# =============================================================================
# Cell Rows
# =============================================================================

class TestCellRows:
    """Test in-memory rows through the full pipeline."""

    def setup_method(self):
        """Metadata with a year in the filename."""
        self.metadata = SourceMetadata(filename="acme_2023.xlsx")

    def test_two_row_trial_balance(self):
        """Test the basic account/description/balance scenario."""
        result = process_rows(
            [["1000", "Cash at Bank", "50000"], ["2000", "Trade Payables", "(15000)"]],
            self.metadata,
        )
        cash, payables = result.data.entries

        assert cash.description == "Cash at Bank"
        assert cash.amount == Decimal("50000")
        assert cash.high_level_category == HighLevelCategory.ASSETS
        assert cash.ifrs_category == "Cash and Cash Equivalents"

        assert payables.description == "Trade Payables"
        assert payables.amount == Decimal("-15000")
        assert payables.high_level_category == HighLevelCategory.LIABILITIES
        assert payables.ifrs_category == "Trade and Other Payables"

        lines = financial_data_to_csv(result.data).split("\n")
        assert lines[2] == "2023-12-31,Trade Payables,,-15000,Liabilities,Current Liabilities,Trade and Other Payables"

    def test_section_label_row_keeps_earlier_entries(self):
        """Test a label row mid-sheet does not hide the rows above it."""
        result = process_rows(
            [["1000", "Cash at Bank", "50000"], ["Accounts Payable"], ["2000", "Trade Payables", "(15000)"]],
            self.metadata,
        )
        assert [e.description for e in result.data.entries] == ["Cash at Bank", "Trade Payables"]

    def test_entry_ids_are_unique(self):
        """Test ids stay unique when account numbers repeat or are missing."""
        result = process_rows(
            [
                ["1000", "Cash at Bank", "100"],
                ["1000", "Cash on Hand", "200"],
                ["", "Sales", "(300)"],
            ],
            self.metadata,
        )
        ids = [e.id for e in result.data.entries]
        assert len(ids) == 3
        assert len(set(ids)) == 3

    def test_supplied_totals(self):
        """Test reconciliation against caller-supplied totals."""
        result = process_rows(
            [["1000", "Cash at Bank", "600"], ["1010", "Petty Cash", "400"]],
            self.metadata,
            reported_totals={"Cash and Cash Equivalents": ReportedTotal(amount=Decimal("995"), pages=(4,))},
        )
        (cash,) = result.reconciliation
        assert cash.status == ReconciliationStatus.MINOR_MISMATCH
        assert cash.source_pages == (4,)
        assert cash.contributing_items == ("Cash at Bank - $600", "Petty Cash - $400")

    def test_injected_taxonomy(self):
        """Test a custom dictionary replaces the bundled one."""
        taxonomy = Taxonomy.from_keywords({
            "capital": {
                "ifrs_category": "Other Reserves",
                "high_level_category": "Equity",
                "main_grouping": "Equity",
            },
            "share capital": {
                "ifrs_category": "Share Capital",
                "high_level_category": "Equity",
                "main_grouping": "Equity",
            },
        })
        result = process_rows(
            [["3000", "Share Capital Account", "(10000)"], ["3100", "Cash at Bank", "100"]],
            self.metadata,
            classifier=CategoryClassifier(taxonomy),
        )
        share, cash = result.data.entries
        assert share.ifrs_category == "Share Capital"
        assert cash.ifrs_category == "Uncategorized"

    def test_zero_entries_is_success(self):
        """Test a readable source with nothing extractable."""
        result = process_rows([["Account", "Description", "Balance"], ["Notes", "", ""]], self.metadata)
        assert result.data.entries == ()
        assert result.reconciliation == []
        assert result.data.company_name == "Acme 2023"


# =============================================================================
# Positioned Text
# =============================================================================

class TestPositionedText:
    """Test PDF-style fragments through the pipeline."""

    def test_reported_total_line_reconciles(self):
        """Test a "Total" line becomes a reported total with its page."""
        document = positioned_text_source([
            line_fragments("Trial Balance as at 31 December 2023", 40)
            + line_fragments("1000 Cash at Bank 50,000", 80)
            + line_fragments("2000 Trade Payables (15,000)", 100)
            + line_fragments("----------------------------", 110)
            + line_fragments("Total Trade Payables (15,000)", 120),
        ], name="acme_2023.pdf")

        result = run_pipeline(document, SourceMetadata(filename="acme_2023.pdf", company_name="Acme"))

        assert [e.description for e in result.data.entries] == ["Cash at Bank", "Trade Payables"]
        assert result.data.entries[0].original_line == "1000 Cash at Bank 50,000"
        assert result.reported_totals == {
            "Trade and Other Payables": ReportedTotal(amount=Decimal("-15000"), pages=(1,)),
        }

        statuses = {r.category: r.status for r in result.reconciliation}
        assert statuses == {
            "Cash and Cash Equivalents": ReconciliationStatus.NO_TOTAL,
            "Trade and Other Payables": ReconciliationStatus.MATCHED,
        }

    def test_section_total_is_not_a_category_total(self):
        """Test "Total expenses" does not become one expense category's total."""
        document = positioned_text_source([
            line_fragments("Rent expense 30,000", 10)
            + line_fragments("Salaries 20,000", 30)
            + line_fragments("Total expenses 50,000", 50),
        ], name="expenses.pdf")
        result = run_pipeline(document)

        assert result.reported_totals == {}
        assert {r.category: r.status for r in result.reconciliation} == {
            "General and Administrative Expenses": ReconciliationStatus.NO_TOTAL,
            "Employee Benefits": ReconciliationStatus.NO_TOTAL,
        }

    def test_noise_lines_dropped(self):
        """Test immaterial single amounts and debit/credit lines."""
        document = positioned_text_source([
            line_fragments("Petty cash float 50", 10)
            + line_fragments("Sundry Expenses 3,000 1,000", 30),
        ], name="ledger.pdf")
        result = run_pipeline(document)

        (entry,) = result.data.entries
        assert entry.description == "Sundry Expenses"
        assert entry.amount == Decimal("2000")
        assert entry.ifrs_category == "Other Expenses"


# =============================================================================
# Files
# =============================================================================

class TestFiles:
    """Test file readers feeding the pipeline."""

    def test_workbook_with_debit_credit_header(self, tmp_path: Path):
        """Test header-driven columns and total rows skipped."""
        wb = Workbook()
        ws = wb.active
        ws.title = "TB"
        ws.append(["Trial Balance FY2023"])
        ws.append(["Account", "Description", "Debit", "Credit"])
        ws.append([1000, "Cash at Bank", 50000, None])
        ws.append([2000, "Trade Payables", None, 15000])
        ws.append([None, "Total", 50000, 15000])
        path = tmp_path / "acme_2023.xlsx"
        wb.save(path)

        result = process_file(path, period_end="2023-06-30")

        assert [(e.id, e.amount) for e in result.data.entries] == [
            ("1000", Decimal("50000")),
            ("2000", Decimal("-15000")),
        ]
        assert all(e.date == "2023-06-30" for e in result.data.entries)
        assert all(e.original_line is None for e in result.data.entries)

    def test_csv_bytes(self):
        """Test in-memory CSV bytes with a filename."""
        data = b"Description,Debit,Credit\nOffice rent,1200,\nSales,,5000\n"
        result = process_file(data, filename="tb_2022.csv", company_name="Acme")

        rent, sales = result.data.entries
        assert rent.ifrs_category == "General and Administrative Expenses"
        assert sales.amount == Decimal("-5000")
        assert sales.ifrs_category == "Revenue"
        assert result.data.report_period == "2022-12-31"

    def test_default_period_end_setting(self, tmp_path: Path, monkeypatch):
        """Test DEFAULT_PERIOD_END applies when a source has no date."""
        monkeypatch.setenv("DEFAULT_PERIOD_END", "2024-03-31")
        path = tmp_path / "ledger.csv"
        path.write_text("Cash at Bank,50000\n", encoding="utf-8")

        result = process_file(path)

        assert result.data.entries[0].date == "2024-03-31"
        assert result.data.report_period == "2024-03-31"

    def test_run_pipeline_with_metadata(self, tmp_path: Path):
        """Test metadata is applied to file input."""
        path = tmp_path / "ledger.csv"
        path.write_text("Cash at Bank,50000\n", encoding="utf-8")

        result = run_pipeline(path, SourceMetadata(filename="ledger.csv", company_name="Acme", period_end="2023-12-31"))

        assert result.data.company_name == "Acme"
        assert result.data.entries[0].date == "2023-12-31"

    def test_empty_source_is_an_error(self, tmp_path: Path):
        """Test an empty file is distinct from zero entries."""
        path = tmp_path / "empty.csv"
        path.write_text("", encoding="utf-8")
        with pytest.raises(EmptySourceError):
            process_file(path)

    def test_unsupported_source(self):
        """Test unknown file types are rejected."""
        with pytest.raises(UnsupportedSourceError):
            process_file(b"data", filename="tb.docx")


# =============================================================================
# Review
# =============================================================================

class TestReview:
    """Test review edits and reconciliation recomputation."""

    def test_recategorize_then_reconcile(self):
        """Test reconciliation follows the edited entry list."""
        result = process_rows(
            [["1000", "Cash at Bank", "50000"], ["1200", "Sundry debtors", "980"]],
            SourceMetadata(filename="acme_2023.xlsx"),
        )
        totals = {"Cash and Cash Equivalents": Decimal("50000")}

        before = reconcile(result.data.entries, totals)
        assert [r.category for r in before] == ["Cash and Cash Equivalents", "Trade and Other Receivables"]

        updated = recategorize(result.data, "1200", "Cash and Cash Equivalents")
        after = reconcile(updated.entries, totals)

        assert [r.category for r in after] == ["Cash and Cash Equivalents"]
        assert after[0].mapped_total == Decimal("50980")
        assert after[0].status == ReconciliationStatus.MISMATCH
        assert reconcile(updated.entries, totals) == after
        assert result.data.entry("1200").ifrs_category == "Trade and Other Receivables"
