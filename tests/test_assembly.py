"""
Tests for dataset assembly, recategorization and the dataset registry.
"""
from datetime import date
from decimal import Decimal
from typing import List

import pytest

from ledgermap.engine.assembly import (
    DatasetRegistry,
    assemble,
    humanize_filename,
    recategorize,
    resolve_report_period,
)
from ledgermap.engine.models import FinancialEntry, HighLevelCategory, SourceMetadata
from ledgermap.exceptions import DatasetNotFoundError, EntryNotFoundError, UnknownCategoryError


class TestAssemble:
    """Tests for assemble and its metadata defaults."""

    @pytest.mark.parametrize("filename,expected", [
        ("acme_corp-tb.2023.xlsx", "Acme Corp Tb 2023"),
        ("ABC_ledger.csv", "ABC Ledger"),
        ("trial balance.pdf", "Trial Balance"),
        ("", ""),
    ])
    def test_humanize_filename(self, filename, expected):
        """Test separators become spaces and acronyms are kept."""
        assert humanize_filename(filename) == expected

    def test_report_period_precedence(self):
        """Test explicit period, then period end, then filename year."""
        assert resolve_report_period(SourceMetadata("tb_2023.xlsx", report_period="FY2023")) == "FY2023"
        assert resolve_report_period(SourceMetadata("tb_2023.xlsx", period_end="2023-06-30")) == "2023-06-30"
        assert resolve_report_period(SourceMetadata("tb_2023.xlsx")) == "2023-12-31"
        assert resolve_report_period(SourceMetadata("tb.xlsx")) == date.today().isoformat()

    def test_assemble(self, sample_entries: List[FinancialEntry]):
        """Test entries keep their order and metadata is applied."""
        data = assemble(sample_entries, SourceMetadata("acme_2023.xlsx", company_name="Acme Ltd"))
        assert data.company_name == "Acme Ltd"
        assert data.report_period == "2023-12-31"
        assert [e.id for e in data.entries] == [e.id for e in sample_entries]
        assert data.last_updated.endswith("+00:00")

    def test_assemble_empty(self):
        """Test zero entries is a valid dataset."""
        data = assemble([], SourceMetadata("acme_2023.xlsx"))
        assert data.entries == ()
        assert data.company_name == "Acme 2023"

    def test_unknown_company(self):
        """Test a name is always present."""
        assert assemble([], SourceMetadata("")).company_name == "Unknown Company"


class TestRecategorize:
    """Tests for the replace-entry review operation."""

    def setup_method(self):
        """Create metadata for each test."""
        self.metadata = SourceMetadata("acme_2023.xlsx")

    def test_catalogue_parents(self, sample_entries: List[FinancialEntry]):
        """Test parent levels come from the catalogue."""
        data = assemble(sample_entries, self.metadata)
        updated = recategorize(data, "4000", "Other Income")

        entry = updated.entry("4000")
        assert entry.ifrs_category == "Other Income"
        assert entry.high_level_category == HighLevelCategory.REVENUE
        assert entry.main_grouping == "Other Income"
        assert entry.amount == Decimal("80000")
        assert entry.description == "Sales"

        assert data.entry("4000").ifrs_category == "Revenue"
        assert [e.id for e in updated.entries] == [e.id for e in data.entries]

    def test_configured_taxonomy_catalogue(self, sample_entries: List[FinancialEntry], tmp_path, monkeypatch):
        """Test TAXONOMY_PATH supplies the catalogue used for review."""
        path = tmp_path / "custom.yaml"
        path.write_text(
            "categories:\n"
            "  - name: Crypto Assets\n"
            "    high_level_category: Assets\n"
            "    main_grouping: Non-current Assets\n"
            "    keywords: [bitcoin]\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("TAXONOMY_PATH", str(path))
        data = assemble(sample_entries, self.metadata)

        entry = recategorize(data, "1000", "crypto assets").entry("1000")
        assert entry.ifrs_category == "Crypto Assets"
        assert entry.main_grouping == "Non-current Assets"
        with pytest.raises(UnknownCategoryError):
            recategorize(data, "1000", "Inventories")

    def test_catalogue_name_is_canonical(self, sample_entries: List[FinancialEntry]):
        """Test category names are matched case-insensitively."""
        data = assemble(sample_entries, self.metadata)
        assert recategorize(data, "1000", "inventories").entry("1000").ifrs_category == "Inventories"

    def test_explicit_parents(self, sample_entries: List[FinancialEntry]):
        """Test a category outside the catalogue with its parents given."""
        data = assemble(sample_entries, self.metadata)
        updated = recategorize(data, "5000", "Lease Expense", "expenses", "Operating Expenses")
        entry = updated.entry("5000")
        assert entry.ifrs_category == "Lease Expense"
        assert entry.high_level_category == HighLevelCategory.EXPENSES

    def test_override_high_level_only(self, sample_entries: List[FinancialEntry]):
        """Test a single parent override keeps the catalogue grouping."""
        data = assemble(sample_entries, self.metadata)
        entry = recategorize(data, "1000", "Borrowings", "liabilities").entry("1000")
        assert entry.high_level_category == HighLevelCategory.LIABILITIES
        assert entry.main_grouping == "Non-current Liabilities"

    def test_unknown_entry(self, sample_entries: List[FinancialEntry]):
        """Test a missing id raises."""
        data = assemble(sample_entries, self.metadata)
        with pytest.raises(EntryNotFoundError) as exc_info:
            recategorize(data, "9999", "Revenue")
        assert exc_info.value.error_code == "LGM-300"

    def test_unknown_category(self, sample_entries: List[FinancialEntry]):
        """Test an unknown category without parents raises."""
        data = assemble(sample_entries, self.metadata)
        with pytest.raises(UnknownCategoryError):
            recategorize(data, "1000", "Not A Category")


class TestDatasetRegistry:
    """Tests for per-source datasets."""

    def setup_method(self):
        """Create an empty registry for each test."""
        self.registry = DatasetRegistry()

    def test_first_dataset_is_current(self, sample_entries: List[FinancialEntry]):
        """Test selection defaults and switching."""
        assert self.registry.current() is None
        a = assemble(sample_entries, SourceMetadata("a_2023.csv"))
        b = assemble(sample_entries[:2], SourceMetadata("b_2023.csv"))
        self.registry.put("a", a)
        self.registry.put("b", b)

        assert self.registry.current_id == "a"
        assert self.registry.list_sources() == ["a", "b"]
        assert self.registry.select("b") is b
        assert self.registry.current() is b

    def test_missing_dataset(self):
        """Test unknown ids raise DatasetNotFoundError."""
        with pytest.raises(DatasetNotFoundError):
            self.registry.get("nope")
        with pytest.raises(DatasetNotFoundError):
            self.registry.select("nope")
        with pytest.raises(DatasetNotFoundError):
            self.registry.remove("nope")

    def test_remove_current(self, sample_entries: List[FinancialEntry]):
        """Test removing the current dataset moves the selection."""
        self.registry.put("a", assemble(sample_entries, SourceMetadata("a.csv")))
        self.registry.put("b", assemble(sample_entries, SourceMetadata("b.csv")))
        self.registry.remove("a")
        assert self.registry.current_id == "b"
        self.registry.remove("b")
        assert self.registry.current() is None

    def test_update_entries(self, sample_entries: List[FinancialEntry]):
        """Test the entry list is replaced wholesale."""
        self.registry.put("a", assemble(sample_entries, SourceMetadata("a.csv", company_name="Acme")))
        updated = self.registry.update_entries("a", sample_entries[:3])
        assert len(updated.entries) == 3
        assert updated.company_name == "Acme"
        assert self.registry.get("a") is updated

    def test_recategorize_stored(self, sample_entries: List[FinancialEntry]):
        """Test review edits replace the stored dataset."""
        original = assemble(sample_entries, SourceMetadata("a.csv"))
        self.registry.put("a", original)
        updated = self.registry.recategorize("a", "1100", "Other Current Assets")
        assert self.registry.get("a") is updated
        assert updated.entry("1100").ifrs_category == "Other Current Assets"
        assert original.entry("1100").ifrs_category == "Cash and Cash Equivalents"
