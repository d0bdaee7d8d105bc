"""
Pytest configuration and fixtures.
"""
from decimal import Decimal
from typing import Generator, List

import pytest

from ledgermap.config import get_settings
from ledgermap.engine.classification import CategoryClassifier
from ledgermap.engine.models import FinancialEntry, HighLevelCategory
from ledgermap.engine.taxonomy import Taxonomy, get_default_taxonomy


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Drop cached settings so environment overrides apply per test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def taxonomy() -> Taxonomy:
    """Bundled IFRS taxonomy."""
    return get_default_taxonomy()


@pytest.fixture
def classifier(taxonomy: Taxonomy) -> CategoryClassifier:
    """Classifier over the bundled taxonomy."""
    return CategoryClassifier(taxonomy)


@pytest.fixture
def capital_taxonomy() -> Taxonomy:
    """Small taxonomy where 'capital' and 'share capital' disagree."""
    return Taxonomy.from_keywords({
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


def make_entry(
    entry_id: str,
    description: str,
    amount: str,
    ifrs_category: str = "Cash and Cash Equivalents",
    high_level_category: HighLevelCategory = HighLevelCategory.ASSETS,
    main_grouping: str = "Current Assets",
    original_line: str = None,
) -> FinancialEntry:
    """Build a FinancialEntry with string amounts."""
    return FinancialEntry(
        id=entry_id,
        date="2023-12-31",
        description=description,
        amount=Decimal(amount),
        high_level_category=high_level_category,
        main_grouping=main_grouping,
        ifrs_category=ifrs_category,
        original_line=original_line,
    )


@pytest.fixture
def sample_entries() -> List[FinancialEntry]:
    """Entries covering every high-level class."""
    return [
        make_entry("1000", "Cash at Bank", "50000"),
        make_entry("1100", "Petty Cash", "500"),
        make_entry(
            "1500", "Office Equipment", "12000",
            ifrs_category="Property, Plant and Equipment",
            main_grouping="Non-current Assets",
        ),
        make_entry(
            "2000", "Trade Payables", "-15000",
            ifrs_category="Trade and Other Payables",
            high_level_category=HighLevelCategory.LIABILITIES,
            main_grouping="Current Liabilities",
        ),
        make_entry(
            "2500", "Bank Loan", "-20000",
            ifrs_category="Borrowings",
            high_level_category=HighLevelCategory.LIABILITIES,
            main_grouping="Non-current Liabilities",
        ),
        make_entry(
            "3000", "Share Capital", "-10000",
            ifrs_category="Share Capital",
            high_level_category=HighLevelCategory.EQUITY,
            main_grouping="Equity",
        ),
        make_entry(
            "4000", "Sales", "80000",
            ifrs_category="Revenue",
            high_level_category=HighLevelCategory.REVENUE,
            main_grouping="Revenue",
        ),
        make_entry(
            "5000", "Rent expense", "30000",
            ifrs_category="General and Administrative Expenses",
            high_level_category=HighLevelCategory.EXPENSES,
            main_grouping="Operating Expenses",
        ),
    ]


@pytest.fixture
def entry_factory():
    """Factory for FinancialEntry records."""
    return make_entry
