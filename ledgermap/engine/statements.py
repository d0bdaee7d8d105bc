"""
Statement summaries built from a classified dataset.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable, Tuple

from ledgermap.engine.models import FinancialData, FinancialEntry, HighLevelCategory


@dataclass(frozen=True)
class StatementSection:
    """A labelled group of entries and their sum."""
    label: str
    entries: Tuple[FinancialEntry, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    current_assets: StatementSection
    non_current_assets: StatementSection
    current_liabilities: StatementSection
    non_current_liabilities: StatementSection
    equity: StatementSection

    @property
    def total_assets(self) -> Decimal:
        return self.current_assets.total + self.non_current_assets.total

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return (
            self.current_liabilities.total
            + self.non_current_liabilities.total
            + self.equity.total
        )


@dataclass(frozen=True)
class IncomeStatement:
    revenue: StatementSection
    expenses: StatementSection

    @property
    def net_income(self) -> Decimal:
        return self.revenue.total - self.expenses.total


@dataclass(frozen=True)
class StatementSummary:
    company_name: str
    report_period: str
    balance_sheet: BalanceSheet
    income_statement: IncomeStatement


def _section(
    label: str,
    entries: Iterable[FinancialEntry],
    predicate: Callable[[FinancialEntry], bool],
) -> StatementSection:
    members = tuple(e for e in entries if predicate(e))
    return StatementSection(
        label=label,
        entries=members,
        total=sum((e.amount for e in members), Decimal(0)),
    )


def summarize_statements(data: FinancialData) -> StatementSummary:
    """
    Group a dataset into balance sheet and income statement sections.

    Assets and liabilities split on main grouping; equity, revenue and
    expenses take every entry of their high-level class. Net income is
    revenue minus expenses.
    """
    entries = data.entries

    def grouped(high_level: HighLevelCategory, grouping: str) -> Callable[[FinancialEntry], bool]:
        return lambda e: e.high_level_category == high_level and e.main_grouping == grouping

    def of_class(high_level: HighLevelCategory) -> Callable[[FinancialEntry], bool]:
        return lambda e: e.high_level_category == high_level

    balance_sheet = BalanceSheet(
        current_assets=_section(
            "Current Assets", entries, grouped(HighLevelCategory.ASSETS, "Current Assets")),
        non_current_assets=_section(
            "Non-current Assets", entries, grouped(HighLevelCategory.ASSETS, "Non-current Assets")),
        current_liabilities=_section(
            "Current Liabilities", entries, grouped(HighLevelCategory.LIABILITIES, "Current Liabilities")),
        non_current_liabilities=_section(
            "Non-current Liabilities", entries, grouped(HighLevelCategory.LIABILITIES, "Non-current Liabilities")),
        equity=_section("Equity", entries, of_class(HighLevelCategory.EQUITY)),
    )
    income_statement = IncomeStatement(
        revenue=_section("Revenue", entries, of_class(HighLevelCategory.REVENUE)),
        expenses=_section("Expenses", entries, of_class(HighLevelCategory.EXPENSES)),
    )
    return StatementSummary(
        company_name=data.company_name,
        report_period=data.report_period,
        balance_sheet=balance_sheet,
        income_statement=income_statement,
    )
