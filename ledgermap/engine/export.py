"""
Export of datasets and reconciliation reports.
"""

from decimal import Decimal
from typing import Iterable, Optional

from ledgermap.engine.models import FinancialData, ReconciliationResult
from ledgermap.engine.reconciliation import summarize_reconciliation
from ledgermap.engine.schemas import (
    FinancialDataSchema,
    ReconciliationReportSchema,
    ReconciliationResultSchema,
)


CSV_HEADER = (
    "Date",
    "Description",
    "Original Line",
    "Amount",
    "High Level Category",
    "Main Grouping",
    "IFRS Category",
)


def format_amount(amount: Decimal) -> str:
    """Plain decimal text without exponent or trailing zeros: -15000, 1234.5."""
    if amount == 0:
        return "0"
    return format(Decimal(amount).normalize(), "f")


def financial_data_to_csv(data: FinancialData) -> str:
    """
    Render entries as comma-joined lines, header first.

    Fields are not quoted; a description containing a comma produces an
    extra column. Callers needing strict CSV must quote themselves.
    """
    lines = [",".join(CSV_HEADER)]
    for entry in data.entries:
        lines.append(",".join((
            entry.date,
            entry.description,
            entry.original_line or "",
            format_amount(entry.amount),
            entry.high_level_category.value,
            entry.main_grouping,
            entry.ifrs_category,
        )))
    return "\n".join(lines)


def financial_data_to_json(data: FinancialData, indent: Optional[int] = 2) -> str:
    """Dataset as camelCase JSON."""
    return FinancialDataSchema.from_data(data).model_dump_json(by_alias=True, indent=indent)


def reconciliation_to_json(results: Iterable[ReconciliationResult], indent: Optional[int] = 2) -> str:
    """Reconciliation results plus status counts as camelCase JSON."""
    results = list(results)
    report = ReconciliationReportSchema(
        results=[ReconciliationResultSchema.from_result(r) for r in results],
        summary=summarize_reconciliation(results),
    )
    return report.model_dump_json(by_alias=True, indent=indent)
