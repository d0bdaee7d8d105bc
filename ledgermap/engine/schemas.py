"""
Pydantic schemas for the JSON output contracts.

Field names are snake_case in Python and camelCase on the wire
(``ifrsCategory``, ``mappedTotal``); amounts are rendered as numbers.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ledgermap.engine.models import FinancialData, FinancialEntry, ReconciliationResult


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FinancialEntrySchema(CamelModel):
    """JSON form of a ledger entry."""

    id: str = Field(..., description="Account number or synthesized row id")
    date: str = Field(..., description="Entry date (YYYY-MM-DD)")
    description: str = Field(..., description="Cleaned line description")
    amount: float = Field(..., description="Signed amount")
    high_level_category: str = Field(..., description="Assets, Liabilities, Equity, Revenue or Expenses")
    main_grouping: str = Field(..., description="Intermediate grouping, e.g. Current Assets")
    ifrs_category: str = Field(..., description="IFRS leaf category")
    original_line: Optional[str] = Field(None, description="Source text line, when read from text")

    @classmethod
    def from_entry(cls, entry: FinancialEntry) -> "FinancialEntrySchema":
        return cls(
            id=entry.id,
            date=entry.date,
            description=entry.description,
            amount=float(entry.amount),
            high_level_category=entry.high_level_category.value,
            main_grouping=entry.main_grouping,
            ifrs_category=entry.ifrs_category,
            original_line=entry.original_line,
        )


class FinancialDataSchema(CamelModel):
    """JSON form of an assembled dataset."""

    company_name: str = Field(..., description="Company name")
    report_period: str = Field(..., description="Report period end")
    entries: List[FinancialEntrySchema] = Field(default_factory=list, description="Ledger entries")
    last_updated: str = Field(..., description="Assembly time (ISO-8601, UTC)")

    @classmethod
    def from_data(cls, data: FinancialData) -> "FinancialDataSchema":
        return cls(
            company_name=data.company_name,
            report_period=data.report_period,
            entries=[FinancialEntrySchema.from_entry(e) for e in data.entries],
            last_updated=data.last_updated,
        )


class ReconciliationResultSchema(CamelModel):
    """JSON form of one category reconciliation."""

    category: str = Field(..., description="IFRS category")
    mapped_total: float = Field(..., description="Sum of mapped entries")
    reported_total: Optional[float] = Field(None, description="Independently reported total")
    difference: float = Field(..., description="Mapped minus reported; 0 without a reported total")
    status: str = Field(..., description="matched, minor-mismatch, mismatch or no-total")
    percentage_diff: Optional[float] = Field(None, description="|difference| / |reported| * 100")
    contributing_items: List[str] = Field(default_factory=list, description="Description and amount per entry")
    source_pages: List[int] = Field(default_factory=list, description="Pages the reported total came from")

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "ReconciliationResultSchema":
        return cls(
            category=result.category,
            mapped_total=float(result.mapped_total),
            reported_total=float(result.reported_total) if result.reported_total is not None else None,
            difference=float(result.difference),
            status=result.status.value,
            percentage_diff=float(result.percentage_diff) if result.percentage_diff is not None else None,
            contributing_items=list(result.contributing_items),
            source_pages=list(result.source_pages),
        )


class ReconciliationReportSchema(CamelModel):
    """Reconciliation results with per-status counts."""

    results: List[ReconciliationResultSchema] = Field(default_factory=list)
    summary: Dict[str, int] = Field(default_factory=dict, description="Result count per status")
