"""
Data structures for the LedgerMap engine.

Covers every stage of the pipeline:
- TextFragment / RawRow / SourceDocument produced by source adapters
- CandidateFields produced by the line tokenizer
- Classification produced by the category classifier
- FinancialEntry / FinancialData produced by the entry builder and assembler
- ReportedTotal / ReconciliationResult used by the reconciliation engine
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Tuple


class HighLevelCategory(str, Enum):
    """Top-level accounting classes."""
    ASSETS = "Assets"
    LIABILITIES = "Liabilities"
    EQUITY = "Equity"
    REVENUE = "Revenue"
    EXPENSES = "Expenses"


class Direction(str, Enum):
    """Display side of a balance."""
    DEBIT = "debit"
    CREDIT = "credit"


class SourceKind(str, Enum):
    """Kind of source a row was read from."""
    SPREADSHEET = "spreadsheet"
    POSITIONED_TEXT = "positioned_text"
    DELIMITED_TEXT = "delimited_text"


class ReconciliationStatus(str, Enum):
    """Outcome of a category reconciliation."""
    MATCHED = "matched"
    MINOR_MISMATCH = "minor-mismatch"
    MISMATCH = "mismatch"
    NO_TOTAL = "no-total"


# =============================================================================
# Source Level
# =============================================================================

@dataclass(frozen=True)
class TextFragment:
    """A positioned piece of text from a PDF text layer (y grows downward)."""
    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0


@dataclass(frozen=True)
class RawRow:
    """
    One physical row from a source document.

    Structured sources fill ``cells``; positioned text fills ``text`` with the
    fragments of the row joined left to right.
    """
    cells: Tuple[Any, ...] = ()
    text: Optional[str] = None
    page: Optional[int] = None
    y: Optional[float] = None
    sheet: Optional[str] = None
    row_number: Optional[int] = None

    @property
    def is_text(self) -> bool:
        return self.text is not None


@dataclass
class SourceDocument:
    """Rows extracted from one source file, ready for tokenization."""
    name: str
    kind: SourceKind
    rows: List[RawRow] = field(default_factory=list)
    page_count: int = 0
    sheet_names: List[str] = field(default_factory=list)

    def text_lines(self) -> List[Tuple[int, str]]:
        """(page, text) pairs for every text row."""
        return [(row.page or 1, row.text) for row in self.rows if row.text]


@dataclass(frozen=True)
class SourceMetadata:
    """Caller-supplied facts about a source."""
    filename: str
    company_name: Optional[str] = None
    report_period: Optional[str] = None
    period_end: Optional[str] = None
    id_prefix: str = "row"


# =============================================================================
# Tokenizer and Classifier Output
# =============================================================================

@dataclass(frozen=True)
class CandidateFields:
    """Fields recovered from one row by the tokenizer."""
    description: str
    balance: Decimal
    raw_line: str = ""
    account_number: Optional[str] = None
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None
    date: Optional[str] = None
    page: Optional[int] = None

    @property
    def direction(self) -> Direction:
        return Direction.DEBIT if self.balance >= 0 else Direction.CREDIT


@dataclass(frozen=True)
class Classification:
    """Taxonomy triple assigned to a description."""
    ifrs_category: str
    high_level_category: HighLevelCategory
    main_grouping: str
    matched_keyword: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.matched_keyword is None


# =============================================================================
# Ledger
# =============================================================================

@dataclass(frozen=True)
class FinancialEntry:
    """
    Canonical ledger line.

    Instances are immutable. Re-categorization produces a new entry through
    ``with_category``; amount, description and original line never change.
    """
    id: str
    date: str
    description: str
    amount: Decimal
    high_level_category: HighLevelCategory
    main_grouping: str
    ifrs_category: str
    original_line: Optional[str] = None

    def with_category(
        self,
        ifrs_category: str,
        high_level_category: HighLevelCategory,
        main_grouping: str,
    ) -> "FinancialEntry":
        return FinancialEntry(
            id=self.id,
            date=self.date,
            description=self.description,
            amount=self.amount,
            high_level_category=high_level_category,
            main_grouping=main_grouping,
            ifrs_category=ifrs_category,
            original_line=self.original_line,
        )


@dataclass(frozen=True)
class FinancialData:
    """One assembled dataset per ingested source file."""
    company_name: str
    report_period: str
    entries: Tuple[FinancialEntry, ...]
    last_updated: str

    def entry(self, entry_id: str) -> Optional[FinancialEntry]:
        return next((e for e in self.entries if e.id == entry_id), None)


# =============================================================================
# Reconciliation
# =============================================================================

@dataclass(frozen=True)
class ReportedTotal:
    """Independently reported total for a category."""
    amount: Decimal
    pages: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ReconciliationResult:
    """Comparison of a mapped category sum with its reported total."""
    category: str
    mapped_total: Decimal
    difference: Decimal
    status: ReconciliationStatus
    reported_total: Optional[Decimal] = None
    percentage_diff: Optional[Decimal] = None
    contributing_items: Tuple[str, ...] = ()
    source_pages: Tuple[int, ...] = ()


def today_iso() -> str:
    """Today's date as YYYY-MM-DD."""
    return date.today().isoformat()
