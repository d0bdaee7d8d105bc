"""
Line tokenizer for the LedgerMap engine.

Turns source rows into CandidateFields:
- positioned PDF fragments are grouped into text rows by vertical position
- text rows are filtered for headers and noise, then matched against the
  account / debit-credit / single-amount line patterns
- spreadsheet and delimited cell rows are resolved through a detected header
  layout, or through the known positional formats when no header was found

Filtered rows return None; nothing here raises for data-quality problems.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from itertools import groupby
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import structlog

from ledgermap.config import Settings, get_settings
from ledgermap.engine.models import (
    CandidateFields,
    RawRow,
    SourceDocument,
    SourceKind,
    TextFragment,
)
from ledgermap.services.numeric_parser import get_numeric_parser, normalize_amount

logger = structlog.get_logger(__name__)


# Header and noise keywords for text lines
HEADER_KEYWORDS = (
    "trial balance",
    "balance sheet",
    "income statement",
    "profit and loss",
    "account number",
    "description",
    "debit",
    "credit",
    "balance",
    "total",
    "subtotal",
    "page",
    "date:",
    "period:",
    "company",
)

SEPARATOR_PATTERN = re.compile(r"^[\s\-_=]+$")

# One amount column: optional parentheses, sign and currency symbol; "-" is an empty column
AMOUNT_TOKEN = r"(?:[\$£€¥₹]?\(?-?[\$£€¥₹]?-?\d[\d,]*(?:\.\d+)?\)?|-)"
# A currency symbol printed apart from its amount ("$ 50,000")
CURRENCY_GAP_PATTERN = re.compile(r"(?<!\S)([\$£€¥₹])\s+(?=\(?-?\d)")
AMOUNT_TAIL_PATTERN = re.compile(rf"^(?P<body>.*?)(?P<tail>(?:\s+{AMOUNT_TOKEN})+)\s*$")
LEADING_ACCOUNT_PATTERN = re.compile(r"^(?P<account>\d+)\s+(?P<description>.+)$")

ACCOUNT_PREFIX_PATTERN = re.compile(r"^(\d{3,6})\b\s*")
WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(frozen=True)
class TokenizerOptions:
    """Tunable noise filters and grouping tolerance."""
    min_line_length: int = 10
    noise_amount_threshold: Decimal = Decimal("100")
    row_tolerance: float = 5.0
    header_scan_rows: int = 10

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TokenizerOptions":
        settings = settings or get_settings()
        return cls(
            min_line_length=settings.min_line_length,
            noise_amount_threshold=settings.noise_amount_threshold,
            row_tolerance=settings.row_tolerance,
            header_scan_rows=settings.header_scan_rows,
        )


@dataclass(frozen=True)
class HeaderLayout:
    """Column indices resolved from a header row."""
    description: Optional[int] = None
    account: Optional[int] = None
    debit: Optional[int] = None
    credit: Optional[int] = None
    balance: Optional[int] = None

    @property
    def is_usable(self) -> bool:
        """A layout needs a description column and at least one amount column."""
        return self.description is not None and any(
            i is not None for i in (self.debit, self.credit, self.balance)
        )


@dataclass(frozen=True)
class TokenizerContext:
    """Per-row context passed to the tokenizer."""
    default_date: Optional[str] = None
    page: Optional[int] = None
    header: Optional[HeaderLayout] = None


# =============================================================================
# Helpers
# =============================================================================

def cell_text(value: Any) -> str:
    """Render a cell as trimmed text; integral floats lose their '.0'."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def close_currency_gaps(text: str) -> str:
    """Attach detached currency symbols to the amount that follows."""
    return CURRENCY_GAP_PATTERN.sub(r"\1", text)


def extract_account_number(description: str) -> Optional[str]:
    """Leading 3-6 digit run of a description, if any."""
    match = ACCOUNT_PREFIX_PATTERN.match(description.strip())
    return match.group(1) if match else None


def clean_description(description: str) -> str:
    """Strip a leading account number and collapse whitespace."""
    text = ACCOUNT_PREFIX_PATTERN.sub("", description.strip())
    text = re.sub(r"^[\-:.]\s*", "", text)
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def group_fragments_into_rows(
    fragments: Iterable[TextFragment],
    tolerance: float = 5.0,
    page: Optional[int] = None,
) -> List[RawRow]:
    """
    Group positioned fragments into text rows.

    Fragments whose ``y`` lies within ``tolerance`` of the first fragment of
    the current row join that row. Each row is ordered by ``x`` and joined
    with single spaces; rows with no text are dropped.

    Args:
        fragments: Fragments from one page.
        tolerance: Maximum vertical distance within a row.
        page: Page number stamped on every row.

    Returns:
        RawRows in top-to-bottom order.
    """
    ordered = sorted(
        (f for f in fragments if f.text and f.text.strip()),
        key=lambda f: (f.y, f.x),
    )

    groups: List[List[TextFragment]] = []
    current: List[TextFragment] = []
    anchor: Optional[float] = None

    for fragment in ordered:
        if anchor is not None and abs(fragment.y - anchor) <= tolerance:
            current.append(fragment)
            continue
        if current:
            groups.append(current)
        current = [fragment]
        anchor = fragment.y

    if current:
        groups.append(current)

    rows = []
    for group in groups:
        group.sort(key=lambda f: f.x)
        text = " ".join(f.text.strip() for f in group)
        if text.strip():
            rows.append(RawRow(text=text, page=page, y=group[0].y))
    return rows


def detect_header_layout(
    rows: Sequence[RawRow],
    scan_rows: int = 10,
) -> Optional[Tuple[int, HeaderLayout]]:
    """
    Find the header row among the first ``scan_rows`` cell rows.

    A header row has two cells mentioning account, description, debit,
    credit or balance, or one such cell and no numeric cells. The first row
    whose layout is usable wins; failing that, the first header-like row is
    returned so that it is still skipped.

    Returns:
        (row index, layout) or None when no header was found.
    """
    parser = get_numeric_parser()
    first: Optional[Tuple[int, HeaderLayout]] = None
    for index, row in enumerate(rows[:scan_rows]):
        labels = [cell_text(c).lower() for c in row.cells]
        keyword_cells = sum(
            1 for label in labels
            if any(k in label for k in ("account", "description", "debit", "credit", "balance"))
        )
        if keyword_cells == 0:
            continue
        if keyword_cells == 1 and any(parser.is_numeric(c) for c in row.cells):
            continue
        layout = _resolve_layout(labels)
        if layout.is_usable:
            return index, layout
        if first is None:
            first = (index, layout)
    return first


def _resolve_layout(labels: List[str]) -> HeaderLayout:
    """Map header labels to column indices; first matching column wins."""

    def find(*keywords: str, exclude: Tuple[Optional[int], ...] = ()) -> Optional[int]:
        for i, label in enumerate(labels):
            if i in exclude:
                continue
            if any(k in label for k in keywords):
                return i
        return None

    description = find("description", "name")
    account = find("account", "code", exclude=(description,))
    debit = find("debit", exclude=(description, account))
    credit = find("credit", exclude=(description, account, debit))
    balance = find("balance", "amount", exclude=(description, account, debit, credit))
    return HeaderLayout(
        description=description,
        account=account,
        debit=debit,
        credit=credit,
        balance=balance,
    )


# =============================================================================
# Tokenizer
# =============================================================================

class LineTokenizer:
    """
    Tokenizer for text lines and cell rows.

    Text line patterns, tried in order:
    1. ``AccountNumber Description Amount``
    2. ``Description Debit Credit`` (balance = debit - credit)
    3. ``Description Amount`` when ``|amount|`` exceeds the noise threshold
    """

    def __init__(self, options: Optional[TokenizerOptions] = None):
        self.options = options or TokenizerOptions()
        self._numeric_parser = get_numeric_parser()

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def tokenize(
        self,
        row: Union[RawRow, str],
        context: Optional[TokenizerContext] = None,
    ) -> Optional[CandidateFields]:
        """
        Tokenize one row.

        Args:
            row: A text line, or a RawRow holding text or cells.
            context: Default date, page and header layout.

        Returns:
            CandidateFields, or None when the row is filtered.
        """
        context = context or TokenizerContext()
        if isinstance(row, str):
            return self.tokenize_line(row, context)
        if row.is_text:
            if row.page is not None and context.page is None:
                context = TokenizerContext(context.default_date, row.page, context.header)
            return self.tokenize_line(row.text, context)
        return self.tokenize_cells(row.cells, context)

    def tokenize_document(
        self,
        document: SourceDocument,
        default_date: Optional[str] = None,
    ) -> List[CandidateFields]:
        """
        Tokenize every row of a source document in order.

        Cell rows are handled per sheet. A usable header drops the rows up to
        and including it and its layout drives the rest; a header-like row
        without a usable layout drops only itself.
        """
        if document.kind == SourceKind.POSITIONED_TEXT:
            candidates = [
                self.tokenize_line(row.text, TokenizerContext(default_date, row.page))
                for row in document.rows
                if row.is_text
            ]
        else:
            candidates = []
            for sheet, rows in groupby(document.rows, key=lambda r: r.sheet):
                candidates.extend(self._tokenize_sheet(list(rows), default_date, sheet))

        kept = [c for c in candidates if c is not None]
        logger.info(
            "Tokenized document",
            source=document.name,
            rows=len(document.rows),
            candidates=len(kept),
        )
        return kept

    def _tokenize_sheet(
        self,
        rows: List[RawRow],
        default_date: Optional[str],
        sheet: Optional[str],
    ) -> List[Optional[CandidateFields]]:
        header = detect_header_layout(rows, self.options.header_scan_rows)
        body, layout = rows, None
        if header is not None:
            header_index, detected = header
            if detected.is_usable:
                # Title rows above a real header carry no entries
                body, layout = rows[header_index + 1:], detected
            else:
                # A label such as "Accounts Payable" only drops itself
                body = rows[:header_index] + rows[header_index + 1:]
            logger.debug(
                "Header row detected",
                sheet=sheet,
                row=header_index + 1,
                usable=detected.is_usable,
            )

        context = TokenizerContext(default_date=default_date, header=layout)
        return [self.tokenize_cells(row.cells, context) for row in body]

    # -------------------------------------------------------------------------
    # Text lines
    # -------------------------------------------------------------------------

    def is_header_line(self, line: str) -> bool:
        """Check if a text line is a header, separator or too short."""
        text = line.strip()
        if len(text) < self.options.min_line_length:
            return True
        if SEPARATOR_PATTERN.match(text):
            return True
        lowered = text.lower()
        return any(keyword in lowered for keyword in HEADER_KEYWORDS)

    def tokenize_line(
        self,
        line: str,
        context: Optional[TokenizerContext] = None,
    ) -> Optional[CandidateFields]:
        """Tokenize one text line."""
        context = context or TokenizerContext()
        text = (line or "").strip()
        if self.is_header_line(text):
            logger.debug("Filtered header line", line=text)
            return None

        match = AMOUNT_TAIL_PATTERN.match(close_currency_gaps(text))
        if not match:
            return None

        body = match.group("body").strip()
        tokens = match.group("tail").split()
        if not any(ch.isalpha() for ch in body) or all(t == "-" for t in tokens):
            return None

        account_match = LEADING_ACCOUNT_PATTERN.match(body)

        # Pattern 1: AccountNumber Description Amount
        if account_match and len(tokens) == 1:
            description = clean_description(account_match.group("description"))
            if not description:
                return None
            return CandidateFields(
                account_number=account_match.group("account"),
                description=description,
                balance=normalize_amount(tokens[0]),
                raw_line=text,
                date=context.default_date,
                page=context.page,
            )

        # Pattern 2: Description Debit Credit
        if len(tokens) >= 2:
            # Numeric tokens before the last two stay in the description
            description_text = " ".join([body] + tokens[:-2])
            description = clean_description(description_text)
            if not description:
                return None
            debit = normalize_amount(tokens[-2])
            credit = normalize_amount(tokens[-1])
            return CandidateFields(
                account_number=extract_account_number(description_text),
                description=description,
                debit=debit,
                credit=credit,
                balance=debit - credit,
                raw_line=text,
                date=context.default_date,
                page=context.page,
            )

        # Pattern 3: Description Amount
        amount = normalize_amount(tokens[0])
        if abs(amount) <= self.options.noise_amount_threshold:
            logger.debug("Filtered immaterial line", line=text, amount=str(amount))
            return None
        description = clean_description(body)
        if not description:
            return None
        return CandidateFields(
            account_number=extract_account_number(body),
            description=description,
            balance=amount,
            raw_line=text,
            date=context.default_date,
            page=context.page,
        )

    # -------------------------------------------------------------------------
    # Cell rows
    # -------------------------------------------------------------------------

    def tokenize_cells(
        self,
        cells: Sequence[Any],
        context: Optional[TokenizerContext] = None,
    ) -> Optional[CandidateFields]:
        """Tokenize one structured cell row."""
        context = context or TokenizerContext()
        cells = list(cells)
        if not any(cell_text(c) for c in cells):
            return None

        if context.header is not None and context.header.is_usable:
            return self._from_layout(cells, context.header, context)
        return self._from_positions(cells, context)

    def _amount(self, cells: List[Any], index: Optional[int]) -> Optional[Decimal]:
        """Parsed amount at a column, None when blank or not numeric."""
        if index is None or index >= len(cells):
            return None
        return self._numeric_parser.parse(cells[index]).value

    def _text(self, cells: List[Any], index: Optional[int]) -> str:
        if index is None or index >= len(cells):
            return ""
        return cell_text(cells[index])

    def _from_layout(
        self,
        cells: List[Any],
        layout: HeaderLayout,
        context: TokenizerContext,
    ) -> Optional[CandidateFields]:
        raw_description = self._text(cells, layout.description)
        if not raw_description:
            return None

        debit = self._amount(cells, layout.debit)
        credit = self._amount(cells, layout.credit)
        balance = self._amount(cells, layout.balance)
        if balance is None:
            balance = (debit or Decimal(0)) - (credit or Decimal(0))

        return self._candidate(
            raw_description,
            balance,
            account=self._text(cells, layout.account) or None,
            debit=debit,
            credit=credit,
            context=context,
        )

    def _from_positions(
        self,
        cells: List[Any],
        context: TokenizerContext,
    ) -> Optional[CandidateFields]:
        count = len(cells)
        parse = self._numeric_parser.is_numeric

        # Account | Description | Debit | Credit | Balance
        if count >= 5 and self._text(cells, 1) and not parse(cells[1]):
            balance = self._amount(cells, 4)
            if balance is not None:
                candidate = self._candidate(
                    self._text(cells, 1),
                    balance,
                    account=self._text(cells, 0) or None,
                    debit=self._amount(cells, 2),
                    credit=self._amount(cells, 3),
                    context=context,
                )
                if candidate is not None:
                    return candidate

        # Account | Description | Balance
        if count >= 3 and self._text(cells, 1) and not parse(cells[1]):
            balance = self._amount(cells, 2)
            if balance:
                return self._candidate(
                    self._text(cells, 1),
                    balance,
                    account=self._text(cells, 0) or None,
                    context=context,
                )

        # Description | Debit | Credit
        if count >= 3 and self._text(cells, 0) and not parse(cells[0]):
            debit = self._amount(cells, 1)
            credit = self._amount(cells, 2)
            if debit is not None or credit is not None:
                return self._candidate(
                    self._text(cells, 0),
                    (debit or Decimal(0)) - (credit or Decimal(0)),
                    debit=debit,
                    credit=credit,
                    context=context,
                )

        # Description | Amount
        if count >= 2 and self._text(cells, 0) and not parse(cells[0]):
            amount = self._amount(cells, 1)
            if amount:
                return self._candidate(self._text(cells, 0), amount, context=context)

        return None

    def _candidate(
        self,
        raw_description: str,
        balance: Decimal,
        context: TokenizerContext,
        account: Optional[str] = None,
        debit: Optional[Decimal] = None,
        credit: Optional[Decimal] = None,
    ) -> Optional[CandidateFields]:
        """Build a cell candidate; rows without a description or amount are dropped."""
        description = clean_description(raw_description)
        if not description:
            return None
        if not balance and not debit and not credit:
            return None
        return CandidateFields(
            account_number=account or extract_account_number(raw_description),
            description=description,
            balance=balance,
            debit=debit,
            credit=credit,
            raw_line="",
            date=context.default_date,
            page=context.page,
        )


# Singleton instance
_tokenizer_instance: Optional[LineTokenizer] = None


def get_line_tokenizer() -> LineTokenizer:
    """Get singleton LineTokenizer built from settings."""
    global _tokenizer_instance
    if _tokenizer_instance is None:
        _tokenizer_instance = LineTokenizer(TokenizerOptions.from_settings())
    return _tokenizer_instance


def tokenize(
    row: Union[RawRow, str],
    context: Optional[TokenizerContext] = None,
) -> Optional[CandidateFields]:
    """Tokenize one row with the default tokenizer."""
    return get_line_tokenizer().tokenize(row, context)
