"""
Reported total extraction.

Statements print category totals on their own lines ("Total Trade
Receivables 980,000"). The tokenizer drops those lines as noise; this module
reads them back as independently reported totals for reconciliation.
"""

import re
from typing import Dict, Iterable, Optional, Tuple, Union

import structlog

from ledgermap.engine.classification import CategoryClassifier
from ledgermap.engine.extraction import (
    AMOUNT_TOKEN,
    WHITESPACE_PATTERN,
    cell_text,
    close_currency_gaps,
)
from ledgermap.engine.models import HighLevelCategory, ReportedTotal, SourceDocument
from ledgermap.services.numeric_parser import get_numeric_parser

logger = structlog.get_logger(__name__)


TOTAL_LINE_PATTERN = re.compile(
    rf"^\s*total\s*:?\s+(?P<label>.*?[A-Za-z].*?)\s*:?\s+(?P<amount>{AMOUNT_TOKEN})\s*$",
    re.IGNORECASE,
)

Line = Union[str, Tuple[Optional[int], str]]


# Statement section headings that never name a single category
SECTION_LABELS = frozenset({
    "income",
    "expense",
    "expenses",
    "costs",
    "operating costs",
    "equity and liabilities",
    "liabilities and equity",
})


def _is_section_label(label: str, classifier: CategoryClassifier) -> bool:
    """Labels naming a high-level class, a main grouping or a generic heading."""
    if label in SECTION_LABELS:
        return True
    if any(label == h.value.lower() for h in HighLevelCategory):
        return True
    return any(label == c.main_grouping.lower() for c in classifier.taxonomy.categories.values())


def _resolve_category(label: str, classifier: CategoryClassifier) -> Optional[str]:
    """
    Catalogue name match first, then a keyword covering the whole label.

    Partial keyword matches are rejected so that "Total operating expenses"
    does not become the total of whichever category owns "expense".
    """
    known = classifier.taxonomy.category(label)
    if known is not None:
        return known.name
    normalized = WHITESPACE_PATTERN.sub(" ", label).strip().lower()
    if _is_section_label(normalized, classifier):
        return None
    classification = classifier.classify(normalized)
    if classification.matched_keyword != normalized:
        return None
    return classification.ifrs_category


def extract_reported_totals(
    lines: Iterable[Line],
    classifier: Optional[CategoryClassifier] = None,
) -> Dict[str, ReportedTotal]:
    """
    Collect reported totals from "Total <category> <amount>" lines.

    Args:
        lines: Text lines, or (page, text) pairs.
        classifier: Resolves labels that are not exact category names.

    Returns:
        ``{ifrs category: ReportedTotal}``. The first total seen for a
        category wins; a repeat with the same amount only adds its page.
    """
    classifier = classifier or CategoryClassifier()
    parser = get_numeric_parser()
    totals: Dict[str, ReportedTotal] = {}

    for line in lines:
        page, text = (None, line) if isinstance(line, str) else line
        match = TOTAL_LINE_PATTERN.match(close_currency_gaps(text or ""))
        if not match:
            continue

        amount = parser.parse(match.group("amount")).value
        if amount is None:
            continue

        label = match.group("label").strip()
        category = _resolve_category(label, classifier)
        if category is None:
            logger.debug("Total line has no category", label=label)
            continue

        pages = (page,) if page is not None else ()
        existing = totals.get(category)
        if existing is None:
            totals[category] = ReportedTotal(amount=amount, pages=pages)
        elif existing.amount == amount:
            merged = existing.pages + tuple(p for p in pages if p not in existing.pages)
            totals[category] = ReportedTotal(amount=amount, pages=merged)
        else:
            logger.warning(
                "Conflicting reported totals",
                category=category,
                kept=str(existing.amount),
                ignored=str(amount),
            )

    return totals


def reported_totals_from_document(
    document: SourceDocument,
    classifier: Optional[CategoryClassifier] = None,
) -> Dict[str, ReportedTotal]:
    """Reported totals from any document; cell rows are joined into text first."""
    lines = []
    for row in document.rows:
        if row.is_text:
            lines.append((row.page, row.text))
        else:
            text = " ".join(t for t in (cell_text(c) for c in row.cells) if t)
            lines.append((row.page, text))

    totals = extract_reported_totals(lines, classifier)
    logger.info("Extracted reported totals", source=document.name, totals=len(totals))
    return totals
