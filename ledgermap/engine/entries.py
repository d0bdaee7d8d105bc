"""
Entry builder.

Combines tokenized candidates with classifier output into FinancialEntry
records, after a noise filter of its own for cell-derived candidates.
"""

import re
from collections import Counter
from typing import Iterable, List, Optional

import structlog

from ledgermap.engine.classification import CategoryClassifier
from ledgermap.engine.models import CandidateFields, FinancialEntry, SourceMetadata, today_iso

logger = structlog.get_logger(__name__)


TOTAL_PATTERN = re.compile(r"\b(?:sub)?total\b", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"((?:19|20)\d{2})")

# Descriptions that are header labels, not data
HEADER_CELLS = frozenset({
    "account",
    "accounts",
    "account name",
    "account number",
    "account code",
    "code",
    "name",
    "description",
    "particulars",
    "debit",
    "credit",
    "balance",
    "amount",
})


def year_from_filename(filename: Optional[str]) -> Optional[str]:
    """First 19xx/20xx year in a filename."""
    if not filename:
        return None
    match = YEAR_PATTERN.search(filename)
    return match.group(1) if match else None


def resolve_entry_date(metadata: SourceMetadata) -> str:
    """
    Date stamped on every entry of a source.

    Explicit period end, else Dec 31 of a year in the filename, else today.
    """
    if metadata.period_end:
        return metadata.period_end
    year = year_from_filename(metadata.filename)
    if year:
        return f"{year}-12-31"
    return today_iso()


def is_noise_description(description: Optional[str]) -> bool:
    """Check for empty, total and bare header descriptions."""
    text = (description or "").strip()
    if not text:
        return True
    if TOTAL_PATTERN.search(text):
        return True
    return text.lower().rstrip(":") in HEADER_CELLS


def build_entries(
    candidates: Iterable[CandidateFields],
    metadata: SourceMetadata,
    classifier: Optional[CategoryClassifier] = None,
) -> List[FinancialEntry]:
    """
    Build ledger entries from candidates.

    Args:
        candidates: Tokenizer output in source order.
        metadata: Source facts (filename, period end, id prefix).
        classifier: Category classifier; defaults to the bundled taxonomy.

    Returns:
        Entries in input order. The id is the account number when it is
        present and unique in the batch, otherwise ``{prefix}-{index + 1}``
        from the candidate's source index.
    """
    classifier = classifier or CategoryClassifier()
    indexed = [
        (index, c) for index, c in enumerate(candidates)
        if not is_noise_description(c.description)
    ]

    account_counts = Counter(c.account_number for _, c in indexed if c.account_number)
    entry_date = resolve_entry_date(metadata)

    entries = []
    for index, candidate in indexed:
        account = candidate.account_number
        if account and account_counts[account] == 1:
            entry_id = account
        else:
            entry_id = f"{metadata.id_prefix}-{index + 1}"

        classification = classifier.classify(candidate.description)
        entries.append(FinancialEntry(
            id=entry_id,
            date=entry_date,
            description=candidate.description,
            amount=candidate.balance,
            high_level_category=classification.high_level_category,
            main_grouping=classification.main_grouping,
            ifrs_category=classification.ifrs_category,
            original_line=candidate.raw_line or None,
        ))

    logger.info(
        "Built entries",
        source=metadata.filename,
        candidates=len(indexed),
        entries=len(entries),
        uncategorized=sum(1 for e in entries if e.ifrs_category == classifier.taxonomy.fallback.ifrs_category),
    )
    return entries
