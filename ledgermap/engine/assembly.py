"""
Dataset assembly and review.

- assemble(): wraps a source's entries into a FinancialData with metadata
- recategorize(): replace-entry operation for manual review
- DatasetRegistry: per-source datasets with atomic replacement
"""

import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import structlog

from ledgermap.config import get_settings
from ledgermap.engine.entries import year_from_filename
from ledgermap.engine.models import (
    FinancialData,
    FinancialEntry,
    HighLevelCategory,
    SourceMetadata,
    today_iso,
)
from ledgermap.engine.taxonomy import Taxonomy, get_default_taxonomy
from ledgermap.exceptions import DatasetNotFoundError, EntryNotFoundError, UnknownCategoryError

logger = structlog.get_logger(__name__)


SEPARATOR_PATTERN = re.compile(r"[_\-.]+")


def humanize_filename(filename: str) -> str:
    """'acme_corp-tb.2023.xlsx' -> 'Acme Corp Tb 2023'."""
    stem = Path(filename).stem if filename else ""
    words = SEPARATOR_PATTERN.sub(" ", stem).split()
    return " ".join(w if w.isupper() else w.capitalize() for w in words)


def resolve_report_period(metadata: SourceMetadata) -> str:
    """Explicit period, else Dec 31 of a year in the filename, else today."""
    if metadata.report_period:
        return metadata.report_period
    if metadata.period_end:
        return metadata.period_end
    year = year_from_filename(metadata.filename)
    if year:
        return f"{year}-12-31"
    return today_iso()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def assemble(entries: Iterable[FinancialEntry], metadata: SourceMetadata) -> FinancialData:
    """
    Assemble a dataset for one source.

    Args:
        entries: Built entries in source order.
        metadata: Source facts; explicit company and period take precedence.

    Returns:
        FinancialData stamped with the assembly time.
    """
    entries = tuple(entries)
    data = FinancialData(
        company_name=metadata.company_name or humanize_filename(metadata.filename) or "Unknown Company",
        report_period=resolve_report_period(metadata),
        entries=entries,
        last_updated=utc_now_iso(),
    )
    if not entries:
        logger.warning("Assembled dataset has no entries", source=metadata.filename)
    logger.info(
        "Assembled dataset",
        source=metadata.filename,
        company=data.company_name,
        period=data.report_period,
        entries=len(entries),
    )
    return data


def _as_high_level(value: Union[HighLevelCategory, str]) -> HighLevelCategory:
    if isinstance(value, HighLevelCategory):
        return value
    return HighLevelCategory(str(value).strip().title())


def recategorize(
    data: FinancialData,
    entry_id: str,
    ifrs_category: str,
    high_level_category: Optional[Union[HighLevelCategory, str]] = None,
    main_grouping: Optional[str] = None,
    taxonomy: Optional[Taxonomy] = None,
) -> FinancialData:
    """
    Move one entry to another IFRS category.

    Parent levels come from the arguments when both are given, otherwise from
    the taxonomy catalogue. Only the category fields change; a new
    FinancialData is returned and ``data`` is left untouched.

    Raises:
        EntryNotFoundError: No entry with ``entry_id``.
        UnknownCategoryError: Category not in the catalogue and parents missing.
    """
    if data.entry(entry_id) is None:
        raise EntryNotFoundError(entry_id)

    if high_level_category is not None and main_grouping:
        high_level = _as_high_level(high_level_category)
        grouping = main_grouping
        category_name = ifrs_category
    else:
        taxonomy = taxonomy or get_default_taxonomy(Path(get_settings().taxonomy_path))
        definition = taxonomy.category(ifrs_category)
        if definition is None:
            raise UnknownCategoryError(ifrs_category)
        high_level = (
            _as_high_level(high_level_category) if high_level_category else definition.high_level_category
        )
        grouping = main_grouping or definition.main_grouping
        category_name = definition.name

    entries = tuple(
        e.with_category(category_name, high_level, grouping) if e.id == entry_id else e
        for e in data.entries
    )
    logger.info(
        "Entry recategorized",
        entry_id=entry_id,
        ifrs_category=category_name,
        high_level_category=high_level.value,
    )
    return FinancialData(
        company_name=data.company_name,
        report_period=data.report_period,
        entries=entries,
        last_updated=utc_now_iso(),
    )


class DatasetRegistry:
    """
    Datasets keyed by source id, with a current selection.

    Every write swaps a whole FinancialData under a lock, so readers see
    either the previous dataset or the new one.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._datasets: Dict[str, FinancialData] = {}
        self._current: Optional[str] = None

    def put(self, source_id: str, data: FinancialData) -> None:
        """Register or replace a source's dataset; the first one becomes current."""
        with self._lock:
            replaced = source_id in self._datasets
            self._datasets[source_id] = data
            if self._current is None:
                self._current = source_id
        logger.info("Dataset stored", source_id=source_id, replaced=replaced, entries=len(data.entries))

    def get(self, source_id: str) -> FinancialData:
        with self._lock:
            data = self._datasets.get(source_id)
        if data is None:
            raise DatasetNotFoundError(source_id)
        return data

    def remove(self, source_id: str) -> None:
        with self._lock:
            if source_id not in self._datasets:
                raise DatasetNotFoundError(source_id)
            del self._datasets[source_id]
            if self._current == source_id:
                self._current = next(iter(self._datasets), None)
        logger.info("Dataset removed", source_id=source_id)

    def select(self, source_id: str) -> FinancialData:
        with self._lock:
            data = self._datasets.get(source_id)
            if data is None:
                raise DatasetNotFoundError(source_id)
            self._current = source_id
        return data

    def current(self) -> Optional[FinancialData]:
        with self._lock:
            return self._datasets.get(self._current) if self._current else None

    @property
    def current_id(self) -> Optional[str]:
        return self._current

    def list_sources(self) -> List[str]:
        with self._lock:
            return list(self._datasets)

    def update_entries(self, source_id: str, entries: Iterable[FinancialEntry]) -> FinancialData:
        """Replace a source's entry list wholesale, keeping its metadata."""
        entries = tuple(entries)
        with self._lock:
            data = self._datasets.get(source_id)
            if data is None:
                raise DatasetNotFoundError(source_id)
            updated = FinancialData(
                company_name=data.company_name,
                report_period=data.report_period,
                entries=entries,
                last_updated=utc_now_iso(),
            )
            self._datasets[source_id] = updated
        return updated

    def recategorize(self, source_id: str, entry_id: str, ifrs_category: str, **kwargs) -> FinancialData:
        """Recategorize an entry of a stored dataset and store the result."""
        with self._lock:
            data = self._datasets.get(source_id)
            if data is None:
                raise DatasetNotFoundError(source_id)
            updated = recategorize(data, entry_id, ifrs_category, **kwargs)
            self._datasets[source_id] = updated
        return updated
