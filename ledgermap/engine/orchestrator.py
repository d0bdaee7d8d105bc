"""
Pipeline orchestrator for the LedgerMap engine.

Runs one source through the shared pipeline:
1. Read the source into RawRows (file readers or in-memory adapters)
2. Tokenize rows into candidates
3. Classify candidates and build entries
4. Assemble the dataset
5. Reconcile against reported totals (supplied, or read from "Total" lines)
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import structlog

from ledgermap.config import Settings, get_settings
from ledgermap.engine.assembly import assemble
from ledgermap.engine.classification import CategoryClassifier
from ledgermap.engine.entries import build_entries, resolve_entry_date
from ledgermap.engine.extraction import LineTokenizer, TokenizerOptions
from ledgermap.engine.models import (
    CandidateFields,
    FinancialData,
    ReconciliationResult,
    ReportedTotal,
    SourceDocument,
    SourceMetadata,
)
from ledgermap.engine.reconciliation import ReconciliationThresholds, reconcile
from ledgermap.engine.sources import SourceInput, read_source, spreadsheet_source
from ledgermap.engine.taxonomy import get_default_taxonomy
from ledgermap.engine.totals import reported_totals_from_document

logger = structlog.get_logger(__name__)


@dataclass
class PipelineOptions:
    """Configuration options for one pipeline run."""
    tokenizer: TokenizerOptions = field(default_factory=TokenizerOptions)
    thresholds: ReconciliationThresholds = field(default_factory=ReconciliationThresholds)
    # Read "Total <category>" lines as reported totals
    extract_totals: bool = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PipelineOptions":
        settings = settings or get_settings()
        return cls(
            tokenizer=TokenizerOptions.from_settings(settings),
            thresholds=ReconciliationThresholds.from_settings(settings),
        )


@dataclass
class PipelineResult:
    """Everything one pipeline run produced."""
    source: str
    data: FinancialData
    candidates: List[CandidateFields]
    reported_totals: Dict[str, ReportedTotal]
    reconciliation: List[ReconciliationResult]
    processing_time_ms: float = 0.0


def default_classifier(settings: Optional[Settings] = None) -> CategoryClassifier:
    """Classifier over the configured taxonomy file."""
    settings = settings or get_settings()
    return CategoryClassifier(get_default_taxonomy(Path(settings.taxonomy_path)))


def process_document(
    document: SourceDocument,
    metadata: SourceMetadata,
    classifier: Optional[CategoryClassifier] = None,
    options: Optional[PipelineOptions] = None,
    reported_totals: Optional[Mapping[str, ReportedTotal]] = None,
) -> PipelineResult:
    """
    Run the pipeline on an already-read document.

    Args:
        document: Rows from a source adapter.
        metadata: Source facts for ids, dates, company and period.
        classifier: Category classifier; defaults to the configured taxonomy.
        options: Tokenizer and reconciliation settings.
        reported_totals: Totals supplied by the caller; they take precedence
            over totals read from the document.

    Returns:
        PipelineResult with the assembled dataset and its reconciliation.
    """
    start = time.time()
    options = options or PipelineOptions.from_settings()
    classifier = classifier or default_classifier()

    tokenizer = LineTokenizer(options.tokenizer)
    candidates = tokenizer.tokenize_document(document, default_date=resolve_entry_date(metadata))
    entries = build_entries(candidates, metadata, classifier)
    data = assemble(entries, metadata)

    totals: Dict[str, ReportedTotal] = {}
    if options.extract_totals:
        totals.update(reported_totals_from_document(document, classifier))
    if reported_totals:
        totals.update(reported_totals)

    results = reconcile(data.entries, totals, options.thresholds)
    elapsed = (time.time() - start) * 1000

    logger.info(
        "Pipeline complete",
        source=document.name,
        entries=len(data.entries),
        reported_totals=len(totals),
        categories=len(results),
        time_ms=round(elapsed, 2),
    )
    return PipelineResult(
        source=document.name,
        data=data,
        candidates=candidates,
        reported_totals=totals,
        reconciliation=results,
        processing_time_ms=elapsed,
    )


def process_rows(
    rows: Sequence[Sequence[Any]],
    metadata: SourceMetadata,
    classifier: Optional[CategoryClassifier] = None,
    options: Optional[PipelineOptions] = None,
    reported_totals: Optional[Mapping[str, ReportedTotal]] = None,
    sheet_name: str = "Sheet1",
) -> PipelineResult:
    """Run the pipeline on in-memory cell rows of a single sheet."""
    document = spreadsheet_source({sheet_name: rows}, name=metadata.filename)
    return process_document(document, metadata, classifier, options, reported_totals)


def process_file(
    source: SourceInput,
    filename: Optional[str] = None,
    company_name: Optional[str] = None,
    report_period: Optional[str] = None,
    period_end: Optional[str] = None,
    reported_totals: Optional[Mapping[str, ReportedTotal]] = None,
    classifier: Optional[CategoryClassifier] = None,
    options: Optional[PipelineOptions] = None,
) -> PipelineResult:
    """
    Read a PDF, workbook or CSV file and run the pipeline.

    Args:
        source: Path or raw bytes.
        filename: Name for bytes input; defaults to the path's name.

    Raises:
        SourceReadError, EmptySourceError, UnsupportedSourceError: The source
            could not be read at all.
    """
    settings = get_settings()
    options = options or PipelineOptions.from_settings(settings)
    name = filename or (Path(source).name if not isinstance(source, bytes) else "")

    logger.info("Processing file", source=name or "<bytes>")
    document = read_source(source, filename=filename, tolerance=options.tokenizer.row_tolerance)

    metadata = SourceMetadata(
        filename=document.name,
        company_name=company_name,
        report_period=report_period,
        period_end=period_end or settings.default_period_end,
    )
    return process_document(document, metadata, classifier, options, reported_totals)


def run_pipeline(
    source: Union[SourceInput, SourceDocument],
    metadata: Optional[SourceMetadata] = None,
    **kwargs: Any,
) -> PipelineResult:
    """
    Main entry point: accept a file or an already-read document.

    Args:
        source: Path, bytes or SourceDocument.
        metadata: Required metadata when ``source`` is a SourceDocument.
        **kwargs: Passed to ``process_file`` or ``process_document``.
    """
    if isinstance(source, SourceDocument):
        metadata = metadata or SourceMetadata(filename=source.name)
        return process_document(source, metadata, **kwargs)
    if metadata is not None:
        kwargs.setdefault("filename", metadata.filename if isinstance(source, bytes) else None)
        kwargs.setdefault("company_name", metadata.company_name)
        kwargs.setdefault("report_period", metadata.report_period)
        kwargs.setdefault("period_end", metadata.period_end)
    return process_file(source, **kwargs)
