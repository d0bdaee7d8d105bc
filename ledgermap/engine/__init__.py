"""
LedgerMap Engine.

Pipeline: source adapter -> line tokenizer -> category classifier ->
entry builder -> dataset assembler, with the reconciliation engine deriving
a review report from the assembled entries.
"""

from ledgermap.engine.assembly import DatasetRegistry, assemble, recategorize
from ledgermap.engine.classification import CategoryClassifier
from ledgermap.engine.entries import build_entries
from ledgermap.engine.extraction import LineTokenizer, TokenizerContext, TokenizerOptions, tokenize
from ledgermap.engine.models import (
    FinancialData,
    FinancialEntry,
    HighLevelCategory,
    ReconciliationResult,
    ReconciliationStatus,
    ReportedTotal,
    SourceMetadata,
)
from ledgermap.engine.orchestrator import PipelineOptions, PipelineResult, process_file, process_rows, run_pipeline
from ledgermap.engine.reconciliation import ReconciliationThresholds, reconcile
from ledgermap.engine.taxonomy import Taxonomy, load_taxonomy

__all__ = [
    "CategoryClassifier",
    "DatasetRegistry",
    "FinancialData",
    "FinancialEntry",
    "HighLevelCategory",
    "LineTokenizer",
    "PipelineOptions",
    "PipelineResult",
    "ReconciliationResult",
    "ReconciliationStatus",
    "ReconciliationThresholds",
    "ReportedTotal",
    "SourceMetadata",
    "Taxonomy",
    "TokenizerContext",
    "TokenizerOptions",
    "assemble",
    "build_entries",
    "load_taxonomy",
    "process_file",
    "process_rows",
    "reconcile",
    "recategorize",
    "run_pipeline",
    "tokenize",
]
