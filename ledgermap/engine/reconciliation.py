"""
Reconciliation engine.

Sums mapped entries per IFRS category and compares each sum with an
independently reported total. Results are derived on every call and never
cached, so they always reflect the entry snapshot passed in.
"""

from collections import Counter
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

import structlog

from ledgermap.config import Settings, get_settings
from ledgermap.engine.models import (
    FinancialEntry,
    ReconciliationResult,
    ReconciliationStatus,
    ReportedTotal,
)
from ledgermap.services.numeric_parser import get_numeric_parser

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationThresholds:
    """Status boundaries, in currency units and percent."""
    matched_tolerance: Decimal = Decimal("1")
    minor_mismatch_percent: Decimal = Decimal("1.0")
    currency_symbol: str = "$"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ReconciliationThresholds":
        settings = settings or get_settings()
        return cls(
            matched_tolerance=settings.matched_tolerance,
            minor_mismatch_percent=settings.minor_mismatch_percent,
            currency_symbol=settings.currency_symbol,
        )


def format_currency(amount: Decimal, symbol: str = "$") -> str:
    """
    Format an amount for review lists: grouped thousands, at most two
    decimals, no trailing zeros, sign before the symbol (``-$15,000``).
    """
    rounded = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{abs(rounded):,.2f}"
    if text.endswith(".00"):
        text = text[:-3]
    elif text.endswith("0"):
        text = text[:-1]
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{text}"


def _status(
    difference: Decimal,
    reported: Decimal,
    thresholds: ReconciliationThresholds,
) -> Tuple[ReconciliationStatus, Optional[Decimal]]:
    """Status and percentage difference for one category."""
    if reported == 0:
        status = (
            ReconciliationStatus.MISMATCH
            if abs(difference) >= thresholds.matched_tolerance
            else ReconciliationStatus.MATCHED
        )
        return status, None

    percentage = abs(difference) / abs(reported) * 100
    if abs(difference) < thresholds.matched_tolerance:
        return ReconciliationStatus.MATCHED, percentage
    if percentage <= thresholds.minor_mismatch_percent:
        return ReconciliationStatus.MINOR_MISMATCH, percentage
    return ReconciliationStatus.MISMATCH, percentage


def _as_reported(value: Union[ReportedTotal, Decimal, int, float, str]) -> Optional[ReportedTotal]:
    """Coerce a reported amount; None when it is not a readable number."""
    if isinstance(value, ReportedTotal):
        return value
    amount = get_numeric_parser().parse(value).value
    return ReportedTotal(amount=amount) if amount is not None else None


def reconcile(
    entries: Iterable[FinancialEntry],
    reported_totals: Optional[Mapping[str, Union[ReportedTotal, Decimal, int, float, str]]] = None,
    thresholds: Optional[ReconciliationThresholds] = None,
) -> List[ReconciliationResult]:
    """
    Reconcile mapped category sums with reported totals.

    Args:
        entries: Entry snapshot to reconcile.
        reported_totals: ``{ifrs category: ReportedTotal or amount}``.
        thresholds: Status boundaries; defaults to settings.

    Returns:
        One result per IFRS category, in order of first appearance.
    """
    thresholds = thresholds or ReconciliationThresholds.from_settings()
    reported_totals = reported_totals or {}

    groups: Dict[str, List[FinancialEntry]] = {}
    for entry in entries:
        groups.setdefault(entry.ifrs_category, []).append(entry)

    results = []
    for category, members in groups.items():
        mapped_total = sum((e.amount for e in members), Decimal(0))
        contributing = tuple(
            f"{e.description} - {format_currency(e.amount, thresholds.currency_symbol)}"
            for e in members
        )

        reported = reported_totals.get(category)
        if reported is not None:
            reported = _as_reported(reported)
            if reported is None:
                logger.warning("Unreadable reported total", category=category)
        if reported is None:
            results.append(ReconciliationResult(
                category=category,
                mapped_total=mapped_total,
                difference=Decimal(0),
                status=ReconciliationStatus.NO_TOTAL,
                contributing_items=contributing,
            ))
            continue

        difference = mapped_total - reported.amount
        status, percentage = _status(difference, reported.amount, thresholds)
        results.append(ReconciliationResult(
            category=category,
            mapped_total=mapped_total,
            reported_total=reported.amount,
            difference=difference,
            status=status,
            percentage_diff=percentage,
            contributing_items=contributing,
            source_pages=tuple(reported.pages),
        ))

    logger.debug("Reconciled categories", categories=len(results))
    return results


def summarize_reconciliation(results: Iterable[ReconciliationResult]) -> Dict[str, int]:
    """Count of results per status, every status present."""
    counts = Counter(r.status for r in results)
    return {status.value: counts.get(status, 0) for status in ReconciliationStatus}
