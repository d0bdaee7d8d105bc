"""
Category classifier for ledger descriptions.

Maps a free-text description to an IFRS category, its main grouping and its
high-level class by longest keyword match against an injected Taxonomy.
"""

from typing import Optional

import structlog

from ledgermap.engine.models import Classification
from ledgermap.engine.taxonomy import Taxonomy, get_default_taxonomy

logger = structlog.get_logger(__name__)


class CategoryClassifier:
    """
    Keyword classifier.

    Every keyword is tested as a case-insensitive substring of the
    description. Among the matches the longest keyword wins, so
    "retained earnings" beats "earnings" and "share capital" beats
    "capital"; keywords of equal length go to the one declared first.
    A description with no match gets the taxonomy's fallback.
    """

    def __init__(self, taxonomy: Optional[Taxonomy] = None):
        """
        Initialize classifier.

        Args:
            taxonomy: Taxonomy to match against. Defaults to the bundled one.
        """
        self._taxonomy = taxonomy or get_default_taxonomy()
        # Longest first, declaration order within a length
        self._ordered = sorted(
            self._taxonomy.keywords,
            key=lambda m: (-len(m.keyword), m.order),
        )

    @property
    def taxonomy(self) -> Taxonomy:
        return self._taxonomy

    def classify(self, description: Optional[str]) -> Classification:
        """
        Classify a description.

        Args:
            description: Ledger line description.

        Returns:
            Classification; the taxonomy fallback when nothing matches.
        """
        text = (description or "").lower()
        if text.strip():
            for mapping in self._ordered:
                if mapping.keyword in text:
                    return mapping.to_classification()

        logger.debug("No taxonomy keyword matched", description=description)
        return self._taxonomy.fallback


def get_category_classifier(taxonomy: Optional[Taxonomy] = None) -> CategoryClassifier:
    """Get CategoryClassifier instance."""
    return CategoryClassifier(taxonomy)
