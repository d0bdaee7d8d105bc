"""
Taxonomy loading for the category classifier.

A Taxonomy is an immutable value: an ordered tuple of keyword mappings, a
catalogue of known IFRS categories and an explicit fallback classification.
The default taxonomy ships as YAML inside the package; callers and tests can
load their own file or build one from a plain keyword dictionary.
"""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import structlog
import yaml

from ledgermap.config import DEFAULT_TAXONOMY_PATH
from ledgermap.engine.models import Classification, HighLevelCategory
from ledgermap.exceptions import TaxonomyError

logger = structlog.get_logger(__name__)


FALLBACK_CLASSIFICATION = Classification(
    ifrs_category="Uncategorized",
    high_level_category=HighLevelCategory.ASSETS,
    main_grouping="Current Assets",
)


@dataclass(frozen=True)
class KeywordMapping:
    """A keyword and the classification it selects."""
    keyword: str
    ifrs_category: str
    high_level_category: HighLevelCategory
    main_grouping: str
    order: int

    def to_classification(self) -> Classification:
        return Classification(
            ifrs_category=self.ifrs_category,
            high_level_category=self.high_level_category,
            main_grouping=self.main_grouping,
            matched_keyword=self.keyword,
        )


@dataclass(frozen=True)
class CategoryDefinition:
    """A known IFRS category with its parent levels."""
    name: str
    high_level_category: HighLevelCategory
    main_grouping: str


@dataclass(frozen=True)
class Taxonomy:
    """Read-only keyword dictionary plus category catalogue."""
    keywords: Tuple[KeywordMapping, ...]
    categories: Mapping[str, CategoryDefinition]
    fallback: Classification = FALLBACK_CLASSIFICATION

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Taxonomy":
        """
        Build a taxonomy from the YAML document structure.

        Args:
            data: Mapping with ``categories`` (list of name, parent levels and
                keywords) and an optional ``fallback`` triple.

        Returns:
            Taxonomy with keywords in declaration order.
        """
        if not isinstance(data, Mapping) or not isinstance(data.get("categories"), list):
            raise TaxonomyError("Taxonomy must define a 'categories' list")

        keywords: List[KeywordMapping] = []
        categories: Dict[str, CategoryDefinition] = {}

        for raw in data["categories"]:
            try:
                name = str(raw["name"]).strip()
                high_level = _parse_high_level(raw["high_level_category"])
                grouping = str(raw["main_grouping"]).strip()
            except (KeyError, TypeError) as e:
                raise TaxonomyError(f"Malformed taxonomy category: {raw!r}") from e

            categories.setdefault(name, CategoryDefinition(name, high_level, grouping))

            for keyword in raw.get("keywords") or []:
                keyword = str(keyword).strip().lower()
                if not keyword:
                    continue
                keywords.append(KeywordMapping(
                    keyword=keyword,
                    ifrs_category=name,
                    high_level_category=high_level,
                    main_grouping=grouping,
                    order=len(keywords),
                ))

        fallback = FALLBACK_CLASSIFICATION
        raw_fallback = data.get("fallback")
        if raw_fallback:
            try:
                fallback = Classification(
                    ifrs_category=str(raw_fallback["ifrs_category"]),
                    high_level_category=_parse_high_level(raw_fallback["high_level_category"]),
                    main_grouping=str(raw_fallback["main_grouping"]),
                )
            except (KeyError, TypeError) as e:
                raise TaxonomyError(f"Malformed taxonomy fallback: {raw_fallback!r}") from e

        return cls(
            keywords=tuple(keywords),
            categories=MappingProxyType(categories),
            fallback=fallback,
        )

    @classmethod
    def from_keywords(cls, mapping: Mapping[str, Mapping[str, str]]) -> "Taxonomy":
        """
        Build a taxonomy from a flat ``keyword -> triple`` dictionary.

        Dictionary order is the declaration order used for tie-breaks.
        """
        keywords: List[KeywordMapping] = []
        categories: Dict[str, CategoryDefinition] = {}

        for keyword, triple in mapping.items():
            try:
                name = triple["ifrs_category"]
                high_level = _parse_high_level(triple["high_level_category"])
                grouping = triple["main_grouping"]
            except (KeyError, TypeError) as e:
                raise TaxonomyError(f"Malformed mapping for keyword {keyword!r}") from e

            categories.setdefault(name, CategoryDefinition(name, high_level, grouping))
            keywords.append(KeywordMapping(
                keyword=keyword.strip().lower(),
                ifrs_category=name,
                high_level_category=high_level,
                main_grouping=grouping,
                order=len(keywords),
            ))

        return cls(keywords=tuple(keywords), categories=MappingProxyType(categories))

    def category(self, name: str) -> Optional[CategoryDefinition]:
        """Look up a catalogue entry by exact or case-insensitive name."""
        if name in self.categories:
            return self.categories[name]
        lowered = name.strip().lower()
        return next(
            (c for key, c in self.categories.items() if key.lower() == lowered),
            None,
        )

    def category_options(self, high_level_category: HighLevelCategory) -> List[str]:
        """IFRS categories a reviewer may choose for a top-level class."""
        high_level = _parse_high_level(high_level_category)
        return [c.name for c in self.categories.values() if c.high_level_category == high_level]


def _parse_high_level(value: Any) -> HighLevelCategory:
    """Parse a high-level category name into the enum."""
    if isinstance(value, HighLevelCategory):
        return value
    try:
        return HighLevelCategory(str(value).strip().title())
    except ValueError as e:
        raise TaxonomyError(f"Unknown high-level category: {value!r}") from e


def load_taxonomy(path: Path) -> Taxonomy:
    """
    Load a taxonomy YAML file.

    Args:
        path: Path to the YAML document.

    Returns:
        Parsed Taxonomy.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise TaxonomyError(f"Failed to load taxonomy from {path}: {e}") from e

    taxonomy = Taxonomy.from_dict(data)
    logger.info(
        "Loaded taxonomy",
        path=str(path),
        categories=len(taxonomy.categories),
        keywords=len(taxonomy.keywords),
    )
    return taxonomy


@lru_cache(maxsize=8)
def get_default_taxonomy(path: Path = DEFAULT_TAXONOMY_PATH) -> Taxonomy:
    """Load a taxonomy file once per process."""
    return load_taxonomy(path)
