"""
Custom exceptions for LedgerMap.

Provides a hierarchy of exceptions with error codes for consistent error handling.

Only resource-level failures are raised as errors. Data-quality problems
(unparseable amounts, noise rows, unmatched descriptions, missing reported
totals) degrade gracefully inside the pipeline and never reach this module.
"""
from typing import Any, Dict, List, Optional


class LedgerMapError(Exception):
    """
    Base exception for all LedgerMap errors.

    Attributes:
        error_code: Unique error code (e.g., LGM-001)
        message: Human-readable error message
        details: Additional error context
    """
    error_code: str = "LGM-000"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for reporting."""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# Source Errors (LGM-1XX)
class SourceReadError(LedgerMapError):
    """Source document could not be opened or read."""
    error_code = "LGM-100"

    def __init__(self, source: str, reason: str = "", **kwargs):
        message = f"Could not read source {source}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details={"source": source, "reason": reason}, **kwargs)


class EmptySourceError(LedgerMapError):
    """Source was opened but contains no rows, pages or text at all."""
    error_code = "LGM-101"

    def __init__(self, source: str, **kwargs):
        message = f"Source {source} is empty"
        super().__init__(message, details={"source": source}, **kwargs)


class UnsupportedSourceError(LedgerMapError):
    """Source file type has no reader."""
    error_code = "LGM-102"

    def __init__(self, filename: str, expected_types: List[str], **kwargs):
        message = f"Unsupported file type. Expected: {', '.join(expected_types)}"
        super().__init__(
            message,
            details={"filename": filename, "expected_types": expected_types},
            **kwargs,
        )


# Taxonomy Errors (LGM-2XX)
class TaxonomyError(LedgerMapError):
    """Taxonomy configuration is missing or malformed."""
    error_code = "LGM-200"

    def __init__(self, message: str = "Invalid taxonomy configuration", **kwargs):
        super().__init__(message, **kwargs)


# Review Errors (LGM-3XX)
class EntryNotFoundError(LedgerMapError):
    """Entry id not present in the dataset."""
    error_code = "LGM-300"

    def __init__(self, entry_id: str, **kwargs):
        message = f"Entry {entry_id} not found"
        super().__init__(message, details={"entry_id": entry_id}, **kwargs)


class UnknownCategoryError(LedgerMapError):
    """IFRS category is not in the catalogue and no parent levels were given."""
    error_code = "LGM-301"

    def __init__(self, category: str, **kwargs):
        message = f"Unknown IFRS category: {category}"
        super().__init__(message, details={"category": category}, **kwargs)


class DatasetNotFoundError(LedgerMapError):
    """No dataset registered for the source id."""
    error_code = "LGM-302"

    def __init__(self, source_id: str, **kwargs):
        message = f"Dataset {source_id} not found"
        super().__init__(message, details={"source_id": source_id}, **kwargs)
