"""
Numeric parser service for financial amount extraction.

Handles parsing of amounts as they appear in trial balances and exports:
- Currency: $1,234.56, £999.99, €1234, ¥500, ₹1,00,000
- Negative: (123), ($1,234.56), -123
- Blank or non-numeric cells

``normalize_amount`` is the total form of the parser: it always returns a
Decimal and degrades to zero for anything it cannot read.
"""
import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ParsedNumber:
    """Result of parsing a numeric string."""

    value: Optional[Decimal]
    raw_value: str
    confidence: float
    is_negative: bool = False
    currency: Optional[str] = None


class NumericParser:
    """
    Parser for financial amounts.

    Commas are always thousands separators and the period is the decimal
    point. Parentheses mark a negative amount (accounting convention) and are
    detected before any character is stripped.
    """

    CURRENCY_SYMBOLS = ("$", "£", "€", "¥", "₹")

    # Characters removed before the digits are read
    STRIP_PATTERN = re.compile(r"[\$£€¥₹,()\s]")
    CURRENCY_PATTERN = re.compile(r"[\$£€¥₹]")
    NUMBER_PATTERN = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")

    def parse(self, value: Any) -> ParsedNumber:
        """
        Parse a cell or text value into a numeric result.

        Args:
            value: String, number or None.

        Returns:
            ParsedNumber; ``value`` is None when nothing numeric was found.
        """
        if isinstance(value, bool) or value is None:
            return ParsedNumber(value=None, raw_value="" if value is None else str(value), confidence=0.0)

        if isinstance(value, Decimal):
            if not value.is_finite():
                return ParsedNumber(value=None, raw_value=str(value), confidence=0.0)
            return ParsedNumber(value=value, raw_value=str(value), confidence=1.0, is_negative=value < 0)

        if isinstance(value, int):
            return ParsedNumber(value=Decimal(value), raw_value=str(value), confidence=1.0, is_negative=value < 0)

        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                return ParsedNumber(value=None, raw_value=str(value), confidence=0.0)
            return ParsedNumber(
                value=Decimal(repr(value)),
                raw_value=repr(value),
                confidence=1.0,
                is_negative=value < 0,
            )

        original = str(value)
        text = original.strip()
        if not text:
            return ParsedNumber(value=None, raw_value=original, confidence=0.0)

        # Parenthesised amounts are negative; check before stripping them
        is_negative = "(" in text and ")" in text

        currency_match = self.CURRENCY_PATTERN.search(text)
        currency = currency_match.group(0) if currency_match else None

        cleaned = self.STRIP_PATTERN.sub("", text)
        if cleaned.startswith("-"):
            is_negative = True
            cleaned = cleaned[1:]
        elif cleaned.startswith("+"):
            cleaned = cleaned[1:]

        if not self.NUMBER_PATTERN.match(cleaned):
            return ParsedNumber(value=None, raw_value=original, confidence=0.0, currency=currency)

        try:
            parsed = Decimal(cleaned)
        except InvalidOperation:
            logger.debug("Failed to parse number", value=original)
            return ParsedNumber(value=None, raw_value=original, confidence=0.0, currency=currency)

        if is_negative:
            parsed = -parsed

        # Thousands separators in the wrong place lower confidence but not the value
        confidence = 1.0 if "," not in text or self._has_grouped_thousands(text) else 0.8

        return ParsedNumber(
            value=parsed,
            raw_value=original,
            confidence=confidence,
            is_negative=is_negative,
            currency=currency,
        )

    def _has_grouped_thousands(self, text: str) -> bool:
        """Check that every comma separates a group of exactly three digits."""
        integer_part = self.CURRENCY_PATTERN.sub("", text).strip(" ()-+").split(".")[0]
        parts = integer_part.split(",")
        return all(len(p) == 3 and p.isdigit() for p in parts[1:])

    def is_numeric(self, value: Any) -> bool:
        """Check whether a cell holds a readable amount."""
        return self.parse(value).value is not None


# Singleton instance
_parser_instance: Optional[NumericParser] = None


def get_numeric_parser() -> NumericParser:
    """Get singleton NumericParser instance."""
    global _parser_instance
    if _parser_instance is None:
        _parser_instance = NumericParser()
    return _parser_instance


def normalize_amount(raw: Any) -> Decimal:
    """
    Convert a locale-formatted amount into a signed Decimal.

    Numbers pass through unchanged. Blank, None and unreadable input give
    ``Decimal(0)``; this function never raises.
    """
    parsed = get_numeric_parser().parse(raw)
    if parsed.value is None:
        return Decimal(0)
    return parsed.value
