"""
Application configuration using pydantic-settings.

Loads configuration from environment variables with sensible defaults.
"""
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TAXONOMY_PATH = Path(__file__).parent / "data" / "ifrs_taxonomy.yaml"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Taxonomy (keyword -> IFRS category triple)
    taxonomy_path: Path = DEFAULT_TAXONOMY_PATH

    # Tokenizer noise filters
    noise_amount_threshold: Decimal = Decimal("100")
    min_line_length: int = 10
    header_scan_rows: int = 10

    # Positioned text row grouping (PDF points)
    row_tolerance: float = 5.0

    # Reconciliation
    matched_tolerance: Decimal = Decimal("1")
    minor_mismatch_percent: Decimal = Decimal("1.0")

    # Batch processing
    batch_concurrency: int = 3

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Default currency symbol for human-readable amounts
    currency_symbol: str = "$"

    # Optional default period end (YYYY-MM-DD) applied when a source has none
    default_period_end: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
