"""Application settings using Pydantic BaseSettings for environment variable management."""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        gemini_api_key: Google Gemini API key (empty disables live model calls)
        gemini_model: Default Gemini model to use
        max_rpm: Maximum requests per minute (free tier default)
        max_tpm: Maximum tokens per minute
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        oracle_timeout_seconds: Budget for a single similarity/merge call
        exact_match_threshold: Similarity above which two facts are duplicates
        near_match_threshold: Similarity above which two facts are fused
        extraction_window_chars: Document characters sent to each extraction pass
        reconciliation_strategy: first_match or best_match
        geocoding_api_key: Google Maps Geocoding API key
        geocoding_base_url: Geocoding endpoint base URL
        data_dir: Directory for JSON persistence of project stores
    """

    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key"
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Default Gemini model identifier"
    )
    max_rpm: int = Field(
        default=15,
        description="Maximum requests per minute (free tier limit)"
    )
    max_tpm: int = Field(
        default=1_000_000,
        description="Maximum tokens per minute"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    oracle_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for a single similarity or merge model call"
    )
    exact_match_threshold: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Similarity strictly above this is an exact duplicate"
    )
    near_match_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Similarity strictly above this (and not exact) is fused"
    )
    extraction_window_chars: int = Field(
        default=8000,
        description="Characters of document text sent to each extraction pass"
    )
    reconciliation_strategy: Literal["first_match", "best_match"] = Field(
        default="first_match",
        description="first_match or best_match"
    )
    geocoding_api_key: str = Field(
        default="",
        description="Google Maps Geocoding API key"
    )
    geocoding_base_url: str = Field(
        default="https://maps.googleapis.com",
        description="Geocoding API base URL"
    )
    data_dir: str = Field(
        default=".insight_data",
        description="Directory for JSON persistence of project stores"
    )

    @model_validator(mode="after")
    def _ordered_thresholds(self) -> "Settings":
        if self.near_match_threshold >= self.exact_match_threshold:
            raise ValueError("near_match_threshold must be below exact_match_threshold")
        return self

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance - import this throughout the application
settings = Settings()
