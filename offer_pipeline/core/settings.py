"""
Centralized application settings using Pydantic.

Environment variables are read when a getter is first called and validated.
Use these instead of scattered os.getenv() calls throughout the codebase.
"""

from functools import lru_cache
from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings

from offer_pipeline.core.config import (
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_OCR_LANGUAGE,
    EXTRACTION_MAX_TOKENS,
    EXTRACTION_TEMPERATURE,
    EXTRACTION_TIMEOUT_SECONDS,
    FIELD_RESOLUTION_MAX_CONCURRENCY,
    FIELD_RESOLUTION_STAGGER_SECONDS,
    LOW_CONFIDENCE_THRESHOLD,
    MAPPING_ACCEPT_MIN_CONFIDENCE,
    MAX_RETRIES,
    TEXT_CONVERSION_TIMEOUT_SECONDS,
)


class TextConversionSettings(BaseSettings):
    """Remote OCR text-conversion service configuration."""

    TEXT_CONVERSION_BASE_URL: str = "https://api.pdf.co"
    TEXT_CONVERSION_API_KEY: Optional[SecretStr] = None
    TEXT_CONVERSION_LANGUAGE: str = DEFAULT_OCR_LANGUAGE
    TEXT_CONVERSION_TIMEOUT_SECONDS: float = TEXT_CONVERSION_TIMEOUT_SECONDS
    TEXT_CONVERSION_MAX_RETRIES: int = MAX_RETRIES
    TEXT_CONVERSION_VERIFY_SSL: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class CompletionSettings(BaseSettings):
    """Generative completion service configuration."""

    COMPLETION_BASE_URL: str = "https://api.anthropic.com"
    COMPLETION_API_KEY: Optional[SecretStr] = None
    COMPLETION_API_VERSION: str = "2023-06-01"
    COMPLETION_MODEL: str = DEFAULT_COMPLETION_MODEL
    COMPLETION_MAX_TOKENS: int = EXTRACTION_MAX_TOKENS
    COMPLETION_TEMPERATURE: float = EXTRACTION_TEMPERATURE
    COMPLETION_TIMEOUT_SECONDS: float = EXTRACTION_TIMEOUT_SECONDS
    COMPLETION_MAX_RETRIES: int = MAX_RETRIES

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class VocabularySettings(BaseSettings):
    """Read-only reference vocabulary source configuration."""

    VOCABULARY_BASE_URL: Optional[str] = None
    VOCABULARY_API_KEY: Optional[SecretStr] = None
    VOCABULARY_NAME_COLUMN: str = "name"
    VOCABULARY_TIMEOUT_SECONDS: float = 10.0

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


class PipelineSettings(BaseSettings):
    """General pipeline settings."""

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    FIELD_RESOLUTION_MAX_CONCURRENCY: int = FIELD_RESOLUTION_MAX_CONCURRENCY
    FIELD_RESOLUTION_STAGGER_SECONDS: float = FIELD_RESOLUTION_STAGGER_SECONDS
    # Mapping results below this confidence are not applied to the record.
    MAPPING_ACCEPT_MIN_CONFIDENCE: int = MAPPING_ACCEPT_MIN_CONFIDENCE
    LOW_CONFIDENCE_THRESHOLD: int = LOW_CONFIDENCE_THRESHOLD

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_text_conversion_settings() -> TextConversionSettings:
    return TextConversionSettings()


@lru_cache(maxsize=1)
def get_completion_settings() -> CompletionSettings:
    return CompletionSettings()


@lru_cache(maxsize=1)
def get_vocabulary_settings() -> VocabularySettings:
    return VocabularySettings()


@lru_cache(maxsize=1)
def get_pipeline_settings() -> PipelineSettings:
    return PipelineSettings()
