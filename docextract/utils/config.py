"""Configuration management for the document text extraction service.

Loads and validates YAML configuration with sensible defaults for
preprocessing, the primary vision-model engine, the Tesseract fallback
engine, validation, and the local history store.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_TESSERACT_LANGUAGES = "eng+ara+chi_sim+jpn+kor+rus+spa+fra+deu+por+ita+hin"


class PreprocessingConfig(BaseModel):
    """Configuration for boundary detection and image enhancement."""

    enabled: bool = True
    boundary_detection_enabled: bool = True
    threshold_enabled: bool = False
    max_dimension: int = Field(default=2048, gt=0)
    jpeg_quality: int = Field(default=95, ge=1, le=100)


class PrimaryEngineConfig(BaseModel):
    """Configuration for the vision-model OCR client."""

    api_key: str | None = Field(
        default_factory=lambda: os.environ.get("OPENAI_API_KEY")
    )
    base_url: str | None = None
    model: str = "gpt-4o"
    timeout: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    backoff_base: float = Field(default=1.0, ge=0)
    backoff_max: float = Field(default=8.0, ge=0)
    max_tokens: int = 4096
    temperature: float = 0.0
    image_detail: str = "high"


class FallbackEngineConfig(BaseModel):
    """Configuration for the local Tesseract OCR engine."""

    enabled: bool = True
    tesseract_cmd: str | None = None
    languages: str = DEFAULT_TESSERACT_LANGUAGES
    psm: int = 3
    preserve_interword_spaces: bool = True
    timeout: float = Field(default=60.0, ge=0)


class ValidationConfig(BaseModel):
    """Configuration for extracted text validation."""

    min_length: int = Field(default=3, ge=1)
    required_script: str | None = None


class HistoryConfig(BaseModel):
    """Configuration for the local extraction history store."""

    path: str = "~/.docextract/history.json"
    max_items: int = Field(default=10, ge=1)


class APIConfig(BaseModel):
    """Configuration for the HTTP boundary."""

    host: str = "0.0.0.0"
    port: int = 8000
    min_payload_bytes: int = Field(default=100, ge=1)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    primary: PrimaryEngineConfig = Field(default_factory=PrimaryEngineConfig)
    fallback: FallbackEngineConfig = Field(default_factory=FallbackEngineConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    log_level: str = "INFO"

    model_config = {"frozen": True}


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to the ``DOCEXTRACT_CONFIG`` environment variable,
            then configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path(os.environ.get("DOCEXTRACT_CONFIG", "configs/config.yaml"))

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
