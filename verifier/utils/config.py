"""Configuration management for the verification service.

Loads YAML configuration into pydantic models, with defaults matching
the behaviour the pipeline is tuned for. Decision weights and thresholds
are not configurable here: they are policy constants in
``verifier.decision.engine``.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/config.yaml")


class PreprocessingConfig(BaseModel):
    """Constants for the image normalizer."""

    max_dimension: int = Field(default=2000, gt=0)
    contrast_slope: float = 1.5
    contrast_pivot: int = Field(default=128, ge=0, le=255)
    sharpen_enabled: bool = True
    binarize_threshold: int = Field(default=128, ge=0, le=255)


class OCRConfig(BaseModel):
    """Configuration for the OCR engine and text extraction stage."""

    engine: str = "tesseract"
    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 3
    pdf_dpi: int = 300
    timeout_seconds: float = Field(default=10.0, gt=0)


class StorageConfig(BaseModel):
    """Locations of the request database and uploaded documents."""

    database_path: str = "data/requests.db"
    uploads_dir: str = "uploads"


class IssuanceConfig(BaseModel):
    """Settings for institutional email account generation."""

    college_domain: str = "college.edu"
    password_min_length: int = Field(default=12, ge=3)
    password_max_length: int = Field(default=16, ge=3)

    @model_validator(mode="after")
    def _check_password_bounds(self) -> "IssuanceConfig":
        if self.password_min_length > self.password_max_length:
            raise ValueError("password_min_length must not exceed password_max_length")
        return self


class AppConfig(BaseModel):
    """Top-level application configuration."""

    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    issuance: IssuanceConfig = Field(default_factory=IssuanceConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
