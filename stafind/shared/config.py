"""
Runtime settings.

Environment variables are loaded from ``.env.{ENVIRONMENT}`` (or ``.env``)
at the repository root, then read with defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_HF_BASE_URL = "https://api-inference.huggingface.co/models"
DEFAULT_HF_MODEL = "dbmdz/bert-large-cased-finetuned-conll03-english"
FALLBACK_HF_MODEL = "dslim/bert-base-NER"


def load_environment(repo_root: Path | None = None) -> None:
    """Load ``.env`` files into the process environment."""
    root = repo_root or Path(__file__).resolve().parents[2]
    environment = os.getenv("ENVIRONMENT", "development")
    env_file = root / f".env.{environment}"
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        env_path = root / ".env"
        if env_path.exists():
            load_dotenv(env_path, override=True)


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got: {raw!r}") from e


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got: {raw!r}") from e


@dataclass
class Settings:
    """Settings shared by the extraction and matching services."""

    database_url: str | None = None
    huggingface_api_key: str | None = None
    huggingface_base_url: str = DEFAULT_HF_BASE_URL
    huggingface_default_model: str = DEFAULT_HF_MODEL
    huggingface_fallback_model: str = FALLBACK_HF_MODEL
    huggingface_timeout: float = 30.0
    huggingface_cache_minutes: int = 30
    catalog_ttl_seconds: float = 300.0
    extraction_timeout_seconds: float = 30.0
    match_top_n: int = 5
    match_min_score: float = 10.0
    spacy_model: str = "en_core_web_sm"
    matching_config_path: str | None = None

    def validate(self) -> Settings:
        """
        Check that the settings are consistent.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: If a value is out of range or the orchestrator
                deadline is shorter than the inference client timeout
        """
        if self.extraction_timeout_seconds <= 0:
            raise ConfigurationError("EXTRACTION_TIMEOUT_SECONDS must be positive")
        if self.extraction_timeout_seconds < self.huggingface_timeout:
            raise ConfigurationError(
                "EXTRACTION_TIMEOUT_SECONDS must be >= HUGGINGFACE_TIMEOUT "
                f"({self.extraction_timeout_seconds} < {self.huggingface_timeout})"
            )
        if self.catalog_ttl_seconds < 0:
            raise ConfigurationError("SKILL_CATALOG_TTL_SECONDS must not be negative")
        if self.match_top_n <= 0:
            raise ConfigurationError("MATCH_TOP_N must be a positive integer")
        return self


def load_settings(load_env_files: bool = True) -> Settings:
    """
    Build Settings from environment variables.

    Args:
        load_env_files: Whether to load ``.env`` files first

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If a value cannot be parsed or is inconsistent
    """
    if load_env_files:
        load_environment()

    settings = Settings(
        database_url=os.getenv("DATABASE_URL"),
        huggingface_api_key=os.getenv("HUGGINGFACE_API_KEY"),
        huggingface_base_url=os.getenv("HUGGINGFACE_BASE_URL", DEFAULT_HF_BASE_URL),
        huggingface_default_model=os.getenv("HUGGINGFACE_DEFAULT_MODEL", DEFAULT_HF_MODEL),
        huggingface_fallback_model=os.getenv("HUGGINGFACE_FALLBACK_MODEL", FALLBACK_HF_MODEL),
        huggingface_timeout=_get_float("HUGGINGFACE_TIMEOUT", 30.0),
        huggingface_cache_minutes=_get_int("HUGGINGFACE_CACHE_MINUTES", 30),
        catalog_ttl_seconds=_get_float("SKILL_CATALOG_TTL_SECONDS", 300.0),
        extraction_timeout_seconds=_get_float("EXTRACTION_TIMEOUT_SECONDS", 30.0),
        match_top_n=_get_int("MATCH_TOP_N", 5),
        match_min_score=_get_float("MATCH_MIN_SCORE", 10.0),
        spacy_model=os.getenv("SPACY_MODEL", "en_core_web_sm"),
        matching_config_path=os.getenv("MATCHING_CONFIG_PATH") or None,
    )
    return settings.validate()
