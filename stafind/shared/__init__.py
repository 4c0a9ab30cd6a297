"""
Shared infrastructure for stafind services.

This package contains building blocks used across the catalog, extraction,
matching and tracking packages: database access, configuration, errors,
locks, structured logging and the shared data model.
"""

from .config import Settings, load_settings
from .database import Database, PostgreSQLDatabase
from .errors import (
    CatalogUnavailableError,
    ConfigurationError,
    ExtractionError,
    ExtractionTimeoutError,
    InferencePermissionError,
    JobNotFoundError,
    OrchestrationError,
    StafindError,
    TerminalStateError,
    ValidationError,
)
from .locks import ReadWriteLock
from .structured_logging import configure_logging, get_structured_logger

__all__ = [
    "CatalogUnavailableError",
    "ConfigurationError",
    "Database",
    "ExtractionError",
    "ExtractionTimeoutError",
    "InferencePermissionError",
    "JobNotFoundError",
    "OrchestrationError",
    "PostgreSQLDatabase",
    "ReadWriteLock",
    "Settings",
    "StafindError",
    "TerminalStateError",
    "ValidationError",
    "configure_logging",
    "get_structured_logger",
    "load_settings",
]
