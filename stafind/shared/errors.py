"""Error taxonomy shared by the extraction, matching and tracking services."""

from __future__ import annotations


class StafindError(Exception):
    """Base class for errors raised by stafind services."""


class ConfigurationError(StafindError):
    """Raised when settings are missing or inconsistent."""


class ValidationError(StafindError, ValueError):
    """Raised for rejected input: empty or oversized text, bad status, bad counters."""


class CatalogUnavailableError(StafindError):
    """Raised when the skill catalog store cannot be read."""


class ExtractionError(StafindError):
    """Raised when a single extraction method fails.

    Attributes:
        method: Name of the extraction method ("ner" or "huggingface")
    """

    def __init__(self, message: str, method: str | None = None):
        super().__init__(message)
        self.method = method


class InferencePermissionError(ExtractionError):
    """Raised when the remote inference endpoint rejects the API token."""


class ExtractionTimeoutError(ExtractionError):
    """Raised when an extraction method does not answer before the deadline."""


class OrchestrationError(StafindError):
    """Raised when no extraction method produced a result.

    Attributes:
        errors: Mapping of method name to the error it raised
    """

    def __init__(self, message: str, errors: dict[str, BaseException] | None = None):
        super().__init__(message)
        self.errors = errors or {}


class JobNotFoundError(StafindError, LookupError):
    """Raised when a tracked job or agent request does not exist."""


class TerminalStateError(StafindError):
    """Raised when mutating a job that already completed or failed."""


def sanitize_error_message(error: BaseException) -> str:
    """Turn an exception into a message safe to persist on a job row.

    Args:
        error: Exception object

    Returns:
        Message without connection strings or tokens
    """
    error_str = str(error)
    lowered = error_str.lower()

    if "password" in lowered or "postgresql://" in lowered:
        return "Database operation failed"
    if "bearer " in lowered or "hf_" in error_str:
        return "Inference authentication failed"
    return error_str
