"""
Structured Logging Utilities

Adds request-level context (request id, processing type, extraction method)
to log records emitted by the orchestrator and the pipeline.
"""

from __future__ import annotations

import logging
from typing import Any

STRUCTURED_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] [%(context)s] %(message)s"


def _format_context(context: dict[str, Any]) -> str:
    parts = [f"{key}={value}" for key, value in context.items() if value is not None]
    return " | ".join(parts)


class StructuredLoggerAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches a fixed context to every message.

    Usage:
        logger = get_structured_logger(__name__, request_id="req-1")
        logger.info("Extraction started")
    """

    def __init__(self, logger: logging.Logger, **context: Any):
        super().__init__(logger, context)

    def bind(self, **context: Any) -> StructuredLoggerAdapter:
        """Return a new adapter with additional context fields."""
        merged = dict(self.extra)
        merged.update(context)
        return StructuredLoggerAdapter(self.logger, **merged)

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        """
        Put the formatted context on the record under ``context``.

        Args:
            msg: Log message
            kwargs: Logging keyword arguments

        Returns:
            Tuple of (message, updated kwargs)
        """
        kwargs.setdefault("extra", {})["context"] = _format_context(self.extra) or "none"
        return msg, kwargs


def get_structured_logger(name: str, **context: Any) -> StructuredLoggerAdapter:
    """
    Get a structured logger with context.

    Args:
        name: Logger name (typically __name__)
        **context: Context fields (e.g., request_id="req-1", file_number=2)

    Returns:
        StructuredLoggerAdapter instance
    """
    return StructuredLoggerAdapter(logging.getLogger(name), **context)


class ContextDefaultFilter(logging.Filter):
    """Give records logged without an adapter an empty context field."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = "none"
        return True


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging with the structured format."""
    logging.basicConfig(level=level, format=STRUCTURED_FORMAT, force=True)
    for handler in logging.getLogger().handlers:
        handler.addFilter(ContextDefaultFilter())
