"""
Extraction job tracking.

State machines for multi-file extraction jobs and single-shot agent
requests, with in-memory and PostgreSQL stores.
"""

from .agent_request_service import (
    PROCESSING_TYPES,
    AgentRequestService,
    InMemoryAgentRequestStore,
    PostgresAgentRequestStore,
)
from .extraction_job_service import ExtractionJobService
from .job_store import ExtractionJobStore, InMemoryExtractionJobStore, PostgresExtractionJobStore

__all__ = [
    "PROCESSING_TYPES",
    "AgentRequestService",
    "ExtractionJobService",
    "ExtractionJobStore",
    "InMemoryAgentRequestStore",
    "InMemoryExtractionJobStore",
    "PostgresAgentRequestStore",
    "PostgresExtractionJobStore",
]
