"""Persistence for extraction jobs."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Protocol

from psycopg2.extras import Json

from stafind.shared.database import Database
from stafind.shared.errors import TerminalStateError
from stafind.shared.models import COMPLETED, FAILED, PENDING, PROCESSING, ExtractionJob

from .queries import (
    GET_EXTRACTION_JOB,
    GET_EXTRACTION_STATS,
    INSERT_EXTRACTION_JOB,
    LIST_EXTRACTION_JOBS,
    UPDATE_EXTRACTION_JOB,
)

logger = logging.getLogger(__name__)


class ExtractionJobStore(Protocol):
    """Keyed storage for ExtractionJob rows."""

    def get(self, request_id: str) -> ExtractionJob | None: ...

    def insert(self, job: ExtractionJob) -> ExtractionJob | None:
        """Insert a new job; None if one with the same request_id exists."""
        ...

    def update(self, job: ExtractionJob) -> ExtractionJob:
        """Persist a job; raises TerminalStateError if the stored row is terminal."""
        ...

    def list(self, limit: int, offset: int) -> list[ExtractionJob]: ...

    def stats(self) -> dict[str, Any]: ...


def _job_from_row(row: dict[str, Any]) -> ExtractionJob:
    return ExtractionJob(
        id=row.get("id"),
        request_id=row["request_id"],
        status=row["status"],
        num_files=row["num_files"],
        files_processed=row["files_processed"] or 0,
        files_failed=row["files_failed"] or 0,
        total_processing_time_ms=row.get("total_processing_time_ms"),
        average_processing_time_ms=row.get("average_processing_time_ms"),
        started_at=row.get("started_at"),
        completed_at=row.get("completed_at"),
        error_message=row.get("error_message"),
        metadata=row.get("metadata") or {},
    )


def _summarize(jobs: list[ExtractionJob]) -> dict[str, Any]:
    averages = [j.average_processing_time_ms for j in jobs if j.average_processing_time_ms is not None]
    return {
        "total_jobs": len(jobs),
        "completed_jobs": sum(1 for j in jobs if j.status == COMPLETED),
        "failed_jobs": sum(1 for j in jobs if j.status == FAILED),
        "processing_jobs": sum(1 for j in jobs if j.status == PROCESSING),
        "pending_jobs": sum(1 for j in jobs if j.status == PENDING),
        "average_processing_time_ms": sum(averages) / len(averages) if averages else None,
        "total_files_processed": sum(j.files_processed for j in jobs),
        "total_files_failed": sum(j.files_failed for j in jobs),
    }


class InMemoryExtractionJobStore:
    """Process-local job store. Every read returns a copy."""

    def __init__(self):
        self._jobs: dict[str, ExtractionJob] = {}
        self._order: list[str] = []
        self._lock = threading.Lock()
        self._next_id = 1

    def get(self, request_id: str) -> ExtractionJob | None:
        with self._lock:
            job = self._jobs.get(request_id)
            return copy.deepcopy(job) if job else None

    def insert(self, job: ExtractionJob) -> ExtractionJob | None:
        with self._lock:
            if job.request_id in self._jobs:
                return None
            stored = copy.deepcopy(job)
            stored.id = self._next_id
            self._next_id += 1
            self._jobs[job.request_id] = stored
            self._order.append(job.request_id)
            return copy.deepcopy(stored)

    def update(self, job: ExtractionJob) -> ExtractionJob:
        with self._lock:
            current = self._jobs.get(job.request_id)
            if current is None:
                raise KeyError(job.request_id)
            if current.is_terminal:
                raise TerminalStateError(f"Job {job.request_id} is already {current.status}")
            stored = copy.deepcopy(job)
            stored.id = current.id
            self._jobs[job.request_id] = stored
            return copy.deepcopy(stored)

    def list(self, limit: int, offset: int) -> list[ExtractionJob]:
        with self._lock:
            newest_first = list(reversed(self._order))[offset : offset + limit]
            return [copy.deepcopy(self._jobs[request_id]) for request_id in newest_first]

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return _summarize(list(self._jobs.values()))


class PostgresExtractionJobStore:
    """Job store backed by the ``cv_extraction_tracking`` table."""

    def __init__(self, database: Database):
        """
        Initialize the store.

        Args:
            database: Database connection interface (implements Database protocol)

        Raises:
            ValueError: If database is None
        """
        if not database:
            raise ValueError("Database is required")
        self.db = database

    def _fetch_one(self, cur) -> ExtractionJob | None:
        row = cur.fetchone()
        if not row:
            return None
        columns = [desc[0] for desc in cur.description]
        return _job_from_row(dict(zip(columns, row)))

    def get(self, request_id: str) -> ExtractionJob | None:
        with self.db.get_cursor() as cur:
            cur.execute(GET_EXTRACTION_JOB, (request_id,))
            return self._fetch_one(cur)

    def insert(self, job: ExtractionJob) -> ExtractionJob | None:
        with self.db.get_cursor() as cur:
            cur.execute(
                INSERT_EXTRACTION_JOB,
                (
                    job.request_id,
                    job.status,
                    job.num_files,
                    job.started_at,
                    job.completed_at,
                    job.error_message,
                    Json(job.metadata),
                ),
            )
            return self._fetch_one(cur)

    def update(self, job: ExtractionJob) -> ExtractionJob:
        with self.db.get_cursor() as cur:
            cur.execute(
                UPDATE_EXTRACTION_JOB,
                (
                    job.status,
                    job.files_processed,
                    job.files_failed,
                    job.total_processing_time_ms,
                    job.average_processing_time_ms,
                    job.completed_at,
                    job.error_message,
                    Json(job.metadata),
                    job.request_id,
                ),
            )
            updated = self._fetch_one(cur)
        if updated is None:
            raise TerminalStateError(f"Job {job.request_id} is missing or already terminal")
        return updated

    def list(self, limit: int, offset: int) -> list[ExtractionJob]:
        with self.db.get_cursor() as cur:
            cur.execute(LIST_EXTRACTION_JOBS, (limit, offset))
            columns = [desc[0] for desc in cur.description]
            return [_job_from_row(dict(zip(columns, row))) for row in cur.fetchall()]

    def stats(self) -> dict[str, Any]:
        with self.db.get_cursor() as cur:
            cur.execute(GET_EXTRACTION_STATS)
            columns = [desc[0] for desc in cur.description]
            row = cur.fetchone()
        stats = dict(zip(columns, row)) if row else _summarize([])
        if stats.get("average_processing_time_ms") is not None:
            stats["average_processing_time_ms"] = float(stats["average_processing_time_ms"])
        return stats
