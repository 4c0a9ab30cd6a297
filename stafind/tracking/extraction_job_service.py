"""Service for tracking the lifecycle of extraction jobs."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from stafind.shared.errors import JobNotFoundError, TerminalStateError, ValidationError
from stafind.shared.models import (
    COMPLETED,
    FAILED,
    PENDING,
    PROCESSING,
    TERMINAL_STATUSES,
    VALID_STATUSES,
    ExtractionJob,
)

from .job_store import ExtractionJobStore

logger = logging.getLogger(__name__)

# Allowed status changes for a job that is not terminal yet
ALLOWED_TRANSITIONS = {
    PENDING: {PENDING, PROCESSING, COMPLETED, FAILED},
    PROCESSING: {PROCESSING, COMPLETED, FAILED},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExtractionJobService:
    """
    State machine for extraction jobs: pending -> processing -> completed | failed.

    Jobs are keyed by request id and created on first report. Progress
    counters are cumulative totals supplied by the caller and must satisfy
    ``files_processed + files_failed <= num_files``. A job that failed on
    some files still finishes ``completed`` with ``files_failed > 0``; it is
    marked ``failed`` only when the run could not proceed at all. Completed
    and failed jobs never change again.
    """

    def __init__(self, store: ExtractionJobStore, clock: Callable[[], datetime] = _utcnow):
        """
        Initialize the service.

        Args:
            store: Job store
            clock: Returns the current time, injectable for tests

        Raises:
            ValueError: If store is None
        """
        if store is None:
            raise ValueError("Job store is required")
        self.store = store
        self._clock = clock

    def _require(self, request_id: str) -> ExtractionJob:
        job = self.store.get(request_id)
        if job is None:
            raise JobNotFoundError(f"Extraction job not found: {request_id}")
        if job.is_terminal:
            raise TerminalStateError(f"Extraction job {request_id} is already {job.status}")
        return job

    def _save(self, job: ExtractionJob) -> ExtractionJob:
        try:
            return self.store.update(job)
        except TerminalStateError:
            raise
        except Exception as e:
            logger.error(f"Error updating extraction job {job.request_id}: {e}", exc_info=True)
            raise

    @staticmethod
    def _validate_status(status: str) -> None:
        if status not in VALID_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")

    def get(self, request_id: str) -> ExtractionJob | None:
        """Get a job by request id, or None if it was never reported."""
        return self.store.get(request_id)

    def create_or_update(
        self,
        request_id: str,
        status: str = PROCESSING,
        num_files: int = 1,
        file_number: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ExtractionJob:
        """
        Create a job on first report, otherwise update its status only.

        Args:
            request_id: Unique id of the extraction request
            status: Status to set
            num_files: Number of files in the request (used on create)
            file_number: 1-based number of the file being reported
            metadata: Free-form metadata stored on create

        Returns:
            The stored job

        Raises:
            ValidationError: If arguments are invalid
            TerminalStateError: If the job already completed or failed
        """
        if not request_id:
            raise ValidationError("request_id is required")
        self._validate_status(status)
        if num_files < 0:
            raise ValidationError(f"num_files must not be negative, got: {num_files}")
        if file_number is not None and (file_number < 1 or (num_files and file_number > num_files)):
            raise ValidationError(f"file_number {file_number} is out of range for {num_files} file(s)")

        existing = self.store.get(request_id)
        if existing is None:
            now = self._clock()
            job_metadata = dict(metadata or {})
            if file_number is not None:
                job_metadata.setdefault("file_number", file_number)
            job = ExtractionJob(
                request_id=request_id,
                status=status,
                num_files=num_files,
                started_at=now,
                completed_at=now if status in TERMINAL_STATUSES else None,
                metadata=job_metadata,
            )
            try:
                created = self.store.insert(job)
            except Exception as e:
                logger.error(f"Error creating extraction job {request_id}: {e}", exc_info=True)
                raise
            if created is not None:
                logger.info(f"Created extraction job {request_id} ({status}, {num_files} file(s))")
                return created
            # Another writer created it first; fall through to a status update
            existing = self.store.get(request_id)
            if existing is None:
                raise JobNotFoundError(f"Extraction job not found: {request_id}")

        return self.update_status(request_id, status)

    def update_status(self, request_id: str, status: str) -> ExtractionJob:
        """
        Move a job to a new status.

        Raises:
            ValidationError: If the status is unknown or the transition is not allowed
            JobNotFoundError: If the job does not exist
            TerminalStateError: If the job already completed or failed
        """
        self._validate_status(status)
        job = self._require(request_id)
        if status not in ALLOWED_TRANSITIONS[job.status]:
            raise ValidationError(f"Cannot move extraction job {request_id} from {job.status} to {status}")

        changes: dict[str, Any] = {"status": status}
        if status in TERMINAL_STATUSES:
            changes["completed_at"] = self._clock()
        return self._save(replace(job, **changes))

    def progress(self, request_id: str, files_processed: int, files_failed: int) -> ExtractionJob:
        """
        Record cumulative per-file progress.

        Args:
            request_id: Job request id
            files_processed: Total files processed successfully so far
            files_failed: Total files that failed so far

        Returns:
            Updated job (a pending job moves to processing)

        Raises:
            ValidationError: If counts are negative or exceed num_files
            JobNotFoundError: If the job does not exist
            TerminalStateError: If the job already completed or failed
        """
        if files_processed < 0 or files_failed < 0:
            raise ValidationError("Progress counters must not be negative")
        job = self._require(request_id)
        if files_processed + files_failed > job.num_files:
            raise ValidationError(
                f"files_processed + files_failed ({files_processed} + {files_failed}) "
                f"exceeds num_files ({job.num_files}) for {request_id}"
            )

        updated = replace(
            job,
            status=PROCESSING if job.status == PENDING else job.status,
            files_processed=files_processed,
            files_failed=files_failed,
        )
        logger.debug(
            f"Extraction job {request_id}: {files_processed} processed, {files_failed} failed "
            f"of {job.num_files}"
        )
        return self._save(updated)

    def success(self, request_id: str, total_time_ms: int) -> ExtractionJob:
        """
        Mark a job completed.

        The average per-file time is ``total_time_ms / num_files``; it stays
        None for a job with zero files.

        Raises:
            ValidationError: If total_time_ms is negative
            JobNotFoundError: If the job does not exist
            TerminalStateError: If the job already completed or failed
        """
        if total_time_ms < 0:
            raise ValidationError(f"total_time_ms must not be negative, got: {total_time_ms}")
        job = self._require(request_id)
        average = round(total_time_ms / job.num_files) if job.num_files > 0 else None

        completed = self._save(
            replace(
                job,
                status=COMPLETED,
                completed_at=self._clock(),
                total_processing_time_ms=total_time_ms,
                average_processing_time_ms=average,
            )
        )
        logger.info(
            f"Extraction job {request_id} completed in {total_time_ms}ms "
            f"({completed.files_processed} processed, {completed.files_failed} failed)"
        )
        return completed

    def failed(
        self, request_id: str, error_message: str, total_time_ms: int | None = None
    ) -> ExtractionJob:
        """
        Mark a job failed.

        Raises:
            JobNotFoundError: If the job does not exist
            TerminalStateError: If the job already completed or failed
        """
        job = self._require(request_id)
        failed = self._save(
            replace(
                job,
                status=FAILED,
                completed_at=self._clock(),
                error_message=error_message or "Unknown error",
                total_processing_time_ms=total_time_ms,
            )
        )
        logger.warning(f"Extraction job {request_id} failed: {error_message}")
        return failed

    def complete(self, request_id: str, total_time_ms: int, error_message: str | None = None) -> ExtractionJob:
        """Mark a job failed when error_message is given, otherwise completed."""
        if error_message:
            return self.failed(request_id, error_message, total_time_ms=total_time_ms)
        return self.success(request_id, total_time_ms)

    def list_jobs(self, limit: int = 50, offset: int = 0) -> list[ExtractionJob]:
        """List jobs, newest first."""
        if limit <= 0 or offset < 0:
            raise ValidationError("limit must be positive and offset not negative")
        return self.store.list(limit, offset)

    def recent(self, limit: int = 10) -> list[ExtractionJob]:
        return self.list_jobs(limit=limit)

    def stats(self) -> dict[str, Any]:
        """
        Aggregate job statistics.

        Returns:
            Dict with total_jobs, completed_jobs, failed_jobs, processing_jobs,
            pending_jobs, average_processing_time_ms, total_files_processed,
            total_files_failed and success_rate (percent of finished jobs)
        """
        stats = dict(self.store.stats())
        finished = (stats.get("completed_jobs") or 0) + (stats.get("failed_jobs") or 0)
        stats["success_rate"] = round(100.0 * stats["completed_jobs"] / finished, 2) if finished else 0.0
        return stats
