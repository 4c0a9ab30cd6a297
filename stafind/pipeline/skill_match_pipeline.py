"""
Skill Match Pipeline

Entry points that chain extraction, matching and job tracking:

- extract_and_match: text -> merged skills -> ranked candidates + summary
- track_extraction: one file of a tracked extraction request
- process_batch: every file of a request, tolerating per-file failures
- run_agent_request: a single-shot agent request around extract_and_match
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from stafind.orchestrator import ExtractionOrchestrator
from stafind.ranker import CandidateRepository, MatchEngine
from stafind.shared.errors import (
    JobNotFoundError,
    OrchestrationError,
    StafindError,
    ValidationError,
    sanitize_error_message,
)
from stafind.shared.models import COMPLETED, PROCESSING, ExtractedSkillSet, ExtractionJob, Match
from stafind.shared.structured_logging import get_structured_logger
from stafind.tracking import AgentRequestService, ExtractionJobService

from .post_processing import GENERIC, POST_PROCESSORS, post_process

logger = logging.getLogger(__name__)

DEFAULT_TOP_N = 5
DEFAULT_MIN_SCORE = 10.0
EXTRACTION_METHODS = ["ner", "huggingface"]


@dataclass(frozen=True)
class PipelineResult:
    """Result of extract_and_match."""

    skills: ExtractedSkillSet
    matches: tuple[Match, ...]
    summary: str

    @property
    def errors(self) -> tuple[str, ...]:
        return self.skills.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "skills": self.skills.to_dict(),
            "matches": [match.to_dict() for match in self.matches],
            "summary": self.summary,
            "errors": list(self.errors),
        }


@dataclass
class TrackedExtraction:
    """Result of tracking one file of an extraction request."""

    request_id: str
    file_number: int
    result: dict[str, Any] | None = None
    skills: ExtractedSkillSet | None = None
    error: str | None = None
    job: ExtractionJob | None = None


@dataclass
class BatchResult:
    request_id: str
    files: list[TrackedExtraction] = field(default_factory=list)
    job: ExtractionJob | None = None

    @property
    def files_processed(self) -> int:
        return sum(1 for f in self.files if f.error is None)

    @property
    def files_failed(self) -> int:
        return sum(1 for f in self.files if f.error is not None)


def build_match_summary(matches: list[Match] | tuple[Match, ...], skills: list[str]) -> str:
    """One-line summary of a matching run."""
    if not skills:
        return "No skills could be extracted from the request."
    if not matches:
        return f"No employees found matching skills: {', '.join(skills)}"
    return f"Found {len(matches)} employees matching skills: {', '.join(skills)}"


class SkillMatchPipeline:
    """
    Wires the orchestrator, match engine and trackers together.

    When ``strict_tracking`` is False, failures to persist job state are
    logged as warnings and extraction carries on; otherwise they propagate.
    """

    def __init__(
        self,
        orchestrator: ExtractionOrchestrator,
        candidate_repository: CandidateRepository | None = None,
        match_engine: MatchEngine | None = None,
        job_service: ExtractionJobService | None = None,
        agent_service: AgentRequestService | None = None,
        top_n: int = DEFAULT_TOP_N,
        min_score: float = DEFAULT_MIN_SCORE,
        strict_tracking: bool = True,
    ):
        """
        Initialize the pipeline.

        Args:
            orchestrator: Concurrent extraction orchestrator
            candidate_repository: Candidate pool; required for matching
            match_engine: Match engine; a default one is built when None
            job_service: Extraction job tracker; required for tracked runs
            agent_service: Agent request tracker; required for agent runs
            top_n: Matches kept per run
            min_score: Minimum match score kept
            strict_tracking: Propagate tracking persistence errors

        Raises:
            ValueError: If orchestrator is None or top_n is not positive
        """
        if orchestrator is None:
            raise ValueError("Extraction orchestrator is required")
        if top_n <= 0:
            raise ValueError(f"top_n must be a positive integer, got: {top_n}")

        self.orchestrator = orchestrator
        self.candidate_repository = candidate_repository
        self.match_engine = match_engine or MatchEngine()
        self.job_service = job_service
        self.agent_service = agent_service
        self.top_n = top_n
        self.min_score = min_score
        self.strict_tracking = strict_tracking
        # Extraction time per tracked request, summed until its last file
        self._elapsed_ms: dict[str, int] = {}
        self._elapsed_lock = threading.Lock()

    def _track(self, action: Callable[[], ExtractionJob], description: str) -> ExtractionJob | None:
        if self.job_service is None:
            return None
        try:
            return action()
        except Exception as e:
            if self.strict_tracking:
                raise
            logger.warning(f"Failed to {description}: {e}")
            return None

    def extract_and_match(
        self,
        text: str,
        preferred: list[str] | None = None,
        request_id: str | None = None,
        department: str | None = None,
        level: str | None = None,
        location: str | None = None,
    ) -> PipelineResult:
        """
        Extract skills from text and rank the candidate pool against them.

        Every extracted skill is treated as required; ``preferred`` adds
        nice-to-have skills. Department, level and location add bonus points
        for candidates that fit them.

        Args:
            text: Job request or chat message
            preferred: Optional preferred skill names
            request_id: Optional id for log context
            department: Optional requested department
            level: Optional requested experience level
            location: Optional requested location

        Returns:
            PipelineResult with the merged skills, top matches and a summary

        Raises:
            ValidationError: If text is empty
            OrchestrationError: If no extraction method succeeded
            ValueError: If no candidate repository is configured
        """
        if self.candidate_repository is None:
            raise ValueError("Candidate repository is required for matching")

        log = get_structured_logger(__name__, request_id=request_id)
        skills = self.orchestrator.extract(text, request_id=request_id)
        required = skills.all_skills()

        matches: list[Match] = []
        if required:
            pool = self.candidate_repository.get_all()
            matches = self.match_engine.score(
                required,
                preferred or [],
                pool,
                self.min_score,
                top_n=self.top_n,
                department=department,
                level=level,
                location=location,
            )

        summary = build_match_summary(matches, required)
        log.info(summary)
        return PipelineResult(skills=skills, matches=tuple(matches), summary=summary)

    def track_extraction(
        self,
        text: str,
        request_id: str,
        file_number: int = 1,
        total_files: int = 1,
        processing_type: str = GENERIC,
        resume_url: str | None = None,
    ) -> TrackedExtraction:
        """
        Extract one file of a tracked request and advance the job.

        The job is created (or moved) to processing, the file is extracted
        and post-processed, progress is recorded, and the job is marked
        completed once every file has been reported. A file whose extraction
        fails (or whose text is empty) counts towards ``files_failed`` and its
        error is raised; sibling files of the same request keep going. The job
        is marked failed only when every one of its files failed.

        Args:
            text: Text of the file
            request_id: Extraction request id
            file_number: 1-based file number within the request
            total_files: Number of files in the request
            processing_type: Output shape (candidate_extraction, search_analysis,
                candidate_matching or generic)
            resume_url: Where the file came from, stored as metadata

        Returns:
            TrackedExtraction with the shaped result and the job state

        Raises:
            ValidationError: If text is empty (after recording the failed file)
            OrchestrationError: If no extraction method succeeded (after
                recording the failed file)
        """
        if processing_type not in POST_PROCESSORS:
            logger.warning(f"Unknown processing type {processing_type!r}; using generic")
            processing_type = GENERIC

        log = get_structured_logger(
            __name__, request_id=request_id, file_number=file_number, processing_type=processing_type
        )
        metadata = {
            "extraction_source": "combined_extract",
            "processing_type": processing_type,
            "resume_url": resume_url,
            "file_number": file_number,
            "total_files": total_files,
            "extraction_methods": list(EXTRACTION_METHODS),
        }
        self._track(
            lambda: self.job_service.create_or_update(
                request_id, PROCESSING, total_files, file_number, metadata
            ),
            f"create tracking record for {request_id}",
        )

        started = time.perf_counter()
        try:
            skills = self.orchestrator.extract(text, request_id=request_id)
        except (OrchestrationError, ValidationError) as e:
            if isinstance(e, OrchestrationError):
                message = f"Both NER and Hugging Face extractions failed: {sanitize_error_message(e)}"
            else:
                message = f"File {file_number} rejected: {sanitize_error_message(e)}"
            log.error(message)
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            self._track(
                lambda: self._record_file(request_id, elapsed_ms, error_message=message),
                f"record failed file for {request_id}",
            )
            raise

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        shaped = post_process(skills, processing_type, text)
        shaped["processing_time_ms"] = elapsed_ms

        job = self._track(
            lambda: self._record_file(request_id, elapsed_ms),
            f"update progress for {request_id}",
        )
        log.info(f"Tracked extraction: {skills.total_skills()} skill(s) in {elapsed_ms}ms")
        return TrackedExtraction(
            request_id=request_id,
            file_number=file_number,
            result=shaped,
            skills=skills,
            job=job,
        )

    def _record_file(
        self, request_id: str, elapsed_ms: int, error_message: str | None = None
    ) -> ExtractionJob:
        """
        Count one reported file and finish the job after its last file.

        A failed file only increments ``files_failed``; the job is marked
        failed once every file has been reported and none succeeded.
        """
        # Counters are cumulative; read the current totals and add this file
        job = self.job_service.get(request_id)
        if job is None:
            raise JobNotFoundError(f"Extraction job not found: {request_id}")
        files_processed = job.files_processed + (0 if error_message else 1)
        files_failed = job.files_failed + (1 if error_message else 0)

        with self._elapsed_lock:
            total_ms = self._elapsed_ms.get(request_id, 0) + elapsed_ms
            self._elapsed_ms[request_id] = total_ms

        try:
            job = self.job_service.progress(request_id, files_processed, files_failed)
            if files_processed + files_failed < job.num_files:
                return job
        except Exception:
            with self._elapsed_lock:
                self._elapsed_ms.pop(request_id, None)
            raise

        with self._elapsed_lock:
            self._elapsed_ms.pop(request_id, None)
        if files_processed == 0:
            if job.num_files > 1:
                error_message = f"All {job.num_files} file(s) failed; last error: {error_message}"
            return self.job_service.failed(request_id, error_message, total_time_ms=total_ms)
        return self.job_service.success(request_id, total_ms)

    def process_batch(
        self,
        texts: list[str],
        request_id: str,
        processing_type: str = GENERIC,
    ) -> BatchResult:
        """
        Extract every file of a request, one orchestration per file.

        A file whose extraction fails increments ``files_failed`` and the
        remaining files continue. The job ends completed unless every file
        failed.

        Args:
            texts: File texts, in file order
            request_id: Extraction request id
            processing_type: Output shape for every file

        Returns:
            BatchResult with one entry per file and the final job state

        Raises:
            ValidationError: If texts is empty
        """
        if not texts:
            raise ValidationError("At least one file is required")
        if processing_type not in POST_PROCESSORS:
            logger.warning(f"Unknown processing type {processing_type!r}; using generic")
            processing_type = GENERIC

        log = get_structured_logger(__name__, request_id=request_id, processing_type=processing_type)
        total_files = len(texts)
        metadata = {
            "extraction_source": "batch_extract",
            "processing_type": processing_type,
            "total_files": total_files,
            "extraction_methods": list(EXTRACTION_METHODS),
        }
        self._track(
            lambda: self.job_service.create_or_update(request_id, PROCESSING, total_files, None, metadata),
            f"create tracking record for {request_id}",
        )

        batch = BatchResult(request_id=request_id)
        started = time.perf_counter()
        errors = []

        for file_number, text in enumerate(texts, start=1):
            try:
                skills = self.orchestrator.extract(text, request_id=request_id)
            except (OrchestrationError, ValidationError) as e:
                log.warning(f"File {file_number}/{total_files} failed: {e}")
                errors.append(f"file {file_number}: {sanitize_error_message(e)}")
                batch.files.append(TrackedExtraction(request_id, file_number, error=str(e)))
            else:
                batch.files.append(
                    TrackedExtraction(
                        request_id,
                        file_number,
                        result=post_process(skills, processing_type, text),
                        skills=skills,
                    )
                )
            processed, failed = batch.files_processed, batch.files_failed
            self._track(
                lambda: self.job_service.progress(request_id, processed, failed),
                f"update progress for {request_id}",
            )

        total_ms = int((time.perf_counter() - started) * 1000)
        if batch.files_processed == 0:
            batch.job = self._track(
                lambda: self.job_service.failed(
                    request_id, f"All {total_files} file(s) failed: {'; '.join(errors)}", total_time_ms=total_ms
                ),
                f"mark {request_id} failed",
            )
        else:
            batch.job = self._track(
                lambda: self.job_service.success(request_id, total_ms),
                f"mark {request_id} completed",
            )

        log.info(
            f"Batch finished: {batch.files_processed} processed, {batch.files_failed} failed "
            f"of {total_files} in {total_ms}ms"
        )
        return batch

    def run_agent_request(self, query: str, preferred: list[str] | None = None) -> dict[str, Any]:
        """
        Handle a chat query as a tracked agent request.

        Returns:
            Dict with request_id, status, response, skills, matches and errors

        Raises:
            ValueError: If no agent service is configured
            StafindError: If extraction or matching fails (the request is
                marked failed first)
        """
        if self.agent_service is None:
            raise ValueError("Agent request service is required")
        if self.candidate_repository is None:
            raise ValueError("Candidate repository is required for matching")

        request = self.agent_service.create(query, processing_type="candidate_matching")
        self.agent_service.start(request.id)
        try:
            result = self.extract_and_match(query, preferred=preferred, request_id=request.id)
        except StafindError as e:
            self.agent_service.fail(request.id, sanitize_error_message(e))
            raise

        response = self.agent_service.complete(
            request.id,
            result.summary,
            skills=dict(result.skills.categories),
            matches=result.matches,
        )
        return {
            "request_id": request.id,
            "status": COMPLETED,
            "response": response.response_text,
            "skills": result.skills.to_dict(),
            "matches": [match.to_dict() for match in result.matches],
            "errors": list(result.errors),
        }
