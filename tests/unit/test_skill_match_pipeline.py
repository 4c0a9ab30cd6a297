"""
Unit tests for the skill match pipeline.

The orchestrator is a Mock; matching and tracking use the real services with
in-memory stores.
"""

from unittest.mock import Mock

import pytest

from stafind.pipeline import SkillMatchPipeline, build_match_summary
from stafind.ranker import InMemoryCandidateRepository, MatchEngine, MatchPolicy
from stafind.shared.errors import OrchestrationError, ValidationError
from stafind.shared.models import COMPLETED, FAILED, PROCESSING, ExtractedSkillSet
from stafind.tracking import (
    AgentRequestService,
    ExtractionJobService,
    InMemoryAgentRequestStore,
    InMemoryExtractionJobStore,
)


def _skills(*names, years=None):
    return ExtractedSkillSet(
        categories={"Backend": list(names)} if names else {},
        years_of_experience=years,
        confidence_score=round(0.1 * len(names), 2),
        methods=("ner",),
    )


@pytest.fixture
def orchestrator():
    orchestrator = Mock()
    orchestrator.extract.return_value = _skills("Go", "SQL")
    return orchestrator


@pytest.fixture
def job_service(datetime_clock):
    return ExtractionJobService(InMemoryExtractionJobStore(), clock=datetime_clock)


@pytest.fixture
def agent_service(datetime_clock):
    return AgentRequestService(InMemoryAgentRequestStore(), clock=datetime_clock)


@pytest.fixture
def pipeline(orchestrator, sample_candidates, job_service, agent_service):
    return SkillMatchPipeline(
        orchestrator,
        candidate_repository=InMemoryCandidateRepository(sample_candidates),
        match_engine=MatchEngine(policy=MatchPolicy()),
        job_service=job_service,
        agent_service=agent_service,
        top_n=2,
        min_score=10.0,
    )


class TestExtractAndMatch:
    """Test extraction followed by matching."""

    def test_ranks_candidates_for_extracted_skills(self, pipeline):
        result = pipeline.extract_and_match("Need Go and SQL")

        assert [m.employee_id for m in result.matches] == [2, 1]
        assert result.summary == "Found 2 employees matching skills: Go, SQL"
        assert result.errors == ()
        assert result.to_dict()["matches"][0]["match_score"] == 100.0

    def test_no_skills_skips_matching(self, pipeline, orchestrator):
        orchestrator.extract.return_value = _skills()

        result = pipeline.extract_and_match("Hello there")

        assert result.matches == ()
        assert result.summary == "No skills could be extracted from the request."

    def test_no_matching_candidates(self, pipeline, orchestrator):
        orchestrator.extract.return_value = _skills("Haskell")

        result = pipeline.extract_and_match("Need Haskell")

        assert result.summary == "No employees found matching skills: Haskell"

    def test_method_errors_are_surfaced(self, pipeline, orchestrator):
        orchestrator.extract.return_value = _skills("Go").with_errors("huggingface extraction failed: timeout")

        result = pipeline.extract_and_match("Need Go")

        assert result.errors == ("huggingface extraction failed: timeout",)

    def test_request_criteria_reach_match_engine(self, orchestrator):
        engine = Mock()
        engine.score.return_value = []
        pipeline = SkillMatchPipeline(
            orchestrator, candidate_repository=InMemoryCandidateRepository([]), match_engine=engine
        )

        pipeline.extract_and_match("Need Go", department="Platform", level="senior", location="Lisbon")

        kwargs = engine.score.call_args.kwargs
        assert (kwargs["department"], kwargs["level"], kwargs["location"]) == ("Platform", "senior", "Lisbon")

    def test_requires_candidate_repository(self, orchestrator):
        with pytest.raises(ValueError, match="Candidate repository"):
            SkillMatchPipeline(orchestrator).extract_and_match("Need Go")

    def test_build_match_summary(self):
        assert build_match_summary([], []) == "No skills could be extracted from the request."


class TestTrackExtraction:
    """Test tracked single-file extraction."""

    def test_single_file_completes_job(self, pipeline, job_service):
        tracked = pipeline.track_extraction(
            "Go and SQL developer",
            "req-1",
            processing_type="candidate_matching",
            resume_url="s3://bucket/cv.pdf",
        )

        assert tracked.result["processing_type"] == "candidate_matching"
        assert tracked.result["match_score"] == 54
        job = job_service.get("req-1")
        assert job.status == COMPLETED
        assert job.files_processed == 1
        assert job.metadata["resume_url"] == "s3://bucket/cv.pdf"
        assert job.metadata["extraction_methods"] == ["ner", "huggingface"]
        assert job.metadata["total_files"] == 1

    def test_multi_file_request_completes_after_last_file(self, pipeline, job_service):
        first = pipeline.track_extraction("Go", "req-1", file_number=1, total_files=2)
        assert first.job.status == PROCESSING
        assert first.job.files_processed == 1

        second = pipeline.track_extraction("SQL", "req-1", file_number=2, total_files=2)

        assert second.job.status == COMPLETED
        assert second.job.files_processed == 2
        assert second.job.total_processing_time_ms is not None

    def test_failed_extraction_marks_job_failed(self, pipeline, orchestrator, job_service):
        orchestrator.extract.side_effect = OrchestrationError("All extraction methods failed: ner: down")

        with pytest.raises(OrchestrationError):
            pipeline.track_extraction("Go", "req-1")

        job = job_service.get("req-1")
        assert job.status == FAILED
        assert job.files_failed == 1
        assert job.error_message.startswith("Both NER and Hugging Face extractions failed:")

    def test_failed_file_does_not_stop_sibling_files(self, pipeline, orchestrator, job_service):
        """Test that one failing file of a request is counted and the others carry on."""
        orchestrator.extract.side_effect = [
            _skills("Go"),
            OrchestrationError("All extraction methods failed: ner: down"),
            _skills("SQL"),
        ]

        pipeline.track_extraction("cv one", "req-1", file_number=1, total_files=3)
        with pytest.raises(OrchestrationError):
            pipeline.track_extraction("cv two", "req-1", file_number=2, total_files=3)

        after_failure = job_service.get("req-1")
        assert after_failure.status == PROCESSING
        assert after_failure.files_failed == 1

        third = pipeline.track_extraction("cv three", "req-1", file_number=3, total_files=3)

        assert third.job.status == COMPLETED
        assert third.job.files_processed == 2
        assert third.job.files_failed == 1
        assert third.job.error_message is None

    def test_every_file_failing_fails_request(self, pipeline, orchestrator, job_service):
        orchestrator.extract.side_effect = OrchestrationError("All extraction methods failed")

        for file_number in (1, 2):
            with pytest.raises(OrchestrationError):
                pipeline.track_extraction("cv", "req-1", file_number=file_number, total_files=2)

        job = job_service.get("req-1")
        assert job.status == FAILED
        assert job.files_failed == 2
        assert job.error_message.startswith("All 2 file(s) failed; last error: Both NER")

    def test_empty_text_counts_as_failed_file(self, pipeline, orchestrator, job_service):
        orchestrator.extract.side_effect = [ValidationError("Text is required"), _skills("Go")]

        with pytest.raises(ValidationError):
            pipeline.track_extraction("", "req-1", file_number=1, total_files=2)
        second = pipeline.track_extraction("Go", "req-1", file_number=2, total_files=2)

        assert second.job.status == COMPLETED
        assert second.job.files_processed == 1
        assert second.job.files_failed == 1

    def test_elapsed_time_released_after_failed_request(self, pipeline, orchestrator):
        orchestrator.extract.side_effect = OrchestrationError("All extraction methods failed")

        with pytest.raises(OrchestrationError):
            pipeline.track_extraction("Go", "req-1")

        assert pipeline._elapsed_ms == {}

    def test_elapsed_time_released_after_completed_request(self, pipeline):
        pipeline.track_extraction("Go", "req-1", file_number=1, total_files=2)
        assert "req-1" in pipeline._elapsed_ms

        pipeline.track_extraction("SQL", "req-1", file_number=2, total_files=2)

        assert pipeline._elapsed_ms == {}

    def test_untracked_pipeline_still_extracts(self, orchestrator):
        pipeline = SkillMatchPipeline(orchestrator)

        tracked = pipeline.track_extraction("Go", "req-1")

        assert tracked.job is None
        assert tracked.result["total_skills"] == 2

    def test_tracking_errors_logged_when_not_strict(self, orchestrator):
        store = Mock()
        store.get.side_effect = ConnectionError("db down")
        pipeline = SkillMatchPipeline(
            orchestrator, job_service=ExtractionJobService(store), strict_tracking=False
        )

        tracked = pipeline.track_extraction("Go", "req-1")

        assert tracked.result["total_skills"] == 2
        assert tracked.job is None

    def test_tracking_errors_propagate_when_strict(self, orchestrator):
        store = Mock()
        store.get.side_effect = ConnectionError("db down")
        pipeline = SkillMatchPipeline(orchestrator, job_service=ExtractionJobService(store))

        with pytest.raises(ConnectionError):
            pipeline.track_extraction("Go", "req-1")


class TestProcessBatch:
    """Test multi-file batches."""

    def test_partial_failure_completes_with_failed_count(self, pipeline, orchestrator, job_service):
        orchestrator.extract.side_effect = [
            _skills("Go"),
            OrchestrationError("All extraction methods failed"),
            _skills("SQL"),
        ]

        batch = pipeline.process_batch(["cv one", "cv two", "cv three"], "batch-1")

        assert batch.files_processed == 2
        assert batch.files_failed == 1
        assert batch.files[1].error == "All extraction methods failed"
        job = job_service.get("batch-1")
        assert job.status == COMPLETED
        assert job.num_files == 3
        assert job.files_processed == 2
        assert job.files_failed == 1

    def test_all_files_failing_fails_job(self, pipeline, orchestrator, job_service):
        orchestrator.extract.side_effect = OrchestrationError("All extraction methods failed")

        batch = pipeline.process_batch(["cv one", "cv two"], "batch-1")

        assert batch.files_processed == 0
        assert batch.job.status == FAILED
        assert batch.job.files_failed == 2
        assert batch.job.error_message.startswith("All 2 file(s) failed")

    def test_empty_batch_rejected(self, pipeline):
        with pytest.raises(ValidationError, match="At least one file"):
            pipeline.process_batch([], "batch-1")

    def test_results_shaped_per_type(self, pipeline):
        batch = pipeline.process_batch(["Go and SQL"], "batch-1", processing_type="search_analysis")

        assert batch.files[0].result["search_criteria"]["required_skills"] == ["Go", "SQL"]


class TestRunAgentRequest:
    """Test agent request handling."""

    def test_completed_request(self, pipeline, agent_service):
        response = pipeline.run_agent_request("Need Go and SQL")

        assert response["status"] == COMPLETED
        assert response["response"] == "Found 2 employees matching skills: Go, SQL"
        assert [m["employee_id"] for m in response["matches"]] == [2, 1]
        assert agent_service.get(response["request_id"]).status == COMPLETED

    def test_failed_request_is_recorded(self, pipeline, orchestrator, agent_service):
        orchestrator.extract.side_effect = OrchestrationError("All extraction methods failed")

        with pytest.raises(OrchestrationError):
            pipeline.run_agent_request("Need Go")

        stored = agent_service.store._requests
        assert len(stored) == 1
        assert next(iter(stored.values())).status == FAILED

    def test_requires_agent_service(self, orchestrator):
        with pytest.raises(ValueError, match="Agent request service"):
            SkillMatchPipeline(orchestrator).run_agent_request("Need Go")
