"""
Unit tests for the extraction orchestrator.

Extractors are small fakes; the slow one blocks until the orchestrator
signals cancellation.
"""

import asyncio
import time

import pytest

from stafind.orchestrator import ExtractionOrchestrator, merge_skill_sets
from stafind.shared.errors import ExtractionError, OrchestrationError, ValidationError
from stafind.shared.models import ExtractedSkillSet


class FakeTextExtractor:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def extract(self, text, cancel_event=None):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


class FakeExternalExtractor:
    def __init__(self, result=None, error=None, block=False):
        self.result = result
        self.error = error
        self.block = block
        self.cancelled = False

    def extract_skill_set(self, text, cancel_event=None):
        if self.block:
            # Wait for the orchestrator to give up on us
            self.cancelled = cancel_event.wait(5)
            raise ExtractionError("cancelled", method="huggingface")
        if self.error:
            raise self.error
        return self.result


def _skills(categories, methods):
    return ExtractedSkillSet(categories=categories, methods=methods, confidence_score=0.1)


class TestExtractionOrchestrator:
    """Test concurrent extraction and merging."""

    def test_merges_both_results(self):
        text = FakeTextExtractor(_skills({"Backend": ["Go"]}, ("ner",)))
        external = FakeExternalExtractor(_skills({"Backend": ["SQL"], "Cloud": ["AWS"]}, ("huggingface",)))
        orchestrator = ExtractionOrchestrator(text, external, timeout=5)

        result = orchestrator.extract("Go, SQL and AWS")

        assert dict(result.categories) == {"Backend": ("Go", "SQL"), "Cloud": ("AWS",)}
        assert result.methods == ("huggingface", "ner")
        assert result.errors == ()

    def test_slow_method_times_out_with_non_fatal_error(self):
        """Test that a timed-out method is recorded and the other result kept."""
        text = FakeTextExtractor(_skills({"Backend": ["Go"]}, ("ner",)))
        external = FakeExternalExtractor(block=True)
        orchestrator = ExtractionOrchestrator(text, external, timeout=0.2)

        started = time.monotonic()
        result = orchestrator.extract("We need Go")
        elapsed = time.monotonic() - started

        assert result.all_skills() == ["Go"]
        assert len(result.errors) == 1
        assert result.errors[0].startswith("huggingface extraction failed:")
        assert "did not finish" in result.errors[0]
        assert elapsed < 2

    def test_slow_method_is_signalled_to_stop(self):
        external = FakeExternalExtractor(block=True)
        orchestrator = ExtractionOrchestrator(
            FakeTextExtractor(_skills({"Backend": ["Go"]}, ("ner",))), external, timeout=0.1
        )

        orchestrator.extract("We need Go")

        deadline = time.monotonic() + 2
        while not external.cancelled and time.monotonic() < deadline:
            time.sleep(0.01)
        assert external.cancelled

    def test_one_failure_is_recorded(self):
        text = FakeTextExtractor(error=ExtractionError("catalog down", method="ner"))
        external = FakeExternalExtractor(_skills({"Cloud": ["AWS"]}, ("huggingface",)))
        orchestrator = ExtractionOrchestrator(text, external, timeout=5)

        result = orchestrator.extract("AWS")

        assert result.all_skills() == ["AWS"]
        assert result.errors == ("ner extraction failed: catalog down",)

    def test_both_failures_raise(self):
        """Test that the orchestration fails when no method succeeds."""
        text = FakeTextExtractor(error=ExtractionError("catalog down"))
        external = FakeExternalExtractor(error=ExtractionError("api down"))
        orchestrator = ExtractionOrchestrator(text, external, timeout=5)

        with pytest.raises(OrchestrationError, match="All extraction methods failed") as exc_info:
            orchestrator.extract("AWS")

        assert set(exc_info.value.errors) == {"ner", "huggingface"}

    def test_text_only_orchestrator(self):
        text = FakeTextExtractor(_skills({"Backend": ["Go"]}, ("ner",)))
        orchestrator = ExtractionOrchestrator(text, timeout=5)

        assert orchestrator.extract("Go").methods == ("ner",)

    @pytest.mark.parametrize("value", ["", "   "])
    def test_empty_text_rejected(self, value):
        text = FakeTextExtractor(ExtractedSkillSet.empty())
        orchestrator = ExtractionOrchestrator(text, timeout=5)

        with pytest.raises(ValidationError):
            orchestrator.extract(value)
        assert text.calls == 0

    def test_extract_from_running_loop(self):
        """Test that the sync wrapper works inside an event loop."""
        text = FakeTextExtractor(_skills({"Backend": ["Go"]}, ("ner",)))
        orchestrator = ExtractionOrchestrator(text, timeout=5)

        async def call_sync():
            return orchestrator.extract("Go")

        assert asyncio.run(call_sync()).all_skills() == ["Go"]

    def test_extract_async(self):
        text = FakeTextExtractor(_skills({"Backend": ["Go"]}, ("ner",)))
        orchestrator = ExtractionOrchestrator(text, timeout=5)

        result = asyncio.run(orchestrator.extract_async("Go", request_id="req-1"))

        assert result.all_skills() == ["Go"]

    def test_rejects_bad_timeout(self):
        with pytest.raises(ValueError, match="timeout"):
            ExtractionOrchestrator(FakeTextExtractor(), timeout=0)


class TestMergeSkillSets:
    def test_merge_order_does_not_matter(self):
        a = _skills({"Backend": ["Go"]}, ("ner",))
        b = _skills({"Backend": ["SQL"]}, ("huggingface",))

        assert merge_skill_sets(a, b) == merge_skill_sets(b, a)

    def test_no_sets_gives_empty_result(self):
        assert merge_skill_sets().total_skills() == 0
