"""
Extraction Orchestrator

Runs the text extractor and the remote extractor concurrently against the
same text under one deadline and merges whatever completed in time.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Callable
from typing import Any

from stafind.enricher.huggingface_client import METHOD_NAME as HUGGINGFACE_METHOD
from stafind.enricher.text_skill_extractor import METHOD_NAME as NER_METHOD
from stafind.shared.errors import ExtractionTimeoutError, OrchestrationError, ValidationError
from stafind.shared.models import ExtractedSkillSet
from stafind.shared.structured_logging import get_structured_logger

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0

ExtractionMethod = Callable[[str, threading.Event], ExtractedSkillSet]


def merge_skill_sets(*skill_sets: ExtractedSkillSet) -> ExtractedSkillSet:
    """
    Merge extraction results.

    Per-category case-insensitive union keeping first-seen casing; the order
    of the inputs does not change which skills end up in the result.
    """
    if not skill_sets:
        return ExtractedSkillSet.empty()
    merged = skill_sets[0]
    for skill_set in skill_sets[1:]:
        merged = merged.merge(skill_set)
    return merged


class ExtractionOrchestrator:
    """
    Runs both extraction methods concurrently and merges their results.

    Each call starts exactly two tasks on a short-lived thread pool and waits
    for them at most twice, bounded by ``timeout``. Results that arrive after
    the deadline are ignored; an advisory cancellation event is set so
    extractors can stop at their next checkpoint. The pool is shut down
    without waiting, so late tasks never hold up the caller.
    """

    def __init__(
        self,
        text_extractor: Any,
        external_extractor: Any | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Initialize the orchestrator.

        Args:
            text_extractor: Catalog-driven extractor (``extract(text, cancel_event)``)
            external_extractor: Remote extractor
                (``extract_skill_set(text, cancel_event)``); optional
            timeout: Deadline for the whole orchestration in seconds

        Raises:
            ValueError: If text_extractor is None or timeout is not positive
        """
        if text_extractor is None:
            raise ValueError("Text extractor is required")
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got: {timeout}")

        self.timeout = timeout
        self.methods: dict[str, ExtractionMethod] = {NER_METHOD: text_extractor.extract}
        if external_extractor is not None:
            self.methods[HUGGINGFACE_METHOD] = external_extractor.extract_skill_set

    async def extract_async(self, text: str, request_id: str | None = None) -> ExtractedSkillSet:
        """
        Run all extraction methods and merge the results.

        Args:
            text: Input text
            request_id: Optional id added to log context

        Returns:
            Merged ExtractedSkillSet; errors from methods that failed or
            timed out are listed in ``errors``

        Raises:
            ValidationError: If text is empty
            OrchestrationError: If no method succeeded before the deadline
        """
        if not text or not text.strip():
            raise ValidationError("Text is required")

        log = get_structured_logger(__name__, request_id=request_id)
        loop = asyncio.get_running_loop()
        cancel_event = threading.Event()
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(self.methods), thread_name_prefix="extraction"
        )

        futures = {
            loop.run_in_executor(executor, method, text, cancel_event): name
            for name, method in self.methods.items()
        }
        results: dict[str, ExtractedSkillSet] = {}
        errors: dict[str, BaseException] = {}
        pending = set(futures)
        deadline = loop.time() + self.timeout

        try:
            for _ in range(len(futures)):
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, pending = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                if not done:
                    break
                for future in done:
                    name = futures[future]
                    error = future.exception()
                    if error is not None:
                        log.warning(f"{name} extraction failed: {error}")
                        errors[name] = error
                    else:
                        results[name] = future.result()
                if not pending:
                    break
        finally:
            cancel_event.set()
            for future in pending:
                name = futures[future]
                errors[name] = ExtractionTimeoutError(
                    f"{name} extraction did not finish within {self.timeout}s", method=name
                )
                future.cancel()
            executor.shutdown(wait=False)

        if not results:
            detail = "; ".join(f"{name}: {error}" for name, error in sorted(errors.items()))
            log.error(f"All extraction methods failed: {detail}")
            raise OrchestrationError(f"All extraction methods failed: {detail}", errors=errors)

        merged = merge_skill_sets(*(results[name] for name in sorted(results)))
        if errors:
            merged = merged.with_errors(
                *(f"{name} extraction failed: {error}" for name, error in errors.items())
            )
        log.info(
            f"Extraction finished: {merged.total_skills()} skill(s) from "
            f"{', '.join(sorted(results))}; {len(errors)} method error(s)"
        )
        return merged

    def extract(self, text: str, request_id: str | None = None) -> ExtractedSkillSet:
        """
        Synchronous wrapper around ``extract_async``.

        Safe to call from code that already runs an event loop: the
        orchestration then runs on its own loop in a helper thread.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.extract_async(text, request_id=request_id))

        logger.warning("extract called from async context; use extract_async instead")

        def run_in_thread() -> ExtractedSkillSet:
            return asyncio.run(self.extract_async(text, request_id=request_id))

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as runner:
            return runner.submit(run_in_thread).result()
