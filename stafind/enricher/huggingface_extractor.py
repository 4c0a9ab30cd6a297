"""
Hugging Face Skill Extractor

Turns token-classification output from a remote NER model into categorized
skills with the same result shape as the text extractor. Keeps its own
response cache and request statistics.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from stafind.catalog import SkillCatalog
from stafind.shared.config import DEFAULT_HF_MODEL, FALLBACK_HF_MODEL
from stafind.shared.errors import CatalogUnavailableError, ExtractionError, ValidationError
from stafind.shared.locks import ReadWriteLock
from stafind.shared.models import ExtractedSkillSet, build_summary, normalize_skill_name

from .category_keywords import CATEGORY_KEYWORDS, OTHER_CATEGORY
from .huggingface_client import METHOD_NAME, HuggingFaceInferenceClient

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10000
DEFAULT_MAX_SKILLS = 50
DEFAULT_CACHE_SECONDS = 30 * 60
CONTEXT_WINDOW = 50

MODEL_THRESHOLDS = {
    DEFAULT_HF_MODEL: 0.5,
    FALLBACK_HF_MODEL: 0.4,
}
DEFAULT_THRESHOLD = 0.5

REJECTED_LABELS = frozenset(
    {
        "O",
        "PER",
        "PERSON",
        "LOC",
        "LOCATION",
        "ORG",
        "ORGANIZATION",
        "B-PER",
        "I-PER",
        "B-LOC",
        "I-LOC",
        "B-ORG",
        "I-ORG",
    }
)


def is_skill_label(label: str | None) -> bool:
    """Reject person, location and organization labels; accept the rest."""
    label = (label or "").strip().upper()
    return bool(label) and label not in REJECTED_LABELS


def normalize_entity_name(word: str) -> str:
    """
    Clean an entity word for deduplication.

    Strips subword markers and whitespace, lowercases, drops a leading "the "
    and a trailing "." or ",". Returns "" when the result is not 2-50
    characters long.
    """
    normalized = word.replace("##", "").strip().lower()
    if normalized.startswith("the "):
        normalized = normalized[4:]
    normalized = normalized.rstrip(".,").strip()
    if len(normalized) < 2 or len(normalized) > 50:
        return ""
    return normalized


def categorize_by_keywords(name: str) -> str:
    """Category from the built-in keyword lists, or "Other"."""
    lowered = name.strip().lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if lowered in keywords:
            return category
    words = lowered.split()
    if len(words) > 1:
        for category, keywords in CATEGORY_KEYWORDS.items():
            if any(word in keywords for word in words if len(word) > 2):
                return category
    return OTHER_CATEGORY


def extract_context(text: str, start: int | None, end: int | None) -> str:
    """Up to 50 characters either side of an entity."""
    if start is None or end is None:
        return ""
    context_start = max(0, start - CONTEXT_WINDOW)
    context_end = min(len(text), end + CONTEXT_WINDOW)
    return text[context_start:context_end].strip()


@dataclass(frozen=True)
class ExtractionOptions:
    """
    Per-call options.

    Attributes:
        model: Model id; the configured default when None
        confidence_threshold: Minimum entity score; per-model default when None
        max_skills: Keep at most this many skills, highest confidence first
        categories: Only keep skills in these categories (case-insensitive)
    """

    model: str | None = None
    confidence_threshold: float | None = None
    max_skills: int = DEFAULT_MAX_SKILLS
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class EntitySkill:
    name: str
    normalized_name: str
    categories: tuple[str, ...]
    confidence: float
    start: int | None = None
    end: int | None = None
    context: str = ""


@dataclass(frozen=True)
class ExtractionResult:
    skills: tuple[EntitySkill, ...]
    categories: dict[str, list[str]]
    model_used: str
    confidence_score: float
    processing_time_ms: int
    cached: bool = False

    @property
    def total_skills(self) -> int:
        return len(self.skills)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skills": [
                {
                    "name": skill.name,
                    "normalized_name": skill.normalized_name,
                    "categories": list(skill.categories),
                    "confidence": skill.confidence,
                    "start": skill.start,
                    "end": skill.end,
                    "context": skill.context,
                }
                for skill in self.skills
            ],
            "categories": {name: list(skills) for name, skills in self.categories.items()},
            "total_skills": self.total_skills,
            "model_used": self.model_used,
            "confidence_score": self.confidence_score,
            "processing_time_ms": self.processing_time_ms,
            "cached": self.cached,
        }


@dataclass
class ExtractionStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_processing_time_ms: float = 0.0
    last_request_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "average_processing_time_ms": round(self.average_processing_time_ms, 2),
            "last_request_at": self.last_request_at.isoformat() if self.last_request_at else None,
        }


@dataclass
class _CacheEntry:
    result: ExtractionResult
    expires_at: float


class HuggingFaceSkillExtractor:
    """
    Skill extractor backed by a remote NER model.

    The configured default model is tried first; if the call fails, the
    fallback model is tried once before the error is raised.
    """

    def __init__(
        self,
        client: HuggingFaceInferenceClient,
        default_model: str = DEFAULT_HF_MODEL,
        fallback_model: str = FALLBACK_HF_MODEL,
        catalog: SkillCatalog | None = None,
        cache_seconds: float = DEFAULT_CACHE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the extractor.

        Args:
            client: Inference API client
            default_model: Model tried first
            fallback_model: Model tried once when the first call fails
            catalog: Optional skill catalog; a catalog hit overrides the
                built-in keyword categories
            cache_seconds: Response cache lifetime; 0 disables caching
            clock: Monotonic clock, injectable for tests

        Raises:
            ValueError: If client is None
        """
        if not client:
            raise ValueError("Inference client is required")

        self.client = client
        self.default_model = default_model
        self.fallback_model = fallback_model
        self.catalog = catalog
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._cache: dict[tuple, _CacheEntry] = {}
        self._cache_lock = ReadWriteLock()
        self._stats = ExtractionStats()
        self._stats_lock = threading.Lock()

    # Stats

    def _record_request(self) -> None:
        with self._stats_lock:
            self._stats.total_requests += 1
            self._stats.last_request_at = datetime.now(timezone.utc)

    def _record_outcome(self, success: bool, elapsed_ms: float) -> None:
        with self._stats_lock:
            if success:
                self._stats.successful_requests += 1
            else:
                self._stats.failed_requests += 1
            if self._stats.average_processing_time_ms == 0:
                self._stats.average_processing_time_ms = elapsed_ms
            else:
                self._stats.average_processing_time_ms = (
                    self._stats.average_processing_time_ms + elapsed_ms
                ) / 2

    def stats(self) -> ExtractionStats:
        with self._stats_lock:
            return replace(self._stats)

    # Cache

    def _cache_key(self, text: str, options: ExtractionOptions) -> tuple:
        return (
            text,
            options.model or self.default_model,
            options.confidence_threshold,
            options.max_skills,
            tuple(sorted(c.lower() for c in options.categories)),
        )

    def _get_cached(self, key: tuple) -> ExtractionResult | None:
        if self.cache_seconds <= 0:
            return None
        with self._cache_lock.read_lock():
            entry = self._cache.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            with self._cache_lock.write_lock():
                if self._cache.get(key) is entry:
                    del self._cache[key]
            return None
        return entry.result

    def _set_cached(self, key: tuple, result: ExtractionResult) -> None:
        if self.cache_seconds <= 0:
            return
        now = self._clock()
        with self._cache_lock.write_lock():
            expired = [k for k, entry in self._cache.items() if entry.expires_at <= now]
            for expired_key in expired:
                del self._cache[expired_key]
            self._cache[key] = _CacheEntry(result=result, expires_at=now + self.cache_seconds)
        if expired:
            logger.debug(f"Evicted {len(expired)} expired cached response(s)")

    def clear_cache(self) -> None:
        with self._cache_lock.write_lock():
            self._cache.clear()

    # Extraction

    def _validate(self, text: str, options: ExtractionOptions) -> None:
        if not text or not text.strip():
            raise ValidationError("Text is required")
        if len(text) > MAX_TEXT_LENGTH:
            raise ValidationError(f"Text is too long (max {MAX_TEXT_LENGTH} characters)")
        if options.max_skills <= 0:
            raise ValidationError(f"max_skills must be positive, got: {options.max_skills}")
        if options.confidence_threshold is not None and not 0 <= options.confidence_threshold <= 1:
            raise ValidationError(
                f"confidence_threshold must be in [0, 1], got: {options.confidence_threshold}"
            )

    def _categories_for(self, name: str) -> tuple[str, tuple[str, ...]]:
        if self.catalog is not None:
            try:
                self.catalog.load()
            except CatalogUnavailableError:
                logger.debug("Skill catalog unavailable; using keyword categories")
            info = self.catalog.lookup(name)
            if info is not None and info.categories:
                return info.name, info.categories
        return name, (categorize_by_keywords(name),)

    def _build_result(
        self,
        text: str,
        entities: list[dict[str, Any]],
        model: str,
        options: ExtractionOptions,
        elapsed_ms: int,
    ) -> ExtractionResult:
        threshold = options.confidence_threshold
        if threshold is None:
            threshold = MODEL_THRESHOLDS.get(model, DEFAULT_THRESHOLD)

        ranked = sorted(entities, key=lambda e: float(e.get("score") or 0.0), reverse=True)
        wanted = {c.lower() for c in options.categories}
        seen: set[str] = set()
        skills: list[EntitySkill] = []

        for entity in ranked:
            score = float(entity.get("score") or 0.0)
            if score < threshold:
                continue
            if not is_skill_label(entity.get("entity_group") or entity.get("entity")):
                continue

            normalized = normalize_entity_name(str(entity.get("word") or ""))
            key = normalize_skill_name(normalized)
            if not key or key in seen:
                continue

            display = str(entity.get("word")).replace("##", "").strip().rstrip(".,")
            name, categories = self._categories_for(display)
            if wanted and not any(c.lower() in wanted for c in categories):
                continue

            seen.add(key)
            skills.append(
                EntitySkill(
                    name=name,
                    normalized_name=normalized,
                    categories=categories,
                    confidence=round(score, 4),
                    start=entity.get("start"),
                    end=entity.get("end"),
                    context=extract_context(text, entity.get("start"), entity.get("end")),
                )
            )
            if len(skills) >= options.max_skills:
                break

        categorized: dict[str, list[str]] = {}
        for skill in skills:
            for category in skill.categories:
                categorized.setdefault(category, []).append(skill.name)

        confidence = round(sum(s.confidence for s in skills) / len(skills), 4) if skills else 0.0
        return ExtractionResult(
            skills=tuple(skills),
            categories=categorized,
            model_used=model,
            confidence_score=confidence,
            processing_time_ms=elapsed_ms,
        )

    def extract(
        self,
        text: str,
        options: ExtractionOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ExtractionResult:
        """
        Extract skills from text with the remote model.

        Args:
            text: Input text, at most 10,000 characters
            options: Per-call options
            cancel_event: Advisory cancellation flag checked before the
                fallback attempt

        Returns:
            ExtractionResult sorted by confidence, highest first

        Raises:
            ValidationError: If text is empty or too long, or options are invalid
            InferencePermissionError: If the token lacks inference permission
            ExtractionError: If both the selected and the fallback model fail
        """
        options = options or ExtractionOptions()
        started = time.perf_counter()
        self._record_request()

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        try:
            self._validate(text, options)
        except ValidationError:
            self._record_outcome(False, elapsed_ms())
            raise

        key = self._cache_key(text, options)
        cached = self._get_cached(key)
        if cached is not None:
            logger.debug("Hugging Face extraction served from cache")
            self._record_outcome(True, elapsed_ms())
            return replace(cached, cached=True)

        model = options.model or self.default_model
        try:
            entities = self.client.classify_tokens(text, model)
        except ExtractionError as e:
            if model == self.fallback_model or (cancel_event is not None and cancel_event.is_set()):
                self._record_outcome(False, elapsed_ms())
                raise
            logger.warning(f"Model {model} failed ({e}); retrying with {self.fallback_model}")
            model = self.fallback_model
            try:
                entities = self.client.classify_tokens(text, model)
            except ExtractionError:
                self._record_outcome(False, elapsed_ms())
                raise

        result = self._build_result(text, entities, model, options, elapsed_ms())
        self._set_cached(key, result)
        self._record_outcome(True, result.processing_time_ms)
        logger.info(
            f"Hugging Face extraction with {model}: {result.total_skills} skill(s), "
            f"confidence {result.confidence_score:.2f}"
        )
        return result

    def extract_skill_set(
        self, text: str, cancel_event: threading.Event | None = None
    ) -> ExtractedSkillSet:
        """Extract with default options and return the shared result shape."""
        return to_skill_set(self.extract(text, cancel_event=cancel_event))


def to_skill_set(result: ExtractionResult) -> ExtractedSkillSet:
    """Convert a remote extraction result to an ExtractedSkillSet."""
    return ExtractedSkillSet(
        categories=result.categories,
        summary=build_summary(result.total_skills, len(result.categories)),
        confidence_score=min(1.0, max(0.0, result.confidence_score)),
        methods=(METHOD_NAME,),
    )
