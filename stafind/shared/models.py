"""
Data model shared by the catalog, extractors, match engine and job tracking.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Iterable, Mapping

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

VALID_STATUSES = [PENDING, PROCESSING, COMPLETED, FAILED]
TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})

# Ordered from lowest to highest
EDUCATION_RANK = {
    "high school": 0,
    "diploma": 1,
    "certification": 1,
    "associate": 2,
    "bachelor": 3,
    "master": 4,
    "phd": 5,
}

_STRIP_CHARS = re.compile(r"[.\-_]")
_WHITESPACE = re.compile(r"\s+")


def normalize_skill_name(name: str) -> str:
    """
    Normalize a skill name into its catalog key.

    Lowercases, drops ``.``, ``-`` and ``_`` and collapses whitespace, so
    "Node.js", "NODE-JS" and "node_js" all map to "nodejs".
    Applying it twice gives the same result as applying it once.
    """
    if not name:
        return ""
    lowered = _STRIP_CHARS.sub("", name.lower())
    return _WHITESPACE.sub(" ", lowered).strip()


@dataclass(frozen=True)
class Category:
    """Flat, store-defined label grouping skills."""

    id: int | None
    name: str


@dataclass(frozen=True)
class Skill:
    """Named competency, optionally in several categories."""

    id: int | None
    name: str
    categories: tuple[Category, ...] = ()
    synonyms: tuple[str, ...] = ()


@dataclass(frozen=True)
class SkillInfo:
    """What a catalog lookup returns for a token."""

    skill_id: int | None
    name: str
    categories: tuple[str, ...]


def _dedupe_casefold(names: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result = []
    for name in names:
        key = name.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(name.strip())
    return tuple(result)


@dataclass(frozen=True)
class ExtractedSkillSet:
    """
    Skills found in one text, grouped by category.

    Instances are immutable: ``merge`` and ``with_errors`` return new sets.

    Attributes:
        categories: Category name -> skill names (deduplicated case-insensitively)
        education_level: Education keywords found, highest first
        languages_detected: Natural languages the text is written in
        years_of_experience: Largest "N years" value mentioned, if any
        summary: One-line description of the result
        confidence_score: Heuristic confidence in [0, 1]
        errors: Non-fatal errors from extraction methods that failed
        methods: Extraction methods that contributed
    """

    categories: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    education_level: tuple[str, ...] = ()
    languages_detected: tuple[str, ...] = ()
    years_of_experience: int | None = None
    summary: str = ""
    confidence_score: float = 0.0
    errors: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()

    def __post_init__(self):
        frozen = {
            name: _dedupe_casefold(skills)
            for name, skills in dict(self.categories).items()
        }
        object.__setattr__(self, "categories", MappingProxyType(frozen))
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError(f"confidence_score must be in [0, 1], got: {self.confidence_score}")

    @classmethod
    def empty(cls, methods: Iterable[str] = ()) -> ExtractedSkillSet:
        return cls(categories={}, summary=build_summary(0, 0), methods=tuple(methods))

    def total_skills(self) -> int:
        """Number of distinct skills across all categories."""
        return len({name.lower() for name in self.all_skills()})

    def all_skills(self) -> list[str]:
        """Distinct skill names in category order, first-seen casing."""
        return list(_dedupe_casefold(s for skills in self.categories.values() for s in skills))

    def with_errors(self, *errors: str) -> ExtractedSkillSet:
        return replace(self, errors=tuple(sorted(set(self.errors) | set(errors))))

    def merge(self, other: ExtractedSkillSet) -> ExtractedSkillSet:
        """
        Union two results per category, case-insensitively.

        The first-seen casing of a skill is kept. Skill lists are ordered
        case-insensitively so the merge is commutative for results that agree
        on casing, and merging a result with itself returns an equal result.
        """
        merged: dict[str, dict[str, str]] = {}
        for source in (self, other):
            for category, skills in source.categories.items():
                bucket = merged.setdefault(category, {})
                for skill in skills:
                    bucket.setdefault(skill.lower(), skill)

        categories = {
            category: tuple(bucket[key] for key in sorted(bucket))
            for category, bucket in merged.items()
        }
        years = [y for y in (self.years_of_experience, other.years_of_experience) if y is not None]
        education = sorted(
            set(self.education_level) | set(other.education_level),
            key=lambda level: (-EDUCATION_RANK.get(level, -1), level),
        )
        total = len({s.lower() for skills in categories.values() for s in skills})

        return ExtractedSkillSet(
            categories=categories,
            education_level=tuple(education),
            languages_detected=tuple(sorted(set(self.languages_detected) | set(other.languages_detected))),
            years_of_experience=max(years) if years else None,
            summary=build_summary(total, sum(1 for skills in categories.values() if skills)),
            confidence_score=max(self.confidence_score, other.confidence_score),
            errors=tuple(sorted(set(self.errors) | set(other.errors))),
            methods=tuple(sorted(set(self.methods) | set(other.methods))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "categories": {name: list(skills) for name, skills in self.categories.items()},
            "education_level": list(self.education_level),
            "languages_detected": list(self.languages_detected),
            "years_of_experience": self.years_of_experience,
            "summary": self.summary,
            "confidence_score": self.confidence_score,
            "total_skills": self.total_skills(),
            "errors": list(self.errors),
            "methods": list(self.methods),
        }


def build_summary(total_skills: int, total_categories: int) -> str:
    return f"Extracted {total_skills} skills across {total_categories} categories"


@dataclass(frozen=True)
class Candidate:
    """Person in the matching pool. Owned by the employee store, read-only here."""

    id: int
    name: str
    department: str | None = None
    level: str | None = None
    location: str | None = None
    skills: tuple[str, ...] = ()
    current_project: str | None = None


@dataclass(frozen=True)
class Match:
    """One candidate's result in one matching run."""

    employee_id: int
    match_score: float
    matching_skills: tuple[str, ...] = ()
    missing_skills: tuple[str, ...] = ()
    notes: str = ""
    employee_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "employee_name": self.employee_name,
            "match_score": self.match_score,
            "matching_skills": list(self.matching_skills),
            "missing_skills": list(self.missing_skills),
            "notes": self.notes,
        }


@dataclass
class ExtractionJob:
    """Tracked unit of (possibly multi-file) extraction work."""

    request_id: str
    status: str = PENDING
    num_files: int = 1
    files_processed: int = 0
    files_failed: int = 0
    total_processing_time_ms: int | None = None
    average_processing_time_ms: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "status": self.status,
            "num_files": self.num_files,
            "files_processed": self.files_processed,
            "files_failed": self.files_failed,
            "total_processing_time_ms": self.total_processing_time_ms,
            "average_processing_time_ms": self.average_processing_time_ms,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
            "metadata": dict(self.metadata),
        }


@dataclass
class AgentRequest:
    """Single-shot pipeline run started from a chat query."""

    id: str
    query: str
    processing_type: str = "generic"
    status: str = PENDING
    created_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(frozen=True)
class AgentResponse:
    """The one result of an AgentRequest."""

    request_id: str
    response_text: str
    skills: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    matches: tuple[Match, ...] = ()
    created_at: datetime | None = None
