"""
Match Engine

Scores a candidate pool against required and preferred skills, filters by a
minimum score, ranks and truncates. Weights come from matching_config.json
(or a caller-supplied file) so the required/preferred ratio is a documented
policy rather than a constant buried in code.

Optional department, experience level and location criteria add bonus
points on top of skill coverage; the total is clamped to the score scale.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from rapidfuzz import fuzz

from stafind.shared.models import Candidate, Match, normalize_skill_name

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "matching_config.json"

DEFAULT_EXPLANATION_TIERS = [
    (80.0, "Excellent match!"),
    (60.0, "Strong match."),
    (40.0, "Good match."),
    (0.0, "Partial match."),
]

DEFAULT_EXPERIENCE_LEVELS = {
    "junior": 1,
    "mid": 2,
    "senior": 3,
    "staff": 4,
    "principal": 5,
}

# Requested abbreviation -> fragments of the full skill names it stands for
DEFAULT_SKILL_ABBREVIATIONS = {
    "js": ["javascript"],
    "ts": ["typescript"],
    "py": ["python"],
    "go": ["golang"],
    "c#": ["csharp", "c sharp"],
    "f#": ["fsharp", "f sharp"],
    "cpp": ["c++", "c plus plus"],
    "vb": ["vbnet", "visual basic"],
    "vbnet": ["vb", "visual basic"],
    "k8s": ["kubernetes"],
    "aws": ["amazon web services"],
    "db": ["database"],
    "sql": ["postgresql", "mysql", "database"],
}


@dataclass(frozen=True)
class MatchPolicy:
    """
    Scoring policy.

    Attributes:
        required_weight: Weight of each required skill; must exceed preferred_weight
        preferred_weight: Weight of each preferred skill
        score_scale: Upper bound of the score range (scores are in [0, scale])
        fuzzy_threshold: When set (0-1), skills whose rapidfuzz ratio reaches
            it also count as matching
        department_bonus: Points for a candidate in the requested department
        level_bonus: Points for a candidate at or above the requested level
        level_partial_bonus: Points scaled by candidate/requested level rank
            for a candidate below the requested level
        location_bonus: Points for a candidate in the requested location
    """

    required_weight: float = 3.0
    preferred_weight: float = 1.0
    score_scale: float = 100.0
    fuzzy_threshold: float | None = None
    department_bonus: float = 10.0
    level_bonus: float = 7.5
    level_partial_bonus: float = 5.0
    location_bonus: float = 5.0

    def __post_init__(self):
        if self.preferred_weight < 0:
            raise ValueError(f"preferred_weight must not be negative, got: {self.preferred_weight}")
        for name in ("department_bonus", "level_bonus", "level_partial_bonus", "location_bonus"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got: {getattr(self, name)}")
        if self.required_weight <= self.preferred_weight:
            raise ValueError(
                "required_weight must be greater than preferred_weight "
                f"({self.required_weight} <= {self.preferred_weight})"
            )
        if self.score_scale <= 0:
            raise ValueError(f"score_scale must be positive, got: {self.score_scale}")
        if self.fuzzy_threshold is not None and not 0 < self.fuzzy_threshold <= 1:
            raise ValueError(f"fuzzy_threshold must be in (0, 1], got: {self.fuzzy_threshold}")


def _dedupe(skills: list[str] | None, exclude: set[str] | None = None) -> list[str]:
    seen = set(exclude or ())
    result = []
    for skill in skills or []:
        if not skill or not skill.strip():
            continue
        key = normalize_skill_name(skill)
        if key in seen:
            continue
        seen.add(key)
        result.append(skill.strip())
    return result


class MatchEngine:
    """Skill-coverage scoring and ranking of candidates."""

    def __init__(self, policy: MatchPolicy | None = None, config_path: str | None = None):
        """
        Initialize the match engine.

        Args:
            policy: Explicit scoring policy; loaded from config when None
            config_path: Optional path to a matching config JSON file
        """
        config = self._load_config(config_path)
        self.policy = policy or self._policy_from_config(config)
        self.explanation_tiers = self._tiers_from_config(config)
        levels = config.get("experience_levels") or DEFAULT_EXPERIENCE_LEVELS
        self.experience_levels = {name.strip().lower(): int(rank) for name, rank in levels.items()}
        abbreviations = config.get("skill_abbreviations") or DEFAULT_SKILL_ABBREVIATIONS
        self.abbreviations = {
            normalize_skill_name(abbr): [normalize_skill_name(name) for name in names]
            for abbr, names in abbreviations.items()
        }

    def _load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """
        Load the matching config JSON.

        Args:
            config_path: Optional path; falls back to the packaged matching_config.json

        Returns:
            Parsed config, or an empty dict if no file could be read
        """
        for path in (config_path, DEFAULT_CONFIG_PATH):
            if not path:
                continue
            path_obj = Path(path)
            if not path_obj.exists():
                continue
            try:
                with open(path_obj, encoding="utf-8") as f:
                    data = json.load(f)
                logger.info(f"Loaded matching config from {path_obj}")
                return data
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Failed to load matching config from {path_obj}: {e}")

        logger.info("Using default match policy")
        return {}

    def _policy_from_config(self, config: dict[str, Any]) -> MatchPolicy:
        values = config.get("match_policy") or {}
        known = {k: v for k, v in values.items() if k in MatchPolicy.__dataclass_fields__}
        return MatchPolicy(**known)

    def _tiers_from_config(self, config: dict[str, Any]) -> list[tuple[float, str]]:
        tiers = config.get("explanation_tiers")
        if not tiers:
            return list(DEFAULT_EXPLANATION_TIERS)
        parsed = [(float(t["min_score"]), str(t["label"])) for t in tiers]
        return sorted(parsed, key=lambda tier: tier[0], reverse=True)

    def _is_abbreviation(self, short: str, full: str) -> bool:
        return any(fragment in full for fragment in self.abbreviations.get(short, ()))

    def _skill_matches(self, requested: str, candidate_skills: dict[str, str]) -> bool:
        key = normalize_skill_name(requested)
        if key in candidate_skills:
            return True
        if any(
            self._is_abbreviation(key, skill_key) or self._is_abbreviation(skill_key, key)
            for skill_key in candidate_skills
        ):
            return True
        if self.policy.fuzzy_threshold is None:
            return False
        cutoff = self.policy.fuzzy_threshold * 100
        return any(fuzz.ratio(key, skill_key) >= cutoff for skill_key in candidate_skills)

    def department_bonus(self, department: str | None, candidate: Candidate) -> float:
        """Bonus when the candidate works in the requested department."""
        if not department or not candidate.department:
            return 0.0
        if department.strip().lower() == candidate.department.strip().lower():
            return self.policy.department_bonus
        return 0.0

    def level_bonus(self, level: str | None, candidate: Candidate) -> float:
        """
        Bonus for the candidate's experience level.

        A candidate at or above the requested level gets the full bonus; one
        below it gets ``candidate_rank / requested_rank * level_partial_bonus``.
        Levels missing from the level map earn nothing.
        """
        if not level or not candidate.level:
            return 0.0
        wanted = self.experience_levels.get(level.strip().lower())
        actual = self.experience_levels.get(candidate.level.strip().lower())
        if not wanted or not actual:
            return 0.0
        if actual >= wanted:
            return self.policy.level_bonus
        return actual / wanted * self.policy.level_partial_bonus

    def location_bonus(self, location: str | None, candidate: Candidate) -> float:
        """Bonus when the candidate is in the requested location."""
        if not location or not candidate.location:
            return 0.0
        if location.strip().lower() == candidate.location.strip().lower():
            return self.policy.location_bonus
        return 0.0

    def score_candidate(
        self,
        required: list[str],
        preferred: list[str],
        candidate: Candidate,
        department: str | None = None,
        level: str | None = None,
        location: str | None = None,
    ) -> Match:
        """
        Score one candidate.

        Score is weighted coverage of the requested skills scaled to
        ``policy.score_scale``, plus the department, level and location
        bonuses for whichever criteria are given. The total is clamped to
        ``[0, policy.score_scale]`` and rounded to two decimals. A skill
        listed as both required and preferred counts as required.

        Args:
            required: Required skill names
            preferred: Preferred skill names
            candidate: Candidate to score
            department: Optional requested department
            level: Optional requested experience level (junior..principal)
            location: Optional requested location

        Returns:
            Match with matched and missing skills
        """
        required = _dedupe(required)
        preferred = _dedupe(preferred, exclude={normalize_skill_name(s) for s in required})
        candidate_skills = {normalize_skill_name(s): s for s in candidate.skills if s}

        matched_required = [s for s in required if self._skill_matches(s, candidate_skills)]
        matched_preferred = [s for s in preferred if self._skill_matches(s, candidate_skills)]

        policy = self.policy
        possible = policy.required_weight * len(required) + policy.preferred_weight * len(preferred)
        earned = (
            policy.required_weight * len(matched_required)
            + policy.preferred_weight * len(matched_preferred)
        )
        score = policy.score_scale * earned / possible if possible else 0.0
        score += (
            self.department_bonus(department, candidate)
            + self.level_bonus(level, candidate)
            + self.location_bonus(location, candidate)
        )
        score = round(max(0.0, min(policy.score_scale, score)), 2)

        matched = matched_required + matched_preferred
        missing = find_missing_skills(required + preferred, matched)

        match = Match(
            employee_id=candidate.id,
            employee_name=candidate.name,
            match_score=score,
            matching_skills=tuple(matched),
            missing_skills=tuple(missing),
        )
        return replace(match, notes=self.explain(match))

    def score(
        self,
        required: list[str],
        preferred: list[str] | None,
        pool: list[Candidate],
        min_score: float,
        top_n: int | None = None,
        department: str | None = None,
        level: str | None = None,
        location: str | None = None,
    ) -> list[Match]:
        """
        Rank a candidate pool.

        Args:
            required: Required skill names
            preferred: Preferred skill names
            pool: Candidates to score
            min_score: Candidates scoring below this are dropped
            top_n: Keep at most this many matches; all when None
            department: Optional requested department (bonus)
            level: Optional requested experience level (bonus)
            location: Optional requested location (bonus)

        Returns:
            Matches sorted by score descending, ties by candidate id ascending.
            Empty when the pool or the required skills are empty.

        Raises:
            ValueError: If top_n is not positive
        """
        if top_n is not None and top_n <= 0:
            raise ValueError(f"top_n must be a positive integer, got: {top_n}")
        if not pool or not _dedupe(required):
            return []

        matches = [
            self.score_candidate(
                required, preferred or [], candidate, department=department, level=level, location=location
            )
            for candidate in pool
        ]
        kept = [m for m in matches if m.match_score >= min_score]
        kept.sort(key=lambda m: (-m.match_score, m.employee_id))

        if top_n is not None:
            kept = kept[:top_n]

        logger.info(
            f"Scored {len(pool)} candidate(s): {len(kept)} at or above {min_score}"
            + (f" (top {top_n})" if top_n is not None else "")
        )
        return kept

    def explain(self, match: Match) -> str:
        """
        Human-readable explanation for a match.

        Example:
            "Excellent match! Ana has 2 of 2 requested skills: Go, SQL."
        """
        label = next(
            (label for threshold, label in self.explanation_tiers if match.match_score >= threshold),
            self.explanation_tiers[-1][1],
        )
        total = len(match.matching_skills) + len(match.missing_skills)
        who = match.employee_name or f"Candidate {match.employee_id}"
        text = f"{label} {who} has {len(match.matching_skills)} of {total} requested skills"
        if match.matching_skills:
            text += f": {', '.join(match.matching_skills)}"
        text += "."
        if match.missing_skills:
            text += f" Missing: {', '.join(match.missing_skills)}."
        return text


def find_missing_skills(requested: list[str], matched: list[str]) -> list[str]:
    """Requested skills not in matched, compared case-insensitively."""
    matched_keys = {normalize_skill_name(s) for s in matched}
    return [s for s in _dedupe(requested) if normalize_skill_name(s) not in matched_keys]
