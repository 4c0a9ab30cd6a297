"""Output shapes for the different processing types.

The same ExtractedSkillSet is post-processed into a different dictionary
depending on what the caller asked for.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from stafind.enricher.profile_patterns import (
    INSTITUTION_KEYWORDS,
    POSITION_KEYWORDS,
    SENIORITY_PATTERNS,
)
from stafind.shared.models import ExtractedSkillSet

logger = logging.getLogger(__name__)

CANDIDATE_EXTRACTION = "candidate_extraction"
SEARCH_ANALYSIS = "search_analysis"
CANDIDATE_MATCHING = "candidate_matching"
GENERIC = "generic"

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?\d[\d\s().-]{7,}\d")
LOCATION_PATTERN = re.compile(r"^\s*(?:location|address|ubicaci[oó]n|direcci[oó]n)\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
NAME_LINE_PATTERN = re.compile(r"^[A-ZÁÉÍÓÚÑ][a-záéíóúñ'-]+(?:\s+[A-ZÁÉÍÓÚÑ][a-záéíóúñ'-]+){1,3}$")


def extract_seniority(text: str, years_of_experience: int | None = None) -> str:
    """
    Seniority from explicit indicators, else from years of experience.

    Returns:
        "Senior", "Mid" or "Junior"
    """
    lowered = text.lower()
    for label, indicators in SENIORITY_PATTERNS.items():
        for indicator in indicators:
            if re.search(r"\b" + re.escape(indicator) + r"\b", lowered):
                return label

    if years_of_experience is not None:
        if years_of_experience >= 7:
            return "Senior"
        if years_of_experience >= 3:
            return "Mid"
        if years_of_experience > 0:
            return "Junior"
    return "Mid"


def experience_level(years_of_experience: int | None) -> str:
    """Search-oriented experience bucket for a minimum years requirement."""
    if not years_of_experience:
        return "Any"
    if years_of_experience >= 7:
        return "Senior"
    if years_of_experience >= 3:
        return "Mid-Level"
    return "Junior"


def extract_name(text: str) -> str | None:
    """First short line that looks like a personal name."""
    for line in text.splitlines()[:10]:
        line = line.strip()
        if NAME_LINE_PATTERN.match(line):
            return line
    return None


def extract_contact_info(text: str) -> dict[str, str | None]:
    email = EMAIL_PATTERN.search(text)
    phone = PHONE_PATTERN.search(text)
    location = LOCATION_PATTERN.search(text)
    return {
        "email": email.group(0) if email else None,
        "phone": phone.group(0).strip() if phone else None,
        "location": location.group(1).strip() if location else None,
    }


def extract_current_position(text: str) -> str | None:
    """
    Job title such as "Senior Software Engineer".

    Lines mentioning "currently", "working as", "position" or "role" are
    checked first, then the whole text.
    """
    lines = text.splitlines()
    preferred = [
        line
        for line in lines
        if any(marker in line.lower() for marker in ("currently", "working as", "position", "role"))
    ]
    for line in preferred + [text]:
        words = line.split()
        for index, word in enumerate(words):
            if any(keyword in word.lower() for keyword in POSITION_KEYWORDS):
                start = max(0, index - 2)
                return " ".join(w.strip(",.;:") for w in words[start : index + 1])
    return None


def extract_institutions(text: str, limit: int = 3) -> list[str]:
    institutions = []
    for line in text.splitlines():
        stripped = line.strip(" -*\t")
        if stripped and any(keyword in stripped.lower() for keyword in INSTITUTION_KEYWORDS):
            institutions.append(stripped)
            if len(institutions) >= limit:
                break
    return institutions


def candidate_match_score(skill_set: ExtractedSkillSet) -> int:
    """Base 50, +2 per skill, +15/+10/+5 for 5+/3+/any years, capped at 100."""
    score = 50 + 2 * skill_set.total_skills()
    years = skill_set.years_of_experience or 0
    if years >= 5:
        score += 15
    elif years >= 3:
        score += 10
    elif years > 0:
        score += 5
    return min(score, 100)


def recommendation(match_score: int) -> str:
    if match_score >= 80:
        return "Highly Recommended"
    if match_score >= 60:
        return "Recommended"
    if match_score >= 40:
        return "Consider with reservations"
    return "Not recommended"


def _candidate_extraction(text: str, skill_set: ExtractedSkillSet) -> dict[str, Any]:
    return {
        "candidate_name": extract_name(text),
        "contact_info": extract_contact_info(text),
        "skills": skill_set.to_dict()["categories"],
        "years_experience": skill_set.years_of_experience,
        "seniority_level": extract_seniority(text, skill_set.years_of_experience),
        "current_position": extract_current_position(text),
        "education": {
            "level": list(skill_set.education_level),
            "institutions": extract_institutions(text),
        },
        "languages": list(skill_set.languages_detected),
    }


def _search_analysis(text: str, skill_set: ExtractedSkillSet) -> dict[str, Any]:
    total = skill_set.total_skills()
    return {
        "original_request": text,
        "detected_language": ", ".join(skill_set.languages_detected),
        "search_criteria": {
            "skills": skill_set.to_dict()["categories"],
            "required_skills": skill_set.all_skills(),
            "experience_level": experience_level(skill_set.years_of_experience),
            "years_experience_min": skill_set.years_of_experience,
        },
        "response_suggestion": (
            f"Found {total} technical skills. Ready to search for matching candidates."
        ),
    }


def _candidate_matching(text: str, skill_set: ExtractedSkillSet) -> dict[str, Any]:
    score = candidate_match_score(skill_set)
    return {
        "match_score": score,
        "match_percentage": f"{score}%",
        "extracted_skills": skill_set.to_dict()["categories"],
        "years_experience": skill_set.years_of_experience,
        "recommendation": recommendation(score),
    }


def _generic(text: str, skill_set: ExtractedSkillSet) -> dict[str, Any]:
    return {
        "word_count": len(text.split()),
        "character_count": len(text),
        "skills": skill_set.to_dict()["categories"],
    }


POST_PROCESSORS = {
    CANDIDATE_EXTRACTION: _candidate_extraction,
    SEARCH_ANALYSIS: _search_analysis,
    CANDIDATE_MATCHING: _candidate_matching,
    GENERIC: _generic,
}


def post_process(skill_set: ExtractedSkillSet, processing_type: str, text: str) -> dict[str, Any]:
    """
    Shape an extraction result for a processing type.

    Unknown processing types get the generic shape. Every shape also carries
    processing_type, total_skills, confidence, summary and errors.
    """
    handler = POST_PROCESSORS.get(processing_type)
    if handler is None:
        logger.warning(f"Unknown processing type {processing_type!r}; using generic")
        processing_type = GENERIC
        handler = POST_PROCESSORS[GENERIC]

    shaped = handler(text, skill_set)
    shaped.update(
        {
            "processing_type": processing_type,
            "total_skills": skill_set.total_skills(),
            "confidence": skill_set.confidence_score,
            "summary": skill_set.summary,
            "extraction_methods": list(skill_set.methods),
            "errors": list(skill_set.errors),
        }
    )
    return shaped
