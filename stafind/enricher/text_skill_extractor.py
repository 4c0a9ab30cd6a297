"""Text Skill Extractor.

Finds catalog skills in free text using spaCy tokenization/entities plus a
regex sweep for dotted names and acronyms, and pulls simple profile signals
(years of experience, education, language) out of the same text.
"""

from __future__ import annotations

import logging
import re
import threading

import spacy
from spacy.language import Language

from stafind.catalog import SkillCatalog
from stafind.shared.errors import CatalogUnavailableError, ExtractionError
from stafind.shared.models import EDUCATION_RANK, ExtractedSkillSet, build_summary

from .profile_patterns import (
    EDUCATION_PATTERNS,
    LANGUAGE_INDICATORS,
    YEARS_OF_EXPERIENCE_PATTERNS,
)

logger = logging.getLogger(__name__)

METHOD_NAME = "ner"

MIN_TOKEN_LENGTH = 2
MAX_TOKEN_LENGTH = 50
MAX_CONFIDENCE = 0.9
CONFIDENCE_PER_SKILL = 0.1

_TOKEN_CHARS = re.compile(r"^[A-Za-z0-9.\-_ ]+$")
_HAS_LETTER = re.compile(r"[A-Za-z]")

# Regex sweep for technology names the tokenizer tends to split or miss
TECH_NAME_PATTERNS = [
    re.compile(r"\b[A-Z][A-Za-z0-9]*(?:\.[A-Za-z0-9]+)+\b"),  # Node.js, ASP.NET
    re.compile(r"\b[a-z][a-z0-9]*(?:\.[a-z0-9]+)+\b"),  # vue.js, socket.io
    re.compile(r"\b[A-Z][A-Z0-9]{1,}\b"),  # AWS, SQL, CSS3
    re.compile(r"(?<![\w+#])[A-Za-z](?:\+\+|#)(?![\w+#])"),  # C++, C#, F#
]


def is_candidate_token(text: str) -> bool:
    """
    Heuristic filter for tokens worth looking up in the catalog.

    Keeps 2-50 character strings made of letters, digits, ``.``, ``-``,
    ``_`` and spaces that contain at least one letter.
    """
    text = text.strip()
    if not MIN_TOKEN_LENGTH <= len(text) <= MAX_TOKEN_LENGTH:
        return False
    return bool(_TOKEN_CHARS.match(text)) and bool(_HAS_LETTER.search(text))


def calculate_confidence(total_skills_found: int) -> float:
    """Heuristic confidence: 0.1 per skill found, capped at 0.9."""
    return round(min(MAX_CONFIDENCE, CONFIDENCE_PER_SKILL * total_skills_found), 2)


def load_nlp_model(model_name: str = "en_core_web_sm") -> Language:
    """
    Load a spaCy pipeline for tokenization and entity spans.

    Tries ``model_name``, then ``en_core_web_lg``, then falls back to a blank
    English tokenizer (no entities or noun chunks).
    """
    for candidate in dict.fromkeys([model_name, "en_core_web_lg"]):
        try:
            nlp = spacy.load(candidate)
            logger.info(f"Loaded spaCy model: {candidate}")
            return nlp
        except OSError:
            logger.debug(f"spaCy model not available: {candidate}")

    logger.warning(
        f"spaCy model not found. Install with: python -m spacy download {model_name}"
    )
    logger.warning("Falling back to basic tokenizer. Entity spans will not be used.")
    return spacy.blank("en")


class TextSkillExtractor:
    """
    Catalog-driven skill extractor.

    Every candidate term (entity span, noun chunk, filtered token, short
    n-gram or regex hit) is normalized and looked up in the skill catalog.
    A hit is added to every category the skill belongs to.
    """

    def __init__(
        self,
        catalog: SkillCatalog,
        nlp: Language | None = None,
        model_name: str = "en_core_web_sm",
        max_ngram: int = 3,
    ):
        """
        Initialize the extractor.

        Args:
            catalog: Skill catalog used for lookups
            nlp: Optional preloaded spaCy pipeline
            model_name: spaCy model to load when nlp is not given
            max_ngram: Longest token sequence looked up as one term

        Raises:
            ValueError: If catalog is None or max_ngram is invalid
        """
        if catalog is None:
            raise ValueError("Skill catalog is required")
        if not isinstance(max_ngram, int) or max_ngram <= 0:
            raise ValueError(f"max_ngram must be a positive integer, got: {max_ngram}")

        self.catalog = catalog
        self.max_ngram = max_ngram
        self.nlp = nlp if nlp is not None else load_nlp_model(model_name)

    def _ensure_catalog(self) -> None:
        try:
            self.catalog.load()
        except CatalogUnavailableError:
            if not self.catalog.is_loaded:
                raise
            logger.warning("Skill catalog refresh failed; using stale catalog")

    def candidate_terms(self, text: str) -> list[str]:
        """
        Collect terms to look up, in order of first appearance.

        Args:
            text: Raw input text

        Returns:
            Unique candidate strings
        """
        doc = self.nlp(text)
        terms: list[str] = []

        for ent in doc.ents:
            terms.append(ent.text)
        if doc.has_annotation("DEP"):
            for chunk in doc.noun_chunks:
                terms.append(chunk.text)

        words = [token.text for token in doc if not token.is_punct and not token.is_space]
        for size in range(1, self.max_ngram + 1):
            for start in range(len(words) - size + 1):
                terms.append(" ".join(words[start : start + size]))

        filtered = [term.strip() for term in terms if is_candidate_token(term)]

        for pattern in TECH_NAME_PATTERNS:
            filtered.extend(match.group(0) for match in pattern.finditer(text))

        return list(dict.fromkeys(filtered))

    def extract_skills(self, text: str) -> dict[str, list[str]]:
        """
        Map catalog skills found in text to their categories.

        Args:
            text: Raw input text

        Returns:
            Category name -> skill names in catalog casing, deduplicated
            case-insensitively within each category

        Raises:
            CatalogUnavailableError: If the catalog cannot be loaded and no
                stale copy is available
        """
        categories: dict[str, list[str]] = {}
        if not text or not text.strip():
            return categories

        self._ensure_catalog()

        for term in self.candidate_terms(text):
            info = self.catalog.lookup(term)
            if info is None:
                continue
            for category in info.categories:
                bucket = categories.setdefault(category, [])
                if info.name.lower() not in {name.lower() for name in bucket}:
                    bucket.append(info.name)

        return categories

    def extract_years_of_experience(self, text: str) -> int | None:
        """Largest "N years" figure mentioned in the text, if any."""
        years = []
        for pattern in YEARS_OF_EXPERIENCE_PATTERNS:
            for match in re.finditer(pattern, text, re.IGNORECASE):
                years.append(int(match.group(1)))
        return max(years) if years else None

    def extract_education_level(self, text: str) -> list[str]:
        """Education levels mentioned in the text, highest first."""
        lowered = text.lower()
        levels = []
        for level, keywords in EDUCATION_PATTERNS.items():
            for keyword in keywords:
                if re.search(r"\b" + re.escape(keyword) + r"\b", lowered):
                    levels.append(level)
                    break
        return sorted(levels, key=lambda level: -EDUCATION_RANK.get(level, -1))

    def detect_languages(self, text: str) -> list[str]:
        """Natural languages the text appears to be written in."""
        lowered = text.lower()
        return [
            language
            for language, indicators in LANGUAGE_INDICATORS.items()
            if any(re.search(r"\b" + re.escape(word) + r"\b", lowered) for word in indicators)
        ]

    def extract(self, text: str, cancel_event: threading.Event | None = None) -> ExtractedSkillSet:
        """
        Extract skills and profile signals from text.

        Args:
            text: Raw input text
            cancel_event: Advisory cancellation flag checked between phases

        Returns:
            ExtractedSkillSet; empty text gives an empty category map and
            confidence 0

        Raises:
            CatalogUnavailableError: If the catalog cannot be loaded
            ExtractionError: If cancelled before completion
        """
        if not text or not text.strip():
            return ExtractedSkillSet.empty(methods=(METHOD_NAME,))

        categories = self.extract_skills(text)
        if cancel_event is not None and cancel_event.is_set():
            raise ExtractionError("Text extraction cancelled", method=METHOD_NAME)

        total = len({name.lower() for names in categories.values() for name in names})
        skill_set = ExtractedSkillSet(
            categories=categories,
            education_level=tuple(self.extract_education_level(text)),
            languages_detected=tuple(self.detect_languages(text)),
            years_of_experience=self.extract_years_of_experience(text),
            summary=build_summary(total, len(categories)),
            confidence_score=calculate_confidence(total),
            methods=(METHOD_NAME,),
        )
        logger.debug(f"Text extraction found {total} skill(s) in {len(categories)} categories")
        return skill_set
