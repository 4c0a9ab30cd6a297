"""
Skill extraction methods.

Two independent ways of turning text into categorized skills: a
catalog-driven text extractor and a remote Hugging Face NER extractor.
"""

from .huggingface_client import HuggingFaceInferenceClient
from .huggingface_extractor import (
    ExtractionOptions,
    ExtractionResult,
    HuggingFaceSkillExtractor,
    to_skill_set,
)
from .text_skill_extractor import TextSkillExtractor, load_nlp_model

__all__ = [
    "ExtractionOptions",
    "ExtractionResult",
    "HuggingFaceInferenceClient",
    "HuggingFaceSkillExtractor",
    "TextSkillExtractor",
    "load_nlp_model",
    "to_skill_set",
]
