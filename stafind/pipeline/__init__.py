"""
Extraction and matching pipeline.

Chains the orchestrator, match engine and trackers, and shapes results
for each processing type.
"""

from .factory import build_pipeline
from .post_processing import POST_PROCESSORS, experience_level, extract_seniority, post_process
from .skill_match_pipeline import (
    BatchResult,
    PipelineResult,
    SkillMatchPipeline,
    TrackedExtraction,
    build_match_summary,
)

__all__ = [
    "POST_PROCESSORS",
    "BatchResult",
    "PipelineResult",
    "SkillMatchPipeline",
    "TrackedExtraction",
    "build_match_summary",
    "build_pipeline",
    "experience_level",
    "extract_seniority",
    "post_process",
]
