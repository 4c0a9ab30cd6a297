"""
Candidate matching.

Scores candidates against requested skills and ranks them.
"""

from .candidate_repository import (
    CandidateRepository,
    InMemoryCandidateRepository,
    PostgresCandidateRepository,
)
from .match_engine import MatchEngine, MatchPolicy, find_missing_skills

__all__ = [
    "CandidateRepository",
    "InMemoryCandidateRepository",
    "MatchEngine",
    "MatchPolicy",
    "PostgresCandidateRepository",
    "find_missing_skills",
]
