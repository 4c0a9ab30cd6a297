"""Concurrent multi-method skill extraction."""

from .extraction_orchestrator import ExtractionOrchestrator, merge_skill_sets

__all__ = ["ExtractionOrchestrator", "merge_skill_sets"]
