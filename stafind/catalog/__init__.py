"""
Skill catalog.

Loads skills and their category memberships from the skill store and serves
lookups by normalized name.
"""

from .repository import PostgresSkillRepository, SkillRepository, StaticSkillRepository
from .skill_catalog import SkillCatalog, generate_synonyms

__all__ = [
    "PostgresSkillRepository",
    "SkillCatalog",
    "SkillRepository",
    "StaticSkillRepository",
    "generate_synonyms",
]
