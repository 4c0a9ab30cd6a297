"""Read-only access to the skill and category store."""

from __future__ import annotations

import logging
from typing import Protocol

from stafind.shared.database import Database
from stafind.shared.models import Category, Skill

from .queries import GET_ALL_CATEGORIES, GET_SKILLS_WITH_CATEGORIES

logger = logging.getLogger(__name__)


class SkillRepository(Protocol):
    """Source of the skill catalog."""

    def get_skills_with_categories(self) -> list[Skill]: ...

    def get_all_categories(self) -> list[Category]: ...


class PostgresSkillRepository:
    """Skill repository backed by the ``skills``/``categories`` tables."""

    def __init__(self, database: Database):
        """
        Initialize the repository.

        Args:
            database: Database connection interface (implements Database protocol)

        Raises:
            ValueError: If database is None
        """
        if not database:
            raise ValueError("Database is required")
        self.db = database

    def get_skills_with_categories(self) -> list[Skill]:
        """
        Get every skill with the categories it belongs to.

        Returns:
            Skills ordered by name, each with its category memberships
        """
        with self.db.get_cursor() as cur:
            cur.execute(GET_SKILLS_WITH_CATEGORIES)
            columns = [desc[0] for desc in cur.description]
            rows = [dict(zip(columns, row)) for row in cur.fetchall()]

        names: dict[int, str] = {}
        memberships: dict[int, list[Category]] = {}
        for row in rows:
            skill_id = row["skill_id"]
            names[skill_id] = row["skill_name"]
            memberships.setdefault(skill_id, [])
            if row["category_name"]:
                memberships[skill_id].append(Category(id=row["category_id"], name=row["category_name"]))

        skills = [
            Skill(id=skill_id, name=names[skill_id], categories=tuple(memberships[skill_id]))
            for skill_id in names
        ]
        logger.debug(f"Loaded {len(skills)} skills from {len(rows)} catalog row(s)")
        return skills

    def get_all_categories(self) -> list[Category]:
        """
        Get all categories.

        Returns:
            Categories ordered by name
        """
        with self.db.get_cursor() as cur:
            cur.execute(GET_ALL_CATEGORIES)
            return [Category(id=row[0], name=row[1]) for row in cur.fetchall()]


class StaticSkillRepository:
    """In-memory repository built from a name -> categories mapping."""

    def __init__(self, skills: dict[str, list[str]]):
        self._skills = []
        category_ids: dict[str, int] = {}
        for index, (name, category_names) in enumerate(skills.items(), start=1):
            categories = []
            for category_name in category_names:
                category_id = category_ids.setdefault(category_name, len(category_ids) + 1)
                categories.append(Category(id=category_id, name=category_name))
            self._skills.append(Skill(id=index, name=name, categories=tuple(categories)))
        self._categories = [Category(id=cid, name=name) for name, cid in category_ids.items()]

    def get_skills_with_categories(self) -> list[Skill]:
        return list(self._skills)

    def get_all_categories(self) -> list[Category]:
        return list(self._categories)
