"""Read-only access to the candidate (employee) pool."""

from __future__ import annotations

import logging
from typing import Protocol

from stafind.shared.database import Database
from stafind.shared.models import Candidate

from .queries import GET_ALL_CANDIDATES_WITH_SKILLS

logger = logging.getLogger(__name__)


class CandidateRepository(Protocol):
    """Source of the candidate pool for a matching run."""

    def get_all(self) -> list[Candidate]: ...


class PostgresCandidateRepository:
    """Candidate repository backed by the ``employees`` tables."""

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

    def get_all(self) -> list[Candidate]:
        """
        Snapshot of every candidate with their skill names.

        Returns:
            Candidates ordered by id
        """
        with self.db.get_cursor() as cur:
            cur.execute(GET_ALL_CANDIDATES_WITH_SKILLS)
            columns = [desc[0] for desc in cur.description]
            rows = [dict(zip(columns, row)) for row in cur.fetchall()]

        people: dict[int, dict] = {}
        skills: dict[int, list[str]] = {}
        for row in rows:
            employee_id = row["employee_id"]
            people.setdefault(employee_id, row)
            skills.setdefault(employee_id, [])
            if row["skill_name"]:
                skills[employee_id].append(row["skill_name"])

        candidates = [
            Candidate(
                id=employee_id,
                name=row["name"],
                department=row.get("department"),
                level=row.get("level"),
                location=row.get("location"),
                skills=tuple(skills[employee_id]),
                current_project=row.get("current_project"),
            )
            for employee_id, row in people.items()
        ]
        logger.info(f"Loaded {len(candidates)} candidate(s) for matching")
        return candidates


class InMemoryCandidateRepository:
    """Fixed candidate pool, for callers that already hold the candidates."""

    def __init__(self, candidates: list[Candidate]):
        self._candidates = list(candidates)

    def get_all(self) -> list[Candidate]:
        return list(self._candidates)
