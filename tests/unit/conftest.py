"""
Pytest configuration and fixtures for unit tests.

Unit tests are fast, isolated tests that don't require external dependencies.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from stafind.catalog import SkillCatalog, StaticSkillRepository
from stafind.shared.models import Candidate


class MockDatabase:
    """Simple mock Database implementation for testing."""

    def __init__(self):
        self.cursor = MagicMock()

    @contextmanager
    def get_cursor(self):
        """Context manager that yields a mock cursor."""
        yield self.cursor


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    """Wall clock returning a fixed UTC time, one second later on each call."""

    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current


@pytest.fixture
def mock_db():
    """Mock database with a MagicMock cursor."""
    return MockDatabase()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def datetime_clock():
    return FakeDateTimeClock()


@pytest.fixture
def sample_skills():
    """Skill name -> category names for a small catalog."""
    return {
        "Python": ["Programming Languages"],
        "Node.js": ["Frameworks"],
        "AWS": ["Cloud Platforms"],
        "React": ["Frameworks", "Frontend"],
        "PostgreSQL": ["Databases"],
        "C++": ["Programming Languages"],
    }


@pytest.fixture
def skill_repository(sample_skills):
    return StaticSkillRepository(sample_skills)


@pytest.fixture
def skill_catalog(skill_repository, fake_clock):
    """Catalog over the sample skills with a 300 second TTL and a fake clock."""
    return SkillCatalog(skill_repository, ttl_seconds=300, clock=fake_clock)


@pytest.fixture
def sample_candidates():
    """Candidate pool for matching tests."""
    return [
        Candidate(id=1, name="Ana", department="Engineering", skills=("Go",)),
        Candidate(id=2, name="Ben", department="Engineering", skills=("Go", "SQL")),
        Candidate(id=3, name="Cleo", department="Data", skills=("Python", "SQL")),
    ]
