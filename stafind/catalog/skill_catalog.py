"""
Skill Catalog Cache

In-memory map from normalized skill name to skill metadata and category
memberships, refreshed from the skill repository when its TTL expires.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from stafind.shared.errors import CatalogUnavailableError
from stafind.shared.locks import ReadWriteLock
from stafind.shared.models import Skill, SkillInfo, normalize_skill_name

from .repository import SkillRepository

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w\s+#]")


def generate_synonyms(name: str) -> list[str]:
    """
    Spelling variants a skill may appear under in free text.

    Returns the original name, its lowercase and uppercase forms and the
    punctuation-stripped variants, without duplicates.
    """
    variants = [
        name,
        name.lower(),
        name.upper(),
        name.replace(".", ""),
        name.replace("-", ""),
        name.replace("_", ""),
        name.replace(".", " "),
        _PUNCTUATION.sub("", name),
    ]
    synonyms: list[str] = []
    for variant in variants:
        variant = variant.strip()
        if variant and variant not in synonyms:
            synonyms.append(variant)
    return synonyms


@dataclass(frozen=True)
class _Snapshot:
    entries: dict[str, SkillInfo]
    categories: tuple[str, ...]
    loaded_at: float


class SkillCatalog:
    """
    TTL-refreshed skill catalog.

    ``load`` only hits the repository when the cache is empty or older than
    ``ttl_seconds``. A failed refresh raises ``CatalogUnavailableError`` and
    leaves the previous snapshot in place, so lookups keep working on stale
    data. Lookups take the shared side of a reader/writer lock; swapping in a
    new snapshot takes the exclusive side.
    """

    def __init__(
        self,
        repository: SkillRepository,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the catalog.

        Args:
            repository: Source of skills and categories
            ttl_seconds: How long a loaded snapshot stays fresh
            clock: Monotonic clock, injectable for tests

        Raises:
            ValueError: If repository is None or ttl_seconds is negative
        """
        if not repository:
            raise ValueError("Skill repository is required")
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must not be negative, got: {ttl_seconds}")

        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = ReadWriteLock()
        self._snapshot: _Snapshot | None = None

    @property
    def is_loaded(self) -> bool:
        with self._lock.read_lock():
            return self._snapshot is not None and bool(self._snapshot.entries)

    def is_stale(self) -> bool:
        """True when the cache is empty or its TTL has expired."""
        with self._lock.read_lock():
            snapshot = self._snapshot
        if snapshot is None or not snapshot.entries:
            return True
        return self._clock() - snapshot.loaded_at >= self.ttl_seconds

    def load(self) -> None:
        """
        Refresh the catalog if it is empty or expired.

        Raises:
            CatalogUnavailableError: If the repository cannot be read. The
                previous snapshot, if any, stays active.
        """
        if self.is_stale():
            self.refresh()

    def refresh(self) -> None:
        """
        Reload the catalog from the repository unconditionally.

        Raises:
            CatalogUnavailableError: If the repository cannot be read
        """
        try:
            skills = self.repository.get_skills_with_categories()
            categories = self.repository.get_all_categories()
        except Exception as e:
            stale = self._snapshot is not None
            logger.error(
                f"Failed to refresh skill catalog ({'serving stale cache' if stale else 'no cache available'}): {e}",
                exc_info=True,
            )
            raise CatalogUnavailableError(f"Skill catalog store unavailable: {e}") from e

        entries = self._build_entries(skills)
        category_names = sorted(
            {category.name for category in categories}
            | {category.name for skill in skills for category in skill.categories}
        )
        snapshot = _Snapshot(entries=entries, categories=tuple(category_names), loaded_at=self._clock())

        with self._lock.write_lock():
            self._snapshot = snapshot

        logger.info(
            f"Loaded skill catalog: {len(skills)} skills, {len(category_names)} categories, "
            f"{len(entries)} lookup keys"
        )

    def _build_entries(self, skills: list[Skill]) -> dict[str, SkillInfo]:
        entries: dict[str, SkillInfo] = {}
        for skill in skills:
            info = SkillInfo(
                skill_id=skill.id,
                name=skill.name,
                categories=tuple(dict.fromkeys(category.name for category in skill.categories)),
            )
            for variant in [*generate_synonyms(skill.name), *skill.synonyms]:
                key = normalize_skill_name(variant)
                if key:
                    # First skill registered under a key wins
                    entries.setdefault(key, info)
        return entries

    def lookup(self, token: str) -> SkillInfo | None:
        """
        Find a skill by name or synonym.

        Args:
            token: Candidate token; normalized before lookup

        Returns:
            SkillInfo if the token is a known skill, else None
        """
        key = normalize_skill_name(token)
        if not key:
            return None
        with self._lock.read_lock():
            if self._snapshot is None:
                return None
            return self._snapshot.entries.get(key)

    def categories(self) -> list[str]:
        """Category names currently known to the catalog."""
        with self._lock.read_lock():
            return list(self._snapshot.categories) if self._snapshot else []

    def __len__(self) -> int:
        with self._lock.read_lock():
            return len(self._snapshot.entries) if self._snapshot else 0
