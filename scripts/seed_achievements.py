"""Seed the achievements reference table with the default catalogue.

Existing achievement ids are left untouched, so the script is safe to rerun
after ``alembic upgrade head``.
"""

from __future__ import annotations

from voicelog.domain.achievements import DEFAULT_ACHIEVEMENTS, SqlAchievementDefinitionRepository
from voicelog.infra.db import get_engine


def seed_achievements() -> int:
    repository = SqlAchievementDefinitionRepository(get_engine())
    return repository.seed(DEFAULT_ACHIEVEMENTS)


def main() -> None:
    inserted = seed_achievements()
    print(f"Seeded {inserted} of {len(DEFAULT_ACHIEVEMENTS)} achievement definitions.")


if __name__ == "__main__":
    main()
