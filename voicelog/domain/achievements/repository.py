"""Achievement definition and user-progress repositories."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from sqlalchemy import Table, and_, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from ...infra.db import ACHIEVEMENTS_TABLE, USER_ACHIEVEMENTS_TABLE, get_engine
from ...infra.logging import get_logger
from ..entries.gateway import as_utc
from ..entries.models import utcnow
from .types import (
    AchievementCriteria,
    AchievementDefinition,
    AchievementProgress,
    CriteriaKind,
    UserAchievementProgress,
)

__all__ = [
    "AchievementDefinitionRepository",
    "DEFAULT_ACHIEVEMENTS",
    "InMemoryAchievementDefinitionRepository",
    "InMemoryUserProgressRepository",
    "SqlAchievementDefinitionRepository",
    "SqlUserProgressRepository",
    "UserProgressRepository",
    "build_achievement_repositories",
]

logger = get_logger(__name__)

DEFAULT_ACHIEVEMENTS: Tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        achievement_id="first_entry",
        name="First Words",
        description="Record your first journal entry.",
        icon="mic",
        criteria=AchievementCriteria(CriteriaKind.ENTRY_COUNT, 1),
    ),
    AchievementDefinition(
        achievement_id="ten_entries",
        name="Finding Your Voice",
        description="Record ten journal entries.",
        icon="book",
        criteria=AchievementCriteria(CriteriaKind.ENTRY_COUNT, 10),
    ),
    AchievementDefinition(
        achievement_id="week_streak",
        name="Seven Day Streak",
        description="Journal every day for a week.",
        icon="flame",
        criteria=AchievementCriteria(CriteriaKind.STREAK, 7),
    ),
    AchievementDefinition(
        achievement_id="emotion_explorer",
        name="Emotion Explorer",
        description="Have five entries analysed for mood.",
        icon="heart",
        criteria=AchievementCriteria(CriteriaKind.EMOTION_ANALYSIS, 5),
    ),
)


class AchievementDefinitionRepository(Protocol):  # pragma: no cover - interface only
    def find_all(self) -> List[AchievementDefinition]: ...


class UserProgressRepository(Protocol):  # pragma: no cover - interface only
    def find(self, user_id: str, achievement_id: str) -> Optional[UserAchievementProgress]: ...

    def save(self, record: UserAchievementProgress) -> UserAchievementProgress:
        """Insert or update; an already earned row is returned unchanged."""

    def list_for_user(self, user_id: str) -> List[UserAchievementProgress]: ...


class InMemoryAchievementDefinitionRepository(AchievementDefinitionRepository):
    def __init__(self, definitions: Optional[Iterable[AchievementDefinition]] = None) -> None:
        self._definitions = list(DEFAULT_ACHIEVEMENTS if definitions is None else definitions)

    def find_all(self) -> List[AchievementDefinition]:
        return list(self._definitions)


class InMemoryUserProgressRepository(UserProgressRepository):
    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, str], UserAchievementProgress] = {}
        self._lock = threading.Lock()

    def find(self, user_id: str, achievement_id: str) -> Optional[UserAchievementProgress]:
        with self._lock:
            return self._rows.get((user_id, achievement_id))

    def save(self, record: UserAchievementProgress) -> UserAchievementProgress:
        key = (record.user_id, record.achievement_id)
        with self._lock:
            existing = self._rows.get(key)
            if existing is not None and existing.earned:
                return existing
            stored = replace(record, updated_at=utcnow())
            self._rows[key] = stored
            return stored

    def list_for_user(self, user_id: str) -> List[UserAchievementProgress]:
        with self._lock:
            rows = [row for (owner, _), row in self._rows.items() if owner == user_id]
        return sorted(rows, key=lambda row: row.achievement_id)


class SqlAchievementDefinitionRepository(AchievementDefinitionRepository):
    """Reads the ``achievements`` reference table.

    Rows with unparseable criteria are skipped with a warning.
    """

    def __init__(self, engine: Optional[Engine] = None, *, table: Optional[Table] = None) -> None:
        self._engine = engine or get_engine()
        self._table = table if table is not None else ACHIEVEMENTS_TABLE

    def find_all(self) -> List[AchievementDefinition]:
        stmt = select(self._table).order_by(self._table.c.created_at.desc())
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        definitions: List[AchievementDefinition] = []
        for row in rows:
            try:
                criteria = AchievementCriteria.from_raw(row["criteria"] or {})
            except Exception as exc:
                logger.warning(
                    "achievement_definition_invalid",
                    extra={"achievement_id": row["achievement_id"], "error": str(exc)},
                )
                continue
            definitions.append(
                AchievementDefinition(
                    achievement_id=row["achievement_id"],
                    name=row["name"],
                    description=row["description"],
                    icon=row["icon"],
                    criteria=criteria,
                )
            )
        return definitions

    def seed(self, definitions: Sequence[AchievementDefinition] = DEFAULT_ACHIEVEMENTS) -> int:
        """Insert missing definitions; existing ids are left untouched."""

        inserted = 0
        with self._engine.begin() as conn:
            existing = set(conn.execute(select(self._table.c.achievement_id)).scalars())
            for definition in definitions:
                if definition.achievement_id in existing:
                    continue
                conn.execute(
                    insert(self._table).values(
                        achievement_id=definition.achievement_id,
                        name=definition.name,
                        description=definition.description,
                        icon=definition.icon,
                        criteria=definition.criteria.to_dict(),
                        created_at=utcnow(),
                    )
                )
                inserted += 1
        return inserted


class SqlUserProgressRepository(UserProgressRepository):
    """SQLAlchemy adapter for ``user_achievements``.

    Updates carry ``earned_at IS NULL`` in the WHERE clause, so a row earned
    by a concurrent writer is never overwritten.
    """

    def __init__(self, engine: Optional[Engine] = None, *, table: Optional[Table] = None) -> None:
        self._engine = engine or get_engine()
        self._table = table if table is not None else USER_ACHIEVEMENTS_TABLE

    def find(self, user_id: str, achievement_id: str) -> Optional[UserAchievementProgress]:
        with self._engine.connect() as conn:
            row = self._fetch(conn, user_id, achievement_id)
        return _row_to_progress(row) if row is not None else None

    def save(self, record: UserAchievementProgress) -> UserAchievementProgress:
        values: Dict[str, Any] = {
            "progress": record.progress.to_dict(),
            "earned_at": record.earned_at,
            "updated_at": utcnow(),
        }
        table = self._table
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(table)
                    .where(
                        and_(
                            table.c.user_id == record.user_id,
                            table.c.achievement_id == record.achievement_id,
                            table.c.earned_at.is_(None),
                        )
                    )
                    .values(**values)
                )
                if result.rowcount == 0 and self._fetch(
                    conn, record.user_id, record.achievement_id
                ) is None:
                    conn.execute(
                        insert(table).values(
                            user_id=record.user_id,
                            achievement_id=record.achievement_id,
                            **values,
                        )
                    )
        except IntegrityError:
            # Lost an insert race; the winner's row stands.
            logger.info(
                "user_achievement_insert_conflict",
                extra={"user_id": record.user_id, "achievement_id": record.achievement_id},
            )
        stored = self.find(record.user_id, record.achievement_id)
        return stored if stored is not None else record

    def list_for_user(self, user_id: str) -> List[UserAchievementProgress]:
        stmt = (
            select(self._table)
            .where(self._table.c.user_id == user_id)
            .order_by(self._table.c.achievement_id)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_progress(row) for row in rows]

    def _fetch(self, conn, user_id: str, achievement_id: str):
        stmt = select(self._table).where(
            and_(
                self._table.c.user_id == user_id,
                self._table.c.achievement_id == achievement_id,
            )
        )
        return conn.execute(stmt).mappings().first()


def build_achievement_repositories(
    *,
    prefer_database: bool = True,
    fallback_to_memory: bool = False,
    engine: Optional[Engine] = None,
) -> Tuple[AchievementDefinitionRepository, UserProgressRepository]:
    """Return ``(definitions, progress)`` repositories for the configured backend."""

    if prefer_database:
        try:
            return (
                SqlAchievementDefinitionRepository(engine),
                SqlUserProgressRepository(engine),
            )
        except Exception:
            if not fallback_to_memory:
                raise
            logger.warning("sql_achievement_repositories_unavailable_falling_back", exc_info=True)
    return InMemoryAchievementDefinitionRepository(), InMemoryUserProgressRepository()


def _row_to_progress(row: Mapping[str, Any]) -> UserAchievementProgress:
    earned_at = row["earned_at"]
    updated_at = row["updated_at"]
    return UserAchievementProgress(
        user_id=row["user_id"],
        achievement_id=row["achievement_id"],
        progress=AchievementProgress.from_dict(row["progress"] or {}),
        earned_at=as_utc(earned_at) if earned_at is not None else None,
        updated_at=as_utc(updated_at) if updated_at is not None else None,
    )
