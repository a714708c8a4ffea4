"""Daily highlight summaries per user and calendar day."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from sqlalchemy import Table, and_, func, insert, select, update
from sqlalchemy.engine import Engine

from ...infra.db import DAILY_SUMMARIES_TABLE, get_engine
from ...infra.logging import get_logger
from ..entries.gateway import as_utc
from ..entries.models import utcnow

__all__ = [
    "DailySummary",
    "InMemorySummaryRepository",
    "SqlSummaryRepository",
    "SummaryRepository",
    "build_summary_repository",
]

logger = get_logger(__name__)


@dataclass(frozen=True)
class DailySummary:
    user_id: str
    day: date
    highlight_text: str
    entry_count: int
    updated_at: datetime


class SummaryRepository(Protocol):  # pragma: no cover - interface only
    def upsert(
        self, *, user_id: str, day: date, highlight_text: str, entry_count: int
    ) -> DailySummary: ...

    def get(self, user_id: str, day: date) -> Optional[DailySummary]: ...

    def list_for_user(self, user_id: str, *, limit: int = 30) -> List[DailySummary]: ...

    def count_for_user(self, user_id: str) -> int: ...


class InMemorySummaryRepository(SummaryRepository):
    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, date], DailySummary] = {}
        self._lock = threading.Lock()

    def upsert(
        self, *, user_id: str, day: date, highlight_text: str, entry_count: int
    ) -> DailySummary:
        summary = DailySummary(
            user_id=user_id,
            day=day,
            highlight_text=highlight_text,
            entry_count=entry_count,
            updated_at=utcnow(),
        )
        with self._lock:
            self._rows[(user_id, day)] = summary
        return summary

    def get(self, user_id: str, day: date) -> Optional[DailySummary]:
        with self._lock:
            return self._rows.get((user_id, day))

    def list_for_user(self, user_id: str, *, limit: int = 30) -> List[DailySummary]:
        with self._lock:
            rows = [row for (owner, _), row in self._rows.items() if owner == user_id]
        return sorted(rows, key=lambda row: row.day, reverse=True)[:limit]

    def count_for_user(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for owner, _ in self._rows if owner == user_id)


class SqlSummaryRepository(SummaryRepository):
    def __init__(self, engine: Optional[Engine] = None, *, table: Optional[Table] = None) -> None:
        self._engine = engine or get_engine()
        self._table = table if table is not None else DAILY_SUMMARIES_TABLE

    def upsert(
        self, *, user_id: str, day: date, highlight_text: str, entry_count: int
    ) -> DailySummary:
        table = self._table
        values = {
            "highlight_text": highlight_text,
            "entry_count": entry_count,
            "updated_at": utcnow(),
        }
        with self._engine.begin() as conn:
            result = conn.execute(
                update(table)
                .where(and_(table.c.user_id == user_id, table.c.day == day))
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(table).values(user_id=user_id, day=day, **values))
        stored = self.get(user_id, day)
        if stored is None:  # pragma: no cover - row was just written
            raise RuntimeError(f"daily summary for {user_id} on {day} vanished after upsert")
        return stored

    def get(self, user_id: str, day: date) -> Optional[DailySummary]:
        stmt = select(self._table).where(
            and_(self._table.c.user_id == user_id, self._table.c.day == day)
        )
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return _row_to_summary(row) if row is not None else None

    def list_for_user(self, user_id: str, *, limit: int = 30) -> List[DailySummary]:
        stmt = (
            select(self._table)
            .where(self._table.c.user_id == user_id)
            .order_by(self._table.c.day.desc())
            .limit(limit)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_summary(row) for row in rows]

    def count_for_user(self, user_id: str) -> int:
        stmt = select(func.count()).select_from(self._table).where(
            self._table.c.user_id == user_id
        )
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())


def build_summary_repository(
    *,
    prefer_database: bool = True,
    fallback_to_memory: bool = False,
    engine: Optional[Engine] = None,
) -> SummaryRepository:
    if prefer_database:
        try:
            return SqlSummaryRepository(engine)
        except Exception:
            if not fallback_to_memory:
                raise
            logger.warning("sql_summary_repository_unavailable_falling_back", exc_info=True)
    return InMemorySummaryRepository()


def _row_to_summary(row: Mapping[str, Any]) -> DailySummary:
    return DailySummary(
        user_id=row["user_id"],
        day=row["day"],
        highlight_text=row["highlight_text"],
        entry_count=int(row["entry_count"]),
        updated_at=as_utc(row["updated_at"]),
    )
