"""Entry repository implementations."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from sqlalchemy import Table, func, insert, select, update
from sqlalchemy.engine import Engine

from ...infra.db import ENTRIES_TABLE, get_engine
from ...infra.logging import get_logger
from .models import AiAnalysis, Entry, utcnow

__all__ = [
    "EntryRepository",
    "InMemoryEntryRepository",
    "SqlEntryRepository",
    "build_entry_repository",
]

logger = get_logger(__name__)


class EntryRepository(Protocol):  # pragma: no cover
    """Storage contract the ingestion pipeline, workers and analytics rely on."""

    def create(
        self,
        *,
        user_id: str,
        audio_url: str,
        duration_seconds: int,
        transcript: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Entry: ...

    def update(
        self,
        entry_id: str,
        *,
        tags: Optional[Sequence[str]] = None,
        ai_analysis: Optional[AiAnalysis] = None,
        transcript: Optional[str] = None,
    ) -> Entry: ...

    def get_entry(self, entry_id: str) -> Entry: ...

    def find_all_by_user(self, user_id: str) -> List[Entry]: ...

    def count_by_user(self, user_id: str) -> int: ...


class InMemoryEntryRepository(EntryRepository):
    """Process-local repository used in tests and the default dev profile."""

    def __init__(self) -> None:
        self._entries: Dict[str, Entry] = {}
        self._lock = threading.Lock()

    def create(
        self,
        *,
        user_id: str,
        audio_url: str,
        duration_seconds: int,
        transcript: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Entry:
        entry = Entry.new(
            user_id=user_id,
            audio_url=audio_url,
            duration_seconds=duration_seconds,
            transcript=transcript,
            timestamp=timestamp,
        )
        with self._lock:
            self._entries[entry.entry_id] = entry
        return entry

    def update(
        self,
        entry_id: str,
        *,
        tags: Optional[Sequence[str]] = None,
        ai_analysis: Optional[AiAnalysis] = None,
        transcript: Optional[str] = None,
    ) -> Entry:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                raise KeyError(f"Entry {entry_id} not found")
            changes: Dict[str, Any] = {"updated_at": utcnow()}
            if tags is not None:
                changes["tags"] = list(tags)
            if ai_analysis is not None:
                changes["ai_analysis"] = ai_analysis
            if transcript is not None:
                changes["transcript"] = transcript
            updated = replace(entry, **changes)
            self._entries[entry_id] = updated
        return updated

    def get_entry(self, entry_id: str) -> Entry:
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise KeyError(f"Entry {entry_id} not found")
        return entry

    def find_all_by_user(self, user_id: str) -> List[Entry]:
        with self._lock:
            entries = [entry for entry in self._entries.values() if entry.user_id == user_id]
        return sorted(entries, key=lambda entry: entry.created_at, reverse=True)

    def count_by_user(self, user_id: str) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.user_id == user_id)


class SqlEntryRepository(EntryRepository):
    """SQLAlchemy Core adapter for the ``entries`` table."""

    def __init__(self, engine: Optional[Engine] = None, *, table: Optional[Table] = None) -> None:
        self._engine = engine or get_engine()
        self._entries = table if table is not None else ENTRIES_TABLE

    def create(
        self,
        *,
        user_id: str,
        audio_url: str,
        duration_seconds: int,
        transcript: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> Entry:
        entry = Entry.new(
            user_id=user_id,
            audio_url=audio_url,
            duration_seconds=duration_seconds,
            transcript=transcript,
            timestamp=timestamp,
        )
        stmt = insert(self._entries).values(
            entry_id=entry.entry_id,
            user_id=entry.user_id,
            audio_url=entry.audio_url,
            transcript=entry.transcript,
            duration_seconds=entry.duration_seconds,
            tags=list(entry.tags),
            ai_analysis=None,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)
        logger.debug(
            "entry_row_inserted", extra={"entry_id": entry.entry_id, "user_id": user_id}
        )
        return entry

    def update(
        self,
        entry_id: str,
        *,
        tags: Optional[Sequence[str]] = None,
        ai_analysis: Optional[AiAnalysis] = None,
        transcript: Optional[str] = None,
    ) -> Entry:
        values: Dict[str, Any] = {"updated_at": utcnow()}
        if tags is not None:
            values["tags"] = list(tags)
        if ai_analysis is not None:
            values["ai_analysis"] = ai_analysis.to_dict()
        if transcript is not None:
            values["transcript"] = transcript

        stmt = (
            update(self._entries)
            .where(self._entries.c.entry_id == entry_id)
            .values(**values)
        )
        with self._engine.begin() as conn:
            result = conn.execute(stmt)
            if result.rowcount == 0:
                raise KeyError(f"Entry {entry_id} not found")
            row = conn.execute(
                select(self._entries).where(self._entries.c.entry_id == entry_id)
            ).mappings().one()
        return _row_to_entry(row)

    def get_entry(self, entry_id: str) -> Entry:
        stmt = select(self._entries).where(self._entries.c.entry_id == entry_id)
        with self._engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        if row is None:
            raise KeyError(f"Entry {entry_id} not found")
        return _row_to_entry(row)

    def find_all_by_user(self, user_id: str) -> List[Entry]:
        stmt = (
            select(self._entries)
            .where(self._entries.c.user_id == user_id)
            .order_by(self._entries.c.created_at.desc())
        )
        with self._engine.connect() as conn:
            rows = conn.execute(stmt).mappings().all()
        return [_row_to_entry(row) for row in rows]

    def count_by_user(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(self._entries)
            .where(self._entries.c.user_id == user_id)
        )
        with self._engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())


def build_entry_repository(
    *,
    prefer_database: bool = True,
    fallback_to_memory: bool = False,
    engine: Optional[Engine] = None,
) -> EntryRepository:
    """Factory that returns the desired entry repository implementation."""

    if prefer_database:
        try:
            return SqlEntryRepository(engine)
        except Exception:
            if not fallback_to_memory:
                raise
            logger.warning("sql_entry_repository_unavailable_falling_back", exc_info=True)
    return InMemoryEntryRepository()


def as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored timestamps are always UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_entry(row: Mapping[str, Any]) -> Entry:
    return Entry(
        entry_id=row["entry_id"],
        user_id=row["user_id"],
        audio_url=row["audio_url"],
        duration_seconds=int(row["duration_seconds"]),
        created_at=as_utc(row["created_at"]),
        updated_at=as_utc(row["updated_at"]),
        transcript=row["transcript"],
        tags=list(row["tags"] or []),
        ai_analysis=AiAnalysis.from_dict(row["ai_analysis"]),
    )
