"""Background refresh of a user's daily summary."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict

from voicelog.domain.entries import EntryRepository, utcnow
from voicelog.domain.insights import InsightGenerator
from voicelog.domain.summaries import SummaryRepository, refresh_daily_summary


def handle(
    payload: Dict[str, Any],
    *,
    entries: EntryRepository,
    generator: InsightGenerator,
    summaries: SummaryRepository,
) -> None:
    user_id = payload.get("user_id")
    if not user_id:
        raise ValueError("summary payload missing user_id")
    raw_day = payload.get("day")
    day = date.fromisoformat(raw_day) if raw_day else utcnow().date()
    refresh_daily_summary(
        user_id,
        day,
        entries=entries,
        generator=generator,
        summaries=summaries,
    )
