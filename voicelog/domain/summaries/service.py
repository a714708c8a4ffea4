from __future__ import annotations

from datetime import date
from typing import Optional

from ...infra.logging import get_logger
from ..entries.gateway import EntryRepository
from ..insights.generator import InsightGenerator
from ..streaks import day_of
from .repository import DailySummary, SummaryRepository

logger = get_logger(__name__)


def refresh_daily_summary(
    user_id: str,
    day: date,
    *,
    entries: EntryRepository,
    generator: InsightGenerator,
    summaries: SummaryRepository,
) -> Optional[DailySummary]:
    """Rebuild the highlight for ``day`` from that day's transcripts.

    Returns ``None`` (leaving any previous summary in place) when there is
    nothing to summarize or the summary could not be generated.
    """

    day_entries = sorted(
        (entry for entry in entries.find_all_by_user(user_id) if day_of(entry.created_at) == day),
        key=lambda entry: entry.created_at,
    )
    transcripts = [entry.transcript for entry in day_entries if entry.transcript]
    highlight = generator.summarize_day(user_id, day, transcripts)
    if highlight is None:
        logger.info(
            "daily_summary_skipped",
            extra={"user_id": user_id, "day": day.isoformat(), "entries": len(day_entries)},
        )
        return None
    summary = summaries.upsert(
        user_id=user_id,
        day=day,
        highlight_text=highlight,
        entry_count=len(day_entries),
    )
    logger.info(
        "daily_summary_refreshed",
        extra={"user_id": user_id, "day": day.isoformat(), "entries": len(day_entries)},
    )
    return summary
