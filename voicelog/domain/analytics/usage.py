"""Feature usage counts and per-day activity for one user."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from ...infra.logging import get_logger
from ..entries.gateway import EntryRepository
from ..streaks import day_of
from ..summaries.repository import SummaryRepository

__all__ = ["DailyCount", "FeatureCount", "UsageReport", "compute_usage"]

logger = get_logger(__name__)

FEATURE_RECORDINGS = "Total Recordings"
FEATURE_TRANSCRIBED = "Transcribed Entries"
FEATURE_TAGGED = "Tagged Entries"
FEATURE_SUMMARIES = "Daily Summaries"


@dataclass(frozen=True)
class FeatureCount:
    feature: str
    count: int


@dataclass(frozen=True)
class DailyCount:
    day: date
    count: int


@dataclass(frozen=True)
class UsageReport:
    user_id: str
    feature_usage: List[FeatureCount] = field(default_factory=list)
    daily_stats: List[DailyCount] = field(default_factory=list)
    total_duration_seconds: int = 0
    average_entry_seconds: float = 0.0
    unique_tags: int = 0
    last_active_at: Optional[datetime] = None


def compute_usage(
    user_id: str, *, entries: EntryRepository, summaries: SummaryRepository
) -> UsageReport:
    """Aggregate a user's entries and summaries; ``daily_stats`` is oldest day first."""

    rows = entries.find_all_by_user(user_id)
    summary_count = summaries.count_for_user(user_id)
    feature_usage = [
        FeatureCount(FEATURE_RECORDINGS, len(rows)),
        FeatureCount(FEATURE_TRANSCRIBED, sum(1 for row in rows if row.transcript)),
        FeatureCount(FEATURE_TAGGED, sum(1 for row in rows if row.tags)),
        FeatureCount(FEATURE_SUMMARIES, summary_count),
    ]
    per_day = Counter(day_of(row.created_at) for row in rows)
    total_duration = sum(row.duration_seconds for row in rows)

    report = UsageReport(
        user_id=user_id,
        feature_usage=feature_usage,
        daily_stats=[DailyCount(day, per_day[day]) for day in sorted(per_day)],
        total_duration_seconds=total_duration,
        average_entry_seconds=round(total_duration / len(rows), 1) if rows else 0.0,
        unique_tags=len({tag.strip().lower() for row in rows for tag in row.tags if tag.strip()}),
        last_active_at=max((row.created_at for row in rows), default=None),
    )
    logger.info(
        "usage_report_computed",
        extra={"user_id": user_id, "entries": len(rows), "summaries": summary_count},
    )
    return report
