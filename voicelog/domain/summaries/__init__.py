"""Daily summaries built from each day's transcripts."""

from .repository import (
    DailySummary,
    InMemorySummaryRepository,
    SqlSummaryRepository,
    SummaryRepository,
    build_summary_repository,
)
from .service import refresh_daily_summary

__all__ = [
    "DailySummary",
    "InMemorySummaryRepository",
    "SqlSummaryRepository",
    "SummaryRepository",
    "build_summary_repository",
    "refresh_daily_summary",
]
