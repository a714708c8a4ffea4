"""Background job handlers and the job type names they are registered under."""

JOB_ENRICH_ENTRY = "journal.enrich_entry"
JOB_EVALUATE_ACHIEVEMENTS = "journal.evaluate_achievements"
JOB_REFRESH_DAILY_SUMMARY = "journal.refresh_daily_summary"

__all__ = [
    "JOB_ENRICH_ENTRY",
    "JOB_EVALUATE_ACHIEVEMENTS",
    "JOB_REFRESH_DAILY_SUMMARY",
]
