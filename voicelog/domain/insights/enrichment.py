"""Apply generated tags and analysis to a stored entry."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ...infra.jobqueue import JobQueueAdapter
from ...infra.logging import get_logger
from ...jobs import JOB_EVALUATE_ACHIEVEMENTS
from ..achievements.types import AchievementAction
from ..entries.gateway import EntryRepository
from ..entries.models import Entry
from .generator import InsightGenerator

__all__ = ["enrich_entry"]

logger = get_logger(__name__)


def enrich_entry(
    entry_id: str,
    *,
    repository: EntryRepository,
    generator: InsightGenerator,
    jobqueue: Optional[JobQueueAdapter] = None,
) -> Entry:
    """Tag and analyse an entry, persisting only the parts that succeeded.

    A successful analysis schedules an ``emotion_analyzed`` achievement pass.
    """

    entry = repository.get_entry(entry_id)
    tags = generator.generate_tags(entry.transcript)
    analysis = generator.try_analyze_content(entry.transcript)

    changes: Dict[str, Any] = {}
    if tags:
        changes["tags"] = tags
    if analysis is not None:
        changes["ai_analysis"] = analysis
    if changes:
        entry = repository.update(entry_id, **changes)

    logger.info(
        "entry_enriched",
        extra={
            "entry_id": entry_id,
            "user_id": entry.user_id,
            "tag_count": len(entry.tags),
            "analysed": analysis is not None,
        },
    )

    if analysis is not None and jobqueue is not None:
        try:
            jobqueue.enqueue(
                JOB_EVALUATE_ACHIEVEMENTS,
                {
                    "user_id": entry.user_id,
                    "entry_id": entry_id,
                    "action": AchievementAction.EMOTION_ANALYZED.value,
                },
            )
        except Exception:
            logger.exception(
                "background_job_dispatch_failed",
                extra={"job_type": JOB_EVALUATE_ACHIEVEMENTS, "entry_id": entry_id},
            )
    return entry
