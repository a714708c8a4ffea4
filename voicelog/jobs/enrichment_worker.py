"""Background tagging + analysis of a freshly ingested entry."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from voicelog.domain.entries import EntryRepository
from voicelog.domain.insights import InsightGenerator, enrich_entry
from voicelog.infra.jobqueue import JobQueueAdapter
from voicelog.infra.logging import get_logger

logger = get_logger(__name__)


def handle(
    payload: Dict[str, Any],
    *,
    repository: EntryRepository,
    generator: InsightGenerator,
    jobqueue_adapter: Optional[JobQueueAdapter] = None,
) -> None:
    """Process a ``journal.enrich_entry`` payload."""

    entry_id = payload.get("entry_id")
    if not entry_id:
        raise ValueError("enrichment payload missing entry_id")

    start_clock = time.perf_counter()
    entry = enrich_entry(
        entry_id,
        repository=repository,
        generator=generator,
        jobqueue=jobqueue_adapter,
    )
    logger.info(
        "enrichment_job_completed",
        extra={
            "entry_id": entry_id,
            "user_id": entry.user_id,
            "processing_ms": max(0, int((time.perf_counter() - start_clock) * 1000)),
        },
    )
