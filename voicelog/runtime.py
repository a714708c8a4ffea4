"""Wiring of repositories, cache, dispatcher and domain services for one process."""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Union

from sqlalchemy.engine import Engine

from .config import Settings, load_settings
from .domain.achievements import (
    AchievementAction,
    AchievementDefinitionRepository,
    AchievementEngine,
    UserAchievementProgress,
    UserProgressRepository,
    build_achievement_repositories,
)
from .domain.analytics import PatternAnalyticsAggregator
from .domain.entries import EntryRepository, build_entry_repository
from .domain.ingestion import IngestionPipeline, LlmGatewayTranscriptionClient, TranscriptionClient
from .domain.insights import InsightGenerator
from .domain.summaries import SummaryRepository, build_summary_repository
from .infra.cache import ResultCache
from .infra.jobqueue import JobDispatcher
from .infra.logging import get_logger
from .infra.metrics import MetricsClient, get_metrics_client
from .jobs import (
    JOB_ENRICH_ENTRY,
    JOB_EVALUATE_ACHIEVEMENTS,
    JOB_REFRESH_DAILY_SUMMARY,
    achievement_worker,
    enrichment_worker,
    summary_worker,
)

__all__ = ["Runtime", "build_runtime"]

logger = get_logger(__name__)


@dataclass
class Runtime:
    settings: Settings
    cache: ResultCache
    dispatcher: JobDispatcher
    entries: EntryRepository
    definitions: AchievementDefinitionRepository
    progress: UserProgressRepository
    summaries: SummaryRepository
    insights: InsightGenerator
    achievements: AchievementEngine
    pipeline: IngestionPipeline
    analytics: PatternAnalyticsAggregator
    metrics: MetricsClient

    def evaluate_achievements(
        self, user_id: str, action: Union[AchievementAction, str]
    ) -> None:
        """Fire-and-forget achievement evaluation for ``user_id``."""

        self.dispatcher.enqueue(
            JOB_EVALUATE_ACHIEVEMENTS,
            {"user_id": user_id, "action": AchievementAction(action).value},
        )

    def achievement_progress(self, user_id: str) -> List[UserAchievementProgress]:
        return self.progress.list_for_user(user_id)

    def shutdown(self, *, wait: bool = True) -> None:
        self.dispatcher.shutdown(wait=wait)
        self.analytics.shutdown(wait=wait)


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    transcriber: Optional[TranscriptionClient] = None,
    insights: Optional[InsightGenerator] = None,
    metrics: Optional[MetricsClient] = None,
) -> Runtime:
    """Assemble a runtime; repositories are SQL-backed when the profile enables them."""

    settings = settings or load_settings()
    metrics = metrics or get_metrics_client()
    use_database = settings.use_database or engine is not None

    entries = build_entry_repository(prefer_database=use_database, engine=engine)
    definitions, progress = build_achievement_repositories(
        prefer_database=use_database, engine=engine
    )
    summaries = build_summary_repository(prefer_database=use_database, engine=engine)

    cache = ResultCache(
        default_ttl_seconds=settings.insights.ttl_seconds,
        max_entries=settings.insights.cache_max_entries,
    )
    generator = insights or InsightGenerator(
        cache=cache, config=settings.insights, metrics=metrics
    )
    dispatcher = JobDispatcher(max_workers=settings.jobqueue.max_workers, metrics=metrics)
    engine_ = AchievementEngine(
        definitions=definitions, progress=progress, entries=entries, metrics=metrics
    )

    dispatcher.register(
        JOB_ENRICH_ENTRY,
        partial(
            enrichment_worker.handle,
            repository=entries,
            generator=generator,
            jobqueue_adapter=dispatcher,
        ),
    )
    dispatcher.register(
        JOB_EVALUATE_ACHIEVEMENTS, partial(achievement_worker.handle, engine=engine_)
    )
    dispatcher.register(
        JOB_REFRESH_DAILY_SUMMARY,
        partial(
            summary_worker.handle,
            entries=entries,
            generator=generator,
            summaries=summaries,
        ),
    )

    pipeline = IngestionPipeline(
        repository=entries,
        transcriber=transcriber or LlmGatewayTranscriptionClient(),
        cache=cache,
        generator=generator,
        jobqueue=dispatcher,
        config=settings.ingestion,
        metrics=metrics,
    )
    analytics = PatternAnalyticsAggregator(
        entries=entries,
        progress=progress,
        definitions=definitions,
        config=settings.analytics,
        metrics=metrics,
    )
    logger.info(
        "runtime_built",
        extra={
            "environment": settings.environment,
            "database": use_database,
            "job_types": list(dispatcher.job_types),
        },
    )
    return Runtime(
        settings=settings,
        cache=cache,
        dispatcher=dispatcher,
        entries=entries,
        definitions=definitions,
        progress=progress,
        summaries=summaries,
        insights=generator,
        achievements=engine_,
        pipeline=pipeline,
        analytics=analytics,
        metrics=metrics,
    )
