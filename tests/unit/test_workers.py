"""Unit tests for the background job handlers."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from voicelog.domain.achievements import (
    AchievementEngine,
    InMemoryAchievementDefinitionRepository,
    InMemoryUserProgressRepository,
)
from voicelog.domain.entries import InMemoryEntryRepository
from voicelog.domain.insights import InsightGenerator
from voicelog.domain.insights.enrichment import enrich_entry
from voicelog.domain.summaries import InMemorySummaryRepository, refresh_daily_summary
from voicelog.infra.cache import ResultCache
from voicelog.infra.metrics import InMemoryMetricsClient
from voicelog.jobs import JOB_EVALUATE_ACHIEVEMENTS, achievement_worker, enrichment_worker, summary_worker
from tests.helpers.fakes import (
    FakeClock,
    FakeMonotonic,
    RecordingJobQueue,
    ScriptedResponder,
    gateway_failure,
    utc,
)

pytestmark = [pytest.mark.workers]

NOW = utc(2026, 10, 18, 20)


@pytest.fixture()
def entries() -> InMemoryEntryRepository:
    return InMemoryEntryRepository()


def _generator(responder=None, summary_writer=None) -> InsightGenerator:
    return InsightGenerator(
        cache=ResultCache(clock=FakeMonotonic()),
        responder=responder or ScriptedResponder(),
        summary_writer=summary_writer or (lambda texts: "\n".join(f"- {text}" for text in texts)),
        metrics=InMemoryMetricsClient(),
    )


def _add(entries: InMemoryEntryRepository, transcript: str | None, *, when=NOW, user_id="user-1"):
    return entries.create(
        user_id=user_id,
        audio_url="data:",
        duration_seconds=5,
        transcript=transcript,
        timestamp=when,
    )


def test_enrichment_worker_updates_entry_and_schedules_emotion_pass(entries) -> None:
    entry = _add(entries, "Cooked dinner with friends")
    queue = RecordingJobQueue()

    enrichment_worker.handle(
        {"entry_id": entry.entry_id},
        repository=entries,
        generator=_generator(),
        jobqueue_adapter=queue,
    )

    stored = entries.get_entry(entry.entry_id)
    assert stored.tags == ["family", "walk"]
    assert stored.ai_analysis.sentiment == 4
    assert queue.pop(JOB_EVALUATE_ACHIEVEMENTS) == {
        "user_id": "user-1",
        "entry_id": entry.entry_id,
        "action": "emotion_analyzed",
    }


def test_enrichment_keeps_updates_when_emotion_dispatch_fails(entries) -> None:
    entry = _add(entries, "Cooked dinner with friends")
    queue = RecordingJobQueue(fail_on=[JOB_EVALUATE_ACHIEVEMENTS])

    enriched = enrich_entry(
        entry.entry_id, repository=entries, generator=_generator(), jobqueue=queue
    )

    assert enriched.tags == ["family", "walk"]
    assert entries.get_entry(entry.entry_id).ai_analysis.sentiment == 4


def test_enrichment_worker_skips_emotion_pass_when_analysis_fails(entries) -> None:
    entry = _add(entries, "Cooked dinner with friends")
    queue = RecordingJobQueue()

    enrichment_worker.handle(
        {"entry_id": entry.entry_id},
        repository=entries,
        generator=_generator(ScriptedResponder(analysis=gateway_failure())),
        jobqueue_adapter=queue,
    )

    stored = entries.get_entry(entry.entry_id)
    assert stored.tags == ["family", "walk"]
    assert stored.ai_analysis is None
    assert queue.enqueued_jobs == []


def test_enrichment_worker_requires_entry_id(entries) -> None:
    with pytest.raises(ValueError):
        enrichment_worker.handle({}, repository=entries, generator=_generator())


def test_achievement_worker_evaluates_requested_action(entries) -> None:
    _add(entries, "hello")
    progress = InMemoryUserProgressRepository()
    engine = AchievementEngine(
        definitions=InMemoryAchievementDefinitionRepository(),
        progress=progress,
        entries=entries,
        clock=FakeClock(NOW),
        metrics=InMemoryMetricsClient(),
    )

    achievement_worker.handle({"user_id": "user-1"}, engine=engine)

    assert progress.find("user-1", "first_entry").earned_at == NOW
    assert progress.find("user-1", "emotion_explorer") is None

    with pytest.raises(ValueError):
        achievement_worker.handle({"action": "entry_created"}, engine=engine)


def test_summary_worker_builds_highlight_for_requested_day(entries) -> None:
    _add(entries, "Morning run", when=NOW - timedelta(hours=10))
    _add(entries, "Evening call with dad", when=NOW)
    _add(entries, "Yesterday's note", when=NOW - timedelta(days=1))
    _add(entries, None, when=NOW - timedelta(hours=1))
    summaries = InMemorySummaryRepository()

    summary_worker.handle(
        {"user_id": "user-1", "day": "2026-10-18"},
        entries=entries,
        generator=_generator(),
        summaries=summaries,
    )

    stored = summaries.get("user-1", date(2026, 10, 18))
    assert stored.highlight_text == "- Morning run\n- Evening call with dad"
    assert stored.entry_count == 3


def test_refresh_daily_summary_keeps_previous_on_failure(entries) -> None:
    _add(entries, "Morning run")
    summaries = InMemorySummaryRepository()
    day = date(2026, 10, 18)
    summaries.upsert(user_id="user-1", day=day, highlight_text="- earlier", entry_count=1)

    def failing_writer(texts):
        raise gateway_failure()

    result = refresh_daily_summary(
        "user-1",
        day,
        entries=entries,
        generator=_generator(summary_writer=failing_writer),
        summaries=summaries,
    )

    assert result is None
    assert summaries.get("user-1", day).highlight_text == "- earlier"


def test_refresh_daily_summary_skips_days_without_transcripts(entries) -> None:
    summaries = InMemorySummaryRepository()

    assert (
        refresh_daily_summary(
            "user-1",
            date(2026, 10, 18),
            entries=entries,
            generator=_generator(),
            summaries=summaries,
        )
        is None
    )
    assert summaries.list_for_user("user-1") == []
