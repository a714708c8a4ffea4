"""Unit tests for achievement evaluation and one-way earning."""

from __future__ import annotations

from datetime import timedelta

import pytest

from voicelog.domain.achievements import (
    AchievementAction,
    AchievementCriteria,
    AchievementDefinition,
    AchievementEngine,
    AchievementProgress,
    CriteriaKind,
    InMemoryAchievementDefinitionRepository,
    InMemoryUserProgressRepository,
    UserAchievementProgress,
)
from voicelog.domain.achievements import engine as engine_module
from voicelog.domain.entries import AiAnalysis, InMemoryEntryRepository
from voicelog.domain.errors import AchievementEvaluationError
from voicelog.infra.metrics import InMemoryMetricsClient
from tests.helpers.fakes import FakeClock, utc
from tests.helpers.logging import RecordingLogger, assert_extra_contains, find_log

pytestmark = [pytest.mark.achievements]

NOW = utc(2026, 10, 18, 15)


def _definition(achievement_id: str, kind: CriteriaKind, target: int) -> AchievementDefinition:
    return AchievementDefinition(
        achievement_id=achievement_id,
        name=achievement_id.replace("_", " ").title(),
        criteria=AchievementCriteria(kind, target),
    )


class Harness:
    def __init__(self, *definitions: AchievementDefinition) -> None:
        self.entries = InMemoryEntryRepository()
        self.progress = InMemoryUserProgressRepository()
        self.clock = FakeClock(NOW)
        self.metrics = InMemoryMetricsClient()
        self.engine = AchievementEngine(
            definitions=InMemoryAchievementDefinitionRepository(definitions),
            progress=self.progress,
            entries=self.entries,
            clock=self.clock,
            metrics=self.metrics,
        )

    def add_entry(self, user_id: str = "user-1", *, days_ago: int = 0, sentiment: int | None = None):
        entry = self.entries.create(
            user_id=user_id,
            audio_url="data:audio/webm;base64,AA==",
            duration_seconds=10,
            transcript="note",
            timestamp=self.clock.now - timedelta(days=days_ago),
        )
        if sentiment is not None:
            entry = self.entries.update(entry.entry_id, ai_analysis=AiAnalysis(sentiment=sentiment))
        return entry


def test_first_entry_is_earned_with_full_progress() -> None:
    harness = Harness(_definition("first_entry", CriteriaKind.ENTRY_COUNT, 1))
    harness.add_entry()

    written = harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    assert len(written) == 1
    row = harness.progress.find("user-1", "first_entry")
    assert row.progress == AchievementProgress(current=1, target=1, percent=100.0)
    assert row.earned_at == NOW
    assert harness.metrics.counters["achievements_earned_total"] == 1


def test_partial_progress_reports_percent() -> None:
    harness = Harness(_definition("ten_entries", CriteriaKind.ENTRY_COUNT, 10))
    for _ in range(3):
        harness.add_entry()

    harness.engine.evaluate("user-1", "entry_created")

    row = harness.progress.find("user-1", "ten_entries")
    assert row.progress == AchievementProgress(current=3, target=10, percent=30.0)
    assert row.earned_at is None


def test_repeated_evaluation_is_idempotent() -> None:
    harness = Harness(
        _definition("first_entry", CriteriaKind.ENTRY_COUNT, 1),
        _definition("ten_entries", CriteriaKind.ENTRY_COUNT, 10),
    )
    harness.add_entry()

    harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)
    snapshot = {
        row.achievement_id: (row.progress, row.earned_at)
        for row in harness.progress.list_for_user("user-1")
    }
    harness.clock.advance(minutes=5)
    harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    assert {
        row.achievement_id: (row.progress, row.earned_at)
        for row in harness.progress.list_for_user("user-1")
    } == snapshot
    assert harness.metrics.counters["achievements_earned_total"] == 1


def test_earned_achievement_is_never_revoked() -> None:
    harness = Harness(_definition("week_streak", CriteriaKind.STREAK, 3))
    for days_ago in range(3):
        harness.add_entry(days_ago=days_ago)
    harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)
    earned = harness.progress.find("user-1", "week_streak")
    assert earned.earned_at == NOW

    # Streak breaks: two idle days later the calculator would report 0.
    harness.clock.advance(days=2)
    written = harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    assert written == []
    after = harness.progress.find("user-1", "week_streak")
    assert after.earned_at == NOW
    assert after.progress.percent == 100.0


def test_irrelevant_action_leaves_progress_untouched() -> None:
    harness = Harness(_definition("emotion_explorer", CriteriaKind.EMOTION_ANALYSIS, 5))
    harness.add_entry(sentiment=4)

    written = harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    assert written == []
    assert harness.progress.find("user-1", "emotion_explorer") is None


def test_emotion_analysis_counts_analysed_entries() -> None:
    harness = Harness(_definition("emotion_explorer", CriteriaKind.EMOTION_ANALYSIS, 5))
    harness.add_entry(sentiment=4)
    harness.add_entry(sentiment=2)
    harness.add_entry()

    harness.engine.evaluate("user-1", AchievementAction.EMOTION_ANALYZED)

    row = harness.progress.find("user-1", "emotion_explorer")
    assert row.progress == AchievementProgress(current=2, target=5, percent=40.0)


def test_entry_count_ignores_emotion_action() -> None:
    harness = Harness(_definition("first_entry", CriteriaKind.ENTRY_COUNT, 1))
    harness.add_entry(sentiment=3)

    assert harness.engine.evaluate("user-1", AchievementAction.EMOTION_ANALYZED) == []


def test_streak_counts_consecutive_days_ending_today() -> None:
    harness = Harness(_definition("week_streak", CriteriaKind.STREAK, 7))
    for days_ago in (0, 1, 2, 4, 5):
        harness.add_entry(days_ago=days_ago)

    harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    row = harness.progress.find("user-1", "week_streak")
    assert row.progress.current == 3
    assert row.progress.percent == pytest.approx(42.86)


def test_streak_is_zero_without_entry_today() -> None:
    harness = Harness(_definition("week_streak", CriteriaKind.STREAK, 7))
    harness.add_entry(days_ago=1)
    harness.add_entry(days_ago=2)

    harness.engine.evaluate("user-1", AchievementAction.EMOTION_ANALYZED)

    assert harness.progress.find("user-1", "week_streak").progress.current == 0


def test_progress_is_scoped_to_user() -> None:
    harness = Harness(_definition("first_entry", CriteriaKind.ENTRY_COUNT, 1))
    harness.add_entry(user_id="someone-else")

    harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    row = harness.progress.find("user-1", "first_entry")
    assert row.progress.current == 0
    assert row.earned_at is None


def test_failure_in_one_definition_does_not_block_others(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = RecordingLogger()
    monkeypatch.setattr(engine_module, "logger", recorder)

    def broken(ctx, criteria):
        raise RuntimeError("count query failed")

    monkeypatch.setitem(engine_module._CALCULATORS, CriteriaKind.STREAK, broken)
    harness = Harness(
        _definition("week_streak", CriteriaKind.STREAK, 7),
        _definition("first_entry", CriteriaKind.ENTRY_COUNT, 1),
    )
    harness.add_entry()

    written = harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    assert [row.achievement_id for row in written] == ["first_entry"]
    record = find_log(recorder.records, level="warning", message="achievement_evaluation_failed")
    assert_extra_contains(
        record, achievement_id="week_streak", error_code="achievement_evaluation_failed"
    )
    assert harness.metrics.counters["achievements_evaluation_failed_total"] == 1


def test_progress_repository_refuses_to_overwrite_earned_row() -> None:
    repository = InMemoryUserProgressRepository()
    earned = repository.save(
        UserAchievementProgress(
            user_id="user-1",
            achievement_id="first_entry",
            progress=AchievementProgress.compute(1, 1),
            earned_at=NOW,
        )
    )

    result = repository.save(
        UserAchievementProgress(
            user_id="user-1",
            achievement_id="first_entry",
            progress=AchievementProgress.compute(0, 1),
        )
    )

    assert result == earned
    assert repository.find("user-1", "first_entry").earned_at == NOW


def test_unknown_action_is_rejected() -> None:
    harness = Harness()

    with pytest.raises(ValueError):
        harness.engine.evaluate("user-1", "entry_deleted")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"type": "entry_count", "target": 10}, AchievementCriteria(CriteriaKind.ENTRY_COUNT, 10)),
        ({"kind": "streak"}, AchievementCriteria(CriteriaKind.STREAK, 7)),
        ({"type": "emotion_analysis", "target": "3"}, AchievementCriteria(CriteriaKind.EMOTION_ANALYSIS, 3)),
    ],
)
def test_criteria_parsing(raw, expected) -> None:
    assert AchievementCriteria.from_raw(raw) == expected


@pytest.mark.parametrize(
    "raw, code",
    [
        ({"type": "words_spoken", "target": 100}, "criteria_kind_unknown"),
        ({"type": "streak", "target": -2}, "criteria_target_invalid"),
        ({"type": "streak", "target": "many"}, "criteria_target_invalid"),
    ],
)
def test_invalid_criteria_raise_evaluation_error(raw, code) -> None:
    with pytest.raises(AchievementEvaluationError) as exc_info:
        AchievementCriteria.from_raw(raw)

    assert exc_info.value.code == code


def test_progress_percent_is_capped_at_100() -> None:
    assert AchievementProgress.compute(15, 10) == AchievementProgress(15, 10, 100.0)
    assert AchievementProgress.compute(1, 3).percent == 33.33


def test_one_short_of_a_large_target_is_not_complete() -> None:
    progress = AchievementProgress.compute(19_999, 20_000)

    assert progress.percent == 99.99
    assert progress.complete is False
    assert AchievementProgress.compute(20_000, 20_000).complete is True


def test_large_count_target_is_not_earned_one_entry_early(monkeypatch) -> None:
    harness = Harness(_definition("marathon", CriteriaKind.ENTRY_COUNT, 20_000))
    monkeypatch.setattr(harness.entries, "count_by_user", lambda user_id: 19_999)

    harness.engine.evaluate("user-1", AchievementAction.ENTRY_CREATED)

    row = harness.progress.find("user-1", "marathon")
    assert row.earned_at is None
    assert row.progress.percent < 100.0
