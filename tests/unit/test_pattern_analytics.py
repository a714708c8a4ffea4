"""Unit tests for the pattern analytics aggregator."""

from __future__ import annotations

import threading
from datetime import date, timedelta

import pytest

from voicelog.config.loader import AnalyticsConfig
from voicelog.domain.achievements import (
    AchievementProgress,
    InMemoryAchievementDefinitionRepository,
    InMemoryUserProgressRepository,
    UserAchievementProgress,
)
from voicelog.domain.analytics import (
    Consistency,
    EmotionalTrends,
    PatternAnalyticsAggregator,
    TopicTrends,
    sentiment_label,
)
from voicelog.domain.entries import AiAnalysis, InMemoryEntryRepository
from voicelog.domain.errors import AnalyticsComputationError
from voicelog.infra.metrics import InMemoryMetricsClient
from tests.helpers.fakes import FakeClock, utc

pytestmark = [pytest.mark.analytics]

# A Sunday, late in the month so completion rates are meaningful.
NOW = utc(2026, 10, 18, 18)


class Harness:
    def __init__(self, *, config: AnalyticsConfig | None = None) -> None:
        self.entries = InMemoryEntryRepository()
        self.progress = InMemoryUserProgressRepository()
        self.definitions = InMemoryAchievementDefinitionRepository()
        self.clock = FakeClock(NOW)
        self.aggregator = PatternAnalyticsAggregator(
            entries=self.entries,
            progress=self.progress,
            definitions=self.definitions,
            config=config or AnalyticsConfig(),
            clock=self.clock,
            metrics=InMemoryMetricsClient(),
        )

    def add(
        self,
        *,
        days_ago: float = 0,
        sentiment: int | None = None,
        topics: list[str] | None = None,
        tags: list[str] | None = None,
        user_id: str = "user-1",
    ):
        entry = self.entries.create(
            user_id=user_id,
            audio_url="data:audio/webm;base64,AA==",
            duration_seconds=30,
            transcript="entry",
            timestamp=NOW - timedelta(days=days_ago),
        )
        changes = {}
        if tags is not None:
            changes["tags"] = tags
        if sentiment is not None or topics is not None:
            changes["ai_analysis"] = AiAnalysis(
                sentiment=sentiment if sentiment is not None else 3, topics=topics or []
            )
        if changes:
            entry = self.entries.update(entry.entry_id, **changes)
        return entry


def test_zero_entries_yields_neutral_defaults() -> None:
    harness = Harness()
    harness.add(user_id="someone-else", sentiment=5)

    analysis = harness.aggregator.compute_patterns("user-1")

    assert analysis.user_id == "user-1"
    assert analysis.generated_at == NOW
    assert analysis.consistency == Consistency()
    assert analysis.consistency.most_active_day is None
    assert analysis.emotional_trends == EmotionalTrends()
    assert analysis.topics == TopicTrends()
    assert analysis.recommendations == []


def test_streak_counts_today_and_previous_two_days() -> None:
    harness = Harness()
    for days_ago in (0, 1, 2, 5):
        harness.add(days_ago=days_ago)

    consistency = harness.aggregator.compute_patterns("user-1").consistency

    assert consistency.streak_days == 3
    assert consistency.total_entries == 4


def test_consistency_statistics() -> None:
    harness = Harness()
    # 14 days span, 6 entries: three on Sundays, one each on Mon/Tue/Wed.
    for days_ago in (0, 7, 14, 6, 5, 4):
        harness.add(days_ago=days_ago)

    consistency = harness.aggregator.compute_patterns("user-1").consistency

    assert consistency.average_entries_per_week == 3.0
    assert consistency.most_active_day == "Sunday"
    # Active October days up to the 18th: 4, 11, 12, 13, 14, 18 -> 6 of 18.
    assert consistency.completion_rate == 0.33


def test_average_per_week_uses_one_week_minimum() -> None:
    harness = Harness()
    harness.add(days_ago=0)
    harness.add(days_ago=0.5)

    assert harness.aggregator.compute_patterns("user-1").consistency.average_entries_per_week == 2.0


def test_most_active_day_ties_resolve_to_earliest_weekday() -> None:
    harness = Harness()
    harness.add(days_ago=0)  # Sunday
    harness.add(days_ago=6)  # Monday

    assert harness.aggregator.compute_patterns("user-1").consistency.most_active_day == "Monday"


def test_emotional_trends() -> None:
    harness = Harness()
    harness.add(days_ago=2, sentiment=2)
    harness.add(days_ago=2, sentiment=4)
    harness.add(days_ago=1, sentiment=4)
    harness.add(days_ago=0, sentiment=5)
    harness.add(days_ago=0)  # not analysed

    trends = harness.aggregator.compute_patterns("user-1").emotional_trends

    assert [(point.day, point.sentiment) for point in trends.mood_progression] == [
        (date(2026, 10, 16), 3.0),
        (date(2026, 10, 17), 4.0),
        (date(2026, 10, 18), 5.0),
    ]
    assert trends.dominant_emotion.sentiment == 4
    assert trends.dominant_emotion.label == "positive"
    assert trends.dominant_emotion.count == 2
    # Daily means 3, 4, 5: population variance 2/3.
    assert trends.emotional_stability == 0.6


def test_dominant_emotion_tie_prefers_value_nearest_neutral() -> None:
    harness = Harness()
    harness.add(days_ago=1, sentiment=1)
    harness.add(days_ago=0, sentiment=4)

    trends = harness.aggregator.compute_patterns("user-1").emotional_trends

    assert trends.dominant_emotion.sentiment == 4


def test_single_day_of_mood_is_perfectly_stable() -> None:
    harness = Harness()
    harness.add(sentiment=2)

    assert harness.aggregator.compute_patterns("user-1").emotional_trends.emotional_stability == 1.0


def test_topics_require_minimum_entry_count() -> None:
    harness = Harness()
    harness.add(days_ago=1, topics=["work"])
    harness.add(days_ago=0, topics=["work"])

    assert harness.aggregator.compute_patterns("user-1").topics == TopicTrends()


def test_topic_emerging_in_recent_third() -> None:
    harness = Harness()
    for days_ago in range(30, 10, -2):
        harness.add(days_ago=days_ago, topics=["work"])
    for days_ago in (8, 5, 3, 1, 0):
        harness.add(days_ago=days_ago, topics=["running", "work"] if days_ago == 8 else ["running"])

    topics = harness.aggregator.compute_patterns("user-1").topics

    assert "running" in topics.emerging_topics
    assert "work" in topics.declining_topics
    assert topics.frequent_themes[0].topic == "work"
    assert topics.frequent_themes[0].count == 11
    assert {theme.topic: theme.count for theme in topics.frequent_themes}["running"] == 5


def test_topics_fall_back_to_tags_and_lowercase() -> None:
    harness = Harness()
    for days_ago in (2, 1, 0):
        harness.add(days_ago=days_ago, tags=["Sleep", "sleep "])

    topics = harness.aggregator.compute_patterns("user-1").topics

    assert [(theme.topic, theme.count) for theme in topics.frequent_themes] == [("sleep", 3)]
    assert topics.emerging_topics == []
    assert topics.declining_topics == []


def test_frequent_theme_limit() -> None:
    harness = Harness(config=AnalyticsConfig(frequent_theme_limit=2))
    for days_ago in (2, 1, 0):
        harness.add(days_ago=days_ago, topics=["a", "b", "c"])

    assert len(harness.aggregator.compute_patterns("user-1").topics.frequent_themes) == 2


def test_recommendations_for_lapsed_volatile_user() -> None:
    harness = Harness()
    harness.add(days_ago=10, sentiment=5)
    harness.add(days_ago=9, sentiment=5)
    harness.add(days_ago=3, sentiment=1)
    harness.add(days_ago=2, sentiment=1)

    recommendations = harness.aggregator.compute_patterns("user-1").recommendations

    assert any("start a new journaling streak" in item for item in recommendations)
    assert any("mood has dipped" in item for item in recommendations)
    assert any("swinging" in item for item in recommendations)
    assert any("fewer than half the days" in item for item in recommendations)


def test_recommendations_mention_nearly_earned_achievement() -> None:
    harness = Harness()
    harness.add(days_ago=0)
    harness.progress.save(
        UserAchievementProgress(
            user_id="user-1",
            achievement_id="ten_entries",
            progress=AchievementProgress.compute(8, 10),
        )
    )
    harness.progress.save(
        UserAchievementProgress(
            user_id="user-1",
            achievement_id="emotion_explorer",
            progress=AchievementProgress.compute(1, 5),
        )
    )

    recommendations = harness.aggregator.compute_patterns("user-1").recommendations

    assert "You are 2 steps away from earning 'Finding Your Voice'." in recommendations
    assert not any("Emotion Explorer" in item for item in recommendations)


def test_compute_patterns_within_raises_on_timeout() -> None:
    release = threading.Event()

    class SlowRepository(InMemoryEntryRepository):
        def find_all_by_user(self, user_id):
            release.wait(5)
            return []

    aggregator = PatternAnalyticsAggregator(
        entries=SlowRepository(), clock=FakeClock(NOW), metrics=InMemoryMetricsClient()
    )
    try:
        with pytest.raises(AnalyticsComputationError) as exc_info:
            aggregator.compute_patterns_within("user-1", timeout_seconds=0.05)
    finally:
        release.set()

    assert exc_info.value.code == "analytics_timeout"
    assert exc_info.value.retryable is True


def test_saturated_pool_times_out_queued_requests_without_new_threads() -> None:
    release = threading.Event()
    started = []

    class SlowRepository(InMemoryEntryRepository):
        def find_all_by_user(self, user_id):
            started.append(threading.current_thread().name)
            release.wait(5)
            return []

    aggregator = PatternAnalyticsAggregator(
        entries=SlowRepository(),
        config=AnalyticsConfig(max_workers=1),
        clock=FakeClock(NOW),
        metrics=InMemoryMetricsClient(),
    )
    try:
        for _ in range(3):
            with pytest.raises(AnalyticsComputationError):
                aggregator.compute_patterns_within("user-1", timeout_seconds=0.05)
    finally:
        release.set()
        aggregator.shutdown()

    assert len(started) == 1
    assert started[0].startswith("voicelog-analytics")


def test_pool_is_reused_across_requests() -> None:
    harness = Harness(config=AnalyticsConfig(max_workers=1))
    harness.add(days_ago=0)
    seen = []
    original = harness.aggregator.compute_patterns

    def tracking(user_id):
        seen.append(threading.current_thread().name)
        return original(user_id)

    harness.aggregator.compute_patterns = tracking
    for _ in range(3):
        harness.aggregator.compute_patterns_within("user-1", timeout_seconds=5)
    harness.aggregator.shutdown()

    assert len(set(seen)) == 1


def test_compute_patterns_within_returns_result_in_time() -> None:
    harness = Harness()
    harness.add(days_ago=0)

    analysis = harness.aggregator.compute_patterns_within("user-1", timeout_seconds=5)

    assert analysis.consistency.total_entries == 1


@pytest.mark.parametrize(
    "sentiment, label",
    [(1, "very_negative"), (2, "negative"), (3, "neutral"), (4, "positive"), (5, "very_positive")],
)
def test_sentiment_labels(sentiment, label) -> None:
    assert sentiment_label(sentiment) == label
