"""Pattern analytics over a user's entry history."""

from __future__ import annotations

import statistics
import time
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from ...config.loader import AnalyticsConfig
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..achievements.repository import AchievementDefinitionRepository, UserProgressRepository
from ..entries.gateway import EntryRepository
from ..entries.models import NEUTRAL_SENTIMENT, Entry, utcnow
from ..errors import AnalyticsComputationError
from ..streaks import active_days, current_streak, day_of
from .models import (
    Consistency,
    DominantEmotion,
    EmotionalTrends,
    MoodPoint,
    PatternAnalysis,
    ThemeCount,
    TopicTrends,
)

__all__ = ["PatternAnalyticsAggregator", "WEEKDAY_NAMES", "sentiment_label"]

logger = get_logger(__name__)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_SENTIMENT_LABELS = {
    1: "very_negative",
    2: "negative",
    3: "neutral",
    4: "positive",
    5: "very_positive",
}
MOOD_DROP_THRESHOLD = 0.5
LOW_STABILITY_THRESHOLD = 0.5
LOW_COMPLETION_THRESHOLD = 0.5
NEAR_COMPLETE_PERCENT = 75.0


def sentiment_label(sentiment: int) -> str:
    return _SENTIMENT_LABELS.get(sentiment, "neutral")


class PatternAnalyticsAggregator:
    """Read-only statistics over entries and achievement progress.

    Metrics that cannot be computed fall back to neutral values (0, ``None``
    or an empty list) instead of raising.
    """

    def __init__(
        self,
        *,
        entries: EntryRepository,
        progress: Optional[UserProgressRepository] = None,
        definitions: Optional[AchievementDefinitionRepository] = None,
        config: Optional[AnalyticsConfig] = None,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self._entries = entries
        self._progress = progress
        self._definitions = definitions
        self._config = config or AnalyticsConfig()
        self._clock = clock
        self._metrics = metrics or get_metrics_client()
        # Shared across requests; an abandoned computation holds a worker until it ends.
        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers, thread_name_prefix="voicelog-analytics"
        )

    def compute_patterns(self, user_id: str) -> PatternAnalysis:
        started = time.perf_counter()
        now = self._clock()
        today = day_of(now)
        entries = sorted(self._entries.find_all_by_user(user_id), key=lambda e: e.created_at)

        consistency = self._consistency(entries, today)
        emotional = self._emotional_trends(entries)
        topics = self._topics(entries)
        recommendations = (
            self._recommendations(user_id, entries, today, consistency, emotional, topics)
            if entries
            else []
        )

        self._metrics.increment("analytics_patterns_computed_total")
        self._metrics.observe(
            "analytics_compute_ms", (time.perf_counter() - started) * 1000
        )
        logger.info(
            "pattern_analysis_computed",
            extra={
                "user_id": user_id,
                "total_entries": consistency.total_entries,
                "streak_days": consistency.streak_days,
                "recommendations": len(recommendations),
            },
        )
        return PatternAnalysis(
            user_id=user_id,
            generated_at=now,
            consistency=consistency,
            emotional_trends=emotional,
            topics=topics,
            recommendations=recommendations,
        )

    def compute_patterns_within(self, user_id: str, *, timeout_seconds: float) -> PatternAnalysis:
        """Run ``compute_patterns`` with a deadline.

        Raises ``AnalyticsComputationError`` (``analytics_timeout``) when the
        deadline passes; the computation is abandoned, not interrupted.
        """

        future = self._executor.submit(self.compute_patterns, user_id)
        try:
            return future.result(timeout=timeout_seconds)
        except FuturesTimeout as exc:
            future.cancel()
            self._metrics.increment("analytics_timeout_total")
            logger.warning(
                "pattern_analysis_timeout",
                extra={"user_id": user_id, "timeout_seconds": timeout_seconds},
            )
            raise AnalyticsComputationError(
                f"pattern analysis exceeded {timeout_seconds}s",
                code="analytics_timeout",
                retryable=True,
            ) from exc

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    # ------------------------------------------------------------------
    # Consistency
    # ------------------------------------------------------------------
    def _consistency(self, entries: Sequence[Entry], today: date) -> Consistency:
        if not entries:
            return Consistency()
        days = active_days(entry.created_at for entry in entries)
        return Consistency(
            streak_days=current_streak(days, today=today),
            total_entries=len(entries),
            average_entries_per_week=_average_per_week(entries),
            most_active_day=_most_active_day(entries),
            completion_rate=_completion_rate(days, today),
        )

    # ------------------------------------------------------------------
    # Emotional trends
    # ------------------------------------------------------------------
    def _emotional_trends(self, entries: Sequence[Entry]) -> EmotionalTrends:
        analysed = [
            (day_of(entry.created_at), entry.sentiment)
            for entry in entries
            if entry.sentiment is not None
        ]
        if not analysed:
            return EmotionalTrends()

        by_day: Dict[date, List[int]] = defaultdict(list)
        for day, sentiment in analysed:
            by_day[day].append(sentiment)
        progression = [
            MoodPoint(day=day, sentiment=round(statistics.fmean(values), 2))
            for day, values in sorted(by_day.items())
        ]

        counts = Counter(sentiment for _, sentiment in analysed)
        # Ties go to the sentiment closest to neutral, then the lower one.
        dominant, count = max(
            counts.items(),
            key=lambda item: (item[1], -abs(item[0] - NEUTRAL_SENTIMENT), -item[0]),
        )

        variance = statistics.pvariance([point.sentiment for point in progression])
        return EmotionalTrends(
            dominant_emotion=DominantEmotion(
                label=sentiment_label(dominant), sentiment=dominant, count=count
            ),
            emotional_stability=round(1.0 / (1.0 + variance), 3),
            mood_progression=progression,
        )

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------
    def _topics(self, entries: Sequence[Entry]) -> TopicTrends:
        if len(entries) < self._config.min_entries_for_topics:
            return TopicTrends()

        topic_sets = [(entry.created_at, _entry_topics(entry)) for entry in entries]
        counts: Counter = Counter()
        for _, topics in topic_sets:
            counts.update(topics)
        frequent = [
            ThemeCount(topic=topic, count=count)
            for topic, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ][: self._config.frequent_theme_limit]

        emerging, declining = _topic_trends(topic_sets, self._config.topic_trend_ratio)
        return TopicTrends(
            frequent_themes=frequent,
            emerging_topics=emerging,
            declining_topics=declining,
        )

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------
    def _recommendations(
        self,
        user_id: str,
        entries: Sequence[Entry],
        today: date,
        consistency: Consistency,
        emotional: EmotionalTrends,
        topics: TopicTrends,
    ) -> List[str]:
        recommendations: List[str] = []
        if consistency.streak_days == 0:
            recommendations.append(
                "Record a short entry today to start a new journaling streak."
            )

        this_week, last_week = _weekly_mood(entries, today)
        if (
            this_week is not None
            and last_week is not None
            and last_week - this_week >= MOOD_DROP_THRESHOLD
        ):
            recommendations.append(
                "Your mood has dipped compared with last week. Consider noting what has "
                "been weighing on you and what usually helps."
            )

        if (
            emotional.mood_progression
            and emotional.emotional_stability < LOW_STABILITY_THRESHOLD
        ):
            recommendations.append(
                "Your mood has been swinging a lot. Short daily check-ins can help you "
                "spot what drives the changes."
            )

        if consistency.completion_rate < LOW_COMPLETION_THRESHOLD:
            recommendations.append(
                "You have journaled on fewer than half the days this month. Try a "
                "regular time of day for your entries."
            )

        if topics.emerging_topics:
            recommendations.append(
                f"'{topics.emerging_topics[0]}' has been coming up more often lately. "
                "It may be worth reflecting on it directly."
            )

        recommendations.extend(self._achievement_nudges(user_id))
        return recommendations

    def _achievement_nudges(self, user_id: str) -> List[str]:
        if self._progress is None:
            return []
        names: Dict[str, str] = {}
        if self._definitions is not None:
            names = {item.achievement_id: item.name for item in self._definitions.find_all()}
        nudges: List[Tuple[float, str]] = []
        for row in self._progress.list_for_user(user_id):
            if row.earned or not (NEAR_COMPLETE_PERCENT <= row.progress.percent < 100.0):
                continue
            name = names.get(row.achievement_id, row.achievement_id)
            remaining = max(0, row.progress.target - row.progress.current)
            nudges.append(
                (
                    row.progress.percent,
                    f"You are {remaining} step{'s' if remaining != 1 else ''} away from "
                    f"earning '{name}'.",
                )
            )
        return [text for _, text in sorted(nudges, key=lambda item: -item[0])]


def _average_per_week(entries: Sequence[Entry]) -> float:
    span = entries[-1].created_at - entries[0].created_at
    weeks = max(1.0, span.total_seconds() / 86400 / 7)
    return round(len(entries) / weeks, 1)


def _most_active_day(entries: Sequence[Entry]) -> Optional[str]:
    counts = Counter(day_of(entry.created_at).weekday() for entry in entries)
    if not counts:
        return None
    weekday = max(sorted(counts), key=lambda index: counts[index])
    return WEEKDAY_NAMES[weekday]


def _completion_rate(days: Set[date], today: date) -> float:
    month_start = today.replace(day=1)
    active = sum(1 for day in days if month_start <= day <= today)
    return round(active / today.day, 2)


def _weekly_mood(entries: Sequence[Entry], today: date) -> Tuple[Optional[float], Optional[float]]:
    week_start = today - timedelta(days=6)
    previous_start = week_start - timedelta(days=7)
    current: List[int] = []
    previous: List[int] = []
    for entry in entries:
        if entry.sentiment is None:
            continue
        day = day_of(entry.created_at)
        if week_start <= day <= today:
            current.append(entry.sentiment)
        elif previous_start <= day < week_start:
            previous.append(entry.sentiment)
    return (
        statistics.fmean(current) if current else None,
        statistics.fmean(previous) if previous else None,
    )


def _entry_topics(entry: Entry) -> Set[str]:
    source = entry.ai_analysis.topics if entry.ai_analysis and entry.ai_analysis.topics else entry.tags
    return {topic.strip().lower() for topic in source if topic and topic.strip()}


def _topic_trends(
    topic_sets: Sequence[Tuple[datetime, Set[str]]], ratio: float
) -> Tuple[List[str], List[str]]:
    """Compare per-entry topic rates between the latest third of the time range and the rest."""

    first = topic_sets[0][0]
    span = topic_sets[-1][0] - first
    if span.total_seconds() <= 0:
        return [], []
    cutoff = first + span * 2 / 3
    recent = [topics for created, topics in topic_sets if created >= cutoff]
    earlier = [topics for created, topics in topic_sets if created < cutoff]
    if not recent or not earlier:
        return [], []

    recent_counts: Counter = Counter()
    earlier_counts: Counter = Counter()
    for topics in recent:
        recent_counts.update(topics)
    for topics in earlier:
        earlier_counts.update(topics)

    emerging: List[Tuple[float, str]] = []
    declining: List[Tuple[float, str]] = []
    for topic in set(recent_counts) | set(earlier_counts):
        recent_rate = recent_counts[topic] / len(recent)
        earlier_rate = earlier_counts[topic] / len(earlier)
        if recent_rate > ratio * earlier_rate:
            emerging.append((recent_rate, topic))
        elif earlier_rate > ratio * recent_rate:
            declining.append((earlier_rate, topic))
    return (
        [topic for _, topic in sorted(emerging, key=lambda item: (-item[0], item[1]))],
        [topic for _, topic in sorted(declining, key=lambda item: (-item[0], item[1]))],
    )
