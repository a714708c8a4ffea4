"""Pattern and usage analytics endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...domain.analytics import PatternAnalysis, compute_usage
from ...domain.errors import AnalyticsComputationError
from ...runtime import Runtime
from ..dependencies import get_runtime, get_user_id
from ..errors import to_http_error

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


class ConsistencyModel(BaseModel):
    streak_days: int
    total_entries: int
    average_entries_per_week: float
    most_active_day: Optional[str] = None
    completion_rate: float


class DominantEmotionModel(BaseModel):
    label: str
    sentiment: int
    count: int


class MoodPointModel(BaseModel):
    day: date
    sentiment: float


class EmotionalTrendsModel(BaseModel):
    dominant_emotion: Optional[DominantEmotionModel] = None
    emotional_stability: float
    mood_progression: List[MoodPointModel] = Field(default_factory=list)


class ThemeModel(BaseModel):
    topic: str
    count: int


class TopicsModel(BaseModel):
    frequent_themes: List[ThemeModel] = Field(default_factory=list)
    emerging_topics: List[str] = Field(default_factory=list)
    declining_topics: List[str] = Field(default_factory=list)


class FeatureUsageModel(BaseModel):
    feature: str
    count: int


class DailyStatModel(BaseModel):
    day: date
    count: int


class UsageResponse(BaseModel):
    user_id: str
    feature_usage: List[FeatureUsageModel] = Field(default_factory=list)
    daily_stats: List[DailyStatModel] = Field(default_factory=list)
    total_duration_seconds: int
    average_entry_seconds: float
    unique_tags: int
    last_active_at: Optional[datetime] = None


class PatternAnalysisResponse(BaseModel):
    user_id: str
    generated_at: datetime
    consistency: ConsistencyModel
    emotional_trends: EmotionalTrendsModel
    topics: TopicsModel
    recommendations: List[str] = Field(default_factory=list)


def _to_response(analysis: PatternAnalysis) -> PatternAnalysisResponse:
    consistency = analysis.consistency
    emotional = analysis.emotional_trends
    dominant = emotional.dominant_emotion
    return PatternAnalysisResponse(
        user_id=analysis.user_id,
        generated_at=analysis.generated_at,
        consistency=ConsistencyModel(
            streak_days=consistency.streak_days,
            total_entries=consistency.total_entries,
            average_entries_per_week=consistency.average_entries_per_week,
            most_active_day=consistency.most_active_day,
            completion_rate=consistency.completion_rate,
        ),
        emotional_trends=EmotionalTrendsModel(
            dominant_emotion=(
                DominantEmotionModel(
                    label=dominant.label, sentiment=dominant.sentiment, count=dominant.count
                )
                if dominant is not None
                else None
            ),
            emotional_stability=emotional.emotional_stability,
            mood_progression=[
                MoodPointModel(day=point.day, sentiment=point.sentiment)
                for point in emotional.mood_progression
            ],
        ),
        topics=TopicsModel(
            frequent_themes=[
                ThemeModel(topic=theme.topic, count=theme.count)
                for theme in analysis.topics.frequent_themes
            ],
            emerging_topics=list(analysis.topics.emerging_topics),
            declining_topics=list(analysis.topics.declining_topics),
        ),
        recommendations=list(analysis.recommendations),
    )


@router.get("/patterns", response_model=PatternAnalysisResponse)
def get_patterns(
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> PatternAnalysisResponse:
    try:
        analysis = runtime.analytics.compute_patterns_within(
            user_id, timeout_seconds=runtime.settings.analytics.request_timeout_seconds
        )
    except AnalyticsComputationError as exc:
        raise to_http_error(exc) from exc
    return _to_response(analysis)


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> UsageResponse:
    """Feature usage counts plus entries per day, oldest day first."""

    report = compute_usage(user_id, entries=runtime.entries, summaries=runtime.summaries)
    return UsageResponse(
        user_id=report.user_id,
        feature_usage=[
            FeatureUsageModel(feature=item.feature, count=item.count)
            for item in report.feature_usage
        ],
        daily_stats=[DailyStatModel(day=item.day, count=item.count) for item in report.daily_stats],
        total_duration_seconds=report.total_duration_seconds,
        average_entry_seconds=report.average_entry_seconds,
        unique_tags=report.unique_tags,
        last_active_at=report.last_active_at,
    )
