"""Derived pattern analysis shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

__all__ = [
    "Consistency",
    "DominantEmotion",
    "EmotionalTrends",
    "MoodPoint",
    "PatternAnalysis",
    "ThemeCount",
    "TopicTrends",
]


@dataclass(frozen=True)
class Consistency:
    streak_days: int = 0
    total_entries: int = 0
    average_entries_per_week: float = 0.0
    most_active_day: Optional[str] = None
    completion_rate: float = 0.0


@dataclass(frozen=True)
class MoodPoint:
    day: date
    sentiment: float


@dataclass(frozen=True)
class DominantEmotion:
    label: str
    sentiment: int
    count: int


@dataclass(frozen=True)
class EmotionalTrends:
    dominant_emotion: Optional[DominantEmotion] = None
    emotional_stability: float = 0.0
    mood_progression: List[MoodPoint] = field(default_factory=list)


@dataclass(frozen=True)
class ThemeCount:
    topic: str
    count: int


@dataclass(frozen=True)
class TopicTrends:
    frequent_themes: List[ThemeCount] = field(default_factory=list)
    emerging_topics: List[str] = field(default_factory=list)
    declining_topics: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PatternAnalysis:
    user_id: str
    generated_at: datetime
    consistency: Consistency = field(default_factory=Consistency)
    emotional_trends: EmotionalTrends = field(default_factory=EmotionalTrends)
    topics: TopicTrends = field(default_factory=TopicTrends)
    recommendations: List[str] = field(default_factory=list)
