"""Pattern analytics aggregation."""

from .aggregator import WEEKDAY_NAMES, PatternAnalyticsAggregator, sentiment_label
from .models import (
    Consistency,
    DominantEmotion,
    EmotionalTrends,
    MoodPoint,
    PatternAnalysis,
    ThemeCount,
    TopicTrends,
)
from .usage import DailyCount, FeatureCount, UsageReport, compute_usage

__all__ = [
    "Consistency",
    "DailyCount",
    "DominantEmotion",
    "EmotionalTrends",
    "FeatureCount",
    "MoodPoint",
    "PatternAnalysis",
    "PatternAnalyticsAggregator",
    "ThemeCount",
    "TopicTrends",
    "UsageReport",
    "WEEKDAY_NAMES",
    "compute_usage",
    "sentiment_label",
]
