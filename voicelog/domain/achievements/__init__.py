"""Achievement definitions, progress tracking and evaluation."""

from .engine import AchievementEngine
from .repository import (
    DEFAULT_ACHIEVEMENTS,
    AchievementDefinitionRepository,
    InMemoryAchievementDefinitionRepository,
    InMemoryUserProgressRepository,
    SqlAchievementDefinitionRepository,
    SqlUserProgressRepository,
    UserProgressRepository,
    build_achievement_repositories,
)
from .types import (
    AchievementAction,
    AchievementCriteria,
    AchievementDefinition,
    AchievementProgress,
    CriteriaKind,
    UserAchievementProgress,
)

__all__ = [
    "AchievementAction",
    "AchievementCriteria",
    "AchievementDefinition",
    "AchievementDefinitionRepository",
    "AchievementEngine",
    "AchievementProgress",
    "CriteriaKind",
    "DEFAULT_ACHIEVEMENTS",
    "InMemoryAchievementDefinitionRepository",
    "InMemoryUserProgressRepository",
    "SqlAchievementDefinitionRepository",
    "SqlUserProgressRepository",
    "UserAchievementProgress",
    "UserProgressRepository",
    "build_achievement_repositories",
]
