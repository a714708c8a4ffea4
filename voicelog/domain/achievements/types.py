"""Achievement domain types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..errors import AchievementEvaluationError

__all__ = [
    "AchievementAction",
    "AchievementCriteria",
    "AchievementDefinition",
    "AchievementProgress",
    "CriteriaKind",
    "DEFAULT_TARGETS",
    "UserAchievementProgress",
]


class CriteriaKind(str, Enum):
    """Closed set of unlocking rules."""

    ENTRY_COUNT = "entry_count"
    STREAK = "streak"
    EMOTION_ANALYSIS = "emotion_analysis"


class AchievementAction(str, Enum):
    """User actions that trigger an evaluation pass."""

    ENTRY_CREATED = "entry_created"
    EMOTION_ANALYZED = "emotion_analyzed"


DEFAULT_TARGETS: Dict[CriteriaKind, int] = {
    CriteriaKind.ENTRY_COUNT: 1,
    CriteriaKind.STREAK: 7,
    CriteriaKind.EMOTION_ANALYSIS: 5,
}


@dataclass(frozen=True)
class AchievementCriteria:
    kind: CriteriaKind
    target: int

    def __post_init__(self) -> None:
        if self.target <= 0:
            raise ValueError("criteria target must be a positive integer")

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "AchievementCriteria":
        """Parse a stored criteria blob (``{"type"|"kind": ..., "target": ...}``)."""

        kind_value = raw.get("kind", raw.get("type"))
        try:
            kind = CriteriaKind(kind_value)
        except ValueError as exc:
            raise AchievementEvaluationError(
                f"unknown criteria kind {kind_value!r}",
                code="criteria_kind_unknown",
                details={"criteria": dict(raw)},
            ) from exc
        target = raw.get("target") or DEFAULT_TARGETS[kind]
        try:
            return cls(kind=kind, target=int(target))
        except (TypeError, ValueError) as exc:
            raise AchievementEvaluationError(
                f"invalid criteria target {target!r}",
                code="criteria_target_invalid",
                details={"criteria": dict(raw)},
            ) from exc

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "target": self.target}


@dataclass(frozen=True)
class AchievementDefinition:
    achievement_id: str
    name: str
    criteria: AchievementCriteria
    description: Optional[str] = None
    icon: Optional[str] = None


@dataclass(frozen=True)
class AchievementProgress:
    current: int
    target: int
    percent: float

    @classmethod
    def compute(cls, current: int, target: int) -> "AchievementProgress":
        current = max(0, int(current))
        if current >= target:
            return cls(current=current, target=target, percent=100.0)
        # Rounding must not report 100 for an unreached target.
        percent = min(round(100.0 * current / target, 2), 99.99)
        return cls(current=current, target=target, percent=percent)

    @property
    def complete(self) -> bool:
        return self.current >= self.target

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AchievementProgress":
        return cls(
            current=int(payload.get("current", 0)),
            target=int(payload.get("target", 1)),
            percent=float(payload.get("percent", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"current": self.current, "target": self.target, "percent": self.percent}


@dataclass(frozen=True)
class UserAchievementProgress:
    user_id: str
    achievement_id: str
    progress: AchievementProgress
    earned_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def earned(self) -> bool:
        return self.earned_at is not None
