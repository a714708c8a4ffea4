"""Achievement evaluation: progress recomputation and one-way earning."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union

from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..entries.gateway import EntryRepository
from ..entries.models import Entry, utcnow
from ..errors import AchievementEvaluationError
from ..streaks import active_days, current_streak, day_of
from .repository import AchievementDefinitionRepository, UserProgressRepository
from .types import (
    AchievementAction,
    AchievementCriteria,
    AchievementDefinition,
    AchievementProgress,
    CriteriaKind,
    UserAchievementProgress,
)

__all__ = ["AchievementEngine", "EvaluationContext"]

logger = get_logger(__name__)


@dataclass
class EvaluationContext:
    """Per-pass view of the user's entries, loaded at most once."""

    user_id: str
    action: AchievementAction
    now: datetime
    entries: EntryRepository
    _loaded: Optional[List[Entry]] = field(default=None, repr=False)

    def all_entries(self) -> List[Entry]:
        if self._loaded is None:
            self._loaded = self.entries.find_all_by_user(self.user_id)
        return self._loaded


Calculator = Callable[[EvaluationContext, AchievementCriteria], Optional[int]]


def _entry_count(ctx: EvaluationContext, criteria: AchievementCriteria) -> Optional[int]:
    if ctx.action is not AchievementAction.ENTRY_CREATED:
        return None
    return ctx.entries.count_by_user(ctx.user_id)


def _streak(ctx: EvaluationContext, criteria: AchievementCriteria) -> Optional[int]:
    today = day_of(ctx.now)
    days = active_days(
        (entry.created_at for entry in ctx.all_entries()),
        since=today - timedelta(days=criteria.target),
    )
    return current_streak(days, today=today, cap=criteria.target)


def _emotion_analysis(ctx: EvaluationContext, criteria: AchievementCriteria) -> Optional[int]:
    if ctx.action is not AchievementAction.EMOTION_ANALYZED:
        return None
    return sum(1 for entry in ctx.all_entries() if entry.sentiment is not None)


# ``None`` from a calculator means the action is irrelevant to that kind.
_CALCULATORS: Dict[CriteriaKind, Calculator] = {
    CriteriaKind.ENTRY_COUNT: _entry_count,
    CriteriaKind.STREAK: _streak,
    CriteriaKind.EMOTION_ANALYSIS: _emotion_analysis,
}

_MISSING_CALCULATORS = set(CriteriaKind) - set(_CALCULATORS)
if _MISSING_CALCULATORS:  # pragma: no cover - guards new enum members
    raise RuntimeError(
        f"no achievement calculator for {sorted(kind.value for kind in _MISSING_CALCULATORS)}"
    )


class AchievementEngine:
    """Recompute progress for every unearned achievement of a user.

    Progress is always recomputed from source counts, never incremented.
    ``earned_at`` is written once, in the same save that reaches the target,
    and earned rows are skipped on every later pass. Evaluations for the same
    user are serialized within the process.
    """

    def __init__(
        self,
        *,
        definitions: AchievementDefinitionRepository,
        progress: UserProgressRepository,
        entries: EntryRepository,
        clock: Callable[[], datetime] = utcnow,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self._definitions = definitions
        self._progress = progress
        self._entries = entries
        self._clock = clock
        self._metrics = metrics or get_metrics_client()
        self._user_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def evaluate(
        self, user_id: str, action: Union[AchievementAction, str]
    ) -> List[UserAchievementProgress]:
        """Run one pass; returns the progress rows written during it."""

        action = AchievementAction(action)
        with self._lock_for(user_id):
            ctx = EvaluationContext(
                user_id=user_id, action=action, now=self._clock(), entries=self._entries
            )
            written: List[UserAchievementProgress] = []
            for definition in self._definitions.find_all():
                try:
                    saved = self._evaluate_definition(ctx, definition)
                except Exception as exc:
                    self._record_failure(ctx, definition, exc)
                    continue
                if saved is not None:
                    written.append(saved)
            return written

    def _evaluate_definition(
        self, ctx: EvaluationContext, definition: AchievementDefinition
    ) -> Optional[UserAchievementProgress]:
        existing = self._progress.find(ctx.user_id, definition.achievement_id)
        if existing is not None and existing.earned:
            return None

        criteria = definition.criteria
        current = _CALCULATORS[criteria.kind](ctx, criteria)
        if current is None:
            return None

        progress = AchievementProgress.compute(current, criteria.target)
        earned_at = ctx.now if progress.complete else None
        saved = self._progress.save(
            UserAchievementProgress(
                user_id=ctx.user_id,
                achievement_id=definition.achievement_id,
                progress=progress,
                earned_at=earned_at,
            )
        )
        if earned_at is not None and saved.earned_at == earned_at:
            self._metrics.increment("achievements_earned_total")
            logger.info(
                "achievement_earned",
                extra={
                    "user_id": ctx.user_id,
                    "achievement_id": definition.achievement_id,
                    "action": ctx.action.value,
                },
            )
        return saved

    def _record_failure(
        self, ctx: EvaluationContext, definition: AchievementDefinition, exc: Exception
    ) -> None:
        if not isinstance(exc, AchievementEvaluationError):
            exc = AchievementEvaluationError(str(exc), details={"cause": type(exc).__name__})
        self._metrics.increment("achievements_evaluation_failed_total")
        logger.warning(
            "achievement_evaluation_failed",
            extra={
                "user_id": ctx.user_id,
                "achievement_id": definition.achievement_id,
                "action": ctx.action.value,
                "error_code": exc.code,
                "error": str(exc),
            },
        )

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._user_locks[user_id] = lock
            return lock
