"""Background achievement evaluation."""

from __future__ import annotations

from typing import Any, Dict

from voicelog.domain.achievements import AchievementAction, AchievementEngine
from voicelog.infra.logging import get_logger

logger = get_logger(__name__)


def handle(payload: Dict[str, Any], *, engine: AchievementEngine) -> None:
    user_id = payload.get("user_id")
    if not user_id:
        raise ValueError("achievement payload missing user_id")
    action = AchievementAction(payload.get("action", AchievementAction.ENTRY_CREATED.value))

    written = engine.evaluate(user_id, action)
    logger.debug(
        "achievement_job_completed",
        extra={
            "user_id": user_id,
            "action": action.value,
            "rows_written": len(written),
            "entry_id": payload.get("entry_id"),
        },
    )
