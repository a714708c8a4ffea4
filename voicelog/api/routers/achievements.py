"""Achievement catalogue + per-user progress endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ...domain.achievements import AchievementAction
from ...runtime import Runtime
from ..dependencies import get_runtime, get_user_id

router = APIRouter(prefix="/api/achievements", tags=["achievements"])


class CriteriaModel(BaseModel):
    kind: str
    target: int


class ProgressModel(BaseModel):
    current: int
    target: int
    percent: float


class AchievementResponse(BaseModel):
    achievement_id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    criteria: CriteriaModel
    progress: Optional[ProgressModel] = None
    earned_at: Optional[datetime] = None


class EvaluationRequest(BaseModel):
    action: AchievementAction = AchievementAction.ENTRY_CREATED


class EvaluationAccepted(BaseModel):
    status: str = "accepted"
    action: AchievementAction


@router.get("", response_model=List[AchievementResponse])
def list_achievements(
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> List[AchievementResponse]:
    progress_by_id = {row.achievement_id: row for row in runtime.achievement_progress(user_id)}
    items: List[AchievementResponse] = []
    for definition in runtime.definitions.find_all():
        row = progress_by_id.get(definition.achievement_id)
        items.append(
            AchievementResponse(
                achievement_id=definition.achievement_id,
                name=definition.name,
                description=definition.description,
                icon=definition.icon,
                criteria=CriteriaModel(
                    kind=definition.criteria.kind.value, target=definition.criteria.target
                ),
                progress=ProgressModel(**row.progress.to_dict()) if row else None,
                earned_at=row.earned_at if row else None,
            )
        )
    return items


@router.post(
    "/evaluate",
    response_model=EvaluationAccepted,
    status_code=status.HTTP_202_ACCEPTED,
)
def evaluate_achievements(
    payload: EvaluationRequest,
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> EvaluationAccepted:
    runtime.evaluate_achievements(user_id, payload.action)
    return EvaluationAccepted(action=payload.action)
