"""Daily summary endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ...domain.summaries import DailySummary
from ...runtime import Runtime
from ..dependencies import get_runtime, get_user_id
from ..errors import http_error

router = APIRouter(prefix="/api/summaries", tags=["summaries"])


class DailySummaryResponse(BaseModel):
    day: date
    highlight_text: str
    entry_count: int
    updated_at: datetime


def _to_response(summary: DailySummary) -> DailySummaryResponse:
    return DailySummaryResponse(
        day=summary.day,
        highlight_text=summary.highlight_text,
        entry_count=summary.entry_count,
        updated_at=summary.updated_at,
    )


@router.get("/daily", response_model=List[DailySummaryResponse])
def list_daily_summaries(
    day: Optional[date] = Query(default=None),
    limit: int = Query(default=30, ge=1, le=365),
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> List[DailySummaryResponse]:
    """Most recent days first, or the single requested ``day``."""

    if day is not None:
        summary = runtime.summaries.get(user_id, day)
        if summary is None:
            raise http_error(
                status.HTTP_404_NOT_FOUND,
                "summary_not_found",
                f"No summary for {day.isoformat()}",
                {"day": day.isoformat()},
            )
        return [_to_response(summary)]
    return [_to_response(item) for item in runtime.summaries.list_for_user(user_id, limit=limit)]
