"""Tag catalogue endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...domain.entries import list_user_tags
from ...runtime import Runtime
from ..dependencies import get_runtime, get_user_id

router = APIRouter(prefix="/api/tags", tags=["tags"])


class TagResponse(BaseModel):
    name: str
    entry_count: int
    first_used_at: datetime
    last_used_at: datetime


@router.get("", response_model=List[TagResponse])
def list_tags(
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> List[TagResponse]:
    """The caller's tags, most recently introduced first."""

    return [
        TagResponse(
            name=tag.name,
            entry_count=tag.entry_count,
            first_used_at=tag.first_used_at,
            last_used_at=tag.last_used_at,
        )
        for tag in list_user_tags(runtime.entries.find_all_by_user(user_id))
    ]
