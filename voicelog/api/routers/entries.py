"""Entry ingestion, listing and export endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from ...domain.entries import EXPORT_FILENAME, Entry, render_entries_export
from ...domain.errors import IngestionError
from ...infra.logging import get_logger
from ...infra.metrics import get_metrics_client
from ...runtime import Runtime
from ..dependencies import get_runtime, get_user_id
from ..errors import to_http_error

router = APIRouter(prefix="/api/entries", tags=["entries"])
logger = get_logger(__name__)
metrics = get_metrics_client()
MAX_SEARCH_LENGTH = 256
MAX_PAGE_SIZE = 200


class AiAnalysisModel(BaseModel):
    sentiment: int = Field(ge=1, le=5)
    topics: List[str] = Field(default_factory=list)
    insights: List[str] = Field(default_factory=list)


class EntryResponse(BaseModel):
    entry_id: str
    user_id: str
    audio_url: str
    transcript: Optional[str] = None
    duration_seconds: int
    created_at: datetime
    tags: List[str] = Field(default_factory=list)
    ai_analysis: Optional[AiAnalysisModel] = None


def _entry_response(entry: Entry) -> EntryResponse:
    analysis = entry.ai_analysis
    return EntryResponse(
        entry_id=entry.entry_id,
        user_id=entry.user_id,
        audio_url=entry.audio_url,
        transcript=entry.transcript,
        duration_seconds=entry.duration_seconds,
        created_at=entry.created_at,
        tags=list(entry.tags),
        ai_analysis=(
            AiAnalysisModel(
                sentiment=analysis.sentiment,
                topics=list(analysis.topics),
                insights=list(analysis.insights),
            )
            if analysis is not None
            else None
        ),
    )


@router.post("", response_model=EntryResponse, status_code=status.HTTP_201_CREATED)
async def create_entry(
    request: Request,
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> EntryResponse:
    """Ingest a raw audio body; ``Content-Type`` carries the recording's MIME type."""

    audio_bytes = await request.body()
    mime_type = request.headers.get("content-type", "")
    try:
        entry = await run_in_threadpool(
            runtime.pipeline.ingest, audio_bytes, mime_type, user_id
        )
    except IngestionError as exc:
        metrics.increment("entries_api_ingest_failed_total")
        raise to_http_error(exc) from exc
    return _entry_response(entry)


@router.get("", response_model=List[EntryResponse])
def list_entries(
    search: Optional[str] = Query(default=None, max_length=MAX_SEARCH_LENGTH),
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> List[EntryResponse]:
    """Newest first; ``search`` matches transcripts case-insensitively."""

    entries = runtime.entries.find_all_by_user(user_id)
    needle = (search or "").strip().lower()
    if needle:
        entries = [entry for entry in entries if needle in (entry.transcript or "").lower()]
    return [_entry_response(entry) for entry in entries[offset : offset + limit]]


@router.get("/export", response_class=PlainTextResponse)
def export_entries(
    user_id: str = Depends(get_user_id),
    runtime: Runtime = Depends(get_runtime),
) -> PlainTextResponse:
    entries = runtime.entries.find_all_by_user(user_id)
    logger.info("entries_exported", extra={"user_id": user_id, "entries": len(entries)})
    return PlainTextResponse(
        render_entries_export(entries),
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )
