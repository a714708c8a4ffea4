"""Journal entry data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

__all__ = [
    "AiAnalysis",
    "Entry",
    "NEUTRAL_SENTIMENT",
    "utcnow",
]

NEUTRAL_SENTIMENT = 3
MIN_SENTIMENT = 1
MAX_SENTIMENT = 5


def utcnow() -> datetime:
    """Return timezone-aware UTC timestamp."""

    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AiAnalysis:
    """Validated LLM analysis attached to an entry."""

    sentiment: int = NEUTRAL_SENTIMENT
    topics: List[str] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)

    @classmethod
    def neutral(cls) -> "AiAnalysis":
        return cls()

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> Optional["AiAnalysis"]:
        if not payload:
            return None
        return cls(
            sentiment=int(payload.get("sentiment", NEUTRAL_SENTIMENT)),
            topics=[str(item) for item in payload.get("topics") or []],
            insights=[str(item) for item in payload.get("insights") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentiment": self.sentiment,
            "topics": list(self.topics),
            "insights": list(self.insights),
        }


@dataclass(frozen=True)
class Entry:
    """A persisted journal entry.

    ``duration_seconds`` and ``created_at`` never change after creation; tags
    and analysis are filled in asynchronously by the enrichment worker.
    """

    entry_id: str
    user_id: str
    audio_url: str
    duration_seconds: int
    created_at: datetime
    updated_at: datetime
    transcript: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    ai_analysis: Optional[AiAnalysis] = None

    @classmethod
    def new(
        cls,
        *,
        user_id: str,
        audio_url: str,
        duration_seconds: int,
        transcript: Optional[str] = None,
        entry_id: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> "Entry":
        created = timestamp or utcnow()
        return cls(
            entry_id=entry_id or str(uuid4()),
            user_id=user_id,
            audio_url=audio_url,
            duration_seconds=duration_seconds,
            created_at=created,
            updated_at=created,
            transcript=transcript,
        )

    @property
    def sentiment(self) -> Optional[int]:
        return self.ai_analysis.sentiment if self.ai_analysis else None
