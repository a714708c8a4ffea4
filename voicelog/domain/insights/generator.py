"""Cached, best-effort tag and analysis extraction for journal transcripts."""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence

from ...config.loader import InsightsConfig
from ...infra import llm_gateway
from ...infra.cache import ANALYSIS_PREFIX, SUMMARY_PREFIX, TAGS_PREFIX, ResultCache, build_cache_key
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ..entries.models import MAX_SENTIMENT, MIN_SENTIMENT, AiAnalysis
from ..errors import EnrichmentError

__all__ = ["InsightGenerator", "InsightResponder", "SummaryWriter"]

logger = get_logger(__name__)

MAX_TAG_LENGTH = 32
MAX_TOPICS = 3
MAX_INSIGHTS = 3

InsightResponder = Callable[..., llm_gateway.InsightResponse]
SummaryWriter = Callable[[Sequence[str]], str]


class InsightGenerator:
    """Derive tags and an analysis block from transcript text.

    Results are cached per producer on the first ``cache_key_chars``
    characters of the transcript, so two transcripts sharing that prefix
    share a cache slot until it expires. Public methods never raise: any
    provider or validation failure is logged and replaced by a default.
    """

    def __init__(
        self,
        *,
        cache: ResultCache,
        config: Optional[InsightsConfig] = None,
        responder: Optional[InsightResponder] = None,
        summary_writer: Optional[SummaryWriter] = None,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self._cache = cache
        self._config = config or InsightsConfig()
        self._responder = responder or llm_gateway.generate_insight_response
        self._summary_writer = summary_writer or llm_gateway.generate_summary_text
        self._metrics = metrics or get_metrics_client()

    def generate_tags(self, transcript: Any) -> List[str]:
        text = _usable_text(transcript)
        if text is None:
            return []
        key = self._key(TAGS_PREFIX, text)
        cached = self._cache.get(key)
        if cached is not None:
            self._metrics.increment("insights_cache_hit_total")
            return list(cached)

        self._metrics.increment("insights_cache_miss_total")
        try:
            response = self._responder(profile=llm_gateway.TAGS_PROFILE, transcript=text)
            tags = self._validate_tags(response.payload.get("tags"))
        except Exception as exc:
            self._log_failure("tags", exc)
            return []

        self._cache.set(key, tuple(tags), ttl_seconds=self._config.ttl_seconds)
        return tags

    def analyze_content(self, transcript: Any) -> AiAnalysis:
        analysis = self.try_analyze_content(transcript)
        return analysis if analysis is not None else AiAnalysis.neutral()

    def try_analyze_content(self, transcript: Any) -> Optional[AiAnalysis]:
        """Like ``analyze_content`` but returns ``None`` instead of the neutral default."""

        text = _usable_text(transcript)
        if text is None:
            return None
        key = self._key(ANALYSIS_PREFIX, text)
        cached = self._cache.get(key)
        if cached is not None:
            self._metrics.increment("insights_cache_hit_total")
            return AiAnalysis.from_dict(cached)

        self._metrics.increment("insights_cache_miss_total")
        try:
            response = self._responder(profile=llm_gateway.ANALYSIS_PROFILE, transcript=text)
            analysis = _validate_analysis(response.payload)
        except Exception as exc:
            self._log_failure("analysis", exc)
            return None

        self._cache.set(key, analysis.to_dict(), ttl_seconds=self._config.ttl_seconds)
        return analysis

    def summarize_day(
        self, user_id: str, day: date, transcripts: Sequence[str]
    ) -> Optional[str]:
        texts = [text for text in (_usable_text(item) for item in transcripts) if text]
        if not texts:
            return None
        key = build_cache_key(SUMMARY_PREFIX, f"{user_id}:{day.isoformat()}:{len(texts)}")
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            summary = (self._summary_writer(texts) or "").strip()
        except Exception as exc:
            self._log_failure("summary", exc, user_id=user_id)
            return None
        if not summary:
            return None
        self._cache.set(key, summary, ttl_seconds=self._config.ttl_seconds)
        return summary

    def _key(self, prefix: str, text: str) -> str:
        return build_cache_key(prefix, text[: self._config.cache_key_chars])

    def _validate_tags(self, raw: Any) -> List[str]:
        if isinstance(raw, str):
            raw = raw.split(",")
        if not isinstance(raw, list):
            raise EnrichmentError("tags must be a list of strings", code="tags_invalid")
        tags: List[str] = []
        for item in raw:
            if not isinstance(item, str):
                continue
            cleaned = " ".join(item.split()).lower()
            if not cleaned or len(cleaned) > MAX_TAG_LENGTH or cleaned in tags:
                continue
            tags.append(cleaned)
            if len(tags) >= self._config.max_tags:
                break
        if not tags:
            raise EnrichmentError("no usable tags in response", code="tags_empty")
        return tags

    def _log_failure(self, producer: str, exc: Exception, **fields: Any) -> None:
        self._metrics.increment("insights_failure_total")
        logger.warning(
            "insight_generation_failed",
            extra={
                "producer": producer,
                "error_code": getattr(exc, "code", type(exc).__name__),
                "error": str(exc),
                **fields,
            },
        )


def _usable_text(transcript: Any) -> Optional[str]:
    if not isinstance(transcript, str):
        return None
    stripped = transcript.strip()
    return stripped or None


def _validate_analysis(payload: Dict[str, Any]) -> AiAnalysis:
    return AiAnalysis(
        sentiment=_coerce_sentiment(payload.get("sentiment")),
        topics=_coerce_strings(payload.get("topics"), MAX_TOPICS),
        insights=_coerce_strings(payload.get("insights"), MAX_INSIGHTS),
    )


def _coerce_sentiment(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise EnrichmentError("sentiment missing", code="sentiment_invalid")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise EnrichmentError(
            f"sentiment {value!r} is not numeric", code="sentiment_invalid"
        ) from exc
    if not math.isfinite(number):
        raise EnrichmentError("sentiment is not finite", code="sentiment_invalid")
    return max(MIN_SENTIMENT, min(MAX_SENTIMENT, int(round(number))))


def _coerce_strings(value: Any, limit: int) -> List[str]:
    if not isinstance(value, list):
        return []
    cleaned: List[str] = []
    for item in value:
        if isinstance(item, str) and item.strip():
            cleaned.append(item.strip())
        if len(cleaned) >= limit:
            break
    return cleaned
