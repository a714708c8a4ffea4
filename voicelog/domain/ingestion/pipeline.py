"""Audio submission → transcript → persisted, enriched entry."""

from __future__ import annotations

import base64
import math
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

from ...config.loader import IngestionConfig
from ...infra.cache import TRANSCRIPTION_PREFIX, ResultCache, audio_digest, build_cache_key
from ...infra.jobqueue import JobQueueAdapter
from ...infra.llm_gateway import TranscriptionGatewayError, transcribe_audio
from ...infra.logging import get_logger
from ...infra.metrics import MetricsClient, get_metrics_client
from ...jobs import JOB_ENRICH_ENTRY, JOB_EVALUATE_ACHIEVEMENTS, JOB_REFRESH_DAILY_SUMMARY
from ..achievements.types import AchievementAction
from ..entries.gateway import EntryRepository
from ..entries.models import Entry
from ..errors import (
    TranscriptionError,
    TranscriptionUnavailableError,
    UnsupportedAudioFormatError,
    ValidationError,
)
from ..insights.enrichment import enrich_entry
from ..insights.generator import InsightGenerator

__all__ = [
    "IngestionPipeline",
    "LlmGatewayTranscriptionClient",
    "TranscriptionClient",
    "TranscriptionOutput",
    "build_data_url",
    "estimate_duration_seconds",
    "normalize_mime_type",
]

logger = get_logger(__name__)

AudioUrlBuilder = Callable[[bytes, str], str]


@dataclass
class TranscriptionOutput:
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class TranscriptionClient(Protocol):
    def transcribe(self, audio_bytes: bytes, *, mime_type: str) -> TranscriptionOutput: ...


class LlmGatewayTranscriptionClient:
    """Adapts the gateway's error codes to the ingestion error taxonomy."""

    def transcribe(self, audio_bytes: bytes, *, mime_type: str) -> TranscriptionOutput:
        try:
            response = transcribe_audio(audio_bytes, mime_type=mime_type)
        except TranscriptionGatewayError as exc:
            if exc.code == "unsupported_format":
                raise UnsupportedAudioFormatError(str(exc), code=exc.code) from exc
            raise TranscriptionUnavailableError(
                str(exc), code=exc.code, retryable=exc.retryable
            ) from exc
        return TranscriptionOutput(
            text=str(response.get("text") or "").strip(),
            metadata={
                "language": response.get("language"),
                "model": response.get("model"),
                "duration_ms": response.get("duration_ms"),
            },
        )


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """``audio/webm;codecs=opus`` → ``audio/webm``."""

    return (mime_type or "").split(";", 1)[0].strip().lower()


def estimate_duration_seconds(byte_length: int, bit_rate: int) -> int:
    """Approximate duration assuming a constant encoder bit rate.

    Variable bit rate recordings will drift from their decoded length.
    """

    if byte_length <= 0:
        raise ValueError("byte_length must be positive")
    if bit_rate <= 0:
        raise ValueError("bit_rate must be positive")
    return math.ceil(byte_length * 8 / bit_rate)


def build_data_url(audio_bytes: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(audio_bytes).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class IngestionPipeline:
    """Validate, transcribe and persist a recording, then hand off enrichment.

    Only ``ValidationError`` and ``TranscriptionError`` escape ``ingest``;
    nothing is persisted when either is raised.
    """

    def __init__(
        self,
        *,
        repository: EntryRepository,
        transcriber: TranscriptionClient,
        cache: ResultCache,
        generator: InsightGenerator,
        jobqueue: JobQueueAdapter,
        config: Optional[IngestionConfig] = None,
        audio_url_builder: AudioUrlBuilder = build_data_url,
        metrics: Optional[MetricsClient] = None,
    ) -> None:
        self._repository = repository
        self._transcriber = transcriber
        self._cache = cache
        self._generator = generator
        self._jobqueue = jobqueue
        self._config = config or IngestionConfig()
        self._audio_url_builder = audio_url_builder
        self._metrics = metrics or get_metrics_client()
        self._allowed_mime_types = frozenset(self._config.allowed_mime_types)

    def ingest(self, audio_bytes: bytes, mime_type: str, user_id: str) -> Entry:
        start_clock = time.perf_counter()
        normalized_mime = self._validate(audio_bytes, mime_type, user_id)
        duration = estimate_duration_seconds(len(audio_bytes), self._config.assumed_bit_rate)

        transcript = self._transcribe(audio_bytes, normalized_mime, user_id)

        entry = self._repository.create(
            user_id=user_id,
            audio_url=self._audio_url_builder(audio_bytes, normalized_mime),
            duration_seconds=duration,
            transcript=transcript,
        )

        if self._config.inline_enrichment:
            entry = self._enrich_inline(entry)
        else:
            self._dispatch(JOB_ENRICH_ENTRY, entry)
        self._dispatch(
            JOB_EVALUATE_ACHIEVEMENTS,
            entry,
            action=AchievementAction.ENTRY_CREATED.value,
        )
        self._dispatch(JOB_REFRESH_DAILY_SUMMARY, entry, day=entry.created_at.date().isoformat())

        processing_ms = max(0, int((time.perf_counter() - start_clock) * 1000))
        self._metrics.increment("ingestion_completed_total")
        self._metrics.observe("ingestion_processing_ms", processing_ms)
        logger.info(
            "ingestion_completed",
            extra={
                "entry_id": entry.entry_id,
                "user_id": user_id,
                "mime_type": normalized_mime,
                "bytes": len(audio_bytes),
                "duration_seconds": duration,
                "tag_count": len(entry.tags),
                "processing_ms": processing_ms,
            },
        )
        return entry

    def _validate(self, audio_bytes: bytes, mime_type: str, user_id: str) -> str:
        if not user_id or not str(user_id).strip():
            self._reject("user_id_missing", "a user id is required", user_id=user_id)
        if not audio_bytes:
            self._reject("audio_empty", "audio payload is empty", user_id=user_id)
        if len(audio_bytes) > self._config.max_audio_bytes:
            self._reject(
                "audio_too_large",
                f"audio payload exceeds {self._config.max_audio_bytes} bytes",
                user_id=user_id,
                bytes=len(audio_bytes),
                max_bytes=self._config.max_audio_bytes,
            )
        normalized = normalize_mime_type(mime_type)
        if normalized not in self._allowed_mime_types:
            self._reject(
                "unsupported_mime_type",
                f"mime type '{mime_type}' is not an accepted audio type",
                user_id=user_id,
                mime_type=mime_type,
                allowed=sorted(self._allowed_mime_types),
            )
        return normalized

    def _reject(self, code: str, message: str, **details: Any) -> None:
        self._metrics.increment("ingestion_rejected_total")
        logger.info("ingestion_rejected", extra={"error_code": code, **details})
        raise ValidationError(message, code=code, details=details)

    def _transcribe(self, audio_bytes: bytes, mime_type: str, user_id: str) -> str:
        key = build_cache_key(TRANSCRIPTION_PREFIX, audio_digest(audio_bytes))
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("transcription_cache_hit", extra={"user_id": user_id})
            return cached

        try:
            output = self._transcriber.transcribe(audio_bytes, mime_type=mime_type)
        except TranscriptionError as exc:
            self._log_transcription_failure(exc, user_id, mime_type)
            raise
        except TimeoutError as exc:
            self._log_transcription_failure(exc, user_id, mime_type)
            raise TranscriptionUnavailableError(
                "speech service timed out", code="transcription_timeout"
            ) from exc

        self._cache.set(key, output.text)
        return output.text

    def _log_transcription_failure(
        self, exc: Exception, user_id: str, mime_type: str
    ) -> None:
        self._metrics.increment("ingestion_transcription_failed_total")
        logger.warning(
            "transcription_failed",
            extra={
                "user_id": user_id,
                "mime_type": mime_type,
                "error_code": getattr(exc, "code", type(exc).__name__),
                "retryable": getattr(exc, "retryable", True),
                "error": str(exc),
            },
        )

    def _enrich_inline(self, entry: Entry) -> Entry:
        try:
            return enrich_entry(
                entry.entry_id,
                repository=self._repository,
                generator=self._generator,
                jobqueue=self._jobqueue,
            )
        except Exception:
            logger.exception(
                "inline_enrichment_failed",
                extra={"entry_id": entry.entry_id, "user_id": entry.user_id},
            )
            return entry

    def _dispatch(self, job_type: str, entry: Entry, **extra_payload: Any) -> None:
        payload = {"entry_id": entry.entry_id, "user_id": entry.user_id, **extra_payload}
        try:
            self._jobqueue.enqueue(job_type, payload)
        except Exception:
            logger.exception(
                "background_job_dispatch_failed",
                extra={"job_type": job_type, "entry_id": entry.entry_id},
            )
