"""Error taxonomy shared by the ingestion, insight, achievement and analytics layers."""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "AchievementEvaluationError",
    "AnalyticsComputationError",
    "EnrichmentError",
    "IngestionError",
    "TranscriptionError",
    "TranscriptionUnavailableError",
    "UnsupportedAudioFormatError",
    "ValidationError",
    "VoiceLogError",
]


class VoiceLogError(Exception):
    """Base error carrying a machine-readable ``code`` and a ``retryable`` hint."""

    default_code = "internal_error"
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        retryable: Optional[bool] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        self.details: Dict[str, Any] = dict(details or {})


class IngestionError(VoiceLogError):
    default_code = "ingestion_failed"


class ValidationError(IngestionError):
    """Submission rejected before any external call; never retryable."""

    default_code = "validation_failed"

    def __init__(self, message: str, *, code: Optional[str] = None, details=None) -> None:
        super().__init__(message, code=code, retryable=False, details=details)


class TranscriptionError(IngestionError):
    default_code = "transcription_failed"


class UnsupportedAudioFormatError(TranscriptionError):
    """The speech service could not decode the audio; the client must fix it."""

    default_code = "unsupported_format"
    default_retryable = False


class TranscriptionUnavailableError(TranscriptionError):
    """Transient speech service failure or timeout; callers may retry."""

    default_code = "transcription_unavailable"
    default_retryable = True


class EnrichmentError(VoiceLogError):
    """Tagging or analysis failed. Converted to defaults inside the generator."""

    default_code = "enrichment_failed"
    default_retryable = True


class AchievementEvaluationError(VoiceLogError):
    default_code = "achievement_evaluation_failed"


class AnalyticsComputationError(VoiceLogError):
    default_code = "analytics_failed"
    default_retryable = True
