"""Translate domain errors into HTTP error payloads."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

from ..domain.errors import (
    AnalyticsComputationError,
    TranscriptionUnavailableError,
    UnsupportedAudioFormatError,
    ValidationError,
    VoiceLogError,
)

_VALIDATION_STATUS = {
    "audio_too_large": status.HTTP_413_CONTENT_TOO_LARGE,
    "unsupported_mime_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
}


def http_error(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={
            "error_code": error_code,
            "message": message,
            "details": details or {},
        },
    )


def to_http_error(exc: VoiceLogError) -> HTTPException:
    if isinstance(exc, ValidationError):
        status_code = _VALIDATION_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST)
    elif isinstance(exc, UnsupportedAudioFormatError):
        status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    elif isinstance(exc, TranscriptionUnavailableError):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, AnalyticsComputationError) and exc.code == "analytics_timeout":
        status_code = status.HTTP_504_GATEWAY_TIMEOUT
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    details = dict(exc.details)
    details.setdefault("retryable", exc.retryable)
    return http_error(status_code, exc.code, exc.message, details)
