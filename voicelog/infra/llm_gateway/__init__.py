"""LLM gateway entry points for transcription, insight extraction and summaries."""

from __future__ import annotations

import json
import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import openai

from ...config import load_settings
from . import openai_client, whisper_client

logger = logging.getLogger(__name__)

__all__ = [
    "InsightGatewayError",
    "InsightResponse",
    "PromptSpec",
    "TranscriptionGatewayError",
    "generate_insight_response",
    "generate_summary_text",
    "transcribe_audio",
]

TAGS_PROFILE = "journal_tags_v1"
ANALYSIS_PROFILE = "journal_analysis_v1"
SUMMARY_PROFILE = "journal_summary_v1"

_TAGS_SYSTEM_PROMPT = (
    "You label personal voice-journal entries. Reply with a JSON object "
    '{"tags": [...]} holding at most five short lowercase topic tags.'
)
_ANALYSIS_SYSTEM_PROMPT = (
    "You analyse personal voice-journal entries. Reply with a JSON object "
    '{"sentiment": <integer 1-5>, "topics": [<up to 3 strings>], '
    '"insights": [<up to 3 short observations>]}. 1 is very negative, 5 is very positive.'
)
_SUMMARY_SYSTEM_PROMPT = (
    "Generate a concise summary of these journal entries, highlighting key themes "
    "and important points. Use bullet points for key takeaways."
)

_POSITIVE_WORDS = frozenset(
    {"happy", "great", "good", "grateful", "calm", "excited", "proud", "love", "relaxed", "joy"}
)
_NEGATIVE_WORDS = frozenset(
    {"sad", "tired", "angry", "stressed", "anxious", "bad", "awful", "worried", "lonely", "upset"}
)


@dataclass(frozen=True)
class PromptSpec:
    """Structured prompt sent to a chat provider."""

    system: str
    user: str


@dataclass(frozen=True)
class LlmResult:
    """Raw result returned by the provider drivers."""

    text: str
    model_used: str
    usage: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class InsightResponse:
    """Parsed JSON object returned by an insight profile.

    ``payload`` is unvalidated; callers coerce the fields they need.
    """

    model_used: str
    payload: Dict[str, Any]
    usage: Optional[Dict[str, Any]] = None
    raw_text: Optional[str] = None
    profile: Optional[str] = None


class InsightGatewayError(RuntimeError):
    """Raised when insight or summary LLM operations cannot complete."""

    def __init__(self, message: str, *, code: str, retryable: bool) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable


class TranscriptionGatewayError(RuntimeError):
    """Raised when speech-to-text cannot complete."""

    def __init__(self, message: str, *, code: str, retryable: bool):
        super().__init__(message)
        self.code = code
        self.retryable = retryable


_SETTINGS = load_settings()
_LLM_CONFIG: Dict[str, Any] = dict(_SETTINGS.llm or {})
_LLM_PROFILES: Dict[str, Dict[str, Any]] = {
    key: dict(value or {}) for key, value in (_LLM_CONFIG.get("profiles") or {}).items()
}
_TRANSCRIPTION_CONFIG: Dict[str, Any] = dict(_LLM_CONFIG.get("transcription") or {})
_DEFAULT_PROVIDER = _LLM_CONFIG.get("default_provider", "stub")
_DEFAULT_MODEL = _LLM_CONFIG.get("default_model", "stub-model")
_REQUEST_TIMEOUT = float(_LLM_CONFIG.get("request_timeout_seconds", 30))


def generate_insight_response(
    *,
    profile: str,
    transcript: str,
    correlation_id: Optional[str] = None,
) -> InsightResponse:
    """Run an insight profile (tags or analysis) against a transcript.

    Unknown profiles fall back to the default provider and model.
    """

    text = _normalize_whitespace(transcript)
    if not text:
        raise InsightGatewayError(
            "insight prompt text is empty",
            code="insight_prompt_empty",
            retryable=False,
        )

    provider, model = _resolve_profile(profile)
    prompt = PromptSpec(
        system=_ANALYSIS_SYSTEM_PROMPT if profile == ANALYSIS_PROFILE else _TAGS_SYSTEM_PROMPT,
        user=text,
    )
    logger.debug(
        "insight_llm_request_prepared",
        extra={
            "profile": profile,
            "provider": provider,
            "model": model,
            "correlation_id": correlation_id,
        },
    )

    if provider == "openai":
        llm_result = _call_openai(
            lambda: openai_client.complete_json(
                model=model,
                system=prompt.system,
                user=prompt.user,
                timeout_seconds=_REQUEST_TIMEOUT,
            )
        )
    else:
        if provider != "stub":
            logger.warning(
                "insight_llm_provider_unimplemented",
                extra={"provider": provider, "profile": profile},
            )
        llm_result = _generate_stub_insight(text, provider=provider, model=model, profile=profile)

    return InsightResponse(
        model_used=llm_result.model_used,
        payload=_parse_json_object(llm_result.text),
        usage=llm_result.usage,
        raw_text=llm_result.text,
        profile=profile,
    )


def generate_summary_text(
    transcripts: Sequence[str],
    *,
    profile: str = SUMMARY_PROFILE,
) -> str:
    """Return a prose highlight for a set of same-day transcripts."""

    cleaned = [_normalize_whitespace(item) for item in transcripts]
    cleaned = [item for item in cleaned if item]
    if not cleaned:
        raise InsightGatewayError(
            "no transcripts to summarize",
            code="insight_prompt_empty",
            retryable=False,
        )

    provider, model = _resolve_profile(profile)
    if provider == "openai":
        llm_result = _call_openai(
            lambda: openai_client.complete_text(
                model=model,
                system=_SUMMARY_SYSTEM_PROMPT,
                user="\n\n".join(cleaned),
                timeout_seconds=_REQUEST_TIMEOUT,
            )
        )
        text = llm_result.text
    else:
        text = _build_stub_summary(cleaned)
        logger.info("summary_llm_stub_used", extra={"profile": profile, "entries": len(cleaned)})

    if not text:
        raise InsightGatewayError(
            "summary response was empty",
            code="insight_response_empty",
            retryable=True,
        )
    return text


def _resolve_profile(profile: str) -> tuple[str, str]:
    profile_cfg = _LLM_PROFILES.get(profile) or {}
    provider = profile_cfg.get("provider") or _DEFAULT_PROVIDER
    model = profile_cfg.get("model") or _DEFAULT_MODEL
    return str(provider), str(model)


def _call_openai(request) -> LlmResult:
    try:
        result = request()
    except openai.APITimeoutError as exc:
        raise InsightGatewayError(str(exc), code="llm_timeout", retryable=True) from exc
    except openai.APIConnectionError as exc:
        raise InsightGatewayError(str(exc), code="llm_unavailable", retryable=True) from exc
    except openai.RateLimitError as exc:
        raise InsightGatewayError(str(exc), code="llm_rate_limited", retryable=True) from exc
    except openai.APIStatusError as exc:
        retryable = exc.status_code >= 500
        raise InsightGatewayError(
            str(exc),
            code="llm_unavailable" if retryable else "llm_request_rejected",
            retryable=retryable,
        ) from exc
    return LlmResult(text=result.text, model_used=result.model_used, usage=result.usage)


def _parse_json_object(raw_text: str) -> Dict[str, Any]:
    if not raw_text or not raw_text.strip():
        raise InsightGatewayError(
            "insight response was empty",
            code="insight_response_empty",
            retryable=True,
        )
    try:
        payload = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise InsightGatewayError(
            "insight response is not valid JSON",
            code="insight_response_invalid_json",
            retryable=False,
        ) from exc
    if not isinstance(payload, dict):
        raise InsightGatewayError(
            "insight response payload must be a JSON object",
            code="insight_response_invalid_payload",
            retryable=False,
        )
    return payload


def _generate_stub_insight(text: str, *, provider: str, model: str, profile: str) -> LlmResult:
    tags = _build_stub_tags(text)
    payload = {
        "tags": tags,
        "sentiment": _build_stub_sentiment(text),
        "topics": tags[:3],
        "insights": [textwrap.shorten(text, width=120, placeholder="...")],
    }
    logger.info(
        "insight_llm_stub_used",
        extra={"profile": profile, "provider": provider, "model": model},
    )
    return LlmResult(
        text=json.dumps(payload, ensure_ascii=False),
        model_used=f"{provider or 'stub'}:{model}",
        usage={"profile": profile, "mode": "stub", "chars": len(text)},
    )


def _normalize_whitespace(text: str) -> str:
    collapsed = re.sub(r"\s+", " ", text or "")
    return collapsed.strip()


def _build_stub_tags(text: str) -> List[str]:
    seen: set[str] = set()
    tags: List[str] = []
    for word in re.findall(r"[A-Za-z0-9]+", text or ""):
        lowered = word.lower()
        if len(lowered) < 4 or lowered in seen:
            continue
        seen.add(lowered)
        tags.append(lowered)
        if len(tags) >= 5:
            break
    return tags or ["journal"]


def _build_stub_sentiment(text: str) -> int:
    words = re.findall(r"[a-z]+", (text or "").lower())
    score = sum(1 for word in words if word in _POSITIVE_WORDS)
    score -= sum(1 for word in words if word in _NEGATIVE_WORDS)
    return max(1, min(5, 3 + score))


def _build_stub_summary(transcripts: Sequence[str]) -> str:
    bullets = [
        f"- {textwrap.shorten(item, width=160, placeholder='...')}" for item in transcripts[:5]
    ]
    return "\n".join(bullets)


def transcribe_audio(
    audio_bytes: bytes,
    *,
    mime_type: str,
    language_hint: Optional[str] = None,
    profile: str = "transcribe_v1",
) -> Dict[str, object]:
    """Turn an in-memory recording into text.

    Routes to local Whisper when enabled, to OpenAI when the transcription
    provider is ``openai``, and to a deterministic stub otherwise.
    """

    provider = str(_TRANSCRIPTION_CONFIG.get("provider") or "stub")
    if whisper_client.is_available() or provider == "whisper":
        return _transcribe_with_whisper(audio_bytes, language_hint=language_hint)
    if provider == "openai":
        return _transcribe_with_openai(
            audio_bytes, mime_type=mime_type, language_hint=language_hint
        )

    logger.debug("transcription_stub_used", extra={"profile": profile, "bytes": len(audio_bytes)})
    return _stub_transcription(audio_bytes, language_hint=language_hint, profile=profile)


def _transcribe_with_whisper(
    audio_bytes: bytes, *, language_hint: Optional[str]
) -> Dict[str, object]:
    try:
        result = whisper_client.transcribe_bytes(audio_bytes)
    except ValueError as exc:
        raise TranscriptionGatewayError(
            str(exc), code="unsupported_format", retryable=False
        ) from exc
    except TimeoutError as exc:
        raise TranscriptionGatewayError(str(exc), code="llm_timeout", retryable=True) from exc
    except RuntimeError as exc:
        raise TranscriptionGatewayError(
            str(exc), code="transcription_unavailable", retryable=True
        ) from exc

    duration_ms = int(result.duration * 1000) if result.duration is not None else 0
    return {
        "text": result.text,
        "language": result.language or language_hint or "und",
        "model": result.model_id,
        "duration_ms": duration_ms,
    }


def _transcribe_with_openai(
    audio_bytes: bytes, *, mime_type: str, language_hint: Optional[str]
) -> Dict[str, object]:
    model = str(_TRANSCRIPTION_CONFIG.get("model") or "whisper-1")
    try:
        text = openai_client.transcribe_bytes(
            audio_bytes,
            mime_type=mime_type,
            model=model,
            timeout_seconds=_REQUEST_TIMEOUT,
            language_hint=language_hint,
        )
    except openai.BadRequestError as exc:
        raise TranscriptionGatewayError(
            str(exc), code="unsupported_format", retryable=False
        ) from exc
    except openai.APITimeoutError as exc:
        raise TranscriptionGatewayError(str(exc), code="llm_timeout", retryable=True) from exc
    except openai.APIConnectionError as exc:
        raise TranscriptionGatewayError(
            str(exc), code="transcription_unavailable", retryable=True
        ) from exc
    except openai.RateLimitError as exc:
        raise TranscriptionGatewayError(
            str(exc), code="llm_rate_limited", retryable=True
        ) from exc
    except openai.APIStatusError as exc:
        raise TranscriptionGatewayError(
            str(exc), code="transcription_unavailable", retryable=exc.status_code >= 500
        ) from exc

    return {
        "text": text,
        "language": language_hint or "und",
        "model": f"openai:{model}",
        "duration_ms": 0,
    }


def _stub_transcription(
    audio_bytes: bytes, *, language_hint: Optional[str], profile: str
) -> Dict[str, object]:
    try:
        decoded = audio_bytes.decode("utf-8")
    except UnicodeDecodeError:
        decoded = ""
    normalized = _normalize_whitespace(decoded)
    text = normalized if normalized.isprintable() else ""
    return {
        "text": text or f"Voice note of {len(audio_bytes)} bytes",
        "language": language_hint or "und",
        "model": f"stub::{profile}",
        "duration_ms": 0,
    }
