"""OpenAI driver for the LLM gateway (chat completions + audio transcription)."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from openai import OpenAI

from ..logging import get_logger

logger = get_logger(__name__)

_CLIENT_LOCK = threading.Lock()
_CLIENTS: Dict[float, OpenAI] = {}
_MIME_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "mp4",
    "audio/m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
}


@dataclass(frozen=True)
class CompletionResult:
    text: str
    model_used: str
    usage: Optional[Dict[str, Any]] = None


def get_client(timeout_seconds: float) -> OpenAI:
    """Return a shared client; the API key comes from ``OPENAI_API_KEY``."""

    with _CLIENT_LOCK:
        client = _CLIENTS.get(timeout_seconds)
        if client is None:
            client = OpenAI(
                api_key=os.getenv("OPENAI_API_KEY"),
                timeout=timeout_seconds,
                max_retries=0,
            )
            _CLIENTS[timeout_seconds] = client
        return client


def complete_json(
    *,
    model: str,
    system: str,
    user: str,
    timeout_seconds: float,
    temperature: float = 0.3,
    max_tokens: int = 500,
) -> CompletionResult:
    """Run a chat completion constrained to a JSON object response."""

    client = get_client(timeout_seconds)
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        response_format={"type": "json_object"},
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return _to_result(response, model)


def complete_text(
    *,
    model: str,
    system: str,
    user: str,
    timeout_seconds: float,
    temperature: float = 0.7,
    max_tokens: int = 500,
) -> CompletionResult:
    client = get_client(timeout_seconds)
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return _to_result(response, model)


def transcribe_bytes(
    audio_bytes: bytes,
    *,
    mime_type: str,
    model: str,
    timeout_seconds: float,
    language_hint: Optional[str] = None,
) -> str:
    client = get_client(timeout_seconds)
    extension = _MIME_EXTENSIONS.get(mime_type, "webm")
    kwargs: Dict[str, Any] = {
        "model": model,
        "file": (f"recording.{extension}", audio_bytes, mime_type),
    }
    if language_hint:
        kwargs["language"] = language_hint
    transcription = client.audio.transcriptions.create(**kwargs)
    return (transcription.text or "").strip()


def _to_result(response: Any, requested_model: str) -> CompletionResult:
    choices = getattr(response, "choices", None) or []
    text = ""
    if choices:
        text = (choices[0].message.content or "").strip()
    usage = getattr(response, "usage", None)
    usage_dict = usage.model_dump() if usage is not None else None
    return CompletionResult(
        text=text,
        model_used=f"openai:{getattr(response, 'model', None) or requested_model}",
        usage=usage_dict,
    )
