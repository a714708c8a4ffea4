"""Local speech-to-text for journal recordings via faster-whisper (``whisper`` extra)."""

from __future__ import annotations

import io
import os
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from voicelog.config import DEFAULT_WHISPER_CONFIG, load_settings
from voicelog.infra.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported lazily at runtime
    from faster_whisper import WhisperModel


logger = get_logger(__name__)

ENABLE_ENV_VAR = "VOICELOG_WHISPER_ENABLED"
_TRUTHY = frozenset({"1", "true", "yes", "on"})

_MODEL_LOCK = threading.Lock()
_loaded_model: Optional["WhisperModel"] = None
_loaded_key: Optional[tuple[str, str, str]] = None
_options_override: Optional["WhisperOptions"] = None


@dataclass(frozen=True)
class WhisperOptions:
    """Model selection and decode knobs read from ``llm.whisper``."""

    enabled: bool = False
    model_id: str = DEFAULT_WHISPER_CONFIG["model_id"]
    device: str = DEFAULT_WHISPER_CONFIG["device"]
    compute_type: str = DEFAULT_WHISPER_CONFIG["compute_type"]
    beam_size: Optional[int] = DEFAULT_WHISPER_CONFIG["beam_size"]
    language: Optional[str] = None
    vad_enabled: bool = False
    initial_prompt: Optional[str] = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "WhisperOptions":
        merged = {**DEFAULT_WHISPER_CONFIG, **{k: v for k, v in raw.items() if v is not None}}
        beam_size = merged.get("beam_size")
        return cls(
            enabled=bool(merged.get("enabled")),
            model_id=str(merged["model_id"]),
            device=str(merged["device"]),
            compute_type=str(merged["compute_type"]),
            beam_size=int(beam_size) if beam_size is not None else None,
            language=merged.get("language") or None,
            vad_enabled=bool(merged.get("vad_enabled")),
            initial_prompt=merged.get("initial_prompt") or None,
        )

    @property
    def model_key(self) -> tuple[str, str, str]:
        return (self.model_id, self.device, self.compute_type)

    def decode_kwargs(self) -> Dict[str, object]:
        kwargs: Dict[str, object] = {}
        if self.beam_size is not None:
            kwargs["beam_size"] = self.beam_size
        if self.language:
            kwargs["language"] = self.language
        if self.initial_prompt:
            kwargs["initial_prompt"] = self.initial_prompt
        if self.vad_enabled:
            kwargs["vad_filter"] = True
        return kwargs


@dataclass
class WhisperSegment:
    start: float
    end: float
    text: str


@dataclass
class WhisperResult:
    """Transcript plus the metadata the gateway reports back."""

    text: str
    segments: List[WhisperSegment] = field(default_factory=list)
    language: Optional[str] = None
    duration: Optional[float] = None
    model_id: str = DEFAULT_WHISPER_CONFIG["model_id"]


def current_options() -> WhisperOptions:
    global _options_override
    if _options_override is None:
        configured = (load_settings().llm or {}).get("whisper") or {}
        _options_override = WhisperOptions.from_mapping(configured)
    return _options_override


def is_available() -> bool:
    """``VOICELOG_WHISPER_ENABLED`` wins when set; otherwise the profile decides."""

    raw = (os.getenv(ENABLE_ENV_VAR) or "").strip().lower()
    if raw:
        return raw in _TRUTHY
    return current_options().enabled


def transcribe_bytes(audio_bytes: bytes) -> WhisperResult:
    """Transcribe an in-memory recording.

    Undecodable containers surface as ``ValueError`` (PyAV's
    ``InvalidDataError`` subclasses it); a missing install or disabled
    driver is a ``RuntimeError``.
    """

    if not is_available():
        raise RuntimeError("local Whisper transcription is disabled")
    if not audio_bytes:
        raise ValueError("audio payload is empty")

    options = current_options()
    model = _model_for(options)
    segments_iter, info = model.transcribe(io.BytesIO(audio_bytes), **options.decode_kwargs())
    segments = [
        WhisperSegment(start=float(seg.start), end=float(seg.end), text=seg.text.strip())
        for seg in segments_iter
    ]
    result = WhisperResult(
        text=" ".join(seg.text for seg in segments if seg.text).strip(),
        segments=segments,
        language=getattr(info, "language", None),
        duration=getattr(info, "duration", None),
        model_id=options.model_id,
    )
    logger.debug(
        "whisper_transcription_finished",
        extra={
            "model": result.model_id,
            "language": result.language,
            "duration": result.duration,
            "segments": len(segments),
        },
    )
    return result


def _model_for(options: WhisperOptions) -> "WhisperModel":
    global _loaded_model, _loaded_key

    with _MODEL_LOCK:
        if _loaded_model is not None and _loaded_key == options.model_key:
            return _loaded_model
        try:
            from faster_whisper import WhisperModel
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "faster-whisper is not installed; install the 'whisper' extra"
            ) from exc

        _loaded_model = WhisperModel(
            options.model_id, device=options.device, compute_type=options.compute_type
        )
        _loaded_key = options.model_key
        logger.info(
            "whisper_model_loaded",
            extra={
                "model": options.model_id,
                "device": options.device,
                "compute_type": options.compute_type,
            },
        )
        return _loaded_model
