"""Unit tests for the local faster-whisper driver."""

from __future__ import annotations

import sys
import types

import pytest

from voicelog.infra.llm_gateway import whisper_client
from voicelog.infra.llm_gateway.whisper_client import WhisperOptions

pytestmark = [pytest.mark.infra]


@pytest.fixture(autouse=True)
def reset_whisper_state(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(whisper_client.ENABLE_ENV_VAR, raising=False)
    monkeypatch.setattr(whisper_client, "_options_override", None)
    monkeypatch.setattr(whisper_client, "_loaded_model", None)
    monkeypatch.setattr(whisper_client, "_loaded_key", None)


def _use_options(monkeypatch: pytest.MonkeyPatch, **raw) -> WhisperOptions:
    options = WhisperOptions.from_mapping(raw)
    monkeypatch.setattr(whisper_client, "_options_override", options)
    return options


def test_env_override_wins_over_profile(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_options(monkeypatch, enabled=True)
    monkeypatch.setenv(whisper_client.ENABLE_ENV_VAR, "0")

    assert whisper_client.is_available() is False


def test_profile_decides_without_env(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_options(monkeypatch, enabled=True)

    assert whisper_client.is_available() is True


def test_options_fill_defaults_and_build_decode_kwargs() -> None:
    options = WhisperOptions.from_mapping(
        {"model_id": "tiny", "language": None, "vad_enabled": True, "beam_size": "3"}
    )

    assert options.device == "cpu"
    assert options.compute_type == "int8"
    assert options.decode_kwargs() == {"beam_size": 3, "vad_filter": True}


def test_disabled_driver_refuses_to_transcribe(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_options(monkeypatch, enabled=False)

    with pytest.raises(RuntimeError):
        whisper_client.transcribe_bytes(b"audio")


def test_transcribe_bytes_joins_segments_and_reuses_model(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    created = []

    class DummyModel:
        def __init__(self, model_id: str, device: str, compute_type: str) -> None:
            created.append(model_id)

        def transcribe(self, stream, **kwargs):
            assert stream.read() == b"audio"
            segments = [
                types.SimpleNamespace(start=0.0, end=1.0, text=" Walked the dog "),
                types.SimpleNamespace(start=1.0, end=1.2, text="  "),
                types.SimpleNamespace(start=1.2, end=2.5, text="before work."),
            ]
            return iter(segments), types.SimpleNamespace(language="en", duration=2.5)

    monkeypatch.setitem(
        sys.modules, "faster_whisper", types.SimpleNamespace(WhisperModel=DummyModel)
    )
    _use_options(monkeypatch, enabled=True, model_id="tiny")

    first = whisper_client.transcribe_bytes(b"audio")
    second = whisper_client.transcribe_bytes(b"audio")

    assert first.text == "Walked the dog before work."
    assert len(first.segments) == 3
    assert first.language == "en"
    assert first.duration == 2.5
    assert first.model_id == "tiny"
    assert second.text == first.text
    assert created == ["tiny"]


def test_empty_audio_is_a_value_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _use_options(monkeypatch, enabled=True)

    with pytest.raises(ValueError):
        whisper_client.transcribe_bytes(b"")
