"""Tests for YAML profile loading."""

from __future__ import annotations

import pytest

from voicelog.config import load_settings
from voicelog.config.loader import DEFAULT_ALLOWED_MIME_TYPES, DEFAULT_MAX_AUDIO_BYTES

pytestmark = [pytest.mark.infra]


@pytest.fixture(autouse=True)
def clear_database_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)


def test_load_settings_falls_back_to_defaults(monkeypatch, tmp_path):
    """Missing profiles should default to the built-in dev configuration."""

    monkeypatch.setenv("VOICELOG_CONFIG_PROFILE", "missing")
    monkeypatch.setenv("VOICELOG_CONFIG_DIR", str(tmp_path))
    settings = load_settings()

    assert settings.environment == "dev"
    assert settings.database_url.endswith("/voicelog")
    assert settings.use_database is False
    assert settings.ingestion.max_audio_bytes == DEFAULT_MAX_AUDIO_BYTES
    assert settings.ingestion.allowed_mime_types == list(DEFAULT_ALLOWED_MIME_TYPES)
    assert settings.ingestion.inline_enrichment is True
    assert settings.insights.ttl_seconds == 3600
    assert settings.analytics.min_entries_for_topics == 3


def test_load_settings_reads_yaml_profile(tmp_path):
    (tmp_path / "staging.yaml").write_text(
        """
environment: staging
database:
  url: "postgresql+psycopg://postgres:pw@db:5432/custom"
features:
  database_repositories: true
ingestion:
  max_audio_bytes: 1048576
  allowed_mime_types: ["Audio/WebM", " audio/ogg "]
  inline_enrichment: false
insights:
  ttl_seconds: 120
  cache_key_chars: 64
  cache_max_entries: 0
analytics:
  topic_trend_ratio: 2
  request_timeout_seconds: 2.5
  max_workers: 0
jobqueue:
  max_workers: 0
logging:
  level: DEBUG
""",
        encoding="utf-8",
    )

    settings = load_settings(profile="staging", config_dir=tmp_path)

    assert settings.environment == "staging"
    assert settings.database_url.endswith("/custom")
    assert settings.use_database is True
    assert settings.ingestion.max_audio_bytes == 1048576
    assert settings.ingestion.allowed_mime_types == ["audio/webm", "audio/ogg"]
    assert settings.ingestion.inline_enrichment is False
    assert settings.insights.ttl_seconds == 120
    assert settings.insights.cache_key_chars == 64
    assert settings.insights.cache_max_entries is None
    assert settings.analytics.topic_trend_ratio == 2.0
    assert settings.analytics.request_timeout_seconds == 2.5
    assert settings.analytics.max_workers == 1
    assert settings.jobqueue.max_workers == 1
    assert settings.logging == {"level": "DEBUG"}


def test_database_url_env_overrides_profile(monkeypatch, tmp_path):
    (tmp_path / "dev.yaml").write_text('database:\n  url: "sqlite://"\n', encoding="utf-8")
    monkeypatch.setenv("DATABASE_URL", "postgresql+psycopg://u:p@elsewhere:5432/db")

    settings = load_settings(profile="dev", config_dir=tmp_path)

    assert settings.database_url == "postgresql+psycopg://u:p@elsewhere:5432/db"


def test_invalid_yaml_raises(tmp_path):
    (tmp_path / "broken.yml").write_text("environment: [unterminated", encoding="utf-8")

    with pytest.raises(RuntimeError, match="Failed to parse config profile"):
        load_settings(profile="broken", config_dir=tmp_path)


def test_non_mapping_profile_raises(tmp_path):
    (tmp_path / "list.yaml").write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(RuntimeError, match="must be a mapping"):
        load_settings(profile="list", config_dir=tmp_path)


def test_repository_dev_profile_uses_stub_providers(monkeypatch):
    monkeypatch.delenv("VOICELOG_CONFIG_DIR", raising=False)

    settings = load_settings(profile="dev")

    assert settings.llm["default_provider"] == "stub"
    assert settings.llm["transcription"]["provider"] == "stub"
    assert settings.use_database is False
