"""Entry ingestion pipeline."""

from .pipeline import (
    IngestionPipeline,
    LlmGatewayTranscriptionClient,
    TranscriptionClient,
    TranscriptionOutput,
    build_data_url,
    estimate_duration_seconds,
    normalize_mime_type,
)

__all__ = [
    "IngestionPipeline",
    "LlmGatewayTranscriptionClient",
    "TranscriptionClient",
    "TranscriptionOutput",
    "build_data_url",
    "estimate_duration_seconds",
    "normalize_mime_type",
]
