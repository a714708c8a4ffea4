"""VoiceLog journaling core: ingestion, insights, achievements and pattern analytics."""

__version__ = "0.1.0"
