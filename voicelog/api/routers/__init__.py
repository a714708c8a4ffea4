"""Router exports for FastAPI composition."""

from . import achievements, analytics, entries, health, summaries

__all__ = ["achievements", "analytics", "entries", "health", "summaries"]
