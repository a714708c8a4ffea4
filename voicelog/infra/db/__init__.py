"""Database connection helpers."""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ...config import load_settings
from .schema import (
    ACHIEVEMENTS_TABLE,
    DAILY_SUMMARIES_TABLE,
    ENTRIES_TABLE,
    METADATA,
    USER_ACHIEVEMENTS_TABLE,
)

__all__ = [
    "ACHIEVEMENTS_TABLE",
    "DAILY_SUMMARIES_TABLE",
    "ENTRIES_TABLE",
    "METADATA",
    "USER_ACHIEVEMENTS_TABLE",
    "get_engine",
]


@lru_cache()
def get_engine() -> Engine:
    """Return the process-wide engine for the configured database URL."""

    settings = load_settings()
    return create_engine(settings.database_url, echo=False, future=True)
