"""Journal entry models, repositories and export helpers."""

from .export import EXPORT_FILENAME, render_entries_export
from .gateway import (
    EntryRepository,
    InMemoryEntryRepository,
    SqlEntryRepository,
    build_entry_repository,
)
from .models import AiAnalysis, Entry, NEUTRAL_SENTIMENT, utcnow
from .tags import TagUsage, list_user_tags

__all__ = [
    "AiAnalysis",
    "EXPORT_FILENAME",
    "Entry",
    "EntryRepository",
    "InMemoryEntryRepository",
    "NEUTRAL_SENTIMENT",
    "SqlEntryRepository",
    "TagUsage",
    "build_entry_repository",
    "list_user_tags",
    "render_entries_export",
    "utcnow",
]
