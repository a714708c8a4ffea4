"""Plain-text export of a user's journal."""

from __future__ import annotations

import math
from typing import Iterable, List

from .models import Entry

__all__ = ["EXPORT_FILENAME", "render_entries_export"]

EXPORT_FILENAME = "journal-entries.txt"
_SEPARATOR = "-------------------"


def render_entries_export(entries: Iterable[Entry]) -> str:
    """Render entries (in the given order) as a human-readable text document."""

    blocks: List[str] = []
    for entry in entries:
        minutes = math.floor(entry.duration_seconds / 60 + 0.5)
        tags = ", ".join(entry.tags) or "No tags"
        transcript = entry.transcript or "No transcript available"
        blocks.append(
            "\n".join(
                [
                    f"Date: {entry.created_at.strftime('%Y-%m-%d %H:%M')} UTC",
                    f"Duration: {minutes} minutes",
                    f"Tags: {tags}",
                    "",
                    transcript,
                    "",
                    _SEPARATOR,
                    "",
                ]
            )
        )
    return "\n".join(blocks)
