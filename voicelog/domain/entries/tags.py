"""Per-user tag catalogue derived from stored entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List

from .models import Entry

__all__ = ["TagUsage", "list_user_tags"]


@dataclass(frozen=True)
class TagUsage:
    name: str
    entry_count: int
    first_used_at: datetime
    last_used_at: datetime


def list_user_tags(entries: Iterable[Entry]) -> List[TagUsage]:
    """Distinct tags across ``entries``, most recently introduced first.

    A tag appearing twice on one entry counts that entry once; ties on
    introduction time are broken by name.
    """

    counts: Dict[str, int] = {}
    first_seen: Dict[str, datetime] = {}
    last_seen: Dict[str, datetime] = {}
    for entry in entries:
        for name in {tag.strip().lower() for tag in entry.tags if tag and tag.strip()}:
            counts[name] = counts.get(name, 0) + 1
            if name not in first_seen or entry.created_at < first_seen[name]:
                first_seen[name] = entry.created_at
            if name not in last_seen or entry.created_at > last_seen[name]:
                last_seen[name] = entry.created_at

    ordered = sorted(counts, key=lambda name: name)
    ordered.sort(key=lambda name: first_seen[name], reverse=True)
    return [
        TagUsage(
            name=name,
            entry_count=counts[name],
            first_used_at=first_seen[name],
            last_used_at=last_seen[name],
        )
        for name in ordered
    ]
