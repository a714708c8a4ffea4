"""TTL key/value cache shared by transcription, insight and summary lookups."""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .logging import get_logger

__all__ = [
    "ANALYSIS_PREFIX",
    "CacheEntry",
    "ResultCache",
    "SUMMARY_PREFIX",
    "TAGS_PREFIX",
    "TRANSCRIPTION_PREFIX",
    "audio_digest",
    "build_cache_key",
]

logger = get_logger(__name__)

TRANSCRIPTION_PREFIX = "transcription"
TAGS_PREFIX = "tags"
ANALYSIS_PREFIX = "analysis"
SUMMARY_PREFIX = "summary"
DEFAULT_TTL_SECONDS = 3600


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResultCache:
    """Thread-safe TTL cache.

    Expired values are dropped lazily on ``get`` and eagerly by
    ``purge_expired``. When ``max_entries`` is reached the entry closest to
    expiry is evicted to make room. Concurrent writers to the same key are
    last-write-wins; cached values are derived deterministically from the key
    input so either write is acceptable.
    """

    def __init__(
        self,
        *,
        default_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive when provided")
        self._default_ttl = float(default_ttl_seconds)
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    @property
    def default_ttl_seconds(self) -> float:
        return self._default_ttl

    def get(self, key: str) -> Optional[Any]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self._default_ttl if ttl_seconds is None else float(ttl_seconds)
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        now = self._clock()
        with self._lock:
            if (
                self._max_entries is not None
                and key not in self._entries
                and len(self._entries) >= self._max_entries
            ):
                self._evict_locked(now)
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=now + ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("result_cache_purged", extra={"expired": len(expired)})
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict_locked(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        if expired:
            for key in expired:
                del self._entries[key]
            return
        victim = min(self._entries.values(), key=lambda entry: entry.expires_at)
        del self._entries[victim.key]


def build_cache_key(prefix: str, discriminator: str) -> str:
    """Return ``<prefix>:<discriminator>`` so producers never collide."""

    return f"{prefix}:{discriminator}"


def audio_digest(audio_bytes: bytes) -> str:
    return hashlib.sha256(audio_bytes).hexdigest()
