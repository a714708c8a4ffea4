"""Counters and latency observations for the pipeline, workers and analytics."""

from __future__ import annotations

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, DefaultDict, Dict

from .logging import get_logger

logger = get_logger(__name__)


class MetricsClient:  # pragma: no cover - simple helper
    """Counter plus observation interface."""

    def increment(self, metric: str, value: int = 1) -> None:
        raise NotImplementedError

    def observe(self, metric: str, value: float) -> None:
        raise NotImplementedError


@dataclass
class Observation:
    count: int = 0
    total: float = 0.0
    maximum: float = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.maximum = max(self.maximum, value)

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0


@dataclass
class InMemoryMetricsClient(MetricsClient):
    """Process-local sink; the health endpoint reports its snapshot."""

    counters: DefaultDict[str, int] = field(default_factory=lambda: defaultdict(int))
    observations: DefaultDict[str, Observation] = field(
        default_factory=lambda: defaultdict(Observation)
    )
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, metric: str, value: int = 1) -> None:
        with self._lock:
            self.counters[metric] += value
        logger.debug("metrics_increment", extra={"metric": metric, "value": value})

    def observe(self, metric: str, value: float) -> None:
        with self._lock:
            self.observations[metric].add(float(value))
        logger.debug("metrics_observe", extra={"metric": metric, "value": value})

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self.counters),
                "observations": {
                    name: {
                        "count": item.count,
                        "mean": round(item.mean, 3),
                        "max": round(item.maximum, 3),
                    }
                    for name, item in self.observations.items()
                },
            }


_metrics_singleton: InMemoryMetricsClient | None = None


def get_metrics_client() -> MetricsClient:
    """Return the shared metrics client."""

    global _metrics_singleton
    if _metrics_singleton is None:
        _metrics_singleton = InMemoryMetricsClient()
    return _metrics_singleton
