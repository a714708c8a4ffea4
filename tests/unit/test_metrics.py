"""Tests for the in-memory metrics sink."""

from __future__ import annotations

import pytest

from voicelog.infra import metrics as metrics_module
from voicelog.infra.metrics import InMemoryMetricsClient, get_metrics_client

pytestmark = [pytest.mark.infra]


def test_counters_accumulate() -> None:
    client = InMemoryMetricsClient()

    client.increment("jobs_total")
    client.increment("jobs_total", 2)

    assert client.counters["jobs_total"] == 3


def test_observations_track_count_mean_and_max() -> None:
    client = InMemoryMetricsClient()

    for value in (10, 30, 20):
        client.observe("latency_ms", value)

    snapshot = client.snapshot()
    assert snapshot["observations"]["latency_ms"] == {"count": 3, "mean": 20.0, "max": 30.0}
    assert snapshot["counters"] == {}


def test_shared_client_is_singleton(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metrics_module, "_metrics_singleton", None)

    first = get_metrics_client()

    assert first is get_metrics_client()
    assert isinstance(first, InMemoryMetricsClient)
