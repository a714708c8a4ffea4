"""Unit tests for the plain-text journal export."""

from __future__ import annotations

import pytest

from voicelog.domain.entries import Entry, render_entries_export
from tests.helpers.fakes import utc

pytestmark = [pytest.mark.api]


def _entry(**overrides) -> Entry:
    values = dict(
        entry_id="e-1",
        user_id="user-1",
        audio_url="data:",
        duration_seconds=150,
        created_at=utc(2026, 10, 18, 7, 5),
        updated_at=utc(2026, 10, 18, 7, 5),
        transcript="Slept well and went for a run.",
        tags=["sleep", "running"],
    )
    values.update(overrides)
    return Entry(**values)


def test_export_renders_entry_block() -> None:
    text = render_entries_export([_entry()])

    assert text == (
        "Date: 2026-10-18 07:05 UTC\n"
        "Duration: 3 minutes\n"
        "Tags: sleep, running\n"
        "\n"
        "Slept well and went for a run.\n"
        "\n"
        "-------------------\n"
    )


def test_export_placeholders_for_missing_fields() -> None:
    text = render_entries_export([_entry(tags=[], transcript=None, duration_seconds=20)])

    assert "Duration: 0 minutes" in text
    assert "No tags" in text
    assert "No transcript available" in text


def test_export_keeps_given_order() -> None:
    newer = _entry(entry_id="e-2", transcript="newer", created_at=utc(2026, 10, 18, 9))
    older = _entry(entry_id="e-1", transcript="older", created_at=utc(2026, 10, 17, 9))

    text = render_entries_export([newer, older])

    assert text.index("newer") < text.index("older")
    assert text.count("-------------------") == 2


def test_export_of_no_entries_is_empty() -> None:
    assert render_entries_export([]) == ""
