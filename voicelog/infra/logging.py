"""Structured logging helpers shared by every VoiceLog component."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

__all__ = ["StructuredFormatter", "configure_logging", "get_logger"]

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}

_configured = False


class StructuredFormatter(logging.Formatter):
    """Render ``extra`` payloads as ``key=value`` pairs after the event name."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        fields = _extract_extra(record)
        if not fields:
            return base
        rendered = " ".join(
            f"{key}={_render_value(value)}" for key, value in sorted(fields.items())
        )
        return f"{base} {rendered}"


def configure_logging(config: Optional[Dict[str, Any]] = None) -> None:
    """Install the structured formatter on the root logger once per process."""

    global _configured
    config = config or {}
    level_name = str(config.get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    if _configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        StructuredFormatter(
            config.get("format", "%(asctime)s %(levelname)s %(name)s %(message)s")
        )
    )
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; callers pass structured data through ``extra``."""

    return logging.getLogger(name)


def _extract_extra(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return value if value and " " not in value else json.dumps(value)
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(value)
