"""Helpers for emitting one-line JSON events alongside the human-readable logs."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping, Sequence, Set
from typing import Any

from flowcore_catalog.utils.logger import get_logger


def _normalise_value(value: Any) -> Any:
    """Convert ``value`` into a JSON-serialisable representation."""

    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Mapping):
        return {
            str(key): _normalise_value(item)
            for key, item in value.items()
            if item is not None
        }
    if isinstance(value, Set):
        return sorted(str(item) for item in value)
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [_normalise_value(item) for item in value if item is not None]
    return str(value)


def format_structured_event(category: str, **fields: Any) -> str:
    """Return a JSON string for a structured event payload."""

    payload: dict[str, Any] = {
        "category": category,
        "timestamp": round(time.time(), 3),
    }
    for key, value in fields.items():
        if value is None:
            continue
        payload[str(key)] = _normalise_value(value)
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def log_structured_event(
    level: int,
    *,
    category: str,
    logger: logging.Logger | None = None,
    **fields: Any,
) -> None:
    """Emit a structured log line to ``logger`` (defaults to the core logger)."""

    target = logger or get_logger("core")
    target.log(level, "[event] %s", format_structured_event(category, **fields))


def log_http_event(
    level: int,
    *,
    logger: logging.Logger,
    phase: str,
    url: str | None,
    status_code: int | None = None,
    attempt: int | None = None,
    provenance: str | None = None,
    is_success: bool | None = None,
    message: str | None = None,
    extra: Mapping[str, Any] | None = None,
) -> None:
    """Specialised helper for HTTP fetch telemetry logs."""

    fields: dict[str, Any] = {
        "phase": phase,
        "url": url,
        "status_code": status_code,
        "attempt": attempt,
        "provenance": provenance,
        "success": is_success,
        "message": message,
    }
    if extra:
        fields.update(dict(extra))
    log_structured_event(level, category="http.fetch", logger=logger, **fields)


__all__ = [
    "format_structured_event",
    "log_http_event",
    "log_structured_event",
]
