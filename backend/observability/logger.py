"""
JSONL event logger.

- Write one JSON object per line
- Output to stdout
- No buffering, no batching
- No side effects beyond logging
"""

from __future__ import annotations

import json
import sys
import time
from typing import Any, Callable, Mapping


# ------------------------------------------------------------------
# Explicit output sink (patchable in tests)
# ------------------------------------------------------------------

def _stdout_print(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()

_print: Callable[[str], None] = _stdout_print

_enabled: bool = True


def set_enabled(enabled: bool) -> None:
    """Toggle JSONL output (AppConfig.enable_json_logs)."""
    global _enabled
    _enabled = enabled


def now_ms() -> int:
    return int(time.time() * 1000)


def log_event(event: Mapping[str, Any]) -> None:
    """
    Write a single JSONL event to stdout.

    The caller is responsible for:
    - Supplying a fully-formed event dict
    - Including ts_ms, session_id, phase, etc.

    This function:
    - Serializes to JSON
    - Writes exactly one line
    - Flushes immediately (no buffering)
    - Never raises
    """
    if not _enabled:
        return

    try:
        line = json.dumps(event, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        # Logging must never crash the runtime
        fallback: dict[str, Any] = {
            "ts_ms": event.get("ts_ms"),
            "event_type": "LOGGER_SERIALIZATION_ERROR",
            "error": str(e),
            "original_event_repr": repr(event),
        }
        line = json.dumps(fallback, ensure_ascii=False, separators=(",", ":"))

    try:
        _print(line)
    except (OSError, ValueError):
        # Closed or broken stdout
        pass


def log_component(
    component: str,
    event_type: str,
    *,
    session_id: str | None = None,
    **details: Any,
) -> None:
    """
    Convenience wrapper for non-reducer components (transport, devices,
    capture, playback) that log outside the LogEvent command path.
    """
    log_event({
        "ts_ms": now_ms(),
        "component": component,
        "event_type": event_type,
        "session_id": session_id,
        "details": details,
    })
