"""Shared structured JSON logging helpers."""

from __future__ import annotations

import json
import sys
import threading
from datetime import UTC, datetime
from typing import Any, TextIO

_write_lock = threading.Lock()


def emit_json_event(
    event_type: str,
    *,
    run_id: str | None,
    level: str = "info",
    stream: TextIO | None = None,
    **payload: Any,
) -> str:
    """
    Emit one JSON event line and return the rendered line.

    Lines go to stdout unless `stream` is given. Writes are serialized so that
    concurrent resolutions never interleave partial lines.
    """
    event: dict[str, Any] = {
        "event_type": event_type,
        "level": level,
        "timestamp": datetime.now(UTC).isoformat(),
        "run_id": run_id,
    }
    event.update(payload)
    line = json.dumps(event, ensure_ascii=True, sort_keys=True, default=str)
    with _write_lock:
        print(line, file=stream or sys.stdout, flush=True)
    return line
