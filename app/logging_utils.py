"""
Structured logging helpers for calculation runs and scheduled jobs.

Each event is a single JSON object on one log line so that run summaries and
failures can be grepped or shipped without a dedicated formatter.
"""

from __future__ import annotations

import json
import logging
from typing import Any


def error_fields(exc: BaseException) -> dict[str, str]:
    """Standard error keys for a failure event."""
    return {"error_type": type(exc).__name__, "error": str(exc)}


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.

    Fields whose value is ``None`` are dropped. Non-ASCII metric names and
    error messages are written as-is.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event}
    payload.update({key: value for key, value in fields.items() if value is not None})
    logger.log(level, json.dumps(payload, default=str, ensure_ascii=False, sort_keys=True))
