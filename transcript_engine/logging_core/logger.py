# transcript_engine/logging_core/logger.py
"""
Centralized structured logging for the transcript engine.

Every record is emitted as one JSON line with the fields:
- timestamp (ISO, UTC)
- level
- message
- request_id (bound per extraction request)
- provider (optional, the adapter being attempted)
- event_type (attempt_start, attempt_retryable, backoff, ...)
- metadata (dict)

All engine modules log through get_logger() / log_event().
Credentials and audio payloads are never passed as metadata.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Tuple

ROOT_LOGGER_NAME = "transcript_engine"

_STRUCTURED_FIELDS = ("provider", "event_type", "metadata")


class JSONFormatter(logging.Formatter):
    """Formatter that renders records as structured JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).replace(microsecond=0).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id is not None:
            log_record["request_id"] = str(request_id)

        for field in _STRUCTURED_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_record[field] = value

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)


class RequestLogger(logging.LoggerAdapter):
    """LoggerAdapter that binds a request id and merges per-call extras."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def configure_logging(level: int | str = logging.INFO, stream: Any = None) -> logging.Logger:
    """
    Install the JSON handler on the package root logger.

    Idempotent: calling it again only updates the level.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.propagate = False

    if not any(getattr(handler, "_transcript_engine", False) for handler in root.handlers):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JSONFormatter())
        handler._transcript_engine = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    return root


def get_logger(request_id: Any, name: str = ROOT_LOGGER_NAME) -> RequestLogger:
    """Return a logger bound to one extraction request."""
    return RequestLogger(logging.getLogger(name), {"request_id": str(request_id)})


def log_event(
    logger: logging.Logger | logging.LoggerAdapter,
    level: int,
    message: str,
    *,
    event_type: str,
    provider: str | None = None,
    metadata: Dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """
    Convenience wrapper for structured logging.

    Use this from the orchestrator, adapters and resolver for consistency.
    """
    extra: Dict[str, Any] = {"event_type": event_type}
    if provider:
        extra["provider"] = provider
    if metadata:
        extra["metadata"] = metadata

    logger.log(level, message, extra=extra, exc_info=exc_info)


# High-Level Intent
# One structured logging facility for the engine. Records are JSON lines so a
# single extraction can be followed end to end by request_id, with provider and
# event_type telling which adapter did what.
#
# Levels: INFO for progress, WARNING for degradation (retryable/terminal
# provider failures, metadata defaults), ERROR for unexpected exceptions.
#
# Extension Points
# Swap the StreamHandler for file/syslog output in configure_logging().
