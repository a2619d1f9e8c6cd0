"""JSON Lines formatter with OpenTelemetry trace correlation."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord carries; anything else came from extra= or the log context
_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

_DEFAULT_KEYS = {"level": "levelname", "logger": "name", "message": "message"}


def _single_line(text: str) -> str:
    return text.replace("\n", "\\n")


def _trace_fields() -> dict[str, str]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return {}
    return {
        "trace_id": format(context.trace_id, "032x"),
        "span_id": format(context.span_id, "016x"),
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, UTC timestamps, trace ids when a span is active.

    A data loader record logged from inside a traced batch looks like:

        {"level": "DEBUG", "logger": "batchloader.features.dataloaders.loader",
         "message": "Dispatching data loader batch", "timestamp": "2025-01-01T00:00:00.123Z",
         "trace_id": "...", "span_id": "...", "loader": "users", "key_count": 3}

    Args:
        fmt_keys: Output key to LogRecord attribute mapping.
        static: Fields added to every record, such as ``{"service": "api"}``.
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        super().__init__()
        self.fmt_keys = fmt_keys or dict(_DEFAULT_KEYS)
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        payload: dict[str, Any] = {key: getattr(record, attr, None) for key, attr in self.fmt_keys.items()}
        payload["timestamp"] = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )
        payload.update(_trace_fields())

        if record.exc_info:
            payload["exception"] = _single_line(self.formatException(record.exc_info))
        if record.stack_info:
            payload["stack_trace"] = _single_line(record.stack_info)

        payload.update(self.static)
        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED and key not in payload
        )
        return json.dumps(payload, ensure_ascii=False, default=str)
