"""Structured JSON logging with trace-id correlation."""
from __future__ import annotations

import contextvars
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "trace_id", default=""
)

# LogRecord attributes copied into the JSON entry when passed via ``extra=``
_EXTRA_FIELDS = ("session_id", "tool", "baseline_hash")


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def __init__(self, service_name: str = "unknown") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service_name": self.service_name,
            "logger": record.name,
            "trace_id": trace_id_var.get(""),
            "message": record.getMessage(),
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value:
                log_entry[field] = value
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = str(record.exc_info[1])
        return json.dumps(log_entry)


def setup_logging(service_name: str, level: str = "INFO") -> logging.Logger:
    """Configure structured JSON logging for a service.

    The handler is attached to the service logger and to the ``src`` package
    logger so that module-level loggers (``logging.getLogger(__name__)``)
    emit through the same formatter.

    Args:
        service_name: Name of the service for log entries.
        level: Log level string (e.g. "INFO", "DEBUG").

    Returns:
        Configured logger instance.
    """
    resolved = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter(service_name=service_name))

    for name in (service_name, "src"):
        target = logging.getLogger(name)
        target.setLevel(resolved)
        target.handlers.clear()
        target.addHandler(handler)
        target.propagate = False

    return logging.getLogger(service_name)


class TraceIDMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware that sets a unique trace_id per request."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        token = trace_id_var.set(request_trace_id)
        try:
            response = await call_next(request)
        finally:
            trace_id_var.reset(token)
        response.headers["X-Trace-ID"] = request_trace_id
        return response
