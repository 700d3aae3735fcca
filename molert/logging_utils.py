#!/usr/bin/env python3
"""
molert - Logging utilities

Structured NDJSON logging (opt-in via LOG_JSON_ENABLED) and correlation IDs
for every log line. Inside a Flask request the correlation ID comes from the
request; scheduler threads set their own through ``CorrelationID``; anything
else is tagged "system".

Usage:
    from molert.logging_utils import setup_json_logging

    setup_json_logging(service_name="molert", version="1.0.0")
    logger = logging.getLogger(__name__)
    logger.info("Scan finished", extra={"sent": 3})

Environment Variables:
    LOG_JSON_ENABLED: Enable JSON logging (default: false)
    LOG_LEVEL: Logging level (default: INFO)
    POD_NAME: Kubernetes pod name for metadata
"""

import os
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict

from flask import has_request_context, request
from opentelemetry import trace

TEXT_FORMAT = '%(asctime)s - %(levelname)s - [%(correlation_id)s] - %(message)s'

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset([
    "name", "msg", "args", "created", "filename", "funcName", "levelname",
    "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
    "processName", "relativeCreated", "thread", "threadName", "exc_info",
    "exc_text", "stack_info", "taskName", "correlation_id", "trace_id", "span_id",
])


class CorrelationID:
    """Thread-local storage for correlation IDs outside request context."""
    _storage = threading.local()

    @staticmethod
    def set(cid):
        CorrelationID._storage.id = cid

    @staticmethod
    def get():
        return getattr(CorrelationID._storage, 'id', 'system')

    @staticmethod
    def clear():
        CorrelationID._storage.id = 'system'


class CorrelationIdFilter(logging.Filter):
    """Automatically adds correlation ID to all log records."""

    def filter(self, record):
        correlation_id = None
        if has_request_context():
            correlation_id = getattr(request, 'correlation_id', None)
        record.correlation_id = correlation_id or CorrelationID.get()
        return True


class NDJSONFormatter(logging.Formatter):
    """
    Outputs each log record as a single JSON object on one line.

    Fields: timestamp, level, message, logger, module, function, line,
    thread, service, version, pod_name, correlation_id, trace_id/span_id
    (when tracing is active), error (when an exception is attached) and any
    ``extra`` fields passed to the log call.
    """

    def __init__(self, service_name: str, version: str):
        super().__init__()
        self.service_name = service_name
        self.version = version
        self.pod_name = os.getenv("POD_NAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": threading.get_ident(),
            "service": self.service_name,
            "version": self.version,
            "pod_name": self.pod_name,
            "correlation_id": getattr(record, "correlation_id", None) or "system",
        }

        trace_id = getattr(record, "trace_id", None)
        span_id = getattr(record, "span_id", None)
        if trace_id:
            log_entry["trace_id"] = trace_id
        if span_id:
            log_entry["span_id"] = span_id

        if record.exc_info:
            log_entry["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                json.dumps(value)
                log_entry[key] = value
            except (TypeError, ValueError):
                log_entry[key] = str(value)

        return json.dumps(log_entry, default=str)


class TraceContextFilter(logging.Filter):
    """Injects the active OpenTelemetry trace_id/span_id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        span = trace.get_current_span()
        if span is not None and span.is_recording():
            span_context = span.get_span_context()
            if span_context.is_valid:
                record.trace_id = format(span_context.trace_id, "032x")
                record.span_id = format(span_context.span_id, "016x")
        return True


def setup_json_logging(
    service_name: str,
    version: str,
    level: str = "INFO",
) -> logging.Logger:
    """
    Configure root logging for a molert process.

    JSON (NDJSON) output when LOG_JSON_ENABLED is true, otherwise the text
    format ``TEXT_FORMAT``. Safe to call more than once.

    Args:
        service_name: Name reported in JSON records
        version: Service version string
        level: Logging level, overridden by LOG_LEVEL

    Returns:
        The configured root logger
    """
    json_enabled = os.getenv("LOG_JSON_ENABLED", "false").lower() in ("true", "1", "yes", "on")
    log_level = os.getenv("LOG_LEVEL", level).upper()

    logger = logging.getLogger()
    logger.handlers.clear()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    handler = logging.StreamHandler()
    handler.setLevel(logger.level)
    # Filters live on the handler so records from child loggers are enriched too
    handler.addFilter(CorrelationIdFilter())

    if json_enabled:
        handler.setFormatter(NDJSONFormatter(service_name=service_name, version=version))
        handler.addFilter(TraceContextFilter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)

    if json_enabled:
        logger.info(f"JSON logging enabled for service={service_name} version={version}")
    else:
        logger.info(f"Standard logging enabled for service={service_name}")

    return logger
