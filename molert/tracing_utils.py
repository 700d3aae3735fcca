#!/usr/bin/env python3
"""
molert - OpenTelemetry tracing utilities

Opt-in distributed tracing. When OTEL_ENABLED is true the relay exports
spans over OTLP gRPC and auto-instruments Flask (inbound gateway), Requests
(webhook delivery) and Redis (store calls). Scheduler scans get a manual
span through ``create_span``.

Environment Variables:
    OTEL_ENABLED: Enable OpenTelemetry tracing (default: false)
    OTEL_EXPORTER_OTLP_ENDPOINT: OTLP collector endpoint (default: http://localhost:4317)
    OTEL_SERVICE_NAME: Service name override
    OTEL_RESOURCE_ATTRIBUTES: Additional resource attributes (key1=val1,key2=val2)
    POD_NAME: Kubernetes pod name for metadata
"""

import os
import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.flask import FlaskInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

_tracer: Optional[Any] = None
_tracing_enabled = False


def is_tracing_enabled() -> bool:
    return _tracing_enabled


def setup_tracing(service_name: str, version: str, app: Optional[Any] = None) -> bool:
    """
    Configure OpenTelemetry tracing for a molert process.

    Only activates when OTEL_ENABLED is true. Idempotent.

    Args:
        service_name: Name of the service
        version: Service version string
        app: Flask application to instrument, if any

    Returns:
        True if tracing was enabled, False otherwise
    """
    global _tracer, _tracing_enabled

    otel_enabled = os.getenv("OTEL_ENABLED", "false").lower() in ("true", "1", "yes", "on")
    if not otel_enabled:
        logger.info(f"OpenTelemetry tracing disabled for service={service_name}")
        _tracing_enabled = False
        return False

    if _tracing_enabled:
        return True

    try:
        otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
        service_name_override = os.getenv("OTEL_SERVICE_NAME", service_name)

        resource_attrs = {
            SERVICE_NAME: service_name_override,
            SERVICE_VERSION: version,
            "service.instance.id": os.getenv("POD_NAME", "unknown"),
        }
        for pair in os.getenv("OTEL_RESOURCE_ATTRIBUTES", "").split(","):
            if "=" in pair:
                key, value = pair.split("=", 1)
                resource_attrs[key.strip()] = value.strip()

        provider = TracerProvider(resource=Resource.create(resource_attrs))
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(
            endpoint=otlp_endpoint,
            insecure=not otlp_endpoint.startswith("https"),
        )))
        trace.set_tracer_provider(provider)

        _tracer = trace.get_tracer(f"molert.{service_name}", version)
        _enable_auto_instrumentation(app)

        logger.info(
            f"OpenTelemetry tracing enabled: service={service_name_override} "
            f"version={version} endpoint={otlp_endpoint}"
        )
        _tracing_enabled = True
        return True

    except Exception as e:
        logger.error(f"Failed to setup OpenTelemetry tracing: {e}", exc_info=True)
        _tracing_enabled = False
        return False


def _enable_auto_instrumentation(app: Optional[Any]) -> None:
    instrumented = []

    if app is not None:
        try:
            FlaskInstrumentor().instrument_app(app)
            instrumented.append("Flask")
        except Exception as e:
            logger.warning(f"Failed to instrument Flask: {e}")

    for name, instrumentor in (("Requests", RequestsInstrumentor), ("Redis", RedisInstrumentor)):
        try:
            instrumentor().instrument()
            instrumented.append(name)
        except Exception as e:
            logger.warning(f"Failed to instrument {name}: {e}")

    if instrumented:
        logger.info(f"Auto-instrumentation enabled: {', '.join(instrumented)}")


@contextmanager
def create_span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """
    Run a block inside a span. Yields None when tracing is disabled.

    Example:
        >>> with create_span("molert.scan", attributes={"scan.id": scan_id}):
        ...     run_scan(registry, notifier)
    """
    if not _tracing_enabled or _tracer is None:
        yield None
        return

    clean = {}
    for key, value in (attributes or {}).items():
        if not isinstance(value, (str, int, float, bool)):
            value = str(value)
        clean[key] = value

    with _tracer.start_as_current_span(name, attributes=clean) as span:
        yield span


def set_span_attribute(key: str, value: Any) -> None:
    """Set an attribute on the current span, if one is recording."""
    if not _tracing_enabled:
        return

    span = trace.get_current_span()
    if span and span.is_recording():
        if not isinstance(value, (str, int, float, bool)):
            value = str(value)
        span.set_attribute(key, value)
