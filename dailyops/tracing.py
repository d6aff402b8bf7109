"""
Distributed tracing for the daily operations service using OpenTelemetry.

Provides:
- OpenTelemetry instrumentation for FastAPI
- Database statement spans
- OTLP / console exporters selected by environment variables
"""
import os
import logging
from typing import Optional, Dict, Any
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

logger = logging.getLogger(__name__)

_provider: Optional[TracerProvider] = None
_service_name = os.getenv("OTEL_SERVICE_NAME", "dailyops")
_otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
_use_otlp = os.getenv("OTEL_EXPORTER_OTLP_ENABLED", "false").lower() == "true"
_enable_console = os.getenv("OTEL_CONSOLE_EXPORTER_ENABLED", "false").lower() == "true"


def setup_tracing() -> None:
    """Initialize OpenTelemetry tracing for the service."""
    global _provider

    if _provider is not None:
        logger.warning("Tracing already initialized")
        return

    logger.info(
        "Initializing OpenTelemetry tracing",
        extra={
            "service_name": _service_name,
            "otlp_endpoint": _otlp_endpoint,
            "use_otlp": _use_otlp,
            "enable_console": _enable_console,
        }
    )

    resource = Resource.create({
        "service.name": _service_name,
        "service.version": os.getenv("SERVICE_VERSION", "0.1.0"),
        "deployment.environment": os.getenv("ENVIRONMENT", "development"),
    })
    provider = TracerProvider(resource=resource)

    if _use_otlp:
        try:
            otlp_exporter = OTLPSpanExporter(endpoint=_otlp_endpoint, insecure=True)
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))
            logger.info("OTLP exporter configured", extra={"endpoint": _otlp_endpoint})
        except Exception:
            logger.warning("Failed to configure OTLP exporter", exc_info=True)

    if _enable_console:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console exporter enabled")

    trace.set_tracer_provider(provider)
    _provider = provider
    logger.info("OpenTelemetry tracing initialized successfully")


def instrument_fastapi(app) -> None:
    """Instrument FastAPI application with OpenTelemetry."""
    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception:
        logger.error("Failed to instrument FastAPI", exc_info=True)


def get_tracer() -> trace.Tracer:
    """Tracer from the global provider (a no-op tracer until setup_tracing runs)."""
    return trace.get_tracer(__name__)


@contextmanager
def trace_span(
    name: str,
    attributes: Optional[Dict[str, Any]] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL
):
    """
    Context manager for creating a trace span.

    Example:
        with trace_span("checklist.generate", {"site_id": site_id}):
            ...
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name, kind=kind) as span:
        if attributes:
            for key, value in attributes.items():
                if value is None:
                    continue
                if isinstance(value, (str, int, float, bool)):
                    span.set_attribute(key, value)
                else:
                    span.set_attribute(key, str(value))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current active span."""
    span = trace.get_current_span()
    if span:
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(key, value)
        else:
            span.set_attribute(key, str(value))
