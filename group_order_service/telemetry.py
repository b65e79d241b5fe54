"""OpenTelemetry setup for the group-order service.

Every lookup stage opens its own span under ``order.*``; the API handler
starts the root span from the caller's W3C ``traceparent`` when present.
"""

from __future__ import annotations

import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from group_order_service.config import config

logger = logging.getLogger(__name__)

SERVICE_NAME = "group-order-service"
SERVICE_VERSION = "0.1.0"

_tracer: trace.Tracer | None = None
_provider: TracerProvider | None = None


def init_telemetry() -> trace.Tracer:
    """Install the tracer provider once and return the service tracer."""
    global _tracer, _provider
    if _tracer is not None:
        return _tracer

    resource = Resource.create({"service.name": SERVICE_NAME, "service.version": SERVICE_VERSION})
    _provider = TracerProvider(resource=resource)

    if config.otel_endpoint:
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )

            _provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otel_endpoint)))
            logger.info("OTLP exporter configured: %s", config.otel_endpoint)
        except ImportError:
            logger.warning("OTLP exporter not installed (pip install .[otlp]), falling back to console")
            _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    elif config.log_level.upper() == "DEBUG":
        _provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_provider)
    set_global_textmap(CompositePropagator([TraceContextTextMapPropagator()]))

    _tracer = trace.get_tracer(SERVICE_NAME)
    return _tracer


def get_tracer() -> trace.Tracer:
    if _tracer is None:
        return init_telemetry()
    return _tracer


def trace_id_hex(span: trace.Span) -> str:
    """32-char hex trace id, as echoed back to API callers."""
    return format(span.get_span_context().trace_id, "032x")


def shutdown_telemetry() -> None:
    """Flush pending spans; called when the API process stops."""
    if _provider is not None:
        _provider.shutdown()
