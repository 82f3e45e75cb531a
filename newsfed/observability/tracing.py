"""
OpenTelemetry tracing for source fetches.

Every fetch runs inside a ``discovery.fetch_source`` span carrying the
source's id, type and URL, so a slow or failing source can be looked up
by id in the trace backend. Log lines emitted inside the span carry the
same trace id (see ``add_trace_context``).

Tracing is off unless ``TRACING_ENABLED`` is set; without a configured
provider the OpenTelemetry API hands out no-op spans and the helpers
below cost next to nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SimpleSpanProcessor,
    SpanExporter,
    SpanProcessor,
)
from opentelemetry.trace import Span, StatusCode, Tracer
from opentelemetry.trace.propagation import get_current_span

if TYPE_CHECKING:
    from newsfed.sources.schemas import Source

logger = logging.getLogger(__name__)

DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"
FETCH_SPAN = "discovery.fetch_source"


def _span_processor(exporter: SpanExporter | None, otlp_endpoint: str | None) -> SpanProcessor:
    if exporter is not None:
        # Export synchronously so finished spans are visible right away
        return SimpleSpanProcessor(exporter)

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

    return BatchSpanProcessor(
        OTLPSpanExporter(endpoint=otlp_endpoint or DEFAULT_OTLP_ENDPOINT, insecure=True)
    )


def setup_tracing(
    service_name: str,
    otlp_endpoint: str | None = None,
    *,
    exporter: SpanExporter | None = None,
) -> TracerProvider:
    """
    Install the global TracerProvider.

    Args:
        service_name: Reported as ``service.name`` on every span.
        otlp_endpoint: OTLP gRPC collector (default localhost:4317).
        exporter: Use this exporter instead of OTLP, e.g. an in-memory
            exporter in tests.
    """
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(_span_processor(exporter, otlp_endpoint))
    trace.set_tracer_provider(provider)

    logger.info(
        "Tracing enabled for %s, exporting to %s",
        service_name,
        otlp_endpoint or DEFAULT_OTLP_ENDPOINT if exporter is None else type(exporter).__name__,
    )
    return provider


def get_tracer(name: str) -> Tracer:
    return trace.get_tracer(name)


@contextmanager
def traced(
    tracer: Tracer,
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """
    Run a block inside a span, marking the span as failed if it raises.

    The exception is recorded on the span and re-raised unchanged.
    """
    with tracer.start_as_current_span(name, attributes=attributes) as span:
        try:
            yield span
        except Exception as exc:
            span.set_status(StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise


def fetch_span(tracer: Tracer, source: Source):
    """Span for one fetch of ``source``."""
    return traced(
        tracer,
        FETCH_SPAN,
        {
            "source.id": str(source.source_id),
            "source.type": source.source_type.value,
            "source.url": source.url,
        },
    )


def add_trace_context(
    logger_: Any, method: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding ``trace_id`` and ``span_id`` inside a span."""
    ctx = get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"
    return event_dict
