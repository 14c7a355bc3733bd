"""OpenTelemetry tracing for webhook delivery attempts.

Tracing is exported only when ``otel_exporter_endpoint`` is set. Without it
the global provider stays the API default and every span is a no-op, so the
dispatcher can open spans unconditionally.
"""
from __future__ import annotations

import structlog
from aiohttp import web

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

from payment_relay.settings import settings

logger = structlog.get_logger(__name__)

_provider: TracerProvider | None = None


def build_tracer_provider() -> TracerProvider:
    resource = Resource.create(
        {
            SERVICE_NAME: settings.app_name,
            "deployment.environment": settings.env,
        }
    )
    return TracerProvider(
        resource=resource,
        sampler=ParentBased(TraceIdRatioBased(settings.otel_sample_ratio)),
    )


async def setup_otel(_app: web.Application) -> None:
    """Install an OTLP-exporting provider. Register with ``app.on_startup``."""
    global _provider

    endpoint = settings.otel_exporter_endpoint
    if not endpoint:
        logger.info("otel_exporter_endpoint not set, tracing disabled")
        return

    _provider = build_tracer_provider()
    exporter = OTLPSpanExporter(endpoint=f"{str(endpoint).rstrip('/')}/v1/traces")
    _provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(_provider)

    logger.info(
        "tracing enabled",
        endpoint=str(endpoint),
        sample_ratio=settings.otel_sample_ratio,
    )


async def shutdown_otel(_app: web.Application) -> None:
    """Flush spans of the last delivery attempts before exit."""
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None
        logger.info("tracer provider shut down")


def get_tracer(name: str = __name__) -> trace.Tracer:
    return trace.get_tracer(name)


def current_trace_ids() -> dict[str, str]:
    """``trace_id``/``span_id`` of the active span, empty outside a recorded span."""
    ctx = trace.get_current_span().get_span_context()
    if not ctx.is_valid:
        return {}
    return {
        "trace_id": format(ctx.trace_id, "032x"),
        "span_id": format(ctx.span_id, "016x"),
    }
