"""
Exam Review - Telemetry Module
OpenTelemetry tracing for the review scheduler
"""
import logging
from contextlib import contextmanager
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.trace import Status, StatusCode

from exam_review.core.config import settings

logger = logging.getLogger(__name__)

TRACER_NAME = "exam_review.scheduler"

_provider: Optional[TracerProvider] = None


def init_telemetry() -> trace.Tracer:
    """
    Install a tracer provider exporting to OTLP, or to the console when no
    collector endpoint is configured. Call this once at application startup.
    """
    global _provider

    if _provider is not None:
        return get_tracer()

    resource = Resource.create({
        "service.name": settings.OTEL_SERVICE_NAME,
        "service.version": settings.APP_VERSION,
        "deployment.environment": settings.ENVIRONMENT,
    })
    provider = TracerProvider(resource=resource)

    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        exporter = OTLPSpanExporter(
            endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True,
        )
    else:
        exporter = ConsoleSpanExporter()
    provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _provider = provider

    logger.info(
        "Telemetry initialized for %s (exporter: %s)",
        settings.OTEL_SERVICE_NAME,
        type(exporter).__name__,
    )
    return get_tracer()


def get_tracer() -> trace.Tracer:
    """Tracer from the global provider; spans are no-ops until init_telemetry runs."""
    return trace.get_tracer(TRACER_NAME, settings.APP_VERSION)


@contextmanager
def review_span(name: str, attributes: Optional[dict] = None):
    """
    Context manager for scheduler operation spans.

    Usage:
        with review_span("record_answer", {"review.question_id": qid}) as span:
            span.set_attribute("review.new_level", 3)
    """
    tracer = get_tracer()
    with tracer.start_as_current_span(name) as span:
        span.set_attribute("review.operation", name)

        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, value if value is not None else "")

        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
