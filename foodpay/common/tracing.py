"""OpenTelemetry setup plus spans around gateway and reconciliation steps."""

from contextlib import contextmanager

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from foodpay.common.config import settings


tracer = trace.get_tracer("foodpay.payments")


def setup_tracing(service_name: str) -> None:
    """Register an OTLP HTTP exporter tagged with the service and its currency."""

    if not settings.tracing_enabled:
        return
    resource = Resource.create(
        {
            "service.name": service_name,
            "foodpay.payment_currency": settings.payment_currency,
            "foodpay.gateway": settings.gateway_base_url,
        }
    )
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)


@contextmanager
def payment_span(name: str, **attributes):
    """Child span for one payment step; attributes land under `foodpay.*`.

    Without a registered provider the tracer hands out non-recording spans.
    """

    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(f"foodpay.{key}", value)
        yield span


def instrument_app(app: FastAPI) -> None:
    """Attach FastAPI auto-instrumentation for request spans."""

    if not settings.tracing_enabled:
        return
    FastAPIInstrumentor.instrument_app(app)
