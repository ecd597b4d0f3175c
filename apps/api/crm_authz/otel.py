from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Span

from crm_authz.context import get_correlation_id


_configured = False
_provider: TracerProvider | None = None
_authz_tracer = trace.get_tracer("crm_authz.authz")


def _get_or_create_provider(service_name: str) -> TracerProvider:
    global _provider

    provider = _provider
    if provider is not None:
        return provider

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": os.getenv("APP_VERSION", "0.1.0"),
        }
    )
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    """Install the SDK provider and, when an endpoint is configured, the OTLP exporter."""

    global _configured

    if not enable:
        return None

    provider = _get_or_create_provider(service_name)
    if _configured:
        return provider

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    _configured = True
    return provider


def setup_inmemory_otel(service_name: str = "crm-authz") -> InMemorySpanExporter:
    provider = _get_or_create_provider(service_name)
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@contextmanager
def authz_span(name: str, user_id: int | None, role: str | None, **attributes: Any) -> Iterator[Span]:
    """Span around one authorization decision.

    Attributes are namespaced under ``authz.``; the request correlation id is
    attached so decisions can be joined with the request span.
    """

    with _authz_tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            span.set_attribute(f"authz.{key}", value)
        if user_id is not None:
            span.set_attribute("authz.user_id", user_id)
        if role is not None:
            span.set_attribute("authz.role", role)
        correlation_id = get_correlation_id()
        if correlation_id:
            span.set_attribute("correlation_id", correlation_id)
        yield span


def annotate_request_span(correlation_id: str) -> None:
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute("correlation_id", correlation_id)


def get_fastapi_server_request_hook():
    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None:
            return
        headers = dict(scope.get("headers", []))
        correlation_raw = headers.get(b"x-correlation-id")
        if correlation_raw:
            span.set_attribute("correlation_id", correlation_raw.decode("utf-8"))

    return server_request_hook
