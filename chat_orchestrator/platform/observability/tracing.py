"""OpenTelemetry tracer setup.

Spans are exported over OTLP/gRPC to the configured collector. When tracing
is disabled the global no-op tracer provider stays in place, so
``trace.get_tracer`` calls elsewhere in the service remain valid.
"""

import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME as RESOURCE_SERVICE_NAME
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from chat_orchestrator.platform.constants import SERVICE_NAME

logger = logging.getLogger(__name__)


def initialize_tracing(host: str, port: int) -> TracerProvider | None:
    """Install an OTLP-exporting tracer provider.

    Args:
        host: Collector host; tracing stays disabled when empty
        port: Collector gRPC port

    Returns:
        The installed provider, or None when no collector is configured
    """
    if not host:
        logger.info("OpenTelemetry collector host not set, tracing disabled")
        return None
    provider = TracerProvider(resource=Resource.create({RESOURCE_SERVICE_NAME: SERVICE_NAME}))
    exporter = OTLPSpanExporter(endpoint=f"{host}:{port}", insecure=True)
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    return provider
