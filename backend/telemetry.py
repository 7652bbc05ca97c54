# telemetry.py — Optional OpenTelemetry tracing
"""
Traces HTTP requests and SQL statements when OTEL_EXPORTER_OTLP_ENDPOINT is
set. Without an endpoint, or without the ``telemetry`` extra installed, every
call here is a no-op.
"""
import os
import logging

logger = logging.getLogger("taskboard.telemetry")

SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "taskboard-api")
OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")


def _provider(endpoint: str, exporter=None):
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

    provider = TracerProvider(resource=Resource.create({
        "service.name": SERVICE_NAME,
        "deployment.environment": os.getenv("ENVIRONMENT", "development"),
    }))
    if exporter is None:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
    else:
        provider.add_span_processor(SimpleSpanProcessor(exporter))
    return provider


def setup_telemetry(app=None, endpoint=None, engine=None, exporter=None):
    """Instrument ``app`` and the database engine; returns the provider or None.

    ``exporter`` replaces the OTLP exporter (spans are then exported
    synchronously), ``engine`` replaces the application's async engine.
    """
    endpoint = OTLP_ENDPOINT if endpoint is None else endpoint
    if not endpoint:
        logger.info("Tracing disabled (OTEL_EXPORTER_OTLP_ENDPOINT not set)")
        return None

    try:
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
        provider = _provider(endpoint, exporter)
    except ImportError:
        logger.warning("Tracing requested but the telemetry extra is not installed")
        return None

    if app is not None:
        FastAPIInstrumentor.instrument_app(app, excluded_urls="health", tracer_provider=provider)

    if engine is None:
        from database import engine
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine, tracer_provider=provider)

    logger.info("Tracing %s to %s", SERVICE_NAME, endpoint)
    return provider


def shutdown_telemetry(app=None, provider=None):
    """Undo :func:`setup_telemetry` and flush pending spans"""
    if provider is None:
        return
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    if app is not None:
        FastAPIInstrumentor.uninstrument_app(app)
    SQLAlchemyInstrumentor().uninstrument()
    provider.shutdown()
