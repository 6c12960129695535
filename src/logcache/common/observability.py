"""Shared observability utilities for the Log Cache tooling."""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional
from urllib.parse import unquote

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
try:  # pragma: no cover - optional dependency
    from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
except ModuleNotFoundError:  # pragma: no cover - instrumentation extra not installed
    HTTPXClientInstrumentor = None  # type: ignore[assignment]
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from structlog.contextvars import bind_contextvars

from .. import __version__
from .settings import LogCacheSettings


_logging_configured = False
_tracer_configured = False
_httpx_instrumented = False


def _log_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        normalized = level.strip().upper()
        numeric = logging.getLevelName(normalized)
        if isinstance(numeric, int):
            return numeric
    return logging.WARNING


def configure_logging(
    service_name: str,
    level: str | int | None = None,
    *,
    json_output: bool | None = None,
) -> None:
    """Configure structlog for the CLI.

    Logs go to stderr so table output on stdout stays clean. JSON rendering is
    used unless stderr is an interactive terminal; ``json_output`` forces
    either mode.
    """

    global _logging_configured
    numeric_level = _log_level(level)
    if not _logging_configured:
        logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stderr)
        _logging_configured = True
    else:
        logging.getLogger().setLevel(numeric_level)

    if json_output is None:
        json_output = not sys.stderr.isatty()
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    bind_contextvars(service=service_name)


def parse_otlp_headers(headers: str | None) -> Dict[str, str]:
    """Parse ``key=value`` pairs in the ``OTEL_EXPORTER_OTLP_HEADERS`` format.

    Values may be percent-encoded; entries without a key or value are skipped.
    """

    if not headers:
        return {}
    result: Dict[str, str] = {}
    for item in headers.split(","):
        key, _, value = item.partition("=")
        key, value = key.strip(), unquote(value.strip())
        if key and value:
            result[key] = value
    return result


def configure_tracing(settings: LogCacheSettings) -> Optional[TracerProvider]:
    """Install an SDK tracer provider described by ``settings``.

    Spans are exported over OTLP/HTTP when an exporter endpoint is set and kept
    in memory otherwise. Returns the installed provider, or ``None`` when a
    provider was already in place.
    """

    global _tracer_configured, _httpx_instrumented
    if _tracer_configured or isinstance(trace.get_tracer_provider(), TracerProvider):
        _tracer_configured = True
        return None

    resource = Resource.create({"service.name": settings.otel_service_name, "service.version": __version__})
    sampler_ratio = max(0.0, min(1.0, settings.otel_sampler_ratio))
    provider = TracerProvider(resource=resource, sampler=TraceIdRatioBased(sampler_ratio))

    if settings.otel_exporter_endpoint:
        exporter = OTLPSpanExporter(
            endpoint=settings.otel_exporter_endpoint,
            headers=parse_otlp_headers(settings.otel_exporter_headers),
            timeout=settings.http_timeout_seconds,
        )
        provider.add_span_processor(BatchSpanProcessor(exporter))
    else:
        provider.add_span_processor(SimpleSpanProcessor(InMemorySpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer_configured = True

    if settings.otel_instrument_httpx and not _httpx_instrumented and HTTPXClientInstrumentor is not None:
        HTTPXClientInstrumentor().instrument()
        _httpx_instrumented = True
    return provider
