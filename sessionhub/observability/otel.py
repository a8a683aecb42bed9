"""OpenTelemetry + Prometheus fallback wiring for the SessionHub backend."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from sessionhub import config

logger = logging.getLogger("sessionhub.observability")

LISTINGS = "sessionhub_session_listings_total"
LISTING_LATENCY = "sessionhub_session_listing_latency_ms"
PARSER_FAILURES = "sessionhub_parser_failures_total"

# name -> (kind, unit, description, label names)
METRICS: dict[str, tuple[str, str, str, tuple[str, ...]]] = {
    LISTINGS: ("counter", "1", "Count of session catalog queries", ("scope", "result")),
    LISTING_LATENCY: (
        "histogram",
        "ms",
        "Latency for merging live sessions with the transcript store",
        ("scope", "result"),
    ),
    PARSER_FAILURES: (
        "counter",
        "1",
        "Count of transcript files or directories skipped as unreadable",
        ("parser", "reason"),
    ),
}

_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

# Instruments keyed by metric name; empty while the backend is off.
_otel_instruments: dict[str, Any] = {}
_prom_instruments: dict[str, Any] = {}


def _signal_endpoint(base_endpoint: str, signal_path: str) -> str | None:
    endpoint = (base_endpoint or "").strip().rstrip("/")
    if not endpoint:
        return None
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/v1"):
        endpoint = endpoint[: -len("/v1")]
    return f"{endpoint}{signal_path}"


def _labels(names: tuple[str, ...], values: tuple[str, ...]) -> dict[str, str]:
    return {name: (value or "").strip() or "unknown" for name, value in zip(names, values)}


def _create_otel_instruments(meter: Any) -> dict[str, Any]:
    instruments = {}
    for name, (kind, unit, description, _) in METRICS.items():
        factory = meter.create_counter if kind == "counter" else meter.create_histogram
        instruments[name] = factory(name, unit=unit, description=description)
    return instruments


def _start_prometheus(port: int) -> dict[str, Any]:
    from prometheus_client import Counter, Histogram, start_http_server

    start_http_server(port)
    instruments = {}
    for name, (kind, _, description, label_names) in METRICS.items():
        factory = Counter if kind == "counter" else Histogram
        instruments[name] = factory(name, description, list(label_names))
    return instruments


def _emit(name: str, values: tuple[str, ...], amount: float) -> None:
    kind, _, _, label_names = METRICS[name]
    labels = _labels(label_names, values)

    instrument = _otel_instruments.get(name) if _enabled else None
    if instrument is not None:
        if kind == "counter":
            instrument.add(amount, labels)
        else:
            instrument.record(amount, labels)

    prom = _prom_instruments.get(name)
    if prom is not None:
        if kind == "counter":
            prom.labels(**labels).inc(amount)
        else:
            prom.labels(**labels).observe(amount)


def initialize(app: FastAPI | None = None) -> None:
    """Set up tracing and metrics once; later calls only instrument ``app``."""
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _otel_instruments, _prom_instruments

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (SESSIONHUB_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    service_name = config.OTEL_SERVICE_NAME or "sessionhub-backend"
    resource = Resource.create({"service.name": service_name, "service.namespace": "sessionhub"})

    _trace_provider = TracerProvider(resource=resource)
    _trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "/v1/traces")))
    )
    trace.set_tracer_provider(_trace_provider)
    _tracer = trace.get_tracer("sessionhub.registry")

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "/v1/metrics"))
    )
    _meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(_meter_provider)
    _otel_instruments = _create_otel_instruments(metrics.get_meter("sessionhub.registry"))

    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True
    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            _prom_instruments = _start_prometheus(config.PROM_PORT)
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_instruments = {}

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    steps = (
        ("FastAPI uninstrumentation", lambda: app and _fastapi_instrumentor and _fastapi_instrumentor.uninstrument_app(app)),
        ("Meter provider shutdown", lambda: _meter_provider and _meter_provider.shutdown()),
        ("Trace provider shutdown", lambda: _trace_provider and _trace_provider.shutdown()),
    )
    for label, step in steps:
        try:
            step()
        except Exception:
            logger.debug("%s failed", label, exc_info=True)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_listing(scope: str, result: str, duration_ms: float) -> None:
    _emit(LISTINGS, (scope, result), 1)
    _emit(LISTING_LATENCY, (scope, result), max(0.0, float(duration_ms)))


def record_parser_failure(parser: str, reason: str) -> None:
    _emit(PARSER_FAILURES, (parser, reason), 1)
