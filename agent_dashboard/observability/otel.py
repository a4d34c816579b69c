"""OpenTelemetry wiring with a Prometheus fallback exporter.

Both backends are optional: when the packages are missing or telemetry is
disabled, every ``record_*`` helper is a no-op.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from agent_dashboard import config

logger = logging.getLogger("agent_dashboard.observability")

# name -> (instrument kind, description, prometheus label names)
_METRICS: dict[str, tuple[str, str, tuple[str, ...]]] = {
    "agent_dashboard_refresh_total": ("counter", "Count of snapshot recomputations", ("trigger", "result")),
    "agent_dashboard_refresh_latency_ms": ("histogram", "Latency of snapshot recomputations", ("trigger", "result")),
    "agent_dashboard_parser_failures_total": ("counter", "Skipped malformed indexes and log records", ("parser",)),
    "agent_dashboard_broadcast_messages_total": ("counter", "Live update messages delivered to subscribers", ("kind",)),
}

_initialized = False
_enabled = False
_tracer: Any | None = None
_providers: list[Any] = []
_fastapi_instrumentor: Any | None = None
_otel_instruments: dict[str, Any] = {}
_prom_instruments: dict[str, Any] = {}


def _signal_endpoint(base_endpoint: str, signal_path: str) -> str | None:
    endpoint = (base_endpoint or "").strip().rstrip("/")
    if not endpoint:
        return None
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/v1"):
        endpoint = endpoint[:-3]
    return f"{endpoint}{signal_path}"


def _start_prometheus() -> None:
    try:
        from prometheus_client import Counter, Histogram, start_http_server
    except ImportError as exc:
        logger.warning("Prometheus fallback unavailable: %s", exc)
        return
    try:
        start_http_server(config.PROM_PORT)
    except OSError as exc:
        logger.warning("Prometheus fallback not started: %s", exc)
        return
    factories = {"counter": Counter, "histogram": Histogram}
    for name, (kind, description, labels) in _METRICS.items():
        _prom_instruments[name] = factories[kind](name, description, list(labels))
    logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _fastapi_instrumentor

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return
    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (AGENT_DASHBOARD_OTEL_ENABLED=false)")
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

    service_name = config.OTEL_SERVICE_NAME or "agent-dashboard"
    resource = Resource.create({"service.name": service_name, "service.namespace": "agent-dashboard"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "/v1/traces")))
    )
    trace.set_tracer_provider(trace_provider)

    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=_signal_endpoint(config.OTEL_ENDPOINT, "/v1/metrics"))
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("agent_dashboard")

    for name, (kind, description, _labels) in _METRICS.items():
        if kind == "histogram":
            _otel_instruments[name] = meter.create_histogram(name, unit="ms", description=description)
        else:
            _otel_instruments[name] = meter.create_counter(name, unit="1", description=description)

    _providers.extend([meter_provider, trace_provider])
    _tracer = trace.get_tracer("agent_dashboard")
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True
    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info("OpenTelemetry initialized (service=%s endpoint=%s)", service_name, config.OTEL_ENDPOINT)


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    if app and _fastapi_instrumentor:
        try:
            _fastapi_instrumentor.uninstrument_app(app)
        except Exception as exc:  # noqa: BLE001
            logger.debug("FastAPI uninstrumentation failed: %s", exc)
    while _providers:
        provider = _providers.pop()
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
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


def _emit(name: str, value: float, labels: dict[str, str]) -> None:
    clean = {key: (val or "").strip() or "unknown" for key, val in labels.items()}
    instrument = _otel_instruments.get(name) if _enabled else None
    if instrument is not None:
        if _METRICS[name][0] == "histogram":
            instrument.record(value, clean)
        else:
            instrument.add(value, clean)

    prom = _prom_instruments.get(name)
    if prom is not None:
        bound = prom.labels(**{key: clean.get(key, "unknown") for key in _METRICS[name][2]})
        if _METRICS[name][0] == "histogram":
            bound.observe(value)
        else:
            bound.inc(value)


def record_refresh(trigger: str, result: str, duration_ms: float) -> None:
    labels = {"trigger": trigger, "result": result}
    _emit("agent_dashboard_refresh_total", 1, labels)
    _emit("agent_dashboard_refresh_latency_ms", max(0.0, float(duration_ms)), labels)


def record_parser_failure(parser: str, *, store: str = "") -> None:
    _emit("agent_dashboard_parser_failures_total", 1, {"parser": parser, "store": store})


def record_broadcast(kind: str, delivered: int) -> None:
    count = max(0, int(delivered))
    if count:
        _emit("agent_dashboard_broadcast_messages_total", count, {"kind": kind})
