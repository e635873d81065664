"""OpenTelemetry + Prometheus fallback wiring for the GitLog backend."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from gitlog_backend import config

logger = logging.getLogger("gitlog.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_diff_fetch_counter: Any | None = None
_diff_fetch_latency_hist: Any | None = None
_report_counter: Any | None = None
_report_latency_hist: Any | None = None
_llm_cache_counter: Any | None = None

_prom_enabled = False
_prom_diff_fetch_counter: Any | None = None
_prom_diff_fetch_latency_hist: Any | None = None
_prom_report_counter: Any | None = None
_prom_report_latency_hist: Any | None = None
_prom_llm_cache_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _diff_fetch_counter, _diff_fetch_latency_hist, _report_counter, _report_latency_hist, _llm_cache_counter
    global _prom_enabled, _prom_diff_fetch_counter, _prom_diff_fetch_latency_hist
    global _prom_report_counter, _prom_report_latency_hist, _prom_llm_cache_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (GITLOG_OTEL_ENABLED=false)")
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

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "gitlog-backend"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "gitlog",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("gitlog.backend")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("gitlog.backend")

    _diff_fetch_counter = meter.create_counter(
        "gitlog_diff_fetches_total",
        unit="1",
        description="Outbound commit diff fetches by result",
    )
    _diff_fetch_latency_hist = meter.create_histogram(
        "gitlog_diff_fetch_latency_ms",
        unit="ms",
        description="Latency of outbound commit diff fetches",
    )
    _report_counter = meter.create_counter(
        "gitlog_report_generations_total",
        unit="1",
        description="Report generation requests by kind and result",
    )
    _report_latency_hist = meter.create_histogram(
        "gitlog_report_generation_latency_ms",
        unit="ms",
        description="Report generation latency",
    )
    _llm_cache_counter = meter.create_counter(
        "gitlog_llm_cache_lookups_total",
        unit="1",
        description="LLM response cache lookups by result",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_diff_fetch_counter = Counter(
                "gitlog_diff_fetches_total",
                "Outbound commit diff fetches by result",
                ["result"],
            )
            _prom_diff_fetch_latency_hist = Histogram(
                "gitlog_diff_fetch_latency_ms",
                "Latency of outbound commit diff fetches",
                ["result"],
            )
            _prom_report_counter = Counter(
                "gitlog_report_generations_total",
                "Report generation requests by kind and result",
                ["kind", "result"],
            )
            _prom_report_latency_hist = Histogram(
                "gitlog_report_generation_latency_ms",
                "Report generation latency",
                ["kind", "result"],
            )
            _prom_llm_cache_counter = Counter(
                "gitlog_llm_cache_lookups_total",
                "LLM response cache lookups by result",
                ["result"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    try:
        if _meter_provider is not None:
            _meter_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Meter provider shutdown failed: %s", exc)
    try:
        if _trace_provider is not None:
            _trace_provider.shutdown()
    except Exception as exc:  # noqa: BLE001
        logger.debug("Trace provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_diff_fetch(result: str, duration_ms: float) -> None:
    labels = {"result": _label(result)}
    if _enabled and _diff_fetch_counter is not None:
        _diff_fetch_counter.add(1, labels)
    if _enabled and _diff_fetch_latency_hist is not None:
        _diff_fetch_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_diff_fetch_counter is not None:
        _prom_diff_fetch_counter.labels(**labels).inc()
    if _prom_enabled and _prom_diff_fetch_latency_hist is not None:
        _prom_diff_fetch_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))


def record_report_generation(kind: str, result: str, duration_ms: float) -> None:
    labels = {"kind": _label(kind), "result": _label(result)}
    if _enabled and _report_counter is not None:
        _report_counter.add(1, labels)
    if _enabled and _report_latency_hist is not None:
        _report_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_report_counter is not None:
        _prom_report_counter.labels(**labels).inc()
    if _prom_enabled and _prom_report_latency_hist is not None:
        _prom_report_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))


def record_llm_cache(result: str) -> None:
    labels = {"result": _label(result)}
    if _enabled and _llm_cache_counter is not None:
        _llm_cache_counter.add(1, labels)
    if _prom_enabled and _prom_llm_cache_counter is not None:
        _prom_llm_cache_counter.labels(**labels).inc()
