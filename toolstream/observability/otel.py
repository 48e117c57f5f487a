"""OpenTelemetry + Prometheus fallback wiring for toolstream."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from toolstream import config

logger = logging.getLogger("toolstream.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_entries_counter: Any | None = None
_skipped_lines_counter: Any | None = None
_decoder_failure_counter: Any | None = None
_tool_calls_counter: Any | None = None
_tool_duration_hist: Any | None = None
_tool_timeout_counter: Any | None = None

_prom_enabled = False
_prom_entries_counter: Any | None = None
_prom_skipped_lines_counter: Any | None = None
_prom_decoder_failure_counter: Any | None = None
_prom_tool_calls_counter: Any | None = None
_prom_tool_duration_hist: Any | None = None
_prom_tool_timeout_counter: Any | None = None


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


def _label(value: str | None) -> str:
    return (value or "").strip() or "unknown"


def _start_prometheus() -> None:
    global _prom_enabled
    global _prom_entries_counter, _prom_skipped_lines_counter, _prom_decoder_failure_counter
    global _prom_tool_calls_counter, _prom_tool_duration_hist, _prom_tool_timeout_counter

    try:
        from prometheus_client import Counter, Histogram, start_http_server

        start_http_server(config.PROM_PORT)
        _prom_entries_counter = Counter(
            "toolstream_entries_ingested_total",
            "Log entries read from session files",
        )
        _prom_skipped_lines_counter = Counter(
            "toolstream_lines_skipped_total",
            "Log lines skipped while tailing",
            ["reason"],
        )
        _prom_decoder_failure_counter = Counter(
            "toolstream_decoder_failures_total",
            "Tool call/result pairs a decoder failed on",
            ["tool"],
        )
        _prom_tool_calls_counter = Counter(
            "toolstream_tool_calls_total",
            "Correlated tool calls by normalized status",
            ["tool", "status"],
        )
        _prom_tool_duration_hist = Histogram(
            "toolstream_tool_duration_ms",
            "Time between a tool call and its result",
            ["tool"],
        )
        _prom_tool_timeout_counter = Counter(
            "toolstream_tool_timeouts_total",
            "Tool calls evicted without a result",
            ["tool"],
        )
        _prom_enabled = True
        logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Prometheus fallback not started: %s", exc)
        _prom_enabled = False


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _entries_counter, _skipped_lines_counter, _decoder_failure_counter
    global _tool_calls_counter, _tool_duration_hist, _tool_timeout_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (TOOLSTREAM_OTEL_ENABLED=false)")
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
    service_name = config.OTEL_SERVICE_NAME or "toolstream"

    resource = Resource.create({"service.name": service_name, "service.namespace": "toolstream"})

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)

    metric_reader = PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=metrics_endpoint or None))
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("toolstream")

    _entries_counter = meter.create_counter(
        "toolstream_entries_ingested_total",
        unit="1",
        description="Log entries read from session files",
    )
    _skipped_lines_counter = meter.create_counter(
        "toolstream_lines_skipped_total",
        unit="1",
        description="Log lines skipped while tailing",
    )
    _decoder_failure_counter = meter.create_counter(
        "toolstream_decoder_failures_total",
        unit="1",
        description="Tool call/result pairs a decoder failed on",
    )
    _tool_calls_counter = meter.create_counter(
        "toolstream_tool_calls_total",
        unit="1",
        description="Correlated tool calls by normalized status",
    )
    _tool_duration_hist = meter.create_histogram(
        "toolstream_tool_duration_ms",
        unit="ms",
        description="Time between a tool call and its result",
    )
    _tool_timeout_counter = meter.create_counter(
        "toolstream_tool_timeouts_total",
        unit="1",
        description="Tool calls evicted without a result",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = trace.get_tracer("toolstream")
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
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception as exc:  # noqa: BLE001
        logger.debug("FastAPI uninstrument failed: %s", exc)
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
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
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_entries_ingested(count: int = 1) -> None:
    safe_count = max(0, int(count))
    if safe_count == 0:
        return
    if _enabled and _entries_counter is not None:
        _entries_counter.add(safe_count)
    if _prom_enabled and _prom_entries_counter is not None:
        _prom_entries_counter.inc(safe_count)


def record_line_skipped(reason: str) -> None:
    labels = {"reason": _label(reason)}
    if _enabled and _skipped_lines_counter is not None:
        _skipped_lines_counter.add(1, labels)
    if _prom_enabled and _prom_skipped_lines_counter is not None:
        _prom_skipped_lines_counter.labels(**labels).inc()


def record_decoder_failure(tool: str) -> None:
    labels = {"tool": _label(tool)}
    if _enabled and _decoder_failure_counter is not None:
        _decoder_failure_counter.add(1, labels)
    if _prom_enabled and _prom_decoder_failure_counter is not None:
        _prom_decoder_failure_counter.labels(**labels).inc()


def record_tool_result(tool: str, status: str, duration_ms: float | None = None) -> None:
    labels = {"tool": _label(tool), "status": _label(status)}
    if _enabled and _tool_calls_counter is not None:
        _tool_calls_counter.add(1, labels)
    if _enabled and _tool_duration_hist is not None and duration_ms and duration_ms > 0:
        _tool_duration_hist.record(float(duration_ms), {"tool": labels["tool"]})
    if _prom_enabled and _prom_tool_calls_counter is not None:
        _prom_tool_calls_counter.labels(**labels).inc()
    if _prom_enabled and _prom_tool_duration_hist is not None and duration_ms and duration_ms > 0:
        _prom_tool_duration_hist.labels(tool=labels["tool"]).observe(float(duration_ms))


def record_tool_timeout(tool: str) -> None:
    labels = {"tool": _label(tool)}
    if _enabled and _tool_timeout_counter is not None:
        _tool_timeout_counter.add(1, labels)
    if _prom_enabled and _prom_tool_timeout_counter is not None:
        _prom_tool_timeout_counter.labels(**labels).inc()
