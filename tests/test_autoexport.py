import socket
import urllib.error
import urllib.request

import pytest
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter as HttpLogExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpSpanExporter
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk._logs.export import ConsoleLogExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.trace.export import ConsoleSpanExporter
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import REGISTRY

from otelboot import (
    CancelContext,
    Cancelled,
    LogExporterError,
    MetricExporterError,
    SpanExporterError,
    autoexport,
)


@pytest.fixture
def ctx():
    return CancelContext.background()


def test_none_exporters(ctx):
    assert isinstance(autoexport.new_span_exporter(ctx), autoexport.NoopSpanExporter)
    assert isinstance(autoexport.new_metric_reader(ctx), autoexport.NoopMetricReader)
    assert isinstance(autoexport.new_log_exporter(ctx), autoexport.NoopLogExporter)


def test_console_exporters(ctx, monkeypatch):
    monkeypatch.setenv("OTEL_TRACES_EXPORTER", "console")
    monkeypatch.setenv("OTEL_METRICS_EXPORTER", " Console ")
    monkeypatch.setenv("OTEL_LOGS_EXPORTER", "console")

    reader = autoexport.new_metric_reader(ctx)
    try:
        assert isinstance(autoexport.new_span_exporter(ctx), ConsoleSpanExporter)
        assert isinstance(reader, PeriodicExportingMetricReader)
        assert isinstance(autoexport.new_log_exporter(ctx), ConsoleLogExporter)
    finally:
        reader.shutdown()


def test_default_is_otlp_over_http(ctx, monkeypatch):
    monkeypatch.delenv("OTEL_TRACES_EXPORTER")
    monkeypatch.delenv("OTEL_LOGS_EXPORTER")
    assert isinstance(autoexport.new_span_exporter(ctx), HttpSpanExporter)
    assert isinstance(autoexport.new_log_exporter(ctx), HttpLogExporter)


def test_grpc_protocol(ctx, monkeypatch):
    monkeypatch.setenv("OTEL_TRACES_EXPORTER", "otlp")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_PROTOCOL", "grpc")
    exporter = autoexport.new_span_exporter(ctx)
    try:
        assert isinstance(exporter, GrpcSpanExporter)
    finally:
        exporter.shutdown()


@pytest.mark.parametrize(
    "env, expected",
    [
        ({}, "http/protobuf"),
        ({"OTEL_EXPORTER_OTLP_PROTOCOL": "GRPC"}, "grpc"),
        ({"OTEL_EXPORTER_OTLP_PROTOCOL": "grpc", "OTEL_EXPORTER_OTLP_TRACES_PROTOCOL": "http/protobuf"}, "http/protobuf"),
        ({"OTEL_EXPORTER_OTLP_ENDPOINT": "https://collector:4318"}, "http/protobuf"),
        ({"OTEL_EXPORTER_OTLP_ENDPOINT": "grpc://collector:4317"}, "grpc"),
        ({"OTEL_EXPORTER_OTLP_TRACES_ENDPOINT": "collector:4317"}, "grpc"),
    ],
)
def test_otlp_protocol(monkeypatch, env, expected):
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    assert autoexport.otlp_protocol("traces") == expected


def test_http_json_is_rejected(ctx, monkeypatch):
    monkeypatch.setenv("OTEL_TRACES_EXPORTER", "otlp")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_PROTOCOL", "http/json")
    with pytest.raises(SpanExporterError) as excinfo:
        autoexport.new_span_exporter(ctx)
    assert isinstance(excinfo.value.__cause__, ValueError)


@pytest.mark.parametrize(
    "env_var, factory, error",
    [
        ("OTEL_TRACES_EXPORTER", autoexport.new_span_exporter, SpanExporterError),
        ("OTEL_METRICS_EXPORTER", autoexport.new_metric_reader, MetricExporterError),
        ("OTEL_LOGS_EXPORTER", autoexport.new_log_exporter, LogExporterError),
    ],
)
def test_unknown_exporter(ctx, monkeypatch, env_var, factory, error):
    monkeypatch.setenv(env_var, "carrier-pigeon")
    with pytest.raises(error, match="carrier-pigeon"):
        factory(ctx)


def test_first_of_several_is_used(ctx, monkeypatch, caplog):
    monkeypatch.setenv("OTEL_TRACES_EXPORTER", "console,otlp")
    assert isinstance(autoexport.new_span_exporter(ctx), ConsoleSpanExporter)
    assert "only 'console' is used" in caplog.text


def test_registered_exporter(ctx, monkeypatch):
    exporter = InMemorySpanExporter()
    monkeypatch.setattr(autoexport, "_SPAN_EXPORTERS", dict(autoexport._SPAN_EXPORTERS))
    autoexport.register_span_exporter("Memory", lambda: exporter)
    monkeypatch.setenv("OTEL_TRACES_EXPORTER", "memory")
    assert autoexport.new_span_exporter(ctx) is exporter


def test_factory_failure_is_wrapped(ctx, monkeypatch):
    def broken():
        raise OSError("no route to collector")

    monkeypatch.setitem(autoexport._LOG_EXPORTERS, "broken", broken)
    monkeypatch.setenv("OTEL_LOGS_EXPORTER", "broken")
    with pytest.raises(LogExporterError) as excinfo:
        autoexport.new_log_exporter(ctx)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_cancelled_context(monkeypatch):
    ctx = CancelContext.background().with_cancel()
    ctx.cancel()
    with pytest.raises(Cancelled):
        autoexport.new_span_exporter(ctx)


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _scrape(port):
    with urllib.request.urlopen(f"http://127.0.0.1:{port}/metrics", timeout=5) as response:
        return response.read().decode()


def test_prometheus_reader_serves_until_shutdown(ctx, monkeypatch):
    port = _free_port()
    monkeypatch.setenv("OTEL_METRICS_EXPORTER", "prometheus")
    monkeypatch.setenv("OTEL_EXPORTER_PROMETHEUS_HOST", "127.0.0.1")
    monkeypatch.setenv("OTEL_EXPORTER_PROMETHEUS_PORT", str(port))

    reader = autoexport.new_metric_reader(ctx)
    assert isinstance(reader, PrometheusMetricReader)
    provider = MeterProvider(metric_readers=[reader], shutdown_on_exit=False)
    provider.get_meter("test").create_counter("example.counter").add(3)

    assert "example_counter" in _scrape(port)

    provider.shutdown()
    with pytest.raises(urllib.error.URLError):
        _scrape(port)


def test_prometheus_port_in_use(ctx, monkeypatch):
    with socket.socket() as busy:
        busy.bind(("127.0.0.1", 0))
        busy.listen()
        monkeypatch.setenv("OTEL_METRICS_EXPORTER", "prometheus")
        monkeypatch.setenv("OTEL_EXPORTER_PROMETHEUS_HOST", "127.0.0.1")
        monkeypatch.setenv("OTEL_EXPORTER_PROMETHEUS_PORT", str(busy.getsockname()[1]))
        collectors_before = set(REGISTRY._collector_to_names)

        with pytest.raises(MetricExporterError) as excinfo:
            autoexport.new_metric_reader(ctx)

    assert isinstance(excinfo.value.__cause__, OSError)
    assert set(REGISTRY._collector_to_names) == collectors_before
