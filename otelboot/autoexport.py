"""
Exporter selection driven by the standard OTEL_* environment variables.

    OTEL_TRACES_EXPORTER   otlp (default) | console | none
    OTEL_METRICS_EXPORTER  otlp (default) | console | prometheus | none
    OTEL_LOGS_EXPORTER     otlp (default) | console | none

The OTLP exporters are built without an explicit endpoint; they read
OTEL_EXPORTER_OTLP_ENDPOINT (or the per-signal variant) and their other
settings from the environment themselves. Extra choices can be added with
the register_* functions.
"""

from __future__ import annotations

import logging
import os
from typing import Callable
from urllib.parse import urlparse

from opentelemetry.sdk._logs.export import ConsoleLogExporter, LogExporter, LogExportResult
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SpanExporter, SpanExportResult

from .context import CancelContext
from .errors import ContextError, LogExporterError, MetricExporterError, SpanExporterError

LOGGER = logging.getLogger(__name__)

SpanExporterFactory = Callable[[], SpanExporter]
MetricReaderFactory = Callable[[], MetricReader]
LogExporterFactory = Callable[[], LogExporter]

_DEFAULT_EXPORTER = "otlp"


class NoopSpanExporter(SpanExporter):
    def export(self, spans):
        return SpanExportResult.SUCCESS

    def shutdown(self):
        pass


class NoopLogExporter(LogExporter):
    def export(self, batch):
        return LogExportResult.SUCCESS

    def shutdown(self):
        pass


class NoopMetricReader(MetricReader):
    """Reader that is attached to the provider but never collects."""

    def _receive_metrics(self, metrics_data, timeout_millis: float = 10_000, **kwargs) -> None:
        pass

    def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
        pass


def otlp_protocol(signal: str) -> str:
    """
    Resolve the OTLP wire protocol for one signal ("traces", "metrics", "logs"):
    - OTEL_EXPORTER_OTLP_<SIGNAL>_PROTOCOL, then OTEL_EXPORTER_OTLP_PROTOCOL
    - otherwise fall back to the endpoint scheme: http/https -> HTTP,
      anything else -> gRPC
    - no endpoint configured either -> http/protobuf
    """
    proto_env = (
        os.getenv(f"OTEL_EXPORTER_OTLP_{signal.upper()}_PROTOCOL", "").lower().strip()
        or os.getenv("OTEL_EXPORTER_OTLP_PROTOCOL", "").lower().strip()
    )
    if proto_env:
        return proto_env

    endpoint = (
        os.getenv(f"OTEL_EXPORTER_OTLP_{signal.upper()}_ENDPOINT", "").strip()
        or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "").strip()
    )
    if not endpoint:
        return "http/protobuf"
    scheme = urlparse(endpoint).scheme.lower()
    return "http/protobuf" if scheme in ("http", "https") else "grpc"


def _want_grpc(signal: str) -> bool:
    protocol = otlp_protocol(signal)
    if protocol == "grpc":
        return True
    if protocol == "http/protobuf":
        return False
    raise ValueError(f"unsupported OTLP protocol {protocol!r} for {signal}")


def _otlp_span_exporter() -> SpanExporter:
    if _want_grpc("traces"):
        # lazy-import gRPC exporter; if that fails, fail hard (no HTTP fallback)
        try:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        except ImportError as exc:
            raise RuntimeError(
                "gRPC OTLP exporter imports failed. Install the necessary packages / system libs."
            ) from exc
    else:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
    return OTLPSpanExporter()


def _otlp_metric_reader() -> MetricReader:
    if _want_grpc("metrics"):
        try:
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
        except ImportError as exc:
            raise RuntimeError(
                "gRPC OTLP exporter imports failed. Install the necessary packages / system libs."
            ) from exc
    else:
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
    return PeriodicExportingMetricReader(OTLPMetricExporter())


def _otlp_log_exporter() -> LogExporter:
    if _want_grpc("logs"):
        try:
            from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
        except ImportError as exc:
            raise RuntimeError(
                "gRPC OTLP exporter imports failed. Install the necessary packages / system libs."
            ) from exc
    else:
        from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
    return OTLPLogExporter()


def _prometheus_metric_reader() -> MetricReader:
    from opentelemetry.exporter.prometheus import PrometheusMetricReader
    from prometheus_client import start_http_server

    host = os.getenv("OTEL_EXPORTER_PROMETHEUS_HOST", "localhost").strip() or "localhost"
    port = int(os.getenv("OTEL_EXPORTER_PROMETHEUS_PORT", "9464").strip() or 9464)

    class _ServedPrometheusMetricReader(PrometheusMetricReader):
        def shutdown(self, timeout_millis: float = 30_000, **kwargs) -> None:
            try:
                super().shutdown(timeout_millis=timeout_millis, **kwargs)
            finally:
                server.shutdown()
                server.server_close()

    # the collector lands in the global REGISTRY; create it only once the port is bound
    server, _thread = start_http_server(port, addr=host)
    try:
        reader = _ServedPrometheusMetricReader()
    except Exception:
        server.shutdown()
        server.server_close()
        raise
    LOGGER.info("Serving Prometheus metrics on %s:%d", host, port)
    return reader


_SPAN_EXPORTERS: dict[str, SpanExporterFactory] = {
    "otlp": _otlp_span_exporter,
    "console": ConsoleSpanExporter,
    "none": NoopSpanExporter,
}

_METRIC_READERS: dict[str, MetricReaderFactory] = {
    "otlp": _otlp_metric_reader,
    "console": lambda: PeriodicExportingMetricReader(ConsoleMetricExporter()),
    "prometheus": _prometheus_metric_reader,
    "none": NoopMetricReader,
}

_LOG_EXPORTERS: dict[str, LogExporterFactory] = {
    "otlp": _otlp_log_exporter,
    "console": ConsoleLogExporter,
    "none": NoopLogExporter,
}


def register_span_exporter(name: str, factory: SpanExporterFactory) -> None:
    _SPAN_EXPORTERS[name.lower().strip()] = factory


def register_metric_reader(name: str, factory: MetricReaderFactory) -> None:
    _METRIC_READERS[name.lower().strip()] = factory


def register_log_exporter(name: str, factory: LogExporterFactory) -> None:
    _LOG_EXPORTERS[name.lower().strip()] = factory


def exporter_name(env_var: str) -> str:
    raw = os.getenv(env_var, "").lower().strip()
    if not raw:
        return _DEFAULT_EXPORTER
    names = [name.strip() for name in raw.split(",") if name.strip()]
    if not names:
        return _DEFAULT_EXPORTER
    if len(names) > 1:
        LOGGER.warning("%s lists %d exporters, only %r is used", env_var, len(names), names[0])
    return names[0]


def _create(ctx, env_var, factories, error_cls):
    ctx.raise_if_done()
    name = exporter_name(env_var)
    factory = factories.get(name)
    if factory is None:
        raise error_cls(f"unsupported {env_var} value {name!r}")
    try:
        exporter = factory()
    except ContextError:
        raise
    except Exception as exc:
        raise error_cls(f"creating {name!r} exporter failed: {exc}") from exc
    LOGGER.debug("Using %r exporter from %s", name, env_var)
    return exporter


def new_span_exporter(ctx: CancelContext) -> SpanExporter:
    return _create(ctx, "OTEL_TRACES_EXPORTER", _SPAN_EXPORTERS, SpanExporterError)


def new_metric_reader(ctx: CancelContext) -> MetricReader:
    return _create(ctx, "OTEL_METRICS_EXPORTER", _METRIC_READERS, MetricExporterError)


def new_log_exporter(ctx: CancelContext) -> LogExporter:
    return _create(ctx, "OTEL_LOGS_EXPORTER", _LOG_EXPORTERS, LogExporterError)
