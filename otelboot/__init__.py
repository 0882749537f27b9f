"""
otelboot sets up the OpenTelemetry SDK for an application as automatically as
possible: it registers the global tracer, meter and logger providers, the
text-map propagator, and a logging bridge. Instrumentation is still up to you.

    shutdown = otelboot.start(otelboot.CancelContext.background(), "my-app")
    try:
        run()
    finally:
        shutdown(otelboot.CancelContext.background().with_timeout(5))
"""

from .context import CancelContext
from .errors import (
    Cancelled,
    ContextError,
    DeadlineExceeded,
    ExporterError,
    LogExporterError,
    MetricExporterError,
    ResourceBuildError,
    ShutdownError,
    SpanExporterError,
    TelemetryError,
)
from .log import get_logger
from .resource import with_attributes, with_detectors
from .shutdown import Shutdown
from .start import start
from .strategy import Strategy, select_strategy

__all__ = [
    "CancelContext",
    "Cancelled",
    "ContextError",
    "DeadlineExceeded",
    "ExporterError",
    "LogExporterError",
    "MetricExporterError",
    "ResourceBuildError",
    "Shutdown",
    "ShutdownError",
    "SpanExporterError",
    "Strategy",
    "TelemetryError",
    "get_logger",
    "select_strategy",
    "start",
    "with_attributes",
    "with_detectors",
]
