import logging
import os

import pytest
from opentelemetry.sdk._logs import LoggingHandler
from opentelemetry.test.globals_test import (
    reset_logging_globals,
    reset_metrics_globals,
    reset_trace_globals,
)

from otelboot import log

# Default every signal to "none" so nothing tries to reach a collector on localhost.
os.environ.setdefault("OTEL_TRACES_EXPORTER", "none")
os.environ.setdefault("OTEL_METRICS_EXPORTER", "none")
os.environ.setdefault("OTEL_LOGS_EXPORTER", "none")


@pytest.fixture(autouse=True)
def otel_globals():
    """The SDK only lets each global provider be set once per process."""
    reset_trace_globals()
    reset_metrics_globals()
    reset_logging_globals()
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, LoggingHandler):
            root.removeHandler(handler)
    logging.captureWarnings(False)
    log._captured_before.clear()
    reset_trace_globals()
    reset_metrics_globals()
    reset_logging_globals()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "OTEL_RESOURCE_ATTRIBUTES",
        "OTEL_SERVICE_NAME",
        "OTEL_PROPAGATORS",
        "OTEL_PYTHON_LOG_LEVEL",
        "OTEL_EXPORTER_OTLP_ENDPOINT",
        "OTEL_EXPORTER_OTLP_PROTOCOL",
        "OTEL_EXPORTER_OTLP_TRACES_PROTOCOL",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_PROTOCOL",
        "OTEL_EXPORTER_OTLP_LOGS_PROTOCOL",
        "ECS_CONTAINER_METADATA_URI",
        "ECS_CONTAINER_METADATA_URI_V4",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OTEL_TRACES_EXPORTER", "none")
    monkeypatch.setenv("OTEL_METRICS_EXPORTER", "none")
    monkeypatch.setenv("OTEL_LOGS_EXPORTER", "none")
