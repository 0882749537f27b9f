import enum

from opentelemetry.sdk._logs import LogRecordProcessor
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, LogExporter, SimpleLogRecordProcessor
from opentelemetry.sdk.trace import SpanProcessor
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter

LOCAL_ENVIRONMENT = "local"


class Strategy(enum.Enum):
    # export every record on the calling thread
    SYNC = "sync"
    # buffer records and flush from the SDK's background worker
    BATCH = "batch"


def select_strategy(environment: str | None) -> Strategy:
    """SYNC for exactly "local", BATCH for everything else, including unset."""
    if environment == LOCAL_ENVIRONMENT:
        return Strategy.SYNC
    return Strategy.BATCH


def span_processor(strategy: Strategy, exporter: SpanExporter) -> SpanProcessor:
    if strategy is Strategy.SYNC:
        return SimpleSpanProcessor(exporter)
    return BatchSpanProcessor(exporter)


def log_processor(strategy: Strategy, exporter: LogExporter) -> LogRecordProcessor:
    if strategy is Strategy.SYNC:
        return SimpleLogRecordProcessor(exporter)
    return BatchLogRecordProcessor(exporter)
