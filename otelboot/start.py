import logging

from opentelemetry import _logs, metrics, propagate, trace
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.trace import TracerProvider

from . import autoexport, autoprop, log
from .context import CancelContext
from .errors import ResourceBuildError, TelemetryError
from .resource import ResourceOption, build_resource, environment_name
from .shutdown import Release, Shutdown
from .strategy import log_processor, select_strategy, span_processor

LOGGER = logging.getLogger(__name__)


def start(ctx: CancelContext, service_name: str, *resource_options: ResourceOption) -> Shutdown:
    """
    Set up tracing, metrics and logging for the process.

    Registers the global propagator and the tracer, meter and logger
    providers, and bridges stdlib logging into the log provider. Exporters
    are picked from OTEL_TRACES_EXPORTER / OTEL_METRICS_EXPORTER /
    OTEL_LOGS_EXPORTER (see otelboot.autoexport). When the resource's
    deployment.environment.name is "local", spans and logs are exported
    synchronously; otherwise they are batched.

    Returns the Shutdown callable that must be invoked on graceful
    termination. Every TelemetryError raised from here carries the partial
    Shutdown as `.shutdown`, which releases whatever was acquired.
    """
    propagate.set_global_textmap(autoprop.text_map_propagator())

    shutdown = Shutdown()
    try:
        _start(ctx, service_name, resource_options, shutdown)
    except TelemetryError as err:
        err.shutdown = shutdown
        raise
    return shutdown


def _start(ctx, service_name, resource_options, shutdown):
    try:
        resource = build_resource(ctx, *resource_options, service_name=service_name)
    except ResourceBuildError as err:
        # exporters are independent of the resource; go on with what was detected
        LOGGER.warning("Continuing with partial resource: %s", err)
        shutdown.resource_error = err
        resource = err.resource

    span_exporter = autoexport.new_span_exporter(ctx)
    span_release = shutdown.register(Release("traces", lambda _ctx: span_exporter.shutdown()))

    metric_reader = autoexport.new_metric_reader(ctx)
    metric_release = shutdown.register(
        Release("metrics", lambda c: metric_reader.shutdown(timeout_millis=c.remaining_millis()))
    )

    log_exporter = autoexport.new_log_exporter(ctx)
    log_release = shutdown.register(Release("logs", lambda _ctx: log_exporter.shutdown()))

    strategy = select_strategy(environment_name(resource))
    LOGGER.debug("Using %s span and log processing", strategy.value)

    tracer_provider = TracerProvider(resource=resource, shutdown_on_exit=False)
    tracer_provider.add_span_processor(span_processor(strategy, span_exporter))

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[metric_reader],
        shutdown_on_exit=False,
    )

    logger_provider = LoggerProvider(resource=resource, shutdown_on_exit=False)
    logger_provider.add_log_record_processor(log_processor(strategy, log_exporter))

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)
    _logs.set_logger_provider(logger_provider)
    handler = log.install(service_name, logger_provider)

    # the providers own the exporters from here on; shutting them down
    # flushes pending records before the exporters are released
    span_release.func = lambda _ctx: tracer_provider.shutdown()
    metric_release.func = lambda c: meter_provider.shutdown(timeout_millis=c.remaining_millis())

    def release_logs(_ctx):
        log.uninstall(handler)
        logger_provider.shutdown()

    log_release.func = release_logs

    shutdown.resource = resource
    shutdown.strategy = strategy
    return shutdown
