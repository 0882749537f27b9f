import logging
import sys
import time

from opentelemetry import metrics, trace

import otelboot


def configure_stdout_logging():
    # stdout only WARN+, the OTel handler installed by otelboot takes INFO+
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.WARNING)
    stdout_handler.setFormatter(
        logging.Formatter(
            fmt="[STDOUT][{levelname}][{name}] {message}",
            style="{",
        )
    )
    logging.getLogger().addHandler(stdout_handler)
    return stdout_handler


def run(iterations: int = 500, interval: float = 1.0):
    log = otelboot.get_logger()
    tracer = trace.get_tracer(__name__)
    meter = metrics.get_meter(__name__)

    counter = meter.create_counter("example.counter", description="Example counter")

    for i in range(iterations):
        print(f"--- Iteration {i} ---")
        with tracer.start_as_current_span("iteration-span") as span:
            span.set_attribute("iteration", i)
            counter.add(1, {"iteration": str(i)})
            try:
                # simulate an error for demonstration
                if i == 5:
                    1 / 0
                log.info("iteration %d - info goes to OTLP", i)
                log.warning("iteration %d - warning goes to stdout + OTLP", i)
            except ZeroDivisionError:
                log.exception("iteration %d failed with exception", i)
        time.sleep(interval)


def main():
    configure_stdout_logging()
    try:
        shutdown = otelboot.start(otelboot.CancelContext.background(), "testpythonapp")
    except otelboot.TelemetryError as exc:
        print(f"telemetry setup failed: {exc}", file=sys.stderr)
        shutdown = exc.shutdown

    try:
        run()
    except KeyboardInterrupt:
        pass
    finally:
        ctx = otelboot.CancelContext.background().with_timeout(5)
        try:
            shutdown(ctx)
            print("shutdown complete")
        except otelboot.ShutdownError as exc:
            print(f"error shutting down telemetry: {exc!r}", file=sys.stderr)


if __name__ == "__main__":
    main()
