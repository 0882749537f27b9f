class TelemetryError(Exception):
    """
    Base for everything start() raises. `shutdown` holds the (possibly
    partial) teardown callable when the error comes out of start().
    """

    shutdown = None


class ContextError(TelemetryError):
    pass


class Cancelled(ContextError):
    pass


class DeadlineExceeded(ContextError):
    pass


class ResourceBuildError(TelemetryError):
    def __init__(self, errors, resource=None):
        self.errors = list(errors)
        self.resource = resource
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"resource detection failed: {details}")


class ExporterError(TelemetryError):
    signal = ""

    def __init__(self, message: str):
        super().__init__(f"{self.signal} exporter: {message}")


class SpanExporterError(ExporterError):
    signal = "traces"


class MetricExporterError(ExporterError):
    signal = "metrics"


class LogExporterError(ExporterError):
    signal = "logs"


class ShutdownError(ExceptionGroup):
    """One or more release operations failed; each cause is kept as-is."""

    def derive(self, excs):
        return ShutdownError(self.message, excs)
