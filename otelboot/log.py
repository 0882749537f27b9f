import logging
import os
import warnings

from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler

LOGGER = logging.getLogger(__name__)

_service_name: str | None = None
# whether warnings were already routed through logging before each install()
_captured_before: dict[LoggingHandler, bool] = {}


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        env_level = os.getenv("OTEL_PYTHON_LOG_LEVEL", "").strip()
        if not env_level:
            return logging.INFO
        try:
            return _resolve_level(env_level)
        except ValueError:
            LOGGER.warning("Ignoring invalid OTEL_PYTHON_LOG_LEVEL %r", env_level)
            return logging.INFO
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if isinstance(resolved, int):
        return resolved
    raise ValueError(f"Invalid log level: {level!r}")


def install(
    service_name: str,
    logger_provider: LoggerProvider,
    level: int | str | None = None,
) -> LoggingHandler:
    """
    Route stdlib logging (and the warnings module) into the OTel log pipeline.

    The handler goes on the root logger, so existing logging.getLogger(...)
    call sites are exported without changes. get_logger() afterwards returns
    the service's own logger.
    """
    global _service_name

    handler = LoggingHandler(level=_resolve_level(level), logger_provider=logger_provider)

    root = logging.getLogger()
    # root must be low enough for the handler to see records
    if root.level > handler.level:
        root.setLevel(handler.level)
    root.addHandler(handler)
    _captured_before[handler] = _warnings_captured()
    logging.captureWarnings(True)

    _service_name = service_name
    return handler


def uninstall(handler: LoggingHandler) -> None:
    logging.getLogger().removeHandler(handler)
    captured_before = _captured_before.pop(handler, None)
    if captured_before is False:
        logging.captureWarnings(False)


def _warnings_captured() -> bool:
    return warnings.showwarning is getattr(logging, "_showwarning", None)


def get_logger() -> logging.Logger:
    """The default structured logger, labelled with the service name passed to start()."""
    return logging.getLogger(_service_name or "otelboot")
