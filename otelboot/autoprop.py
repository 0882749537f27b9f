import logging
import os
from importlib.metadata import entry_points

from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import TextMapPropagator

LOGGER = logging.getLogger(__name__)

_DEFAULT_PROPAGATORS = "tracecontext,baggage"


def propagator_names() -> list[str]:
    raw = os.getenv("OTEL_PROPAGATORS", "").strip() or _DEFAULT_PROPAGATORS
    return [name.strip().lower() for name in raw.split(",") if name.strip()]


def text_map_propagator() -> CompositePropagator:
    """
    Compose the propagators named in OTEL_PROPAGATORS (default
    "tracecontext,baggage") from the opentelemetry_propagator entry points.
    "none" anywhere in the list yields an empty composite. Unknown names are
    logged and skipped, as are propagators whose entry point fails to load.
    """
    names = propagator_names()
    if "none" in names:
        return CompositePropagator([])

    propagators: list[TextMapPropagator] = []
    for name in names:
        matches = list(entry_points(group="opentelemetry_propagator", name=name))
        if not matches:
            LOGGER.warning("Propagator %r not found; is the package providing it installed?", name)
            continue
        try:
            propagators.append(matches[0].load()())
        except Exception:
            LOGGER.warning("Propagator %r failed to load; skipping it", name, exc_info=True)
    return CompositePropagator(propagators)
