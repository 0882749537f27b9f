from __future__ import annotations

import logging
import threading
from typing import Callable

from .context import CancelContext
from .errors import ContextError, ShutdownError

LOGGER = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05

ReleaseFunc = Callable[[CancelContext], None]


class Release:
    """
    Teardown for one acquired exporter. `func` starts as the exporter's own
    shutdown and is rebound to the owning provider's shutdown once that
    provider exists, so buffered records are flushed first.
    """

    def __init__(self, signal: str, func: ReleaseFunc):
        self.signal = signal
        self.func = func
        self.released = False

    def __call__(self, ctx: CancelContext) -> None:
        self.func(ctx)

    def __repr__(self):
        return f"Release({self.signal!r}, released={self.released})"


class Shutdown:
    """
    Aggregated teardown handed back by start().

    Calling it runs every registered release in acquisition order. A failing
    release never stops the ones after it; all failures are raised together
    as a ShutdownError. Releases that already succeeded are skipped on a
    second call.
    """

    def __init__(self, releases: list[Release] | None = None):
        self.releases: list[Release] = releases if releases is not None else []
        self.resource = None
        self.strategy = None
        self.resource_error = None

    def register(self, release: Release) -> Release:
        self.releases.append(release)
        return release

    def __call__(self, ctx: CancelContext | None = None) -> None:
        if ctx is None:
            ctx = CancelContext.background()

        errors: list[Exception] = []
        for release in list(self.releases):
            if release.released:
                continue
            err = self._run(release, ctx)
            if err is None:
                release.released = True
            else:
                errors.append(err)

        if errors:
            raise ShutdownError("telemetry shutdown failed", errors)

    def _run(self, release: Release, ctx: CancelContext) -> Exception | None:
        outcome: list[Exception] = []

        def target():
            try:
                release(ctx)
            except Exception as exc:
                outcome.append(exc)

        worker = threading.Thread(
            target=target, daemon=True, name=f"otelboot-shutdown-{release.signal}"
        )
        worker.start()
        # every release gets one poll interval, even on an expired context
        worker.join(_POLL_INTERVAL)
        while worker.is_alive():
            ctx_err = ctx.error()
            if ctx_err is not None:
                LOGGER.warning("Abandoning %s shutdown: %s", release.signal, ctx_err)
                abandoned: ContextError = type(ctx_err)(f"{release.signal} shutdown abandoned: {ctx_err}")
                return abandoned
            remaining = ctx.remaining()
            worker.join(_POLL_INTERVAL if remaining is None else min(_POLL_INTERVAL, remaining))

        if outcome:
            LOGGER.debug("%s shutdown failed", release.signal, exc_info=outcome[0])
            return outcome[0]
        return None
