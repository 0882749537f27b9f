import threading
import time

from .errors import Cancelled, ContextError, DeadlineExceeded


class CancelContext:
    """
    Carries cancellation and an optional deadline across the setup and
    teardown calls.
    - background(): never done
    - with_cancel(): child that can be cancelled on its own
    - with_timeout(seconds): child whose deadline is the earlier of the
      parent's deadline and now + seconds
    A child is done as soon as any parent is done.
    """

    def __init__(self, parent: "CancelContext | None" = None, deadline: float | None = None):
        self._parent = parent
        self._cancelled = threading.Event()
        if parent is not None and parent._deadline is not None:
            deadline = parent._deadline if deadline is None else min(deadline, parent._deadline)
        self._deadline = deadline  # time.monotonic() based

    @classmethod
    def background(cls) -> "CancelContext":
        return cls()

    def with_cancel(self) -> "CancelContext":
        return CancelContext(parent=self)

    def with_timeout(self, seconds: float) -> "CancelContext":
        return CancelContext(parent=self, deadline=time.monotonic() + float(seconds))

    def cancel(self) -> None:
        self._cancelled.set()

    def error(self) -> ContextError | None:
        ctx = self
        while ctx is not None:
            if ctx._cancelled.is_set():
                return Cancelled("context canceled")
            ctx = ctx._parent
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceeded("context deadline exceeded")
        return None

    def done(self) -> bool:
        return self.error() is not None

    def raise_if_done(self) -> None:
        err = self.error()
        if err is not None:
            raise err

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def remaining_millis(self, default: float = 30000) -> float:
        remaining = self.remaining()
        return default if remaining is None else remaining * 1000.0
