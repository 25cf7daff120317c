"""Error taxonomy for the coordination components.

A task's own failure is never wrapped: it propagates verbatim. The types
below are raised only for conditions the components themselves detect.
"""

from typing import List, Optional


class AsyncUtilsError(Exception):
    """Base class for errors raised by asyncutils."""


class TaskTimeoutError(AsyncUtilsError, TimeoutError):
    """Raised by the timeout racer when the deadline elapses first."""

    def __init__(self, timeout: float, message: Optional[str] = None):
        self.timeout = timeout
        super().__init__(message or f"Operation timed out after {timeout:.3f}s")


class RetryExhaustedError(AsyncUtilsError):
    """Raised when retries are exhausted and failure history was requested."""

    def __init__(self, failures: List[BaseException]):
        if not failures:
            raise ValueError("RetryExhaustedError requires at least one failure")
        self.failures = list(failures)
        self.attempts = len(failures)
        super().__init__(f"Gave up after {self.attempts} attempts. Last error: {self.last_error!r}")

    @property
    def last_error(self) -> BaseException:
        return self.failures[-1]


class TaskCancelledError(AsyncUtilsError):
    """Outcome of a task removed before it started."""

    def __init__(self, task_id: Optional[int] = None, reason: str = "cancelled before start"):
        self.task_id = task_id
        self.reason = reason
        label = f"Task {task_id}" if task_id is not None else "Task"
        super().__init__(f"{label} {reason}")


class SlotReleaseError(AsyncUtilsError):
    """Raised when a concurrency slot is released more than once."""
