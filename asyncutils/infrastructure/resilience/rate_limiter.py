"""Debounce and throttle wrappers.

Both collapse bursts of calls into a bounded invocation rate. Each wrapper
owns its own timer state; nothing is shared between wrappers. Calls must
happen on a running event loop because the deferred invocation is scheduled
with ``loop.call_later``.
"""

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CallArgs = Tuple[Tuple[Any, ...], Dict[str, Any]]


def _log_task_failure(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Rate-limited call failed: {error!r}", exc_info=error)


def _invoke(fn: Callable[..., Any], args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
    """Calls ``fn``; coroutine results are scheduled as tasks on the running loop."""
    result = fn(*args, **kwargs)
    if inspect.isawaitable(result):
        task = asyncio.ensure_future(result)
        task.add_done_callback(_log_task_failure)
        return task
    return result


class Debouncer:
    """Runs ``fn`` once ``wait`` seconds pass with no further calls.

    Only the arguments of the most recent call are used.
    """

    def __init__(self, fn: Callable[..., Any], wait: float):
        if wait < 0:
            raise ValueError("wait must be non-negative")
        self._fn = fn
        self.wait = wait
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[CallArgs] = None
        self.last_call_at: Optional[float] = None
        self.last_invoked_at: Optional[float] = None
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        self._pending = (args, kwargs)
        self.last_call_at = loop.time()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.wait, self._fire)

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def _fire(self) -> Any:
        self._handle = None
        if self._pending is None:
            return None
        args, kwargs = self._pending
        self._pending = None
        self.last_invoked_at = asyncio.get_running_loop().time()
        logger.debug(f"Debounced call to {getattr(self._fn, '__name__', self._fn)!s} firing")
        return _invoke(self._fn, args, kwargs)

    def cancel(self) -> None:
        """Drops the pending call, if any."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = None

    def flush(self) -> Any:
        """Runs the pending call immediately and returns its result."""
        if self._handle is not None:
            self._handle.cancel()
        return self._fire()


class Throttler:
    """Runs ``fn`` at most once per ``interval`` seconds.

    The first call of an idle period runs at once (leading edge). Calls made
    while the window is open are suppressed, but the latest one is replayed
    when the window closes (trailing edge), which opens a new window.
    """

    def __init__(self, fn: Callable[..., Any], interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._fn = fn
        self.interval = interval
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending: Optional[CallArgs] = None
        self.last_invoked_at: Optional[float] = None
        functools.update_wrapper(self, fn)

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is None:
            self._run(loop, args, kwargs)
        else:
            self._pending = (args, kwargs)

    @property
    def idle(self) -> bool:
        return self._handle is None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def _run(self, loop: asyncio.AbstractEventLoop, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        # Window opens before the call so a raising fn still leaves consistent state.
        self._handle = loop.call_later(self.interval, self._close_window)
        self.last_invoked_at = loop.time()
        return _invoke(self._fn, args, kwargs)

    def _close_window(self) -> None:
        self._handle = None
        if self._pending is None:
            return
        args, kwargs = self._pending
        self._pending = None
        logger.debug(f"Throttled call to {getattr(self._fn, '__name__', self._fn)!s} flushing trailing edge")
        self._run(asyncio.get_running_loop(), args, kwargs)

    def cancel(self) -> None:
        """Drops any suppressed call and returns to idle."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._pending = None

    def flush(self) -> Any:
        """Runs the suppressed call now, opening a fresh window."""
        if self._pending is None:
            return None
        args, kwargs = self._pending
        self._pending = None
        if self._handle is not None:
            self._handle.cancel()
        return self._run(asyncio.get_running_loop(), args, kwargs)


def debounce(fn: Callable[..., Any], wait: float) -> Debouncer:
    """Wraps ``fn`` so it runs only after ``wait`` seconds of quiet."""
    return Debouncer(fn, wait)


def throttle(fn: Callable[..., Any], interval: float) -> Throttler:
    """Wraps ``fn`` so it runs at most once per ``interval`` seconds."""
    return Throttler(fn, interval)
