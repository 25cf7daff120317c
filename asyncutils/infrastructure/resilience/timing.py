"""Timing primitives: a cooperative delay and a timeout racer.

The racer orphans the raced operation by default. Its eventual outcome is
retrieved and discarded so the event loop never reports it as unhandled.
Pass ``cancel=True`` to cancel it instead.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from asyncutils.domain.models.errors import TaskTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def delay(seconds: float) -> None:
    """Suspends the calling coroutine for ``seconds``. Negative means zero."""
    await asyncio.sleep(max(0.0, float(seconds)))


def _discard_outcome(future: "asyncio.Future[Any]") -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug(f"Orphaned operation failed after its deadline: {error!r}")


def _to_future(operation: Union[Awaitable[T], Callable[[], Awaitable[T]]]) -> "asyncio.Future[T]":
    if not inspect.isawaitable(operation):
        if not callable(operation):
            raise TypeError(f"Expected an awaitable or a zero-argument callable, got {type(operation).__name__}")
        operation = operation()
        if not inspect.isawaitable(operation):
            raise TypeError("Operation callable did not return an awaitable")
    return asyncio.ensure_future(operation)


async def with_timeout(
    operation: Union[Awaitable[T], Callable[[], Awaitable[T]]],
    timeout: Optional[float],
    *,
    cancel: bool = False,
) -> T:
    """Races ``operation`` against a deadline.

    Args:
        operation: An awaitable, or a zero-argument callable returning one.
        timeout: Deadline in seconds. ``None`` waits indefinitely.
        cancel: Cancel the operation when the deadline wins instead of
            leaving it to run unobserved.

    Returns:
        The operation's result if it settles first.

    Raises:
        TaskTimeoutError: If the deadline elapses before settlement.
        Exception: The operation's own failure, verbatim.
    """
    if timeout is not None and timeout < 0:
        raise ValueError("timeout must be non-negative")

    future = _to_future(operation)
    try:
        # asyncio.wait owns its deadline timer and clears it on either path.
        done, _ = await asyncio.wait({future}, timeout=timeout)
    except asyncio.CancelledError:
        future.cancel()
        raise

    if future in done:
        return future.result()

    if cancel:
        future.cancel()
        logger.debug(f"Operation cancelled after {timeout}s deadline")
    else:
        future.add_done_callback(_discard_outcome)
        logger.debug(f"Operation orphaned after {timeout}s deadline")
    raise TaskTimeoutError(timeout)
