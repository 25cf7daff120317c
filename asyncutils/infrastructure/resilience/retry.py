"""Retry executor for fallible async operations.

Invokes an operation until it succeeds or the attempt budget runs out,
pausing between attempts according to a RetryPolicy. On exhaustion the
last failure is raised verbatim; earlier failures are discarded unless the
caller opts into ``aggregate=True``.
"""

import functools
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type, TypeVar

from asyncutils.domain.events.task_events import EventHook, RetryScheduled
from asyncutils.domain.models.errors import RetryExhaustedError
from asyncutils.domain.models.policies import RetryPolicy
from asyncutils.infrastructure.resilience.timing import delay as sleep_for

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _operation_name(operation: Callable[..., Any]) -> str:
    return getattr(operation, "__qualname__", None) or getattr(operation, "__name__", None) or repr(operation)


async def retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 0.0,
    *,
    policy: Optional[RetryPolicy] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    aggregate: bool = False,
    on_retry: Optional[EventHook] = None,
) -> T:
    """Executes ``operation`` with retries.

    Args:
        operation: Zero-argument callable returning an awaitable.
        max_attempts: Total invocations allowed. Ignored when ``policy`` is given.
        delay: Fixed pause in seconds between attempts. Ignored when ``policy`` is given.
        policy: Full retry policy, including the backoff strategy.
        retry_on: Exception types worth retrying; anything else propagates at once.
        aggregate: Raise RetryExhaustedError with every failure instead of
            only the last one.
        on_retry: Called with a RetryScheduled event before each pause.

    Returns:
        The first successful result.

    Raises:
        Exception: The last failure (annotated with ``retry_attempts``).
        RetryExhaustedError: On exhaustion when ``aggregate`` is set.
    """
    if policy is None:
        policy = RetryPolicy(max_attempts=max_attempts, delay=delay)
    name = _operation_name(operation)
    failures: List[BaseException] = []

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await operation()
            if attempt > 1:
                logger.info(f"{name} succeeded on attempt {attempt}/{policy.max_attempts}")
            return result
        except retry_on as e:
            failures.append(e)
            if attempt == policy.max_attempts:
                logger.error(f"Max attempts ({policy.max_attempts}) reached for {name}. Last error: {e!r}")
                break
            wait = policy.compute_delay(attempt)
            logger.warning(
                f"Retryable error calling {name} on attempt {attempt}/{policy.max_attempts}: "
                f"{type(e).__name__}. Waiting {wait:.2f}s..."
            )
            if on_retry is not None:
                on_retry(RetryScheduled(
                    operation=name,
                    attempt_number=attempt,
                    delay_seconds=wait,
                    error_type=type(e).__name__,
                ))
            await sleep_for(wait)

    last_error = failures[-1]
    if aggregate:
        raise RetryExhaustedError(failures) from last_error
    try:
        last_error.retry_attempts = len(failures)
    except AttributeError:
        pass  # exceptions with __slots__ cannot be annotated
    raise last_error


def retrying(
    policy: Optional[RetryPolicy] = None,
    *,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    aggregate: bool = False,
    on_retry: Optional[EventHook] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of :func:`retry` for async functions."""
    effective_policy = policy or RetryPolicy()

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry(
                functools.partial(func, *args, **kwargs),
                policy=effective_policy,
                retry_on=retry_on,
                aggregate=aggregate,
                on_retry=on_retry,
            )
        return wrapper

    return decorator
