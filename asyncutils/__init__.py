"""asyncutils: asynchronous task coordination for a single asyncio event loop.

Public API:
    delay, with_timeout             -- timing primitives
    retry, retrying, RetryPolicy    -- retry executor
    debounce, throttle              -- rate limiters
    run_concurrent(_strict)         -- bounded concurrency runner
    memoize_async, memoized         -- async memoization with TTL
    TaskQueue                       -- addressable task queue
"""

from asyncutils.domain.models.common import QueueStats, TaskStatus
from asyncutils.domain.models.errors import (
    AsyncUtilsError,
    RetryExhaustedError,
    SlotReleaseError,
    TaskCancelledError,
    TaskTimeoutError,
)
from asyncutils.domain.models.policies import BackoffStrategy, RetryPolicy
from asyncutils.infrastructure.cache.memoizer import AsyncMemoized, memoize_async, memoized
from asyncutils.infrastructure.concurrency.runner import TaskOutcome, run_concurrent, run_concurrent_strict
from asyncutils.infrastructure.concurrency.slots import Slot, SlotPool
from asyncutils.infrastructure.concurrency.task_queue import QueueEntry, TaskHandle, TaskQueue
from asyncutils.infrastructure.resilience.rate_limiter import Debouncer, Throttler, debounce, throttle
from asyncutils.infrastructure.resilience.retry import retry, retrying
from asyncutils.infrastructure.resilience.timing import delay, with_timeout

__version__ = "1.0.0"

__all__ = [
    "AsyncMemoized",
    "AsyncUtilsError",
    "BackoffStrategy",
    "Debouncer",
    "QueueEntry",
    "QueueStats",
    "RetryExhaustedError",
    "RetryPolicy",
    "Slot",
    "SlotPool",
    "SlotReleaseError",
    "TaskCancelledError",
    "TaskHandle",
    "TaskOutcome",
    "TaskQueue",
    "TaskStatus",
    "TaskTimeoutError",
    "Throttler",
    "debounce",
    "delay",
    "memoize_async",
    "memoized",
    "retry",
    "retrying",
    "run_concurrent",
    "run_concurrent_strict",
    "throttle",
    "with_timeout",
]
