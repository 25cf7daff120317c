"""Simulation Service: drives the coordination components with synthetic work.

Each scenario builds sleep-based tasks, runs them through one component and
returns a plain report object. Rendering is left to the CommandHandler.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

from asyncutils.domain.events.task_events import DomainEvent, RetryScheduled, TaskStarted
from asyncutils.domain.models.common import QueueStats, TaskFactory
from asyncutils.domain.models.errors import TaskTimeoutError
from asyncutils.domain.models.policies import RetryPolicy
from asyncutils.infrastructure.cache.memoizer import memoize_async
from asyncutils.infrastructure.concurrency.runner import TaskOutcome, run_concurrent
from asyncutils.infrastructure.concurrency.task_queue import QueueEntry, TaskQueue
from asyncutils.infrastructure.resilience.retry import retry
from asyncutils.infrastructure.resilience.timing import delay, with_timeout

logger = logging.getLogger(__name__)


class SimulatedTaskError(Exception):
    """Failure injected into a synthetic task."""


@dataclass
class BatchReport:
    outcomes: List[TaskOutcome]
    elapsed: float
    peak_running: int


@dataclass
class QueueReport:
    stats: QueueStats
    entries: List[QueueEntry]
    elapsed: float
    peak_running: int
    events: List[DomainEvent] = field(default_factory=list)


@dataclass
class RetryReport:
    attempts: int
    elapsed: float
    value: Any = None
    error: Optional[BaseException] = None
    retries: List[RetryScheduled] = field(default_factory=list)


@dataclass
class TimeoutReport:
    timed_out: bool
    elapsed: float
    value: Any = None


@dataclass
class MemoReport:
    calls: int
    invocations: int
    hits: int
    shared: int
    elapsed: float


class _ActivityGauge:
    """Tracks how many synthetic tasks are running at once."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    def enter(self) -> None:
        self.active += 1
        self.peak = max(self.peak, self.active)

    def exit(self) -> None:
        self.active -= 1


class SimulationService:
    """Runs synthetic workloads through each component."""

    def make_task(
        self,
        index: int,
        duration: float,
        fail: bool = False,
        gauge: Optional[_ActivityGauge] = None,
    ) -> TaskFactory:
        """Builds a task that sleeps for ``duration`` then returns or fails."""
        async def task() -> str:
            if gauge is not None:
                gauge.enter()
            try:
                await delay(duration)
                if fail:
                    raise SimulatedTaskError(f"task-{index} failed")
                return f"task-{index}"
            finally:
                if gauge is not None:
                    gauge.exit()
        return task

    def _should_fail(self, index: int, fail_every: int) -> bool:
        return fail_every > 0 and (index + 1) % fail_every == 0

    async def run_batch(self, count: int, limit: int, duration: float, fail_every: int = 0) -> BatchReport:
        gauge = _ActivityGauge()
        tasks = [self.make_task(i, duration, self._should_fail(i, fail_every), gauge) for i in range(count)]
        started = time.perf_counter()
        outcomes = await run_concurrent(tasks, limit)
        elapsed = time.perf_counter() - started
        logger.info(f"Batch of {count} finished in {elapsed:.3f}s (limit={limit}, peak={gauge.peak})")
        return BatchReport(outcomes=outcomes, elapsed=elapsed, peak_running=gauge.peak)

    async def run_queue(
        self,
        count: int,
        concurrency: int,
        duration: float,
        clear_after: int = 0,
        fail_every: int = 0,
    ) -> QueueReport:
        """Fills a queue and optionally clears it once ``clear_after`` tasks have started."""
        events: List[DomainEvent] = []
        started_enough = asyncio.Event()
        started_count = 0

        def on_event(event: DomainEvent) -> None:
            nonlocal started_count
            events.append(event)
            if isinstance(event, TaskStarted):
                started_count += 1
                if clear_after and started_count >= clear_after:
                    started_enough.set()

        gauge = _ActivityGauge()
        queue = TaskQueue(concurrency=concurrency, name="simulation", on_event=on_event)
        started = time.perf_counter()
        for i in range(count):
            queue.enqueue(self.make_task(i, duration, self._should_fail(i, fail_every), gauge))

        if 0 < clear_after < count:
            await started_enough.wait()
            queue.clear()
        await queue.join()
        elapsed = time.perf_counter() - started
        return QueueReport(
            stats=queue.stats(),
            entries=queue.entries(),
            elapsed=elapsed,
            peak_running=gauge.peak,
            events=events,
        )

    async def run_retry(self, failures: int, policy: RetryPolicy) -> RetryReport:
        """Retries an operation that fails ``failures`` times before succeeding."""
        attempts = 0
        retries: List[RetryScheduled] = []

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts <= failures:
                raise SimulatedTaskError(f"attempt {attempts} failed")
            return f"succeeded on attempt {attempts}"

        started = time.perf_counter()
        try:
            value = await retry(flaky, policy=policy, on_retry=retries.append)
        except SimulatedTaskError as e:
            return RetryReport(attempts=attempts, elapsed=time.perf_counter() - started, error=e, retries=retries)
        return RetryReport(attempts=attempts, elapsed=time.perf_counter() - started, value=value, retries=retries)

    async def run_timeout(self, duration: float, timeout: float) -> TimeoutReport:
        started = time.perf_counter()
        try:
            value = await with_timeout(self.make_task(0, duration), timeout, cancel=True)
        except TaskTimeoutError:
            return TimeoutReport(timed_out=True, elapsed=time.perf_counter() - started)
        return TimeoutReport(timed_out=False, elapsed=time.perf_counter() - started, value=value)

    async def run_memo(self, callers: int, keys: int, duration: float, ttl: float, rounds: int = 2) -> MemoReport:
        """Fires ``callers`` concurrent lookups spread over ``keys`` keys, ``rounds`` times."""
        invocations = 0

        async def lookup(key: int) -> str:
            nonlocal invocations
            invocations += 1
            await delay(duration)
            return f"value-{key}"

        cached = memoize_async(lookup, ttl=ttl)
        started = time.perf_counter()
        for _ in range(rounds):
            await asyncio.gather(*(cached(i % keys) for i in range(callers)))
        elapsed = time.perf_counter() - started
        logger.info(f"Memo run: {callers * rounds} calls, {invocations} invocations, {cached.hits} hits")
        return MemoReport(
            calls=callers * rounds,
            invocations=invocations,
            hits=cached.hits,
            shared=cached.shared,
            elapsed=elapsed,
        )
