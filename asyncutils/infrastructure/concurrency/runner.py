"""Bounded concurrency runner.

Runs a batch of independent tasks with at most ``limit`` in flight, built on
the same slot admission as TaskQueue. ``run_concurrent`` is the default and
collects every outcome; ``run_concurrent_strict`` is the fail-fast variant.
Either way ``result[i]`` belongs to ``tasks[i]``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Generic, Iterable, List, Optional, TypeVar

from asyncutils.domain.events.task_events import DomainEvent, TaskSettled
from asyncutils.domain.models.common import TaskFactory, TaskStatus
from asyncutils.infrastructure.concurrency.task_queue import TaskHandle, TaskQueue

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TaskOutcome(Generic[T]):
    """Value or failure of the task at ``index``."""
    index: int
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


def _prepare(tasks: Iterable[TaskFactory], limit: int, name: str):
    task_list = list(tasks)
    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1.")
    queue = TaskQueue(concurrency=limit, name=name) if task_list else None
    return task_list, queue


def _outcome(index: int, handle: TaskHandle) -> TaskOutcome:
    error = handle.exception()
    if error is not None:
        return TaskOutcome(index=index, error=error)
    return TaskOutcome(index=index, value=handle.result())


async def run_concurrent(tasks: Iterable[TaskFactory], limit: int) -> List[TaskOutcome]:
    """Runs every task, at most ``limit`` at a time, and collects all outcomes.

    A failing task never affects its siblings.
    """
    task_list, queue = _prepare(tasks, limit, "run_concurrent")
    if queue is None:
        return []

    handles = [queue.enqueue(task) for task in task_list]
    try:
        await queue.join()
    except asyncio.CancelledError:
        queue.clear()
        raise

    outcomes = [_outcome(i, handle) for i, handle in enumerate(handles)]
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    logger.debug(f"run_concurrent finished {len(outcomes)} tasks (limit={limit}, failed={failed}, peak={queue.peak_running})")
    return outcomes


async def run_concurrent_strict(tasks: Iterable[TaskFactory], limit: int) -> List[T]:
    """Fail-fast variant: returns plain values or raises the first failure.

    "First" is by settlement order, even when several tasks fail before the
    runner wakes up. On failure, tasks that have not started are cancelled;
    tasks already running are left to finish unobserved.
    """
    task_list, queue = _prepare(tasks, limit, "run_concurrent_strict")
    if queue is None:
        return []

    rejected: List[int] = []

    def stop_on_rejection(event: DomainEvent) -> None:
        # Runs inside settlement, before the freed slot admits the next task.
        if isinstance(event, TaskSettled) and event.status == TaskStatus.REJECTED.value:
            rejected.append(event.task_id)
            queue.pause()

    queue.on_event = stop_on_rejection
    handles = [queue.enqueue(task) for task in task_list]
    by_id = {handle.id: handle for handle in handles}
    pending = {handle.future for handle in handles}
    try:
        while pending:
            _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            if rejected:
                first = by_id[rejected[0]]
                cancelled = queue.clear()
                logger.warning(
                    f"run_concurrent_strict aborting after task {first.id} failed; "
                    f"{cancelled} queued tasks cancelled, {queue.running_count} left running"
                )
                raise first.exception()
    except asyncio.CancelledError:
        queue.clear()
        raise

    return [handle.result() for handle in handles]
