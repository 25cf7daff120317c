"""Addressable async task queue with a concurrency limit.

Entries are admitted strictly FIFO while a slot is free and the queue is not
paused. Every entry follows ``queued -> running -> fulfilled | rejected`` or
``queued -> cancelled``; terminal states are final.

A running task cannot be interrupted: ``clear()`` only removes entries that
have not started yet.
"""

import asyncio
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Generator, List, Optional, Set

from asyncutils.domain.events.task_events import (
    DomainEvent, EventHook, TaskCancelled, TaskQueued, TaskSettled, TaskStarted,
)
from asyncutils.domain.models.common import (
    STATUS_TRANSITIONS, QueueStats, TaskFactory, TaskId, TaskStatus,
)
from asyncutils.domain.models.errors import TaskCancelledError
from asyncutils.infrastructure.concurrency.slots import Slot, SlotPool

logger = logging.getLogger(__name__)


@dataclass
class QueueEntry:
    """A task together with its identity, status and outcome."""
    id: TaskId
    task: TaskFactory = field(repr=False)
    status: TaskStatus = TaskStatus.QUEUED
    result: Any = field(default=None, repr=False)
    error: Optional[BaseException] = None
    enqueued_at: float = field(default_factory=time.monotonic)
    started_at: Optional[float] = None
    settled_at: Optional[float] = None


def _mark_retrieved(future: "asyncio.Future[Any]") -> None:
    # Rejections stay recorded on the entry; a handle nobody awaits must
    # not be reported as "exception was never retrieved".
    if not future.cancelled():
        future.exception()


class TaskHandle:
    """Awaitable handle to one enqueued task."""

    def __init__(self, entry: QueueEntry, future: "asyncio.Future[Any]"):
        self._entry = entry
        self._future = future

    @property
    def id(self) -> TaskId:
        return self._entry.id

    @property
    def status(self) -> TaskStatus:
        return self._entry.status

    @property
    def future(self) -> "asyncio.Future[Any]":
        return self._future

    def done(self) -> bool:
        return self._future.done()

    def result(self) -> Any:
        """Returns the value, or raises the failure, of a settled task."""
        return self._future.result()

    def exception(self) -> Optional[BaseException]:
        return self._future.exception()

    def __await__(self) -> Generator[Any, None, Any]:
        return self._future.__await__()

    def __repr__(self) -> str:
        return f"<TaskHandle id={self.id} status={self.status.value}>"


class TaskQueue:
    """Runs enqueued async tasks under a concurrency limit."""

    def __init__(
        self,
        concurrency: int = 1,
        *,
        name: str = "queue",
        on_event: Optional[EventHook] = None,
        autostart: bool = True,
    ):
        """Initializes the queue.

        Args:
            concurrency: Maximum number of tasks running at once.
            name: Label used in logs and events.
            on_event: Optional hook receiving every lifecycle event.
            autostart: When False the queue starts paused.
        """
        self.name = name
        self.on_event = on_event
        self._slots = SlotPool(concurrency, name=name)
        self._queued: Deque[QueueEntry] = deque()
        self._entries: Dict[TaskId, QueueEntry] = {}
        self._handles: Dict[TaskId, TaskHandle] = {}
        self._counts: Dict[TaskStatus, int] = {status: 0 for status in TaskStatus}
        self._ids = itertools.count(1)
        self._paused = not autostart
        self._workers: Set["asyncio.Task[None]"] = set()
        self._idle_waiters: List["asyncio.Future[None]"] = []
        logger.info(f"TaskQueue '{name}' initialized: concurrency={concurrency}, paused={self._paused}")

    # --- Introspection ---

    @property
    def concurrency(self) -> int:
        return self._slots.limit

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def queued_count(self) -> int:
        return self._counts[TaskStatus.QUEUED]

    @property
    def running_count(self) -> int:
        return self._counts[TaskStatus.RUNNING]

    @property
    def peak_running(self) -> int:
        return self._slots.peak

    def stats(self) -> QueueStats:
        return QueueStats(
            queued=self._counts[TaskStatus.QUEUED],
            running=self._counts[TaskStatus.RUNNING],
            fulfilled=self._counts[TaskStatus.FULFILLED],
            rejected=self._counts[TaskStatus.REJECTED],
            cancelled=self._counts[TaskStatus.CANCELLED],
            total=len(self._entries),
        )

    def entries(self) -> List[QueueEntry]:
        """All entries in submission order."""
        return list(self._entries.values())

    def get_entry(self, task_id: int) -> QueueEntry:
        return self._entries[TaskId(task_id)]

    def __len__(self) -> int:
        return len(self._entries)

    # --- Submission & control ---

    def enqueue(self, task: TaskFactory) -> TaskHandle:
        """Adds a task and returns a handle that settles with its outcome.

        Must be called while the event loop is running.
        """
        if not callable(task):
            raise TypeError("task must be a zero-argument callable returning an awaitable")
        loop = asyncio.get_running_loop()
        entry = QueueEntry(id=TaskId(next(self._ids)), task=task)
        future = loop.create_future()
        future.add_done_callback(_mark_retrieved)
        handle = TaskHandle(entry, future)

        self._entries[entry.id] = entry
        self._handles[entry.id] = handle
        self._queued.append(entry)
        self._counts[TaskStatus.QUEUED] += 1
        self._dispatch(TaskQueued(queue=self.name, task_id=entry.id))
        self._pump()
        return handle

    def pause(self) -> None:
        """Stops admitting new tasks. Running tasks continue."""
        if not self._paused:
            self._paused = True
            logger.info(f"TaskQueue '{self.name}' paused ({self.queued_count} queued, {self.running_count} running)")

    def resume(self) -> None:
        """Re-enables admission and starts as many queued tasks as slots allow."""
        if self._paused:
            self._paused = False
            logger.info(f"TaskQueue '{self.name}' resumed")
            self._pump()

    def clear(self) -> int:
        """Cancels every entry that has not started yet.

        Returns:
            The number of entries cancelled.
        """
        cleared = 0
        now = time.monotonic()
        while self._queued:
            entry = self._queued.popleft()
            self._transition(entry, TaskStatus.CANCELLED)
            entry.settled_at = now
            entry.error = TaskCancelledError(entry.id)
            self._handles[entry.id].future.set_exception(entry.error)
            self._dispatch(TaskCancelled(queue=self.name, task_id=entry.id))
            cleared += 1
        if cleared:
            logger.info(f"TaskQueue '{self.name}' cleared {cleared} queued entries")
        self._notify_if_idle()
        return cleared

    async def join(self) -> None:
        """Waits until nothing is queued or running."""
        if self._is_idle():
            return
        waiter = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        await waiter

    # --- Scheduling ---

    def _pump(self) -> None:
        while not self._paused and self._queued:
            slot = self._slots.try_acquire()
            if slot is None:
                break
            self._start(self._queued.popleft(), slot)
        self._notify_if_idle()

    def _start(self, entry: QueueEntry, slot: Slot) -> None:
        self._transition(entry, TaskStatus.RUNNING)
        entry.started_at = time.monotonic()
        self._dispatch(TaskStarted(
            queue=self.name,
            task_id=entry.id,
            wait_seconds=entry.started_at - entry.enqueued_at,
        ))
        worker = asyncio.get_running_loop().create_task(self._run(entry, slot))
        self._workers.add(worker)
        worker.add_done_callback(self._workers.discard)

    async def _run(self, entry: QueueEntry, slot: Slot) -> None:
        try:
            result = await entry.task()
        except asyncio.CancelledError:
            # The task awaited something that was cancelled, or the worker
            # itself was. Either way the entry settles and admission goes on.
            slot.release()
            self._settle(entry, error=TaskCancelledError(entry.id, "cancelled while running"))
            raise
        except Exception as e:
            slot.release()
            self._settle(entry, error=e)
        else:
            slot.release()
            self._settle(entry, result=result)
        finally:
            self._pump()

    def _settle(self, entry: QueueEntry, result: Any = None, error: Optional[BaseException] = None) -> None:
        status = TaskStatus.REJECTED if error is not None else TaskStatus.FULFILLED
        self._transition(entry, status)
        entry.settled_at = time.monotonic()
        entry.result = result
        entry.error = error

        future = self._handles[entry.id].future
        if not future.done():
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        if error is not None:
            logger.debug(f"Task {entry.id} in '{self.name}' rejected: {error!r}")
        self._dispatch(TaskSettled(
            queue=self.name,
            task_id=entry.id,
            status=status.value,
            duration_seconds=entry.settled_at - (entry.started_at or entry.settled_at),
            error_type=type(error).__name__ if error is not None else None,
        ))

    def _transition(self, entry: QueueEntry, new_status: TaskStatus) -> None:
        if new_status not in STATUS_TRANSITIONS[entry.status]:
            raise RuntimeError(
                f"Illegal transition for task {entry.id}: {entry.status.value} -> {new_status.value}"
            )
        self._counts[entry.status] -= 1
        self._counts[new_status] += 1
        entry.status = new_status

    def _is_idle(self) -> bool:
        return not self._queued and self.running_count == 0

    def _notify_if_idle(self) -> None:
        if not self._idle_waiters or not self._is_idle():
            return
        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _dispatch(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception as e:
            logger.error(f"Event hook for queue '{self.name}' failed on {type(event).__name__}: {e}", exc_info=True)
