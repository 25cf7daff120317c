import asyncio

import pytest

from asyncutils.domain.events.task_events import TaskCancelled, TaskQueued, TaskSettled, TaskStarted
from asyncutils.domain.models.common import TaskStatus
from asyncutils.domain.models.errors import TaskCancelledError
from asyncutils.infrastructure.concurrency.task_queue import TaskQueue


class Gate:
    """Tasks that block until released, recording concurrency as they go."""

    def __init__(self):
        self.active = 0
        self.peak = 0
        self.started = []
        self.events = {}

    def task(self, name, value=None, fail: Exception = None):
        event = self.events.setdefault(name, asyncio.Event())

        async def run():
            self.started.append(name)
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                await event.wait()
                if fail is not None:
                    raise fail
                return value if value is not None else name
            finally:
                self.active -= 1
        return run

    def release(self, name):
        self.events[name].set()

    def release_all(self):
        for event in self.events.values():
            event.set()


async def settle():
    """Lets scheduled callbacks and tasks run."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_enqueue_assigns_increasing_ids_and_runs():
    queue = TaskQueue(concurrency=2)
    gate = Gate()
    handles = [queue.enqueue(gate.task(i)) for i in range(3)]

    assert [h.id for h in handles] == [1, 2, 3]
    await settle()
    assert queue.running_count == 2
    assert queue.queued_count == 1

    gate.release_all()
    results = [await h for h in handles]
    assert results == [0, 1, 2]
    assert queue.stats()["fulfilled"] == 3


@pytest.mark.asyncio
async def test_fifo_start_order():
    queue = TaskQueue(concurrency=1)
    gate = Gate()
    handles = [queue.enqueue(gate.task(i)) for i in range(4)]

    for i in range(4):
        await settle()
        assert gate.started == list(range(i + 1))
        gate.release(i)
    await asyncio.gather(*(h.future for h in handles))
    assert gate.started == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_ten_tasks_concurrency_two_clear_after_three_started():
    queue = TaskQueue(concurrency=2)
    gate = Gate()
    handles = [queue.enqueue(gate.task(i)) for i in range(10)]
    await settle()

    # Let the first task finish so a third one starts.
    gate.release(0)
    await settle()
    assert gate.started == [0, 1, 2]
    assert queue.running_count == 2

    cancelled = queue.clear()
    assert cancelled == 7
    assert queue.queued_count == 0
    assert queue.running_count == 2

    gate.release_all()
    await queue.join()

    stats = queue.stats()
    assert stats == {
        "queued": 0, "running": 0, "fulfilled": 3, "rejected": 0, "cancelled": 7, "total": 10,
    }
    assert stats["fulfilled"] + stats["rejected"] + stats["cancelled"] == 10
    assert gate.peak <= 2
    assert queue.peak_running == 2

    for handle in handles[3:]:
        assert handle.status is TaskStatus.CANCELLED
        with pytest.raises(TaskCancelledError):
            await handle
    assert [await h for h in handles[:3]] == [0, 1, 2]


@pytest.mark.asyncio
async def test_failure_is_isolated_and_recorded():
    queue = TaskQueue(concurrency=2)
    gate = Gate()
    error = ValueError("bad")
    bad = queue.enqueue(gate.task("bad", fail=error))
    good = queue.enqueue(gate.task("good"))

    gate.release_all()
    await queue.join()

    assert await good == "good"
    with pytest.raises(ValueError):
        await bad
    entry = queue.get_entry(bad.id)
    assert entry.status is TaskStatus.REJECTED
    assert entry.error is error
    assert queue.stats()["rejected"] == 1


@pytest.mark.asyncio
async def test_unawaited_rejection_is_not_reported(caplog):
    queue = TaskQueue(concurrency=1)

    async def fail():
        raise RuntimeError("nobody listens")

    queue.enqueue(fail)
    await queue.join()
    await settle()
    assert "never retrieved" not in caplog.text


@pytest.mark.asyncio
async def test_pause_stops_admission_and_resume_restarts():
    queue = TaskQueue(concurrency=2)
    gate = Gate()
    queue.pause()
    handles = [queue.enqueue(gate.task(i)) for i in range(3)]
    await settle()

    assert queue.paused
    assert queue.running_count == 0
    assert queue.queued_count == 3

    queue.resume()
    await settle()
    assert queue.running_count == 2

    queue.pause()
    gate.release(0)
    await settle()
    # Running tasks finish while paused, but nothing new starts.
    assert queue.running_count == 1
    assert queue.queued_count == 1

    queue.resume()
    gate.release_all()
    await queue.join()
    assert [await h for h in handles] == [0, 1, 2]


@pytest.mark.asyncio
async def test_autostart_false_starts_paused():
    queue = TaskQueue(concurrency=1, autostart=False)
    handle = queue.enqueue(Gate().task("x"))
    await settle()
    assert handle.status is TaskStatus.QUEUED
    queue.clear()
    assert handle.status is TaskStatus.CANCELLED


@pytest.mark.asyncio
async def test_join_returns_immediately_when_idle():
    queue = TaskQueue()
    await asyncio.wait_for(queue.join(), 0.5)


@pytest.mark.asyncio
async def test_introspection_after_completion():
    queue = TaskQueue(concurrency=3)

    async def value(v):
        return v

    handles = [queue.enqueue(lambda v=v: value(v)) for v in range(5)]
    await queue.join()

    assert len(queue) == 5
    assert [e.id for e in queue.entries()] == [h.id for h in handles]
    entry = queue.get_entry(handles[2].id)
    assert entry.result == 2
    assert entry.started_at is not None and entry.settled_at >= entry.started_at
    assert handles[2].done()
    assert handles[2].result() == 2
    # Controls stay callable after everything settled.
    assert queue.clear() == 0
    queue.pause()
    queue.resume()


@pytest.mark.asyncio
async def test_lifecycle_events_are_dispatched():
    events = []
    queue = TaskQueue(concurrency=1, name="events", on_event=events.append, autostart=False)

    async def ok():
        return 1

    queue.enqueue(ok)
    queue.enqueue(ok)
    queue.clear()
    queue.enqueue(ok)
    queue.resume()
    await queue.join()

    kinds = [type(e) for e in events]
    assert kinds == [TaskQueued, TaskQueued, TaskCancelled, TaskCancelled, TaskQueued, TaskStarted, TaskSettled]
    assert all(e.queue == "events" for e in events)
    assert events[-1].status == "fulfilled"


@pytest.mark.asyncio
async def test_broken_event_hook_does_not_break_scheduling(caplog):
    def hook(event):
        raise RuntimeError("hook failure")

    queue = TaskQueue(on_event=hook)

    async def ok():
        return "fine"

    handle = queue.enqueue(ok)
    assert await handle == "fine"
    assert "hook failure" in caplog.text


@pytest.mark.asyncio
async def test_non_awaitable_task_is_rejected():
    queue = TaskQueue()
    handle = queue.enqueue(lambda: 42)
    with pytest.raises(TypeError):
        await handle
    assert handle.status is TaskStatus.REJECTED


def test_enqueue_requires_callable_and_running_loop():
    queue = TaskQueue()
    with pytest.raises(TypeError):
        queue.enqueue("not callable")
    with pytest.raises(RuntimeError):
        queue.enqueue(lambda: None)


async def awaits_cancelled_future():
    future = asyncio.get_running_loop().create_future()
    future.cancel()
    await future


@pytest.mark.asyncio
async def test_task_ending_cancelled_does_not_stall_the_queue():
    queue = TaskQueue(concurrency=1)

    async def ok():
        return "next"

    first = queue.enqueue(awaits_cancelled_future)
    second = queue.enqueue(ok)

    await asyncio.wait_for(queue.join(), 1.0)

    assert first.status is TaskStatus.REJECTED
    with pytest.raises(TaskCancelledError):
        await first
    assert await second == "next"
    assert queue.stats() == {
        "queued": 0, "running": 0, "fulfilled": 1, "rejected": 1, "cancelled": 0, "total": 2,
    }
