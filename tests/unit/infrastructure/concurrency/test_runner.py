import asyncio
import random

import pytest

from asyncutils.domain.models.errors import TaskCancelledError
from asyncutils.infrastructure.concurrency.runner import TaskOutcome, run_concurrent, run_concurrent_strict


class Tracker:
    def __init__(self):
        self.active = 0
        self.peak = 0
        self.started = []

    def task(self, index, duration, fail=False):
        async def run():
            self.started.append(index)
            self.active += 1
            self.peak = max(self.peak, self.active)
            try:
                await asyncio.sleep(duration)
                if fail:
                    raise RuntimeError(f"task {index} failed")
                return index * 10
            finally:
                self.active -= 1
        return run


@pytest.mark.asyncio
async def test_results_match_input_order_and_limit_respected():
    tracker = Tracker()
    rng = random.Random(7)
    tasks = [tracker.task(i, rng.uniform(0.001, 0.02)) for i in range(12)]

    outcomes = await run_concurrent(tasks, 3)

    assert len(outcomes) == 12
    assert [o.index for o in outcomes] == list(range(12))
    assert [o.value for o in outcomes] == [i * 10 for i in range(12)]
    assert all(o.ok for o in outcomes)
    assert tracker.peak <= 3
    assert tracker.started == list(range(12))


@pytest.mark.asyncio
async def test_failures_are_collected_not_propagated():
    tracker = Tracker()
    tasks = [tracker.task(i, 0.005, fail=(i % 2 == 1)) for i in range(6)]

    outcomes = await run_concurrent(tasks, 2)

    assert [o.ok for o in outcomes] == [True, False, True, False, True, False]
    assert isinstance(outcomes[1].error, RuntimeError)
    assert outcomes[0].unwrap() == 0
    with pytest.raises(RuntimeError):
        outcomes[3].unwrap()
    # Every task ran despite the failures.
    assert sorted(tracker.started) == list(range(6))


@pytest.mark.asyncio
async def test_empty_batch_returns_empty_list():
    assert await run_concurrent([], 3) == []
    assert await run_concurrent_strict([], 3) == []


@pytest.mark.asyncio
async def test_invalid_limit_raises():
    with pytest.raises(ValueError):
        await run_concurrent([], 0)
    with pytest.raises(ValueError):
        await run_concurrent_strict([], 0)


@pytest.mark.asyncio
async def test_limit_larger_than_batch():
    tracker = Tracker()
    outcomes = await run_concurrent([tracker.task(i, 0.01) for i in range(3)], 10)
    assert [o.value for o in outcomes] == [0, 10, 20]
    assert tracker.peak == 3


@pytest.mark.asyncio
async def test_strict_returns_values_in_order():
    tracker = Tracker()
    tasks = [tracker.task(i, 0.01 * (5 - i)) for i in range(5)]
    assert await run_concurrent_strict(tasks, 5) == [0, 10, 20, 30, 40]


@pytest.mark.asyncio
async def test_strict_fails_fast_and_skips_unstarted_tasks():
    tracker = Tracker()
    tasks = [tracker.task(0, 0.001, fail=True)] + [tracker.task(i, 0.05) for i in range(1, 6)]

    with pytest.raises(RuntimeError, match="task 0 failed"):
        await run_concurrent_strict(tasks, 2)

    await asyncio.sleep(0.1)
    # Task 1 was already running; tasks 2..5 never started.
    assert tracker.started == [0, 1]


def test_task_outcome_ok_flag():
    assert TaskOutcome(index=0, value=None).ok
    assert not TaskOutcome(index=0, error=ValueError()).ok


@pytest.mark.asyncio
async def test_task_ending_cancelled_is_collected_and_siblings_run():
    async def awaits_cancelled_future():
        future = asyncio.get_running_loop().create_future()
        future.cancel()
        await future

    async def ok():
        return "ok"

    outcomes = await asyncio.wait_for(run_concurrent([awaits_cancelled_future, ok], 1), 1.0)

    assert isinstance(outcomes[0].error, TaskCancelledError)
    assert outcomes[1].value == "ok"


@pytest.mark.asyncio
async def test_strict_raises_the_earliest_settled_failure():
    async def fails_after_a_tick():
        await asyncio.sleep(0)
        raise RuntimeError("first task")

    async def fails_at_once():
        raise RuntimeError("second task")

    # Both settle before the runner wakes; the second settled first.
    with pytest.raises(RuntimeError, match="second task"):
        await run_concurrent_strict([fails_after_a_tick, fails_at_once], 2)
