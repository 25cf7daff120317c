import pytest

from asyncutils.domain.models.errors import SlotReleaseError
from asyncutils.infrastructure.concurrency.slots import SlotPool


def test_pool_never_exceeds_limit():
    pool = SlotPool(2)
    first = pool.try_acquire()
    second = pool.try_acquire()

    assert first is not None and second is not None
    assert pool.try_acquire() is None
    assert pool.in_use == 2
    assert pool.available == 0


def test_release_frees_capacity():
    pool = SlotPool(1)
    slot = pool.try_acquire()
    slot.release()

    assert slot.released
    assert pool.in_use == 0
    assert pool.try_acquire() is not None


def test_double_release_raises():
    pool = SlotPool(1)
    slot = pool.try_acquire()
    slot.release()

    with pytest.raises(SlotReleaseError):
        slot.release()
    assert pool.in_use == 0


def test_peak_tracks_maximum_in_use():
    pool = SlotPool(3)
    slots = [pool.try_acquire() for _ in range(3)]
    for slot in slots:
        slot.release()
    pool.try_acquire()

    assert pool.peak == 3
    assert pool.in_use == 1


@pytest.mark.parametrize("limit", [0, -1])
def test_invalid_limit(limit):
    with pytest.raises(ValueError):
        SlotPool(limit)
