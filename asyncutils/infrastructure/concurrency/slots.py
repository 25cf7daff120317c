"""Concurrency slots: the admission logic shared by the runner and the queue.

A SlotPool hands out at most ``limit`` permits. A permit is acquired before
a task starts and released exactly once when it settles. Acquisition never
blocks; schedulers ask for a slot and leave work queued when none is free.
"""

import logging
from typing import Optional

from asyncutils.domain.models.errors import SlotReleaseError

logger = logging.getLogger(__name__)


class Slot:
    """A single permit. Releasing it twice raises SlotReleaseError."""

    __slots__ = ("_pool", "number", "_released")

    def __init__(self, pool: "SlotPool", number: int):
        self._pool = pool
        self.number = number
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            raise SlotReleaseError(f"Slot {self.number} of pool '{self._pool.name}' already released")
        self._released = True
        self._pool._on_release(self)

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"<Slot #{self.number} {state}>"


class SlotPool:
    """Counts outstanding permits against a fixed limit."""

    def __init__(self, limit: int, name: str = "pool"):
        if limit < 1:
            raise ValueError("Concurrency limit must be at least 1.")
        self.limit = limit
        self.name = name
        self._in_use = 0
        self._issued = 0
        self.peak = 0

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self.limit - self._in_use

    def try_acquire(self) -> Optional[Slot]:
        """Returns a permit, or None when the pool is exhausted."""
        if self._in_use >= self.limit:
            return None
        self._in_use += 1
        self._issued += 1
        self.peak = max(self.peak, self._in_use)
        return Slot(self, self._issued)

    def _on_release(self, slot: Slot) -> None:
        self._in_use -= 1
        logger.debug(f"Pool '{self.name}' released slot #{slot.number} ({self._in_use}/{self.limit} in use)")
