"""Defines common Value Objects used across the coordination components.

These objects represent simple values or concepts like task ids, cache keys
and task statuses, ensuring consistency and type safety.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, NewType, TypedDict, TypeVar

T = TypeVar("T")

# === Task Context ===
TaskId = NewType("TaskId", int)            # Insertion-order sequence number, never reused
TaskFactory = Callable[[], Awaitable[Any]]  # Zero-argument operation producing an awaitable

# === Caching Context ===
CacheKey = NewType("CacheKey", str)        # Deterministic key derived from call arguments


class TaskStatus(str, Enum):
    """Lifecycle state of a queue entry."""
    QUEUED = "queued"
    RUNNING = "running"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.FULFILLED, TaskStatus.REJECTED, TaskStatus.CANCELLED)


# Allowed transitions; terminal states have none.
STATUS_TRANSITIONS = {
    TaskStatus.QUEUED: frozenset({TaskStatus.RUNNING, TaskStatus.CANCELLED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.FULFILLED, TaskStatus.REJECTED}),
    TaskStatus.FULFILLED: frozenset(),
    TaskStatus.REJECTED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


# --- Structured Data ---
class QueueStats(TypedDict):
    """Snapshot of entry counts by status."""
    queued: int
    running: int
    fulfilled: int
    rejected: int
    cancelled: int
    total: int
