"""Domain Events related to task lifecycle and resilience.

Examples include events for when a task is queued, started, settled or
cancelled, and when a retry is scheduled.
"""

from dataclasses import dataclass, field
import time
from typing import Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Task Queue Events ---

@dataclass
class TaskQueued(DomainEvent):
    """Event triggered when a task is accepted by a queue."""
    queue: str
    task_id: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class TaskStarted(DomainEvent):
    """Event triggered when a queued task is admitted into a slot."""
    queue: str
    task_id: int
    wait_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class TaskSettled(DomainEvent):
    """Event triggered when a running task fulfils or rejects."""
    queue: str
    task_id: int
    status: str  # 'fulfilled' or 'rejected'
    duration_seconds: float
    error_type: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class TaskCancelled(DomainEvent):
    """Event triggered when a not-yet-started task is removed."""
    queue: str
    task_id: int
    timestamp: float = field(default_factory=time.time)


# --- Resilience Events ---

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed operation."""
    operation: str
    attempt_number: int
    delay_seconds: float
    error_type: str
    timestamp: float = field(default_factory=time.time)


EventHook = Callable[[DomainEvent], None]
