"""Value objects describing retry behaviour."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BackoffStrategy(str, Enum):
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry attempt budget and the pause between attempts.

    Attributes:
        max_attempts: Total number of invocations, including the first one.
        delay: Base pause in seconds before the second attempt.
        strategy: How the pause grows with each failed attempt.
        factor: Multiplier for the exponential strategy.
        max_delay: Optional cap on any single pause.
    """
    max_attempts: int = 3
    delay: float = 0.0
    strategy: BackoffStrategy = BackoffStrategy.FIXED
    factor: float = 2.0
    max_delay: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.delay < 0:
            raise ValueError("delay must be non-negative")
        if self.factor < 1:
            raise ValueError("factor must be at least 1")
        if self.max_delay is not None and self.max_delay < 0:
            raise ValueError("max_delay must be non-negative")

    def compute_delay(self, attempt: int) -> float:
        """Returns the pause to take after the given (1-based) failed attempt."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        if self.strategy is BackoffStrategy.LINEAR:
            wait = self.delay * attempt
        elif self.strategy is BackoffStrategy.EXPONENTIAL:
            wait = self.delay * (self.factor ** (attempt - 1))
        else:
            wait = self.delay
        if self.max_delay is not None:
            wait = min(wait, self.max_delay)
        return wait
