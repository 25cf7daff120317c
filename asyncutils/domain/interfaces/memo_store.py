"""Interface for memoization storage.

Defines the contract for storing, retrieving, and expiring memo entries.
Expiry is always judged at read time; stores never evict in the background.
"""

import abc
from dataclasses import dataclass
from typing import Any, Optional

from asyncutils.domain.models.common import CacheKey


@dataclass(frozen=True)
class MemoEntry:
    """Cached outcome of one invocation. Immutable once written."""
    key: CacheKey
    value: Any = None
    error: Optional[BaseException] = None
    created_at: float = 0.0
    expires_at: float = 0.0

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoStore(abc.ABC):
    """Abstract Base Class for memo entry storage."""

    @abc.abstractmethod
    def get(self, key: CacheKey) -> Optional[MemoEntry]:
        """Retrieves a live entry.

        Args:
            key: The memo key to look up.

        Returns:
            The entry if present and not expired, otherwise None. Expired
            entries found during the lookup are dropped.
        """
        pass

    @abc.abstractmethod
    def set(self, entry: MemoEntry) -> None:
        """Stores an entry, replacing any previous entry under the same key."""
        pass

    @abc.abstractmethod
    def delete(self, key: CacheKey) -> bool:
        """Removes an entry. Returns True if one was present."""
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Removes every entry."""
        pass

    @abc.abstractmethod
    def __len__(self) -> int:
        pass
