"""In-memory implementation of the MemoStore interface.

Entries carry their own expiry; it is checked whenever an entry is read.
The store is bounded: once it holds more than ``max_items`` entries the
oldest (by insertion order) are evicted, expired ones first.
"""

import logging
import time
from typing import Callable, Dict, Optional

from asyncutils.domain.interfaces.memo_store import MemoEntry, MemoStore
from asyncutils.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 1024


class InMemoryMemoStore(MemoStore):
    """Dictionary-backed memo store."""

    def __init__(self, max_items: int = DEFAULT_MAX_ITEMS, clock: Callable[[], float] = time.monotonic):
        if max_items < 1:
            raise ValueError("max_items must be at least 1")
        self._entries: Dict[CacheKey, MemoEntry] = {}
        self.max_items = max_items
        self.clock = clock
        logger.debug(f"InMemoryMemoStore initialized (max_items={max_items})")

    def _prune(self) -> None:
        """Removes expired entries, then evicts the oldest while over the limit."""
        if len(self._entries) <= self.max_items:
            return
        now = self.clock()
        expired = [k for k, v in self._entries.items() if v.is_expired(now)]
        for k in expired:
            del self._entries[k]
        while len(self._entries) > self.max_items:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            logger.debug(f"Evicted memo entry: key={oldest_key}")

    def get(self, key: CacheKey) -> Optional[MemoEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            del self._entries[key]
            logger.debug(f"Memo entry expired: key={key}")
            return None
        return entry

    def set(self, entry: MemoEntry) -> None:
        # Re-insert so a refreshed key counts as the newest entry.
        self._entries.pop(entry.key, None)
        self._entries[entry.key] = entry
        self._prune()

    def delete(self, key: CacheKey) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
