"""Async memoization with time-bounded entries and shared in-flight calls.

Concurrent calls for a key that has no live entry share one invocation of
the wrapped function instead of each starting their own. Successful results
are cached for ``ttl`` seconds. Failures are not cached unless
``failure_ttl`` is set, and then only for that long.
"""

import asyncio
import functools
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from asyncutils.domain.interfaces.memo_store import MemoEntry, MemoStore
from asyncutils.domain.models.common import CacheKey
from asyncutils.infrastructure.cache.memo_store import InMemoryMemoStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0

KeyFunction = Callable[..., str]


def default_key(*args: Any, **kwargs: Any) -> CacheKey:
    """Stable serialization of call arguments; non-JSON values fall back to repr."""
    payload = [list(args), sorted(kwargs.items())]
    try:
        return CacheKey(json.dumps(payload, sort_keys=True, default=repr, separators=(",", ":")))
    except (TypeError, ValueError):
        return CacheKey(repr(payload))


def _retrieve_exception(future: "asyncio.Future[Any]") -> None:
    if not future.cancelled():
        future.exception()


class AsyncMemoized:
    """Callable wrapper produced by :func:`memoize_async`."""

    def __init__(
        self,
        fn: Callable[..., Awaitable[Any]],
        key_fn: Optional[KeyFunction] = None,
        ttl: float = DEFAULT_TTL_SECONDS,
        *,
        failure_ttl: float = 0.0,
        store: Optional[MemoStore] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if failure_ttl < 0:
            raise ValueError("failure_ttl must be non-negative")
        self._fn = fn
        self._key_fn = key_fn or default_key
        self.ttl = ttl
        self.failure_ttl = failure_ttl
        self.clock = clock
        self._store = store if store is not None else InMemoryMemoStore(clock=clock)
        self._in_flight: Dict[CacheKey, "asyncio.Future[Any]"] = {}
        self.hits = 0
        self.misses = 0
        self.shared = 0
        functools.update_wrapper(self, fn)

    @property
    def store(self) -> MemoStore:
        return self._store

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def key_for(self, *args: Any, **kwargs: Any) -> CacheKey:
        return CacheKey(self._key_fn(*args, **kwargs))

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        key = self.key_for(*args, **kwargs)

        entry = self._store.get(key)
        if entry is not None:
            self.hits += 1
            logger.debug(f"Memo hit for key: {key}")
            if entry.is_failure:
                # Cached failures are shared; start each raise with a fresh traceback.
                raise entry.error.with_traceback(None)
            return entry.value

        call = self._in_flight.get(key)
        if call is None:
            self.misses += 1
            logger.debug(f"Memo miss for key: {key}")
            call = asyncio.ensure_future(self._invoke(key, args, kwargs))
            call.add_done_callback(_retrieve_exception)
            self._in_flight[key] = call
        else:
            self.shared += 1
            logger.debug(f"Joining in-flight call for key: {key}")

        # A cancelled caller must not cancel the call other callers share.
        return await asyncio.shield(call)

    async def _invoke(self, key: CacheKey, args: tuple, kwargs: Dict[str, Any]) -> Any:
        try:
            value = await self._fn(*args, **kwargs)
        except Exception as e:
            if self.failure_ttl > 0:
                now = self.clock()
                self._store.set(MemoEntry(key=key, error=e, created_at=now, expires_at=now + self.failure_ttl))
                logger.debug(f"Cached failure for key {key} for {self.failure_ttl}s: {e!r}")
            raise
        else:
            now = self.clock()
            self._store.set(MemoEntry(key=key, value=value, created_at=now, expires_at=now + self.ttl))
            return value
        finally:
            self._in_flight.pop(key, None)

    def invalidate(self, *args: Any, **kwargs: Any) -> bool:
        """Drops the entry for these arguments. Returns True if one existed."""
        return self._store.delete(self.key_for(*args, **kwargs))

    def clear(self) -> None:
        self._store.clear()
        logger.info(f"Cleared memo cache for {getattr(self._fn, '__name__', self._fn)!s}")


def memoize_async(
    fn: Callable[..., Awaitable[Any]],
    key_fn: Optional[KeyFunction] = None,
    ttl: float = DEFAULT_TTL_SECONDS,
    *,
    failure_ttl: float = 0.0,
    store: Optional[MemoStore] = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncMemoized:
    """Wraps an async function with a TTL cache keyed by its arguments."""
    return AsyncMemoized(fn, key_fn, ttl, failure_ttl=failure_ttl, store=store, clock=clock)


def memoized(
    ttl: float = DEFAULT_TTL_SECONDS,
    *,
    key_fn: Optional[KeyFunction] = None,
    failure_ttl: float = 0.0,
    store: Optional[MemoStore] = None,
    clock: Callable[[], float] = time.monotonic,
) -> Callable[[Callable[..., Awaitable[Any]]], AsyncMemoized]:
    """Decorator form of :func:`memoize_async`."""
    def decorator(fn: Callable[..., Awaitable[Any]]) -> AsyncMemoized:
        return memoize_async(fn, key_fn, ttl, failure_ttl=failure_ttl, store=store, clock=clock)
    return decorator
