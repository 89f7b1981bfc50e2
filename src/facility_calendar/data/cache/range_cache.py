from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional

from ...config import DEFAULT_CACHE_PREFIX

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class _Entry:
    value: Any
    expires_at: float


@dataclass
class RangeCache:
    """TTL cache of range payloads keyed by ``<prefix><start>:<end>``.

    Concurrent loads of the same key share one task. Shared tasks are awaited
    through ``asyncio.shield`` so a caller that gets cancelled does not cancel
    the load for everyone else. Loads that started before an invalidation
    never write their result back.
    """

    ttl: timedelta
    prefix: str = DEFAULT_CACHE_PREFIX
    clock: Callable[[], float] = time.monotonic
    _entries: Dict[str, _Entry] = field(default_factory=dict, init=False, repr=False)
    _inflight: Dict[str, "asyncio.Task[Any]"] = field(default_factory=dict, init=False, repr=False)
    _generation: int = field(default=0, init=False, repr=False)

    def peek(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self.clock():
            self._entries.pop(key, None)
            return None
        return entry.value

    def put(self, key: str, value: Any) -> None:
        now = self.clock()
        self._sweep(now)
        self._entries[key] = _Entry(value=value, expires_at=now + self.ttl.total_seconds())

    def _sweep(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired range(s)", len(expired))
        return len(expired)

    async def get_or_load(self, key: str, loader: Loader, *, force: bool = False) -> Any:
        if not force:
            cached = self.peek(key)
            if cached is not None:
                logger.debug("Range cache hit for %s", key)
                return cached
            task = self._inflight.get(key)
            if task is not None:
                logger.debug("Joining in-flight load for %s", key)
                return await asyncio.shield(task)

        task = asyncio.ensure_future(self._load(key, loader, self._generation))
        self._inflight[key] = task
        task.add_done_callback(lambda finished: self._forget(key, finished))
        return await asyncio.shield(task)

    async def _load(self, key: str, loader: Loader, generation: int) -> Any:
        value = await loader()
        if generation == self._generation:
            self.put(key, value)
        else:
            logger.debug("Discarding result for %s loaded before invalidation", key)
        return value

    def _forget(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._inflight.get(key) is task:
            self._inflight.pop(key, None)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Range load for %s failed: %s", key, task.exception())

    def invalidate_prefix(self, prefix: Optional[str] = None) -> int:
        """Drop cached and in-flight entries whose key starts with ``prefix``."""

        target = self.prefix if prefix is None else prefix
        self._generation += 1
        stale = [key for key in self._entries if key.startswith(target)]
        for key in stale:
            self._entries.pop(key, None)
        for key in [key for key in self._inflight if key.startswith(target)]:
            self._inflight.pop(key, None)
        if stale:
            logger.debug("Invalidated %d cached range(s) under %r", len(stale), target)
        return len(stale)

    def clear(self) -> None:
        self._generation += 1
        self._entries.clear()
        self._inflight.clear()

    def __len__(self) -> int:
        return len(self._entries)
