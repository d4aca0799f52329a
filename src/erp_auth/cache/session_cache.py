"""
Session cache: user id -> resolved principal, time-boxed.

Correctness rests on the logical-expiry check in `get`; the periodic sweep only
bounds memory. Good for single-instance deployments, data is lost on restart.
"""
from __future__ import annotations

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from erp_auth.auth.models import Principal
from erp_auth.configs.logging_config import get_logger

log = get_logger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    principal: Principal
    cached_at: float  # Unix timestamp
    ttl_seconds: int

    def is_expired(self, now: float) -> bool:
        return now >= self.cached_at + self.ttl_seconds


class SessionCache(ABC):
    """get/set/delete/clear contract shared by every session cache backend."""

    @abstractmethod
    async def get(self, key: str) -> CacheEntry | None:
        """Return the live entry for `key`; expired entries count as absent."""

    @abstractmethod
    async def set(self, key: str, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    async def start(self) -> None:
        """Start background work, if the backend has any."""

    async def stop(self) -> None:
        """Stop background work, if the backend has any."""


class MemorySessionCache(SessionCache):
    """
    In-process cache guarded by a `threading.Lock`, so endpoints running on the
    event loop and in the threadpool can share it.
    """

    def __init__(self, *, sweep_interval: int = 300, clock: Clock = time.time):
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._sweeper: asyncio.Task | None = None

    async def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry

    async def set(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        log.info("session_cache.memory.cleared")

    def sweep(self) -> int:
        """Remove expired entries. Returns how many were evicted."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            log.debug("session_cache.memory.sweep evicted=%s", len(expired))
        return len(expired)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    async def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop())
            log.info("session_cache.memory.sweeper_started interval=%s", self._sweep_interval)

    async def stop(self) -> None:
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is None:
            return
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        log.info("session_cache.memory.sweeper_stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.sweep()
            except Exception as exc:
                log.error("session_cache.memory.sweep_failed %s", str(exc), exc_info=True)
