"""
Redis-backed session cache, shared by every instance of the service.

Redis expires keys on its own; `cached_at`/`ttl_seconds` are stored alongside
the principal so the logical-expiry check still applies to whatever comes back.
"""
from __future__ import annotations

import json
import time

import redis.asyncio as redis

from erp_auth.auth.models import Principal
from erp_auth.cache.session_cache import CacheEntry, Clock, SessionCache
from erp_auth.configs.logging_config import get_logger
from erp_auth.errors import SessionCacheError

log = get_logger(__name__)


class RedisSessionCache(SessionCache):
    def __init__(self, client: redis.Redis, *, prefix: str = "erp:session:", clock: Clock = time.time):
        self._client = client
        self._prefix = prefix
        self._clock = clock

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> CacheEntry | None:
        raw = await self._client.get(self._k(key))
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            entry = CacheEntry(
                principal=Principal.from_dict(data["principal"]),
                cached_at=float(data["cached_at"]),
                ttl_seconds=int(data["ttl_seconds"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            await self._client.delete(self._k(key))
            log.error("session_cache.redis.malformed key=%s", key)
            raise SessionCacheError(f"malformed session cache entry for {key}") from exc

        if entry.is_expired(self._clock()):
            await self._client.delete(self._k(key))
            return None
        return entry

    async def set(self, key: str, entry: CacheEntry) -> None:
        payload = json.dumps(
            {
                "principal": entry.principal.to_dict(),
                "cached_at": entry.cached_at,
                "ttl_seconds": entry.ttl_seconds,
            }
        )
        await self._client.set(self._k(key), payload, ex=max(int(entry.ttl_seconds), 1))

    async def delete(self, key: str) -> None:
        await self._client.delete(self._k(key))

    async def clear(self) -> None:
        deleted = 0
        async for found in self._client.scan_iter(match=f"{self._prefix}*", count=500):
            deleted += await self._client.delete(found)
        log.info("session_cache.redis.cleared deleted=%s", deleted)
