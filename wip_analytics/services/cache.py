"""Result cache for computed analytics payloads.

Payloads are stored as JSON under keys built by ``build_cache_key``. Redis is
used when ``REDIS_URL`` is configured, otherwise an in-process LRU with
expiry. A failing backend never fails a request: ResultCache logs the
problem and reports a miss so the caller recomputes.
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Protocol

import redis
import redis.asyncio as aioredis

from wip_analytics.config import Settings
from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.logger import get_logger, log_exception
from wip_analytics.services.errors import CacheUnavailableError

logger = get_logger(__name__)

CACHE_NAMESPACE = "analytics"


def build_cache_key(prefix: str, *parts: object, **filters: object) -> str:
    """Build a deterministic cache key.

    ``build_cache_key("task-graphs", 42, resolution="low")`` returns
    ``analytics:task-graphs:42:resolution=low``. Filters are sorted by name and
    ``None`` filters are omitted.
    """
    segments = [CACHE_NAMESPACE, prefix, *(str(part) for part in parts)]
    segments.extend(f"{name}={value}" for name, value in sorted(filters.items()) if value is not None)
    return ":".join(segments)


class CacheBackend(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete_prefix(self, prefix: str) -> int: ...

    async def close(self) -> None: ...


class MemoryCacheBackend:
    """Per-process LRU cache with per-entry expiry."""

    def __init__(self, maxsize: int = 512, clock: Callable[[], float] = time.monotonic) -> None:
        self.maxsize = maxsize
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, str]] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            self._entries[key] = (self._clock() + ttl_seconds, value)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisCacheBackend:
    """Shared cache backed by Redis string keys with SETEX expiry."""

    def __init__(self, client: aioredis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except (redis.RedisError, OSError) as exc:
            raise CacheUnavailableError(f"Redis GET failed: {exc}") from exc

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.setex(key, ttl_seconds, value)
        except (redis.RedisError, OSError) as exc:
            raise CacheUnavailableError(f"Redis SETEX failed: {exc}") from exc

    async def delete_prefix(self, prefix: str) -> int:
        deleted = 0
        try:
            async for key in self._client.scan_iter(match=f"{prefix}*", count=500):
                deleted += await self._client.delete(key)
        except (redis.RedisError, OSError) as exc:
            raise CacheUnavailableError(f"Redis SCAN/DEL failed: {exc}") from exc
        return deleted

    async def close(self) -> None:
        await self._client.aclose()


class ResultCache:
    """JSON payload cache over a pluggable backend."""

    def __init__(self, backend: CacheBackend) -> None:
        self.backend = backend

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self.backend.get(key)
        except CacheUnavailableError as exc:
            logger.warning(
                "Cache read failed, recomputing",
                error_id=ErrorIds.WIP_CACHE_UNAVAILABLE,
                key=key,
                error=str(exc),
            )
            return None

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(
                "Discarding undecodable cache entry",
                error_id=ErrorIds.WIP_CACHE_DECODE_FAILED,
                key=key,
            )
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value, separators=(",", ":"))
        try:
            await self.backend.set(key, payload, ttl_seconds)
        except CacheUnavailableError as exc:
            logger.warning(
                "Cache write failed, result not cached",
                error_id=ErrorIds.WIP_CACHE_UNAVAILABLE,
                key=key,
                error=str(exc),
            )

    async def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``."""
        try:
            deleted = await self.backend.delete_prefix(prefix)
        except CacheUnavailableError as exc:
            log_exception(
                logger,
                exc,
                "Cache invalidation failed",
                level="warning",
                include_traceback=False,
                error_id=ErrorIds.WIP_CACHE_UNAVAILABLE,
                prefix=prefix,
            )
            return 0
        logger.info("Cache invalidated", prefix=prefix, deleted=deleted)
        return deleted

    async def close(self) -> None:
        await self.backend.close()


def create_result_cache(app_settings: Settings) -> ResultCache:
    if app_settings.redis_url:
        logger.info("Using Redis result cache")
        return ResultCache(RedisCacheBackend.from_url(app_settings.redis_url))
    logger.info("Using in-memory result cache", max_entries=app_settings.wip_cache_max_entries)
    return ResultCache(MemoryCacheBackend(maxsize=app_settings.wip_cache_max_entries))
