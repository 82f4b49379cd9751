"""Short-lived result cache for acquired records.

Two backends share one async interface:

- ResultCache: in-process dict with lazy expiry and oldest-first eviction
- RedisResultCache: Redis with native TTLs, for deployments running more
  than one worker

The cache is advisory. A failing backend degrades to cache misses.
"""

import json
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import structlog
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from pricepulse.config import Settings, settings as default_settings
from pricepulse.scrapers.base import NormalizedRecord
from pricepulse.scrapers.utils.normalizer import normalize_url

logger = structlog.get_logger(__name__)

T = TypeVar("T")

CacheValue = Union[NormalizedRecord, List[NormalizedRecord]]

PRODUCT_PREFIX = "product:"
COMPARISON_PREFIX = "comparison:"


def normalize_key(key: str) -> str:
    """Trim and case-fold a cache key."""
    return key.strip().casefold()


def cache_key_for_product(url: str) -> str:
    return PRODUCT_PREFIX + normalize_key(normalize_url(url.strip()))


def cache_key_for_comparison(search_term: str) -> str:
    return COMPARISON_PREFIX + normalize_key(" ".join(search_term.split()))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry(Generic[T]):
    value: T
    cached_at: datetime
    ttl: timedelta

    def expired(self, now: datetime) -> bool:
        return now - self.cached_at > self.ttl


class ResultCache:
    """In-process TTL cache guarded by a lock.

    Expired entries are dropped when read (or by sweep_expired). When the
    store grows past max_entries, the oldest entries by cached_at go first.
    """

    def __init__(
        self,
        max_entries: int = 500,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize cache.

        Args:
            max_entries: Upper bound on stored entries
            clock: Returns the current aware datetime; injectable for tests
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry[Any]] = {}
        self._lock = threading.Lock()
        self.logger = logger.bind(service="result_cache", backend="memory")

    async def get(self, key: str) -> Optional[Any]:
        """Get a value, or None if missing or expired."""
        normalized = normalize_key(key)
        with self._lock:
            entry = self._entries.get(normalized)
            if entry is None:
                self.logger.debug("cache_miss", key=normalized)
                return None
            if entry.expired(self._clock()):
                del self._entries[normalized]
                self.logger.debug("cache_expired", key=normalized)
                return None
            self.logger.debug("cache_hit", key=normalized)
            return entry.value

    async def put(self, key: str, value: Any, ttl: Union[int, float, timedelta]) -> None:
        """Store a value with a TTL (seconds or timedelta)."""
        normalized = normalize_key(key)
        ttl_delta = ttl if isinstance(ttl, timedelta) else timedelta(seconds=ttl)
        with self._lock:
            self._entries[normalized] = CacheEntry(value=value, cached_at=self._clock(), ttl=ttl_delta)
            overflow = len(self._entries) - self.max_entries
            if overflow > 0:
                oldest = sorted(self._entries.items(), key=lambda item: item[1].cached_at)[:overflow]
                for old_key, _ in oldest:
                    del self._entries[old_key]
                self.logger.debug("cache_evicted", count=overflow)
        self.logger.debug("cache_set", key=normalized, ttl=ttl_delta.total_seconds())

    async def sweep_expired(self) -> int:
        """Drop every expired entry.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.expired(now)]
            for k in expired:
                del self._entries[k]
        if expired:
            self.logger.info("cache_swept", removed=len(expired))
        return len(expired)

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(normalize_key(key), None) is not None

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        await self.clear()


# ----------------------------------------------------------------------
# Redis backend
# ----------------------------------------------------------------------


def encode_value(value: CacheValue) -> str:
    """Serialize a record or a list of records for Redis."""
    if isinstance(value, NormalizedRecord):
        return json.dumps({"type": "record", "data": value.to_dict()}, ensure_ascii=False)
    return json.dumps(
        {"type": "records", "data": [record.to_dict() for record in value]},
        ensure_ascii=False,
    )


def decode_value(raw: str) -> Optional[CacheValue]:
    """Inverse of encode_value. Returns None for unreadable payloads."""
    try:
        envelope = json.loads(raw)
        if envelope.get("type") == "record":
            return NormalizedRecord.from_dict(envelope["data"])
        if envelope.get("type") == "records":
            return [NormalizedRecord.from_dict(item) for item in envelope["data"]]
    except (ValueError, KeyError, TypeError, AttributeError):
        return None
    return None


class RedisResultCache:
    """Async Redis result cache.

    Expiry is delegated to Redis TTLs and the entry bound to the server's
    maxmemory policy, so sweep_expired has nothing to do.
    """

    def __init__(self, redis_url: str, namespace: str = "pricepulse:"):
        """Initialize cache service.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            namespace: Prefix applied to every key
        """
        self.redis_url = redis_url
        self.namespace = namespace
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="result_cache", backend="redis")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created")
        return self._redis

    def _key(self, key: str) -> str:
        return self.namespace + normalize_key(key)

    async def get(self, key: str) -> Optional[CacheValue]:
        """Get a value, or None if not found, unreadable or on error."""
        full_key = self._key(key)
        try:
            redis = await self._get_redis()
            raw = await redis.get(full_key)
        except RedisError as e:
            self.logger.error("cache_get_failed", key=full_key, error=str(e), exc_info=True)
            return None

        if raw is None:
            self.logger.debug("cache_miss", key=full_key)
            return None

        value = decode_value(raw)
        if value is None:
            self.logger.warning("cache_value_unreadable", key=full_key)
        else:
            self.logger.debug("cache_hit", key=full_key)
        return value

    async def put(self, key: str, value: CacheValue, ttl: Union[int, float, timedelta]) -> None:
        full_key = self._key(key)
        seconds = int(ttl.total_seconds() if isinstance(ttl, timedelta) else ttl)
        try:
            redis = await self._get_redis()
            await redis.set(full_key, encode_value(value), ex=max(1, seconds))
            self.logger.debug("cache_set", key=full_key, ttl=seconds)
        except RedisError as e:
            self.logger.error("cache_set_failed", key=full_key, error=str(e), exc_info=True)

    async def sweep_expired(self) -> int:
        return 0

    async def delete(self, key: str) -> bool:
        full_key = self._key(key)
        try:
            redis = await self._get_redis()
            return bool(await redis.delete(full_key))
        except RedisError as e:
            self.logger.error("cache_delete_failed", key=full_key, error=str(e), exc_info=True)
            return False

    async def clear(self) -> None:
        """Delete every key under the namespace."""
        try:
            redis = await self._get_redis()
            keys = [key async for key in redis.scan_iter(match=self.namespace + "*", count=100)]
            if keys:
                await redis.delete(*keys)
            self.logger.info("cache_cleared", keys_deleted=len(keys))
        except RedisError as e:
            self.logger.error("cache_clear_failed", error=str(e), exc_info=True)

    async def health_check(self) -> bool:
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True
        except RedisError as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close Redis connection. Call on application shutdown."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


def create_result_cache(
    settings: Settings = default_settings,
) -> Union[ResultCache, RedisResultCache]:
    """Build the cache backend selected by CACHE_BACKEND."""
    if settings.CACHE_BACKEND.lower() == "redis":
        logger.info("result_cache_initialized", backend="redis")
        return RedisResultCache(settings.REDIS_URL)
    logger.info("result_cache_initialized", backend="memory", max_entries=settings.CACHE_MAX_ENTRIES)
    return ResultCache(max_entries=settings.CACHE_MAX_ENTRIES)
