# City Weather Service - Response Caching
# Dual-level cache for upstream weather payloads: local LRU + Redis

import asyncio
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import redis.asyncio as redis

from cityweather.config import settings

# Configure logging
logger = logging.getLogger(__name__)


# =============================================================================
# CACHE DATA STRUCTURES
# =============================================================================

@dataclass
class CacheItem:
    """Cached serialized payload with its store time and access statistics."""
    value: str
    timestamp: float
    access_count: int = 0
    last_accessed: float = field(default_factory=time.time)

    def is_expired(self, ttl: int) -> bool:
        """Check if cache item has expired based on TTL."""
        return time.time() - self.timestamp > ttl

    def update_access(self):
        self.access_count += 1
        self.last_accessed = time.time()


# =============================================================================
# LOCAL LRU CACHE IMPLEMENTATION
# =============================================================================

class LocalLRUCache:
    """
    In-memory LRU cache with TTL expiration.

    Features:
    - Bounded size with LRU eviction
    - Per-item TTL expiration
    - Hit/miss/eviction counters
    - Operations serialized with an asyncio lock
    """

    def __init__(self, max_size: int = 100, ttl: int = 600):
        """
        Initialize LRU cache.

        Args:
            max_size: Maximum number of items in cache
            ttl: Time to live in seconds
        """
        self.max_size = max_size
        self.ttl = ttl
        self.cache: OrderedDict[str, CacheItem] = OrderedDict()

        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0

        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache with LRU update and TTL check.

        Returns:
            Cached value if found and not expired, None otherwise
        """
        async with self._lock:
            item = self.cache.get(key)
            if item is None:
                self.misses += 1
                return None

            if item.is_expired(self.ttl):
                del self.cache[key]
                self.expirations += 1
                self.misses += 1
                return None

            self.cache.move_to_end(key)
            item.update_access()
            self.hits += 1

            logger.debug(f"Cache HIT for key: {key}")
            return item.value

    async def set(self, key: str, value: str) -> None:
        """Set value in cache, evicting the least recently used item when full."""
        async with self._lock:
            current_time = time.time()

            if key in self.cache:
                item = self.cache[key]
                item.value = value
                item.timestamp = current_time
                item.update_access()
                self.cache.move_to_end(key)
                logger.debug(f"Cache UPDATE for key: {key}")
                return

            if len(self.cache) >= self.max_size:
                oldest_key, _ = self.cache.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Cache EVICTION: {oldest_key} (LRU)")

            self.cache[key] = CacheItem(value, current_time)
            logger.debug(f"Cache SET for key: {key}")

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self.cache:
                del self.cache[key]
                logger.debug(f"Cache DELETE for key: {key}")
                return True
            return False

    async def clear(self) -> None:
        """Clear all cache entries and reset metrics."""
        async with self._lock:
            self.cache.clear()
            self.hits = 0
            self.misses = 0
            self.evictions = 0
            self.expirations = 0
            logger.info("Local cache cleared")

    def size(self) -> int:
        return len(self.cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total_requests = self.hits + self.misses
        hit_rate = (self.hits / total_requests) * 100 if total_requests > 0 else 0

        return {
            "current_size": len(self.cache),
            "max_size": self.max_size,
            "hit_rate": round(hit_rate, 2),
            "total_hits": self.hits,
            "total_misses": self.misses,
            "total_requests": total_requests,
            "evictions": self.evictions,
            "expirations": self.expirations,
            "ttl_seconds": self.ttl
        }


# =============================================================================
# REDIS DISTRIBUTED CACHE
# =============================================================================

class RedisCache:
    """
    Async Redis-backed cache shared between service instances.
    Every operation degrades to a miss/no-op when Redis is unavailable.
    """

    def __init__(self, url: str = None, ttl: int = None):
        self.url = url or settings.redis_url
        self.ttl = ttl or settings.cache_ttl
        self.redis_client: Optional[redis.Redis] = None
        self.connection_pool: Optional[redis.ConnectionPool] = None
        self.connected = False

    async def connect(self) -> None:
        """Establish connection to Redis with connection pooling."""
        try:
            self.connection_pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                max_connections=20,
                health_check_interval=30
            )
            self.redis_client = redis.Redis(connection_pool=self.connection_pool)

            await self.redis_client.ping()
            self.connected = True
            logger.info("✅ Redis connection established")

        except Exception as e:
            logger.error(f"❌ Redis connection failed: {e} - using local cache only")
            self.connected = False
            self.redis_client = None

    async def disconnect(self) -> None:
        """Close Redis connection and cleanup resources."""
        if self.redis_client:
            try:
                await self.redis_client.aclose()
                if self.connection_pool:
                    await self.connection_pool.disconnect()
                logger.info("🔐 Redis connection closed")

            except Exception as e:
                logger.error(f"❌ Error closing Redis connection: {e}")

            finally:
                self.connected = False
                self.redis_client = None
                self.connection_pool = None

    async def get(self, key: str) -> Optional[str]:
        if not self.connected or not self.redis_client:
            return None

        try:
            value = await self.redis_client.get(key)
            logger.debug(f"Redis {'HIT' if value else 'MISS'} for key: {key}")
            return value

        except Exception as e:
            logger.error(f"❌ Redis get error for key {key}: {e}")
            return None

    async def set(self, key: str, value: str, ttl: int = None) -> bool:
        if not self.connected or not self.redis_client:
            return False

        try:
            result = await self.redis_client.set(key, value, ex=ttl or self.ttl)
            return bool(result)

        except Exception as e:
            logger.error(f"❌ Redis set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        if not self.connected or not self.redis_client:
            return False

        try:
            return bool(await self.redis_client.delete(key))

        except Exception as e:
            logger.error(f"❌ Redis delete error for key {key}: {e}")
            return False

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        if not self.connected or not self.redis_client:
            return False

        try:
            return await self.redis_client.ping() is True

        except Exception as e:
            logger.error(f"❌ Redis health check failed: {e}")
            self.connected = False
            return False


# =============================================================================
# UNIFIED CACHE MANAGER
# =============================================================================

class CacheManager:
    """
    Unified cache manager combining local LRU cache and Redis.

    Strategy:
    1. Check local LRU cache first
    2. On a miss, check Redis and backfill the local cache
    3. Writes go to both levels

    Payloads are stored as JSON text.
    """

    def __init__(self, max_size: int = None, ttl: int = None, redis_url: str = None):
        ttl = ttl or settings.cache_ttl
        self.local_cache = LocalLRUCache(
            max_size=max_size or settings.cache_max_size,
            ttl=ttl
        )
        self.redis_cache = RedisCache(url=redis_url, ttl=ttl)
        self.start_time = time.time()

    async def initialize(self) -> None:
        await self.redis_cache.connect()
        logger.info("🚀 Cache manager initialized")

    async def close(self) -> None:
        await self.local_cache.clear()
        await self.redis_cache.disconnect()
        logger.info("🔐 Cache manager closed")

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a payload using the dual-level strategy.

        Returns:
            Decoded payload if found, None otherwise
        """
        raw = await self.local_cache.get(key)
        if raw is None:
            raw = await self.redis_cache.get(key)
            if raw is None:
                logger.debug(f"Cache MISS for key: {key}")
                return None
            await self.local_cache.set(key, raw)
            logger.debug(f"L2 cache HIT for key: {key}, updating L1")

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"⚠️  Discarding undecodable cache entry: {key}")
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any) -> None:
        raw = json.dumps(value)
        await self.local_cache.set(key, raw)
        await self.redis_cache.set(key, raw)
        logger.debug(f"Cache SET for key: {key} (both levels)")

    async def delete(self, key: str) -> None:
        await self.local_cache.delete(key)
        await self.redis_cache.delete(key)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "local_cache": self.local_cache.get_stats(),
            "redis_connected": self.redis_cache.connected,
            "uptime_seconds": round(time.time() - self.start_time, 2),
            "cache_strategy": "dual_level_lru",
        }

    async def health_check(self) -> bool:
        """Redis health; the local level cannot fail."""
        return await self.redis_cache.health_check()


# =============================================================================
# GLOBAL CACHE MANAGER INSTANCE
# =============================================================================

cache_manager = CacheManager()


def get_cache() -> CacheManager:
    """FastAPI dependency to get cache manager instance."""
    return cache_manager


async def init_cache() -> None:
    await cache_manager.initialize()


async def close_cache() -> None:
    await cache_manager.close()


def generate_cache_key(prefix: str, *parts: Any) -> str:
    """
    Generate standardized cache key.

    Args:
        prefix: Key prefix (e.g., 'weather', 'forecast')
        parts: Identifiers appended in order

    Returns:
        Formatted cache key, e.g. ``weather:2759794``
    """
    return ":".join([prefix, *(str(part).lower() for part in parts)])
