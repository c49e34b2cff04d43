"""
climarisk/cache.py

Result Cache for the ClimaRisk engine

OBJECTIVE:
Avoid recomputing repeated single-point assessments and make grid-wide
evaluation tractable by caching one entry per grid cell / time point.

FEATURES:
- Deterministic key derivation independent of parameter order
- TTL (Time To Live) per entry, evicted lazily on read past expiry
- LRU (Least Recently Used) bound on the in-memory backend
- Redis backend (redis.asyncio) shared across processes
- Circuit breaker around Redis; every backend failure is a miss or no-op
- Hit/miss/expiration/eviction/error statistics

CACHE KEY FORMAT:
namespace:k1=v1&k2=v2 with keys sorted
Example: point:as_of=2024-05-01&lat=-1.9441&lon=30.0619

SEMANTICS:
- get() returns None for never-written and expired entries alike
- set() overwrites unconditionally (last write wins)
"""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import CacheUnavailable

logger = logging.getLogger(__name__)

__all__ = [
    "make_cache_key",
    "CacheBackend",
    "CacheEntry",
    "ResultCache",
    "CircuitState",
    "CircuitBreaker",
    "RedisResultCache",
]


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def _format_param(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (int, float)):
        # 1 and 1.0 are the same logical parameter
        return repr(round(float(value), 6))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def make_cache_key(namespace: str, params: Mapping[str, Any]) -> str:
    """Build ``namespace:k1=v1&k2=v2`` with keys stably sorted.

    Example:
        >>> make_cache_key("point", {"lon": 30.0619, "lat": -1.9441})
        'point:lat=-1.9441&lon=30.0619'
    """
    pairs = "&".join(
        f"{key}={_format_param(params[key])}" for key in sorted(params)
    )
    return f"{namespace}:{pairs}"


class CacheBackend(Protocol):
    """Async key/value store used by the engine."""

    async def get(self, key: str) -> Optional[Any]:
        ...

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ...


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class CacheEntry:
    """
    Represents a single cache entry with TTL tracking.
    """

    __slots__ = ("key", "value", "expires_at", "access_count")

    def __init__(self, key: str, value: Any, ttl_seconds: float, now: float):
        """
        Initialize cache entry.

        Args:
            key: Cache key
            value: Cached value
            ttl_seconds: Time to live in seconds
            now: Clock reading at write time
        """
        self.key = key
        self.value = value
        self.expires_at = now + ttl_seconds
        self.access_count = 0

    def is_expired(self, now: float) -> bool:
        """Check if cache entry has expired."""
        return now >= self.expires_at

    def access(self) -> Any:
        """Access cache entry and update statistics."""
        self.access_count += 1
        return self.value


class ResultCache:
    """
    Bounded in-memory LRU cache with per-entry TTL.

    Features:
    - LRU eviction when max_entries reached
    - TTL-based expiration, checked lazily on read
    - Thread-safe operations
    - Hit/miss statistics
    """

    def __init__(
        self,
        max_entries: Optional[int] = None,
        default_ttl: Optional[int] = None,
        config: Optional[ClimaRiskConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize result cache.

        Args:
            max_entries: Maximum number of entries (default: config.cache_max_entries)
            default_ttl: TTL in seconds when set() gets none (default: config.cache_ttl)
            config: Engine configuration; the singleton when omitted
            clock: Monotonic clock returning seconds
        """
        cfg = config or get_config()
        self.max_entries = max_entries or cfg.cache_max_entries
        self.default_ttl = default_ttl or cfg.cache_ttl
        self._clock = clock

        # OrderedDict keeps recency order, oldest first
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if never written or expired
        """
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._cache[key]
                self._expirations += 1
                self._misses += 1
                return None

            self._cache.move_to_end(key)
            self._hits += 1
            return entry.access()

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store a value, replacing any existing entry.

        Args:
            key: Cache key
            value: Value to cache
            ttl: TTL in seconds (default: default_ttl)
        """
        ttl_seconds = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._cache[key] = CacheEntry(key, value, ttl_seconds, self._clock())
            self._cache.move_to_end(key)

            while len(self._cache) > self.max_entries:
                evicted_key, _ = self._cache.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted cache entry %s (LRU)", evicted_key)

    async def delete(self, key: str) -> bool:
        """Remove ``key``; True if it was present."""
        with self._lock:
            return self._cache.pop(key, None) is not None

    async def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._cache.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry now; returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._cache.items() if e.is_expired(now)]
            for key in expired:
                del self._cache[key]
            self._expirations += len(expired)
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with hits, misses, hit_rate, evictions, expirations, size
        """
        with self._lock:
            total = self._hits + self._misses
            return {
                "backend": "memory",
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / total if total else 0.0,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "errors": 0,
                "size": len(self._cache),
                "max_entries": self.max_entries,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: str) -> bool:
        """True if ``key`` holds an unexpired entry."""
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not entry.is_expired(self._clock())


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"  # Normal operation
    OPEN = "open"      # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing recovery


@dataclass
class CircuitBreaker:
    """
    Circuit breaker for Redis operations.

    Stops sending requests to an unhealthy Redis until the recovery timeout
    has elapsed.
    """
    failure_threshold: int = 5
    recovery_timeout: float = 30.0  # seconds
    half_open_max_calls: int = 1

    def __post_init__(self):
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_failure_time = 0.0
        self.half_open_calls = 0

    def record_success(self) -> None:
        """Record a successful operation."""
        if self.state == CircuitState.HALF_OPEN:
            logger.info("Circuit breaker closed (recovered)")
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.half_open_calls = 0

    def record_failure(self) -> None:
        """Record a failed operation."""
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning(
                    "Circuit breaker opened after %d failures", self.failure_count
                )
            self.state = CircuitState.OPEN

    def can_attempt(self) -> bool:
        """Check if operation can be attempted."""
        if self.state == CircuitState.CLOSED:
            return True

        if self.state == CircuitState.OPEN:
            if time.monotonic() - self.last_failure_time >= self.recovery_timeout:
                self.state = CircuitState.HALF_OPEN
                self.half_open_calls = 1
                logger.info("Circuit breaker half-open (testing recovery)")
                return True
            return False

        if self.half_open_calls < self.half_open_max_calls:
            self.half_open_calls += 1
            return True
        return False


class RedisResultCache:
    """
    Redis-backed result cache that fails open.

    Values are stored as JSON under ``<prefix>:<key>`` with a Redis-side TTL.
    Any backend failure (connection refused, timeout, corrupt payload, open
    circuit) is logged and reported to callers as a miss (``get``) or a
    no-op (``set``).
    """

    def __init__(
        self,
        url: Optional[str] = None,
        client: Any = None,
        default_ttl: Optional[int] = None,
        prefix: str = "climarisk",
        circuit_breaker: Optional[CircuitBreaker] = None,
        config: Optional[ClimaRiskConfig] = None,
    ):
        """
        Initialize Redis result cache.

        Args:
            url: Redis URL (default: config.redis_url)
            client: Pre-built ``redis.asyncio.Redis`` client; overrides url
            default_ttl: TTL in seconds when set() gets none (default: config.cache_ttl)
            prefix: Key prefix isolating this cache in a shared Redis
            circuit_breaker: Breaker guarding Redis calls
            config: Engine configuration; the singleton when omitted
        """
        cfg = config or get_config()
        self._url = url or cfg.redis_url
        self._redis = client
        self.default_ttl = default_ttl or cfg.cache_ttl
        self._prefix = prefix
        self._breaker = circuit_breaker or CircuitBreaker()

        self._hits = 0
        self._misses = 0
        self._errors = 0

    async def connect(self) -> None:
        """Create the Redis client from the URL if none was injected."""
        if self._redis is None:
            if not self._url:
                raise CacheUnavailable(
                    "no redis_url configured", backend="redis", operation="connect"
                )
            self._redis = aioredis.from_url(self._url, decode_responses=False)
            logger.info("Redis result cache connected")

    async def close(self) -> None:
        """Close the Redis client."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis result cache closed")

    def _full_key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    async def _call(self, operation: str, key: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run one Redis command under the circuit breaker.

        Raises:
            CacheUnavailable: On any backend failure or an open circuit.
        """
        if self._redis is None:
            raise CacheUnavailable(
                "redis client not connected", backend="redis", operation=operation
            )
        if not self._breaker.can_attempt():
            raise CacheUnavailable(
                "circuit breaker is open", backend="redis", operation=operation
            )
        try:
            result = await func(*args)
        except (RedisError, OSError) as exc:
            self._breaker.record_failure()
            raise CacheUnavailable(
                f"redis {operation} failed for {key}",
                backend="redis",
                operation=operation,
                cause=exc,
            ) from exc
        self._breaker.record_success()
        return result

    async def get(self, key: str) -> Optional[Any]:
        """
        Get value from Redis.

        Returns:
            Cached value, or None on miss, expiry, or any backend failure
        """
        try:
            raw = await self._call("get", key, self._redis_get, self._full_key(key))
            if raw is None:
                self._misses += 1
                return None
            value = json.loads(raw)
        except CacheUnavailable as exc:
            self._errors += 1
            self._misses += 1
            logger.warning("Cache read failed, treating as miss: %s", exc)
            return None
        except ValueError as exc:
            self._errors += 1
            self._misses += 1
            logger.warning("Corrupt cache payload for %s, treating as miss: %s", key, exc)
            return None

        self._hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store a value in Redis with a TTL; failures are logged and ignored.
        """
        ttl_seconds = self.default_ttl if ttl is None else ttl
        try:
            payload = json.dumps(value, default=str).encode("utf-8")
            await self._call(
                "set", key, self._redis_setex, self._full_key(key), ttl_seconds, payload
            )
        except CacheUnavailable as exc:
            self._errors += 1
            logger.warning("Cache write failed, skipping: %s", exc)
        except (TypeError, ValueError) as exc:
            self._errors += 1
            logger.error("Unserialisable cache value for %s: %s", key, exc, exc_info=True)

    async def _redis_get(self, full_key: str) -> Optional[bytes]:
        return await self._redis.get(full_key)

    async def _redis_setex(self, full_key: str, ttl: int, payload: bytes) -> Any:
        return await self._redis.setex(full_key, ttl, payload)

    def stats(self) -> Dict[str, Any]:
        """Hit, miss and error counters plus the circuit state."""
        total = self._hits + self._misses
        return {
            "backend": "redis",
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total else 0.0,
            "errors": self._errors,
            "circuit_state": self._breaker.state.value,
        }
