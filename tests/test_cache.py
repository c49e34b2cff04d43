"""Tests for climarisk.cache.

Covers:
- Cache key derivation
- In-memory TTL expiry and LRU eviction
- Redis backend failing open (miss on read, no-op on write)
- Circuit breaker state transitions
"""

import json
from datetime import date

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from climarisk.cache import (
    CircuitBreaker,
    CircuitState,
    RedisResultCache,
    ResultCache,
    make_cache_key,
)
from climarisk.exceptions import CacheUnavailable
from climarisk.models import RiskComponent


# ==============================================================================
# Fakes
# ==============================================================================

class FakeRedis:
    """Dict-backed stand-in for redis.asyncio.Redis."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, ttl, payload):
        self.store[key] = payload
        self.ttls[key] = ttl
        return True

    async def aclose(self):
        pass


class DownRedis:
    """Redis client whose every command fails."""

    def __init__(self):
        self.calls = 0

    async def get(self, key):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    async def setex(self, key, ttl, payload):
        self.calls += 1
        raise RedisConnectionError("Connection refused")


# ==============================================================================
# Keys
# ==============================================================================

class TestMakeCacheKey:
    """Tests for make_cache_key."""

    def test_order_independent(self):
        """Parameter order does not change the key."""
        a = make_cache_key("point", {"lat": -1.9441, "lon": 30.0619})
        b = make_cache_key("point", {"lon": 30.0619, "lat": -1.9441})
        assert a == b == "point:lat=-1.9441&lon=30.0619"

    def test_value_formatting(self):
        """Dates, enums, booleans and None have stable renderings."""
        key = make_cache_key(
            "grid",
            {
                "as_of": date(2024, 5, 1),
                "component": RiskComponent.FLOOD,
                "cached": True,
                "ndvi": None,
                "size": 10,
            },
        )
        assert key == "grid:as_of=2024-05-01&cached=true&component=flood&ndvi=&size=10.0"

    def test_int_and_float_collapse(self):
        """1 and 1.0 produce the same key."""
        assert make_cache_key("x", {"v": 1}) == make_cache_key("x", {"v": 1.0})

    def test_distinct_params_distinct_keys(self):
        """Different values produce different keys."""
        assert make_cache_key("x", {"v": 1}) != make_cache_key("x", {"v": 2})


# ==============================================================================
# In-memory backend
# ==============================================================================

class TestResultCache:
    """Tests for the in-memory ResultCache."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, config, fake_clock):
        """A stored value is returned before expiry."""
        cache = ResultCache(config=config, clock=fake_clock)
        await cache.set("k", {"value": 1})

        assert await cache.get("k") == {"value": 1}
        assert "k" in cache
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_missing_key_is_none(self, config):
        """Never-written keys return None."""
        cache = ResultCache(config=config)
        assert await cache.get("nope") is None
        assert cache.stats()["misses"] == 1

    @pytest.mark.asyncio
    async def test_expired_entry_is_none(self, config, fake_clock):
        """Entries past their TTL read as misses and are dropped."""
        cache = ResultCache(config=config, clock=fake_clock)
        await cache.set("k", "v", ttl=60)

        fake_clock.advance(59)
        assert await cache.get("k") == "v"

        fake_clock.advance(1)
        assert await cache.get("k") is None
        assert len(cache) == 0
        assert cache.stats()["expirations"] == 1

    @pytest.mark.asyncio
    async def test_default_ttl_from_config(self, config, fake_clock):
        """Without an explicit TTL the configured one applies."""
        cache = ResultCache(config=config, clock=fake_clock)
        await cache.set("k", "v")

        fake_clock.advance(config.cache_ttl - 1)
        assert await cache.get("k") == "v"
        fake_clock.advance(1)
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_last_write_wins(self, config):
        """set overwrites an existing entry."""
        cache = ResultCache(config=config)
        await cache.set("k", 1)
        await cache.set("k", 2)
        assert await cache.get("k") == 2
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_lru_eviction(self, config):
        """The least recently used entry is evicted at capacity."""
        cache = ResultCache(max_entries=2, config=config)
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.get("a")
        await cache.set("c", 3)

        assert await cache.get("b") is None
        assert await cache.get("a") == 1
        assert await cache.get("c") == 3
        assert cache.stats()["evictions"] == 1

    @pytest.mark.asyncio
    async def test_purge_expired(self, config, fake_clock):
        """purge_expired removes every expired entry at once."""
        cache = ResultCache(config=config, clock=fake_clock)
        await cache.set("short", 1, ttl=10)
        await cache.set("long", 2, ttl=100)

        fake_clock.advance(50)
        assert cache.purge_expired() == 1
        assert "long" in cache
        assert "short" not in cache

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, config):
        """delete removes one key, clear removes all."""
        cache = ResultCache(config=config)
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False
        await cache.clear()
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_hit_rate(self, config):
        """Stats report the hit rate."""
        cache = ResultCache(config=config)
        await cache.set("a", 1)
        await cache.get("a")
        await cache.get("b")

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)


# ==============================================================================
# Redis backend
# ==============================================================================

class TestRedisResultCache:
    """Tests for RedisResultCache."""

    @pytest.mark.asyncio
    async def test_round_trip_as_json(self, config):
        """Values are stored as JSON under the prefix with the TTL."""
        client = FakeRedis()
        cache = RedisResultCache(client=client, config=config)

        await cache.set("point:lat=1.0", {"overall": 0.4}, ttl=120)

        assert json.loads(client.store["climarisk:point:lat=1.0"]) == {"overall": 0.4}
        assert client.ttls["climarisk:point:lat=1.0"] == 120
        assert await cache.get("point:lat=1.0") == {"overall": 0.4}
        assert cache.stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_connection_failure_is_miss(self, config):
        """A down Redis reads as a miss instead of raising."""
        cache = RedisResultCache(client=DownRedis(), config=config)

        assert await cache.get("k") is None
        assert cache.stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_write_failure_is_ignored(self, config):
        """A down Redis makes set a no-op."""
        cache = RedisResultCache(client=DownRedis(), config=config)
        await cache.set("k", {"v": 1})
        assert cache.stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_corrupt_payload_is_miss(self, config):
        """Unparseable payloads read as misses."""
        client = FakeRedis()
        client.store["climarisk:k"] = b"{not json"
        cache = RedisResultCache(client=client, config=config)

        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_circuit_opens_and_skips_redis(self, config):
        """After repeated failures Redis is no longer called."""
        client = DownRedis()
        breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60)
        cache = RedisResultCache(client=client, circuit_breaker=breaker, config=config)

        await cache.get("a")
        await cache.get("b")
        assert breaker.state == CircuitState.OPEN

        await cache.get("c")
        assert client.calls == 2
        assert cache.stats()["circuit_state"] == "open"

    @pytest.mark.asyncio
    async def test_connect_without_url_raises(self, config):
        """connect needs a URL when no client is injected."""
        cache = RedisResultCache(config=config)
        with pytest.raises(CacheUnavailable):
            await cache.connect()

    @pytest.mark.asyncio
    async def test_not_connected_is_miss(self, config):
        """Reads before connect fail open."""
        cache = RedisResultCache(url="redis://localhost:6379/0", config=config)
        assert await cache.get("k") is None


class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    def test_half_open_after_timeout(self):
        """An open breaker admits one trial call after the recovery timeout."""
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

        assert breaker.can_attempt() is True
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.can_attempt() is False

    def test_success_closes(self):
        """A successful trial call closes the breaker."""
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0.0)
        breaker.record_failure()
        breaker.can_attempt()
        breaker.record_success()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
