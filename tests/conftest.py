# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import date
from typing import List, Optional, Sequence, Set, Tuple

import pytest
from hypothesis import HealthCheck, settings

from climarisk.cache import ResultCache
from climarisk.config import ClimaRiskConfig, reset_config, set_config
from climarisk.engine import ClimateRiskEngine
from climarisk.exceptions import CacheUnavailable
from climarisk.models import BoundingBox, Coordinate
from climarisk.providers import TerrainSample, WeatherSeries


# The autouse config fixture is stateless across examples
settings.register_profile(
    "climarisk", suppress_health_check=[HealthCheck.function_scoped_fixture]
)
settings.load_profile("climarisk")


# ==============================================================================
# Fake providers
# ==============================================================================

def _key(lat: float, lon: float) -> Tuple[float, float]:
    return (round(lat, 4), round(lon, 4))


class FakeWeatherProvider:
    """Deterministic in-process weather source.

    Daily rainfall cycles around ``base_rain`` so histories have non-zero
    variance; the last ``recent_window`` days can be overridden with
    ``recent_rain`` to simulate a wet or dry spell.
    """

    def __init__(
        self,
        base_rain: float = 5.0,
        recent_rain: Optional[float] = None,
        recent_window: int = 7,
        temperature: float = 20.0,
        recent_temperature: Optional[float] = None,
        soil_moisture: Optional[float] = 0.3,
        fail_at: Sequence[Tuple[float, float]] = (),
        transient_failures: int = 0,
        delay: float = 0.0,
    ):
        self.base_rain = base_rain
        self.recent_rain = recent_rain
        self.recent_window = recent_window
        self.temperature = temperature
        self.recent_temperature = recent_temperature
        self.soil_moisture = soil_moisture
        self.fail_at: Set[Tuple[float, float]] = {_key(*p) for p in fail_at}
        self.transient_failures = transient_failures
        self.delay = delay

        self.calls: List[Tuple[float, float, date, date]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, lat, lon, start_date, end_date, daily_fields, hourly_fields):
        self.calls.append((lat, lon, start_date, end_date))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if _key(lat, lon) in self.fail_at:
                raise ConnectionError(f"archive unreachable for ({lat}, {lon})")
            if self.transient_failures > 0:
                self.transient_failures -= 1
                raise ConnectionError("connection reset by peer")
            return self._series(start_date, end_date, daily_fields, hourly_fields)
        finally:
            self.in_flight -= 1

    def _series(self, start_date, end_date, daily_fields, hourly_fields):
        days = (end_date - start_date).days + 1
        rain = [max(0.0, self.base_rain + (i % 5) - 2) for i in range(days)]
        temp = [self.temperature + (i % 7) * 0.5 for i in range(days)]
        if self.recent_rain is not None:
            for i in range(max(0, days - self.recent_window), days):
                rain[i] = self.recent_rain
        if self.recent_temperature is not None:
            for i in range(max(0, days - self.recent_window), days):
                temp[i] = self.recent_temperature

        daily = {}
        if "precipitation_sum" in daily_fields:
            daily["precipitation_sum"] = rain
        if "temperature_2m_mean" in daily_fields:
            daily["temperature_2m_mean"] = temp
        hourly = {}
        if "soil_moisture_0_to_10cm" in hourly_fields and self.soil_moisture is not None:
            hourly["soil_moisture_0_to_10cm"] = [self.soil_moisture] * 48
        return WeatherSeries(daily=daily, hourly=hourly)


class FakeTerrainProvider:
    """Fixed terrain everywhere, optionally failing at given points."""

    def __init__(
        self,
        elevation_m: float = 1500.0,
        slope_degrees: float = 12.0,
        aspect_degrees: float = 180.0,
        fail_at: Sequence[Tuple[float, float]] = (),
    ):
        self.sample = TerrainSample(
            elevation_m=elevation_m,
            slope_degrees=slope_degrees,
            aspect_degrees=aspect_degrees,
        )
        self.fail_at = {_key(*p) for p in fail_at}
        self.calls: List[Coordinate] = []

    async def fetch(self, coordinate):
        self.calls.append(coordinate)
        if _key(coordinate.lat, coordinate.lon) in self.fail_at:
            raise ConnectionError("elevation service timed out")
        return self.sample


class FailingCache:
    """Cache backend whose every operation raises."""

    def __init__(self):
        self.gets = 0
        self.sets = 0

    async def get(self, key):
        self.gets += 1
        raise CacheUnavailable("redis down", backend="fake", operation="get")

    async def set(self, key, value, ttl=None):
        self.sets += 1
        raise CacheUnavailable("redis down", backend="fake", operation="set")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def config():
    """Test configuration: short history, no backoff delay, no metrics."""
    return ClimaRiskConfig(
        history_days=120,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        enable_metrics=False,
    )


@pytest.fixture(autouse=True)
def _isolated_config(config):
    """Install the test configuration as the singleton for each test."""
    set_config(config)
    yield
    reset_config()


@pytest.fixture
def weather():
    return FakeWeatherProvider()


@pytest.fixture
def terrain():
    return FakeTerrainProvider()


@pytest.fixture
def cache(config):
    return ResultCache(config=config)


@pytest.fixture
def engine(weather, terrain, cache, config):
    return ClimateRiskEngine(weather, terrain, cache=cache, config=config)


@pytest.fixture
def kigali():
    return Coordinate(lat=-1.9441, lon=30.0619)


@pytest.fixture
def small_bbox():
    return BoundingBox(north=-1.8, south=-2.0, east=30.2, west=30.0)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def weather_factory():
    """Build a FakeWeatherProvider with custom behaviour."""
    return FakeWeatherProvider


@pytest.fixture
def terrain_factory():
    """Build a FakeTerrainProvider with custom behaviour."""
    return FakeTerrainProvider


@pytest.fixture
def failing_cache():
    return FailingCache()
