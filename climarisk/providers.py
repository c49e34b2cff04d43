# -*- coding: utf-8 -*-
"""
External Data Providers

Interfaces for the two collaborators the engine pulls raw data from, and
Open-Meteo adapters implementing them over HTTP.

Interfaces (typing.Protocol):
    WeatherProvider.fetch(lat, lon, start_date, end_date, daily_fields,
                          hourly_fields) -> WeatherSeries
    TerrainProvider.fetch(coordinate) -> TerrainSample

Open-Meteo adapters:
    OpenMeteoWeatherProvider  archive API (daily and hourly reanalysis)
    OpenMeteoTerrainProvider  elevation API; slope and aspect derived from a
                              four-neighbour central difference

Slope and aspect:
    The elevation is sampled at the point and at four neighbours offset by
    ``offset_degrees`` north, south, east and west.

        dz_dx  = (E - W) / (2 * 111320 * cos(lat) * offset)
        dz_dy  = (N - S) / (2 * 110540 * offset)
        slope  = atan(sqrt(dz_dx^2 + dz_dy^2))           degrees
        aspect = atan2(dz_dy, -dz_dx) mapped to [0, 360)  degrees

Adapters raise :class:`~climarisk.exceptions.DataUnavailable` for transport
errors, non-success HTTP statuses and malformed payloads. Retrying is the
caller's job.

Example:
    >>> import httpx
    >>> from climarisk.providers import OpenMeteoWeatherProvider
    >>> async with httpx.AsyncClient() as client:
    ...     weather = OpenMeteoWeatherProvider(client=client)
    ...     series = await weather.fetch(-1.94, 30.06, start, end,
    ...                                  ["precipitation_sum"], [])
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import httpx

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import DataUnavailable
from climarisk.models import Coordinate

logger = logging.getLogger(__name__)

__all__ = [
    "WeatherSeries",
    "TerrainSample",
    "WeatherProvider",
    "TerrainProvider",
    "OpenMeteoWeatherProvider",
    "OpenMeteoTerrainProvider",
    "slope_and_aspect",
]

ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
ELEVATION_URL = "https://api.open-meteo.com/v1/elevation"

# Metres per degree used by the terrain finite difference
METRES_PER_DEGREE_LON = 111_320.0
METRES_PER_DEGREE_LAT = 110_540.0


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WeatherSeries:
    """Ordered daily and hourly series per field; missing values are None."""

    daily: Dict[str, List[Optional[float]]] = field(default_factory=dict)
    hourly: Dict[str, List[Optional[float]]] = field(default_factory=dict)


@dataclass(frozen=True)
class TerrainSample:
    """Elevation and terrain shape at a point."""

    elevation_m: float
    slope_degrees: float
    aspect_degrees: float


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


@runtime_checkable
class WeatherProvider(Protocol):
    """Historical weather source."""

    async def fetch(
        self,
        lat: float,
        lon: float,
        start_date: date,
        end_date: date,
        daily_fields: Sequence[str],
        hourly_fields: Sequence[str],
    ) -> WeatherSeries:
        ...


@runtime_checkable
class TerrainProvider(Protocol):
    """Elevation and slope source."""

    async def fetch(self, coordinate: Coordinate) -> TerrainSample:
        ...


# ---------------------------------------------------------------------------
# Open-Meteo adapters
# ---------------------------------------------------------------------------


class _OpenMeteoClient:
    """Shared GET-and-decode logic for the Open-Meteo adapters."""

    provider_name = "open-meteo"

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        config: Optional[ClimaRiskConfig] = None,
    ) -> None:
        self._base_url = base_url
        self._client = client
        self._timeout = timeout or (config or get_config()).request_timeout

    async def _get_json(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            if self._client is not None:
                response = await self._client.get(
                    self._base_url, params=params, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._base_url, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise DataUnavailable(
                f"{self.provider_name} returned HTTP {exc.response.status_code}",
                provider=self.provider_name,
                cause=exc,
            ) from exc
        except httpx.HTTPError as exc:
            raise DataUnavailable(
                f"{self.provider_name} request failed: {exc}",
                provider=self.provider_name,
                cause=exc,
            ) from exc
        except ValueError as exc:
            raise DataUnavailable(
                f"{self.provider_name} returned a non-JSON body",
                provider=self.provider_name,
                cause=exc,
            ) from exc

        if not isinstance(payload, dict):
            raise DataUnavailable(
                f"{self.provider_name} returned an unexpected payload",
                provider=self.provider_name,
            )
        if payload.get("error"):
            raise DataUnavailable(
                f"{self.provider_name} error: {payload.get('reason', 'unknown')}",
                provider=self.provider_name,
            )
        return payload


class OpenMeteoWeatherProvider(_OpenMeteoClient):
    """Historical weather from the Open-Meteo archive API."""

    provider_name = "open-meteo-archive"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = ARCHIVE_URL,
        timeout: Optional[float] = None,
        config: Optional[ClimaRiskConfig] = None,
    ) -> None:
        super().__init__(base_url, client, timeout, config)

    async def fetch(
        self,
        lat: float,
        lon: float,
        start_date: date,
        end_date: date,
        daily_fields: Sequence[str],
        hourly_fields: Sequence[str],
    ) -> WeatherSeries:
        params: Dict[str, Any] = {
            "latitude": lat,
            "longitude": lon,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "timezone": "auto",
        }
        if daily_fields:
            params["daily"] = ",".join(daily_fields)
        if hourly_fields:
            params["hourly"] = ",".join(hourly_fields)

        payload = await self._get_json(params)
        series = WeatherSeries(
            daily=_extract(payload.get("daily") or {}, daily_fields),
            hourly=_extract(payload.get("hourly") or {}, hourly_fields),
        )
        logger.debug(
            "Fetched weather for (%.4f, %.4f) %s..%s: %d days",
            lat,
            lon,
            start_date,
            end_date,
            max((len(v) for v in series.daily.values()), default=0),
        )
        return series


def _extract(block: Dict[str, Any], fields_: Sequence[str]) -> Dict[str, List[Optional[float]]]:
    result: Dict[str, List[Optional[float]]] = {}
    for name in fields_:
        values = block.get(name) or []
        result[name] = [None if v is None else float(v) for v in values]
    return result


def slope_and_aspect(
    lat: float,
    north: float,
    south: float,
    east: float,
    west: float,
    offset_degrees: float,
) -> tuple:
    """Slope and aspect in degrees from four neighbour elevations."""
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    dz_dx = (east - west) / (2 * METRES_PER_DEGREE_LON * cos_lat * offset_degrees)
    dz_dy = (north - south) / (2 * METRES_PER_DEGREE_LAT * offset_degrees)
    slope = math.degrees(math.atan(math.hypot(dz_dx, dz_dy)))
    aspect = math.degrees(math.atan2(dz_dy, -dz_dx)) % 360.0
    return slope, aspect


class OpenMeteoTerrainProvider(_OpenMeteoClient):
    """Elevation, slope and aspect from the Open-Meteo elevation API."""

    provider_name = "open-meteo-elevation"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = ELEVATION_URL,
        offset_degrees: float = 0.001,
        timeout: Optional[float] = None,
        config: Optional[ClimaRiskConfig] = None,
    ) -> None:
        super().__init__(base_url, client, timeout, config)
        self._offset = offset_degrees

    async def fetch(self, coordinate: Coordinate) -> TerrainSample:
        lat, lon, off = coordinate.lat, coordinate.lon, self._offset
        # centre, north, south, east, west in one request
        lats = [lat, min(90.0, lat + off), max(-90.0, lat - off), lat, lat]
        lons = [lon, lon, lon, min(180.0, lon + off), max(-180.0, lon - off)]
        payload = await self._get_json({
            "latitude": ",".join(f"{v:.6f}" for v in lats),
            "longitude": ",".join(f"{v:.6f}" for v in lons),
        })

        elevations = payload.get("elevation")
        if not isinstance(elevations, list) or len(elevations) != 5 or any(
            e is None for e in elevations
        ):
            raise DataUnavailable(
                "elevation response did not contain 5 values",
                provider=self.provider_name,
                context={"elevation": elevations},
            )
        centre, north, south, east, west = (float(e) for e in elevations)
        slope, aspect = slope_and_aspect(lat, north, south, east, west, off)
        return TerrainSample(
            elevation_m=centre,
            slope_degrees=slope,
            aspect_degrees=aspect,
        )
