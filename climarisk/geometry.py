# -*- coding: utf-8 -*-
"""
Spatial Geometry

Great-circle distance, bounding boxes around a point, and uniform grids over
a bounding box.

Distance uses the haversine formula on a sphere of radius
``config.earth_radius_km`` (6371 km), so it is symmetric, zero only for
identical points, and satisfies the triangle inequality.

Bounding boxes use a flat-earth approximation: ``radius / 111`` degrees of
latitude and ``radius / (111 * cos(lat))`` degrees of longitude. As
``cos(lat)`` approaches zero near the poles the longitude span blows up;
spans are clamped to the valid coordinate range, so boxes close to a pole
are wider than requested. This is a known precision limit.

Example:
    >>> from climarisk.geometry import distance
    >>> from climarisk.models import Coordinate
    >>> round(distance(Coordinate(lat=-1.9403, lon=29.8739),
    ...                Coordinate(lat=-1.9441, lon=30.0619)), 1)
    20.9
"""

from __future__ import annotations

import math
from typing import List, Optional

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import InvalidInput
from climarisk.models import BoundingBox, Coordinate

__all__ = ["distance", "bounding_box", "grid"]


def distance(
    a: Coordinate,
    b: Coordinate,
    config: Optional[ClimaRiskConfig] = None,
) -> float:
    """Haversine distance between two points in kilometres."""
    radius = (config or get_config()).earth_radius_km
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.lon - a.lon)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    # Rounding can push h a hair past 1 for antipodal points
    h = min(1.0, h)
    return 2 * radius * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bounding_box(
    center: Coordinate,
    radius_km: float,
    config: Optional[ClimaRiskConfig] = None,
) -> BoundingBox:
    """Approximately square box extending ``radius_km`` from ``center``.

    Raises:
        InvalidInput: If ``radius_km`` is not positive.
    """
    if not radius_km > 0:
        raise InvalidInput(
            "radius_km must be > 0", field="radius_km", value=radius_km
        )
    km_per_degree = (config or get_config()).km_per_degree
    lat_delta = radius_km / km_per_degree
    cos_lat = math.cos(math.radians(center.lat))
    if cos_lat <= 1e-12:
        lon_delta = 180.0
    else:
        lon_delta = radius_km / (km_per_degree * cos_lat)

    return BoundingBox(
        north=min(90.0, center.lat + lat_delta),
        south=max(-90.0, center.lat - lat_delta),
        east=min(180.0, center.lon + lon_delta),
        west=max(-180.0, center.lon - lon_delta),
    )


def grid(bbox: BoundingBox, grid_size: int) -> List[Coordinate]:
    """Uniform ``(grid_size + 1)^2`` lattice including all four corners.

    Points are ordered row-major from the south-west corner: latitude rows
    south to north, longitude columns west to east.

    Raises:
        InvalidInput: If ``grid_size`` is not a positive integer.
    """
    if isinstance(grid_size, bool) or not isinstance(grid_size, int) or grid_size <= 0:
        raise InvalidInput(
            "grid_size must be a positive integer",
            field="grid_size",
            value=grid_size,
        )
    lat_step = (bbox.north - bbox.south) / grid_size
    lon_step = (bbox.east - bbox.west) / grid_size

    points: List[Coordinate] = []
    for i in range(grid_size + 1):
        # Pin the last row and column to the exact edges
        lat = bbox.north if i == grid_size else bbox.south + i * lat_step
        for j in range(grid_size + 1):
            lon = bbox.east if j == grid_size else bbox.west + j * lon_step
            points.append(Coordinate(lat=lat, lon=lon))
    return points
